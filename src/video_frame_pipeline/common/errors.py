"""
Единые ошибки и коды ошибок.

Назначение:
- предсказуемые коды для HTTP/очередей/DLQ
- единый стиль исключений по проекту

Таксономия:
- ValidationError: плохая загрузка (пустой файл, неподдерживаемое расширение)
- TransientInfraError: брокер/lock/хранилище недоступны
- ProcessingError: ffmpeg завершился с ошибкой, 0 кадров, сбой архивации
- PoisonMessageError: payload события не декодируется
"""

from __future__ import annotations

from dataclasses import dataclass


class ErrCode:
    # Общие
    UNKNOWN = "unknown"
    VALIDATION = "validation"
    UNAUTHORIZED = "unauthorized"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"

    # Очереди
    POISON_MESSAGE = "poison_message"

    # Обработка видео
    EXTRACTOR_FAILED = "extractor_failed"
    NO_FRAMES = "no_frames"
    ARCHIVE_FAILED = "archive_failed"

    # Инфра/хранилища
    DB_ERROR = "db_error"
    STORAGE_ERROR = "storage_error"


@dataclass
class AppError(Exception):
    """
    Базовая ошибка приложения.
    - code: стабильный код ошибки
    - message: безопасное сообщение
    - details: доп. данные (без секретов/PII)
    """

    code: str
    message: str
    details: dict | None = None

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.code}: {self.message}"


class ValidationError(AppError):
    def __init__(self, message: str = "Validation failed", details: dict | None = None) -> None:
        super().__init__(ErrCode.VALIDATION, message, details)


class NotFoundError(AppError):
    def __init__(self, message: str = "Not found", details: dict | None = None) -> None:
        super().__init__(ErrCode.NOT_FOUND, message, details)


class InvalidTransitionError(AppError):
    def __init__(self, message: str = "Invalid status transition", details: dict | None = None) -> None:
        super().__init__(ErrCode.CONFLICT, message, details)


class TransientInfraError(AppError):
    def __init__(self, code: str, message: str, details: dict | None = None) -> None:
        super().__init__(code, message, details)


class ProcessingError(AppError):
    """
    Ошибка обработки конкретного видео.
    Всегда превращается в статус ERROR + письмо пользователю.
    """

    def __init__(self, code: str, message: str, details: dict | None = None) -> None:
        super().__init__(code, message, details)


class PoisonMessageError(AppError):
    def __init__(self, message: str = "Undecodable event payload", details: dict | None = None) -> None:
        super().__init__(ErrCode.POISON_MESSAGE, message, details)
