"""
Базовые интерфейсы доставки.

Назначение:
- Единый контракт для каналов уведомлений
- Возможность подмены провайдера в тестах
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol


@dataclass
class DeliveryResult:
    """
    Результат доставки.
    """

    ok: bool
    provider: str
    message_id: str | None = None
    error: str | None = None
    meta: dict[str, Any] | None = None


class Notifier(Protocol):
    """
    Контракт провайдера доставки: одно письмо одному получателю.
    """

    def send(self, to: str, subject: str, body: str) -> DeliveryResult: ...
