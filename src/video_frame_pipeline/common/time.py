"""
Утилиты времени.

Назначение:
- единое текущее время в UTC
- миллисекунды для таймстампов DLQ
- метка для имён файлов загрузок и архивов
"""

from __future__ import annotations

from datetime import UTC, datetime


def utc_now() -> datetime:
    """
    Текущее время в UTC (datetime).
    """
    return datetime.now(UTC)


def utc_ms() -> int:
    """
    Текущее время в UTC в миллисекундах (int).
    """
    return int(utc_now().timestamp() * 1000)


def file_stamp() -> str:
    """
    Метка для имён файлов: YYYYMMDD_HHMMSS_ffffff.
    """
    return utc_now().strftime("%Y%m%d_%H%M%S_%f")
