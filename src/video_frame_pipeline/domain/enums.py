"""
Доменные перечисления (enum).

Используются во всей системе:
- жизненный цикл видео
- типы событий в очередях
"""

from __future__ import annotations

import enum


class VideoStatus(str, enum.Enum):
    """
    Статус видео.
    UPLOADED -> PROCESSING -> {FINISHED, ERROR}
    """

    UPLOADED = "UPLOADED"
    PROCESSING = "PROCESSING"
    FINISHED = "FINISHED"
    ERROR = "ERROR"


class EventType(str, enum.Enum):
    """
    Тег события в топике обработки.
    """

    video_upload = "video_upload"


class ProcessingPath(str, enum.Enum):
    """
    По какому пути идёт обработка: первичный консюмер или разбор DLQ.
    """

    primary = "primary"
    dlq = "dlq"
