"""
Доменные сущности.

Video: запись о загруженном видео и его жизненном цикле.
Инварианты:
- zip_path и frame_count заданы тогда и только тогда, когда status == FINISHED
- error_message задан тогда и только тогда, когда status == ERROR
- id не меняется после загрузки

Сущности неизменяемые: переходы возвращают новый экземпляр (см. state_machine).
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime

from .enums import VideoStatus


@dataclass(frozen=True)
class UserRef:
    """
    Владелец видео (как его видит пайплайн).
    """

    id: str
    email: str
    name: str | None = None


@dataclass(frozen=True)
class Video:
    id: uuid.UUID
    user_id: str
    original_path: str
    file_size: int
    status: VideoStatus
    uploaded_at: datetime
    original_filename: str = ""
    zip_path: str | None = None
    frame_count: int | None = None
    error_message: str | None = None
    updated_at: datetime | None = None

    def invariant_violations(self) -> list[str]:
        problems: list[str] = []
        finished = self.status == VideoStatus.FINISHED
        if finished != (self.zip_path is not None):
            problems.append("zip_path_mismatch")
        if finished != (self.frame_count is not None):
            problems.append("frame_count_mismatch")
        if (self.status == VideoStatus.ERROR) != (self.error_message is not None):
            problems.append("error_message_mismatch")
        return problems
