"""
StatusStore: хранилище записей Video.

Интерфейс один, реализации две:
- InMemoryStatusStore: тесты и QUEUE_MODE=inline
- SqlStatusStore: прод (SQLAlchemy, Postgres)

Запись: last-write-wins, без версионирования.
"""

from __future__ import annotations

import threading
import uuid
from typing import Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from video_frame_pipeline.common.errors import ErrCode, TransientInfraError
from video_frame_pipeline.domain.models import Video

from .db import db_session
from .models import VideoRow
from .repositories import VideoRepository


class StatusStore(Protocol):
    def find_by_id(self, video_id: uuid.UUID) -> Video | None: ...

    def save(self, video: Video) -> Video: ...

    def list_by_user(self, user_id: str) -> list[Video]: ...


class InMemoryStatusStore:
    def __init__(self) -> None:
        self._items: dict[uuid.UUID, Video] = {}
        self._guard = threading.Lock()

    def find_by_id(self, video_id: uuid.UUID) -> Video | None:
        with self._guard:
            return self._items.get(video_id)

    def save(self, video: Video) -> Video:
        with self._guard:
            self._items[video.id] = video
        return video

    def list_by_user(self, user_id: str) -> list[Video]:
        with self._guard:
            items = [v for v in self._items.values() if v.user_id == user_id]
        return sorted(items, key=lambda v: v.uploaded_at, reverse=True)


# =============================================================================
# SQL
# =============================================================================
def _to_row(video: Video) -> VideoRow:
    return VideoRow(
        id=str(video.id),
        user_id=video.user_id,
        original_path=video.original_path,
        original_filename=video.original_filename,
        file_size=video.file_size,
        status=video.status,
        zip_path=video.zip_path,
        frame_count=video.frame_count,
        error_message=video.error_message,
        uploaded_at=video.uploaded_at,
        updated_at=video.updated_at,
    )


def _from_row(row: VideoRow) -> Video:
    return Video(
        id=uuid.UUID(row.id),
        user_id=row.user_id,
        original_path=row.original_path,
        original_filename=row.original_filename or "",
        file_size=int(row.file_size),
        status=row.status,
        uploaded_at=row.uploaded_at,
        zip_path=row.zip_path,
        frame_count=row.frame_count,
        error_message=row.error_message,
        updated_at=row.updated_at,
    )


class SqlStatusStore:
    def __init__(self, session_factory: sessionmaker[Session] | None = None) -> None:
        self._session_factory = session_factory

    def find_by_id(self, video_id: uuid.UUID) -> Video | None:
        try:
            with db_session(self._session_factory) as s:
                row = VideoRepository(s).get(str(video_id))
                return _from_row(row) if row else None
        except SQLAlchemyError as e:
            raise TransientInfraError(
                ErrCode.DB_ERROR, "Status store read failed", details={"err": str(e)[:200]}
            ) from e

    def save(self, video: Video) -> Video:
        try:
            with db_session(self._session_factory) as s:
                VideoRepository(s).save(_to_row(video))
        except SQLAlchemyError as e:
            raise TransientInfraError(
                ErrCode.DB_ERROR, "Status store write failed", details={"err": str(e)[:200]}
            ) from e
        return video

    def list_by_user(self, user_id: str) -> list[Video]:
        try:
            with db_session(self._session_factory) as s:
                return [_from_row(r) for r in VideoRepository(s).list_by_user(user_id)]
        except SQLAlchemyError as e:
            raise TransientInfraError(
                ErrCode.DB_ERROR, "Status store read failed", details={"err": str(e)[:200]}
            ) from e
