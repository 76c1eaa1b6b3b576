"""
Чтение: список видео пользователя, статус, скачивание архива кадров.
"""

from __future__ import annotations

import uuid
from pathlib import Path

from video_frame_pipeline.common.errors import NotFoundError
from video_frame_pipeline.domain.enums import VideoStatus
from video_frame_pipeline.domain.models import Video
from video_frame_pipeline.storage.files import resolve_bundle
from video_frame_pipeline.storage.status_cache import NullStatusCache, StatusCache
from video_frame_pipeline.storage.status_store import StatusStore


class VideoQueryService:
    def __init__(self, *, store: StatusStore, cache: StatusCache | None = None) -> None:
        self.store = store
        self.cache = cache or NullStatusCache()

    def list_for_user(self, user_id: str) -> list[Video]:
        return self.store.list_by_user(user_id)

    def get(self, video_id: uuid.UUID, user_id: str) -> Video:
        video = self.store.find_by_id(video_id)
        # чужое видео неотличимо от несуществующего
        if video is None or video.user_id != user_id:
            raise NotFoundError("Video not found", details={"video_id": str(video_id)})
        return video

    def status(self, video_id: uuid.UUID, user_id: str) -> VideoStatus:
        """
        Статус из кэша, если запись принадлежит пользователю;
        иначе из хранилища (с проверкой владельца) и прогрев кэша.
        """
        cached = self.cache.get(video_id)
        if cached is not None and cached.owner == user_id:
            return cached.status
        video = self.get(video_id, user_id)
        self.cache.put(video.id, video.status, owner=video.user_id)
        return video.status

    def bundle_path(self, video_id: uuid.UUID, user_id: str) -> Path:
        video = self.get(video_id, user_id)
        if video.status != VideoStatus.FINISHED or not video.zip_path:
            raise NotFoundError(
                "Frames archive is not ready",
                details={"video_id": str(video_id), "status": video.status.value},
            )
        return resolve_bundle(Path(video.zip_path).name)
