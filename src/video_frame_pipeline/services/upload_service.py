"""
Приём загрузки видео.

Шаги:
1) валидация (пустой файл, расширение из белого списка, регистр не важен)
2) сохранение файла под уникальным именем <метка времени>_<префикс id>_<имя>
3) запись Video со статусом UPLOADED
4) публикация события video_upload с ключом "video-<id>"

Если публикация не удалась, событие уходит в DLQ (см. EventPublisher),
а запись остаётся в UPLOADED до разбора DLQ.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO

from video_frame_pipeline.common.config import get_settings
from video_frame_pipeline.common.errors import ValidationError
from video_frame_pipeline.common.ids import new_video_id
from video_frame_pipeline.common.logging import get_project_logger
from video_frame_pipeline.common.time import file_stamp, utc_now
from video_frame_pipeline.contracts.events import VideoUploadEvent, processing_key
from video_frame_pipeline.domain.enums import EventType, VideoStatus
from video_frame_pipeline.domain.models import UserRef, Video
from video_frame_pipeline.queue.publisher import EventPublisher
from video_frame_pipeline.storage.files import safe_filename, save_upload
from video_frame_pipeline.storage.status_cache import NullStatusCache, StatusCache
from video_frame_pipeline.storage.status_store import StatusStore

log = get_project_logger()


@dataclass
class UploadedFile:
    filename: str
    stream: BinaryIO
    # размер, если известен заранее (multipart); None: проверяем после записи
    size: int | None = None


def validate_upload(filename: str, size: int | None, allowed: set[str]) -> str:
    """
    Возвращает безопасное базовое имя файла или бросает ValidationError.
    """
    if size is not None and size <= 0:
        raise ValidationError("File is empty")
    name = safe_filename(filename)
    ext = Path(name).suffix.lower().lstrip(".")
    if not ext or ext not in allowed:
        raise ValidationError(
            "Unsupported video format",
            details={"extension": ext or None, "allowed": sorted(allowed)},
        )
    return name


class UploadCoordinator:
    def __init__(
        self,
        *,
        store: StatusStore,
        publisher: EventPublisher,
        cache: StatusCache | None = None,
    ) -> None:
        self.store = store
        self.publisher = publisher
        self.cache = cache or NullStatusCache()

    def execute(self, file: UploadedFile, user: UserRef) -> Video:
        name = validate_upload(file.filename, file.size, get_settings().allowed_extensions())

        video_id = new_video_id()
        path, size = save_upload(file.stream, f"{file_stamp()}_{video_id.hex[:8]}_{name}")
        if size <= 0:
            path.unlink(missing_ok=True)
            raise ValidationError("File is empty")

        now = utc_now()
        video = Video(
            id=video_id,
            user_id=user.id,
            original_path=str(path),
            original_filename=name,
            file_size=size,
            status=VideoStatus.UPLOADED,
            uploaded_at=now,
            updated_at=now,
        )
        self.store.save(video)
        self.cache.put(video.id, video.status, owner=video.user_id)
        log.info(
            "video_uploaded",
            extra={
                "payload": {
                    "video_id": str(video.id),
                    "user_id": user.id,
                    "size": size,
                    "filename": name,
                }
            },
        )

        event = VideoUploadEvent(
            video_id=video.id,
            user_id=user.id,
            user_email=user.email,
            user_name=user.name,
        )
        self.publisher.publish(event, EventType.video_upload.value, processing_key(video.id))
        return video
