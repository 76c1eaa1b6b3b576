"""
Машина состояний жизненного цикла видео.

Назначение:
- Централизованное управление переходами статусов
- Предсказуемое поведение при ошибках
- Основа для DLQ-ретрая

Правила:
- UPLOADED   -> PROCESSING | ERROR
- PROCESSING -> PROCESSING (перехват после истечения TTL lock'а) | FINISHED | ERROR
- FINISHED / ERROR: терминальные
- ERROR -> PROCESSING разрешён только на пути DLQ (одноразовый ретрай)
"""

from __future__ import annotations

from dataclasses import replace

from video_frame_pipeline.common.errors import InvalidTransitionError
from video_frame_pipeline.common.time import utc_now

from .enums import ProcessingPath, VideoStatus
from .models import Video

DLQ_RETRY_SUFFIX = "after DLQ retry"

# =============================================================================
# ТАБЛИЦА ПЕРЕХОДОВ
# =============================================================================
_TRANSITIONS: dict[VideoStatus, frozenset[VideoStatus]] = {
    VideoStatus.UPLOADED: frozenset({VideoStatus.PROCESSING, VideoStatus.ERROR}),
    VideoStatus.PROCESSING: frozenset(
        {VideoStatus.PROCESSING, VideoStatus.FINISHED, VideoStatus.ERROR}
    ),
    VideoStatus.FINISHED: frozenset(),
    VideoStatus.ERROR: frozenset(),
}

_DLQ_EXTRA_TRANSITIONS: dict[VideoStatus, frozenset[VideoStatus]] = {
    VideoStatus.ERROR: frozenset({VideoStatus.PROCESSING}),
}


def can_transition(
    current: VideoStatus,
    target: VideoStatus,
    *,
    path: ProcessingPath = ProcessingPath.primary,
) -> bool:
    if target in _TRANSITIONS.get(current, frozenset()):
        return True
    if path == ProcessingPath.dlq:
        return target in _DLQ_EXTRA_TRANSITIONS.get(current, frozenset())
    return False


def can_start_processing(video: Video, *, path: ProcessingPath) -> bool:
    """
    Можно ли начинать обработку видео на данном пути.
    """
    return can_transition(video.status, VideoStatus.PROCESSING, path=path)


def _check(video: Video, target: VideoStatus, path: ProcessingPath) -> None:
    if not can_transition(video.status, target, path=path):
        raise InvalidTransitionError(
            details={
                "video_id": str(video.id),
                "from": video.status.value,
                "to": target.value,
                "path": path.value,
            }
        )


# =============================================================================
# ПЕРЕХОДЫ
# =============================================================================
def start_processing(video: Video, *, path: ProcessingPath = ProcessingPath.primary) -> Video:
    _check(video, VideoStatus.PROCESSING, path)
    return replace(
        video,
        status=VideoStatus.PROCESSING,
        zip_path=None,
        frame_count=None,
        error_message=None,
        updated_at=utc_now(),
    )


def finish(video: Video, *, zip_path: str, frame_count: int) -> Video:
    _check(video, VideoStatus.FINISHED, ProcessingPath.primary)
    return replace(
        video,
        status=VideoStatus.FINISHED,
        zip_path=zip_path,
        frame_count=frame_count,
        error_message=None,
        updated_at=utc_now(),
    )


def fail(
    video: Video,
    *,
    message: str,
    path: ProcessingPath = ProcessingPath.primary,
) -> Video:
    """
    Перевод в ERROR. На пути DLQ сообщение помечается суффиксом "after DLQ retry",
    чтобы отличать ошибку ремедиации от первичной.
    """
    _check(video, VideoStatus.ERROR, path)
    text = (message or "").strip() or "Video processing failed"
    if path == ProcessingPath.dlq and not text.endswith(DLQ_RETRY_SUFFIX):
        text = f"{text}; failed {DLQ_RETRY_SUFFIX}"
    return replace(
        video,
        status=VideoStatus.ERROR,
        zip_path=None,
        frame_count=None,
        error_message=text,
        updated_at=utc_now(),
    )
