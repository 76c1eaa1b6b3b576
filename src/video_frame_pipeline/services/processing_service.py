"""
Обработка одного видео: lock -> PROCESSING -> extract -> archive -> FINISHED/ERROR -> notify.

Используется обоими консюмерами:
- ProcessingConsumer (path=primary)
- DlqConsumer        (path=dlq, одноразовый ретрай)

Правила:
- lock захватывается до перехода в PROCESSING и освобождается всегда
- рабочий каталог с кадрами удаляется всегда
- ProcessingError не выходит наружу: превращается в ERROR + письмо
- прочие исключения пробрасываются консюмеру после попытки записать ERROR
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from video_frame_pipeline.common.errors import ErrCode, ProcessingError
from video_frame_pipeline.common.ids import new_lock_token
from video_frame_pipeline.common.logging import get_project_logger
from video_frame_pipeline.common.metrics import VIDEOS_PROCESSED_TOTAL, track_stage_latency
from video_frame_pipeline.contracts.events import ProcessingEvent
from video_frame_pipeline.delivery.notifications import VideoNotifier
from video_frame_pipeline.domain import state_machine
from video_frame_pipeline.domain.enums import ProcessingPath, VideoStatus
from video_frame_pipeline.domain.models import UserRef, Video
from video_frame_pipeline.processing.archiver import Archiver, bundle_name
from video_frame_pipeline.processing.extractor import FrameExtractor
from video_frame_pipeline.queue.locks import DEFAULT_TTL_SEC, DistributedLock
from video_frame_pipeline.storage.files import outputs_dir, scoped_workdir
from video_frame_pipeline.storage.status_cache import NullStatusCache, StatusCache
from video_frame_pipeline.storage.status_store import StatusStore

log = get_project_logger()


class Outcome:
    FINISHED = "finished"
    FAILED = "failed"
    NOT_FOUND = "not_found"
    SKIPPED_TERMINAL = "skipped_terminal"
    SKIPPED_LOCKED = "skipped_locked"


@dataclass
class ProcessingOutcome:
    result: str
    video: Video | None = None
    cause: str | None = None
    error: ProcessingError | None = None


def _user_from_event(event: ProcessingEvent) -> UserRef:
    return UserRef(id=event.user_id, email=event.user_email, name=event.user_name)


class VideoProcessor:
    def __init__(
        self,
        *,
        store: StatusStore,
        lock: DistributedLock,
        extractor: FrameExtractor,
        archiver: Archiver,
        notifier: VideoNotifier,
        cache: StatusCache | None = None,
        lock_ttl_sec: int = DEFAULT_TTL_SEC,
        output_dir: Path | None = None,
        service_name: str = "worker-processing",
    ) -> None:
        self.store = store
        self.lock = lock
        self.extractor = extractor
        self.archiver = archiver
        self.notifier = notifier
        self.cache = cache or NullStatusCache()
        self.lock_ttl_sec = lock_ttl_sec
        self.output_dir = output_dir
        self.service_name = service_name

    def process(
        self, event: ProcessingEvent, *, path: ProcessingPath = ProcessingPath.primary
    ) -> ProcessingOutcome:
        video_id = event.video_id
        ctx = {"video_id": str(video_id), "path": path.value}

        video = self.store.find_by_id(video_id)
        if video is None:
            log.info("video_not_found", extra={"payload": ctx})
            return ProcessingOutcome(result=Outcome.NOT_FOUND)

        if not state_machine.can_start_processing(video, path=path):
            log.info(
                "video_already_terminal_skipped",
                extra={"payload": {**ctx, "status": video.status.value}},
            )
            return ProcessingOutcome(result=Outcome.SKIPPED_TERMINAL, video=video)

        if not self.lock.acquire(video_id, self.lock_ttl_sec):
            log.info("video_already_processing", extra={"payload": ctx})
            return ProcessingOutcome(result=Outcome.SKIPPED_LOCKED, video=video)

        user = _user_from_event(event)
        try:
            # пока ждали lock, видео мог довести до конца другой воркер
            video = self.store.find_by_id(video_id)
            if video is None:
                log.info("video_not_found", extra={"payload": ctx})
                return ProcessingOutcome(result=Outcome.NOT_FOUND)
            if not state_machine.can_start_processing(video, path=path):
                log.info(
                    "video_handled_while_locking_skipped",
                    extra={"payload": {**ctx, "status": video.status.value}},
                )
                return ProcessingOutcome(result=Outcome.SKIPPED_TERMINAL, video=video)

            already_failed = video.status == VideoStatus.ERROR
            video = self._save(state_machine.start_processing(video, path=path))
            log.info("video_processing_started", extra={"payload": ctx})
            try:
                zip_path, frame_count = self._extract_and_archive(video)
            except ProcessingError as e:
                return self._on_failure(video, e, user=user, path=path, notify=not already_failed)
            except Exception as e:
                self._fail_best_effort(video, e, user=user, path=path, notify=not already_failed)
                raise

            video = self._save(
                state_machine.finish(video, zip_path=zip_path, frame_count=frame_count)
            )
            VIDEOS_PROCESSED_TOTAL.labels(path=path.value, status="finished", cause="none").inc()
            log.info(
                "video_processing_finished",
                extra={"payload": {**ctx, "frame_count": frame_count, "zip": Path(zip_path).name}},
            )
            self.notifier.notify_finished(user, video)
            return ProcessingOutcome(result=Outcome.FINISHED, video=video)
        finally:
            self.lock.release(video_id)

    # -------------------------------------------------------------------------
    # Шаги
    # -------------------------------------------------------------------------
    def _extract_and_archive(self, video: Video) -> tuple[str, int]:
        with scoped_workdir(f"{video.id}_{new_lock_token()[:8]}") as workdir:
            with track_stage_latency(self.service_name, "extract"):
                extraction = self.extractor.extract(Path(video.original_path), workdir)
            if not extraction.ok:
                raise ProcessingError(
                    ErrCode.EXTRACTOR_FAILED,
                    f"Frame extraction failed (exit code {extraction.exit_code})",
                    details={"output": extraction.output[-500:]},
                )
            if not extraction.frames:
                raise ProcessingError(
                    ErrCode.NO_FRAMES,
                    "No frames extracted: file may be corrupt or in an unsupported format",
                )

            dest = (self.output_dir or outputs_dir()) / bundle_name(video.id)
            with track_stage_latency(self.service_name, "archive"):
                archived = self.archiver.archive(extraction.frames, dest)
            if not archived:
                raise ProcessingError(ErrCode.ARCHIVE_FAILED, "Failed to create frames archive")
            return str(dest), len(extraction.frames)

    def _on_failure(
        self,
        video: Video,
        error: ProcessingError,
        *,
        user: UserRef,
        path: ProcessingPath,
        notify: bool,
    ) -> ProcessingOutcome:
        video = self._save(state_machine.fail(video, message=error.message, path=path))
        VIDEOS_PROCESSED_TOTAL.labels(path=path.value, status="error", cause=error.code).inc()
        log.warning(
            "video_processing_failed",
            extra={
                "payload": {
                    "video_id": str(video.id),
                    "path": path.value,
                    "cause": error.code,
                    "error_message": video.error_message,
                }
            },
        )
        if notify:
            self.notifier.notify_failed(user, video, cause=error.code)
        return ProcessingOutcome(result=Outcome.FAILED, video=video, cause=error.code, error=error)

    def _fail_best_effort(
        self,
        video: Video,
        error: Exception,
        *,
        user: UserRef,
        path: ProcessingPath,
        notify: bool,
    ) -> None:
        message = f"Unexpected processing error: {type(error).__name__}"
        try:
            video = self._save(state_machine.fail(video, message=message, path=path))
        except Exception as e:
            log.error(
                "video_error_status_not_persisted",
                extra={"payload": {"video_id": str(video.id), "err": str(e)[:200]}},
            )
            return
        VIDEOS_PROCESSED_TOTAL.labels(path=path.value, status="error", cause=ErrCode.UNKNOWN).inc()
        if notify:
            self.notifier.notify_failed(user, video, cause=ErrCode.UNKNOWN)

    def _save(self, video: Video) -> Video:
        saved = self.store.save(video)
        self.cache.put(saved.id, saved.status, owner=saved.user_id)
        return saved
