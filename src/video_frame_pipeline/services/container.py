"""
Сборка компонентов пайплайна по конфигурации.

Режимы:
- QUEUE_MODE=redis: Redis Streams, Redis lock, Redis-кэш статусов
- QUEUE_MODE=inline: in-memory шина и lock (один процесс, dev/тесты)
- STORE_MODE=db|memory: SQL или in-memory хранилище
"""

from __future__ import annotations

from dataclasses import dataclass

from video_frame_pipeline.common.config import Settings, get_settings
from video_frame_pipeline.delivery.email.sender import SMTPEmailProvider
from video_frame_pipeline.delivery.notifications import VideoNotifier
from video_frame_pipeline.processing.archiver import ZipArchiver
from video_frame_pipeline.processing.extractor import FfmpegFrameExtractor
from video_frame_pipeline.queue.bus import EventBus, TopicSpec, dlq_topic, processing_topic
from video_frame_pipeline.queue.dlq import DeadLetterRouter
from video_frame_pipeline.queue.locks import DistributedLock, InMemoryVideoLock, RedisVideoLock
from video_frame_pipeline.queue.memory import InMemoryEventBus
from video_frame_pipeline.queue.publisher import EventPublisher
from video_frame_pipeline.queue.streams import RedisStreamsBus
from video_frame_pipeline.storage.status_cache import NullStatusCache, RedisStatusCache, StatusCache
from video_frame_pipeline.storage.status_store import InMemoryStatusStore, SqlStatusStore, StatusStore

from .dlq_consumer import DlqConsumer
from .processing_consumer import ProcessingConsumer
from .processing_service import VideoProcessor
from .query_service import VideoQueryService
from .upload_service import UploadCoordinator


def _inline(s: Settings) -> bool:
    return (s.queue_mode or "").strip().lower() == "inline"


def build_bus(s: Settings) -> EventBus:
    return InMemoryEventBus() if _inline(s) else RedisStreamsBus()


def build_status_store(s: Settings) -> StatusStore:
    if (s.store_mode or "").strip().lower() == "memory":
        return InMemoryStatusStore()
    return SqlStatusStore()


def build_status_cache(s: Settings) -> StatusCache:
    if s.status_cache_enabled and not _inline(s):
        return RedisStatusCache(ttl_sec=s.status_cache_ttl_sec)
    return NullStatusCache()


def build_lock(s: Settings) -> DistributedLock:
    if _inline(s):
        return InMemoryVideoLock()
    return RedisVideoLock(fail_open=s.lock_fail_open)


@dataclass
class Pipeline:
    settings: Settings
    bus: EventBus
    store: StatusStore
    cache: StatusCache
    lock: DistributedLock
    processing: TopicSpec
    dlq: TopicSpec
    dlq_router: DeadLetterRouter
    publisher: EventPublisher
    processor: VideoProcessor
    uploads: UploadCoordinator
    queries: VideoQueryService

    def processing_consumer(self) -> ProcessingConsumer:
        return ProcessingConsumer(
            bus=self.bus,
            topic=self.processing,
            group=self.settings.processing_group,
            processor=self.processor,
            dlq=self.dlq_router,
            dlq_on_failure=self.settings.dlq_on_processing_failure,
        )

    def dlq_consumer(self) -> DlqConsumer:
        return DlqConsumer(
            bus=self.bus,
            topic=self.dlq,
            group=self.settings.dlq_group,
            processor=self.processor,
            retry_enabled=self.settings.dlq_retry_enabled,
        )


def build_pipeline(
    settings: Settings | None = None,
    *,
    bus: EventBus | None = None,
    store: StatusStore | None = None,
    cache: StatusCache | None = None,
    lock: DistributedLock | None = None,
    processor: VideoProcessor | None = None,
    service_name: str = "worker-processing",
) -> Pipeline:
    s = settings or get_settings()
    bus = bus or build_bus(s)
    store = store or build_status_store(s)
    cache = cache or build_status_cache(s)
    lock = lock or build_lock(s)

    processing = processing_topic(s)
    dlq = dlq_topic(s)
    dlq_router = DeadLetterRouter(bus, dlq)
    publisher = EventPublisher(bus, processing, dlq_router)

    processor = processor or VideoProcessor(
        store=store,
        lock=lock,
        extractor=FfmpegFrameExtractor(),
        archiver=ZipArchiver(),
        notifier=VideoNotifier(SMTPEmailProvider()),
        cache=cache,
        lock_ttl_sec=s.lock_ttl_sec,
        service_name=service_name,
    )
    return Pipeline(
        settings=s,
        bus=bus,
        store=store,
        cache=cache,
        lock=lock,
        processing=processing,
        dlq=dlq,
        dlq_router=dlq_router,
        publisher=publisher,
        processor=processor,
        uploads=UploadCoordinator(store=store, publisher=publisher, cache=cache),
        queries=VideoQueryService(store=store, cache=cache),
    )
