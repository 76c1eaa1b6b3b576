from __future__ import annotations

import io
import uuid
from collections.abc import Callable
from pathlib import Path

import pytest

from video_frame_pipeline.common.config import get_settings
from video_frame_pipeline.contracts.events import processing_key
from video_frame_pipeline.delivery.base import DeliveryResult
from video_frame_pipeline.delivery.notifications import VideoNotifier
from video_frame_pipeline.delivery.results import ok_result
from video_frame_pipeline.domain.models import UserRef, Video
from video_frame_pipeline.processing.archiver import ZipArchiver
from video_frame_pipeline.processing.extractor import ExtractionResult
from video_frame_pipeline.queue.bus import BusMessage, SendResult, TopicSpec
from video_frame_pipeline.queue.locks import InMemoryVideoLock
from video_frame_pipeline.queue.memory import InMemoryEventBus
from video_frame_pipeline.services.container import build_pipeline
from video_frame_pipeline.services.processing_service import VideoProcessor
from video_frame_pipeline.services.upload_service import UploadedFile
from video_frame_pipeline.storage.status_cache import NullStatusCache
from video_frame_pipeline.storage.status_store import InMemoryStatusStore

USER = UserRef(id="user-1", email="owner@example.com", name="Owner")

_SETTINGS_KEYS = (
    "app_env",
    "uploads_dir",
    "outputs_dir",
    "temp_dir",
    "store_mode",
    "queue_mode",
    "smtp_host",
    "api_keys",
    "status_cache_enabled",
    "lock_fail_open",
    "dlq_retry_enabled",
    "dlq_on_processing_failure",
    "readiness_fail_fast_in_prod",
    "consumer_claim_idle_ms",
    "lock_ttl_sec",
)


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path):
    s = get_settings()
    snapshot = {k: getattr(s, k) for k in _SETTINGS_KEYS}
    try:
        s.app_env = "dev"
        s.uploads_dir = str(tmp_path / "uploads")
        s.outputs_dir = str(tmp_path / "outputs")
        s.temp_dir = str(tmp_path / "temp")
        s.store_mode = "memory"
        s.queue_mode = "inline"
        s.smtp_host = None
        s.api_keys = ""
        s.status_cache_enabled = False
        s.lock_fail_open = True
        s.dlq_retry_enabled = True
        s.dlq_on_processing_failure = True
        yield s
    finally:
        for k, v in snapshot.items():
            setattr(s, k, v)


# =============================================================================
# FAKES
# =============================================================================
class FakeExtractor:
    """
    Вместо ffmpeg: пишет N пустых кадров в workdir.
    script: последовательность (exit_code, frames) на каждый вызов; последний повторяется.
    """

    def __init__(
        self,
        script: list[tuple[int, int]] | None = None,
        *,
        on_extract: Callable[[], None] | None = None,
        raises: BaseException | None = None,
    ) -> None:
        self.script = script or [(0, 10)]
        self.on_extract = on_extract
        self.raises = raises
        self.calls: list[tuple[Path, Path]] = []

    def extract(self, video_path: Path, workdir: Path) -> ExtractionResult:
        step = self.script[min(len(self.calls), len(self.script) - 1)]
        self.calls.append((video_path, workdir))
        if self.on_extract:
            self.on_extract()
        if self.raises:
            raise self.raises
        exit_code, count = step
        frames = []
        for i in range(count):
            f = workdir / f"frame_{i + 1:04d}.png"
            f.write_bytes(b"\x89PNG")
            frames.append(f)
        return ExtractionResult(exit_code=exit_code, frames=frames, output="")


class FakeArchiver:
    def __init__(self, ok: bool = True) -> None:
        self.ok = ok
        self.calls: list[tuple[list[Path], Path]] = []

    def archive(self, files, dest: Path) -> bool:
        self.calls.append((list(files), dest))
        return self.ok


class RecordingProvider:
    def __init__(self) -> None:
        self.sent: list[tuple[str, str, str]] = []

    def send(self, to: str, subject: str, body: str) -> DeliveryResult:
        self.sent.append((to, subject, body))
        return ok_result("recording")


class FlakyBus(InMemoryEventBus):
    """
    In-memory шина, у которой send в указанные топики падает.
    """

    def __init__(self, fail_topics: set[str] | None = None) -> None:
        super().__init__()
        self.fail_topics = set(fail_topics or ())

    def send(self, topic: TopicSpec, key: str | None, value: str) -> SendResult:
        if topic.name in self.fail_topics:
            raise ConnectionError(f"broker unavailable for {topic.name}")
        return super().send(topic, key, value)


class Harness:
    user = USER

    def __init__(
        self,
        settings,
        *,
        script: list[tuple[int, int]] | None = None,
        extractor_raises: BaseException | None = None,
        on_extract: Callable[[], None] | None = None,
        archive_ok: bool | None = None,
        fail_topics: set[str] | None = None,
    ) -> None:
        self.settings = settings
        self.bus = FlakyBus(fail_topics)
        self.store = InMemoryStatusStore()
        self.lock = InMemoryVideoLock()
        self.mail = RecordingProvider()
        self.extractor = FakeExtractor(script, on_extract=on_extract, raises=extractor_raises)
        # None: настоящий ZipArchiver
        self.archiver = ZipArchiver() if archive_ok is None else FakeArchiver(archive_ok)
        self.processor = VideoProcessor(
            store=self.store,
            lock=self.lock,
            extractor=self.extractor,
            archiver=self.archiver,
            notifier=VideoNotifier(self.mail),
            cache=NullStatusCache(),
            lock_ttl_sec=settings.lock_ttl_sec,
        )
        self.pipeline = build_pipeline(
            settings,
            bus=self.bus,
            store=self.store,
            cache=NullStatusCache(),
            lock=self.lock,
            processor=self.processor,
        )

    def upload(self, filename: str = "clip.mp4", data: bytes = b"video-bytes") -> Video:
        return self.pipeline.uploads.execute(
            UploadedFile(filename=filename, stream=io.BytesIO(data), size=len(data)), USER
        )

    def poll(self, topic: TopicSpec, group: str) -> list[BusMessage]:
        return self.bus.poll(
            topic, group=group, consumer="test", partitions=list(range(topic.partitions)), block_ms=0
        )

    def poll_processing(self) -> list[BusMessage]:
        return self.poll(self.pipeline.processing, self.settings.processing_group)

    def run_processing(self) -> list[str]:
        consumer = self.pipeline.processing_consumer()
        results: list[str] = []
        while msgs := self.poll_processing():
            results.extend(consumer.handle(m) for m in msgs)
        return results

    def run_dlq(self) -> list[str]:
        consumer = self.pipeline.dlq_consumer()
        results: list[str] = []
        while msgs := self.poll(self.pipeline.dlq, self.settings.dlq_group):
            results.extend(consumer.handle(m) for m in msgs)
        return results

    def send_raw(self, value: str, key: str | None = None) -> None:
        self.bus.send(self.pipeline.processing, key or processing_key(uuid.uuid4()), value)

    def dlq_messages(self) -> list[BusMessage]:
        return self.bus.messages(self.settings.dlq_topic)

    def pending(self) -> list[BusMessage]:
        return self.bus.pending(self.settings.processing_topic, self.settings.processing_group)


@pytest.fixture()
def make_harness(isolated_settings):
    def _make(**kwargs) -> Harness:
        return Harness(isolated_settings, **kwargs)

    return _make


@pytest.fixture()
def harness(make_harness) -> Harness:
    return make_harness()
