"""
Worker Processing.

Алгоритм:
- N слотов (PROCESSING_CONCURRENCY), каждый читает свои партиции топика обработки
- каждое событие -> ProcessingConsumer.handle (lock -> extract -> archive -> persist -> notify -> ack)
- зависшие pending упавших воркеров перехватываются после CONSUMER_CLAIM_IDLE_MS
"""

from __future__ import annotations

import signal
import time

from video_frame_pipeline.common.config import get_settings
from video_frame_pipeline.common.logging import get_project_logger, setup_logging
from video_frame_pipeline.queue.streams import consumer_name
from video_frame_pipeline.services.consumer_runner import ConsumerRunner
from video_frame_pipeline.services.container import build_pipeline
from video_frame_pipeline.services.readiness_service import enforce_startup_readiness
from video_frame_pipeline.storage.files import ensure_dirs

log = get_project_logger()
SERVICE_NAME = "worker-processing"


def build_runner() -> ConsumerRunner:
    s = get_settings()
    pipeline = build_pipeline(service_name=SERVICE_NAME)
    return ConsumerRunner(
        name=consumer_name(SERVICE_NAME),
        bus=pipeline.bus,
        topic=pipeline.processing,
        group=s.processing_group,
        handler=pipeline.processing_consumer().handle,
        slots=s.processing_concurrency,
        shard_index=s.worker_shard_index,
        shard_count=s.worker_shard_count,
        block_ms=s.consumer_block_ms,
        claim_idle_ms=s.consumer_claim_idle_ms,
    )


def main() -> None:
    setup_logging(SERVICE_NAME)
    enforce_startup_readiness(service_name=SERVICE_NAME)
    ensure_dirs()

    runner = build_runner()
    signal.signal(signal.SIGTERM, lambda *_: runner.stop_event.set())
    signal.signal(signal.SIGINT, lambda *_: runner.stop_event.set())

    runner.start()
    while not runner.stop_event.is_set():
        time.sleep(1)
    log.info("worker_processing_stopping")
    runner.stop()


if __name__ == "__main__":
    main()
