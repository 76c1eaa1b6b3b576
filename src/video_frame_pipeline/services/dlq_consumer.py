"""
Консюмер DLQ: одноразовый ретрай.

- конверт не декодируется -> ack и drop
- DLQ_RETRY_ENABLED=false -> конверт только логируется
- тип события не video_upload -> лог и drop
- иначе тот же переход lock -> extract -> archive -> persist, path=dlq:
  успех -> FINISHED, повторная ошибка -> ERROR с суффиксом "after DLQ retry"
- из DLQ в DLQ повторно ничего не отправляется
"""

from __future__ import annotations

from video_frame_pipeline.common.errors import PoisonMessageError
from video_frame_pipeline.common.logging import get_project_logger
from video_frame_pipeline.common.metrics import QUEUE_TASKS_TOTAL
from video_frame_pipeline.contracts.events import (
    DeadLetterEnvelope,
    decode_envelope,
    decode_processing_event,
)
from video_frame_pipeline.domain.enums import ProcessingPath
from video_frame_pipeline.queue.bus import BusMessage, EventBus, TopicSpec

from .processing_service import VideoProcessor

log = get_project_logger()

SERVICE_NAME = "worker-dlq"


class DlqConsumer:
    def __init__(
        self,
        *,
        bus: EventBus,
        topic: TopicSpec,
        group: str,
        processor: VideoProcessor,
        retry_enabled: bool = True,
    ) -> None:
        self.bus = bus
        self.topic = topic
        self.group = group
        self.processor = processor
        self.retry_enabled = retry_enabled

    def handle(self, message: BusMessage) -> str:
        try:
            result = self._handle(message)
        finally:
            try:
                self.bus.ack(message, group=self.group)
            except Exception as e:
                log.error(
                    "dlq_ack_failed",
                    extra={"payload": {"entry_id": message.entry_id, "err": str(e)[:200]}},
                )
        QUEUE_TASKS_TOTAL.labels(service=SERVICE_NAME, queue=self.topic.name, result=result).inc()
        return result

    def _handle(self, message: BusMessage) -> str:
        try:
            envelope = decode_envelope(message.value)
        except PoisonMessageError as e:
            log.warning(
                "dlq_poison_envelope_dropped",
                extra={"payload": {"entry_id": message.entry_id, "reason": e.message}},
            )
            return "poison"

        ctx = _envelope_ctx(envelope)
        log.warning("dlq_envelope_received", extra={"payload": ctx})

        if not self.retry_enabled:
            log.warning("dlq_retry_disabled", extra={"payload": ctx})
            return "retry_disabled"

        if not envelope.is_video_upload():
            log.warning("dlq_unknown_event_type_dropped", extra={"payload": ctx})
            return "unknown_type"

        try:
            event = decode_processing_event(envelope.original_event)
        except PoisonMessageError as e:
            log.warning(
                "dlq_original_event_undecodable",
                extra={"payload": {**ctx, "reason": e.message}},
            )
            return "poison"

        try:
            outcome = self.processor.process(event, path=ProcessingPath.dlq)
        except Exception as e:
            # TODO: операторский алерт при повторном сбое в DLQ (сейчас только лог + метрика)
            log.error(
                "dlq_retry_unexpected_error",
                exc_info=True,
                extra={"payload": {**ctx, "video_id": str(event.video_id), "err": str(e)[:200]}},
            )
            return "error"

        log.info(
            "dlq_retry_done",
            extra={"payload": {**ctx, "video_id": str(event.video_id), "result": outcome.result}},
        )
        return outcome.result


def _envelope_ctx(envelope: DeadLetterEnvelope) -> dict:
    return {
        "event_type": envelope.event_type,
        "failure_reason": (envelope.failure_reason or "")[:200],
        "failure_timestamp": envelope.failure_timestamp,
        "original_topic": envelope.original_topic,
    }
