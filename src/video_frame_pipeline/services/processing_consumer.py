"""
Консюмер топика обработки (первичный путь).

На каждое сообщение:
- payload не декодируется -> ack и drop
- видео не найдено / уже терминальное / lock занят -> ack без обработки
- иначе VideoProcessor.process(path=primary)
- ошибка обработки -> (опционально) конверт в DLQ со стеком для одноразового ретрая
- неожиданное исключение -> ERROR (best-effort), конверт в DLQ
- ack всегда, после завершения локального перехода
"""

from __future__ import annotations

from video_frame_pipeline.common.errors import PoisonMessageError
from video_frame_pipeline.common.logging import get_project_logger
from video_frame_pipeline.common.metrics import QUEUE_TASKS_TOTAL
from video_frame_pipeline.contracts.events import decode_processing_event
from video_frame_pipeline.domain.enums import EventType, ProcessingPath
from video_frame_pipeline.queue.bus import BusMessage, EventBus, TopicSpec
from video_frame_pipeline.queue.dlq import DeadLetterRouter

from .processing_service import Outcome, VideoProcessor

log = get_project_logger()

SERVICE_NAME = "worker-processing"


class ProcessingConsumer:
    def __init__(
        self,
        *,
        bus: EventBus,
        topic: TopicSpec,
        group: str,
        processor: VideoProcessor,
        dlq: DeadLetterRouter,
        dlq_on_failure: bool = True,
    ) -> None:
        self.bus = bus
        self.topic = topic
        self.group = group
        self.processor = processor
        self.dlq = dlq
        self.dlq_on_failure = dlq_on_failure

    def handle(self, message: BusMessage) -> str:
        """
        Обрабатывает одно сообщение и подтверждает его. Возвращает метку результата.
        """
        try:
            result = self._handle(message)
        finally:
            self._ack(message)
        QUEUE_TASKS_TOTAL.labels(service=SERVICE_NAME, queue=self.topic.name, result=result).inc()
        return result

    def _handle(self, message: BusMessage) -> str:
        try:
            event = decode_processing_event(message.value)
        except PoisonMessageError as e:
            log.warning(
                "poison_message_dropped",
                extra={
                    "payload": {
                        "topic": message.topic,
                        "entry_id": message.entry_id,
                        "reason": e.message,
                        "details": e.details,
                    }
                },
            )
            return "poison"

        try:
            outcome = self.processor.process(event, path=ProcessingPath.primary)
        except Exception as e:
            log.error(
                "video_processing_unexpected_error",
                exc_info=True,
                extra={"payload": {"video_id": str(event.video_id), "err": str(e)[:200]}},
            )
            self.dlq.route(
                original_event=event.to_wire(),
                event_type=EventType.video_upload.value,
                error=e,
                source="processing",
                original_topic=self.topic.name,
                with_stack=True,
            )
            return "error"

        if outcome.result == Outcome.FAILED and self.dlq_on_failure and outcome.error:
            self.dlq.route(
                original_event=event.to_wire(),
                event_type=EventType.video_upload.value,
                error=outcome.error,
                source="processing",
                original_topic=self.topic.name,
                with_stack=True,
            )
        return outcome.result

    def _ack(self, message: BusMessage) -> None:
        try:
            self.bus.ack(message, group=self.group)
        except Exception as e:
            # сообщение останется pending и будет перехвачено (claim) повторно
            log.error(
                "message_ack_failed",
                extra={
                    "payload": {
                        "topic": message.topic,
                        "entry_id": message.entry_id,
                        "err": str(e)[:200],
                    }
                },
            )
