"""
Маршрутизация в DLQ.

Назначение:
- при сбое публикации или обработки собрать конверт и отправить его в DLQ-топик
- если не удалась и отправка в DLQ: событие теряется; это логируется как critical
  (осознанный компромисс: доступность важнее долговечности)
"""

from __future__ import annotations

from typing import Any

from video_frame_pipeline.common.logging import get_project_logger
from video_frame_pipeline.common.metrics import DLQ_ROUTED_TOTAL
from video_frame_pipeline.contracts.events import DLQ_KEY, build_envelope

from .bus import EventBus, TopicSpec

log = get_project_logger()


class DeadLetterRouter:
    def __init__(self, bus: EventBus, topic: TopicSpec) -> None:
        self.bus = bus
        self.topic = topic

    def route(
        self,
        *,
        original_event: Any,
        event_type: str,
        error: BaseException,
        source: str,
        original_topic: str | None = None,
        with_stack: bool = False,
    ) -> bool:
        """
        Возвращает True, если конверт принят DLQ-топиком.
        """
        envelope = build_envelope(
            original_event=original_event,
            event_type=event_type,
            error=error,
            original_topic=original_topic,
            with_stack=with_stack,
        )
        try:
            res = self.bus.send(self.topic, DLQ_KEY, envelope.to_json())
        except Exception as dlq_err:
            DLQ_ROUTED_TOTAL.labels(source=source, result="lost").inc()
            log.critical(
                "dlq_send_failed_event_lost",
                exc_info=True,
                extra={
                    "payload": {
                        "event_type": event_type,
                        "source": source,
                        "failure_reason": envelope.failure_reason,
                        "dlq_err": str(dlq_err)[:200],
                    }
                },
            )
            return False

        DLQ_ROUTED_TOTAL.labels(source=source, result="sent").inc()
        log.warning(
            "event_sent_to_dlq",
            extra={
                "payload": {
                    "event_type": event_type,
                    "source": source,
                    "dlq": self.topic.name,
                    "partition": res.partition,
                    "entry_id": res.entry_id,
                    "failure_reason": (envelope.failure_reason or "")[:200],
                }
            },
        )
        return True
