"""
Публикация событий в топик обработки.

Контракт publish (at-least-once):
- отправка в топик обработки с ключом "video-<id>"
- при сбое отправки: синхронно конверт в DLQ (см. DeadLetterRouter)
- при сбое и DLQ: critical-лог, событие потеряно
"""

from __future__ import annotations

from video_frame_pipeline.common.logging import get_project_logger
from video_frame_pipeline.contracts.events import ProcessingEvent

from .bus import EventBus, TopicSpec
from .dlq import DeadLetterRouter

log = get_project_logger()


class EventPublisher:
    def __init__(self, bus: EventBus, topic: TopicSpec, dlq: DeadLetterRouter) -> None:
        self.bus = bus
        self.topic = topic
        self.dlq = dlq

    def publish(self, event: ProcessingEvent, event_type: str, key: str) -> bool:
        """
        Возвращает True, если событие принято топиком обработки.
        False: событие ушло в DLQ (или потеряно, если DLQ тоже недоступен).
        """
        payload = event.to_wire()
        try:
            res = self.bus.send(self.topic, key, event.to_json())
        except Exception as e:
            log.error(
                "event_publish_failed",
                exc_info=True,
                extra={
                    "payload": {
                        "event_type": event_type,
                        "key": key,
                        "topic": self.topic.name,
                        "err": str(e)[:200],
                    }
                },
            )
            self.dlq.route(
                original_event=payload,
                event_type=event_type,
                error=e,
                source="publish",
                original_topic=self.topic.name,
            )
            return False

        log.info(
            "event_published",
            extra={
                "payload": {
                    "event_type": event_type,
                    "key": key,
                    "topic": res.topic,
                    "partition": res.partition,
                    "entry_id": res.entry_id,
                }
            },
        )
        return True
