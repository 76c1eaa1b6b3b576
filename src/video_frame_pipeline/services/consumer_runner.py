"""
Цикл чтения топика в N потоках-слотах.

Каждый слот владеет фиксированным подмножеством партиций
(p % (shard_count * slots)), читает по одному сообщению и передаёт его обработчику.
Перед чтением новых сообщений слот перехватывает зависшие pending (если шина умеет).
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable

from video_frame_pipeline.common.logging import get_project_logger
from video_frame_pipeline.queue.bus import BusMessage, EventBus, TopicSpec, assigned_partitions

log = get_project_logger()

CLAIM_INTERVAL_SEC = 60.0


class ConsumerRunner:
    def __init__(
        self,
        *,
        name: str,
        bus: EventBus,
        topic: TopicSpec,
        group: str,
        handler: Callable[[BusMessage], str],
        slots: int = 1,
        shard_index: int = 0,
        shard_count: int = 1,
        block_ms: int = 5000,
        claim_idle_ms: int = 0,
    ) -> None:
        self.name = name
        self.bus = bus
        self.topic = topic
        self.group = group
        self.handler = handler
        self.slots = max(1, slots)
        self.shard_index = shard_index
        self.shard_count = max(1, shard_count)
        self.block_ms = block_ms
        self.claim_idle_ms = claim_idle_ms
        self.stop_event = threading.Event()
        self._threads: list[threading.Thread] = []

    def partitions_for(self, slot: int) -> list[int]:
        return assigned_partitions(
            partitions=self.topic.partitions,
            slot=slot,
            slots=self.slots,
            shard_index=self.shard_index,
            shard_count=self.shard_count,
        )

    def start(self) -> None:
        for slot in range(self.slots):
            t = threading.Thread(
                target=self._run_slot, args=(slot,), name=f"{self.name}-{slot}", daemon=True
            )
            t.start()
            self._threads.append(t)
        log.info(
            "consumer_started",
            extra={
                "payload": {
                    "consumer": self.name,
                    "topic": self.topic.name,
                    "group": self.group,
                    "slots": self.slots,
                }
            },
        )

    def stop(self, timeout: float = 10.0) -> None:
        self.stop_event.set()
        for t in self._threads:
            t.join(timeout=timeout)
        self._threads.clear()

    def join(self) -> None:
        for t in self._threads:
            t.join()

    def _run_slot(self, slot: int) -> None:
        partitions = self.partitions_for(slot)
        consumer = f"{self.name}-{slot}"
        if not partitions:
            log.warning(
                "consumer_slot_idle_no_partitions",
                extra={"payload": {"consumer": consumer, "topic": self.topic.name}},
            )
            return

        last_claim = 0.0
        while not self.stop_event.is_set():
            try:
                messages: list[BusMessage] = []
                claim = getattr(self.bus, "claim_stale", None)
                if claim and self.claim_idle_ms > 0 and time.monotonic() - last_claim > CLAIM_INTERVAL_SEC:
                    last_claim = time.monotonic()
                    messages = claim(
                        self.topic,
                        group=self.group,
                        consumer=consumer,
                        partitions=partitions,
                        min_idle_ms=self.claim_idle_ms,
                    )
                if not messages:
                    messages = self.bus.poll(
                        self.topic,
                        group=self.group,
                        consumer=consumer,
                        partitions=partitions,
                        block_ms=self.block_ms,
                    )
                for msg in messages:
                    self._dispatch(consumer, msg)
            except Exception as e:
                log.error(
                    "consumer_loop_error",
                    exc_info=True,
                    extra={"payload": {"consumer": consumer, "err": str(e)[:200]}},
                )
                self.stop_event.wait(2)

    def _dispatch(self, consumer: str, msg: BusMessage) -> None:
        try:
            self.handler(msg)
        except Exception as e:
            # без ack: сообщение останется pending до claim
            log.error(
                "consumer_handler_error",
                exc_info=True,
                extra={
                    "payload": {
                        "consumer": consumer,
                        "topic": msg.topic,
                        "entry_id": msg.entry_id,
                        "err": str(e)[:200],
                    }
                },
            )
