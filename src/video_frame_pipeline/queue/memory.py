"""
In-memory шина событий.

Используется:
- в тестах
- в QUEUE_MODE=inline (один процесс, без Redis)

Семантика повторяет Redis Streams: партиции, consumer group с курсором,
pending до ack.
"""

from __future__ import annotations

import threading
from collections import defaultdict

from .bus import BusMessage, SendResult, TopicSpec, partition_for


class InMemoryEventBus:
    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._log: dict[tuple[str, int], list[BusMessage]] = defaultdict(list)
        self._cursor: dict[tuple[str, int, str], int] = defaultdict(int)
        self._pending: dict[tuple[str, str], dict[str, BusMessage]] = defaultdict(dict)
        self._seq = 0

    def send(self, topic: TopicSpec, key: str | None, value: str) -> SendResult:
        partition = partition_for(key, topic.partitions)
        with self._cond:
            self._seq += 1
            entry_id = f"{self._seq}-0"
            self._log[(topic.name, partition)].append(
                BusMessage(
                    topic=topic.name,
                    partition=partition,
                    entry_id=entry_id,
                    key=key,
                    value=value,
                )
            )
            self._cond.notify_all()
        return SendResult(topic=topic.name, partition=partition, entry_id=entry_id)

    def _next_locked(self, topic: str, group: str, partitions: list[int]) -> list[BusMessage]:
        out: list[BusMessage] = []
        for p in partitions:
            entries = self._log.get((topic, p), [])
            pos = self._cursor[(topic, p, group)]
            if pos < len(entries):
                msg = entries[pos]
                self._cursor[(topic, p, group)] = pos + 1
                self._pending[(topic, group)][msg.entry_id] = msg
                out.append(msg)
        return out

    def poll(
        self,
        topic: TopicSpec,
        *,
        group: str,
        consumer: str,
        partitions: list[int],
        block_ms: int,
    ) -> list[BusMessage]:
        _ = consumer
        with self._cond:
            out = self._next_locked(topic.name, group, partitions)
            if out or block_ms <= 0:
                return out
            self._cond.wait(timeout=block_ms / 1000)
            return self._next_locked(topic.name, group, partitions)

    def ack(self, message: BusMessage, *, group: str) -> None:
        with self._cond:
            self._pending[(message.topic, group)].pop(message.entry_id, None)

    # -------------------------------------------------------------------------
    # Инспекция (тесты / inline-диагностика)
    # -------------------------------------------------------------------------
    def messages(self, topic: str) -> list[BusMessage]:
        with self._cond:
            out: list[BusMessage] = []
            for (name, _p), entries in self._log.items():
                if name == topic:
                    out.extend(entries)
            return sorted(out, key=lambda m: int(m.entry_id.split("-")[0]))

    def pending(self, topic: str, group: str) -> list[BusMessage]:
        with self._cond:
            return list(self._pending[(topic, group)].values())
