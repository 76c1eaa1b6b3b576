"""
Контракт шины событий.

Модель:
- топик разбит на партиции; партиция выбирается по ключу сообщения
- порядок гарантируется только внутри партиции (т.е. для одного ключа)
- доставка at-least-once, подтверждение (ack): явное, после обработки
"""

from __future__ import annotations

import zlib
from dataclasses import dataclass
from typing import Protocol

from video_frame_pipeline.common.config import Settings, get_settings


@dataclass(frozen=True)
class TopicSpec:
    name: str
    partitions: int
    retention_ms: int


@dataclass(frozen=True)
class SendResult:
    topic: str
    partition: int
    entry_id: str


@dataclass(frozen=True)
class BusMessage:
    topic: str
    partition: int
    entry_id: str
    key: str | None
    value: str


def partition_for(key: str | None, partitions: int) -> int:
    if partitions <= 1 or not key:
        return 0
    return zlib.crc32(key.encode("utf-8")) % partitions


def processing_topic(settings: Settings | None = None) -> TopicSpec:
    s = settings or get_settings()
    return TopicSpec(
        name=s.processing_topic,
        partitions=max(1, s.processing_partitions),
        retention_ms=s.processing_retention_ms,
    )


def dlq_topic(settings: Settings | None = None) -> TopicSpec:
    s = settings or get_settings()
    return TopicSpec(
        name=s.dlq_topic,
        partitions=max(1, s.dlq_partitions),
        retention_ms=s.dlq_retention_ms,
    )


def assigned_partitions(
    *, partitions: int, slot: int, slots: int, shard_index: int = 0, shard_count: int = 1
) -> list[int]:
    """
    Партиции, которые читает конкретный слот конкретного процесса.
    Всего читателей = shard_count * slots; партиция p достаётся читателю p % readers.
    """
    readers = max(1, shard_count) * max(1, slots)
    reader = shard_index * max(1, slots) + slot
    owned = [p for p in range(partitions) if p % readers == reader % readers]
    return owned


class EventBus(Protocol):
    """
    Минимальный контракт шины: Redis Streams в проде, in-memory в тестах/inline.
    """

    def send(self, topic: TopicSpec, key: str | None, value: str) -> SendResult: ...

    def poll(
        self,
        topic: TopicSpec,
        *,
        group: str,
        consumer: str,
        partitions: list[int],
        block_ms: int,
    ) -> list[BusMessage]: ...

    def ack(self, message: BusMessage, *, group: str) -> None: ...
