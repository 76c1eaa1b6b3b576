"""
Шина событий поверх Redis Streams.

Устройство:
- одна stream на партицию: <topic>:p<n>
- consumer group на каждую stream; подтверждение через XACK
- ретеншн: при XADD обрезаем всё старше retention_ms (MINID, приближённо)
- зависшие pending-сообщения упавшего консюмера можно перехватить (XAUTOCLAIM)
"""

from __future__ import annotations

import os
import socket
from collections.abc import Callable

import redis

from video_frame_pipeline.common.logging import get_project_logger
from video_frame_pipeline.common.time import utc_ms

from .bus import BusMessage, SendResult, TopicSpec, partition_for
from .redis import redis_client

log = get_project_logger()


def stream_name(topic: str, partition: int) -> str:
    return f"{topic}:p{partition}"


def consumer_name(prefix: str) -> str:
    return f"{prefix}-{socket.gethostname()}-{os.getpid()}"


def _parse_stream_name(stream: str) -> tuple[str, int]:
    topic, _, part = stream.rpartition(":p")
    try:
        return topic, int(part)
    except ValueError:
        return stream, 0


def _to_message(stream: str, entry_id: str, fields: dict) -> BusMessage:
    topic, partition = _parse_stream_name(stream)
    return BusMessage(
        topic=topic,
        partition=partition,
        entry_id=str(entry_id),
        key=fields.get("key") or None,
        value=fields.get("value") or "",
    )


class RedisStreamsBus:
    def __init__(self, client_factory: Callable[[], redis.Redis] = redis_client) -> None:
        self._client_factory = client_factory
        self._groups_ready: set[tuple[str, str]] = set()

    @property
    def r(self) -> redis.Redis:
        return self._client_factory()

    def send(self, topic: TopicSpec, key: str | None, value: str) -> SendResult:
        partition = partition_for(key, topic.partitions)
        stream = stream_name(topic.name, partition)
        minid = None
        if topic.retention_ms > 0:
            minid = f"{max(0, utc_ms() - topic.retention_ms)}-0"
        entry_id = self.r.xadd(
            stream,
            {"key": key or "", "value": value},
            minid=minid,
            approximate=True,
        )
        return SendResult(topic=topic.name, partition=partition, entry_id=str(entry_id))

    def ensure_group(self, topic: TopicSpec, group: str, partitions: list[int]) -> None:
        for p in partitions:
            stream = stream_name(topic.name, p)
            if (stream, group) in self._groups_ready:
                continue
            try:
                self.r.xgroup_create(stream, group, id="0", mkstream=True)
            except redis.exceptions.ResponseError as e:
                if "BUSYGROUP" not in str(e):
                    raise
            self._groups_ready.add((stream, group))

    def poll(
        self,
        topic: TopicSpec,
        *,
        group: str,
        consumer: str,
        partitions: list[int],
        block_ms: int,
    ) -> list[BusMessage]:
        if not partitions:
            return []
        self.ensure_group(topic, group, partitions)
        streams = {stream_name(topic.name, p): ">" for p in partitions}
        resp = self.r.xreadgroup(group, consumer, streams, count=1, block=block_ms)
        out: list[BusMessage] = []
        for stream, entries in resp or []:
            for entry_id, fields in entries:
                out.append(_to_message(stream, entry_id, fields or {}))
        return out

    def ack(self, message: BusMessage, *, group: str) -> None:
        self.r.xack(stream_name(message.topic, message.partition), group, message.entry_id)

    def claim_stale(
        self,
        topic: TopicSpec,
        *,
        group: str,
        consumer: str,
        partitions: list[int],
        min_idle_ms: int,
        count: int = 10,
    ) -> list[BusMessage]:
        """
        Перехват pending-сообщений, которые дольше min_idle_ms висят на другом консюмере.
        Аналог ребалансировки: такие сообщения будут доставлены повторно.
        """
        out: list[BusMessage] = []
        for p in partitions:
            stream = stream_name(topic.name, p)
            try:
                resp = self.r.xautoclaim(
                    stream, group, consumer, min_idle_time=min_idle_ms, start_id="0-0", count=count
                )
            except redis.exceptions.ResponseError as e:
                log.warning(
                    "stream_claim_failed",
                    extra={"payload": {"stream": stream, "group": group, "err": str(e)[:200]}},
                )
                continue
            entries = resp[1] if resp and len(resp) > 1 else []
            for entry_id, fields in entries:
                if fields:
                    out.append(_to_message(stream, entry_id, fields))
        if out:
            log.warning(
                "stream_pending_claimed",
                extra={"payload": {"topic": topic.name, "group": group, "count": len(out)}},
            )
        return out
