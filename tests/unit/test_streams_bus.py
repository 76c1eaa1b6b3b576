from __future__ import annotations

import redis

from video_frame_pipeline.common.time import utc_ms
from video_frame_pipeline.queue.bus import BusMessage, TopicSpec, assigned_partitions, partition_for
from video_frame_pipeline.queue.streams import RedisStreamsBus, stream_name

TOPIC = TopicSpec(name="video.processing.events", partitions=6, retention_ms=7 * 24 * 3600 * 1000)


class _FakeRedis:
    def __init__(self) -> None:
        self.streams: dict[str, list[tuple[str, dict]]] = {}
        self.groups: set[tuple[str, str]] = set()
        self.delivered: dict[tuple[str, str], int] = {}
        self.acked: list[tuple[str, str, str]] = []
        self.xadd_kwargs: list[dict] = []
        self._seq = 0

    def xadd(self, stream, fields, minid=None, approximate=True):
        self._seq += 1
        entry_id = f"{self._seq}-0"
        self.streams.setdefault(stream, []).append((entry_id, dict(fields)))
        self.xadd_kwargs.append({"minid": minid, "approximate": approximate})
        return entry_id

    def xgroup_create(self, stream, group, id="0", mkstream=False):
        if (stream, group) in self.groups:
            raise redis.exceptions.ResponseError("BUSYGROUP Consumer Group name already exists")
        self.groups.add((stream, group))
        if mkstream:
            self.streams.setdefault(stream, [])
        return True

    def xreadgroup(self, group, consumer, streams, count=None, block=None):
        out = []
        for stream in streams:
            pos = self.delivered.get((stream, group), 0)
            entries = self.streams.get(stream, [])[pos : pos + (count or 1)]
            if entries:
                self.delivered[(stream, group)] = pos + len(entries)
                out.append([stream, entries])
        return out

    def xack(self, stream, group, *ids):
        for i in ids:
            self.acked.append((stream, group, i))
        return len(ids)

    def xautoclaim(self, stream, group, consumer, min_idle_time, start_id="0-0", count=None):
        entries = self.streams.get(stream, [])[:1]
        return ["0-0", entries, []]


def test_send_appends_to_partition_stream_with_retention_trim() -> None:
    r = _FakeRedis()
    bus = RedisStreamsBus(client_factory=lambda: r)
    before = utc_ms()

    res = bus.send(TOPIC, "video-abc", '{"x": 1}')

    assert res.partition == partition_for("video-abc", 6)
    stream = stream_name(TOPIC.name, res.partition)
    assert r.streams[stream] == [(res.entry_id, {"key": "video-abc", "value": '{"x": 1}'})]
    minid = int(r.xadd_kwargs[0]["minid"].split("-")[0])
    assert before - TOPIC.retention_ms <= minid <= utc_ms() - TOPIC.retention_ms
    assert r.xadd_kwargs[0]["approximate"] is True


def test_poll_creates_group_once_and_maps_messages() -> None:
    r = _FakeRedis()
    bus = RedisStreamsBus(client_factory=lambda: r)
    res = bus.send(TOPIC, "video-abc", "payload")

    msgs = bus.poll(TOPIC, group="g", consumer="c-1", partitions=[res.partition], block_ms=10)
    assert msgs == [
        BusMessage(
            topic=TOPIC.name,
            partition=res.partition,
            entry_id=res.entry_id,
            key="video-abc",
            value="payload",
        )
    ]
    # группа уже создана, BUSYGROUP не мешает
    fresh = RedisStreamsBus(client_factory=lambda: r)
    assert fresh.poll(TOPIC, group="g", consumer="c-2", partitions=[res.partition], block_ms=10) == []


def test_poll_without_partitions_returns_nothing() -> None:
    r = _FakeRedis()
    bus = RedisStreamsBus(client_factory=lambda: r)
    assert bus.poll(TOPIC, group="g", consumer="c", partitions=[], block_ms=10) == []
    assert r.groups == set()


def test_ack_uses_partition_stream() -> None:
    r = _FakeRedis()
    bus = RedisStreamsBus(client_factory=lambda: r)
    msg = BusMessage(topic=TOPIC.name, partition=3, entry_id="5-0", key="k", value="v")

    bus.ack(msg, group="g")

    assert r.acked == [("video.processing.events:p3", "g", "5-0")]


def test_claim_stale_returns_reclaimed_entries() -> None:
    r = _FakeRedis()
    bus = RedisStreamsBus(client_factory=lambda: r)
    res = bus.send(TOPIC, "video-abc", "payload")

    claimed = bus.claim_stale(
        TOPIC, group="g", consumer="c", partitions=[res.partition], min_idle_ms=1000
    )
    assert [m.entry_id for m in claimed] == [res.entry_id]
    assert claimed[0].partition == res.partition


def test_partition_for_is_stable_and_in_range() -> None:
    keys = [f"video-{i}" for i in range(50)]
    for k in keys:
        p = partition_for(k, 6)
        assert 0 <= p < 6
        assert partition_for(k, 6) == p
    assert partition_for(None, 6) == 0
    assert partition_for("video-1", 1) == 0


def test_assigned_partitions_cover_topic_exactly_once() -> None:
    owned: list[int] = []
    for shard in range(2):
        for slot in range(3):
            owned.extend(
                assigned_partitions(partitions=6, slot=slot, slots=3, shard_index=shard, shard_count=2)
            )
    assert sorted(owned) == list(range(6))


def test_more_readers_than_partitions_leaves_some_idle() -> None:
    owned = [assigned_partitions(partitions=2, slot=s, slots=3) for s in range(3)]
    assert owned == [[0], [1], []]
