from __future__ import annotations

import uuid

from video_frame_pipeline.domain.enums import VideoStatus
from video_frame_pipeline.storage.status_cache import (
    CachedStatus,
    NullStatusCache,
    RedisStatusCache,
    status_key,
)


class _FakeRedis:
    def __init__(self) -> None:
        self.data: dict[str, str] = {}
        self.ttl: dict[str, int] = {}

    def set(self, key, value, ex=None):
        self.data[key] = value
        self.ttl[key] = ex
        return True

    def get(self, key):
        return self.data.get(key)


class _DownRedis:
    def set(self, *args, **kwargs):
        raise ConnectionError("down")

    def get(self, *args, **kwargs):
        raise ConnectionError("down")


def test_put_and_get_with_ttl() -> None:
    r = _FakeRedis()
    cache = RedisStatusCache(ttl_sec=1800, client_factory=lambda: r)
    vid = uuid.uuid4()

    cache.put(vid, VideoStatus.PROCESSING, owner="user-1")

    assert r.data[status_key(vid)] == "PROCESSING|user-1"
    assert r.ttl[f"video:status:{vid}"] == 1800
    assert cache.get(vid) == CachedStatus(status=VideoStatus.PROCESSING, owner="user-1")


def test_unknown_value_and_miss_return_none() -> None:
    r = _FakeRedis()
    cache = RedisStatusCache(client_factory=lambda: r)
    vid = uuid.uuid4()
    assert cache.get(vid) is None
    r.data[status_key(vid)] = "GARBAGE|user-1"
    assert cache.get(vid) is None
    # запись без владельца считается промахом
    r.data[status_key(vid)] = "FINISHED"
    assert cache.get(vid) is None


def test_backend_errors_are_swallowed() -> None:
    cache = RedisStatusCache(client_factory=lambda: _DownRedis())
    vid = uuid.uuid4()
    cache.put(vid, VideoStatus.FINISHED, owner="user-1")
    assert cache.get(vid) is None
    assert cache.healthy() is False


def test_health_probe_roundtrip() -> None:
    cache = RedisStatusCache(client_factory=lambda: _FakeRedis())
    assert cache.healthy() is True


def test_null_cache() -> None:
    cache = NullStatusCache()
    cache.put("x", VideoStatus.ERROR, owner="user-1")
    assert cache.get("x") is None
    assert cache.healthy() is True
