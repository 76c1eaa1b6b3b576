"""
Кэш статусов видео в Redis.

Best-effort: любые ошибки кэша логируются и не влияют на пайплайн.
Ключ "video:status:<id>", значение "<STATUS>|<user_id>", TTL из STATUS_CACHE_TTL_SEC.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

import redis

from video_frame_pipeline.common.logging import get_project_logger
from video_frame_pipeline.domain.enums import VideoStatus
from video_frame_pipeline.queue.redis import redis_client

log = get_project_logger()

STATUS_KEY_PREFIX = "video:status:"
HEALTH_KEY = "health:check"


def status_key(video_id: object) -> str:
    return f"{STATUS_KEY_PREFIX}{video_id}"


@dataclass(frozen=True)
class CachedStatus:
    status: VideoStatus
    owner: str


def _encode(status: VideoStatus, owner: str) -> str:
    return f"{status.value}|{owner}"


def _decode(raw: str) -> CachedStatus | None:
    status, sep, owner = raw.partition("|")
    if not sep or not owner:
        return None
    try:
        return CachedStatus(status=VideoStatus(status), owner=owner)
    except ValueError:
        return None


class StatusCache(Protocol):
    def put(self, video_id: object, status: VideoStatus, *, owner: str) -> None: ...

    def get(self, video_id: object) -> CachedStatus | None: ...

    def healthy(self) -> bool: ...


class RedisStatusCache:
    def __init__(
        self,
        *,
        ttl_sec: int = 30 * 60,
        client_factory: Callable[[], redis.Redis] = redis_client,
    ) -> None:
        self.ttl_sec = ttl_sec
        self._client_factory = client_factory

    def put(self, video_id: object, status: VideoStatus, *, owner: str) -> None:
        try:
            self._client_factory().set(status_key(video_id), _encode(status, owner), ex=self.ttl_sec)
        except Exception as e:
            log.warning(
                "status_cache_write_failed",
                extra={"payload": {"video_id": str(video_id), "err": str(e)[:200]}},
            )

    def get(self, video_id: object) -> CachedStatus | None:
        try:
            raw = self._client_factory().get(status_key(video_id))
        except Exception as e:
            log.warning(
                "status_cache_read_failed",
                extra={"payload": {"video_id": str(video_id), "err": str(e)[:200]}},
            )
            return None
        if not raw:
            return None
        return _decode(raw)

    def healthy(self) -> bool:
        try:
            r = self._client_factory()
            r.set(HEALTH_KEY, "ok", ex=10)
            return r.get(HEALTH_KEY) == "ok"
        except Exception as e:
            log.warning("status_cache_health_failed", extra={"payload": {"err": str(e)[:200]}})
            return False


class NullStatusCache:
    """
    Кэш выключен (STATUS_CACHE_ENABLED=false или inline-режим).
    """

    def put(self, video_id: object, status: VideoStatus, *, owner: str) -> None:
        return None

    def get(self, video_id: object) -> CachedStatus | None:
        return None

    def healthy(self) -> bool:
        return True
