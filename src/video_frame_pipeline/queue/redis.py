"""
Redis-клиент для очередей, lock'ов и кэша статусов.

Назначение:
- Единая точка подключения к Redis
- Используется шиной событий, lock'ами и воркерами
"""

from __future__ import annotations

import redis

from video_frame_pipeline.common.config import get_settings

_client: redis.Redis | None = None


def redis_client() -> redis.Redis:
    """
    Singleton Redis client.
    """
    global _client
    if _client is None:
        s = get_settings()
        _client = redis.Redis.from_url(
            s.redis_url,
            decode_responses=True,
            socket_timeout=s.redis_socket_timeout_sec,
            socket_connect_timeout=s.redis_socket_timeout_sec,
            retry_on_timeout=True,
            health_check_interval=30,
        )
    return _client


def redis_healthy() -> bool:
    try:
        return bool(redis_client().ping())
    except Exception:
        return False
