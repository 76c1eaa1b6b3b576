"""
Распределённый lock на обработку видео.

Зачем нужно:
- брокер может доставить одно и то же событие повторно
- при ребалансировке сообщение может прийти второму воркеру
- обрабатывать одно видео одновременно может только один воркер

Реализация:
- ключ "lock:video:<id>", значение: токен владельца, TTL ограничивает ущерб от упавшего воркера
- захват неблокирующий: SET NX EX; не получилось: видео уже обрабатывается
- release удаляет ключ, только если он всё ещё наш

Политика fail-open (LOCK_FAIL_OPEN): если Redis недоступен, захват считается успешным.
Это сознательное окно гонки ради доступности пайплайна.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from typing import Protocol

import redis

from video_frame_pipeline.common.ids import new_lock_token
from video_frame_pipeline.common.logging import get_project_logger
from video_frame_pipeline.common.metrics import LOCK_ACQUIRE_TOTAL

from .redis import redis_client

log = get_project_logger()

LOCK_KEY_PREFIX = "lock:video:"
DEFAULT_TTL_SEC = 10 * 60

# атомарный compare-and-delete по токену владельца
_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
end
return 0
"""


def lock_key(video_id: object) -> str:
    return f"{LOCK_KEY_PREFIX}{video_id}"


class DistributedLock(Protocol):
    def acquire(self, video_id: object, ttl_sec: int = DEFAULT_TTL_SEC) -> bool: ...

    def release(self, video_id: object) -> bool: ...

    def is_locked(self, video_id: object) -> bool: ...


class RedisVideoLock:
    def __init__(
        self,
        *,
        fail_open: bool = True,
        client_factory: Callable[[], redis.Redis] = redis_client,
    ) -> None:
        self.fail_open = fail_open
        self._client_factory = client_factory
        self._tokens: dict[str, str] = {}
        self._guard = threading.Lock()

    def acquire(self, video_id: object, ttl_sec: int = DEFAULT_TTL_SEC) -> bool:
        key = lock_key(video_id)
        token = new_lock_token()
        try:
            ok = bool(self._client_factory().set(key, token, nx=True, ex=max(1, int(ttl_sec))))
        except Exception as e:
            if self.fail_open:
                LOCK_ACQUIRE_TOTAL.labels(result="fail_open").inc()
                log.warning(
                    "lock_backend_unavailable_fail_open",
                    extra={"payload": {"video_id": str(video_id), "err": str(e)[:200]}},
                )
                return True
            LOCK_ACQUIRE_TOTAL.labels(result="failed").inc()
            log.error(
                "lock_backend_unavailable",
                extra={"payload": {"video_id": str(video_id), "err": str(e)[:200]}},
            )
            return False

        if ok:
            with self._guard:
                self._tokens[key] = token
        LOCK_ACQUIRE_TOTAL.labels(result="acquired" if ok else "held").inc()
        log.debug("lock_acquire", extra={"payload": {"video_id": str(video_id), "acquired": ok}})
        return ok

    def release(self, video_id: object) -> bool:
        key = lock_key(video_id)
        with self._guard:
            token = self._tokens.pop(key, None)
        if token is None:
            # fail-open захват: ключа от нас в Redis нет
            return False
        try:
            deleted = self._client_factory().eval(_RELEASE_SCRIPT, 1, key, token)
        except Exception as e:
            log.warning(
                "lock_release_failed",
                extra={"payload": {"video_id": str(video_id), "err": str(e)[:200]}},
            )
            return False
        if not deleted:
            log.warning("lock_lost_before_release", extra={"payload": {"video_id": str(video_id)}})
            return False
        return True

    def is_locked(self, video_id: object) -> bool:
        try:
            return bool(self._client_factory().exists(lock_key(video_id)))
        except Exception as e:
            log.warning(
                "lock_check_failed",
                extra={"payload": {"video_id": str(video_id), "err": str(e)[:200]}},
            )
            return False


class InMemoryVideoLock:
    """
    Lock в памяти процесса (тесты, QUEUE_MODE=inline). TTL по monotonic-часам.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._expires: dict[str, float] = {}
        self._guard = threading.Lock()

    def acquire(self, video_id: object, ttl_sec: int = DEFAULT_TTL_SEC) -> bool:
        key = lock_key(video_id)
        now = self._clock()
        with self._guard:
            if self._expires.get(key, 0.0) > now:
                LOCK_ACQUIRE_TOTAL.labels(result="held").inc()
                return False
            self._expires[key] = now + max(1, int(ttl_sec))
        LOCK_ACQUIRE_TOTAL.labels(result="acquired").inc()
        return True

    def release(self, video_id: object) -> bool:
        with self._guard:
            return self._expires.pop(lock_key(video_id), None) is not None

    def is_locked(self, video_id: object) -> bool:
        with self._guard:
            return self._expires.get(lock_key(video_id), 0.0) > self._clock()
