"""Redis-based distributed locks using SET NX PX semantics."""

from __future__ import annotations

import datetime as dt
import math
from typing import Any, Optional, Tuple, Union

from redis import Redis
from redis.asyncio import Redis as AsyncRedis

from lockmanager.core.clock import Clock, IdSource, new_lock_id, utc_now
from lockmanager.core.errors import LockAlreadyHeldError, LockBackendError
from lockmanager.core.locks import AsyncLockManager, LockManager
from lockmanager.core.models import TTL, Lock, normalize_ttl, validate_key
from lockmanager.utils.logging import get_logger


KEYSPACE = "lock:"

# 0: key absent, -1: held by another id, otherwise the DEL count
RELEASE_SCRIPT = """
local current = redis.call('get', KEYS[1])
if not current then
    return 0
end
if current == ARGV[1] then
    return redis.call('del', KEYS[1])
end
return -1
"""

_HELD_BY_OTHER = -1

logger = get_logger("RedisLockManager")


def lock_key(key: str) -> str:
    return KEYSPACE + key


def _ttl_millis(expires_in: dt.timedelta) -> int:
    # PX must be positive; a zero TTL lives for one millisecond
    return max(1, math.ceil(expires_in / dt.timedelta(milliseconds=1)))


def _decode(value: Union[bytes, str, None]) -> Optional[str]:
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return value


class _RedisBase:
    def __init__(
        self,
        redis: Any,
        *,
        atomic_release: bool = True,
        clock: Clock = utc_now,
        id_source: IdSource = new_lock_id,
    ) -> None:
        self._redis = redis
        self._atomic_release = atomic_release
        self._clock = clock
        self._id_source = id_source

    @property
    def redis(self) -> Any:
        return self._redis

    @property
    def atomic_release(self) -> bool:
        return self._atomic_release

    def _create_lock(self, key: str, ttl: TTL) -> Tuple[Lock, int]:
        validate_key(key)
        expires_in = normalize_ttl(ttl)
        logger.debug("trying to acquire lock for %s, expiring in %s", key, expires_in)
        lock = Lock(id=self._id_source(), key=key, expires_at=self._clock() + expires_in)
        return lock, _ttl_millis(expires_in)

    def _on_acquired(self, lock: Lock, inserted: Any) -> Lock:
        if not inserted:
            logger.warning("error lock(): lock already acquired on '%s'!", lock.key)
            raise LockAlreadyHeldError(lock.key)
        logger.debug("locked=%s", lock)
        return lock

    def _on_acquire_error(self, key: str, exc: Exception) -> LockBackendError:
        logger.error("error lock(): message=%s", exc)
        return LockBackendError(key, exc)

    def _on_script_result(self, lock: Lock, result: Any) -> bool:
        result = int(result or 0)
        if result == _HELD_BY_OTHER:
            logger.warning("unlock(): another participant has acquired the lock on '%s'", lock.key)
            return False
        unlocked = result > 0
        logger.debug("unlocked=%s", unlocked)
        return unlocked

    def _matches(self, lock: Lock, value: Any) -> bool:
        current = _decode(value)
        if current is None:
            return False
        if current != lock.id:
            logger.warning("unlock(): another participant has acquired the lock on '%s'", lock.key)
            return False
        return True


class RedisLockManager(_RedisBase, LockManager):
    """Lock manager storing ``lock:<key> -> <lock id>`` in Redis.

    Release runs a compare-and-delete Lua script by default. With
    ``atomic_release=False`` it falls back to GET followed by DEL for servers
    without scripting; a lock that expires and is reclaimed between those two
    commands is then deleted by the stale holder.
    """

    def __init__(self, redis: Redis, **kwargs: Any) -> None:
        super().__init__(redis, **kwargs)

    def acquire(self, key: str, ttl: TTL) -> Lock:
        lock, ttl_ms = self._create_lock(key, ttl)
        try:
            inserted = self._redis.set(lock_key(key), lock.id, px=ttl_ms, nx=True)
        except Exception as exc:
            raise self._on_acquire_error(key, exc) from exc
        return self._on_acquired(lock, inserted)

    def release(self, lock: Lock) -> bool:
        logger.debug("trying to unlock %s", lock)
        try:
            if self._atomic_release:
                result = self._redis.eval(RELEASE_SCRIPT, 1, lock_key(lock.key), lock.id)
                return self._on_script_result(lock, result)
            if not self._matches(lock, self._redis.get(lock_key(lock.key))):
                return False
            unlocked = int(self._redis.delete(lock_key(lock.key)) or 0) > 0
            logger.debug("unlocked=%s", unlocked)
            return unlocked
        except Exception as exc:
            # the key expires on its own
            logger.error("error unlock(): message=%s", exc)
            return False


class AsyncRedisLockManager(_RedisBase, AsyncLockManager):
    """Coroutine flavour of :class:`RedisLockManager` on ``redis.asyncio``."""

    def __init__(self, redis: AsyncRedis, **kwargs: Any) -> None:
        super().__init__(redis, **kwargs)

    async def acquire(self, key: str, ttl: TTL) -> Lock:
        lock, ttl_ms = self._create_lock(key, ttl)
        try:
            inserted = await self._redis.set(lock_key(key), lock.id, px=ttl_ms, nx=True)
        except Exception as exc:
            raise self._on_acquire_error(key, exc) from exc
        return self._on_acquired(lock, inserted)

    async def release(self, lock: Lock) -> bool:
        logger.debug("trying to unlock %s", lock)
        try:
            if self._atomic_release:
                result = await self._redis.eval(RELEASE_SCRIPT, 1, lock_key(lock.key), lock.id)
                return self._on_script_result(lock, result)
            if not self._matches(lock, await self._redis.get(lock_key(lock.key))):
                return False
            unlocked = int(await self._redis.delete(lock_key(lock.key)) or 0) > 0
            logger.debug("unlocked=%s", unlocked)
            return unlocked
        except Exception as exc:
            logger.error("error unlock(): message=%s", exc)
            return False

    async def close(self) -> None:
        await self._redis.aclose()
