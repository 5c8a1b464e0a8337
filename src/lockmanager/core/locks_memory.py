"""Process-local lock managers backed by a dict and an expiry index."""

from __future__ import annotations

import threading
from typing import Dict, Optional, Tuple

from lockmanager.core.clock import Clock, IdSource, new_lock_id, utc_now
from lockmanager.core.errors import LockAlreadyHeldError, LockBackendError
from lockmanager.core.expiry import ExpiryIndex
from lockmanager.core.locks import AsyncLockManager, LockManager
from lockmanager.core.models import TTL, Lock, normalize_ttl, validate_key
from lockmanager.utils.logging import get_logger


logger = get_logger("InMemoryLockManager")


class LockTable:
    """Thread-safe ``key -> Lock`` map with absolute-expiry bookkeeping.

    Every operation sweeps expired entries first, so an expired lock is never
    visible to an acquire or a release.
    """

    def __init__(self, clock: Clock = utc_now) -> None:
        self._clock = clock
        self._locks: Dict[str, Lock] = {}
        self._expiry = ExpiryIndex()
        self._mutex = threading.Lock()

    def __len__(self) -> int:
        with self._mutex:
            self._sweep()
            return len(self._locks)

    def get(self, key: str) -> Optional[Lock]:
        with self._mutex:
            self._sweep()
            return self._locks.get(key)

    def insert_if_absent(self, lock: Lock) -> bool:
        with self._mutex:
            self._sweep()
            if lock.key in self._locks:
                return False
            self._locks[lock.key] = lock
            self._expiry.push(lock.expires_at, lock.key, lock.id)
            return True

    def remove_if_matches(self, lock: Lock) -> Tuple[bool, Optional[Lock]]:
        """Remove ``lock`` when the stored id matches.

        Returns ``(removed, current)`` where ``current`` is whatever is stored
        for the key afterwards.
        """
        with self._mutex:
            self._sweep()
            stored = self._locks.get(lock.key)
            if stored is None or stored.id != lock.id:
                return False, stored
            del self._locks[lock.key]
            self._expiry.discard(stored.expires_at, stored.key, stored.id)
            return True, None

    def purge_expired(self) -> int:
        with self._mutex:
            return self._sweep()

    def _sweep(self) -> int:
        reclaimed = 0
        for _, key, lock_id in self._expiry.pop_expired(self._clock()):
            stored = self._locks.get(key)
            if stored is not None and stored.id == lock_id:
                del self._locks[key]
                reclaimed += 1
        if reclaimed:
            logger.debug("expired %d lock(s)", reclaimed)
        return reclaimed


class _InMemoryBase:
    def __init__(
        self,
        *,
        clock: Clock = utc_now,
        id_source: IdSource = new_lock_id,
        table: Optional[LockTable] = None,
    ) -> None:
        logger.warning("*** THIS LOCK MANAGER ONLY WORKS FOR A SINGLE INSTANCE! ***")
        logger.warning("Consider using another implementation!")
        self._clock = clock
        self._id_source = id_source
        self._table = table if table is not None else LockTable(clock)

    @property
    def table(self) -> LockTable:
        return self._table

    def purge_expired(self) -> int:
        """Drop expired entries now; returns how many were reclaimed."""
        return self._table.purge_expired()

    def _acquire(self, key: str, ttl: TTL) -> Lock:
        validate_key(key)
        expires_in = normalize_ttl(ttl)
        logger.debug("trying to acquire lock for %s, expiring in %s", key, expires_in)
        try:
            lock = Lock(id=self._id_source(), key=key, expires_at=self._clock() + expires_in)
            inserted = self._table.insert_if_absent(lock)
        except Exception as exc:
            logger.error("error lock(): message=%s", exc)
            raise LockBackendError(key, exc) from exc
        if not inserted:
            logger.warning("error lock(): lock already acquired on '%s'!", key)
            raise LockAlreadyHeldError(key)
        logger.debug("locked=%s", lock)
        return lock

    def _release(self, lock: Lock) -> bool:
        logger.debug("trying to unlock %s", lock)
        try:
            released, current = self._table.remove_if_matches(lock)
        except Exception as exc:
            # the entry expires on its own
            logger.error("error unlock(): message=%s", exc)
            return False
        if not released and current is not None:
            logger.warning("unlock(): another participant has acquired the lock on '%s'", lock.key)
        logger.debug("unlocked=%s", released)
        return released


class InMemoryLockManager(_InMemoryBase, LockManager):
    """Single-process lock manager.

    Not suitable when more than one process competes for the same keys.
    """

    def acquire(self, key: str, ttl: TTL) -> Lock:
        return self._acquire(key, ttl)

    def release(self, lock: Lock) -> bool:
        return self._release(lock)


class AsyncInMemoryLockManager(_InMemoryBase, AsyncLockManager):
    """Coroutine flavour of :class:`InMemoryLockManager`.

    Pass the same ``table`` to share state with a blocking manager.
    """

    async def acquire(self, key: str, ttl: TTL) -> Lock:
        return self._acquire(key, ttl)

    async def release(self, lock: Lock) -> bool:
        return self._release(lock)
