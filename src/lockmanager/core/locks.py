"""Lock manager interfaces and the scoped-execution combinator."""

from __future__ import annotations

import abc
import asyncio
from contextlib import asynccontextmanager, contextmanager
from typing import AsyncIterator, Awaitable, Callable, Iterator, Set, TypeVar

from lockmanager.core.models import TTL, Lock
from lockmanager.utils.logging import get_logger


T = TypeVar("T")

logger = get_logger("LockManager")

# Strong references to shielded releases that outlive a cancelled caller.
_pending_releases: Set["asyncio.Task[bool]"] = set()


class LockManager(abc.ABC):
    """Blocking lock manager. Safe to call from any thread."""

    @abc.abstractmethod
    def acquire(self, key: str, ttl: TTL) -> Lock:  # pragma: no cover - interface
        """Acquire ``key`` for ``ttl``.

        Raises LockAlreadyHeldError when a live lock exists, LockBackendError
        on any other backend fault.
        """
        raise NotImplementedError

    @abc.abstractmethod
    def release(self, lock: Lock) -> bool:  # pragma: no cover - interface
        """Release ``lock`` if it is still the stored one.

        Must never raise: faults are logged and reported as False.
        """
        raise NotImplementedError

    @contextmanager
    def locked(self, key: str, ttl: TTL, *, on_error_release: bool = True) -> Iterator[Lock]:
        """Hold ``key`` for the body of a ``with`` block."""
        lock = self.acquire(key, ttl)
        try:
            yield lock
        except BaseException:
            if on_error_release:
                self._safe_release(lock)
            raise
        self._safe_release(lock)

    def wrap(self, key: str, ttl: TTL, work: Callable[[], T], *, on_error_release: bool = True) -> T:
        """Run ``work`` while holding ``key`` and return its result.

        Acquire failures propagate without running ``work``. When ``work``
        raises, the lock is released first unless ``on_error_release`` is False,
        in which case it is left to expire.
        """
        with self.locked(key, ttl, on_error_release=on_error_release):
            return work()

    def _safe_release(self, lock: Lock) -> bool:
        try:
            return bool(self.release(lock))
        except Exception as exc:
            logger.error("error unlock(): key=%s message=%s", lock.key, exc)
            return False


class AsyncLockManager(abc.ABC):
    """Coroutine flavour of :class:`LockManager` with the same contract."""

    @abc.abstractmethod
    async def acquire(self, key: str, ttl: TTL) -> Lock:  # pragma: no cover - interface
        raise NotImplementedError

    @abc.abstractmethod
    async def release(self, lock: Lock) -> bool:  # pragma: no cover - interface
        raise NotImplementedError

    @asynccontextmanager
    async def locked(self, key: str, ttl: TTL, *, on_error_release: bool = True) -> AsyncIterator[Lock]:
        """Hold ``key`` for the body of an ``async with`` block.

        Cancellation inside the block always releases, whatever
        ``on_error_release`` says.
        """
        lock = await self.acquire(key, ttl)
        try:
            yield lock
        except asyncio.CancelledError:
            logger.debug("cancelled while holding %s, releasing", lock.key)
            await self._shielded_release(lock)
            raise
        except BaseException:
            if on_error_release:
                await self._shielded_release(lock)
            raise
        await self._shielded_release(lock)

    async def wrap(
        self,
        key: str,
        ttl: TTL,
        work: Callable[[], Awaitable[T]],
        *,
        on_error_release: bool = True,
    ) -> T:
        """Await ``work()`` while holding ``key``; see :meth:`LockManager.wrap`."""
        async with self.locked(key, ttl, on_error_release=on_error_release):
            return await work()

    async def _safe_release(self, lock: Lock) -> bool:
        try:
            return bool(await self.release(lock))
        except Exception as exc:
            logger.error("error unlock(): key=%s message=%s", lock.key, exc)
            return False

    async def _shielded_release(self, lock: Lock) -> bool:
        # a second cancellation must not abort the release itself
        task = asyncio.ensure_future(self._safe_release(lock))
        _pending_releases.add(task)
        task.add_done_callback(_pending_releases.discard)
        return await asyncio.shield(task)


class ThreadedAsyncLockManager(AsyncLockManager):
    """Expose a blocking :class:`LockManager` through the coroutine contract.

    Calls run in a worker thread. Cancelling an ``acquire`` does not stop the
    thread; a lock taken after the caller gave up is left to expire.
    """

    def __init__(self, manager: LockManager) -> None:
        self._manager = manager

    @property
    def manager(self) -> LockManager:
        return self._manager

    async def acquire(self, key: str, ttl: TTL) -> Lock:
        return await asyncio.to_thread(self._manager.acquire, key, ttl)

    async def release(self, lock: Lock) -> bool:
        return await asyncio.to_thread(self._manager.release, lock)
