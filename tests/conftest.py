"""Shared test fixtures for lockmanager tests."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

import pytest
import pytest_asyncio

from fakes import FakeAsyncCollection, FakeAsyncRedis, FakeCollection, FakeRedis, ManualClock
from lockmanager.core.locks import AsyncLockManager, LockManager, ThreadedAsyncLockManager
from lockmanager.core.locks_memory import AsyncInMemoryLockManager, InMemoryLockManager, LockTable
from lockmanager.core.locks_mongo import AsyncMongoLockManager, MongoLockManager
from lockmanager.core.locks_redis import AsyncRedisLockManager, RedisLockManager


@dataclass
class Backend:
    """One backend store plus a way to mint independent participants on it."""

    name: str
    clock: ManualClock
    participant: Callable[[], LockManager]

    def expire(self, seconds: float) -> None:
        """Advance time without running any store-side reaper."""
        self.clock.advance(seconds)


@dataclass
class AsyncBackend:
    name: str
    clock: ManualClock
    participant: Callable[[], AsyncLockManager]

    def expire(self, seconds: float) -> None:
        self.clock.advance(seconds)


def _memory(clock: ManualClock) -> Backend:
    table = LockTable(clock)
    return Backend("memory", clock, lambda: InMemoryLockManager(clock=clock, table=table))


def _redis(clock: ManualClock, *, atomic_release: bool) -> Backend:
    client = FakeRedis(clock)
    name = "redis" if atomic_release else "redis-two-step"
    return Backend(name, clock, lambda: RedisLockManager(client, atomic_release=atomic_release, clock=clock))


def _mongo(clock: ManualClock) -> Backend:
    collection = FakeCollection(clock)
    MongoLockManager(collection, clock=clock).ensure_indexes()
    return Backend("mongo", clock, lambda: MongoLockManager(collection, clock=clock))


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture(params=["memory", "redis", "redis-two-step", "mongo"])
def backend(request: pytest.FixtureRequest, clock: ManualClock) -> Backend:
    if request.param == "memory":
        return _memory(clock)
    if request.param == "mongo":
        return _mongo(clock)
    return _redis(clock, atomic_release=request.param == "redis")


@pytest_asyncio.fixture(params=["memory", "redis", "redis-two-step", "mongo", "threaded"])
async def async_backend(request: pytest.FixtureRequest, clock: ManualClock) -> AsyncBackend:
    if request.param == "memory":
        table = LockTable(clock)
        return AsyncBackend("memory", clock, lambda: AsyncInMemoryLockManager(clock=clock, table=table))
    if request.param == "mongo":
        collection = FakeAsyncCollection(clock)
        await AsyncMongoLockManager(collection, clock=clock).ensure_indexes()
        return AsyncBackend(
            "mongo",
            clock,
            lambda: AsyncMongoLockManager(collection, clock=clock),
        )
    if request.param == "threaded":
        table = LockTable(clock)
        return AsyncBackend(
            "threaded",
            clock,
            lambda: ThreadedAsyncLockManager(InMemoryLockManager(clock=clock, table=table)),
        )
    client = FakeAsyncRedis(clock)
    atomic = request.param == "redis"
    return AsyncBackend(
        request.param,
        clock,
        lambda: AsyncRedisLockManager(client, atomic_release=atomic, clock=clock),
    )


@pytest.fixture(autouse=True)
def _reset_library_logger():
    yield
    logger = logging.getLogger("lockmanager")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)
