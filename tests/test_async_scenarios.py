"""Coroutine flavour of the lock scenarios, including cancellation."""

from __future__ import annotations

import asyncio
import datetime as dt

import pytest

from fakes import FakeAsyncRedis
from lockmanager.core.errors import LockAlreadyHeldError
from lockmanager.core.locks_redis import AsyncRedisLockManager
from lockmanager.core.models import Lock

TTL = dt.timedelta(seconds=30)


class Boom(Exception):
    pass


@pytest.mark.asyncio
async def test_second_acquire_fails_while_held(async_backend):
    first, second = async_backend.participant(), async_backend.participant()

    lock = await first.acquire("x", TTL)

    assert lock.key == "x"
    with pytest.raises(LockAlreadyHeldError):
        await second.acquire("x", TTL)


@pytest.mark.asyncio
async def test_release_then_acquire_again(async_backend):
    manager = async_backend.participant()
    lock = await manager.acquire("x", TTL)

    assert await manager.release(lock) is True
    assert await manager.release(lock) is False
    assert (await manager.acquire("x", TTL)).key == "x"


@pytest.mark.asyncio
async def test_release_with_bogus_id_keeps_the_lock(async_backend):
    manager = async_backend.participant()
    lock = await manager.acquire("x", TTL)

    assert await manager.release(Lock(id="bogus", key="x", expires_at=lock.expires_at)) is False
    with pytest.raises(LockAlreadyHeldError):
        await manager.acquire("x", TTL)


@pytest.mark.asyncio
async def test_wrap_under_contention_runs_work_once(async_backend):
    participants = [async_backend.participant() for _ in range(10)]
    calls = []

    async def update():
        calls.append(1)
        await asyncio.sleep(0.05)
        return 42

    results = await asyncio.gather(
        *(manager.wrap("x", TTL, update) for manager in participants),
        return_exceptions=True,
    )

    assert results.count(42) == 1
    assert sum(isinstance(r, LockAlreadyHeldError) for r in results) == 9
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_wrap_with_empty_result_still_releases(async_backend):
    manager = async_backend.participant()

    async def work():
        return None

    assert await manager.wrap("x", TTL, work) is None
    assert (await async_backend.participant().acquire("x", TTL)).key == "x"


@pytest.mark.asyncio
async def test_wrap_releases_on_error_by_default(async_backend):
    manager = async_backend.participant()

    async def work():
        raise Boom("failed")

    with pytest.raises(Boom):
        await manager.wrap("x", TTL, work)

    assert (await async_backend.participant().acquire("x", TTL)).key == "x"


@pytest.mark.asyncio
async def test_wrap_keeps_lock_on_error_when_asked(async_backend):
    manager = async_backend.participant()

    async def work():
        raise Boom("failed")

    with pytest.raises(Boom):
        await manager.wrap("x", TTL, work, on_error_release=False)

    other = async_backend.participant()
    with pytest.raises(LockAlreadyHeldError):
        await other.acquire("x", TTL)

    async_backend.expire(30)
    assert (await other.acquire("x", TTL)).key == "x"


@pytest.mark.parametrize("on_error_release", [True, False])
@pytest.mark.asyncio
async def test_cancelling_guarded_work_releases(async_backend, on_error_release):
    manager = async_backend.participant()
    started = asyncio.Event()

    async def work():
        started.set()
        await asyncio.Event().wait()

    task = asyncio.create_task(manager.wrap("x", TTL, work, on_error_release=on_error_release))
    await started.wait()
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert (await async_backend.participant().acquire("x", TTL)).key == "x"


@pytest.mark.asyncio
async def test_locked_context_manager_yields_the_lock(async_backend):
    manager = async_backend.participant()

    async with manager.locked("x", TTL) as lock:
        assert lock.key == "x"
        with pytest.raises(LockAlreadyHeldError):
            await async_backend.participant().acquire("x", TTL)

    assert (await manager.acquire("x", TTL)).key == "x"


@pytest.mark.asyncio
async def test_cancelling_acquire_in_flight_leaves_no_lock(clock):
    client = FakeAsyncRedis(clock)
    client.delay = 5
    manager = AsyncRedisLockManager(client, clock=clock)

    task = asyncio.create_task(manager.acquire("x", TTL))
    await asyncio.sleep(0.01)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert client.sync.get("lock:x") is None
    client.delay = 0
    assert (await manager.acquire("x", TTL)).key == "x"


@pytest.mark.asyncio
async def test_close_closes_the_client(clock):
    client = FakeAsyncRedis(clock)
    manager = AsyncRedisLockManager(client, clock=clock)

    await manager.close()

    assert client.closed is True
