"""Factories wiring a lock manager from settings and host-provided clients.

A manager supplied by the host (``override``) always wins. Otherwise a client
of the selected kind passed in by the host is used, and only when none is
given is a client built from the configured URL.
"""

from __future__ import annotations

from typing import Any, Optional

from pymongo import AsyncMongoClient, MongoClient
from redis import Redis
from redis.asyncio import Redis as AsyncRedis

from lockmanager.core.locks import AsyncLockManager, LockManager
from lockmanager.core.locks_memory import AsyncInMemoryLockManager, InMemoryLockManager
from lockmanager.core.locks_mongo import AsyncMongoLockManager, MongoLockManager
from lockmanager.core.locks_redis import AsyncRedisLockManager, RedisLockManager
from lockmanager.core.settings import LockSettings
from lockmanager.utils.logging import get_logger


logger = get_logger("factory")


def create_lock_manager(
    settings: Optional[LockSettings] = None,
    *,
    redis_client: Any = None,
    mongo_collection: Any = None,
    override: Optional[LockManager] = None,
) -> LockManager:
    """Build the blocking lock manager selected by ``settings``."""
    if override is not None:
        return override
    settings = settings or LockSettings()
    logger.info("Creating %s lock manager", settings.backend)

    if settings.backend == "redis":
        assert settings.redis is not None
        if redis_client is None:
            redis_client = Redis.from_url(settings.redis.url)
        return RedisLockManager(redis_client, atomic_release=settings.redis.atomic_release)

    if settings.backend == "mongo":
        assert settings.mongo is not None
        if mongo_collection is None:
            client: Any = MongoClient(settings.mongo.url, tz_aware=True)
            mongo_collection = client[settings.mongo.database][settings.mongo.collection]
        manager = MongoLockManager(mongo_collection)
        if settings.mongo.ensure_indexes:
            manager.ensure_indexes()
        return manager

    return InMemoryLockManager()


async def create_async_lock_manager(
    settings: Optional[LockSettings] = None,
    *,
    redis_client: Any = None,
    mongo_collection: Any = None,
    override: Optional[AsyncLockManager] = None,
) -> AsyncLockManager:
    """Build the coroutine lock manager selected by ``settings``."""
    if override is not None:
        return override
    settings = settings or LockSettings()
    logger.info("Creating async %s lock manager", settings.backend)

    if settings.backend == "redis":
        assert settings.redis is not None
        if redis_client is None:
            redis_client = AsyncRedis.from_url(settings.redis.url)
        return AsyncRedisLockManager(redis_client, atomic_release=settings.redis.atomic_release)

    if settings.backend == "mongo":
        assert settings.mongo is not None
        if mongo_collection is None:
            client: Any = AsyncMongoClient(settings.mongo.url, tz_aware=True)
            mongo_collection = client[settings.mongo.database][settings.mongo.collection]
        manager = AsyncMongoLockManager(mongo_collection)
        if settings.mongo.ensure_indexes:
            await manager.ensure_indexes()
        return manager

    return AsyncInMemoryLockManager()
