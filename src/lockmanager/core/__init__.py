"""Lock managers, lock records and their backends."""

from .errors import LockAlreadyHeldError, LockBackendError, LockFailureError
from .expiry import ExpiryIndex
from .factory import create_async_lock_manager, create_lock_manager
from .locks import AsyncLockManager, LockManager, ThreadedAsyncLockManager
from .locks_memory import AsyncInMemoryLockManager, InMemoryLockManager, LockTable
from .locks_mongo import AsyncMongoLockManager, MongoLockManager
from .locks_redis import AsyncRedisLockManager, RedisLockManager
from .models import Lock
from .settings import LockSettings, MongoSettings, RedisSettings

__all__ = [
    "AsyncInMemoryLockManager",
    "AsyncLockManager",
    "AsyncMongoLockManager",
    "AsyncRedisLockManager",
    "ExpiryIndex",
    "InMemoryLockManager",
    "Lock",
    "LockAlreadyHeldError",
    "LockBackendError",
    "LockFailureError",
    "LockManager",
    "LockSettings",
    "LockTable",
    "MongoLockManager",
    "MongoSettings",
    "RedisLockManager",
    "RedisSettings",
    "ThreadedAsyncLockManager",
    "create_async_lock_manager",
    "create_lock_manager",
]
