"""Distributed locks with a mandatory time-to-live."""

from .core import (
    AsyncInMemoryLockManager,
    AsyncLockManager,
    AsyncMongoLockManager,
    AsyncRedisLockManager,
    ExpiryIndex,
    InMemoryLockManager,
    Lock,
    LockAlreadyHeldError,
    LockBackendError,
    LockFailureError,
    LockManager,
    LockSettings,
    MongoLockManager,
    RedisLockManager,
    ThreadedAsyncLockManager,
    create_async_lock_manager,
    create_lock_manager,
)
from .utils.logging import configure_logging

__all__ = [
    "__version__",
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
    "MongoLockManager",
    "RedisLockManager",
    "ThreadedAsyncLockManager",
    "configure_logging",
    "create_async_lock_manager",
    "create_lock_manager",
]

__version__ = "0.1.0"
