"""MongoDB-backed locks relying on a unique index and a TTL index."""

from __future__ import annotations

import datetime as dt
from typing import Any, Dict, List, Tuple

from bson import ObjectId
from pymongo import ASCENDING
from pymongo.collection import Collection
from pymongo.errors import DuplicateKeyError

from lockmanager.core.clock import Clock, utc_now
from lockmanager.core.errors import LockAlreadyHeldError, LockBackendError
from lockmanager.core.locks import AsyncLockManager, LockManager
from lockmanager.core.models import TTL, Lock, normalize_ttl, validate_key
from lockmanager.utils.logging import get_logger


COLLECTION = "locks"
KEY_FIELD = "key"
EXPIRES_AT_FIELD = "expiresAt"

# (keys, options) pairs; mongod's reaper runs roughly once a minute
INDEXES: List[Tuple[List[Tuple[str, int]], Dict[str, Any]]] = [
    ([(KEY_FIELD, ASCENDING)], {"name": KEY_FIELD, "unique": True}),
    ([(EXPIRES_AT_FIELD, ASCENDING)], {"name": EXPIRES_AT_FIELD, "expireAfterSeconds": 0}),
]

logger = get_logger("MongoLockManager")


class _MongoBase:
    def __init__(self, collection: Any, *, clock: Clock = utc_now) -> None:
        self._collection = collection
        self._clock = clock

    @property
    def collection(self) -> Any:
        return self._collection

    def _create_document(self, key: str, ttl: TTL) -> Dict[str, Any]:
        validate_key(key)
        expires_in = normalize_ttl(ttl)
        logger.debug("trying to acquire lock for %s, expiring in %s", key, expires_in)
        return {KEY_FIELD: key, EXPIRES_AT_FIELD: self._clock() + expires_in}

    def _to_lock(self, document: Dict[str, Any], inserted_id: Any) -> Lock:
        expires_at: dt.datetime = document[EXPIRES_AT_FIELD]
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=dt.timezone.utc)
        lock = Lock(id=str(inserted_id), key=document[KEY_FIELD], expires_at=expires_at)
        logger.debug("locked=%s", lock)
        return lock

    def _on_acquire_error(self, key: str, exc: Exception) -> Exception:
        if isinstance(exc, DuplicateKeyError):
            logger.warning("error lock(): lock already acquired on '%s'!", key)
            return LockAlreadyHeldError(key)
        logger.error("error lock(): message=%s", exc)
        return LockBackendError(key, exc)

    def _expired_filter(self, key: str) -> Dict[str, Any]:
        return {KEY_FIELD: key, EXPIRES_AT_FIELD: {"$lte": self._clock()}}

    @staticmethod
    def _release_filter(lock: Lock) -> Dict[str, Any]:
        return {"_id": ObjectId(lock.id), KEY_FIELD: lock.key}


class MongoLockManager(_MongoBase, LockManager):
    """Lock manager storing one ``{key, expiresAt}`` document per held key.

    The unique index on ``key`` provides mutual exclusion and the TTL index on
    ``expiresAt`` reaps abandoned locks. Call :meth:`ensure_indexes` once at
    start-up.
    """

    def __init__(self, collection: Collection, *, clock: Clock = utc_now) -> None:
        super().__init__(collection, clock=clock)

    def ensure_indexes(self) -> None:
        for keys, options in INDEXES:
            self._collection.create_index(keys, **options)

    def acquire(self, key: str, ttl: TTL) -> Lock:
        document = self._create_document(key, ttl)
        try:
            result = self._insert(document)
        except Exception as exc:
            raise self._on_acquire_error(key, exc) from exc
        return self._to_lock(document, result.inserted_id)

    def _insert(self, document: Dict[str, Any]) -> Any:
        try:
            return self._collection.insert_one(document)
        except DuplicateKeyError:
            # an expired holder the TTL monitor has not reaped yet
            removed = self._collection.delete_one(self._expired_filter(document[KEY_FIELD]))
            if removed.deleted_count == 0:
                raise
        logger.debug("reclaimed expired lock on '%s'", document[KEY_FIELD])
        return self._collection.insert_one(document)

    def release(self, lock: Lock) -> bool:
        logger.debug("trying to unlock %s", lock)
        if not ObjectId.is_valid(lock.id):
            return False
        try:
            removed = self._collection.delete_one(self._release_filter(lock))
            unlocked = removed.deleted_count > 0
        except Exception as exc:
            # the TTL index reaps the document anyway
            logger.error("error unlock(): message=%s", exc)
            return False
        logger.debug("unlocked=%s", unlocked)
        return unlocked


class AsyncMongoLockManager(_MongoBase, AsyncLockManager):
    """Coroutine flavour of :class:`MongoLockManager`.

    Works with any collection exposing awaitable ``insert_one``,
    ``delete_one`` and ``create_index`` (``pymongo.AsyncMongoClient``).
    """

    async def ensure_indexes(self) -> None:
        for keys, options in INDEXES:
            await self._collection.create_index(keys, **options)

    async def acquire(self, key: str, ttl: TTL) -> Lock:
        document = self._create_document(key, ttl)
        try:
            result = await self._insert(document)
        except Exception as exc:
            raise self._on_acquire_error(key, exc) from exc
        return self._to_lock(document, result.inserted_id)

    async def _insert(self, document: Dict[str, Any]) -> Any:
        try:
            return await self._collection.insert_one(document)
        except DuplicateKeyError:
            removed = await self._collection.delete_one(self._expired_filter(document[KEY_FIELD]))
            if removed.deleted_count == 0:
                raise
        logger.debug("reclaimed expired lock on '%s'", document[KEY_FIELD])
        return await self._collection.insert_one(document)

    async def release(self, lock: Lock) -> bool:
        logger.debug("trying to unlock %s", lock)
        if not ObjectId.is_valid(lock.id):
            return False
        try:
            removed = await self._collection.delete_one(self._release_filter(lock))
            unlocked = removed.deleted_count > 0
        except Exception as exc:
            logger.error("error unlock(): message=%s", exc)
            return False
        logger.debug("unlocked=%s", unlocked)
        return unlocked
