"""Data models shared across the lock managers."""

from __future__ import annotations

import datetime as dt
from typing import Union

from pydantic import BaseModel, ConfigDict


TTL = Union[dt.timedelta, int, float]


class Lock(BaseModel):
    """A held lock as returned by ``acquire``.

    The ``id`` is the only proof of ownership; present the same value to
    ``release``. Two locks are equal when all three fields are equal.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    key: str
    expires_at: dt.datetime


def normalize_ttl(ttl: TTL) -> dt.timedelta:
    """Return ``ttl`` as a timedelta, accepting seconds as int/float."""
    if isinstance(ttl, dt.timedelta):
        value = ttl
    elif isinstance(ttl, (int, float)) and not isinstance(ttl, bool):
        value = dt.timedelta(seconds=ttl)
    else:
        raise TypeError(f"ttl must be a timedelta or a number of seconds, got {type(ttl).__name__}")
    if value < dt.timedelta(0):
        raise ValueError(f"ttl must not be negative, got {value}")
    return value


def validate_key(key: str) -> str:
    if not isinstance(key, str) or not key:
        raise ValueError("lock key must be a non-empty string")
    return key
