"""Injectable time and id sources."""

from __future__ import annotations

import datetime as dt
import uuid
from typing import Callable


Clock = Callable[[], dt.datetime]
IdSource = Callable[[], str]


def utc_now() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def new_lock_id() -> str:
    """Random UUIDv4 in canonical form."""
    return str(uuid.uuid4())
