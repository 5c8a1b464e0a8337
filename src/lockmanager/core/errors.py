"""Failures raised when a lock cannot be acquired."""

from __future__ import annotations

from typing import Optional


class LockFailureError(RuntimeError):
    """Base class for acquire failures. ``key`` names the contended resource."""

    def __init__(self, key: str, message: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.key = key
        self.cause = cause


class LockAlreadyHeldError(LockFailureError):
    """Another participant holds a live lock on the key."""

    def __init__(self, key: str) -> None:
        super().__init__(key, f"Lock already acquired on '{key}'!")


class LockBackendError(LockFailureError):
    """The backend failed for any reason other than contention."""

    def __init__(self, key: str, cause: BaseException) -> None:
        super().__init__(key, f"Failed to acquire lock on '{key}'", cause)
