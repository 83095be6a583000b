"""Exception types raised while processing status updates."""

from __future__ import annotations

import httpx
from redis.exceptions import RedisError


class StatusSyncError(RuntimeError):
    """Base exception for status sync failures."""


class RaceConditionError(StatusSyncError):
    """Raised when another worker holds the lock for the same remote resource.

    Callers are expected to retry the whole update later.
    """


class AccountFetchError(StatusSyncError):
    """Raised when a remote account document cannot be turned into an account."""


# Failures from side effects that are logged and tolerated instead of
# aborting the merge.
TRANSIENT_ERRORS: tuple[type[BaseException], ...] = (
    OSError,
    httpx.HTTPError,
    RedisError,
    AccountFetchError,
)
