"""Lease locks guaranteeing one in-flight update per remote resource.

Acquisition never blocks: a busy key is reported to the caller immediately so
it can surface a retryable race condition. Every lease expires on its own so a
crashed holder cannot wedge later updates.
"""

from __future__ import annotations

import logging
import secrets
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from threading import Lock
from typing import Any, Protocol

import redis
from redis.exceptions import LockError

from status_sync.core.settings import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LockToken:
    """Proof of a held lease, handed back to :meth:`Locker.release`."""

    key: str
    token: str
    handle: Any = field(default=None, compare=False, repr=False)


class Locker(Protocol):
    """Capability for acquiring and releasing lease locks."""

    def try_acquire(self, key: str, ttl_seconds: float) -> LockToken | None:
        """Return a token if the lease was taken, ``None`` if another holder has it."""
        ...

    def release(self, token: LockToken) -> None:
        """Release a lease previously returned by :meth:`try_acquire`."""
        ...


class RedisLocker:
    """Locker backed by redis-py's token-checked ``Lock``."""

    def __init__(self, client: redis.Redis | None = None, *, namespace: str = "lock") -> None:
        self._redis = client if client is not None else redis.Redis.from_url(settings.redis_url)
        self._namespace = namespace

    def try_acquire(self, key: str, ttl_seconds: float) -> LockToken | None:
        token = secrets.token_hex(16)
        lock = self._redis.lock(
            f"{self._namespace}:{key}",
            timeout=ttl_seconds,
            blocking=False,
        )
        if not lock.acquire(blocking=False, token=token):
            logger.debug("Lock %s is held by another worker", key)
            return None
        return LockToken(key=key, token=token, handle=lock)

    def release(self, token: LockToken) -> None:
        try:
            token.handle.release()
        except LockError:
            # The lease expired and may already belong to someone else.
            logger.warning("Lock %s expired before it was released", token.key)


class InMemoryLocker:
    """Process-local locker for single-worker deployments and tests."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._leases: dict[str, tuple[str, float]] = {}
        self._guard = Lock()

    def try_acquire(self, key: str, ttl_seconds: float) -> LockToken | None:
        now = self._clock()
        with self._guard:
            current = self._leases.get(key)
            if current is not None and current[1] > now:
                return None
            token = secrets.token_hex(16)
            self._leases[key] = (token, now + ttl_seconds)
        return LockToken(key=key, token=token)

    def release(self, token: LockToken) -> None:
        with self._guard:
            current = self._leases.get(token.key)
            if current is not None and current[0] == token.token:
                del self._leases[token.key]
            else:
                logger.warning("Lock %s expired before it was released", token.key)
