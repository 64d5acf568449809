"""Per-key mutual exclusion used to serialise read-modify-write on one entity."""

from __future__ import annotations

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncContextManager, AsyncIterator, Protocol
from uuid import UUID

from redis.exceptions import LockError

from wanda.core.errors import StoreError
from wanda.infra.redis import RedisProxy
from wanda.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)


def post_key(post_id: UUID) -> str:
    return f"post:{post_id}"


def user_key(user_id: UUID) -> str:
    return f"user:{user_id}"


def external_key(external_id: str) -> str:
    return f"external:{external_id}"


class LockTimeout(StoreError):
    """The lock for a key could not be acquired in time."""

    def __init__(self, key: str) -> None:
        super().__init__(f"timed out acquiring lock {key}")
        self.key = key


class KeyLocks(Protocol):
    def hold(self, key: str) -> AsyncContextManager[None]:
        ...


class _Slot:
    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = asyncio.Lock()
        self.users = 0


class LocalKeyLocks:
    """In-process keyed ``asyncio.Lock`` registry.

    Slots are reference counted and dropped once no task holds or awaits them.
    """

    backend = "local"

    def __init__(self) -> None:
        self._slots: dict[str, _Slot] = {}

    def __len__(self) -> int:
        return len(self._slots)

    def is_locked(self, key: str) -> bool:
        slot = self._slots.get(key)
        return slot is not None and slot.lock.locked()

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        slot = self._slots.get(key)
        if slot is None:
            slot = self._slots[key] = _Slot()
        slot.users += 1
        start = time.perf_counter()
        try:
            async with slot.lock:
                obs_metrics.LOCK_WAIT_SECONDS.labels(backend=self.backend).observe(time.perf_counter() - start)
                yield
        finally:
            slot.users -= 1
            if slot.users == 0 and self._slots.get(key) is slot:
                del self._slots[key]


class RedisKeyLocks:
    """Distributed variant backed by ``redis.asyncio`` locks with a lease."""

    backend = "redis"

    def __init__(
        self,
        redis: RedisProxy,
        *,
        namespace: str = "wanda:lock:",
        timeout: float = 10.0,
        blocking_timeout: float = 5.0,
    ) -> None:
        self.redis = redis
        self.namespace = namespace
        self.timeout = timeout
        self.blocking_timeout = blocking_timeout

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        name = f"{self.namespace}{key}"
        lock = self.redis.lock(name, timeout=self.timeout, blocking_timeout=self.blocking_timeout)
        start = time.perf_counter()
        acquired = await lock.acquire()
        if not acquired:
            raise LockTimeout(key)
        obs_metrics.LOCK_WAIT_SECONDS.labels(backend=self.backend).observe(time.perf_counter() - start)
        try:
            yield
        finally:
            try:
                await lock.release()
            except LockError:
                # Lease expired before release; the critical section already ran.
                logger.warning("lock lease expired before release", extra={"lock_key": key})


__all__ = [
    "KeyLocks",
    "LocalKeyLocks",
    "LockTimeout",
    "RedisKeyLocks",
    "external_key",
    "post_key",
    "user_key",
]
