"""
Lock registries for single-writer discipline.

Reconciliation runs hold an exclusive per-period lock; manual overrides hold
per-entity locks. Both registries belong to an engine instance, never to
the module, and forget a key once nothing holds or awaits its lock.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Iterable, List

from ..errors import ConcurrentRunConflict
from ..models import Period


class PeriodLockRegistry:
    """One exclusive lock per period; a busy period fails fast."""

    def __init__(self):
        self._locks: Dict[Period, asyncio.Lock] = {}

    def __len__(self) -> int:
        return len(self._locks)

    def is_locked(self, period: Period) -> bool:
        lock = self._locks.get(period)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold(self, period: Period) -> AsyncIterator[None]:
        # No await between the check and acquire, so no other task can interleave
        if self.is_locked(period):
            raise ConcurrentRunConflict(str(period))
        lock = self._locks[period] = asyncio.Lock()
        try:
            async with lock:
                yield
        finally:
            if self._locks.get(period) is lock:
                del self._locks[period]


class EntityLockRegistry:
    """Per-entity locks, acquired in sorted order to avoid deadlocks."""

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}
        # Holders plus waiters per key
        self._users: Dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, entity_keys: Iterable[str]) -> AsyncIterator[None]:
        keys = sorted(set(entity_keys))
        checked_out: List[str] = []
        acquired: List[asyncio.Lock] = []
        try:
            for key in keys:
                lock = self._checkout(key)
                checked_out.append(key)
                await lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()
            for key in checked_out:
                self._checkin(key)

    def _checkout(self, key: str) -> asyncio.Lock:
        self._users[key] = self._users.get(key, 0) + 1
        return self._locks.setdefault(key, asyncio.Lock())

    def _checkin(self, key: str) -> None:
        self._users[key] -= 1
        if not self._users[key]:
            del self._users[key]
            del self._locks[key]
