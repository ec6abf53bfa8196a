"""
Per-user serialization of message handling.

Two webhook deliveries for the same user are processed one after the other
so their turns land in memory in arrival order; different users proceed
concurrently.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict

from src.models.types import UserId


class KeyedLock:
    """Map of asyncio locks keyed by user id, dropped when idle"""

    def __init__(self):
        self._locks: Dict[UserId, asyncio.Lock] = {}
        self._waiters: Dict[UserId, int] = {}

    @asynccontextmanager
    async def hold(self, key: UserId) -> AsyncIterator[None]:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._waiters[key] = self._waiters.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._waiters[key] -= 1
            if self._waiters[key] == 0:
                del self._waiters[key]
                del self._locks[key]

    def is_locked(self, key: UserId) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()

    def __len__(self) -> int:
        return len(self._locks)
