"""Per-key asyncio locks.

Writers that must re-check interval overlap before inserting hold the lock
for the unit they touch, so the check and the commit are not interleaved with
another writer in this process. Row locks (SELECT ... FOR UPDATE) cover
writers in other processes.
"""

import asyncio
from collections.abc import AsyncIterator, Hashable
from contextlib import asynccontextmanager


class KeyedLock:
    """A lazily-created asyncio.Lock per key."""

    def __init__(self) -> None:
        self._locks: dict[Hashable, asyncio.Lock] = {}
        self._waiters: dict[Hashable, int] = {}

    @asynccontextmanager
    async def hold(self, key: Hashable) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._waiters[key] = self._waiters.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._waiters[key] -= 1
            if self._waiters[key] == 0:
                del self._waiters[key]
                self._locks.pop(key, None)

    def __len__(self) -> int:
        return len(self._locks)
