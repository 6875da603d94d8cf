"""Per-key asyncio locks (one per user, one per ledger)."""

import asyncio
import contextlib
from collections.abc import AsyncIterator, Hashable


class KeyedLocks:
    """
    Hand out one asyncio.Lock per key.

    Locks are reference counted and dropped once nobody holds or
    waits on them, so the table does not grow with every user ever
    seen.
    """

    def __init__(self) -> None:
        self._locks: dict[Hashable, asyncio.Lock] = {}
        self._users: dict[Hashable, int] = {}

    @contextlib.asynccontextmanager
    async def hold(self, key: Hashable) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]

    def is_held(self, key: Hashable) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()

    def __contains__(self, key: Hashable) -> bool:
        """True while someone holds or waits on the lock for `key`."""
        return key in self._locks

    def __len__(self) -> int:
        return len(self._locks)
