"""Per-owner operation locks.

Load-mutate-save is not atomic, so every vault, auth and ledger operation
for one owner runs under that owner's lock. Different owners never wait
on each other.

Entries are dropped once no task holds or waits on them, so the registry
only ever holds owners with an operation in flight.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict


class OwnerLocks:
    """Lazily created ``asyncio.Lock`` per owner id.

    Use ``async with locks(owner_id):``. Must be used from a single event
    loop at a time.
    """

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}
        self._users: Dict[str, int] = {}

    def get(self, owner_id: str) -> asyncio.Lock:
        lock = self._locks.get(owner_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[owner_id] = lock
        return lock

    @asynccontextmanager
    async def hold(self, owner_id: str) -> AsyncIterator[asyncio.Lock]:
        """Hold the owner's lock, releasing the entry when it goes idle."""
        lock = self.get(owner_id)
        self._users[owner_id] = self._users.get(owner_id, 0) + 1
        try:
            async with lock:
                yield lock
        finally:
            self._users[owner_id] -= 1
            if not self._users[owner_id]:
                del self._users[owner_id]
                self._locks.pop(owner_id, None)

    def __call__(self, owner_id: str):
        return self.hold(owner_id)

    def __len__(self) -> int:
        return len(self._locks)
