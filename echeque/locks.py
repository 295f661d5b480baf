"""
Per-entity locks for the ledger service.

Every mutating operation holds the locks of exactly the entities it touches.
Keys are always acquired in sorted order, so two operations that share
entities cannot deadlock, and operations on disjoint entities never wait on
each other.
"""

import asyncio
from contextlib import AsyncExitStack, asynccontextmanager
from typing import AsyncIterator, Dict, Hashable


def cheque_key(cheque_id: bytes) -> str:
    return f"cheque:{cheque_id.hex()}"


def account_key(identity: str) -> str:
    return f"account:{identity}"


def pending_key(identity: str) -> str:
    return f"pending:{identity}"


class KeyedLocks:
    """
    asyncio.Lock per key, created on first use.

    A key's lock is dropped once no task holds or waits for it, so the map
    only ever contains keys with work in flight.
    """

    def __init__(self):
        self._locks: Dict[Hashable, asyncio.Lock] = {}
        self._users: Dict[Hashable, int] = {}

    def _checkout(self, key: Hashable) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._users[key] = self._users.get(key, 0) + 1
        return lock

    def _checkin(self, key: Hashable) -> None:
        remaining = self._users[key] - 1
        if remaining:
            self._users[key] = remaining
        else:
            del self._users[key]
            del self._locks[key]

    def locked(self, key: Hashable) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold(self, *keys: str) -> AsyncIterator[None]:
        """Acquire the locks of *keys* in canonical order for the body of the block."""
        ordered = sorted(set(keys))
        locks = [self._checkout(key) for key in ordered]
        try:
            async with AsyncExitStack() as stack:
                for lock in locks:
                    await stack.enter_async_context(lock)
                yield
        finally:
            for key in ordered:
                self._checkin(key)

    def __len__(self) -> int:
        return len(self._locks)
