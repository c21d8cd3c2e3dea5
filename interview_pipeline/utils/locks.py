"""
Keyed asyncio locks.

Transitions for one interview session (and session creation for one
candidate) must run one at a time inside a process. ``KeyedLock`` hands out
one ``asyncio.Lock`` per key and forgets it once nobody holds or waits on it.
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Dict

logger = logging.getLogger(__name__)


class KeyedLock:
    """Per-key mutual exclusion with reference-counted cleanup."""

    def __init__(self, name: str = "keyed-lock"):
        self.name = name
        self._locks: Dict[str, asyncio.Lock] = {}
        self._users: Dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, key: str):
        """Acquire the lock for ``key`` for the duration of the block."""
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        self._users[key] = self._users.get(key, 0) + 1

        if lock.locked():
            logger.debug(f"{self.name}: waiting for {key}")
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]

    def is_locked(self, key: str) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()

    def __len__(self) -> int:
        return len(self._locks)
