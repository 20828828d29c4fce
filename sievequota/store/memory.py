"""In-memory ledger store backend."""

import asyncio
import logging
from typing import Optional

from sievequota.store.interface import StoreBackend
from sievequota.store.scan import ScanCursors, escape_glob

logger = logging.getLogger("sievequota.store")


class MemoryStoreBackend(StoreBackend):
    """In-memory ledger store backend.

    Suitable for:
    - Unit testing
    - Embedding the ledger in a single process

    Limitations:
    - Data is lost on restart
    - Not shared between processes

    Usage:
        backend = MemoryStoreBackend()
        await backend.connect()
        await backend.incr("sieve:sieve_space:alice:space_used", 1200)
        value = await backend.get("sieve:sieve_space:alice:space_used")
    """

    def __init__(self) -> None:
        """Initialize memory backend."""
        self._data: dict[str, str] = {}
        self._lock = asyncio.Lock()
        self._cursors = ScanCursors()

    async def connect(self) -> None:
        """Initialize the backend."""
        logger.info("%s: Initialized (in-memory storage)", self.name)

    async def disconnect(self) -> None:
        """Cleanup the backend."""
        async with self._lock:
            self._data.clear()

    async def get(self, key: str) -> Optional[str]:
        """Get value by key."""
        async with self._lock:
            return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        """Set a key-value pair."""
        async with self._lock:
            self._data[key] = value

    async def delete(self, key: str) -> int:
        """Delete a key."""
        async with self._lock:
            if self._data.pop(key, None) is None:
                return 0
            return 1

    async def exists(self, key: str) -> bool:
        """Check if key exists."""
        async with self._lock:
            return key in self._data

    async def scan(
        self,
        cursor: int,
        match: str = "*",
        count: int = 100,
    ) -> tuple[int, list[str]]:
        """Scan keys matching pattern."""
        async with self._lock:
            return self._cursors.page(self._data, cursor, match, count)

    def escape_pattern(self, text: str) -> str:
        """Escape glob characters for fnmatch."""
        return escape_glob(text)

    async def incr(self, key: str, amount: int = 1) -> int:
        """Increment a numeric value."""
        async with self._lock:
            current = self._data.get(key)
            if current is None:
                new_value = amount
            else:
                try:
                    new_value = int(current) + amount
                except ValueError:
                    raise ValueError(f"Value at {key} is not an integer")
            self._data[key] = str(new_value)
            return new_value

    def get_stats(self) -> dict:
        """Get backend statistics."""
        return {
            "type": "memory",
            "keys": len(self._data),
        }
