"""Abstract interface for ledger store backends."""

from abc import ABC, abstractmethod
from typing import Optional


class StoreBackend(ABC):
    """Abstract base class for ledger store backends.

    Implementations provide async key-value storage where every
    operation is atomic with respect to a single key:
    - Single-key lookup (get)
    - Unconditional write (set)
    - Delete that reports whether a key was removed (delete)
    - Signed counter increment (incr)
    - Key pattern scanning

    Available implementations:
    - FileStoreBackend: JSON snapshot on disk (default, persistence)
    - MemoryStoreBackend: In-memory storage (unit testing)
    - RedisStoreBackend: Redis storage (multi-process production)

    ``errors`` lists the exception types that mean the store itself
    failed; anything else raised by a backend is a bug and propagates
    as-is.
    """

    errors: tuple[type[Exception], ...] = (OSError,)

    @abstractmethod
    async def connect(self) -> None:
        """Initialize connection to the backend."""
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        """Close connection to the backend."""
        pass

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """Get value by key.

        Args:
            key: The key to retrieve

        Returns:
            The value as string, or None if not found
        """
        pass

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        """Create or overwrite a key.

        Args:
            key: The key to set
            value: The value to store
        """
        pass

    @abstractmethod
    async def delete(self, key: str) -> int:
        """Delete a key in a single atomic step.

        Args:
            key: The key to delete

        Returns:
            Number of keys deleted (0 or 1)
        """
        pass

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """Check if a key exists.

        Args:
            key: The key to check

        Returns:
            True if key exists
        """
        pass

    @abstractmethod
    async def scan(
        self,
        cursor: int,
        match: str = "*",
        count: int = 100,
    ) -> tuple[int, list[str]]:
        """Scan keys matching a pattern.

        Args:
            cursor: Cursor position (0 to start)
            match: Pattern to match (supports * wildcard)
            count: Hint for number of keys to return

        Returns:
            Tuple of (next_cursor, list_of_keys)
            next_cursor is 0 when scan is complete
        """
        pass

    @abstractmethod
    async def incr(self, key: str, amount: int = 1) -> int:
        """Atomically add a signed amount to a counter.

        A missing key counts as zero, so the first increment stores
        ``amount`` itself.

        Args:
            key: The key to increment
            amount: Amount to add (negative to subtract)

        Returns:
            The new value after increment

        Raises:
            ValueError: If the stored value is not an integer
        """
        pass

    @abstractmethod
    def escape_pattern(self, text: str) -> str:
        """Escape ``text`` so :meth:`scan` matches it literally.

        Args:
            text: Literal key fragment (may contain * ? [ ])

        Returns:
            The fragment in this backend's pattern syntax
        """
        pass

    async def ping(self) -> bool:
        """Check if backend is available.

        Returns:
            True if backend is responding
        """
        return True

    def get_stats(self) -> dict:
        """Get backend statistics."""
        return {"type": self.name}

    @property
    def name(self) -> str:
        """Get backend name for logging."""
        return self.__class__.__name__
