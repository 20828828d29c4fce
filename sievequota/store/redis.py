"""Redis ledger store backend."""

import logging
import re
from typing import Optional

from sievequota.common.constants import DEFAULT_REDIS_URL
from sievequota.store.interface import StoreBackend

logger = logging.getLogger("sievequota.store")

# Redis is optional
try:
    import redis.asyncio as redis

    REDIS_AVAILABLE = True
except ImportError:
    REDIS_AVAILABLE = False
    redis = None  # type: ignore[assignment]

_PATTERN_SPECIAL = re.compile(r"([*?\[\]\\])")


class RedisStoreBackend(StoreBackend):
    """Redis ledger store backend.

    Production backend for multi-process deployments. Every ledger
    operation maps onto one single-key Redis command, so per-key
    atomicity comes from the server:

    - conditional delete -> DEL (returns the number of keys removed)
    - space usage update -> INCRBY (signed 64-bit counter)

    Requirements:
    - Redis server running
    - `redis` package installed: pip install sievequota[redis]

    Usage:
        backend = RedisStoreBackend("redis://localhost:6379/0")
        await backend.connect()
        await backend.incr("sieve:sieve_space:alice:space_used", -30)
    """

    errors: tuple[type[Exception], ...] = (OSError, redis.RedisError) if REDIS_AVAILABLE else (OSError,)

    def __init__(self, redis_url: str = DEFAULT_REDIS_URL, max_connections: int = 20) -> None:
        """Initialize Redis backend.

        Args:
            redis_url: Redis connection URL
            max_connections: Size of the connection pool
        """
        if not REDIS_AVAILABLE:
            raise ImportError("Redis package not installed. " "Install with: pip install sievequota[redis]")

        self.redis_url = redis_url
        self.max_connections = max_connections
        self._client: Optional[redis.Redis] = None
        self._pool: Optional[redis.ConnectionPool] = None

    async def connect(self) -> None:
        """Connect to Redis."""
        self._pool = redis.ConnectionPool.from_url(
            self.redis_url,
            decode_responses=True,
            max_connections=self.max_connections,
        )
        self._client = redis.Redis(connection_pool=self._pool)

        # Test connection
        await self._client.ping()  # type: ignore[misc]
        logger.info("%s: Connected to %s", self.name, self.redis_url)

    async def disconnect(self) -> None:
        """Disconnect from Redis."""
        if self._client:
            await self._client.aclose()
            self._client = None
        if self._pool:
            await self._pool.disconnect()
            self._pool = None

    @property
    def client(self) -> "redis.Redis":
        if self._client is None:
            raise RuntimeError(f"{self.name} not connected. Call connect() first.")
        return self._client

    async def get(self, key: str) -> Optional[str]:
        """Get value by key."""
        return await self.client.get(key)  # type: ignore[no-any-return]

    async def set(self, key: str, value: str) -> None:
        """Set a key-value pair."""
        await self.client.set(key, value)

    async def delete(self, key: str) -> int:
        """Delete a key."""
        return await self.client.delete(key)  # type: ignore[no-any-return]

    async def exists(self, key: str) -> bool:
        """Check if key exists."""
        return await self.client.exists(key) > 0  # type: ignore[no-any-return]

    async def scan(
        self,
        cursor: int,
        match: str = "*",
        count: int = 100,
    ) -> tuple[int, list[str]]:
        """Scan keys matching pattern."""
        return await self.client.scan(cursor, match=match, count=count)  # type: ignore[no-any-return]

    async def incr(self, key: str, amount: int = 1) -> int:
        """Increment a numeric value."""
        try:
            return await self.client.incrby(key, amount)  # type: ignore[no-any-return]
        except redis.ResponseError as e:
            # INCRBY on a non-integer value
            raise ValueError(f"Value at {key} is not an integer: {e}") from e

    def escape_pattern(self, text: str) -> str:
        """Backslash-escape glob characters for SCAN MATCH."""
        return _PATTERN_SPECIAL.sub(r"\\\1", text)

    async def ping(self) -> bool:
        """Check if Redis is available."""
        try:
            await self.client.ping()  # type: ignore[misc]
            return True
        except (redis.RedisError, RuntimeError):
            return False

    def get_stats(self) -> dict:
        """Get backend statistics."""
        return {
            "type": "redis",
            "url": self.redis_url,
        }
