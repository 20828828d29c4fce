"""Store manager with pluggable backends."""

import logging
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from sievequota.common.constants import DEFAULT_LOCK_TIMEOUT, DEFAULT_REDIS_URL, DEFAULT_SAVE_INTERVAL
from sievequota.store.file import FileStoreBackend
from sievequota.store.interface import StoreBackend
from sievequota.store.memory import MemoryStoreBackend

if TYPE_CHECKING:
    from sievequota.config import QuotaSettings

logger = logging.getLogger("sievequota.store")


class BackendType(str, Enum):
    """Available store backend types."""

    MEMORY = "memory"
    FILE = "file"
    REDIS = "redis"


class StoreManager:
    """Owns the lifecycle of one store backend.

    Supports multiple backend types:
    - memory: In-memory storage (single process, dev/test)
    - file: File-based storage (persistence, one process at a time per directory)
    - redis: Redis storage (production, multi-process)

    Usage:
        manager = StoreManager(BackendType.FILE, storage_path=Path("./data"))
        await manager.connect()
        dao = SieveQuotaDAO(manager.backend)
        ...
        await manager.disconnect()
    """

    def __init__(
        self,
        backend_type: BackendType = BackendType.MEMORY,
        storage_path: Optional[Path] = None,
        redis_url: Optional[str] = None,
        save_interval: float = DEFAULT_SAVE_INTERVAL,
        lock_timeout: float = DEFAULT_LOCK_TIMEOUT,
    ) -> None:
        """Initialize store manager.

        Args:
            backend_type: Type of backend to use
            storage_path: Directory for file backend storage
            redis_url: URL for Redis backend
            save_interval: Flush period for the file backend
            lock_timeout: How long the file backend waits for the ledger file lock
        """
        self.backend_type = BackendType(backend_type)
        self._backend: Optional[StoreBackend] = None
        self._storage_path = storage_path or Path("./quota_data")
        self._redis_url = redis_url or DEFAULT_REDIS_URL
        self._save_interval = save_interval
        self._lock_timeout = lock_timeout

    @classmethod
    def from_settings(cls, settings: "QuotaSettings") -> "StoreManager":
        """Build a manager from loaded settings."""
        return cls(
            backend_type=BackendType(settings.store_backend),
            storage_path=settings.storage_path,
            redis_url=settings.redis_url,
            save_interval=settings.save_interval,
            lock_timeout=settings.lock_timeout,
        )

    def _create_backend(self) -> StoreBackend:
        """Create backend instance based on type."""
        if self.backend_type == BackendType.MEMORY:
            return MemoryStoreBackend()

        elif self.backend_type == BackendType.FILE:
            return FileStoreBackend(
                self._storage_path,
                save_interval=self._save_interval,
                lock_timeout=self._lock_timeout,
            )

        elif self.backend_type == BackendType.REDIS:
            from sievequota.store.redis import RedisStoreBackend

            return RedisStoreBackend(self._redis_url)

        else:
            raise ValueError(f"Unknown backend type: {self.backend_type}")

    async def connect(self) -> None:
        """Connect to the backend."""
        if self._backend is None:
            backend = self._create_backend()
            await backend.connect()
            self._backend = backend
            logger.info("Using %s backend", backend.name)

    async def disconnect(self) -> None:
        """Disconnect from the backend."""
        if self._backend:
            backend, self._backend = self._backend, None
            await backend.disconnect()

    @property
    def backend(self) -> StoreBackend:
        """Get backend instance."""
        if self._backend is None:
            raise RuntimeError("StoreManager not connected. Call connect() first.")
        return self._backend

    async def ping(self) -> bool:
        """Check if backend is available."""
        return await self.backend.ping()
