"""File-based ledger store backend with persistence."""

import asyncio
import json
import logging
from pathlib import Path
from typing import Optional

import aiofiles  # type: ignore[import-untyped]
import aiofiles.os  # type: ignore[import-untyped]
from filelock import FileLock, Timeout

from sievequota.common.constants import DEFAULT_LOCK_TIMEOUT, DEFAULT_SAVE_INTERVAL
from sievequota.store.interface import StoreBackend
from sievequota.store.scan import ScanCursors, escape_glob

logger = logging.getLogger("sievequota.store")


class FileStoreBackend(StoreBackend):
    """File-based ledger store backend with persistence (DEFAULT).

    Keeps the ledger in memory and snapshots it to a JSON file so it
    survives restarts. Every operation runs under one lock, which makes
    increments and conditional deletes atomic within the process.

    The backend holds an OS-level lock on ``ledger.json.lock`` from
    ``connect()`` until the final flush in ``disconnect()``. A second
    process (or a second backend on the same path) waits up to
    ``lock_timeout`` seconds and then fails with ``filelock.Timeout``,
    so concurrent users of one ledger file are serialized rather than
    overwriting each other's snapshot.

    Limitations:
    - One connected backend per ledger file at a time
    - Writes made after the last flush are lost on a crash
    - For multi-process deployments, use RedisStoreBackend instead

    Usage:
        backend = FileStoreBackend(Path("/data/quota"))
        await backend.connect()
        await backend.set("sieve:sieve_quota:alice:quota", "5000")
        value = await backend.get("sieve:sieve_quota:alice:quota")
    """

    def __init__(
        self,
        storage_path: Path,
        save_interval: float = DEFAULT_SAVE_INTERVAL,
        lock_timeout: float = DEFAULT_LOCK_TIMEOUT,
    ) -> None:
        """Initialize file backend.

        Args:
            storage_path: Directory to store the ledger file
            save_interval: Seconds between flushes of pending changes
            lock_timeout: Seconds to wait for another holder of the ledger
                file (-1 waits forever)
        """
        self.storage_path = Path(storage_path)
        self.state_file = self.storage_path / "ledger.json"
        self.save_interval = save_interval
        self.lock_timeout = lock_timeout
        self.lock_file = self.storage_path / "ledger.json.lock"
        self._file_lock = FileLock(str(self.lock_file), timeout=lock_timeout, thread_local=False)
        self._cursors = ScanCursors()
        self._data: dict[str, str] = {}
        self._lock = asyncio.Lock()
        self._dirty = False
        self._save_task: Optional[asyncio.Task] = None

    async def connect(self) -> None:
        """Initialize the backend and load the existing snapshot."""
        self.storage_path.mkdir(parents=True, exist_ok=True)

        try:
            await asyncio.to_thread(self._file_lock.acquire)
        except Timeout:
            logger.error(
                "%s: %s is held by another process (waited %ss)", self.name, self.state_file, self.lock_timeout
            )
            raise

        try:
            await self._load_state()
        except BaseException:
            self._file_lock.release()
            raise

        self._save_task = asyncio.create_task(self._save_loop())

    async def _load_state(self) -> None:
        """Replace the in-memory ledger with the snapshot on disk."""
        self._dirty = False
        if not self.state_file.exists():
            self._data = {}
            logger.info("%s: Initialized (file storage at %s)", self.name, self.storage_path)
            return

        async with aiofiles.open(self.state_file, "r", encoding="utf-8") as f:
            content = await f.read()
        try:
            self._data = json.loads(content) if content else {}
        except json.JSONDecodeError:
            logger.error("%s: Corrupt ledger file %s", self.name, self.state_file)
            raise
        logger.info("%s: Loaded %d keys from %s", self.name, len(self._data), self.state_file)

    async def disconnect(self) -> None:
        """Flush pending changes, stop the save loop and release the file lock."""
        if self._save_task:
            self._save_task.cancel()
            try:
                await self._save_task
            except asyncio.CancelledError:
                pass
            self._save_task = None

        try:
            await self._save_state()
        finally:
            self._file_lock.release()

    async def _save_loop(self) -> None:
        """Periodically flush the ledger to disk."""
        while True:
            try:
                await asyncio.sleep(self.save_interval)
                await self._save_state()
            except asyncio.CancelledError:
                break
            except OSError as e:
                logger.error("%s: Error saving ledger: %s", self.name, e)

    async def _save_state(self) -> None:
        """Write the snapshot if anything changed since the last flush."""
        async with self._lock:
            if not self._dirty:
                return

            tmp_file = self.state_file.with_suffix(".json.tmp")
            async with aiofiles.open(tmp_file, "w", encoding="utf-8") as f:
                await f.write(json.dumps(self._data, indent=2, sort_keys=True))
            await aiofiles.os.replace(tmp_file, self.state_file)
            self._dirty = False

    async def get(self, key: str) -> Optional[str]:
        """Get value by key."""
        async with self._lock:
            return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        """Set a key-value pair."""
        async with self._lock:
            self._data[key] = value
            self._dirty = True

    async def delete(self, key: str) -> int:
        """Delete a key."""
        async with self._lock:
            if key in self._data:
                del self._data[key]
                self._dirty = True
                return 1
            return 0

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
            self._dirty = True
            return new_value

    async def ping(self) -> bool:
        """Check if backend is available."""
        return self.storage_path.exists()

    def get_stats(self) -> dict:
        """Get backend statistics."""
        return {
            "type": "file",
            "path": str(self.state_file),
            "keys": len(self._data),
        }
