"""Async execution and result mapping shared by the quota ledgers.

Every ledger operation is exactly one store request. The executor
issues it, applies the optional timeout and maps the raw reply onto the
ledger's result channels:

- single-value reads -> ``Optional[int]`` (missing key is ``None``)
- writes and increments -> ``None``
- conditional deletes -> ``bool`` applied flag

Store failures (the backend's ``errors`` types, timeouts and values that
do not decode) never leak into those channels; they surface as
:class:`~sievequota.common.errors.QuotaStoreError` with the cause chained.
Other exceptions are bugs and propagate unchanged.
Nothing is retried here.
"""

import asyncio
import logging
from typing import Awaitable, Optional, TypeVar

from sievequota.common.constants import SCAN_BATCH_SIZE
from sievequota.common.errors import StoreErrors
from sievequota.store.interface import StoreBackend

logger = logging.getLogger("sievequota.executor")

T = TypeVar("T")


class AsyncExecutor:
    """Runs single store requests on behalf of the ledgers."""

    def __init__(self, store: StoreBackend, timeout: Optional[float] = None) -> None:
        self._store = store
        self._timeout = timeout

    @property
    def store(self) -> StoreBackend:
        return self._store

    async def _run(self, operation: str, key: str, request: Awaitable[T]) -> T:
        try:
            if self._timeout is None:
                return await request
            return await asyncio.wait_for(request, self._timeout)
        except asyncio.TimeoutError as e:
            logger.warning("%s %s timed out after %ss", operation, key, self._timeout)
            raise StoreErrors.timeout(operation, key, self._timeout or 0) from e
        except ValueError as e:
            logger.warning("%s %s failed: %s", operation, key, e)
            raise StoreErrors.corrupt_value(operation, key, e) from e
        except self._store.errors as e:
            logger.warning("%s %s failed on %s: %s", operation, key, self._store.name, e)
            raise StoreErrors.unavailable(operation, key, e) from e

    async def execute_single_value(self, operation: str, key: str) -> Optional[int]:
        """Read one key and decode it as an integer, ``None`` when absent."""
        raw = await self._run(operation, key, self._store.get(key))
        if raw is None:
            return None
        try:
            return int(raw)
        except (TypeError, ValueError) as e:
            logger.warning("%s %s returned non-integer value %r", operation, key, raw)
            raise StoreErrors.corrupt_value(operation, key, repr(raw)) from e

    async def execute_void(self, operation: str, key: str, value: int) -> None:
        """Create or overwrite one key."""
        await self._run(operation, key, self._store.set(key, str(value)))

    async def execute_return_applied(self, operation: str, key: str) -> bool:
        """Delete one key, reporting whether a record was actually removed."""
        deleted = await self._run(operation, key, self._store.delete(key))
        return deleted > 0

    async def execute_increment(self, operation: str, key: str, amount: int) -> None:
        """Apply a signed delta through the store's atomic counter."""
        await self._run(operation, key, self._store.incr(key, amount))

    async def execute_scan(self, operation: str, pattern: str) -> list[str]:
        """Collect every key matching ``pattern``, one request per page."""
        keys: list[str] = []
        cursor = 0
        while True:
            cursor, batch = await self._run(
                operation, pattern, self._store.scan(cursor, match=pattern, count=SCAN_BATCH_SIZE)
            )
            keys.extend(batch)
            if cursor == 0:
                break
        return keys

