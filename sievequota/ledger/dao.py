"""Quota ledger facade over the three sub-ledgers."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, AsyncIterator, Optional

from sievequota.common.constants import DEFAULT_KEY_PREFIX
from sievequota.executor import AsyncExecutor
from sievequota.ledger.cluster import ClusterQuotaLedger
from sievequota.ledger.space import SpaceUsageLedger
from sievequota.ledger.user import UserQuotaLedger
from sievequota.store.interface import StoreBackend
from sievequota.store.manager import StoreManager

if TYPE_CHECKING:
    from sievequota.config import QuotaSettings


class SieveQuotaDAO:
    """Bookkeeping for Sieve script quotas.

    Stores and reports numbers only; deciding whether a script fits is
    left to the caller, typically ``user quota or cluster quota`` compared
    against ``space_used_by(user)`` plus the new script size.

    The store handle is long-lived and shared. Key templates are prepared
    once here, so the instance holds no mutable state and is safe to use
    from concurrent tasks.

    Usage:
        dao = SieveQuotaDAO(manager.backend)
        await dao.set_quota(10_000)
        await dao.set_user_quota("alice", 5_000)
        await dao.update_space_used("alice", 1_200)
    """

    def __init__(
        self,
        store: StoreBackend,
        key_prefix: str = DEFAULT_KEY_PREFIX,
        timeout: Optional[float] = None,
    ) -> None:
        executor = AsyncExecutor(store, timeout=timeout)
        self.cluster = ClusterQuotaLedger(executor, key_prefix)
        self.users = UserQuotaLedger(executor, key_prefix)
        self.space = SpaceUsageLedger(executor, key_prefix)

    # ── Space usage ───────────────────────────────────────────

    async def space_used_by(self, user: str) -> int:
        return await self.space.space_used_by(user)

    async def update_space_used(self, user: str, delta: int) -> None:
        await self.space.update_space_used(user, delta)

    # ── Cluster quota ─────────────────────────────────────────

    async def get_quota(self) -> Optional[int]:
        return await self.cluster.get_quota()

    async def set_quota(self, quota: int) -> None:
        await self.cluster.set_quota(quota)

    async def remove_quota(self) -> bool:
        return await self.cluster.remove_quota()

    # ── User quota ────────────────────────────────────────────

    async def get_user_quota(self, user: str) -> Optional[int]:
        return await self.users.get_quota(user)

    async def set_user_quota(self, user: str, quota: int) -> None:
        await self.users.set_quota(user, quota)

    async def remove_user_quota(self, user: str) -> bool:
        return await self.users.remove_quota(user)

    async def users_with_quota(self) -> list[str]:
        return await self.users.users_with_quota()


@asynccontextmanager
async def open_quota_dao(settings: QuotaSettings) -> AsyncIterator[SieveQuotaDAO]:
    """Connect the configured store and yield a DAO bound to it.

    The store is disconnected (and the file backend flushed) on exit.
    """
    manager = StoreManager.from_settings(settings)
    await manager.connect()
    try:
        yield SieveQuotaDAO(
            manager.backend,
            key_prefix=settings.key_prefix,
            timeout=settings.operation_timeout,
        )
    finally:
        await manager.disconnect()
