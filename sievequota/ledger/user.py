"""Per-user quota overrides."""

import logging
from typing import Optional

from sievequota.common.constants import DEFAULT_KEY_PREFIX, UserQuotaTable
from sievequota.executor import AsyncExecutor
from sievequota.ledger.tables import KeyTemplate

logger = logging.getLogger("sievequota.ledger")


class UserQuotaLedger:
    """Optional quota override per user.

    ``None`` from :meth:`get_quota` means the user has no override; the
    caller decides whether the cluster default applies. Values are stored
    verbatim, zero and negative included.
    """

    def __init__(self, executor: AsyncExecutor, key_prefix: str = DEFAULT_KEY_PREFIX) -> None:
        self._executor = executor
        self._template = KeyTemplate(key_prefix, UserQuotaTable.TABLE_NAME, UserQuotaTable.QUOTA)
        self._scan_pattern = self._template.pattern(executor.store.escape_pattern)

    async def get_quota(self, user: str) -> Optional[int]:
        return await self._executor.execute_single_value("get_user_quota", self._template.bind(user))

    async def set_quota(self, user: str, quota: int) -> None:
        await self._executor.execute_void("set_user_quota", self._template.bind(user), quota)
        logger.debug("Quota for %s set to %d", user, quota)

    async def remove_quota(self, user: str) -> bool:
        """Delete the override for *user*.

        Returns:
            True if an override existed and was removed
        """
        removed = await self._executor.execute_return_applied("remove_user_quota", self._template.bind(user))
        logger.debug("Quota remove for %s applied=%s", user, removed)
        return removed

    async def users_with_quota(self) -> list[str]:
        """List users that currently hold an override, sorted."""
        keys = await self._executor.execute_scan("scan_user_quota", self._scan_pattern)
        return sorted({self._template.partition_of(key) for key in keys if self._template.owns(key)})
