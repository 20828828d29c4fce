"""Cluster-wide default quota."""

import logging
from typing import Optional

from sievequota.common.constants import DEFAULT_KEY_PREFIX, ClusterQuotaTable
from sievequota.executor import AsyncExecutor
from sievequota.ledger.tables import KeyTemplate

logger = logging.getLogger("sievequota.ledger")


class ClusterQuotaLedger:
    """Singleton default quota applied to users without an override.

    The record lives under a fixed sentinel name. Absence means no
    cluster default is configured.
    """

    def __init__(self, executor: AsyncExecutor, key_prefix: str = DEFAULT_KEY_PREFIX) -> None:
        self._executor = executor
        template = KeyTemplate(key_prefix, ClusterQuotaTable.TABLE_NAME, ClusterQuotaTable.VALUE)
        self._key = template.bind(ClusterQuotaTable.DEFAULT_NAME)

    async def get_quota(self) -> Optional[int]:
        return await self._executor.execute_single_value("get_cluster_quota", self._key)

    async def set_quota(self, quota: int) -> None:
        await self._executor.execute_void("set_cluster_quota", self._key, quota)
        logger.debug("Cluster quota set to %d", quota)

    async def remove_quota(self) -> bool:
        """Delete the default quota.

        Returns:
            True if a quota existed and was removed, False if none was set
        """
        removed = await self._executor.execute_return_applied("remove_cluster_quota", self._key)
        logger.debug("Cluster quota remove applied=%s", removed)
        return removed
