"""Per-user space usage counters."""

import logging

from sievequota.common.constants import DEFAULT_KEY_PREFIX, SpaceTable
from sievequota.executor import AsyncExecutor
from sievequota.ledger.tables import KeyTemplate

logger = logging.getLogger("sievequota.ledger")


class SpaceUsageLedger:
    """Running total of bytes stored per user.

    A missing counter reads as zero and is never written eagerly. Updates
    are relative and go through the store's atomic increment, so
    concurrent uploads for the same user do not lose each other. There
    is no floor: a large negative delta may leave the counter below zero.
    """

    def __init__(self, executor: AsyncExecutor, key_prefix: str = DEFAULT_KEY_PREFIX) -> None:
        self._executor = executor
        self._template = KeyTemplate(key_prefix, SpaceTable.TABLE_NAME, SpaceTable.SPACE_USED)

    async def space_used_by(self, user: str) -> int:
        value = await self._executor.execute_single_value("get_space_used", self._template.bind(user))
        return value if value is not None else 0

    async def update_space_used(self, user: str, delta: int) -> None:
        await self._executor.execute_increment("update_space_used", self._template.bind(user), delta)
        logger.debug("Space used by %s adjusted by %+d", user, delta)
