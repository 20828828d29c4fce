"""Key templates for the ledger tables.

A template is built once per ledger and binds a partition (the sentinel
name or a user) to a concrete store key::

    <prefix><table>:<partition>:<column>
"""

from dataclasses import dataclass
from typing import Callable


@dataclass(frozen=True)
class KeyTemplate:
    """Immutable key layout for one column of one logical table."""

    prefix: str
    table: str
    column: str

    @property
    def _head(self) -> str:
        return f"{self.prefix}{self.table}:"

    @property
    def _tail(self) -> str:
        return f":{self.column}"

    def bind(self, partition: str) -> str:
        return f"{self._head}{partition}{self._tail}"

    def pattern(self, escape: Callable[[str], str]) -> str:
        """Glob matching every bound key of this template.

        ``escape`` quotes the literal prefix, table and column in the
        store's pattern syntax so only the partition is a wildcard.
        """
        return f"{escape(self._head)}*{escape(self._tail)}"

    def owns(self, key: str) -> bool:
        if len(key) < len(self._head) + len(self._tail):
            return False
        return key.startswith(self._head) and key.endswith(self._tail)

    def partition_of(self, key: str) -> str:
        """Recover the partition from a bound key."""
        if not self.owns(key):
            raise ValueError(f"Key {key!r} does not belong to {self.table}.{self.column}")
        return key[len(self._head) : len(key) - len(self._tail)]
