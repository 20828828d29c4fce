"""Quota ledgers: cluster default, per-user override and space usage."""

from sievequota.ledger.cluster import ClusterQuotaLedger
from sievequota.ledger.dao import SieveQuotaDAO, open_quota_dao
from sievequota.ledger.space import SpaceUsageLedger
from sievequota.ledger.user import UserQuotaLedger

__all__ = [
    "ClusterQuotaLedger",
    "SieveQuotaDAO",
    "SpaceUsageLedger",
    "UserQuotaLedger",
    "open_quota_dao",
]
