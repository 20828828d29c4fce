"""SieveQuota - quota ledger for Sieve mail-filtering scripts."""

__version__ = "0.1.0"
