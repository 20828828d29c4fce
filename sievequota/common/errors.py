"""Errors raised by the quota ledger."""

from typing import Optional


class QuotaStoreError(Exception):
    """The backing store failed to complete a ledger operation."""

    def __init__(self, operation: str, key: Optional[str], message: str) -> None:
        self.operation = operation
        self.key = key
        self.message = message
        super().__init__(f"{operation} {key or '-'}: {message}")


class StoreErrors:
    """Common store errors."""

    @staticmethod
    def timeout(operation: str, key: Optional[str], seconds: float) -> QuotaStoreError:
        return QuotaStoreError(operation, key, f"Timed out after {seconds:g}s")

    @staticmethod
    def unavailable(operation: str, key: Optional[str], cause: BaseException) -> QuotaStoreError:
        return QuotaStoreError(operation, key, f"Store unavailable: {cause}")

    @staticmethod
    def corrupt_value(operation: str, key: Optional[str], detail: object) -> QuotaStoreError:
        return QuotaStoreError(operation, key, f"Invalid stored value: {detail}")
