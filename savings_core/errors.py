"""
Error Taxonomy Module

Typed failures raised by the savings core. Only ConcurrencyConflictError is
meant to be retried, and only by reloading the account and re-applying the
command.
"""

from typing import Optional


class SavingsError(Exception):
    """Base class for all savings core errors"""

    def __init__(self, message: str, account_id: Optional[str] = None):
        super().__init__(message)
        self.account_id = account_id


class InvalidArgumentError(SavingsError, ValueError):
    """Malformed account id, amount, rate or compounding periods"""


class AccountAlreadyExistsError(SavingsError):
    """Account id is already taken"""

    def __init__(self, account_id: str):
        super().__init__(f"Account {account_id} already exists", account_id)


class AccountNotFoundError(SavingsError):
    """Account id is unknown to the store"""

    def __init__(self, account_id: str):
        super().__init__(f"Account {account_id} not found", account_id)


class InsufficientFundsError(SavingsError):
    """Withdrawal would take the balance below the minimum"""

    def __init__(self, account_id: str, balance, requested):
        super().__init__(
            f"Insufficient funds in account {account_id}: "
            f"balance {balance}, requested {requested}",
            account_id
        )
        self.balance = balance
        self.requested = requested


class ConcurrencyConflictError(SavingsError):
    """
    Optimistic concurrency check failed on save.

    The account was modified by another writer after it was loaded. Reload
    it and re-apply the command.
    """

    def __init__(self, account_id: str, expected_version: Optional[int] = None,
                 reason: Optional[str] = None):
        message = reason or (
            f"Account {account_id} was modified by another process "
            f"(expected version {expected_version}). Please retry the operation."
        )
        super().__init__(message, account_id)
        self.expected_version = expected_version


class StorageError(SavingsError):
    """Infrastructure failure in a storage backend"""


class StorageInitializationError(StorageError):
    """Storage backend could not be opened or its schema created"""

    def __init__(self, resource: str, reason: str):
        super().__init__(f"Failed to initialize storage '{resource}': {reason}")
        self.resource = resource


class CorruptTransactionLogError(StorageError):
    """Replaying a persisted transaction log did not reproduce it"""
