"""
Savings Account Service Module

The entry point for request-handling layers: load an account, apply one
command, save it back. Domain failures surface as typed errors from
savings_core.errors for the caller to translate.
"""

from decimal import Decimal
from typing import Optional, Tuple, Union

from .accounts import SavingsAccount
from .config import SavingsConfig, get_config
from .errors import (
    AccountAlreadyExistsError, AccountNotFoundError, ConcurrencyConflictError
)
from .logging_config import get_logger, log_action
from .money import InterestRate, Money, NumberLike, as_money
from .storage import AccountStore


class SavingsAccountService:
    """
    Application service over an AccountStore.

    ConcurrencyConflictError from deposit, withdraw and accrue_interest is
    passed through unchanged; callers retry by calling the method again,
    which reloads the latest account.
    """

    def __init__(self, store: AccountStore, config: Optional[SavingsConfig] = None):
        self.store = store
        self.config = config or get_config()
        self.logger = get_logger("savings_core.service")

    def create_account(
        self,
        account_id: str,
        interest_rate: Optional[Union[InterestRate, NumberLike]] = None
    ) -> SavingsAccount:
        """
        Open a new account.

        Raises:
            InvalidArgumentError: Empty id or invalid rate
            AccountAlreadyExistsError: The id is taken
        """
        if interest_rate is None:
            interest_rate = self.config.default_interest_rate

        account = SavingsAccount.create(account_id, interest_rate)

        if self.store.exists(account_id):
            raise AccountAlreadyExistsError(account_id)

        try:
            account = self.store.save(account)
        except ConcurrencyConflictError as e:
            # Another writer created the same id between the check and the save
            raise AccountAlreadyExistsError(account_id) from e

        log_action(
            self.logger, "info", f"Account created: {account_id}",
            account_id=account_id, action="create_account",
            extra={"interest_rate": str(account.interest_rate.value)}
        )
        return account

    def deposit(
        self,
        account_id: str,
        amount: Union[Money, NumberLike],
        idempotency_key: Optional[str] = None
    ) -> SavingsAccount:
        """
        Deposit into an account.

        Raises:
            InvalidArgumentError: Malformed amount
            AccountNotFoundError: Unknown account
            ConcurrencyConflictError: Account changed since it was loaded
        """
        amount = as_money(amount)
        account = self._load(account_id)
        version_before = account.version

        account.deposit(amount, idempotency_key)
        account = self.store.save(account)

        self._log_command("deposit", account, version_before, idempotency_key, amount=str(amount))
        return account

    def withdraw(
        self,
        account_id: str,
        amount: Union[Money, NumberLike],
        idempotency_key: Optional[str] = None
    ) -> SavingsAccount:
        """
        Withdraw from an account.

        Raises:
            InvalidArgumentError: Malformed amount
            AccountNotFoundError: Unknown account
            InsufficientFundsError: Balance too low
            ConcurrencyConflictError: Account changed since it was loaded
        """
        amount = as_money(amount)
        account = self._load(account_id)
        version_before = account.version

        account.withdraw(amount, idempotency_key)
        account = self.store.save(account)

        self._log_command("withdraw", account, version_before, idempotency_key, amount=str(amount))
        return account

    def accrue_interest(
        self,
        account_id: str,
        idempotency_key: Optional[str] = None
    ) -> Tuple[SavingsAccount, Decimal]:
        """
        Compound one period of interest into an account.

        Returns:
            The account and the interest computed. The interest is a plain
            Decimal rather than Money because it may be below one cent
            (0.00 on a fresh account), which Money cannot hold. See
            SavingsAccount.accrue_interest for the duplicate-key sentinel.
        """
        account = self._load(account_id)
        version_before = account.version

        earned = account.accrue_interest(idempotency_key)
        account = self.store.save(account)

        self._log_command(
            "accrue_interest", account, version_before, idempotency_key, interest_earned=str(earned)
        )
        return account, earned

    def get_balance(self, account_id: str) -> Money:
        """Current balance of an account"""
        return self._load(account_id).balance

    def get_account(self, account_id: str) -> SavingsAccount:
        """Load an account or raise AccountNotFoundError"""
        return self._load(account_id)

    def _load(self, account_id: str) -> SavingsAccount:
        account = self.store.get(account_id)
        if account is None:
            raise AccountNotFoundError(account_id)
        return account

    def _log_command(self, action: str, account: SavingsAccount, version_before: int,
                     idempotency_key: Optional[str], **details) -> None:
        applied = account.version != version_before
        details.update({
            "applied": applied,
            "balance": str(account.balance),
            "version": account.version,
        })
        log_action(
            self.logger, "info",
            f"{action} {'applied to' if applied else 'skipped for'} account {account.account_id}",
            account_id=account.account_id, action=action,
            idempotency_key=idempotency_key, extra=details
        )
