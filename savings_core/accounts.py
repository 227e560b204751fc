"""
Savings Account Module

The savings account aggregate: owns the balance, the interest rate, the
version counter and the append-only transaction log, and enforces the
account invariants. The aggregate knows nothing about storage; stores
rebuild it by replaying its log through the same command methods.
"""

from decimal import Decimal
from datetime import datetime, timezone, timedelta
from typing import Iterable, List, Optional, Tuple, Union
import logging
import uuid

from .errors import (
    CorruptTransactionLogError, InsufficientFundsError, InvalidArgumentError
)
from .interest import InterestCalculator
from .money import (
    Money, InterestRate, MINIMUM_AMOUNT, NumberLike, as_money, as_interest_rate
)
from .transactions import Transaction, TransactionType, normalize_idempotency_key


logger = logging.getLogger(__name__)

DEFAULT_INTEREST_RATE = Decimal('0.042')

# Returned by accrue_interest when the idempotency key was already used.
# It is NOT interest earned; callers detect the replay by the unchanged version.
DUPLICATE_ACCRUAL_SENTINEL = MINIMUM_AMOUNT

_TIMESTAMP_STEP = timedelta(microseconds=1)


class SavingsAccount:
    """
    Savings account aggregate root.

    Invariants:
        - balance is never below 0.01 (accounts open with 0.01)
        - replaying the log from 0.01 reproduces the balance exactly
        - version starts at 1 and grows by 1 per appended transaction
        - a non-empty idempotency key appears at most once in the log

    Commands either append a transaction, update the balance and bump the
    version together, or change nothing.
    """

    def __init__(
        self,
        account_id: str,
        interest_rate: Optional[Union[InterestRate, NumberLike]] = None,
        created_at: Optional[datetime] = None
    ):
        if not isinstance(account_id, str) or not account_id.strip():
            raise InvalidArgumentError("Account id must be a non-empty string")

        if interest_rate is None:
            interest_rate = DEFAULT_INTEREST_RATE

        self._id = account_id
        self._interest_rate = as_interest_rate(interest_rate)
        self._created_at = created_at or datetime.now(timezone.utc)
        self._balance = Money.minimum()
        self._version = 1
        self._transactions: List[Transaction] = []
        self._persisted_version: Optional[int] = None

    @classmethod
    def create(
        cls,
        account_id: str,
        interest_rate: Optional[Union[InterestRate, NumberLike]] = None
    ) -> 'SavingsAccount':
        """Open a new account with the minimum balance and an empty log"""
        return cls(account_id, interest_rate)

    @classmethod
    def rehydrate(
        cls,
        account_id: str,
        interest_rate: Union[InterestRate, NumberLike],
        created_at: datetime,
        history: Iterable[Transaction]
    ) -> 'SavingsAccount':
        """
        Rebuild an account from its transaction log.

        Starts from a freshly opened account and replays every transaction
        through the command methods, keeping each transaction's original id
        and timestamp.

        Raises:
            CorruptTransactionLogError: If the log cannot be reproduced
        """
        account = cls(account_id, interest_rate, created_at)
        for transaction in history:
            account.replay(transaction)
        return account

    # Read accessors

    @property
    def account_id(self) -> str:
        return self._id

    @property
    def balance(self) -> Money:
        return self._balance

    @property
    def interest_rate(self) -> InterestRate:
        return self._interest_rate

    @property
    def created_at(self) -> datetime:
        return self._created_at

    @property
    def version(self) -> int:
        return self._version

    @property
    def persisted_version(self) -> Optional[int]:
        """Version last loaded from or committed to a store, None if never persisted"""
        return self._persisted_version

    @property
    def transactions(self) -> Tuple[Transaction, ...]:
        return tuple(self._transactions)

    # Commands

    def deposit(
        self,
        amount: Union[Money, NumberLike],
        idempotency_key: Optional[str] = None,
        *,
        transaction_id: Optional[str] = None,
        timestamp: Optional[datetime] = None
    ) -> None:
        """
        Deposit funds. A repeated idempotency key is a silent no-op.

        transaction_id and timestamp are only passed when replaying a
        persisted log.
        """
        key = normalize_idempotency_key(idempotency_key)
        if self._has_duplicate_transaction(key):
            return

        amount = as_money(amount)
        new_balance = self._balance + amount
        self._append(TransactionType.DEPOSIT, amount, new_balance, key, transaction_id, timestamp)

    def withdraw(
        self,
        amount: Union[Money, NumberLike],
        idempotency_key: Optional[str] = None,
        *,
        transaction_id: Optional[str] = None,
        timestamp: Optional[datetime] = None
    ) -> None:
        """
        Withdraw funds. A repeated idempotency key is a silent no-op.

        Raises:
            InsufficientFundsError: If the balance is below the amount, or the
                withdrawal would leave less than the 0.01 minimum balance
        """
        key = normalize_idempotency_key(idempotency_key)
        if self._has_duplicate_transaction(key):
            return

        amount = as_money(amount)
        if self._balance < amount or self._balance.amount - amount.amount < MINIMUM_AMOUNT:
            raise InsufficientFundsError(self._id, self._balance, amount)

        new_balance = self._balance - amount
        self._append(TransactionType.WITHDRAWAL, amount, new_balance, key, transaction_id, timestamp)

    def accrue_interest(
        self,
        idempotency_key: Optional[str] = None,
        *,
        transaction_id: Optional[str] = None,
        timestamp: Optional[datetime] = None
    ) -> Decimal:
        """
        Compound one period of interest into the balance.

        Interest of 0.01 or less is computed but not recorded.

        Returns:
            The interest computed, whether or not it was applied. When the
            idempotency key was already used nothing is computed and
            DUPLICATE_ACCRUAL_SENTINEL (0.01) is returned instead.
        """
        key = normalize_idempotency_key(idempotency_key)
        if self._has_duplicate_transaction(key):
            return DUPLICATE_ACCRUAL_SENTINEL

        new_balance = InterestCalculator.compound_interest(self._balance, self._interest_rate)
        earned = new_balance.amount - self._balance.amount

        if earned > MINIMUM_AMOUNT:
            self._append(
                TransactionType.INTEREST_ACCRUAL, Money(earned), new_balance,
                key, transaction_id, timestamp
            )

        return earned

    def replay(self, transaction: Transaction) -> None:
        """Re-apply a persisted transaction, keeping its id and timestamp"""
        if transaction.account_id != self._id:
            raise CorruptTransactionLogError(
                f"Transaction {transaction.id} belongs to account {transaction.account_id}",
                self._id
            )

        count_before = len(self._transactions)
        replay_args = dict(transaction_id=transaction.id, timestamp=transaction.timestamp)
        try:
            if transaction.transaction_type == TransactionType.DEPOSIT:
                self.deposit(transaction.amount, transaction.idempotency_key, **replay_args)
            elif transaction.transaction_type == TransactionType.WITHDRAWAL:
                self.withdraw(transaction.amount, transaction.idempotency_key, **replay_args)
            else:
                self.accrue_interest(transaction.idempotency_key, **replay_args)
        except (InsufficientFundsError, InvalidArgumentError) as e:
            raise CorruptTransactionLogError(
                f"Cannot replay transaction {transaction.id}: {e}", self._id
            ) from e

        if len(self._transactions) != count_before + 1 or self._transactions[-1] != transaction:
            raise CorruptTransactionLogError(
                f"Replaying transaction {transaction.id} did not reproduce it", self._id
            )

    def mark_persisted(self, version: Optional[int] = None) -> None:
        """Record the version the store holds for this account (current version by default)"""
        self._persisted_version = self._version if version is None else version

    # Internals

    def _has_duplicate_transaction(self, idempotency_key: Optional[str]) -> bool:
        if idempotency_key is None:
            return False
        if any(t.idempotency_key == idempotency_key for t in self._transactions):
            logger.debug(
                "Duplicate idempotency key %s on account %s, skipping", idempotency_key, self._id
            )
            return True
        return False

    def _next_timestamp(self, requested: Optional[datetime]) -> datetime:
        last = self._transactions[-1].timestamp if self._transactions else None

        if requested is not None:
            if requested.tzinfo is None:
                raise InvalidArgumentError("Transaction timestamp must be timezone-aware")
            if last is not None and requested <= last:
                raise InvalidArgumentError(
                    f"Transaction timestamp {requested.isoformat()} is not after {last.isoformat()}"
                )
            return requested

        now = datetime.now(timezone.utc)
        if last is not None and now <= last:
            now = last + _TIMESTAMP_STEP
        return now

    def _append(
        self,
        transaction_type: TransactionType,
        amount: Money,
        new_balance: Money,
        idempotency_key: Optional[str],
        transaction_id: Optional[str],
        timestamp: Optional[datetime]
    ) -> None:
        # Build everything that can fail before touching state
        transaction = Transaction(
            id=transaction_id or str(uuid.uuid4()),
            account_id=self._id,
            transaction_type=transaction_type,
            amount=amount,
            timestamp=self._next_timestamp(timestamp),
            idempotency_key=idempotency_key
        )

        self._transactions.append(transaction)
        self._balance = new_balance
        self._version += 1

    def __repr__(self) -> str:
        return (
            f"SavingsAccount(id={self._id!r}, balance={self._balance}, "
            f"rate={self._interest_rate}, version={self._version})"
        )
