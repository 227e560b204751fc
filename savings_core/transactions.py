"""
Transaction Record Module

Immutable entries of a savings account's transaction log. The log is the
authoritative history: balances are derived by replaying it.
"""

from datetime import datetime, timezone
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Optional
from enum import Enum

from .errors import InvalidArgumentError
from .money import Money


class TransactionType(Enum):
    """Transaction types with their persisted integer codes"""
    DEPOSIT = 0
    WITHDRAWAL = 1
    INTEREST_ACCRUAL = 2  # Amount is the interest earned


def format_timestamp(value: datetime) -> str:
    """ISO-8601 UTC text with fixed microsecond precision, so it sorts lexically"""
    return value.astimezone(timezone.utc).isoformat(timespec='microseconds')


def parse_timestamp(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def normalize_idempotency_key(key: Optional[str]) -> Optional[str]:
    """Empty keys mean 'no key'"""
    if key is None or key == "":
        return None
    if not isinstance(key, str):
        raise InvalidArgumentError(f"Idempotency key must be a string, got {type(key).__name__}")
    return key


@dataclass(frozen=True)
class Transaction:
    """A single deposit, withdrawal or interest accrual"""
    id: str
    account_id: str
    transaction_type: TransactionType
    amount: Money
    timestamp: datetime
    idempotency_key: Optional[str] = None

    def __post_init__(self):
        if not self.id:
            raise InvalidArgumentError("Transaction id is required")
        if not self.account_id:
            raise InvalidArgumentError("Transaction account id is required")
        object.__setattr__(self, 'idempotency_key', normalize_idempotency_key(self.idempotency_key))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a row dictionary for storage"""
        return {
            "id": self.id,
            "account_id": self.account_id,
            "type": self.transaction_type.value,
            "amount": str(self.amount),
            "timestamp": format_timestamp(self.timestamp),
            "idempotency_key": self.idempotency_key,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Transaction':
        """Create instance from a stored row dictionary"""
        return cls(
            id=data["id"],
            account_id=data["account_id"],
            transaction_type=TransactionType(int(data["type"])),
            amount=Money(Decimal(str(data["amount"]))),
            timestamp=parse_timestamp(data["timestamp"]),
            idempotency_key=data.get("idempotency_key"),
        )
