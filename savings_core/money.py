"""
Money and Interest Rate Value Module

Immutable value types for monetary amounts and interest rates. Amounts are
always Decimal with exactly two decimal places. NEVER uses float for
monetary values.
"""

from decimal import Decimal, ROUND_HALF_UP, InvalidOperation, getcontext
from dataclasses import dataclass
from typing import Union
import re

from .errors import InvalidArgumentError

# Set global decimal context for financial precision
getcontext().prec = 28

MONEY_PATTERN = re.compile(r'^\d+\.\d{2}$', re.ASCII)
MINIMUM_AMOUNT = Decimal('0.01')  # One cent, also the minimum account balance
CENTS = Decimal('0.01')

NumberLike = Union[Decimal, int, float, str]


def _to_decimal(value, what: str) -> Decimal:
    """Convert a numeric input to Decimal, rejecting bools and non-finite values"""
    if isinstance(value, bool):
        raise InvalidArgumentError(f"{what} must be numeric, got {value!r}")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, float)):
        result = Decimal(str(value))
    elif isinstance(value, str):
        try:
            result = Decimal(value)
        except InvalidOperation:
            raise InvalidArgumentError(f"Cannot convert '{value}' to Decimal")
    else:
        raise InvalidArgumentError(f"{what} must be numeric, got {type(value).__name__}")

    if not result.is_finite():
        raise InvalidArgumentError(f"{what} must be finite, got {value!r}")
    return result


@dataclass(frozen=True)
class Money:
    """
    Immutable monetary amount with fixed 2-decimal precision.

    Strings must use the fixed-point form '123.45'. Numeric inputs are
    rounded half-up to cents. Every amount, including the result of
    arithmetic, must be at least 0.01.
    """
    amount: Decimal

    def __post_init__(self):
        value = self.amount
        if isinstance(value, str) and not MONEY_PATTERN.fullmatch(value):
            raise InvalidArgumentError(f"Amount must be in format '123.45', got '{value}'")

        amount = _to_decimal(value, "Amount")
        if amount < MINIMUM_AMOUNT:
            raise InvalidArgumentError(f"Amount must be at least {MINIMUM_AMOUNT}, got {amount}")

        try:
            quantized = amount.quantize(CENTS, rounding=ROUND_HALF_UP)
        except InvalidOperation as e:
            raise InvalidArgumentError(f"Amount {value} exceeds the supported precision") from e
        object.__setattr__(self, 'amount', quantized)

    @classmethod
    def minimum(cls) -> 'Money':
        """The smallest representable amount (one cent)"""
        return cls(MINIMUM_AMOUNT)

    def __add__(self, other: 'Money') -> 'Money':
        if not isinstance(other, Money):
            return NotImplemented
        return Money(self.amount + other.amount)

    def __sub__(self, other: 'Money') -> 'Money':
        if not isinstance(other, Money):
            return NotImplemented
        return Money(self.amount - other.amount)

    def __mul__(self, multiplier: NumberLike) -> 'Money':
        if isinstance(multiplier, Money):
            return NotImplemented
        return Money(self.amount * _to_decimal(multiplier, "Multiplier"))

    __rmul__ = __mul__

    def __lt__(self, other: 'Money') -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        return self.amount < other.amount

    def __le__(self, other: 'Money') -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        return self.amount <= other.amount

    def __gt__(self, other: 'Money') -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        return self.amount > other.amount

    def __ge__(self, other: 'Money') -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        return self.amount >= other.amount

    def __str__(self) -> str:
        return f"{self.amount:.2f}"


@dataclass(frozen=True)
class InterestRate:
    """Immutable fractional interest rate in [0, 1] (0.042 is 4.2%)"""
    value: Decimal

    def __post_init__(self):
        value = _to_decimal(self.value, "Interest rate")
        if value < Decimal('0'):
            raise InvalidArgumentError("Interest rate cannot be negative")
        if value > Decimal('1'):
            raise InvalidArgumentError("Interest rate cannot exceed 100%")
        object.__setattr__(self, 'value', value)

    def __str__(self) -> str:
        return f"{self.value * 100:.2f}%"


def as_money(value: Union[Money, NumberLike]) -> Money:
    """Coerce caller input into Money"""
    if isinstance(value, Money):
        return value
    return Money(value)


def as_interest_rate(value: Union[InterestRate, NumberLike]) -> InterestRate:
    """Coerce caller input into an InterestRate"""
    if isinstance(value, InterestRate):
        return value
    return InterestRate(value)
