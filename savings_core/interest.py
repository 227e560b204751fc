"""
Interest Calculation Module

Pure compound interest computation over Money and InterestRate. All
arithmetic is Decimal; results are rounded half-up (away from zero) to cents.
"""

from decimal import Decimal, ROUND_HALF_UP, InvalidOperation

from .errors import InvalidArgumentError
from .money import Money, InterestRate, CENTS


class InterestCalculator:
    """Stateless compound interest calculations"""

    @staticmethod
    def compound_interest(principal: Money, rate: InterestRate, periods: int = 1) -> Money:
        """
        Compound a principal over a number of periods.

        Computes principal * (1 + rate / periods) ** periods.

        Args:
            principal: Starting amount
            rate: Rate for the whole term (e.g. annual)
            periods: Number of compounding periods within the term

        Returns:
            The new balance, not the interest earned

        Raises:
            InvalidArgumentError: If periods is not a positive integer, or the
                new balance exceeds the supported precision
        """
        if isinstance(periods, bool) or not isinstance(periods, int) or periods <= 0:
            raise InvalidArgumentError(f"Compounding periods must be positive, got {periods!r}")

        growth = (Decimal('1') + rate.value / Decimal(periods)) ** periods
        try:
            new_balance = (principal.amount * growth).quantize(CENTS, rounding=ROUND_HALF_UP)
        except InvalidOperation as e:
            raise InvalidArgumentError(f"Balance {principal} is too large to compound") from e
        return Money(new_balance)
