"""
Test suite for money module

Tests Money and InterestRate value types. All amounts must be Decimal with
exactly two decimal places and never below one cent.
"""

import pytest
from decimal import Decimal

from savings_core.errors import InvalidArgumentError
from savings_core.money import Money, InterestRate, as_money, as_interest_rate


class TestMoney:
    """Test Money construction, arithmetic and comparison"""

    def test_money_from_decimal(self):
        """Test Money from Decimal values"""
        money = Money(Decimal('100.50'))
        assert money.amount == Decimal('100.50')
        assert str(money) == "100.50"

        # Whole amounts keep two decimal places
        assert str(Money(Decimal('7'))) == "7.00"
        assert str(Money(12)) == "12.00"

    def test_money_rounds_half_up(self):
        """Test numeric inputs are rounded half-up to cents"""
        assert Money(Decimal('100.555')).amount == Decimal('100.56')
        assert Money(Decimal('100.554')).amount == Decimal('100.55')
        assert Money(Decimal('0.015')).amount == Decimal('0.02')

    def test_money_from_string(self):
        """Test the fixed-point string format"""
        assert Money("123.45").amount == Decimal('123.45')
        assert Money("0.01").amount == Decimal('0.01')

        for bad in ["123", "123.4", "123.456", "-1.00", "1,00", " 1.00", "abc", ""]:
            with pytest.raises(InvalidArgumentError):
                Money(bad)

    def test_money_string_requires_ascii_digits(self):
        """Test digits from other scripts do not match the format"""
        with pytest.raises(InvalidArgumentError, match="format"):
            Money("١٠٠.٠٠")
        with pytest.raises(InvalidArgumentError, match="format"):
            Money("１００.００")

    def test_money_rejects_oversized_amounts(self):
        """Test amounts beyond 28 significant digits are rejected"""
        with pytest.raises(InvalidArgumentError, match="precision"):
            Money("1" * 30 + ".00")
        with pytest.raises(InvalidArgumentError, match="precision"):
            Money(Decimal("1" * 30))

        largest = Money("9" * 26 + ".00")
        with pytest.raises(InvalidArgumentError, match="precision"):
            largest + largest

    def test_money_minimum(self):
        """Test amounts below one cent are rejected"""
        assert Money.minimum().amount == Decimal('0.01')

        with pytest.raises(InvalidArgumentError, match="at least"):
            Money(Decimal('0.00'))
        with pytest.raises(InvalidArgumentError):
            Money("0.00")
        with pytest.raises(InvalidArgumentError):
            Money(Decimal('0.009'))
        with pytest.raises(InvalidArgumentError):
            Money(Decimal('-5.00'))

    def test_money_rejects_non_numbers(self):
        """Test non-numeric and non-finite inputs are rejected"""
        with pytest.raises(InvalidArgumentError):
            Money(Decimal('NaN'))
        with pytest.raises(InvalidArgumentError):
            Money(Decimal('Infinity'))
        with pytest.raises(InvalidArgumentError):
            Money(True)
        with pytest.raises(InvalidArgumentError):
            Money(None)

    def test_invalid_argument_is_value_error(self):
        """Test callers catching ValueError still see amount errors"""
        with pytest.raises(ValueError):
            Money("bogus")

    def test_money_arithmetic(self):
        """Test Money arithmetic operations"""
        money1 = Money(Decimal('100.50'))
        money2 = Money(Decimal('50.25'))

        assert (money1 + money2).amount == Decimal('150.75')
        assert (money1 - money2).amount == Decimal('50.25')
        assert (money1 * Decimal('2')).amount == Decimal('201.00')
        assert (money1 * 3).amount == Decimal('301.50')
        assert (2 * money2).amount == Decimal('100.50')

    def test_money_arithmetic_respects_minimum(self):
        """Test arithmetic results below one cent fail"""
        money = Money(Decimal('10.00'))

        with pytest.raises(InvalidArgumentError):
            money - money
        with pytest.raises(InvalidArgumentError):
            money - Money(Decimal('20.00'))
        with pytest.raises(InvalidArgumentError):
            money * 0

    def test_money_comparison(self):
        """Test Money comparison operations"""
        money1 = Money(Decimal('100.00'))
        money2 = Money(Decimal('50.00'))
        money3 = Money("100.00")

        assert money1 == money3
        assert money1 != money2
        assert money2 < money1
        assert money2 <= money1
        assert money1 > money2
        assert money1 >= money3
        assert hash(money1) == hash(money3)

    def test_money_is_immutable(self):
        """Test Money cannot be modified"""
        money = Money(Decimal('1.00'))
        with pytest.raises(AttributeError):
            money.amount = Decimal('2.00')

    def test_as_money(self):
        """Test coercion helper"""
        money = Money(Decimal('5.00'))
        assert as_money(money) is money
        assert as_money("5.00") == money
        assert as_money(Decimal('5')) == money


class TestInterestRate:
    """Test InterestRate validation"""

    def test_valid_rates(self):
        """Test rates in [0, 1] are accepted"""
        assert InterestRate(Decimal('0')).value == Decimal('0')
        assert InterestRate(Decimal('1')).value == Decimal('1')
        assert InterestRate("0.042").value == Decimal('0.042')
        assert InterestRate(0.05).value == Decimal('0.05')

    def test_out_of_range_rates(self):
        """Test rates outside [0, 1] are rejected"""
        with pytest.raises(InvalidArgumentError, match="negative"):
            InterestRate(Decimal('-0.01'))
        with pytest.raises(InvalidArgumentError, match="exceed"):
            InterestRate(Decimal('1.01'))
        with pytest.raises(InvalidArgumentError):
            InterestRate("abc")

    def test_rate_display(self):
        """Test percentage formatting"""
        assert str(InterestRate(Decimal('0.042'))) == "4.20%"

    def test_as_interest_rate(self):
        """Test coercion helper"""
        rate = InterestRate(Decimal('0.03'))
        assert as_interest_rate(rate) is rate
        assert as_interest_rate("0.03") == rate
