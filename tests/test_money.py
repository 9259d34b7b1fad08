"""
Unit tests for money primitives.

Tests precision invariants, currency-safe addition, conversion and formatting.
"""

import pytest
from decimal import Decimal

from subscription_calendar.core.money import (
    CurrencyMismatchError,
    Money,
    add,
    convert,
    format_money,
    minor_units,
)


class TestMoneyConstruction:
    """Test Money invariants."""

    def test_valid_amount(self):
        """Verify a two-decimal USD amount is accepted."""
        money = Money(Decimal("9.99"), "USD")
        assert money.amount == Decimal("9.99")
        assert money.currency == "USD"

    def test_excess_precision_rejected(self):
        """Verify amounts finer than the currency's minor unit are rejected."""
        with pytest.raises(ValueError, match="precision"):
            Money(Decimal("9.999"), "USD")

    def test_zero_decimal_currency(self):
        """Verify JPY amounts cannot carry fractional yen."""
        with pytest.raises(ValueError):
            Money(Decimal("100.5"), "JPY")
        assert Money(Decimal("100"), "JPY").amount == Decimal("100")

    def test_three_decimal_currency(self):
        """Verify KWD allows three decimals."""
        assert minor_units("KWD") == 3
        assert Money(Decimal("1.125"), "KWD").amount == Decimal("1.125")

    def test_non_finite_rejected(self):
        """Verify NaN and infinity are rejected."""
        with pytest.raises(ValueError, match="finite"):
            Money(Decimal("NaN"), "USD")
        with pytest.raises(ValueError, match="finite"):
            Money.of("Infinity", "USD")

    def test_float_amount_rejected(self):
        """Verify raw floats must go through Money.of."""
        with pytest.raises(TypeError):
            Money(9.99, "USD")

    @pytest.mark.parametrize("code", ["usd", "US", "USDX", "U$D", ""])
    def test_invalid_currency_code(self, code):
        """Verify malformed currency codes are rejected."""
        with pytest.raises(ValueError, match="Invalid currency code"):
            Money(Decimal("1"), code)


class TestMoneyOf:
    """Test the loose-input constructor."""

    def test_from_string(self):
        assert Money.of("12.50", "EUR") == Money(Decimal("12.50"), "EUR")

    def test_from_float_keeps_decimal_digits(self):
        """Verify 9.99 does not become 9.9900000000000002131628..."""
        assert Money.of(9.99, "USD").amount == Decimal("9.99")

    def test_rounds_half_up(self):
        """Verify rounding to minor units is half-up."""
        assert Money.of("0.125", "USD").amount == Decimal("0.13")
        assert Money.of("99.5", "JPY").amount == Decimal("100")

    def test_invalid_string(self):
        with pytest.raises(ValueError, match="Invalid amount"):
            Money.of("ten", "USD")

    def test_too_many_digits(self):
        """Verify amounts beyond Decimal precision raise ValueError."""
        with pytest.raises(ValueError, match="too large"):
            Money.of("1e30", "USD")

    def test_zero(self):
        zero = Money.zero("USD")
        assert zero.amount == Decimal("0")
        assert zero.currency == "USD"


class TestAddition:
    """Test currency-safe addition."""

    def test_same_currency(self):
        total = add(Money.of("1.10", "USD"), Money.of("2.20", "USD"))
        assert total == Money.of("3.30", "USD")

    def test_operator(self):
        assert Money.of("1", "EUR") + Money.of("2", "EUR") == Money.of("3", "EUR")

    def test_mismatch_raises(self):
        """Verify different currencies never add silently."""
        with pytest.raises(CurrencyMismatchError) as exc_info:
            add(Money.of("1", "USD"), Money.of("1", "EUR"))
        assert exc_info.value.left == "USD"
        assert exc_info.value.right == "EUR"

    def test_mismatch_is_value_error(self):
        with pytest.raises(ValueError):
            Money.of("1", "USD") + Money.of("1", "GBP")


class TestConversion:
    """Test explicit currency conversion."""

    def test_convert_rounds_to_target(self):
        """Verify converted amounts respect the target's precision."""
        result = convert(Money.of("10.00", "EUR"), Decimal("1.0843"), "USD")
        assert result == Money.of("10.84", "USD")

    def test_convert_to_zero_decimal_currency(self):
        result = convert(Money.of("10.00", "USD"), Decimal("151.37"), "JPY")
        assert result == Money(Decimal("1514"), "JPY")

    def test_convert_float_rate(self):
        result = convert(Money.of("100", "EUR"), 1.1, "USD")
        assert result.amount == Decimal("110.00")

    def test_non_positive_rate_rejected(self):
        with pytest.raises(ValueError, match="must be > 0"):
            convert(Money.of("1", "EUR"), Decimal("0"), "USD")

    def test_non_numeric_rate_rejected(self):
        with pytest.raises(ValueError, match="Invalid conversion rate"):
            convert(Money.of("1", "USD"), "abc", "EUR")

    def test_original_unchanged(self):
        original = Money.of("5.00", "EUR")
        convert(original, Decimal("2"), "USD")
        assert original == Money.of("5.00", "EUR")


class TestFormatting:
    """Test display formatting."""

    def test_usd_default_locale(self):
        assert format_money(Money.of("1234.5", "USD")) == "$1,234.50"

    def test_german_locale(self):
        assert format_money(Money.of("1234.5", "EUR"), "de_DE") == "1.234,50 €"

    def test_french_locale(self):
        assert format_money(Money.of("1234.5", "EUR"), "fr_FR") == "1 234,50 €"

    def test_zero_decimal_currency(self):
        assert format_money(Money.of("1200", "JPY")) == "¥1,200"

    def test_unknown_symbol_uses_code(self):
        assert format_money(Money.of("12", "SEK")) == "12.00 SEK"

    def test_negative_amount(self):
        assert format_money(Money.of("-3.5", "USD")) == "-$3.50"

    def test_unknown_locale_falls_back(self):
        assert format_money(Money.of("1000", "USD"), "xx_XX") == "$1,000.00"
