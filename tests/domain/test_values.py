"""
Tests for the monetary value objects (``consolidation_kernel.domain.values``).

Covers:
- MonetaryAmount construction, normalization and rejection of floats
- Same-currency arithmetic and comparison
- Rounding and presentation
- Percentage range, ratio conversion and complement
- CurrencyRegistry lookups
"""

import dataclasses
from decimal import Decimal

import pytest

from consolidation_kernel.domain.currency import CurrencyRegistry
from consolidation_kernel.domain.values import MonetaryAmount, Percentage, to_decimal
from consolidation_kernel.exceptions import (
    CurrencyMismatchError,
    DivisionByZeroError,
    InvalidAmountError,
    InvalidCurrencyError,
    InvalidPercentageError,
)


class TestMonetaryAmountConstruction:
    """Tests for creating MonetaryAmount values."""

    def test_of_normalizes_to_four_places(self):
        """Amounts carry at least four fractional digits."""
        amount = MonetaryAmount.of("100.5", "USD")
        assert amount.amount == Decimal("100.5000")
        assert amount.amount.as_tuple().exponent == -4

    def test_higher_precision_is_kept(self):
        """Rates can produce more than four digits; they are not truncated."""
        amount = MonetaryAmount.of("1.123456", "USD")
        assert amount.amount == Decimal("1.123456")

    def test_currency_uppercased(self):
        assert MonetaryAmount.of("1", "eur").currency == "EUR"

    def test_float_rejected(self):
        with pytest.raises(InvalidAmountError):
            MonetaryAmount.of(1.5, "USD")

    def test_bool_rejected(self):
        with pytest.raises(InvalidAmountError):
            MonetaryAmount.of(True, "USD")

    def test_garbage_string_rejected(self):
        with pytest.raises(InvalidAmountError):
            MonetaryAmount.from_string("twelve", "USD")

    def test_non_finite_rejected(self):
        with pytest.raises(InvalidAmountError):
            to_decimal("Infinity")

    def test_unknown_currency_rejected(self):
        with pytest.raises(InvalidCurrencyError):
            MonetaryAmount.of("1", "XXX")

    def test_zero(self):
        zero = MonetaryAmount.zero("GBP")
        assert zero.is_zero
        assert not zero.is_positive
        assert not zero.is_negative

    def test_immutable(self):
        amount = MonetaryAmount.of("1", "USD")
        with pytest.raises(dataclasses.FrozenInstanceError):
            amount.amount = Decimal("2")

    def test_equality_ignores_scale(self):
        assert MonetaryAmount.of("100", "USD") == MonetaryAmount.of(Decimal("100.000000000"), "USD")


class TestMonetaryAmountArithmetic:
    """Tests for same-currency arithmetic."""

    def test_add_and_subtract(self):
        a = MonetaryAmount.of("100.25", "USD")
        b = MonetaryAmount.of("50.75", "USD")
        assert a + b == MonetaryAmount.of("151", "USD")
        assert a - b == MonetaryAmount.of("49.5", "USD")

    def test_add_currency_mismatch(self):
        with pytest.raises(CurrencyMismatchError) as exc_info:
            MonetaryAmount.of("1", "USD") + MonetaryAmount.of("1", "EUR")
        assert exc_info.value.expected == "USD"
        assert exc_info.value.actual == "EUR"

    def test_multiply_by_rate(self):
        amount = MonetaryAmount.of("1000", "EUR").multiply(Decimal("1.10"))
        assert amount == MonetaryAmount.of("1100", "EUR")

    def test_divide(self):
        assert MonetaryAmount.of("10", "USD") / 4 == MonetaryAmount.of("2.5", "USD")

    def test_divide_by_zero(self):
        with pytest.raises(DivisionByZeroError):
            MonetaryAmount.of("10", "USD").divide(0)

    def test_negate_and_abs(self):
        amount = MonetaryAmount.of("-42", "USD")
        assert -amount == MonetaryAmount.of("42", "USD")
        assert abs(amount) == MonetaryAmount.of("42", "USD")
        assert amount.is_negative

    def test_sum(self):
        total = MonetaryAmount.sum(
            [MonetaryAmount.of("1", "USD"), MonetaryAmount.of("2", "USD")], "USD",
        )
        assert total == MonetaryAmount.of("3", "USD")

    def test_sum_empty_is_zero(self):
        assert MonetaryAmount.sum([], "JPY") == MonetaryAmount.zero("JPY")

    def test_sum_currency_mismatch(self):
        with pytest.raises(CurrencyMismatchError):
            MonetaryAmount.sum([MonetaryAmount.of("1", "EUR")], "USD")


class TestMonetaryAmountComparison:
    """Tests for compare, max/min and operators."""

    def test_compare(self):
        small = MonetaryAmount.of("1", "USD")
        large = MonetaryAmount.of("2", "USD")
        assert small.compare(large) == -1
        assert large.compare(small) == 1
        assert small.compare(MonetaryAmount.of("1.0000", "USD")) == 0

    def test_operators(self):
        small = MonetaryAmount.of("1", "USD")
        large = MonetaryAmount.of("2", "USD")
        assert small < large
        assert large >= small
        assert large.greater_than(small)

    def test_max_min(self):
        small = MonetaryAmount.of("1", "USD")
        large = MonetaryAmount.of("2", "USD")
        assert small.max(large) is large
        assert small.min(large) is small

    def test_compare_currency_mismatch(self):
        with pytest.raises(CurrencyMismatchError):
            MonetaryAmount.of("1", "USD").compare(MonetaryAmount.of("1", "GBP"))


class TestMonetaryAmountPresentation:
    """Tests for rounding and formatting."""

    def test_round_half_up(self):
        assert MonetaryAmount.of("2.345", "USD").round(2).amount == Decimal("2.35")
        assert MonetaryAmount.of("-2.345", "USD").round(2).amount == Decimal("-2.35")

    def test_format_strips_trailing_zeros(self):
        assert MonetaryAmount.of("100.5", "USD").format() == "100.5"
        assert MonetaryAmount.zero("USD").format() == "0"

    def test_str(self):
        assert str(MonetaryAmount.of("100.50", "USD")) == "100.5 USD"


class TestPercentage:
    """Tests for the Percentage value object."""

    def test_valid_range(self):
        assert Percentage.of("0").is_zero
        assert Percentage.of("100").is_full

    @pytest.mark.parametrize("value", ["-0.01", "100.01"])
    def test_out_of_range_rejected(self, value):
        with pytest.raises(InvalidPercentageError):
            Percentage.of(value)

    def test_non_numeric_rejected(self):
        with pytest.raises(InvalidPercentageError):
            Percentage("abc")

    def test_from_decimal(self):
        assert Percentage.from_decimal("0.25").value == Decimal("25")

    def test_to_decimal(self):
        assert Percentage.of("80").to_decimal() == Decimal("0.8")

    def test_complement(self):
        assert Percentage.of("80").complement() == Percentage.of("20")

    def test_format(self):
        assert Percentage.of("25.50").format() == "25.5%"
        assert str(Percentage.ZERO) == "0%"

    def test_constants(self):
        assert Percentage.TWENTY.value == Decimal("20")
        assert Percentage.FIFTY.value == Decimal("50")
        assert Percentage.HUNDRED.is_full


class TestCurrencyRegistry:
    """Tests for ISO 4217 lookups."""

    def test_is_valid(self):
        assert CurrencyRegistry.is_valid("USD")
        assert not CurrencyRegistry.is_valid("usd")

    def test_decimal_places(self):
        assert CurrencyRegistry.get_decimal_places("USD") == 2
        assert CurrencyRegistry.get_decimal_places("JPY") == 0
        assert CurrencyRegistry.get_decimal_places("KWD") == 3

    def test_unknown_defaults_to_two_places(self):
        assert CurrencyRegistry.get_decimal_places("ZZZ") == 2

    def test_minor_unit(self):
        assert CurrencyRegistry.get_info("KWD").minor_unit == Decimal("0.001")

    def test_validate_normalizes(self):
        assert CurrencyRegistry.validate(" gbp ") == "GBP"

    def test_validate_rejects_unknown(self):
        with pytest.raises(InvalidCurrencyError):
            CurrencyRegistry.validate("ABC")

    def test_all_codes(self):
        codes = CurrencyRegistry.all_codes()
        assert {"USD", "EUR", "GBP", "JPY"} <= codes
