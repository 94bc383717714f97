"""Unit tests for domain value objects."""

from decimal import Decimal

import pytest

from checkout.domain.exceptions import InvalidInputError
from checkout.domain.model.value_objects import Money, Quantity, round_half_up, to_decimal


# ── Money ────────────────────────────────────────────────────────────────────


class TestMoney:

    def test_creation(self):
        m = Money(Decimal("10.50"))
        assert m.amount == Decimal("10.50")
        assert m.currency == "INR"

    def test_of_factory_from_string(self):
        assert Money.of("25.99").amount == Decimal("25.99")

    def test_of_factory_from_float_goes_through_str(self):
        assert Money.of(0.1).amount == Decimal("0.1")

    def test_float_amount_rejected(self):
        with pytest.raises(InvalidInputError, match="must be a Decimal"):
            Money(10.5)

    def test_negative_amount_rejected(self):
        with pytest.raises(InvalidInputError, match="cannot be negative"):
            Money(Decimal("-1"))

    def test_non_finite_rejected(self):
        with pytest.raises(InvalidInputError, match="Invalid money amount"):
            Money.of("NaN")

    def test_garbage_rejected(self):
        with pytest.raises(InvalidInputError, match="Invalid money amount"):
            Money.of("ten rupees")

    def test_addition(self):
        assert Money.of("10") + Money.of("5.50") == Money.of("15.50")

    def test_subtraction_going_negative_rejected(self):
        with pytest.raises(InvalidInputError, match="negative amount"):
            Money.of("5") - Money.of("10")

    def test_minus_floor_zero_clamps(self):
        assert Money.of("5").minus_floor_zero(Money.of("10")) == Money.zero()

    def test_multiplication_by_int(self):
        assert Money.of("7.50") * 3 == Money.of("22.50")

    def test_multiplication_by_bool_rejected(self):
        with pytest.raises(TypeError):
            Money.of("7.50") * True

    def test_currency_mismatch_rejected(self):
        with pytest.raises(InvalidInputError, match="Cannot combine"):
            Money(Decimal("10"), "INR") + Money(Decimal("5"), "USD")

    def test_percent_keeps_full_precision(self):
        assert Money.of("10.05").percent(Decimal("18")).amount == Decimal("1.809")

    def test_rounded_is_half_up(self):
        assert Money.of("0.125").rounded() == Money.of("0.13")
        assert Money.of("0.124").rounded() == Money.of("0.12")

    def test_str_formatting(self):
        assert str(Money.of("15")) == "₹15.00"
        assert str(Money.of("12500.5")) == "₹12,500.50"
        assert str(Money.of("3", "USD")) == "$3.00"
        assert str(Money.of("3", "JPY")) == "JPY 3.00"

    def test_comparison_operators(self):
        assert Money.of("5") < Money.of("10")
        assert Money.of("10") > Money.of("5")
        assert Money.of("10") >= Money.of("10")
        assert Money.of("10") <= Money.of("10")


class TestDecimalHelpers:

    def test_to_decimal_passes_decimals_through(self):
        value = Decimal("1.234")
        assert to_decimal(value) is value

    def test_to_decimal_rejects_infinity(self):
        with pytest.raises(InvalidInputError, match="Invalid distance"):
            to_decimal("inf", "distance")

    def test_round_half_up_at_the_midpoint(self):
        assert round_half_up(Decimal("2.675")) == Decimal("2.68")
        assert round_half_up(Decimal("-2.675")) == Decimal("-2.68")


# ── Quantity ─────────────────────────────────────────────────────────────────


class TestQuantity:

    def test_valid_quantity(self):
        assert Quantity(5).value == 5

    def test_zero_rejected(self):
        with pytest.raises(InvalidInputError, match="must be positive"):
            Quantity(0)

    def test_negative_rejected(self):
        with pytest.raises(InvalidInputError, match="must be positive"):
            Quantity(-3)

    def test_non_integer_rejected(self):
        with pytest.raises(InvalidInputError, match="must be an integer"):
            Quantity(1.5)

    def test_str(self):
        assert str(Quantity(7)) == "7"
