from dataclasses import dataclass
from decimal import Decimal

import pytest

from mediatech.errors import ValidationError
from mediatech.pricing import (
    calculated_total_price,
    item_total,
    price_breakdown,
    round_money,
    to_decimal,
    validate_line,
)


@dataclass
class Line:
    quantity: int
    daily_rate: Decimal
    days: int


def test_reference_total():
    items = [Line(2, Decimal("50"), 3)]
    assert calculated_total_price(items, 10, 20) == Decimal("290")


def test_no_items_is_just_additional_costs():
    assert calculated_total_price([], 50, Decimal("12.50")) == Decimal("12.50")


def test_full_discount():
    assert calculated_total_price([Line(1, Decimal("99.99"), 2)], 100) == 0


def test_float_inputs_keep_printed_value():
    assert to_decimal(0.1) == Decimal("0.1")
    assert item_total(3, 0.1, 1) == Decimal("0.3")


@pytest.mark.parametrize("discount", [-0.01, 100.5, 150])
def test_discount_out_of_range(discount):
    with pytest.raises(ValidationError):
        calculated_total_price([Line(1, Decimal("10"), 1)], discount)


@pytest.mark.parametrize("line", [Line(0, Decimal("10"), 1), Line(1, Decimal("-1"), 1), Line(1, Decimal("10"), 0)])
def test_bad_lines(line):
    with pytest.raises(ValidationError):
        calculated_total_price([line])


def test_breakdown_is_rounded():
    items = [Line(1, Decimal("33.333"), 1)]
    out = price_breakdown(items, 10, 0)
    assert out == {
        "subtotal": Decimal("33.33"),
        "discount": Decimal("3.33"),
        "additional_costs": Decimal("0.00"),
        "total": Decimal("30.00"),
    }


def test_round_money_half_up():
    assert round_money("2.345") == Decimal("2.35")


@pytest.mark.parametrize("bad", [float("nan"), float("inf"), "NaN", "abc"])
def test_non_numeric_amounts_are_validation_errors(bad):
    with pytest.raises(ValidationError):
        calculated_total_price([Line(1, Decimal("10"), 1)], bad)
    with pytest.raises(ValidationError):
        calculated_total_price([Line(1, Decimal("10"), 1)], 0, bad)
    with pytest.raises(ValidationError):
        validate_line(1, bad, 1)
