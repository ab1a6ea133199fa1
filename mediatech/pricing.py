from __future__ import annotations
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Iterable, Union

from .errors import ValidationError

Number = Union[Decimal, int, float, str]

CENT = Decimal("0.01")


def to_decimal(value: Number | None) -> Decimal:
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    # str() first so floats like 0.1 keep their printed value
    return Decimal(str(value))


def checked_amount(value: Number | None, label: str) -> Decimal:
    """to_decimal for user input: a finite number or ValidationError."""
    try:
        amount = to_decimal(value)
    except InvalidOperation as exc:
        raise ValidationError(f"{label} is not a number, got {value!r}") from exc
    if not amount.is_finite():
        raise ValidationError(f"{label} must be a finite number, got {value!r}")
    return amount


def validate_line(quantity: int, daily_rate: Number, days: int) -> None:
    if int(quantity) < 1:
        raise ValidationError(f"Quantity must be at least 1, got {quantity}")
    if int(days) < 1:
        raise ValidationError(f"Days must be at least 1, got {days}")
    if checked_amount(daily_rate, "Daily rate") < 0:
        raise ValidationError(f"Daily rate must not be negative, got {daily_rate}")


def validate_adjustments(discount_percent: Number, additional_costs: Number) -> None:
    discount = checked_amount(discount_percent, "Discount")
    if discount < 0 or discount > 100:
        raise ValidationError(f"Discount must be between 0 and 100 percent, got {discount_percent}")
    if checked_amount(additional_costs, "Additional costs") < 0:
        raise ValidationError(f"Additional costs must not be negative, got {additional_costs}")


def item_total(quantity: int, daily_rate: Number, days: int) -> Decimal:
    return int(quantity) * to_decimal(daily_rate) * int(days)


def items_total(items: Iterable) -> Decimal:
    """Sum of quantity * daily_rate * days over RentalItem-like objects."""
    return sum((item_total(it.quantity, it.daily_rate, it.days) for it in items), Decimal("0"))


def calculated_total_price(items: Iterable, discount_percent: Number = 0, additional_costs: Number = 0) -> Decimal:
    items = list(items)
    for it in items:
        validate_line(it.quantity, it.daily_rate, it.days)
    validate_adjustments(discount_percent, additional_costs)

    with_discount = items_total(items) * (1 - to_decimal(discount_percent) / 100)
    return with_discount + to_decimal(additional_costs)


def price_breakdown(items: Iterable, discount_percent: Number = 0, additional_costs: Number = 0) -> dict:
    """Rounded figures for documents and the UI; the total matches calculated_total_price."""
    items = list(items)
    total = calculated_total_price(items, discount_percent, additional_costs)
    subtotal = items_total(items)
    discount = subtotal * to_decimal(discount_percent) / 100
    return {
        "subtotal": round_money(subtotal),
        "discount": round_money(discount),
        "additional_costs": round_money(to_decimal(additional_costs)),
        "total": round_money(total),
    }


def round_money(value: Number) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)
