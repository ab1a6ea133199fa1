# mediatech/lifecycle.py
"""
Rental lifecycle: reserved -> active -> returned, reserved -> cancelled.

Every operation checks its guard before touching anything, so a failed call
leaves the rental and its equipment exactly as they were. Persisting the
result is the caller's job (see store.py).
"""
from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional

from .db_models import Customer, Equipment, Rental, RentalItem, RentalStatus, as_utc, utcnow
from .errors import InvalidTransition, ValidationError
from .pricing import Number, calculated_total_price, checked_amount, to_decimal, validate_adjustments, validate_line
from .status import derive_display_status, number_of_days

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------
def _require(rental: Rental, operation: str, *allowed: RentalStatus) -> None:
    if RentalStatus(rental.status) not in allowed:
        raise InvalidTransition(operation, RentalStatus(rental.status), rental.rental_number)


def _check_rentable(equipment: Equipment) -> None:
    if not equipment.is_active:
        raise ValidationError(f"Equipment {equipment.inventory_number} is retired")
    if not equipment.is_available:
        raise ValidationError(f"Equipment {equipment.inventory_number} is already rented or reserved")


def _set_availability(rental: Rental, available: bool) -> None:
    for item in rental.items:
        if item.equipment is not None:
            item.equipment.is_available = available
            item.equipment.touch()


def refresh_total_price(rental: Rental) -> Decimal:
    rental.total_price = calculated_total_price(rental.items, rental.discount_percent, rental.additional_costs)
    return rental.total_price


# ---------------------------------------------------------------------
# Creation
# ---------------------------------------------------------------------
def reserve_rental(
    rental_number: str,
    equipment: Iterable[Equipment],
    planned_start_date: datetime,
    planned_end_date: datetime,
    customer: Optional[Customer] = None,
    quantity: int = 1,
    deposit_amount: Number = 0,
    discount_percent: Number = 0,
    additional_costs: Number = 0,
    additional_costs_description: str = "",
    purpose: str = "",
    event_location: str = "",
    notes: str = "",
) -> Rental:
    """
    Build a Reserved rental with one line item per equipment unit.

    Daily rates are copied from the equipment at this point; later rate
    changes on the equipment do not touch the rental. Every unit is marked
    unavailable right away so it cannot be reserved twice.
    """
    units = list(equipment)
    planned_start_date, planned_end_date = as_utc(planned_start_date), as_utc(planned_end_date)
    if not units:
        raise ValidationError("A rental needs at least one piece of equipment")
    if planned_end_date < planned_start_date:
        raise ValidationError("Planned end date is before planned start date")
    if len({u.id for u in units}) != len(units):
        raise ValidationError("The same equipment is listed more than once")
    if checked_amount(deposit_amount, "Deposit") < 0:
        raise ValidationError(f"Deposit must not be negative, got {deposit_amount}")
    validate_adjustments(discount_percent, additional_costs)
    days = max(1, (planned_end_date - planned_start_date).days)
    for unit in units:
        _check_rentable(unit)
        validate_line(quantity, to_decimal(unit.daily_rate), days)

    rental = Rental(
        rental_number=rental_number,
        planned_start_date=planned_start_date,
        planned_end_date=planned_end_date,
        status=RentalStatus.RESERVED,
        deposit_amount=to_decimal(deposit_amount),
        discount_percent=to_decimal(discount_percent),
        additional_costs=to_decimal(additional_costs),
        additional_costs_description=additional_costs_description,
        purpose=purpose,
        event_location=event_location,
        notes=notes,
    )
    if customer is not None:
        rental.customer = customer

    for unit in units:
        _append_item(rental, unit, quantity, days)

    refresh_total_price(rental)
    logger.info(f"[RENTAL] Reserved {rental_number} with {len(units)} item(s), total {rental.total_price}")
    return rental


def _append_item(rental: Rental, equipment: Equipment, quantity: int, days: int) -> RentalItem:
    rate = to_decimal(equipment.daily_rate)
    validate_line(quantity, rate, days)
    item = RentalItem(quantity=int(quantity), daily_rate=rate, days=int(days))
    item.equipment = equipment
    rental.items.append(item)
    equipment.is_available = False
    equipment.touch()
    return item


def add_item(rental: Rental, equipment: Equipment, quantity: int = 1, days: Optional[int] = None) -> RentalItem:
    _require(rental, "add items to", RentalStatus.RESERVED)
    _check_rentable(equipment)
    days = number_of_days(rental) if days is None else days
    validate_line(quantity, to_decimal(equipment.daily_rate), days)

    item = _append_item(rental, equipment, quantity, days)
    refresh_total_price(rental)
    rental.touch()
    return item


def remove_item(rental: Rental, item: RentalItem) -> None:
    _require(rental, "remove items from", RentalStatus.RESERVED)
    if item not in rental.items:
        raise ValidationError("Item does not belong to this rental")

    rental.items.remove(item)
    if item.equipment is not None:
        item.equipment.is_available = True
        item.equipment.touch()
    refresh_total_price(rental)
    rental.touch()


# ---------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------
def start_rental(rental: Rental, now: Optional[datetime] = None) -> Rental:
    _require(rental, "start", RentalStatus.RESERVED)
    now = as_utc(now) if now else utcnow()

    rental.status = RentalStatus.ACTIVE
    rental.actual_start_date = now
    # already unavailable since reservation; set again for rentals created elsewhere
    _set_availability(rental, False)
    rental.touch()
    logger.info(f"[RENTAL] Started {rental.rental_number}")
    return rental


def cancel_rental(rental: Rental) -> Rental:
    _require(rental, "cancel", RentalStatus.RESERVED)

    rental.status = RentalStatus.CANCELLED
    _set_availability(rental, True)
    rental.touch()
    logger.info(f"[RENTAL] Cancelled {rental.rental_number}")
    return rental


def complete_rental(
    rental: Rental,
    deposit_returned: bool = False,
    return_notes: str = "",
    now: Optional[datetime] = None,
) -> Rental:
    now = as_utc(now) if now else utcnow()
    if not derive_display_status(rental, now).is_active:
        raise InvalidTransition("complete", RentalStatus(rental.status), rental.rental_number)

    rental.status = RentalStatus.RETURNED
    rental.actual_end_date = now
    rental.deposit_returned = deposit_returned
    if return_notes:
        entry = f"Return: {return_notes}"
        rental.notes = f"{rental.notes}\n\n{entry}" if rental.notes else entry
    _set_availability(rental, True)
    rental.touch()
    logger.info(f"[RENTAL] Completed {rental.rental_number}")
    return rental


# ---------------------------------------------------------------------
# Handover / return protocols
# ---------------------------------------------------------------------
def record_handover_protocol(
    rental: Rental,
    notes: str = "",
    signature: Optional[bytes] = None,
    now: Optional[datetime] = None,
) -> Rental:
    _require(rental, "record a handover for", RentalStatus.RESERVED, RentalStatus.ACTIVE)
    rental.handover_notes = notes
    rental.handover_signature = signature
    rental.handover_date = as_utc(now) if now else utcnow()
    rental.touch()
    return rental


def record_return_protocol(
    rental: Rental,
    notes: str = "",
    signature: Optional[bytes] = None,
    now: Optional[datetime] = None,
) -> Rental:
    _require(rental, "record a return for", RentalStatus.ACTIVE, RentalStatus.RETURNED)
    rental.return_notes = notes
    rental.return_signature = signature
    rental.return_date = as_utc(now) if now else utcnow()
    rental.touch()
    return rental


def record_item_return(item: RentalItem, condition: str = "", has_damage: bool = False) -> RentalItem:
    item.return_condition = condition
    item.has_damage = has_damage
    return item
