# mediatech/status.py
"""
Read-time views of a rental's status.

Nothing in here writes to the rental: "overdue" is derived from the stored
status and the clock every time it is asked for.
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from .db_models import Customer, DisplayStatus, Rental, RentalStatus, as_utc, utcnow


def derive_display_status(rental: Rental, now: Optional[datetime] = None) -> DisplayStatus:
    now = as_utc(now) if now else utcnow()
    stored = RentalStatus(rental.status)
    if stored is RentalStatus.ACTIVE and as_utc(rental.planned_end_date) < now:
        return DisplayStatus.OVERDUE
    return DisplayStatus(stored.value)


def is_overdue(rental: Rental, now: Optional[datetime] = None) -> bool:
    return derive_display_status(rental, now) is DisplayStatus.OVERDUE


def days_overdue(rental: Rental, now: Optional[datetime] = None) -> int:
    now = as_utc(now) if now else utcnow()
    if not is_overdue(rental, now):
        return 0
    return (now - as_utc(rental.planned_end_date)).days


def number_of_days(rental: Rental) -> int:
    """Whole days between the effective start and end, never less than 1."""
    start = as_utc(rental.actual_start_date or rental.planned_start_date)
    end = as_utc(rental.actual_end_date or rental.planned_end_date)
    return max(1, (end - start).days)


def has_active_rentals(customer: Customer, now: Optional[datetime] = None) -> bool:
    return active_rental_count(customer, now) > 0


def active_rental_count(customer: Customer, now: Optional[datetime] = None) -> int:
    return sum(1 for r in customer.rentals if derive_display_status(r, now).is_active)
