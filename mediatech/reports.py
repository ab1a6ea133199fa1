# mediatech/reports.py
"""Figures for the dashboard and the statistics page."""
from __future__ import annotations

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

import pandas as pd

from .db_models import Category, Customer, DisplayStatus, Equipment, Rental, RentalStatus, as_utc, utcnow
from .status import derive_display_status

PERIOD_DAYS = {"month": 30, "quarter": 91, "year": 365}


def period_start(period: str, now: Optional[datetime] = None) -> datetime:
    if period not in PERIOD_DAYS:
        raise ValueError(f"Unknown period: {period}")
    return (as_utc(now) if now else utcnow()) - timedelta(days=PERIOD_DAYS[period])


def dashboard_counts(equipment: Iterable[Equipment], rentals: Iterable[Rental],
                     now: Optional[datetime] = None) -> Dict[str, int]:
    equipment = [e for e in equipment if e.is_active]
    statuses = [derive_display_status(r, now) for r in rentals]
    return {
        "equipment": len(equipment),
        "available": sum(1 for e in equipment if e.is_available),
        "rented": sum(1 for e in equipment if not e.is_available),
        "reserved": statuses.count(DisplayStatus.RESERVED),
        "active": statuses.count(DisplayStatus.ACTIVE),
        "overdue": statuses.count(DisplayStatus.OVERDUE),
        "maintenance_due": sum(1 for e in equipment if e.is_maintenance_due(now)),
    }


def total_revenue(rentals: Iterable[Rental], since: Optional[datetime] = None) -> Decimal:
    """Sum of total_price over returned rentals created on or after `since`."""
    since = as_utc(since)
    return sum(
        (r.total_price for r in rentals
         if RentalStatus(r.status) is RentalStatus.RETURNED and (since is None or as_utc(r.created_at) >= since)),
        Decimal("0"),
    )


def _month(value: datetime) -> pd.Period:
    # Period has no timezone; bucket by the UTC calendar month
    return pd.Period(as_utc(value).replace(tzinfo=None), freq="M")


def revenue_by_month(rentals: Iterable[Rental], months: int = 12, now: Optional[datetime] = None) -> pd.DataFrame:
    """One row per calendar month (oldest first), zero where nothing was returned."""
    index = pd.period_range(end=_month(now or utcnow()), periods=months, freq="M")
    rows = [
        {"month": _month(r.created_at), "revenue": float(r.total_price)}
        for r in rentals if RentalStatus(r.status) is RentalStatus.RETURNED
    ]
    if rows:
        revenue = pd.DataFrame(rows).groupby("month")["revenue"].sum()
    else:
        revenue = pd.Series(dtype=float)
    out = revenue.reindex(index, fill_value=0.0).rename_axis("month").reset_index()
    out.columns = ["month", "revenue"]
    out["month"] = out["month"].astype(str)
    return out


def status_distribution(rentals: Iterable[Rental], now: Optional[datetime] = None) -> pd.DataFrame:
    statuses = [derive_display_status(r, now).value for r in rentals]
    if not statuses:
        return pd.DataFrame(columns=["status", "count", "share"])
    counts = pd.Series(statuses).value_counts()
    order = [s.value for s in DisplayStatus if s.value in counts.index]
    counts = counts.reindex(order)
    return pd.DataFrame({
        "status": counts.index,
        "count": counts.values,
        "share": (counts / counts.sum()).values,
    })


def equipment_by_category(equipment: Iterable[Equipment], categories: Iterable[Category]) -> pd.DataFrame:
    names = {c.id: c.name for c in categories}
    labels = [names.get(e.category_id, "Uncategorized") for e in equipment if e.is_active]
    if not labels:
        return pd.DataFrame(columns=["category", "count"])
    counts = pd.Series(labels).value_counts()
    return pd.DataFrame({"category": counts.index, "count": counts.values})


def top_equipment(equipment: Iterable[Equipment], limit: int = 5) -> List[Equipment]:
    ranked = sorted((e for e in equipment if e.total_rentals > 0), key=lambda e: e.total_rentals, reverse=True)
    return ranked[:limit]


def customer_revenue(customer: Customer) -> Decimal:
    return total_revenue(customer.rentals)


def top_customers(customers: Iterable[Customer], limit: int = 5) -> List[Customer]:
    scored = [(customer_revenue(c), c) for c in customers]
    ranked = sorted((pair for pair in scored if pair[0] > 0), key=lambda pair: pair[0], reverse=True)
    return [c for _, c in ranked[:limit]]
