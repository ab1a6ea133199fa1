from datetime import timedelta
from decimal import Decimal

import pytest

from conftest import NOW, unit
from mediatech import reports
from mediatech.db_models import Category, Customer, Rental, RentalStatus


def rental(status, total, created=NOW, end=NOW + timedelta(days=1)):
    return Rental(rental_number="AUS", status=status, total_price=Decimal(total), created_at=created,
                  planned_start_date=NOW - timedelta(days=1), planned_end_date=end)


def test_period_start():
    assert reports.period_start("month", NOW) == NOW - timedelta(days=30)
    with pytest.raises(ValueError):
        reports.period_start("decade", NOW)


def test_dashboard_counts():
    free, busy, retired = unit(), unit(number="INV-00002"), unit(number="INV-00003")
    busy.is_available = False
    retired.is_active = False
    free.next_maintenance_date = NOW - timedelta(days=1)
    rentals = [
        rental(RentalStatus.RESERVED, "10"),
        rental(RentalStatus.ACTIVE, "10"),
        rental(RentalStatus.ACTIVE, "10", end=NOW - timedelta(days=2)),
    ]
    counts = reports.dashboard_counts([free, busy, retired], rentals, NOW)
    assert counts == {
        "equipment": 2, "available": 1, "rented": 1,
        "reserved": 1, "active": 1, "overdue": 1, "maintenance_due": 1,
    }


def test_revenue_counts_returned_only():
    rentals = [
        rental(RentalStatus.RETURNED, "100"),
        rental(RentalStatus.RETURNED, "50", created=NOW - timedelta(days=60)),
        rental(RentalStatus.CANCELLED, "999"),
    ]
    assert reports.total_revenue(rentals) == Decimal("150")
    assert reports.total_revenue(rentals, since=reports.period_start("month", NOW)) == Decimal("100")


def test_revenue_by_month_fills_gaps():
    rentals = [
        rental(RentalStatus.RETURNED, "100"),
        rental(RentalStatus.RETURNED, "40", created=NOW - timedelta(days=62)),
    ]
    df = reports.revenue_by_month(rentals, months=3, now=NOW)
    assert list(df["month"]) == ["2026-08", "2026-09", "2026-10"]
    assert list(df["revenue"]) == [40.0, 0.0, 100.0]


def test_revenue_by_month_empty():
    df = reports.revenue_by_month([], months=2, now=NOW)
    assert list(df["revenue"]) == [0.0, 0.0]


def test_status_distribution():
    rentals = [rental(RentalStatus.RESERVED, "1"), rental(RentalStatus.RESERVED, "1"),
               rental(RentalStatus.ACTIVE, "1", end=NOW - timedelta(days=1))]
    df = reports.status_distribution(rentals, NOW)
    assert list(df["status"]) == ["reserved", "overdue"]
    assert list(df["count"]) == [2, 1]


def test_equipment_by_category():
    audio = Category(name="Audio")
    mic = unit(category_id=audio.id)
    df = reports.equipment_by_category([mic, unit(number="INV-00002")], [audio])
    assert dict(zip(df["category"], df["count"])) == {"Audio": 1, "Uncategorized": 1}


def test_top_customers():
    big, small, idle = Customer(first_name="Big"), Customer(first_name="Small"), Customer(first_name="Idle")
    big.rentals.append(rental(RentalStatus.RETURNED, "500"))
    small.rentals.append(rental(RentalStatus.RETURNED, "20"))
    idle.rentals.append(rental(RentalStatus.CANCELLED, "900"))
    assert reports.top_customers([small, idle, big]) == [big, small]
