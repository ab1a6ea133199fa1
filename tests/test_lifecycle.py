from datetime import timedelta
from decimal import Decimal

import pytest

from conftest import NOW, unit
from mediatech import lifecycle
from mediatech.db_models import Rental, RentalItem, RentalStatus
from mediatech.errors import InvalidTransition, ValidationError


def reserve(*units, days=3, **options):
    units = units or (unit(),)
    return lifecycle.reserve_rental(
        "AUS-20261019-0001", units, NOW, NOW + timedelta(days=days), **options
    )


def test_reserve_builds_items_and_blocks_equipment():
    cam, light = unit(), unit("Light", "20", "INV-00002")
    r = reserve(cam, light, discount_percent=10, additional_costs=5)

    assert r.status == RentalStatus.RESERVED
    assert len(r.items) == 2
    assert all(it.days == 3 for it in r.items)
    assert not cam.is_available and not light.is_available
    # (50 + 20) * 3 * 0.9 + 5
    assert r.total_price == Decimal("194")


def test_reserve_copies_daily_rate():
    cam = unit(daily_rate="50")
    r = reserve(cam)
    cam.daily_rate = Decimal("80")
    assert r.items[0].daily_rate == Decimal("50")


@pytest.mark.parametrize("kwargs", [
    {"discount_percent": 150},
    {"discount_percent": -1},
    {"additional_costs": -5},
    {"deposit_amount": -10},
    {"quantity": 0},
])
def test_reserve_rejects_bad_input_without_side_effects(kwargs):
    cam = unit()
    with pytest.raises(ValidationError):
        reserve(cam, **kwargs)
    assert cam.is_available


def test_reserve_rejects_end_before_start():
    with pytest.raises(ValidationError):
        lifecycle.reserve_rental("X", [unit()], NOW, NOW - timedelta(days=1))


def test_reserve_rejects_empty_and_duplicate_equipment():
    with pytest.raises(ValidationError):
        lifecycle.reserve_rental("X", [], NOW, NOW + timedelta(days=1))
    cam = unit()
    with pytest.raises(ValidationError):
        reserve(cam, cam)


def test_reserve_rejects_unavailable_equipment_all_or_nothing():
    free, busy = unit(), unit("Busy", "10", "INV-00002")
    busy.is_available = False
    with pytest.raises(ValidationError):
        reserve(free, busy)
    assert free.is_available


def test_reserve_rejects_retired_equipment():
    cam = unit()
    cam.is_active = False
    with pytest.raises(ValidationError):
        reserve(cam)


def test_start_sets_active_and_time():
    cam = unit()
    r = reserve(cam)
    cam.is_available = True  # pretend the reservation did not block it
    lifecycle.start_rental(r, now=NOW)

    assert r.status == RentalStatus.ACTIVE
    assert r.actual_start_date == NOW
    assert cam.is_available is False


@pytest.mark.parametrize("status", [RentalStatus.ACTIVE, RentalStatus.RETURNED, RentalStatus.CANCELLED])
def test_start_guard_leaves_everything_unchanged(status):
    cam = unit()
    r = reserve(cam)
    r.status = status
    cam.is_available = True

    with pytest.raises(InvalidTransition) as exc:
        lifecycle.start_rental(r, now=NOW)

    assert exc.value.status == status
    assert r.status == status
    assert r.actual_start_date is None
    assert cam.is_available is True


def test_cancel_twice():
    cam = unit()
    r = reserve(cam)
    lifecycle.cancel_rental(r)
    assert r.status == RentalStatus.CANCELLED
    assert cam.is_available

    with pytest.raises(InvalidTransition):
        lifecycle.cancel_rental(r)


def test_cancel_active_rental_is_rejected():
    r = reserve()
    lifecycle.start_rental(r, now=NOW)
    with pytest.raises(InvalidTransition):
        lifecycle.cancel_rental(r)
    assert r.status == RentalStatus.ACTIVE


def test_complete_frees_every_unit_and_appends_notes():
    units = [unit(f"Item {i}", "10", f"INV-0000{i}") for i in range(1, 4)]
    r = reserve(*units, notes="Fragile")
    lifecycle.start_rental(r, now=NOW)

    lifecycle.complete_rental(r, deposit_returned=True, return_notes="All fine", now=NOW + timedelta(days=1))

    assert r.status == RentalStatus.RETURNED
    assert r.actual_end_date == NOW + timedelta(days=1)
    assert r.deposit_returned is True
    assert r.notes == "Fragile\n\nReturn: All fine"
    assert all(u.is_available for u in units)


def test_complete_frees_equipment_still_listed_elsewhere():
    cam = unit()
    r = reserve(cam)
    lifecycle.start_rental(r, now=NOW)

    # a second open rental pointing at the same unit, built by hand
    other = Rental(rental_number="AUS-20261019-0002", planned_start_date=NOW,
                   planned_end_date=NOW + timedelta(days=1))
    stray = RentalItem(quantity=1, daily_rate=Decimal("50"), days=1)
    stray.equipment = cam
    other.items.append(stray)

    lifecycle.complete_rental(r, now=NOW)
    assert cam.is_available is True
    assert other.status == RentalStatus.RESERVED


def test_complete_overdue_rental():
    r = reserve(days=1)
    lifecycle.start_rental(r, now=NOW)
    lifecycle.complete_rental(r, now=NOW + timedelta(days=5))
    assert r.status == RentalStatus.RETURNED


@pytest.mark.parametrize("status", [RentalStatus.RESERVED, RentalStatus.RETURNED, RentalStatus.CANCELLED])
def test_complete_guard(status):
    cam = unit()
    r = reserve(cam)
    r.status = status
    with pytest.raises(InvalidTransition):
        lifecycle.complete_rental(r, return_notes="x", now=NOW)
    assert r.status == status
    assert r.actual_end_date is None
    assert r.notes == ""
    assert cam.is_available is False


def test_add_and_remove_items_refresh_total():
    r = reserve(unit(daily_rate="50"))
    assert r.total_price == Decimal("150")

    light = unit("Light", "20", "INV-00002")
    item = lifecycle.add_item(r, light, quantity=2)
    assert item.days == 3
    assert r.total_price == Decimal("270")
    assert light.is_available is False

    lifecycle.remove_item(r, item)
    assert r.total_price == Decimal("150")
    assert light.is_available is True


def test_items_are_frozen_after_start():
    r = reserve()
    lifecycle.start_rental(r, now=NOW)
    with pytest.raises(InvalidTransition):
        lifecycle.add_item(r, unit("Light", "20", "INV-00002"))
    with pytest.raises(InvalidTransition):
        lifecycle.remove_item(r, r.items[0])


def test_protocols():
    r = reserve()
    with pytest.raises(InvalidTransition):
        lifecycle.record_return_protocol(r, "too early")

    lifecycle.record_handover_protocol(r, "Checked", b"sig", now=NOW)
    assert r.has_handover_protocol
    assert r.handover_date == NOW

    lifecycle.start_rental(r, now=NOW)
    lifecycle.record_return_protocol(r, "Back", now=NOW)
    assert r.has_return_protocol
    assert r.return_signature is None


def test_item_return_condition():
    r = reserve()
    item = lifecycle.record_item_return(r.items[0], "scratched", has_damage=True)
    assert item.return_condition == "scratched"
    assert item.has_damage


def test_invalid_transition_message():
    err = InvalidTransition("start", RentalStatus.CANCELLED, "AUS-1")
    assert str(err) == "Cannot start rental AUS-1 in status 'cancelled'"
