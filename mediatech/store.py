# mediatech/store.py
"""
Persistence side of the rental core.

Each public function here is one unit of work: it applies a change through
lifecycle.py (or directly, for plain CRUD), writes an audit entry and commits.
If anything fails the session is rolled back, so a rental status change and
the matching equipment availability flips land together or not at all.
"""
from __future__ import annotations

import json
import logging
import uuid
from contextlib import contextmanager
from datetime import datetime, timedelta
from typing import Iterable, Iterator, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, col, or_, select

from . import lifecycle
from .db_models import (
    AuditAction,
    AuditLog,
    Category,
    Condition,
    Customer,
    DamageReport,
    DamageType,
    DisplayStatus,
    Equipment,
    EquipmentTagLink,
    Location,
    MaintenanceRecord,
    MaintenanceType,
    Rental,
    RentalItem,
    Tag,
    as_utc,
    utcnow,
)
from .errors import PersistenceError, ValidationError
from .numbering import next_customer_number, next_inventory_number, next_rental_number
from .pricing import Number, checked_amount, to_decimal
from .qr import QRContent, parse_qr_payload
from .status import derive_display_status, has_active_rentals

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------
# Unit of work
# ---------------------------------------------------------------------
@contextmanager
def unit_of_work(session: Session) -> Iterator[Session]:
    try:
        yield session
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        logger.error(f"[STORE] Commit failed: {exc}")
        raise PersistenceError(str(exc)) from exc
    except Exception:
        session.rollback()
        raise


def log_action(
    session: Session,
    action: AuditAction,
    entity_type: str,
    entity_id: Optional[uuid.UUID] = None,
    entity_name: str = "",
    description: str = "",
    old_values: Optional[dict] = None,
    new_values: Optional[dict] = None,
) -> AuditLog:
    entry = AuditLog(
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        entity_name=entity_name,
        description=description,
        old_values=json.dumps(old_values, default=str) if old_values is not None else None,
        new_values=json.dumps(new_values, default=str) if new_values is not None else None,
    )
    session.add(entry)
    return entry


def _rental_log(session: Session, action: AuditAction, rental: Rental, description: str,
                old_status=None) -> AuditLog:
    return log_action(
        session, action, "Rental", rental.id, rental.rental_number, description,
        old_values={"status": old_status} if old_status is not None else None,
        new_values={"status": rental.status},
    )


# ---------------------------------------------------------------------
# Equipment
# ---------------------------------------------------------------------
def stage_equipment(session: Session, name: str, inventory_number: str = "", **fields) -> Equipment:
    """Validate, number and add one Equipment row without committing."""
    if not name.strip():
        raise ValidationError("Equipment needs a name")
    if fields.get("daily_rate") is not None:
        fields["daily_rate"] = checked_amount(fields["daily_rate"], "Daily rate")
        if fields["daily_rate"] < 0:
            raise ValidationError("Daily rate must not be negative")

    number = inventory_number or next_inventory_number(session)
    equipment = Equipment(name=name, inventory_number=number, **fields)
    session.add(equipment)
    log_action(session, AuditAction.CREATE, "Equipment", equipment.id, equipment.display_name,
               f"Equipment {number} created")
    return equipment


def add_equipment(session: Session, name: str, inventory_number: str = "", **fields) -> Equipment:
    with unit_of_work(session):
        equipment = stage_equipment(session, name, inventory_number, **fields)
    logger.info(f"[STORE] Added equipment {equipment.inventory_number}")
    return equipment


def update_equipment(session: Session, equipment: Equipment, **fields) -> Equipment:
    # availability is owned by the rental lifecycle
    if "is_available" in fields:
        raise ValidationError("Availability changes only through rentals")
    with unit_of_work(session):
        old = {k: getattr(equipment, k) for k in fields}
        for key, value in fields.items():
            setattr(equipment, key, value)
        equipment.touch()
        session.add(equipment)
        log_action(session, AuditAction.UPDATE, "Equipment", equipment.id, equipment.display_name,
                   "Equipment updated", old_values=old, new_values=fields)
    return equipment


def retire_equipment(session: Session, equipment: Equipment) -> Equipment:
    if not equipment.is_available:
        raise ValidationError(f"Equipment {equipment.inventory_number} is out on a rental")
    with unit_of_work(session):
        equipment.is_active = False
        equipment.touch()
        session.add(equipment)
        log_action(session, AuditAction.DELETE, "Equipment", equipment.id, equipment.display_name,
                   f"Equipment {equipment.inventory_number} retired")
    return equipment


def list_equipment(
    session: Session,
    available_only: bool = False,
    include_retired: bool = False,
    category_id: Optional[uuid.UUID] = None,
    search: Optional[str] = None,
) -> List[Equipment]:
    stmt = select(Equipment)
    if not include_retired:
        stmt = stmt.where(Equipment.is_active == True)  # noqa: E712
    if available_only:
        stmt = stmt.where(Equipment.is_available == True)  # noqa: E712
    if category_id is not None:
        stmt = stmt.where(Equipment.category_id == category_id)
    if search:
        like = f"%{search}%"
        stmt = stmt.where(or_(
            col(Equipment.name).ilike(like),
            col(Equipment.manufacturer).ilike(like),
            col(Equipment.model).ilike(like),
            col(Equipment.inventory_number).ilike(like),
            col(Equipment.serial_number).ilike(like),
        ))
    return list(session.exec(stmt.order_by(Equipment.inventory_number)).all())


def set_equipment_tags(session: Session, equipment: Equipment, tags: Iterable[Tag]) -> None:
    with unit_of_work(session):
        for link in session.exec(select(EquipmentTagLink).where(EquipmentTagLink.equipment_id == equipment.id)):
            session.delete(link)
        session.flush()
        for tag in tags:
            session.add(EquipmentTagLink(equipment_id=equipment.id, tag_id=tag.id))


def tags_for(session: Session, equipment: Equipment) -> List[Tag]:
    stmt = (
        select(Tag)
        .join(EquipmentTagLink, EquipmentTagLink.tag_id == Tag.id)
        .where(EquipmentTagLink.equipment_id == equipment.id)
        .order_by(Tag.name)
    )
    return list(session.exec(stmt).all())


def find_by_qr(session: Session, payload: str):
    """Resolve a scanned QR payload to an Equipment or Rental, or None."""
    content: Optional[QRContent] = parse_qr_payload(payload)
    if content is None:
        return None
    if content.kind == "rental":
        return session.get(Rental, uuid.UUID(content.value))
    if content.kind == "equipment_id":
        return session.get(Equipment, uuid.UUID(content.value))
    return session.exec(select(Equipment).where(Equipment.inventory_number == content.value)).first()


# ---------------------------------------------------------------------
# Customers
# ---------------------------------------------------------------------
def add_customer(session: Session, customer_number: str = "", **fields) -> Customer:
    with unit_of_work(session):
        number = customer_number or next_customer_number(session)
        customer = Customer(customer_number=number, **fields)
        session.add(customer)
        log_action(session, AuditAction.CREATE, "Customer", customer.id, customer.full_name,
                   f"Customer {number} created")
    logger.info(f"[STORE] Added customer {number}")
    return customer


def delete_customer(session: Session, customer: Customer, now: Optional[datetime] = None) -> None:
    """Delete a customer; their rentals stay and lose the customer reference."""
    if has_active_rentals(customer, now):
        raise ValidationError(f"Customer {customer.customer_number} still has active rentals")
    with unit_of_work(session):
        log_action(session, AuditAction.DELETE, "Customer", customer.id, customer.full_name,
                   f"Customer {customer.customer_number} deleted")
        session.delete(customer)


def list_customers(session: Session, search: Optional[str] = None, include_inactive: bool = False) -> List[Customer]:
    stmt = select(Customer)
    if not include_inactive:
        stmt = stmt.where(Customer.is_active == True)  # noqa: E712
    if search:
        like = f"%{search}%"
        stmt = stmt.where(or_(
            col(Customer.first_name).ilike(like),
            col(Customer.last_name).ilike(like),
            col(Customer.company).ilike(like),
            col(Customer.email).ilike(like),
            col(Customer.customer_number).ilike(like),
        ))
    return list(session.exec(stmt.order_by(Customer.last_name, Customer.first_name)).all())


# ---------------------------------------------------------------------
# Rentals
# ---------------------------------------------------------------------
def _check_conditions(session: Session, equipment: Iterable[Equipment]) -> None:
    for unit in equipment:
        if unit.condition_id is None:
            continue
        condition = session.get(Condition, unit.condition_id)
        if condition is not None and not condition.can_be_rented:
            raise ValidationError(f"Equipment {unit.inventory_number} is '{condition.name}' and cannot be rented")


def create_rental(
    session: Session,
    equipment: Iterable[Equipment],
    planned_start_date: datetime,
    planned_end_date: datetime,
    customer: Optional[Customer] = None,
    **options,
) -> Rental:
    units = list(equipment)
    _check_conditions(session, units)
    with unit_of_work(session):
        number = next_rental_number(session)
        rental = lifecycle.reserve_rental(number, units, planned_start_date, planned_end_date, customer=customer, **options)
        session.add(rental)
        _rental_log(session, AuditAction.CREATE, rental, f"Rental {number} reserved")
    return rental


def add_rental_item(session: Session, rental: Rental, equipment: Equipment, quantity: int = 1,
                    days: Optional[int] = None) -> RentalItem:
    _check_conditions(session, [equipment])
    with unit_of_work(session):
        item = lifecycle.add_item(rental, equipment, quantity, days)
        session.add(rental)
        _rental_log(session, AuditAction.UPDATE, rental, f"Added {equipment.inventory_number}")
    return item


def remove_rental_item(session: Session, rental: Rental, item: RentalItem) -> None:
    with unit_of_work(session):
        name = item.equipment.inventory_number if item.equipment else "item"
        lifecycle.remove_item(rental, item)
        session.add(rental)
        _rental_log(session, AuditAction.UPDATE, rental, f"Removed {name}")


def start(session: Session, rental: Rental, now: Optional[datetime] = None) -> Rental:
    with unit_of_work(session):
        old = rental.status
        lifecycle.start_rental(rental, now)
        session.add(rental)
        _rental_log(session, AuditAction.RENTAL_START, rental, f"Rental {rental.rental_number} started", old)
    return rental


def cancel(session: Session, rental: Rental) -> Rental:
    with unit_of_work(session):
        old = rental.status
        lifecycle.cancel_rental(rental)
        session.add(rental)
        _rental_log(session, AuditAction.RENTAL_CANCEL, rental, f"Rental {rental.rental_number} cancelled", old)
    return rental


def complete(
    session: Session,
    rental: Rental,
    deposit_returned: bool = False,
    return_notes: str = "",
    now: Optional[datetime] = None,
) -> Rental:
    with unit_of_work(session):
        old = rental.status
        lifecycle.complete_rental(rental, deposit_returned, return_notes, now)
        session.add(rental)
        _rental_log(session, AuditAction.RENTAL_END, rental, f"Rental {rental.rental_number} returned", old)
    return rental


def save_handover_protocol(session: Session, rental: Rental, notes: str = "",
                           signature: Optional[bytes] = None, now: Optional[datetime] = None) -> Rental:
    with unit_of_work(session):
        lifecycle.record_handover_protocol(rental, notes, signature, now)
        session.add(rental)
        _rental_log(session, AuditAction.HANDOVER, rental, "Handover protocol recorded")
    return rental


def save_return_protocol(session: Session, rental: Rental, notes: str = "",
                         signature: Optional[bytes] = None, now: Optional[datetime] = None) -> Rental:
    with unit_of_work(session):
        lifecycle.record_return_protocol(rental, notes, signature, now)
        session.add(rental)
        _rental_log(session, AuditAction.RETURN_ITEM, rental, "Return protocol recorded")
    return rental


def list_rentals(
    session: Session,
    status: Optional[DisplayStatus] = None,
    customer: Optional[Customer] = None,
    now: Optional[datetime] = None,
) -> List[Rental]:
    stmt = select(Rental)
    if customer is not None:
        stmt = stmt.where(Rental.customer_id == customer.id)
    rentals = list(session.exec(stmt.order_by(col(Rental.planned_start_date).desc())).all())
    if status is None:
        return rentals
    # overdue is not a column, filter on the derived status
    return [r for r in rentals if derive_display_status(r, now) is status]


# ---------------------------------------------------------------------
# Maintenance & damage
# ---------------------------------------------------------------------
def record_maintenance(
    session: Session,
    equipment: Equipment,
    title: str,
    maintenance_type: MaintenanceType = MaintenanceType.ROUTINE,
    performed_date: Optional[datetime] = None,
    next_maintenance_date: Optional[datetime] = None,
    cost: Optional[Number] = None,
    **fields,
) -> MaintenanceRecord:
    performed = as_utc(performed_date) if performed_date else utcnow()
    next_maintenance_date = as_utc(next_maintenance_date)
    if next_maintenance_date is None and equipment.maintenance_interval_days:
        next_maintenance_date = performed + timedelta(days=equipment.maintenance_interval_days)

    with unit_of_work(session):
        record = MaintenanceRecord(
            equipment_id=equipment.id,
            maintenance_type=maintenance_type,
            title=title,
            performed_date=performed,
            next_maintenance_date=next_maintenance_date,
            cost=to_decimal(cost) if cost is not None else None,
            **fields,
        )
        equipment.last_maintenance_date = performed
        equipment.next_maintenance_date = next_maintenance_date
        equipment.touch()
        session.add(record)
        session.add(equipment)
        log_action(session, AuditAction.MAINTENANCE, "Equipment", equipment.id, equipment.display_name, title)
    return record


def report_damage(
    session: Session,
    equipment: Equipment,
    title: str,
    damage_type: DamageType = DamageType.OTHER,
    rental: Optional[Rental] = None,
    estimated_repair_cost: Optional[Number] = None,
    **fields,
) -> DamageReport:
    with unit_of_work(session):
        report = DamageReport(
            equipment_id=equipment.id,
            rental_id=rental.id if rental is not None else None,
            damage_type=damage_type,
            title=title,
            estimated_repair_cost=to_decimal(estimated_repair_cost) if estimated_repair_cost is not None else None,
            **fields,
        )
        session.add(report)
        log_action(session, AuditAction.DAMAGE, "Equipment", equipment.id, equipment.display_name,
                   f"{title} ({damage_type.severity.value})")
    return report


def mark_repaired(session: Session, report: DamageReport, repaired_by: str = "",
                  actual_repair_cost: Optional[Number] = None, now: Optional[datetime] = None) -> DamageReport:
    with unit_of_work(session):
        report.is_repaired = True
        report.repair_date = as_utc(now) if now else utcnow()
        report.repaired_by = repaired_by or None
        if actual_repair_cost is not None:
            report.actual_repair_cost = to_decimal(actual_repair_cost)
        session.add(report)
    return report


# ---------------------------------------------------------------------
# Reference data
# ---------------------------------------------------------------------
DEFAULT_CATEGORIES = [
    ("Cameras", "camera.fill", "007AFF"),
    ("Lenses", "camera.aperture", "5856D6"),
    ("Lighting", "lightbulb.fill", "FFD60A"),
    ("Audio", "mic.fill", "FF9500"),
    ("Tripods", "triangle", "8E8E93"),
    ("Accessories", "shippingbox", "34C759"),
    ("Storage media", "memorychip", "00C7BE"),
    ("Cables", "cable.connector", "AF52DE"),
]

DEFAULT_CONDITIONS = [
    ("New", "sparkles", "007AFF", True),
    ("Very good", "checkmark.circle.fill", "34C759", True),
    ("Good", "checkmark.circle", "5AC8FA", True),
    ("Acceptable", "minus.circle.fill", "FF9500", True),
    ("Damaged", "exclamationmark.triangle.fill", "FF3B30", False),
    ("Defective", "xmark.circle.fill", "FF3B30", False),
    ("In repair", "wrench.fill", "AF52DE", False),
]

DEFAULT_LOCATIONS = [
    ("Main warehouse", "building.2.fill", "007AFF"),
    ("Secondary warehouse", "shippingbox.fill", "FF9500"),
    ("Workshop", "wrench.and.screwdriver.fill", "5856D6"),
]


def seed_reference_data(session: Session) -> int:
    """Insert default categories/conditions/locations into empty tables. Returns rows added."""
    added = 0
    with unit_of_work(session):
        if session.exec(select(Category)).first() is None:
            for i, (name, icon, color) in enumerate(DEFAULT_CATEGORIES):
                session.add(Category(name=name, icon_name=icon, color_hex=color, sort_order=i))
                added += 1
        if session.exec(select(Condition)).first() is None:
            for i, (name, icon, color, rentable) in enumerate(DEFAULT_CONDITIONS):
                session.add(Condition(name=name, icon_name=icon, color_hex=color, sort_order=i, can_be_rented=rentable))
                added += 1
        if session.exec(select(Location)).first() is None:
            for i, (name, icon, color) in enumerate(DEFAULT_LOCATIONS):
                session.add(Location(name=name, icon_name=icon, color_hex=color, sort_order=i))
                added += 1
    if added:
        logger.info(f"[STORE] Seeded {added} reference rows")
    return added


def audit_trail(session: Session, entity_id: uuid.UUID) -> List[AuditLog]:
    stmt = select(AuditLog).where(AuditLog.entity_id == entity_id).order_by(AuditLog.timestamp)
    return list(session.exec(stmt).all())
