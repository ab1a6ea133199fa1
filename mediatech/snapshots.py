from __future__ import annotations
import uuid
from dataclasses import dataclass, asdict, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from .db_models import Customer, Equipment, Rental
from .pricing import price_breakdown
from .qr import equipment_payload, rental_payload
from .status import days_overdue, derive_display_status, number_of_days

# Read-only copies handed to export, PDF and QR code. Nothing here touches a session.


def _plain(value: Any) -> Any:
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, uuid.UUID):
        return str(value)
    return value


def reference_record(row) -> Dict[str, Any]:
    """Plain record of a Category, Condition or Location row."""
    return {k: _plain(v) for k, v in row.model_dump().items()}


@dataclass(frozen=True)
class EquipmentSnapshot:
    id: str
    inventory_number: str
    name: str
    manufacturer: str
    model: str
    serial_number: str
    category: str
    condition: str
    location: str
    daily_rate: Optional[Decimal]
    purchase_price: Optional[Decimal]
    is_available: bool
    is_active: bool
    notes: str
    qr_payload: str
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_model(cls, eq: Equipment, names: Optional[Dict[Any, str]] = None) -> "EquipmentSnapshot":
        """`names` maps category/condition/location ids to their names."""
        names = names or {}
        return cls(
            id=str(eq.id),
            inventory_number=eq.inventory_number,
            name=eq.name,
            manufacturer=eq.manufacturer,
            model=eq.model,
            serial_number=eq.serial_number,
            category=names.get(eq.category_id, ""),
            condition=names.get(eq.condition_id, ""),
            location=names.get(eq.location_id, ""),
            daily_rate=eq.daily_rate,
            purchase_price=eq.purchase_price,
            is_available=eq.is_available,
            is_active=eq.is_active,
            notes=eq.notes,
            qr_payload=equipment_payload(eq),
            created_at=eq.created_at,
            updated_at=eq.updated_at,
        )

    def to_record(self) -> Dict[str, Any]:
        return {k: _plain(v) for k, v in asdict(self).items()}


@dataclass(frozen=True)
class CustomerSnapshot:
    id: str
    customer_number: str
    customer_type: str
    first_name: str
    last_name: str
    company: str
    email: str
    phone: str
    mobile: str
    street: str
    postal_code: str
    city: str
    country: str
    is_active: bool
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_model(cls, c: Customer) -> "CustomerSnapshot":
        return cls(
            id=str(c.id),
            customer_number=c.customer_number,
            customer_type=_plain(c.customer_type),
            first_name=c.first_name,
            last_name=c.last_name,
            company=c.company or "",
            email=c.email,
            phone=c.phone,
            mobile=c.mobile or "",
            street=c.street,
            postal_code=c.postal_code,
            city=c.city,
            country=c.country,
            is_active=c.is_active,
            created_at=c.created_at,
            updated_at=c.updated_at,
        )

    def to_record(self) -> Dict[str, Any]:
        return {k: _plain(v) for k, v in asdict(self).items()}


@dataclass(frozen=True)
class RentalItemSnapshot:
    equipment_name: str
    inventory_number: str
    quantity: int
    daily_rate: Decimal
    days: int
    total_price: Decimal
    handover_condition: str = ""
    return_condition: str = ""
    has_damage: bool = False


@dataclass(frozen=True)
class RentalSnapshot:
    id: str
    rental_number: str
    status: str
    customer_name: str
    customer_number: str
    planned_start_date: datetime
    planned_end_date: datetime
    actual_start_date: Optional[datetime]
    actual_end_date: Optional[datetime]
    days: int
    days_overdue: int
    subtotal: Decimal
    discount_percent: Decimal
    discount: Decimal
    additional_costs: Decimal
    additional_costs_description: str
    total_price: Decimal
    deposit_amount: Decimal
    deposit_received: bool
    deposit_returned: bool
    purpose: str
    event_location: str
    notes: str
    handover_notes: str
    handover_date: Optional[datetime]
    handover_signature: Optional[bytes]
    return_notes: str
    return_date: Optional[datetime]
    return_signature: Optional[bytes]
    qr_payload: str
    items: List[RentalItemSnapshot] = field(default_factory=list)

    @classmethod
    def from_model(cls, r: Rental, now: Optional[datetime] = None) -> "RentalSnapshot":
        prices = price_breakdown(r.items, r.discount_percent, r.additional_costs)
        items = [
            RentalItemSnapshot(
                equipment_name=it.equipment.display_name if it.equipment else "Unknown",
                inventory_number=it.equipment.inventory_number if it.equipment else "",
                quantity=it.quantity,
                daily_rate=it.daily_rate,
                days=it.days,
                total_price=it.total_price,
                handover_condition=it.handover_condition,
                return_condition=it.return_condition,
                has_damage=it.has_damage,
            )
            for it in r.items
        ]
        return cls(
            id=str(r.id),
            rental_number=r.rental_number,
            status=derive_display_status(r, now).value,
            customer_name=r.customer.display_name if r.customer else "",
            customer_number=r.customer.customer_number if r.customer else "",
            planned_start_date=r.planned_start_date,
            planned_end_date=r.planned_end_date,
            actual_start_date=r.actual_start_date,
            actual_end_date=r.actual_end_date,
            days=number_of_days(r),
            days_overdue=days_overdue(r, now),
            subtotal=prices["subtotal"],
            discount_percent=r.discount_percent,
            discount=prices["discount"],
            additional_costs=prices["additional_costs"],
            additional_costs_description=r.additional_costs_description,
            total_price=r.total_price,
            deposit_amount=r.deposit_amount,
            deposit_received=r.deposit_received,
            deposit_returned=r.deposit_returned,
            purpose=r.purpose,
            event_location=r.event_location,
            notes=r.notes,
            handover_notes=r.handover_notes,
            handover_date=r.handover_date,
            handover_signature=r.handover_signature,
            return_notes=r.return_notes,
            return_date=r.return_date,
            return_signature=r.return_signature,
            qr_payload=rental_payload(r),
            items=items,
        )

    def to_record(self) -> Dict[str, Any]:
        """Flat key-value record; signatures become flags, items a count."""
        skip = {"items", "handover_signature", "return_signature"}
        record = {k: _plain(v) for k, v in asdict(self).items() if k not in skip}
        record["item_count"] = len(self.items)
        record["has_handover_signature"] = self.handover_signature is not None
        record["has_return_signature"] = self.return_signature is not None
        return record

    def to_backup_record(self) -> Dict[str, Any]:
        """to_record plus the line items, for the full backup."""
        record = self.to_record()
        record["items"] = [{k: _plain(v) for k, v in asdict(it).items()} for it in self.items]
        return record
