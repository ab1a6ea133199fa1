# mediatech/db_models.py

import uuid
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from sqlalchemy import DateTime
from sqlalchemy.types import TypeDecorator
from sqlmodel import SQLModel, Field, Relationship

from .pricing import item_total


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Aware UTC datetime; naive input is taken to be UTC already."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware datetime column.

    Values are converted to UTC before they are written and come back aware,
    also on backends (SQLite) that keep no offset.
    """
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        value = as_utc(value)
        if value is not None and dialect.name == "sqlite":
            return value.replace(tzinfo=None)
        return value

    def process_result_value(self, value, dialect):
        return as_utc(value)


# ---------------------------
# Enums
# ---------------------------

class RentalStatus(str, Enum):
    """Persisted status of a rental. Overdue is never stored."""
    RESERVED = "reserved"
    ACTIVE = "active"
    RETURNED = "returned"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (RentalStatus.RETURNED, RentalStatus.CANCELLED)


class DisplayStatus(str, Enum):
    """Status as shown to the operator, see status.derive_display_status."""
    RESERVED = "reserved"
    ACTIVE = "active"
    OVERDUE = "overdue"
    RETURNED = "returned"
    CANCELLED = "cancelled"

    @property
    def is_active(self) -> bool:
        return self in (DisplayStatus.ACTIVE, DisplayStatus.OVERDUE)

    @property
    def is_completed(self) -> bool:
        return self in (DisplayStatus.RETURNED, DisplayStatus.CANCELLED)


class CustomerType(str, Enum):
    PRIVATE = "private"
    BUSINESS = "business"
    EDUCATIONAL = "educational"
    NONPROFIT = "nonprofit"


class AuditAction(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    RENTAL_START = "rental_start"
    RENTAL_END = "rental_end"
    RENTAL_CANCEL = "rental_cancel"
    HANDOVER = "handover"
    RETURN_ITEM = "return_item"
    MAINTENANCE = "maintenance"
    DAMAGE = "damage"
    STATUS_CHANGE = "status_change"
    EXPORT = "export"
    IMPORT_DATA = "import_data"
    OTHER = "other"


class MaintenanceType(str, Enum):
    ROUTINE = "routine"
    REPAIR = "repair"
    INSPECTION = "inspection"
    CALIBRATION = "calibration"
    CLEANING = "cleaning"
    FIRMWARE = "firmware"
    OTHER = "other"


class DamageSeverity(str, Enum):
    MINOR = "minor"
    MODERATE = "moderate"
    SEVERE = "severe"


class DamageType(str, Enum):
    COSMETIC = "cosmetic"
    FUNCTIONAL = "functional"
    STRUCTURAL = "structural"
    ELECTRICAL = "electrical"
    WATER = "water"
    IMPACT = "impact"
    WEAR = "wear"
    MISSING = "missing"
    OTHER = "other"

    @property
    def severity(self) -> DamageSeverity:
        if self in (DamageType.COSMETIC, DamageType.WEAR):
            return DamageSeverity.MINOR
        if self in (DamageType.STRUCTURAL, DamageType.ELECTRICAL, DamageType.WATER, DamageType.IMPACT):
            return DamageSeverity.SEVERE
        return DamageSeverity.MODERATE


# ---------------------------
# Reference data
# ---------------------------

class Category(SQLModel, table=True):
    __tablename__ = "category"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    name: str = Field(index=True, nullable=False)
    description: str = ""
    icon_name: str = "folder.fill"
    color_hex: str = "007AFF"
    sort_order: int = 0
    is_active: bool = True
    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)


class Condition(SQLModel, table=True):
    __tablename__ = "condition"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    name: str = Field(index=True, nullable=False)
    description: str = ""
    icon_name: str = "checkmark.circle.fill"
    color_hex: str = "34C759"
    sort_order: int = 0
    can_be_rented: bool = True
    is_active: bool = True
    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)


class Location(SQLModel, table=True):
    __tablename__ = "location"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    name: str = Field(index=True, nullable=False)
    description: str = ""
    address: str = ""
    icon_name: str = "mappin.circle.fill"
    color_hex: str = "FF3B30"
    sort_order: int = 0
    is_active: bool = True
    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)


class Tag(SQLModel, table=True):
    __tablename__ = "tag"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    name: str = Field(index=True, nullable=False, unique=True)
    color_hex: str = "007AFF"
    is_active: bool = True
    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)


class EquipmentTagLink(SQLModel, table=True):
    __tablename__ = "equipment_tag"

    equipment_id: uuid.UUID = Field(foreign_key="equipment.id", primary_key=True)
    tag_id: uuid.UUID = Field(foreign_key="tag.id", primary_key=True)


# ---------------------------
# Core catalog
# ---------------------------

class Equipment(SQLModel, table=True):
    __tablename__ = "equipment"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)

    inventory_number: str = Field(index=True, unique=True, nullable=False)
    serial_number: str = ""
    barcode: Optional[str] = None

    name: str = Field(nullable=False, index=True)
    manufacturer: str = Field(default="", index=True)
    model: str = ""
    description: str = ""

    # classification by id only; look them up through store
    category_id: Optional[uuid.UUID] = Field(default=None, foreign_key="category.id", index=True)
    condition_id: Optional[uuid.UUID] = Field(default=None, foreign_key="condition.id", index=True)
    location_id: Optional[uuid.UUID] = Field(default=None, foreign_key="location.id", index=True)

    purchase_price: Optional[Decimal] = Field(default=None, max_digits=12, decimal_places=2)
    purchase_date: Optional[date] = None
    daily_rate: Optional[Decimal] = Field(default=None, max_digits=10, decimal_places=2)
    replacement_value: Optional[Decimal] = Field(default=None, max_digits=12, decimal_places=2)

    # only lifecycle.py flips this
    is_available: bool = Field(default=True, index=True)
    is_active: bool = Field(default=True, index=True)

    last_maintenance_date: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)
    next_maintenance_date: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)
    maintenance_interval_days: Optional[int] = None

    notes: str = ""

    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)

    # 1 -> many RentalItem
    rental_items: List["RentalItem"] = Relationship(back_populates="equipment")

    @property
    def display_name(self) -> str:
        if not self.manufacturer:
            return self.name
        return f"{self.manufacturer} {self.name}"

    @property
    def total_rentals(self) -> int:
        return len(self.rental_items)

    def is_maintenance_due(self, now: Optional[datetime] = None) -> bool:
        if self.next_maintenance_date is None:
            return False
        return as_utc(self.next_maintenance_date) <= as_utc(now or utcnow())

    def days_until_maintenance(self, now: Optional[datetime] = None) -> Optional[int]:
        if self.next_maintenance_date is None:
            return None
        return (as_utc(self.next_maintenance_date) - as_utc(now or utcnow())).days

    def touch(self) -> None:
        self.updated_at = utcnow()


# ---------------------------
# Parties
# ---------------------------

class Customer(SQLModel, table=True):
    __tablename__ = "customer"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    customer_number: str = Field(default="", index=True)
    customer_type: CustomerType = CustomerType.PRIVATE

    first_name: str = Field(default="", index=True)
    last_name: str = Field(default="", index=True)
    company: Optional[str] = None

    email: str = Field(default="", index=True)
    phone: str = ""
    mobile: Optional[str] = None

    street: str = ""
    postal_code: str = ""
    city: str = ""
    country: str = "Deutschland"

    notes: str = ""
    identification_document_type: Optional[str] = None
    identification_document_number: Optional[str] = None

    is_active: bool = True
    is_regular_customer: bool = False

    credit_limit: Optional[Decimal] = Field(default=None, max_digits=12, decimal_places=2)
    deposit_amount: Optional[Decimal] = Field(default=None, max_digits=12, decimal_places=2)

    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)

    # 1 -> many Rental; deleting a customer nullifies rental.customer_id
    rentals: List["Rental"] = Relationship(back_populates="customer")

    @property
    def full_name(self) -> str:
        name = f"{self.first_name} {self.last_name}".strip()
        return name or "Unnamed"

    @property
    def display_name(self) -> str:
        if self.company:
            return f"{self.full_name} ({self.company})"
        return self.full_name

    @property
    def primary_phone(self) -> str:
        return self.mobile or self.phone

    @property
    def initials(self) -> str:
        return f"{self.first_name[:1]}{self.last_name[:1]}".upper()

    @property
    def full_address(self) -> str:
        parts = []
        if self.street:
            parts.append(self.street)
        city_line = " ".join(p for p in (self.postal_code, self.city) if p)
        if city_line:
            parts.append(city_line)
        if self.country and self.country != "Deutschland":
            parts.append(self.country)
        return "\n".join(parts)

    def touch(self) -> None:
        self.updated_at = utcnow()


# ---------------------------
# Rentals
# ---------------------------

class Rental(SQLModel, table=True):
    __tablename__ = "rental"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    rental_number: str = Field(default="", index=True)

    planned_start_date: datetime = Field(default_factory=utcnow, index=True, sa_type=UTCDateTime)
    planned_end_date: datetime = Field(default_factory=lambda: utcnow() + timedelta(days=1), index=True, sa_type=UTCDateTime)
    actual_start_date: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)
    actual_end_date: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)

    status: RentalStatus = Field(default=RentalStatus.RESERVED, index=True)

    customer_id: Optional[uuid.UUID] = Field(default=None, foreign_key="customer.id", index=True)

    total_price: Decimal = Field(default=Decimal("0"), max_digits=12, decimal_places=2)
    deposit_amount: Decimal = Field(default=Decimal("0"), max_digits=12, decimal_places=2)
    deposit_received: bool = False
    deposit_returned: bool = False
    discount_percent: Decimal = Field(default=Decimal("0"), max_digits=5, decimal_places=2)
    additional_costs: Decimal = Field(default=Decimal("0"), max_digits=12, decimal_places=2)
    additional_costs_description: str = ""

    handover_notes: str = ""
    handover_signature: Optional[bytes] = None
    handover_date: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)
    return_notes: str = ""
    return_signature: Optional[bytes] = None
    return_date: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)

    purpose: str = ""
    event_location: str = ""
    notes: str = ""

    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)

    # many -> 1 Customer
    customer: Optional[Customer] = Relationship(back_populates="rentals")

    # 1 -> many RentalItem, owned
    items: List["RentalItem"] = Relationship(
        back_populates="rental",
        sa_relationship_kwargs={"cascade": "all, delete-orphan"},
    )

    @property
    def equipment_count(self) -> int:
        return sum(item.quantity for item in self.items)

    @property
    def has_handover_protocol(self) -> bool:
        return self.handover_signature is not None or bool(self.handover_notes)

    @property
    def has_return_protocol(self) -> bool:
        return self.return_signature is not None or bool(self.return_notes)

    def touch(self) -> None:
        self.updated_at = utcnow()


class RentalItem(SQLModel, table=True):
    __tablename__ = "rental_item"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)

    rental_id: Optional[uuid.UUID] = Field(default=None, foreign_key="rental.id", index=True)
    equipment_id: Optional[uuid.UUID] = Field(default=None, foreign_key="equipment.id", index=True)

    quantity: int = Field(default=1, ge=1)
    # copied from Equipment.daily_rate when the item is created
    daily_rate: Decimal = Field(default=Decimal("0"), max_digits=10, decimal_places=2)
    days: int = Field(default=1, ge=1)

    handover_condition: str = ""
    return_condition: str = ""
    has_damage: bool = False

    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)

    rental: Optional[Rental] = Relationship(back_populates="items")
    equipment: Optional[Equipment] = Relationship(back_populates="rental_items")

    @property
    def total_price(self) -> Decimal:
        return item_total(self.quantity, self.daily_rate, self.days)


# ---------------------------
# Counters for numbering.py
# ---------------------------

class Counter(SQLModel, table=True):
    __tablename__ = "counter"

    key: str = Field(primary_key=True)
    value: int = Field(default=0, nullable=False)


# ---------------------------
# History (append-only)
# ---------------------------

class AuditLog(SQLModel, table=True):
    __tablename__ = "audit_log"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    timestamp: datetime = Field(default_factory=utcnow, index=True, sa_type=UTCDateTime)
    action: AuditAction = Field(default=AuditAction.OTHER, index=True)
    entity_type: str = Field(default="", index=True)
    entity_id: Optional[uuid.UUID] = Field(default=None, index=True)
    entity_name: str = ""
    description: str = ""
    old_values: Optional[str] = None
    new_values: Optional[str] = None
    user_info: str = ""


class MaintenanceRecord(SQLModel, table=True):
    __tablename__ = "maintenance_record"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    equipment_id: Optional[uuid.UUID] = Field(default=None, foreign_key="equipment.id", index=True)
    maintenance_type: MaintenanceType = MaintenanceType.ROUTINE
    title: str = ""
    description: str = ""
    performed_date: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)
    performed_by: str = ""
    cost: Optional[Decimal] = Field(default=None, max_digits=12, decimal_places=2)
    external_provider: Optional[str] = None
    notes: str = ""
    next_maintenance_date: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)
    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)


class DamageReport(SQLModel, table=True):
    __tablename__ = "damage_report"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    equipment_id: Optional[uuid.UUID] = Field(default=None, foreign_key="equipment.id", index=True)
    rental_id: Optional[uuid.UUID] = Field(default=None, index=True)
    damage_type: DamageType = DamageType.OTHER
    title: str = ""
    description: str = ""
    reported_date: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)
    reported_by: str = ""
    estimated_repair_cost: Optional[Decimal] = Field(default=None, max_digits=12, decimal_places=2)
    actual_repair_cost: Optional[Decimal] = Field(default=None, max_digits=12, decimal_places=2)
    is_repaired: bool = False
    repair_date: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)
    repaired_by: Optional[str] = None
    notes: str = ""
    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)

    @property
    def severity(self) -> DamageSeverity:
        return DamageType(self.damage_type).severity
