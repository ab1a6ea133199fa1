from __future__ import annotations
import json
import logging
from datetime import datetime
from typing import Iterable, Optional

import pandas as pd
from sqlmodel import Session, select

from . import config
from .db_models import Category, Condition, Customer, Equipment, Location, Rental, utcnow
from .snapshots import CustomerSnapshot, EquipmentSnapshot, RentalSnapshot, reference_record

logger = logging.getLogger(__name__)

EQUIPMENT_COLUMNS = [
    "inventory_number", "name", "manufacturer", "model", "serial_number",
    "category", "condition", "location", "purchase_price", "daily_rate", "is_available",
]
CUSTOMER_COLUMNS = [
    "customer_number", "first_name", "last_name", "company", "email", "phone", "mobile",
    "street", "postal_code", "city", "country", "customer_type",
]
RENTAL_COLUMNS = [
    "rental_number", "customer_name", "status", "planned_start_date", "planned_end_date",
    "actual_start_date", "actual_end_date", "days", "item_count", "total_price",
    "deposit_amount", "discount_percent",
]


def _frame(records: list, columns: list) -> pd.DataFrame:
    df = pd.DataFrame.from_records(records)
    if df.empty:
        return pd.DataFrame(columns=columns)
    return df


def equipment_frame(items: Iterable[EquipmentSnapshot]) -> pd.DataFrame:
    return _frame([s.to_record() for s in items], EQUIPMENT_COLUMNS)


def customers_frame(items: Iterable[CustomerSnapshot]) -> pd.DataFrame:
    return _frame([s.to_record() for s in items], CUSTOMER_COLUMNS)


def rentals_frame(items: Iterable[RentalSnapshot]) -> pd.DataFrame:
    return _frame([s.to_record() for s in items], RENTAL_COLUMNS)


# ---- CSV: the short, spreadsheet-friendly column set ---------------------------
def to_csv_bytes(df: pd.DataFrame, columns: Optional[list] = None, sep: str = config.CSV_SEPARATOR) -> bytes:
    if columns is not None:
        df = df.reindex(columns=columns)
    return df.to_csv(index=False, sep=sep).encode("utf-8")


# ---- JSON: every field, wrapped with the export timestamp ----------------------
def to_json_bytes(df: pd.DataFrame, root_key: str, now: Optional[datetime] = None) -> bytes:
    # to_json turns NaN into null, json.dumps would not
    records = json.loads(df.to_json(orient="records", date_format="iso", force_ascii=False))
    payload = {root_key: records, "export_date": (now or utcnow()).isoformat(timespec="seconds")}
    return json.dumps(payload, ensure_ascii=False, indent=2, sort_keys=True, default=str).encode("utf-8")


def export_filename(prefix: str, fmt: str, now: Optional[datetime] = None) -> str:
    return f"{prefix}_{(now or utcnow()).strftime('%Y-%m-%d_%H%M%S')}.{fmt}"


def export_equipment(items: Iterable[EquipmentSnapshot], fmt: str = "csv") -> bytes:
    df = equipment_frame(items)
    return to_csv_bytes(df, EQUIPMENT_COLUMNS) if fmt == "csv" else to_json_bytes(df, "equipment")


def export_customers(items: Iterable[CustomerSnapshot], fmt: str = "csv") -> bytes:
    df = customers_frame(items)
    return to_csv_bytes(df, CUSTOMER_COLUMNS) if fmt == "csv" else to_json_bytes(df, "customers")


def export_rentals(items: Iterable[RentalSnapshot], fmt: str = "csv") -> bytes:
    df = rentals_frame(items)
    return to_csv_bytes(df, RENTAL_COLUMNS) if fmt == "csv" else to_json_bytes(df, "rentals")


# ---- Full backup: every entity in one JSON document -----------------------------
def full_backup(session: Session, now: Optional[datetime] = None) -> bytes:
    """
    JSON backup with version, app name, export date, per-entity counts and
    the records of equipment, customers, rentals, categories, conditions
    and locations.
    """
    categories = list(session.exec(select(Category).order_by(Category.sort_order)).all())
    conditions = list(session.exec(select(Condition).order_by(Condition.sort_order)).all())
    locations = list(session.exec(select(Location).order_by(Location.sort_order)).all())
    names = {row.id: row.name for row in [*categories, *conditions, *locations]}

    data = {
        "equipment": [EquipmentSnapshot.from_model(e, names).to_record()
                      for e in session.exec(select(Equipment).order_by(Equipment.inventory_number)).all()],
        "customers": [CustomerSnapshot.from_model(c).to_record()
                      for c in session.exec(select(Customer).order_by(Customer.customer_number)).all()],
        "rentals": [RentalSnapshot.from_model(r, now).to_backup_record()
                    for r in session.exec(select(Rental).order_by(Rental.rental_number)).all()],
        "categories": [reference_record(c) for c in categories],
        "conditions": [reference_record(c) for c in conditions],
        "locations": [reference_record(loc) for loc in locations],
    }
    payload = {
        "version": config.BACKUP_VERSION,
        "app_name": config.APP_NAME,
        "export_date": (now or utcnow()).isoformat(timespec="seconds"),
        "counts": {key: len(rows) for key, rows in data.items()},
        **data,
    }
    logger.info(f"[EXPORT] Full backup with {sum(payload['counts'].values())} record(s)")
    return json.dumps(payload, ensure_ascii=False, indent=2, sort_keys=True, default=str).encode("utf-8")


def backup_filename(now: Optional[datetime] = None) -> str:
    return export_filename(f"{config.APP_NAME}_Backup", "json", now)
