import io
import json
from datetime import datetime, timedelta
from decimal import Decimal

import pandas as pd

from conftest import NOW, unit
from mediatech import config, export, lifecycle, store
from mediatech.db_models import Customer
from mediatech.snapshots import CustomerSnapshot, EquipmentSnapshot, RentalSnapshot


def test_equipment_csv_uses_names_and_separator():
    cam = unit(manufacturer="Sony", category_id=None)
    names = {None: ""}
    data = export.export_equipment([EquipmentSnapshot.from_model(cam, names)])
    df = pd.read_csv(io.BytesIO(data), sep=";")
    assert list(df.columns) == export.EQUIPMENT_COLUMNS
    assert df.loc[0, "inventory_number"] == "INV-00001"
    assert df.loc[0, "daily_rate"] == 50.0


def test_empty_export_still_has_header():
    data = export.export_customers([])
    assert data.decode("utf-8").strip() == ";".join(export.CUSTOMER_COLUMNS)


def test_customers_json_has_root_and_date():
    c = Customer(customer_number="KND-00001", first_name="Erika", last_name="Muster")
    payload = json.loads(export.to_json_bytes(export.customers_frame([CustomerSnapshot.from_model(c)]),
                                              "customers", now=NOW))
    assert payload["export_date"] == "2026-10-19T12:00:00+00:00"
    assert payload["customers"][0]["customer_type"] == "private"
    assert payload["customers"][0]["company"] == ""


def test_rental_record_is_flat():
    cam = unit()
    r = lifecycle.reserve_rental("AUS-20261019-0001", [cam], NOW, NOW + timedelta(days=2), discount_percent=10)
    lifecycle.record_handover_protocol(r, "ok", b"sig", now=NOW)
    record = RentalSnapshot.from_model(r, now=NOW).to_record()

    assert record["status"] == "reserved"
    assert record["item_count"] == 1
    assert record["has_handover_signature"] is True
    assert record["has_return_signature"] is False
    assert record["total_price"] == 90.0
    assert "items" not in record and "handover_signature" not in record

    payload = json.loads(export.export_rentals([RentalSnapshot.from_model(r, now=NOW)], "json"))
    assert payload["rentals"][0]["rental_number"] == "AUS-20261019-0001"
    assert payload["rentals"][0]["actual_start_date"] is None


def test_snapshot_breakdown():
    r = lifecycle.reserve_rental("AUS-1", [unit(daily_rate="33.333")], NOW, NOW, discount_percent=10)
    snap = RentalSnapshot.from_model(r, now=NOW)
    assert snap.days == 1
    assert snap.subtotal == Decimal("33.33")
    assert snap.discount == Decimal("3.33")
    assert snap.items[0].inventory_number == "INV-00001"


def test_export_filename():
    assert export.export_filename("rentals", "csv", datetime(2026, 1, 2, 3, 4, 5)) == "rentals_2026-01-02_030405.csv"


def test_full_backup_holds_every_entity(session, make_equipment, make_customer):
    store.seed_reference_data(session)
    cam = make_equipment("FX6", "120")
    make_equipment("Light", "20")
    erika = make_customer()
    r = store.create_rental(session, [cam], NOW, NOW + timedelta(days=2), customer=erika)

    payload = json.loads(export.full_backup(session, now=NOW))

    assert payload["version"] == config.BACKUP_VERSION
    assert payload["app_name"] == "MediaTechManager"
    assert payload["export_date"] == "2026-10-19T12:00:00+00:00"
    assert payload["counts"]["equipment"] == 2
    assert payload["counts"]["customers"] == 1
    assert payload["counts"]["rentals"] == 1
    for key in ("categories", "conditions", "locations"):
        assert len(payload[key]) == payload["counts"][key] > 0
        assert all("name" in row and "id" in row for row in payload[key])

    rental = payload["rentals"][0]
    assert rental["rental_number"] == r.rental_number
    assert rental["items"][0]["inventory_number"] == cam.inventory_number
    assert rental["items"][0]["daily_rate"] == 120.0
    assert {e["name"] for e in payload["equipment"]} == {"FX6", "Light"}


def test_full_backup_of_empty_database(session):
    payload = json.loads(export.full_backup(session, now=NOW))
    assert payload["equipment"] == [] and payload["rentals"] == []
    assert set(payload["counts"].values()) == {0}


def test_backup_filename():
    assert export.backup_filename(datetime(2026, 1, 2, 3, 4, 5)) == "MediaTechManager_Backup_2026-01-02_030405.json"
