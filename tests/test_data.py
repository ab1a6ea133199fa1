import io
from decimal import Decimal

import pandas as pd
import pytest
from sqlmodel import select

from mediatech import store
from mediatech.data import _read_all_sheets, import_catalog
from mediatech.db_models import Category
from mediatech.errors import ValidationError


def workbook(sheets) -> io.BytesIO:
    buf = io.BytesIO()
    with pd.ExcelWriter(buf, engine="openpyxl") as writer:
        for name, df in sheets.items():
            df.to_excel(writer, sheet_name=name, index=False)
    buf.seek(0)
    return buf


def test_sheets_become_categories_and_headers_normalize():
    buf = workbook({
        "Cameras": pd.DataFrame({"Hersteller": ["Sony"], "Bezeichnung": ["FX6"], "Tagesmiete": [120]}),
        "Audio": pd.DataFrame({"Brand": ["Rode", None], "Model ": ["NTG3", ""], "Price/Day": ["25", "x"]}),
    })
    df = _read_all_sheets(buf)
    assert list(df["category"]) == ["Cameras", "Audio"]
    assert list(df["name"]) == ["FX6", "NTG3"]
    assert df.loc[0, "manufacturer"] == "Sony"
    assert df.loc[1, "daily_rate"] == 25


def test_import_catalog(session):
    store.seed_reference_data(session)
    buf = workbook({
        "Cameras": pd.DataFrame({"name": ["FX6", "FX3"], "inventory_number": ["CAM-001", ""], "daily_rate": [120, None]}),
        "Drones": pd.DataFrame({"name": ["Mavic"], "daily_rate": [80]}),
    })
    df = _read_all_sheets(buf)

    assert import_catalog(session, df) == 3
    items = {e.name: e for e in store.list_equipment(session)}
    assert items["FX6"].inventory_number == "CAM-001"
    assert items["FX6"].daily_rate == Decimal("120")
    assert items["FX3"].daily_rate is None
    assert items["FX3"].inventory_number == "INV-00001"

    cameras = session.get(Category, items["FX6"].category_id)
    assert cameras.name == "Cameras"
    assert session.get(Category, items["Mavic"].category_id).name == "Drones"

    # second run skips known inventory numbers only
    assert import_catalog(session, df.iloc[:1]) == 0


def test_import_catalog_rolls_back_on_bad_row(session):
    buf = workbook({
        "Drones": pd.DataFrame({"name": ["Cam A", "Cam B", "Broken"], "daily_rate": [10, 20, -5]}),
    })
    df = _read_all_sheets(buf)

    with pytest.raises(ValidationError):
        import_catalog(session, df)

    assert store.list_equipment(session) == []
    assert session.exec(select(Category).where(Category.name == "Drones")).first() is None
