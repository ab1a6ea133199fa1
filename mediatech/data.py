from __future__ import annotations
import io
import logging
from typing import Dict

import pandas as pd
import streamlit as st
from sqlmodel import Session, select

from . import store
from .db_models import Category, Equipment

logger = logging.getLogger(__name__)

ALIASES: Dict[str, list] = {
    "name": ["item", "bezeichnung", "geraet", "gerat", "title"],
    "manufacturer": ["brand", "hersteller", "make"],
    "model": ["modell", "model_name"],
    "serial_number": ["serial", "seriennummer", "sn"],
    "inventory_number": ["inventory", "inventarnummer", "inv", "inv_nr"],
    "daily_rate": ["daily_price", "price", "price_day", "tagesmiete", "rate"],
}


# ---- Header normalization helper ------------------------------------------------
def _normalize_cols(df: pd.DataFrame) -> pd.DataFrame:
    df = df.copy()
    df.columns = (
        df.columns.astype(str)
        .str.strip().str.lower()
        .str.replace(r"[^\w]+", "_", regex=True)  # spaces/punct -> underscore
        .str.strip("_")
    )
    return df


# ---- Canonicalize required columns and dtypes -----------------------------------
def _postprocess(out: pd.DataFrame) -> pd.DataFrame:
    # sheets may use different aliases for the same column; merge them all
    for canonical, aliases in ALIASES.items():
        for c in aliases:
            if c not in out.columns:
                continue
            if canonical in out.columns:
                out[canonical] = out[canonical].combine_first(out[c])
                out = out.drop(columns=[c])
            else:
                out = out.rename(columns={c: canonical})
    for col in ["name", "manufacturer", "model", "serial_number", "inventory_number"]:
        if col not in out.columns:
            out[col] = ""
        out[col] = out[col].fillna("").astype(str).str.strip()
    # sheets without a name column fall back to the model
    out["name"] = out["name"].where(out["name"] != "", out["model"])
    if "daily_rate" not in out.columns:
        out["daily_rate"] = None
    # enforce numeric type, blanks stay missing
    out["daily_rate"] = pd.to_numeric(out["daily_rate"], errors="coerce")
    # category should exist by this point (we add it from sheet names). Fallback:
    if "category" not in out.columns:
        out["category"] = "Uncategorized"
    return out[out["name"] != ""].reset_index(drop=True)


def _read_all_sheets(source) -> pd.DataFrame:
    sheets = pd.read_excel(source, sheet_name=None)  # dict of {sheet_name: DataFrame}
    frames = []
    for sheet_name, df in sheets.items():
        if df is None or df.empty:
            continue
        df = _normalize_cols(df)
        df["category"] = sheet_name
        frames.append(df)
    if not frames:
        return pd.DataFrame()
    out = pd.concat(frames, ignore_index=True)
    return _postprocess(out)


# ---- Uploaded bytes (st.file_uploader), all sheets, `category` = sheet name -----
@st.cache_data(show_spinner=False)
def load_catalog_from_bytes(buf: bytes) -> pd.DataFrame:
    """
    Reads ALL Excel sheets and concatenates them into one DataFrame.
    Adds 'category' column set to the sheet name.
    """
    return _read_all_sheets(io.BytesIO(buf))


# ---- Write catalog rows as Equipment --------------------------------------------
def import_catalog(session: Session, df: pd.DataFrame) -> int:
    """
    Create Equipment for every row in one transaction: one invalid row and
    nothing is imported. Categories are matched by name and created when
    missing; rows whose inventory number already exists are skipped.
    Returns the number of equipment rows created.
    """
    if df.empty:
        return 0
    categories = {c.name.lower(): c for c in session.exec(select(Category)).all()}
    existing = set(session.exec(select(Equipment.inventory_number)).all())

    created = 0
    with store.unit_of_work(session):
        for row in df.to_dict(orient="records"):
            number = row.get("inventory_number") or ""
            if number and number in existing:
                logger.info(f"[IMPORT] Skipping {number}, already in inventory")
                continue

            cat_name = str(row.get("category") or "Uncategorized")
            category = categories.get(cat_name.lower())
            if category is None:
                category = Category(name=cat_name, sort_order=len(categories))
                session.add(category)
                categories[cat_name.lower()] = category

            rate = row.get("daily_rate")
            eq = store.stage_equipment(
                session,
                name=row["name"],
                inventory_number=number,
                manufacturer=row.get("manufacturer") or "",
                model=row.get("model") or "",
                serial_number=row.get("serial_number") or "",
                daily_rate=None if pd.isna(rate) else rate,
                category_id=category.id,
            )
            existing.add(eq.inventory_number)
            created += 1

    logger.info(f"[IMPORT] Created {created} equipment row(s)")
    return created
