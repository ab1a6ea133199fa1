import pandas as pd
import streamlit as st
from sqlmodel import select

from mediatech import store
from mediatech.data import import_catalog, load_catalog_from_bytes
from mediatech.db import get_session
from mediatech.db_models import Category, Condition, Location
from mediatech.errors import MediaTechError
from mediatech.qr import equipment_payload, qr_png

st.set_page_config(page_title="Equipment", page_icon="📦", layout="wide")
st.title("Equipment")

with get_session() as s:
    categories = list(s.exec(select(Category).order_by(Category.sort_order)).all())
    conditions = list(s.exec(select(Condition).order_by(Condition.sort_order)).all())
    locations = list(s.exec(select(Location).order_by(Location.sort_order)).all())
    cat_names = {c.id: c.name for c in categories}

    # Sidebar: import catalog (all sheets)
    with st.sidebar:
        st.subheader("Import catalog")
        up = st.file_uploader("Excel (.xlsx), one sheet per category", type=["xlsx"])
        if up is not None and st.button("Import"):
            try:
                created = import_catalog(s, load_catalog_from_bytes(up.read()))
                st.success(f"Imported {created} item(s).")
            except MediaTechError as e:
                st.error(f"Import failed, nothing was imported: {e}")

    # Filters
    with st.form("filter_form"):
        c1, c2, c3 = st.columns(3)
        with c1:
            cat = st.selectbox("Category", [None] + categories, format_func=lambda c: "(all)" if c is None else c.name)
        with c2:
            available_only = st.checkbox("Available only")
        with c3:
            search = st.text_input("Search (name/model/number contains)")
        st.form_submit_button("Apply")

    items = store.list_equipment(s, available_only=available_only,
                                 category_id=cat.id if cat else None, search=search or None)
    if not items:
        st.info("No equipment yet.")
    else:
        st.dataframe(pd.DataFrame([{
            "inventory_number": e.inventory_number,
            "name": e.display_name,
            "model": e.model,
            "category": cat_names.get(e.category_id, ""),
            "daily_rate": float(e.daily_rate) if e.daily_rate is not None else None,
            "available": e.is_available,
        } for e in items]), use_container_width=True)

        st.markdown("### Label / retire")
        sel = st.selectbox("Equipment", items, format_func=lambda e: f"{e.inventory_number} • {e.display_name}")
        c1, c2 = st.columns(2)
        with c1:
            st.image(qr_png(equipment_payload(sel)), width=160)
        with c2:
            if st.button("Retire"):
                try:
                    store.retire_equipment(s, sel)
                    st.success("Retired.")
                except MediaTechError as e:
                    st.error(str(e))

    st.markdown("### Add equipment")
    with st.form("add_form"):
        c1, c2, c3 = st.columns(3)
        with c1:
            name = st.text_input("Name")
            manufacturer = st.text_input("Manufacturer")
            model = st.text_input("Model")
        with c2:
            serial = st.text_input("Serial number")
            rate = st.number_input("Daily rate", min_value=0.0, value=0.0, step=5.0)
            category = st.selectbox("Category ", [None] + categories, format_func=lambda c: "-" if c is None else c.name)
        with c3:
            condition = st.selectbox("Condition", [None] + conditions, format_func=lambda c: "-" if c is None else c.name)
            location = st.selectbox("Location", [None] + locations, format_func=lambda c: "-" if c is None else c.name)
        submitted = st.form_submit_button("Add")
        if submitted:
            try:
                eq = store.add_equipment(
                    s, name=name, manufacturer=manufacturer, model=model, serial_number=serial,
                    daily_rate=rate or None,
                    category_id=category.id if category else None,
                    condition_id=condition.id if condition else None,
                    location_id=location.id if location else None,
                )
                st.success(f"Added {eq.inventory_number}.")
            except MediaTechError as e:
                st.error(str(e))
