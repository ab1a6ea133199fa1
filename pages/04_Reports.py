import streamlit as st
from sqlmodel import select

from mediatech import export
from mediatech.db import get_session
from mediatech.db_models import Category, Customer, Equipment, Rental
from mediatech.reports import (
    equipment_by_category,
    period_start,
    revenue_by_month,
    status_distribution,
    top_customers,
    top_equipment,
    total_revenue,
    customer_revenue,
)
from mediatech.snapshots import CustomerSnapshot, EquipmentSnapshot, RentalSnapshot

st.set_page_config(page_title="Reports", page_icon="📊", layout="wide")
st.title("Reports")

with get_session() as s:
    equipment = list(s.exec(select(Equipment)).all())
    customers = list(s.exec(select(Customer)).all())
    rentals = list(s.exec(select(Rental)).all())
    categories = list(s.exec(select(Category)).all())

    period = st.radio("Period", ["month", "quarter", "year"], horizontal=True)
    since = period_start(period)
    in_period = [r for r in rentals if r.created_at >= since]

    c1, c2 = st.columns(2)
    c1.metric("Revenue", f"{total_revenue(rentals, since):.2f} €")
    c2.metric("Rentals", len(in_period))

    months = {"month": 1, "quarter": 3, "year": 12}[period]
    st.markdown("### Revenue")
    st.bar_chart(revenue_by_month(rentals, months=months), x="month", y="revenue")

    c1, c2 = st.columns(2)
    with c1:
        st.markdown("### Rental status")
        st.dataframe(status_distribution(in_period), use_container_width=True)
    with c2:
        st.markdown("### Equipment by category")
        st.dataframe(equipment_by_category(equipment, categories), use_container_width=True)

    c1, c2 = st.columns(2)
    with c1:
        st.markdown("### Top equipment")
        for e in top_equipment(equipment):
            st.write(f"{e.inventory_number} • {e.display_name}: {e.total_rentals}")
    with c2:
        st.markdown("### Top customers")
        for c in top_customers(customers):
            st.write(f"{c.display_name}: {customer_revenue(c):.2f} €")

    # Export
    st.markdown("### Export")
    kind = st.selectbox("Data", ["equipment", "customers", "rentals"])
    fmt = st.selectbox("Format", ["csv", "json"])
    names = {c.id: c.name for c in categories}
    if kind == "equipment":
        data = export.export_equipment([EquipmentSnapshot.from_model(e, names) for e in equipment], fmt)
    elif kind == "customers":
        data = export.export_customers([CustomerSnapshot.from_model(c) for c in customers], fmt)
    else:
        data = export.export_rentals([RentalSnapshot.from_model(r) for r in rentals], fmt)
    st.download_button("Download", data, file_name=export.export_filename(kind, fmt),
                       mime="text/csv" if fmt == "csv" else "application/json")

    # Full backup
    st.markdown("### Backup")
    st.caption("Every entity (equipment, customers, rentals and reference data) in one JSON file.")
    st.download_button("Download full backup", export.full_backup(s), file_name=export.backup_filename(),
                       mime="application/json")
