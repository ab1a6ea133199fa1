import logging

import pandas as pd
import streamlit as st
from sqlmodel import select

from mediatech import config, store
from mediatech.db import create_db_and_tables, get_session
from mediatech.db_models import DisplayStatus, Equipment, Rental
from mediatech.reports import dashboard_counts
from mediatech.status import days_overdue, derive_display_status

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

# ----------------- UI CONFIG -----------------
st.set_page_config(page_title="MediaTech Manager", page_icon="🎬", layout="wide")
st.title("🎬 MediaTech Manager")

# ----------------- DB INIT -----------------
create_db_and_tables()
if "seeded" not in st.session_state:
    with get_session() as s:
        store.seed_reference_data(s)
    st.session_state.seeded = True

# ----------------- DASHBOARD -----------------
with get_session() as s:
    equipment = list(s.exec(select(Equipment)).all())
    rentals = list(s.exec(select(Rental)).all())
    counts = dashboard_counts(equipment, rentals)

    c1, c2, c3, c4 = st.columns(4)
    c1.metric("Equipment", counts["equipment"])
    c2.metric("Available", counts["available"])
    c3.metric("Active rentals", counts["active"])
    c4.metric("Overdue", counts["overdue"])

    overdue = [r for r in rentals if derive_display_status(r) is DisplayStatus.OVERDUE]
    st.subheader("⚠️ Overdue rentals")
    if not overdue:
        st.info("Nothing overdue.")
    else:
        st.dataframe(pd.DataFrame([{
            "rental": r.rental_number,
            "customer": r.customer.display_name if r.customer else "",
            "planned_end": r.planned_end_date,
            "days_overdue": days_overdue(r),
        } for r in overdue]), use_container_width=True)

    if counts["maintenance_due"]:
        st.warning(f"{counts['maintenance_due']} piece(s) of equipment due for maintenance.")

st.markdown("---")
st.caption("Equipment, customers, rentals and reports are in the sidebar pages.")
