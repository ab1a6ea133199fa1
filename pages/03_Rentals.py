from datetime import datetime, time, timedelta

import pandas as pd
import streamlit as st

from mediatech import store
from mediatech.db import get_session
from mediatech.db_models import DisplayStatus
from mediatech.errors import MediaTechError
from mediatech.pdf import rental_protocol_pdf
from mediatech.pricing import round_money
from mediatech.snapshots import RentalSnapshot
from mediatech.status import derive_display_status

st.set_page_config(page_title="Rentals", page_icon="🧾", layout="wide")
st.title("Rentals")

with get_session() as s:
    # ----------------- NEW RENTAL -----------------
    with st.expander("➕ New rental"):
        customers = store.list_customers(s)
        available = store.list_equipment(s, available_only=True)
        with st.form("new_rental"):
            customer = st.selectbox("Customer", customers, format_func=lambda c: c.display_name)
            picked = st.multiselect("Equipment", available,
                                    format_func=lambda e: f"{e.inventory_number} • {e.display_name}")
            c1, c2 = st.columns(2)
            start_d = c1.date_input("Start", value=datetime.now().date())
            end_d = c2.date_input("End", value=datetime.now().date() + timedelta(days=1))
            c3, c4, c5 = st.columns(3)
            deposit = c3.number_input("Deposit", min_value=0.0, value=0.0)
            discount = c4.number_input("Discount %", min_value=0.0, max_value=100.0, value=0.0)
            extra = c5.number_input("Additional costs", min_value=0.0, value=0.0)
            purpose = st.text_input("Purpose")
            location = st.text_input("Event location")
            if st.form_submit_button("Reserve"):
                try:
                    r = store.create_rental(
                        s, picked, datetime.combine(start_d, time(9)), datetime.combine(end_d, time(18)),
                        customer=customer, deposit_amount=deposit, discount_percent=discount,
                        additional_costs=extra, purpose=purpose, event_location=location,
                    )
                    st.success(f"Reserved {r.rental_number}: {round_money(r.total_price)} €")
                except MediaTechError as e:
                    st.error(str(e))

    # ----------------- LIST -----------------
    status = st.selectbox("Status", [None] + list(DisplayStatus), format_func=lambda x: "(all)" if x is None else x.value)
    rentals = store.list_rentals(s, status=status)
    if not rentals:
        st.info("No rentals.")
        st.stop()

    st.dataframe(pd.DataFrame([{
        "rental": r.rental_number,
        "customer": r.customer.display_name if r.customer else "",
        "status": derive_display_status(r).value,
        "start": r.planned_start_date,
        "end": r.planned_end_date,
        "items": r.equipment_count,
        "total": float(r.total_price),
    } for r in rentals]), use_container_width=True)

    # ----------------- ACTIONS -----------------
    sel = st.selectbox("Rental", rentals, format_func=lambda r: r.rental_number)
    shown = derive_display_status(sel)
    st.write(f"**{sel.rental_number}** · {shown.value}")

    try:
        if shown is DisplayStatus.RESERVED:
            c1, c2 = st.columns(2)
            if c1.button("▶️ Start"):
                store.start(s, sel)
                st.rerun()
            if c2.button("✖️ Cancel"):
                store.cancel(s, sel)
                st.rerun()
        elif shown.is_active:
            with st.form("return_form"):
                notes = st.text_area("Return notes")
                deposit_back = st.checkbox("Deposit returned", value=sel.deposit_received)
                if st.form_submit_button("✅ Complete return"):
                    store.complete(s, sel, deposit_returned=deposit_back, return_notes=notes)
                    st.rerun()
    except MediaTechError as e:
        st.error(str(e))

    snap = RentalSnapshot.from_model(sel)
    c1, c2 = st.columns(2)
    c1.download_button("📄 Handover protocol", rental_protocol_pdf(snap, "handover"),
                       file_name=f"{sel.rental_number}_handover.pdf", mime="application/pdf")
    if sel.actual_end_date is not None:
        c2.download_button("📄 Return protocol", rental_protocol_pdf(snap, "return"),
                           file_name=f"{sel.rental_number}_return.pdf", mime="application/pdf")
