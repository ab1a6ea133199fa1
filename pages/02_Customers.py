import pandas as pd
import streamlit as st

from mediatech import store
from mediatech.db import get_session
from mediatech.db_models import CustomerType
from mediatech.errors import MediaTechError
from mediatech.status import active_rental_count

st.set_page_config(page_title="Customers", page_icon="👥", layout="wide")
st.title("Customers")

with get_session() as s:
    search = st.text_input("Search")
    customers = store.list_customers(s, search=search or None)
    if not customers:
        st.info("No customers yet.")
    else:
        st.dataframe(pd.DataFrame([{
            "number": c.customer_number,
            "name": c.display_name,
            "email": c.email,
            "phone": c.primary_phone,
            "rentals": len(c.rentals),
            "active": active_rental_count(c),
        } for c in customers]), use_container_width=True)

        with st.form("delete_form"):
            victim = st.selectbox("Customer", customers, format_func=lambda c: f"{c.customer_number} • {c.display_name}")
            if st.form_submit_button("Delete"):
                try:
                    store.delete_customer(s, victim)
                    st.success("Deleted.")
                    st.rerun()
                except MediaTechError as e:
                    st.error(str(e))

    st.markdown("### Add customer")
    with st.form("add_customer"):
        c1, c2 = st.columns(2)
        with c1:
            first = st.text_input("First name")
            last = st.text_input("Last name")
            company = st.text_input("Company")
            ctype = st.selectbox("Type", list(CustomerType), format_func=lambda t: t.value)
        with c2:
            email = st.text_input("E-mail")
            phone = st.text_input("Phone")
            street = st.text_input("Street")
            c3, c4 = st.columns([1, 2])
            postal = c3.text_input("Postal code")
            city = c4.text_input("City")
        if st.form_submit_button("Add"):
            try:
                c = store.add_customer(
                    s, first_name=first, last_name=last, company=company or None, customer_type=ctype,
                    email=email, phone=phone, street=street, postal_code=postal, city=city,
                )
                st.success(f"Added {c.customer_number}.")
            except MediaTechError as e:
                st.error(str(e))
