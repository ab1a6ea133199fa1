from datetime import timedelta

import pytest

from conftest import NOW, unit
from mediatech import lifecycle
from mediatech.db_models import Customer
from mediatech.pdf import rental_protocol_pdf
from mediatech.qr import qr_png
from mediatech.snapshots import RentalSnapshot


def snapshot(**protocol):
    r = lifecycle.reserve_rental(
        "AUS-20261019-0001", [unit(), unit("Light", "20", "INV-00002")], NOW, NOW + timedelta(days=2),
        customer=Customer(first_name="Erika", last_name="Muster", customer_number="KND-00001"),
        discount_percent=5, additional_costs=15, additional_costs_description="Delivery", deposit_amount=200,
    )
    lifecycle.record_handover_protocol(r, now=NOW, **protocol)
    return RentalSnapshot.from_model(r, now=NOW)


def test_handover_protocol():
    pdf = rental_protocol_pdf(snapshot(notes="Complete, no scratches"), "handover")
    assert pdf.startswith(b"%PDF")


def test_signature_is_embedded():
    # any PNG works as a signature image
    plain = rental_protocol_pdf(snapshot(), "handover")
    signed = rental_protocol_pdf(snapshot(signature=qr_png("sig")), "handover")
    assert len(signed) > len(plain)


def test_return_protocol_without_return_data():
    assert rental_protocol_pdf(snapshot(), "return").startswith(b"%PDF")


def test_unknown_kind():
    with pytest.raises(ValueError):
        rental_protocol_pdf(snapshot(), "invoice")
