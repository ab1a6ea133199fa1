import uuid

from conftest import unit
from mediatech.qr import QRContent, equipment_payload, parse_qr_payload, qr_png


def test_equipment_payloads():
    cam = unit(number="CAM-0042")
    assert equipment_payload(cam) == f"mtm://equipment/{cam.id}"
    assert equipment_payload(cam, by_number=True) == "mtm://equipment/CAM-0042"


def test_parse_scheme_payloads():
    uid = str(uuid.uuid4())
    assert parse_qr_payload(f"mtm://equipment/{uid}") == QRContent("equipment_id", uid)
    assert parse_qr_payload("MTM://equipment/INV-00001") == QRContent("equipment_number", "INV-00001")
    assert parse_qr_payload(f"mtm://rental/{uid}") == QRContent("rental", uid)


def test_parse_legacy_payloads():
    uid = str(uuid.uuid4())
    assert parse_qr_payload(" INV-00007 ") == QRContent("equipment_number", "INV-00007")
    assert parse_qr_payload(uid) == QRContent("equipment_id", uid)


def test_parse_rejects_garbage():
    for content in ["", "https://example.com", "mtm://rental/not-a-uuid", "mtm://equipment/", "mtm://customer/1"]:
        assert parse_qr_payload(content) is None


def test_qr_png_is_png():
    assert qr_png("mtm://equipment/INV-00001").startswith(b"\x89PNG")
