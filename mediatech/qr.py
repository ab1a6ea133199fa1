# mediatech/qr.py
"""QR payloads for equipment labels and rental sheets, plus PNG rendering."""
from __future__ import annotations

import logging
import re
import uuid
from dataclasses import dataclass
from io import BytesIO
from typing import Optional

import qrcode
from qrcode.constants import ERROR_CORRECT_M

from . import config
from .db_models import Equipment, Rental

logger = logging.getLogger(__name__)

INVENTORY_PATTERN = re.compile(r"^[A-Z]{2,4}-\d{3,5}$")


@dataclass(frozen=True)
class QRContent:
    kind: str  # "equipment_id", "equipment_number" or "rental"
    value: str


def _is_uuid(value: str) -> bool:
    try:
        uuid.UUID(value)
    except ValueError:
        return False
    return True


def equipment_payload(equipment: Equipment, by_number: bool = False, scheme: str = config.QR_SCHEME) -> str:
    key = equipment.inventory_number if by_number else str(equipment.id)
    return f"{scheme}://equipment/{key}"


def rental_payload(rental: Rental, scheme: str = config.QR_SCHEME) -> str:
    return f"{scheme}://rental/{rental.id}"


def parse_qr_payload(content: str, scheme: str = config.QR_SCHEME) -> Optional[QRContent]:
    content = (content or "").strip()
    prefix = f"{scheme}://"
    if not content.lower().startswith(prefix.lower()):
        # plain inventory number or bare UUID
        if INVENTORY_PATTERN.match(content):
            return QRContent("equipment_number", content)
        if _is_uuid(content):
            return QRContent("equipment_id", content)
        return None

    parts = content[len(prefix):].split("/")
    if len(parts) < 2 or not parts[1]:
        return None
    kind, key = parts[0].lower(), parts[1]
    if kind == "equipment":
        return QRContent("equipment_id" if _is_uuid(key) else "equipment_number", key)
    if kind == "rental" and _is_uuid(key):
        return QRContent("rental", key)
    return None


def qr_png(payload: str, box_size: int = 10, border: int = 4) -> bytes:
    qr = qrcode.QRCode(version=None, error_correction=ERROR_CORRECT_M, box_size=box_size, border=border)
    qr.add_data(payload)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")
    buf = BytesIO()
    img.save(buf, format="PNG")
    logger.debug(f"[QR] Rendered {payload}")
    return buf.getvalue()
