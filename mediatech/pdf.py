from __future__ import annotations
from io import BytesIO
from typing import Optional

# PDF (ReportLab)
from reportlab.lib import colors
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import Image, Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from . import config
from .snapshots import RentalSnapshot

DATE_FMT = "%d.%m.%Y"


def _fmt_date(value) -> str:
    return value.strftime(DATE_FMT) if value else "-"


def _money(value) -> str:
    return f"{value:.2f} {config.CURRENCY}"


def _signature(data: Optional[bytes]):
    if not data:
        return None
    return Image(BytesIO(data), width=60 * mm, height=20 * mm, kind="proportional")


def rental_protocol_pdf(rental: RentalSnapshot, kind: str = "handover") -> bytes:
    """
    Build a handover or return protocol for one rental.

    kind: "handover" or "return"; picks the notes, date and signature block.
    """
    if kind not in ("handover", "return"):
        raise ValueError(f"Unknown protocol kind: {kind}")

    buf = BytesIO()
    doc = SimpleDocTemplate(buf, title=f"{kind.title()} protocol {rental.rental_number}")
    styles = getSampleStyleSheet()
    elems = []

    elems.append(Paragraph(f"{config.COMPANY_NAME} | {kind.title()} protocol", styles["Title"]))
    elems.append(Paragraph(f"Rental {rental.rental_number} ({rental.status})", styles["Heading2"]))
    if rental.customer_name:
        elems.append(Paragraph(f"Customer: {rental.customer_name} {rental.customer_number}".strip(), styles["Normal"]))
    elems.append(Paragraph(
        f"Period: {_fmt_date(rental.planned_start_date)} - {_fmt_date(rental.planned_end_date)} "
        f"({rental.days} day(s))",
        styles["Normal"],
    ))
    if rental.event_location:
        elems.append(Paragraph(f"Location: {rental.event_location}", styles["Normal"]))
    elems.append(Spacer(1, 8))

    if not rental.items:
        elems.append(Paragraph("No equipment on this rental.", styles["Normal"]))
    else:
        condition_header = "Condition at handover" if kind == "handover" else "Condition at return"
        data = [["Inventory no.", "Equipment", "Qty", "Rate/day", "Days", "Total", condition_header]]
        for it in rental.items:
            condition = it.handover_condition if kind == "handover" else it.return_condition
            if kind == "return" and it.has_damage:
                condition = f"{condition} (damaged)".strip()
            data.append([
                it.inventory_number, it.equipment_name, str(it.quantity),
                _money(it.daily_rate), str(it.days), _money(it.total_price), condition,
            ])

        t = Table(data, hAlign="LEFT", repeatRows=1)
        t.setStyle(TableStyle([
            ("BACKGROUND", (0, 0), (-1, 0), colors.grey),
            ("TEXTCOLOR", (0, 0), (-1, 0), colors.whitesmoke),
            ("ALIGN", (2, 1), (5, -1), "RIGHT"),
            ("GRID", (0, 0), (-1, -1), 0.5, colors.black),
            ("BOTTOMPADDING", (0, 0), (-1, 0), 6),
            ("FONTSIZE", (0, 0), (-1, -1), 8),
        ]))
        elems.append(t)
    elems.append(Spacer(1, 8))

    totals = [["Subtotal", _money(rental.subtotal)]]
    if rental.discount:
        totals.append([f"Discount ({rental.discount_percent}%)", f"-{_money(rental.discount)}"])
    if rental.additional_costs:
        totals.append([rental.additional_costs_description or "Additional costs", _money(rental.additional_costs)])
    totals.append(["Total", _money(rental.total_price)])
    if rental.deposit_amount:
        totals.append(["Deposit", _money(rental.deposit_amount)])
    tt = Table(totals, hAlign="RIGHT")
    tt.setStyle(TableStyle([("LINEABOVE", (0, -1), (-1, -1), 0.5, colors.black)]))
    elems.append(tt)
    elems.append(Spacer(1, 12))

    notes = rental.handover_notes if kind == "handover" else rental.return_notes
    when = rental.handover_date if kind == "handover" else rental.return_date
    signature = rental.handover_signature if kind == "handover" else rental.return_signature
    if notes:
        elems.append(Paragraph(f"Notes: {notes}", styles["Normal"]))
    elems.append(Paragraph(f"Date: {_fmt_date(when)}", styles["Normal"]))
    sig = _signature(signature)
    if sig is not None:
        elems.append(sig)
    elems.append(Paragraph("Signature customer", styles["Italic"]))

    doc.build(elems)
    pdf = buf.getvalue()
    buf.close()
    return pdf
