from __future__ import annotations

import io
from datetime import datetime, timezone

from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas

from eventpay.services.query_service import ReceiptView


def format_amount(minor: int, currency: str) -> str:
    return f"{currency} {minor // 100:,}.{minor % 100:02d}"


def render_receipt_pdf(receipt: ReceiptView) -> bytes:
    """Return an A4 PDF receipt. Pure function."""
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=A4)
    _, h = A4

    # Header
    c.setFont("Helvetica-Bold", 18)
    c.drawString(40, h - 60, "Event Ticket Receipt")
    c.setFont("Helvetica", 11)
    c.drawString(40, h - 80, f"Ticket: {receipt.ticket_id}")

    # Event block
    c.setFont("Helvetica-Bold", 12)
    c.drawString(40, h - 115, "Event")
    c.setFont("Helvetica", 11)
    c.drawString(40, h - 133, receipt.event_title or "(Untitled event)")
    if receipt.event_date:
        c.drawString(40, h - 149, f"Date: {receipt.event_date.strftime('%d %b %Y %H:%M UTC')}")
    if receipt.event_location:
        c.drawString(40, h - 165, f"Venue: {receipt.event_location}")

    # Purchaser block
    c.setFont("Helvetica-Bold", 12)
    c.drawString(40, h - 200, "Attendee")
    c.setFont("Helvetica", 11)
    c.drawString(40, h - 218, receipt.purchaser_name or "(Not provided)")
    c.drawString(40, h - 234, receipt.purchaser_email)
    c.drawString(40, h - 250, receipt.purchaser_contact)

    # Payment block
    c.setFont("Helvetica-Bold", 12)
    c.drawString(40, h - 285, "Payment")
    c.setFont("Helvetica", 11)
    c.drawString(40, h - 303, f"{receipt.ticket_class} x {receipt.quantity} @ {format_amount(receipt.unit_price, receipt.currency)}")
    c.drawString(40, h - 319, f"Total paid: {format_amount(receipt.amount, receipt.currency)}")
    c.drawString(40, h - 335, f"Reference: {receipt.gateway_ref} {receipt.provider_txn_id}".rstrip())
    if receipt.paid_at:
        c.drawString(40, h - 351, f"Paid at: {receipt.paid_at.isoformat()}")

    # Footer
    c.setFont("Helvetica", 9)
    c.drawString(40, 40, "This receipt is generated automatically after successful payment.")
    c.drawString(40, 26, f"Generated: {datetime.now(timezone.utc).isoformat()}")

    c.showPage()
    c.save()
    return buf.getvalue()
