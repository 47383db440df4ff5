from datetime import datetime, timezone

import pytest

from eventpay.core.errors import NotFound, ValidationError
from eventpay.services.event_service import (
    add_registrations, available_seats, ensure_capacity, find_ticket_class, get_event, list_events,
)
from eventpay.services.query_service import ReceiptView
from eventpay.services.receipt_service import format_amount, render_receipt_pdf


def test_capacity_messages(db, make_event):
    ev = make_event(max_registrations=3)
    ensure_capacity(ev, 3)
    with pytest.raises(ValidationError, match="Only 3 tickets available"):
        ensure_capacity(ev, 4)

    add_registrations(db, ev.id, 2)
    db.commit()
    ev = get_event(db, ev.id)
    assert available_seats(ev) == 1
    with pytest.raises(ValidationError, match="Only 1 ticket available"):
        ensure_capacity(ev, 2)

    add_registrations(db, ev.id, 1)
    db.commit()
    with pytest.raises(ValidationError, match="Registration Full"):
        ensure_capacity(get_event(db, ev.id), 1)


def test_lookups(db, make_event):
    ev = make_event()
    assert find_ticket_class(db, ev.id, "VIP").price == 150000
    with pytest.raises(ValidationError):
        find_ticket_class(db, ev.id, "Backstage")
    with pytest.raises(NotFound):
        get_event(db, "missing")


def test_list_events_searches_location(db, make_event):
    make_event(title="Food Walk", location="Old Delhi")
    make_event(title="Tech Talk", location="Hyderabad")
    res = list_events(db, search="delhi")
    assert [e.title for e in res["events"]] == ["Food Walk"]
    assert res["pagination"]["total"] == 1


def test_format_amount():
    assert format_amount(49900, "INR") == "INR 499.00"
    assert format_amount(12345605, "INR") == "INR 123,456.05"


def test_receipt_pdf_renders():
    receipt = ReceiptView(
        ticket_id="t-1", event_id="e-1", event_title="Launch Night",
        event_date=datetime(2026, 11, 1, 18, 0, tzinfo=timezone.utc), event_location="Pune",
        purchaser_name="Asha Rao", purchaser_email="asha@example.com", purchaser_contact="9876543210",
        ticket_class="VIP", quantity=2, unit_price=150000, amount=300000, currency="INR",
        gateway="sandbox", gateway_ref="SBX_1", provider_txn_id="PROV-1",
        paid_at=datetime(2026, 10, 19, 9, 30, tzinfo=timezone.utc),
    )
    pdf = render_receipt_pdf(receipt)
    assert pdf.startswith(b"%PDF")
    assert len(pdf) > 500
