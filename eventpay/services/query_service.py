"""Read-only projections for the UI: ticket status and receipts."""
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.orm import Session

from eventpay.core.errors import ReceiptUnavailable
from eventpay.models.event import Event
from eventpay.models.payment_attempt import PaymentAttempt, CONFIRMED
from eventpay.models.ticket import PAID
from eventpay.services.ticket_store import get_ticket, as_utc


@dataclass(frozen=True)
class ReceiptView:
    ticket_id: str
    event_id: str
    event_title: str
    event_date: datetime | None
    event_location: str
    purchaser_name: str
    purchaser_email: str
    purchaser_contact: str
    ticket_class: str
    quantity: int
    unit_price: int
    amount: int
    currency: str
    gateway: str
    gateway_ref: str
    provider_txn_id: str
    paid_at: datetime | None


def get_status(db: Session, ticket_id: str) -> str:
    t = get_ticket(db, ticket_id)
    db.refresh(t)
    return t.status


def get_receipt(db: Session, ticket_id: str) -> ReceiptView:
    t = get_ticket(db, ticket_id)
    db.refresh(t)
    if t.status != PAID:
        raise ReceiptUnavailable(f"Receipt is only available after payment (ticket is {t.status})")

    attempt = db.query(PaymentAttempt).filter(
        PaymentAttempt.ticket_id == t.id, PaymentAttempt.status == CONFIRMED,
    ).first()
    ev = db.get(Event, t.event_id)
    return ReceiptView(
        ticket_id=t.id,
        event_id=t.event_id,
        event_title=ev.title if ev else "",
        event_date=as_utc(ev.date) if ev else None,
        event_location=ev.location if ev else "",
        purchaser_name=t.purchaser_name,
        purchaser_email=t.purchaser_email,
        purchaser_contact=t.purchaser_contact,
        ticket_class=t.ticket_class,
        quantity=t.quantity,
        unit_price=t.unit_price,
        amount=t.amount,
        currency=t.currency,
        gateway=attempt.gateway if attempt else "",
        gateway_ref=attempt.gateway_ref if attempt else "",
        provider_txn_id=attempt.provider_txn_id if attempt else "",
        paid_at=as_utc(attempt.finalized_at) if attempt else as_utc(t.updated_at),
    )
