"""Durable ticket and payment-attempt records.

`transition` is the only code path that writes `Ticket.status`, and
`finalize_attempt` the only one that writes `PaymentAttempt.status` after
creation. Both are conditional updates (compare-and-swap): the row changes
only if it still holds the expected prior status, otherwise `ConflictError`
tells the caller that someone else got there first. Neither commits; the
caller owns the transaction.
"""
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import update
from sqlalchemy.orm import Session

from eventpay.core.config import settings
from eventpay.core.errors import ConflictError, IllegalTransition, NotFound, ValidationError
from eventpay.models.payment_attempt import PaymentAttempt, INITIATED, ATTEMPT_FINAL_STATUSES
from eventpay.models.ticket import Ticket, PENDING, TICKET_TRANSITIONS
from eventpay.services.event_service import get_event, find_ticket_class


@dataclass(frozen=True)
class Purchaser:
    name: str
    email: str
    contact: str


def create_ticket(db: Session, *, event_id: str, purchaser: Purchaser, ticket_class: str,
                  quantity: int, unit_price: int) -> Ticket:
    if quantity is None or int(quantity) <= 0:
        raise ValidationError("quantity must be >= 1")
    if unit_price is None or int(unit_price) < 0:
        raise ValidationError("unit price must be >= 0")
    try:
        get_event(db, event_id)
    except NotFound:
        raise ValidationError("Unknown event")
    find_ticket_class(db, event_id, ticket_class)

    now = datetime.now(timezone.utc)
    ticket = Ticket(
        id=str(uuid.uuid4()),
        event_id=event_id,
        purchaser_name=purchaser.name.strip(),
        purchaser_email=purchaser.email.strip().lower(),
        purchaser_contact=purchaser.contact.strip(),
        ticket_class=ticket_class,
        quantity=int(quantity),
        unit_price=int(unit_price),
        amount=int(unit_price) * int(quantity),
        currency=settings.CURRENCY,
        status=PENDING,
        created_at=now,
        updated_at=now,
    )
    db.add(ticket)
    db.commit()
    db.refresh(ticket)
    return ticket


def get_ticket(db: Session, ticket_id: str) -> Ticket:
    t = db.get(Ticket, ticket_id)
    if not t:
        raise NotFound("Ticket not found")
    return t


def transition(db: Session, ticket_id: str, from_status: str, to_status: str,
               updated_before: datetime | None = None) -> Ticket:
    if (from_status, to_status) not in TICKET_TRANSITIONS:
        raise IllegalTransition(f"{from_status} -> {to_status} is not allowed")

    stmt = update(Ticket).where(Ticket.id == ticket_id, Ticket.status == from_status)
    if updated_before is not None:
        # expiry only applies if nothing touched the ticket since it was picked
        stmt = stmt.where(Ticket.updated_at < updated_before)
    res = db.execute(
        stmt
        .values(status=to_status, updated_at=datetime.now(timezone.utc))
        .execution_options(synchronize_session=False)
    )
    if res.rowcount != 1:
        current = db.get(Ticket, ticket_id)
        if current is None:
            raise NotFound("Ticket not found")
        raise ConflictError(f"ticket {ticket_id} is not {from_status}")

    t = db.get(Ticket, ticket_id)
    db.refresh(t)
    return t


def add_attempt(db: Session, *, ticket: Ticket, gateway: str, gateway_ref: str, redirect_url: str) -> PaymentAttempt:
    attempt = PaymentAttempt(
        id=str(uuid.uuid4()),
        ticket_id=ticket.id,
        gateway=gateway,
        gateway_ref=gateway_ref,
        redirect_url=redirect_url,
        amount=ticket.amount,
        status=INITIATED,
        created_at=datetime.now(timezone.utc),
    )
    db.add(attempt)
    return attempt


def finalize_attempt(db: Session, attempt_id: str, to_status: str, provider_txn_id: str = "") -> None:
    if to_status not in ATTEMPT_FINAL_STATUSES:
        raise IllegalTransition(f"attempt cannot move to {to_status}")
    values = {"status": to_status, "finalized_at": datetime.now(timezone.utc)}
    if provider_txn_id:
        values["provider_txn_id"] = provider_txn_id
    res = db.execute(
        update(PaymentAttempt)
        .where(PaymentAttempt.id == attempt_id, PaymentAttempt.status == INITIATED)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if res.rowcount != 1:
        raise ConflictError(f"payment attempt {attempt_id} already finalized")


def find_attempt_by_ref(db: Session, gateway_ref: str) -> PaymentAttempt | None:
    return db.query(PaymentAttempt).filter(PaymentAttempt.gateway_ref == gateway_ref).first()


def open_attempt(db: Session, ticket_id: str) -> PaymentAttempt | None:
    return db.query(PaymentAttempt).filter(
        PaymentAttempt.ticket_id == ticket_id,
        PaymentAttempt.status == INITIATED,
    ).populate_existing().first()


def latest_attempt(db: Session, ticket_id: str) -> PaymentAttempt | None:
    return (
        db.query(PaymentAttempt)
        .filter(PaymentAttempt.ticket_id == ticket_id)
        .order_by(PaymentAttempt.created_at.desc())
        .first()
    )


def list_attempts(db: Session, ticket_id: str) -> list[PaymentAttempt]:
    return (
        db.query(PaymentAttempt)
        .filter(PaymentAttempt.ticket_id == ticket_id)
        .order_by(PaymentAttempt.created_at.asc())
        .all()
    )


def as_utc(dt: datetime | None) -> datetime | None:
    """SQLite hands back naive datetimes; everything we store is UTC."""
    if dt is None:
        return None
    if dt.tzinfo is None or dt.utcoffset() is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)
