import math

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from eventpay.core.errors import NotFound, ValidationError
from eventpay.models.event import Event, TicketClass


def get_event(db: Session, event_id: str) -> Event:
    ev = db.get(Event, event_id)
    if not ev:
        raise NotFound("Event not found")
    return ev


def list_events(db: Session, search: str = "", page: int = 1, limit: int = 10) -> dict:
    page = max(int(page or 1), 1)
    limit = min(max(int(limit or 10), 1), 100)

    query = db.query(Event)
    if search:
        ql = f"%{search.lower()}%"
        query = query.filter(or_(
            func.lower(Event.title).like(ql),
            func.lower(Event.location).like(ql),
            func.lower(Event.description).like(ql),
        ))
    total = query.count()
    events = query.order_by(Event.date.asc()).offset((page - 1) * limit).limit(limit).all()
    return {
        "events": events,
        "pagination": {"total": total, "pages": math.ceil(total / limit), "current": page, "limit": limit},
    }


def ticket_classes(db: Session, event_id: str) -> list[TicketClass]:
    return db.query(TicketClass).filter(TicketClass.event_id == event_id).order_by(TicketClass.price.asc()).all()


def find_ticket_class(db: Session, event_id: str, name: str) -> TicketClass:
    tc = db.query(TicketClass).filter(TicketClass.event_id == event_id, TicketClass.name == name).first()
    if not tc:
        raise ValidationError(f"Unknown ticket class '{name}' for this event")
    return tc


def available_seats(ev: Event) -> int:
    return max(int(ev.max_registrations or 0) - int(ev.current_registrations or 0), 0)


def ensure_capacity(ev: Event, quantity: int) -> None:
    available = available_seats(ev)
    if quantity > available:
        if available == 0:
            raise ValidationError("Registration Full")
        raise ValidationError(f"Only {available} ticket{'' if available == 1 else 's'} available")


def add_registrations(db: Session, event_id: str, quantity: int) -> None:
    """Count paid seats. Runs inside the PENDING->PAID transaction."""
    db.query(Event).filter(Event.id == event_id).update(
        {Event.current_registrations: Event.current_registrations + quantity},
        synchronize_session=False,
    )
