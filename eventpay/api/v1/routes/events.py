from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from eventpay.db.session import get_db
from eventpay.models.event import Event
from eventpay.schemas.event import EventListOut, EventOut, PaginationOut, TicketClassOut
from eventpay.schemas.ticket import RegistrationCreate, RegistrationOut
from eventpay.services.event_service import available_seats, get_event, list_events, ticket_classes
from eventpay.services.registration_service import register_for_event
from eventpay.services.ticket_store import Purchaser, as_utc

router = APIRouter(tags=["events"])


def _event_out(db: Session, ev: Event) -> EventOut:
    return EventOut(
        id=ev.id,
        title=ev.title,
        date=as_utc(ev.date).isoformat() if ev.date else None,
        location=ev.location or "",
        description=ev.description or "",
        maxRegistrations=ev.max_registrations,
        currentRegistrations=ev.current_registrations,
        availableTickets=available_seats(ev),
        ticketTypes=[TicketClassOut(name=tc.name, price=tc.price) for tc in ticket_classes(db, ev.id)],
    )


@router.get("/public/events", response_model=EventListOut)
def list_public_events(search: str = "", page: int = 1, limit: int = 10, db: Session = Depends(get_db)):
    res = list_events(db, search=search, page=page, limit=limit)
    return EventListOut(
        events=[_event_out(db, ev) for ev in res["events"]],
        pagination=PaginationOut(**res["pagination"]),
    )


@router.get("/public/events/{event_id}", response_model=EventOut)
def get_public_event(event_id: str, db: Session = Depends(get_db)):
    return _event_out(db, get_event(db, event_id))


@router.post("/public/events/{event_id}/register", response_model=RegistrationOut)
def register(event_id: str, body: RegistrationCreate, db: Session = Depends(get_db)):
    ticket = register_for_event(
        db,
        event_id,
        Purchaser(name=body.name, email=body.email, contact=body.contact),
        ticket_class=body.ticketClass,
        quantity=body.quantity,
    )
    return RegistrationOut(ticketId=ticket.id, status=ticket.status, amount=ticket.amount, currency=ticket.currency)
