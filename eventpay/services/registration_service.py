from sqlalchemy.orm import Session

from eventpay.models.ticket import Ticket
from eventpay.services.event_service import ensure_capacity, find_ticket_class, get_event
from eventpay.services.ticket_store import Purchaser, create_ticket


def register_for_event(db: Session, event_id: str, purchaser: Purchaser, ticket_class: str, quantity: int) -> Ticket:
    """Create a PENDING ticket priced from the event's ticket class (never from the client)."""
    ev = get_event(db, event_id)
    tc = find_ticket_class(db, event_id, ticket_class)
    ensure_capacity(ev, int(quantity or 0))
    return create_ticket(
        db,
        event_id=ev.id,
        purchaser=purchaser,
        ticket_class=tc.name,
        quantity=quantity,
        unit_price=tc.price,
    )
