from sqlalchemy import String, Integer, DateTime
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime, timezone
from eventpay.db.session import Base

PENDING = "PENDING"
PAID = "PAID"
FAILED = "FAILED"
EXPIRED = "EXPIRED"

TICKET_STATUSES = (PENDING, PAID, FAILED, EXPIRED)

# Every permitted status change. PAID has no outgoing edge.
TICKET_TRANSITIONS = frozenset({
    (PENDING, PAID),
    (PENDING, FAILED),
    (PENDING, EXPIRED),
    (FAILED, PENDING),
    (EXPIRED, PENDING),
})


class Ticket(Base):
    __tablename__ = "tickets"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    event_id: Mapped[str] = mapped_column(String(36), index=True)

    purchaser_name: Mapped[str] = mapped_column(String(200))
    purchaser_email: Mapped[str] = mapped_column(String(320), index=True)
    purchaser_contact: Mapped[str] = mapped_column(String(40))

    ticket_class: Mapped[str] = mapped_column(String(80))
    quantity: Mapped[int] = mapped_column(Integer, default=1)
    unit_price: Mapped[int] = mapped_column(Integer)
    amount: Mapped[int] = mapped_column(Integer)  # minor units, fixed at creation
    currency: Mapped[str] = mapped_column(String(3), default="INR")

    # Written only through ticket_store.transition
    status: Mapped[str] = mapped_column(String(12), default=PENDING, index=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
