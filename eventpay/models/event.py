from sqlalchemy import String, Integer, DateTime, Text, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime, timezone
from eventpay.db.session import Base

class Event(Base):
    __tablename__ = "events"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    title: Mapped[str] = mapped_column(String(200))
    date: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)
    location: Mapped[str] = mapped_column(String(200), default="")
    description: Mapped[str] = mapped_column(Text, default="")

    max_registrations: Mapped[int] = mapped_column(Integer, default=100)
    current_registrations: Mapped[int] = mapped_column(Integer, default=0)  # incremented when a ticket is PAID

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))


class TicketClass(Base):
    __tablename__ = "ticket_classes"
    __table_args__ = (
        UniqueConstraint("event_id", "name", name="uq_ticket_class_event_name"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    event_id: Mapped[str] = mapped_column(String(36), ForeignKey("events.id", ondelete="CASCADE"), index=True)
    name: Mapped[str] = mapped_column(String(80))  # e.g. General, VIP
    price: Mapped[int] = mapped_column(Integer)  # minor currency units
