from sqlalchemy import String, DateTime, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime, timezone
from eventpay.db.session import Base

OPEN = "OPEN"
RESOLVED = "RESOLVED"

LATE_CONFIRMATION = "LATE_CONFIRMATION"      # money moved after the ticket left PENDING
UNKNOWN_REFERENCE = "UNKNOWN_REFERENCE"      # confirmation for a gateway ref we never issued
SECOND_CONFIRMATION = "SECOND_CONFIRMATION"  # another attempt already paid the ticket

RESOLUTIONS = ("REFUNDED", "HONORED_OFFLINE")


class ReviewCase(Base):
    __tablename__ = "review_cases"
    __table_args__ = (
        UniqueConstraint("gateway_ref", "reason", name="uq_review_case_ref_reason"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    ticket_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)
    attempt_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    gateway_ref: Mapped[str] = mapped_column(String(120), index=True)
    outcome: Mapped[str] = mapped_column(String(12))
    ticket_status: Mapped[str] = mapped_column(String(12), default="")  # as observed when the outcome arrived
    reason: Mapped[str] = mapped_column(String(40))

    status: Mapped[str] = mapped_column(String(12), default=OPEN, index=True)
    resolution: Mapped[str] = mapped_column(String(30), default="")
    resolution_note: Mapped[str] = mapped_column(Text, default="")
    resolved_by: Mapped[str] = mapped_column(String(120), default="")

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    resolved_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=True)
