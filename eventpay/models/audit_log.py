from sqlalchemy import String, DateTime, Text
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime, timezone
from eventpay.db.session import Base

class AuditLog(Base):
    __tablename__ = "audit_logs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    actor: Mapped[str] = mapped_column(String(120), index=True)  # public, gateway name, sweeper, operator subject
    action: Mapped[str] = mapped_column(String(80), index=True)  # e.g. ticket.paid, callback.invalid_signature
    entity_type: Mapped[str] = mapped_column(String(40), index=True)  # ticket, payment_attempt, review_case
    entity_id: Mapped[str] = mapped_column(String(120), index=True)
    details_json: Mapped[str] = mapped_column(Text, default="{}")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
