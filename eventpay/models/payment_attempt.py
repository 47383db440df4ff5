from sqlalchemy import String, Integer, DateTime, Index, text
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime, timezone
from eventpay.db.session import Base

INITIATED = "INITIATED"
CONFIRMED = "CONFIRMED"
DECLINED = "DECLINED"
TIMED_OUT = "TIMED_OUT"

ATTEMPT_FINAL_STATUSES = (CONFIRMED, DECLINED, TIMED_OUT)


class PaymentAttempt(Base):
    __tablename__ = "payment_attempts"
    __table_args__ = (
        # at most one unresolved attempt and at most one confirmed attempt per ticket
        Index(
            "uq_payment_attempt_open", "ticket_id", unique=True,
            postgresql_where=text("status = 'INITIATED'"),
            sqlite_where=text("status = 'INITIATED'"),
        ),
        Index(
            "uq_payment_attempt_confirmed", "ticket_id", unique=True,
            postgresql_where=text("status = 'CONFIRMED'"),
            sqlite_where=text("status = 'CONFIRMED'"),
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    ticket_id: Mapped[str] = mapped_column(String(36), index=True)
    gateway: Mapped[str] = mapped_column(String(40))  # sandbox/phonepe
    gateway_ref: Mapped[str] = mapped_column(String(120), unique=True, index=True)
    provider_txn_id: Mapped[str] = mapped_column(String(120), default="")
    redirect_url: Mapped[str] = mapped_column(String(1024), default="")
    amount: Mapped[int] = mapped_column(Integer)
    status: Mapped[str] = mapped_column(String(12), default=INITIATED)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    finalized_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=True)
