# Import all models so Base.metadata sees every table (Alembic, tests).
from eventpay.db.session import Base  # noqa: F401
from eventpay.models.event import Event, TicketClass  # noqa: F401
from eventpay.models.ticket import Ticket  # noqa: F401
from eventpay.models.payment_attempt import PaymentAttempt  # noqa: F401
from eventpay.models.review_case import ReviewCase  # noqa: F401
from eventpay.models.audit_log import AuditLog  # noqa: F401
