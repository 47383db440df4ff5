"""Operator queue for confirmations the engine must not apply on its own."""
import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from eventpay.core.errors import NotFound, TicketStateError, ValidationError
from eventpay.models.review_case import ReviewCase, OPEN, RESOLVED, RESOLUTIONS
from eventpay.services.audit_service import log_audit

log = logging.getLogger(__name__)


def open_case(db: Session, *, gateway_ref: str, outcome: str, reason: str, ticket_id: str | None = None,
              attempt_id: str | None = None, ticket_status: str = "", actor: str = "gateway") -> ReviewCase:
    """Record a case and commit. Redelivery of the same (gateway_ref, reason) returns the existing case."""
    existing = db.query(ReviewCase).filter(ReviewCase.gateway_ref == gateway_ref, ReviewCase.reason == reason).first()
    if existing:
        return existing

    case = ReviewCase(
        id=str(uuid.uuid4()),
        ticket_id=ticket_id,
        attempt_id=attempt_id,
        gateway_ref=gateway_ref,
        outcome=outcome,
        ticket_status=ticket_status,
        reason=reason,
        status=OPEN,
    )
    db.add(case)
    log_audit(db, actor=actor, action="review.opened", entity_type="review_case", entity_id=case.id,
              details={"reason": reason, "gatewayRef": gateway_ref, "ticketId": ticket_id, "ticketStatus": ticket_status})
    try:
        db.commit()
    except IntegrityError:
        # lost the insert race to a concurrent redelivery
        db.rollback()
        return db.query(ReviewCase).filter(ReviewCase.gateway_ref == gateway_ref, ReviewCase.reason == reason).one()

    log.warning("payment routed to manual review", extra={
        "case_id": case.id, "reason": reason, "gateway_ref": gateway_ref,
        "ticket_id": ticket_id, "ticket_status": ticket_status,
    })
    return case


def list_cases(db: Session, status: str | None = OPEN, limit: int = 50, offset: int = 0) -> dict:
    query = db.query(ReviewCase)
    if status:
        query = query.filter(ReviewCase.status == status.upper())
    total = query.count()
    items = query.order_by(ReviewCase.created_at.desc()).limit(min(limit, 200)).offset(max(offset, 0)).all()
    return {"total": total, "items": items}


def cases_for_ticket(db: Session, ticket_id: str) -> list[ReviewCase]:
    return db.query(ReviewCase).filter(ReviewCase.ticket_id == ticket_id).order_by(ReviewCase.created_at.asc()).all()


def resolve_case(db: Session, case_id: str, resolution: str, note: str, actor: str) -> ReviewCase:
    resolution = (resolution or "").strip().upper()
    if resolution not in RESOLUTIONS:
        raise ValidationError(f"resolution must be one of {', '.join(RESOLUTIONS)}")
    case = db.get(ReviewCase, case_id)
    if not case:
        raise NotFound("Review case not found")
    if case.status == RESOLVED:
        raise TicketStateError("Review case already resolved")

    case.status = RESOLVED
    case.resolution = resolution
    case.resolution_note = note or ""
    case.resolved_by = actor
    case.resolved_at = datetime.now(timezone.utc)
    log_audit(db, actor=actor, action="review.resolved", entity_type="review_case", entity_id=case.id,
              details={"resolution": resolution, "note": note})
    db.commit()
    db.refresh(case)
    return case
