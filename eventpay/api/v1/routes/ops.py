import math

from fastapi import APIRouter, Depends
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from eventpay.api.deps import get_sweep_lock, require_roles
from eventpay.db.session import get_db
from eventpay.models.event import Event
from eventpay.models.payment_attempt import PaymentAttempt, CONFIRMED
from eventpay.models.review_case import ReviewCase
from eventpay.models.ticket import Ticket, PAID
from eventpay.schemas.review import ReviewCaseList, ReviewCaseOut, ReviewCaseResolve
from eventpay.services.audit_service import log_audit
from eventpay.services.review_service import cases_for_ticket, list_cases, resolve_case
from eventpay.services.ticket_store import as_utc, get_ticket
from eventpay.tasks.worker_jobs import sweep

router = APIRouter(tags=["ops"])

operator_only = require_roles("ops", "admin")


def _case_out(c: ReviewCase) -> ReviewCaseOut:
    return ReviewCaseOut(
        id=c.id,
        ticketId=c.ticket_id,
        attemptId=c.attempt_id,
        gatewayRef=c.gateway_ref,
        outcome=c.outcome,
        ticketStatus=c.ticket_status or "",
        reason=c.reason,
        status=c.status,
        resolution=c.resolution or "",
        resolutionNote=c.resolution_note or "",
        resolvedBy=c.resolved_by or "",
        createdAt=as_utc(c.created_at).isoformat(),
        resolvedAt=as_utc(c.resolved_at).isoformat() if c.resolved_at else None,
    )


@router.get("/ops/review-cases", response_model=ReviewCaseList)
def review_cases(status: str | None = "OPEN", limit: int = 50, offset: int = 0,
                 db: Session = Depends(get_db), me: dict = Depends(operator_only)):
    res = list_cases(db, status=status, limit=limit, offset=offset)
    return ReviewCaseList(total=res["total"], items=[_case_out(c) for c in res["items"]])


@router.post("/ops/review-cases/{case_id}/resolve", response_model=ReviewCaseOut)
def resolve_review_case(case_id: str, body: ReviewCaseResolve,
                        db: Session = Depends(get_db), me: dict = Depends(operator_only)):
    return _case_out(resolve_case(db, case_id, body.resolution, body.note, actor=me["sub"]))


@router.get("/ops/tickets/{ticket_id}/review-cases", response_model=ReviewCaseList)
def ticket_review_cases(ticket_id: str, db: Session = Depends(get_db), me: dict = Depends(operator_only)):
    get_ticket(db, ticket_id)
    items = cases_for_ticket(db, ticket_id)
    return ReviewCaseList(total=len(items), items=[_case_out(c) for c in items])


@router.post("/ops/tickets/expire-stale")
def run_expiry_sweep(db: Session = Depends(get_db), me: dict = Depends(operator_only),
                     lock=Depends(get_sweep_lock)):
    res = sweep(db, lock=lock)
    log_audit(db, actor=me["sub"], action="sweep.manual", entity_type="ticket", entity_id="*", details=res)
    db.commit()
    return {"ok": True, **res}


@router.get("/ops/payments")
def paid_tickets(search: str = "", page: int = 1, limit: int = 10,
                 db: Session = Depends(get_db), me: dict = Depends(operator_only)):
    page = max(page, 1)
    limit = min(max(limit, 1), 100)
    query = (
        db.query(Ticket, Event.title, PaymentAttempt)
        .outerjoin(Event, Event.id == Ticket.event_id)
        .outerjoin(PaymentAttempt, (PaymentAttempt.ticket_id == Ticket.id) & (PaymentAttempt.status == CONFIRMED))
        .filter(Ticket.status == PAID)
    )
    if search:
        ql = f"%{search.lower()}%"
        query = query.filter(or_(
            func.lower(Ticket.purchaser_name).like(ql),
            func.lower(Ticket.purchaser_email).like(ql),
            func.lower(Ticket.purchaser_contact).like(ql),
        ))
    total = query.count()
    rows = query.order_by(Ticket.updated_at.desc()).offset((page - 1) * limit).limit(limit).all()
    return {
        "payments": [
            {
                "ticketId": t.id,
                "gatewayRef": a.gateway_ref if a else "",
                "providerTxnId": a.provider_txn_id if a else "",
                "name": t.purchaser_name,
                "email": t.purchaser_email,
                "contact": t.purchaser_contact,
                "amount": t.amount,
                "currency": t.currency,
                "type": t.ticket_class,
                "source": title or "Event",
                "date": as_utc(a.finalized_at if a and a.finalized_at else t.updated_at).isoformat(),
            }
            for t, title, a in rows
        ],
        "pagination": {"total": total, "pages": math.ceil(total / limit), "current": page, "limit": limit},
    }
