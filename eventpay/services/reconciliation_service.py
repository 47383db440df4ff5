"""Ticket/payment reconciliation.

Per-ticket state machine:

    PENDING --confirmed--> PAID (terminal)
    PENDING --declined---> FAILED --retry--> PENDING
    PENDING --timeout----> EXPIRED --retry--> PENDING

Every status change goes through `ticket_store.transition`, a conditional
update. When two deliveries of the same outcome race, exactly one wins the
update and the other sees `ConflictError`, which is absorbed here and
reported as a duplicate. Confirmations that arrive for a ticket that is no
longer PENDING (expired, or already paid by another attempt) are never
applied; they open a review case for an operator.
"""
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from eventpay.core.config import settings
from eventpay.core.errors import AppError, ConflictError, GatewayUnavailable, InvalidSignature, NotFound, TicketStateError
from eventpay.models.payment_attempt import PaymentAttempt, INITIATED, CONFIRMED, DECLINED, TIMED_OUT
from eventpay.models.review_case import LATE_CONFIRMATION, SECOND_CONFIRMATION, UNKNOWN_REFERENCE
from eventpay.models.ticket import Ticket, PENDING, PAID, FAILED, EXPIRED
from eventpay.services import ticket_store
from eventpay.services.audit_service import log_audit
from eventpay.services.event_service import add_registrations, ensure_capacity, get_event
from eventpay.services.gateway import CallbackResult, PaymentGateway, PaymentIntent, RawCallback, get_gateway
from eventpay.services.review_service import open_case

log = logging.getLogger(__name__)

APPLIED = "APPLIED"
DUPLICATE = "DUPLICATE"
IGNORED = "IGNORED"
REVIEW = "REVIEW"


@dataclass(frozen=True)
class CheckoutResult:
    ticket_id: str
    attempt_id: str
    gateway_ref: str
    redirect_url: str
    reused: bool = False


@dataclass(frozen=True)
class OutcomeReport:
    disposition: str
    ticket_id: str | None = None
    ticket_status: str | None = None
    case_id: str | None = None


def _checkout_from(attempt: PaymentAttempt, reused: bool) -> CheckoutResult:
    return CheckoutResult(
        ticket_id=attempt.ticket_id,
        attempt_id=attempt.id,
        gateway_ref=attempt.gateway_ref,
        redirect_url=attempt.redirect_url,
        reused=reused,
    )


def _request_intent(gateway: PaymentGateway, ticket: Ticket) -> PaymentIntent:
    tries = max(int(settings.GATEWAY_MAX_ATTEMPTS), 1)
    last_error = None
    for n in range(tries):
        try:
            return gateway.create_intent(ticket.id, ticket.amount, ticket.purchaser_contact)
        except GatewayUnavailable as e:
            last_error = e
            log.warning("payment intent request failed", extra={
                "ticket_id": ticket.id, "gateway": gateway.name, "try": n + 1, "error": str(e),
            })
            if n + 1 < tries:
                time.sleep(settings.GATEWAY_BACKOFF_SECONDS * (2 ** n))
    raise GatewayUnavailable("Checkout is temporarily unavailable, please try again") from last_error


def start_checkout(db: Session, ticket_id: str, gateway: PaymentGateway | None = None) -> CheckoutResult:
    """Return a pay-page redirect for a PENDING ticket.

    While an INITIATED attempt exists its redirect is handed back instead of
    asking the gateway again, so double submits never produce two intents.
    Gateway failures leave the ticket untouched (still PENDING, retryable).
    """
    gateway = gateway or get_gateway()

    # Row lock serializes checkouts for the same ticket (no-op on SQLite).
    ticket = db.execute(
        select(Ticket).where(Ticket.id == ticket_id).with_for_update().execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if not ticket:
        raise NotFound("Ticket not found")
    try:
        if ticket.status != PENDING:
            raise TicketStateError(f"Ticket is {ticket.status}; checkout is not available")

        existing = ticket_store.open_attempt(db, ticket.id)
        if existing:
            result = _checkout_from(existing, reused=True)
            db.rollback()
            return result

        ensure_capacity(get_event(db, ticket.event_id), ticket.quantity)
        intent = _request_intent(gateway, ticket)
    except AppError:
        db.rollback()
        raise

    attempt = ticket_store.add_attempt(
        db, ticket=ticket, gateway=gateway.name, gateway_ref=intent.gateway_ref, redirect_url=intent.redirect_url,
    )
    log_audit(db, actor="public", action="checkout.started", entity_type="ticket", entity_id=ticket.id,
              details={"attemptId": attempt.id, "gateway": gateway.name, "gatewayRef": intent.gateway_ref, "amount": ticket.amount})
    try:
        db.commit()
    except IntegrityError:
        # a concurrent checkout recorded its attempt first
        db.rollback()
        winner = ticket_store.open_attempt(db, ticket_id)
        if winner is None:
            raise
        return _checkout_from(winner, reused=True)

    log.info("checkout started", extra={"ticket_id": ticket_id, "attempt_id": attempt.id, "gateway_ref": intent.gateway_ref})
    return _checkout_from(attempt, reused=False)


def retry_checkout(db: Session, ticket_id: str, gateway: PaymentGateway | None = None) -> CheckoutResult:
    """User-initiated retry: FAILED/EXPIRED go back to PENDING, then a fresh checkout."""
    ticket = ticket_store.get_ticket(db, ticket_id)
    db.refresh(ticket)
    prior = ticket.status
    if prior == PAID:
        raise TicketStateError("Ticket is already paid")
    if prior in (FAILED, EXPIRED):
        try:
            ticket_store.transition(db, ticket_id, prior, PENDING)
            log_audit(db, actor="public", action="ticket.retry", entity_type="ticket", entity_id=ticket_id,
                      details={"from": prior})
            db.commit()
            log.info("ticket reopened for retry", extra={"ticket_id": ticket_id, "from_status": prior})
        except ConflictError:
            # another retry got there first; the ticket is PENDING either way or checkout will say why not
            db.rollback()
    return start_checkout(db, ticket_id, gateway)


def _reject_callback(db: Session, gateway: PaymentGateway, raw: RawCallback, error: InvalidSignature) -> None:
    log.warning("rejected payment callback with invalid signature", extra={
        "gateway": gateway.name, "error": str(error), "body_bytes": len(raw.body or b""),
    })
    log_audit(db, actor=gateway.name, action="callback.invalid_signature", entity_type="gateway", entity_id=gateway.name,
              details={"error": str(error), "bodyBytes": len(raw.body or b"")})
    db.commit()


def apply_callback(db: Session, raw: RawCallback, gateway: PaymentGateway | None = None) -> OutcomeReport:
    """Verify a provider callback and apply it. InvalidSignature is audited and re-raised; nothing else changes."""
    gateway = gateway or get_gateway()
    try:
        result = gateway.parse_callback(raw)
        if not result.signature_valid:
            raise InvalidSignature("Callback signature not valid")
    except InvalidSignature as e:
        _reject_callback(db, gateway, raw, e)
        raise
    return apply_outcome(db, result, source=gateway.name)


def apply_outcome(db: Session, result: CallbackResult, source: str) -> OutcomeReport:
    if result.outcome is None:
        log.info("non-final payment status ignored", extra={"gateway_ref": result.gateway_ref, "source": source})
        return OutcomeReport(IGNORED)

    attempt = ticket_store.find_attempt_by_ref(db, result.gateway_ref)
    if attempt is None:
        if result.outcome == CONFIRMED:
            case = open_case(db, gateway_ref=result.gateway_ref, outcome=result.outcome,
                             reason=UNKNOWN_REFERENCE, actor=source)
            return OutcomeReport(REVIEW, case_id=case.id)
        log.info("outcome for unknown gateway ref ignored", extra={"gateway_ref": result.gateway_ref, "source": source})
        return OutcomeReport(IGNORED)

    if attempt.status != INITIATED:
        return _settle_stale(db, attempt.id, result, source)
    if result.outcome == CONFIRMED:
        return _confirm(db, attempt, result, source)
    return _decline(db, attempt, result, source)


def _confirm(db: Session, attempt: PaymentAttempt, result: CallbackResult, source: str) -> OutcomeReport:
    attempt_id, ticket_id = attempt.id, attempt.ticket_id
    try:
        ticket = ticket_store.transition(db, ticket_id, PENDING, PAID)
        ticket_store.finalize_attempt(db, attempt_id, CONFIRMED, result.provider_txn_id)
        add_registrations(db, ticket.event_id, ticket.quantity)
        log_audit(db, actor=source, action="ticket.paid", entity_type="ticket", entity_id=ticket_id,
                  details={"attemptId": attempt_id, "gatewayRef": result.gateway_ref, "providerTxnId": result.provider_txn_id})
        db.commit()
    except (ConflictError, IntegrityError):
        db.rollback()
        return _settle_stale(db, attempt_id, result, source)

    log.info("ticket paid", extra={"ticket_id": ticket_id, "attempt_id": attempt_id, "gateway_ref": result.gateway_ref})
    return OutcomeReport(APPLIED, ticket_id=ticket_id, ticket_status=PAID)


def _decline(db: Session, attempt: PaymentAttempt, result: CallbackResult, source: str) -> OutcomeReport:
    attempt_id, ticket_id = attempt.id, attempt.ticket_id
    try:
        ticket_store.transition(db, ticket_id, PENDING, FAILED)
        ticket_store.finalize_attempt(db, attempt_id, DECLINED, result.provider_txn_id)
        log_audit(db, actor=source, action="ticket.failed", entity_type="ticket", entity_id=ticket_id,
                  details={"attemptId": attempt_id, "gatewayRef": result.gateway_ref})
        db.commit()
    except ConflictError:
        db.rollback()
        return _settle_stale(db, attempt_id, result, source)

    log.info("ticket payment declined", extra={"ticket_id": ticket_id, "attempt_id": attempt_id})
    return OutcomeReport(APPLIED, ticket_id=ticket_id, ticket_status=FAILED)


def _settle_stale(db: Session, attempt_id: str, result: CallbackResult, source: str) -> OutcomeReport:
    """The outcome can no longer be applied as-is: classify it as duplicate, review, or noise."""
    attempt = db.get(PaymentAttempt, attempt_id)
    db.refresh(attempt)
    ticket = ticket_store.get_ticket(db, attempt.ticket_id)
    db.refresh(ticket)

    if attempt.status == result.outcome:
        log.info("duplicate payment outcome discarded", extra={
            "ticket_id": ticket.id, "attempt_id": attempt.id, "outcome": result.outcome, "source": source,
        })
        return OutcomeReport(DUPLICATE, ticket_id=ticket.id, ticket_status=ticket.status)

    if result.outcome == CONFIRMED:
        # Money moved but the ticket is not waiting for it any more.
        reason = SECOND_CONFIRMATION if ticket.status == PAID else LATE_CONFIRMATION
        case = open_case(db, gateway_ref=result.gateway_ref, outcome=result.outcome, reason=reason,
                         ticket_id=ticket.id, attempt_id=attempt.id, ticket_status=ticket.status, actor=source)
        return OutcomeReport(REVIEW, ticket_id=ticket.id, ticket_status=ticket.status, case_id=case.id)

    log.info("stale decline ignored", extra={
        "ticket_id": ticket.id, "attempt_id": attempt.id, "attempt_status": attempt.status, "source": source,
    })
    return OutcomeReport(IGNORED, ticket_id=ticket.id, ticket_status=ticket.status)


def apply_return(db: Session, gateway_ref: str) -> Ticket:
    """Payer came back from the pay page: ask the gateway for the authoritative outcome and apply it."""
    attempt = ticket_store.find_attempt_by_ref(db, gateway_ref)
    if not attempt:
        raise NotFound("Unknown payment reference")
    ticket_id = attempt.ticket_id

    if attempt.status == INITIATED:
        gateway = get_gateway(attempt.gateway)
        try:
            result = gateway.fetch_status(gateway_ref)
        except GatewayUnavailable as e:
            # the callback (or the next return) will settle it
            log.warning("payment status query failed", extra={"gateway_ref": gateway_ref, "error": str(e)})
        else:
            if result.gateway_ref != gateway_ref:
                result = CallbackResult(gateway_ref=gateway_ref, outcome=result.outcome,
                                        signature_valid=True, provider_txn_id=result.provider_txn_id)
            apply_outcome(db, result, source=f"{gateway.name}.return")

    ticket = ticket_store.get_ticket(db, ticket_id)
    db.refresh(ticket)
    return ticket


def expire_stale(db: Session, now: datetime | None = None) -> int:
    """Move PENDING tickets with no activity inside the checkout window to EXPIRED.

    Activity is the later of the ticket's last update and its latest payment
    attempt. The EXPIRED transition is conditional like every other one, so a
    callback that wins the race leaves the ticket PAID and the sweep skips it.
    """
    now = ticket_store.as_utc(now) or datetime.now(timezone.utc)
    cutoff = now - timedelta(minutes=settings.CHECKOUT_TIMEOUT_MINUTES)

    candidates = [
        row[0] for row in db.query(Ticket.id).filter(Ticket.status == PENDING, Ticket.updated_at < cutoff).all()
    ]
    expired = 0
    for ticket_id in candidates:
        try:
            ticket_store.transition(db, ticket_id, PENDING, EXPIRED, updated_before=cutoff)
            latest = ticket_store.latest_attempt(db, ticket_id)
            if latest is not None and ticket_store.as_utc(latest.created_at) >= cutoff:
                # a checkout landed after we picked this ticket
                db.rollback()
                continue
            pending = ticket_store.open_attempt(db, ticket_id)
            if pending is not None:
                ticket_store.finalize_attempt(db, pending.id, TIMED_OUT)
            log_audit(db, actor="sweeper", action="ticket.expired", entity_type="ticket", entity_id=ticket_id,
                      details={"cutoff": cutoff.isoformat(), "attemptId": pending.id if pending else None})
            db.commit()
            expired += 1
        except ConflictError:
            db.rollback()
            log.info("expiry skipped, ticket changed concurrently", extra={"ticket_id": ticket_id})

    if expired:
        log.info("expired stale tickets", extra={"expired": expired, "cutoff": cutoff.isoformat()})
    return expired
