from fastapi import APIRouter, Depends
from fastapi.responses import Response
from sqlalchemy.orm import Session

from eventpay.db.session import get_db
from eventpay.schemas.ticket import CheckoutOut, PaymentAttemptOut, ReceiptOut, TicketOut, TicketStatusOut
from eventpay.services.query_service import get_receipt, get_status
from eventpay.services.receipt_service import render_receipt_pdf
from eventpay.services.reconciliation_service import CheckoutResult, retry_checkout, start_checkout
from eventpay.services.ticket_store import as_utc, get_ticket, list_attempts

router = APIRouter(tags=["tickets"])


def _iso(dt):
    return as_utc(dt).isoformat() if dt else None


def _checkout_out(res: CheckoutResult) -> CheckoutOut:
    return CheckoutOut(ticketId=res.ticket_id, redirectUrl=res.redirect_url, gatewayRef=res.gateway_ref, reused=res.reused)


@router.post("/public/tickets/{ticket_id}/checkout", response_model=CheckoutOut)
def checkout(ticket_id: str, db: Session = Depends(get_db)):
    return _checkout_out(start_checkout(db, ticket_id))


@router.post("/public/tickets/{ticket_id}/retry", response_model=CheckoutOut)
def retry(ticket_id: str, db: Session = Depends(get_db)):
    return _checkout_out(retry_checkout(db, ticket_id))


@router.get("/public/tickets/{ticket_id}", response_model=TicketOut)
def ticket_details(ticket_id: str, db: Session = Depends(get_db)):
    t = get_ticket(db, ticket_id)
    return TicketOut(
        ticketId=t.id,
        eventId=t.event_id,
        name=t.purchaser_name,
        email=t.purchaser_email,
        contact=t.purchaser_contact,
        ticketClass=t.ticket_class,
        quantity=t.quantity,
        unitPrice=t.unit_price,
        amount=t.amount,
        currency=t.currency,
        status=t.status,
        createdAt=_iso(t.created_at),
        updatedAt=_iso(t.updated_at),
        attempts=[
            PaymentAttemptOut(
                id=a.id, gateway=a.gateway, gatewayRef=a.gateway_ref, status=a.status, amount=a.amount,
                createdAt=_iso(a.created_at), finalizedAt=_iso(a.finalized_at),
            )
            for a in list_attempts(db, t.id)
        ],
    )


@router.get("/public/tickets/{ticket_id}/status", response_model=TicketStatusOut)
def ticket_status(ticket_id: str, db: Session = Depends(get_db)):
    return TicketStatusOut(ticketId=ticket_id, status=get_status(db, ticket_id))


@router.get("/public/tickets/{ticket_id}/receipt", response_model=ReceiptOut)
def receipt(ticket_id: str, db: Session = Depends(get_db)):
    r = get_receipt(db, ticket_id)
    return ReceiptOut(
        ticketId=r.ticket_id,
        eventId=r.event_id,
        eventTitle=r.event_title,
        eventDate=_iso(r.event_date),
        eventLocation=r.event_location,
        name=r.purchaser_name,
        email=r.purchaser_email,
        contact=r.purchaser_contact,
        ticketClass=r.ticket_class,
        quantity=r.quantity,
        unitPrice=r.unit_price,
        amount=r.amount,
        currency=r.currency,
        gateway=r.gateway,
        gatewayRef=r.gateway_ref,
        providerTxnId=r.provider_txn_id,
        paidAt=_iso(r.paid_at),
    )


@router.get("/public/tickets/{ticket_id}/receipt.pdf")
def receipt_pdf(ticket_id: str, db: Session = Depends(get_db)):
    pdf = render_receipt_pdf(get_receipt(db, ticket_id))
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="ticket-{ticket_id}.pdf"'},
    )
