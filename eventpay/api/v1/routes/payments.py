from fastapi import APIRouter, Depends, Request
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from eventpay.core.config import settings
from eventpay.db.session import get_db
from eventpay.models.ticket import PAID
from eventpay.services.gateway import RawCallback, get_gateway
from eventpay.services.reconciliation_service import apply_callback, apply_return

router = APIRouter(tags=["payments"])


@router.post("/webhooks/payments/{gateway_name}")
async def payment_webhook(gateway_name: str, req: Request, db: Session = Depends(get_db)):
    """Provider server-to-server callback. Body is forwarded verbatim.

    Answers 200 for applied, duplicate, ignored and review outcomes so the
    provider stops redelivering; 401 for bad signatures.
    """
    gateway = get_gateway(gateway_name)
    body = await req.body()
    report = apply_callback(db, RawCallback(body=body, headers=dict(req.headers)), gateway)
    return {"ok": True, "disposition": report.disposition}


@router.api_route("/payments/return/{gateway_ref}", methods=["GET", "POST"])
def payment_return(gateway_ref: str, db: Session = Depends(get_db)):
    ticket = apply_return(db, gateway_ref)
    base = settings.CLIENT_BASE_URL.rstrip("/")
    if ticket.status == PAID:
        return RedirectResponse(url=f"{base}/ticket/{ticket.id}", status_code=303)
    return RedirectResponse(url=f"{base}/payment-failure?ticket={ticket.id}&status={ticket.status}", status_code=303)
