from fastapi import APIRouter, HTTPException
from fastapi.responses import RedirectResponse

from eventpay.models.payment_attempt import CONFIRMED, DECLINED
from eventpay.services.gateway import SandboxGateway, get_gateway, return_url

router = APIRouter(tags=["sandbox"])


@router.get("/sandbox/pay/{gateway_ref}")
def sandbox_pay_page(gateway_ref: str, amount: int = 0, outcome: str | None = None):
    """Dev stand-in for a provider pay page. `?outcome=CONFIRMED|DECLINED` finishes the payment."""
    gw = get_gateway("sandbox")
    if not isinstance(gw, SandboxGateway):
        raise HTTPException(status_code=404, detail="Not found")
    if outcome is None:
        return {
            "gatewayRef": gateway_ref,
            "amount": amount,
            "pay": f"/sandbox/pay/{gateway_ref}?outcome={CONFIRMED}",
            "decline": f"/sandbox/pay/{gateway_ref}?outcome={DECLINED}",
        }
    outcome = outcome.upper()
    if outcome not in (CONFIRMED, DECLINED):
        raise HTTPException(status_code=400, detail="outcome must be CONFIRMED or DECLINED")
    gw.outcomes[gateway_ref] = outcome
    return RedirectResponse(url=return_url(gateway_ref), status_code=303)
