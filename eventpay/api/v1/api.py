from fastapi import APIRouter
from eventpay.api.v1.routes.events import router as events_router
from eventpay.api.v1.routes.tickets import router as tickets_router
from eventpay.api.v1.routes.payments import router as payments_router
from eventpay.api.v1.routes.ops import router as ops_router

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(events_router)
api_router.include_router(tickets_router)
api_router.include_router(payments_router)
api_router.include_router(ops_router)
