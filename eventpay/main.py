import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from eventpay.core.config import settings
from eventpay.core.errors import AppError, to_payload
from eventpay.core.logging import configure_logging
from eventpay.api.v1.api import api_router
from eventpay.api.v1.routes.sandbox import router as sandbox_router

configure_logging()
log = logging.getLogger(__name__)

app = FastAPI(title=settings.APP_NAME)

# CORS: use CORS_ORIGINS from env in production; default to localhost for dev
_default_origins = [
    "http://127.0.0.1:5173", "http://localhost:5173",
]
_origins = [o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()] if settings.CORS_ORIGINS else _default_origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(AppError)
def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        log.error("request failed", extra={"path": request.url.path, "code": exc.code, "error": exc.message})
    return JSONResponse(status_code=exc.status_code, content=to_payload(exc))


app.include_router(api_router)
if settings.PAYMENT_GATEWAY == "sandbox":
    app.include_router(sandbox_router)


@app.get("/health")
def health():
    return {"status": "ok"}
