from urllib.parse import urlparse, urlunparse, parse_qs, urlencode

from celery import Celery
from celery.signals import setup_logging
from eventpay.core.config import settings
from eventpay.core.logging import configure_logging


def _redis_url_for_celery(url: str) -> str:
    """Celery requires ssl_cert_reqs for rediss:// (e.g. Upstash TLS)."""
    if not url or not url.strip().lower().startswith("rediss://"):
        return url
    parsed = urlparse(url)
    qs = parse_qs(parsed.query)
    if "ssl_cert_reqs" not in qs:
        qs["ssl_cert_reqs"] = ["CERT_NONE"]
        new_query = urlencode(qs, doseq=True)
        return urlunparse(parsed._replace(query=new_query))
    return url


_redis_url = _redis_url_for_celery(settings.REDIS_URL)

celery = Celery(
    "eventpay",
    broker=_redis_url,
    backend=_redis_url,
    include=["eventpay.tasks.jobs"],
)

celery.conf.timezone = "UTC"


# Use our JSON logging instead of Celery's default handlers
@setup_logging.connect
def on_setup_logging(**kwargs):
    configure_logging()


celery.conf.beat_schedule = {
    "expire-stale-tickets": {
        "task": "eventpay.tasks.jobs.expire_stale_tickets",
        "schedule": settings.EXPIRY_SWEEP_SECONDS,
    },
}
