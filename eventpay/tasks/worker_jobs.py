import logging
from datetime import datetime, timezone

import redis
from redis.exceptions import LockError
from sqlalchemy.orm import Session
from sqlalchemy.exc import ProgrammingError

from eventpay.core.config import settings
from eventpay.db.session import SessionLocal
from eventpay.services.reconciliation_service import expire_stale

log = logging.getLogger(__name__)

SWEEP_LOCK_NAME = "eventpay:expire-stale"


def sweep_lock(client=None):
    client = client or redis.Redis.from_url(settings.REDIS_URL)
    # held at most one period; a crashed worker cannot block the next sweep for long
    return client.lock(SWEEP_LOCK_NAME, timeout=max(int(settings.EXPIRY_SWEEP_SECONDS), 30), blocking=False)


def sweep(db: Session, now: datetime | None = None, lock=None) -> dict:
    """One sweep on `db`. Only the holder of the Redis lock sweeps; others skip."""
    lock = lock if lock is not None else sweep_lock()
    if not lock.acquire(blocking=False):
        log.info("expiry sweep already running elsewhere")
        return {"skipped": True, "reason": "locked"}
    try:
        try:
            expired = expire_stale(db, now or datetime.now(timezone.utc))
        except ProgrammingError:
            # DB not migrated yet; don't crash the worker.
            db.rollback()
            return {"skipped": True, "reason": "missing_tables"}
        return {"expired": expired}
    finally:
        try:
            lock.release()
        except LockError:
            log.warning("expiry sweep lock expired before release")


def expire_stale_tickets(now: datetime | None = None, lock=None, session_factory=SessionLocal) -> dict:
    db: Session = session_factory()
    try:
        return sweep(db, now, lock)
    finally:
        db.close()
