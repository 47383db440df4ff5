"""
Shared fixtures: per-test SQLite database, a scriptable sandbox gateway and an API client.

Settings are read at import time, so the environment is prepared before any
eventpay module is imported.
"""

import os
import uuid
from datetime import datetime, timedelta, timezone

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("PAYMENT_GATEWAY", "sandbox")
os.environ.setdefault("LOG_JSON", "false")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
from redis.exceptions import LockError
from sqlalchemy.orm import sessionmaker

from eventpay.core.config import settings
from eventpay.core.errors import GatewayUnavailable
from eventpay.db.base import Base
from eventpay.db.session import make_engine
from eventpay.models.event import Event, TicketClass
from eventpay.services.gateway import SandboxGateway, register_gateway, reset_gateways
from eventpay.services.registration_service import register_for_event
from eventpay.services.ticket_store import Purchaser


class FakeGateway(SandboxGateway):
    """Sandbox adapter that can be told to be unreachable for the next N intent requests."""

    def __init__(self, failures: int = 0):
        super().__init__()
        self.failures = failures
        self.intent_calls = 0

    def create_intent(self, ticket_id, amount, purchaser_contact):
        self.intent_calls += 1
        if self.failures > 0:
            self.failures -= 1
            raise GatewayUnavailable("sandbox gateway down")
        return super().create_intent(ticket_id, amount, purchaser_contact)


class FakeLock:
    """Stands in for a redis-py Lock; `acquired=False` behaves like another worker holding it."""

    def __init__(self, acquired=True, release_error=False):
        self.acquired = acquired
        self.release_error = release_error
        self.released = 0

    def acquire(self, blocking=True):
        return self.acquired

    def release(self):
        self.released += 1
        if self.release_error:
            raise LockError("lock expired")


@pytest.fixture(autouse=True)
def no_backoff(monkeypatch):
    monkeypatch.setattr(settings, "GATEWAY_BACKOFF_SECONDS", 0)


@pytest.fixture(autouse=True)
def gateway():
    reset_gateways()
    gw = FakeGateway()
    register_gateway(gw)
    yield gw
    reset_gateways()


@pytest.fixture
def engine(tmp_path):
    eng = make_engine(f"sqlite:///{tmp_path / 'eventpay.db'}")
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    s = session_factory()
    try:
        yield s
    finally:
        s.close()


@pytest.fixture
def make_event(db):
    def _make(max_registrations=100, classes=(("General", 50000), ("VIP", 150000)),
              title="Launch Night", location="Pune", days_ahead=7):
        ev = Event(
            id=str(uuid.uuid4()),
            title=title,
            date=datetime.now(timezone.utc) + timedelta(days=days_ahead),
            location=location,
            description=f"{title} at {location}",
            max_registrations=max_registrations,
            current_registrations=0,
        )
        db.add(ev)
        for name, price in classes:
            db.add(TicketClass(id=str(uuid.uuid4()), event_id=ev.id, name=name, price=price))
        db.commit()
        return ev
    return _make


@pytest.fixture
def make_ticket(db, make_event):
    def _make(event=None, quantity=1, ticket_class="General"):
        event = event or make_event()
        purchaser = Purchaser(name="Asha Rao", email="Asha@Example.com", contact="9876543210")
        return register_for_event(db, event.id, purchaser, ticket_class, quantity)
    return _make


@pytest.fixture
def sweep_lock():
    return FakeLock()


@pytest.fixture
def client(session_factory, sweep_lock):
    from fastapi.testclient import TestClient

    from eventpay.api.deps import get_sweep_lock
    from eventpay.db.session import get_db
    from eventpay.main import app

    def _get_db():
        s = session_factory()
        try:
            yield s
        finally:
            s.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_sweep_lock] = lambda: sweep_lock
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
