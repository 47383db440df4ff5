import uuid
from datetime import datetime, timedelta, timezone

from sqlalchemy.orm import Session
from sqlalchemy import text
from sqlalchemy.exc import OperationalError, ProgrammingError

from eventpay.db.session import SessionLocal
from eventpay.models.event import Event, TicketClass


DEMO_EVENTS = [
    {
        "title": "Monsoon Music Night",
        "location": "NCPA, Mumbai",
        "description": "An evening of live indie and classical fusion.",
        "days_ahead": 30,
        "max_registrations": 200,
        "classes": [("General", 49900), ("VIP", 149900)],
    },
    {
        "title": "Python Builders Meetup",
        "location": "Koramangala, Bengaluru",
        "description": "Talks on services, data pipelines and testing.",
        "days_ahead": 14,
        "max_registrations": 80,
        "classes": [("General", 19900)],
    },
]


def ensure_event(db: Session, data: dict) -> Event:
    ev = db.query(Event).filter(Event.title == data["title"]).first()
    if ev:
        return ev
    ev = Event(
        id=str(uuid.uuid4()),
        title=data["title"],
        date=datetime.now(timezone.utc).replace(hour=18, minute=0, second=0, microsecond=0)
        + timedelta(days=data["days_ahead"]),
        location=data["location"],
        description=data["description"],
        max_registrations=data["max_registrations"],
        current_registrations=0,
    )
    db.add(ev)
    for name, price in data["classes"]:
        db.add(TicketClass(id=str(uuid.uuid4()), event_id=ev.id, name=name, price=price))
    db.commit()
    return ev


def run(db=None):
    own = db is None
    if own:
        db = SessionLocal()
    try:
        # If migrations haven't been applied yet, seeding must not crash the API.
        try:
            db.execute(text("SELECT 1 FROM events LIMIT 1"))
        except (ProgrammingError, OperationalError):
            db.rollback()
            print("[seed] events table not found yet. Skipping seeding (run alembic upgrade head).")
            return

        for data in DEMO_EVENTS:
            ensure_event(db, data)
        print(f"[seed] ensured {len(DEMO_EVENTS)} demo events")
    finally:
        if own:
            db.close()


if __name__ == "__main__":
    run()
