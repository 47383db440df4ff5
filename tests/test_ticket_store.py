from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import IntegrityError

from eventpay.core.errors import ConflictError, IllegalTransition, NotFound, ValidationError
from eventpay.models.payment_attempt import PaymentAttempt, CONFIRMED, DECLINED, INITIATED
from eventpay.models.ticket import Ticket, TICKET_STATUSES, TICKET_TRANSITIONS, PENDING, PAID, FAILED, EXPIRED
from eventpay.services import ticket_store
from eventpay.services.ticket_store import Purchaser


def test_create_ticket_fixes_amount_and_normalizes_purchaser(db, make_event):
    ev = make_event()
    t = ticket_store.create_ticket(
        db, event_id=ev.id, purchaser=Purchaser(" Ravi ", " Ravi@Example.COM ", " 9000000001 "),
        ticket_class="VIP", quantity=3, unit_price=150000,
    )
    assert t.status == PENDING
    assert t.amount == 450000
    assert t.currency == "INR"
    assert t.purchaser_name == "Ravi"
    assert t.purchaser_email == "ravi@example.com"
    assert t.purchaser_contact == "9000000001"


@pytest.mark.parametrize("quantity,unit_price", [(0, 100), (-1, 100), (1, -5)])
def test_create_ticket_rejects_bad_numbers(db, make_event, quantity, unit_price):
    ev = make_event()
    with pytest.raises(ValidationError):
        ticket_store.create_ticket(
            db, event_id=ev.id, purchaser=Purchaser("A", "a@example.com", "90000"),
            ticket_class="General", quantity=quantity, unit_price=unit_price,
        )
    assert db.query(Ticket).count() == 0


def test_create_ticket_rejects_unknown_event_and_class(db, make_event):
    ev = make_event()
    p = Purchaser("A", "a@example.com", "90000")
    with pytest.raises(ValidationError):
        ticket_store.create_ticket(db, event_id="nope", purchaser=p, ticket_class="General", quantity=1, unit_price=1)
    with pytest.raises(ValidationError):
        ticket_store.create_ticket(db, event_id=ev.id, purchaser=p, ticket_class="Balcony", quantity=1, unit_price=1)


def test_get_ticket_unknown_raises(db):
    with pytest.raises(NotFound):
        ticket_store.get_ticket(db, "missing")


def test_transition_follows_allowed_edges(db, make_ticket):
    t = make_ticket()
    t = ticket_store.transition(db, t.id, PENDING, FAILED)
    assert t.status == FAILED
    t = ticket_store.transition(db, t.id, FAILED, PENDING)
    assert t.status == PENDING
    t = ticket_store.transition(db, t.id, PENDING, PAID)
    db.commit()
    assert ticket_store.get_ticket(db, t.id).status == PAID


def test_every_other_edge_is_illegal(db, make_ticket):
    t = make_ticket()
    for src in TICKET_STATUSES:
        for dst in TICKET_STATUSES:
            if (src, dst) in TICKET_TRANSITIONS:
                continue
            with pytest.raises(IllegalTransition):
                ticket_store.transition(db, t.id, src, dst)
    db.refresh(t)
    assert t.status == PENDING


def test_paid_is_terminal(db, make_ticket):
    t = make_ticket()
    ticket_store.transition(db, t.id, PENDING, PAID)
    db.commit()
    for dst in (PENDING, FAILED, EXPIRED):
        with pytest.raises(IllegalTransition):
            ticket_store.transition(db, t.id, PAID, dst)


def test_transition_from_stale_status_conflicts(db, make_ticket):
    t = make_ticket()
    ticket_store.transition(db, t.id, PENDING, PAID)
    db.commit()
    with pytest.raises(ConflictError):
        ticket_store.transition(db, t.id, PENDING, EXPIRED)
    db.rollback()
    assert ticket_store.get_ticket(db, t.id).status == PAID


def test_transition_unknown_ticket(db):
    with pytest.raises(NotFound):
        ticket_store.transition(db, "missing", PENDING, PAID)


def test_transition_updated_before_guard(db, make_ticket):
    t = make_ticket()
    long_ago = datetime.now(timezone.utc) - timedelta(days=1)
    with pytest.raises(ConflictError):
        ticket_store.transition(db, t.id, PENDING, EXPIRED, updated_before=long_ago)
    db.rollback()

    later = datetime.now(timezone.utc) + timedelta(minutes=1)
    assert ticket_store.transition(db, t.id, PENDING, EXPIRED, updated_before=later).status == EXPIRED


def test_transition_moves_updated_at_forward(db, make_ticket):
    t = make_ticket()
    before = ticket_store.as_utc(t.updated_at)
    t = ticket_store.transition(db, t.id, PENDING, FAILED)
    assert ticket_store.as_utc(t.updated_at) >= before


def _attempt(db, ticket, ref):
    a = ticket_store.add_attempt(db, ticket=ticket, gateway="sandbox", gateway_ref=ref, redirect_url="http://pay/" + ref)
    db.commit()
    return a


def test_attempt_copies_amount_and_starts_initiated(db, make_ticket):
    t = make_ticket(quantity=2)
    a = _attempt(db, t, "SBX_A")
    assert a.status == INITIATED
    assert a.amount == t.amount == 100000
    assert ticket_store.find_attempt_by_ref(db, "SBX_A").id == a.id
    assert ticket_store.open_attempt(db, t.id).id == a.id


def test_finalize_attempt_once(db, make_ticket):
    t = make_ticket()
    a = _attempt(db, t, "SBX_B")
    ticket_store.finalize_attempt(db, a.id, CONFIRMED, "PROV-1")
    db.commit()
    db.refresh(a)
    assert a.status == CONFIRMED
    assert a.provider_txn_id == "PROV-1"
    assert a.finalized_at is not None

    with pytest.raises(ConflictError):
        ticket_store.finalize_attempt(db, a.id, DECLINED)
    db.rollback()
    assert ticket_store.open_attempt(db, t.id) is None


def test_finalize_attempt_rejects_non_final_status(db, make_ticket):
    a = _attempt(db, make_ticket(), "SBX_C")
    with pytest.raises(IllegalTransition):
        ticket_store.finalize_attempt(db, a.id, INITIATED)


def test_only_one_open_attempt_per_ticket(db, make_ticket):
    t = make_ticket()
    _attempt(db, t, "SBX_D1")
    ticket_store.add_attempt(db, ticket=t, gateway="sandbox", gateway_ref="SBX_D2", redirect_url="")
    with pytest.raises(IntegrityError):
        db.commit()
    db.rollback()
    assert db.query(PaymentAttempt).filter(PaymentAttempt.ticket_id == t.id).count() == 1


def test_only_one_confirmed_attempt_per_ticket(db, make_ticket):
    t = make_ticket()
    first = _attempt(db, t, "SBX_E1")
    ticket_store.finalize_attempt(db, first.id, CONFIRMED)
    db.commit()
    second = _attempt(db, t, "SBX_E2")
    with pytest.raises(IntegrityError):
        ticket_store.finalize_attempt(db, second.id, CONFIRMED)
        db.commit()


def test_latest_and_list_attempts(db, make_ticket):
    t = make_ticket()
    a1 = _attempt(db, t, "SBX_F1")
    ticket_store.finalize_attempt(db, a1.id, DECLINED)
    db.commit()
    a2 = _attempt(db, t, "SBX_F2")
    assert [a.gateway_ref for a in ticket_store.list_attempts(db, t.id)] == ["SBX_F1", "SBX_F2"]
    assert ticket_store.latest_attempt(db, t.id).id == a2.id


def test_as_utc():
    naive = datetime(2026, 1, 1, 12, 0)
    assert ticket_store.as_utc(naive).tzinfo == timezone.utc
    assert ticket_store.as_utc(None) is None
    ist = timezone(timedelta(hours=5, minutes=30))
    assert ticket_store.as_utc(datetime(2026, 1, 1, 17, 30, tzinfo=ist)) == datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
