from __future__ import annotations

from datetime import date
from unittest.mock import patch

import pytest
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from newport.crud import payment_crud
from newport.crud.payment_crud import create_payment, find_active_payment, generate_idempotency_key
from newport.db.session import engine
from newport.external_services.payme_service import PaymeService
from newport.models import Notification, Payment, PaymentStatus
from tests.conftest import OWNER_ID

DAY = date(2026, 10, 19)


def test_key_is_stable_within_a_day():
    first = generate_idempotency_key("owner-1", 850000, "utility", day=DAY)
    second = generate_idempotency_key("owner-1", 850000, "utility", day=DAY)
    assert first == second
    assert len(first) == 64
    int(first, 16)


def test_key_changes_with_the_day():
    today = generate_idempotency_key("owner-1", 850000, "utility", day=DAY)
    tomorrow = generate_idempotency_key("owner-1", 850000, "utility", day=date(2026, 10, 20))
    assert today != tomorrow


@pytest.mark.parametrize("user_id, amount, purpose", [
    ("owner-2", 850000, "utility"),
    ("owner-1", 850001, "utility"),
    ("owner-1", 850000, "internet"),
])
def test_key_depends_on_every_input(user_id, amount, purpose):
    base = generate_idempotency_key("owner-1", 850000, "utility", day=DAY)
    assert generate_idempotency_key(user_id, amount, purpose, day=DAY) != base


def test_key_defaults_to_today():
    assert generate_idempotency_key("owner-1", 1000, "utility") == \
        generate_idempotency_key("owner-1", 1000, "utility", day=date.today())


def _payment(payment_id: str, status: PaymentStatus) -> Payment:
    return Payment(
        id=payment_id,
        user_id="owner-1",
        apartment_id="apt-1",
        amount=5000,
        description="Utility",
        idempotency_key="same-key",
        status=status,
    )


def test_store_rejects_second_live_payment_for_a_key(session, directory):
    session.add(_payment("PAY_A", PaymentStatus.pending))
    session.commit()

    session.add(_payment("PAY_B", PaymentStatus.processing))
    with pytest.raises(IntegrityError):
        session.commit()
    session.rollback()


def test_cancelled_payments_do_not_hold_the_key(session, directory):
    session.add(_payment("PAY_A", PaymentStatus.cancelled))
    session.add(_payment("PAY_B", PaymentStatus.cancelled))
    session.commit()
    assert find_active_payment(session, "same-key") is None

    session.add(_payment("PAY_C", PaymentStatus.pending))
    session.commit()
    assert find_active_payment(session, "same-key").id == "PAY_C"


def test_losing_concurrent_insert_returns_the_winner(session, directory):
    payme = PaymeService()
    winner, created = create_payment(session, payme, OWNER_ID, 850000, "apt-1")
    assert created is True

    real_lookup = payment_crud.find_active_payment
    lookups = []

    def miss_first_lookup(lookup_session, idempotency_key):
        # the first lookup ran before the other request committed
        lookups.append(idempotency_key)
        if len(lookups) == 1:
            return None
        return real_lookup(lookup_session, idempotency_key)

    with Session(engine) as other:
        with patch("newport.crud.payment_crud.find_active_payment", side_effect=miss_first_lookup):
            second, created = create_payment(other, payme, OWNER_ID, 850000, "apt-1")
        assert second.id == winner.id
        assert created is False

    assert len(lookups) == 2
    session.expire_all()
    assert [p.id for p in session.exec(select(Payment)).all()] == [winner.id]
    # the loser's notification was rolled back with its payment
    assert len(session.exec(select(Notification)).all()) == 1
