from __future__ import annotations

import base64
import os

# Settings are read at import time, so configure them before importing the app
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["PAYME_MERCHANT_ID"] = "test-merchant"
os.environ["PAYME_KEY"] = "test-payme-key"
os.environ["PAYME_LOGIN"] = "Paycom"
os.environ["INVITE_SECRET"] = "test-invite-secret"

import pytest
from fastapi.testclient import TestClient
from sqlmodel import SQLModel, Session

from newport.core.rate_limit import rate_limit_store
from newport.core.security import create_access_token
from newport.db.session import engine
from newport.main import app
from newport.models import Apartment, Payment, UserProfile

OWNER_ID = "owner-1"
MEMBER_ID = "member-1"
STRANGER_ID = "stranger-1"


def auth_header(user_id: str = OWNER_ID, role: str = "resident") -> dict[str, str]:
    token = create_access_token({"sub": user_id, "role": role})
    return {"Authorization": f"Bearer {token}"}


def payme_auth(login: str = "Paycom", password: str = "test-payme-key") -> dict[str, str]:
    credentials = base64.b64encode(f"{login}:{password}".encode()).decode()
    return {"Authorization": f"Basic {credentials}"}


def reload(session: Session, model, key):
    """Read a row as committed by another session on the shared connection."""
    session.expire_all()
    return session.get(model, key)


@pytest.fixture(autouse=True)
def database():
    SQLModel.metadata.create_all(engine)
    rate_limit_store.clear()
    yield
    SQLModel.metadata.drop_all(engine)


@pytest.fixture
def session(database):
    with Session(engine) as session:
        yield session


@pytest.fixture
def client():
    # Not used as a context manager, so the lifespan hooks do not run
    return TestClient(app)


@pytest.fixture
def directory(session):
    """Two apartments and the residents' profiles."""
    apartment = Apartment(id="apt-1", apartment_number="12", block_id="B", owner_id=OWNER_ID)
    apartment.family_member_ids = [MEMBER_ID]
    other = Apartment(id="apt-2", apartment_number="7", block_id="A", owner_id="someone-else")
    session.add(apartment)
    session.add(other)
    session.add(UserProfile(id=OWNER_ID, full_name="Aziz Karimov", phone="+998901234567"))
    session.add(UserProfile(id=MEMBER_ID, full_name="Malika Karimova", phone="+998907654321"))
    session.add(UserProfile(id=STRANGER_ID, full_name="Sardor Aliev"))
    session.commit()
    return apartment


@pytest.fixture
def pending_payment(session, directory):
    payment = Payment(
        id="PAY_1",
        user_id=OWNER_ID,
        apartment_id="apt-1",
        apartment_number="12",
        block_id="B",
        amount=850000,
        description="Utility payment for apartment 12",
        idempotency_key="key-1",
        user_name="Aziz Karimov",
        checkout_url="https://checkout.test.paycom.uz/abc",
    )
    session.add(payment)
    session.commit()
    return payment
