"""Pytest configuration and fixtures."""

import os
import tempfile
import time
import uuid
from datetime import datetime, timedelta

# Settings are read at import time, so the environment must be ready
# before anything from `app` is imported.
_DB_DIR = tempfile.mkdtemp(prefix="nitip-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_DB_DIR, 'test.db')}"
os.environ["SUPABASE_URL"] = "http://localhost:54321"
os.environ["SUPABASE_JWT_SECRET"] = "test-jwt-secret"
os.environ["PUBLIC_APP_URL"] = "https://nitip.test"
os.environ["LOCAL_UTC_OFFSET_HOURS"] = "7"
os.environ.pop("SUPABASE_SERVICE_ROLE_KEY", None)

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from jose import jwt  # noqa: E402
from sqlmodel import SQLModel, Session  # noqa: E402

from app.database import engine  # noqa: E402
from app.main import app  # noqa: E402
from app.models.deposit import Deposit, STATUS_PICKED_UP  # noqa: E402
from app.models.user import User  # noqa: E402
from app.services.code_generator import generate_pickup_code  # noqa: E402

API = "/api/v1"


def make_token(user_id: uuid.UUID, email: str, expires_in: int = 3600) -> str:
    """Sign a token the way Supabase Auth would."""
    claims = {
        "sub": str(user_id),
        "email": email,
        "aud": "authenticated",
        "exp": int(time.time()) + expires_in,
    }
    return jwt.encode(claims, "test-jwt-secret", algorithm="HS256")


def auth_headers(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(autouse=True)
def db():
    """Fresh tables for every test."""
    SQLModel.metadata.create_all(engine)
    yield
    SQLModel.metadata.drop_all(engine)


@pytest.fixture
def session(db):
    with Session(engine) as s:
        yield s


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def user_id():
    return uuid.uuid4()


@pytest.fixture
def user_token(user_id):
    return make_token(user_id, "budi.attendant@nitip.id")


@pytest.fixture
def user_headers(user_token):
    return auth_headers(user_token)


@pytest.fixture
def admin(session):
    user = User(id=uuid.uuid4(), email="admin@nitip.id", role="admin")
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


@pytest.fixture
def admin_token(admin):
    return make_token(admin.id, admin.email)


@pytest.fixture
def admin_headers(admin_token):
    return auth_headers(admin_token)


@pytest.fixture
def deposit_payload():
    def _make(slot: int = 5, **overrides):
        payload = {
            "owner_name": "Budi",
            "owner_phone": "081234567890",
            "slot": slot,
        }
        payload.update(overrides)
        return payload

    return _make


@pytest.fixture
def create_deposit(client, user_headers, deposit_payload):
    """POST a deposit and return the JSON body."""

    def _create(slot: int = 5, headers=None, **overrides):
        response = client.post(
            f"{API}/deposits",
            json=deposit_payload(slot, **overrides),
            headers=headers or user_headers,
        )
        assert response.status_code == 201, response.text
        return response.json()

    return _create


@pytest.fixture
def token_for():
    """make_token(user_id, email) for tests that need extra identities."""
    return make_token


@pytest.fixture
def add_picked_up(session, admin):
    """
    Insert a picked-up deposit directly, with chosen timestamps.

    add_picked_up(picked_up_at, stored_for=timedelta(hours=1)) -> id (str)
    """

    def _add(picked_up_at: datetime, stored_for: timedelta = timedelta(hours=1), slot: int = 1):
        deposit = Deposit(
            owner_name="Sari",
            owner_phone="081298765432",
            slot=slot,
            pickup_code=generate_pickup_code(),
            status=STATUS_PICKED_UP,
            deposited_at=picked_up_at - stored_for,
            picked_up_at=picked_up_at,
            deposited_by_user_id=admin.id,
        )
        session.add(deposit)
        session.commit()
        return str(deposit.id)

    return _add
