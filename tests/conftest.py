"""Pytest configuration and fixtures."""

import os
import tempfile

# Environment must be ready before anything imports the settings / engine.
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["BOOTSTRAP_CREATE_ALL"] = "false"
os.environ["BOOTSTRAP_ADMIN_USERNAME"] = ""
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="hk-loans-uploads-")
os.environ["MAX_UPLOAD_MB"] = "1"

from datetime import date
from typing import Callable, Dict, Iterator, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from hk_loans.app.api.v1.auth_router import create_access_token, hash_password
from hk_loans.app.core.constants import Role
from hk_loans.app.db import models
from hk_loans.app.db.base import Base
from hk_loans.app.db.session import enable_sqlite_foreign_keys, get_db
from hk_loans.app.main import app


@pytest.fixture
def engine():
    """In-memory SQLite shared by every session of the test."""
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    enable_sqlite_foreign_keys(eng)
    Base.metadata.create_all(bind=eng)
    yield eng
    Base.metadata.drop_all(bind=eng)
    eng.dispose()


@pytest.fixture
def db_factory(engine) -> sessionmaker:
    """Session factory for arranging and inspecting rows directly."""
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False, future=True)


@pytest.fixture
def api(engine) -> Iterator[TestClient]:
    """TestClient with get_db bound to the test engine."""
    TestingSession = sessionmaker(bind=engine, autocommit=False, autoflush=False, future=True)

    def _get_db():
        db = TestingSession()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = _get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db_factory) -> Callable[..., Dict]:
    """Create a user row and return its id, username and auth headers."""

    def _make(
        username: str,
        *,
        role: Role = Role.USER,
        password: str = "secret123",
        active: bool = True,
        plan_id: Optional[str] = None,
    ) -> Dict:
        with db_factory() as db:
            user = models.User(
                username=username,
                password=hash_password(password),
                name=username.title(),
                role=role,
                active=active,
                plan_id=plan_id,
            )
            db.add(user)
            db.commit()
            token = create_access_token(user)
            return {
                "id": user.id,
                "username": username,
                "password": password,
                "headers": {"Authorization": f"Bearer {token}"},
            }

    return _make


@pytest.fixture
def tenant(make_user) -> Dict:
    return make_user("alice")


@pytest.fixture
def other_tenant(make_user) -> Dict:
    return make_user("bob")


@pytest.fixture
def admin(make_user) -> Dict:
    return make_user("root", role=Role.ADMIN)


@pytest.fixture
def make_client(api) -> Callable[..., Dict]:
    def _make(headers: Dict, **fields) -> Dict:
        payload = {"name": "Maria Silva", "whatsapp": "11999990000"}
        payload.update(fields)
        resp = api.post("/api/v1/clients", json=payload, headers=headers)
        assert resp.status_code == 201, resp.text
        return resp.json()

    return _make


@pytest.fixture
def make_partner(api) -> Callable[..., Dict]:
    def _make(headers: Dict, **fields) -> Dict:
        payload = {"name": "João Indicador", "commission_rate": "10"}
        payload.update(fields)
        resp = api.post("/api/v1/partners", json=payload, headers=headers)
        assert resp.status_code == 201, resp.text
        return resp.json()

    return _make


@pytest.fixture
def make_loan(api) -> Callable[..., Dict]:
    def _make(
        headers: Dict,
        client_id: str,
        *,
        amount: str = "1000.00",
        total_amount: str = "1200.00",
        installments_count: int = 3,
        start_date: date = date(2024, 1, 15),
        interest_type: str = "MONTHLY",
        partner_id: Optional[str] = None,
    ) -> Dict:
        payload = {
            "client_id": client_id,
            "amount": amount,
            "total_amount": total_amount,
            "installments_count": installments_count,
            "start_date": start_date.isoformat(),
            "interest_type": interest_type,
        }
        if partner_id:
            payload["partner_id"] = partner_id
        resp = api.post("/api/v1/loans", json=payload, headers=headers)
        assert resp.status_code == 201, resp.text
        return resp.json()

    return _make
