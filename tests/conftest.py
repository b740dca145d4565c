import re
from datetime import timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.api.deps import get_db
from app.core.security import make_access_token, now_utc
from app.db.model_registry import metadata
from app.main import app
from app.models.verification import VerificationSession
from app.services import mailer
from app.services.admin_registry import seed_privileged_admins
from app.services.identity import upsert_admin_identity

PRIVILEGED = ["owner@example.com", "partner@example.com", "ops@example.com"]

CODE_RE = re.compile(r'<div class="code">(\d{6})</div>')
TOKEN_RE = re.compile(r"token=([A-Za-z0-9_\-]+)")


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def outbox(monkeypatch):
    """Capture every outbound email instead of talking to SMTP."""
    sent = []

    def fake_send_email(to_email, subject, html, from_name=None):
        sent.append({"to": to_email, "subject": subject, "html": html})

    monkeypatch.setattr(mailer, "send_email", fake_send_email)
    return sent


@pytest.fixture
def client(session_factory, outbox):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def privileged(db):
    seed_privileged_admins(db, PRIVILEGED)
    return PRIVILEGED


@pytest.fixture
def admin_token(db, privileged):
    user = upsert_admin_identity(db, "owner@example.com", "owner123")
    db.commit()
    return make_access_token(str(user.id), user.email, "admin")


def auth(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def last_code(outbox, to_email: str) -> str:
    for mail in reversed(outbox):
        if mail["to"] == to_email:
            match = CODE_RE.search(mail["html"])
            if match:
                return match.group(1)
    raise AssertionError(f"no code mailed to {to_email}")


def last_invite_token(outbox, to_email: str) -> str:
    for mail in reversed(outbox):
        if mail["to"] == to_email:
            match = TOKEN_RE.search(mail["html"])
            if match:
                return match.group(1)
    raise AssertionError(f"no invite mailed to {to_email}")


def load_session(db, email: str) -> VerificationSession:
    db.expire_all()
    return db.query(VerificationSession).filter(VerificationSession.email == email).first()


def age_session(db, email: str, **delta) -> None:
    rec = load_session(db, email)
    rec.created_at = now_utc() - timedelta(**delta)
    db.commit()
