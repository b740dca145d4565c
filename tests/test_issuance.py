from datetime import timedelta

import pytest
from sqlalchemy.exc import SQLAlchemyError

from app.core import security
from app.core.config import settings
from app.core.errors import DeliveryError, InvalidCode, PersistenceError
from app.core.security import make_access_token, now_utc, ensure_aware, sha256
from app.models.verification import SessionKind, VerificationSession
from app.services import mailer, verification
from app.services.identity import create_identity

from conftest import auth, last_code, last_invite_token, load_session


def test_issue_otp_creates_single_unverified_session(client, db, outbox):
    res = client.post("/auth/issue", json={"email": "user@example.com", "kind": "password_reset"})
    assert res.status_code == 200, res.text
    assert res.json()["success"] is True

    rows = db.query(VerificationSession).filter(VerificationSession.email == "user@example.com").all()
    assert len(rows) == 1
    rec = rows[0]
    assert rec.verified is False
    assert rec.kind == SessionKind.PASSWORD_RESET
    assert now_utc() - ensure_aware(rec.created_at) < timedelta(seconds=30)

    assert len(outbox) == 1
    code = last_code(outbox, "user@example.com")
    assert len(code) == 6 and code.isdigit()
    # only the hash is stored
    assert rec.code_hash == sha256(code)
    assert "token=" not in outbox[0]["html"]


def test_email_is_normalized(client, db):
    res = client.post("/auth/issue", json={"email": "User@Example.COM", "kind": "verification"})
    assert res.status_code == 200, res.text
    assert load_session(db, "user@example.com") is not None


def test_reissue_replaces_prior_session_of_any_kind(db, outbox):
    old_code, _ = verification.issue_credential(db, "user@example.com", "password_reset")
    new_code, _ = verification.issue_credential(db, "user@example.com", "verification")

    assert db.query(VerificationSession).count() == 1
    rec = load_session(db, "user@example.com")
    assert rec.kind == SessionKind.VERIFICATION
    assert rec.code_hash == sha256(new_code)

    with pytest.raises(InvalidCode):
        verification.verify_otp(db, "user@example.com", old_code, "password_reset")


def test_reissue_resets_verified_flag(db, outbox):
    code, _ = verification.issue_credential(db, "user@example.com", "verification")
    verification.verify_otp(db, "user@example.com", code, "verification")
    assert load_session(db, "user@example.com").verified is True

    verification.issue_credential(db, "user@example.com", "verification")
    assert load_session(db, "user@example.com").verified is False


def test_admin_invite_requires_admin(client, db):
    body = {"email": "new@example.com", "kind": "admin_invite"}

    res = client.post("/auth/issue", json=body)
    assert res.status_code == 401
    assert res.json() == {"success": False, "error": "Admin authentication required", "reason": "not_authenticated"}

    user = create_identity(db, "plain@example.com", "plain123")
    db.commit()
    token = make_access_token(str(user.id), user.email, "user")
    res = client.post("/auth/issue", json=body, headers=auth(token))
    assert res.status_code == 403
    assert res.json()["reason"] == "forbidden"
    assert load_session(db, "new@example.com") is None


def test_admin_invite_email_has_accept_and_decline_links(client, db, outbox, admin_token):
    res = client.post(
        "/auth/issue",
        json={"email": "new@example.com", "kind": "admin_invite", "inviterName": "Luca"},
        headers=auth(admin_token),
    )
    assert res.status_code == 200, res.text

    mail = [m for m in outbox if m["to"] == "new@example.com"]
    assert len(mail) == 1
    html = mail[0]["html"]
    token = last_invite_token(outbox, "new@example.com")
    assert "action=accept" in html
    assert "action=decline" in html
    assert f"{settings.app_base_url}/admin-invite?token={token}" in html
    assert "Luca" in html
    assert settings.default_admin_password in html

    rec = load_session(db, "new@example.com")
    assert rec.kind == SessionKind.ADMIN_INVITE
    assert rec.code_hash == sha256(token)


def test_invite_token_is_url_safe_and_long(db, outbox):
    token, _ = verification.issue_credential(db, "new@example.com", "admin_invite")
    # 32 random bytes, base64url without padding
    assert len(token) >= 43
    assert set(token) <= set("ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-_")


def test_otp_is_zero_padded(monkeypatch):
    monkeypatch.setattr(security.secrets, "randbelow", lambda n: 42)
    assert security.generate_otp() == "000042"


def test_delivery_failure_keeps_session(client, db, monkeypatch):
    def broken(*args, **kwargs):
        raise DeliveryError("smtp down")

    monkeypatch.setattr(mailer, "send_email", broken)
    res = client.post("/auth/issue", json={"email": "user@example.com", "kind": "password_reset"})
    assert res.status_code == 200, res.text
    assert load_session(db, "user@example.com") is not None


def test_persistence_failure_is_reported(db, outbox, monkeypatch):
    def broken_commit():
        raise SQLAlchemyError("disk full")

    monkeypatch.setattr(db, "commit", broken_commit)
    with pytest.raises(PersistenceError) as exc:
        verification.issue_credential(db, "user@example.com", "password_reset")
    assert exc.value.message == "Could not save the verification code."
    assert outbox == []


def test_persistence_failure_http_body(client, monkeypatch):
    def broken_upsert(*args, **kwargs):
        raise PersistenceError()

    monkeypatch.setattr(verification, "upsert_session", broken_upsert)
    res = client.post("/auth/issue", json={"email": "user@example.com", "kind": "verification"})
    assert res.status_code == 500
    assert res.json() == {"success": False, "error": "Could not save the verification code.", "reason": "persistence_error"}


def test_privileged_password_reset_alerts_other_admins(client, outbox, privileged):
    res = client.post("/auth/issue", json={"email": "partner@example.com", "kind": "password_reset"})
    assert res.status_code == 200, res.text

    alerts = [m for m in outbox if "password reset attempt" in m["subject"]]
    assert sorted(m["to"] for m in alerts) == ["ops@example.com", "owner@example.com"]
    assert all("partner@example.com" in m["html"] for m in alerts)
    # the target only gets the code
    assert [m["to"] for m in outbox if m not in alerts] == ["partner@example.com"]


def test_no_alert_for_regular_users_or_other_kinds(client, outbox, privileged):
    client.post("/auth/issue", json={"email": "user@example.com", "kind": "password_reset"})
    client.post("/auth/issue", json={"email": "owner@example.com", "kind": "verification"})
    assert [m["to"] for m in outbox] == ["user@example.com", "owner@example.com"]


def test_unknown_kind_is_rejected(client):
    res = client.post("/auth/issue", json={"email": "user@example.com", "kind": "magic_link"})
    assert res.status_code == 422
    body = res.json()
    assert body["success"] is False
    assert body["reason"] == "validation_error"
