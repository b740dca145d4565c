from datetime import datetime, timezone

import jwt
import pytest

from app.core.config import settings
from app.core.errors import ValidationError
from app.core.security import (
    ALGO, RESET_PURPOSE, decode_jwt, ensure_aware, make_reset_token, validate_email,
    validate_otp, validate_password,
)


@pytest.mark.parametrize("email", ["a@b.co", "First.Last+tag@Example.org"])
def test_valid_emails_are_normalized(email):
    assert validate_email(email) == email.lower()


@pytest.mark.parametrize("email", ["", None, "plain", "a@b", "a b@c.com"])
def test_invalid_emails(email):
    with pytest.raises(ValidationError):
        validate_email(email)


@pytest.mark.parametrize("password", ["abc123", "ABCdef1234"])
def test_valid_passwords(password):
    assert validate_password(password) == password


@pytest.mark.parametrize("password", ["abc12", "abcdef12345", "abc 123", "abc-123", None])
def test_invalid_passwords(password):
    with pytest.raises(ValidationError):
        validate_password(password)


def test_otp_shape():
    assert validate_otp(" 012345 ") == "012345"
    for bad in ("12345", "1234567", "12a456", ""):
        with pytest.raises(ValidationError):
            validate_otp(bad)


def test_reset_token_claims():
    payload = decode_jwt(make_reset_token("sid-1", "user@example.com"))
    assert payload["purpose"] == RESET_PURPOSE
    assert payload["sid"] == "sid-1"
    assert payload["exp"] - payload["iat"] == settings.otp_exp_minutes * 60


def test_foreign_issuer_is_rejected():
    token = jwt.encode({"iss": "someone-else", "sub": "x"}, settings.jwt_secret, algorithm=ALGO)
    with pytest.raises(jwt.InvalidIssuerError):
        decode_jwt(token)


def test_naive_datetimes_are_read_as_utc():
    naive = datetime(2026, 1, 2, 3, 4, 5)
    aware = ensure_aware(naive)
    assert aware.tzinfo is timezone.utc
    assert aware.replace(tzinfo=None) == naive
    assert ensure_aware(aware) is aware
    assert ensure_aware(None) is None
