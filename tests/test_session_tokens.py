"""Tests for issuing and verifying the session cookie token."""

from datetime import datetime, timedelta, timezone

import jwt
import pytest

from projecthub.security.exceptions import AuthenticationError, AuthErrorCode
from projecthub.security.tokens import SessionTokenService


def test_issue_then_verify_returns_claims():
    service = SessionTokenService("secret-1")
    token = service.issue(42, email="a@example.com", name="Ann")

    claims = service.verify(token)

    assert claims.subject == 42
    assert claims.email == "a@example.com"
    assert claims.name == "Ann"
    assert claims.expires_at > datetime.now(timezone.utc) + timedelta(days=6)


def test_expired_token_is_rejected_as_expired():
    service = SessionTokenService("secret-1", ttl=timedelta(minutes=5))
    token = service.issue(1, now=datetime.now(timezone.utc) - timedelta(hours=1))

    with pytest.raises(AuthenticationError) as exc_info:
        service.verify(token)
    assert exc_info.value.code is AuthErrorCode.EXPIRED_CREDENTIAL


def test_token_signed_with_other_secret_is_invalid():
    token = SessionTokenService("secret-1").issue(1)

    with pytest.raises(AuthenticationError) as exc_info:
        SessionTokenService("secret-2").verify(token)
    assert exc_info.value.code is AuthErrorCode.INVALID_CREDENTIAL


@pytest.mark.parametrize("token", ["", "not-a-jwt", "a.b.c"])
def test_malformed_token_is_invalid(token):
    with pytest.raises(AuthenticationError) as exc_info:
        SessionTokenService("secret-1").verify(token)
    assert exc_info.value.code is AuthErrorCode.INVALID_CREDENTIAL


def test_token_without_numeric_subject_is_invalid():
    exp = datetime.now(timezone.utc) + timedelta(hours=1)
    token = jwt.encode({"sub": "azure-oid", "exp": exp}, "secret-1", algorithm="HS256")

    with pytest.raises(AuthenticationError) as exc_info:
        SessionTokenService("secret-1").verify(token)
    assert exc_info.value.code is AuthErrorCode.INVALID_CREDENTIAL


def test_token_without_expiry_is_invalid():
    token = jwt.encode({"sub": "1"}, "secret-1", algorithm="HS256")

    with pytest.raises(AuthenticationError) as exc_info:
        SessionTokenService("secret-1").verify(token)
    assert exc_info.value.code is AuthErrorCode.INVALID_CREDENTIAL


def test_empty_secret_is_refused():
    with pytest.raises(ValueError):
        SessionTokenService("")
