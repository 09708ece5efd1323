"""Tests for id-token validation and the authorization-code sign-in client."""

import time
from unittest.mock import MagicMock, patch
from urllib.parse import parse_qs, urlparse

import jwt
import pytest
import requests
from cryptography.hazmat.primitives.asymmetric import rsa
from jwt.algorithms import RSAAlgorithm
from jwt.api_jwk import PyJWK

from projecthub.identity.client import EntraSignInClient
from projecthub.identity.config import EntraConfig
from projecthub.identity.validator import IdentityError, IdTokenValidator, _extract_identity

KID = "test-key-1"


def _config(**overrides) -> EntraConfig:
    values = dict(
        tenant_id="tenant-1",
        client_id="client-1",
        client_secret="secret",
        redirect_uri="https://api.example.com/api/v1/user/azure/redirect",
        clock_skew_seconds=120,
        jwks_cache_ttl_seconds=3600,
        graph_enabled=False,
    )
    values.update(overrides)
    return EntraConfig(**values)


@pytest.fixture(scope="module")
def signing_key():
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    jwk = RSAAlgorithm.to_jwk(private_key.public_key(), as_dict=True)
    jwk["kid"] = KID
    return private_key, PyJWK.from_dict(jwk)


def _id_token(private_key, **claims) -> str:
    now = int(time.time())
    payload = {
        "sub": "pairwise-1",
        "oid": "oid-1",
        "preferred_username": "Ann@Example.com",
        "name": "Ann",
        "iss": "https://login.microsoftonline.com/tenant-1/v2.0",
        "aud": "client-1",
        "exp": now + 3600,
        "nbf": now - 60,
    }
    payload.update(claims)
    return jwt.encode(payload, private_key, algorithm="RS256", headers={"kid": KID})


def _validator(signing_key) -> IdTokenValidator:
    jwks = MagicMock()
    jwks.get_signing_key.return_value = signing_key[1]
    return IdTokenValidator(_config(), jwks=jwks)


def test_extract_identity_prefers_oid_and_lowercases_email():
    identity = _extract_identity({"sub": "s", "oid": "o", "preferred_username": "A@B.COM", "name": "A"})
    assert identity.subject == "o"
    assert identity.email == "a@b.com"
    assert identity.display_name == "A"


def test_extract_identity_falls_back_to_sub_and_email():
    identity = _extract_identity({"sub": "s", "email": "x@y.z"})
    assert identity.subject == "s"
    assert identity.email == "x@y.z"
    assert identity.display_name is None


def test_extract_identity_requires_email():
    with pytest.raises(IdentityError):
        _extract_identity({"oid": "o"})


def test_valid_id_token(signing_key):
    identity = _validator(signing_key).validate(_id_token(signing_key[0]))

    assert identity.to_dict() == {"subject": "oid-1", "email": "ann@example.com", "display_name": "Ann"}


@pytest.mark.parametrize(
    "claims",
    [
        {"aud": "someone-else"},
        {"iss": "https://login.microsoftonline.com/other/v2.0"},
        {"exp": int(time.time()) - 3600},
    ],
)
def test_id_token_with_wrong_claims_is_rejected(signing_key, claims):
    with pytest.raises(IdentityError):
        _validator(signing_key).validate(_id_token(signing_key[0], **claims))


def test_id_token_nonce_must_match(signing_key):
    token = _id_token(signing_key[0], nonce="n-1")

    assert _validator(signing_key).validate(token, nonce="n-1").subject == "oid-1"
    with pytest.raises(IdentityError):
        _validator(signing_key).validate(token, nonce="n-2")


def test_id_token_without_kid_is_rejected(signing_key):
    token = jwt.encode({"sub": "u"}, "x" * 32, algorithm="HS256")
    with pytest.raises(IdentityError):
        _validator(signing_key).validate(token)


def test_unknown_signing_key_is_rejected(signing_key):
    jwks = MagicMock()
    jwks.get_signing_key.return_value = None
    with pytest.raises(IdentityError):
        IdTokenValidator(_config(), jwks=jwks).validate(_id_token(signing_key[0]))


def test_authorization_url_carries_client_redirect_and_state():
    url = EntraSignInClient(_config(), validator=MagicMock()).authorization_url("state-1")

    parsed = urlparse(url)
    query = parse_qs(parsed.query)
    assert parsed.path == "/tenant-1/oauth2/v2.0/authorize"
    assert query["client_id"] == ["client-1"]
    assert query["response_type"] == ["code"]
    assert query["redirect_uri"] == ["https://api.example.com/api/v1/user/azure/redirect"]
    assert query["scope"] == ["openid profile email"]
    assert query["state"] == ["state-1"]


def test_authorization_url_requires_redirect_uri():
    with pytest.raises(IdentityError):
        EntraSignInClient(_config(redirect_uri=None), validator=MagicMock()).authorization_url("s")


@patch("projecthub.identity.client.requests.post")
def test_exchange_code_validates_returned_id_token(mock_post, signing_key):
    mock_post.return_value.status_code = 200
    mock_post.return_value.json.return_value = {"id_token": _id_token(signing_key[0]), "access_token": "at"}

    identity = EntraSignInClient(_config(), validator=_validator(signing_key)).exchange_code("code-1")

    assert identity.subject == "oid-1"
    data = mock_post.call_args.kwargs["data"]
    assert data["grant_type"] == "authorization_code"
    assert data["code"] == "code-1"


@patch("projecthub.identity.client.requests.post")
def test_exchange_code_rejected_by_provider(mock_post):
    mock_post.return_value.status_code = 400
    mock_post.return_value.json.return_value = {"error": "invalid_grant"}

    with pytest.raises(IdentityError, match="Invalid or expired authorization code"):
        EntraSignInClient(_config(), validator=MagicMock()).exchange_code("stale")


@patch("projecthub.identity.client.requests.post")
def test_exchange_code_network_failure(mock_post):
    mock_post.side_effect = requests.ConnectionError("down")

    with pytest.raises(IdentityError):
        EntraSignInClient(_config(), validator=MagicMock()).exchange_code("code-1")


def test_exchange_code_requires_code_and_secret():
    with pytest.raises(IdentityError):
        EntraSignInClient(_config(), validator=MagicMock()).exchange_code("")
    with pytest.raises(IdentityError):
        EntraSignInClient(_config(client_secret=None), validator=MagicMock()).exchange_code("code-1")
