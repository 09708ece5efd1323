"""Tests for the tenant signing-key cache (requests mocked)."""

from unittest.mock import patch

from cryptography.hazmat.primitives.asymmetric import rsa
from jwt.algorithms import RSAAlgorithm

from projecthub.identity.jwks_cache import JWKSCache


def _jwk(kid):
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    jwk = RSAAlgorithm.to_jwk(key.public_key(), as_dict=True)
    jwk["kid"] = kid
    return jwk


@patch("projecthub.identity.jwks_cache.requests.get")
def test_keys_are_cached_within_ttl(mock_get):
    mock_get.return_value.json.return_value = {"keys": [_jwk("k1")]}
    now = [0.0]
    cache = JWKSCache("https://jwks", ttl_seconds=3600, clock=lambda: now[0])

    assert cache.get_signing_key("k1") is not None
    now[0] = 10.0
    assert cache.get_signing_key("k1") is not None
    assert mock_get.call_count == 1


@patch("projecthub.identity.jwks_cache.requests.get")
def test_unknown_kid_forces_one_refresh(mock_get):
    mock_get.return_value.json.return_value = {"keys": [_jwk("k1")]}
    cache = JWKSCache("https://jwks", ttl_seconds=3600, clock=lambda: 0.0)

    assert cache.get_signing_key("rotated") is None
    assert mock_get.call_count == 2


@patch("projecthub.identity.jwks_cache.requests.get")
def test_stale_keys_are_refetched(mock_get):
    mock_get.return_value.json.return_value = {"keys": [_jwk("k1")]}
    now = [0.0]
    cache = JWKSCache("https://jwks", ttl_seconds=60, clock=lambda: now[0])

    cache.get_signing_key("k1")
    now[0] = 61.0
    cache.get_signing_key("k1")

    assert mock_get.call_count == 2
