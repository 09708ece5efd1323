"""
Validate the Entra-signed id token returned by the code exchange.

Nothing in the token is trusted until all of these pass:

1. signature, against the tenant's published signing key (by ``kid``);
2. issuer (``iss``) equals our tenant's v2.0 issuer;
3. audience (``aud``) equals our client id;
4. lifetime (``exp`` / ``nbf``) within the configured clock skew.
"""

from __future__ import annotations

import logging
from typing import Any

import jwt

from .config import EntraConfig
from .context import IdentityAssertion
from .jwks_cache import JWKSCache

logger = logging.getLogger(__name__)


class IdentityError(Exception):
    """Raised when the sign-in cannot be completed. Never carries tokens or codes."""


def _get_kid(token: str) -> str | None:
    try:
        header = jwt.get_unverified_header(token)
    except jwt.InvalidTokenError:
        return None
    return header.get("kid") if isinstance(header, dict) else None


def _extract_identity(payload: dict[str, Any]) -> IdentityAssertion:
    """
    Map validated id-token claims to an IdentityAssertion.

    * **oid** is stable tenant-wide and preferred; **sub** is pairwise per app
      and only used when oid is absent.
    * **preferred_username** is usually the UPN / email; **email** is used when
      it is missing.
    """

    subject = payload.get("oid") or payload.get("sub") or ""
    email = payload.get("preferred_username") or payload.get("email") or ""
    if not subject or not email:
        raise IdentityError("Identity token lacks subject or email")

    name = payload.get("name")
    return IdentityAssertion(
        subject=str(subject),
        email=str(email).strip().lower(),
        display_name=str(name) if name is not None else None,
    )


class IdTokenValidator:
    def __init__(self, config: EntraConfig, jwks: JWKSCache | None = None) -> None:
        self._config = config
        self._jwks = jwks or JWKSCache(config.jwks_uri, config.jwks_cache_ttl_seconds)

    def validate(self, id_token: str, nonce: str | None = None) -> IdentityAssertion:
        kid = _get_kid(id_token)
        if not kid:
            logger.debug("Id token missing or invalid kid")
            raise IdentityError("Invalid id token: missing key id")

        signing_key = self._jwks.get_signing_key(kid)
        if signing_key is None:
            logger.debug("No signing key found for kid")
            raise IdentityError("Invalid id token: unknown signing key")

        try:
            payload = jwt.decode(
                id_token,
                signing_key.key,
                algorithms=["RS256"],
                audience=self._config.client_id,
                issuer=self._config.issuer,
                leeway=self._config.clock_skew_seconds,
            )
        except jwt.ExpiredSignatureError as e:
            logger.info("Id token expired")
            raise IdentityError("Id token expired") from e
        except jwt.InvalidIssuerError as e:
            logger.info("Id token invalid issuer")
            raise IdentityError("Invalid id token: issuer") from e
        except jwt.InvalidAudienceError as e:
            logger.info("Id token invalid audience")
            raise IdentityError("Invalid id token: audience") from e
        except jwt.InvalidTokenError as e:
            logger.info("Id token invalid: %s", type(e).__name__)
            raise IdentityError("Invalid id token") from e

        if nonce is not None and payload.get("nonce") != nonce:
            logger.info("Id token nonce mismatch")
            raise IdentityError("Invalid id token: nonce")

        return _extract_identity(payload)
