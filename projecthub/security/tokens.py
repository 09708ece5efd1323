"""
Issue and verify the local session token carried in the session cookie.

After a successful Entra sign-in the service mints its own short JWT (HS256)
holding the user id (`sub`), email and display name. Every later request
presents it back in the cookie; `SessionTokenService.verify` checks signature
and expiry before any claim is trusted.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
import logging
from typing import Any

import jwt

from projecthub.security.exceptions import AuthenticationError, AuthErrorCode

logger = logging.getLogger(__name__)

_ALGORITHM = "HS256"


@dataclass(frozen=True)
class SessionClaims:
    """Verified claims of a session token."""

    subject: int
    email: str | None
    name: str | None
    expires_at: datetime


class SessionTokenService:
    def __init__(self, secret: str, ttl: timedelta = timedelta(days=7), leeway_seconds: int = 0) -> None:
        if not secret:
            raise ValueError("session secret must not be empty")
        self._secret = secret
        self._ttl = ttl
        self._leeway = leeway_seconds

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    def issue(self, user_id: int, email: str | None = None, name: str | None = None, *, now: datetime | None = None) -> str:
        issued_at = now or datetime.now(timezone.utc)
        payload: dict[str, Any] = {
            "sub": str(user_id),
            "email": email,
            "name": name,
            "iat": issued_at,
            "exp": issued_at + self._ttl,
        }
        return jwt.encode(payload, self._secret, algorithm=_ALGORITHM)

    def verify(self, token: str) -> SessionClaims:
        """
        Verify signature and lifetime, then return the claims.

        Raises AuthenticationError with EXPIRED_CREDENTIAL or INVALID_CREDENTIAL.
        The token itself is never logged.
        """
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[_ALGORITHM],
                leeway=self._leeway,
                options={"require": ["sub", "exp"]},
            )
        except jwt.ExpiredSignatureError as e:
            logger.info("Session token expired")
            raise AuthenticationError(AuthErrorCode.EXPIRED_CREDENTIAL) from e
        except jwt.InvalidTokenError as e:
            logger.info("Session token invalid: %s", type(e).__name__)
            raise AuthenticationError(AuthErrorCode.INVALID_CREDENTIAL) from e

        try:
            subject = int(payload["sub"])
        except (TypeError, ValueError) as e:
            logger.info("Session token subject is not a user id")
            raise AuthenticationError(AuthErrorCode.INVALID_CREDENTIAL) from e

        return SessionClaims(
            subject=subject,
            email=payload.get("email"),
            name=payload.get("name"),
            expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
        )
