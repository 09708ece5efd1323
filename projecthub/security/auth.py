from __future__ import annotations

import logging

from fastapi import Request
from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from projecthub.models.security import Role, User
from projecthub.security.context import Actor
from projecthub.security.exceptions import AuthenticationError, AuthErrorCode
from projecthub.security.tokens import SessionTokenService

logger = logging.getLogger(__name__)


def extract_credential(request: Request, cookie_name: str) -> str | None:
    """
    Read the session token from the session cookie.

    Returns None when the cookie is missing or blank; the caller decides that this
    means NO_CREDENTIAL.
    """

    raw = request.cookies.get(cookie_name)
    if raw is None or not raw.strip():
        logger.info("Missing session cookie path=%s method=%s", request.url.path, request.method)
        return None
    return raw.strip()


def load_user(db: Session, user_id: int) -> User | None:
    return db.execute(
        select(User)
        .where(User.id == user_id)
        .options(
            selectinload(User.role).selectinload(Role.permissions),
            selectinload(User.permissions),
        )
    ).scalar_one_or_none()


def actor_from_user(user: User) -> Actor:
    return Actor(
        user_id=user.id,
        email=user.email,
        display_name=user.display_name,
        role=user.role.name,
        role_permissions=frozenset(p.action for p in user.role.permissions),
        direct_permissions=frozenset(p.action for p in user.permissions),
    )


class SessionAuthenticator:
    """
    Turns a raw session credential into an Actor.

    Read-only: it verifies the token and looks the subject up, nothing else.
    Always returns an Actor or raises AuthenticationError with a specific code.
    """

    def __init__(self, tokens: SessionTokenService, cookie_name: str = "auth_token") -> None:
        self._tokens = tokens
        self.cookie_name = cookie_name

    def authenticate(self, db: Session, raw_credential: str | None) -> Actor:
        if not raw_credential:
            raise AuthenticationError(AuthErrorCode.NO_CREDENTIAL)

        claims = self._tokens.verify(raw_credential)

        user = load_user(db, claims.subject)
        if user is None:
            logger.info("Session subject no longer exists user_id=%s", claims.subject)
            raise AuthenticationError(AuthErrorCode.ACTOR_NOT_FOUND)

        return actor_from_user(user)
