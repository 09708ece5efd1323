from __future__ import annotations

import logging

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from projecthub.db.session import get_db
from projecthub.security.auth import SessionAuthenticator, extract_credential
from projecthub.security.config import AccessConfig
from projecthub.security.context import Actor
from projecthub.security.exceptions import AuthenticationError, AuthErrorCode
from projecthub.security.policy import ensure_authorized

logger = logging.getLogger(__name__)


def get_access_config(request: Request) -> AccessConfig:
    config = getattr(request.app.state, "access_config", None)
    if config is None:
        raise RuntimeError("Access config not loaded. Did app startup run?")
    return config


def get_authenticator(request: Request) -> SessionAuthenticator:
    authenticator = getattr(request.app.state, "authenticator", None)
    if authenticator is None:
        raise RuntimeError("Session authenticator not configured. Did app startup run?")
    return authenticator


def get_current_actor(request: Request) -> Actor:
    actor = getattr(request.state, "actor", None)
    if actor is None:
        raise AuthenticationError(AuthErrorCode.NO_CREDENTIAL)
    return actor


def enforce_access(
    request: Request,
    config: AccessConfig = Depends(get_access_config),
    authenticator: SessionAuthenticator = Depends(get_authenticator),
    db: Session = Depends(get_db, use_cache=False),
) -> None:
    """
    Global request access guard.

    Runs as an app-wide dependency, i.e. after routing and before the handler:
    1. look the route up in the access table (public routes stop here);
    2. authenticate the session cookie -> Actor (failure is a 401);
    3. authorize against the route's requirement, if any (failure is a 403);
    4. expose the Actor on `request.state.actor` for this request only.
    """

    route = request.scope.get("route")
    route_template = getattr(route, "path", None)
    access = config.match(request.url.path, request.method, route_template)
    if access.public:
        return

    credential = extract_credential(request, authenticator.cookie_name)
    actor = authenticator.authenticate(db, credential)

    if access.requirement is not None:
        ensure_authorized(access.requirement, actor)

    request.state.actor = actor
