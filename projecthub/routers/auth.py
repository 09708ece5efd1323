from __future__ import annotations

import logging
import secrets

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import RedirectResponse, Response
from sqlalchemy import select
from sqlalchemy.orm import Session

from projecthub.db.session import get_db
from projecthub.identity import EntraSignInClient, IdentityAssertion, IdentityError
from projecthub.models.security import Permission, Role, User
from projecthub.schemas.common import Message
from projecthub.schemas.security import LoginUrlOut, UserOut
from projecthub.security.auth import load_user
from projecthub.security.context import Actor
from projecthub.security.dependencies import get_current_actor
from projecthub.security.roles import RoleName
from projecthub.security.tokens import SessionTokenService
from projecthub.settings import Settings, get_settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/user", tags=["auth"])

STATE_COOKIE = "login_state"


def get_signin_client(request: Request) -> EntraSignInClient:
    client = getattr(request.app.state, "signin_client", None)
    if client is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Azure sign-in is not configured")
    return client


def get_session_tokens(request: Request) -> SessionTokenService:
    tokens = getattr(request.app.state, "session_tokens", None)
    if tokens is None:
        raise RuntimeError("Session token service not configured. Did app startup run?")
    return tokens


def find_or_create_user(db: Session, identity: IdentityAssertion, super_admin_emails: list[str]) -> User:
    """
    Resolve a verified identity to a local user, creating it on first sign-in.

    New users get the WORKER role, except configured super-admin emails, which get
    SUPER_ADMIN plus every permission as a direct grant. Does not commit.
    """

    user = db.scalars(select(User).where(User.email == identity.email)).first()
    if user is not None:
        if user.azure_id is None:
            user.azure_id = identity.subject
        logger.info("Existing user authenticated: id=%s", user.id)
        return user

    is_super_admin = identity.email in {e.strip().lower() for e in super_admin_emails}
    role_name = RoleName.SUPER_ADMIN if is_super_admin else RoleName.WORKER
    role = db.scalars(select(Role).where(Role.name == role_name.value)).first()
    if role is None:
        raise RuntimeError(f"Role {role_name.value} is not seeded")

    user = User(azure_id=identity.subject, email=identity.email, display_name=identity.display_name, role=role)
    if is_super_admin:
        user.permissions = list(db.scalars(select(Permission)).all())
    db.add(user)
    db.flush()
    logger.info("New user created with role %s: id=%s", role.name, user.id)
    return user


@router.get("/azure/login", response_model=LoginUrlOut)
def azure_login(
    response: Response,
    client: EntraSignInClient = Depends(get_signin_client),
    settings: Settings = Depends(get_settings),
) -> LoginUrlOut:
    state = secrets.token_hex(16)
    try:
        url = client.authorization_url(state)
    except IdentityError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e)) from e
    response.set_cookie(
        STATE_COOKIE, state, max_age=600, httponly=True, secure=settings.is_production, samesite="lax"
    )
    return LoginUrlOut(message="Redirect to Azure login page", url=url)


@router.get("/azure/redirect")
def azure_redirect(
    request: Request,
    code: str = Query(min_length=1),
    state: str | None = Query(default=None),
    client: EntraSignInClient = Depends(get_signin_client),
    tokens: SessionTokenService = Depends(get_session_tokens),
    settings: Settings = Depends(get_settings),
    db: Session = Depends(get_db),
) -> RedirectResponse:
    expected_state = request.cookies.get(STATE_COOKIE)
    if not expected_state or state is None or not secrets.compare_digest(expected_state, state):
        logger.warning("Sign-in redirect with missing or mismatched state")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid sign-in state")

    try:
        identity = client.exchange_code(code)
    except IdentityError as e:
        logger.warning("Azure sign-in failed: %s", e)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired Azure token") from e

    user = find_or_create_user(db, identity, settings.super_admin_emails)
    db.commit()

    session_token = tokens.issue(user.id, email=user.email, name=user.display_name)
    response = RedirectResponse(settings.frontend_url, status_code=status.HTTP_302_FOUND)
    response.set_cookie(
        settings.session_cookie_name,
        session_token,
        max_age=int(tokens.ttl.total_seconds()),
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )
    response.delete_cookie(STATE_COOKIE)
    return response


@router.post("/logout", response_model=Message)
def logout(response: Response, settings: Settings = Depends(get_settings)) -> Message:
    response.delete_cookie(settings.session_cookie_name, httponly=True, secure=settings.is_production)
    logger.info("User logged out")
    return Message(message="Logout successful")


@router.get("/me", response_model=UserOut)
def me(actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)) -> User:
    user = load_user(db, actor.user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user
