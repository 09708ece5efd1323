from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import timedelta
import logging

from fastapi import Depends, FastAPI

from projecthub.db.init_db import init_db
from projecthub.errors import register_exception_handlers
from projecthub.identity import EntraConfig, EntraSignInClient, GraphDirectory
from projecthub.logging_config import configure_app_logging
from projecthub.routers import (
    auth,
    companies,
    health,
    issues,
    orders,
    permissions,
    projects,
    roles,
    universal,
    users,
)
from projecthub.security.auth import SessionAuthenticator
from projecthub.security.config import AccessConfig, load_access_config
from projecthub.security.dependencies import enforce_access
from projecthub.security.tokens import SessionTokenService
from projecthub.settings import Settings, get_settings
from projecthub.storage.attachments import AttachmentStore

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"


def configure_state(
    app: FastAPI,
    settings: Settings,
    access_config: AccessConfig,
    entra_config: EntraConfig | None = None,
) -> None:
    """Attach the request-independent services the routes and the guard read from `app.state`."""

    tokens = SessionTokenService(settings.session_secret, ttl=timedelta(days=settings.session_ttl_days))
    app.state.settings = settings
    app.state.access_config = access_config
    app.state.session_tokens = tokens
    app.state.authenticator = SessionAuthenticator(tokens, cookie_name=settings.session_cookie_name)
    app.state.attachment_store = AttachmentStore(settings.resolved_upload_root())

    app.state.signin_client = EntraSignInClient(entra_config) if entra_config else None
    app.state.graph_directory = GraphDirectory(entra_config) if entra_config and entra_config.graph_enabled else None


def _entra_config_from_environ() -> EntraConfig | None:
    try:
        return EntraConfig.from_environ()
    except ValueError as e:
        logger.warning("Azure sign-in disabled: %s", e)
        return None


def create_app() -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        settings = get_settings()
        configure_app_logging(settings.log_level)
        logger.info("App startup beginning environment=%s", settings.environment)

        access_path = settings.resolved_access_config_path()
        configure_state(app, settings, load_access_config(access_path), _entra_config_from_environ())
        logger.info("Loaded access config: %s", access_path)

        init_db()
        logger.info("Database initialized (tables ensured + roles seeded)")

        yield

    # Global dependency: every route passes the access guard before its handler runs.
    app = FastAPI(title="projecthub", dependencies=[Depends(enforce_access)], lifespan=lifespan)
    register_exception_handlers(app)

    app.include_router(health.router)
    app.include_router(auth.router, prefix=API_PREFIX)
    for module in (companies, projects, issues, orders, roles, permissions, users, universal):
        app.include_router(module.router, prefix=API_PREFIX)

    return app


app = create_app()
