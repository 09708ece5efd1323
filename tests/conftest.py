"""
Pytest fixtures for the test suite.

Every test gets a fresh in-memory SQLite database (a StaticPool keeps the one
connection alive, so the test session and the app's request sessions see the
same data) and a temporary upload root. Nothing outlives the test.
"""
from __future__ import annotations

from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool


TEST_DB_URL = "sqlite:///:memory:"
ACCESS_CONFIG_PATH = Path(__file__).resolve().parents[1] / "config" / "access_control.yaml"


@pytest.fixture
def engine():
    """Create a fresh in-memory SQLite engine for each test, foreign keys enforced like the app's."""
    from projecthub.db.session import enforce_foreign_keys

    return enforce_foreign_keys(
        create_engine(
            TEST_DB_URL,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            echo=False,
        )
    )


@pytest.fixture
def tables(engine):
    """Create all ORM tables on the test engine."""
    from projecthub import models  # noqa: F401
    from projecthub.db.base import Base

    Base.metadata.create_all(bind=engine)
    return engine


@pytest.fixture
def session_factory(tables):
    return sessionmaker(bind=tables, autocommit=False, autoflush=False, class_=Session)


@pytest.fixture
def db_session(session_factory):
    """Session bound to the test DB. Commits are real; the database dies with the engine."""
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def seeded_db(db_session):
    """Test DB with the permission catalogue and default roles in place."""
    from projecthub.db.init_db import seed_access_matrix

    seed_access_matrix(db_session)
    db_session.commit()
    return db_session


@pytest.fixture
def upload_root(tmp_path):
    root = tmp_path / "uploads"
    root.mkdir()
    return root


@pytest.fixture
def store(upload_root):
    from projecthub.storage.attachments import AttachmentStore

    return AttachmentStore(upload_root)


@pytest.fixture
def make_user(seeded_db):
    """Factory: create and commit a user with a seeded role and optional direct grants."""
    from projecthub.models.security import Permission, Role, User

    counter = {"n": 0}

    def _make(role: str = "WORKER", direct: tuple[str, ...] = (), email: str | None = None) -> User:
        counter["n"] += 1
        role_row = seeded_db.scalars(select(Role).where(Role.name == role)).one()
        user = User(
            email=email or f"user{counter['n']}@example.com",
            display_name=f"User {counter['n']}",
            role=role_row,
        )
        if direct:
            user.permissions = list(seeded_db.scalars(select(Permission).where(Permission.action.in_(direct))).all())
        seeded_db.add(user)
        seeded_db.commit()
        return user

    return _make


@pytest.fixture
def settings(upload_root):
    from projecthub.settings import Settings

    return Settings(session_secret="test-secret", upload_root=str(upload_root), frontend_url="http://frontend.test")


@pytest.fixture
def app(settings, session_factory, seeded_db):
    """The real application wired to the test DB; lifespan (and init_db) is not run."""
    from projecthub.db.session import get_db
    from projecthub.main import configure_state, create_app
    from projecthub.security.config import load_access_config
    from projecthub.settings import get_settings

    application = create_app()
    configure_state(application, settings, load_access_config(ACCESS_CONFIG_PATH))

    def _get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    application.dependency_overrides[get_db] = _get_db
    application.dependency_overrides[get_settings] = lambda: settings
    return application


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def login_as(app, client):
    """Put a valid session cookie for `user` on the test client."""

    def _login(user) -> TestClient:
        token = app.state.session_tokens.issue(user.id, email=user.email, name=user.display_name)
        client.cookies.set(app.state.settings.session_cookie_name, token)
        return client

    return _login
