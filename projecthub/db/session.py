from __future__ import annotations

from collections.abc import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from projecthub.settings import get_settings


def _sqlite_foreign_keys_on(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def enforce_foreign_keys(engine: Engine) -> Engine:
    """SQLite ignores FOREIGN KEY clauses unless every connection turns them on."""

    if engine.dialect.name == "sqlite":
        event.listen(engine, "connect", _sqlite_foreign_keys_on)
    return engine


_settings = get_settings()

engine = enforce_foreign_keys(
    create_engine(
        _settings.resolved_db_url(),
        connect_args={"check_same_thread": False} if _settings.resolved_db_url().startswith("sqlite") else {},
    )
)

SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, class_=Session)


def get_db() -> Generator[Session, None, None]:
    """
    Main DB dependency: one session per request, closed when the request ends.

    Handlers commit explicitly; anything left uncommitted is rolled back on close.
    """

    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
