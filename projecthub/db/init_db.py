from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from projecthub import models  # noqa: F401  (register every table on Base.metadata)
from projecthub.db.base import Base
from projecthub.db.session import SessionLocal, engine
from projecthub.models.security import Permission, Role
from projecthub.security.roles import ALL_PERMISSIONS, DEFAULT_ROLE_PERMISSIONS

logger = logging.getLogger(__name__)


def init_db() -> None:
    """
    Create tables + seed the permission catalogue and the role matrix.

    Seeding is idempotent: missing roles/permissions are added, existing rows
    (and any role/permission links edited at runtime) are left alone.
    """

    Base.metadata.create_all(bind=engine)

    with SessionLocal() as db:
        seed_access_matrix(db)
        db.commit()


def seed_access_matrix(db: Session) -> None:
    permissions = {p.action: p for p in db.scalars(select(Permission)).all()}
    for action in sorted(ALL_PERMISSIONS - permissions.keys()):
        perm = Permission(action=action, description=action.replace("_", " ").capitalize())
        db.add(perm)
        permissions[action] = perm
    db.flush()

    existing_roles = {r.name for r in db.scalars(select(Role)).all()}
    for role_name, actions in DEFAULT_ROLE_PERMISSIONS.items():
        if role_name.value in existing_roles:
            continue
        role = Role(name=role_name.value, description=f"Default {role_name.value.lower()} role")
        role.permissions = [permissions[a] for a in sorted(actions)]
        db.add(role)
        logger.info("Seeded role %s with %s permissions", role_name.value, len(actions))
    db.flush()
