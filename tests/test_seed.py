import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from projecthub.db.init_db import seed_access_matrix
from projecthub.models.security import Permission, Role
from projecthub.models.work import Project
from projecthub.security.roles import ALL_PERMISSIONS, Perm


def test_seed_is_idempotent(seeded_db):
    seed_access_matrix(seeded_db)
    seeded_db.commit()

    assert seeded_db.scalar(select(func.count()).select_from(Permission)) == len(ALL_PERMISSIONS)
    assert seeded_db.scalar(select(func.count()).select_from(Role)) == 3


def test_worker_role_matrix(seeded_db):
    worker = seeded_db.scalars(select(Role).where(Role.name == "WORKER")).one()

    assert {p.action for p in worker.permissions} == {
        Perm.READ_PROJECT,
        Perm.READ_ORDER,
        Perm.READ_ISSUE,
        Perm.CREATE_ISSUE,
    }


def test_runtime_role_edits_survive_reseed(seeded_db):
    admin = seeded_db.scalars(select(Role).where(Role.name == "ADMIN")).one()
    admin.permissions = []
    seeded_db.commit()

    seed_access_matrix(seeded_db)
    seeded_db.commit()

    assert admin.permissions == []


def test_foreign_keys_are_enforced(seeded_db):
    seeded_db.add(Project(title="Orphan", status="ACTIVE", user_id=999))
    with pytest.raises(IntegrityError):
        seeded_db.commit()
    seeded_db.rollback()
