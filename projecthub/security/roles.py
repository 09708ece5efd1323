"""
Fixed role set and permission catalogue.

The database stores roles and permissions so they can be listed and re-linked
at runtime, but role names are restricted to `RoleName` and the seed data comes
from `DEFAULT_ROLE_PERMISSIONS`.
"""

from __future__ import annotations

from enum import Enum


class RoleName(str, Enum):
    SUPER_ADMIN = "SUPER_ADMIN"
    ADMIN = "ADMIN"
    WORKER = "WORKER"


class Perm:
    """Permission action codes, grouped by resource."""

    CREATE_PROJECT = "CREATE_PROJECT"
    EDIT_PROJECT = "EDIT_PROJECT"
    DELETE_PROJECT = "DELETE_PROJECT"
    READ_PROJECT = "READ_PROJECT"

    CREATE_ORDER = "CREATE_ORDER"
    EDIT_ORDER = "EDIT_ORDER"
    DELETE_ORDER = "DELETE_ORDER"
    READ_ORDER = "READ_ORDER"

    CREATE_ISSUE = "CREATE_ISSUE"
    EDIT_ISSUE = "EDIT_ISSUE"
    DELETE_ISSUE = "DELETE_ISSUE"
    READ_ISSUE = "READ_ISSUE"

    MANAGE_USERS = "MANAGE_USERS"
    MANAGE_ROLES = "MANAGE_ROLES"
    MANAGE_PERMISSIONS = "MANAGE_PERMISSIONS"


ALL_PERMISSIONS: frozenset[str] = frozenset(
    value for name, value in vars(Perm).items() if not name.startswith("_")
)

_WORK_PERMISSIONS = frozenset(p for p in ALL_PERMISSIONS if not p.startswith("MANAGE_"))

DEFAULT_ROLE_PERMISSIONS: dict[RoleName, frozenset[str]] = {
    RoleName.SUPER_ADMIN: ALL_PERMISSIONS,
    RoleName.ADMIN: _WORK_PERMISSIONS,
    RoleName.WORKER: frozenset(
        {
            Perm.READ_PROJECT,
            Perm.READ_ORDER,
            Perm.READ_ISSUE,
            Perm.CREATE_ISSUE,
        }
    ),
}


def is_known_role(name: str) -> bool:
    return name in RoleName._value2member_map_
