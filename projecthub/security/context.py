from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class Actor:
    """
    The authenticated caller of one request.

    Built by the session authenticator from a verified credential and attached to
    `request.state.actor`. It is never cached across requests.
    """

    user_id: int
    email: str
    display_name: str | None
    role: str
    role_permissions: frozenset[str] = field(default_factory=frozenset)
    direct_permissions: frozenset[str] = field(default_factory=frozenset)

    @property
    def effective_permissions(self) -> frozenset[str]:
        """Union of the role's permissions and the ones granted to the user directly."""
        return self.role_permissions | self.direct_permissions

    def to_dict(self) -> dict[str, object]:
        return {
            "user_id": self.user_id,
            "email": self.email,
            "display_name": self.display_name,
            "role": self.role,
            "permissions": sorted(self.effective_permissions),
        }


@dataclass(frozen=True)
class AccessRequirement:
    """
    Role/permission gate declared for a route.

    - `roles`: any one of them suffices; empty means no role restriction.
    - `permissions`: all of them are required; empty means no permission restriction.
    """

    roles: frozenset[str] = field(default_factory=frozenset)
    permissions: frozenset[str] = field(default_factory=frozenset)

    @property
    def is_unrestricted(self) -> bool:
        return not self.roles and not self.permissions
