"""
Access policy engine.

Answers one question: may this actor pass this route's AccessRequirement?

    decision = authorize(requirement, actor)
    if not decision.allowed:
        ...  # decision.reason is a DenyReason

The function is pure. Permission sets must already be resolved on the Actor
(that is the session authenticator's job), so it can run for any number of
concurrent requests without coordination.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging

from projecthub.security.context import AccessRequirement, Actor
from projecthub.security.exceptions import AuthorizationError, DenyReason

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AccessDecision:
    allowed: bool
    reason: DenyReason | None = None
    missing: frozenset[str] = frozenset()

    @classmethod
    def allow(cls) -> AccessDecision:
        return cls(allowed=True)

    @classmethod
    def deny(cls, reason: DenyReason, missing: frozenset[str] = frozenset()) -> AccessDecision:
        return cls(allowed=False, reason=reason, missing=missing)

    def __bool__(self) -> bool:
        return self.allowed


def authorize(requirement: AccessRequirement, actor: Actor) -> AccessDecision:
    """
    Decide whether `actor` satisfies `requirement`.

    1. Non-empty roles: the actor's role must be one of them.
    2. Non-empty permissions: every one must be in the actor's effective set
       (role permissions plus direct grants).

    Both axes must pass; an empty axis always passes.
    """

    if requirement.roles and actor.role not in requirement.roles:
        return AccessDecision.deny(DenyReason.INSUFFICIENT_ROLE)

    if requirement.permissions:
        missing = requirement.permissions - actor.effective_permissions
        if missing:
            return AccessDecision.deny(DenyReason.INSUFFICIENT_PERMISSION, frozenset(missing))

    return AccessDecision.allow()


def ensure_authorized(requirement: AccessRequirement, actor: Actor) -> None:
    """Raise AuthorizationError (and write an audit line) when `authorize` denies."""

    decision = authorize(requirement, actor)
    if decision.allowed:
        logger.debug("Access allowed user_id=%s role=%s", actor.user_id, actor.role)
        return

    if decision.reason is DenyReason.INSUFFICIENT_ROLE:
        required, held = requirement.roles, frozenset({actor.role})
    else:
        required, held = requirement.permissions, actor.effective_permissions

    logger.warning(
        "Access denied user_id=%s reason=%s required=%s held=%s",
        actor.user_id,
        decision.reason.value,
        sorted(required),
        sorted(held),
    )
    raise AuthorizationError(decision.reason, required=required, held=held)
