from __future__ import annotations

from collections.abc import Iterable
from enum import Enum


class AuthErrorCode(str, Enum):
    NO_CREDENTIAL = "NO_CREDENTIAL"
    INVALID_CREDENTIAL = "INVALID_CREDENTIAL"
    EXPIRED_CREDENTIAL = "EXPIRED_CREDENTIAL"
    ACTOR_NOT_FOUND = "ACTOR_NOT_FOUND"


class DenyReason(str, Enum):
    INSUFFICIENT_ROLE = "INSUFFICIENT_ROLE"
    INSUFFICIENT_PERMISSION = "INSUFFICIENT_PERMISSION"


class AuthenticationError(Exception):
    """Raised when the caller cannot be identified. Never carries the credential."""

    def __init__(self, code: AuthErrorCode, message: str | None = None) -> None:
        self.code = code
        self.message = message or _AUTH_MESSAGES[code]
        super().__init__(self.message)


class AuthorizationError(Exception):
    """Raised when an identified caller lacks the role or permissions a route requires."""

    def __init__(
        self,
        reason: DenyReason,
        required: Iterable[str] = (),
        held: Iterable[str] = (),
    ) -> None:
        self.reason = reason
        self.required = frozenset(required)
        self.held = frozenset(held)
        self.message = _DENY_MESSAGES[reason]
        super().__init__(self.message)


_AUTH_MESSAGES = {
    AuthErrorCode.NO_CREDENTIAL: "Authentication required",
    AuthErrorCode.INVALID_CREDENTIAL: "Invalid session token",
    AuthErrorCode.EXPIRED_CREDENTIAL: "Session expired",
    AuthErrorCode.ACTOR_NOT_FOUND: "User not found",
}

_DENY_MESSAGES = {
    DenyReason.INSUFFICIENT_ROLE: "Insufficient role privileges",
    DenyReason.INSUFFICIENT_PERMISSION: "Insufficient permission privileges",
}
