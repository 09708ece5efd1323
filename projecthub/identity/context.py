"""Identity produced by a completed Entra sign-in."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class IdentityAssertion:
    """
    Who signed in, as verified from the id token.

    Only used to find or create the local user; authorization never reads it.
    """

    subject: str
    """Directory object id (oid), falling back to sub."""

    email: str
    """preferred_username / email claim, lower-cased."""

    display_name: str | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "subject": self.subject,
            "email": self.email,
            "display_name": self.display_name,
        }
