"""
Optional Microsoft Graph client for mirroring user administration to the directory.

When ``MSAL_GRAPH_ENABLED`` is set, creating a user invites them into the
tenant and deleting a user removes their directory account. Calls use an
app-only (client credentials) token held in an ``AppTokenCache`` so the token
endpoint is hit once per token lifetime, not once per call.

Required application permission: ``User.Invite.All`` and ``User.ReadWrite.All``.
"""

from __future__ import annotations

import logging

import requests

from .config import EntraConfig
from .token_cache import AppTokenCache
from .validator import IdentityError

logger = logging.getLogger(__name__)

GRAPH_BASE = "https://graph.microsoft.com/v1.0"


def request_app_token(config: EntraConfig) -> tuple[str, int]:
    """
    Obtain an app-only token for Microsoft Graph.

    Returns (access_token, expires_in_seconds).
    """
    if not config.client_secret:
        raise IdentityError("AZURE_CLIENT_SECRET required for Graph calls")
    data = {
        "client_id": config.client_id,
        "client_secret": config.client_secret,
        "scope": "https://graph.microsoft.com/.default",
        "grant_type": "client_credentials",
    }
    try:
        resp = requests.post(config.token_endpoint, data=data, timeout=10)
        resp.raise_for_status()
    except requests.RequestException as e:
        logger.warning("Graph app token failed: %s", type(e).__name__)
        raise IdentityError("Could not retrieve access token from Azure AD") from e

    body = resp.json()
    access_token = body.get("access_token")
    if not access_token:
        raise IdentityError("No access_token in Graph token response")
    return access_token, int(body.get("expires_in", 3600))


class GraphDirectory:
    def __init__(self, config: EntraConfig, token_cache: AppTokenCache | None = None) -> None:
        self._config = config
        self._tokens = token_cache or AppTokenCache(lambda: request_app_token(config))

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._tokens.get_or_refresh()}",
            "Content-Type": "application/json",
        }

    def invite_user(self, email: str, display_name: str | None, redirect_url: str) -> str:
        """Invite ``email`` into the tenant; returns the new directory object id."""
        payload = {
            "invitedUserEmailAddress": email,
            "invitedUserDisplayName": display_name or email,
            "inviteRedirectUrl": redirect_url,
            "sendInvitationMessage": True,
        }
        try:
            resp = requests.post(f"{GRAPH_BASE}/invitations", json=payload, headers=self._headers(), timeout=10)
            resp.raise_for_status()
        except requests.RequestException as e:
            logger.warning("Graph invitation failed: %s", type(e).__name__)
            raise IdentityError("Directory invitation failed") from e

        invited = resp.json().get("invitedUser") or {}
        object_id = invited.get("id")
        if not object_id:
            raise IdentityError("Directory invitation returned no user id")
        logger.info("Invited directory user oid=%s", object_id)
        return str(object_id)

    def delete_user(self, object_id: str) -> None:
        """Delete a directory user; an already-deleted user is not an error."""
        try:
            resp = requests.delete(f"{GRAPH_BASE}/users/{object_id}", headers=self._headers(), timeout=10)
        except requests.RequestException as e:
            logger.warning("Graph delete failed: %s", type(e).__name__)
            raise IdentityError("Directory user deletion failed") from e

        if resp.status_code == 404:
            logger.info("Directory user already absent oid=%s", object_id)
            return
        if resp.status_code not in (200, 204):
            logger.warning("Graph delete returned status=%s", resp.status_code)
            raise IdentityError("Directory user deletion failed")
        logger.info("Deleted directory user oid=%s", object_id)
