"""Entra ID configuration from environment variables. No hardcoded secrets."""

from __future__ import annotations

import os
from dataclasses import dataclass


def _getenv(key: str, default: str | None = None) -> str | None:
    return os.environ.get(key, default)


def _getenv_int(key: str, default: int) -> int:
    raw = os.environ.get(key)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class EntraConfig:
    """
    Azure Entra ID settings for the sign-in flow and Graph calls.

    Required:
        AZURE_TENANT_ID: Tenant (directory) ID.
        AZURE_CLIENT_ID: Application (client) ID of this backend's app registration.
        AZURE_CLIENT_SECRET: Client secret, used for the code exchange and Graph.
        AZURE_REDIRECT_URI: Absolute URL Entra redirects to after sign-in.

    Optional:
        CLOCK_SKEW_SECONDS: Seconds of tolerance for exp/nbf of id tokens (default 120).
        JWKS_CACHE_TTL_SECONDS: How long to cache the tenant signing keys (default 3600).
        MSAL_GRAPH_ENABLED: 1/true to mirror user changes to the directory via Graph.
    """

    tenant_id: str
    client_id: str
    client_secret: str | None
    redirect_uri: str | None
    clock_skew_seconds: int = 120
    jwks_cache_ttl_seconds: int = 3600
    graph_enabled: bool = False

    @property
    def authority(self) -> str:
        return f"https://login.microsoftonline.com/{self.tenant_id}"

    @property
    def issuer(self) -> str:
        return f"{self.authority}/v2.0"

    @property
    def authorize_endpoint(self) -> str:
        return f"{self.authority}/oauth2/v2.0/authorize"

    @property
    def token_endpoint(self) -> str:
        return f"{self.authority}/oauth2/v2.0/token"

    @property
    def jwks_uri(self) -> str:
        return f"{self.authority}/discovery/v2.0/keys"

    @classmethod
    def from_environ(cls) -> EntraConfig:
        tenant = _getenv("AZURE_TENANT_ID")
        client = _getenv("AZURE_CLIENT_ID")
        if not tenant or not client:
            raise ValueError("AZURE_TENANT_ID and AZURE_CLIENT_ID must be set")
        return cls(
            tenant_id=tenant.strip(),
            client_id=client.strip(),
            client_secret=_strip_or_none(_getenv("AZURE_CLIENT_SECRET")),
            redirect_uri=_strip_or_none(_getenv("AZURE_REDIRECT_URI")),
            clock_skew_seconds=_getenv_int("CLOCK_SKEW_SECONDS", 120),
            jwks_cache_ttl_seconds=_getenv_int("JWKS_CACHE_TTL_SECONDS", 3600),
            graph_enabled=(_getenv("MSAL_GRAPH_ENABLED", "") or "").strip().lower() in ("1", "true", "yes"),
        )


def _strip_or_none(s: str | None) -> str | None:
    if s is None:
        return None
    t = s.strip()
    return t if t else None
