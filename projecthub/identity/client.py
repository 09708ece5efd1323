"""
Authorization-code sign-in against Entra ID.

    client = EntraSignInClient(EntraConfig.from_environ())
    url = client.authorization_url(state)         # send the browser here
    identity = client.exchange_code(code)         # on the redirect back

The exchange posts the code to the tenant token endpoint and validates the
returned id token; the caller only ever sees an IdentityAssertion.
"""

from __future__ import annotations

import logging
from urllib.parse import urlencode

import requests

from .config import EntraConfig
from .context import IdentityAssertion
from .validator import IdentityError, IdTokenValidator

logger = logging.getLogger(__name__)

SCOPES = ("openid", "profile", "email")


class EntraSignInClient:
    def __init__(self, config: EntraConfig, validator: IdTokenValidator | None = None) -> None:
        self._config = config
        self._validator = validator or IdTokenValidator(config)

    @property
    def config(self) -> EntraConfig:
        return self._config

    def _require_redirect_uri(self) -> str:
        if not self._config.redirect_uri:
            raise IdentityError("AZURE_REDIRECT_URI is not configured")
        return self._config.redirect_uri

    def authorization_url(self, state: str) -> str:
        params = {
            "client_id": self._config.client_id,
            "response_type": "code",
            "redirect_uri": self._require_redirect_uri(),
            "response_mode": "query",
            "scope": " ".join(SCOPES),
            "state": state,
        }
        return f"{self._config.authorize_endpoint}?{urlencode(params)}"

    def exchange_code(self, code: str) -> IdentityAssertion:
        if not code:
            raise IdentityError("Missing authorization code")
        if not self._config.client_secret:
            raise IdentityError("AZURE_CLIENT_SECRET is not configured")

        data = {
            "client_id": self._config.client_id,
            "client_secret": self._config.client_secret,
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self._require_redirect_uri(),
            "scope": " ".join(SCOPES),
        }
        try:
            resp = requests.post(self._config.token_endpoint, data=data, timeout=10)
        except requests.RequestException as e:
            logger.warning("Token endpoint request failed: %s", type(e).__name__)
            raise IdentityError("Identity provider unreachable") from e

        body = _json_or_empty(resp)
        if resp.status_code != 200:
            logger.warning(
                "Code exchange rejected status=%s error=%s",
                resp.status_code,
                body.get("error_description") or body.get("error"),
            )
            raise IdentityError("Invalid or expired authorization code")

        id_token = body.get("id_token")
        if not id_token:
            raise IdentityError("No id_token in token response")

        identity = self._validator.validate(id_token)
        logger.info("Entra sign-in verified for subject=%s", identity.subject)
        return identity


def _json_or_empty(resp: requests.Response) -> dict:
    try:
        body = resp.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}
