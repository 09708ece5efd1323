"""
Tenant signing keys (JWKS) with a TTL cache.

Entra signs id tokens with rotating RSA keys published at the tenant's JWKS
endpoint. Keys are fetched once per TTL; a token whose ``kid`` is not in the
cached set triggers one forced refresh before it is rejected.
"""

from __future__ import annotations

from collections.abc import Callable
import logging
import time
from typing import Any

import requests
from jwt import PyJWK

logger = logging.getLogger(__name__)


class JWKSCache:
    def __init__(self, jwks_uri: str, ttl_seconds: int, clock: Callable[[], float] = time.monotonic) -> None:
        self._uri = jwks_uri
        self._ttl = ttl_seconds
        self._clock = clock
        self._keys: dict[str, dict[str, Any]] = {}
        self._fetched_at: float | None = None

    def _fetch(self) -> dict[str, dict[str, Any]]:
        resp = requests.get(self._uri, timeout=10)
        resp.raise_for_status()
        return {k["kid"]: k for k in resp.json().get("keys") or [] if k.get("kid")}

    def _refresh(self) -> None:
        self._keys = self._fetch()
        self._fetched_at = self._clock()
        logger.debug("JWKS refreshed uri=%s keys=%s", self._uri, len(self._keys))

    def _is_stale(self) -> bool:
        return self._fetched_at is None or (self._clock() - self._fetched_at) >= self._ttl

    def get_signing_key(self, kid: str) -> PyJWK | None:
        """Return the key for ``kid``; refreshes once on a miss to follow key rotation."""
        if self._is_stale():
            self._refresh()

        key = self._keys.get(kid)
        if key is None:
            logger.info("kid not in cached JWKS; refreshing for possible key rotation")
            self._refresh()
            key = self._keys.get(kid)

        return PyJWK.from_dict(key) if key is not None else None
