from __future__ import annotations

from collections.abc import Callable
import logging
import time

logger = logging.getLogger(__name__)

TokenFetcher = Callable[[], tuple[str, int]]


class AppTokenCache:
    """
    Process-wide cache for the client-credentials (app-only) access token.

    ``fetch`` returns ``(access_token, expires_in_seconds)``. The cached token is
    reused until its recorded expiry (minus a safety margin, capped at half the
    lifetime) and refetched after that, so it is never reused past the real
    expiry. There is no lock: a refresh is idempotent, so concurrent misses
    only cost a redundant fetch.
    """

    def __init__(
        self,
        fetch: TokenFetcher,
        safety_margin_seconds: int = 300,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._fetch = fetch
        self._margin = safety_margin_seconds
        self._clock = clock
        self._token: str | None = None
        self._expires_at: float = 0.0

    @property
    def expires_at(self) -> float:
        return self._expires_at

    def get_or_refresh(self, now: float | None = None) -> str:
        now = self._clock() if now is None else now
        if self._token and now < self._expires_at:
            return self._token

        logger.info("Fetching new app access token")
        token, expires_in = self._fetch()
        self._token = token
        # the margin never eats more than half of a short lifetime
        margin = min(self._margin, expires_in // 2)
        self._expires_at = now + max(expires_in - margin, 0)
        return token

    def invalidate(self) -> None:
        self._token = None
        self._expires_at = 0.0
