"""Bearer-token bookkeeping.

The OAuth exchange itself lives outside this package. What the collector needs
is a ``TokenProvider`` whose ``get_token`` either returns a currently valid
bearer credential or raises :class:`CredentialUnavailable`. ``TokenStore`` is the
explicitly owned state object behind it: created at startup, handed to the
provider, cleared on logout.
"""

from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass
from typing import Callable, Optional, Protocol

from zerodte.adapters.base import CredentialUnavailable

logger = logging.getLogger(__name__)

# Tokens are treated as expired this many seconds before the server says so.
EXPIRY_MARGIN_SECONDS = 300


@dataclass(frozen=True)
class TokenGrant:
    access_token: str
    expires_in: int
    refresh_token: Optional[str] = None


class TokenProvider(Protocol):
    def get_token(self) -> str:
        """Return a valid bearer token or raise ``CredentialUnavailable``."""


class TokenStore:
    """In-memory token state with an explicit lifecycle."""

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self.access_token: Optional[str] = None
        self.refresh_token: Optional[str] = None
        self.expires_at: Optional[float] = None

    def update(self, grant: TokenGrant) -> None:
        self.access_token = grant.access_token
        if grant.refresh_token:
            self.refresh_token = grant.refresh_token
        lifetime = max(0, grant.expires_in - EXPIRY_MARGIN_SECONDS)
        self.expires_at = self._clock() + lifetime

    def is_valid(self) -> bool:
        return bool(
            self.access_token
            and self.expires_at is not None
            and self._clock() < self.expires_at
        )

    def seconds_remaining(self) -> Optional[int]:
        if self.expires_at is None:
            return None
        return int(self.expires_at - self._clock())

    def clear(self) -> None:
        self.access_token = None
        self.refresh_token = None
        self.expires_at = None


class StoredTokenProvider:
    """Serve tokens from a ``TokenStore``, refreshing through an injected callable."""

    def __init__(
        self,
        store: TokenStore,
        refresher: Optional[Callable[[str], TokenGrant]] = None,
    ) -> None:
        self._store = store
        self._refresher = refresher

    @property
    def store(self) -> TokenStore:
        return self._store

    def get_token(self) -> str:
        if self._store.is_valid():
            return self._store.access_token  # type: ignore[return-value]

        refresh_token = self._store.refresh_token
        if not refresh_token or self._refresher is None:
            raise CredentialUnavailable("No valid access token; re-authentication required")

        logger.info("Access token expired, refreshing")
        try:
            grant = self._refresher(refresh_token)
        except Exception as exc:
            raise CredentialUnavailable(f"Token refresh failed: {exc}") from exc
        self._store.update(grant)
        return grant.access_token


class StaticTokenProvider:
    """Fixed token, used for replayed chains and tests."""

    def __init__(self, token: str = "offline") -> None:
        self._token = token

    def get_token(self) -> str:
        return self._token


def token_store_from_env(clock: Callable[[], float] = time.time) -> TokenStore:
    """Seed a store from ``SCHWAB_ACCESS_TOKEN`` / ``SCHWAB_REFRESH_TOKEN``."""

    store = TokenStore(clock=clock)
    access = os.environ.get("SCHWAB_ACCESS_TOKEN")
    refresh = os.environ.get("SCHWAB_REFRESH_TOKEN")
    expires_in = int(os.environ.get("SCHWAB_TOKEN_EXPIRES_IN", "1800"))
    if access:
        store.update(TokenGrant(access_token=access, expires_in=expires_in, refresh_token=refresh))
    elif refresh:
        store.refresh_token = refresh
    return store


__all__ = [
    "EXPIRY_MARGIN_SECONDS",
    "StaticTokenProvider",
    "StoredTokenProvider",
    "TokenGrant",
    "TokenProvider",
    "TokenStore",
    "token_store_from_env",
]
