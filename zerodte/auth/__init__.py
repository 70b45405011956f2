"""Access-token state and providers for the brokerage market-data API."""

from .tokens import (
    StaticTokenProvider,
    StoredTokenProvider,
    TokenGrant,
    TokenProvider,
    TokenStore,
    token_store_from_env,
)

__all__ = [
    "StaticTokenProvider",
    "StoredTokenProvider",
    "TokenGrant",
    "TokenProvider",
    "TokenStore",
    "token_store_from_env",
]
