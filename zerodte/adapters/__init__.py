"""Fetchers for external option-chain providers."""

from __future__ import annotations

from importlib import import_module
from typing import Any, Dict, Type

from .base import (
    AdapterError,
    ChainFetcher,
    CredentialUnavailable,
    DataNotAvailable,
    FetchFailure,
    FetchResult,
    RateLimitError,
)

_FETCHER_REGISTRY: Dict[str, str] = {
    "schwab": "zerodte.adapters.schwab:SchwabChainFetcher",
    "file": "zerodte.adapters.replay:FileChainFetcher",
}


def create_fetcher(provider: str, **kwargs: Any) -> ChainFetcher:
    """Instantiate a chain fetcher by name.

    Args:
        provider: The lowercase name of the provider to load.
        **kwargs: Passed through to the fetcher constructor.

    Returns:
        An instance of the requested fetcher implementation.

    Raises:
        KeyError: If the provider name is unknown.
    """

    normalized = provider.lower()
    try:
        dotted_path = _FETCHER_REGISTRY[normalized]
    except KeyError as exc:
        raise KeyError(f"Unknown options data provider: {provider}") from exc

    module_name, class_name = dotted_path.split(":", 1)
    module = import_module(module_name)
    fetcher_cls: Type[ChainFetcher] = getattr(module, class_name)
    return fetcher_cls(**kwargs)


__all__ = [
    "AdapterError",
    "ChainFetcher",
    "CredentialUnavailable",
    "DataNotAvailable",
    "FetchFailure",
    "FetchResult",
    "RateLimitError",
    "create_fetcher",
]
