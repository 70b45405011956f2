"""Core abstractions for option-chain fetchers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Union

from zerodte.models.option import Chain


class AdapterError(Exception):
    """Base exception raised for adapter related failures."""


class RateLimitError(AdapterError):
    """Raised when a provider reports rate limiting errors."""


class DataNotAvailable(AdapterError):
    """Raised when requested data is not available from a provider."""


class CredentialUnavailable(AdapterError):
    """Raised when no valid bearer credential can be obtained."""


@dataclass(frozen=True)
class FetchFailure:
    """Tagged failure returned instead of a chain; the caller skips the symbol."""

    symbol: str
    reason: str
    status_code: Optional[int] = None
    rate_limited: bool = False
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


FetchResult = Union[Chain, FetchFailure]


class ChainFetcher(ABC):
    """Fetch one symbol's zero-days-to-expiration chain per call."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Human readable provider name."""

    @abstractmethod
    def fetch(self, symbol: str) -> FetchResult:
        """Return the parsed chain, or a ``FetchFailure``. Must not raise."""

    def close(self) -> None:
        """Release any held network resources."""


__all__ = [
    "AdapterError",
    "ChainFetcher",
    "CredentialUnavailable",
    "DataNotAvailable",
    "FetchFailure",
    "FetchResult",
    "RateLimitError",
]
