"""Replay saved chain responses from disk."""

from __future__ import annotations

import json
import logging
from pathlib import Path

from .base import ChainFetcher, FetchFailure, FetchResult
from .schwab import parse_chain

logger = logging.getLogger(__name__)


class FileChainFetcher(ChainFetcher):
    """Read ``<directory>/<SYMBOL>.json`` files in the brokerage response format."""

    def __init__(self, directory: str | Path = "data/chains") -> None:
        self._directory = Path(directory)

    @property
    def name(self) -> str:
        return "file"

    def path_for(self, symbol: str) -> Path:
        return self._directory / f"{symbol.upper()}.json"

    def fetch(self, symbol: str) -> FetchResult:
        path = self.path_for(symbol)
        if not path.exists():
            logger.warning("No replay file for %s at %s", symbol, path)
            return FetchFailure(symbol=symbol, reason=f"no replay file at {path}")
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("Unreadable replay file %s: %s", path, exc)
            return FetchFailure(symbol=symbol, reason=f"unreadable replay file: {exc}")
        if not isinstance(payload, dict):
            return FetchFailure(symbol=symbol, reason="unexpected payload shape")
        return parse_chain(symbol, payload)


__all__ = ["FileChainFetcher"]
