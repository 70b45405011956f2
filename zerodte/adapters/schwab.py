"""Schwab market-data adapter and the chain parsing boundary."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Dict, Iterator, List, Mapping, Optional, Tuple

import requests
from pydantic import ValidationError

from zerodte.models.option import Chain, OptionContract, OptionGreeks, _optional_float

from .base import ChainFetcher, CredentialUnavailable, FetchFailure, FetchResult

if TYPE_CHECKING:  # pragma: no cover
    from zerodte.auth.tokens import TokenProvider

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.schwabapi.com"
CHAINS_ENDPOINT = "/marketdata/v1/chains"


def _iter_raw_contracts(exp_date_map: Optional[Mapping[str, Any]]) -> Iterator[Tuple[str, Dict[str, Any]]]:
    """Walk ``{expiration: {strike: [contract, ...]}}`` yielding (expiration key, raw contract)."""

    if not isinstance(exp_date_map, Mapping):
        return
    for expiration_key, strikes in exp_date_map.items():
        if not isinstance(strikes, Mapping):
            continue
        for contracts in strikes.values():
            if not isinstance(contracts, list):
                continue
            for raw in contracts:
                if isinstance(raw, Mapping):
                    yield expiration_key, dict(raw)


def _contract_from_raw(symbol: str, expiration_key: str, raw: Mapping[str, Any]) -> OptionContract:
    volatility = _optional_float(raw.get("volatility"))
    return OptionContract(
        symbol=symbol,
        option_symbol=str(raw.get("symbol") or "").strip(),
        side=raw.get("putCall"),
        strike=raw.get("strikePrice"),
        expiration=expiration_key,
        bid=raw.get("bid"),
        ask=raw.get("ask"),
        last=raw.get("last"),
        mark=raw.get("mark"),
        volume=raw.get("totalVolume"),
        open_interest=raw.get("openInterest"),
        greeks=OptionGreeks(
            delta=raw.get("delta"),
            gamma=raw.get("gamma"),
            theta=raw.get("theta"),
            vega=raw.get("vega"),
        ),
        # Schwab quotes volatility in percent.
        implied_volatility=volatility / 100.0 if volatility is not None else None,
        days_to_expiration=int(raw.get("daysToExpiration") or 0),
        in_the_money=bool(raw.get("inTheMoney", False)),
    )


def _price(value: Any) -> Optional[float]:
    try:
        return _optional_float(value)
    except (TypeError, ValueError):
        return None


def _underlying_price(payload: Mapping[str, Any]) -> Optional[float]:
    price = _price(payload.get("underlyingPrice"))
    if price:
        return price
    underlying = payload.get("underlying")
    if not isinstance(underlying, Mapping):
        return None
    for key in ("last", "mark", "close"):
        price = _price(underlying.get(key))
        if price:
            return price
    return None


def parse_chain(
    symbol: str,
    payload: Mapping[str, Any],
    *,
    fetched_at: Optional[datetime] = None,
    zero_dte_only: bool = True,
) -> Chain:
    """Flatten a nested chains response into a typed :class:`Chain`.

    Missing or empty contract maps (non-trading days, ``status: FAILED``)
    produce an empty chain rather than an error. Individual contracts that fail
    validation are skipped.
    """

    contracts: List[OptionContract] = []
    skipped = 0
    for map_key in ("callExpDateMap", "putExpDateMap"):
        for expiration_key, raw in _iter_raw_contracts(payload.get(map_key)):
            try:
                contract = _contract_from_raw(symbol, expiration_key, raw)
            except (ValidationError, TypeError, ValueError) as exc:
                skipped += 1
                logger.debug("Skipping malformed %s contract %s: %s", symbol, raw.get("symbol"), exc)
                continue
            if zero_dte_only and contract.days_to_expiration != 0:
                skipped += 1
                continue
            contracts.append(contract)

    if skipped:
        logger.debug("Dropped %d contracts while parsing %s chain", skipped, symbol)

    reported = payload.get("numberOfContracts")
    return Chain(
        symbol=symbol,
        underlying_price=_underlying_price(payload),
        contracts=tuple(contracts),
        fetched_at=fetched_at or datetime.now(timezone.utc),
        reported_contracts=int(reported) if isinstance(reported, (int, float)) else None,
    )


class SchwabChainFetcher(ChainFetcher):
    """Fetch 0DTE chains from Schwab's ``marketdata/v1/chains`` endpoint.

    Every failure mode (missing credential, transport error, non-2xx status,
    undecodable body) is logged and returned as a :class:`FetchFailure`. There
    is no retry; the next collection cycle is the retry.
    """

    def __init__(
        self,
        token_provider: "TokenProvider",
        *,
        base_url: str = DEFAULT_BASE_URL,
        strike_count: int = 50,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._token_provider = token_provider
        self._base_url = base_url.rstrip("/")
        self._strike_count = strike_count
        self._timeout = timeout
        self._session = session or requests.Session()

    @property
    def name(self) -> str:
        return "schwab"

    def build_params(self, symbol: str) -> Dict[str, str]:
        return {
            "symbol": symbol,
            "contractType": "ALL",
            "strikeCount": str(self._strike_count),
            "includeQuotes": "TRUE",
            "strategy": "SINGLE",
            "range": "ALL",
            "daysToExpiration": "0",
        }

    def _fail(self, symbol: str, reason: str, status_code: Optional[int] = None, rate_limited: bool = False) -> FetchFailure:
        logger.warning("Failed to fetch %s options chain: %s", symbol, reason)
        return FetchFailure(symbol=symbol, reason=reason, status_code=status_code, rate_limited=rate_limited)

    def fetch(self, symbol: str) -> FetchResult:
        try:
            token = self._token_provider.get_token()
        except CredentialUnavailable as exc:
            return self._fail(symbol, f"credential unavailable: {exc}")

        try:
            response = self._session.get(
                f"{self._base_url}{CHAINS_ENDPOINT}",
                params=self.build_params(symbol),
                headers={"Authorization": f"Bearer {token}", "Accept": "application/json"},
                timeout=self._timeout,
            )
        except requests.RequestException as exc:
            return self._fail(symbol, f"transport error: {exc}")

        if response.status_code == 429:
            return self._fail(symbol, "rate limited", status_code=429, rate_limited=True)
        if not response.ok:
            return self._fail(symbol, f"HTTP {response.status_code} {response.reason}", status_code=response.status_code)

        try:
            payload = response.json()
        except ValueError as exc:
            return self._fail(symbol, f"invalid JSON: {exc}", status_code=response.status_code)
        if not isinstance(payload, dict):
            return self._fail(symbol, "unexpected payload shape", status_code=response.status_code)

        return parse_chain(symbol, payload)

    def close(self) -> None:
        self._session.close()


__all__ = [
    "CHAINS_ENDPOINT",
    "DEFAULT_BASE_URL",
    "SchwabChainFetcher",
    "parse_chain",
]
