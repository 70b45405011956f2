from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Literal, Optional, Tuple

import pandas as pd
from pydantic import BaseModel, ConfigDict, Field, field_validator

OptionSide = Literal["CALL", "PUT"]

# Schwab reports unavailable Greeks and volatility with this sentinel.
MISSING_SENTINEL = -999.0


def _optional_float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    number = float(value)
    if math.isnan(number) or number == MISSING_SENTINEL:
        return None
    return number


class OptionGreeks(BaseModel):
    """Normalized representation of option Greeks (any of them may be absent)."""

    model_config = ConfigDict(frozen=True)

    delta: Optional[float] = None
    gamma: Optional[float] = None
    theta: Optional[float] = None
    vega: Optional[float] = None

    @field_validator("delta", "gamma", "theta", "vega", mode="before")
    @classmethod
    def coerce_greek(cls, value: Any) -> Optional[float]:
        return _optional_float(value)


class OptionContract(BaseModel):
    """Immutable snapshot of a single option quote taken during one poll cycle."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    symbol: str
    option_symbol: str = Field(alias="optionSymbol")
    side: OptionSide = Field(alias="putCall")
    strike: float = Field(alias="strikePrice")
    expiration: date
    bid: Optional[float] = None
    ask: Optional[float] = None
    last: Optional[float] = None
    mark: Optional[float] = None
    volume: int = Field(default=0, alias="totalVolume")
    open_interest: int = Field(default=0, alias="openInterest")
    greeks: OptionGreeks = Field(default_factory=OptionGreeks)
    implied_volatility: Optional[float] = Field(default=None, alias="impliedVolatility")
    days_to_expiration: int = Field(default=0, alias="daysToExpiration")
    in_the_money: bool = Field(default=False, alias="inTheMoney")

    @field_validator("side", mode="before")
    @classmethod
    def normalize_side(cls, value: Any) -> str:
        return str(value or "").strip().upper()

    @field_validator("expiration", mode="before")
    @classmethod
    def parse_expiration(cls, value: Any) -> date:
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value
        if isinstance(value, str):
            # Accept both plain dates and Schwab map keys such as "2024-06-21:0".
            return datetime.strptime(value[:10], "%Y-%m-%d").date()
        raise ValueError("Unsupported expiration format")

    @field_validator("volume", "open_interest", mode="before")
    @classmethod
    def coerce_count(cls, value: Any) -> int:
        number = _optional_float(value)
        return max(0, int(number or 0))

    @field_validator("bid", "ask", "last", "mark", "implied_volatility", mode="before")
    @classmethod
    def coerce_price(cls, value: Any) -> Optional[float]:
        return _optional_float(value)

    @property
    def is_call(self) -> bool:
        return self.side == "CALL"

    @property
    def mid_price(self) -> Optional[float]:
        if self.bid is not None and self.ask is not None and (self.bid or self.ask):
            return round((self.bid + self.ask) / 2, 4)
        return self.mark if self.mark is not None else self.last

    @property
    def volume_oi_ratio(self) -> Optional[float]:
        if self.open_interest <= 0:
            return None
        return self.volume / self.open_interest

    @property
    def key(self) -> Tuple[str, float, str, date]:
        """Logical identity of the contract across snapshots."""

        return (self.symbol, self.strike, self.side, self.expiration)


@dataclass(frozen=True)
class Chain:
    """Flat, typed view of one symbol's option chain at a single instant."""

    symbol: str
    underlying_price: Optional[float]
    contracts: Tuple[OptionContract, ...] = ()
    fetched_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    reported_contracts: Optional[int] = None

    @property
    def calls(self) -> List[OptionContract]:
        return [contract for contract in self.contracts if contract.side == "CALL"]

    @property
    def puts(self) -> List[OptionContract]:
        return [contract for contract in self.contracts if contract.side == "PUT"]

    @property
    def contract_count(self) -> int:
        return len(self.contracts)

    @property
    def is_empty(self) -> bool:
        return not self.contracts

    def to_dataframe(self) -> pd.DataFrame:
        """One row per contract with Greeks flattened into columns."""

        rows: List[Dict[str, Any]] = []
        for contract in self.contracts:
            row = contract.model_dump(exclude={"greeks"})
            row.update(contract.greeks.model_dump())
            row["underlying_price"] = self.underlying_price
            rows.append(row)
        if not rows:
            return pd.DataFrame()
        return pd.DataFrame(rows)


__all__ = [
    "Chain",
    "MISSING_SENTINEL",
    "OptionContract",
    "OptionGreeks",
    "OptionSide",
]
