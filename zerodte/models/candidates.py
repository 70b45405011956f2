from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from .option import OptionContract, OptionSide

FlowSignal = Literal["BULLISH", "BEARISH", "NEUTRAL"]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class NakedPositionEvent(BaseModel):
    """A contract whose traded volume exceeded open interest times the threshold."""

    model_config = ConfigDict(frozen=True)

    symbol: str
    option_symbol: str
    side: OptionSide
    strike: float
    expiration: date
    volume: int
    open_interest: int
    volume_oi_ratio: float
    threshold: float
    bid: Optional[float] = None
    ask: Optional[float] = None
    mark: Optional[float] = None
    underlying_price: Optional[float] = None
    detected_at: datetime = Field(default_factory=utcnow)


class SpreadCandidate(BaseModel):
    """Two-leg vertical credit spread with its economics per contract."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["spread"] = "spread"
    symbol: str
    side: OptionSide
    short_leg: OptionContract
    long_leg: OptionContract
    width: float
    credit: float
    max_profit: float
    max_loss: float
    break_even: float
    risk_reward: float
    probability_of_profit: Optional[float] = None
    delta_spread: Optional[float] = None
    underlying_price: Optional[float] = None

    @property
    def short_strike(self) -> float:
        return self.short_leg.strike

    @property
    def long_strike(self) -> float:
        return self.long_leg.strike

    @property
    def label(self) -> str:
        return f"{self.side} {self.short_strike:g}/{self.long_strike:g}"


class OrderFlow(BaseModel):
    model_config = ConfigDict(frozen=True)

    has_unusual_volume: bool
    volume_oi_ratio: float
    signal: FlowSignal = "NEUTRAL"


class ATMCandidate(BaseModel):
    """Contract struck within the at-the-money band around spot."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["atm"] = "atm"
    symbol: str
    contract: OptionContract
    distance: float
    distance_pct: float
    order_flow: Optional[OrderFlow] = None

    @property
    def side(self) -> OptionSide:
        return self.contract.side

    @property
    def label(self) -> str:
        return f"{self.contract.side} {self.contract.strike:g}"


class ATMSelection(BaseModel):
    calls: List[ATMCandidate] = Field(default_factory=list)
    puts: List[ATMCandidate] = Field(default_factory=list)

    def all(self) -> List[ATMCandidate]:
        return [*self.calls, *self.puts]


Candidate = Union[SpreadCandidate, ATMCandidate]


class ScoreResult(BaseModel):
    """What an external scoring service returns for one candidate."""

    score: float
    confidence: float
    rationale: str = ""
    model: str = "unknown"
    metadata: Dict[str, Any] = Field(default_factory=dict)


class ScoredCandidate(BaseModel):
    """A candidate plus its score; ``failed`` separates scoring errors from low scores."""

    candidate: Candidate = Field(discriminator="kind")
    score: float = 0.0
    confidence: float = 0.0
    rationale: str = ""
    model: str = "unknown"
    failed: bool = False
    error: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_result(cls, candidate: Candidate, result: ScoreResult) -> "ScoredCandidate":
        return cls(
            candidate=candidate,
            score=result.score,
            confidence=result.confidence,
            rationale=result.rationale,
            model=result.model,
            metadata=dict(result.metadata),
        )

    @classmethod
    def failure(cls, candidate: Candidate, error: str) -> "ScoredCandidate":
        return cls(
            candidate=candidate,
            score=0.0,
            confidence=0.0,
            rationale=f"Scoring failed: {error}",
            model="error",
            failed=True,
            error=error,
        )


__all__ = [
    "ATMCandidate",
    "ATMSelection",
    "Candidate",
    "FlowSignal",
    "NakedPositionEvent",
    "OrderFlow",
    "ScoreResult",
    "ScoredCandidate",
    "SpreadCandidate",
    "utcnow",
]
