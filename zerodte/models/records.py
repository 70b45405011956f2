"""Persisted record types that are not plain contract snapshots."""

from __future__ import annotations

from datetime import date, datetime
from typing import Dict, Literal, Optional

from pydantic import BaseModel, Field

from .candidates import FlowSignal, ScoredCandidate, SpreadCandidate, utcnow
from .option import OptionSide

Strategy = Literal["naked_positions", "credit_spreads", "atm_trades"]
TradeOutcome = Literal["WIN", "LOSS", "BREAK_EVEN"]
SignalType = Literal["BUY", "SELL", "HOLD"]
PredictedDirection = Literal["UP", "DOWN", "SIDEWAYS"]

STRATEGIES: tuple = ("naked_positions", "credit_spreads", "atm_trades")


class ChainSummary(BaseModel):
    """Whole-chain metrics computed once per symbol per collection cycle."""

    symbol: str
    underlying_price: Optional[float] = None
    contract_count: int = 0
    total_call_volume: int = 0
    total_put_volume: int = 0
    put_call_ratio: float = 0.0
    max_pain: Optional[float] = None
    volume_by_strike: Dict[str, int] = Field(default_factory=dict)
    open_interest_by_strike: Dict[str, int] = Field(default_factory=dict)
    recorded_at: datetime = Field(default_factory=utcnow)


class CreditSpreadRecord(BaseModel):
    """Flattened scored credit spread as it is written to the store."""

    id: Optional[int] = None
    symbol: str
    spread_type: OptionSide
    short_strike: float
    long_strike: float
    short_option_symbol: str
    long_option_symbol: str
    credit_received: float
    max_profit: float
    max_loss: float
    break_even: float
    risk_reward_ratio: float
    probability_of_profit: Optional[float] = None
    delta_spread: Optional[float] = None
    ai_score: float = 0.0
    ai_confidence: float = 0.0
    ai_reasoning: str = ""
    ai_model_used: str = "unknown"
    scoring_failed: bool = False
    underlying_price: Optional[float] = None
    expiration_date: date
    rank: Optional[int] = None
    analyzed_at: datetime = Field(default_factory=utcnow)

    @classmethod
    def from_scored(
        cls,
        scored: ScoredCandidate,
        *,
        rank: Optional[int] = None,
        analyzed_at: Optional[datetime] = None,
    ) -> "CreditSpreadRecord":
        spread = scored.candidate
        if not isinstance(spread, SpreadCandidate):
            raise TypeError("CreditSpreadRecord requires a spread candidate")
        return cls(
            symbol=spread.symbol,
            spread_type=spread.side,
            short_strike=spread.short_strike,
            long_strike=spread.long_strike,
            short_option_symbol=spread.short_leg.option_symbol,
            long_option_symbol=spread.long_leg.option_symbol,
            credit_received=spread.credit,
            max_profit=spread.max_profit,
            max_loss=spread.max_loss,
            break_even=spread.break_even,
            risk_reward_ratio=spread.risk_reward,
            probability_of_profit=spread.probability_of_profit,
            delta_spread=spread.delta_spread,
            ai_score=scored.score,
            ai_confidence=scored.confidence,
            ai_reasoning=scored.rationale,
            ai_model_used=scored.model,
            scoring_failed=scored.failed,
            underlying_price=spread.underlying_price,
            expiration_date=spread.short_leg.expiration,
            rank=rank,
            analyzed_at=analyzed_at or utcnow(),
        )


class TradeSignal(BaseModel):
    """Actionable at-the-money signal with its later execution outcome."""

    id: Optional[int] = None
    symbol: str
    option_type: OptionSide
    signal_type: SignalType
    option_symbol: str
    strike_price: float
    is_atm: bool = True
    current_price: Optional[float] = None
    underlying_price: Optional[float] = None
    flow_signal: FlowSignal = "NEUTRAL"
    ai_score: float = 0.0
    ai_confidence: float = 0.0
    ai_reasoning: str = ""
    ai_model_used: str = "unknown"
    predicted_direction: Optional[PredictedDirection] = None
    predicted_move_percent: Optional[float] = None
    generated_at: datetime = Field(default_factory=utcnow)
    expires_at: Optional[datetime] = None
    executed: bool = False
    actual_outcome: Optional[TradeOutcome] = None
    profit_loss: Optional[float] = None

    def is_active(self, now: datetime) -> bool:
        return self.expires_at is None or self.expires_at > now


class DailyPnL(BaseModel):
    """Per-day, per-symbol, per-strategy aggregate."""

    trading_date: date
    symbol: str
    strategy: Strategy
    total_signals: int = 0
    executed_trades: int = 0
    winning_trades: int = 0
    losing_trades: int = 0
    win_rate: float = 0.0
    gross_profit: float = 0.0
    gross_loss: float = 0.0
    net_pnl: float = 0.0
    best_trade_pnl: float = 0.0
    worst_trade_pnl: float = 0.0
    avg_trade_pnl: float = 0.0
    calculated_at: datetime = Field(default_factory=utcnow)


__all__ = [
    "ChainSummary",
    "CreditSpreadRecord",
    "DailyPnL",
    "PredictedDirection",
    "STRATEGIES",
    "SignalType",
    "Strategy",
    "TradeOutcome",
    "TradeSignal",
]
