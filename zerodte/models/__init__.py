from .candidates import (
    ATMCandidate,
    ATMSelection,
    Candidate,
    NakedPositionEvent,
    OrderFlow,
    ScoredCandidate,
    ScoreResult,
    SpreadCandidate,
)
from .option import Chain, OptionContract, OptionGreeks, OptionSide
from .records import (
    STRATEGIES,
    ChainSummary,
    CreditSpreadRecord,
    DailyPnL,
    TradeSignal,
)
from .serialization import serialize_chain, serialize_model, serialize_models

__all__ = [
    "ATMCandidate",
    "ATMSelection",
    "Candidate",
    "Chain",
    "ChainSummary",
    "CreditSpreadRecord",
    "DailyPnL",
    "NakedPositionEvent",
    "OptionContract",
    "OptionGreeks",
    "OptionSide",
    "OrderFlow",
    "STRATEGIES",
    "ScoreResult",
    "ScoredCandidate",
    "SpreadCandidate",
    "TradeSignal",
    "serialize_chain",
    "serialize_model",
    "serialize_models",
]
