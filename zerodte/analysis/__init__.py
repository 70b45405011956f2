"""Chain analytics: anomaly detection, max pain, spreads, ATM selection and P&L."""

from .anomaly import AnomalyDetector
from .atm import ATMSelector, analyze_order_flow
from .max_pain import MaxPainCalculator
from .metrics import summarize_chain
from .pnl import PnLCalculator
from .spreads import SpreadEnumerator

__all__ = [
    "ATMSelector",
    "AnomalyDetector",
    "MaxPainCalculator",
    "PnLCalculator",
    "SpreadEnumerator",
    "analyze_order_flow",
    "summarize_chain",
]
