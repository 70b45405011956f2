"""Collection loop and on-demand opportunity scanning."""

from .collector import Collector, CollectorState, CollectorStatus, CycleReport, SymbolReport
from .service import OpportunityScanner

__all__ = [
    "Collector",
    "CollectorState",
    "CollectorStatus",
    "CycleReport",
    "OpportunityScanner",
    "SymbolReport",
]
