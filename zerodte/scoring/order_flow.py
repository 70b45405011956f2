from __future__ import annotations

from typing import List, Tuple

from zerodte.analysis.atm import analyze_order_flow
from zerodte.models.candidates import ATMCandidate

from .base import ScoreContext


class OrderFlowScorer:
    key = "order_flow"
    default_weight = 1.2
    applies_to = ("atm",)

    def score(self, context: ScoreContext) -> Tuple[float, List[str], List[str]]:
        candidate = context.candidate
        assert isinstance(candidate, ATMCandidate)
        reasons: List[str] = []
        tags: List[str] = ["order-flow"]
        flow = candidate.order_flow or analyze_order_flow(candidate.contract)
        score = 0.0

        if flow.has_unusual_volume and flow.signal != "NEUTRAL":
            score += 30
            reasons.append(f"{flow.signal.title()} flow on unusual volume ({flow.volume_oi_ratio:.2f}x OI)")
            tags.append(flow.signal.lower())
        elif flow.has_unusual_volume:
            score += 18
            reasons.append(f"Unusual volume ({flow.volume_oi_ratio:.2f}x OI) without a clear direction")
        else:
            score += 8

        if candidate.distance_pct < 0.0025:
            score += 15
            reasons.append("Strike essentially at the money")
            tags.append("at-the-money")
        elif candidate.distance_pct < 0.01:
            score += 10
        else:
            score += 5

        return score, reasons, tags


__all__ = ["OrderFlowScorer"]
