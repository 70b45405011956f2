from __future__ import annotations

from typing import List, Tuple

from zerodte.models.candidates import SpreadCandidate

from .base import ScoreContext


class RiskRewardScorer:
    key = "risk_reward"
    default_weight = 1.0
    applies_to = ("spread",)

    def score(self, context: ScoreContext) -> Tuple[float, List[str], List[str]]:
        spread = context.candidate
        assert isinstance(spread, SpreadCandidate)
        reasons: List[str] = []
        tags: List[str] = ["risk-reward"]

        ratio = spread.risk_reward
        if ratio >= 0.33:
            score = 30.0
            reasons.append(f"Strong credit for the width ({ratio:.2f}:1)")
            tags.append("rich-premium")
        elif ratio >= 0.2:
            score = 22.0
            reasons.append(f"Good risk/reward ({ratio:.2f}:1)")
        elif ratio >= 0.1:
            score = 14.0
        else:
            score = 6.0
            reasons.append(f"Thin credit relative to max loss ({ratio:.2f}:1)")
            tags.append("thin-credit")

        return score, reasons, tags


__all__ = ["RiskRewardScorer"]
