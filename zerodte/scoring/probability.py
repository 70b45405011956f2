from __future__ import annotations

from typing import List, Tuple

from zerodte.models.candidates import SpreadCandidate

from .base import ScoreContext


class ProbabilityScorer:
    key = "probability"
    default_weight = 1.0
    applies_to = ("spread",)

    def score(self, context: ScoreContext) -> Tuple[float, List[str], List[str]]:
        spread = context.candidate
        assert isinstance(spread, SpreadCandidate)
        reasons: List[str] = []
        tags: List[str] = ["probability"]

        pop = spread.probability_of_profit
        if pop is None:
            reasons.append("Probability of profit unavailable")
            tags.append("no-greeks")
            return 10.0, reasons, tags

        if pop >= 80:
            score = 30.0
            reasons.append(f"High probability of profit ({pop:.0f}%)")
            tags.append("high-probability")
        elif pop >= 70:
            score = 24.0
            reasons.append(f"Favourable probability of profit ({pop:.0f}%)")
        elif pop >= 60:
            score = 16.0
        else:
            score = 6.0
            reasons.append(f"Low probability of profit ({pop:.0f}%)")
            tags.append("coin-flip")

        return score, reasons, tags


__all__ = ["ProbabilityScorer"]
