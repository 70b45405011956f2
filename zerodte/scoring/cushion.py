from __future__ import annotations

from typing import List, Tuple

from zerodte.models.candidates import SpreadCandidate

from .base import ScoreContext


class CushionScorer:
    """Reward short strikes that sit out of the money relative to spot."""

    key = "cushion"
    default_weight = 0.8
    applies_to = ("spread",)

    def score(self, context: ScoreContext) -> Tuple[float, List[str], List[str]]:
        spread = context.candidate
        assert isinstance(spread, SpreadCandidate)
        reasons: List[str] = []
        tags: List[str] = ["cushion"]

        spot = context.underlying_price or spread.underlying_price
        if not spot:
            return 0.0, reasons, tags

        if spread.side == "CALL":
            cushion = (spread.short_strike - spot) / spot
        else:
            cushion = (spot - spread.short_strike) / spot

        if cushion <= 0:
            reasons.append("Short strike already in the money")
            tags.append("in-the-money")
            return -10.0, reasons, tags
        if cushion >= 0.01:
            reasons.append(f"Short strike {cushion:.2%} out of the money")
            return 20.0, reasons, tags
        if cushion >= 0.005:
            return 14.0, reasons, tags
        reasons.append("Short strike hugging spot")
        return 8.0, reasons, tags


__all__ = ["CushionScorer"]
