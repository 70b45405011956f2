from __future__ import annotations

from typing import List, Tuple

from zerodte.models.candidates import ATMCandidate, SpreadCandidate
from zerodte.models.option import OptionContract

from .base import ScoreContext


def _quote_width_pct(contract: OptionContract) -> float:
    mid = contract.mid_price
    if contract.bid is None or contract.ask is None or not mid:
        return 1.0
    return max(0.0, contract.ask - contract.bid) / mid


class LiquidityScorer:
    key = "liquidity"
    default_weight = 0.6
    applies_to = ("spread", "atm")

    def score(self, context: ScoreContext) -> Tuple[float, List[str], List[str]]:
        candidate = context.candidate
        legs: List[OptionContract]
        if isinstance(candidate, SpreadCandidate):
            legs = [candidate.short_leg, candidate.long_leg]
        elif isinstance(candidate, ATMCandidate):
            legs = [candidate.contract]
        else:
            legs = []

        reasons: List[str] = []
        tags: List[str] = ["liquidity"]
        if not legs:
            return 0.0, reasons, tags

        spread_pct = max(_quote_width_pct(leg) for leg in legs)
        open_interest = min(leg.open_interest for leg in legs)
        score = 0.0

        if spread_pct < 0.05 and open_interest > 1000:
            score += 15
            reasons.append("Tight quotes with deep open interest")
            tags.append("institutional-interest")
        elif spread_pct < 0.1:
            score += 10
        else:
            score += 3
            reasons.append("Wide quotes may impact execution")
            tags.append("liquidity-warning")

        if open_interest > 5000:
            score += 10
            reasons.append(f"Very high open interest ({open_interest})")
        elif open_interest < 100:
            score -= 5
            reasons.append("Low open interest - harder fills")
            tags.append("thin-market")

        return score, reasons, tags


__all__ = ["LiquidityScorer"]
