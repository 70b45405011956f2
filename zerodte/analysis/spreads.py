"""Vertical credit spread enumeration for a single side of a chain."""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from zerodte.math.probability import spread_probability_of_profit
from zerodte.models.candidates import SpreadCandidate
from zerodte.models.option import OptionContract, OptionSide

logger = logging.getLogger(__name__)

MIN_CREDIT = 0.50
MIN_WIDTH = 5.0
MAX_WIDTH = 50.0
CONTRACT_MULTIPLIER = 100


class SpreadEnumerator:
    """Pair every two strikes on one side and keep the spreads worth selling.

    CALL spreads sell the lower strike and buy the higher one; PUT spreads sell
    the higher strike and buy the lower one. Pairs outside the width bounds or
    collecting less than ``min_credit`` are dropped. Output is ordered by
    risk/reward, best first.
    """

    def __init__(
        self,
        min_credit: float = MIN_CREDIT,
        min_width: float = MIN_WIDTH,
        max_width: float = MAX_WIDTH,
    ) -> None:
        if min_width > max_width:
            raise ValueError("min_width must not exceed max_width")
        self.min_credit = min_credit
        self.min_width = min_width
        self.max_width = max_width

    def enumerate(
        self,
        options: Iterable[OptionContract],
        side: OptionSide,
        spot: Optional[float] = None,
    ) -> List[SpreadCandidate]:
        legs = sorted((option for option in options if option.side == side), key=lambda option: option.strike)
        candidates: List[SpreadCandidate] = []

        for i in range(len(legs)):
            for j in range(i + 1, len(legs)):
                lower, higher = legs[i], legs[j]
                if lower.strike == higher.strike:
                    continue
                if side == "CALL":
                    short_leg, long_leg = lower, higher
                else:
                    short_leg, long_leg = higher, lower
                candidate = self.build(short_leg, long_leg, spot)
                if candidate is not None:
                    candidates.append(candidate)

        # sorted() is stable, so equal ratios keep enumeration order.
        candidates = sorted(candidates, key=lambda candidate: candidate.risk_reward, reverse=True)
        logger.debug("Enumerated %d %s spreads for %d strikes", len(candidates), side, len(legs))
        return candidates

    def build(
        self,
        short_leg: OptionContract,
        long_leg: OptionContract,
        spot: Optional[float] = None,
    ) -> Optional[SpreadCandidate]:
        """Economics for one pair, or ``None`` when it fails a filter."""

        width = abs(short_leg.strike - long_leg.strike)
        if width < self.min_width or width > self.max_width:
            return None
        if short_leg.bid is None or long_leg.ask is None:
            return None

        credit = round(short_leg.bid - long_leg.ask, 4)
        if credit < self.min_credit:
            return None

        max_profit = round(credit * CONTRACT_MULTIPLIER, 2)
        max_loss = round((width - credit) * CONTRACT_MULTIPLIER, 2)
        risk_reward = max_profit / max_loss if max_loss > 0 else 0.0
        if short_leg.side == "CALL":
            break_even = short_leg.strike + credit
        else:
            break_even = short_leg.strike - credit
        break_even = round(break_even, 4)

        delta_spread = None
        if short_leg.greeks.delta is not None and long_leg.greeks.delta is not None:
            delta_spread = round(short_leg.greeks.delta - long_leg.greeks.delta, 4)

        return SpreadCandidate(
            symbol=short_leg.symbol,
            side=short_leg.side,
            short_leg=short_leg,
            long_leg=long_leg,
            width=width,
            credit=credit,
            max_profit=max_profit,
            max_loss=max_loss,
            break_even=break_even,
            risk_reward=risk_reward,
            probability_of_profit=spread_probability_of_profit(short_leg, break_even, spot),
            delta_spread=delta_spread,
            underlying_price=spot,
        )


__all__ = ["MAX_WIDTH", "MIN_CREDIT", "MIN_WIDTH", "SpreadEnumerator"]
