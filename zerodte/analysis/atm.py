"""At-the-money contract selection and the order-flow heuristic."""

from __future__ import annotations

from typing import Iterable, List

from zerodte.models.candidates import ATMCandidate, ATMSelection, OrderFlow
from zerodte.models.option import OptionContract

ATM_THRESHOLD = 0.02
TOP_PER_SIDE = 3
UNUSUAL_VOLUME_RATIO = 0.5
TIGHT_QUOTE_RATIO = 0.9


def analyze_order_flow(contract: OptionContract) -> OrderFlow:
    """Coarse directional read of one contract's trading.

    Volume above half the open interest counts as unusual. A direction is only
    assigned when the quote is also tight (bid above 90% of ask): calls read as
    bullish and puts as bearish.
    """

    ratio = contract.volume_oi_ratio or 0.0
    unusual = ratio > UNUSUAL_VOLUME_RATIO
    signal = "NEUTRAL"
    if unusual and contract.bid is not None and contract.ask is not None:
        if contract.bid > contract.ask * TIGHT_QUOTE_RATIO:
            signal = "BULLISH" if contract.is_call else "BEARISH"
    return OrderFlow(has_unusual_volume=unusual, volume_oi_ratio=ratio, signal=signal)


class ATMSelector:
    def __init__(self, threshold: float = ATM_THRESHOLD, top_n: int = TOP_PER_SIDE) -> None:
        self.threshold = threshold
        self.top_n = top_n

    def _near(self, contracts: Iterable[OptionContract], spot: float) -> List[ATMCandidate]:
        ranked = []
        for contract in contracts:
            distance = abs(contract.strike - spot)
            distance_pct = distance / spot
            if distance_pct <= self.threshold:
                ranked.append(
                    ATMCandidate(
                        symbol=contract.symbol,
                        contract=contract,
                        distance=distance,
                        distance_pct=distance_pct,
                        order_flow=analyze_order_flow(contract),
                    )
                )
        ranked.sort(key=lambda candidate: candidate.distance)
        return ranked[: self.top_n]

    def select(
        self,
        calls: Iterable[OptionContract],
        puts: Iterable[OptionContract],
        spot: float,
    ) -> ATMSelection:
        if not spot or spot <= 0:
            return ATMSelection()
        return ATMSelection(calls=self._near(calls, spot), puts=self._near(puts, spot))


__all__ = [
    "ATMSelector",
    "ATM_THRESHOLD",
    "TIGHT_QUOTE_RATIO",
    "TOP_PER_SIDE",
    "UNUSUAL_VOLUME_RATIO",
    "analyze_order_flow",
]
