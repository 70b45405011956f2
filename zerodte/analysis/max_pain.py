"""Max pain: the settlement strike that minimizes option writers' payout."""

from __future__ import annotations

from typing import Dict, Iterable, Optional, Tuple

import numpy as np

from zerodte.models.option import OptionContract

CONTRACT_MULTIPLIER = 100


def _open_interest_by_strike(contracts: Iterable[OptionContract]) -> Dict[float, int]:
    totals: Dict[float, int] = {}
    for contract in contracts:
        totals[contract.strike] = totals.get(contract.strike, 0) + contract.open_interest
    return totals


class MaxPainCalculator:
    """Compute the payout curve over every strike present in either side."""

    def __init__(self, multiplier: int = CONTRACT_MULTIPLIER) -> None:
        self.multiplier = multiplier

    def _curve(
        self,
        calls: Iterable[OptionContract],
        puts: Iterable[OptionContract],
    ) -> Tuple[np.ndarray, np.ndarray]:
        call_oi = _open_interest_by_strike(calls)
        put_oi = _open_interest_by_strike(puts)
        strikes = np.array(sorted(set(call_oi) | set(put_oi)), dtype=float)
        if strikes.size == 0:
            return strikes, np.array([], dtype=float)

        call_weights = np.array([call_oi.get(strike, 0) for strike in strikes], dtype=float)
        put_weights = np.array([put_oi.get(strike, 0) for strike in strikes], dtype=float)

        # Rows are settlement prices S, columns are contract strikes K.
        diff = strikes[:, None] - strikes[None, :]
        call_payout = np.clip(diff, 0.0, None) @ call_weights
        put_payout = np.clip(-diff, 0.0, None) @ put_weights
        return strikes, (call_payout + put_payout) * self.multiplier

    def pain_by_strike(
        self,
        calls: Iterable[OptionContract],
        puts: Iterable[OptionContract],
    ) -> Dict[float, float]:
        strikes, pain = self._curve(calls, puts)
        return {float(strike): float(value) for strike, value in zip(strikes, pain)}

    def compute(
        self,
        calls: Iterable[OptionContract],
        puts: Iterable[OptionContract],
    ) -> Optional[float]:
        """Return the max pain strike, or ``None`` for an empty chain.

        Ties resolve to the lowest strike.
        """

        strikes, pain = self._curve(calls, puts)
        if strikes.size == 0:
            return None
        return float(strikes[int(np.argmin(pain))])


__all__ = ["CONTRACT_MULTIPLIER", "MaxPainCalculator"]
