"""Whole-chain metrics recorded once per symbol per collection cycle."""

from __future__ import annotations

from datetime import datetime
from typing import Dict, Optional

import pandas as pd

from zerodte.models.option import Chain
from zerodte.models.records import ChainSummary

from .max_pain import MaxPainCalculator


def _strike_key(strike: float) -> str:
    return f"{strike:g}"


def _by_strike(frame: pd.DataFrame, column: str) -> Dict[str, int]:
    totals = frame.groupby("strike")[column].sum().sort_index()
    return {_strike_key(float(strike)): int(value) for strike, value in totals.items()}


def summarize_chain(
    chain: Chain,
    calculator: Optional[MaxPainCalculator] = None,
    recorded_at: Optional[datetime] = None,
) -> ChainSummary:
    """Volume, open interest, put/call ratio and max pain for ``chain``."""

    calculator = calculator or MaxPainCalculator()
    kwargs = {"recorded_at": recorded_at} if recorded_at is not None else {}
    if chain.is_empty:
        return ChainSummary(symbol=chain.symbol, underlying_price=chain.underlying_price, **kwargs)

    frame = chain.to_dataframe()
    side_volume = frame.groupby("side")["volume"].sum()
    call_volume = int(side_volume.get("CALL", 0))
    put_volume = int(side_volume.get("PUT", 0))

    return ChainSummary(
        symbol=chain.symbol,
        underlying_price=chain.underlying_price,
        contract_count=chain.contract_count,
        total_call_volume=call_volume,
        total_put_volume=put_volume,
        put_call_ratio=round(put_volume / call_volume, 4) if call_volume > 0 else 0.0,
        max_pain=calculator.compute(chain.calls, chain.puts),
        volume_by_strike=_by_strike(frame, "volume"),
        open_interest_by_strike=_by_strike(frame, "open_interest"),
        **kwargs,
    )


__all__ = ["summarize_chain"]
