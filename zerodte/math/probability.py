"""Probability of profit estimates for short option spreads.

The primary estimate uses the short leg's delta as a stand-in for the chance
the option finishes in the money. When the brokerage omits delta, a log-normal
model of the underlying over the remaining session is used instead.
"""

from __future__ import annotations

import math
from typing import Optional

from scipy.stats import norm

from zerodte.models.option import OptionContract, OptionSide

# A 0DTE contract has at most one trading session left.
TRADING_DAYS_PER_YEAR = 252
ONE_SESSION_YEARS = 1.0 / TRADING_DAYS_PER_YEAR


def pop_from_delta(delta: float) -> float:
    """Probability (percent) that a short option expires worthless."""

    return round((1.0 - min(abs(delta), 1.0)) * 100.0, 2)


def lognormal_probability_below(
    spot: float,
    level: float,
    implied_vol: float,
    years: float = ONE_SESSION_YEARS,
    risk_free_rate: float = 0.0,
) -> float:
    """P(S_T < level) under geometric Brownian motion."""

    if spot <= 0 or level <= 0:
        raise ValueError("spot and level must be positive")
    if implied_vol <= 0 or years <= 0:
        return 1.0 if spot < level else 0.0

    sigma_sqrt_t = implied_vol * math.sqrt(years)
    d2 = (math.log(spot / level) + (risk_free_rate - 0.5 * implied_vol**2) * years) / sigma_sqrt_t
    return float(norm.cdf(-d2))


def pop_from_lognormal(
    side: OptionSide,
    spot: float,
    break_even: float,
    implied_vol: float,
    years: float = ONE_SESSION_YEARS,
) -> float:
    """Probability (percent) that a credit spread settles on the profitable side of break-even."""

    below = lognormal_probability_below(spot, break_even, implied_vol, years)
    probability = below if side == "CALL" else 1.0 - below
    return round(probability * 100.0, 2)


def spread_probability_of_profit(
    short_leg: OptionContract,
    break_even: float,
    spot: Optional[float],
) -> Optional[float]:
    """Delta-based POP, falling back to the log-normal estimate, else ``None``."""

    delta = short_leg.greeks.delta
    if delta is not None:
        return pop_from_delta(delta)

    implied_vol = short_leg.implied_volatility
    if implied_vol is None or not spot or spot <= 0 or break_even <= 0:
        return None
    return pop_from_lognormal(short_leg.side, spot, break_even, implied_vol)


__all__ = [
    "ONE_SESSION_YEARS",
    "TRADING_DAYS_PER_YEAR",
    "lognormal_probability_below",
    "pop_from_delta",
    "pop_from_lognormal",
    "spread_probability_of_profit",
]
