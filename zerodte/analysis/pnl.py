"""Daily per-symbol, per-strategy aggregates."""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Callable, Iterable, List, Optional, Sequence

import pandas as pd

from zerodte.models.records import STRATEGIES, DailyPnL, TradeSignal
from zerodte.storage.base import Storage, StorageError, day_bounds

logger = logging.getLogger(__name__)

OUTCOMES = ("WIN", "LOSS", "BREAK_EVEN")


def _trade_statistics(trades: Sequence[TradeSignal]) -> dict:
    empty = {
        "executed_trades": 0,
        "winning_trades": 0,
        "losing_trades": 0,
        "win_rate": 0.0,
        "gross_profit": 0.0,
        "gross_loss": 0.0,
        "net_pnl": 0.0,
        "best_trade_pnl": 0.0,
        "worst_trade_pnl": 0.0,
        "avg_trade_pnl": 0.0,
    }
    if not trades:
        return empty

    frame = pd.DataFrame(
        [{"executed": trade.executed, "profit_loss": trade.profit_loss} for trade in trades]
    )
    executed = frame[frame["executed"] | frame["profit_loss"].notna()]
    if executed.empty:
        return empty

    pnl = executed["profit_loss"].fillna(0.0).astype(float)
    winners = pnl[pnl > 0]
    losers = pnl[pnl < 0]
    realized = pnl[pnl != 0]
    gross_profit = float(winners.sum())
    gross_loss = abs(float(losers.sum()))

    return {
        "executed_trades": int(len(executed)),
        "winning_trades": int(len(winners)),
        "losing_trades": int(len(losers)),
        "win_rate": round(len(winners) / len(executed) * 100, 2),
        "gross_profit": round(gross_profit, 2),
        "gross_loss": round(gross_loss, 2),
        "net_pnl": round(gross_profit - gross_loss, 2),
        "best_trade_pnl": round(float(realized.max()), 2) if not realized.empty else 0.0,
        "worst_trade_pnl": round(float(realized.min()), 2) if not realized.empty else 0.0,
        "avg_trade_pnl": round(float(realized.mean()), 2) if not realized.empty else 0.0,
    }


class PnLCalculator:
    """Build and upsert :class:`DailyPnL` rows from what the store holds for a day.

    Signal counts come from each strategy's records. Only ATM trade signals
    carry execution outcomes, so trade statistics for the other strategies
    stay at zero until outcomes are tracked for them.
    """

    def __init__(
        self,
        storage: Storage,
        symbols: Iterable[str] = ("SPY", "QQQ", "SPX"),
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self._storage = storage
        self._symbols = [symbol.upper() for symbol in symbols]
        self._clock = clock

    def calculate(
        self,
        trading_date: Optional[date] = None,
        symbols: Optional[Iterable[str]] = None,
    ) -> List[DailyPnL]:
        trading_date = trading_date or self._clock().date()
        start, end = day_bounds(trading_date)
        results: List[DailyPnL] = []

        for symbol in [s.upper() for s in symbols] if symbols else self._symbols:
            try:
                counts = {
                    "naked_positions": len(self._storage.get_naked_positions(symbol, since=start, until=end)),
                    "credit_spreads": len(self._storage.get_credit_spreads(symbol, since=start, until=end)),
                }
                signals = self._storage.get_trade_signals(symbol, since=start, until=end)
            except StorageError as exc:
                logger.warning("Skipping P&L for %s on %s: %s", symbol, trading_date, exc)
                continue
            counts["atm_trades"] = len(signals)

            for strategy in STRATEGIES:
                trades = signals if strategy == "atm_trades" else []
                pnl = DailyPnL(
                    trading_date=trading_date,
                    symbol=symbol,
                    strategy=strategy,
                    total_signals=counts[strategy],
                    calculated_at=self._clock(),
                    **_trade_statistics(trades),
                )
                try:
                    self._storage.upsert_daily_pnl(pnl)
                except StorageError as exc:
                    logger.warning("Failed to store P&L for %s %s: %s", symbol, strategy, exc)
                results.append(pnl)
                logger.info("%s %s %s: net %.2f", trading_date, symbol, strategy, pnl.net_pnl)

        return results

    def record_outcome(self, signal_id: int, outcome: str, profit_loss: float) -> Optional[TradeSignal]:
        """Mark a signal executed with its realized result."""

        normalized = outcome.strip().upper()
        if normalized not in OUTCOMES:
            raise ValueError(f"Unknown trade outcome: {outcome}")
        return self._storage.update_trade_outcome(signal_id, normalized, float(profit_loss))


__all__ = ["OUTCOMES", "PnLCalculator"]
