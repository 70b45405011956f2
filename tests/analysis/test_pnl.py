from datetime import date, datetime, timezone

import pytest

from zerodte.analysis.pnl import PnLCalculator
from zerodte.models.candidates import NakedPositionEvent
from zerodte.models.records import TradeSignal
from zerodte.storage.sqlite import SQLiteStorage

TRADING_DATE = date(2024, 6, 21)
MIDDAY = datetime(2024, 6, 21, 16, 0, tzinfo=timezone.utc)


def make_signal(option_symbol: str, symbol: str = "SPY") -> TradeSignal:
    return TradeSignal(
        symbol=symbol,
        option_type="CALL",
        signal_type="BUY",
        option_symbol=option_symbol,
        strike_price=545.0,
        ai_score=72.0,
        ai_confidence=68.0,
        generated_at=MIDDAY,
    )


def make_naked(symbol: str = "SPY") -> NakedPositionEvent:
    return NakedPositionEvent(
        symbol=symbol,
        option_symbol=f"{symbol} C545",
        side="CALL",
        strike=545.0,
        expiration=TRADING_DATE,
        volume=300,
        open_interest=100,
        volume_oi_ratio=3.0,
        threshold=1.5,
        detected_at=MIDDAY,
    )


@pytest.fixture()
def storage(tmp_path):
    return SQLiteStorage(tmp_path / "pnl.db")


def test_calculate_aggregates_atm_outcomes(storage):
    winner = storage.store_trade_signal(make_signal("SPY C545"))
    loser = storage.store_trade_signal(make_signal("SPY P540"))
    storage.store_trade_signal(make_signal("SPY C546"))
    storage.store_naked_position(make_naked())
    storage.store_naked_position(make_naked())

    calculator = PnLCalculator(storage, symbols=["SPY"])
    calculator.record_outcome(winner.id, "win", 120.0)
    calculator.record_outcome(loser.id, "LOSS", -50.0)

    rows = {row.strategy: row for row in calculator.calculate(TRADING_DATE)}

    atm = rows["atm_trades"]
    assert atm.total_signals == 3
    assert atm.executed_trades == 2
    assert atm.winning_trades == 1
    assert atm.losing_trades == 1
    assert atm.win_rate == 50.0
    assert atm.gross_profit == 120.0
    assert atm.gross_loss == 50.0
    assert atm.net_pnl == 70.0
    assert atm.best_trade_pnl == 120.0
    assert atm.worst_trade_pnl == -50.0
    assert atm.avg_trade_pnl == 35.0

    assert rows["naked_positions"].total_signals == 2
    assert rows["naked_positions"].executed_trades == 0
    assert rows["credit_spreads"].total_signals == 0


def test_calculate_upserts_rows(storage):
    calculator = PnLCalculator(storage, symbols=["SPY", "QQQ"])

    calculator.calculate(TRADING_DATE)
    calculator.calculate(TRADING_DATE)

    stored = storage.get_daily_pnl(TRADING_DATE)
    assert len(stored) == 6
    assert {row.symbol for row in stored} == {"SPY", "QQQ"}


def test_other_days_are_not_counted(storage):
    storage.store_naked_position(make_naked())

    rows = PnLCalculator(storage, symbols=["SPY"]).calculate(date(2024, 6, 20))

    assert all(row.total_signals == 0 for row in rows)


def test_unknown_outcome_rejected(storage):
    with pytest.raises(ValueError):
        PnLCalculator(storage).record_outcome(1, "maybe", 10.0)


def test_outcome_for_missing_signal_returns_none(storage):
    assert PnLCalculator(storage).record_outcome(999, "WIN", 10.0) is None
