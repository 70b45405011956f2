from __future__ import annotations

import asyncio
from datetime import date, datetime, timezone
from typing import Dict, List

import pytest

from zerodte.adapters.base import ChainFetcher, FetchFailure, FetchResult
from zerodte.analysis.anomaly import AnomalyDetector
from zerodte.models.option import Chain, OptionContract
from zerodte.scanner.collector import Collector, CollectorState
from zerodte.storage import StorageError
from zerodte.storage.sqlite import SQLiteStorage

FETCHED_AT = datetime(2024, 6, 21, 15, 0, tzinfo=timezone.utc)


def make_contract(symbol: str, side: str, strike: float, volume: int, open_interest: int) -> OptionContract:
    return OptionContract(
        symbol=symbol,
        option_symbol=f"{symbol} {side[0]}{strike:g}",
        side=side,
        strike=strike,
        expiration=date(2024, 6, 21),
        bid=1.0,
        ask=1.1,
        volume=volume,
        open_interest=open_interest,
    )


def make_chain(symbol: str) -> Chain:
    return Chain(
        symbol=symbol,
        underlying_price=645.0,
        contracts=(
            make_contract(symbol, "CALL", 640, 300, 100),
            make_contract(symbol, "CALL", 645, 20, 50),
            make_contract(symbol, "PUT", 645, 10, 60),
        ),
        fetched_at=FETCHED_AT,
    )


class StubFetcher(ChainFetcher):
    def __init__(self, failing: tuple = ()):
        self.failing = set(failing)
        self.calls: List[str] = []

    @property
    def name(self) -> str:
        return "stub"

    def fetch(self, symbol: str) -> FetchResult:
        self.calls.append(symbol)
        if symbol in self.failing:
            return FetchFailure(symbol=symbol, reason="HTTP 500")
        return make_chain(symbol)


class FlakyStorage(SQLiteStorage):
    """Rejects naked-position writes."""

    def store_naked_position(self, event):
        raise StorageError("disk full")


@pytest.fixture()
def storage(tmp_path):
    return SQLiteStorage(tmp_path / "collector.db")


def test_run_cycle_persists_everything(storage):
    fetcher = StubFetcher()
    collector = Collector(fetcher, storage, symbols=["spy", "QQQ"])

    report = asyncio.run(collector.run_cycle())

    assert fetcher.calls == ["SPY", "QQQ"]
    assert report.contracts == 6
    assert report.naked_positions == 2
    assert report.fetch_failures == 0
    assert report.persist_failures == 0
    assert storage.get_latest_chain("SPY").contract_count == 3
    assert len(storage.get_naked_positions()) == 2
    summary = storage.get_chain_summaries("QQQ")[0]
    assert summary.max_pain == 640.0
    assert collector.status().cycles_completed == 1


def test_failed_symbol_does_not_block_others(storage):
    collector = Collector(StubFetcher(failing=("QQQ",)), storage, symbols=["SPY", "QQQ", "SPX"])

    report = asyncio.run(collector.run_cycle())

    assert report.fetch_failures == 1
    assert [item.symbol for item in report.symbols if item.ok] == ["SPY", "SPX"]
    assert storage.get_latest_chain("QQQ") is None
    assert storage.get_latest_chain("SPX") is not None


def test_persist_failures_are_counted_not_raised(tmp_path):
    storage = FlakyStorage(tmp_path / "flaky.db")
    collector = Collector(StubFetcher(), storage, symbols=["SPY"])

    report = asyncio.run(collector.run_cycle())

    assert report.naked_positions == 1
    assert report.persist_failures == 1
    assert storage.get_latest_chain("SPY") is not None


def test_naked_events_repeat_every_cycle(storage):
    collector = Collector(StubFetcher(), storage, symbols=["SPY"])

    asyncio.run(collector.run_cycle())
    asyncio.run(collector.run_cycle())

    assert len(storage.get_naked_positions("SPY")) == 2


def test_threshold_comes_from_detector(storage):
    collector = Collector(StubFetcher(), storage, detector=AnomalyDetector(5.0), symbols=["SPY"])

    report = asyncio.run(collector.run_cycle())

    assert report.naked_positions == 0
    assert collector.status().naked_threshold == 5.0


def test_start_is_idempotent_and_stop_is_noop_when_stopped(storage):
    fetcher = StubFetcher()
    collector = Collector(fetcher, storage, symbols=["SPY"], interval_ms=60_000)

    async def scenario() -> Dict[str, object]:
        first = collector.start()
        task = collector._task
        second = collector.start()
        same_task = collector._task is task
        await asyncio.sleep(0.05)
        stopped = collector.stop()
        stopped_again = collector.stop()
        await asyncio.wait_for(collector.join(), timeout=1)
        return {
            "first": first,
            "second": second,
            "same_task": same_task,
            "stopped": stopped,
            "stopped_again": stopped_again,
        }

    outcome = asyncio.run(scenario())

    assert outcome == {
        "first": True,
        "second": False,
        "same_task": True,
        "stopped": True,
        "stopped_again": False,
    }
    assert fetcher.calls == ["SPY"]
    assert collector.state is CollectorState.STOPPED


def test_loop_runs_repeated_cycles(storage):
    fetcher = StubFetcher()
    collector = Collector(fetcher, storage, symbols=["SPY"])

    async def scenario() -> None:
        collector.start(interval_ms=10)
        await asyncio.sleep(0.5)
        collector.stop()
        await asyncio.wait_for(collector.join(), timeout=1)

    asyncio.run(scenario())

    assert len(fetcher.calls) >= 2
    assert collector.last_report is not None


def test_start_updates_symbols_and_interval(storage):
    collector = Collector(StubFetcher(), storage)

    async def scenario() -> None:
        collector.start(symbols=["iwm"], interval_ms=5_000)
        collector.stop()
        await collector.join()

    asyncio.run(scenario())

    status = collector.status()
    assert status.symbols == ("IWM",)
    assert status.polling_interval_ms == 5_000
    assert status.running is False


def test_invalid_configuration_rejected(storage):
    with pytest.raises(ValueError):
        Collector(StubFetcher(), storage, interval_ms=0)
    with pytest.raises(ValueError):
        Collector(StubFetcher(), storage, symbols=[" "])
