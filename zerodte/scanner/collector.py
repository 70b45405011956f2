"""Periodic 0DTE chain collection.

One asyncio task per running collector drives cycles: the first fires
immediately, the next ones after the polling interval. Symbols are processed
one after another so the rate-limited upstream API never sees a burst.
Blocking fetch and persistence work runs in a worker thread.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from zerodte.adapters.base import ChainFetcher, FetchFailure
from zerodte.analysis.anomaly import DEFAULT_NAKED_THRESHOLD, AnomalyDetector
from zerodte.analysis.max_pain import MaxPainCalculator
from zerodte.analysis.metrics import summarize_chain
from zerodte.storage.base import Storage, StorageError

logger = logging.getLogger(__name__)

DEFAULT_SYMBOLS: Tuple[str, ...] = ("SPY", "QQQ", "SPX")
DEFAULT_INTERVAL_MS = 60_000


class CollectorState(str, Enum):
    STOPPED = "stopped"
    RUNNING = "running"


@dataclass(frozen=True)
class CollectorStatus:
    running: bool
    symbols: Tuple[str, ...]
    polling_interval_ms: int
    naked_threshold: float
    cycles_completed: int = 0
    last_cycle_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["symbols"] = list(self.symbols)
        payload["last_cycle_at"] = self.last_cycle_at.isoformat() if self.last_cycle_at else None
        return payload


@dataclass
class SymbolReport:
    symbol: str
    ok: bool
    contracts: int = 0
    naked_positions: int = 0
    persist_failures: int = 0
    max_pain: Optional[float] = None
    error: Optional[str] = None


@dataclass
class CycleReport:
    """What one collection cycle did, symbol by symbol."""

    started_at: datetime
    finished_at: Optional[datetime] = None
    symbols: List[SymbolReport] = field(default_factory=list)

    @property
    def fetch_failures(self) -> int:
        return sum(1 for report in self.symbols if not report.ok)

    @property
    def persist_failures(self) -> int:
        return sum(report.persist_failures for report in self.symbols)

    @property
    def naked_positions(self) -> int:
        return sum(report.naked_positions for report in self.symbols)

    @property
    def contracts(self) -> int:
        return sum(report.contracts for report in self.symbols)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "contracts": self.contracts,
            "naked_positions": self.naked_positions,
            "fetch_failures": self.fetch_failures,
            "persist_failures": self.persist_failures,
            "symbols": [asdict(report) for report in self.symbols],
        }


def _normalize_symbols(symbols: Iterable[str]) -> Tuple[str, ...]:
    cleaned = tuple(dict.fromkeys(symbol.strip().upper() for symbol in symbols if symbol and symbol.strip()))
    if not cleaned:
        raise ValueError("At least one symbol is required")
    return cleaned


class Collector:
    """STOPPED/RUNNING state machine around the collection loop.

    ``start`` and ``stop`` must be called from code running inside the event
    loop. Stopping only prevents future cycles; a cycle already in flight runs
    to completion and can be awaited with :meth:`join`.
    """

    def __init__(
        self,
        fetcher: ChainFetcher,
        storage: Storage,
        *,
        detector: Optional[AnomalyDetector] = None,
        max_pain: Optional[MaxPainCalculator] = None,
        symbols: Sequence[str] = DEFAULT_SYMBOLS,
        interval_ms: int = DEFAULT_INTERVAL_MS,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self._fetcher = fetcher
        self._storage = storage
        self._detector = detector or AnomalyDetector(DEFAULT_NAKED_THRESHOLD)
        self._max_pain = max_pain or MaxPainCalculator()
        self._symbols = _normalize_symbols(symbols)
        self._interval_ms = self._validate_interval(interval_ms)
        self._clock = clock
        self._state = CollectorState.STOPPED
        self._task: Optional[asyncio.Task[None]] = None
        self._stop_event: Optional[asyncio.Event] = None
        self._cycles_completed = 0
        self._last_cycle_at: Optional[datetime] = None
        self.last_report: Optional[CycleReport] = None

    @staticmethod
    def _validate_interval(interval_ms: int) -> int:
        if interval_ms <= 0:
            raise ValueError("Polling interval must be positive")
        return int(interval_ms)

    @property
    def state(self) -> CollectorState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is CollectorState.RUNNING

    def status(self) -> CollectorStatus:
        return CollectorStatus(
            running=self.is_running,
            symbols=self._symbols,
            polling_interval_ms=self._interval_ms,
            naked_threshold=self._detector.threshold,
            cycles_completed=self._cycles_completed,
            last_cycle_at=self._last_cycle_at,
        )

    def start(self, symbols: Optional[Sequence[str]] = None, interval_ms: Optional[int] = None) -> bool:
        """Begin polling. Returns ``False`` when already running."""

        if self.is_running:
            logger.info("Collector already running; ignoring start")
            return False

        loop = asyncio.get_running_loop()
        if symbols is not None:
            self._symbols = _normalize_symbols(symbols)
        if interval_ms is not None:
            self._interval_ms = self._validate_interval(interval_ms)

        stop_event = asyncio.Event()
        self._stop_event = stop_event
        self._state = CollectorState.RUNNING
        self._task = loop.create_task(self._run(stop_event, self._interval_ms), name="zerodte-collector")
        logger.info(
            "Collector started for %s every %d ms (naked threshold %.2f)",
            ", ".join(self._symbols),
            self._interval_ms,
            self._detector.threshold,
        )
        return True

    def stop(self) -> bool:
        """Stop scheduling cycles. Returns ``False`` when already stopped."""

        if not self.is_running:
            return False
        self._state = CollectorState.STOPPED
        if self._stop_event is not None:
            self._stop_event.set()
        logger.info("Collector stopped")
        return True

    async def join(self) -> None:
        """Wait for the loop task (including any in-flight cycle) to finish."""

        if self._task is not None:
            await self._task

    async def _run(self, stop_event: asyncio.Event, interval_ms: int) -> None:
        while not stop_event.is_set():
            try:
                await self.run_cycle()
            except Exception:
                logger.exception("Collection cycle failed unexpectedly")
            if stop_event.is_set():
                break
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=interval_ms / 1000)
            except asyncio.TimeoutError:
                continue

    async def run_cycle(self) -> CycleReport:
        """Fetch, detect and persist every tracked symbol once."""

        report = CycleReport(started_at=self._clock())
        logger.info("Collection cycle started for %d symbols", len(self._symbols))
        for symbol in self._symbols:
            report.symbols.append(await asyncio.to_thread(self.collect_symbol, symbol))
        report.finished_at = self._clock()

        self._cycles_completed += 1
        self._last_cycle_at = report.finished_at
        self.last_report = report
        logger.info(
            "Collection cycle finished: %d contracts, %d naked positions, %d fetch failures, %d persist failures",
            report.contracts,
            report.naked_positions,
            report.fetch_failures,
            report.persist_failures,
        )
        return report

    def _persist(self, description: str, writer: Callable[..., Any], *args: Any) -> int:
        try:
            writer(*args)
        except StorageError as exc:
            logger.warning("Failed to persist %s: %s", description, exc)
            return 1
        return 0

    def collect_symbol(self, symbol: str) -> SymbolReport:
        try:
            result = self._fetcher.fetch(symbol)
        except Exception as exc:
            logger.exception("Fetcher raised for %s", symbol)
            return SymbolReport(symbol=symbol, ok=False, error=str(exc))
        if isinstance(result, FetchFailure):
            return SymbolReport(symbol=symbol, ok=False, error=result.reason)

        chain = result
        report = SymbolReport(symbol=symbol, ok=True, contracts=chain.contract_count)
        for contract in chain.contracts:
            report.persist_failures += self._persist(
                f"quote {contract.option_symbol}",
                self._storage.store_quote,
                contract,
                chain.underlying_price,
                chain.fetched_at,
            )
            event = self._detector.check(contract, underlying_price=chain.underlying_price, detected_at=chain.fetched_at)
            if event is not None:
                report.naked_positions += 1
                logger.info(
                    "Naked position %s: volume %d vs OI %d (%.2fx)",
                    event.option_symbol,
                    event.volume,
                    event.open_interest,
                    event.volume_oi_ratio,
                )
                report.persist_failures += self._persist(
                    f"naked position {event.option_symbol}",
                    self._storage.store_naked_position,
                    event,
                )

        summary = summarize_chain(chain, self._max_pain, recorded_at=chain.fetched_at)
        report.max_pain = summary.max_pain
        report.persist_failures += self._persist(
            f"chain summary for {symbol}",
            self._storage.store_chain_summary,
            summary,
        )
        logger.info("Processed %d %s contracts (max pain %s)", chain.contract_count, symbol, summary.max_pain)
        return report


__all__ = [
    "Collector",
    "CollectorState",
    "CollectorStatus",
    "CycleReport",
    "DEFAULT_INTERVAL_MS",
    "DEFAULT_SYMBOLS",
    "SymbolReport",
]
