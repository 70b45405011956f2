"""Base definitions for storage backends."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date, datetime, timezone
from typing import List, Optional

from zerodte.models.candidates import NakedPositionEvent
from zerodte.models.option import Chain, OptionContract
from zerodte.models.records import ChainSummary, CreditSpreadRecord, DailyPnL, TradeOutcome, TradeSignal

DEFAULT_RETENTION_DAYS = 30
DEFAULT_PNL_RETENTION_DAYS = 90


class StorageError(RuntimeError):
    """Raised when a storage backend encounters an unrecoverable error."""


def to_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def day_bounds(trading_date: date) -> tuple[datetime, datetime]:
    """Inclusive UTC bounds covering one calendar day."""

    start = datetime(trading_date.year, trading_date.month, trading_date.day, tzinfo=timezone.utc)
    end = start.replace(hour=23, minute=59, second=59, microsecond=999999)
    return start, end


class Storage(ABC):
    """Append-only store for quotes, detections, scored candidates and aggregates.

    Writes raise :class:`StorageError`; the pipeline logs and moves on. Reads
    are time-windowed with inclusive ``since``/``until`` bounds.
    """

    @abstractmethod
    def store_quote(self, contract: OptionContract, underlying_price: Optional[float], recorded_at: datetime) -> None:
        """Append one contract snapshot."""

    @abstractmethod
    def store_naked_position(self, event: NakedPositionEvent) -> None:
        """Append one naked-position detection."""

    @abstractmethod
    def store_chain_summary(self, summary: ChainSummary) -> None:
        """Append whole-chain metrics for one cycle."""

    @abstractmethod
    def store_credit_spread(self, record: CreditSpreadRecord) -> CreditSpreadRecord:
        """Append a scored spread and return it with its assigned id."""

    @abstractmethod
    def store_trade_signal(self, signal: TradeSignal) -> TradeSignal:
        """Append a trade signal and return it with its assigned id."""

    @abstractmethod
    def upsert_daily_pnl(self, pnl: DailyPnL) -> None:
        """Insert or replace the aggregate keyed by (date, symbol, strategy)."""

    @abstractmethod
    def get_latest_chain(self, symbol: str) -> Optional[Chain]:
        """Rebuild the most recently recorded chain snapshot for ``symbol``."""

    @abstractmethod
    def get_naked_positions(
        self,
        symbol: Optional[str] = None,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
    ) -> List[NakedPositionEvent]:
        """Detections ordered newest first."""

    @abstractmethod
    def get_chain_summaries(
        self,
        symbol: Optional[str] = None,
        since: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[ChainSummary]:
        """Chain summaries ordered newest first."""

    @abstractmethod
    def get_credit_spreads(
        self,
        symbol: Optional[str] = None,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[CreditSpreadRecord]:
        """Scored spreads ordered by score, best first."""

    @abstractmethod
    def get_trade_signals(
        self,
        symbol: Optional[str] = None,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
        active_only: bool = False,
        now: Optional[datetime] = None,
    ) -> List[TradeSignal]:
        """Signals ordered newest first; ``active_only`` drops expired ones."""

    @abstractmethod
    def get_daily_pnl(self, trading_date: Optional[date] = None, symbol: Optional[str] = None) -> List[DailyPnL]:
        """Stored aggregates, optionally filtered."""

    @abstractmethod
    def update_trade_outcome(
        self,
        signal_id: int,
        outcome: TradeOutcome,
        profit_loss: float,
    ) -> Optional[TradeSignal]:
        """Mark a signal executed with its result; ``None`` when the id is unknown."""

    @abstractmethod
    def cleanup(
        self,
        retention_days: int = DEFAULT_RETENTION_DAYS,
        now: Optional[datetime] = None,
        pnl_retention_days: int = DEFAULT_PNL_RETENTION_DAYS,
    ) -> int:
        """Delete records older than the retention windows, returning the row count.

        Daily aggregates are kept for ``pnl_retention_days``; everything else
        for ``retention_days``.
        """

    def close(self) -> None:
        """Release backend resources."""


__all__ = [
    "DEFAULT_PNL_RETENTION_DAYS",
    "DEFAULT_RETENTION_DAYS",
    "Storage",
    "StorageError",
    "day_bounds",
    "to_utc",
]
