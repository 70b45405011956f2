"""Supabase (PostgREST) storage backend.

The tables it writes are defined in ``supabase_schema.sql`` next to this module
(exposed as :data:`SCHEMA_PATH`); apply that file to the project before use.
"""

from __future__ import annotations

import logging
import os
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from supabase import Client, create_client

from zerodte.models.candidates import NakedPositionEvent
from zerodte.models.option import Chain, OptionContract, OptionGreeks
from zerodte.models.records import ChainSummary, CreditSpreadRecord, DailyPnL, TradeOutcome, TradeSignal

from .base import (
    DEFAULT_PNL_RETENTION_DAYS,
    DEFAULT_RETENTION_DAYS,
    Storage,
    StorageError,
    to_utc,
)

logger = logging.getLogger(__name__)

SCHEMA_PATH = Path(__file__).with_name("supabase_schema.sql")

QUOTES_TABLE = "options_quotes"
NAKED_TABLE = "naked_positions"
SUMMARY_TABLE = "chain_summaries"
SPREADS_TABLE = "credit_spreads"
SIGNALS_TABLE = "trade_signals"
PNL_TABLE = "daily_pnl"


def _iso(value: datetime) -> str:
    return to_utc(value).isoformat()


def _quote_row(contract: OptionContract, underlying_price: Optional[float], recorded_at: datetime) -> Dict[str, Any]:
    return {
        "symbol": contract.symbol,
        "option_symbol": contract.option_symbol,
        "strike_price": contract.strike,
        "expiration_date": contract.expiration.isoformat(),
        "option_type": contract.side,
        "bid": contract.bid,
        "ask": contract.ask,
        "last": contract.last,
        "mark": contract.mark,
        "volume": contract.volume,
        "open_interest": contract.open_interest,
        "delta": contract.greeks.delta,
        "gamma": contract.greeks.gamma,
        "theta": contract.greeks.theta,
        "vega": contract.greeks.vega,
        "implied_volatility": contract.implied_volatility,
        "underlying_price": underlying_price,
        "days_to_expiration": contract.days_to_expiration,
        "in_the_money": contract.in_the_money,
        "timestamp": _iso(recorded_at),
    }


def _contract_from_row(row: Dict[str, Any]) -> OptionContract:
    return OptionContract(
        symbol=row["symbol"],
        option_symbol=row.get("option_symbol") or "",
        side=row["option_type"],
        strike=row["strike_price"],
        expiration=row["expiration_date"],
        bid=row.get("bid"),
        ask=row.get("ask"),
        last=row.get("last"),
        mark=row.get("mark"),
        volume=row.get("volume"),
        open_interest=row.get("open_interest"),
        greeks=OptionGreeks(
            delta=row.get("delta"),
            gamma=row.get("gamma"),
            theta=row.get("theta"),
            vega=row.get("vega"),
        ),
        implied_volatility=row.get("implied_volatility"),
        days_to_expiration=row.get("days_to_expiration") or 0,
        in_the_money=bool(row.get("in_the_money")),
    )


def _naked_row(event: NakedPositionEvent) -> Dict[str, Any]:
    return {
        "symbol": event.symbol,
        "option_symbol": event.option_symbol,
        "strike_price": event.strike,
        "option_type": event.side,
        "expiration_date": event.expiration.isoformat(),
        "volume": event.volume,
        "open_interest": event.open_interest,
        "volume_oi_ratio": event.volume_oi_ratio,
        "threshold_multiplier": event.threshold,
        "bid": event.bid,
        "ask": event.ask,
        "mark": event.mark,
        "underlying_price": event.underlying_price,
        "detected_at": _iso(event.detected_at),
    }


def _naked_from_row(row: Dict[str, Any]) -> NakedPositionEvent:
    return NakedPositionEvent(
        symbol=row["symbol"],
        option_symbol=row.get("option_symbol") or "",
        side=row["option_type"],
        strike=row["strike_price"],
        expiration=row.get("expiration_date") or str(row["detected_at"])[:10],
        volume=row["volume"],
        open_interest=row["open_interest"],
        volume_oi_ratio=row["volume_oi_ratio"],
        threshold=row["threshold_multiplier"],
        bid=row.get("bid"),
        ask=row.get("ask"),
        mark=row.get("mark"),
        underlying_price=row.get("underlying_price"),
        detected_at=row["detected_at"],
    )


class SupabaseStorage(Storage):
    """Persist to Supabase tables through an injected client.

    Any exception raised by the client is re-raised as :class:`StorageError`.
    """

    def __init__(self, client: Client) -> None:
        self._client = client

    @classmethod
    def from_env(cls) -> "SupabaseStorage":
        url = os.environ.get("SUPABASE_URL")
        key = os.environ.get("SUPABASE_SERVICE_KEY")
        if not url or not key:
            raise ValueError(
                "Missing Supabase credentials. Set SUPABASE_URL and SUPABASE_SERVICE_KEY environment variables."
            )
        return cls(create_client(url, key))

    def _execute(self, description: str, query: Any) -> List[Dict[str, Any]]:
        try:
            response = query.execute()
        except Exception as exc:
            raise StorageError(f"Supabase {description} failed: {exc}") from exc
        return list(response.data or [])

    def _select(self, table: str) -> Any:
        return self._client.table(table).select("*")

    # ------------------------------------------------------------------ writes

    def store_quote(self, contract: OptionContract, underlying_price: Optional[float], recorded_at: datetime) -> None:
        self._execute(
            f"insert into {QUOTES_TABLE}",
            self._client.table(QUOTES_TABLE).insert(_quote_row(contract, underlying_price, recorded_at)),
        )

    def store_naked_position(self, event: NakedPositionEvent) -> None:
        self._execute(f"insert into {NAKED_TABLE}", self._client.table(NAKED_TABLE).insert(_naked_row(event)))

    def store_chain_summary(self, summary: ChainSummary) -> None:
        self._execute(
            f"insert into {SUMMARY_TABLE}",
            self._client.table(SUMMARY_TABLE).insert(summary.model_dump(mode="json")),
        )

    def store_credit_spread(self, record: CreditSpreadRecord) -> CreditSpreadRecord:
        rows = self._execute(
            f"insert into {SPREADS_TABLE}",
            self._client.table(SPREADS_TABLE).insert(record.model_dump(mode="json", exclude={"id"})),
        )
        return record.model_copy(update={"id": rows[0].get("id")}) if rows else record

    def store_trade_signal(self, signal: TradeSignal) -> TradeSignal:
        rows = self._execute(
            f"insert into {SIGNALS_TABLE}",
            self._client.table(SIGNALS_TABLE).insert(signal.model_dump(mode="json", exclude={"id"})),
        )
        return signal.model_copy(update={"id": rows[0].get("id")}) if rows else signal

    def upsert_daily_pnl(self, pnl: DailyPnL) -> None:
        self._execute(
            f"upsert into {PNL_TABLE}",
            self._client.table(PNL_TABLE).upsert(
                pnl.model_dump(mode="json"),
                on_conflict="trading_date,symbol,strategy",
            ),
        )

    def update_trade_outcome(
        self,
        signal_id: int,
        outcome: TradeOutcome,
        profit_loss: float,
    ) -> Optional[TradeSignal]:
        rows = self._execute(
            f"update {SIGNALS_TABLE}",
            self._client.table(SIGNALS_TABLE)
            .update({"executed": True, "actual_outcome": outcome, "profit_loss": profit_loss})
            .eq("id", signal_id),
        )
        return TradeSignal.model_validate(rows[0]) if rows else None

    def cleanup(
        self,
        retention_days: int = DEFAULT_RETENTION_DAYS,
        now: Optional[datetime] = None,
        pnl_retention_days: int = DEFAULT_PNL_RETENTION_DAYS,
    ) -> int:
        now = to_utc(now or datetime.now(timezone.utc))
        cutoff = _iso(now - timedelta(days=retention_days))
        pnl_cutoff = (now - timedelta(days=pnl_retention_days)).date().isoformat()
        targets = (
            (QUOTES_TABLE, "timestamp", cutoff),
            (NAKED_TABLE, "detected_at", cutoff),
            (SUMMARY_TABLE, "recorded_at", cutoff),
            (SPREADS_TABLE, "analyzed_at", cutoff),
            (SIGNALS_TABLE, "generated_at", cutoff),
            (PNL_TABLE, "trading_date", pnl_cutoff),
        )
        deleted = 0
        for table, column, bound in targets:
            rows = self._execute(f"cleanup of {table}", self._client.table(table).delete().lt(column, bound))
            deleted += len(rows)
        logger.info("Retention cleanup removed %d rows", deleted)
        return deleted

    # ------------------------------------------------------------------- reads

    def get_latest_chain(self, symbol: str) -> Optional[Chain]:
        latest = self._execute(
            f"select from {QUOTES_TABLE}",
            self._client.table(QUOTES_TABLE)
            .select("timestamp")
            .eq("symbol", symbol)
            .order("timestamp", desc=True)
            .limit(1),
        )
        if not latest:
            return None
        timestamp = latest[0]["timestamp"]
        rows = self._execute(
            f"select from {QUOTES_TABLE}",
            self._select(QUOTES_TABLE).eq("symbol", symbol).eq("timestamp", timestamp),
        )
        underlying = next((row["underlying_price"] for row in rows if row.get("underlying_price") is not None), None)
        return Chain(
            symbol=symbol,
            underlying_price=underlying,
            contracts=tuple(_contract_from_row(row) for row in rows),
            fetched_at=datetime.fromisoformat(str(timestamp)),
        )

    def get_naked_positions(
        self,
        symbol: Optional[str] = None,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
    ) -> List[NakedPositionEvent]:
        query = self._select(NAKED_TABLE)
        if symbol:
            query = query.eq("symbol", symbol)
        if since is not None:
            query = query.gte("detected_at", _iso(since))
        if until is not None:
            query = query.lte("detected_at", _iso(until))
        rows = self._execute(f"select from {NAKED_TABLE}", query.order("detected_at", desc=True))
        return [_naked_from_row(row) for row in rows]

    def get_chain_summaries(
        self,
        symbol: Optional[str] = None,
        since: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[ChainSummary]:
        query = self._select(SUMMARY_TABLE)
        if symbol:
            query = query.eq("symbol", symbol)
        if since is not None:
            query = query.gte("recorded_at", _iso(since))
        query = query.order("recorded_at", desc=True)
        if limit is not None:
            query = query.limit(limit)
        return [ChainSummary.model_validate(row) for row in self._execute(f"select from {SUMMARY_TABLE}", query)]

    def get_credit_spreads(
        self,
        symbol: Optional[str] = None,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[CreditSpreadRecord]:
        query = self._select(SPREADS_TABLE)
        if symbol:
            query = query.eq("symbol", symbol)
        if since is not None:
            query = query.gte("analyzed_at", _iso(since))
        if until is not None:
            query = query.lte("analyzed_at", _iso(until))
        query = query.order("ai_score", desc=True).order("rank")
        if limit is not None:
            query = query.limit(limit)
        return [CreditSpreadRecord.model_validate(row) for row in self._execute(f"select from {SPREADS_TABLE}", query)]

    def get_trade_signals(
        self,
        symbol: Optional[str] = None,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
        active_only: bool = False,
        now: Optional[datetime] = None,
    ) -> List[TradeSignal]:
        query = self._select(SIGNALS_TABLE)
        if symbol:
            query = query.eq("symbol", symbol)
        if since is not None:
            query = query.gte("generated_at", _iso(since))
        if until is not None:
            query = query.lte("generated_at", _iso(until))
        if active_only:
            moment = _iso(now or datetime.now(timezone.utc))
            query = query.or_(f"expires_at.is.null,expires_at.gt.{moment}")
        rows = self._execute(f"select from {SIGNALS_TABLE}", query.order("generated_at", desc=True))
        return [TradeSignal.model_validate(row) for row in rows]

    def get_daily_pnl(self, trading_date: Optional[date] = None, symbol: Optional[str] = None) -> List[DailyPnL]:
        query = self._select(PNL_TABLE)
        if trading_date is not None:
            query = query.eq("trading_date", trading_date.isoformat())
        if symbol:
            query = query.eq("symbol", symbol)
        rows = self._execute(f"select from {PNL_TABLE}", query.order("trading_date", desc=True))
        return [DailyPnL.model_validate(row) for row in rows]


__all__ = ["SCHEMA_PATH", "SupabaseStorage"]
