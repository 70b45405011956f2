"""SQLite-backed storage implementation."""

from __future__ import annotations

import json
import sqlite3
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from zerodte.models.candidates import NakedPositionEvent
from zerodte.models.option import Chain, OptionContract
from zerodte.models.records import ChainSummary, CreditSpreadRecord, DailyPnL, TradeOutcome, TradeSignal

from .base import (
    DEFAULT_PNL_RETENTION_DAYS,
    DEFAULT_RETENTION_DAYS,
    Storage,
    StorageError,
    to_utc,
)


def _default_json_serializer(obj: Any) -> Any:
    """Best-effort conversion for non-native JSON objects."""

    if isinstance(obj, pd.Timestamp):
        return obj.to_pydatetime().isoformat()
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, np.generic):
        return obj.item()
    if hasattr(obj, "tolist"):
        return obj.tolist()
    return str(obj)


def _json_dumps(payload: Mapping[str, Any]) -> str:
    return json.dumps(dict(payload), default=_default_json_serializer)


def _json_loads(payload: str) -> Dict[str, Any]:
    return json.loads(payload) if payload else {}


def _iso(value: datetime) -> str:
    # Fixed-width UTC timestamps so string comparison orders correctly.
    return to_utc(value).isoformat(timespec="microseconds")


def _ensure_parent_exists(path: Path) -> None:
    if path.name == ":memory:":
        return
    if not path.parent.exists():
        path.parent.mkdir(parents=True, exist_ok=True)


def _window(column: str, since: Optional[datetime], until: Optional[datetime]) -> Tuple[List[str], List[Any]]:
    clauses: List[str] = []
    params: List[Any] = []
    if since is not None:
        clauses.append(f"{column} >= ?")
        params.append(_iso(since))
    if until is not None:
        clauses.append(f"{column} <= ?")
        params.append(_iso(until))
    return clauses, params


def _where(clauses: Sequence[str]) -> str:
    return f" WHERE {' AND '.join(clauses)}" if clauses else ""


class SQLiteStorage(Storage):
    """Persist pipeline output in a lightweight SQLite database.

    Each table keeps a handful of indexed columns for filtering plus the full
    record as JSON in ``data``.
    """

    def __init__(
        self,
        database: str | Path,
        pragmas: Optional[Mapping[str, Any]] = None,
        *,
        uri: bool = False,
    ) -> None:
        self._database = str(database)
        self._uri = uri
        self._pragmas = dict(pragmas or {})
        if not uri and self._database != ":memory:":
            _ensure_parent_exists(Path(self._database))
        self._ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._database, uri=self._uri)
        conn.row_factory = sqlite3.Row
        for key, value in self._pragmas.items():
            conn.execute(f"PRAGMA {key}={value};")
        return conn

    def _ensure_schema(self) -> None:
        schema = """
        CREATE TABLE IF NOT EXISTS options_quotes (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            symbol TEXT NOT NULL,
            option_symbol TEXT,
            option_type TEXT,
            strike REAL,
            expiration TEXT,
            underlying_price REAL,
            recorded_at TEXT NOT NULL,
            data TEXT NOT NULL
        );
        CREATE INDEX IF NOT EXISTS idx_quotes_symbol_time ON options_quotes(symbol, recorded_at);

        CREATE TABLE IF NOT EXISTS naked_positions (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            symbol TEXT NOT NULL,
            option_symbol TEXT,
            option_type TEXT,
            volume_oi_ratio REAL,
            detected_at TEXT NOT NULL,
            data TEXT NOT NULL
        );
        CREATE INDEX IF NOT EXISTS idx_naked_symbol_time ON naked_positions(symbol, detected_at);

        CREATE TABLE IF NOT EXISTS chain_summaries (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            symbol TEXT NOT NULL,
            max_pain REAL,
            recorded_at TEXT NOT NULL,
            data TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS credit_spreads (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            symbol TEXT NOT NULL,
            spread_type TEXT,
            ai_score REAL,
            rank INTEGER,
            analyzed_at TEXT NOT NULL,
            data TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS trade_signals (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            symbol TEXT NOT NULL,
            option_type TEXT,
            generated_at TEXT NOT NULL,
            expires_at TEXT,
            executed INTEGER NOT NULL DEFAULT 0,
            data TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS daily_pnl (
            trading_date TEXT NOT NULL,
            symbol TEXT NOT NULL,
            strategy TEXT NOT NULL,
            calculated_at TEXT NOT NULL,
            data TEXT NOT NULL,
            PRIMARY KEY (trading_date, symbol, strategy)
        );
        """
        with self._connect() as conn:
            conn.executescript(schema)

    def _insert(self, description: str, query: str, params: Sequence[Any]) -> int:
        try:
            with self._connect() as conn:
                cursor = conn.execute(query, params)
                return int(cursor.lastrowid or 0)
        except sqlite3.DatabaseError as exc:
            raise StorageError(f"Failed to persist {description}: {exc}") from exc

    def _select(self, query: str, params: Sequence[Any] = ()) -> List[sqlite3.Row]:
        try:
            with self._connect() as conn:
                return conn.execute(query, params).fetchall()
        except sqlite3.DatabaseError as exc:
            raise StorageError(f"Query failed: {exc}") from exc

    # ------------------------------------------------------------------ writes

    def store_quote(self, contract: OptionContract, underlying_price: Optional[float], recorded_at: datetime) -> None:
        self._insert(
            f"quote {contract.option_symbol}",
            """
            INSERT INTO options_quotes(symbol, option_symbol, option_type, strike, expiration, underlying_price, recorded_at, data)
            VALUES(?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                contract.symbol,
                contract.option_symbol,
                contract.side,
                float(contract.strike),
                contract.expiration.isoformat(),
                underlying_price,
                _iso(recorded_at),
                _json_dumps(contract.model_dump(mode="json")),
            ),
        )

    def store_naked_position(self, event: NakedPositionEvent) -> None:
        self._insert(
            f"naked position {event.option_symbol}",
            """
            INSERT INTO naked_positions(symbol, option_symbol, option_type, volume_oi_ratio, detected_at, data)
            VALUES(?, ?, ?, ?, ?, ?)
            """,
            (
                event.symbol,
                event.option_symbol,
                event.side,
                event.volume_oi_ratio,
                _iso(event.detected_at),
                _json_dumps(event.model_dump(mode="json")),
            ),
        )

    def store_chain_summary(self, summary: ChainSummary) -> None:
        self._insert(
            f"chain summary for {summary.symbol}",
            "INSERT INTO chain_summaries(symbol, max_pain, recorded_at, data) VALUES(?, ?, ?, ?)",
            (
                summary.symbol,
                summary.max_pain,
                _iso(summary.recorded_at),
                _json_dumps(summary.model_dump(mode="json")),
            ),
        )

    def store_credit_spread(self, record: CreditSpreadRecord) -> CreditSpreadRecord:
        row_id = self._insert(
            f"credit spread {record.symbol} {record.short_strike:g}/{record.long_strike:g}",
            """
            INSERT INTO credit_spreads(symbol, spread_type, ai_score, rank, analyzed_at, data)
            VALUES(?, ?, ?, ?, ?, ?)
            """,
            (
                record.symbol,
                record.spread_type,
                record.ai_score,
                record.rank,
                _iso(record.analyzed_at),
                _json_dumps(record.model_dump(mode="json", exclude={"id"})),
            ),
        )
        return record.model_copy(update={"id": row_id})

    def store_trade_signal(self, signal: TradeSignal) -> TradeSignal:
        row_id = self._insert(
            f"trade signal {signal.option_symbol}",
            """
            INSERT INTO trade_signals(symbol, option_type, generated_at, expires_at, executed, data)
            VALUES(?, ?, ?, ?, ?, ?)
            """,
            (
                signal.symbol,
                signal.option_type,
                _iso(signal.generated_at),
                _iso(signal.expires_at) if signal.expires_at else None,
                int(signal.executed),
                _json_dumps(signal.model_dump(mode="json", exclude={"id"})),
            ),
        )
        return signal.model_copy(update={"id": row_id})

    def upsert_daily_pnl(self, pnl: DailyPnL) -> None:
        self._insert(
            f"daily P&L {pnl.trading_date} {pnl.symbol} {pnl.strategy}",
            """
            INSERT INTO daily_pnl(trading_date, symbol, strategy, calculated_at, data)
            VALUES(?, ?, ?, ?, ?)
            ON CONFLICT(trading_date, symbol, strategy) DO UPDATE SET
                calculated_at=excluded.calculated_at,
                data=excluded.data
            """,
            (
                pnl.trading_date.isoformat(),
                pnl.symbol,
                pnl.strategy,
                _iso(pnl.calculated_at),
                _json_dumps(pnl.model_dump(mode="json")),
            ),
        )

    def update_trade_outcome(
        self,
        signal_id: int,
        outcome: TradeOutcome,
        profit_loss: float,
    ) -> Optional[TradeSignal]:
        rows = self._select("SELECT id, data FROM trade_signals WHERE id = ?", (signal_id,))
        if not rows:
            return None
        signal = self._row_to_signal(rows[0])
        updated = signal.model_copy(update={"executed": True, "actual_outcome": outcome, "profit_loss": profit_loss})
        try:
            with self._connect() as conn:
                conn.execute(
                    "UPDATE trade_signals SET executed = 1, data = ? WHERE id = ?",
                    (_json_dumps(updated.model_dump(mode="json", exclude={"id"})), signal_id),
                )
        except sqlite3.DatabaseError as exc:
            raise StorageError(f"Failed to update trade signal {signal_id}: {exc}") from exc
        return updated

    def cleanup(
        self,
        retention_days: int = DEFAULT_RETENTION_DAYS,
        now: Optional[datetime] = None,
        pnl_retention_days: int = DEFAULT_PNL_RETENTION_DAYS,
    ) -> int:
        now = to_utc(now or datetime.now(timezone.utc))
        cutoff = _iso(now - timedelta(days=retention_days))
        pnl_cutoff = (now - timedelta(days=pnl_retention_days)).date().isoformat()
        statements = (
            ("DELETE FROM options_quotes WHERE recorded_at < ?", cutoff),
            ("DELETE FROM naked_positions WHERE detected_at < ?", cutoff),
            ("DELETE FROM chain_summaries WHERE recorded_at < ?", cutoff),
            ("DELETE FROM credit_spreads WHERE analyzed_at < ?", cutoff),
            ("DELETE FROM trade_signals WHERE generated_at < ?", cutoff),
            ("DELETE FROM daily_pnl WHERE trading_date < ?", pnl_cutoff),
        )
        deleted = 0
        try:
            with self._connect() as conn:
                for query, bound in statements:
                    deleted += conn.execute(query, (bound,)).rowcount
        except sqlite3.DatabaseError as exc:
            raise StorageError(f"Cleanup failed: {exc}") from exc
        return deleted

    # ------------------------------------------------------------------- reads

    def get_latest_chain(self, symbol: str) -> Optional[Chain]:
        latest = self._select(
            "SELECT MAX(recorded_at) AS recorded_at FROM options_quotes WHERE symbol = ?",
            (symbol,),
        )
        recorded_at = latest[0]["recorded_at"] if latest else None
        if recorded_at is None:
            return None

        rows = self._select(
            """
            SELECT underlying_price, data FROM options_quotes
            WHERE symbol = ? AND recorded_at = ?
            ORDER BY id ASC
            """,
            (symbol, recorded_at),
        )
        contracts = tuple(OptionContract.model_validate(_json_loads(row["data"])) for row in rows)
        underlying = next((row["underlying_price"] for row in rows if row["underlying_price"] is not None), None)
        return Chain(
            symbol=symbol,
            underlying_price=underlying,
            contracts=contracts,
            fetched_at=datetime.fromisoformat(recorded_at),
        )

    def get_naked_positions(
        self,
        symbol: Optional[str] = None,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
    ) -> List[NakedPositionEvent]:
        clauses, params = _window("detected_at", since, until)
        if symbol:
            clauses.append("symbol = ?")
            params.append(symbol)
        rows = self._select(
            f"SELECT data FROM naked_positions{_where(clauses)} ORDER BY detected_at DESC, id DESC",
            params,
        )
        return [NakedPositionEvent.model_validate(_json_loads(row["data"])) for row in rows]

    def get_chain_summaries(
        self,
        symbol: Optional[str] = None,
        since: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[ChainSummary]:
        clauses, params = _window("recorded_at", since, None)
        if symbol:
            clauses.append("symbol = ?")
            params.append(symbol)
        query = f"SELECT data FROM chain_summaries{_where(clauses)} ORDER BY recorded_at DESC, id DESC"
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)
        return [ChainSummary.model_validate(_json_loads(row["data"])) for row in self._select(query, params)]

    def get_credit_spreads(
        self,
        symbol: Optional[str] = None,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[CreditSpreadRecord]:
        clauses, params = _window("analyzed_at", since, until)
        if symbol:
            clauses.append("symbol = ?")
            params.append(symbol)
        query = f"SELECT id, data FROM credit_spreads{_where(clauses)} ORDER BY ai_score DESC, rank ASC, id ASC"
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)
        return [
            CreditSpreadRecord.model_validate({**_json_loads(row["data"]), "id": row["id"]})
            for row in self._select(query, params)
        ]

    def get_trade_signals(
        self,
        symbol: Optional[str] = None,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
        active_only: bool = False,
        now: Optional[datetime] = None,
    ) -> List[TradeSignal]:
        clauses, params = _window("generated_at", since, until)
        if symbol:
            clauses.append("symbol = ?")
            params.append(symbol)
        if active_only:
            clauses.append("(expires_at IS NULL OR expires_at > ?)")
            params.append(_iso(now or datetime.now(timezone.utc)))
        rows = self._select(
            f"SELECT id, data FROM trade_signals{_where(clauses)} ORDER BY generated_at DESC, id DESC",
            params,
        )
        return [self._row_to_signal(row) for row in rows]

    def get_daily_pnl(self, trading_date: Optional[date] = None, symbol: Optional[str] = None) -> List[DailyPnL]:
        clauses: List[str] = []
        params: List[Any] = []
        if trading_date is not None:
            clauses.append("trading_date = ?")
            params.append(trading_date.isoformat())
        if symbol:
            clauses.append("symbol = ?")
            params.append(symbol)
        rows = self._select(
            f"SELECT data FROM daily_pnl{_where(clauses)} ORDER BY trading_date DESC, symbol ASC, strategy ASC",
            params,
        )
        return [DailyPnL.model_validate(_json_loads(row["data"])) for row in rows]

    def _row_to_signal(self, row: sqlite3.Row) -> TradeSignal:
        return TradeSignal.model_validate({**_json_loads(row["data"]), "id": row["id"]})


__all__ = ["SQLiteStorage"]
