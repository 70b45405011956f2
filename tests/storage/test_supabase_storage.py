from __future__ import annotations

import re
from datetime import date, datetime, timezone
from types import SimpleNamespace
from typing import Any, Dict, List, Optional

import pytest

from zerodte.models.candidates import NakedPositionEvent
from zerodte.models.option import OptionContract
from zerodte.models.records import ChainSummary, CreditSpreadRecord, DailyPnL, TradeSignal
from zerodte.storage import StorageError
from zerodte.storage.supabase import SCHEMA_PATH, SupabaseStorage

NOW = datetime(2024, 6, 21, 15, 0, tzinfo=timezone.utc)


class FakeQuery:
    def __init__(self, client: "FakeClient", table: str):
        self.client = client
        self.table = table
        self.ops: List[tuple] = []

    def __getattr__(self, name: str):
        def record(*args: Any, **kwargs: Any) -> "FakeQuery":
            self.ops.append((name, args, kwargs))
            return self

        return record

    def execute(self) -> SimpleNamespace:
        if self.client.error is not None:
            raise self.client.error
        return SimpleNamespace(data=self.client.responses.get(self.table, []))


class FakeClient:
    def __init__(self, responses: Optional[Dict[str, List[Dict[str, Any]]]] = None, error: Optional[Exception] = None):
        self.responses = responses or {}
        self.error = error
        self.queries: List[FakeQuery] = []

    def table(self, name: str) -> FakeQuery:
        query = FakeQuery(self, name)
        self.queries.append(query)
        return query


def make_contract() -> OptionContract:
    return OptionContract(
        symbol="SPY",
        option_symbol="SPY C545",
        side="CALL",
        strike=545.0,
        expiration=date(2024, 6, 21),
        bid=1.0,
        ask=1.1,
        volume=300,
        open_interest=100,
    )


def test_quote_insert_uses_table_columns():
    client = FakeClient()
    SupabaseStorage(client).store_quote(make_contract(), 544.8, NOW)

    query = client.queries[0]
    assert query.table == "options_quotes"
    name, args, _ = query.ops[0]
    assert name == "insert"
    row = args[0]
    assert row["strike_price"] == 545.0
    assert row["option_type"] == "CALL"
    assert row["expiration_date"] == "2024-06-21"
    assert row["timestamp"] == NOW.isoformat()


def test_naked_positions_round_trip():
    event = NakedPositionEvent(
        symbol="SPY",
        option_symbol="SPY C545",
        side="CALL",
        strike=545.0,
        expiration=date(2024, 6, 21),
        volume=300,
        open_interest=100,
        volume_oi_ratio=3.0,
        threshold=1.5,
        detected_at=NOW,
    )
    client = FakeClient()
    storage = SupabaseStorage(client)
    storage.store_naked_position(event)
    inserted = client.queries[0].ops[0][1][0]
    assert inserted["threshold_multiplier"] == 1.5

    client.responses["naked_positions"] = [inserted]
    events = storage.get_naked_positions("SPY", since=NOW)

    assert events == [event]
    ops = [op[0] for op in client.queries[-1].ops]
    assert ops == ["select", "eq", "gte", "order"]


def test_active_signal_filter():
    client = FakeClient()
    SupabaseStorage(client).get_trade_signals("SPY", active_only=True, now=NOW)

    or_calls = [op for op in client.queries[0].ops if op[0] == "or_"]
    assert or_calls == [("or_", (f"expires_at.is.null,expires_at.gt.{NOW.isoformat()}",), {})]


def test_store_trade_signal_returns_assigned_id():
    client = FakeClient(responses={"trade_signals": [{"id": 42}]})
    signal = TradeSignal(
        symbol="SPY", option_type="CALL", signal_type="BUY", option_symbol="SPY C545", strike_price=545.0
    )

    stored = SupabaseStorage(client).store_trade_signal(signal)

    assert stored.id == 42


def test_daily_pnl_upserts_on_natural_key():
    client = FakeClient()
    SupabaseStorage(client).upsert_daily_pnl(
        DailyPnL(trading_date=date(2024, 6, 21), symbol="SPY", strategy="credit_spreads")
    )

    name, _, kwargs = client.queries[0].ops[0]
    assert name == "upsert"
    assert kwargs["on_conflict"] == "trading_date,symbol,strategy"


def test_cleanup_counts_deleted_rows():
    client = FakeClient(responses={"options_quotes": [{"id": 1}, {"id": 2}], "daily_pnl": [{"id": 3}]})

    deleted = SupabaseStorage(client).cleanup(30, now=NOW)

    assert deleted == 3
    pnl_query = next(query for query in client.queries if query.table == "daily_pnl")
    assert pnl_query.ops[-1] == ("lt", ("trading_date", "2024-03-23"), {})


def test_client_errors_become_storage_errors():
    storage = SupabaseStorage(FakeClient(error=RuntimeError("connection refused")))

    with pytest.raises(StorageError):
        storage.store_quote(make_contract(), 545.0, NOW)
    with pytest.raises(StorageError):
        storage.get_daily_pnl()


def test_from_env_requires_credentials(monkeypatch):
    monkeypatch.delenv("SUPABASE_URL", raising=False)
    monkeypatch.delenv("SUPABASE_SERVICE_KEY", raising=False)

    with pytest.raises(ValueError):
        SupabaseStorage.from_env()


def load_schema() -> Dict[str, Dict[str, bool]]:
    """Map each table in the shipped schema to ``{column: required}``."""

    sql = SCHEMA_PATH.read_text(encoding="utf-8")
    tables: Dict[str, Dict[str, bool]] = {}
    for table, body in re.findall(r"CREATE TABLE IF NOT EXISTS (\w+) \((.*?)\n\);", sql, re.DOTALL):
        columns: Dict[str, bool] = {}
        for line in body.splitlines():
            line = line.strip().rstrip(",")
            if not line or line.startswith(("--", "CONSTRAINT")):
                continue
            column, definition = line.split(None, 1)
            columns[column] = (
                "NOT NULL" in definition and "DEFAULT" not in definition and "PRIMARY KEY" not in definition
            )
        tables[table] = columns
    for table, column in re.findall(r"ALTER TABLE (\w+) ADD COLUMN IF NOT EXISTS (\w+)", sql):
        tables[table].setdefault(column, False)
    return tables


def written_rows() -> Dict[str, Dict[str, Any]]:
    client = FakeClient()
    storage = SupabaseStorage(client)
    storage.store_quote(make_contract(), 544.8, NOW)
    storage.store_naked_position(
        NakedPositionEvent(
            symbol="SPY",
            option_symbol="SPY C545",
            side="CALL",
            strike=545.0,
            expiration=date(2024, 6, 21),
            volume=300,
            open_interest=100,
            volume_oi_ratio=3.0,
            threshold=1.5,
            detected_at=NOW,
        )
    )
    storage.store_chain_summary(ChainSummary(symbol="SPY", max_pain=545.0, volume_by_strike={"545": 300}))
    storage.store_credit_spread(
        CreditSpreadRecord(
            symbol="SPX",
            spread_type="PUT",
            short_strike=5400.0,
            long_strike=5395.0,
            short_option_symbol="SPX P5400",
            long_option_symbol="SPX P5395",
            credit_received=1.1,
            max_profit=110.0,
            max_loss=390.0,
            break_even=5398.9,
            risk_reward_ratio=0.282,
            expiration_date=date(2024, 6, 21),
            scoring_failed=True,
        )
    )
    storage.store_trade_signal(
        TradeSignal(
            symbol="QQQ",
            option_type="PUT",
            signal_type="BUY",
            option_symbol="QQQ P480",
            strike_price=480.0,
            predicted_direction="DOWN",
            predicted_move_percent=0.8,
        )
    )
    storage.upsert_daily_pnl(DailyPnL(trading_date=date(2024, 6, 21), symbol="SPY", strategy="atm_trades"))
    return {query.table: query.ops[0][1][0] for query in client.queries}


def test_schema_defines_every_table_written():
    assert set(written_rows()) <= set(load_schema())


def test_written_rows_match_schema_columns():
    schema = load_schema()

    for table, row in written_rows().items():
        columns = schema[table]
        assert set(row) <= set(columns), f"{table}: unknown columns {set(row) - set(columns)}"
        required = {column for column, needed in columns.items() if needed}
        assert required <= set(row), f"{table}: missing required columns {required - set(row)}"


def test_cleanup_and_ordering_columns_exist():
    schema = load_schema()
    client = FakeClient()
    storage = SupabaseStorage(client)
    storage.cleanup(30, now=NOW)
    storage.get_credit_spreads()

    for query in client.queries:
        for name, args, _ in query.ops:
            if name in {"lt", "order"}:
                assert args[0] in schema[query.table]
