from __future__ import annotations

import json
from datetime import date

import pytest

from zerodte import cli
from zerodte.adapters.base import ChainFetcher, FetchFailure, FetchResult
from zerodte.config.loader import build_settings
from zerodte.models.option import Chain, OptionContract, OptionGreeks
from zerodte.scoring import CompositeScoringEngine
from zerodte.services import build_services
from zerodte.storage.sqlite import SQLiteStorage


class StubFetcher(ChainFetcher):
    @property
    def name(self) -> str:
        return "stub"

    def fetch(self, symbol: str) -> FetchResult:
        if symbol == "QQQ":
            return FetchFailure(symbol=symbol, reason="HTTP 500")
        contracts = tuple(
            OptionContract(
                symbol=symbol,
                option_symbol=f"{symbol} {side[0]}{strike}",
                side=side,
                strike=strike,
                expiration=date.today(),
                bid=bid,
                ask=ask,
                volume=500,
                open_interest=100,
                greeks=OptionGreeks(delta=delta),
            )
            for side, strike, bid, ask, delta in (
                ("CALL", 650, 1.20, 1.25, 0.30),
                ("CALL", 655, 0.55, 0.60, 0.18),
                ("PUT", 645, 1.10, 1.15, -0.40),
            )
        )
        return Chain(symbol=symbol, underlying_price=648.0, contracts=contracts)


@pytest.fixture()
def services(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("ZERODTE_CONFIG_DIR", str(tmp_path))
    (tmp_path / "test.yaml").write_text("collector:\n  symbols: [SPY, QQQ]\n", encoding="utf-8")
    settings = build_settings("test", environ={})
    built = build_services(
        settings,
        fetcher=StubFetcher(),
        storage=SQLiteStorage(tmp_path / "cli.db"),
        scorer=CompositeScoringEngine(),
    )
    monkeypatch.setattr(cli, "get_settings", lambda env=None: settings)
    monkeypatch.setattr(cli, "build_services", lambda settings=None: built)
    return built


def test_parser_requires_command():
    with pytest.raises(SystemExit):
        cli.build_parser().parse_args([])


def test_parser_reads_pnl_date():
    args = cli.build_parser().parse_args(["pnl", "--date", "2024-06-21"])

    assert args.date == date(2024, 6, 21)


def test_once_reports_cycle_and_flags_failures(services, capsys, tmp_path):
    exit_code = cli.main(["once"])

    report = json.loads(capsys.readouterr().out)
    assert exit_code == 1
    assert report["fetch_failures"] == 1
    assert report["naked_positions"] == 3
    assert (tmp_path / "logs" / "zerodte.log").exists()


def test_once_for_single_symbol_succeeds(services, capsys):
    assert cli.main(["once", "--symbols", "spy"]) == 0

    reports = json.loads(capsys.readouterr().out)
    assert [report["symbol"] for report in reports] == ["SPY"]


def test_spreads_command_prints_ranked_spreads(services, capsys):
    assert cli.main(["spreads", "SPY", "--fresh"]) == 0

    assert "CALL 650/655" in capsys.readouterr().out


def test_atm_command_without_chain_fails(services):
    assert cli.main(["atm", "QQQ"]) == 1


def test_pnl_and_cleanup_commands(services, capsys):
    assert cli.main(["pnl", "--date", date.today().isoformat(), "--symbols", "SPY"]) == 0
    rows = json.loads(capsys.readouterr().out)
    assert {row["strategy"] for row in rows} == {"naked_positions", "credit_spreads", "atm_trades"}

    assert cli.main(["cleanup", "--days", "30"]) == 0
    assert "Deleted 0 records" in capsys.readouterr().out
