import pytest
from pydantic import ValidationError

from zerodte.adapters.replay import FileChainFetcher
from zerodte.adapters.schwab import SchwabChainFetcher
from zerodte.auth import TokenStore
from zerodte.config import build_fetcher, build_scorer, build_storage, get_settings, reset_settings_cache
from zerodte.config.loader import CONFIG_DIR_VARIABLE, ENVIRONMENT_VARIABLE, build_settings
from zerodte.scoring import CompositeScoringEngine
from zerodte.storage.sqlite import SQLiteStorage


@pytest.fixture(autouse=True)
def clear_settings_cache(monkeypatch):
    for variable in ("TRACKED_SYMBOLS", "DATA_POLLING_INTERVAL", "NAKED_POSITION_THRESHOLD", "STORAGE_BACKEND"):
        monkeypatch.delenv(variable, raising=False)
    reset_settings_cache()
    yield
    reset_settings_cache()


def write_config(directory, name: str, body: str) -> None:
    (directory / f"{name}.yaml").write_text(body, encoding="utf-8")


def test_dev_settings_load(monkeypatch):
    monkeypatch.delenv(CONFIG_DIR_VARIABLE, raising=False)
    monkeypatch.setenv(ENVIRONMENT_VARIABLE, "dev")
    settings = get_settings()

    assert settings.env == "dev"
    assert settings.collector.symbols == ["SPY", "QQQ", "SPX"]
    assert settings.collector.polling_interval_ms == 60000
    assert settings.collector.naked_threshold == 1.5
    assert settings.spreads.min_credit == 0.5
    assert settings.atm.top_n == 3
    assert settings.scoring.backend == "rules"
    assert settings.scoring.weights["order_flow"] == 1.2
    assert settings.adapter.provider == "schwab"
    assert settings.storage.retention_days == 30


def test_prod_settings_override(monkeypatch):
    monkeypatch.delenv(CONFIG_DIR_VARIABLE, raising=False)
    settings = get_settings("prod")

    assert settings.scoring.backend == "openai"
    assert settings.storage.backend == "supabase"
    assert settings.scoring.score_bounds["max"] == 100.0


def test_yaml_values_merge_over_defaults(tmp_path, monkeypatch):
    monkeypatch.setenv(CONFIG_DIR_VARIABLE, str(tmp_path))
    write_config(
        tmp_path,
        "test",
        "collector:\n  symbols: [iwm]\nscoring:\n  weights:\n    cushion: 2.5\n",
    )

    settings = get_settings("test")

    assert settings.collector.symbols == ["IWM"]
    assert settings.collector.polling_interval_ms == 60000
    assert settings.scoring.weights["cushion"] == 2.5
    assert settings.scoring.weights["risk_reward"] == 1.0


def test_environment_variables_override_yaml(tmp_path, monkeypatch):
    monkeypatch.setenv(CONFIG_DIR_VARIABLE, str(tmp_path))
    write_config(tmp_path, "test", "collector:\n  polling_interval_ms: 30000\n")

    settings = build_settings(
        "test",
        environ={
            "TRACKED_SYMBOLS": "spy, qqq",
            "DATA_POLLING_INTERVAL": "15000",
            "NAKED_POSITION_THRESHOLD": "2.0",
            "STORAGE_BACKEND": "SQLite",
        },
    )

    assert settings.collector.symbols == ["SPY", "QQQ"]
    assert settings.collector.polling_interval_ms == 15000
    assert settings.collector.naked_threshold == 2.0
    assert settings.storage.backend == "sqlite"


def test_invalid_environment_value_raises(tmp_path, monkeypatch):
    monkeypatch.setenv(CONFIG_DIR_VARIABLE, str(tmp_path))
    write_config(tmp_path, "test", "{}\n")

    with pytest.raises(ValueError):
        build_settings("test", environ={"DATA_POLLING_INTERVAL": "soon"})


def test_invalid_values_fail_validation(tmp_path, monkeypatch):
    monkeypatch.setenv(CONFIG_DIR_VARIABLE, str(tmp_path))
    write_config(tmp_path, "test", "spreads:\n  min_width: 60\n  max_width: 50\n")

    with pytest.raises(ValidationError):
        build_settings("test", environ={})


def test_missing_environment_raises(monkeypatch):
    monkeypatch.delenv(CONFIG_DIR_VARIABLE, raising=False)
    monkeypatch.setenv(ENVIRONMENT_VARIABLE, "unknown")
    with pytest.raises(FileNotFoundError):
        get_settings()


def test_factories_build_configured_components(tmp_path, monkeypatch):
    monkeypatch.setenv(CONFIG_DIR_VARIABLE, str(tmp_path))
    write_config(tmp_path, "test", f"storage:\n  sqlite:\n    path: {tmp_path / 'factory.db'}\n")

    settings = build_settings("test", environ={})

    assert isinstance(build_storage(settings), SQLiteStorage)
    scorer = build_scorer(settings)
    assert isinstance(scorer, CompositeScoringEngine)
    assert scorer.enabled_scorers == ["risk_reward", "probability", "cushion", "liquidity", "order_flow"]


@pytest.mark.parametrize(
    ("provider", "fetcher_cls"),
    [("schwab", SchwabChainFetcher), ("file", FileChainFetcher)],
)
def test_fetcher_receives_only_its_provider_settings(monkeypatch, provider, fetcher_cls):
    monkeypatch.delenv(CONFIG_DIR_VARIABLE, raising=False)
    settings = build_settings("dev", environ={"OPTIONS_DATA_PROVIDER": provider})

    fetcher = build_fetcher(settings, TokenStore())

    assert isinstance(fetcher, fetcher_cls)
    assert fetcher.name == provider
    fetcher.close()


def test_unknown_provider_is_rejected(monkeypatch):
    monkeypatch.delenv(CONFIG_DIR_VARIABLE, raising=False)
    settings = build_settings("dev", environ={"OPTIONS_DATA_PROVIDER": "polygon"})

    with pytest.raises(ValueError):
        build_fetcher(settings)
