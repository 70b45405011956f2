"""Environment aware configuration loader for the 0DTE collector."""

from __future__ import annotations

import copy
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, MutableMapping, Optional, Tuple

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from zerodte.scoring.config import DEFAULT_SCORER_CONFIG

DEFAULT_SETTINGS: Dict[str, Any] = {
    "collector": {
        "symbols": ["SPY", "QQQ", "SPX"],
        "polling_interval_ms": 60000,
        "naked_threshold": 1.5,
    },
    "spreads": {
        "min_credit": 0.50,
        "min_width": 5.0,
        "max_width": 50.0,
        "top_count": 20,
    },
    "atm": {
        "threshold": 0.02,
        "top_n": 3,
        "min_signal_confidence": 60.0,
        "signal_ttl_hours": 6,
    },
    "scoring": {
        "backend": "rules",
        **copy.deepcopy(DEFAULT_SCORER_CONFIG),
    },
    "adapter": {
        "provider": "schwab",
        "settings": {},
    },
    "storage": {
        "backend": "sqlite",
        "retention_days": 30,
        "sqlite": {
            "path": "data/zerodte.db",
            "pragmas": {},
        },
    },
    "llm": {
        "model": "gpt-4o-mini",
        "temperature": 0.2,
    },
}

CONFIG_DIR = Path(__file__).resolve().parents[2] / "config"
ENVIRONMENT_VARIABLE = "APP_ENV"
CONFIG_DIR_VARIABLE = "ZERODTE_CONFIG_DIR"


def _split_symbols(value: str) -> List[str]:
    return [item.strip().upper() for item in value.split(",") if item.strip()]


# Environment variable -> (settings path, parser)
ENV_OVERRIDES: Dict[str, Tuple[Tuple[str, ...], Callable[[str], Any]]] = {
    "TRACKED_SYMBOLS": (("collector", "symbols"), _split_symbols),
    "DATA_POLLING_INTERVAL": (("collector", "polling_interval_ms"), int),
    "NAKED_POSITION_THRESHOLD": (("collector", "naked_threshold"), float),
    "MIN_CREDIT": (("spreads", "min_credit"), float),
    "MIN_SPREAD_WIDTH": (("spreads", "min_width"), float),
    "MAX_SPREAD_WIDTH": (("spreads", "max_width"), float),
    "TOP_SPREADS_COUNT": (("spreads", "top_count"), int),
    "ATM_THRESHOLD": (("atm", "threshold"), float),
    "OPTIONS_DATA_PROVIDER": (("adapter", "provider"), lambda value: value.strip().lower()),
    "STORAGE_BACKEND": (("storage", "backend"), lambda value: value.strip().lower()),
    "SCORER_BACKEND": (("scoring", "backend"), lambda value: value.strip().lower()),
}


class CollectorSettings(BaseModel):
    symbols: List[str] = Field(default_factory=lambda: ["SPY", "QQQ", "SPX"])
    polling_interval_ms: int = 60000
    naked_threshold: float = 1.5

    @field_validator("symbols", mode="before")
    @classmethod
    def _coerce_symbols(cls, value: Any) -> List[str]:
        if isinstance(value, str):
            return _split_symbols(value)
        return [str(item).strip().upper() for item in value or [] if str(item).strip()]

    @field_validator("polling_interval_ms")
    @classmethod
    def _positive_interval(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("polling_interval_ms must be positive")
        return value

    @field_validator("naked_threshold")
    @classmethod
    def _positive_threshold(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("naked_threshold must be positive")
        return value


class SpreadSettings(BaseModel):
    min_credit: float = 0.50
    min_width: float = 5.0
    max_width: float = 50.0
    top_count: int = 20

    @model_validator(mode="after")
    def _check_width_bounds(self) -> "SpreadSettings":
        if self.min_width > self.max_width:
            raise ValueError("spreads.min_width must not exceed spreads.max_width")
        return self


class ATMSettings(BaseModel):
    threshold: float = 0.02
    top_n: int = 3
    min_signal_confidence: float = 60.0
    signal_ttl_hours: float = 6


class ScoringSettings(BaseModel):
    """Scorer selection plus the composite engine configuration."""

    model_config = ConfigDict(extra="allow")

    backend: str = "rules"
    enabled: List[str] = Field(default_factory=lambda: list(DEFAULT_SCORER_CONFIG.get("enabled", [])))
    weights: Dict[str, float] = Field(default_factory=lambda: dict(DEFAULT_SCORER_CONFIG.get("weights", {})))
    score_bounds: Dict[str, float] = Field(default_factory=lambda: dict(DEFAULT_SCORER_CONFIG.get("score_bounds", {})))

    @field_validator("weights", mode="before")
    @classmethod
    def _coerce_weights(cls, value: Mapping[str, Any]) -> Dict[str, float]:
        return {key: float(val) for key, val in dict(value or {}).items()}

    def to_engine_config(self) -> Dict[str, Any]:
        config: Dict[str, Any] = {
            "enabled": list(self.enabled),
            "weights": dict(self.weights),
            "score_bounds": dict(self.score_bounds),
        }
        config.update(self.model_extra or {})
        return config


class AdapterSettings(BaseModel):
    provider: str = "schwab"
    # Constructor keyword arguments, keyed by provider name.
    settings: Dict[str, Dict[str, Any]] = Field(default_factory=dict)


class SQLiteSettings(BaseModel):
    path: str = "data/zerodte.db"
    pragmas: Dict[str, Any] = Field(default_factory=dict)


class StorageSettings(BaseModel):
    backend: str = "sqlite"
    retention_days: int = 30
    sqlite: SQLiteSettings = Field(default_factory=SQLiteSettings)


class LLMSettings(BaseModel):
    model: str = "gpt-4o-mini"
    temperature: float = 0.2


class AppSettings(BaseModel):
    """Fully resolved application settings loaded from YAML and the environment."""

    model_config = ConfigDict(frozen=True)

    env: str
    collector: CollectorSettings
    spreads: SpreadSettings
    atm: ATMSettings
    scoring: ScoringSettings
    adapter: AdapterSettings
    storage: StorageSettings
    llm: LLMSettings

    @field_validator("env")
    @classmethod
    def _normalize_env(cls, value: str) -> str:
        return value.lower()

    def scoring_dict(self) -> Dict[str, Any]:
        return self.scoring.to_engine_config()


def _deep_merge(base: MutableMapping[str, Any], overrides: Mapping[str, Any]) -> MutableMapping[str, Any]:
    for key, value in overrides.items():
        if isinstance(value, Mapping):
            existing = base.get(key)
            if isinstance(existing, MutableMapping):
                base[key] = _deep_merge(copy.deepcopy(existing), value)
            else:
                base[key] = copy.deepcopy(value)
        else:
            base[key] = copy.deepcopy(value)
    return base


def _load_yaml(path: Path) -> Dict[str, Any]:
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle.read()) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Configuration file {path} must contain a mapping at the root.")
    return data


def _apply_env_overrides(merged: MutableMapping[str, Any], environ: Mapping[str, str]) -> None:
    for variable, (path, parser) in ENV_OVERRIDES.items():
        raw = environ.get(variable)
        if raw is None or raw.strip() == "":
            continue
        try:
            value = parser(raw)
        except ValueError as exc:
            raise ValueError(f"Invalid value for {variable}: {raw!r}") from exc
        target = merged
        for key in path[:-1]:
            target = target.setdefault(key, {})
        target[path[-1]] = value


def config_dir() -> Path:
    override = os.getenv(CONFIG_DIR_VARIABLE)
    return Path(override) if override else CONFIG_DIR


def build_settings(env: str, environ: Optional[Mapping[str, str]] = None) -> AppSettings:
    config_path = config_dir() / f"{env}.yaml"
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file for environment '{env}' not found at {config_path}")

    merged = copy.deepcopy(DEFAULT_SETTINGS)
    merged = _deep_merge(merged, _load_yaml(config_path))
    _apply_env_overrides(merged, os.environ if environ is None else environ)
    merged["env"] = env
    return AppSettings.model_validate(merged)


@lru_cache(maxsize=None)
def _cached_settings(env: str) -> AppSettings:
    return build_settings(env)


def get_settings(env: Optional[str] = None) -> AppSettings:
    """Load settings for the requested environment (default: APP_ENV or 'dev')."""

    resolved_env = (env or os.getenv(ENVIRONMENT_VARIABLE, "dev")).strip().lower()
    return _cached_settings(resolved_env)


def reset_settings_cache() -> None:
    """Clear the cached settings, primarily used during tests."""

    _cached_settings.cache_clear()


__all__ = [
    "ATMSettings",
    "AdapterSettings",
    "AppSettings",
    "CollectorSettings",
    "LLMSettings",
    "SQLiteSettings",
    "ScoringSettings",
    "SpreadSettings",
    "StorageSettings",
    "build_settings",
    "get_settings",
    "reset_settings_cache",
]
