"""Configuration helpers and component factories."""

from __future__ import annotations

from typing import Optional

from zerodte.adapters import ChainFetcher, create_fetcher
from zerodte.auth import StoredTokenProvider, TokenStore, token_store_from_env
from zerodte.scoring import CompositeScoringEngine, Scorer
from zerodte.storage import SQLiteStorage, Storage

from .loader import AppSettings, build_settings, get_settings, reset_settings_cache

DEFAULT_OPTIONS_PROVIDER = "schwab"


def build_fetcher(settings: AppSettings, token_store: Optional[TokenStore] = None) -> ChainFetcher:
    """Return the chain fetcher named by ``adapter.provider``."""

    name = (settings.adapter.provider or DEFAULT_OPTIONS_PROVIDER).strip().lower()
    options = dict(settings.adapter.settings.get(name) or {})
    if name == "schwab":
        options["token_provider"] = StoredTokenProvider(token_store or token_store_from_env())
    try:
        return create_fetcher(name, **options)
    except KeyError as exc:
        raise ValueError(f"Unsupported options data provider: {name}") from exc


def build_storage(settings: AppSettings) -> Storage:
    backend = settings.storage.backend
    if backend == "sqlite":
        sqlite_settings = settings.storage.sqlite
        return SQLiteStorage(sqlite_settings.path, sqlite_settings.pragmas)
    if backend == "supabase":
        from zerodte.storage.supabase import SupabaseStorage

        return SupabaseStorage.from_env()
    raise ValueError(f"Unsupported storage backend: {backend}")


def build_scorer(settings: AppSettings) -> Scorer:
    backend = settings.scoring.backend
    if backend == "rules":
        return CompositeScoringEngine(settings.scoring_dict())
    if backend == "openai":
        from zerodte.scoring.llm import OpenAIScorer

        return OpenAIScorer(model=settings.llm.model, temperature=settings.llm.temperature)
    raise ValueError(f"Unsupported scorer backend: {backend}")


__all__ = [
    "AppSettings",
    "DEFAULT_OPTIONS_PROVIDER",
    "build_fetcher",
    "build_scorer",
    "build_settings",
    "build_storage",
    "get_settings",
    "reset_settings_cache",
]
