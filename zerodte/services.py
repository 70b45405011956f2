"""Composition root: build every component once and wire them together."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from zerodte.adapters import ChainFetcher
from zerodte.analysis import AnomalyDetector, ATMSelector, MaxPainCalculator, PnLCalculator, SpreadEnumerator
from zerodte.auth import TokenStore
from zerodte.config import AppSettings, build_fetcher, build_scorer, build_storage, get_settings
from zerodte.scanner import Collector, OpportunityScanner
from zerodte.scoring import Scorer
from zerodte.storage import Storage

logger = logging.getLogger(__name__)


@dataclass
class Services:
    settings: AppSettings
    fetcher: ChainFetcher
    storage: Storage
    scorer: Scorer
    collector: Collector
    scanner: OpportunityScanner
    pnl: PnLCalculator

    def close(self) -> None:
        self.collector.stop()
        self.fetcher.close()
        self.storage.close()


def build_services(
    settings: Optional[AppSettings] = None,
    *,
    token_store: Optional[TokenStore] = None,
    fetcher: Optional[ChainFetcher] = None,
    storage: Optional[Storage] = None,
    scorer: Optional[Scorer] = None,
) -> Services:
    """Construct the object graph from settings; explicit arguments win."""

    settings = settings or get_settings()
    fetcher = fetcher or build_fetcher(settings, token_store)
    storage = storage or build_storage(settings)
    scorer = scorer or build_scorer(settings)

    collector = Collector(
        fetcher,
        storage,
        detector=AnomalyDetector(settings.collector.naked_threshold),
        max_pain=MaxPainCalculator(),
        symbols=settings.collector.symbols,
        interval_ms=settings.collector.polling_interval_ms,
    )
    scanner = OpportunityScanner(
        fetcher,
        storage,
        scorer,
        spreads=SpreadEnumerator(
            min_credit=settings.spreads.min_credit,
            min_width=settings.spreads.min_width,
            max_width=settings.spreads.max_width,
        ),
        atm=ATMSelector(threshold=settings.atm.threshold, top_n=settings.atm.top_n),
        top_spreads=settings.spreads.top_count,
        min_signal_confidence=settings.atm.min_signal_confidence,
        signal_ttl_hours=settings.atm.signal_ttl_hours,
    )
    pnl = PnLCalculator(storage, symbols=settings.collector.symbols)
    logger.info(
        "Services ready (env=%s, provider=%s, storage=%s, scorer=%s)",
        settings.env,
        fetcher.name,
        settings.storage.backend,
        settings.scoring.backend,
    )
    return Services(
        settings=settings,
        fetcher=fetcher,
        storage=storage,
        scorer=scorer,
        collector=collector,
        scanner=scanner,
        pnl=pnl,
    )


__all__ = ["Services", "build_services"]
