"""On-demand opportunity scanning: credit spreads and ATM signals.

Candidates are scored one at a time. A scorer failure never aborts the batch;
the candidate is kept as a failed placeholder instead.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, List, Mapping, Optional, Tuple

from zerodte.adapters.base import ChainFetcher, FetchFailure
from zerodte.analysis.atm import ATMSelector
from zerodte.analysis.spreads import SpreadEnumerator
from zerodte.models.candidates import ATMCandidate, Candidate, ScoredCandidate
from zerodte.models.option import Chain
from zerodte.models.records import CreditSpreadRecord, PredictedDirection, SignalType, TradeSignal
from zerodte.scoring.base import Scorer
from zerodte.storage.base import Storage, StorageError

logger = logging.getLogger(__name__)

DEFAULT_TOP_SPREADS = 20
MIN_SIGNAL_CONFIDENCE = 60.0
SIGNAL_TTL_HOURS = 6
ACTIONABLE_SIGNALS = ("BUY", "SELL")


def trade_action(
    candidate: ATMCandidate,
    metadata: Mapping[str, Any],
) -> Tuple[SignalType, Optional[PredictedDirection], Optional[float]]:
    """Signal type, predicted direction and move for a scored ATM contract.

    A scorer that returns a ``signal`` in its metadata decides the action.
    Otherwise the order flow does: directional flow means buying the contract
    (calls read up, puts read down) and neutral flow means HOLD.
    """

    signal = str(metadata.get("signal") or "").upper()
    if signal in ("BUY", "SELL", "HOLD"):
        direction = str(metadata.get("predicted_direction") or "").upper()
        move = metadata.get("predicted_move_percent")
        try:
            move = float(move) if move is not None else None
        except (TypeError, ValueError):
            move = None
        return signal, direction if direction in ("UP", "DOWN", "SIDEWAYS") else None, move

    flow = candidate.order_flow.signal if candidate.order_flow else "NEUTRAL"
    if flow == "BULLISH":
        return "BUY", "UP", None
    if flow == "BEARISH":
        return "BUY", "DOWN", None
    return "HOLD", "SIDEWAYS", None


class OpportunityScanner:
    def __init__(
        self,
        fetcher: ChainFetcher,
        storage: Storage,
        scorer: Scorer,
        *,
        spreads: Optional[SpreadEnumerator] = None,
        atm: Optional[ATMSelector] = None,
        top_spreads: int = DEFAULT_TOP_SPREADS,
        min_signal_confidence: float = MIN_SIGNAL_CONFIDENCE,
        signal_ttl_hours: float = SIGNAL_TTL_HOURS,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self._fetcher = fetcher
        self._storage = storage
        self._scorer = scorer
        self.spreads = spreads or SpreadEnumerator()
        self.atm = atm or ATMSelector()
        self.top_spreads = top_spreads
        self.min_signal_confidence = min_signal_confidence
        self.signal_ttl = timedelta(hours=signal_ttl_hours)
        self._clock = clock

    def load_chain(self, symbol: str, fresh: bool = False) -> Optional[Chain]:
        """Latest persisted chain, or a fresh fetch when asked (or nothing is stored)."""

        symbol = symbol.upper()
        if not fresh:
            try:
                chain = self._storage.get_latest_chain(symbol)
            except StorageError as exc:
                logger.warning("Could not load stored chain for %s: %s", symbol, exc)
                chain = None
            if chain is not None:
                return chain

        result = self._fetcher.fetch(symbol)
        if isinstance(result, FetchFailure):
            return None
        return result

    def _score(self, candidate: Candidate, spot: Optional[float], context: Optional[Mapping[str, Any]]) -> ScoredCandidate:
        try:
            result = self._scorer.score(candidate, spot, context)
        except Exception as exc:
            logger.exception("Scoring failed for %s %s", candidate.symbol, candidate.label)
            return ScoredCandidate.failure(candidate, str(exc) or type(exc).__name__)
        return ScoredCandidate.from_result(candidate, result)

    def find_best_spreads(
        self,
        chain: Chain,
        spot: Optional[float] = None,
        context: Optional[Mapping[str, Any]] = None,
    ) -> List[ScoredCandidate]:
        spot = spot if spot is not None else chain.underlying_price
        per_side = max(self.top_spreads // 2, 0)
        analyzed_at = self._clock()
        scored: List[ScoredCandidate] = []

        for side, options in (("CALL", chain.calls), ("PUT", chain.puts)):
            ranked = self.spreads.enumerate(options, side, spot)[:per_side]
            for rank, spread in enumerate(ranked, start=1):
                result = self._score(spread, spot, context)
                scored.append(result)
                try:
                    self._storage.store_credit_spread(
                        CreditSpreadRecord.from_scored(result, rank=rank, analyzed_at=analyzed_at)
                    )
                except StorageError as exc:
                    logger.warning("Failed to persist spread %s: %s", spread.label, exc)

        successes = sorted((item for item in scored if not item.failed), key=lambda item: item.score, reverse=True)
        failures = [item for item in scored if item.failed]
        logger.info(
            "Scored %d %s credit spreads (%d failed)",
            len(scored),
            chain.symbol,
            len(failures),
        )
        return successes + failures

    def find_atm_signals(
        self,
        chain: Chain,
        spot: Optional[float] = None,
        context: Optional[Mapping[str, Any]] = None,
    ) -> List[ScoredCandidate]:
        spot = spot if spot is not None else chain.underlying_price
        if not spot:
            logger.warning("No underlying price for %s; skipping ATM analysis", chain.symbol)
            return []

        selection = self.atm.select(chain.calls, chain.puts, spot)
        generated_at = self._clock()
        results: List[ScoredCandidate] = []

        for candidate in selection.all():
            result = self._score(candidate, spot, context)
            results.append(result)
            if result.failed or result.confidence < self.min_signal_confidence:
                continue
            signal_type, direction, move = trade_action(candidate, result.metadata)
            if signal_type not in ACTIONABLE_SIGNALS:
                logger.debug("HOLD on %s %s (%.0f%% confidence)", candidate.symbol, candidate.label, result.confidence)
                continue
            contract = candidate.contract
            signal = TradeSignal(
                symbol=candidate.symbol,
                option_type=contract.side,
                signal_type=signal_type,
                option_symbol=contract.option_symbol,
                strike_price=contract.strike,
                is_atm=True,
                current_price=contract.mark if contract.mark is not None else contract.mid_price,
                underlying_price=spot,
                flow_signal=candidate.order_flow.signal if candidate.order_flow else "NEUTRAL",
                ai_score=result.score,
                ai_confidence=result.confidence,
                ai_reasoning=result.rationale,
                ai_model_used=result.model,
                predicted_direction=direction,
                predicted_move_percent=move,
                generated_at=generated_at,
                expires_at=generated_at + self.signal_ttl,
            )
            try:
                self._storage.store_trade_signal(signal)
            except StorageError as exc:
                logger.warning("Failed to persist signal %s: %s", contract.option_symbol, exc)

        return results


__all__ = [
    "ACTIONABLE_SIGNALS",
    "DEFAULT_TOP_SPREADS",
    "MIN_SIGNAL_CONFIDENCE",
    "OpportunityScanner",
    "SIGNAL_TTL_HOURS",
    "trade_action",
]
