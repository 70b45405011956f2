from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Type

from zerodte.models.candidates import Candidate, ScoreResult

from .base import ScoreContext
from .config import merge_config
from .cushion import CushionScorer
from .liquidity import LiquidityScorer
from .order_flow import OrderFlowScorer
from .probability import ProbabilityScorer
from .risk_reward import RiskRewardScorer

MODEL_ID = "composite-rules"

SCORER_REGISTRY = {
    RiskRewardScorer.key: RiskRewardScorer,
    ProbabilityScorer.key: ProbabilityScorer,
    CushionScorer.key: CushionScorer,
    LiquidityScorer.key: LiquidityScorer,
    OrderFlowScorer.key: OrderFlowScorer,
}


def _confidence(total: float, weighted_scores: List[float]) -> float:
    # Loose confidence metric derived from how one-sided the breakdown is.
    if not weighted_scores:
        return min(100.0, max(0.0, total))
    positive = sum(value for value in weighted_scores if value > 0)
    negative = -sum(value for value in weighted_scores if value < 0)
    base = total if total > 0 else 0.0
    confidence = base + positive * 0.2 - negative * 0.1
    return float(max(0.0, min(100.0, confidence)))


class CompositeScoringEngine:
    """Aggregates scores from enabled rule scorers using configured weights.

    Only scorers whose ``applies_to`` includes the candidate's kind take part.
    """

    def __init__(self, config: Dict[str, object] | None = None):
        self.config = merge_config(config)
        enabled = self.config.get("enabled", list(SCORER_REGISTRY))
        self._scorers = [self._instantiate(key) for key in enabled if key in SCORER_REGISTRY]

    def _instantiate(self, key: str):
        scorer_cls: Type = SCORER_REGISTRY[key]
        return scorer_cls()

    def score(
        self,
        candidate: Candidate,
        underlying_price: Optional[float],
        context: Optional[Mapping[str, Any]] = None,
    ) -> ScoreResult:
        market_snapshot = dict(context or {})
        score_context = ScoreContext(
            candidate=candidate,
            underlying_price=underlying_price,
            market_data=market_snapshot,
            config=self.config,
        )

        total = 0.0
        weighted_scores: List[float] = []
        breakdown: List[Dict[str, Any]] = []
        all_reasons: List[str] = []
        all_tags: List[str] = []

        for scorer in self._scorers:
            if candidate.kind not in scorer.applies_to:
                continue
            raw_score, reasons, tags = scorer.score(score_context)
            weight = score_context.get_weight(scorer.key, getattr(scorer, "default_weight", 1.0))
            weighted_score = raw_score * weight
            total += weighted_score
            weighted_scores.append(weighted_score)
            breakdown.append(
                {
                    "scorer": scorer.key,
                    "weight": weight,
                    "raw_score": raw_score,
                    "weighted_score": weighted_score,
                }
            )
            all_reasons.extend(reasons)
            all_tags.extend(tags)

        bounds = self.config.get("score_bounds", {})
        min_score = float(bounds.get("min", 0.0))
        max_score = float(bounds.get("max", 100.0))
        total = max(min_score, min(max_score, total))

        return ScoreResult(
            score=round(total, 2),
            confidence=round(_confidence(total, weighted_scores), 2),
            rationale="; ".join(all_reasons) or f"Rule-based score for {candidate.label}",
            model=MODEL_ID,
            metadata={"breakdown": breakdown, "tags": sorted(set(all_tags))},
        )

    @property
    def enabled_scorers(self) -> List[str]:
        return [scorer.key for scorer in self._scorers]


__all__ = ["CompositeScoringEngine", "MODEL_ID", "SCORER_REGISTRY"]
