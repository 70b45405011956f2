from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Protocol, Tuple

from zerodte.models.candidates import Candidate, ScoreResult


class ScoringError(RuntimeError):
    """Raised by a scorer that cannot produce a result for a candidate."""


@dataclass(frozen=True)
class ScoreContext:
    """Information passed to each rule scorer."""

    candidate: Candidate
    underlying_price: Optional[float]
    market_data: Dict[str, Any]
    config: Dict[str, object]

    def get_weight(self, scorer_key: str, default: float) -> float:
        return float(self.config.get("weights", {}).get(scorer_key, default))


class RuleScorer(Protocol):
    """Protocol each scoring component must implement."""

    key: str
    default_weight: float
    applies_to: Tuple[str, ...]

    def score(self, context: ScoreContext) -> Tuple[float, List[str], List[str]]:
        """Return raw score, reasoning strings, and tags."""


class Scorer(Protocol):
    """External ranking boundary: score one candidate or raise."""

    def score(
        self,
        candidate: Candidate,
        underlying_price: Optional[float],
        context: Optional[Mapping[str, Any]] = None,
    ) -> ScoreResult:
        ...
