"""Candidate scoring: the local rule engine and the chat-model scorer."""

from .base import RuleScorer, ScoreContext, Scorer, ScoringError
from .config import DEFAULT_SCORER_CONFIG, merge_config
from .engine import MODEL_ID, SCORER_REGISTRY, CompositeScoringEngine

__all__ = [
    "CompositeScoringEngine",
    "DEFAULT_SCORER_CONFIG",
    "MODEL_ID",
    "RuleScorer",
    "SCORER_REGISTRY",
    "ScoreContext",
    "Scorer",
    "ScoringError",
    "merge_config",
]
