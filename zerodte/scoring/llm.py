"""Chat-completions backed scorer.

The candidate's economics are sent as JSON and the model is asked for a JSON
object with ``score``, ``confidence`` and ``reasoning``. Anything that cannot
be read back as that object raises :class:`ScoringError`.
"""

from __future__ import annotations

import json
import logging
import os
import re
from typing import Any, Dict, Mapping, Optional

from openai import OpenAI

from zerodte.models.candidates import ATMCandidate, Candidate, ScoreResult, SpreadCandidate

from .base import ScoringError

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4o-mini"
_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


def candidate_payload(candidate: Candidate, underlying_price: Optional[float]) -> Dict[str, Any]:
    """Compact description of a candidate for the scoring request."""

    if isinstance(candidate, SpreadCandidate):
        return {
            "type": "credit_spread",
            "symbol": candidate.symbol,
            "side": candidate.side,
            "short_strike": candidate.short_strike,
            "long_strike": candidate.long_strike,
            "width": candidate.width,
            "credit": candidate.credit,
            "max_profit": candidate.max_profit,
            "max_loss": candidate.max_loss,
            "break_even": candidate.break_even,
            "risk_reward": round(candidate.risk_reward, 4),
            "probability_of_profit": candidate.probability_of_profit,
            "short_delta": candidate.short_leg.greeks.delta,
            "underlying_price": underlying_price,
        }
    if isinstance(candidate, ATMCandidate):
        contract = candidate.contract
        flow = candidate.order_flow
        return {
            "type": "atm_option",
            "symbol": candidate.symbol,
            "side": contract.side,
            "strike": contract.strike,
            "bid": contract.bid,
            "ask": contract.ask,
            "mark": contract.mark,
            "volume": contract.volume,
            "open_interest": contract.open_interest,
            "delta": contract.greeks.delta,
            "gamma": contract.greeks.gamma,
            "theta": contract.greeks.theta,
            "implied_volatility": contract.implied_volatility,
            "distance_pct": round(candidate.distance_pct, 5),
            "order_flow": flow.model_dump() if flow else None,
            "underlying_price": underlying_price,
        }
    raise ScoringError(f"Unsupported candidate type: {type(candidate).__name__}")


def _trade_fields(data: Mapping[str, Any]) -> Dict[str, Any]:
    return {key: data[key] for key in ("signal", "predicted_direction", "predicted_move_percent") if key in data}


def parse_score_response(text: str, model: str) -> ScoreResult:
    match = _JSON_OBJECT.search(text or "")
    if not match:
        raise ScoringError("Scoring response did not contain a JSON object")
    try:
        data = json.loads(match.group(0))
        score = float(data["score"])
        confidence = float(data["confidence"])
    except (ValueError, KeyError, TypeError) as exc:
        raise ScoringError(f"Malformed scoring response: {exc}") from exc

    return ScoreResult(
        score=max(0.0, min(100.0, score)),
        confidence=max(0.0, min(100.0, confidence)),
        rationale=str(data.get("reasoning") or data.get("rationale") or ""),
        model=model,
        metadata=_trade_fields(data),
    )


class OpenAIScorer:
    def __init__(
        self,
        client: Optional[Any] = None,
        *,
        model: str = DEFAULT_MODEL,
        temperature: float = 0.2,
        api_key: Optional[str] = None,
    ) -> None:
        if client is None:
            key = api_key or os.environ.get("OPENAI_API_KEY")
            if not key:
                raise ValueError("Missing OPENAI_API_KEY for the OpenAI scorer")
            client = OpenAI(api_key=key)
        self._client = client
        self.model = model
        self.temperature = temperature

    def build_prompt(
        self,
        candidate: Candidate,
        underlying_price: Optional[float],
        context: Optional[Mapping[str, Any]] = None,
    ) -> str:
        payload = {
            "candidate": candidate_payload(candidate, underlying_price),
            "context": dict(context or {}),
        }
        reply = '"score": <number>, "confidence": <number>, "reasoning": "<one paragraph>"'
        if isinstance(candidate, ATMCandidate):
            reply += (
                ', "signal": "BUY | SELL | HOLD", "predicted_direction": "UP | DOWN | SIDEWAYS", '
                '"predicted_move_percent": <number>'
            )
        return (
            "You rank same-day-expiry option trades. Score the candidate below from 0 to 100 "
            "and give your confidence from 0 to 100.\n"
            f"Reply with JSON only: {{{reply}}}\n\n"
            f"{json.dumps(payload, indent=2, default=str)}"
        )

    def score(
        self,
        candidate: Candidate,
        underlying_price: Optional[float],
        context: Optional[Mapping[str, Any]] = None,
    ) -> ScoreResult:
        prompt = self.build_prompt(candidate, underlying_price, context)
        try:
            resp = self._client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                temperature=float(self.temperature),
            )
        except Exception as exc:
            raise ScoringError(f"Scoring request failed: {exc}") from exc

        text = str(resp.choices[0].message.content or "").strip()
        logger.debug("Scoring response for %s: %s", candidate.label, text)
        return parse_score_response(text, self.model)


__all__ = ["DEFAULT_MODEL", "OpenAIScorer", "candidate_payload", "parse_score_response"]
