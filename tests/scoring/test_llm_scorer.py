from __future__ import annotations

import json
from datetime import date
from types import SimpleNamespace
from typing import Any, Dict, List

import pytest

from zerodte.analysis.spreads import SpreadEnumerator
from zerodte.models.option import OptionContract, OptionGreeks
from zerodte.scoring import ScoringError
from zerodte.scoring.llm import OpenAIScorer, candidate_payload, parse_score_response


class FakeCompletions:
    def __init__(self, content: str = "", error: Exception | None = None):
        self.content = content
        self.error = error
        self.requests: List[Dict[str, Any]] = []

    def create(self, **kwargs: Any) -> SimpleNamespace:
        self.requests.append(kwargs)
        if self.error is not None:
            raise self.error
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def fake_client(completions: FakeCompletions) -> SimpleNamespace:
    return SimpleNamespace(chat=SimpleNamespace(completions=completions))


def build_spread():
    legs = [
        OptionContract(
            symbol="QQQ",
            option_symbol=f"QQQ P{strike}",
            side="PUT",
            strike=strike,
            expiration=date.today(),
            bid=bid,
            ask=ask,
            greeks=OptionGreeks(delta=delta),
        )
        for strike, bid, ask, delta in ((480, 1.40, 1.45, -0.22), (475, 0.70, 0.75, -0.10))
    ]
    return SpreadEnumerator().enumerate(legs, "PUT", spot=484.0)[0]


def test_parse_response_with_surrounding_text():
    text = 'Here you go:\n```json\n{"score": 78, "confidence": 64, "reasoning": "Solid cushion"}\n```'

    result = parse_score_response(text, "gpt-test")

    assert result.score == 78.0
    assert result.confidence == 64.0
    assert result.rationale == "Solid cushion"
    assert result.model == "gpt-test"


def test_parse_response_clamps_values():
    result = parse_score_response('{"score": 140, "confidence": -5}', "gpt-test")

    assert result.score == 100.0
    assert result.confidence == 0.0


@pytest.mark.parametrize("text", ["no json here", '{"score": "high"}', '{"confidence": 50}', ""])
def test_parse_response_rejects_malformed(text):
    with pytest.raises(ScoringError):
        parse_score_response(text, "gpt-test")


def test_payload_describes_spread():
    payload = candidate_payload(build_spread(), 484.0)

    assert payload["type"] == "credit_spread"
    assert payload["short_strike"] == 480
    assert payload["long_strike"] == 475
    assert payload["probability_of_profit"] == pytest.approx(78.0)


def test_scorer_sends_prompt_and_parses_reply():
    completions = FakeCompletions(json.dumps({"score": 66, "confidence": 71, "reasoning": "ok"}))
    scorer = OpenAIScorer(fake_client(completions), model="gpt-test", temperature=0.1)

    result = scorer.score(build_spread(), 484.0, {"vix": 14.2})

    assert result.score == 66.0
    request = completions.requests[0]
    assert request["model"] == "gpt-test"
    assert request["temperature"] == 0.1
    prompt = request["messages"][0]["content"]
    assert '"short_strike": 480' in prompt
    assert '"vix": 14.2' in prompt


def test_scorer_wraps_client_errors():
    scorer = OpenAIScorer(fake_client(FakeCompletions(error=RuntimeError("timeout"))))

    with pytest.raises(ScoringError):
        scorer.score(build_spread(), 484.0)


def test_scorer_requires_api_key(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)

    with pytest.raises(ValueError):
        OpenAIScorer()


def test_parse_response_keeps_trade_action():
    result = parse_score_response(
        '{"score": 70, "confidence": 66, "reasoning": "puts bid", "signal": "BUY", '
        '"predicted_direction": "DOWN", "predicted_move_percent": 0.6}',
        "gpt-4o-mini",
    )

    assert result.metadata == {"signal": "BUY", "predicted_direction": "DOWN", "predicted_move_percent": 0.6}
    assert parse_score_response('{"score": 1, "confidence": 2}', "m").metadata == {}
