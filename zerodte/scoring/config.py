from __future__ import annotations

import copy
from typing import Dict

DEFAULT_SCORER_CONFIG: Dict[str, object] = {
    "enabled": [
        "risk_reward",
        "probability",
        "cushion",
        "liquidity",
        "order_flow",
    ],
    "weights": {
        "risk_reward": 1.0,
        "probability": 1.0,
        "cushion": 0.8,
        "liquidity": 0.6,
        "order_flow": 1.2,
    },
    "score_bounds": {
        "min": 0.0,
        "max": 100.0,
    },
}


def merge_config(overrides: Dict[str, object] | None) -> Dict[str, object]:
    merged = copy.deepcopy(DEFAULT_SCORER_CONFIG)
    if not overrides:
        return merged
    for key, value in overrides.items():
        if key in {"weights", "score_bounds"}:
            merged[key] = {**merged.get(key, {}), **dict(value or {})}
        elif key == "enabled":
            merged[key] = list(value or [])
        else:
            merged[key] = value
    return merged
