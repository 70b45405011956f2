"""Serialization helpers shared between the API, CLI and storage backends."""

from __future__ import annotations

from typing import Any, Dict, Iterable, List

from pydantic import BaseModel

from .option import Chain


def serialize_model(model: BaseModel) -> Dict[str, Any]:
    """Return a JSON-compatible representation of any record or candidate."""

    return model.model_dump(mode="json")


def serialize_models(models: Iterable[BaseModel]) -> List[Dict[str, Any]]:
    return [serialize_model(model) for model in models]


def serialize_chain(chain: Chain) -> Dict[str, Any]:
    """Return a JSON-compatible payload describing a chain snapshot."""

    return {
        "symbol": chain.symbol,
        "underlying_price": chain.underlying_price,
        "fetched_at": chain.fetched_at.isoformat(),
        "contract_count": chain.contract_count,
        "contracts": serialize_models(chain.contracts),
    }


__all__ = ["serialize_chain", "serialize_model", "serialize_models"]
