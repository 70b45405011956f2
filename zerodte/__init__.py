"""Core Python package for the 0DTE options flow collector."""

from __future__ import annotations

from typing import Any

__version__ = "0.1.0"


def build_services(*args: Any, **kwargs: Any):  # pragma: no cover - thin wrapper
    """Lazily import the service container factory."""

    from .services import build_services as _impl

    return _impl(*args, **kwargs)


__all__ = ["__version__", "build_services"]
