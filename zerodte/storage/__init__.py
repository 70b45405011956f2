"""Storage backends for quotes, detections, scored candidates and aggregates."""

from .base import DEFAULT_PNL_RETENTION_DAYS, DEFAULT_RETENTION_DAYS, Storage, StorageError
from .sqlite import SQLiteStorage

__all__ = [
    "DEFAULT_PNL_RETENTION_DAYS",
    "DEFAULT_RETENTION_DAYS",
    "SQLiteStorage",
    "Storage",
    "StorageError",
]
