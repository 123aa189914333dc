"""notelens - read-only analytics over a notes warehouse."""

from notelens.config import Settings, WarehouseLayout, get_settings
from notelens.errors import (
    InternalError,
    InvalidFilter,
    InvalidMetric,
    NotelensError,
    NotFound,
)
from notelens.executor.duckdb_executor import DuckDBExecutor
from notelens.store import AnalyticsStore

__version__ = "0.1.0"

__all__ = [
    "AnalyticsStore",
    "DuckDBExecutor",
    "InternalError",
    "InvalidFilter",
    "InvalidMetric",
    "NotFound",
    "NotelensError",
    "Settings",
    "WarehouseLayout",
    "get_settings",
]
