"""Pydantic models for notelens."""

from notelens.models.filters import (
    BoundingBox,
    FilterRecord,
    HashtagListParams,
    LogicalOperator,
    NoteStatus,
    OrTextMode,
    RankingParams,
    SortOrder,
    TrendScope,
    TrendsParams,
)
from notelens.models.query import QueryResult
from notelens.models.results import (
    ComparisonResult,
    HashtagDetails,
    HashtagEntry,
    Pagination,
    RankingEntry,
    RankingsResult,
    SearchResult,
    TrendPoint,
    TrendsResult,
)

__all__ = [
    "BoundingBox",
    "ComparisonResult",
    "FilterRecord",
    "HashtagDetails",
    "HashtagEntry",
    "HashtagListParams",
    "LogicalOperator",
    "NoteStatus",
    "OrTextMode",
    "Pagination",
    "QueryResult",
    "RankingEntry",
    "RankingParams",
    "RankingsResult",
    "SearchResult",
    "SortOrder",
    "TrendPoint",
    "TrendScope",
    "TrendsParams",
    "TrendsResult",
]
