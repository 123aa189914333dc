"""Pydantic models for API-shaped results.

row payloads stay as plain dicts (already normalized), the envelopes around
them are typed so the json shape is stable across entities.
"""

from typing import Any

from pydantic import BaseModel, Field, NonNegativeInt

from notelens.models.filters import SortOrder, TrendScope


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int


class SearchResult(BaseModel):
    """Paginated search envelope: {data, pagination}."""

    data: list[dict[str, Any]]
    pagination: Pagination
    filters: dict[str, Any] = Field(default_factory=dict)


class RankingEntry(BaseModel):
    """One row of a ranking.

    rank is the 1-based position in the result order. equal values are
    ordered by entity id ascending and still get distinct ranks.
    """

    rank: int
    id: int
    label: str | None
    value: float | None


class RankingsResult(BaseModel):
    metric: str
    order: SortOrder
    country: int | None = None
    rankings: list[RankingEntry]


class TrendPoint(BaseModel):
    year: str
    open: NonNegativeInt
    closed: NonNegativeInt


class TrendsResult(BaseModel):
    type: TrendScope
    entity_id: int | None = None
    entity_name: str | None = None
    trends: list[TrendPoint]
    working_hours: list[int] | None = None


class HashtagEntry(BaseModel):
    hashtag: str
    count: int


class HashtagDetails(BaseModel):
    hashtag: str
    users_count: int
    countries_count: int
    users: list[dict[str, Any]]
    countries: list[dict[str, Any]]


class ComparisonResult(BaseModel):
    type: TrendScope
    entities: list[dict[str, Any]]
