"""Pydantic models for request filters.

every request builds exactly one of these from loosely-typed query-string
input, then treats it as read-only. the models are frozen so nothing
downstream can quietly tweak a filter between the data and count queries.
"""

import math
import re
from datetime import date, datetime
from enum import Enum
from typing import Any, Self

from pydantic import BaseModel, ConfigDict, Field, PositiveInt, field_validator, model_validator

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 20
MAX_LIMIT = 100
# duckdb refuses LIMIT/OFFSET values past 2**62; (page - 1) * limit stays below it
MAX_PAGE = 2**62 // MAX_LIMIT
MAX_TEXT_LENGTH = 500
DEFAULT_RANKING_LIMIT = 10
DEFAULT_HASHTAG_LIMIT = 50
MAX_COMPARISON_IDS = 10

# strict calendar-date shape - fromisoformat alone accepts "20240101" on 3.11+
_DATE_PATTERN = re.compile(r"[0-9]{4}-[0-9]{2}-[0-9]{2}")


class NoteStatus(str, Enum):
    """Lifecycle status of a note."""

    OPEN = "open"
    CLOSED = "closed"
    REOPENED = "reopened"


class LogicalOperator(str, Enum):
    """How independent filter fragments are combined."""

    AND = "AND"
    OR = "OR"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


class OrTextMode(str, Enum):
    """Where the free-text condition sits when the operator is OR.

    anchored: the text check is ANDed onto the disjunction of the other
    filters. alternative: the text check is one more OR branch. both the data
    query and the count query always use the same mode.
    """

    ANCHORED = "anchored"
    ALTERNATIVE = "alternative"


class TrendScope(str, Enum):
    USERS = "users"
    COUNTRIES = "countries"
    GLOBAL = "global"


def parse_calendar_date(value: Any) -> date | None:
    """Parse a strict YYYY-MM-DD string (or pass a date through)."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not _DATE_PATTERN.fullmatch(value):
        raise ValueError("must be in YYYY-MM-DD format")
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise ValueError(f"'{value}' is not a valid calendar date") from None


class BoundingBox(BaseModel):
    """Geographic box as min_lon, min_lat, max_lon, max_lat."""

    model_config = ConfigDict(frozen=True)

    min_lon: float = Field(allow_inf_nan=False)
    min_lat: float = Field(allow_inf_nan=False)
    max_lon: float = Field(allow_inf_nan=False)
    max_lat: float = Field(allow_inf_nan=False)

    @classmethod
    def parse(cls, text: str) -> "BoundingBox | None":
        """Parse "minLon,minLat,maxLon,maxLat". Returns None when malformed."""
        parts = text.split(",")
        if len(parts) != 4:
            return None
        try:
            values = [float(p.strip()) for p in parts]
        except ValueError:
            return None
        if not all(math.isfinite(v) for v in values):
            return None
        min_lon, min_lat, max_lon, max_lat = values
        return cls(min_lon=min_lon, min_lat=min_lat, max_lon=max_lon, max_lat=max_lat)

    def longitude_bounds(self) -> tuple[float, float]:
        return (self.min_lon, self.max_lon)

    def latitude_bounds(self) -> tuple[float, float]:
        return (self.min_lat, self.max_lat)


class FilterRecord(BaseModel):
    """Typed, validated note search filters.

    mirrors the query-string contract: country, status, user_id, date_from,
    date_to, bbox, text, operator, page, limit. fields left out of the raw
    input get defaults; fields sent as empty strings fail validation.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    country: PositiveInt | None = None  # entity id - the note's country
    status: NoteStatus | None = None
    user_id: PositiveInt | None = None
    date_from: date | None = None
    date_to: date | None = None
    bbox: BoundingBox | None = None
    text: str | None = None
    operator: LogicalOperator = LogicalOperator.AND
    page: int = Field(default=DEFAULT_PAGE, ge=1, le=MAX_PAGE)
    limit: int = Field(default=DEFAULT_LIMIT, ge=1, le=MAX_LIMIT)

    @field_validator("date_from", "date_to", mode="before")
    @classmethod
    def _parse_dates(cls, value: Any) -> date | None:
        return parse_calendar_date(value)

    @field_validator("bbox", mode="before")
    @classmethod
    def _parse_bbox(cls, value: Any) -> Any:
        if isinstance(value, str):
            box = BoundingBox.parse(value)
            if box is None:
                raise ValueError("bbox must be in format: min_lon,min_lat,max_lon,max_lat")
            return box
        if isinstance(value, (list, tuple)):
            if len(value) != 4:
                raise ValueError("bbox must have exactly four numbers")
            return dict(zip(("min_lon", "min_lat", "max_lon", "max_lat"), value))
        return value

    @field_validator("text", mode="before")
    @classmethod
    def _clean_text(cls, value: Any) -> Any:
        if not isinstance(value, str):
            return value
        if len(value) > MAX_TEXT_LENGTH:
            raise ValueError(f"text must be at most {MAX_TEXT_LENGTH} characters")
        # blank text carries no condition
        return value.strip() or None

    @field_validator("operator", mode="before")
    @classmethod
    def _upper_operator(cls, value: Any) -> Any:
        return value.upper() if isinstance(value, str) else value

    @model_validator(mode="after")
    def _check_date_range(self) -> Self:
        if self.date_from and self.date_to and self.date_from > self.date_to:
            raise ValueError("date_from must be before or equal to date_to")
        return self

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    def active_filters(self) -> dict[str, Any]:
        """Filters that were actually set, as plain json-friendly values."""
        return self.model_dump(mode="json", exclude_none=True, exclude={"page", "limit"})


class RankingParams(BaseModel):
    """Parameters for user and country rankings.

    metric stays a plain string here - the allow-list decides whether it's
    usable, not the model.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    metric: str
    country: PositiveInt | None = None
    limit: int = Field(default=DEFAULT_RANKING_LIMIT, ge=1, le=MAX_LIMIT)
    order: SortOrder = SortOrder.DESC


class HashtagListParams(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    page: int = Field(default=DEFAULT_PAGE, ge=1, le=MAX_PAGE)
    limit: int = Field(default=DEFAULT_HASHTAG_LIMIT, ge=1, le=MAX_LIMIT)
    order: SortOrder = SortOrder.DESC

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


class TrendsParams(BaseModel):
    """Which trend series to load: one user, one country, or global."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    type: TrendScope
    user_id: PositiveInt | None = None
    country_id: PositiveInt | None = None

    @model_validator(mode="after")
    def _check_entity(self) -> Self:
        if self.type == TrendScope.USERS and self.user_id is None:
            raise ValueError('Missing "user_id" parameter for user trends.')
        if self.type == TrendScope.COUNTRIES and self.country_id is None:
            raise ValueError('Missing "country_id" parameter for country trends.')
        return self

    @property
    def entity_id(self) -> int | None:
        if self.type == TrendScope.USERS:
            return self.user_id
        if self.type == TrendScope.COUNTRIES:
            return self.country_id
        return None
