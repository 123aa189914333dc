"""Tests for Pydantic models and the pagination helpers."""

from datetime import date, datetime

import pytest
from pydantic import ValidationError

from notelens.models.filters import BoundingBox, FilterRecord, parse_calendar_date
from notelens.models.query import QueryResult
from notelens.models.results import (
    Pagination,
    RankingEntry,
    SearchResult,
    TrendPoint,
    TrendsResult,
)
from notelens.pagination import page_links, paginate, pagination_headers
from notelens.parser.filters import normalize_filters


class TestFilterRecord:
    def test_frozen(self):
        filters = FilterRecord()
        with pytest.raises(ValidationError):
            filters.limit = 50

    def test_offset(self):
        assert FilterRecord(page=3, limit=25).offset == 50

    def test_active_filters(self):
        filters = normalize_filters(
            {"status": "open", "date_from": "2024-01-01", "page": "2", "limit": "5"}
        )
        assert filters.active_filters() == {
            "status": "open",
            "date_from": "2024-01-01",
            "operator": "AND",
        }

    def test_active_filters_bbox(self):
        filters = normalize_filters({"bbox": "-4,40,-3,41"})
        assert filters.active_filters()["bbox"] == {
            "min_lon": -4.0,
            "min_lat": 40.0,
            "max_lon": -3.0,
            "max_lat": 41.0,
        }

    def test_bbox_from_sequence(self):
        filters = FilterRecord(bbox=[-4, 40, -3, 41])
        assert filters.bbox.max_lat == 41.0
        with pytest.raises(ValidationError):
            FilterRecord(bbox=[1, 2, 3])


class TestBoundingBox:
    def test_parse(self):
        box = BoundingBox.parse("-4,40,-3,41")
        assert box == BoundingBox(min_lon=-4, min_lat=40, max_lon=-3, max_lat=41)

    def test_parse_malformed(self):
        assert BoundingBox.parse("") is None
        assert BoundingBox.parse("1,2,3") is None
        assert BoundingBox.parse("1,2,x,4") is None

    def test_non_finite_rejected(self):
        with pytest.raises(ValidationError):
            BoundingBox(min_lon=float("inf"), min_lat=0, max_lon=1, max_lat=1)


class TestCalendarDate:
    def test_passthrough(self):
        assert parse_calendar_date(None) is None
        assert parse_calendar_date(date(2024, 1, 2)) == date(2024, 1, 2)
        assert parse_calendar_date(datetime(2024, 1, 2, 5)) == date(2024, 1, 2)

    def test_strict_format(self):
        assert parse_calendar_date("2024-01-02") == date(2024, 1, 2)
        with pytest.raises(ValueError, match="YYYY-MM-DD"):
            parse_calendar_date("2024-1-2")
        with pytest.raises(ValueError, match="calendar date"):
            parse_calendar_date("2023-02-29")


class TestResultModels:
    def test_search_result_shape(self):
        result = SearchResult(
            data=[{"note_id": 1}],
            pagination=Pagination(page=1, limit=20, total=1, total_pages=1),
        )
        dumped = result.model_dump()
        assert set(dumped) == {"data", "pagination", "filters"}
        assert dumped["pagination"]["total_pages"] == 1

    def test_ranking_entry_allows_null_value(self):
        entry = RankingEntry(rank=3, id=7, label=None, value=None)
        assert entry.value is None

    def test_trend_counts_non_negative(self):
        with pytest.raises(ValidationError):
            TrendPoint(year="2024", open=-1, closed=0)

    def test_trends_result_json(self):
        result = TrendsResult(
            type="users", entity_id=1, trends=[TrendPoint(year="2024", open=1, closed=0)]
        )
        assert result.model_dump(mode="json")["type"] == "users"

    def test_query_result(self):
        result = QueryResult(
            sql="SELECT 1 AS x",
            columns=["x"],
            data=[{"x": 1}],
            row_count=1,
            execution_time_ms=0.5,
        )
        assert result.params == []


class TestPaginate:
    @pytest.mark.parametrize(
        "total, limit, pages",
        [(0, 20, 0), (1, 20, 1), (20, 20, 1), (21, 20, 2), (25, 10, 3)],
    )
    def test_total_pages(self, total, limit, pages):
        assert paginate(total, 1, limit).total_pages == pages

    def test_page_past_the_end_is_kept(self):
        pagination = paginate(5, 9, 10)
        assert pagination.page == 9
        assert pagination.total_pages == 1

    def test_invalid_inputs(self):
        with pytest.raises(ValueError):
            paginate(10, 1, 0)
        with pytest.raises(ValueError):
            paginate(-1, 1, 10)


class TestPageLinks:
    def test_middle_page(self):
        pagination = Pagination(page=2, limit=10, total=25, total_pages=3)
        links = page_links(
            pagination, "/api/v1/notes", {"status": "open", "page": 2, "country": None}
        )
        assert list(links) == ["first", "prev", "next", "last"]
        assert links["first"] == "/api/v1/notes?status=open&page=1&limit=10"
        assert links["next"] == "/api/v1/notes?status=open&page=3&limit=10"

    def test_default_limit_left_out(self):
        pagination = Pagination(page=1, limit=20, total=50, total_pages=3)
        links = page_links(pagination, "/notes")
        assert links == {"next": "/notes?page=2", "last": "/notes?page=3"}

    def test_single_page(self):
        assert page_links(Pagination(page=1, limit=20, total=3, total_pages=1), "/n") == {}
        assert page_links(Pagination(page=1, limit=20, total=0, total_pages=0), "/n") == {}

    def test_headers(self):
        pagination = Pagination(page=1, limit=20, total=45, total_pages=3)
        headers = pagination_headers(pagination, "/notes")
        assert headers["X-Total-Count"] == "45"
        assert headers["X-Total-Pages"] == "3"
        assert '</notes?page=2>; rel="next"' in headers["Link"]

    def test_headers_without_links(self):
        headers = pagination_headers(Pagination(page=1, limit=20, total=0, total_pages=0), "/n")
        assert "Link" not in headers
