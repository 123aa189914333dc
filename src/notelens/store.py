"""Main AnalyticsStore interface for notelens.

the services are async and take typed parameters. the store is the
synchronous, loosely-typed front door: it owns the settings and the
executor, normalizes raw query-string style input, and runs each service
call to completion.
"""

import asyncio
from collections.abc import Coroutine, Iterable, Mapping
from typing import Any, TypeVar

from notelens.compiler.sql_builder import NoteQueries, NoteQueryBuilder, format_sql
from notelens.config import Settings, get_settings
from notelens.executor.base import QueryExecutor
from notelens.executor.duckdb_executor import DuckDBExecutor
from notelens.models.filters import FilterRecord
from notelens.models.results import (
    ComparisonResult,
    HashtagDetails,
    RankingsResult,
    SearchResult,
    TrendsResult,
)
from notelens.parser.filters import (
    normalize_filters,
    normalize_hashtag_params,
    normalize_ranking_params,
    normalize_trends_params,
)
from notelens.services import entities, hashtags, notes, rankings, trends

T = TypeVar("T")

# tables a usable warehouse has to provide, (layout attribute, table name)
REQUIRED_TABLES = (
    ("notes_schema", "notes"),
    ("notes_schema", "note_comments"),
    ("notes_schema", "users"),
    ("dwh_schema", "datamartUsers"),
    ("dwh_schema", "datamartCountries"),
    ("dwh_schema", "datamartGlobal"),
)


def _merge(raw: Mapping[str, Any] | None, extra: Mapping[str, Any]) -> dict[str, Any]:
    # None means "not given", same as a missing query key
    merged = {key: value for key, value in (raw or {}).items() if value is not None}
    merged.update({key: value for key, value in extra.items() if value is not None})
    return merged


class AnalyticsStore:
    """Main interface for notelens."""

    def __init__(
        self,
        settings: Settings | None = None,
        executor: QueryExecutor | None = None,
    ) -> None:
        """Initialize the store.

        Args:
            settings: Runtime settings; the cached process settings if omitted.
            executor: Query executor to use. If omitted a DuckDBExecutor is
                opened on settings.database_path and closed with the store.
        """
        self.settings = settings or get_settings()
        self.layout = self.settings.layout
        self._owns_executor = executor is None
        self.executor = executor or DuckDBExecutor(self.settings.database_path)

    def _run(self, coro: Coroutine[Any, Any, T]) -> T:
        return asyncio.run(coro)

    def filters(
        self, raw: Mapping[str, Any] | FilterRecord | None = None, **kwargs: Any
    ) -> FilterRecord:
        """Normalize raw filters with this store's bbox policy."""
        if isinstance(raw, FilterRecord) and not kwargs:
            return raw
        data = dict(raw) if isinstance(raw, FilterRecord) else raw
        return normalize_filters(_merge(data, kwargs), lenient_bbox=self.settings.lenient_bbox)

    # notes

    def search_notes(
        self, raw: Mapping[str, Any] | FilterRecord | None = None, **kwargs: Any
    ) -> SearchResult:
        """Search notes. Accepts a query-string style mapping and/or keywords.

        Example:
            store.search_notes(status="open", country=42, page=2, limit=10)
        """
        filters = self.filters(raw, **kwargs)
        return self._run(
            notes.search_notes(self.executor, filters, self.layout, self.settings.or_text_mode)
        )

    def get_note(self, note_id: int) -> dict[str, Any]:
        return self._run(notes.get_note(self.executor, note_id, self.layout))

    def get_note_comments(self, note_id: int) -> list[dict[str, Any]]:
        return self._run(notes.get_note_comments(self.executor, note_id, self.layout))

    def get_sql(
        self,
        raw: Mapping[str, Any] | FilterRecord | None = None,
        pretty: bool = True,
        **kwargs: Any,
    ) -> NoteQueries:
        """Get the note search statements without executing them."""
        filters = self.filters(raw, **kwargs)
        queries = NoteQueryBuilder(self.layout, self.settings.or_text_mode).build(filters)
        if pretty:
            queries.data_sql = format_sql(queries.data_sql)
            queries.count_sql = format_sql(queries.count_sql)
        return queries

    # rankings

    def user_rankings(self, raw: Mapping[str, Any] | None = None, **kwargs: Any) -> RankingsResult:
        params = normalize_ranking_params(_merge(raw, kwargs))
        return self._run(rankings.get_user_rankings(self.executor, params, self.layout))

    def country_rankings(
        self, raw: Mapping[str, Any] | None = None, **kwargs: Any
    ) -> RankingsResult:
        params = normalize_ranking_params(_merge(raw, kwargs))
        return self._run(rankings.get_country_rankings(self.executor, params, self.layout))

    # hashtags and trends

    def list_hashtags(self, raw: Mapping[str, Any] | None = None, **kwargs: Any) -> SearchResult:
        params = normalize_hashtag_params(_merge(raw, kwargs))
        return self._run(hashtags.list_hashtags(self.executor, params, self.layout))

    def hashtag_details(self, hashtag: str) -> HashtagDetails:
        return self._run(hashtags.get_hashtag_details(self.executor, hashtag, self.layout))

    def trends(self, raw: Mapping[str, Any] | None = None, **kwargs: Any) -> TrendsResult:
        params = normalize_trends_params(_merge(raw, kwargs))
        return self._run(trends.get_trends(self.executor, params, self.layout))

    # entities

    def user_profile(self, user_id: int) -> dict[str, Any]:
        return self._run(entities.get_user_profile(self.executor, user_id, self.layout))

    def country_profile(self, country_id: int) -> dict[str, Any]:
        return self._run(entities.get_country_profile(self.executor, country_id, self.layout))

    def global_analytics(self) -> dict[str, Any]:
        return self._run(entities.get_global_analytics(self.executor, self.layout))

    def search_users(self, query: str) -> list[dict[str, Any]]:
        return self._run(entities.search_users(self.executor, query, self.layout))

    def search_countries(self, query: str) -> list[dict[str, Any]]:
        return self._run(entities.search_countries(self.executor, query, self.layout))

    def compare_users(self, ids: str | Iterable[Any]) -> ComparisonResult:
        return self._run(entities.compare_users(self.executor, ids, self.layout))

    def compare_countries(self, ids: str | Iterable[Any]) -> ComparisonResult:
        return self._run(entities.compare_countries(self.executor, ids, self.layout))

    def validate(self) -> list[str]:
        """Check the warehouse has every table we query. Returns list of errors."""
        if not isinstance(self.executor, DuckDBExecutor):
            return []

        errors = []
        for attribute, table in REQUIRED_TABLES:
            schema = getattr(self.layout, attribute)
            if not self.executor.table_exists(schema, table):
                errors.append(f"Missing table {schema}.{table}")
        return errors

    def close(self) -> None:
        """Close the executor if the store opened it."""
        if self._owns_executor and isinstance(self.executor, DuckDBExecutor):
            self.executor.close()

    def __enter__(self) -> "AnalyticsStore":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
