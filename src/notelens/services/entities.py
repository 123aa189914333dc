"""User and country profiles, global analytics, search and comparison.

everything here reads one datamart row (or a handful of them) and passes it
through the row normalizer - the datamarts are wide, precomputed tables, so
there's no query building beyond picking columns and binding ids.
"""

import logging
from collections.abc import Iterable
from typing import Any

from notelens.compiler.predicates import text_pattern
from notelens.config import WarehouseLayout
from notelens.errors import InvalidFilter, NotFound
from notelens.executor.base import QueryExecutor, run_query
from notelens.models.filters import TrendScope
from notelens.models.results import ComparisonResult
from notelens.parser.filters import normalize_comparison_ids
from notelens.parser.rows import FieldSpec, normalize_row, normalize_rows
from notelens.services.boundary import log_statement, service_boundary

logger = logging.getLogger(__name__)

SEARCH_LIMIT = 50

USER_PROFILE_COLUMNS = (
    "dimension_user_id",
    "user_id",
    "username",
    "history_whole_open",
    "history_whole_closed",
    "history_whole_commented",
    "avg_days_to_resolution",
    "resolution_rate",
    "user_response_time",
    "days_since_last_action",
    "applications_used",
    "collaboration_patterns",
    "countries_open_notes",
    "hashtags",
    "date_starting_creating_notes",
    "date_starting_solving_notes",
    "last_year_activity",
    "working_hours_of_week_opening",
    "activity_by_year",
)

COUNTRY_PROFILE_COLUMNS = (
    "dimension_country_id",
    "country_id",
    "country_name",
    "country_name_en",
    "country_name_es",
    "iso_alpha2",
    "history_whole_open",
    "history_whole_closed",
    "avg_days_to_resolution",
    "resolution_rate",
    "notes_health_score",
    "new_vs_resolved_ratio",
    "notes_backlog_size",
    "notes_created_last_30_days",
    "notes_resolved_last_30_days",
    "users_open_notes",
    "applications_used",
    "hashtags",
    "activity_by_year",
    "working_hours_of_week_opening",
)

GLOBAL_COLUMNS = (
    "dimension_global_id",
    "history_whole_open",
    "history_whole_closed",
    "currently_open_count",
    "avg_days_to_resolution",
    "resolution_rate",
    "notes_created_last_30_days",
    "notes_resolved_last_30_days",
    "active_users_count",
    "notes_backlog_size",
    "applications_used",
    "top_countries",
)

USER_COMPARISON_COLUMNS = (
    "user_id",
    "username",
    "history_whole_open",
    "history_whole_closed",
    "history_whole_commented",
    "avg_days_to_resolution",
    "resolution_rate",
    "user_response_time",
)

COUNTRY_COMPARISON_COLUMNS = (
    "country_id",
    "country_name",
    "country_name_en",
    "country_name_es",
    "iso_alpha2",
    "history_whole_open",
    "history_whole_closed",
    "avg_days_to_resolution",
    "resolution_rate",
    "notes_health_score",
    "new_vs_resolved_ratio",
    "notes_backlog_size",
    "notes_created_last_30_days",
    "notes_resolved_last_30_days",
)

USER_FIELDS = FieldSpec.build(
    required_ints=["user_id"],
    ints=[
        "dimension_user_id",
        "history_whole_open",
        "history_whole_closed",
        "history_whole_commented",
        "days_since_last_action",
    ],
    floats=["avg_days_to_resolution", "resolution_rate", "user_response_time"],
    json_fields=[
        "applications_used",
        "collaboration_patterns",
        "countries_open_notes",
        "working_hours_of_week_opening",
        "activity_by_year",
    ],
)

COUNTRY_FIELDS = FieldSpec.build(
    required_ints=["country_id"],
    ints=[
        "dimension_country_id",
        "history_whole_open",
        "history_whole_closed",
        "notes_backlog_size",
        "notes_created_last_30_days",
        "notes_resolved_last_30_days",
    ],
    floats=[
        "avg_days_to_resolution",
        "resolution_rate",
        "notes_health_score",
        "new_vs_resolved_ratio",
    ],
    json_fields=[
        "users_open_notes",
        "applications_used",
        "activity_by_year",
        "working_hours_of_week_opening",
    ],
)

GLOBAL_FIELDS = FieldSpec.build(
    ints=[
        "dimension_global_id",
        "history_whole_open",
        "history_whole_closed",
        "currently_open_count",
        "notes_created_last_30_days",
        "notes_resolved_last_30_days",
        "active_users_count",
        "notes_backlog_size",
    ],
    floats=["avg_days_to_resolution", "resolution_rate"],
    json_fields=["applications_used", "top_countries"],
)


def _select(columns: Iterable[str], source: str) -> str:
    return f"SELECT {', '.join(columns)} FROM {source}"


async def _fetch_one(
    executor: QueryExecutor,
    sql: str,
    params: list[Any],
    spec: FieldSpec,
    operation: str,
    missing: str,
    **context: Any,
) -> dict[str, Any]:
    log_statement(operation, sql, params)
    with service_boundary(operation, **context):
        result = await run_query(executor, sql, params)
        if not result.data:
            logger.info("%s (%s)", missing, context or "no context")
            raise NotFound(missing)
        return normalize_row(result.data[0], spec)


async def get_user_profile(
    executor: QueryExecutor, user_id: int, layout: WarehouseLayout | None = None
) -> dict[str, Any]:
    layout = layout or WarehouseLayout()
    sql = _select(USER_PROFILE_COLUMNS, layout.datamart("datamartUsers")) + " WHERE user_id = $1"
    return await _fetch_one(
        executor,
        sql,
        [user_id],
        USER_FIELDS,
        "getting user profile",
        "User not found",
        user_id=user_id,
    )


async def get_country_profile(
    executor: QueryExecutor, country_id: int, layout: WarehouseLayout | None = None
) -> dict[str, Any]:
    layout = layout or WarehouseLayout()
    sql = (
        _select(COUNTRY_PROFILE_COLUMNS, layout.datamart("datamartCountries"))
        + " WHERE country_id = $1"
    )
    return await _fetch_one(
        executor,
        sql,
        [country_id],
        COUNTRY_FIELDS,
        "getting country profile",
        "Country not found",
        country_id=country_id,
    )


async def get_global_analytics(
    executor: QueryExecutor, layout: WarehouseLayout | None = None
) -> dict[str, Any]:
    """The single row of the global datamart."""
    layout = layout or WarehouseLayout()
    sql = _select(GLOBAL_COLUMNS, layout.datamart("datamartGlobal")) + " LIMIT 1"
    return await _fetch_one(
        executor, sql, [], GLOBAL_FIELDS, "getting global analytics", "Global analytics not found"
    )


def _search_term(query: str) -> tuple[bool, str]:
    """Split a search box value into (is_id_lookup, cleaned text)."""
    text = query.strip() if isinstance(query, str) else ""
    if not text:
        raise InvalidFilter("Search query is required")
    return text.isascii() and text.isdigit(), text


async def search_users(
    executor: QueryExecutor, query: str, layout: WarehouseLayout | None = None
) -> list[dict[str, Any]]:
    """Find users by id (all-digit query) or username substring."""
    layout = layout or WarehouseLayout()
    by_id, text = _search_term(query)
    columns = ("user_id", "username", "history_whole_open", "history_whole_closed")
    base = _select(columns, layout.datamart("datamartUsers"))
    if by_id:
        sql = f"{base} WHERE user_id = $1 ORDER BY user_id LIMIT {SEARCH_LIMIT}"
        params: list[Any] = [int(text)]
    else:
        sql = (
            f"{base} WHERE username ILIKE $1 ESCAPE '\\' "
            f"ORDER BY username, user_id LIMIT {SEARCH_LIMIT}"
        )
        params = [text_pattern(text)]
    log_statement("search users", sql, params)

    with service_boundary("searching users", query=text):
        result = await run_query(executor, sql, params)
        return normalize_rows(result.data, USER_FIELDS)


async def search_countries(
    executor: QueryExecutor, query: str, layout: WarehouseLayout | None = None
) -> list[dict[str, Any]]:
    """Find countries by id, or by name in any language or ISO code."""
    layout = layout or WarehouseLayout()
    by_id, text = _search_term(query)
    columns = (
        "country_id",
        "country_name",
        "country_name_en",
        "country_name_es",
        "iso_alpha2",
        "history_whole_open",
        "history_whole_closed",
    )
    base = _select(columns, layout.datamart("datamartCountries"))
    if by_id:
        sql = f"{base} WHERE country_id = $1 ORDER BY country_id LIMIT {SEARCH_LIMIT}"
        params: list[Any] = [int(text)]
    else:
        matches = " OR ".join(
            f"{column} ILIKE $1 ESCAPE '\\'"
            for column in ("country_name", "country_name_en", "country_name_es", "iso_alpha2")
        )
        sql = f"{base} WHERE {matches} ORDER BY country_name, country_id LIMIT {SEARCH_LIMIT}"
        params = [text_pattern(text)]
    log_statement("search countries", sql, params)

    with service_boundary("searching countries", query=text):
        result = await run_query(executor, sql, params)
        return normalize_rows(result.data, COUNTRY_FIELDS)


async def _compare(
    executor: QueryExecutor,
    scope: TrendScope,
    ids: list[int],
    columns: tuple[str, ...],
    source: str,
    id_column: str,
    spec: FieldSpec,
) -> ComparisonResult:
    placeholders = ", ".join(f"${i}" for i in range(1, len(ids) + 1))
    sql = f"{_select(columns, source)} WHERE {id_column} IN ({placeholders}) ORDER BY {id_column}"
    log_statement(f"compare {scope.value}", sql, ids)

    with service_boundary(f"comparing {scope.value}", ids=ids):
        result = await run_query(executor, sql, ids)
        return ComparisonResult(type=scope, entities=normalize_rows(result.data, spec))


async def compare_users(
    executor: QueryExecutor, ids: str | Iterable[Any], layout: WarehouseLayout | None = None
) -> ComparisonResult:
    """Side-by-side metrics for 1..10 users ("1,2,3" or an iterable of ids).

    unknown ids are simply absent from the result.
    """
    layout = layout or WarehouseLayout()
    return await _compare(
        executor,
        TrendScope.USERS,
        normalize_comparison_ids(ids),
        USER_COMPARISON_COLUMNS,
        layout.datamart("datamartUsers"),
        "user_id",
        USER_FIELDS,
    )


async def compare_countries(
    executor: QueryExecutor, ids: str | Iterable[Any], layout: WarehouseLayout | None = None
) -> ComparisonResult:
    layout = layout or WarehouseLayout()
    return await _compare(
        executor,
        TrendScope.COUNTRIES,
        normalize_comparison_ids(ids),
        COUNTRY_COMPARISON_COLUMNS,
        layout.datamart("datamartCountries"),
        "country_id",
        COUNTRY_FIELDS,
    )
