"""Activity trends per user, per country, or globally."""

import logging

from notelens.config import WarehouseLayout
from notelens.errors import NotFound
from notelens.executor.base import QueryExecutor, run_query
from notelens.models.filters import TrendScope, TrendsParams
from notelens.models.results import TrendsResult
from notelens.parser.rows import FieldSpec, normalize_row
from notelens.parser.trends import parse_trend_series, parse_working_hours
from notelens.services.boundary import log_statement, service_boundary

logger = logging.getLogger(__name__)

# scope -> (datamart, id column, name column, not-found message)
_SOURCES = {
    TrendScope.USERS: ("datamartUsers", "user_id", "username", "User not found"),
    TrendScope.COUNTRIES: ("datamartCountries", "country_id", "country_name", "Country not found"),
}

TREND_FIELDS = FieldSpec.build(required_ints=["entity_id"])


async def get_trends(
    executor: QueryExecutor, params: TrendsParams, layout: WarehouseLayout | None = None
) -> TrendsResult:
    """Load the year-by-year open/closed series for one scope.

    the json blobs are parsed leniently: a broken activity_by_year gives an
    empty series, not an error. a missing entity row is a NotFound though.
    """
    layout = layout or WarehouseLayout()

    if params.type == TrendScope.GLOBAL:
        sql = f"SELECT activity_by_year FROM {layout.datamart('datamartGlobal')} LIMIT 1"
        log_statement("global trends", sql, [])
        with service_boundary("getting trends", type=params.type.value):
            result = await run_query(executor, sql)
        if not result.data:
            raise NotFound("Global analytics not found")
        return TrendsResult(
            type=params.type, trends=parse_trend_series(result.data[0].get("activity_by_year"))
        )

    table, id_column, name_column, missing = _SOURCES[params.type]
    sql = (
        f"SELECT {id_column} AS entity_id, {name_column} AS entity_name, "
        "activity_by_year, working_hours_of_week_opening "
        f"FROM {layout.datamart(table)} WHERE {id_column} = $1"
    )
    bound = [params.entity_id]
    log_statement(f"{params.type.value} trends", sql, bound)

    with service_boundary("getting trends", type=params.type.value, entity_id=params.entity_id):
        result = await run_query(executor, sql, bound)
        if not result.data:
            raise NotFound(missing)
        row = normalize_row(result.data[0], TREND_FIELDS)

    return TrendsResult(
        type=params.type,
        entity_id=row["entity_id"],
        entity_name=row.get("entity_name"),
        trends=parse_trend_series(row.get("activity_by_year")),
        working_hours=parse_working_hours(row.get("working_hours_of_week_opening")),
    )
