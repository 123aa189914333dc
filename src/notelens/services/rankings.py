"""User and country rankings over the datamarts."""

import logging

from notelens.compiler.metrics import COUNTRY_RANKING_METRICS, USER_RANKING_METRICS
from notelens.compiler.sql_builder import build_ranking_query
from notelens.config import WarehouseLayout
from notelens.executor.base import QueryExecutor, run_query
from notelens.models.filters import RankingParams
from notelens.models.results import RankingEntry, RankingsResult
from notelens.parser.rows import FieldSpec, normalize_rows
from notelens.services.boundary import log_statement, service_boundary

logger = logging.getLogger(__name__)

RANKING_FIELDS = FieldSpec.build(required_ints=["id"], floats=["value"])


def _entries(rows: list[dict]) -> list[RankingEntry]:
    # rank is the row position - ties are not collapsed
    return [
        RankingEntry(
            rank=index + 1,
            id=row["id"],
            label=row.get("label") or None,
            value=float(row["value"]) if row.get("value") is not None else None,
        )
        for index, row in enumerate(rows)
    ]


async def get_user_rankings(
    executor: QueryExecutor, params: RankingParams, layout: WarehouseLayout | None = None
) -> RankingsResult:
    """Top users by one allow-listed metric, optionally within a country.

    Raises:
        InvalidMetric: If params.metric is not a user ranking metric.
    """
    layout = layout or WarehouseLayout()
    sql, bound = build_ranking_query(
        layout.datamart("datamartUsers"),
        "user_id",
        "username",
        USER_RANKING_METRICS,
        params.metric,
        params.order,
        params.limit,
        country=params.country,
    )
    log_statement("user rankings", sql, bound)

    with service_boundary("getting user rankings", metric=params.metric, country=params.country):
        result = await run_query(executor, sql, bound)
        rankings = _entries(normalize_rows(result.data, RANKING_FIELDS))

    return RankingsResult(
        metric=params.metric, order=params.order, country=params.country, rankings=rankings
    )


async def get_country_rankings(
    executor: QueryExecutor, params: RankingParams, layout: WarehouseLayout | None = None
) -> RankingsResult:
    """Top countries by one allow-listed metric. params.country is ignored."""
    layout = layout or WarehouseLayout()
    sql, bound = build_ranking_query(
        layout.datamart("datamartCountries"),
        "country_id",
        "country_name",
        COUNTRY_RANKING_METRICS,
        params.metric,
        params.order,
        params.limit,
    )
    log_statement("country rankings", sql, bound)

    with service_boundary("getting country rankings", metric=params.metric):
        result = await run_query(executor, sql, bound)
        rankings = _entries(normalize_rows(result.data, RANKING_FIELDS))

    return RankingsResult(metric=params.metric, order=params.order, rankings=rankings)
