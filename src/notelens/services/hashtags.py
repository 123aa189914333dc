"""Hashtag usage across the user and country datamarts.

hashtags live as VARCHAR[] columns on both datamarts. a hashtag's count is
the number of datamart rows (users plus countries) that list it.
"""

import logging

from notelens.compiler.metrics import resolve_direction
from notelens.config import WarehouseLayout
from notelens.errors import InvalidFilter
from notelens.executor.base import QueryExecutor, run_concurrently
from notelens.models.filters import HashtagListParams
from notelens.models.results import HashtagDetails, HashtagEntry, SearchResult
from notelens.pagination import paginate
from notelens.parser.rows import FieldSpec, coerce_count, normalize_rows
from notelens.services.boundary import log_statement, service_boundary

logger = logging.getLogger(__name__)

# users/countries listed per hashtag in the details view
DETAILS_LIMIT = 50

HASHTAG_FIELDS = FieldSpec.build(required_ints=["count"])
HASHTAG_USER_FIELDS = FieldSpec.build(
    required_ints=["user_id"], ints=["history_whole_open", "history_whole_closed"]
)
HASHTAG_COUNTRY_FIELDS = FieldSpec.build(
    required_ints=["country_id"], ints=["history_whole_open", "history_whole_closed"]
)


def _all_hashtags(layout: WarehouseLayout) -> str:
    return (
        "WITH all_hashtags AS ("
        f"SELECT unnest(hashtags) AS hashtag FROM {layout.datamart('datamartUsers')} "
        "WHERE hashtags IS NOT NULL "
        "UNION ALL "
        f"SELECT unnest(hashtags) AS hashtag FROM {layout.datamart('datamartCountries')} "
        "WHERE hashtags IS NOT NULL)"
    )


async def list_hashtags(
    executor: QueryExecutor,
    params: HashtagListParams | None = None,
    layout: WarehouseLayout | None = None,
) -> SearchResult:
    """Paginated hashtag usage counts, most used first by default.

    ties are always broken by hashtag name ascending, whatever the order.
    """
    params = params or HashtagListParams()
    layout = layout or WarehouseLayout()
    direction = resolve_direction(params.order)

    data_sql = "\n".join(
        [
            _all_hashtags(layout),
            'SELECT hashtag, COUNT(*) AS "count"',
            "FROM all_hashtags",
            "WHERE hashtag IS NOT NULL AND hashtag <> ''",
            "GROUP BY hashtag",
            f'ORDER BY "count" {direction}, hashtag ASC',
            "LIMIT $1 OFFSET $2",
        ]
    )
    data_params = [params.limit, params.offset]
    count_sql = "\n".join(
        [
            _all_hashtags(layout),
            "SELECT COUNT(DISTINCT hashtag) AS total",
            "FROM all_hashtags",
            "WHERE hashtag IS NOT NULL AND hashtag <> ''",
        ]
    )
    log_statement("list hashtags", data_sql, data_params)

    with service_boundary("listing hashtags", page=params.page, limit=params.limit):
        data, count = await run_concurrently(
            executor, (data_sql, data_params), (count_sql, [])
        )
        rows = normalize_rows(data.data, HASHTAG_FIELDS)
        total = coerce_count(count.data)

    entries = [HashtagEntry(hashtag=row["hashtag"], count=row["count"]) for row in rows]
    return SearchResult(
        data=[entry.model_dump() for entry in entries],
        pagination=paginate(total, params.page, params.limit),
    )


async def get_hashtag_details(
    executor: QueryExecutor, hashtag: str, layout: WarehouseLayout | None = None
) -> HashtagDetails:
    """Users and countries using a hashtag, plus how many of each.

    an unused hashtag isn't an error - it just has zero of everything.
    """
    tag = hashtag.strip()
    if not tag:
        raise InvalidFilter("Hashtag is required")
    layout = layout or WarehouseLayout()
    users = layout.datamart("datamartUsers")
    countries = layout.datamart("datamartCountries")
    match = "WHERE hashtags IS NOT NULL AND list_contains(hashtags, $1)"

    statements = [
        (
            "SELECT user_id, username, history_whole_open, history_whole_closed "
            f"FROM {users} {match} "
            f"ORDER BY history_whole_open DESC NULLS LAST, user_id ASC LIMIT {DETAILS_LIMIT}",
            [tag],
        ),
        (
            "SELECT country_id, country_name, history_whole_open, history_whole_closed "
            f"FROM {countries} {match} "
            f"ORDER BY history_whole_open DESC NULLS LAST, country_id ASC LIMIT {DETAILS_LIMIT}",
            [tag],
        ),
        (f"SELECT COUNT(*) AS total FROM {users} {match}", [tag]),
        (f"SELECT COUNT(*) AS total FROM {countries} {match}", [tag]),
    ]
    for sql, bound in statements:
        log_statement("hashtag details", sql, bound)

    with service_boundary("getting hashtag details", hashtag=tag):
        user_rows, country_rows, user_count, country_count = await run_concurrently(
            executor, *statements
        )
        return HashtagDetails(
            hashtag=tag,
            users_count=coerce_count(user_count.data),
            countries_count=coerce_count(country_count.data),
            users=normalize_rows(user_rows.data, HASHTAG_USER_FIELDS),
            countries=normalize_rows(country_rows.data, HASHTAG_COUNTRY_FIELDS),
        )
