"""SQL assembly for note search and rankings.

the predicate compiler produces where clauses; this module wraps them into
full statements. the basic flow for a note search:
  1. compile the filters twice - JOIN text strategy for data, EXISTS for count
  2. wrap each where clause in its select
  3. bind limit/offset onto the data query's last two indices

generated sql is executed as-is. sqlglot is only used to pretty-print it for
humans (show-sql, debug logs).
"""

import logging
from dataclasses import dataclass, field
from typing import Any

import sqlglot

from notelens.compiler.metrics import MetricAllowlist, resolve_direction
from notelens.compiler.predicates import TextStrategy, compile_predicates, derive_count
from notelens.config import WarehouseLayout
from notelens.models.filters import FilterRecord, OrTextMode, SortOrder

logger = logging.getLogger(__name__)

NOTE_COLUMNS = (
    "n.note_id",
    "n.latitude",
    "n.longitude",
    "n.status",
    "n.created_at",
    "n.closed_at",
    "n.id_user",
    "n.id_country",
)


@dataclass
class NoteQueries:
    """The data and count statements for one note search."""

    data_sql: str
    data_params: list[Any] = field(default_factory=list)
    count_sql: str = ""
    count_params: list[Any] = field(default_factory=list)


class NoteQueryBuilder:
    """Builds note search statements from a FilterRecord.

    stateless apart from the layout and the OR/text policy - every build()
    compiles fresh predicates, nothing carries over between calls.
    """

    def __init__(
        self,
        layout: WarehouseLayout | None = None,
        or_text_mode: OrTextMode = OrTextMode.ANCHORED,
    ) -> None:
        self.layout = layout or WarehouseLayout()
        self.or_text_mode = or_text_mode

    def build(self, filters: FilterRecord) -> NoteQueries:
        data_sql, data_params = self.build_data(filters)
        count_sql, count_params = self.build_count(filters)
        return NoteQueries(data_sql, data_params, count_sql, count_params)

    def build_data(self, filters: FilterRecord) -> tuple[str, list[Any]]:
        """Paginated data query.

        the text join can fan out one note into several rows, DISTINCT plus
        the GROUP BY on the note identity fold them back into one.
        """
        compiled = compile_predicates(
            filters, self.layout, TextStrategy.JOIN, self.or_text_mode
        )
        limit_token = f"${compiled.next_index}"
        offset_token = f"${compiled.next_index + 1}"

        parts = [
            f"SELECT DISTINCT {', '.join(NOTE_COLUMNS)}, "
            "COUNT(DISTINCT nc.comment_id) AS comments_count",
            f"FROM {self.layout.table('notes')} n",
            f"LEFT JOIN {self.layout.table('note_comments')} nc ON n.note_id = nc.note_id",
            *compiled.join_clauses,
        ]
        if compiled.where_clause:
            parts.append(compiled.where_clause)
        parts.append(f"GROUP BY {', '.join(NOTE_COLUMNS)}")
        # note_id breaks created_at ties so pages never overlap
        parts.append("ORDER BY n.created_at DESC, n.note_id DESC")
        parts.append(f"LIMIT {limit_token} OFFSET {offset_token}")

        return "\n".join(parts), [*compiled.params, filters.limit, filters.offset]

    def build_count(self, filters: FilterRecord) -> tuple[str, list[Any]]:
        """Total-matches query over the same predicates, no pagination."""
        compiled = derive_count(filters, self.layout, self.or_text_mode)
        parts = [
            "SELECT COUNT(DISTINCT n.note_id) AS total",
            f"FROM {self.layout.table('notes')} n",
        ]
        if compiled.where_clause:
            parts.append(compiled.where_clause)
        return "\n".join(parts), compiled.params

    def note_by_id(self) -> str:
        """Single-note lookup with its comment count, bound to $1."""
        return "\n".join(
            [
                f"SELECT {', '.join(NOTE_COLUMNS)}, "
                "COUNT(DISTINCT nc.comment_id) AS comments_count",
                f"FROM {self.layout.table('notes')} n",
                f"LEFT JOIN {self.layout.table('note_comments')} nc ON n.note_id = nc.note_id",
                "WHERE n.note_id = $1",
                f"GROUP BY {', '.join(NOTE_COLUMNS)}",
            ]
        )


def build_ranking_query(
    source: str,
    id_column: str,
    label_column: str,
    allowlist: MetricAllowlist,
    metric: str,
    order: SortOrder | str,
    limit: int,
    country: int | None = None,
) -> tuple[str, list[Any]]:
    """Ranking statement for one datamart.

    metric and order are resolved through their fixed tables before any sql
    text exists - an unknown metric never gets this far. the country filter
    is optional and only makes sense for per-user datamarts.
    """
    column = allowlist.resolve(metric)
    direction = resolve_direction(order)

    params: list[Any] = []
    where = ""
    if country is not None:
        params.append(country)
        where = f"WHERE country_id = ${len(params)}"
    params.append(limit)

    parts = [
        f"SELECT {id_column} AS id, {label_column} AS label, {column} AS value",
        f"FROM {source}",
    ]
    if where:
        parts.append(where)
    parts.append(f"ORDER BY {column} {direction} NULLS LAST, {id_column} ASC")
    parts.append(f"LIMIT ${len(params)}")
    return "\n".join(parts), params


def format_sql(sql: str, dialect: str = "duckdb") -> str:
    """Format SQL using SQLGlot.

    if sqlglot can't parse what we generated we still want to show
    something, so this falls back to the raw text.
    """
    try:
        parsed = sqlglot.parse_one(sql, dialect=dialect)
        return parsed.sql(dialect=dialect, pretty=True)
    except Exception:
        logger.debug("sqlglot could not format statement, showing it raw")
        return sql
