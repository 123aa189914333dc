"""Filter-to-predicate compiler.

turns a FilterRecord into positional-parameter sql fragments. both the data
query and the count query come out of the same builder - the only knob that
differs between them is how free-text search reaches the comments table:

  JOIN    data query. joins the comments relation and matches on the joined
          alias; SELECT DISTINCT + GROUP BY on the note identity soaks up the
          fan-out when a note has several matching comments.
  EXISTS  count query. a correlated existence check, so a note with five
          matching comments is still counted once.

parameter indices are handed out strictly in append order ($1, $2, ...), and
the next free index is returned so the caller can bind limit/offset last.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date, timedelta
from enum import Enum
from typing import Any

from notelens.config import WarehouseLayout
from notelens.errors import InvalidFilter
from notelens.models.filters import FilterRecord, LogicalOperator, OrTextMode
from notelens.parser.filters import normalize_filters


class TextStrategy(str, Enum):
    JOIN = "join"
    EXISTS = "exists"


SEARCH_ALIAS = "nc_search"
COUNT_ALIAS = "nc_count"


@dataclass(frozen=True)
class Predicate:
    """One bound condition contributed by a single filter."""

    sql: str
    values: tuple[Any, ...]
    is_text: bool = False


@dataclass
class PredicateSet:
    """Ordered predicates plus the running parameter index.

    owned by one compile call - never reuse an instance across queries, the
    index bookkeeping assumes a single statement.
    """

    predicates: list[Predicate] = field(default_factory=list)
    next_index: int = 1

    def append(self, template: str, *values: Any, is_text: bool = False) -> Predicate:
        """Add a fragment, filling each {} in template with the next $n."""
        tokens = [f"${self.next_index + i}" for i in range(len(values))]
        predicate = Predicate(template.format(*tokens), tuple(values), is_text)
        self.predicates.append(predicate)
        self.next_index += len(values)
        return predicate

    def reserve(self, *values: Any) -> list[str]:
        """Claim placeholders for non-filter values (limit, offset)."""
        tokens = [f"${self.next_index + i}" for i in range(len(values))]
        self.next_index += len(values)
        return tokens

    @property
    def params(self) -> list[Any]:
        return [value for predicate in self.predicates for value in predicate.values]

    def combine(self, operator: LogicalOperator, or_text_mode: OrTextMode) -> str:
        """Join the fragments with the outer operator.

        under OR in anchored mode the text condition is pulled out of the
        disjunction and ANDed onto the whole thing.
        """
        if operator == LogicalOperator.OR and or_text_mode == OrTextMode.ANCHORED:
            plain = [p.sql for p in self.predicates if not p.is_text]
            text = [p.sql for p in self.predicates if p.is_text]
            if plain and text:
                return f"({' OR '.join(plain)}) AND {' AND '.join(text)}"
            return " OR ".join(plain) if plain else " AND ".join(text)

        return f" {operator.value} ".join(p.sql for p in self.predicates)


@dataclass
class CompiledPredicates:
    """Output of a compile: where clause, bound params, required joins."""

    where_clause: str
    params: list[Any]
    join_clauses: list[str]
    next_index: int
    predicates: list[Predicate] = field(default_factory=list)


def escape_like(text: str) -> str:
    """Escape LIKE wildcards so user text matches literally."""
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def text_pattern(text: str) -> str:
    return f"%{escape_like(text.strip())}%"


def _day_after(day: date) -> date | None:
    return None if day == date.max else day + timedelta(days=1)


def build_predicates(
    filters: FilterRecord,
    layout: WarehouseLayout,
    text_strategy: TextStrategy,
) -> tuple[PredicateSet, list[str]]:
    """Shared fragment builder for data and count queries.

    fragment order is fixed: country, status, user, date range, bbox, text.
    keeping it fixed is what makes the two queries' param lists line up.
    """
    predicates = PredicateSet()
    joins: list[str] = []

    if filters.country is not None:
        predicates.append("n.id_country = {}", filters.country)

    if filters.status is not None:
        predicates.append("n.status = {}", filters.status.value)

    if filters.user_id is not None:
        predicates.append("n.id_user = {}", filters.user_id)

    # the date range is one logical bound, so both ends go in one fragment
    # and are always ANDed, whatever the outer operator is.
    # created_at is a timestamp - "<= date" would drop most of the last day,
    # so date_to becomes "< next day". the last representable day has no
    # next day and no upper bound either.
    upper = _day_after(filters.date_to) if filters.date_to else None
    if filters.date_from and upper:
        predicates.append(
            "(n.created_at >= {} AND n.created_at < {})", filters.date_from, upper
        )
    elif filters.date_from:
        predicates.append("n.created_at >= {}", filters.date_from)
    elif upper:
        predicates.append("n.created_at < {}", upper)

    if filters.bbox is not None:
        min_lon, max_lon = filters.bbox.longitude_bounds()
        min_lat, max_lat = filters.bbox.latitude_bounds()
        predicates.append(
            "(n.longitude BETWEEN {} AND {} AND n.latitude BETWEEN {} AND {})",
            min_lon,
            max_lon,
            min_lat,
            max_lat,
        )

    if filters.text:
        pattern = text_pattern(filters.text)
        comments = layout.table("note_comments")
        if text_strategy == TextStrategy.JOIN:
            # LEFT rather than INNER so the alternative OR mode still sees
            # notes without comments; in every other mode the ILIKE in the
            # where clause filters those rows out anyway
            joins.append(
                f"LEFT JOIN {comments} {SEARCH_ALIAS} ON n.note_id = {SEARCH_ALIAS}.note_id"
            )
            predicates.append(
                f"{SEARCH_ALIAS}.text ILIKE {{}} ESCAPE '\\'", pattern, is_text=True
            )
        else:
            predicates.append(
                f"EXISTS (SELECT 1 FROM {comments} {COUNT_ALIAS} "
                f"WHERE {COUNT_ALIAS}.note_id = n.note_id "
                f"AND {COUNT_ALIAS}.text ILIKE {{}} ESCAPE '\\')",
                pattern,
                is_text=True,
            )

    return predicates, joins


def compile_predicates(
    filters: FilterRecord,
    layout: WarehouseLayout | None = None,
    text_strategy: TextStrategy = TextStrategy.JOIN,
    or_text_mode: OrTextMode = OrTextMode.ANCHORED,
) -> CompiledPredicates:
    """Compile filters into a where clause for the data query."""
    layout = layout or WarehouseLayout()
    predicates, joins = build_predicates(filters, layout, text_strategy)
    combined = predicates.combine(filters.operator, or_text_mode)

    return CompiledPredicates(
        where_clause=f"WHERE {combined}" if combined else "",
        params=predicates.params,
        join_clauses=joins,
        next_index=predicates.next_index,
        predicates=list(predicates.predicates),
    )


def ensure_normalized(filters: FilterRecord | Mapping[str, Any]) -> FilterRecord:
    """Re-run validation on a filter record.

    model_construct() and friends can produce a FilterRecord that never went
    through validation; the count path refuses to trust those.
    """
    if isinstance(filters, FilterRecord):
        return normalize_filters(dict(filters))
    if isinstance(filters, Mapping):
        return normalize_filters(filters)
    raise InvalidFilter(f"Cannot derive a count from {type(filters).__name__}")


def derive_count(
    filters: FilterRecord | Mapping[str, Any],
    layout: WarehouseLayout | None = None,
    or_text_mode: OrTextMode = OrTextMode.ANCHORED,
) -> CompiledPredicates:
    """Compile the count-query predicates for the same filters.

    same fragments, same order, same operator as the data query; free text
    becomes an existence check instead of a join.
    """
    record = ensure_normalized(filters)
    return compile_predicates(record, layout, TextStrategy.EXISTS, or_text_mode)
