"""Ranking metric allow-lists.

sort columns can't be bound as query parameters, so the ORDER BY column is
the one place where text ends up concatenated into sql. the only thing that
ever gets concatenated is a value from these fixed tables - the caller's
string is used as a dict key and nothing else.
"""

from collections.abc import Mapping
from types import MappingProxyType

from notelens.errors import InvalidFilter, InvalidMetric
from notelens.models.filters import SortOrder


class MetricAllowlist:
    """Closed mapping from public metric name to a literal column token."""

    def __init__(self, name: str, columns: Mapping[str, str]) -> None:
        self.name = name
        self._columns = MappingProxyType(dict(columns))

    @property
    def metrics(self) -> list[str]:
        return list(self._columns)

    def __contains__(self, metric: object) -> bool:
        return isinstance(metric, str) and metric in self._columns

    def resolve(self, metric: object) -> str:
        """Return the column token for metric, or raise InvalidMetric.

        exact match only - no stripping, no case folding. "History_Whole_Open"
        is a different (and unknown) metric.
        """
        if metric not in self:
            raise InvalidMetric(metric, self.metrics)
        return self._columns[metric]  # type: ignore[index]


# the column tokens are written out literally on purpose, even where they
# match the public name. a rename in the warehouse only touches this table.
USER_RANKING_METRICS = MetricAllowlist(
    "users",
    {
        "history_whole_open": "history_whole_open",
        "history_whole_closed": "history_whole_closed",
        "history_whole_commented": "history_whole_commented",
        "resolution_rate": "resolution_rate",
        "avg_days_to_resolution": "avg_days_to_resolution",
    },
)

COUNTRY_RANKING_METRICS = MetricAllowlist(
    "countries",
    {
        "history_whole_open": "history_whole_open",
        "history_whole_closed": "history_whole_closed",
        "resolution_rate": "resolution_rate",
        "avg_days_to_resolution": "avg_days_to_resolution",
        "notes_health_score": "notes_health_score",
    },
)

SORT_DIRECTIONS: Mapping[SortOrder, str] = MappingProxyType(
    {SortOrder.ASC: "ASC", SortOrder.DESC: "DESC"}
)


def resolve_metric(metric: object, allowlist: MetricAllowlist) -> str:
    """Resolve a requested metric against one allow-list."""
    return allowlist.resolve(metric)


def resolve_direction(order: SortOrder | str) -> str:
    """Map asc/desc to the sql keyword via the fixed table."""
    try:
        return SORT_DIRECTIONS[SortOrder(order)]
    except ValueError:
        raise InvalidFilter('Invalid order parameter. Must be "asc" or "desc"') from None
