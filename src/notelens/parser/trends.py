"""Tolerant parsers for the json blobs stored on datamart rows.

trend display is best-effort: a broken blob should give an empty chart, not
a 500. so nothing in here raises - malformed input degrades to an empty
series (or None for working hours) with a warning in the logs.
"""

import json
import logging
import math
import re
from collections.abc import Mapping
from typing import Any

from notelens.models.results import TrendPoint

logger = logging.getLogger(__name__)

_YEAR = re.compile(r"^[0-9]{4}$")


def _load(blob: Any, label: str) -> Any:
    """Decode json text, pass parsed structures through, None on failure."""
    if blob is None:
        return None
    if isinstance(blob, (str, bytes, bytearray)):
        if not blob:
            return None
        try:
            return json.loads(blob)
        except ValueError:
            logger.warning("Failed to parse %s json", label)
            return None
    return blob


def _count(value: Any) -> int | None:
    """Coerce a trend counter to a non-negative int, None if it isn't one."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        number = value
    elif isinstance(value, float):
        if not math.isfinite(value) or not value.is_integer():
            return None
        number = int(value)
    elif isinstance(value, str) and re.fullmatch(r"\s*[0-9]+\s*", value):
        number = int(value)
    else:
        return None
    return number if number >= 0 else None


def parse_trend_series(blob: Any) -> list[TrendPoint]:
    """Parse an activity-by-year blob into an ascending series.

    the blob looks like {"2020": {"open": 10, "closed": 5}, ...}. entries
    whose key isn't a 4-digit year, or whose value lacks usable open/closed
    counters, are left out entirely - we don't pad them with zeros.

    sorting is a plain string sort, which is fine for 4-digit years.
    """
    activity = _load(blob, "activity_by_year")
    if activity is None:
        return []
    if not isinstance(activity, Mapping):
        logger.warning("activity_by_year is not a json object: %s", type(activity).__name__)
        return []

    points = []
    for year, data in activity.items():
        year = str(year)
        if not _YEAR.match(year) or not isinstance(data, Mapping):
            continue
        opened = _count(data.get("open"))
        closed = _count(data.get("closed"))
        if opened is None or closed is None:
            continue
        points.append(TrendPoint(year=year, open=opened, closed=closed))

    return sorted(points, key=lambda point: point.year)


def _hour(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    return int(value) if math.isfinite(value) else 0


def parse_working_hours(blob: Any) -> list[int] | None:
    """Parse the hours-of-week histogram; non-numeric slots count as 0."""
    hours = _load(blob, "working_hours_of_week_opening")
    if not isinstance(hours, list):
        return None
    return [_hour(h) for h in hours]
