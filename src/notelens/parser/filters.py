"""Filter normalization.

turns raw, loosely-typed request input (query strings, cli options, dicts
from tests) into the typed parameter models. every failure comes out as
InvalidFilter with one message per bad field, so callers get the whole list
of problems in one go instead of fixing them one at a time.
"""

import logging
from collections.abc import Iterable, Mapping
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from notelens.errors import InvalidFilter
from notelens.models.filters import (
    MAX_COMPARISON_IDS,
    BoundingBox,
    FilterRecord,
    HashtagListParams,
    RankingParams,
    TrendsParams,
)

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


def _format_errors(exc: ValidationError) -> list[str]:
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error["loc"])
        # pydantic prefixes custom ValueErrors with "Value error, "
        message = error["msg"].removeprefix("Value error, ")
        messages.append(f"{location}: {message}" if location else message)
    return messages


def _validate(model: type[ModelT], data: Mapping[str, Any], label: str) -> ModelT:
    try:
        return model.model_validate(dict(data))
    except ValidationError as exc:
        errors = _format_errors(exc)
        raise InvalidFilter(f"Invalid {label}: {', '.join(errors)}", errors) from None


def normalize_filters(raw: Mapping[str, Any], lenient_bbox: bool = False) -> FilterRecord:
    """Build a FilterRecord from raw input.

    Args:
        raw: Query-string style mapping. Keys that aren't filters are ignored.
        lenient_bbox: Drop a malformed bbox instead of rejecting the request.

    Returns:
        A validated, frozen FilterRecord.

    Raises:
        InvalidFilter: If any field is out of range or malformed.
    """
    data = dict(raw)

    bbox = data.get("bbox")
    if lenient_bbox and isinstance(bbox, str) and BoundingBox.parse(bbox) is None:
        logger.debug("Ignoring malformed bbox %r", bbox)
        data.pop("bbox")

    return _validate(FilterRecord, data, "filters")


def normalize_ranking_params(raw: Mapping[str, Any]) -> RankingParams:
    if "metric" not in raw:
        raise InvalidFilter('Parameter "metric" is required')
    return _validate(RankingParams, raw, "ranking parameters")


def normalize_hashtag_params(raw: Mapping[str, Any]) -> HashtagListParams:
    return _validate(HashtagListParams, raw, "hashtag parameters")


def normalize_trends_params(raw: Mapping[str, Any]) -> TrendsParams:
    return _validate(TrendsParams, raw, "trends parameters")


def normalize_comparison_ids(raw: str | Iterable[Any]) -> list[int]:
    """Parse "1,2,3" (or an iterable) into 1..10 positive ids."""
    parts = raw.split(",") if isinstance(raw, str) else list(raw)
    ids = []
    for part in parts:
        text = str(part).strip()
        if not text:
            continue
        if not (text.isascii() and text.isdigit()) or int(text) < 1:
            raise InvalidFilter(f"Invalid ID: {text}. IDs must be positive integers")
        ids.append(int(text))

    if not ids:
        raise InvalidFilter("At least one valid ID is required")
    if len(ids) > MAX_COMPARISON_IDS:
        raise InvalidFilter(f"Maximum {MAX_COMPARISON_IDS} IDs allowed for comparison")
    return ids
