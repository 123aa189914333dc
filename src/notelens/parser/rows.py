"""Row normalization.

warehouse drivers hand back numeric columns in whatever shape they like -
BIGINT counts as strings, NUMERIC as Decimal, plain ints elsewhere. this is
the one place those get coerced into api types. business code after this
point can assume ints are ints and floats are floats.
"""

import json
import logging
import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any

from notelens.errors import NormalizationFailure

logger = logging.getLogger(__name__)


class FieldKind(str, Enum):
    INT = "int"
    FLOAT = "float"
    JSON = "json"  # json text column, parsed leniently


@dataclass(frozen=True)
class FieldRule:
    kind: FieldKind
    required: bool = False


@dataclass(frozen=True)
class FieldSpec:
    """Declares which columns of a row need coercion and how.

    columns not listed here pass through untouched.
    """

    fields: Mapping[str, FieldRule] = field(default_factory=dict)

    @classmethod
    def build(
        cls,
        *,
        required_ints: Iterable[str] = (),
        ints: Iterable[str] = (),
        floats: Iterable[str] = (),
        required_floats: Iterable[str] = (),
        json_fields: Iterable[str] = (),
    ) -> "FieldSpec":
        fields: dict[str, FieldRule] = {}
        for name in required_ints:
            fields[name] = FieldRule(FieldKind.INT, required=True)
        for name in ints:
            fields[name] = FieldRule(FieldKind.INT)
        for name in required_floats:
            fields[name] = FieldRule(FieldKind.FLOAT, required=True)
        for name in floats:
            fields[name] = FieldRule(FieldKind.FLOAT)
        for name in json_fields:
            fields[name] = FieldRule(FieldKind.JSON)
        return cls(fields)


class _Unparseable(Exception):
    pass


def _to_int(value: Any) -> int | float:
    if isinstance(value, bool):
        raise _Unparseable
    if isinstance(value, (int, float)):
        return value  # already numeric, leave it alone
    if isinstance(value, Decimal):
        if not value.is_finite():
            raise _Unparseable
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, str):
        text = value.strip()
        try:
            return int(text)
        except ValueError:
            pass
        # "3.0" shows up from some numeric casts
        try:
            number = float(text)
        except ValueError:
            raise _Unparseable from None
        if not number.is_integer():
            raise _Unparseable
        return int(number)
    raise _Unparseable


def _to_float(value: Any) -> int | float:
    if isinstance(value, bool):
        raise _Unparseable
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, (str, Decimal)):
        try:
            number = float(value)
        except (ValueError, InvalidOperation):
            raise _Unparseable from None
        if not math.isfinite(number):
            raise _Unparseable
        return number
    raise _Unparseable


def _parse_json(value: Any) -> Any:
    if not isinstance(value, (str, bytes)):
        return value
    try:
        return json.loads(value)
    except ValueError:
        logger.debug("Dropping malformed json value %r", value)
        return None


def coerce_value(name: str, value: Any, rule: FieldRule) -> Any:
    """Coerce one column value according to its rule."""
    if value is None:
        return None
    if rule.kind == FieldKind.JSON:
        return _parse_json(value)

    convert = _to_int if rule.kind == FieldKind.INT else _to_float
    try:
        return convert(value)
    except _Unparseable:
        if rule.required:
            raise NormalizationFailure(name, value) from None
        logger.debug(
            "Treating unparseable %s value %r for '%s' as null", rule.kind.value, value, name
        )
        return None


def normalize_row(raw: Mapping[str, Any], spec: FieldSpec) -> dict[str, Any]:
    """Map one raw driver row to its api shape."""
    row = dict(raw)
    for name, rule in spec.fields.items():
        if name in row:
            row[name] = coerce_value(name, row[name], rule)
    return row


def normalize_rows(rows: Iterable[Mapping[str, Any]], spec: FieldSpec) -> list[dict[str, Any]]:
    return [normalize_row(row, spec) for row in rows]


_COUNT_RULE = FieldRule(FieldKind.INT, required=True)


def coerce_count(rows: list[Mapping[str, Any]], column: str = "total") -> int:
    """Pull the single count value out of a count query's rows.

    no rows at all means zero - some drivers return nothing for an empty
    aggregate over a filtered view.
    """
    if not rows:
        return 0
    value = coerce_value(column, rows[0].get(column), _COUNT_RULE)
    return int(value) if value is not None else 0
