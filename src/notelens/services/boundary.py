"""Shared plumbing for the service functions.

every service does the same two things around its queries: log the sql at
debug, and turn warehouse-side failures into a bland InternalError. client
errors (InvalidFilter, InvalidMetric, NotFound) go straight through.
"""

import logging
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from typing import Any

from notelens.compiler.sql_builder import format_sql
from notelens.errors import InternalError, NormalizationFailure, QueryExecutionFailure

logger = logging.getLogger(__name__)


def log_statement(label: str, sql: str, params: Sequence[Any]) -> None:
    """Debug-log a statement, pretty-printed, with its bound params."""
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug("%s\n%s\nparams=%r", label, format_sql(sql), list(params))


@contextmanager
def service_boundary(operation: str, **context: Any) -> Iterator[None]:
    """Wrap a service body so internal failures surface as InternalError.

    the original exception stays attached as __cause__ and goes to the log
    with its traceback; the caller only ever sees the generic message.
    """
    try:
        yield
    except (QueryExecutionFailure, NormalizationFailure) as exc:
        logger.exception("Error %s (%s)", operation, _describe(context))
        raise InternalError() from exc


def _describe(context: dict[str, Any]) -> str:
    return ", ".join(f"{key}={value!r}" for key, value in context.items()) or "no context"
