"""Pydantic model for raw query results.

this is what a query executor hands back - rows are untyped dicts with
whatever scalar types the driver felt like returning. nothing here has been
normalized yet, that's the row normalizer's job.
"""

from typing import Any

from pydantic import BaseModel, Field


class QueryResult(BaseModel):
    """Result of one executed statement.

    returning the sql alongside data is useful for debugging and auditing -
    when a count looks off the first question is always what actually ran.
    """

    sql: str
    params: list[Any] = Field(default_factory=list)
    columns: list[str]
    data: list[dict[str, Any]]
    row_count: int
    execution_time_ms: float
