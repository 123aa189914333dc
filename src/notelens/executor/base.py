"""Query executor capability and async helpers.

services never talk to duckdb directly, they get something that satisfies
QueryExecutor. the shipped one is DuckDBExecutor; tests hand in stubs that
return canned rows.
"""

import asyncio
from collections.abc import Sequence
from typing import Any, Protocol, runtime_checkable

from notelens.models.query import QueryResult


@runtime_checkable
class QueryExecutor(Protocol):
    """Anything that can run a parameterized statement."""

    def execute(self, sql: str, params: Sequence[Any] | None = None) -> QueryResult: ...


async def run_query(
    executor: QueryExecutor, sql: str, params: Sequence[Any] | None = None
) -> QueryResult:
    """Run one statement off the event loop.

    the executors are blocking, so each call gets its own worker thread.
    """
    return await asyncio.to_thread(executor.execute, sql, list(params or []))


async def run_concurrently(
    executor: QueryExecutor, *statements: tuple[str, Sequence[Any]]
) -> list[QueryResult]:
    """Run independent (sql, params) statements at the same time.

    results come back in the order the statements were given. if any
    statement fails the first error propagates - there's no partial result.
    """
    pending = [run_query(executor, sql, params) for sql, params in statements]
    return list(await asyncio.gather(*pending))
