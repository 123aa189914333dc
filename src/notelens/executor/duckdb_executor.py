"""DuckDB query executor for notelens.

the warehouse is a duckdb file (or an in-memory db in tests). duckdb speaks
$1-style positional parameters, ILIKE and NULLS LAST, which is everything
the query layer needs.

each statement runs on its own cursor. a duckdb connection isn't safe to
share between threads, but cursors off the same connection are - and the
services run the data and count queries on two threads at once.
"""

import logging
import threading
import time
from collections.abc import Sequence
from typing import Any

import duckdb

from notelens.errors import QueryExecutionFailure
from notelens.models.query import QueryResult

logger = logging.getLogger(__name__)


class DuckDBExecutor:
    """Execute parameterized queries against DuckDB.

    thin wrapper around duckdb that handles connection management
    and result formatting. keeps the duckdb-specific bits isolated.
    """

    def __init__(self, database_path: str | None = None, read_only: bool = False) -> None:
        """Initialize the executor.

        Args:
            database_path: Path to DuckDB file, or None for in-memory.
            read_only: Open the file read-only (ignored for in-memory).
        """
        self.database_path = database_path
        self.read_only = read_only and database_path is not None
        self._conn: duckdb.DuckDBPyConnection | None = None  # lazy init
        self._lock = threading.Lock()

    @property
    def conn(self) -> duckdb.DuckDBPyConnection:
        """Get or create the DuckDB connection.

        ":memory:" is the duckdb convention for in-memory database.
        """
        with self._lock:
            if self._conn is None:
                self._conn = duckdb.connect(
                    self.database_path or ":memory:", read_only=self.read_only
                )
            return self._conn

    def execute(self, sql: str, params: Sequence[Any] | None = None) -> QueryResult:
        """Execute a statement and return structured results.

        Raises:
            QueryExecutionFailure: If duckdb rejects or fails the statement.
        """
        bound = list(params or [])
        start = time.perf_counter()

        cursor = self.conn.cursor()
        try:
            result = cursor.execute(sql, bound)
            # result.description gives us (name, type_code, ...) tuples
            columns = [desc[0] for desc in result.description] if result.description else []
            rows = result.fetchall() if columns else []
        except duckdb.Error as exc:
            raise QueryExecutionFailure(f"Query failed: {exc}", sql=sql) from exc
        finally:
            cursor.close()

        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.debug("Query returned %d rows in %.2fms", len(rows), elapsed_ms)

        return QueryResult(
            sql=sql,
            params=bound,
            columns=columns,
            data=[dict(zip(columns, row)) for row in rows],
            row_count=len(rows),
            execution_time_ms=round(elapsed_ms, 2),
        )

    def execute_script(self, sql: str) -> None:
        """Run a multi-statement script (schema setup, sample loads)."""
        try:
            self.conn.execute(sql)
        except duckdb.Error as exc:
            raise QueryExecutionFailure(f"Script failed: {exc}", sql=sql) from exc

    def table_exists(self, schema: str, table_name: str) -> bool:
        """Check if a table exists.

        querying information_schema is the portable way to do this. duckdb
        keeps the original case of table names, so compare case-insensitively.
        """
        result = self.execute(
            "SELECT COUNT(*) AS total FROM information_schema.tables "
            "WHERE lower(table_schema) = lower($1) AND lower(table_name) = lower($2)",
            [schema, table_name],
        )
        return result.data[0]["total"] > 0

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            if self._conn:
                self._conn.close()
                self._conn = None

    # context manager support for clean resource management
    def __enter__(self) -> "DuckDBExecutor":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
