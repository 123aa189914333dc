"""Pytest fixtures for notelens tests."""

import json
import threading
from collections.abc import Generator, Sequence
from datetime import datetime, timedelta
from decimal import Decimal
from pathlib import Path
from typing import Any

import pytest

from notelens.config import Settings, WarehouseLayout
from notelens.errors import QueryExecutionFailure
from notelens.executor.duckdb_executor import DuckDBExecutor
from notelens.models.query import QueryResult
from notelens.sample import create_schema
from notelens.store import AnalyticsStore

# the fixture warehouse, in short:
#   notes 1-25   open, country 42, user 1, 2024-01-01..25 at noon
#                odd ids inside bbox -4,40,-3,41 (Madrid), even ids in Barcelona
#   notes 26-30  closed, country 42, user 2, 2024-02-01..05
#   notes 31-35  open, country 7, user 2, 2024-02-06..10
#   note 36      reopened, country 7, anonymous, 2024-02-11
# "bridge" appears in comments of notes 3 (twice), 4 and 31.
# "100%" appears only on note 5; note 6 has "1000".


def _note_rows() -> list[dict[str, Any]]:
    rows = []
    for i in range(1, 37):
        if i <= 25:
            created = datetime(2024, 1, i, 12, 0)
            status, country, user = "open", 42, 1
        else:
            created = datetime(2024, 2, i - 25, 9, 30)
            status = "closed" if i <= 30 else "open"
            country = 42 if i <= 30 else 7
            user = 2
            if i == 36:
                status, user = "reopened", None
        if i > 25:
            lat, lon = 35.7, 139.7
        elif i % 2:
            lat, lon = 40.5, -3.5
        else:
            lat, lon = 41.4, 2.17
        rows.append(
            {
                "note_id": i,
                "latitude": lat,
                "longitude": lon,
                "status": status,
                "created_at": created,
                "closed_at": created + timedelta(days=2) if status == "closed" else None,
                "id_user": user,
                "id_country": country,
            }
        )
    return rows


def _comment_rows(notes: list[dict[str, Any]]) -> list[dict[str, Any]]:
    rows = [
        {
            "comment_id": note["note_id"],
            "note_id": note["note_id"],
            "user_id": note["id_user"],
            "action": "opened",
            "created_at": note["created_at"],
            "text": f"Note number {note['note_id']}",
        }
        for note in notes
    ]
    by_id = {note["note_id"]: note for note in notes}
    extra = [
        (37, 3, 2, "commented", 1, "The bridge is out"),
        (38, 3, 3, "commented", 2, "Bridge confirmed"),
        (39, 4, 1, "commented", 1, "new bridge built"),
        (40, 31, 2, "commented", 1, "Bridge closed for repairs"),
        (41, 5, 3, "commented", 1, "fixed 100% now"),
        (42, 6, 3, "commented", 1, "fixed 1000 now"),
        (43, 26, 1, "closed", 48, None),
    ]
    for comment_id, note_id, user_id, action, hours, text in extra:
        rows.append(
            {
                "comment_id": comment_id,
                "note_id": note_id,
                "user_id": user_id,
                "action": action,
                "created_at": by_id[note_id]["created_at"] + timedelta(hours=hours),
                "text": text,
            }
        )
    return rows


USER_ACTIVITY = json.dumps(
    {
        "2024": {"open": 25, "closed": 0},
        "2023": {"open": "3", "closed": 1.0},
        "bogus": {"open": 1, "closed": 1},
        "2022": {"open": -1, "closed": 2},
    }
)


def _datamart_users() -> list[dict[str, Any]]:
    return [
        {
            "dimension_user_id": 101,
            "user_id": 1,
            "username": "alice",
            "country_id": 42,
            "history_whole_open": 30,
            "history_whole_closed": 12,
            "history_whole_commented": 7,
            "avg_days_to_resolution": Decimal("3.50"),
            "resolution_rate": Decimal("40.00"),
            "user_response_time": Decimal("2.25"),
            "days_since_last_action": 4,
            "applications_used": json.dumps([{"app": "iD", "count": 20}]),
            "hashtags": ["#bridge", "#survey"],
            "working_hours_of_week_opening": json.dumps([0, 1, 2, "x"] + [0] * 164),
            "activity_by_year": USER_ACTIVITY,
        },
        {
            "dimension_user_id": 102,
            "user_id": 2,
            "username": "bob",
            "country_id": 42,
            "history_whole_open": 10,
            "history_whole_closed": 9,
            "history_whole_commented": 2,
            "avg_days_to_resolution": Decimal("1.25"),
            "resolution_rate": Decimal("90.00"),
            "user_response_time": None,
            "days_since_last_action": 30,
            "applications_used": "{not json",
            "hashtags": ["#survey"],
            "working_hours_of_week_opening": None,
            "activity_by_year": "{not json",
        },
        {
            "dimension_user_id": 103,
            "user_id": 3,
            "username": "carol_100%",
            "country_id": 7,
            "history_whole_open": 5,
            "history_whole_closed": 0,
            "history_whole_commented": 20,
            "avg_days_to_resolution": None,
            "resolution_rate": None,
            "user_response_time": None,
            "days_since_last_action": None,
            "applications_used": None,
            "hashtags": None,
            "working_hours_of_week_opening": None,
            "activity_by_year": None,
        },
    ]


def _datamart_countries() -> list[dict[str, Any]]:
    return [
        {
            "dimension_country_id": 201,
            "country_id": 42,
            "country_name": "España",
            "country_name_en": "Spain",
            "country_name_es": "España",
            "iso_alpha2": "ES",
            "history_whole_open": 30,
            "history_whole_closed": 5,
            "avg_days_to_resolution": Decimal("2.00"),
            "resolution_rate": Decimal("16.67"),
            "notes_health_score": Decimal("55.50"),
            "notes_backlog_size": 25,
            "hashtags": ["#survey"],
            "activity_by_year": json.dumps({"2024": {"open": 30, "closed": 5}}),
        },
        {
            "dimension_country_id": 202,
            "country_id": 7,
            "country_name": "Japan",
            "country_name_en": "Japan",
            "country_name_es": "Japón",
            "iso_alpha2": "JP",
            "history_whole_open": 6,
            "history_whole_closed": 0,
            "avg_days_to_resolution": None,
            "resolution_rate": Decimal("0.00"),
            "notes_health_score": Decimal("80.00"),
            "notes_backlog_size": 6,
            "hashtags": ["#bridge"],
            "activity_by_year": None,
        },
    ]


def _datamart_global() -> list[dict[str, Any]]:
    return [
        {
            "dimension_global_id": 1,
            "history_whole_open": 36,
            "history_whole_closed": 5,
            "currently_open_count": 31,
            "avg_days_to_resolution": Decimal("2.00"),
            "resolution_rate": Decimal("13.89"),
            "active_users_count": 3,
            "top_countries": json.dumps([{"country_id": 42, "notes": 30}]),
            "activity_by_year": json.dumps(
                {"2024": {"open": 36, "closed": 5}, "2023": {"open": 0, "closed": 0}}
            ),
        }
    ]


def insert_dicts(executor: DuckDBExecutor, table: str, rows: list[dict[str, Any]]) -> None:
    columns = list(rows[0])
    placeholders = ", ".join("?" for _ in columns)
    executor.conn.executemany(
        f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({placeholders})",
        [[row[c] for c in columns] for row in rows],
    )


def load_fixture_warehouse(executor: DuckDBExecutor, layout: WarehouseLayout) -> None:
    create_schema(executor, layout)
    notes = _note_rows()
    insert_dicts(
        executor,
        layout.table("users"),
        [
            {"user_id": 1, "username": "alice"},
            {"user_id": 2, "username": "bob"},
            {"user_id": 3, "username": "carol_100%"},
        ],
    )
    insert_dicts(executor, layout.table("notes"), notes)
    insert_dicts(executor, layout.table("note_comments"), _comment_rows(notes))
    insert_dicts(executor, layout.datamart("datamartUsers"), _datamart_users())
    insert_dicts(executor, layout.datamart("datamartCountries"), _datamart_countries())
    insert_dicts(executor, layout.datamart("datamartGlobal"), _datamart_global())


@pytest.fixture
def layout() -> WarehouseLayout:
    return WarehouseLayout()


@pytest.fixture
def warehouse(layout: WarehouseLayout) -> Generator[DuckDBExecutor, None, None]:
    """In-memory DuckDB executor holding the fixture warehouse."""
    executor = DuckDBExecutor()
    load_fixture_warehouse(executor, layout)
    yield executor
    executor.close()


@pytest.fixture
def warehouse_path(tmp_path: Path, layout: WarehouseLayout) -> Path:
    """The fixture warehouse written to a DuckDB file (for the CLI)."""
    db_path = tmp_path / "warehouse.duckdb"
    with DuckDBExecutor(str(db_path)) as executor:
        load_fixture_warehouse(executor, layout)
    return db_path


@pytest.fixture
def settings() -> Settings:
    return Settings(database_path=None, log_level="WARNING")


@pytest.fixture
def store(settings: Settings, warehouse: DuckDBExecutor) -> Generator[AnalyticsStore, None, None]:
    store = AnalyticsStore(settings, executor=warehouse)
    yield store
    store.close()


def make_result(
    sql: str, params: Sequence[Any] | None, rows: list[dict[str, Any]]
) -> QueryResult:
    return QueryResult(
        sql=sql,
        params=list(params or []),
        columns=list(rows[0]) if rows else [],
        data=rows,
        row_count=len(rows),
        execution_time_ms=0.0,
    )


class StubExecutor:
    """Returns canned rows for the first response whose needle is in the sql.

    records every call. thread-safe since services run statements on worker
    threads.
    """

    def __init__(self, responses: list[tuple[str, list[dict[str, Any]]]] | None = None) -> None:
        self.responses = list(responses or [])
        self.calls: list[tuple[str, list[Any]]] = []
        self._lock = threading.Lock()

    def execute(self, sql: str, params: Sequence[Any] | None = None) -> QueryResult:
        with self._lock:
            self.calls.append((sql, list(params or [])))
        for needle, rows in self.responses:
            if needle in sql:
                return make_result(sql, params, rows)
        return make_result(sql, params, [])


class FailingExecutor:
    def __init__(self) -> None:
        self.calls = 0

    def execute(self, sql: str, params: Sequence[Any] | None = None) -> QueryResult:
        self.calls += 1
        raise QueryExecutionFailure("connection reset by peer", sql=sql)


@pytest.fixture
def failing_executor() -> FailingExecutor:
    return FailingExecutor()
