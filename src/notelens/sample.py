"""Sample notes warehouse.

builds the raw notes tables plus the three datamarts in a duckdb database,
with deterministic fake data. the datamarts are computed from the generated
notes, so rankings, trends and profiles all agree with note search.
"""

import json
import logging
import random
from collections import Counter, defaultdict
from datetime import date, datetime, timedelta
from typing import Any

from notelens.config import WarehouseLayout
from notelens.executor.duckdb_executor import DuckDBExecutor

logger = logging.getLogger(__name__)

# (country_id, local name, english, spanish, iso, (min_lon, min_lat, max_lon, max_lat))
COUNTRIES = [
    (1, "Colombia", "Colombia", "Colombia", "CO", (-79.0, -4.2, -66.9, 12.5)),
    (2, "Deutschland", "Germany", "Alemania", "DE", (5.9, 47.3, 15.0, 55.1)),
    (3, "España", "Spain", "España", "ES", (-9.3, 36.0, 3.3, 43.8)),
    (4, "France", "France", "Francia", "FR", (-4.8, 42.3, 8.2, 51.1)),
    (5, "United States", "United States", "Estados Unidos", "US", (-124.7, 25.1, -67.0, 49.4)),
    (6, "日本", "Japan", "Japón", "JP", (129.4, 31.0, 145.5, 45.5)),
]

USERNAMES = [
    "mapper_anna",
    "geo_bob",
    "carla_osm",
    "dmitri",
    "eve_maps",
    "fer_notes",
    "gus",
    "hana_k",
    "ivan_local",
    "julia_survey",
    "kenji",
    "lucia_100%",
]

HASHTAGS = ["#missingmaps", "#surveyme", "#streetcomplete", "#hotosm", "#notes", "#mapathon"]
APPS = ["iD", "JOSM", "StreetComplete", "OsmAnd", "Organic Maps", "Every Door"]
COMMENT_TEXTS = [
    "Missing road here",
    "The shop closed last year",
    "Bridge is under construction",
    "Wrong street name on the sign",
    "Speed limit is 50 now",
    "Cannot verify without a survey",
    "New building on this corner",
    "Footpath goes through the park",
]

START_DATE = date(2019, 1, 1)
END_DATE = date(2024, 12, 31)


def schema_sql(layout: WarehouseLayout) -> str:
    """DDL for the raw tables and the datamarts."""
    ns, dwh = layout.notes_schema, layout.dwh_schema
    return f"""
        CREATE SCHEMA IF NOT EXISTS {ns};
        CREATE SCHEMA IF NOT EXISTS {dwh};

        CREATE TABLE {ns}.users (
            user_id INTEGER PRIMARY KEY,
            username VARCHAR
        );

        CREATE TABLE {ns}.notes (
            note_id INTEGER PRIMARY KEY,
            latitude DOUBLE,
            longitude DOUBLE,
            status VARCHAR,
            created_at TIMESTAMP,
            closed_at TIMESTAMP,
            id_user INTEGER,
            id_country INTEGER
        );

        CREATE TABLE {ns}.note_comments (
            comment_id INTEGER PRIMARY KEY,
            note_id INTEGER,
            user_id INTEGER,
            action VARCHAR,
            created_at TIMESTAMP,
            text VARCHAR
        );

        CREATE TABLE {dwh}.datamartUsers (
            dimension_user_id INTEGER,
            user_id INTEGER,
            username VARCHAR,
            country_id INTEGER,
            history_whole_open INTEGER,
            history_whole_closed INTEGER,
            history_whole_commented INTEGER,
            avg_days_to_resolution DECIMAL(10, 2),
            resolution_rate DECIMAL(6, 2),
            user_response_time DECIMAL(10, 2),
            days_since_last_action INTEGER,
            applications_used VARCHAR,
            collaboration_patterns VARCHAR,
            countries_open_notes VARCHAR,
            hashtags VARCHAR[],
            date_starting_creating_notes DATE,
            date_starting_solving_notes DATE,
            last_year_activity VARCHAR,
            working_hours_of_week_opening VARCHAR,
            activity_by_year VARCHAR
        );

        CREATE TABLE {dwh}.datamartCountries (
            dimension_country_id INTEGER,
            country_id INTEGER,
            country_name VARCHAR,
            country_name_en VARCHAR,
            country_name_es VARCHAR,
            iso_alpha2 VARCHAR,
            history_whole_open INTEGER,
            history_whole_closed INTEGER,
            avg_days_to_resolution DECIMAL(10, 2),
            resolution_rate DECIMAL(6, 2),
            notes_health_score DECIMAL(6, 2),
            new_vs_resolved_ratio DECIMAL(10, 2),
            notes_backlog_size INTEGER,
            notes_created_last_30_days INTEGER,
            notes_resolved_last_30_days INTEGER,
            users_open_notes VARCHAR,
            applications_used VARCHAR,
            hashtags VARCHAR[],
            activity_by_year VARCHAR,
            working_hours_of_week_opening VARCHAR
        );

        CREATE TABLE {dwh}.datamartGlobal (
            dimension_global_id INTEGER,
            history_whole_open INTEGER,
            history_whole_closed INTEGER,
            currently_open_count INTEGER,
            avg_days_to_resolution DECIMAL(10, 2),
            resolution_rate DECIMAL(6, 2),
            notes_created_last_30_days INTEGER,
            notes_resolved_last_30_days INTEGER,
            active_users_count INTEGER,
            notes_backlog_size INTEGER,
            applications_used VARCHAR,
            top_countries VARCHAR,
            activity_by_year VARCHAR
        );
    """


def create_schema(executor: DuckDBExecutor, layout: WarehouseLayout | None = None) -> None:
    executor.execute_script(schema_sql(layout or WarehouseLayout()))


def generate_notes(rng: random.Random, count: int) -> tuple[list[tuple], list[tuple]]:
    """Generate (notes, comments) rows.

    every note gets an "opened" comment from its author, some get follow-up
    comments, closed notes end with a "closed" comment.
    """
    span_days = (END_DATE - START_DATE).days
    notes: list[tuple] = []
    comments: list[tuple] = []

    for note_id in range(1, count + 1):
        country_id, *_, (min_lon, min_lat, max_lon, max_lat) = rng.choice(COUNTRIES)
        # roughly one note in ten is anonymous
        user_id = rng.randint(1, len(USERNAMES)) if rng.random() > 0.1 else None
        created_at = datetime.combine(
            START_DATE + timedelta(days=rng.randint(0, span_days)), datetime.min.time()
        ) + timedelta(seconds=rng.randint(0, 86399))
        status = rng.choices(["open", "closed", "reopened"], weights=[5, 4, 1])[0]
        closed_at = None
        if status == "closed":
            closed_at = min(
                created_at + timedelta(days=rng.randint(0, 400), seconds=rng.randint(0, 86399)),
                datetime.combine(END_DATE, datetime.max.time()).replace(microsecond=0),
            )

        notes.append(
            (
                note_id,
                round(rng.uniform(min_lat, max_lat), 6),
                round(rng.uniform(min_lon, max_lon), 6),
                status,
                created_at,
                closed_at,
                user_id,
                country_id,
            )
        )

        comments.append(
            (len(comments) + 1, note_id, user_id, "opened", created_at, rng.choice(COMMENT_TEXTS))
        )
        for _ in range(rng.randint(0, 2)):
            comments.append(
                (
                    len(comments) + 1,
                    note_id,
                    rng.randint(1, len(USERNAMES)),
                    "commented",
                    created_at + timedelta(hours=rng.randint(1, 2000)),
                    rng.choice(COMMENT_TEXTS),
                )
            )
        if closed_at is not None:
            comments.append(
                (
                    len(comments) + 1,
                    note_id,
                    rng.randint(1, len(USERNAMES)),
                    "closed",
                    closed_at,
                    "Fixed, thanks!" if rng.random() > 0.3 else None,
                )
            )

    return notes, comments


def _rate(part: int, whole: int) -> float | None:
    return round(part * 100.0 / whole, 2) if whole else None


def _avg_days(deltas: list[timedelta]) -> float | None:
    if not deltas:
        return None
    return round(sum(d.total_seconds() for d in deltas) / len(deltas) / 86400, 2)


def _activity(opened: list[datetime], closed: list[datetime]) -> str:
    years: dict[str, dict[str, int]] = defaultdict(lambda: {"open": 0, "closed": 0})
    for stamp in opened:
        years[str(stamp.year)]["open"] += 1
    for stamp in closed:
        years[str(stamp.year)]["closed"] += 1
    return json.dumps(dict(sorted(years.items())))


def _working_hours(opened: list[datetime]) -> str:
    hours = [0] * 168
    for stamp in opened:
        hours[stamp.weekday() * 24 + stamp.hour] += 1
    return json.dumps(hours)


def _apps(rng: random.Random) -> str:
    picked = rng.sample(APPS, rng.randint(1, 3))
    return json.dumps([{"app": app, "count": rng.randint(1, 200)} for app in picked])


def _hashtags(rng: random.Random) -> list[str] | None:
    count = rng.randint(0, 3)
    return sorted(rng.sample(HASHTAGS, count)) if count else None


def build_datamarts(
    rng: random.Random, notes: list[tuple], comments: list[tuple]
) -> tuple[list[tuple], list[tuple], list[tuple]]:
    """Aggregate the raw rows into (users, countries, global) datamart rows."""
    recent = datetime.combine(END_DATE - timedelta(days=30), datetime.min.time())
    notes_by_id = {row[0]: row for row in notes}

    opened_by_user: dict[int, list[tuple]] = defaultdict(list)
    opened_by_country: dict[int, list[tuple]] = defaultdict(list)
    for row in notes:
        if row[6] is not None:
            opened_by_user[row[6]].append(row)
        opened_by_country[row[7]].append(row)

    closed_by_user: dict[int, list[tuple]] = defaultdict(list)
    commented_by_user: Counter = Counter()
    last_action: dict[int, datetime] = {}
    for _comment_id, note_id, user_id, action, created_at, _text in comments:
        if user_id is None:
            continue
        last_action[user_id] = max(created_at, last_action.get(user_id, created_at))
        if action == "closed":
            closed_by_user[user_id].append(notes_by_id[note_id])
        elif action == "commented":
            commented_by_user[user_id] += 1

    users = []
    for user_id, username in enumerate(USERNAMES, start=1):
        opened = opened_by_user[user_id]
        closed = closed_by_user[user_id]
        countries = Counter(row[7] for row in opened)
        users.append(
            (
                1000 + user_id,
                user_id,
                username,
                countries.most_common(1)[0][0] if countries else None,
                len(opened),
                len(closed),
                commented_by_user[user_id],
                _avg_days([row[5] - row[4] for row in closed]),
                _rate(len(closed), len(opened)),
                round(rng.uniform(0.5, 72.0), 2),
                (END_DATE - last_action[user_id].date()).days if user_id in last_action else None,
                _apps(rng),
                json.dumps({"commented_with": rng.sample(range(1, len(USERNAMES) + 1), 2)}),
                json.dumps([{"country_id": c, "count": n} for c, n in countries.most_common()]),
                _hashtags(rng),
                min(row[4] for row in opened).date() if opened else None,
                min(row[5] for row in closed).date() if closed else None,
                "".join(rng.choice("0123456789") for _ in range(12)),
                _working_hours([row[4] for row in opened]),
                _activity([row[4] for row in opened], [row[5] for row in closed]),
            )
        )

    countries = []
    for country_id, name, name_en, name_es, iso, _bbox in COUNTRIES:
        opened = opened_by_country[country_id]
        closed = [row for row in opened if row[5] is not None]
        backlog = len(opened) - len(closed)
        created_recent = sum(1 for row in opened if row[4] >= recent)
        resolved_recent = sum(1 for row in closed if row[5] >= recent)
        open_users = Counter(row[6] for row in opened if row[5] is None and row[6] is not None)
        countries.append(
            (
                2000 + country_id,
                country_id,
                name,
                name_en,
                name_es,
                iso,
                len(opened),
                len(closed),
                _avg_days([row[5] - row[4] for row in closed]),
                _rate(len(closed), len(opened)),
                round(100 - backlog * 100.0 / len(opened), 2) if opened else None,
                round(created_recent / resolved_recent, 2) if resolved_recent else None,
                backlog,
                created_recent,
                resolved_recent,
                json.dumps([{"user_id": u, "count": n} for u, n in open_users.most_common(5)]),
                _apps(rng),
                _hashtags(rng),
                _activity([row[4] for row in opened], [row[5] for row in closed]),
                _working_hours([row[4] for row in opened]),
            )
        )

    closed_all = [row for row in notes if row[5] is not None]
    top = sorted(countries, key=lambda row: row[6], reverse=True)[:3]
    global_row = (
        1,
        len(notes),
        len(closed_all),
        len(notes) - len(closed_all),
        _avg_days([row[5] - row[4] for row in closed_all]),
        _rate(len(closed_all), len(notes)),
        sum(1 for row in notes if row[4] >= recent),
        sum(1 for row in closed_all if row[5] >= recent),
        sum(1 for row in users if row[4] or row[5]),
        len(notes) - len(closed_all),
        _apps(rng),
        json.dumps([{"country_id": row[1], "notes": row[6]} for row in top]),
        _activity([row[4] for row in notes], [row[5] for row in closed_all]),
    )
    return users, countries, [global_row]


def generate_sample_data(
    executor: DuckDBExecutor,
    layout: WarehouseLayout | None = None,
    note_count: int = 500,
    seed: int = 42,
) -> dict[str, int]:
    """Create and fill the sample warehouse. Returns row counts per table."""
    layout = layout or WarehouseLayout()
    rng = random.Random(seed)  # reproducible data

    create_schema(executor, layout)
    notes, comments = generate_notes(rng, note_count)
    users, countries, global_rows = build_datamarts(rng, notes, comments)

    tables: dict[str, tuple[str, list[tuple]]] = {
        "users": (
            layout.table("users"),
            [(i, name) for i, name in enumerate(USERNAMES, start=1)],
        ),
        "notes": (layout.table("notes"), notes),
        "note_comments": (layout.table("note_comments"), comments),
        "datamartUsers": (layout.datamart("datamartUsers"), users),
        "datamartCountries": (layout.datamart("datamartCountries"), countries),
        "datamartGlobal": (layout.datamart("datamartGlobal"), global_rows),
    }
    counts = {}
    for name, (table, rows) in tables.items():
        insert_rows(executor, table, rows)
        counts[name] = len(rows)

    logger.info("Sample warehouse ready: %s", counts)
    return counts


def insert_rows(executor: DuckDBExecutor, table: str, rows: list[tuple[Any, ...]]) -> None:
    if not rows:
        return
    placeholders = ", ".join("?" for _ in rows[0])
    executor.conn.executemany(f"INSERT INTO {table} VALUES ({placeholders})", rows)
