"""CLI for notelens."""

import csv
import io
import json
from enum import Enum
from pathlib import Path
from typing import Annotated, Any

import typer
from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table

from notelens.config import Settings, get_settings
from notelens.errors import InvalidFilter, NotelensError
from notelens.executor.duckdb_executor import DuckDBExecutor
from notelens.logging_config import configure_logging
from notelens.sample import generate_sample_data
from notelens.store import AnalyticsStore

app = typer.Typer(
    name="notelens",
    help="notelens - notes warehouse analytics CLI",
    no_args_is_help=True,
)
console = Console()


class OutputFormat(str, Enum):
    TABLE = "table"
    JSON = "json"
    CSV = "csv"


class EntityScope(str, Enum):
    USERS = "users"
    COUNTRIES = "countries"


class ProfileScope(str, Enum):
    USERS = "users"
    COUNTRIES = "countries"
    GLOBAL = "global"


DbOption = Annotated[
    str | None, typer.Option("--db", help="DuckDB warehouse path (default: NOTELENS_DATABASE_PATH)")
]
OutputOption = Annotated[
    OutputFormat, typer.Option("--output", "-o", help="Output format: table, json, csv")
]


@app.callback()
def main(
    log_level: Annotated[
        str | None, typer.Option("--log-level", help="Log level (default: from settings)")
    ] = None,
) -> None:
    """Read-only analytics over a notes warehouse."""
    configure_logging(log_level or get_settings().log_level)


def get_store(db_path: str | None = None) -> AnalyticsStore:
    settings = Settings(database_path=db_path) if db_path else get_settings()
    return AnalyticsStore(settings)


def _fail(exc: NotelensError) -> typer.Exit:
    console.print(f"[red]{exc.message}[/red]")
    if isinstance(exc, InvalidFilter) and len(exc.errors) > 1:
        for error in exc.errors:
            console.print(f"  - {error}")
    return typer.Exit(1)


def _output_rows(
    rows: list[dict[str, Any]], output_format: OutputFormat, title: str | None = None
) -> None:
    """Output rows in the specified format."""
    columns = list(rows[0]) if rows else []

    if output_format == OutputFormat.JSON:
        typer.echo(json.dumps(rows, indent=2, default=str, ensure_ascii=False))
    elif output_format == OutputFormat.CSV:
        buffer = io.StringIO()
        writer = csv.DictWriter(buffer, fieldnames=columns, lineterminator="\n")
        writer.writeheader()
        writer.writerows(rows)
        typer.echo(buffer.getvalue(), nl=False)
    else:
        if not rows:
            console.print("[yellow]No results[/yellow]")
            return
        table = Table(title=title)
        for col in columns:
            table.add_column(col)
        for row in rows:
            table.add_row(*["-" if row.get(c) is None else str(row[c]) for c in columns])
        console.print(table)


def _output_document(document: dict[str, Any], output_format: OutputFormat, title: str) -> None:
    """Single-record output: json as-is, otherwise a two-column field/value table."""
    if output_format == OutputFormat.JSON:
        typer.echo(json.dumps(document, indent=2, default=str, ensure_ascii=False))
        return
    rows = [
        {"field": key, "value": json.dumps(value, default=str, ensure_ascii=False)}
        if isinstance(value, (dict, list))
        else {"field": key, "value": value}
        for key, value in document.items()
    ]
    _output_rows(rows, output_format, title)


def _filter_input(
    status: str | None,
    country: int | None,
    user_id: int | None,
    date_from: str | None,
    date_to: str | None,
    bbox: str | None,
    text: str | None,
    operator: str | None,
    page: int | None,
    limit: int | None,
) -> dict[str, Any]:
    raw = {
        "status": status,
        "country": country,
        "user_id": user_id,
        "date_from": date_from,
        "date_to": date_to,
        "bbox": bbox,
        "text": text,
        "operator": operator,
        "page": page,
        "limit": limit,
    }
    # options that weren't given behave like missing query keys
    return {key: value for key, value in raw.items() if value is not None}


StatusOption = Annotated[str | None, typer.Option("--status", help="open, closed or reopened")]
CountryOption = Annotated[int | None, typer.Option("--country", "-c", help="Country id")]
UserOption = Annotated[int | None, typer.Option("--user-id", "-u", help="Author user id")]
FromOption = Annotated[str | None, typer.Option("--from", help="Created on/after (YYYY-MM-DD)")]
ToOption = Annotated[str | None, typer.Option("--to", help="Created on/before (YYYY-MM-DD)")]
BboxOption = Annotated[
    str | None, typer.Option("--bbox", help="min_lon,min_lat,max_lon,max_lat")
]
TextOption = Annotated[str | None, typer.Option("--text", "-t", help="Comment text contains")]
OperatorOption = Annotated[str | None, typer.Option("--operator", help="AND or OR")]
PageOption = Annotated[int | None, typer.Option("--page", "-p", help="Page number")]
LimitOption = Annotated[int | None, typer.Option("--limit", "-l", help="Rows per page")]


@app.command()
def notes(
    db_path: DbOption = None,
    status: StatusOption = None,
    country: CountryOption = None,
    user_id: UserOption = None,
    date_from: FromOption = None,
    date_to: ToOption = None,
    bbox: BboxOption = None,
    text: TextOption = None,
    operator: OperatorOption = None,
    page: PageOption = None,
    limit: LimitOption = None,
    show_sql: Annotated[bool, typer.Option("--sql", "-s", help="Show generated SQL")] = False,
    output: OutputOption = OutputFormat.TABLE,
) -> None:
    """Search notes with filters."""
    raw = _filter_input(
        status, country, user_id, date_from, date_to, bbox, text, operator, page, limit
    )
    with get_store(db_path) as store:
        try:
            if show_sql:
                _print_sql(store, raw)
            result = store.search_notes(raw)
        except NotelensError as e:
            raise _fail(e)

    if output == OutputFormat.JSON:
        typer.echo(result.model_dump_json(indent=2))
        return

    p = result.pagination
    _output_rows(
        result.data,
        output,
        f"Notes (page {p.page}/{p.total_pages}, {p.total} total)",
    )


@app.command()
def note(
    note_id: Annotated[int, typer.Argument(help="Note id")],
    db_path: DbOption = None,
    comments: Annotated[bool, typer.Option("--comments", help="Also list comments")] = False,
    output: OutputOption = OutputFormat.TABLE,
) -> None:
    """Show a single note."""
    with get_store(db_path) as store:
        try:
            found = store.get_note(note_id)
            thread = store.get_note_comments(note_id) if comments else None
        except NotelensError as e:
            raise _fail(e)

    if output == OutputFormat.JSON and thread is not None:
        typer.echo(json.dumps({**found, "comments": thread}, indent=2, default=str))
        return
    _output_document(found, output, f"Note {note_id}")
    if thread is not None:
        _output_rows(thread, output, "Comments")


@app.command()
def rankings(
    scope: Annotated[EntityScope, typer.Argument(help="users or countries")],
    metric: Annotated[str, typer.Option("--metric", "-m", help="Ranking metric")],
    db_path: DbOption = None,
    country: Annotated[
        int | None, typer.Option("--country", "-c", help="Only users of this country")
    ] = None,
    limit: Annotated[int | None, typer.Option("--limit", "-l", help="Maximum rows")] = None,
    order: Annotated[str | None, typer.Option("--order", help="asc or desc")] = None,
    output: OutputOption = OutputFormat.TABLE,
) -> None:
    """Rank users or countries by a metric."""
    raw = {"metric": metric, "country": country, "limit": limit, "order": order}
    with get_store(db_path) as store:
        try:
            if scope == EntityScope.USERS:
                result = store.user_rankings(raw)
            else:
                result = store.country_rankings(raw)
        except NotelensError as e:
            raise _fail(e)

    if output == OutputFormat.JSON:
        typer.echo(result.model_dump_json(indent=2))
        return
    _output_rows(
        [entry.model_dump() for entry in result.rankings],
        output,
        f"{scope.value.title()} by {result.metric} ({result.order.value})",
    )


@app.command()
def trends(
    scope: Annotated[ProfileScope, typer.Argument(help="users, countries or global")],
    entity_id: Annotated[
        int | None, typer.Option("--id", help="User or country id (not for global)")
    ] = None,
    db_path: DbOption = None,
    output: OutputOption = OutputFormat.TABLE,
) -> None:
    """Year-by-year opened/closed activity."""
    raw: dict[str, Any] = {"type": scope.value}
    if scope == ProfileScope.USERS:
        raw["user_id"] = entity_id
    elif scope == ProfileScope.COUNTRIES:
        raw["country_id"] = entity_id

    with get_store(db_path) as store:
        try:
            result = store.trends(raw)
        except NotelensError as e:
            raise _fail(e)

    if output == OutputFormat.JSON:
        typer.echo(result.model_dump_json(indent=2))
        return
    title = f"Trends: {result.entity_name or scope.value}"
    _output_rows([point.model_dump() for point in result.trends], output, title)


@app.command()
def hashtags(
    db_path: DbOption = None,
    page: PageOption = None,
    limit: LimitOption = None,
    order: Annotated[str | None, typer.Option("--order", help="asc or desc")] = None,
    output: OutputOption = OutputFormat.TABLE,
) -> None:
    """List hashtags by usage."""
    with get_store(db_path) as store:
        try:
            result = store.list_hashtags(page=page, limit=limit, order=order)
        except NotelensError as e:
            raise _fail(e)

    if output == OutputFormat.JSON:
        typer.echo(result.model_dump_json(indent=2))
        return
    _output_rows(result.data, output, f"Hashtags ({result.pagination.total} total)")


@app.command()
def hashtag(
    name: Annotated[str, typer.Argument(help="Hashtag, e.g. #missingmaps")],
    db_path: DbOption = None,
    output: OutputOption = OutputFormat.TABLE,
) -> None:
    """Who uses a hashtag."""
    with get_store(db_path) as store:
        try:
            details = store.hashtag_details(name)
        except NotelensError as e:
            raise _fail(e)

    if output == OutputFormat.JSON:
        typer.echo(details.model_dump_json(indent=2))
        return
    _output_rows(details.users, output, f"{details.hashtag}: {details.users_count} users")
    _output_rows(
        details.countries, output, f"{details.hashtag}: {details.countries_count} countries"
    )


@app.command()
def profile(
    scope: Annotated[ProfileScope, typer.Argument(help="users, countries or global")],
    entity_id: Annotated[int | None, typer.Argument(help="User or country id")] = None,
    db_path: DbOption = None,
    output: OutputOption = OutputFormat.TABLE,
) -> None:
    """Show a user, country or global profile."""
    if scope != ProfileScope.GLOBAL and entity_id is None:
        console.print(f"[red]An id is required for {scope.value} profiles[/red]")
        raise typer.Exit(1)

    with get_store(db_path) as store:
        try:
            if scope == ProfileScope.USERS:
                document = store.user_profile(entity_id)
            elif scope == ProfileScope.COUNTRIES:
                document = store.country_profile(entity_id)
            else:
                document = store.global_analytics()
        except NotelensError as e:
            raise _fail(e)

    _output_document(document, output, f"{scope.value.title()} profile")


@app.command()
def search(
    scope: Annotated[EntityScope, typer.Argument(help="users or countries")],
    query: Annotated[str, typer.Argument(help="Name fragment, ISO code, or numeric id")],
    db_path: DbOption = None,
    output: OutputOption = OutputFormat.TABLE,
) -> None:
    """Find users or countries."""
    with get_store(db_path) as store:
        try:
            if scope == EntityScope.USERS:
                rows = store.search_users(query)
            else:
                rows = store.search_countries(query)
        except NotelensError as e:
            raise _fail(e)

    _output_rows(rows, output, f"Matching {scope.value}")


@app.command()
def compare(
    scope: Annotated[EntityScope, typer.Argument(help="users or countries")],
    ids: Annotated[str, typer.Argument(help="Comma-separated ids, at most 10")],
    db_path: DbOption = None,
    output: OutputOption = OutputFormat.TABLE,
) -> None:
    """Compare up to 10 users or countries side by side."""
    with get_store(db_path) as store:
        try:
            if scope == EntityScope.USERS:
                result = store.compare_users(ids)
            else:
                result = store.compare_countries(ids)
        except NotelensError as e:
            raise _fail(e)

    if output == OutputFormat.JSON:
        typer.echo(result.model_dump_json(indent=2))
        return
    _output_rows(result.entities, output, f"Comparing {scope.value}")


def _print_sql(store: AnalyticsStore, raw: dict[str, Any]) -> None:
    queries = store.get_sql(raw)
    for label, sql, params in (
        ("data", queries.data_sql, queries.data_params),
        ("count", queries.count_sql, queries.count_params),
    ):
        console.print(f"[bold]-- {label} query[/bold]")
        console.print(Syntax(sql, "sql", theme="monokai", line_numbers=True))
        console.print(f"params: {params!r}", markup=False)
        console.print()


@app.command("show-sql")
def show_sql(
    db_path: DbOption = None,
    status: StatusOption = None,
    country: CountryOption = None,
    user_id: UserOption = None,
    date_from: FromOption = None,
    date_to: ToOption = None,
    bbox: BboxOption = None,
    text: TextOption = None,
    operator: OperatorOption = None,
    page: PageOption = None,
    limit: LimitOption = None,
) -> None:
    """Show the generated note search SQL without executing."""
    raw = _filter_input(
        status, country, user_id, date_from, date_to, bbox, text, operator, page, limit
    )
    with get_store(db_path) as store:
        try:
            _print_sql(store, raw)
        except NotelensError as e:
            raise _fail(e)


@app.command()
def validate(db_path: DbOption = None) -> None:
    """Check the warehouse has every table notelens queries."""
    with get_store(db_path) as store:
        errors = store.validate()

    if errors:
        console.print("[red]Validation failed:[/red]")
        for error in errors:
            console.print(f"  - {error}")
        raise typer.Exit(1)
    console.print("[green]Warehouse looks good![/green]")


@app.command("init-sample")
def init_sample(
    path: Annotated[Path, typer.Argument(help="DuckDB file to create")],
    note_count: Annotated[int, typer.Option("--notes", "-n", help="Notes to generate")] = 500,
    seed: Annotated[int, typer.Option("--seed", help="Random seed")] = 42,
    force: Annotated[bool, typer.Option("--force", help="Overwrite an existing file")] = False,
) -> None:
    """Create a sample warehouse with deterministic fake data."""
    if path.exists():
        if not force:
            console.print(f"[red]{path} already exists (use --force to overwrite)[/red]")
            raise typer.Exit(1)
        path.unlink()
    path.parent.mkdir(parents=True, exist_ok=True)

    with DuckDBExecutor(str(path)) as executor:
        counts = generate_sample_data(executor, get_settings().layout, note_count, seed)

    console.print(f"[green]Sample warehouse written to {path}[/green]")
    for table, count in counts.items():
        console.print(f"  - {count} {table}")


if __name__ == "__main__":
    app()
