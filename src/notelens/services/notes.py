"""Note search and single-note lookups."""

import logging

from notelens.compiler.sql_builder import NoteQueryBuilder
from notelens.config import WarehouseLayout
from notelens.errors import NotFound
from notelens.executor.base import QueryExecutor, run_concurrently, run_query
from notelens.models.filters import FilterRecord, OrTextMode
from notelens.models.results import SearchResult
from notelens.pagination import paginate
from notelens.parser.rows import FieldSpec, coerce_count, normalize_row, normalize_rows
from notelens.services.boundary import log_statement, service_boundary

logger = logging.getLogger(__name__)

NOTE_FIELDS = FieldSpec.build(
    required_ints=["note_id"],
    floats=["latitude", "longitude"],
    ints=["id_user", "id_country", "comments_count"],
)

COMMENT_FIELDS = FieldSpec.build(
    required_ints=["comment_id", "note_id"],
    ints=["user_id"],
)


async def search_notes(
    executor: QueryExecutor,
    filters: FilterRecord,
    layout: WarehouseLayout | None = None,
    or_text_mode: OrTextMode = OrTextMode.ANCHORED,
) -> SearchResult:
    """Filtered, paginated note search.

    the data page and the total come from two statements over the same
    predicates, run side by side. they aren't a consistent snapshot - a
    write landing between them can make total disagree with the page by a
    row or two, which is fine for a read-mostly warehouse.
    """
    queries = NoteQueryBuilder(layout, or_text_mode).build(filters)
    active = filters.active_filters()
    log_statement("search notes (data)", queries.data_sql, queries.data_params)
    log_statement("search notes (count)", queries.count_sql, queries.count_params)

    with service_boundary("searching notes", filters=active):
        data, count = await run_concurrently(
            executor,
            (queries.data_sql, queries.data_params),
            (queries.count_sql, queries.count_params),
        )
        notes = normalize_rows(data.data, NOTE_FIELDS)
        total = coerce_count(count.data)

    logger.debug("Search notes matched %d notes, returning %d", total, len(notes))
    return SearchResult(
        data=notes,
        pagination=paginate(total, filters.page, filters.limit),
        filters=active,
    )


async def get_note(
    executor: QueryExecutor, note_id: int, layout: WarehouseLayout | None = None
) -> dict:
    """One note with its comment count. Raises NotFound."""
    sql = NoteQueryBuilder(layout).note_by_id()
    log_statement("get note", sql, [note_id])

    with service_boundary("getting note", note_id=note_id):
        result = await run_query(executor, sql, [note_id])
        if not result.data:
            logger.info("Note %s not found", note_id)
            raise NotFound("Note not found")
        return normalize_row(result.data[0], NOTE_FIELDS)


async def get_note_comments(
    executor: QueryExecutor, note_id: int, layout: WarehouseLayout | None = None
) -> list[dict]:
    """Comments on a note, oldest first, with the commenter's username.

    a note without comments (or an unknown note) gives an empty list.
    """
    layout = layout or WarehouseLayout()
    sql = "\n".join(
        [
            "SELECT nc.comment_id, nc.note_id, nc.user_id, u.username, nc.action, "
            "nc.created_at, nc.text",
            f"FROM {layout.table('note_comments')} nc",
            f"LEFT JOIN {layout.table('users')} u ON nc.user_id = u.user_id",
            "WHERE nc.note_id = $1",
            "ORDER BY nc.created_at ASC, nc.comment_id ASC",
        ]
    )
    log_statement("note comments", sql, [note_id])

    with service_boundary("getting note comments", note_id=note_id):
        result = await run_query(executor, sql, [note_id])
        return normalize_rows(result.data, COMMENT_FIELDS)
