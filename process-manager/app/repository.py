"""Session-scoped reads and writes for the Process Manager tool.

Thin layer over shared.data_store that knows the entity schemas: which table
a kind lives in, which process it hangs off, and where its comments are.
Both the API and the dashboard go through here; neither talks to the data
store directly.

Every function takes the caller's Session and an optional ``store`` (the
shared.data_store module by default) so tests can pass an in-memory fake.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import sys as _sys
_sys.path.insert(0, str(Path(__file__).resolve().parent.parent.parent))
from shared import data_store
from shared.auth import Session

from app.errors import FormValidationError
from app.records import (
    ACTIONS,
    CLIENTS,
    PROCESSES,
    STATUSES,
    EntitySchema,
    clean_comment,
    get_schema,
)

logger = logging.getLogger(__name__)

# Rows for the Formatos view carry their process, court and client name
EXPORT_COLUMNS = "*, process:processes (id, filing_number, court, client:clients (name))"


class RecordNotFound(Exception):
    def __init__(self, schema: EntitySchema, record_id: str):
        self.message = f"No se encontró el registro solicitado ({schema.singular})."
        super().__init__(self.message)
        self.record_id = record_id


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

def _attach_comments(
    session: Session,
    schema: EntitySchema,
    rows: list[dict],
    store,
) -> list[dict]:
    """Fetch every row's comments in one query and attach them as ``comments``."""
    if not schema.has_comments or not rows:
        return rows
    comments = store.select(
        session,
        schema.comments_table,
        in_filters={schema.comment_fk: [row["id"] for row in rows]},
        order="created_at",
        descending=False,
    )
    by_parent: dict[Any, list[dict]] = {}
    for comment in comments:
        by_parent.setdefault(comment.get(schema.comment_fk), []).append(comment)
    for row in rows:
        row["comments"] = by_parent.get(row["id"], [])
    return rows


def list_records(
    session: Session,
    schema: EntitySchema,
    *,
    parent_id: str | None = None,
    store=data_store,
) -> list[dict]:
    """All rows of a kind visible to the session, newest first, with comments."""
    filters = {schema.parent_key: parent_id} if schema.parent_key and parent_id else None
    rows = store.select(
        session,
        schema.table,
        schema.select_columns,
        filters=filters,
        order=schema.order_by,
        descending=schema.descending,
    )
    return _attach_comments(session, schema, rows, store)


def get_record(
    session: Session,
    schema: EntitySchema,
    record_id: str,
    *,
    store=data_store,
) -> dict:
    record = store.select_one(session, schema.table, record_id, schema.select_columns)
    if record is None:
        raise RecordNotFound(schema, record_id)
    return record


def list_actions(
    session: Session,
    process_id: str,
    *,
    ascending: bool = False,
    store=data_store,
) -> list[dict]:
    """A process's actions ordered by action date (newest first by default)."""
    return store.select(
        session,
        ACTIONS.table,
        filters={"process_id": process_id},
        order="action_date",
        descending=not ascending,
    )


def list_processes(session: Session, *, store=data_store) -> list[dict]:
    """Every process with its client's name and email embedded as ``client``."""
    return list_records(session, PROCESSES, store=store)


def list_client_options(session: Session, *, store=data_store) -> list[dict]:
    """Client id/name/email pairs for the process form's client picker."""
    return store.select(session, CLIENTS.table, "id, name, email", order="name")


def get_client_detail(session: Session, client_id: str, *, store=data_store) -> dict:
    """A client plus the processes filed for them."""
    client = get_record(session, CLIENTS, client_id, store=store)
    client["processes"] = store.select(
        session,
        PROCESSES.table,
        filters={"client_id": client_id},
        order="created_at",
        descending=True,
    )
    return client


def list_for_export(session: Session, kind: str, *, store=data_store) -> list[dict]:
    """Tasks, hearings or terms across all processes, for the Formatos view."""
    schema = get_schema(kind)
    return store.select(
        session,
        schema.table,
        EXPORT_COLUMNS,
        order="created_at",
        descending=True,
    )


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------

def create_record(
    session: Session,
    schema: EntitySchema,
    values: dict[str, Any],
    *,
    parent_id: str | None = None,
    store=data_store,
) -> dict:
    """Validate form values and insert one row owned by the session's user.

    Raises:
        FormValidationError: A field failed validation, or a sub-record was
            created without its process.
    """
    session.require()
    row = schema.clean(values)
    if schema.parent_key:
        if not parent_id:
            raise FormValidationError("Falta el proceso al que pertenece el registro.")
        row[schema.parent_key] = parent_id
    row["user_id"] = session.user_id

    stored = store.insert(session, schema.table, [row])
    logger.info("Created %s in %s", schema.singular, schema.table)
    return stored[0] if stored else row


def update_record(
    session: Session,
    schema: EntitySchema,
    record_id: str,
    values: dict[str, Any],
    *,
    store=data_store,
) -> dict:
    """Apply the fields present in *values* to one row."""
    row = schema.clean(values, partial=True)
    if not row:
        raise FormValidationError("No hay cambios para guardar.")
    stored = store.update(session, schema.table, record_id, row)
    if not stored:
        raise RecordNotFound(schema, record_id)
    return stored[0]


def delete_record(
    session: Session,
    schema: EntitySchema,
    record_id: str,
    *,
    store=data_store,
) -> None:
    store.delete(session, schema.table, record_id)
    logger.info("Deleted %s %s", schema.singular, record_id)


def set_status(
    session: Session,
    schema: EntitySchema,
    record_id: str,
    status: str,
    *,
    store=data_store,
) -> dict:
    """Move a task-like record to another board column. Only ``status`` changes."""
    if not schema.has_status:
        raise FormValidationError(f"{schema.singular} no tiene estado.", "status")
    if status not in STATUSES:
        raise FormValidationError("Estado inválido.", "status")
    stored = store.update(session, schema.table, record_id, {"status": status})
    if not stored:
        raise RecordNotFound(schema, record_id)
    return stored[0]


def add_comment(
    session: Session,
    schema: EntitySchema,
    record_id: str,
    content: str | None,
    *,
    store=data_store,
) -> dict:
    """Append a comment to a task, hearing, term or meeting.

    Raises:
        FormValidationError: Blank comment, or a kind without comments.
    """
    if not schema.has_comments:
        raise FormValidationError(f"{schema.singular} no admite comentarios.")
    session.require()
    row = {
        schema.comment_fk: record_id,
        "content": clean_comment(content),
        "user_id": session.user_id,
    }
    stored = store.insert(session, schema.comments_table, [row])
    return stored[0] if stored else row
