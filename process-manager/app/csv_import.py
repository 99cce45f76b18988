"""Bulk import of process actions from an uploaded CSV file.

The whole file is validated before anything is written: a missing required
column, a row without date or action, or an unreadable action date aborts
the import with nothing inserted. Valid files become one batch insert into
``process_actions``.

Unreadable *optional* dates (term start/end) are dropped from their row and
reported as DateParseWarning entries on the result.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path

import sys as _sys
_sys.path.insert(0, str(Path(__file__).resolve().parent.parent.parent))
from shared import data_store
from shared.auth import Session

from app.csv_columns import ColumnLayout, resolve_action_columns
from app.csv_tokenizer import split_lines, tokenize_line
from app.errors import (
    DateParseWarning,
    FormatError,
    ImportTransportError,
    RowValidationError,
)
from app.records import ProcessActionRecord

logger = logging.getLogger(__name__)

ACTIONS_TABLE = "process_actions"


@dataclass
class ImportResult:
    records: list[ProcessActionRecord]
    inserted: int = 0
    warnings: list[DateParseWarning] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Parsing helpers
# ---------------------------------------------------------------------------

def decode_upload(data: bytes | str) -> str:
    """Decode uploaded bytes as UTF-8, tolerating a leading BOM."""
    if isinstance(data, str):
        return data.lstrip("\ufeff")
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise FormatError(
            "El archivo no es un CSV válido en UTF-8. Guárdelo como CSV UTF-8 e intente de nuevo."
        ) from exc


def parse_import_date(value: str) -> date | None:
    """Parse ``DD/MM/YYYY`` or ISO (``YYYY-MM-DD``, optionally with a time).

    Returns None for anything else, including impossible calendar dates
    such as 31/02/2024 and short years such as 01/02/24.
    """
    value = value.strip()
    if "/" in value:
        parts = value.split("/")
        if len(parts) < 3:
            return None
        if len(parts[2].strip()) != 4:
            return None
        try:
            day, month, year = (int(p) for p in parts[:3])
            return date(year, month, day)
        except ValueError:
            return None
    if "-" in value:
        try:
            return date.fromisoformat(value)
        except ValueError:
            pass
        try:
            return datetime.fromisoformat(value).date()
        except ValueError:
            return None
    return None


def _cell(values: list[str], index: int) -> str:
    return values[index] if index < len(values) else ""


def materialize_rows(
    lines: list[str],
    layout: ColumnLayout,
    *,
    process_id: str,
    owner_id: str,
) -> tuple[list[ProcessActionRecord], list[DateParseWarning]]:
    """Turn data lines into action records.

    Args:
        lines: Data lines (header excluded), already trimmed and non-blank.
        layout: Column positions from resolve_action_columns().
        process_id: Process every record belongs to.
        owner_id: Authenticated user stored as the records' owner.

    Raises:
        RowValidationError: A row lacks its date or action, or the action
            date cannot be parsed. No records are returned in that case.
    """
    records: list[ProcessActionRecord] = []
    warnings: list[DateParseWarning] = []

    for row_number, line in enumerate(lines, start=1):
        values = tokenize_line(line)
        raw_date = _cell(values, layout.date_index)
        action = _cell(values, layout.action_index)
        if not raw_date or not action:
            raise RowValidationError(
                f"Todas las filas deben tener fecha de actuación y actuación (fila {row_number}: {line})",
                row_number,
                line,
            )

        action_date = parse_import_date(raw_date)
        if action_date is None:
            raise RowValidationError(
                f"Formato de fecha inválido en la fila {row_number}: {line}",
                row_number,
                line,
            )

        record = ProcessActionRecord(
            action_date=action_date,
            action=action,
            process_id=process_id,
            owner_id=owner_id,
        )
        for index, column in layout.optional.items():
            value = _cell(values, index)
            if not value:
                continue
            if "date" in column:
                parsed = parse_import_date(value)
                if parsed is None:
                    warning = DateParseWarning(row_number, layout.headers[index], value)
                    logger.warning("Skipping optional date: %s", warning)
                    warnings.append(warning)
                    continue
                setattr(record, column, parsed)
            else:
                setattr(record, column, value)
        records.append(record)

    return records, warnings


def parse_actions_csv(
    text: str,
    *,
    process_id: str,
    owner_id: str,
) -> tuple[list[ProcessActionRecord], list[DateParseWarning]]:
    """Validate a whole CSV document and build its action records.

    Raises:
        FormatError: Fewer than two non-blank lines.
        MissingRequiredColumn: No "Fecha de Actuación" or "Actuación" column.
        RowValidationError: See materialize_rows().
    """
    lines = split_lines(text)
    if len(lines) < 2:
        raise FormatError(
            "El archivo CSV debe contener al menos un encabezado y una fila de datos"
        )
    layout = resolve_action_columns(tokenize_line(lines[0]))
    return materialize_rows(
        lines[1:], layout, process_id=process_id, owner_id=owner_id
    )


# ---------------------------------------------------------------------------
# Import driver
# ---------------------------------------------------------------------------

def import_actions(
    data: bytes | str,
    session: Session,
    process_id: str,
    *,
    store=data_store,
) -> ImportResult:
    """Parse an uploaded CSV and insert its actions in a single batch.

    Nothing is written unless every row is valid. A failed insert is not
    retried.

    Raises:
        NotAuthenticatedError: *session* is not signed in.
        CsvImportError: Any parse/validation failure, or ImportTransportError
            when the data store rejects the batch.
    """
    session.require()
    text = decode_upload(data)
    records, warnings = parse_actions_csv(
        text, process_id=process_id, owner_id=session.user_id
    )

    rows = [record.to_row() for record in records]
    try:
        store.insert(session, ACTIONS_TABLE, rows)
    except data_store.DataStoreError as exc:
        logger.error("Action import for process %s failed: %s", process_id, exc.message)
        raise ImportTransportError(
            f"Error al importar las actuaciones: {exc.message}"
        ) from exc

    logger.info(
        "Imported %d action(s) into process %s (%d warning(s))",
        len(rows), process_id, len(warnings),
    )
    return ImportResult(records=records, inserted=len(rows), warnings=warnings)
