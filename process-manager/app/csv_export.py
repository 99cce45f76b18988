"""CSV downloads for the Formatos view and the action import template.

Exports follow the layout the office's spreadsheets expect: a plain header
row of Spanish labels, then one row per record with every value wrapped in
double quotes. Embedded quotes are doubled so the files can be read back by
any CSV reader, including the importer in csv_import.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Callable, Iterable

from app.csv_columns import ACTION_LABELS
from app.listing import field_value

DEFAULT_DATE_FORMAT = "%d/%m/%Y"
NO_FILING_NUMBER = "Sin radicado"
TEMPLATE_FILENAME = "plantilla_actuaciones.csv"


@dataclass(frozen=True)
class ExportFile:
    filename: str
    content: str
    media_type: str = "text/csv;charset=utf-8"

    def to_bytes(self) -> bytes:
        return self.content.encode("utf-8")


@dataclass(frozen=True)
class ExportLayout:
    key: str
    filename: str
    columns: tuple[str, ...]
    # (record, date_format) -> {label: display string}
    project: Callable[[dict[str, Any], str], dict[str, str]]


# ---------------------------------------------------------------------------
# Formatting
# ---------------------------------------------------------------------------

def format_display_date(value: Any, fmt: str = DEFAULT_DATE_FORMAT) -> str:
    """Render a stored date (ISO text or date) for display; empty stays empty."""
    if value is None or value == "":
        return ""
    if isinstance(value, datetime):
        return value.date().strftime(fmt)
    if isinstance(value, date):
        return value.strftime(fmt)
    text = str(value)
    try:
        return date.fromisoformat(text[:10]).strftime(fmt)
    except ValueError:
        return text


def quote_field(value: Any) -> str:
    text = "" if value is None else str(value)
    return '"' + text.replace('"', '""') + '"'


def serialize_rows(columns: Iterable[str], rows: Iterable[dict[str, str]]) -> str:
    """Header row (unquoted labels) followed by fully quoted data rows, joined by \\n."""
    columns = list(columns)
    lines = [",".join(columns)]
    for row in rows:
        lines.append(",".join(quote_field(row.get(column, "")) for column in columns))
    return "\n".join(lines)


def build_template(labels: Iterable[str]) -> str:
    return ",".join(quote_field(label) for label in labels)


def _text(value: Any) -> str:
    return "" if value is None else str(value)


# ---------------------------------------------------------------------------
# Layouts
# ---------------------------------------------------------------------------

def _process_columns(record: dict[str, Any]) -> dict[str, str]:
    return {
        "Cliente": _text(field_value(record, "process.client.name")),
        "Número de Radicado": field_value(record, "process.filing_number") or NO_FILING_NUMBER,
        "Despacho": _text(field_value(record, "process.court")),
    }


def _project_task(record: dict[str, Any], fmt: str) -> dict[str, str]:
    return {
        **_process_columns(record),
        "Tarea": _text(record.get("name")),
        "Descripción": _text(record.get("description")),
        "Fecha de Vencimiento": format_display_date(record.get("due_date"), fmt),
    }


def _project_hearing(record: dict[str, Any], fmt: str) -> dict[str, str]:
    return {
        **_process_columns(record),
        "Audiencia": _text(record.get("name")),
        "Descripción": _text(record.get("description")),
        "Estado de la Audiencia": _text(record.get("hearing_status")),
        "Fecha": format_display_date(record.get("due_date"), fmt),
    }


def _project_term(record: dict[str, Any], fmt: str) -> dict[str, str]:
    return {
        **_process_columns(record),
        "Término": _text(record.get("name")),
        "Descripción": _text(record.get("description")),
        "Días de Término": _text(record.get("days_term")),
        "Fecha de Notificación": format_display_date(record.get("notification_date"), fmt),
        "Fecha de Vencimiento": format_display_date(record.get("due_date"), fmt),
    }


_PROCESS_LABELS = ("Cliente", "Número de Radicado", "Despacho")

EXPORT_LAYOUTS: dict[str, ExportLayout] = {
    "tasks": ExportLayout(
        key="tasks",
        filename="tareas.csv",
        columns=_PROCESS_LABELS + ("Tarea", "Descripción", "Fecha de Vencimiento"),
        project=_project_task,
    ),
    "hearings": ExportLayout(
        key="hearings",
        filename="audiencias.csv",
        columns=_PROCESS_LABELS
        + ("Audiencia", "Descripción", "Estado de la Audiencia", "Fecha"),
        project=_project_hearing,
    ),
    "terms": ExportLayout(
        key="terms",
        filename="terminos.csv",
        columns=_PROCESS_LABELS
        + (
            "Término",
            "Descripción",
            "Días de Término",
            "Fecha de Notificación",
            "Fecha de Vencimiento",
        ),
        project=_project_term,
    ),
}


def export_records(
    kind: str,
    records: Iterable[dict[str, Any]],
    *,
    date_format: str = DEFAULT_DATE_FORMAT,
) -> ExportFile:
    """Build the CSV download for tasks, hearings or terms.

    Raises:
        KeyError: *kind* has no export layout.
    """
    layout = EXPORT_LAYOUTS[kind]
    rows = [layout.project(record, date_format) for record in records]
    return ExportFile(layout.filename, serialize_rows(layout.columns, rows))


def action_template() -> ExportFile:
    """Header-only CSV users fill in for the action import."""
    return ExportFile(TEMPLATE_FILENAME, build_template(ACTION_LABELS.values()))
