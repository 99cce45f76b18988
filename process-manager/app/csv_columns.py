"""Header normalization and column resolution for action imports.

Headers are matched accent-, case- and spacing-insensitively, so
"Fecha de Actuación", "fecha  de actuacion" and "FECHA DE ACTUACIÓN" all
resolve to the same column.
"""

from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass, field

from app.errors import MissingRequiredColumn

_COMBINING = re.compile("[\u0300-\u036f]")
_WHITESPACE = re.compile(r"\s+")

# normalized header -> process_actions column
ACTION_COLUMN_MAP: dict[str, str] = {
    "fecha de actuacion": "action_date",
    "fecha actuacion": "action_date",
    "actuacion": "action",
    "anotacion": "annotation",
    "fecha inicia termino": "term_start_date",
    "fecha finaliza termino": "term_end_date",
}

# Canonical labels, in template order
ACTION_LABELS: dict[str, str] = {
    "action_date": "Fecha de Actuación",
    "action": "Actuación",
    "annotation": "Anotación",
    "term_start_date": "Fecha Inicia Término",
    "term_end_date": "Fecha Finaliza Término",
}


def normalize_header(cell: str) -> str:
    """Trim, lowercase, strip accents and collapse whitespace. Idempotent."""
    text = unicodedata.normalize("NFD", cell.strip().lower())
    text = _COMBINING.sub("", text)
    return _WHITESPACE.sub(" ", text)


@dataclass
class ColumnLayout:
    """Where each recognized column sits in a header row."""

    headers: list[str]
    date_index: int
    action_index: int
    # column index -> storage field, for recognized optional columns
    optional: dict[int, str] = field(default_factory=dict)


def resolve_action_columns(header_cells: list[str]) -> ColumnLayout:
    """Locate the required and optional action columns in a header row.

    The action date column is the first header containing both "fecha" and
    "actuacion"; the action column is the first header equal to
    "actuacion". Unrecognized headers are ignored.

    Raises:
        MissingRequiredColumn: Either required column is absent.
    """
    headers = [normalize_header(cell) for cell in header_cells]

    date_index = next(
        (i for i, h in enumerate(headers) if "fecha" in h and "actuacion" in h), -1
    )
    action_index = next((i for i, h in enumerate(headers) if h == "actuacion"), -1)
    if date_index < 0 or action_index < 0:
        raise MissingRequiredColumn()

    optional: dict[int, str] = {}
    for i, header in enumerate(headers):
        if i in (date_index, action_index):
            continue
        column = ACTION_COLUMN_MAP.get(header)
        # a second "actuacion"/"fecha de actuacion" column never overrides the first
        if column and column not in ("action_date", "action"):
            optional[i] = column

    return ColumnLayout(
        headers=headers,
        date_index=date_index,
        action_index=action_index,
        optional=optional,
    )
