"""Error types for the process-manager tool.

Every error carries a Spanish, user-facing ``message`` that the dashboard
shows with st.error() and the API returns as the response ``detail``.
"""

from __future__ import annotations

from dataclasses import dataclass


class CsvImportError(Exception):
    """Base class for failures that abort a CSV import."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class FormatError(CsvImportError):
    """The upload is not readable as CSV text, or has no data rows."""


class MissingRequiredColumn(CsvImportError):
    def __init__(self, message: str | None = None):
        super().__init__(
            message
            or 'El CSV debe contener al menos las columnas "Fecha de Actuación" y "Actuación"'
        )


class RowValidationError(CsvImportError):
    """A data row is missing its action date or action, or the date is invalid."""

    def __init__(self, message: str, row_number: int, row: str):
        super().__init__(message)
        self.row_number = row_number
        self.row = row


class ImportTransportError(CsvImportError):
    """The batch insert was rejected by the data store."""


@dataclass(frozen=True)
class DateParseWarning:
    """An optional date cell that could not be parsed and was dropped."""

    row_number: int
    column: str
    value: str

    def __str__(self) -> str:
        return f"Fila {self.row_number}: fecha inválida en {self.column} ({self.value!r}), se omitió"


class FormValidationError(Exception):
    """An entity form failed validation (required field, bad value, blank comment)."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.message = message
        self.field = field
