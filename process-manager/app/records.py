"""Record types and entity form schemas for the Process Manager tool.

Each table the tool edits is described once by an EntitySchema: its fields,
labels, which are required, the parent process column, and where its
comments live. The same schema drives the dashboard's forms, the API's
/api/entities listing and the repository's queries.

Validation goes through a pydantic model built from the schema's fields
(``form_model`` for creates, ``update_model`` for partial updates). Every
field failure carries the Spanish message shown to the user.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from functools import cached_property
from typing import Annotated, Any, Literal, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    ValidationError,
    WrapValidator,
    conint,
    create_model,
)

from app.errors import FormValidationError


# ---------------------------------------------------------------------------
# Choice lists
# ---------------------------------------------------------------------------

PRIORITIES: dict[str, str] = {
    "low": "Baja",
    "medium": "Media",
    "high": "Alta",
}

STATUSES: dict[str, str] = {
    "pending": "Pendiente",
    "in_progress": "En Progreso",
    "completed": "Completada",
}

SUBJECT_TYPES: dict[str, str] = {
    name: name
    for name in (
        "Demandante",
        "Demandado",
        "Tercero Interviniente",
        "Coadyuvante",
        "Ministerio Público",
        "Otro",
    )
}


# ---------------------------------------------------------------------------
# Process action record (CSV import)
# ---------------------------------------------------------------------------

@dataclass
class ProcessActionRecord:
    """One action (actuación) ready to be inserted into process_actions."""

    action_date: date
    action: str
    process_id: str
    owner_id: str
    annotation: str | None = None
    term_start_date: date | None = None
    term_end_date: date | None = None

    def to_row(self) -> dict[str, Any]:
        """Storage row; optional fields are left out when empty."""
        row: dict[str, Any] = {
            "process_id": self.process_id,
            "user_id": self.owner_id,
            "action_date": self.action_date.isoformat(),
            "action": self.action,
        }
        if self.annotation:
            row["annotation"] = self.annotation
        if self.term_start_date:
            row["term_start_date"] = self.term_start_date.isoformat()
        if self.term_end_date:
            row["term_end_date"] = self.term_end_date.isoformat()
        return row


# ---------------------------------------------------------------------------
# Entity form schemas
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FieldSpec:
    name: str
    label: str
    kind: str = "text"  # text, textarea, email, url, date, int, choice, ref
    required: bool = False
    choices: dict[str, str] | None = None
    default: Any = None
    required_message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "label": self.label,
            "kind": self.kind,
            "required": self.required,
            "choices": self.choices,
            "default": self.default,
        }


class FormModel(BaseModel):
    """Base for the generated per-entity form models; unknown keys are dropped."""

    model_config = ConfigDict(extra="ignore")


def _value_type(spec: FieldSpec) -> Any:
    if spec.kind == "email":
        return EmailStr
    if spec.kind == "date":
        return date
    if spec.kind == "int":
        return conint(ge=0)
    if spec.kind == "choice" and spec.choices:
        return Literal[tuple(spec.choices)]
    return str


def _invalid_message(spec: FieldSpec, error_type: str) -> str:
    if spec.kind == "date":
        return f"Fecha inválida en {spec.label}."
    if spec.kind == "int":
        if error_type == "greater_than_equal":
            return f"{spec.label} no puede ser negativo."
        return f"{spec.label} debe ser un número entero."
    if spec.kind == "email":
        return "Ingrese un correo electrónico válido."
    return f"Valor inválido para {spec.label}."


def _field_check(spec: FieldSpec) -> WrapValidator:
    """Trim strings, treat blanks as missing, and word every failure in Spanish."""

    def check(value: Any, handler) -> Any:
        if isinstance(value, str):
            value = value.strip()
        if value is None or value == "":
            if spec.required:
                raise ValueError(spec.required_message or f"El campo {spec.label} es requerido.")
            return None
        try:
            return handler(value)
        except ValidationError as exc:
            raise ValueError(_invalid_message(spec, exc.errors()[0]["type"])) from None

    return WrapValidator(check)


def build_form_model(name: str, fields: tuple[FieldSpec, ...], *, partial: bool = False):
    """A pydantic model with one field per FieldSpec.

    The full model validates every field, defaults included, so a missing
    required field fails. The partial model leaves unset fields alone and
    is dumped with ``exclude_unset``.
    """
    definitions: dict[str, Any] = {}
    for spec in fields:
        annotation = Annotated[Optional[_value_type(spec)], _field_check(spec)]
        if partial:
            definitions[spec.name] = (annotation, None)
        else:
            definitions[spec.name] = (annotation, Field(spec.default, validate_default=True))
    return create_model(name, __base__=FormModel, **definitions)


def form_error(errors: list[dict[str, Any]]) -> FormValidationError:
    """The first pydantic error as a FormValidationError."""
    first = errors[0]
    loc = first.get("loc") or ()
    error = (first.get("ctx") or {}).get("error")
    if isinstance(error, ValueError):
        message = str(error)
    else:
        message = str(first.get("msg", "")).removeprefix("Value error, ")
    return FormValidationError(message, str(loc[-1]) if loc else None)


@dataclass(frozen=True)
class EntitySchema:
    key: str
    table: str
    singular: str
    fields: tuple[FieldSpec, ...]
    parent_key: str | None = "process_id"
    comments_table: str | None = None
    comment_fk: str | None = None
    order_by: str = "created_at"
    descending: bool = True
    search_fields: tuple[str, ...] = ()
    select_columns: str = "*"

    @property
    def has_comments(self) -> bool:
        return self.comments_table is not None

    @property
    def has_status(self) -> bool:
        return any(f.name == "status" for f in self.fields)

    @cached_property
    def form_model(self) -> type[FormModel]:
        return build_form_model(f"{self.key.title()}Form", self.fields)

    @cached_property
    def update_model(self) -> type[FormModel]:
        return build_form_model(f"{self.key.title()}Update", self.fields, partial=True)

    def clean(self, values: dict[str, Any], *, partial: bool = False) -> dict[str, Any]:
        """Validate raw form values into a storage row.

        Strings are trimmed; empty optional values become None and dates
        become ISO strings. With ``partial=True`` only the fields present in
        *values* are checked and returned, which is what an update sends.

        Raises:
            FormValidationError: First failing field, with a Spanish message.
        """
        model = self.update_model if partial else self.form_model
        try:
            form = model.model_validate(values)
        except ValidationError as exc:
            raise form_error(exc.errors()) from None
        return form.model_dump(mode="json", exclude_unset=partial)

    def blank_form(self) -> dict[str, Any]:
        """Initial values for a "new" form."""
        return {
            spec.name: spec.default if spec.default is not None else ""
            for spec in self.fields
        }

    def form_from_record(self, record: dict[str, Any]) -> dict[str, Any]:
        """Values for an edit form; missing fields fall back to "" (or the default)."""
        form = self.blank_form()
        for spec in self.fields:
            value = record.get(spec.name)
            if value is not None:
                form[spec.name] = value
        return form

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "table": self.table,
            "singular": self.singular,
            "has_comments": self.has_comments,
            "fields": [spec.to_dict() for spec in self.fields],
        }


def _board_fields(noun: str, name_label: str, of: str = "de la") -> tuple[FieldSpec, ...]:
    """Fields shared by tasks, hearings, terms and meetings."""
    return (
        FieldSpec(
            "name",
            name_label,
            required=True,
            required_message=f"El nombre {of} {noun} es requerido.",
        ),
        FieldSpec("description", "Descripción", kind="textarea"),
        FieldSpec("due_date", "Fecha de Vencimiento", kind="date"),
        FieldSpec("priority", "Prioridad", kind="choice", choices=PRIORITIES, default="medium"),
        FieldSpec("status", "Estado", kind="choice", choices=STATUSES, default="pending"),
        FieldSpec("responsable", "Responsable"),
    )


CLIENTS = EntitySchema(
    key="clients",
    table="clients",
    singular="Cliente",
    parent_key=None,
    fields=(
        FieldSpec("name", "Nombre", required=True),
        FieldSpec("email", "Correo electrónico", kind="email", required=True),
        FieldSpec("description", "Descripción", kind="textarea"),
    ),
    search_fields=("name", "email"),
)

PROCESSES = EntitySchema(
    key="processes",
    table="processes",
    singular="Proceso",
    parent_key=None,
    fields=(
        FieldSpec("client_id", "Cliente", kind="ref", required=True),
        FieldSpec("filing_number", "Número de Radicado"),
        FieldSpec("filing_date", "Fecha de Radicación", kind="date", required=True),
        FieldSpec("court", "Despacho", required=True),
        FieldSpec("judge", "Juez", required=True),
        FieldSpec("process_type", "Tipo de Proceso", required=True),
        FieldSpec("process_class", "Clase de Proceso", required=True),
        FieldSpec("process_subclass", "Subclase de Proceso", required=True),
        FieldSpec("documents_url", "URL de Documentos", kind="url"),
        FieldSpec("resource", "Recurso"),
        FieldSpec("file_location", "Ubicación del Expediente"),
        FieldSpec("filing_content", "Contenido de la Radicación", kind="textarea"),
    ),
    search_fields=("client.name", "filing_number"),
    select_columns="*, client:clients (name, email)",
)

SUBJECTS = EntitySchema(
    key="subjects",
    table="process_subjects",
    singular="Sujeto Procesal",
    fields=(
        FieldSpec("type", "Tipo", kind="choice", choices=SUBJECT_TYPES, required=True),
        FieldSpec("name", "Nombre", required=True),
    ),
    search_fields=("name", "type"),
)

ACTIONS = EntitySchema(
    key="actions",
    table="process_actions",
    singular="Actuación",
    fields=(
        FieldSpec("action_date", "Fecha de Actuación", kind="date", required=True),
        FieldSpec("action", "Actuación", kind="textarea", required=True),
        FieldSpec("annotation", "Anotación", kind="textarea"),
        FieldSpec("term_start_date", "Fecha Inicia Término", kind="date"),
        FieldSpec("term_end_date", "Fecha Finaliza Término", kind="date"),
    ),
    order_by="action_date",
    search_fields=("action", "annotation"),
)

TASKS = EntitySchema(
    key="tasks",
    table="process_tasks",
    singular="Tarea",
    fields=_board_fields("tarea", "Tarea"),
    comments_table="task_comments",
    comment_fk="task_id",
    search_fields=("name", "description"),
)

HEARINGS = EntitySchema(
    key="hearings",
    table="process_hearings",
    singular="Audiencia",
    fields=_board_fields("audiencia", "Audiencia")
    + (FieldSpec("hearing_status", "Estado de la Audiencia"),),
    comments_table="hearing_comments",
    comment_fk="hearing_id",
    search_fields=("name", "description"),
)

TERMS = EntitySchema(
    key="terms",
    table="process_terms",
    singular="Término",
    fields=_board_fields("término", "Término", of="del")
    + (
        FieldSpec("days_term", "Días de Término", kind="int", required=True),
        FieldSpec("notification_date", "Fecha de Notificación", kind="date"),
    ),
    comments_table="term_comments",
    comment_fk="term_id",
    search_fields=("name", "description"),
)

MEETINGS = EntitySchema(
    key="meetings",
    table="process_meetings",
    singular="Reunión",
    fields=_board_fields("reunión", "Reunión") + (FieldSpec("location", "Lugar"),),
    comments_table="meeting_comments",
    comment_fk="meeting_id",
    search_fields=("name", "description", "location"),
)

SCHEMAS: dict[str, EntitySchema] = {
    schema.key: schema
    for schema in (CLIENTS, PROCESSES, SUBJECTS, ACTIONS, TASKS, HEARINGS, TERMS, MEETINGS)
}

# Sub-records shown as tabs on a process
PROCESS_TABS: tuple[str, ...] = ("subjects", "actions", "tasks", "hearings", "terms", "meetings")


def get_schema(key: str) -> EntitySchema:
    """Look up a schema by key; raises KeyError for unknown kinds."""
    return SCHEMAS[key]


def clean_comment(content: str | None) -> str:
    """Trimmed comment text; blank comments are rejected."""
    text = (content or "").strip()
    if not text:
        raise FormValidationError("El comentario no puede estar vacío.", "content")
    return text
