"""FastAPI backend for the Process Manager tool.

Provides endpoints for clients, legal processes and each process's
sub-records (procedural subjects, actions, tasks, hearings, terms and
meetings), the bulk CSV import of actions, and the CSV exports of the
Formatos view.

Every data endpoint requires ``Authorization: Bearer <access token>``; the
token is resolved to a Session that is passed down to the repository.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from pathlib import Path
from typing import Any

from fastapi import Depends, FastAPI, File, Header, HTTPException, Query, Request, UploadFile
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel

import sys as _sys
_sys.path.insert(0, str(Path(__file__).resolve().parent.parent.parent))
from shared import auth, data_store
from shared.config_store import get_config_value, get_page_size
from shared.settings import configure_logging

from app import repository
from app.csv_export import EXPORT_LAYOUTS, ExportFile, action_template, export_records
from app.csv_import import import_actions
from app.errors import CsvImportError, FormValidationError, ImportTransportError
from app.listing import (
    all_of,
    field_equals,
    priority_rank,
    run_pipeline,
    text_search,
)
from app.records import (
    ACTIONS,
    CLIENTS,
    PROCESS_TABS,
    PROCESSES,
    SCHEMAS,
    form_error,
    get_schema,
)

TOOL_NAME = "process-manager"

configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title="Process Manager API")


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------

class Credentials(BaseModel):
    email: str
    password: str


class LogoutRequest(BaseModel):
    refresh_token: str


class StatusUpdate(BaseModel):
    status: str


class CommentCreate(BaseModel):
    content: str = ""


# Entity forms, generated from the record schemas
ClientForm = CLIENTS.form_model
ClientUpdate = CLIENTS.update_model
ProcessForm = PROCESSES.form_model
ProcessUpdate = PROCESSES.update_model


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------

def get_store():
    """The data store module; overridden with a fake in tests."""
    return data_store


def get_session(authorization: str | None = Header(None)) -> auth.Session:
    """Resolve the bearer token to an authenticated Session (401 otherwise)."""
    token = ""
    if authorization and authorization.lower().startswith("bearer "):
        token = authorization[len("bearer "):].strip()
    return auth.session_from_token(token)


# ---------------------------------------------------------------------------
# Error handlers
# ---------------------------------------------------------------------------

def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": message})


@app.exception_handler(ImportTransportError)
async def import_transport_handler(request: Request, exc: ImportTransportError):
    return _error(502, exc.message)


@app.exception_handler(CsvImportError)
async def csv_import_handler(request: Request, exc: CsvImportError):
    logger.info("Import rejected: %s", exc.message)
    return _error(400, exc.message)


@app.exception_handler(FormValidationError)
async def form_validation_handler(request: Request, exc: FormValidationError):
    return _error(400, exc.message)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Entity form failures are 400 with the field message; anything else stays 422."""
    errors = exc.errors()
    if errors and errors[0].get("type") == "value_error":
        return _error(400, form_error(errors).message)
    return await request_validation_exception_handler(request, exc)


@app.exception_handler(auth.NotAuthenticatedError)
async def not_authenticated_handler(request: Request, exc: auth.NotAuthenticatedError):
    return _error(401, exc.message)


@app.exception_handler(repository.RecordNotFound)
async def not_found_handler(request: Request, exc: repository.RecordNotFound):
    return _error(404, exc.message)


@app.exception_handler(data_store.DataStoreError)
async def data_store_handler(request: Request, exc: data_store.DataStoreError):
    logger.error("Data store error on %s %s: %s", request.method, request.url.path, exc.message)
    return _error(502, exc.message)


def _sub_schema(kind: str):
    if kind not in PROCESS_TABS:
        raise HTTPException(status_code=404, detail=f"Unknown record type: {kind}")
    return get_schema(kind)


def _csv_response(export: ExportFile) -> Response:
    return Response(
        content=export.to_bytes(),
        media_type=export.media_type,
        headers={"Content-Disposition": f'attachment; filename="{export.filename}"'},
    )


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------

def _session_payload(session: auth.Session) -> dict[str, Any]:
    return {
        "user_id": session.user_id,
        "email": session.email,
        "access_token": session.access_token,
        "refresh_token": session.refresh_token,
        "authenticated": session.is_authenticated,
    }


@app.post("/api/auth/login")
def login(request: Credentials) -> dict[str, Any]:
    """Exchange email and password for access and refresh tokens."""
    try:
        session = auth.sign_in(request.email, request.password)
    except data_store.DataStoreError as exc:
        raise HTTPException(status_code=401, detail=exc.message) from exc
    return _session_payload(session)


@app.post("/api/auth/register", status_code=201)
def register(request: Credentials) -> dict[str, Any]:
    """Create an account. ``authenticated`` is false until the e-mail is confirmed."""
    try:
        session = auth.sign_up(request.email, request.password)
    except data_store.DataStoreError as exc:
        raise HTTPException(status_code=400, detail=exc.message) from exc
    return _session_payload(session)


@app.post("/api/auth/logout")
def logout(
    request: LogoutRequest,
    session: auth.Session = Depends(get_session),
) -> dict[str, Any]:
    signed_out = auth.sign_out(replace(session, refresh_token=request.refresh_token))
    return {"state": signed_out.state.value}


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------

@app.get("/api/entities")
def list_entities() -> list[dict[str, Any]]:
    """Field schemas for every record type, for building forms client-side."""
    return [schema.to_dict() for schema in SCHEMAS.values()]


# ---------------------------------------------------------------------------
# Clients
# ---------------------------------------------------------------------------

@app.get("/api/clients")
def list_clients(
    search: str | None = Query(None, description="Match on name or email"),
    page: int = Query(1, ge=1),
    per_page: int | None = Query(None, ge=1),
    session: auth.Session = Depends(get_session),
    store=Depends(get_store),
) -> dict[str, Any]:
    rows = repository.list_records(session, CLIENTS, store=store)
    result = run_pipeline(
        rows,
        predicate=text_search(search, *CLIENTS.search_fields),
        page=page,
        per_page=per_page or get_page_size(TOOL_NAME, "page_size_clients"),
    )
    return result.to_dict()


@app.post("/api/clients", status_code=201)
def create_client(
    values: ClientForm,
    session: auth.Session = Depends(get_session),
    store=Depends(get_store),
) -> dict[str, Any]:
    return repository.create_record(session, CLIENTS, values.model_dump(), store=store)


@app.get("/api/clients/{client_id}")
def get_client(
    client_id: str,
    session: auth.Session = Depends(get_session),
    store=Depends(get_store),
) -> dict[str, Any]:
    """A client with the list of their processes."""
    return repository.get_client_detail(session, client_id, store=store)


@app.put("/api/clients/{client_id}")
def update_client(
    client_id: str,
    values: ClientUpdate,
    session: auth.Session = Depends(get_session),
    store=Depends(get_store),
) -> dict[str, Any]:
    return repository.update_record(
        session, CLIENTS, client_id, values.model_dump(exclude_unset=True), store=store
    )


@app.delete("/api/clients/{client_id}")
def delete_client(
    client_id: str,
    session: auth.Session = Depends(get_session),
    store=Depends(get_store),
) -> dict[str, Any]:
    repository.delete_record(session, CLIENTS, client_id, store=store)
    return {"deleted": True, "id": client_id}


# ---------------------------------------------------------------------------
# Processes
# ---------------------------------------------------------------------------

@app.get("/api/processes")
def list_processes(
    search: str | None = Query(None, description="Match on client name or filing number"),
    page: int = Query(1, ge=1),
    per_page: int | None = Query(None, ge=1),
    session: auth.Session = Depends(get_session),
    store=Depends(get_store),
) -> dict[str, Any]:
    rows = repository.list_processes(session, store=store)
    result = run_pipeline(
        rows,
        predicate=text_search(search, *PROCESSES.search_fields),
        page=page,
        per_page=per_page or get_page_size(TOOL_NAME, "page_size_processes"),
    )
    return result.to_dict()


@app.post("/api/processes", status_code=201)
def create_process(
    values: ProcessForm,
    session: auth.Session = Depends(get_session),
    store=Depends(get_store),
) -> dict[str, Any]:
    return repository.create_record(session, PROCESSES, values.model_dump(), store=store)


@app.get("/api/processes/{process_id}")
def get_process(
    process_id: str,
    session: auth.Session = Depends(get_session),
    store=Depends(get_store),
) -> dict[str, Any]:
    return repository.get_record(session, PROCESSES, process_id, store=store)


@app.put("/api/processes/{process_id}")
def update_process(
    process_id: str,
    values: ProcessUpdate,
    session: auth.Session = Depends(get_session),
    store=Depends(get_store),
) -> dict[str, Any]:
    return repository.update_record(
        session, PROCESSES, process_id, values.model_dump(exclude_unset=True), store=store
    )


@app.delete("/api/processes/{process_id}")
def delete_process(
    process_id: str,
    session: auth.Session = Depends(get_session),
    store=Depends(get_store),
) -> dict[str, Any]:
    repository.delete_record(session, PROCESSES, process_id, store=store)
    return {"deleted": True, "id": process_id}


# ---------------------------------------------------------------------------
# Action import / template
# ---------------------------------------------------------------------------

@app.post("/api/processes/{process_id}/actions/import", status_code=201)
def import_process_actions(
    process_id: str,
    file: UploadFile = File(...),
    session: auth.Session = Depends(get_session),
    store=Depends(get_store),
) -> dict[str, Any]:
    """Bulk-create actions from a CSV upload.

    The file needs at least the "Fecha de Actuación" and "Actuación"
    columns. Any invalid row rejects the whole file (400) and nothing is
    inserted.
    """
    result = import_actions(file.file.read(), session, process_id, store=store)
    return {
        "inserted": result.inserted,
        "records": [record.to_row() for record in result.records],
        "warnings": [str(warning) for warning in result.warnings],
    }


@app.get("/api/actions/template")
def download_action_template() -> Response:
    """Header-only CSV to fill in for the action import."""
    return _csv_response(action_template())


# ---------------------------------------------------------------------------
# Process sub-records
# ---------------------------------------------------------------------------

@app.get("/api/processes/{process_id}/{kind}")
def list_sub_records(
    process_id: str,
    kind: str,
    search: str | None = Query(None),
    status: str | None = Query(None, description="pending, in_progress, completed or all"),
    responsable: str | None = Query(None, description="Responsable name or all"),
    order: str | None = Query(None, description="asc or desc"),
    page: int = Query(1, ge=1),
    per_page: int | None = Query(None, ge=1),
    session: auth.Session = Depends(get_session),
    store=Depends(get_store),
) -> dict[str, Any]:
    """List one kind of sub-record for a process.

    Actions are ordered by action date (``order``, default desc) and
    paginated. Tasks, hearings, terms and meetings can be filtered by
    status and responsable and sorted by priority (``order``).
    """
    schema = _sub_schema(kind)

    if schema is ACTIONS:
        rows = repository.list_actions(
            session, process_id, ascending=order == "asc", store=store
        )
        result = run_pipeline(
            rows,
            predicate=text_search(search, *ACTIONS.search_fields),
            page=page,
            per_page=per_page or get_page_size(TOOL_NAME, "page_size_actions"),
        )
        return result.to_dict()

    rows = repository.list_records(session, schema, parent_id=process_id, store=store)
    predicates = [text_search(search, *schema.search_fields)]
    if schema.has_status:
        predicates.append(field_equals("status", status))
        predicates.append(field_equals("responsable", responsable))
    result = run_pipeline(
        rows,
        predicate=all_of(*predicates),
        key=priority_rank if order in ("asc", "desc") and schema.has_status else None,
        descending=order == "desc",
        page=page,
        per_page=per_page,
    )
    return result.to_dict()


@app.post("/api/processes/{process_id}/{kind}", status_code=201)
def create_sub_record(
    process_id: str,
    kind: str,
    values: dict[str, Any],
    session: auth.Session = Depends(get_session),
    store=Depends(get_store),
) -> dict[str, Any]:
    """Create a sub-record; the body is checked against the kind's form model."""
    schema = _sub_schema(kind)
    return repository.create_record(
        session, schema, values, parent_id=process_id, store=store
    )


@app.put("/api/processes/{process_id}/{kind}/{record_id}")
def update_sub_record(
    process_id: str,
    kind: str,
    record_id: str,
    values: dict[str, Any],
    session: auth.Session = Depends(get_session),
    store=Depends(get_store),
) -> dict[str, Any]:
    schema = _sub_schema(kind)
    return repository.update_record(session, schema, record_id, values, store=store)


@app.delete("/api/processes/{process_id}/{kind}/{record_id}")
def delete_sub_record(
    process_id: str,
    kind: str,
    record_id: str,
    session: auth.Session = Depends(get_session),
    store=Depends(get_store),
) -> dict[str, Any]:
    schema = _sub_schema(kind)
    repository.delete_record(session, schema, record_id, store=store)
    return {"deleted": True, "id": record_id}


@app.patch("/api/processes/{process_id}/{kind}/{record_id}/status")
def update_sub_record_status(
    process_id: str,
    kind: str,
    record_id: str,
    request: StatusUpdate,
    session: auth.Session = Depends(get_session),
    store=Depends(get_store),
) -> dict[str, Any]:
    """Move a task, hearing, term or meeting to another board column."""
    schema = _sub_schema(kind)
    return repository.set_status(session, schema, record_id, request.status, store=store)


@app.post("/api/processes/{process_id}/{kind}/{record_id}/comments", status_code=201)
def add_sub_record_comment(
    process_id: str,
    kind: str,
    record_id: str,
    request: CommentCreate,
    session: auth.Session = Depends(get_session),
    store=Depends(get_store),
) -> dict[str, Any]:
    schema = _sub_schema(kind)
    return repository.add_comment(session, schema, record_id, request.content, store=store)


# ---------------------------------------------------------------------------
# Formatos (cross-process exports)
# ---------------------------------------------------------------------------

def _export_kind(kind: str) -> str:
    if kind not in EXPORT_LAYOUTS:
        raise HTTPException(status_code=404, detail=f"No export for: {kind}")
    return kind


@app.get("/api/formats/{kind}")
def list_format_records(
    kind: str,
    status: str | None = Query(None, description="pending, in_progress, completed or all"),
    session: auth.Session = Depends(get_session),
    store=Depends(get_store),
) -> list[dict[str, Any]]:
    """Tasks, hearings or terms across all processes, optionally by status."""
    rows = repository.list_for_export(session, _export_kind(kind), store=store)
    return run_pipeline(rows, predicate=field_equals("status", status)).items


@app.get("/api/formats/{kind}/export")
def export_format_records(
    kind: str,
    status: str | None = Query(None),
    session: auth.Session = Depends(get_session),
    store=Depends(get_store),
) -> Response:
    """Download the status-filtered records as tareas.csv, audiencias.csv or terminos.csv."""
    rows = repository.list_for_export(session, _export_kind(kind), store=store)
    rows = run_pipeline(rows, predicate=field_equals("status", status)).items
    export = export_records(
        kind, rows, date_format=get_config_value(TOOL_NAME, "export_date_format")
    )
    return _csv_response(export)
