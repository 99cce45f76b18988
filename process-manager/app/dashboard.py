"""Process Manager -- Streamlit dashboard.

Full legal-process UI: clients, processes and, per process, procedural
subjects, actions (with CSV import), and the task / hearing / term / meeting
boards with comments. The Formatos section exports tasks, hearings and terms
across all processes as CSV.

All data lives in Supabase; every call runs as the signed-in user's Session.
"""

from __future__ import annotations

import html as html_mod
import sys
from datetime import date
from pathlib import Path
from typing import Any

import streamlit as st

from app import repository
from app.csv_export import (
    EXPORT_LAYOUTS,
    action_template,
    export_records,
    format_display_date,
)
from app.csv_import import import_actions
from app.errors import CsvImportError, FormValidationError
from app.listing import (
    Page,
    all_of,
    distinct_values,
    field_equals,
    priority_rank,
    run_pipeline,
    text_search,
)
from app.records import (
    ACTIONS,
    CLIENTS,
    PRIORITIES,
    PROCESSES,
    STATUSES,
    SUBJECTS,
    EntitySchema,
    get_schema,
)

sys.path.insert(0, str(Path(__file__).resolve().parent.parent.parent))
from shared import data_store
from shared.auth import render_logout, require_session
from shared.config_store import get_config_value, get_page_size, set_config_value
from shared.settings import configure_logging

TOOL_NAME = "process-manager"

configure_logging()

# ── Page config ──────────────────────────────────────────────────────────────

st.set_page_config(
    page_title="Gestión de Procesos",
    layout="wide",
    initial_sidebar_state="expanded",
)

# ── CSS ──────────────────────────────────────────────────────────────────────

st.markdown(
    """
<style>
@import url('https://fonts.googleapis.com/css2?family=Inter:wght@400;500;600;700;800&display=swap');

/* Hide Streamlit chrome */
#MainMenu, footer,
div[data-testid="stToolbar"] { display: none !important; }

.stApp {
    font-family: 'Inter', -apple-system, BlinkMacSystemFont, sans-serif;
}

/* Navigation bar */
.nav-bar {
    display: flex;
    align-items: center;
    padding: 10px 4px;
    margin: -1rem 0 1.2rem 0;
    border-bottom: 1px solid rgba(0,0,0,0.07);
}
.nav-title {
    flex: 1;
    text-align: center;
    font-size: 1.15rem;
    font-weight: 700;
    color: #1a2744;
    letter-spacing: -0.02em;
}
.nav-user {
    font-weight: 400;
    color: #86868b;
    font-size: 0.85rem;
    margin-left: 8px;
}

/* Record cards */
.rec-card {
    background: #fff;
    border: 1px solid #e2e8f0;
    border-radius: 10px;
    padding: 12px 14px;
    margin-bottom: 6px;
}
.rec-card-name {
    font-weight: 700;
    color: #1a2744;
    font-size: 0.95rem;
    margin-bottom: 2px;
}
.rec-card-meta {
    font-size: 0.78rem;
    color: #5a6a85;
    line-height: 1.5;
}

/* Priority badges */
.prio {
    display: inline-block;
    padding: 2px 9px;
    font-size: 0.7rem;
    font-weight: 600;
    border-radius: 12px;
    margin-right: 6px;
}
.prio-low { background: #dcfce7; color: #166534; }
.prio-medium { background: #fef3c7; color: #92400e; }
.prio-high { background: #fef2f2; color: #dc3545; }

/* Board column headers */
.col-header {
    font-weight: 700;
    font-size: 0.88rem;
    color: #1a2744;
    text-transform: uppercase;
    letter-spacing: 0.04em;
    padding-bottom: 6px;
    border-bottom: 2px solid #e2e8f0;
    margin-bottom: 10px;
}

/* Detail header */
.detail-header {
    background: #f8fafc;
    border: 1px solid #e2e8f0;
    border-radius: 10px;
    padding: 18px 22px;
    margin-bottom: 16px;
}
.detail-name {
    font-size: 1.3rem;
    font-weight: 800;
    color: #1a2744;
    margin-bottom: 4px;
}
.detail-meta {
    font-size: 0.85rem;
    color: #5a6a85;
    line-height: 1.6;
}
.detail-meta strong { color: #334155; }

/* Comments */
.comment {
    font-size: 0.8rem;
    color: #334155;
    background: #f8fafc;
    border-left: 3px solid #cbd5e1;
    padding: 4px 8px;
    margin-bottom: 4px;
}

/* Empty states */
.empty-state {
    text-align: center;
    padding: 40px 20px;
    color: #5a6a85;
    font-size: 0.88rem;
}
</style>
""",
    unsafe_allow_html=True,
)

session = require_session()

# ── Navigation bar ───────────────────────────────────────────────────────────

st.markdown(
    f"""
<div class="nav-bar">
    <div class="nav-title">Gestión de Procesos<span class="nav-user">&mdash; {html_mod.escape(session.email)}</span></div>
</div>
""",
    unsafe_allow_html=True,
)
render_logout()

# ── Session state defaults ───────────────────────────────────────────────────

_SECTIONS = ["Inicio", "Clientes", "Procesos", "Formatos"]

_PAGE_SIZE_LABELS = {
    "page_size_clients": "Clientes por página",
    "page_size_processes": "Procesos por página",
    "page_size_actions": "Actuaciones por página",
}
_DATE_FORMATS = {"%d/%m/%Y": "DD/MM/AAAA", "%Y-%m-%d": "AAAA-MM-DD"}

_DEFAULTS: dict[str, Any] = {
    "section": "Inicio",
    "selected_client_id": None,
    "selected_process_id": None,
    "client_search": "",
    "client_page": 1,
    "process_search": "",
    "process_page": 1,
    "action_search": "",
    "action_page": 1,
    "action_order": "desc",
}
for _k, _v in _DEFAULTS.items():
    if _k not in st.session_state:
        st.session_state[_k] = _v

# Navigation requested by a button on the previous run
if st.session_state.get("_goto"):
    st.session_state.section = st.session_state.pop("_goto")

# Errors shown to the user instead of a traceback
_USER_ERRORS = (
    data_store.DataStoreError,
    FormValidationError,
    CsvImportError,
    repository.RecordNotFound,
)


# ── Helpers ──────────────────────────────────────────────────────────────────


def _esc(text: Any) -> str:
    """HTML-escape a value (None becomes an empty string)."""
    return html_mod.escape("" if text is None else str(text))


def _date_fmt() -> str:
    return get_config_value(TOOL_NAME, "export_date_format")


def _show_date(value: Any) -> str:
    return format_display_date(value, _date_fmt()) or "—"


def _date_value(value: Any) -> date | None:
    if isinstance(value, date):
        return value
    if not value:
        return None
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return None


def _render_pager(page: Page, state_key: str) -> None:
    """Anterior / Siguiente controls writing the page number to session state."""
    if page.total_pages <= 1:
        return
    left, mid, right = st.columns([1, 2, 1])
    with left:
        if st.button("Anterior", key=f"{state_key}_prev", disabled=not page.has_previous):
            st.session_state[state_key] = page.page - 1
            st.rerun()
    with mid:
        st.caption(
            f"Mostrando {page.start}-{page.end} de {page.total} "
            f"(página {page.page} de {page.total_pages})"
        )
    with right:
        if st.button("Siguiente", key=f"{state_key}_next", disabled=not page.has_next):
            st.session_state[state_key] = page.page + 1
            st.rerun()


def _render_fields(
    schema: EntitySchema,
    initial: dict[str, Any],
    key: str,
    client_options: list[dict] | None = None,
) -> dict[str, Any]:
    """Render one input per schema field and return the raw values."""
    values: dict[str, Any] = {}
    for spec in schema.fields:
        label = f"{spec.label} *" if spec.required else spec.label
        wkey = f"{key}_{spec.name}"
        current = initial.get(spec.name)

        if spec.kind == "textarea":
            values[spec.name] = st.text_area(label, value=current or "", key=wkey)
        elif spec.kind == "date":
            picked = st.date_input(
                label, value=_date_value(current), format="DD/MM/YYYY", key=wkey
            )
            values[spec.name] = picked.isoformat() if picked else ""
        elif spec.kind == "int":
            values[spec.name] = st.number_input(
                label,
                min_value=0,
                step=1,
                value=int(current) if current not in (None, "") else 0,
                key=wkey,
            )
        elif spec.kind == "choice":
            options = list(spec.choices or {})
            values[spec.name] = st.selectbox(
                label,
                options=options,
                index=options.index(current) if current in options else 0,
                format_func=(spec.choices or {}).get,
                key=wkey,
            )
        elif spec.kind == "ref":
            options = [c["id"] for c in client_options or []]
            names = {c["id"]: c.get("name", "") for c in client_options or []}
            values[spec.name] = st.selectbox(
                label,
                options=options,
                index=options.index(current) if current in options else None,
                format_func=lambda cid: names.get(cid, cid),
                placeholder="Seleccione un cliente",
                key=wkey,
            )
        else:
            values[spec.name] = st.text_input(label, value=current or "", key=wkey)
    return values


def _create_form(
    schema: EntitySchema,
    key: str,
    parent_id: str | None = None,
    client_options: list[dict] | None = None,
) -> None:
    """Expander with a "new record" form for *schema*."""
    with st.expander(f"Nuevo: {schema.singular}"):
        with st.form(f"new_{key}", clear_on_submit=True):
            values = _render_fields(
                schema, schema.blank_form(), f"new_{key}", client_options
            )
            submitted = st.form_submit_button("Guardar", type="primary")
        if submitted:
            try:
                repository.create_record(session, schema, values, parent_id=parent_id)
            except _USER_ERRORS as exc:
                st.error(exc.message)
                return
            st.success(f"{schema.singular} creado correctamente.")
            st.rerun()


def _edit_controls(
    schema: EntitySchema,
    record: dict[str, Any],
    client_options: list[dict] | None = None,
) -> None:
    """Edit form and delete button for one record."""
    rid = record["id"]
    with st.expander("Editar"):
        with st.form(f"edit_{schema.key}_{rid}"):
            values = _render_fields(
                schema,
                schema.form_from_record(record),
                f"edit_{schema.key}_{rid}",
                client_options,
            )
            submitted = st.form_submit_button("Actualizar", type="primary")
        if submitted:
            try:
                repository.update_record(session, schema, rid, values)
            except _USER_ERRORS as exc:
                st.error(exc.message)
            else:
                st.rerun()
        if st.button("Eliminar", key=f"del_{schema.key}_{rid}", type="secondary"):
            try:
                repository.delete_record(session, schema, rid)
            except _USER_ERRORS as exc:
                st.error(exc.message)
            else:
                if st.session_state.selected_client_id == rid:
                    st.session_state.selected_client_id = None
                if st.session_state.selected_process_id == rid:
                    st.session_state.selected_process_id = None
                st.rerun()


def _empty(message: str) -> None:
    st.markdown(f'<div class="empty-state">{_esc(message)}</div>', unsafe_allow_html=True)


# ── Sidebar ──────────────────────────────────────────────────────────────────

with st.sidebar:
    st.markdown("#### Secciones")
    st.radio("Sección", _SECTIONS, key="section", label_visibility="collapsed")

    with st.expander("Preferencias"):
        with st.form("preferences_form"):
            sizes = {
                key: st.number_input(
                    label, min_value=1, max_value=100, step=1,
                    value=min(get_page_size(TOOL_NAME, key), 100),
                )
                for key, label in _PAGE_SIZE_LABELS.items()
            }
            formats = list(_DATE_FORMATS)
            current_fmt = _date_fmt()
            date_fmt = st.selectbox(
                "Formato de fecha",
                formats,
                index=formats.index(current_fmt) if current_fmt in formats else 0,
                format_func=_DATE_FORMATS.get,
            )
            if st.form_submit_button("Guardar"):
                for key, size in sizes.items():
                    set_config_value(TOOL_NAME, key, int(size))
                set_config_value(TOOL_NAME, "export_date_format", date_fmt)
                st.rerun()


# ── Inicio ───────────────────────────────────────────────────────────────────


def _render_home() -> None:
    st.markdown(
        f'<div class="detail-header">'
        f'<div class="detail-name">Bienvenido</div>'
        f'<div class="detail-meta"><strong>Usuario:</strong> {_esc(session.email)}</div>'
        f"</div>",
        unsafe_allow_html=True,
    )
    st.caption("Use el menú lateral para gestionar clientes, procesos y formatos.")


# ── Clientes ─────────────────────────────────────────────────────────────────


def _render_client_detail(client_id: str) -> None:
    try:
        client = repository.get_client_detail(session, client_id)
    except _USER_ERRORS as exc:
        st.error(exc.message)
        st.session_state.selected_client_id = None
        return

    if st.button("← Volver a clientes", key="client_back"):
        st.session_state.selected_client_id = None
        st.rerun()

    st.markdown(
        f'<div class="detail-header">'
        f'<div class="detail-name">{_esc(client.get("name"))}</div>'
        f'<div class="detail-meta"><strong>Correo:</strong> {_esc(client.get("email"))}'
        f'<br>{_esc(client.get("description") or "")}</div>'
        f"</div>",
        unsafe_allow_html=True,
    )

    st.markdown(f"**Procesos** ({len(client['processes'])})")
    if not client["processes"]:
        _empty("Este cliente no tiene procesos registrados.")
    for process in client["processes"]:
        cols = st.columns([5, 1])
        with cols[0]:
            st.markdown(
                f'<div class="rec-card">'
                f'<div class="rec-card-name">{_esc(process.get("filing_number") or "Sin radicado")}</div>'
                f'<div class="rec-card-meta">{_esc(process.get("court"))} &bull; '
                f'{_esc(process.get("process_type"))} &bull; '
                f"Radicado el {_esc(_show_date(process.get('filing_date')))}</div>"
                f"</div>",
                unsafe_allow_html=True,
            )
        with cols[1]:
            if st.button("Abrir", key=f"open_proc_{process['id']}"):
                st.session_state.selected_process_id = process["id"]
                st.session_state["_goto"] = "Procesos"
                st.rerun()


def _render_clients() -> None:
    if st.session_state.selected_client_id:
        _render_client_detail(st.session_state.selected_client_id)
        return

    st.subheader("Clientes")
    _create_form(CLIENTS, "client")

    search = st.text_input(
        "Buscar", key="client_search", placeholder="Nombre o correo electrónico"
    )
    try:
        rows = repository.list_records(session, CLIENTS)
    except _USER_ERRORS as exc:
        st.error(exc.message)
        return

    page = run_pipeline(
        rows,
        predicate=text_search(search, *CLIENTS.search_fields),
        page=st.session_state.client_page,
        per_page=get_page_size(TOOL_NAME, "page_size_clients"),
    )
    st.session_state.client_page = page.page

    if not page.items:
        _empty("No se encontraron clientes.")
    for client in page.items:
        cols = st.columns([5, 1])
        with cols[0]:
            st.markdown(
                f'<div class="rec-card">'
                f'<div class="rec-card-name">{_esc(client.get("name"))}</div>'
                f'<div class="rec-card-meta">{_esc(client.get("email"))}</div>'
                f"</div>",
                unsafe_allow_html=True,
            )
            _edit_controls(CLIENTS, client)
        with cols[1]:
            if st.button("Ver", key=f"view_client_{client['id']}"):
                st.session_state.selected_client_id = client["id"]
                st.rerun()
    _render_pager(page, "client_page")


# ── Procesos: sub-record tabs ────────────────────────────────────────────────


def _render_subjects(process_id: str) -> None:
    _create_form(SUBJECTS, f"subject_{process_id}", parent_id=process_id)
    try:
        rows = repository.list_records(session, SUBJECTS, parent_id=process_id)
    except _USER_ERRORS as exc:
        st.error(exc.message)
        return
    if not rows:
        _empty("No hay sujetos procesales registrados.")
    for subject in rows:
        st.markdown(
            f'<div class="rec-card">'
            f'<div class="rec-card-name">{_esc(subject.get("name"))}</div>'
            f'<div class="rec-card-meta">{_esc(subject.get("type"))}</div>'
            f"</div>",
            unsafe_allow_html=True,
        )
        _edit_controls(SUBJECTS, subject)


def _render_action_import(process_id: str) -> None:
    with st.expander("Importar actuaciones desde CSV"):
        template = action_template()
        st.download_button(
            "Descargar plantilla",
            data=template.to_bytes(),
            file_name=template.filename,
            mime=template.media_type,
            key=f"tpl_{process_id}",
        )
        uploaded = st.file_uploader("Archivo CSV", type=["csv"], key=f"csv_{process_id}")
        if uploaded is not None and st.button(
            "Importar", type="primary", key=f"import_{process_id}"
        ):
            try:
                result = import_actions(uploaded.getvalue(), session, process_id)
            except _USER_ERRORS as exc:
                st.error(exc.message)
                return
            st.success(f"Se importaron {result.inserted} actuaciones correctamente.")
            for warning in result.warnings:
                st.warning(str(warning))


def _render_actions(process_id: str) -> None:
    _create_form(ACTIONS, f"action_{process_id}", parent_id=process_id)
    _render_action_import(process_id)

    top_left, top_right = st.columns([4, 1])
    with top_left:
        search = st.text_input(
            "Buscar actuaciones", key="action_search", placeholder="Actuación o anotación"
        )
    with top_right:
        order = st.session_state.action_order
        label = "Fecha ↓" if order == "desc" else "Fecha ↑"
        if st.button(label, key="action_order_toggle"):
            st.session_state.action_order = "asc" if order == "desc" else "desc"
            st.rerun()

    try:
        rows = repository.list_actions(
            session, process_id, ascending=st.session_state.action_order == "asc"
        )
    except _USER_ERRORS as exc:
        st.error(exc.message)
        return

    page = run_pipeline(
        rows,
        predicate=text_search(search, *ACTIONS.search_fields),
        page=st.session_state.action_page,
        per_page=get_page_size(TOOL_NAME, "page_size_actions"),
    )
    st.session_state.action_page = page.page

    if not page.items:
        _empty("No hay actuaciones registradas.")
    for action in page.items:
        term = ""
        if action.get("term_start_date") or action.get("term_end_date"):
            term = (
                f"<br><strong>Término:</strong> {_esc(_show_date(action.get('term_start_date')))}"
                f" a {_esc(_show_date(action.get('term_end_date')))}"
            )
        st.markdown(
            f'<div class="rec-card">'
            f'<div class="rec-card-name">{_esc(_show_date(action.get("action_date")))}</div>'
            f'<div class="rec-card-meta">{_esc(action.get("action"))}'
            f'<br>{_esc(action.get("annotation") or "")}{term}</div>'
            f"</div>",
            unsafe_allow_html=True,
        )
        _edit_controls(ACTIONS, action)
    _render_pager(page, "action_page")


def _render_card(schema: EntitySchema, record: dict[str, Any]) -> None:
    """One task-like card: details, status move, comments, edit/delete."""
    rid = record["id"]
    priority = record.get("priority") or "medium"
    extra = []
    if record.get("responsable"):
        extra.append(f"<strong>Responsable:</strong> {_esc(record['responsable'])}")
    if record.get("due_date"):
        extra.append(f"<strong>Vence:</strong> {_esc(_show_date(record['due_date']))}")
    if record.get("hearing_status"):
        extra.append(f"<strong>Estado:</strong> {_esc(record['hearing_status'])}")
    if record.get("days_term") is not None:
        extra.append(f"<strong>Días:</strong> {_esc(record['days_term'])}")
    if record.get("notification_date"):
        extra.append(
            f"<strong>Notificación:</strong> {_esc(_show_date(record['notification_date']))}"
        )
    if record.get("location"):
        extra.append(f"<strong>Lugar:</strong> {_esc(record['location'])}")

    st.markdown(
        f'<div class="rec-card">'
        f'<div class="rec-card-name">{_esc(record.get("name"))}</div>'
        f'<span class="prio prio-{_esc(priority)}">{_esc(PRIORITIES.get(priority, priority))}</span>'
        f'<div class="rec-card-meta">{_esc(record.get("description") or "")}'
        f'<br>{"<br>".join(extra)}</div>'
        f"</div>",
        unsafe_allow_html=True,
    )

    options = list(STATUSES)
    new_status = st.selectbox(
        "Mover a",
        options=options,
        index=options.index(record.get("status")) if record.get("status") in options else 0,
        format_func=STATUSES.get,
        key=f"status_{schema.key}_{rid}",
    )
    if new_status != record.get("status"):
        try:
            repository.set_status(session, schema, rid, new_status)
        except _USER_ERRORS as exc:
            st.error(exc.message)
        else:
            st.rerun()

    comments = record.get("comments", [])
    with st.expander(f"Comentarios ({len(comments)})"):
        for comment in comments:
            st.markdown(
                f'<div class="comment">{_esc(comment.get("content"))}'
                f'<br><small>{_esc(_show_date(comment.get("created_at")))}</small></div>',
                unsafe_allow_html=True,
            )
        with st.form(f"comment_{schema.key}_{rid}", clear_on_submit=True):
            content = st.text_area("Nuevo comentario", key=f"comment_text_{schema.key}_{rid}")
            submitted = st.form_submit_button("Comentar")
        if submitted:
            try:
                repository.add_comment(session, schema, rid, content)
            except _USER_ERRORS as exc:
                st.error(exc.message)
            else:
                st.rerun()

    _edit_controls(schema, record)


def _render_board(schema: EntitySchema, process_id: str) -> None:
    """Three status columns, each with its own responsable filter."""
    _create_form(schema, f"{schema.key}_{process_id}", parent_id=process_id)

    order_key = f"{schema.key}_priority_order"
    if order_key not in st.session_state:
        st.session_state[order_key] = "desc"
    order = st.session_state[order_key]
    if st.button(
        "Prioridad ↓" if order == "desc" else "Prioridad ↑", key=f"{order_key}_toggle"
    ):
        st.session_state[order_key] = "asc" if order == "desc" else "desc"
        st.rerun()

    try:
        rows = repository.list_records(session, schema, parent_id=process_id)
    except _USER_ERRORS as exc:
        st.error(exc.message)
        return

    responsables = ["all"] + distinct_values(rows, "responsable")
    columns = st.columns(len(STATUSES))
    for column, (status, status_label) in zip(columns, STATUSES.items()):
        with column:
            st.markdown(f'<div class="col-header">{_esc(status_label)}</div>', unsafe_allow_html=True)
            who = st.selectbox(
                "Responsable",
                options=responsables,
                format_func=lambda r: "Todos" if r == "all" else r,
                key=f"resp_{schema.key}_{process_id}_{status}",
            )
            page = run_pipeline(
                rows,
                predicate=all_of(
                    field_equals("status", status),
                    field_equals("responsable", who),
                ),
                key=priority_rank,
                descending=order == "desc",
            )
            if not page.items:
                _empty("Sin registros.")
            for record in page.items:
                _render_card(schema, record)


# ── Procesos ─────────────────────────────────────────────────────────────────

_TAB_LABELS = {
    "subjects": "Sujetos Procesales",
    "actions": "Actuaciones",
    "tasks": "Tareas",
    "hearings": "Audiencias",
    "terms": "Términos",
    "meetings": "Reuniones",
}


def _render_process_detail(process_id: str, client_options: list[dict]) -> None:
    try:
        process = repository.get_record(session, PROCESSES, process_id)
    except _USER_ERRORS as exc:
        st.error("No se pudo cargar el proceso.")
        st.caption(exc.message)
        st.session_state.selected_process_id = None
        return

    if st.button("← Volver a procesos", key="process_back"):
        st.session_state.selected_process_id = None
        st.rerun()

    client = process.get("client") or {}
    meta = [
        f"<strong>Cliente:</strong> {_esc(client.get('name'))}",
        f"<strong>Despacho:</strong> {_esc(process.get('court'))}",
        f"<strong>Juez:</strong> {_esc(process.get('judge'))}",
        f"<strong>Tipo:</strong> {_esc(process.get('process_type'))} / "
        f"{_esc(process.get('process_class'))} / {_esc(process.get('process_subclass'))}",
        f"<strong>Radicado el:</strong> {_esc(_show_date(process.get('filing_date')))}",
    ]
    if process.get("file_location"):
        meta.append(f"<strong>Ubicación:</strong> {_esc(process['file_location'])}")
    if process.get("documents_url"):
        meta.append(
            f'<a href="{_esc(process["documents_url"])}" target="_blank">Documentos</a>'
        )
    st.markdown(
        f'<div class="detail-header">'
        f'<div class="detail-name">{_esc(process.get("filing_number") or "Sin radicado")}</div>'
        f'<div class="detail-meta">{" &nbsp;&bull;&nbsp; ".join(meta)}</div>'
        f"</div>",
        unsafe_allow_html=True,
    )
    _edit_controls(PROCESSES, process, client_options)

    tabs = st.tabs(list(_TAB_LABELS.values()))
    for tab, kind in zip(tabs, _TAB_LABELS):
        with tab:
            if kind == "subjects":
                _render_subjects(process_id)
            elif kind == "actions":
                _render_actions(process_id)
            else:
                _render_board(get_schema(kind), process_id)


def _render_processes() -> None:
    try:
        client_options = repository.list_client_options(session)
    except _USER_ERRORS as exc:
        st.error(exc.message)
        return

    if st.session_state.selected_process_id:
        _render_process_detail(st.session_state.selected_process_id, client_options)
        return

    st.subheader("Procesos")
    if client_options:
        _create_form(PROCESSES, "process", client_options=client_options)
    else:
        st.info("Cree un cliente antes de registrar procesos.")

    search = st.text_input(
        "Buscar", key="process_search", placeholder="Cliente o número de radicado"
    )
    try:
        rows = repository.list_processes(session)
    except _USER_ERRORS as exc:
        st.error(exc.message)
        return

    page = run_pipeline(
        rows,
        predicate=text_search(search, *PROCESSES.search_fields),
        page=st.session_state.process_page,
        per_page=get_page_size(TOOL_NAME, "page_size_processes"),
    )
    st.session_state.process_page = page.page

    if not page.items:
        _empty("No se encontraron procesos.")
    for process in page.items:
        client = process.get("client") or {}
        cols = st.columns([5, 1])
        with cols[0]:
            st.markdown(
                f'<div class="rec-card">'
                f'<div class="rec-card-name">{_esc(process.get("filing_number") or "Sin radicado")}</div>'
                f'<div class="rec-card-meta">{_esc(client.get("name"))} &bull; '
                f'{_esc(process.get("court"))} &bull; {_esc(process.get("process_type"))}</div>'
                f"</div>",
                unsafe_allow_html=True,
            )
        with cols[1]:
            if st.button("Ver", key=f"view_process_{process['id']}"):
                st.session_state.selected_process_id = process["id"]
                st.rerun()
    _render_pager(page, "process_page")


# ── Formatos ─────────────────────────────────────────────────────────────────

_FORMAT_LABELS = {"tasks": "Tareas", "hearings": "Audiencias", "terms": "Términos"}


def _render_formats() -> None:
    st.subheader("Formatos")
    tabs = st.tabs(list(_FORMAT_LABELS.values()))
    for tab, kind in zip(tabs, _FORMAT_LABELS):
        with tab:
            status = st.selectbox(
                "Estado",
                options=["all"] + list(STATUSES),
                format_func=lambda s: "Todos" if s == "all" else STATUSES[s],
                key=f"format_status_{kind}",
            )
            try:
                rows = repository.list_for_export(session, kind)
            except _USER_ERRORS as exc:
                st.error(exc.message)
                continue
            rows = run_pipeline(rows, predicate=field_equals("status", status)).items

            export = export_records(kind, rows, date_format=_date_fmt())
            layout = EXPORT_LAYOUTS[kind]
            if rows:
                st.dataframe(
                    [layout.project(row, _date_fmt()) for row in rows],
                    use_container_width=True,
                    hide_index=True,
                )
            else:
                _empty("No hay registros para el filtro seleccionado.")
            st.download_button(
                "Descargar CSV",
                data=export.to_bytes(),
                file_name=export.filename,
                mime=export.media_type,
                key=f"download_{kind}",
                disabled=not rows,
            )


# ── Main ─────────────────────────────────────────────────────────────────────

_RENDERERS = {
    "Inicio": _render_home,
    "Clientes": _render_clients,
    "Procesos": _render_processes,
    "Formatos": _render_formats,
}

_RENDERERS[st.session_state.section]()
