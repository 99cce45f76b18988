"""Supabase client for the legal process tools.

Shared module used by the process-manager API and dashboard. Auth goes
through supabase-py (GoTrue). Table access goes through a PostgREST client
opened per call with the caller's access token, so the row-level security
policies on every table see the signed-in user and nothing else.

Every data call takes an explicit ``Session`` (see shared/auth.py); there is
no ambient "current user".

Credentials are read from shared.settings:
    SUPABASE_URL, SUPABASE_ANON_KEY
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Iterable

import httpx

from shared.settings import get_settings

if TYPE_CHECKING:
    from shared.auth import Session

logger = logging.getLogger(__name__)


class DataStoreError(Exception):
    """The hosted backend rejected a request or could not be reached."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


def _require_config():
    settings = get_settings()
    if not settings.is_backend_configured:
        raise DataStoreError(
            "El backend no está configurado (SUPABASE_URL / SUPABASE_ANON_KEY)."
        )
    return settings


def _get_connection():
    """Create and return a Supabase client used for auth calls."""
    from supabase import create_client

    settings = _require_config()
    return create_client(settings.supabase_url, settings.supabase_anon_key)


# Cache the client used for stateless token checks (get_user)
_client = None


def _auth_conn():
    global _client
    if _client is None:
        _client = _get_connection()
    return _client


def _rest(access_token: str):
    """Open a PostgREST client that authenticates as the session's user."""
    from postgrest import SyncPostgrestClient

    settings = _require_config()
    return SyncPostgrestClient(
        settings.rest_url,
        headers={
            "Accept": "application/json",
            "Content-Type": "application/json",
            "apikey": settings.supabase_anon_key,
            "Authorization": f"Bearer {access_token}",
        },
    )


def _execute(query, what: str):
    from postgrest import APIError

    try:
        return query.execute()
    except APIError as exc:
        message = exc.message or str(exc)
        logger.error("Supabase %s failed: %s", what, message)
        raise DataStoreError(message) from exc
    except httpx.HTTPError as exc:
        logger.error("Supabase %s unreachable: %s", what, exc)
        raise DataStoreError("No se pudo contactar el backend.") from exc


# ── Tables ───────────────────────────────────────────────────────────────────


def select(
    session: Session,
    table: str,
    columns: str = "*",
    *,
    filters: dict[str, Any] | None = None,
    in_filters: dict[str, Iterable[Any]] | None = None,
    order: str | None = None,
    descending: bool = False,
) -> list[dict]:
    """Read rows from *table*.

    Args:
        session: The authenticated session the read runs as.
        table: Table name, e.g. "process_tasks".
        columns: PostgREST select expression; may embed relations such as
            ``"*, client:clients (name, email)"``.
        filters: Equality filters, ``{column: value}``.
        in_filters: Membership filters, ``{column: [values]}``.
        order: Column to order by.
        descending: Order direction.

    Returns:
        List of row dicts (empty when nothing matches).
    """
    session.require()
    with _rest(session.access_token) as rest:
        query = rest.from_(table).select(columns)
        for column, value in (filters or {}).items():
            query = query.eq(column, value)
        for column, values in (in_filters or {}).items():
            query = query.in_(column, list(values))
        if order:
            query = query.order(order, desc=descending)
        response = _execute(query, f"select {table}")
    return response.data or []


def select_one(
    session: Session,
    table: str,
    record_id: str,
    columns: str = "*",
) -> dict | None:
    """Fetch a single row by id, or None if it does not exist (or is not visible)."""
    rows = select(session, table, columns, filters={"id": record_id})
    return rows[0] if rows else None


def insert(session: Session, table: str, rows: list[dict]) -> list[dict]:
    """Insert *rows* in one request and return the stored rows."""
    session.require()
    with _rest(session.access_token) as rest:
        response = _execute(rest.from_(table).insert(rows), f"insert {table}")
    logger.info("Inserted %d row(s) into %s", len(rows), table)
    return response.data or []


def update(session: Session, table: str, record_id: str, values: dict) -> list[dict]:
    """Update one row by id and return the stored row(s)."""
    session.require()
    with _rest(session.access_token) as rest:
        query = rest.from_(table).update(values).eq("id", record_id)
        response = _execute(query, f"update {table}")
    return response.data or []


def delete(session: Session, table: str, record_id: str) -> None:
    """Delete one row by id."""
    session.require()
    with _rest(session.access_token) as rest:
        _execute(rest.from_(table).delete().eq("id", record_id), f"delete {table}")


# ── Auth ─────────────────────────────────────────────────────────────────────


def _auth_payload(response) -> dict:
    user = getattr(response, "user", None)
    if user is None:
        raise DataStoreError("No se encontró el usuario.")
    auth_session = getattr(response, "session", None)
    return {
        "user_id": user.id,
        "email": user.email or "",
        "access_token": auth_session.access_token if auth_session else "",
        "refresh_token": auth_session.refresh_token if auth_session else "",
    }


def sign_in(email: str, password: str) -> dict:
    """Authenticate with email and password.

    Returns:
        Dict with user_id, email, access_token and refresh_token.
    """
    from supabase import AuthError

    client = _get_connection()
    try:
        response = client.auth.sign_in_with_password(
            {"email": email, "password": password}
        )
    except AuthError as exc:
        logger.warning("Sign-in rejected for %s: %s", email, exc.message)
        raise DataStoreError(exc.message) from exc
    return _auth_payload(response)


def sign_up(email: str, password: str) -> dict:
    """Register a new account.

    Tokens are empty when the project requires e-mail confirmation first.
    """
    from supabase import AuthError

    client = _get_connection()
    try:
        response = client.auth.sign_up({"email": email, "password": password})
    except AuthError as exc:
        logger.warning("Sign-up rejected for %s: %s", email, exc.message)
        raise DataStoreError(exc.message) from exc
    return _auth_payload(response)


def sign_out(access_token: str, refresh_token: str) -> None:
    """Revoke the refresh token behind a session."""
    from supabase import AuthError

    client = _get_connection()
    try:
        client.auth.set_session(access_token, refresh_token)
        client.auth.sign_out()
    except AuthError as exc:
        raise DataStoreError(exc.message) from exc


def get_user(access_token: str) -> dict | None:
    """Resolve an access token to {user_id, email}, or None if it is invalid."""
    from supabase import AuthError

    try:
        response = _auth_conn().auth.get_user(access_token)
    except AuthError as exc:
        logger.info("Token rejected: %s", exc.message)
        return None
    if response is None or response.user is None:
        return None
    return {"user_id": response.user.id, "email": response.user.email or ""}
