"""Session handling for the process-manager tools.

A ``Session`` is the only way to reach the data store: every repository and
data_store call takes one explicitly. The API builds it from the bearer
token on each request; the dashboard keeps it in ``st.session_state``.

Every dashboard calls require_session() right after st.set_page_config() and
CSS. If nobody is signed in, it renders the login / register forms and calls
st.stop() so no tool UI appears until they authenticate.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, replace

from shared import data_store

logger = logging.getLogger(__name__)

_STATE_KEY = "_auth_session"


class SessionState(str, enum.Enum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"
    SIGNED_OUT = "signed_out"


class NotAuthenticatedError(Exception):
    """A data call was attempted without an authenticated session."""

    def __init__(self, message: str = "Debe iniciar sesión para continuar."):
        super().__init__(message)
        self.message = message


@dataclass(frozen=True)
class Session:
    user_id: str = ""
    email: str = ""
    access_token: str = ""
    refresh_token: str = ""
    state: SessionState = SessionState.UNAUTHENTICATED

    @property
    def is_authenticated(self) -> bool:
        return self.state is SessionState.AUTHENTICATED and bool(self.access_token)

    def require(self) -> Session:
        """Return self, or raise NotAuthenticatedError."""
        if not self.is_authenticated:
            raise NotAuthenticatedError()
        return self


ANONYMOUS = Session()


def _from_payload(payload: dict) -> Session:
    state = (
        SessionState.AUTHENTICATED
        if payload.get("access_token")
        else SessionState.UNAUTHENTICATED
    )
    return Session(
        user_id=payload.get("user_id", ""),
        email=payload.get("email", ""),
        access_token=payload.get("access_token", ""),
        refresh_token=payload.get("refresh_token", ""),
        state=state,
    )


# ── Public API ───────────────────────────────────────────────────────────────


def sign_in(email: str, password: str) -> Session:
    """Exchange credentials for an authenticated Session.

    Raises:
        DataStoreError: Wrong credentials or backend unreachable.
    """
    session = _from_payload(data_store.sign_in(email.strip(), password))
    logger.info("Signed in %s", session.email)
    return session


def sign_up(email: str, password: str) -> Session:
    """Register a new account.

    The returned session stays UNAUTHENTICATED when the backend requires
    e-mail confirmation before the first sign-in.
    """
    session = _from_payload(data_store.sign_up(email.strip(), password))
    logger.info("Registered %s (confirmed=%s)", session.email, session.is_authenticated)
    return session


def sign_out(session: Session) -> Session:
    """Revoke the session at the backend and return its signed-out copy."""
    if session.is_authenticated:
        data_store.sign_out(session.access_token, session.refresh_token)
        logger.info("Signed out %s", session.email)
    return replace(session, access_token="", refresh_token="", state=SessionState.SIGNED_OUT)


def session_from_token(access_token: str) -> Session:
    """Validate a bearer token against the backend.

    Raises:
        NotAuthenticatedError: The token is missing, expired or revoked.
    """
    if not access_token:
        raise NotAuthenticatedError()
    user = data_store.get_user(access_token)
    if user is None:
        raise NotAuthenticatedError("La sesión expiró. Inicie sesión de nuevo.")
    return Session(
        user_id=user["user_id"],
        email=user["email"],
        access_token=access_token,
        state=SessionState.AUTHENTICATED,
    )


# ── Login UI CSS ─────────────────────────────────────────────────────────────

_LOGIN_CSS = """
<style>
#MainMenu, footer,
div[data-testid="stToolbar"] { display: none !important; }
section[data-testid="stSidebar"] { display: none !important; }
.stApp {
    font-family: 'Inter', -apple-system, BlinkMacSystemFont, sans-serif;
    background: linear-gradient(160deg, #f8f9fc 0%, #eef1f8 50%, #e8edf6 100%);
}
.login-card {
    max-width: 400px;
    margin: 8vh auto 0;
    padding: 2.5rem 2rem 2rem;
    background: white;
    border-radius: 16px;
    box-shadow: 0 2px 12px rgba(0,0,0,0.08);
    text-align: center;
}
.login-card h2 {
    font-weight: 700;
    color: #1a2744;
    margin: 0 0 0.25rem;
    font-size: 1.4rem;
}
.login-card p {
    color: #86868b;
    font-size: 0.9rem;
    margin: 0 0 1.5rem;
}
</style>
"""


# ── Streamlit gate ───────────────────────────────────────────────────────────


def current_session() -> Session:
    """The dashboard's session, or ANONYMOUS."""
    import streamlit as st

    return st.session_state.get(_STATE_KEY, ANONYMOUS)


def require_session() -> Session:
    """Gate the current page behind Supabase authentication.

    Returns the authenticated Session. Otherwise renders the login and
    register forms and calls st.stop().
    """
    import streamlit as st

    session = current_session()
    if session.is_authenticated:
        return session

    st.markdown(_LOGIN_CSS, unsafe_allow_html=True)
    st.markdown(
        '<div class="login-card">'
        "<h2>Gestión de Procesos</h2>"
        "<p>Ingrese con su correo para continuar</p>"
        "</div>",
        unsafe_allow_html=True,
    )

    _spacer_l, col, _spacer_r = st.columns([1, 1, 1])
    with col:
        login_tab, register_tab = st.tabs(["Iniciar sesión", "Registrarse"])
        with login_tab:
            _render_login_form()
        with register_tab:
            _render_register_form()

    st.stop()


def render_logout() -> None:
    """Render a small right-aligned logout button after the nav bar."""
    import streamlit as st

    session = current_session()
    if not session.is_authenticated:
        return
    cols = st.columns([8, 1])
    with cols[1]:
        if st.button("Salir", key="_auth_logout", type="tertiary"):
            try:
                signed_out = sign_out(session)
            except data_store.DataStoreError as exc:
                logger.warning("Sign-out failed at backend: %s", exc.message)
                signed_out = replace(session, state=SessionState.SIGNED_OUT)
            st.session_state[_STATE_KEY] = signed_out
            st.rerun()


# ── Form renderers ───────────────────────────────────────────────────────────


def _render_login_form() -> None:
    import streamlit as st

    with st.form("_auth_login_form"):
        email = st.text_input("Correo electrónico")
        password = st.text_input("Contraseña", type="password")
        submitted = st.form_submit_button("Ingresar", use_container_width=True)

    if submitted:
        if not email or not password:
            st.error("Ingrese su correo y contraseña.")
            return
        try:
            st.session_state[_STATE_KEY] = sign_in(email, password)
        except data_store.DataStoreError as exc:
            st.error(exc.message)
            return
        st.rerun()


def _render_register_form() -> None:
    import streamlit as st

    with st.form("_auth_register_form"):
        email = st.text_input("Correo electrónico", key="_auth_reg_email")
        pw1 = st.text_input("Contraseña", type="password", key="_auth_reg_pw1")
        pw2 = st.text_input("Confirmar contraseña", type="password", key="_auth_reg_pw2")
        submitted = st.form_submit_button("Crear cuenta", use_container_width=True)

    if submitted:
        if not email or not pw1:
            st.error("Ingrese su correo y contraseña.")
        elif pw1 != pw2:
            st.error("Las contraseñas no coinciden.")
        else:
            try:
                session = sign_up(email, pw1)
            except data_store.DataStoreError as exc:
                st.error(exc.message)
                return
            if session.is_authenticated:
                st.session_state[_STATE_KEY] = session
                st.rerun()
            else:
                st.success("Cuenta creada. Revise su correo para confirmarla.")
