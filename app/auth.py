"""
Authentication glue between the web app and the session manager.

The Supabase tokens for a browser live in the signed session cookie
under ``sess["auth"]``. Every request builds a fresh SessionManager,
subscribes the cookie to its change notifications, and restores the
session before the page is rendered.

When SUPABASE_URL is not set, auth is disabled: nobody can sign in and
every protected page redirects to /auth, which explains why.
"""

from functools import lru_cache

from starlette.responses import RedirectResponse

from core.config import SUPABASE_ANON_KEY, SUPABASE_URL
from core.session import AuthEvent, Session, SessionManager
from core.supabase_client import SupabaseClient

SESSION_KEY = "auth"


def is_auth_enabled() -> bool:
    """Check if authentication is configured."""
    return bool(SUPABASE_URL and SUPABASE_ANON_KEY)


@lru_cache(maxsize=1)
def get_backend() -> SupabaseClient:
    """Shared Supabase client for the process."""
    return SupabaseClient()


def bind_session_cookie(manager: SessionManager, sess: dict):
    """Keep ``sess`` in step with the manager. Returns the unsubscribe function."""

    def persist(event: AuthEvent, session: Session | None) -> None:
        if session is None:
            sess.pop(SESSION_KEY, None)
        else:
            sess[SESSION_KEY] = session.to_dict()

    return manager.observe_session_changes(persist)


async def open_session(sess: dict, backend=None) -> SessionManager:
    """Session manager for this request, already restored from the cookie."""
    manager = SessionManager(backend or get_backend())
    bind_session_cookie(manager, sess)
    await manager.restore_session(sess.get(SESSION_KEY))
    return manager


def require_login(manager: SessionManager) -> RedirectResponse | None:
    """Return a 303 redirect to /auth if nobody is signed in, else None."""
    if not manager.is_authenticated:
        return RedirectResponse("/auth", status_code=303)
    return None
