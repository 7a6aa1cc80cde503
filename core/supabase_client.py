"""
Supabase over plain HTTP.

Talks to the three Supabase services the app needs with ``httpx``:

- Auth (``/auth/v1``): sign-up, password sign-in, token refresh, logout
- PostgREST (``/rest/v1``): select / insert / update / upsert on tables
- Storage (``/storage/v1``): object upload and public URLs

Every public coroutine returns a ``Result``. Transport errors and
unreadable replies become ``Err(kind=NETWORK)``; nothing here raises.

When SUPABASE_URL or SUPABASE_ANON_KEY is not set, every call returns
``Err("Authentication not configured")``.
"""

import logging
import time
from urllib.parse import quote

import httpx

from core.config import SUPABASE_ANON_KEY, SUPABASE_TIMEOUT, SUPABASE_URL
from core.results import Err, ErrorKind, Ok, Result
from core.session import Identity, Session

logger = logging.getLogger(__name__)

NOT_CONFIGURED_MESSAGE = "Authentication not configured"


def _error_message(response: httpx.Response, default: str) -> str:
    """Pull the human-readable part out of a Supabase error body."""
    try:
        data = response.json()
    except ValueError:
        return default
    if not isinstance(data, dict):
        return default
    return (
        data.get("error_description")
        or data.get("msg")
        or data.get("message")
        or data.get("error")
        or default
    )


def _identity_from_user(user: dict) -> Identity:
    metadata = user.get("user_metadata") or {}
    return Identity(
        id=user.get("id", ""),
        email=user.get("email") or "",
        phone=metadata.get("whatsapp_number") or "",
    )


def _session_from_payload(data: dict) -> Session:
    expires_at = data.get("expires_at")
    if not expires_at:
        expires_at = int(time.time()) + int(data.get("expires_in") or 3600)
    return Session(
        access_token=data["access_token"],
        refresh_token=data.get("refresh_token") or "",
        expires_at=int(expires_at),
        identity=_identity_from_user(data.get("user") or {}),
    )


class SupabaseClient:
    """Minimal async Supabase client.

    ``transport`` is handed to ``httpx.AsyncClient``; tests pass an
    ``httpx.MockTransport``.
    """

    def __init__(
        self,
        url: str = SUPABASE_URL,
        anon_key: str = SUPABASE_ANON_KEY,
        timeout: float = SUPABASE_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.url = url.rstrip("/")
        self.anon_key = anon_key
        self.timeout = timeout
        self._transport = transport

    @property
    def is_configured(self) -> bool:
        return bool(self.url and self.anon_key)

    def _headers(self, access_token: str | None = None, **extra) -> dict:
        headers = {
            "apikey": self.anon_key,
            "Authorization": f"Bearer {access_token or self.anon_key}",
        }
        headers.update(extra)
        return headers

    async def _request(self, method: str, path: str, **kwargs) -> Result:
        """Send one request. ``Ok(response)`` whatever its status code."""
        if not self.is_configured:
            return Err(NOT_CONFIGURED_MESSAGE, ErrorKind.NOT_CONFIGURED)
        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self.timeout) as client:
                response = await client.request(method, f"{self.url}{path}", **kwargs)
        except httpx.HTTPError as e:
            logger.warning(f"Supabase {method} {path} failed: {e}")
            return Err(f"Connection error: {e}", ErrorKind.NETWORK)
        return Ok(response)

    async def _json(self, method: str, path: str, kind: ErrorKind, default_error: str, **kwargs) -> Result:
        """Request and decode a JSON body. Non-2xx becomes ``Err(kind)``."""
        sent = await self._request(method, path, **kwargs)
        if isinstance(sent, Err):
            return sent
        response = sent.value
        if not response.is_success:
            message = _error_message(response, default_error)
            logger.warning(f"Supabase {method} {path} returned {response.status_code}: {message}")
            return Err(message, kind)
        if response.status_code == 204 or not response.content:
            return Ok(None)
        try:
            return Ok(response.json())
        except ValueError:
            return Err("Connection error: unreadable response", ErrorKind.NETWORK)

    # =========================================================================
    # Auth
    # =========================================================================

    async def sign_up(self, email: str, password: str, metadata: dict | None = None) -> Result:
        """Create a user. ``Ok((identity, session_or_None))``.

        The session is None when the project requires email confirmation.
        """
        result = await self._json(
            "POST", "/auth/v1/signup", ErrorKind.AUTHENTICATION, "Signup failed",
            json={"email": email, "password": password, "data": metadata or {}},
            headers=self._headers(**{"Content-Type": "application/json"}),
        )
        if isinstance(result, Err):
            return result
        data = result.value or {}
        if data.get("access_token"):
            session = _session_from_payload(data)
            return Ok((session.identity, session))
        user = data.get("user") or data
        if not user.get("id"):
            return Err("Signup failed", ErrorKind.AUTHENTICATION)
        return Ok((_identity_from_user(user), None))

    async def sign_in_with_password(self, email: str, password: str) -> Result:
        result = await self._json(
            "POST", "/auth/v1/token", ErrorKind.AUTHENTICATION, "Login failed",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
            headers=self._headers(**{"Content-Type": "application/json"}),
        )
        if isinstance(result, Err):
            return result
        try:
            return Ok(_session_from_payload(result.value or {}))
        except KeyError:
            return Err("Login failed", ErrorKind.AUTHENTICATION)

    async def refresh_session(self, refresh_token: str) -> Result:
        result = await self._json(
            "POST", "/auth/v1/token", ErrorKind.AUTHENTICATION, "Session expired",
            params={"grant_type": "refresh_token"},
            json={"refresh_token": refresh_token},
            headers=self._headers(**{"Content-Type": "application/json"}),
        )
        if isinstance(result, Err):
            return result
        try:
            return Ok(_session_from_payload(result.value or {}))
        except KeyError:
            return Err("Session expired", ErrorKind.AUTHENTICATION)

    async def get_session(self, stored: Session | None, now: float | None = None) -> Result:
        """The current session, if any.

        A still-valid stored session is returned unchanged. An expired one
        is refreshed; if the service rejects the refresh the result is
        ``Ok(None)``. Only transport problems produce an ``Err``.
        """
        if stored is None:
            return Ok(None)
        if not stored.is_expired(now):
            return Ok(stored)
        if not stored.refresh_token:
            return Ok(None)
        refreshed = await self.refresh_session(stored.refresh_token)
        if isinstance(refreshed, Err) and refreshed.kind is ErrorKind.AUTHENTICATION:
            return Ok(None)
        return refreshed

    async def sign_out(self, access_token: str) -> Result:
        sent = await self._request("POST", "/auth/v1/logout", headers=self._headers(access_token))
        if isinstance(sent, Err):
            return sent
        response = sent.value
        # 401/404: the token is already gone, which is what we wanted
        if response.is_success or response.status_code in (401, 404):
            return Ok(None)
        return Err(_error_message(response, "Sign out failed"), ErrorKind.AUTHENTICATION)

    # =========================================================================
    # PostgREST tables
    # =========================================================================

    @staticmethod
    def _filters(
        eq: dict | None = None, neq: dict | None = None, like: dict | None = None
    ) -> list[tuple[str, str]]:
        params = []
        for column, value in (eq or {}).items():
            params.append((column, f"eq.{value}"))
        for column, value in (neq or {}).items():
            params.append((column, f"neq.{value}"))
        # PostgREST accepts * in place of % in like patterns
        for column, pattern in (like or {}).items():
            params.append((column, f"like.{pattern}"))
        return params

    async def select(
        self,
        table: str,
        *,
        eq: dict | None = None,
        neq: dict | None = None,
        like: dict | None = None,
        order: str | None = None,
        access_token: str | None = None,
    ) -> Result:
        """Rows matching every filter. ``Ok(list[dict])``."""
        params = [("select", "*")] + self._filters(eq, neq, like)
        if order:
            params.append(("order", order))
        result = await self._json(
            "GET", f"/rest/v1/{table}", ErrorKind.BACKEND, "Could not load data",
            params=params, headers=self._headers(access_token),
        )
        if isinstance(result, Err):
            return result
        return Ok(result.value or [])

    async def insert(self, table: str, row: dict, access_token: str | None = None) -> Result:
        result = await self._json(
            "POST", f"/rest/v1/{table}", ErrorKind.BACKEND, "Could not save data",
            json=row,
            headers=self._headers(access_token, Prefer="return=representation"),
        )
        if isinstance(result, Err):
            return result
        return Ok(result.value or [])

    async def update(self, table: str, values: dict, *, eq: dict, access_token: str | None = None) -> Result:
        result = await self._json(
            "PATCH", f"/rest/v1/{table}", ErrorKind.BACKEND, "Could not save data",
            params=self._filters(eq), json=values,
            headers=self._headers(access_token, Prefer="return=representation"),
        )
        if isinstance(result, Err):
            return result
        return Ok(result.value or [])

    async def upsert(self, table: str, row: dict, *, on_conflict: str, access_token: str | None = None) -> Result:
        result = await self._json(
            "POST", f"/rest/v1/{table}", ErrorKind.BACKEND, "Could not save data",
            params={"on_conflict": on_conflict}, json=row,
            headers=self._headers(
                access_token, Prefer="resolution=merge-duplicates,return=representation"
            ),
        )
        if isinstance(result, Err):
            return result
        return Ok(result.value or [])

    # =========================================================================
    # Storage
    # =========================================================================

    async def upload(
        self,
        bucket: str,
        path: str,
        content: bytes,
        content_type: str = "application/octet-stream",
        access_token: str | None = None,
        upsert: bool = True,
    ) -> Result:
        """Store ``content`` at ``bucket/path``. ``Ok(path)``."""
        result = await self._json(
            "POST", f"/storage/v1/object/{bucket}/{quote(path)}", ErrorKind.STORAGE, "Photo upload failed",
            content=content,
            headers=self._headers(
                access_token,
                **{"Content-Type": content_type, "x-upsert": "true" if upsert else "false"},
            ),
        )
        if isinstance(result, Err):
            if result.kind is ErrorKind.NETWORK:
                return Err(result.message, ErrorKind.STORAGE)
            return result
        return Ok(path)

    def public_url(self, bucket: str, path: str) -> str:
        return f"{self.url}/storage/v1/object/public/{bucket}/{quote(path)}"
