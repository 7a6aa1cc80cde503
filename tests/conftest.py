"""Shared test fixtures: an in-memory Supabase stand-in and app clients."""

import fnmatch
import io
import itertools
import time
from unittest.mock import patch

import pytest
from PIL import Image
from starlette.testclient import TestClient

from core.credentials import to_credential
from core.results import Err, ErrorKind, Ok
from core.session import Identity, Session


class FakeBackend:
    """In-memory replacement for SupabaseClient.

    Same coroutine API and Result shapes. ``fail[method] = Err(...)``
    makes the next calls to that method fail; ``calls`` records the
    method names in order.
    """

    def __init__(self):
        self.users: dict[str, dict] = {}
        self.tables: dict[str, list[dict]] = {"cnb_profiles": [], "user_settings": []}
        self.objects: dict[str, bytes] = {}
        self.calls: list[str] = []
        self.fail: dict[str, Err] = {}
        self.issue_sessions = True
        self._ids = itertools.count(1)

    # -- helpers -----------------------------------------------------------

    def _enter(self, name: str):
        self.calls.append(name)
        return self.fail.get(name)

    def make_session(self, identity: Identity, expires_in: int = 3600) -> Session:
        return Session(
            access_token=f"access-{identity.id}-{next(self._ids)}",
            refresh_token=f"refresh-{identity.id}",
            expires_at=int(time.time()) + expires_in,
            identity=identity,
        )

    def register(self, phone: str, pin: str, **profile) -> Identity:
        """Create an account and its profile row directly (no calls recorded)."""
        credential = to_credential(phone, pin)
        identity = Identity(id=f"user-{next(self._ids)}", email=credential.login_id, phone=phone)
        self.users[credential.login_id] = {"identity": identity, "password": credential.secret}
        row = {"user_id": identity.id, "whatsapp_number": phone, "name": ""}
        row.update(profile)
        self._insert_row("cnb_profiles", row)
        return identity

    def _insert_row(self, table: str, row: dict) -> dict:
        row = dict(row)
        row.setdefault("id", str(next(self._ids)))
        row.setdefault("created_at", next(self._ids))
        self.tables.setdefault(table, []).append(row)
        return row

    def rows(self, table: str) -> list[dict]:
        return self.tables.setdefault(table, [])

    # -- auth --------------------------------------------------------------

    async def sign_up(self, email, password, metadata=None):
        if failure := self._enter("sign_up"):
            return failure
        if email in self.users:
            return Err("User already registered", ErrorKind.AUTHENTICATION)
        identity = Identity(
            id=f"user-{next(self._ids)}", email=email, phone=(metadata or {}).get("whatsapp_number", "")
        )
        self.users[email] = {"identity": identity, "password": password}
        session = self.make_session(identity) if self.issue_sessions else None
        return Ok((identity, session))

    async def sign_in_with_password(self, email, password):
        if failure := self._enter("sign_in_with_password"):
            return failure
        user = self.users.get(email)
        if not user or user["password"] != password:
            return Err("Invalid login credentials", ErrorKind.AUTHENTICATION)
        return Ok(self.make_session(user["identity"]))

    async def refresh_session(self, refresh_token):
        if failure := self._enter("refresh_session"):
            return failure
        for user in self.users.values():
            if f"refresh-{user['identity'].id}" == refresh_token:
                return Ok(self.make_session(user["identity"]))
        return Err("Invalid Refresh Token", ErrorKind.AUTHENTICATION)

    async def get_session(self, stored, now=None):
        if failure := self._enter("get_session"):
            return failure
        if stored is None:
            return Ok(None)
        if not stored.is_expired(now):
            return Ok(stored)
        refreshed = await self.refresh_session(stored.refresh_token)
        if isinstance(refreshed, Err) and refreshed.kind is ErrorKind.AUTHENTICATION:
            return Ok(None)
        return refreshed

    async def sign_out(self, access_token):
        if failure := self._enter("sign_out"):
            return failure
        return Ok(None)

    # -- tables ------------------------------------------------------------

    @staticmethod
    def _matches(row, eq=None, neq=None, like=None):
        for column, value in (eq or {}).items():
            if str(row.get(column)) != str(value):
                return False
        for column, value in (neq or {}).items():
            if str(row.get(column)) == str(value):
                return False
        for column, pattern in (like or {}).items():
            if not fnmatch.fnmatchcase(str(row.get(column) or ""), pattern):
                return False
        return True

    async def select(self, table, *, eq=None, neq=None, like=None, order=None, access_token=None):
        if failure := self._enter("select"):
            return failure
        rows = [dict(r) for r in self.rows(table) if self._matches(r, eq, neq, like)]
        if order:
            column, _, direction = order.partition(".")
            rows.sort(key=lambda r: r.get(column) or 0, reverse=direction == "desc")
        return Ok(rows)

    async def insert(self, table, row, access_token=None):
        if failure := self._enter("insert"):
            return failure
        return Ok([dict(self._insert_row(table, row))])

    async def update(self, table, values, *, eq, access_token=None):
        if failure := self._enter("update"):
            return failure
        updated = []
        for row in self.rows(table):
            if self._matches(row, eq):
                row.update(values)
                updated.append(dict(row))
        return Ok(updated)

    async def upsert(self, table, row, *, on_conflict, access_token=None):
        if failure := self._enter("upsert"):
            return failure
        for existing in self.rows(table):
            if existing.get(on_conflict) == row.get(on_conflict):
                existing.update(row)
                return Ok([dict(existing)])
        return Ok([dict(self._insert_row(table, row))])

    # -- storage -----------------------------------------------------------

    async def upload(self, bucket, path, content, content_type="application/octet-stream",
                     access_token=None, upsert=True):
        if failure := self._enter("upload"):
            return failure
        self.objects[f"{bucket}/{path}"] = content
        return Ok(path)

    def public_url(self, bucket, path):
        return f"https://fake.supabase.co/storage/v1/object/public/{bucket}/{path}"


COMPLETE_PROFILE = {
    "name": "Priya",
    "profession": "Engineer",
    "city": "Chennai",
    "gender": "Female",
    "date_of_birth": "1995-06-15",
    "marriage_timeframe": "1-2 years",
    "email": "priya@example.com",
    "consent_no_dowry": True,
    "consent_medical_report": True,
    "consent_any_caste": True,
    "consent_any_religion": True,
    "consent_share_contact": True,
}


# ---------------------------------------------------------------------------
# Backend fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def png_bytes():
    """A tiny valid PNG."""
    buf = io.BytesIO()
    Image.new("RGB", (2, 2), color=(200, 30, 60)).save(buf, "PNG")
    return buf.getvalue()


# ---------------------------------------------------------------------------
# App fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def auth_enabled():
    """Mock auth as enabled (Supabase configured)."""
    with patch("app.main.is_auth_enabled", return_value=True), \
         patch("app.auth.is_auth_enabled", return_value=True):
        yield


@pytest.fixture
def client(backend, auth_enabled):
    """Test client for the FastHTML app, wired to the fake backend."""
    from app.main import app
    with patch("app.main.get_backend", return_value=backend):
        yield TestClient(app)


@pytest.fixture
def complete_user(backend):
    """A registered member whose profile is complete."""
    return backend.register("+919876543210", "1234", **COMPLETE_PROFILE)


@pytest.fixture
def signed_in_client(client, complete_user):
    """Client whose session cookie belongs to ``complete_user``."""
    response = client.post(
        "/auth",
        data={"mode": "signin", "whatsapp_number": "+919876543210", "pin": "1234"},
        follow_redirects=False,
    )
    assert response.status_code == 303
    return client


@pytest.fixture
def make_member(backend):
    """Register another member with a complete profile; overrides replace columns."""

    def _make(phone, **overrides):
        values = dict(COMPLETE_PROFILE)
        values.update(overrides)
        return backend.register(phone, "1234", **values)

    return _make
