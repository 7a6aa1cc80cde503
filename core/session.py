"""
Session manager: who is the current user.

One manager exists per client (in the web app: per browser session). It
is the only writer of the current identity/session; everything else
reads through it or subscribes to its change notifications.

State machine:

    UNKNOWN --restore_session()--> UNAUTHENTICATED | AUTHENTICATED
    UNAUTHENTICATED --sign_in / sign_up--> AUTHENTICATED
    AUTHENTICATED --sign_out / expiry--> UNAUTHENTICATED

Nothing may assume either outcome while the state is UNKNOWN.
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from core.config import ADMIN_PIN, ADMIN_WHATSAPP_NUMBER, PROFILES_TABLE
from core.credentials import normalize_phone, to_credential
from core.results import Err, ErrorKind, Ok, Result

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS_MESSAGE = "Invalid WhatsApp number or PIN"
DUPLICATE_PHONE_MESSAGE = "User with this WhatsApp number already exists"
UNCONFIRMED_MESSAGE = "Please complete your profile setup"

# Tokens this close to expiry are treated as expired
EXPIRY_LEEWAY_SECONDS = 10


@dataclass(frozen=True)
class Identity:
    id: str
    email: str
    phone: str = ""

    def to_dict(self) -> dict:
        return {"id": self.id, "email": self.email, "phone": self.phone}

    @classmethod
    def from_dict(cls, data: dict) -> "Identity":
        return cls(id=data["id"], email=data.get("email", ""), phone=data.get("phone", ""))


@dataclass(frozen=True)
class Session:
    access_token: str
    refresh_token: str
    expires_at: int
    identity: Identity

    def is_expired(self, now: float | None = None) -> bool:
        now = time.time() if now is None else now
        return now >= self.expires_at - EXPIRY_LEEWAY_SECONDS

    def to_dict(self) -> dict:
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "expires_at": self.expires_at,
            "user": self.identity.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict | None) -> "Session | None":
        """Rebuild from cookie data. Anything malformed is treated as no session."""
        if not data:
            return None
        try:
            return cls(
                access_token=data["access_token"],
                refresh_token=data.get("refresh_token", ""),
                expires_at=int(data["expires_at"]),
                identity=Identity.from_dict(data["user"]),
            )
        except (KeyError, TypeError, ValueError):
            return None


class AuthState(str, Enum):
    UNKNOWN = "unknown"
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"


class AuthEvent(str, Enum):
    INITIAL_SESSION = "INITIAL_SESSION"
    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    TOKEN_REFRESHED = "TOKEN_REFRESHED"


SessionCallback = Callable[[AuthEvent, "Session | None"], None]


class SessionManager:
    """Current identity/session for one client, backed by Supabase.

    ``backend`` is anything with the ``SupabaseClient`` coroutine API.
    """

    def __init__(self, backend, admin_phone: str = ADMIN_WHATSAPP_NUMBER, admin_pin: str = ADMIN_PIN):
        self._backend = backend
        self._admin_phone = admin_phone
        self._admin_pin = admin_pin
        self._session: Session | None = None
        self._state = AuthState.UNKNOWN
        self._observers: list[SessionCallback] = []

    # -- reading -----------------------------------------------------------

    @property
    def state(self) -> AuthState:
        return self._state

    @property
    def session(self) -> Session | None:
        return self._session

    @property
    def identity(self) -> Identity | None:
        return self._session.identity if self._session else None

    @property
    def is_authenticated(self) -> bool:
        return self._state is AuthState.AUTHENTICATED

    def observe_session_changes(self, callback: SessionCallback) -> Callable[[], None]:
        """Register ``callback(event, session)``. Returns an unsubscribe function."""
        self._observers.append(callback)

        def unsubscribe():
            if callback in self._observers:
                self._observers.remove(callback)

        return unsubscribe

    def _set_session(self, event: AuthEvent, session: Session | None) -> None:
        # identity and session are replaced together, then observers run
        self._session = session
        self._state = AuthState.AUTHENTICATED if session else AuthState.UNAUTHENTICATED
        for callback in list(self._observers):
            callback(event, session)

    # -- lifecycle ---------------------------------------------------------

    async def restore_session(self, stored: dict | None = None) -> Session | None:
        """Pick up an existing session, refreshing it if it expired.

        A transport failure leaves the client signed out for now but does
        not emit SIGNED_OUT, so whatever was stored survives for a retry.
        """
        previous = Session.from_dict(stored)
        result = await self._backend.get_session(previous)
        if isinstance(result, Err):
            logger.warning(f"Session restore failed: {result.message}")
            self._session = None
            self._state = AuthState.UNAUTHENTICATED
            return None

        session = result.value
        if session is None:
            if previous is not None:
                self._set_session(AuthEvent.SIGNED_OUT, None)
            else:
                self._set_session(AuthEvent.INITIAL_SESSION, None)
            return None

        if previous is not None and session.access_token != previous.access_token:
            self._set_session(AuthEvent.TOKEN_REFRESHED, session)
        else:
            self._set_session(AuthEvent.INITIAL_SESSION, session)
        return session

    async def _profiles_with_phone(self, phone: str) -> Result:
        """Profile rows whose number has the same digits as ``phone``.

        The login id only keeps the digits, so "+1 555 123 4567" and
        "+15551234567" are the same account. The ``like`` pattern narrows
        the candidates server-side; the exact digit comparison is done here.
        """
        digits = normalize_phone(phone)
        if not digits:
            return Ok([])
        result = await self._backend.select(
            PROFILES_TABLE, like={"whatsapp_number": "*" + "*".join(digits) + "*"}
        )
        if isinstance(result, Err):
            return result
        return Ok([row for row in result.value if normalize_phone(row.get("whatsapp_number")) == digits])

    def _is_admin_pair(self, phone: str, pin: str) -> bool:
        return bool(self._admin_phone and self._admin_pin) and (
            phone.strip() == self._admin_phone and pin == self._admin_pin
        )

    async def sign_in(self, phone: str, pin: str) -> Result:
        """Authenticate with a WhatsApp number and PIN.

        Returns ``Ok(session)`` or an ``Err`` with a user-facing message.
        The current session is untouched on failure.
        """
        phone = phone.strip()
        if not self._is_admin_pair(phone, pin):
            lookup = await self._profiles_with_phone(phone)
            if isinstance(lookup, Err):
                if lookup.kind in (ErrorKind.NETWORK, ErrorKind.NOT_CONFIGURED):
                    return lookup
                logger.warning(f"Profile lookup failed during sign-in: {lookup.message}")
                return Err(INVALID_CREDENTIALS_MESSAGE, ErrorKind.AUTHENTICATION)
            if not lookup.value:
                return Err(INVALID_CREDENTIALS_MESSAGE, ErrorKind.AUTHENTICATION)

        credential = to_credential(phone, pin)
        result = await self._backend.sign_in_with_password(credential.login_id, credential.secret)
        if isinstance(result, Err):
            lowered = result.message.lower()
            if "email" in lowered and "confirm" in lowered:
                return Err(UNCONFIRMED_MESSAGE, ErrorKind.AUTHENTICATION)
            if result.kind is ErrorKind.AUTHENTICATION:
                return Err(INVALID_CREDENTIALS_MESSAGE, ErrorKind.AUTHENTICATION)
            return result

        logger.info(f"Signed in {result.value.identity.id}")
        self._set_session(AuthEvent.SIGNED_IN, result.value)
        return Ok(result.value)

    async def sign_up(self, phone: str, pin: str) -> Result:
        """Create an account and its stub profile.

        Returns ``Ok(identity)``. If the service hands back a session the
        manager is signed in as well; otherwise the caller has to sign in.
        """
        phone = phone.strip()
        existing = await self._profiles_with_phone(phone)
        if isinstance(existing, Err):
            return existing
        if existing.value:
            return Err(DUPLICATE_PHONE_MESSAGE, ErrorKind.CONFLICT, field="whatsapp_number")

        credential = to_credential(phone, pin)
        created = await self._backend.sign_up(
            credential.login_id, credential.secret, metadata={"whatsapp_number": phone}
        )
        if isinstance(created, Err):
            return created

        identity, session = created.value
        access_token = session.access_token if session else None
        inserted = await self._backend.insert(
            PROFILES_TABLE,
            {"user_id": identity.id, "whatsapp_number": phone, "name": ""},
            access_token=access_token,
        )
        if isinstance(inserted, Err):
            # No rollback: the identity stays without a profile row.
            logger.error(f"Identity {identity.id} created but profile insert failed: {inserted.message}")
            return inserted

        logger.info(f"Signed up {identity.id}")
        if session is not None:
            self._set_session(AuthEvent.SIGNED_IN, session)
        return Ok(identity)

    async def sign_out(self) -> None:
        """Invalidate the remote session and always clear the local one."""
        if self._session is not None:
            result = await self._backend.sign_out(self._session.access_token)
            if isinstance(result, Err):
                logger.warning(f"Remote sign-out failed: {result.message}")
            logger.info(f"Signed out {self._session.identity.id}")
        self._set_session(AuthEvent.SIGNED_OUT, None)
