"""Profile table reads used by the screens."""

from core.config import PROFILES_TABLE
from core.profiles import Profile
from core.results import Err, ErrorKind, Ok, Result
from core.session import Session


async def fetch_profile_by_phone(backend, phone: str, access_token: str | None = None) -> Result:
    """``Ok(Profile)`` or ``Ok(None)`` when no row has that number."""
    rows = await backend.select(PROFILES_TABLE, eq={"whatsapp_number": phone.strip()}, access_token=access_token)
    if isinstance(rows, Err):
        return rows
    return Ok(Profile.from_row(rows.value[0]) if rows.value else None)


async def fetch_own_profile(backend, session: Session) -> Result:
    """The signed-in user's profile, ``Ok(None)`` if the row is missing."""
    rows = await backend.select(
        PROFILES_TABLE, eq={"user_id": session.identity.id}, access_token=session.access_token
    )
    if isinstance(rows, Err):
        return rows
    return Ok(Profile.from_row(rows.value[0]) if rows.value else None)


async def fetch_directory(backend, session: Session) -> Result:
    """Every profile except the viewer's own, newest first."""
    rows = await backend.select(
        PROFILES_TABLE,
        neq={"user_id": session.identity.id},
        order="created_at.desc",
        access_token=session.access_token,
    )
    if isinstance(rows, Err):
        return rows
    return Ok([Profile.from_row(row) for row in rows.value])


async def fetch_profile(backend, session: Session, profile_id: str) -> Result:
    rows = await backend.select(PROFILES_TABLE, eq={"id": profile_id}, access_token=session.access_token)
    if isinstance(rows, Err):
        return rows
    if not rows.value:
        return Err("Profile not found", ErrorKind.BACKEND)
    return Ok(Profile.from_row(rows.value[0]))
