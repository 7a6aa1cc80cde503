"""
Per-user preferences (the "Preferences" tab of the settings screen).

Stored one row per user in SETTINGS_TABLE and written with an upsert
keyed on ``user_id``. A user who never saved preferences gets the
defaults below.
"""

from dataclasses import asdict, dataclass, fields

from core.config import SETTINGS_TABLE
from core.results import Err, Ok, Result, validation_error
from core.session import Session

THEMES = ("light", "dark", "system")
LANGUAGES = {"en": "English", "hi": "हिंदी", "ta": "தமிழ்"}


@dataclass(frozen=True)
class UserSettings:
    email_notifications: bool = True
    profile_visibility: bool = True
    show_whatsapp_publicly: bool = True
    show_email_publicly: bool = False
    theme_preference: str = "system"
    language_preference: str = "en"

    @classmethod
    def from_row(cls, row: dict) -> "UserSettings":
        defaults = cls()
        values = {}
        for f in fields(cls):
            value = row.get(f.name)
            values[f.name] = getattr(defaults, f.name) if value is None or value == "" else value
        return cls(**values)


def validate_settings(settings: UserSettings) -> Err | None:
    if settings.theme_preference not in THEMES:
        return validation_error("theme_preference", "Unknown theme")
    if settings.language_preference not in LANGUAGES:
        return validation_error("language_preference", "Unknown language")
    return None


async def load_settings(backend, session: Session) -> Result:
    rows = await backend.select(
        SETTINGS_TABLE, eq={"user_id": session.identity.id}, access_token=session.access_token
    )
    if isinstance(rows, Err):
        return rows
    return Ok(UserSettings.from_row(rows.value[0]) if rows.value else UserSettings())


async def save_settings(backend, session: Session, settings: UserSettings) -> Result:
    invalid = validate_settings(settings)
    if invalid is not None:
        return invalid
    row = {"user_id": session.identity.id, **asdict(settings)}
    saved = await backend.upsert(
        SETTINGS_TABLE, row, on_conflict="user_id", access_token=session.access_token
    )
    if isinstance(saved, Err):
        return saved
    return Ok(settings)
