"""Tests for per-user preferences."""

import asyncio
from dataclasses import replace

import pytest

from core.results import Err, ErrorKind, Ok
from core.user_settings import UserSettings, load_settings, save_settings, validate_settings


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def session(backend):
    return backend.make_session(backend.register("+15551234567", "1234"))


class TestDefaults:

    def test_defaults(self):
        settings = UserSettings()
        assert settings.email_notifications is True
        assert settings.profile_visibility is True
        assert settings.show_whatsapp_publicly is True
        assert settings.show_email_publicly is False
        assert settings.theme_preference == "system"
        assert settings.language_preference == "en"

    def test_from_row_fills_missing_columns(self):
        settings = UserSettings.from_row({"user_id": "u", "theme_preference": "dark", "language_preference": None})
        assert settings.theme_preference == "dark"
        assert settings.language_preference == "en"
        assert settings.email_notifications is True


class TestValidation:

    def test_valid(self):
        assert validate_settings(UserSettings(theme_preference="light", language_preference="ta")) is None

    def test_unknown_theme(self):
        assert validate_settings(UserSettings(theme_preference="neon")).field == "theme_preference"

    def test_unknown_language(self):
        assert validate_settings(UserSettings(language_preference="fr")).field == "language_preference"


class TestPersistence:

    def test_load_without_row_gives_defaults(self, backend, session):
        assert run(load_settings(backend, session)) == Ok(UserSettings())

    def test_save_then_load(self, backend, session):
        wanted = UserSettings(show_email_publicly=True, theme_preference="dark", language_preference="hi")
        assert run(save_settings(backend, session, wanted)) == Ok(wanted)
        assert run(load_settings(backend, session)) == Ok(wanted)

    def test_second_save_updates_same_row(self, backend, session):
        run(save_settings(backend, session, UserSettings()))
        run(save_settings(backend, session, replace(UserSettings(), email_notifications=False)))
        rows = backend.rows("user_settings")
        assert len(rows) == 1
        assert rows[0]["user_id"] == session.identity.id
        assert rows[0]["email_notifications"] is False

    def test_invalid_settings_not_sent(self, backend, session):
        result = run(save_settings(backend, session, UserSettings(theme_preference="neon")))
        assert result.kind is ErrorKind.VALIDATION
        assert "upsert" not in backend.calls

    def test_backend_failure_surfaced(self, backend, session):
        backend.fail["upsert"] = Err("relation \"user_settings\" does not exist")
        result = run(save_settings(backend, session, UserSettings()))
        assert result.message == "relation \"user_settings\" does not exist"
