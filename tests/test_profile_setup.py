"""
Tests for saving a profile: validation, photo upload, row overwrite.

Also covers the photo storage helpers, since setup is their only caller.
"""

import asyncio
from dataclasses import replace
from datetime import date

import pytest

from core.profile_setup import (
    CONSENT_REQUIRED_MESSAGE,
    SETTINGS_REQUIRED_FIELDS,
    save_profile,
    validate_draft,
)
from core.profiles import (
    AgeKnown,
    Consents,
    DateOfBirthKnown,
    Gender,
    MarriageTimeframe,
    Profile,
)
from core.results import Err, ErrorKind, Ok
from core.storage import PhotoUpload, inspect_photo, photo_object_path, upload_profile_photo

ALL_CONSENTS = Consents(True, True, True, True, True)


def run(coro):
    return asyncio.run(coro)


def make_draft(**overrides):
    values = dict(
        user_id="",
        whatsapp_number="+15551234567",
        name="Arun",
        age_info=DateOfBirthKnown(date(1994, 3, 2)),
        profession="Architect",
        gender=Gender.MALE,
        city="Pune",
        marriage_timeframe=MarriageTimeframe.WITHIN_6_MONTHS,
        email="arun@example.com",
        consents=ALL_CONSENTS,
    )
    values.update(overrides)
    return Profile(**values)


@pytest.fixture
def member(backend):
    identity = backend.register("+15551234567", "1234")
    return identity, backend.make_session(identity)


class TestValidateDraft:

    def test_complete_draft_passes(self):
        assert validate_draft(make_draft()) is None

    @pytest.mark.parametrize("field_name,override,message", [
        ("name", {"name": "  "}, "Name is required"),
        ("profession", {"profession": ""}, "Profession is required"),
        ("city", {"city": ""}, "City is required"),
        ("gender", {"gender": None}, "Gender is required"),
        ("marriage_timeframe", {"marriage_timeframe": None}, "Marriage timeframe is required"),
        ("email", {"email": ""}, "Email is required"),
    ])
    def test_required_field_missing(self, field_name, override, message):
        error = validate_draft(make_draft(**override))
        assert error.kind is ErrorKind.VALIDATION
        assert error.field == field_name
        assert error.message == message

    def test_setup_requires_date_of_birth(self):
        error = validate_draft(make_draft(age_info=AgeKnown(30)))
        assert error.field == "date_of_birth"

    def test_settings_requires_age(self):
        draft = make_draft(age_info=DateOfBirthKnown(date(1994, 3, 2)))
        assert validate_draft(draft, SETTINGS_REQUIRED_FIELDS).field == "age"
        assert validate_draft(replace(draft, age_info=AgeKnown(30)), SETTINGS_REQUIRED_FIELDS) is None

    @pytest.mark.parametrize("years", [17, 81])
    def test_age_out_of_range(self, years):
        error = validate_draft(make_draft(age_info=AgeKnown(years)), SETTINGS_REQUIRED_FIELDS)
        assert error.field == "age"

    def test_about_me_limit(self):
        assert validate_draft(make_draft(about_me="x" * 500)) is None
        assert validate_draft(make_draft(about_me="x" * 501)).field == "about_me"

    @pytest.mark.parametrize("missing", ["no_dowry", "medical_report", "any_caste", "any_religion", "share_contact"])
    def test_every_consent_required(self, missing):
        error = validate_draft(make_draft(consents=replace(ALL_CONSENTS, **{missing: False})))
        assert error.field == "consents"
        assert error.message == CONSENT_REQUIRED_MESSAGE

    def test_required_fields_reported_before_consents(self):
        error = validate_draft(make_draft(name="", consents=Consents()))
        assert error.field == "name"


class TestSaveProfile:

    def test_overwrites_owner_row(self, backend, member):
        identity, session = member
        result = run(save_profile(backend, session, make_draft()))
        assert isinstance(result, Ok)
        saved = result.value
        assert saved.user_id == identity.id
        assert saved.is_complete
        assert saved.age_info == DateOfBirthKnown(date(1994, 3, 2))

        row = backend.rows("cnb_profiles")[0]
        assert row["name"] == "Arun"
        assert row["date_of_birth"] == "1994-03-02"
        assert row["age"] is None
        assert row["consent_share_contact"] is True

    def test_missing_consent_makes_no_backend_calls(self, backend, member, png_bytes):
        _, session = member
        draft = make_draft(consents=replace(ALL_CONSENTS, any_caste=False))
        result = run(save_profile(backend, session, draft, photo=PhotoUpload("me.png", png_bytes)))
        assert result.message == CONSENT_REQUIRED_MESSAGE
        assert backend.calls == []
        assert backend.rows("cnb_profiles")[0]["name"] == ""

    def test_draft_user_id_is_ignored(self, backend, member):
        identity, session = member
        other = backend.register("+15550001111", "1234")
        run(save_profile(backend, session, make_draft(user_id=other.id)))
        by_user = {row["user_id"]: row for row in backend.rows("cnb_profiles")}
        assert by_user[identity.id]["name"] == "Arun"
        assert by_user[other.id]["name"] == ""

    def test_photo_uploaded_then_url_saved(self, backend, member, png_bytes):
        identity, session = member
        result = run(save_profile(backend, session, make_draft(), photo=PhotoUpload("me.png", png_bytes)))
        expected_url = f"https://fake.supabase.co/storage/v1/object/public/cnb-photos/{identity.id}/profile.png"
        assert result.value.photo_url == expected_url
        assert backend.objects[f"cnb-photos/{identity.id}/profile.png"] == png_bytes
        assert backend.calls == ["upload", "update"]

    def test_upload_failure_aborts_before_update(self, backend, member, png_bytes):
        _, session = member
        backend.fail["upload"] = Err("Bucket not found", ErrorKind.STORAGE)
        result = run(save_profile(backend, session, make_draft(), photo=PhotoUpload("me.png", png_bytes)))
        assert result == Err("Bucket not found", ErrorKind.STORAGE)
        assert "update" not in backend.calls
        assert backend.rows("cnb_profiles")[0]["name"] == ""

    def test_update_failure_after_upload_keeps_photo(self, backend, member, png_bytes):
        identity, session = member
        backend.fail["update"] = Err("permission denied")
        result = run(save_profile(backend, session, make_draft(), photo=PhotoUpload("me.png", png_bytes)))
        assert result.message == "permission denied"
        assert f"cnb-photos/{identity.id}/profile.png" in backend.objects

    def test_missing_row(self, backend, member):
        _, session = member
        backend.tables["cnb_profiles"].clear()
        result = run(save_profile(backend, session, make_draft()))
        assert result.message == "Profile not found"

    def test_existing_photo_kept_without_new_upload(self, backend, member):
        _, session = member
        result = run(save_profile(backend, session, make_draft(photo_url="https://cdn/old.jpg")))
        assert result.value.photo_url == "https://cdn/old.jpg"
        assert "upload" not in backend.calls


class TestPhotoStorage:

    def test_object_path(self):
        assert photo_object_path("user-1", "jpg") == "user-1/profile.jpg"

    def test_inspect_png(self, png_bytes):
        assert inspect_photo(png_bytes) == ("png", "image/png")

    def test_inspect_rejects_non_images(self):
        assert inspect_photo(b"%PDF-1.4 not an image") is None

    def test_empty_photo_rejected(self, backend):
        result = run(upload_profile_photo(backend, "user-1", PhotoUpload("me.png", b"")))
        assert result.field == "photo"
        assert backend.calls == []

    def test_non_image_rejected_locally(self, backend):
        result = run(upload_profile_photo(backend, "user-1", PhotoUpload("cv.pdf", b"%PDF-1.4")))
        assert result.kind is ErrorKind.VALIDATION
        assert backend.calls == []

    def test_extension_follows_content_not_filename(self, backend, png_bytes):
        result = run(upload_profile_photo(backend, "user-1", PhotoUpload("me.jpg", png_bytes)))
        assert result.value.endswith("user-1/profile.png")
