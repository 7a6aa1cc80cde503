"""
Profile setup and edit.

Both the first-time setup screen and the settings screen end up here.
A save runs three steps and stops at the first failure:

1. Local validation (required fields, about-me length, consents).
   Nothing is sent to the backend when this fails.
2. Optional photo upload. The returned public URL replaces the draft's.
3. A single update that overwrites the owner's row with the full draft.

If step 3 fails after step 2 succeeded the new photo stays in storage
at the owner's path; no compensation is attempted.
"""

import logging
from dataclasses import replace

from core.config import PROFILES_TABLE
from core.profiles import (
    ABOUT_ME_MAX_LENGTH,
    AgeKnown,
    DateOfBirthKnown,
    Profile,
)
from core.results import Err, ErrorKind, Ok, Result, validation_error
from core.session import Session
from core.storage import PhotoUpload, upload_profile_photo

logger = logging.getLogger(__name__)

CONSENT_REQUIRED_MESSAGE = "All consent checkboxes must be checked to proceed"

MIN_AGE = 18
MAX_AGE = 80

SETUP_REQUIRED_FIELDS = (
    "name", "date_of_birth", "profession", "gender", "city", "marriage_timeframe", "email",
)
SETTINGS_REQUIRED_FIELDS = (
    "name", "age", "profession", "gender", "city", "marriage_timeframe", "email", "whatsapp_number",
)

FIELD_LABELS = {
    "name": "Name",
    "age": "Age",
    "date_of_birth": "Date of birth",
    "profession": "Profession",
    "gender": "Gender",
    "city": "City",
    "marriage_timeframe": "Marriage timeframe",
    "email": "Email",
    "whatsapp_number": "WhatsApp number",
}


def _is_filled(draft: Profile, field_name: str) -> bool:
    if field_name == "age":
        return isinstance(draft.age_info, AgeKnown)
    if field_name == "date_of_birth":
        return isinstance(draft.age_info, DateOfBirthKnown)
    value = getattr(draft, field_name)
    if isinstance(value, str):
        return bool(value.strip())
    return value is not None


def validate_draft(draft: Profile, required_fields=SETUP_REQUIRED_FIELDS) -> Err | None:
    """First problem found in ``draft``, or None if it can be saved."""
    for field_name in required_fields:
        if not _is_filled(draft, field_name):
            return validation_error(field_name, f"{FIELD_LABELS[field_name]} is required")

    if isinstance(draft.age_info, AgeKnown) and not MIN_AGE <= draft.age_info.years <= MAX_AGE:
        return validation_error("age", f"Age must be between {MIN_AGE} and {MAX_AGE}")

    if len(draft.about_me) > ABOUT_ME_MAX_LENGTH:
        return validation_error("about_me", f"About me must be at most {ABOUT_ME_MAX_LENGTH} characters")

    if not draft.consents.all_given():
        return validation_error("consents", CONSENT_REQUIRED_MESSAGE)

    return None


async def save_profile(
    backend,
    session: Session,
    draft: Profile,
    photo: PhotoUpload | None = None,
    required_fields=SETUP_REQUIRED_FIELDS,
) -> Result:
    """Validate, upload the photo if any, then overwrite the row.

    Returns ``Ok(saved_profile)``.
    """
    draft = replace(draft, user_id=session.identity.id)
    invalid = validate_draft(draft, required_fields)
    if invalid is not None:
        return invalid

    if photo is not None:
        uploaded = await upload_profile_photo(
            backend, session.identity.id, photo, access_token=session.access_token
        )
        if isinstance(uploaded, Err):
            return uploaded
        draft = replace(draft, photo_url=uploaded.value)

    updated = await backend.update(
        PROFILES_TABLE,
        draft.to_row(),
        eq={"user_id": session.identity.id},
        access_token=session.access_token,
    )
    if isinstance(updated, Err):
        if photo is not None:
            logger.warning(f"Profile update for {session.identity.id} failed after photo upload")
        return updated
    if not updated.value:
        return Err("Profile not found", ErrorKind.BACKEND)

    logger.info(f"Saved profile for {session.identity.id}")
    return Ok(Profile.from_row(updated.value[0]))

