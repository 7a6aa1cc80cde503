"""
Profile photo storage.

Photos live in the Supabase storage bucket PHOTO_BUCKET, one object per
user at ``<user_id>/profile.<ext>``. A new upload overwrites the old
object at that path; the profile row keeps the public URL.

Uploaded bytes are opened with Pillow before anything is sent, so a
file that is not an image is rejected locally.
"""

import io
import logging
from dataclasses import dataclass

from PIL import Image, UnidentifiedImageError

from core.config import PHOTO_BUCKET
from core.results import Err, Ok, Result, validation_error

logger = logging.getLogger(__name__)

# Pillow format name -> (extension, MIME type)
SUPPORTED_FORMATS = {
    "JPEG": ("jpg", "image/jpeg"),
    "PNG": ("png", "image/png"),
    "GIF": ("gif", "image/gif"),
    "WEBP": ("webp", "image/webp"),
}


@dataclass(frozen=True)
class PhotoUpload:
    filename: str
    content: bytes


def inspect_photo(content: bytes) -> tuple[str, str] | None:
    """Return (extension, content_type) if ``content`` is a supported image."""
    try:
        with Image.open(io.BytesIO(content)) as img:
            fmt = img.format
            img.verify()
    except (UnidentifiedImageError, OSError, SyntaxError):
        return None
    return SUPPORTED_FORMATS.get(fmt)


def photo_object_path(user_id: str, extension: str) -> str:
    return f"{user_id}/profile.{extension}"


async def upload_profile_photo(backend, user_id: str, photo: PhotoUpload, access_token: str | None = None) -> Result:
    """Validate and upload a profile photo. ``Ok(public_url)``."""
    if not photo.content:
        return validation_error("photo", "The selected photo is empty")
    detected = inspect_photo(photo.content)
    if detected is None:
        return validation_error("photo", "Photo must be a JPEG, PNG, GIF or WebP image")

    extension, content_type = detected
    path = photo_object_path(user_id, extension)
    uploaded = await backend.upload(
        PHOTO_BUCKET, path, photo.content, content_type=content_type, access_token=access_token
    )
    if isinstance(uploaded, Err):
        logger.warning(f"Photo upload for {user_id} failed: {uploaded.message}")
        return uploaded
    return Ok(backend.public_url(PHOTO_BUCKET, path))
