"""
Phone + PIN credentials.

Supabase Auth only understands email/password, so a WhatsApp number and
PIN are mapped onto a synthetic email and a password:

    login_id = "<digits of phone>@<CREDENTIAL_EMAIL_DOMAIN>"
    secret   = phone + pin

The mapping is one-way. To find out whether a phone number is taken we
query the profiles table, never the mapped credential.
"""

import re
from dataclasses import dataclass

from core.config import CREDENTIAL_EMAIL_DOMAIN
from core.results import Err, validation_error

PIN_LENGTH = 4
MIN_PHONE_LENGTH = 10

_PIN_RE = re.compile(r"^\d{4}$")
_NON_DIGITS = re.compile(r"[^0-9]")


@dataclass(frozen=True)
class Credential:
    login_id: str
    secret: str


def normalize_phone(phone: str) -> str:
    """Strip everything but digits: '+91 98765-43210' -> '919876543210'."""
    return _NON_DIGITS.sub("", phone or "")


def to_credential(phone: str, pin: str, domain: str = CREDENTIAL_EMAIL_DOMAIN) -> Credential:
    """Map a phone/PIN pair to the credential Supabase stores.

    The secret keeps the phone as typed (trimmed) so existing accounts
    keep authenticating.
    """
    phone = (phone or "").strip()
    return Credential(
        login_id=f"{normalize_phone(phone)}@{domain}",
        secret=f"{phone}{pin}",
    )


def validate_credentials(phone: str, pin: str, confirm_pin: str | None = None) -> Err | None:
    """Form-level checks run before any network call.

    ``confirm_pin`` is only passed on sign-up.
    """
    if not _PIN_RE.match(pin or ""):
        return validation_error("pin", "PIN must be exactly 4 digits")
    if len((phone or "").strip()) < MIN_PHONE_LENGTH:
        return validation_error("whatsapp_number", "Please enter a valid WhatsApp number")
    if confirm_pin is not None and pin != confirm_pin:
        return validation_error("confirm_pin", "PIN and confirmation PIN don't match")
    return None
