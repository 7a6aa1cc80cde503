"""WhatsApp deep links and the copyable contact card."""

from datetime import date
from urllib.parse import quote

from core.credentials import normalize_phone
from core.profiles import AgeUnknown, Profile

WHATSAPP_BASE_URL = "https://wa.me"
GREETING = "Hi {name}, I found your profile on Caste No Bar and would like to connect."


def whatsapp_link(phone: str, name: str) -> str:
    """``https://wa.me/<digits>?text=<greeting>``, opened in a new tab."""
    text = quote(GREETING.format(name=name), safe=",")
    return f"{WHATSAPP_BASE_URL}/{normalize_phone(phone)}?text={text}"


def can_share_contact(profile: Profile) -> bool:
    return profile.consents.share_contact


def contact_card(profile: Profile, today: date | None = None) -> str:
    """Plain-text summary a member can copy and paste."""
    if isinstance(profile.age_info, AgeUnknown):
        age = "Age not specified"
    else:
        age = f"{profile.age(today)} years"
    lines = [
        f"Name: {profile.name}",
        f"Age: {age}",
        f"Profession: {profile.profession}",
        f"City: {profile.city}",
        f"Marriage Timeline: {profile.marriage_timeframe.value if profile.marriage_timeframe else ''}",
    ]
    if can_share_contact(profile):
        lines.append(f"WhatsApp: {profile.whatsapp_number}")
        lines.append(f"Email: {profile.email}")
    return "\n".join(lines)
