"""
Profile model.

A profile is one row of the profiles table per identity. PostgREST hands rows
back as plain dicts; ``Profile.from_row`` is the only place that
interprets them and ``Profile.to_row`` the only place that builds them.

Age is stored either directly (``age``, set from the settings screen) or
as a date of birth (set during profile setup). Both are folded into one
tagged value, ``AgeInfo``, and ``resolve_age`` is the single function
that turns it into whole years.
"""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Union

ABOUT_ME_MAX_LENGTH = 500


class Gender(str, Enum):
    MALE = "Male"
    FEMALE = "Female"
    OTHER = "Other"

    @classmethod
    def parse(cls, value) -> "Gender | None":
        try:
            return cls(value)
        except ValueError:
            return None


class MarriageTimeframe(str, Enum):
    WITHIN_6_MONTHS = "Within 6 months"
    SIX_TO_12_MONTHS = "6-12 months"
    ONE_TO_2_YEARS = "1-2 years"
    OVER_2_YEARS = "2+ years"

    @classmethod
    def parse(cls, value) -> "MarriageTimeframe | None":
        try:
            return cls(value)
        except ValueError:
            return None


# --- Age -------------------------------------------------------------------

@dataclass(frozen=True)
class AgeKnown:
    years: int


@dataclass(frozen=True)
class DateOfBirthKnown:
    date_of_birth: date


@dataclass(frozen=True)
class AgeUnknown:
    pass


AgeInfo = Union[AgeKnown, DateOfBirthKnown, AgeUnknown]


def age_on(date_of_birth: date, today: date) -> int:
    """Whole years between a birth date and ``today``.

    One year is subtracted when this year's birthday has not come yet.
    """
    years = today.year - date_of_birth.year
    if (today.month, today.day) < (date_of_birth.month, date_of_birth.day):
        years -= 1
    return years


def resolve_age(info: AgeInfo, today: date | None = None) -> int:
    """Age in years. Unknown age resolves to 0."""
    if isinstance(info, AgeKnown):
        return info.years
    if isinstance(info, DateOfBirthKnown):
        return age_on(info.date_of_birth, today or date.today())
    return 0


def age_info_from_row(row: dict) -> AgeInfo:
    age = row.get("age")
    if age not in (None, ""):
        try:
            return AgeKnown(int(age))
        except (TypeError, ValueError):
            pass
    dob = row.get("date_of_birth")
    if dob:
        try:
            return DateOfBirthKnown(date.fromisoformat(str(dob)[:10]))
        except ValueError:
            pass
    return AgeUnknown()


# --- Consents --------------------------------------------------------------

CONSENT_FIELDS = (
    "consent_no_dowry",
    "consent_medical_report",
    "consent_any_caste",
    "consent_any_religion",
    "consent_share_contact",
)

CONSENT_LABELS = {
    "consent_no_dowry": "I will not take or give dowry",
    "consent_medical_report": "I will submit my full body medical report",
    "consent_any_caste": "I am okay with any caste",
    "consent_any_religion": "I am okay with any religion",
    "consent_share_contact": "I consent to share my WhatsApp and Email with potential matches",
}


@dataclass(frozen=True)
class Consents:
    no_dowry: bool = False
    medical_report: bool = False
    any_caste: bool = False
    any_religion: bool = False
    share_contact: bool = False

    def all_given(self) -> bool:
        return all(self.as_row().values())

    def as_row(self) -> dict:
        return {
            "consent_no_dowry": self.no_dowry,
            "consent_medical_report": self.medical_report,
            "consent_any_caste": self.any_caste,
            "consent_any_religion": self.any_religion,
            "consent_share_contact": self.share_contact,
        }

    @classmethod
    def from_row(cls, row: dict) -> "Consents":
        return cls(
            no_dowry=bool(row.get("consent_no_dowry")),
            medical_report=bool(row.get("consent_medical_report")),
            any_caste=bool(row.get("consent_any_caste")),
            any_religion=bool(row.get("consent_any_religion")),
            share_contact=bool(row.get("consent_share_contact")),
        )


# --- Profile ---------------------------------------------------------------

@dataclass
class Profile:
    user_id: str
    whatsapp_number: str = ""
    name: str = ""
    age_info: AgeInfo = field(default_factory=AgeUnknown)
    profession: str = ""
    gender: Gender | None = None
    city: str = ""
    marriage_timeframe: MarriageTimeframe | None = None
    about_me: str = ""
    photo_url: str | None = None
    email: str = ""
    consents: Consents = field(default_factory=Consents)
    is_admin: bool = False
    id: str | None = None

    @property
    def is_complete(self) -> bool:
        """Name, profession and city filled in. Incomplete owners go to setup."""
        return all(v.strip() for v in (self.name, self.profession, self.city))

    def age(self, today: date | None = None) -> int:
        return resolve_age(self.age_info, today)

    @classmethod
    def from_row(cls, row: dict) -> "Profile":
        return cls(
            id=str(row["id"]) if row.get("id") is not None else None,
            user_id=row.get("user_id") or "",
            whatsapp_number=row.get("whatsapp_number") or "",
            name=row.get("name") or "",
            age_info=age_info_from_row(row),
            profession=row.get("profession") or "",
            gender=Gender.parse(row.get("gender")),
            city=row.get("city") or "",
            marriage_timeframe=MarriageTimeframe.parse(row.get("marriage_timeframe")),
            about_me=row.get("about_me") or "",
            photo_url=row.get("photo_url") or None,
            email=row.get("email") or "",
            consents=Consents.from_row(row),
            is_admin=bool(row.get("is_admin")),
        )

    def to_row(self) -> dict:
        """Full column set written on every save.

        ``user_id``, ``id`` and ``is_admin`` are never written from here.
        """
        age = self.age_info.years if isinstance(self.age_info, AgeKnown) else None
        dob = (
            self.age_info.date_of_birth.isoformat()
            if isinstance(self.age_info, DateOfBirthKnown) else None
        )
        row = {
            "whatsapp_number": self.whatsapp_number,
            "name": self.name,
            "age": age,
            "date_of_birth": dob,
            "profession": self.profession,
            "gender": self.gender.value if self.gender else None,
            "city": self.city,
            "marriage_timeframe": self.marriage_timeframe.value if self.marriage_timeframe else None,
            "about_me": self.about_me,
            "photo_url": self.photo_url,
            "email": self.email,
        }
        row.update(self.consents.as_row())
        return row
