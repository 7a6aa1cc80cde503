"""
Profile directory filtering.

The dashboard fetches every other member's profile once and narrows the
list in memory. Filtering is recomputed from scratch for every request;
there is no caching of previous results.
"""

from dataclasses import dataclass
from datetime import date
from typing import Iterable

from core.profiles import Profile

ALL = "all"


@dataclass(frozen=True)
class AgeBand:
    key: str
    label: str
    min_age: int
    max_age: int

    def contains(self, age: int) -> bool:
        return self.min_age <= age <= self.max_age


AGE_BANDS = (
    AgeBand("18-25", "18-25", 18, 25),
    AgeBand("26-30", "26-30", 26, 30),
    AgeBand("31-35", "31-35", 31, 35),
    AgeBand("36-40", "36-40", 36, 40),
    AgeBand("41-50", "41+", 41, 50),
)

AGE_BANDS_BY_KEY = {band.key: band for band in AGE_BANDS}


def _is_all(value: str) -> bool:
    return not value or value.strip().lower() == ALL


@dataclass(frozen=True)
class FilterCriteria:
    """User-entered filters. Empty strings (or "all") match everything."""
    city: str = ""
    gender: str = ""
    profession: str = ""
    age_band: str = ""

    @property
    def is_empty(self) -> bool:
        return all(_is_all(v) for v in (self.city, self.gender, self.profession, self.age_band))


def _matches(profile: Profile, criteria: FilterCriteria, today: date) -> bool:
    city = criteria.city.strip().lower()
    if city and city not in profile.city.lower():
        return False

    if not _is_all(criteria.gender):
        if profile.gender is None or profile.gender.value != criteria.gender:
            return False

    profession = criteria.profession.strip().lower()
    if profession and profession not in profile.profession.lower():
        return False

    if not _is_all(criteria.age_band):
        band = AGE_BANDS_BY_KEY.get(criteria.age_band)
        if band is None or not band.contains(profile.age(today)):
            return False

    return True


def filter_profiles(
    profiles: Iterable[Profile],
    criteria: FilterCriteria,
    today: date | None = None,
) -> list[Profile]:
    """Profiles matching every criterion, in their original order."""
    today = today or date.today()
    return [p for p in profiles if _matches(p, criteria, today)]
