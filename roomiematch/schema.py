"""Shared categorical domains.

Onboarding validation, profile updates and the compatibility engine all read
these tables, so the values a user can submit and the values the engine
compares are always the same set.
"""

from __future__ import annotations

import re

FREQUENCY_OPTIONS = ("no", "sometimes", "often")
HOUSEHOLD_OPTIONS = ("no", "will-have", "yes")

# Order is the canonical order used for lifestyle scoring.
LIFESTYLE_OPTIONS: dict[str, tuple[str, ...]] = {
    "children": HOUSEHOLD_OPTIONS,
    "pets": HOUSEHOLD_OPTIONS,
    "smoking": FREQUENCY_OPTIONS,
    "drinking": FREQUENCY_OPTIONS,
    "weed": FREQUENCY_OPTIONS,
    "drugs": FREQUENCY_OPTIONS,
}
LIFESTYLE_FIELDS = tuple(LIFESTYLE_OPTIONS)

# Lifestyle fields that count toward profile completeness and onboarding.
CORE_LIFESTYLE_FIELDS = ("children", "pets", "smoking", "drinking")

# Keys are the stored (camelCase) document fields.
DEMOGRAPHIC_OPTIONS: dict[str, tuple[str, ...]] = {
    "religion": (
        "christianity", "judaism", "islam", "hinduism", "buddhism",
        "atheist", "agnostic", "spiritual", "other", "prefer-not-say",
    ),
    "sexualOrientation": (
        "straight", "gay", "bisexual", "pansexual", "asexual",
        "queer", "other", "prefer-not-say",
    ),
    "political": (
        "very-liberal", "liberal", "moderate", "conservative",
        "very-conservative", "libertarian", "apolitical", "other",
        "prefer-not-say",
    ),
}

OCCUPATIONS = (
    "tech", "finance", "healthcare", "education", "legal",
    "media", "arts", "hospitality", "retail", "real-estate",
    "construction", "government", "non-profit", "student",
    "unemployed", "other",
)

LANGUAGES = (
    "english", "spanish", "chinese", "cantonese", "russian",
    "korean", "bengali", "hindi", "french", "arabic",
    "hebrew", "italian", "portuguese", "japanese", "polish",
    "german", "urdu", "tagalog", "vietnamese", "other",
)

SEX_OPTIONS = ("male", "female")

ETHNICITIES = (
    "asian", "black", "hispanic", "white", "middle-eastern",
    "native-american", "pacific-islander", "mixed", "other", "prefer-not-say",
)

HOUSING_SITUATIONS = ("looking", "have-apartment", "flexible")

METRO_DISTANCE_OPTIONS = ("5", "10", "15", "no-preference")

# Lower bounds of annual income buckets, used for professional proximity.
INCOME_BUCKETS = (0, 30_000, 60_000, 100_000, 150_000)

MIN_AGE = 18
MAX_AGE = 100
MIN_RENT_DURATION_MONTHS = 3
MAX_RENT_DURATION_MONTHS = 60
USERNAME_MIN_LENGTH = 3
USERNAME_MAX_LENGTH = 30
PASSWORD_MIN_LENGTH = 8

_WHITESPACE = re.compile(r"\s+")


def _slug(value: str) -> str:
    return _WHITESPACE.sub("-", value.strip().lower())


def build_location_id(borough: str, neighborhood: str) -> str:
    """Composite id for one borough + neighborhood pair."""

    return f"{_slug(borough)}-{_slug(neighborhood)}"


def income_bucket(annual_income: float) -> int:
    """Index of the income bucket containing ``annual_income``."""

    bucket = 0
    for index, lower in enumerate(INCOME_BUCKETS):
        if annual_income >= lower:
            bucket = index
    return bucket


def invalid_choice(field: str, value: object, options: tuple[str, ...]) -> dict | None:
    """Return a field error when ``value`` is set but not one of ``options``."""

    if value in (None, ""):
        return None
    if value not in options:
        return {"field": field, "message": f"Invalid value for {field}"}
    return None
