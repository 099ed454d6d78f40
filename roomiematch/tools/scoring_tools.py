"""Deterministic compatibility scoring and candidate ranking.

Everything here is a pure function over immutable profile snapshots: no I/O,
no shared state, safe to call from concurrent requests.
"""

from __future__ import annotations

import math
from fractions import Fraction
from typing import Iterable, Literal, Sequence

from roomiematch.models.profile import (
    CompatibilityResult,
    LocationPreference,
    UserProfile,
)
from roomiematch.schema import INCOME_BUCKETS, LIFESTYLE_FIELDS, income_bucket
from roomiematch.utils.errors import InvalidInputError, NoLocationPreferencesError
from roomiematch.utils.logging_config import logger

ScoringPolicy = Literal["two_factor", "full"]

# Exact fractions so half-point scores round up.
WEIGHTS = {
    "lifestyle": Fraction(4, 10),
    "location": Fraction(3, 10),
    "demographics": Fraction(2, 10),
    "professional": Fraction(1, 10),
}

DEMOGRAPHIC_FIELDS = ("religion", "sexual_orientation", "political")

DEFAULT_RETRIEVAL_LIMIT = 20
DEFAULT_OVER_FETCH_FACTOR = 2


def round_half_up(value) -> int:
    """Round to the nearest integer, halves away from zero for positives.

    Accepts floats or ``Fraction``; fractions are rounded exactly.
    """

    return int(math.floor(value + Fraction(1, 2)))


def _field_match_fraction(left: object, right: object, fields: Sequence[str]) -> Fraction:
    """Share of ``fields`` where both sides are set and equal.

    Fields missing on either side stay in the denominator.
    """

    matches = 0
    for field in fields:
        a = getattr(left, field, None)
        b = getattr(right, field, None)
        if a and b and a == b:
            matches += 1
    return Fraction(matches, len(fields))


def lifestyle_match_fraction(anchor: UserProfile, candidate: UserProfile) -> Fraction:
    """Fraction of the six lifestyle fields set and equal on both profiles."""

    return _field_match_fraction(anchor.lifestyle, candidate.lifestyle, LIFESTYLE_FIELDS)


def location_match_fraction(anchor: UserProfile, candidate: UserProfile) -> Fraction:
    """Jaccard similarity of the two location-id sets (0 when both empty)."""

    mine = set(anchor.location_ids)
    theirs = set(candidate.location_ids)
    union = mine | theirs
    if not union:
        return Fraction(0)
    return Fraction(len(mine & theirs), len(union))


def demographics_match_fraction(anchor: UserProfile, candidate: UserProfile) -> Fraction:
    return _field_match_fraction(
        anchor.demographics, candidate.demographics, DEMOGRAPHIC_FIELDS
    )


def professional_match_fraction(anchor: UserProfile, candidate: UserProfile) -> Fraction:
    """Half occupation equality, half income-bucket proximity."""

    mine = anchor.professional
    theirs = candidate.professional

    occupation = Fraction(1 if mine.occupation and mine.occupation == theirs.occupation else 0)

    income = Fraction(0)
    if mine.annual_income is not None and theirs.annual_income is not None:
        distance = abs(
            income_bucket(mine.annual_income) - income_bucket(theirs.annual_income)
        )
        income = 1 - Fraction(distance, len(INCOME_BUCKETS) - 1)

    return (occupation + income) / 2


def calculate_compatibility_score(
    anchor: UserProfile,
    candidate: UserProfile,
    policy: ScoringPolicy = "two_factor",
) -> int:
    """Calculate the weighted compatibility score (0-100).

    ``two_factor`` renormalizes the lifestyle and location weights so they sum
    to 1.0. ``full`` adds the demographics and professional factors with their
    nominal weights.
    """

    lifestyle = lifestyle_match_fraction(anchor, candidate)
    location = location_match_fraction(anchor, candidate)

    if policy == "two_factor":
        total = WEIGHTS["lifestyle"] + WEIGHTS["location"]
        raw = (
            lifestyle * WEIGHTS["lifestyle"] + location * WEIGHTS["location"]
        ) / total
    elif policy == "full":
        raw = (
            lifestyle * WEIGHTS["lifestyle"]
            + location * WEIGHTS["location"]
            + demographics_match_fraction(anchor, candidate) * WEIGHTS["demographics"]
            + professional_match_fraction(anchor, candidate) * WEIGHTS["professional"]
        )
    else:
        raise InvalidInputError(f"Unknown scoring policy: {policy}")

    return min(max(round_half_up(raw * 100), 0), 100)


def is_budget_compatible(anchor: UserProfile, candidate: UserProfile) -> bool:
    """True when both rent ranges exist and overlap."""

    a = anchor.budget
    b = candidate.budget
    if a is None or b is None:
        return False
    return not (a.max < b.min or b.max < a.min)


def find_common_locations(
    anchor: UserProfile, candidate: UserProfile
) -> tuple[LocationPreference, ...]:
    """Anchor locations the candidate also selected, in anchor order."""

    theirs = set(candidate.location_ids)
    return tuple(loc for loc in anchor.locations if loc.composite_id in theirs)


def score_candidate(
    anchor: UserProfile,
    candidate: UserProfile,
    policy: ScoringPolicy = "two_factor",
) -> CompatibilityResult:
    """Compute the full result record for one candidate."""

    return CompatibilityResult(
        counterpart=candidate,
        score=calculate_compatibility_score(anchor, candidate, policy),
        common_locations=find_common_locations(anchor, candidate),
        budget_compatible=is_budget_compatible(anchor, candidate),
        lifestyle_match_percent=round_half_up(
            lifestyle_match_fraction(anchor, candidate) * 100
        ),
    )


def _is_int(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def validate_match_params(min_score: object, limit: object, max_limit: int | None = None) -> None:
    """Reject thresholds outside the allowed ranges instead of clamping them."""

    errors = []
    if not _is_int(min_score) or not 0 <= min_score <= 100:
        errors.append(
            {"field": "minScore", "message": "minScore must be an integer between 0 and 100"}
        )
    if not _is_int(limit) or limit < 1 or (max_limit is not None and limit > max_limit):
        upper = f" and at most {max_limit}" if max_limit is not None else ""
        errors.append(
            {"field": "limit", "message": f"limit must be a positive integer{upper}"}
        )
    if errors:
        raise InvalidInputError("Invalid search parameters", errors)


def filter_candidates_by_location(
    anchor: UserProfile,
    population: Iterable[UserProfile],
    limit: int = DEFAULT_RETRIEVAL_LIMIT,
    over_fetch_factor: int = DEFAULT_OVER_FETCH_FACTOR,
) -> list[UserProfile]:
    """Keep candidates sharing at least one location with the anchor.

    Population order is preserved and the result is capped at
    ``limit * over_fetch_factor`` so scoring still has enough candidates
    after the minimum-score cut.

    Raises:
        NoLocationPreferencesError: the anchor has no locations.
    """

    if not anchor.locations:
        raise NoLocationPreferencesError()
    if not _is_int(limit) or limit < 1 or not _is_int(over_fetch_factor) or over_fetch_factor < 1:
        raise InvalidInputError("limit and over_fetch_factor must be positive integers")

    anchor_ids = set(anchor.location_ids)
    cap = limit * over_fetch_factor
    eligible: list[UserProfile] = []

    for candidate in population:
        if candidate.user_id == anchor.user_id:
            continue
        if not anchor_ids.intersection(candidate.location_ids):
            continue
        eligible.append(candidate)
        if len(eligible) >= cap:
            break

    logger.debug("filter_candidates_by_location result=%s cap=%s", len(eligible), cap)
    return eligible


def rank_matches(
    results: Iterable[CompatibilityResult],
    min_score: int,
    limit: int,
) -> list[CompatibilityResult]:
    """Drop results under ``min_score``, sort by score, keep the top ``limit``.

    Sorting is stable, so equal scores keep their retrieval order.
    """

    validate_match_params(min_score, limit)
    kept = [result for result in results if result.score >= min_score]
    kept.sort(key=lambda result: result.score, reverse=True)
    return kept[:limit]


def find_compatible_roommates(
    anchor: UserProfile,
    population: Iterable[UserProfile],
    min_score: int,
    limit: int,
    policy: ScoringPolicy = "two_factor",
    over_fetch_factor: int = DEFAULT_OVER_FETCH_FACTOR,
) -> list[CompatibilityResult]:
    """Retrieve, score and rank candidates for ``anchor`` in one call."""

    validate_match_params(min_score, limit)
    candidates = filter_candidates_by_location(
        anchor, population, limit=limit, over_fetch_factor=over_fetch_factor
    )
    scored = [score_candidate(anchor, candidate, policy) for candidate in candidates]
    return rank_matches(scored, min_score=min_score, limit=limit)
