"""Shared LangGraph state definitions.

All graph states are TypedDicts so state is explicit and consistent across
graph nodes.
"""

from __future__ import annotations

from typing import TypedDict

from roomiematch.models.profile import CompatibilityResult, UserProfile

JsonDict = dict[str, object]
JsonList = list[JsonDict]


class MatchingState(TypedDict, total=False):
    """State for the compatible-roommates graph.

    Fields are optional at runtime because nodes populate them progressively.
    """

    # Identifies the anchor user.
    user_id: str
    # Caller thresholds, validated before any scoring work.
    min_score: int
    limit: int
    # Anchor document from users/{user_id} and its scoring snapshot.
    anchor_document: JsonDict
    anchor_profile: UserProfile
    # Store documents keyed by user id, in store order.
    candidate_documents: dict[str, JsonDict]
    # Candidates sharing at least one location, capped by the over-fetch factor.
    filtered_candidates: list[UserProfile]
    # One result per filtered candidate.
    scored_matches: list[CompatibilityResult]
    # Results above min_score, best first, at most `limit`.
    top_matches: list[CompatibilityResult]
    # Response body returned to the caller.
    response: JsonDict
    # Error string and machine-readable code if any node fails.
    error: str
    error_code: str
    # Per-field validation errors for invalid_input.
    validation_errors: JsonList
    # Completeness reported with profile_incomplete.
    profile_completeness: int
    # Response metadata for observability.
    response_metadata: JsonDict


class OnboardingState(TypedDict, total=False):
    """State for a single onboarding step submission."""

    # User identity.
    user_id: str
    # "update" applies data for the step, "skip" only advances the step.
    action: str
    # Step being submitted (1-3).
    step: int
    # Raw form data for the step.
    data: JsonDict
    # User document before and after applying the step.
    document: JsonDict
    updated_document: JsonDict
    # Validation errors as [{field, message}].
    validation_errors: JsonList
    # Whether submitted data is valid.
    is_valid: bool
    # Whether onboarding was completed by this submission.
    onboarding_completed: bool
    # Response body returned to the caller.
    response: JsonDict
    # Error message and code if any node fails.
    error: str
    error_code: str
