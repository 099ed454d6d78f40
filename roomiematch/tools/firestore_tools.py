"""Firestore wrappers used by graph nodes and routes.

These helpers centralize collection names, eligibility filtering, error
handling, and logging so graph nodes and routes stay focused on
orchestration logic.
"""

from __future__ import annotations

import os
from collections import Counter
from datetime import datetime, timedelta, timezone

import firebase_admin
from firebase_admin import credentials, firestore

from roomiematch.utils.errors import FirestoreUnavailableError
from roomiematch.utils.logging_config import logger

USERS_COLLECTION = "users"
DRAFTS_COLLECTION = "registrationDrafts"

# array-contains-any accepts at most 10 values per query.
ARRAY_CONTAINS_ANY_LIMIT = 10

COMPLETENESS_BUCKETS = (0, 25, 50, 75, 90, 100)

_db: firestore.Client | None = None


def init_firebase_app() -> None:
    """Initialize the default Firebase app once per process."""

    if firebase_admin._apps:
        return

    cred_path = os.environ.get("GOOGLE_APPLICATION_CREDENTIALS")
    if not cred_path:
        raise RuntimeError(
            "GOOGLE_APPLICATION_CREDENTIALS is not set"
        )

    cred = credentials.Certificate(cred_path)
    firebase_admin.initialize_app(cred)


def get_db() -> firestore.Client:
    """Get a Firestore client, initializing Firebase lazily."""
    global _db

    if _db is not None:
        return _db

    try:
        init_firebase_app()
        _db = firestore.client()
        return _db

    except Exception as exc:
        logger.error("Failed to initialize Firestore: %s", exc)
        raise FirestoreUnavailableError(str(exc)) from exc


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _registration_date(data: dict) -> datetime:
    value = (data.get("metadata") or {}).get("registrationDate")
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    return datetime.min.replace(tzinfo=timezone.utc)


def get_user_document(user_id: str) -> dict | None:
    """Fetch users/{user_id}. Returns None if the user does not exist."""

    try:
        doc = get_db().collection(USERS_COLLECTION).document(user_id).get()
        if not doc.exists:
            return None
        return doc.to_dict() or {}
    except Exception as exc:
        logger.error("Failed to fetch user document: %s", str(exc))
        raise FirestoreUnavailableError(str(exc)) from exc


def find_location_candidates(
    location_ids: list[str], exclude_user_id: str, limit: int = 100
) -> list[tuple[str, dict]]:
    """Query active, onboarded users sharing at least one location id.

    Only the array-contains-any filter runs in Firestore; status checks and
    most-recent-first ordering happen in memory to avoid composite indexes.
    Returns ``(user_id, document)`` pairs.
    """

    if not location_ids:
        return []

    try:
        query = (
            get_db()
            .collection(USERS_COLLECTION)
            .where(
                "housingInfo.locationIds",
                "array_contains_any",
                list(location_ids)[:ARRAY_CONTAINS_ANY_LIMIT],
            )
        )

        candidates: list[tuple[str, dict]] = []
        for doc in query.stream():
            if doc.id == exclude_user_id:
                continue
            data = doc.to_dict() or {}
            metadata = data.get("metadata") or {}
            if not metadata.get("isActive") or not metadata.get("onboardingCompleted"):
                continue
            candidates.append((doc.id, data))

        candidates.sort(key=lambda item: _registration_date(item[1]), reverse=True)
        logger.debug("find_location_candidates result=%s", len(candidates))
        return candidates[:limit]
    except Exception as exc:
        logger.error("Failed to query location candidates: %s", str(exc))
        raise FirestoreUnavailableError(str(exc)) from exc


def find_user_by_field(field_path: str, value: str) -> tuple[str, dict] | None:
    """Return the first user whose ``field_path`` equals ``value``."""

    try:
        query = (
            get_db()
            .collection(USERS_COLLECTION)
            .where(field_path, "==", value)
            .limit(1)
        )
        for doc in query.stream():
            return doc.id, doc.to_dict() or {}
        return None
    except Exception as exc:
        logger.error("Failed to look up user by %s: %s", field_path, str(exc))
        raise FirestoreUnavailableError(str(exc)) from exc


def create_user_document(user_id: str, data: dict) -> None:
    """Create users/{user_id}; fails if the document already exists."""

    try:
        get_db().collection(USERS_COLLECTION).document(user_id).create(data)
    except Exception as exc:
        logger.error("Failed to create user document: %s", str(exc))
        raise FirestoreUnavailableError(str(exc)) from exc


def save_user_document(user_id: str, data: dict) -> None:
    """Overwrite users/{user_id} with ``data``."""

    try:
        get_db().collection(USERS_COLLECTION).document(user_id).set(data)
    except Exception as exc:
        logger.error("Failed to save user document: %s", str(exc))
        raise FirestoreUnavailableError(str(exc)) from exc


def delete_user_document(user_id: str) -> bool:
    """Delete users/{user_id}. Returns False if it did not exist."""

    try:
        ref = get_db().collection(USERS_COLLECTION).document(user_id)
        if not ref.get().exists:
            return False
        ref.delete()
        return True
    except Exception as exc:
        logger.error("Failed to delete user: %s", str(exc))
        raise FirestoreUnavailableError(str(exc)) from exc


def list_users(
    filters: dict[str, object] | None = None, page: int = 1, limit: int = 20
) -> tuple[list[tuple[str, dict]], int]:
    """List users matching equality ``filters`` on dotted field paths.

    ``housingInfo.selectedLocations.borough`` is matched in memory since
    Firestore cannot filter on fields inside array elements. Returns
    ``(page_items, total)`` ordered most-recent-registration first.
    """

    filters = dict(filters or {})
    borough = filters.pop("housingInfo.selectedLocations.borough", None)

    try:
        query = get_db().collection(USERS_COLLECTION)
        for field_path, value in filters.items():
            query = query.where(field_path, "==", value)

        users = [(doc.id, doc.to_dict() or {}) for doc in query.stream()]
        if borough:
            users = [
                (uid, data)
                for uid, data in users
                if any(
                    loc.get("borough") == borough
                    for loc in (data.get("housingInfo") or {}).get("selectedLocations") or []
                )
            ]

        users.sort(key=lambda item: _registration_date(item[1]), reverse=True)
        start = (page - 1) * limit
        return users[start:start + limit], len(users)
    except Exception as exc:
        logger.error("Failed to list users: %s", str(exc))
        raise FirestoreUnavailableError(str(exc)) from exc


def _completeness_bucket(value) -> object:
    if not isinstance(value, (int, float)):
        return "unknown"
    for lower, upper in zip(COMPLETENESS_BUCKETS, COMPLETENESS_BUCKETS[1:]):
        if lower <= value < upper:
            return lower
    if value == COMPLETENESS_BUCKETS[-1]:
        return COMPLETENESS_BUCKETS[-2]
    return "unknown"


def get_user_stats() -> dict:
    """Aggregate platform statistics in memory from one collection scan."""

    try:
        documents = [
            doc.to_dict() or {} for doc in get_db().collection(USERS_COLLECTION).stream()
        ]
    except Exception as exc:
        logger.error("Failed to compute user stats: %s", str(exc))
        raise FirestoreUnavailableError(str(exc)) from exc

    week_ago = _utcnow() - timedelta(days=7)
    total = len(documents)
    active = completed = recent = 0
    locations: Counter = Counter()
    boroughs: Counter = Counter()
    occupations: Counter = Counter()
    completeness: Counter = Counter()

    for data in documents:
        metadata = data.get("metadata") or {}
        if metadata.get("isActive"):
            active += 1
        if metadata.get("onboardingCompleted"):
            completed += 1
        if _registration_date(data) >= week_ago:
            recent += 1

        for loc in (data.get("housingInfo") or {}).get("selectedLocations") or []:
            locations[(loc.get("neighborhood"), loc.get("borough"))] += 1
            if loc.get("borough"):
                boroughs[loc["borough"]] += 1

        occupation = (data.get("professionalInfo") or {}).get("occupation")
        if occupation:
            occupations[occupation] += 1

        completeness[_completeness_bucket(metadata.get("profileCompleteness"))] += 1

    return {
        "overview": {
            "totalUsers": total,
            "activeUsers": active,
            "completedProfiles": completed,
            "recentUsers": recent,
            "completionRate": round(completed / total * 100) if total else 0,
            "weeklyGrowth": recent,
        },
        "popularLocations": [
            {"location": f"{neighborhood}, {borough}", "count": count}
            for (neighborhood, borough), count in locations.most_common(10)
        ],
        "popularBoroughs": [
            {"borough": borough, "count": count}
            for borough, count in boroughs.most_common(3)
        ],
        "popularOccupations": [
            {"occupation": occupation, "count": count}
            for occupation, count in occupations.most_common(5)
        ],
        "profileCompleteness": [
            {"bucket": bucket, "count": count}
            for bucket, count in sorted(completeness.items(), key=lambda item: str(item[0]))
        ],
        "generatedAt": _utcnow().isoformat(),
    }


def get_preview_users(limit: int = 6) -> list[tuple[str, dict]]:
    """Most recently registered active users who finished onboarding."""

    try:
        query = (
            get_db()
            .collection(USERS_COLLECTION)
            .where("metadata.isActive", "==", True)
            .where("metadata.onboardingCompleted", "==", True)
        )
        users = [(doc.id, doc.to_dict() or {}) for doc in query.stream()]
    except Exception as exc:
        logger.error("Failed to load preview users: %s", str(exc))
        raise FirestoreUnavailableError(str(exc)) from exc

    users.sort(key=lambda item: _registration_date(item[1]), reverse=True)
    return users[:limit]


def get_registration_draft(key: str) -> dict | None:
    try:
        doc = get_db().collection(DRAFTS_COLLECTION).document(key).get()
        if not doc.exists:
            return None
        return (doc.to_dict() or {}).get("data") or {}
    except Exception as exc:
        logger.error("Failed to load registration draft: %s", str(exc))
        raise FirestoreUnavailableError(str(exc)) from exc


def save_registration_draft(key: str, data: dict) -> None:
    try:
        get_db().collection(DRAFTS_COLLECTION).document(key).set(
            {"data": data, "updatedAt": firestore.SERVER_TIMESTAMP}
        )
    except Exception as exc:
        logger.error("Failed to save registration draft: %s", str(exc))
        raise FirestoreUnavailableError(str(exc)) from exc


def clear_registration_draft(key: str) -> None:
    try:
        get_db().collection(DRAFTS_COLLECTION).document(key).delete()
    except Exception as exc:
        logger.error("Failed to clear registration draft: %s", str(exc))
        raise FirestoreUnavailableError(str(exc)) from exc
