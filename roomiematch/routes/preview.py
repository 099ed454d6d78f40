"""Public preview endpoints shown before signup. No authentication."""

from __future__ import annotations

from fastapi import APIRouter

from roomiematch.tools import firestore_tools
from roomiematch.tools.profile_tools import preview_card

router = APIRouter(prefix="/api/preview", tags=["Preview"])

PREVIEW_LIMIT = 6

SAMPLE_PROFILES = (
    ("Emma", 26, "tech", "East Village", "manhattan", "$1,800-2,500"),
    ("Marcus", 28, "finance", "Williamsburg", "brooklyn", "$2,000-2,800"),
    ("Sofia", 24, "designer", "Astoria", "queens", "$1,500-2,000"),
    ("David", 30, "teacher", "Park Slope", "brooklyn", "$1,700-2,300"),
    ("Aisha", 27, "healthcare", "Long Island City", "queens", "$1,600-2,400"),
    ("James", 25, "student", "Washington Heights", "manhattan", "$1,200-1,800"),
)


def _sample_profiles() -> list[dict]:
    return [
        {
            "id": f"sample_{index}",
            "firstName": first_name,
            "age": age,
            "occupation": occupation,
            "neighborhood": neighborhood,
            "borough": borough,
            "budget": budget,
            "isBlurred": True,
            "memberSince": None,
        }
        for index, (first_name, age, occupation, neighborhood, borough, budget) in enumerate(
            SAMPLE_PROFILES, start=1
        )
    ]


@router.get("")
def preview_index() -> dict:
    return {
        "success": True,
        "message": "RoomieMatch Preview API",
        "endpoints": {
            "GET /api/preview/profiles": "Anonymized sample of recent roommate profiles",
            "GET /api/preview/stats": "Public platform statistics",
        },
    }


@router.get("/profiles")
def preview_profiles() -> dict:
    """Up to six recent onboarded profiles, anonymized; samples when none exist."""

    users = firestore_tools.get_preview_users(limit=PREVIEW_LIMIT)
    if not users:
        return {
            "success": True,
            "profiles": _sample_profiles(),
            "isSampleData": True,
            "message": "Sample preview profiles (no real users yet)",
        }

    profiles = [preview_card(index, document) for index, (_, document) in enumerate(users)]
    return {
        "success": True,
        "profiles": profiles,
        "totalAvailable": len(profiles),
        "isSampleData": False,
    }


@router.get("/stats")
def preview_stats() -> dict:
    stats = firestore_tools.get_user_stats()
    overview = stats["overview"]
    return {
        "success": True,
        "stats": {
            "totalUsers": overview["totalUsers"],
            "activeUsers": overview["activeUsers"],
            "completedProfiles": overview["completedProfiles"],
            "completionRate": overview["completionRate"],
            "weeklyGrowth": overview["weeklyGrowth"],
            "popularLocations": [item["borough"] for item in stats["popularBoroughs"]],
        },
        "lastUpdated": stats["generatedAt"],
    }
