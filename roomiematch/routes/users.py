"""User profile, listing, statistics and compatibility endpoints."""

from __future__ import annotations

import math
from typing import Annotated, Any, Dict, Optional

from fastapi import APIRouter, Body, Query

from roomiematch.config import config
from roomiematch.graphs.matching import create_matching_graph
from roomiematch.routes.deps import (
    CurrentUserId,
    load_user_document,
    raise_for_graph_error,
    require_self,
)
from roomiematch.tools import auth_tools, firestore_tools
from roomiematch.tools.draft_store import get_draft_store
from roomiematch.tools.profile_tools import (
    apply_profile_update,
    get_recommended_rent,
    profile_summary,
    public_view,
    refresh_completeness,
)
from roomiematch.utils.errors import InvalidInputError, UserNotFoundError
from roomiematch.utils.logging_config import logger

router = APIRouter(prefix="/api/users", tags=["Users"])

matching_graph = create_matching_graph()


@router.get("/stats")
def stats() -> dict:
    return {"success": True, **firestore_tools.get_user_stats()}


@router.get("")
def list_users(
    _user_id: CurrentUserId,
    onboardingCompleted: Optional[bool] = None,
    isActive: Optional[bool] = None,
    occupation: Optional[str] = None,
    borough: Optional[str] = None,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
) -> dict:
    filters: dict[str, object] = {}
    if onboardingCompleted is not None:
        filters["metadata.onboardingCompleted"] = onboardingCompleted
    if isActive is not None:
        filters["metadata.isActive"] = isActive
    if occupation:
        filters["professionalInfo.occupation"] = occupation
    if borough:
        filters["housingInfo.selectedLocations.borough"] = borough

    items, total = firestore_tools.list_users(filters, page=page, limit=limit)
    return {
        "success": True,
        "users": [{"id": uid, **public_view(document)} for uid, document in items],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": math.ceil(total / limit) if total else 0,
        },
    }


@router.get("/{user_id}")
def get_profile(user_id: str) -> dict:
    document = load_user_document(user_id)
    income = (document.get("professionalInfo") or {}).get("annualIncome")
    return {
        "success": True,
        **profile_summary(user_id, document),
        "recommendedRent": get_recommended_rent(income),
    }


@router.put("/{user_id}")
def update_profile(
    user_id: str,
    current_user_id: CurrentUserId,
    updates: Annotated[Dict[str, Any], Body()],
) -> dict:
    require_self(current_user_id, user_id, "update")
    document = load_user_document(user_id)

    updated, errors = apply_profile_update(
        document, updates, max_locations=config.MAX_LOCATIONS
    )
    if errors:
        raise InvalidInputError("Validation failed", errors)

    updated = refresh_completeness(updated)
    firestore_tools.save_user_document(user_id, updated)
    logger.info("Profile updated uid=%s", user_id)
    return {
        "success": True,
        "message": "Profile updated successfully",
        **profile_summary(user_id, updated),
    }


@router.get("/{user_id}/compatible")
def compatible_roommates(
    user_id: str,
    current_user_id: CurrentUserId,
    min_score: Annotated[Optional[int], Query(alias="minScore")] = None,
    limit: Optional[int] = None,
) -> dict:
    """Find roommates sharing a location, scored and ranked best first."""

    require_self(current_user_id, user_id, "search matches for")
    result = matching_graph.run(
        {
            "user_id": user_id,
            "min_score": config.DEFAULT_MIN_SCORE if min_score is None else min_score,
            "limit": config.DEFAULT_MATCH_LIMIT if limit is None else limit,
        }
    )
    raise_for_graph_error(result)
    return {"success": True, **result["response"]}


@router.delete("/{user_id}")
def delete_user(user_id: str, current_user_id: CurrentUserId) -> dict:
    require_self(current_user_id, user_id, "delete")
    if not firestore_tools.delete_user_document(user_id):
        raise UserNotFoundError("User not found")

    get_draft_store().clear(user_id)
    auth_tools.delete_auth_user(user_id)
    logger.info("User deleted uid=%s", user_id)
    return {"success": True, "message": "User deleted successfully"}
