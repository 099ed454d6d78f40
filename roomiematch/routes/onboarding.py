"""Three-step onboarding endpoints."""

from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter
from pydantic import BaseModel

from roomiematch.graphs.onboarding import create_onboarding_graph
from roomiematch.routes.deps import CurrentUserId, load_user_document, raise_for_graph_error
from roomiematch.tools import firestore_tools
from roomiematch.tools.profile_tools import (
    calculate_completeness,
    calculate_detailed_progress,
    complete_onboarding,
    get_completion_recommendations,
    get_step_data,
    profile_summary,
)
from roomiematch.utils.logging_config import logger

router = APIRouter(prefix="/api/onboarding", tags=["Onboarding"])

onboarding_graph = create_onboarding_graph()


class StepUpdateRequest(BaseModel):
    step: int
    data: Dict[str, Any] = {}


def _run_step(user_id: str, step: int, action: str, data: dict | None = None) -> dict:
    result = onboarding_graph.run(
        {"user_id": user_id, "step": step, "action": action, "data": data or {}}
    )
    raise_for_graph_error(result)
    return result["response"]


@router.get("/step/{step}")
def step_data(step: int, user_id: CurrentUserId) -> dict:
    document = load_user_document(user_id)
    metadata = document.get("metadata") or {}
    return {
        "success": True,
        "step": step,
        "currentStep": int(metadata.get("onboardingStep") or 0),
        "profileCompleteness": calculate_completeness(document),
        **get_step_data(step, document),
    }


@router.put("/update")
def update_step(request: StepUpdateRequest, user_id: CurrentUserId) -> dict:
    logger.info("Onboarding update uid=%s step=%s", user_id, request.step)
    return {"success": True, **_run_step(user_id, request.step, "update", request.data)}


@router.post("/skip/{step}")
def skip_step(step: int, user_id: CurrentUserId) -> dict:
    logger.info("Onboarding skip uid=%s step=%s", user_id, step)
    return {"success": True, **_run_step(user_id, step, "skip")}


@router.get("/progress")
def progress(user_id: CurrentUserId) -> dict:
    document = load_user_document(user_id)
    metadata = document.get("metadata") or {}
    return {
        "success": True,
        "overall": calculate_completeness(document),
        "onboardingStep": int(metadata.get("onboardingStep") or 0),
        "onboardingCompleted": bool(metadata.get("onboardingCompleted")),
        "sections": calculate_detailed_progress(document),
        "recommendations": get_completion_recommendations(document),
    }


@router.post("/force-complete")
def force_complete(user_id: CurrentUserId) -> dict:
    document = complete_onboarding(load_user_document(user_id), force=True)
    firestore_tools.save_user_document(user_id, document)
    logger.warning("Onboarding force-completed uid=%s", user_id)
    return {
        "success": True,
        "message": "Onboarding marked complete",
        **profile_summary(user_id, document),
    }
