"""Registration draft endpoints for the authenticated user."""

from __future__ import annotations

from typing import Annotated, Any, Dict

from fastapi import APIRouter, Body, Depends

from roomiematch.routes.deps import CurrentUserId
from roomiematch.tools.draft_store import DraftStore, get_draft_store

router = APIRouter(prefix="/api/registration", tags=["Registration"])

Store = Annotated[DraftStore, Depends(get_draft_store)]


@router.get("/draft")
def load_draft(user_id: CurrentUserId, store: Store) -> dict:
    return {"success": True, "draft": store.load(user_id)}


@router.put("/draft")
def save_draft(
    user_id: CurrentUserId,
    store: Store,
    data: Annotated[Dict[str, Any], Body()],
) -> dict:
    store.save(user_id, data)
    return {"success": True, "message": "Draft saved"}


@router.delete("/draft")
def clear_draft(user_id: CurrentUserId, store: Store) -> dict:
    store.clear(user_id)
    return {"success": True, "message": "Draft cleared"}
