"""Dependencies and helpers shared by the API routers."""

from __future__ import annotations

from typing import Annotated, Optional

from fastapi import Depends, Header, HTTPException, status

from roomiematch.tools import auth_tools, firestore_tools
from roomiematch.utils.errors import (
    FirestoreUnavailableError,
    GraphExecutionError,
    InvalidInputError,
    NoLocationPreferencesError,
    ProfileIncompleteError,
    UserNotFoundError,
)


def get_current_user_id(
    authorization: Annotated[Optional[str], Header()] = None,
) -> str:
    """Resolve the caller's uid from the bearer token."""

    return auth_tools.verify_bearer_token(authorization)


CurrentUserId = Annotated[str, Depends(get_current_user_id)]


def require_self(current_user_id: str, user_id: str, action: str) -> None:
    if current_user_id != user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"You can only {action} your own profile",
        )


def load_user_document(user_id: str) -> dict:
    document = firestore_tools.get_user_document(user_id)
    if document is None:
        raise UserNotFoundError("User not found")
    return document


def raise_for_graph_error(result: dict) -> None:
    """Translate an ``error_code`` left in graph state into an exception."""

    if not result.get("error"):
        return

    code = result.get("error_code")
    message = result["error"]
    if code == "not_found":
        raise UserNotFoundError(message)
    if code == "invalid_input":
        raise InvalidInputError(message, result.get("validation_errors"))
    if code == "profile_incomplete":
        raise ProfileIncompleteError(result.get("profile_completeness", 0))
    if code == "no_locations":
        raise NoLocationPreferencesError(message)
    if code == "store_unavailable":
        raise FirestoreUnavailableError(message)
    raise GraphExecutionError(message)
