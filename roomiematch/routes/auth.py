"""Signup, login and onboarding-status endpoints."""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Literal

from fastapi import APIRouter, status
from pydantic import BaseModel, Field, field_validator

from roomiematch.config import config
from roomiematch.routes.deps import CurrentUserId, load_user_document
from roomiematch.schema import (
    PASSWORD_MIN_LENGTH,
    USERNAME_MAX_LENGTH,
    USERNAME_MIN_LENGTH,
)
from roomiematch.tools import auth_tools, firestore_tools
from roomiematch.tools.profile_tools import (
    calculate_completeness,
    can_view_full_profiles,
    complete_onboarding,
    get_next_step,
    new_user_document,
    profile_summary,
)
from roomiematch.utils.errors import AuthenticationError, DuplicateUserError
from roomiematch.utils.logging_config import logger

router = APIRouter(prefix="/api/auth", tags=["Auth"])

_EMAIL_RE = re.compile(r"[^@\s]+@[^@\s]+\.[^@\s]+")


class QuickSignupRequest(BaseModel):
    username: str = Field(min_length=USERNAME_MIN_LENGTH, max_length=USERNAME_MAX_LENGTH)
    email: str
    password: str = Field(min_length=PASSWORD_MIN_LENGTH)
    firstName: str = Field(min_length=1)
    lastName: str = Field(min_length=1)
    sex: Literal["male", "female"]

    @field_validator("username", "firstName", "lastName")
    @classmethod
    def _strip(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value

    @field_validator("email")
    @classmethod
    def _email(cls, value: str) -> str:
        value = value.strip().lower()
        if not _EMAIL_RE.fullmatch(value):
            raise ValueError("must be a valid email address")
        return value


class LoginRequest(BaseModel):
    email: str
    password: str


def _token_payload(email: str, password: str) -> dict:
    """Sign in right after signup when password login is configured."""

    if not config.FIREBASE_WEB_API_KEY:
        return {"token": None}
    session = auth_tools.sign_in_with_password(email, password)
    return {
        "token": session["id_token"],
        "refreshToken": session["refresh_token"],
        "expiresIn": session["expires_in"],
    }


@router.post("/quick-signup", status_code=status.HTTP_201_CREATED)
def quick_signup(request: QuickSignupRequest) -> dict:
    """Create the auth account and the minimal user document."""

    if firestore_tools.find_user_by_field("account.email", request.email):
        raise DuplicateUserError("email")
    if firestore_tools.find_user_by_field("account.username", request.username):
        raise DuplicateUserError("username")

    uid = auth_tools.create_auth_user(
        request.email,
        request.password,
        f"{request.firstName} {request.lastName}",
    )
    document = new_user_document(
        request.username,
        request.email,
        request.firstName,
        request.lastName,
        request.sex,
    )
    try:
        firestore_tools.create_user_document(uid, document)
    except Exception:
        logger.error("Rolling back auth user %s after failed document write", uid)
        auth_tools.delete_auth_user(uid)
        raise

    logger.info("User signed up uid=%s", uid)
    return {
        "success": True,
        "message": "Account created. Complete onboarding to find roommates.",
        **_token_payload(request.email, request.password),
        **profile_summary(uid, document),
    }


@router.post("/login")
def login(request: LoginRequest) -> dict:
    session = auth_tools.sign_in_with_password(request.email.strip().lower(), request.password)
    uid = session["uid"]
    document = firestore_tools.get_user_document(uid)
    if document is None:
        raise AuthenticationError("Invalid credentials")
    if not (document.get("metadata") or {}).get("isActive", True):
        raise AuthenticationError("Account is deactivated")

    now = datetime.now(timezone.utc)
    metadata = document.setdefault("metadata", {})
    metadata["lastLogin"] = now
    metadata["lastActive"] = now
    firestore_tools.save_user_document(uid, document)

    return {
        "success": True,
        "message": "Login successful",
        "token": session["id_token"],
        "refreshToken": session["refresh_token"],
        "expiresIn": session["expires_in"],
        **profile_summary(uid, document),
    }


@router.get("/me")
def me(user_id: CurrentUserId) -> dict:
    return {"success": True, **profile_summary(user_id, load_user_document(user_id))}


@router.get("/onboarding-status")
def onboarding_status(user_id: CurrentUserId) -> dict:
    document = load_user_document(user_id)
    metadata = document.get("metadata") or {}
    completeness = calculate_completeness(document)
    step = int(metadata.get("onboardingStep") or 0)
    return {
        "success": True,
        "onboardingCompleted": bool(metadata.get("onboardingCompleted")),
        "onboardingStep": step,
        "profileCompleteness": completeness,
        "canViewFullProfiles": can_view_full_profiles(document),
        "nextStep": get_next_step(step, completeness),
    }


@router.post("/onboarding/complete")
def finish_onboarding(user_id: CurrentUserId) -> dict:
    document = complete_onboarding(load_user_document(user_id))
    firestore_tools.save_user_document(user_id, document)
    logger.info("Onboarding completed uid=%s", user_id)
    return {
        "success": True,
        "message": "Onboarding completed",
        **profile_summary(user_id, document),
    }
