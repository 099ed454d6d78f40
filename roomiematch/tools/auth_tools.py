"""
Authentication helpers backed by Firebase Authentication.

Account creation and ID-token verification go through the admin SDK.
Password sign-in has no admin SDK equivalent, so it calls the Identity
Toolkit REST endpoint with the project's web API key.
"""

from __future__ import annotations

import httpx
from firebase_admin import auth

from roomiematch.config import config
from roomiematch.tools.firestore_tools import init_firebase_app
from roomiematch.utils.errors import (
    AuthenticationError,
    DuplicateUserError,
    FirestoreUnavailableError,
)
from roomiematch.utils.logging_config import logger


def _init_app() -> None:
    try:
        init_firebase_app()
    except Exception as exc:
        logger.error("Failed to initialize Firebase: %s", exc)
        raise FirestoreUnavailableError(str(exc)) from exc


def create_auth_user(email: str, password: str, display_name: str) -> str:
    """Create a Firebase Auth user and return its uid."""

    _init_app()
    try:
        record = auth.create_user(
            email=email,
            password=password,
            display_name=display_name,
        )
        return record.uid
    except auth.EmailAlreadyExistsError as exc:
        raise DuplicateUserError("email") from exc
    except Exception as exc:
        logger.error("create_auth_user failed: %s", exc)
        raise FirestoreUnavailableError(str(exc)) from exc


def delete_auth_user(uid: str) -> None:
    _init_app()
    try:
        auth.delete_user(uid)
    except auth.UserNotFoundError:
        logger.warning("Auth user %s already removed", uid)


def sign_in_with_password(email: str, password: str) -> dict:
    """
    Exchange email + password for a Firebase ID token.

    Returns:
        dict: { uid, id_token, refresh_token, expires_in }

    Raises:
        AuthenticationError: credentials rejected or login not configured
    """
    if not config.FIREBASE_WEB_API_KEY:
        raise AuthenticationError("Password login is not configured")

    url = f"{config.IDENTITY_TOOLKIT_URL.rstrip('/')}/accounts:signInWithPassword"
    try:
        with httpx.Client(timeout=15.0) as client:
            r = client.post(
                url,
                params={"key": config.FIREBASE_WEB_API_KEY},
                json={"email": email, "password": password, "returnSecureToken": True},
            )
            data = r.json() if r.content else {}
    except httpx.HTTPError as exc:
        logger.error("sign_in_with_password failed: %s", exc)
        raise AuthenticationError("Authentication service unavailable") from exc

    if not r.is_success:
        message = (data.get("error") or {}).get("message", f"HTTP {r.status_code}")
        logger.info("Password sign-in rejected: %s", message)
        raise AuthenticationError("Invalid credentials")

    return {
        "uid": data.get("localId", ""),
        "id_token": data.get("idToken", ""),
        "refresh_token": data.get("refreshToken", ""),
        "expires_in": int(data.get("expiresIn", 3600)),
    }


def verify_bearer_token(authorization: str | None) -> str:
    """Verify an ``Authorization: Bearer <id token>`` header and return the uid."""

    if not authorization or not authorization.startswith("Bearer "):
        raise AuthenticationError("Missing bearer token")

    token = authorization.removeprefix("Bearer ").strip()
    _init_app()
    try:
        decoded = auth.verify_id_token(token)
    except Exception as exc:
        logger.warning("Rejected bearer token: %s", exc)
        raise AuthenticationError("Invalid or expired token") from exc
    return decoded["uid"]
