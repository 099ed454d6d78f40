"""Custom exception types for consistent error handling."""

from __future__ import annotations


class FirestoreUnavailableError(Exception):
    """Raised when Firestore queries fail or are unavailable."""


class InvalidInputError(Exception):
    """Raised when request input validation fails.

    ``errors`` holds per-field messages as ``[{"field": ..., "message": ...}]``.
    """

    def __init__(self, message: str, errors: list[dict] | None = None):
        super().__init__(message)
        self.message = message
        self.errors = errors or []


class NoLocationPreferencesError(Exception):
    """Raised when a compatibility search is anchored on a user with no locations."""

    def __init__(self, message: str = "Please add location preferences to find matches"):
        super().__init__(message)
        self.message = message


class UserNotFoundError(Exception):
    """Raised when a user document does not exist."""


class ProfileIncompleteError(Exception):
    """Raised when onboarding must be finished before viewing matches."""

    def __init__(self, profile_completeness: int, required: int = 75):
        super().__init__("Complete your profile to view potential matches")
        self.profile_completeness = profile_completeness
        self.required = required


class DuplicateUserError(Exception):
    """Raised when signing up with an email or username that is taken."""

    def __init__(self, field: str):
        super().__init__(f"User with this {field} already exists")
        self.field = field


class AuthenticationError(Exception):
    """Raised when credentials or bearer tokens are rejected."""


class GraphExecutionError(Exception):
    """Raised when a graph fails to compile or execute."""
