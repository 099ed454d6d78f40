"""
Configuration module for the RoomieMatch service.

Loads environment variables and provides configuration singletons.
Uses pydantic for validation.
"""

from pydantic_settings import BaseSettings
from typing import Literal, Optional
import os


class Config(BaseSettings):
    """
    Application configuration loaded from environment variables.

    All values come from .env file or system environment.
    Type hints provide validation (pydantic converts types automatically).
    """

    # ============================================================
    # FIREBASE CONFIGURATION (REQUIRED)
    # ============================================================
    FIREBASE_PROJECT_ID: str
    """Firebase project ID. Find in Firebase Console → Project Settings."""

    GOOGLE_APPLICATION_CREDENTIALS: str = "/config/serviceAccountKey.json"
    """Path to Firebase service account JSON file."""

    FIREBASE_WEB_API_KEY: Optional[str] = None
    """Web API key used for password sign-in through the Identity Toolkit."""

    IDENTITY_TOOLKIT_URL: str = "https://identitytoolkit.googleapis.com/v1"
    """Base URL of the Identity Toolkit REST API."""

    # ============================================================
    # MATCHING CONFIGURATION
    # ============================================================
    GRAPH_TIMEOUT: int = 30
    """Maximum seconds a graph can run before timeout. Default: 30 seconds."""

    MAX_CANDIDATES: int = 100
    """Hard cap on candidates fetched from Firestore per query. Default: 100."""

    DEFAULT_MATCH_LIMIT: int = 10
    """Number of matches returned when the caller does not pass a limit."""

    MAX_MATCH_LIMIT: int = 50
    """Largest limit a caller may request. Larger values are rejected."""

    DEFAULT_MIN_SCORE: int = 70
    """Minimum compatibility score when the caller does not pass one."""

    OVER_FETCH_FACTOR: int = 2
    """Candidates fetched per requested match before scoring filters them."""

    MAX_LOCATIONS: int = 5
    """Maximum neighborhoods a user can select."""

    SCORING_POLICY: Literal["two_factor", "full"] = "two_factor"
    """two_factor = lifestyle + location only, full = adds demographics and professional."""

    # ============================================================
    # REGISTRATION DRAFTS
    # ============================================================
    DRAFT_STORE: Literal["memory", "firestore"] = "firestore"
    """Backend for partially completed registration forms."""

    # ============================================================
    # SERVER CONFIGURATION
    # ============================================================
    CORS_ORIGINS: str = os.getenv(
        "CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000"
    )
    """Comma-separated list of allowed frontend origins."""

    PORT: int = 8000
    """Port to run FastAPI server on. Default: 8000."""

    HOST: str = "0.0.0.0"
    """Host to bind to. 0.0.0.0 = accessible from network."""

    DEBUG: bool = False
    """Enable debug logging. Set True for development, False for production."""

    class Config:
        """Pydantic configuration."""
        env_file = ".env"  # Read from .env file
        case_sensitive = True  # Variable names are case-sensitive
        extra = "ignore"  # Ignore extra env vars not defined above


# ============================================================
# SINGLETON INSTANCE
# ============================================================
# Load config once at startup, reuse throughout app
config = Config()


# ============================================================
# VALIDATION AT STARTUP
# ============================================================
def validate_config() -> dict:
    """
    Validate that required config values are set.

    Called at app startup to fail fast if config is incomplete.

    Returns:
        dict: Status of each required field

    Raises:
        ValueError: If required config is missing
    """
    errors = []

    # Firebase is always required
    if not config.FIREBASE_PROJECT_ID:
        errors.append("FIREBASE_PROJECT_ID is required")

    if config.DEFAULT_MATCH_LIMIT < 1 or config.DEFAULT_MATCH_LIMIT > config.MAX_MATCH_LIMIT:
        errors.append("DEFAULT_MATCH_LIMIT must be between 1 and MAX_MATCH_LIMIT")

    if not 0 <= config.DEFAULT_MIN_SCORE <= 100:
        errors.append("DEFAULT_MIN_SCORE must be between 0 and 100")

    if config.OVER_FETCH_FACTOR < 1:
        errors.append("OVER_FETCH_FACTOR must be at least 1")

    if errors:
        raise ValueError(f"Configuration errors:\n" + "\n".join([f"  - {e}" for e in errors]))

    return {
        "firebase": "✓ Configured" if config.FIREBASE_PROJECT_ID else "✗ Missing",
        "password_login": "✓ Configured" if config.FIREBASE_WEB_API_KEY else "✗ Not set",
        "scoring_policy": config.SCORING_POLICY,
        "draft_store": config.DRAFT_STORE,
    }


if __name__ == "__main__":
    """Allow testing config by running: python -m roomiematch.config"""
    try:
        status = validate_config()
        print("✅ Configuration is valid!")
        print("\nConfiguration Status:")
        for key, value in status.items():
            print(f"  {key}: {value}")
    except ValueError as e:
        print(f"❌ Configuration error:\n{e}")
        exit(1)
