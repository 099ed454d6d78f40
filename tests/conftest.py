"""
Pytest configuration and shared fixtures for all tests.

This file is automatically loaded by pytest and provides:
  - Test configuration (env vars set before the config singleton loads)
  - An in-memory user store standing in for Firestore
  - A fake token verifier and Firebase Auth calls
  - A FastAPI TestClient wired to both
"""

import copy
import os
from collections import Counter
from datetime import datetime, timedelta, timezone

# The config singleton is built at import time, so the environment has to be
# in place before anything under roomiematch is imported.
os.environ.update(
    {
        "FIREBASE_PROJECT_ID": "test-project",
        "GOOGLE_APPLICATION_CREDENTIALS": "/config/test-serviceAccountKey.json",
        "DRAFT_STORE": "memory",
        "SCORING_POLICY": "two_factor",
        "DEBUG": "True",
    }
)

import pytest
from fastapi.testclient import TestClient

from roomiematch.schema import build_location_id
from roomiematch.tools import auth_tools, firestore_tools
from roomiematch.tools.draft_store import get_draft_store
from roomiematch.utils.errors import AuthenticationError, DuplicateUserError


class FakeUserStore:
    """Dict-backed replacement for the firestore_tools user functions."""

    def __init__(self):
        self.users: dict[str, dict] = {}

    def add(self, user_id: str, document: dict) -> None:
        self.users[user_id] = copy.deepcopy(document)

    def get_user_document(self, user_id):
        document = self.users.get(user_id)
        return copy.deepcopy(document) if document is not None else None

    def find_location_candidates(self, location_ids, exclude_user_id, limit=100):
        wanted = set(location_ids)
        rows = []
        for uid, document in self.users.items():
            if uid == exclude_user_id:
                continue
            metadata = document.get("metadata") or {}
            if not metadata.get("isActive") or not metadata.get("onboardingCompleted"):
                continue
            ids = (document.get("housingInfo") or {}).get("locationIds") or []
            if wanted.intersection(ids):
                rows.append((uid, copy.deepcopy(document)))
        return rows[:limit]

    def find_user_by_field(self, field_path, value):
        section, field = field_path.split(".", 1)
        for uid, document in self.users.items():
            if (document.get(section) or {}).get(field) == value:
                return uid, copy.deepcopy(document)
        return None

    def create_user_document(self, user_id, data):
        self.users[user_id] = copy.deepcopy(data)

    def save_user_document(self, user_id, data):
        self.users[user_id] = copy.deepcopy(data)

    def delete_user_document(self, user_id):
        return self.users.pop(user_id, None) is not None

    def list_users(self, filters=None, page=1, limit=20):
        filters = dict(filters or {})
        borough = filters.pop("housingInfo.selectedLocations.borough", None)
        rows = []
        for uid, document in self.users.items():
            matched = all(
                (document.get(path.split(".")[0]) or {}).get(path.split(".")[1]) == value
                for path, value in filters.items()
            )
            if borough:
                locations = (document.get("housingInfo") or {}).get("selectedLocations") or []
                matched = matched and any(loc.get("borough") == borough for loc in locations)
            if matched:
                rows.append((uid, copy.deepcopy(document)))
        start = (page - 1) * limit
        return rows[start:start + limit], len(rows)

    def get_preview_users(self, limit=6):
        rows = [
            (uid, copy.deepcopy(document))
            for uid, document in self.users.items()
            if (document.get("metadata") or {}).get("isActive")
            and (document.get("metadata") or {}).get("onboardingCompleted")
        ]
        rows.sort(key=lambda row: row[1]["metadata"]["registrationDate"], reverse=True)
        return rows[:limit]

    def get_user_stats(self):
        metadata = [document.get("metadata") or {} for document in self.users.values()]
        boroughs = Counter(
            loc["borough"]
            for document in self.users.values()
            for loc in (document.get("housingInfo") or {}).get("selectedLocations") or []
        )
        completed = sum(1 for m in metadata if m.get("onboardingCompleted"))
        return {
            "overview": {
                "totalUsers": len(self.users),
                "activeUsers": sum(1 for m in metadata if m.get("isActive")),
                "completedProfiles": completed,
                "completionRate": round(completed / len(metadata) * 100) if metadata else 0,
                "weeklyGrowth": sum(
                    1
                    for m in metadata
                    if m["registrationDate"] >= datetime.now(timezone.utc) - timedelta(days=7)
                ),
            },
            "popularLocations": [],
            "popularBoroughs": [
                {"borough": borough, "count": count} for borough, count in boroughs.most_common(3)
            ],
            "popularOccupations": [],
            "profileCompleteness": [],
            "generatedAt": datetime.now(timezone.utc).isoformat(),
        }


def location(borough: str, neighborhood: str) -> dict:
    return {
        "borough": borough,
        "neighborhood": neighborhood,
        "id": build_location_id(borough, neighborhood),
    }


@pytest.fixture
def make_user():
    """Factory for onboarded ``users/{uid}`` documents."""

    def _make_user(
        locations=(("manhattan", "chelsea"),),
        lifestyle=None,
        rent=(1500, 2000),
        onboarded=True,
        active=True,
        days_ago=1,
        **sections,
    ):
        selected = [location(b, n) for b, n in locations]
        housing = {
            "selectedLocations": selected,
            "locationIds": [loc["id"] for loc in selected],
        }
        if rent:
            housing["rentPreferences"] = {"minRent": rent[0], "maxRent": rent[1]}
        document = {
            "account": {"username": "user", "email": "user@example.com"},
            "personalInfo": {"firstName": "Test", "lastName": "User", "sex": "female"},
            "housingInfo": housing,
            "lifestyle": dict(lifestyle or {}),
            "professionalInfo": {},
            "demographics": {},
            "metadata": {
                "isActive": active,
                "onboardingCompleted": onboarded,
                "onboardingStep": 3 if onboarded else 0,
                "registrationDate": datetime.now(timezone.utc) - timedelta(days=days_ago),
            },
        }
        for section, values in sections.items():
            document[section] = {**document.get(section, {}), **values}
        return document

    return _make_user


@pytest.fixture
def fake_store(monkeypatch):
    """Patch every firestore_tools user function onto a FakeUserStore."""

    store = FakeUserStore()
    for name in (
        "get_user_document",
        "find_location_candidates",
        "find_user_by_field",
        "create_user_document",
        "save_user_document",
        "delete_user_document",
        "list_users",
        "get_user_stats",
        "get_preview_users",
    ):
        monkeypatch.setattr(firestore_tools, name, getattr(store, name))
    return store


@pytest.fixture
def fake_auth(monkeypatch):
    """Bearer tokens look like ``token-<uid>``; signup accounts live in memory."""

    accounts: dict[str, dict] = {}
    deleted: list[str] = []

    def verify_bearer_token(authorization):
        if not authorization or not authorization.startswith("Bearer token-"):
            raise AuthenticationError("Missing bearer token")
        return authorization.removeprefix("Bearer token-")

    def create_auth_user(email, password, display_name):
        if any(account["email"] == email for account in accounts.values()):
            raise DuplicateUserError("email")
        uid = f"uid-{len(accounts) + 1}"
        accounts[uid] = {"email": email, "password": password}
        return uid

    def sign_in_with_password(email, password):
        for uid, account in accounts.items():
            if account["email"] == email and account["password"] == password:
                return {
                    "uid": uid,
                    "id_token": f"token-{uid}",
                    "refresh_token": "refresh",
                    "expires_in": 3600,
                }
        raise AuthenticationError("Invalid credentials")

    monkeypatch.setattr(auth_tools, "verify_bearer_token", verify_bearer_token)
    monkeypatch.setattr(auth_tools, "create_auth_user", create_auth_user)
    monkeypatch.setattr(auth_tools, "delete_auth_user", deleted.append)
    monkeypatch.setattr(auth_tools, "sign_in_with_password", sign_in_with_password)
    return {"accounts": accounts, "deleted": deleted}


@pytest.fixture(autouse=True)
def reset_draft_store():
    get_draft_store.cache_clear()
    yield
    get_draft_store.cache_clear()


@pytest.fixture
def client(fake_store, fake_auth):
    """Provide a FastAPI TestClient backed by the fake store and auth."""

    from roomiematch.server import app

    return TestClient(app)


@pytest.fixture
def auth_header():
    """Build the Authorization header the fake verifier accepts."""

    def _auth_header(user_id: str) -> dict:
        return {"Authorization": f"Bearer token-{user_id}"}

    return _auth_header
