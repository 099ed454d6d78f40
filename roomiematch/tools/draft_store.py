"""Storage for partially completed registration forms.

Drafts are keyed by user id and hold whatever the registration form had
filled in. Routes depend on the ``DraftStore`` interface so tests and local
runs can swap in the in-memory store.
"""

from __future__ import annotations

import copy
from abc import ABC, abstractmethod
from functools import lru_cache

from roomiematch.config import config
from roomiematch.tools import firestore_tools


class DraftStore(ABC):
    """Load/save/clear interface for registration drafts."""

    @abstractmethod
    def load(self, key: str) -> dict | None:
        """Return the saved draft, or None when nothing is saved."""

    @abstractmethod
    def save(self, key: str, data: dict) -> None:
        """Replace the draft stored under ``key``."""

    @abstractmethod
    def clear(self, key: str) -> None:
        """Remove the draft; clearing a missing draft is not an error."""


class InMemoryDraftStore(DraftStore):
    def __init__(self):
        self._drafts: dict[str, dict] = {}

    def load(self, key: str) -> dict | None:
        draft = self._drafts.get(key)
        return copy.deepcopy(draft) if draft is not None else None

    def save(self, key: str, data: dict) -> None:
        self._drafts[key] = copy.deepcopy(data)

    def clear(self, key: str) -> None:
        self._drafts.pop(key, None)


class FirestoreDraftStore(DraftStore):
    def load(self, key: str) -> dict | None:
        return firestore_tools.get_registration_draft(key)

    def save(self, key: str, data: dict) -> None:
        firestore_tools.save_registration_draft(key, data)

    def clear(self, key: str) -> None:
        firestore_tools.clear_registration_draft(key)


@lru_cache(maxsize=1)
def get_draft_store() -> DraftStore:
    """Draft store selected by the DRAFT_STORE setting."""

    if config.DRAFT_STORE == "memory":
        return InMemoryDraftStore()
    return FirestoreDraftStore()
