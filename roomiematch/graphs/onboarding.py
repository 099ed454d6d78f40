"""Onboarding graph for the three-step profile setup."""

from __future__ import annotations

import copy
from datetime import datetime, timezone

from langgraph.graph import StateGraph

from roomiematch.config import config
from roomiematch.graphs.base_graph import BaseGraph
from roomiematch.state import OnboardingState
from roomiematch.tools import firestore_tools
from roomiematch.tools.profile_tools import (
    ONBOARDING_STEPS,
    apply_step,
    calculate_completeness,
    get_next_step,
    public_view,
    should_complete_onboarding,
)
from roomiematch.utils.errors import FirestoreUnavailableError
from roomiematch.utils.logging_config import logger


def _with_state(state: OnboardingState, **updates) -> OnboardingState:
    """Return a new state dict with updates applied."""

    return {**state, **updates}


def _valid_step(step) -> bool:
    return isinstance(step, int) and not isinstance(step, bool) and 1 <= step <= ONBOARDING_STEPS


class OnboardingGraph(BaseGraph):
    """Graph that validates, applies and persists one onboarding step."""

    name = "onboarding"

    def build_graph(self) -> StateGraph:
        graph = StateGraph(OnboardingState)
        graph.add_node("load_user", self.node_load_user)
        graph.add_node("validate_step_data", self.node_validate_step_data)
        graph.add_node("record_progress", self.node_record_progress)
        graph.add_node("check_completion", self.node_check_completion)
        graph.add_node("save_progress", self.node_save_progress)
        graph.add_node("finalize_onboarding", self.node_finalize_onboarding)

        graph.set_entry_point("load_user")
        graph.add_edge("load_user", "validate_step_data")
        graph.add_edge("validate_step_data", "record_progress")
        graph.add_edge("record_progress", "check_completion")
        graph.add_edge("check_completion", "save_progress")
        graph.add_edge("save_progress", "finalize_onboarding")
        graph.set_finish_point("finalize_onboarding")
        return graph

    def node_load_user(self, state: OnboardingState) -> OnboardingState:
        """Fetch the user document being onboarded."""

        self._log_node_execution("load_user", state)
        document = firestore_tools.get_user_document(state["user_id"])
        if document is None:
            return self._fail(state, "not_found", "User not found")
        return _with_state(state, document=document)

    def node_validate_step_data(self, state: OnboardingState) -> OnboardingState:
        """Validate the submitted step and apply it to a copy of the document."""

        if state.get("error"):
            return state

        self._log_node_execution("validate_step_data", state)
        step = state.get("step")
        if not _valid_step(step):
            return self._fail(
                state,
                "invalid_input",
                "Invalid step number",
                validation_errors=[{"field": "step", "message": "Invalid step number"}],
                is_valid=False,
            )

        if state.get("action") == "skip":
            return _with_state(
                state,
                updated_document=copy.deepcopy(state["document"]),
                validation_errors=[],
                is_valid=True,
            )

        updated, errors = apply_step(
            step,
            state["document"],
            state.get("data") or {},
            max_locations=config.MAX_LOCATIONS,
        )
        if errors:
            return self._fail(
                state,
                "invalid_input",
                "Validation failed",
                validation_errors=errors,
                is_valid=False,
            )
        return _with_state(
            state, updated_document=updated, validation_errors=[], is_valid=True
        )

    def node_record_progress(self, state: OnboardingState) -> OnboardingState:
        """Advance the step counter and recompute completeness."""

        if state.get("error"):
            return state

        self._log_node_execution("record_progress", state)
        document = state["updated_document"]
        metadata = document.setdefault("metadata", {})
        metadata["onboardingStep"] = max(
            int(metadata.get("onboardingStep") or 0), state["step"]
        )
        metadata["profileCompleteness"] = calculate_completeness(document)
        metadata["lastActive"] = datetime.now(timezone.utc)
        return _with_state(state, updated_document=document)

    def node_check_completion(self, state: OnboardingState) -> OnboardingState:
        """Mark onboarding complete once locations and household answers exist."""

        if state.get("error"):
            return state

        self._log_node_execution("check_completion", state)
        document = state["updated_document"]
        metadata = document["metadata"]
        if metadata.get("onboardingCompleted"):
            return _with_state(state, onboarding_completed=True)

        if should_complete_onboarding(document):
            metadata["onboardingCompleted"] = True
            metadata["onboardingCompletedAt"] = datetime.now(timezone.utc)
            logger.info("Onboarding auto-completed for user=%s", state["user_id"])
            return _with_state(state, updated_document=document, onboarding_completed=True)

        return _with_state(state, onboarding_completed=False)

    def node_save_progress(self, state: OnboardingState) -> OnboardingState:
        """Persist the updated document."""

        if state.get("error"):
            return state

        self._log_node_execution("save_progress", state)
        try:
            firestore_tools.save_user_document(state["user_id"], state["updated_document"])
            return state
        except FirestoreUnavailableError as exc:
            self._log_node_error("save_progress", exc)
            raise

    def node_finalize_onboarding(self, state: OnboardingState) -> OnboardingState:
        """Build the response body for the submitted step."""

        self._log_node_execution("finalize_onboarding", state)
        if state.get("error"):
            return _with_state(state, response={})

        document = state["updated_document"]
        metadata = document["metadata"]
        completeness = metadata["profileCompleteness"]
        skipped = state.get("action") == "skip"
        response = {
            "message": f"Step {state['step']} {'skipped' if skipped else 'completed'}",
            "user": {"id": state["user_id"], **public_view(document)},
            "currentStep": metadata["onboardingStep"],
            "profileCompleteness": completeness,
            "onboardingCompleted": bool(state.get("onboarding_completed")),
            "nextStep": get_next_step(metadata["onboardingStep"], completeness),
        }
        return _with_state(state, response=response)


def create_onboarding_graph() -> OnboardingGraph:
    """Onboarding graph configured with the service timeout."""

    return OnboardingGraph(timeout=config.GRAPH_TIMEOUT)
