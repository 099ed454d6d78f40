"""Matching graph: location retrieval, deterministic scoring and ranking."""

from __future__ import annotations

from langgraph.graph import StateGraph

from roomiematch.config import config
from roomiematch.graphs.base_graph import BaseGraph
from roomiematch.models.profile import UserProfile
from roomiematch.state import MatchingState
from roomiematch.tools import firestore_tools
from roomiematch.tools.profile_tools import (
    calculate_completeness,
    get_budget_range,
    get_selected_neighborhoods,
    public_view,
)
from roomiematch.tools.scoring_tools import (
    filter_candidates_by_location,
    rank_matches,
    score_candidate,
    validate_match_params,
)
from roomiematch.utils.errors import (
    FirestoreUnavailableError,
    InvalidInputError,
    NoLocationPreferencesError,
)


def _with_state(state: MatchingState, **updates) -> MatchingState:
    """Return a new state dict with updates applied."""

    return {**state, **updates}


class MatchingGraph(BaseGraph):
    """Multi-step compatible-roommates graph."""

    name = "matching"

    def build_graph(self) -> StateGraph:
        graph = StateGraph(MatchingState)

        graph.add_node("fetch_anchor", self.node_fetch_anchor)
        graph.add_node("check_preconditions", self.node_check_preconditions)
        graph.add_node("query_candidates", self.node_query_candidates)
        graph.add_node("filter_candidates", self.node_filter_candidates)
        graph.add_node("score_matches", self.node_score_matches)
        graph.add_node("rank_top_matches", self.node_rank_top_matches)
        graph.add_node("finalize_response", self.node_finalize_response)

        graph.set_entry_point("fetch_anchor")
        graph.add_edge("fetch_anchor", "check_preconditions")
        graph.add_edge("check_preconditions", "query_candidates")
        graph.add_edge("query_candidates", "filter_candidates")
        graph.add_edge("filter_candidates", "score_matches")
        graph.add_edge("score_matches", "rank_top_matches")
        graph.add_edge("rank_top_matches", "finalize_response")
        graph.set_finish_point("finalize_response")

        return graph

    def node_fetch_anchor(self, state: MatchingState) -> MatchingState:
        """Load the requesting user's document."""

        try:
            self._log_node_execution("fetch_anchor", state)
            document = firestore_tools.get_user_document(state["user_id"])
            if document is None:
                return self._fail(state, "not_found", "User not found")

            return _with_state(
                state,
                anchor_document=document,
                anchor_profile=UserProfile.from_document(state["user_id"], document),
            )
        except FirestoreUnavailableError as exc:
            self._log_node_error("fetch_anchor", exc)
            return self._fail(state, "store_unavailable", "User store unavailable")

    def node_check_preconditions(self, state: MatchingState) -> MatchingState:
        """Validate thresholds, onboarding status and location preferences."""

        if state.get("error"):
            return state

        self._log_node_execution("check_preconditions", state)
        try:
            validate_match_params(
                state.get("min_score"),
                state.get("limit"),
                max_limit=config.MAX_MATCH_LIMIT,
            )
        except InvalidInputError as exc:
            return self._fail(
                state, "invalid_input", exc.message, validation_errors=exc.errors
            )

        document = state.get("anchor_document", {})
        if not (document.get("metadata") or {}).get("onboardingCompleted"):
            return self._fail(
                state,
                "profile_incomplete",
                "Please complete your profile to find compatible roommates",
                profile_completeness=calculate_completeness(document),
            )

        if not state["anchor_profile"].locations:
            return self._fail(
                state, "no_locations", NoLocationPreferencesError().message
            )

        return state

    def node_query_candidates(self, state: MatchingState) -> MatchingState:
        """Query active, onboarded users sharing any anchor location."""

        if state.get("error"):
            return state

        try:
            self._log_node_execution("query_candidates", state)
            rows = firestore_tools.find_location_candidates(
                state["anchor_profile"].location_ids,
                exclude_user_id=state["user_id"],
                limit=config.MAX_CANDIDATES,
            )
            return _with_state(state, candidate_documents=dict(rows))
        except FirestoreUnavailableError as exc:
            self._log_node_error("query_candidates", exc)
            return self._fail(
                state,
                "store_unavailable",
                "Failed to query candidates",
                candidate_documents={},
            )

    def node_filter_candidates(self, state: MatchingState) -> MatchingState:
        """Apply the location-overlap filter with the over-fetch cap."""

        if state.get("error"):
            return state

        self._log_node_execution("filter_candidates", state)
        population = [
            UserProfile.from_document(uid, document)
            for uid, document in state.get("candidate_documents", {}).items()
        ]
        try:
            filtered = filter_candidates_by_location(
                state["anchor_profile"],
                population,
                limit=state["limit"],
                over_fetch_factor=config.OVER_FETCH_FACTOR,
            )
        except NoLocationPreferencesError as exc:
            return self._fail(state, "no_locations", exc.message)

        return _with_state(state, filtered_candidates=filtered)

    def node_score_matches(self, state: MatchingState) -> MatchingState:
        """Score each filtered candidate against the anchor."""

        if state.get("error"):
            return state

        self._log_node_execution("score_matches", state)
        anchor = state["anchor_profile"]
        scored = [
            score_candidate(anchor, candidate, config.SCORING_POLICY)
            for candidate in state.get("filtered_candidates", [])
        ]
        return _with_state(state, scored_matches=scored)

    def node_rank_top_matches(self, state: MatchingState) -> MatchingState:
        """Keep results at or above min_score, best first, up to limit."""

        if state.get("error"):
            return state

        self._log_node_execution("rank_top_matches", state)
        top = rank_matches(
            state.get("scored_matches", []),
            min_score=state["min_score"],
            limit=state["limit"],
        )
        return _with_state(state, top_matches=top)

    def node_finalize_response(self, state: MatchingState) -> MatchingState:
        """Construct the response body and metadata."""

        metadata = {
            "success": not state.get("error"),
            "error": state.get("error"),
            "total_candidates": len(state.get("candidate_documents", {})),
            "filtered_count": len(state.get("filtered_candidates", [])),
            "scored_count": len(state.get("scored_matches", [])),
        }
        if state.get("error"):
            return _with_state(state, response={}, response_metadata=metadata)

        documents = state.get("candidate_documents", {})
        anchor_document = state.get("anchor_document", {})
        matches = []
        for result in state.get("top_matches", []):
            uid = result.counterpart.user_id
            matches.append(
                {
                    "user": {"id": uid, **public_view(documents.get(uid, {}))},
                    "compatibilityScore": result.score,
                    "commonLocations": [
                        loc.to_document() for loc in result.common_locations
                    ],
                    "budgetCompatible": result.budget_compatible,
                    "lifestyleMatch": result.lifestyle_match_percent,
                }
            )

        response = {
            "matches": matches,
            "totalFound": len(matches),
            "searchCriteria": {
                "minCompatibilityScore": state["min_score"],
                "userLocations": [
                    loc.to_document() for loc in state["anchor_profile"].locations
                ],
                "limit": state["limit"],
            },
            "currentUser": {
                "budgetRange": get_budget_range(anchor_document),
                "neighborhoods": get_selected_neighborhoods(anchor_document),
            },
        }
        return _with_state(state, response=response, response_metadata=metadata)


def create_matching_graph() -> MatchingGraph:
    """Matching graph configured with the service timeout."""

    return MatchingGraph(timeout=config.GRAPH_TIMEOUT)
