"""
Unit tests for deterministic compatibility scoring and ranking.

These tests pin down the exact formula used by the matching graph:
  1. Lifestyle equality fraction over six fields (missing = not matched)
  2. Jaccard similarity over location ids
  3. Two-factor and full weighting policies, rounded half up
  4. Location retrieval filter with the over-fetch cap
  5. Ranking by min score and limit, stable for ties
"""

from fractions import Fraction

import pytest

from roomiematch.models.profile import (
    Budget,
    CompatibilityResult,
    Demographics,
    Lifestyle,
    LocationPreference,
    Professional,
    UserProfile,
)
from roomiematch.tools.scoring_tools import (
    calculate_compatibility_score,
    filter_candidates_by_location,
    find_common_locations,
    find_compatible_roommates,
    is_budget_compatible,
    lifestyle_match_fraction,
    location_match_fraction,
    professional_match_fraction,
    rank_matches,
    round_half_up,
    score_candidate,
    validate_match_params,
)
from roomiematch.utils.errors import InvalidInputError, NoLocationPreferencesError

FULL_LIFESTYLE = {
    "children": "no",
    "pets": "yes",
    "smoking": "no",
    "drinking": "sometimes",
    "weed": "no",
    "drugs": "no",
}


def loc(composite_id: str) -> LocationPreference:
    borough, neighborhood = composite_id.split("-", 1)
    return LocationPreference(
        borough_id=borough, neighborhood_id=neighborhood, composite_id=composite_id
    )


def profile(user_id="anchor", locations=(), lifestyle=None, budget=None, **extra) -> UserProfile:
    return UserProfile(
        user_id=user_id,
        locations=tuple(loc(i) for i in locations),
        lifestyle=Lifestyle(**(lifestyle or {})),
        budget=Budget(min=budget[0], max=budget[1]) if budget else None,
        **extra,
    )


def result(user_id: str, score: int) -> CompatibilityResult:
    return CompatibilityResult(counterpart=profile(user_id), score=score)


class TestScenarios:
    """Worked examples from the matching design."""

    def test_partial_lifestyle_and_location_overlap(self):
        anchor = profile(
            locations=["manhattan-eastvillage"],
            lifestyle={"smoking": "no", "drinking": "sometimes"},
        )
        candidate = profile(
            "candidate",
            locations=["manhattan-eastvillage", "brooklyn-williamsburg"],
            lifestyle={"smoking": "no", "drinking": "sometimes"},
        )

        assert lifestyle_match_fraction(anchor, candidate) == pytest.approx(2 / 6)
        assert location_match_fraction(anchor, candidate) == pytest.approx(0.5)
        # 100 * (2/6 * 4/7 + 1/2 * 3/7) = 40.476...
        assert calculate_compatibility_score(anchor, candidate) == 40

    def test_disjoint_locations_are_filtered_before_scoring(self):
        anchor = profile(locations=["manhattan-chelsea"])
        candidate = profile("candidate", locations=["queens-astoria"])

        assert find_common_locations(anchor, candidate) == ()
        assert location_match_fraction(anchor, candidate) == 0
        assert filter_candidates_by_location(anchor, [candidate]) == []

    def test_missing_budgets_are_not_compatible(self):
        anchor = profile(locations=["manhattan-chelsea"])
        candidate = profile("candidate", locations=["manhattan-chelsea"])
        assert is_budget_compatible(anchor, candidate) is False

    def test_min_score_and_order(self):
        results = [result("a", 95), result("b", 72), result("c", 68), result("d", 40)]
        ranked = rank_matches(results, min_score=70, limit=10)
        assert [r.score for r in ranked] == [95, 72]


class TestLifestyleAndLocation:
    def test_identical_lifestyle_is_full_match(self):
        anchor = profile(lifestyle=FULL_LIFESTYLE)
        candidate = profile("candidate", lifestyle=FULL_LIFESTYLE)
        assert lifestyle_match_fraction(anchor, candidate) == 1.0

    def test_missing_fields_stay_in_denominator(self):
        anchor = profile(lifestyle={"pets": "yes"})
        candidate = profile("candidate", lifestyle={"pets": "yes"})
        assert lifestyle_match_fraction(anchor, candidate) == pytest.approx(1 / 6)

    def test_empty_on_both_sides_is_not_a_match(self):
        assert lifestyle_match_fraction(profile(), profile("candidate")) == 0

    def test_location_fraction_is_symmetric(self):
        a = profile(locations=["manhattan-chelsea", "brooklyn-bushwick"])
        b = profile("b", locations=["brooklyn-bushwick", "queens-astoria", "bronx-fordham"])
        assert location_match_fraction(a, b) == location_match_fraction(b, a) == 0.25

    def test_no_locations_on_either_side(self):
        assert location_match_fraction(profile(), profile("candidate")) == 0.0

    def test_common_locations_follow_anchor_order(self):
        anchor = profile(locations=["queens-astoria", "manhattan-chelsea"])
        candidate = profile("candidate", locations=["manhattan-chelsea", "queens-astoria"])
        common = find_common_locations(anchor, candidate)
        assert [c.composite_id for c in common] == ["queens-astoria", "manhattan-chelsea"]


class TestCompositeScore:
    def test_self_comparison_scores_100(self):
        anchor = profile(locations=["manhattan-chelsea"], lifestyle=FULL_LIFESTYLE)
        assert calculate_compatibility_score(anchor, anchor) == 100

    def test_score_is_symmetric(self):
        a = profile(locations=["manhattan-chelsea"], lifestyle={"pets": "no", "smoking": "no"})
        b = profile(
            "b",
            locations=["manhattan-chelsea", "queens-astoria"],
            lifestyle={"pets": "no", "smoking": "often"},
        )
        assert calculate_compatibility_score(a, b) == calculate_compatibility_score(b, a)

    def test_full_policy_adds_demographics_and_professional(self):
        shared = dict(
            locations=["manhattan-chelsea"],
            lifestyle=FULL_LIFESTYLE,
            demographics=Demographics(religion="other", sexual_orientation="gay", political="moderate"),
            professional=Professional(occupation="tech", annual_income=120_000),
        )
        a = profile(**shared)
        b = profile("b", **shared)
        assert calculate_compatibility_score(a, b, policy="full") == 100

    def test_full_policy_without_secondary_factors(self):
        a = profile(locations=["manhattan-chelsea"], lifestyle=FULL_LIFESTYLE)
        b = profile("b", locations=["manhattan-chelsea"], lifestyle=FULL_LIFESTYLE)
        assert calculate_compatibility_score(a, b) == 100
        assert calculate_compatibility_score(a, b, policy="full") == 70

    def test_professional_income_distance(self):
        a = profile(professional=Professional(occupation="tech", annual_income=20_000))
        b = profile("b", professional=Professional(occupation="tech", annual_income=160_000))
        assert professional_match_fraction(a, b) == pytest.approx(0.5)

    def test_unknown_policy_rejected(self):
        with pytest.raises(InvalidInputError):
            calculate_compatibility_score(profile(), profile("b"), policy="weighted")

    def test_round_half_up(self):
        assert round_half_up(40.5) == 41
        assert round_half_up(40.49) == 40
        assert round_half_up(0.5) == 1
        assert round_half_up(Fraction(45, 2)) == 23

    @pytest.mark.parametrize(
        "anchor_ids,candidate_ids,expected",
        [
            (["m-a", "m-b", "m-c", "m-d"], ["m-a", "m-b", "m-c"], 23),
            (["m-a", "m-b", "m-c", "m-d"], ["m-a"], 8),
        ],
    )
    def test_full_policy_rounds_exact_halves_up(self, anchor_ids, candidate_ids, expected):
        a = profile(locations=anchor_ids)
        b = profile("b", locations=candidate_ids)
        assert calculate_compatibility_score(a, b, policy="full") == expected
        assert calculate_compatibility_score(b, a, policy="full") == expected

    def test_score_candidate_record(self):
        anchor = profile(
            locations=["manhattan-chelsea"],
            lifestyle=FULL_LIFESTYLE,
            budget=(1500, 2000),
        )
        candidate = profile(
            "candidate",
            locations=["manhattan-chelsea", "queens-astoria"],
            lifestyle={**FULL_LIFESTYLE, "pets": "no"},
            budget=(1900, 2500),
        )
        record = score_candidate(anchor, candidate)
        assert record.counterpart.user_id == "candidate"
        assert record.budget_compatible is True
        assert record.lifestyle_match_percent == 83
        assert [c.composite_id for c in record.common_locations] == ["manhattan-chelsea"]


class TestBudget:
    def test_touching_ranges_overlap(self):
        a = profile(budget=(1000, 1500))
        b = profile("b", budget=(1500, 2000))
        assert is_budget_compatible(a, b) is True

    def test_disjoint_ranges(self):
        a = profile(budget=(1000, 1400))
        b = profile("b", budget=(1500, 2000))
        assert is_budget_compatible(a, b) is False

    def test_one_missing_range(self):
        assert is_budget_compatible(profile(budget=(1000, 2000)), profile("b")) is False


class TestRetrievalFilter:
    def test_no_locations_is_a_precondition_failure(self):
        with pytest.raises(NoLocationPreferencesError):
            filter_candidates_by_location(profile(), [profile("b", locations=["manhattan-chelsea"])])

    def test_excludes_anchor_and_keeps_population_order(self):
        anchor = profile(locations=["manhattan-chelsea"])
        population = [
            profile("c1", locations=["manhattan-chelsea"]),
            anchor,
            profile("c2", locations=["queens-astoria"]),
            profile("c3", locations=["queens-astoria", "manhattan-chelsea"]),
        ]
        filtered = filter_candidates_by_location(anchor, population)
        assert [p.user_id for p in filtered] == ["c1", "c3"]

    def test_over_fetch_cap(self):
        anchor = profile(locations=["manhattan-chelsea"])
        population = [profile(f"c{i}", locations=["manhattan-chelsea"]) for i in range(10)]
        filtered = filter_candidates_by_location(anchor, population, limit=2, over_fetch_factor=2)
        assert [p.user_id for p in filtered] == ["c0", "c1", "c2", "c3"]

    def test_default_cap_is_forty(self):
        anchor = profile(locations=["manhattan-chelsea"])
        population = [profile(f"c{i}", locations=["manhattan-chelsea"]) for i in range(50)]
        assert len(filter_candidates_by_location(anchor, population)) == 40


class TestRanking:
    def test_ties_keep_input_order(self):
        results = [result("a", 80), result("b", 90), result("c", 80)]
        ranked = rank_matches(results, min_score=0, limit=10)
        assert [r.counterpart.user_id for r in ranked] == ["b", "a", "c"]

    def test_limit_truncates(self):
        results = [result(str(i), 100 - i) for i in range(5)]
        assert len(rank_matches(results, min_score=0, limit=2)) == 2

    def test_min_score_100_keeps_only_perfect(self):
        results = [result("a", 100), result("b", 99)]
        assert [r.score for r in rank_matches(results, min_score=100, limit=10)] == [100]

    def test_ranking_is_idempotent(self):
        results = [result("a", 75), result("b", 90), result("c", 75)]
        assert rank_matches(results, 70, 10) == rank_matches(results, 70, 10)

    def test_empty_result_is_valid(self):
        assert rank_matches([result("a", 10)], min_score=50, limit=5) == []

    @pytest.mark.parametrize(
        "min_score,limit,field",
        [(-1, 10, "minScore"), (101, 10, "minScore"), (70, 0, "limit"), (70.5, 10, "minScore"), (70, True, "limit")],
    )
    def test_invalid_params_rejected(self, min_score, limit, field):
        with pytest.raises(InvalidInputError) as exc_info:
            rank_matches([], min_score=min_score, limit=limit)
        assert exc_info.value.errors[0]["field"] == field

    def test_limit_above_max_rejected(self):
        with pytest.raises(InvalidInputError):
            validate_match_params(70, 51, max_limit=50)


class TestFindCompatibleRoommates:
    def test_end_to_end(self):
        anchor = profile(locations=["manhattan-chelsea"], lifestyle=FULL_LIFESTYLE)
        population = [
            profile("twin", locations=["manhattan-chelsea"], lifestyle=FULL_LIFESTYLE),
            profile("partial", locations=["manhattan-chelsea", "queens-astoria"], lifestyle={"pets": "yes"}),
            profile("elsewhere", locations=["bronx-fordham"], lifestyle=FULL_LIFESTYLE),
        ]
        matches = find_compatible_roommates(anchor, population, min_score=0, limit=10)
        assert [m.counterpart.user_id for m in matches] == ["twin", "partial"]
        assert matches[0].score == 100
