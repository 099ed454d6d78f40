"""Read-only profile snapshots consumed by the compatibility engine."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict

from roomiematch.schema import build_location_id


class LocationPreference(BaseModel):
    """One borough + neighborhood the user is willing to live in."""

    model_config = ConfigDict(frozen=True)

    borough_id: str
    neighborhood_id: str
    composite_id: str

    @classmethod
    def from_document(cls, data: dict) -> "LocationPreference":
        borough = str(data.get("borough") or "")
        neighborhood = str(data.get("neighborhood") or "")
        composite_id = data.get("id") or build_location_id(borough, neighborhood)
        return cls(
            borough_id=borough,
            neighborhood_id=neighborhood,
            composite_id=str(composite_id),
        )

    def to_document(self) -> dict:
        return {
            "borough": self.borough_id,
            "neighborhood": self.neighborhood_id,
            "id": self.composite_id,
        }


class Lifestyle(BaseModel):
    model_config = ConfigDict(frozen=True)

    children: Optional[str] = None
    pets: Optional[str] = None
    smoking: Optional[str] = None
    drinking: Optional[str] = None
    weed: Optional[str] = None
    drugs: Optional[str] = None


class Budget(BaseModel):
    """Monthly rent range in whole dollars."""

    model_config = ConfigDict(frozen=True)

    min: float
    max: float


class Demographics(BaseModel):
    model_config = ConfigDict(frozen=True)

    religion: Optional[str] = None
    sexual_orientation: Optional[str] = None
    political: Optional[str] = None


class Professional(BaseModel):
    model_config = ConfigDict(frozen=True)

    occupation: Optional[str] = None
    annual_income: Optional[float] = None


def _blank_to_none(value):
    return None if value in ("", None) else value


class UserProfile(BaseModel):
    """Immutable view of the fields that matter for scoring.

    Missing sub-records become empty ones, so partially onboarded users score
    lower instead of failing.
    """

    model_config = ConfigDict(frozen=True)

    user_id: str
    locations: tuple[LocationPreference, ...] = ()
    lifestyle: Lifestyle = Lifestyle()
    budget: Optional[Budget] = None
    demographics: Demographics = Demographics()
    professional: Professional = Professional()

    @property
    def location_ids(self) -> list[str]:
        return [loc.composite_id for loc in self.locations]

    @classmethod
    def from_document(cls, user_id: str, data: dict | None) -> "UserProfile":
        """Build a snapshot from a ``users/{uid}`` document."""

        data = data or {}
        housing = data.get("housingInfo") or {}
        lifestyle = data.get("lifestyle") or {}
        demographics = data.get("demographics") or {}
        professional = data.get("professionalInfo") or {}

        locations: list[LocationPreference] = []
        seen: set[str] = set()
        for raw in housing.get("selectedLocations") or []:
            location = LocationPreference.from_document(raw or {})
            if location.composite_id in seen:
                continue
            seen.add(location.composite_id)
            locations.append(location)

        budget = None
        rent = housing.get("rentPreferences") or {}
        min_rent = rent.get("minRent")
        max_rent = rent.get("maxRent")
        if isinstance(min_rent, (int, float)) and isinstance(max_rent, (int, float)):
            budget = Budget(min=min_rent, max=max_rent)

        income = professional.get("annualIncome")
        return cls(
            user_id=user_id,
            locations=tuple(locations),
            lifestyle=Lifestyle(
                **{
                    field: _blank_to_none(lifestyle.get(field))
                    for field in Lifestyle.model_fields
                }
            ),
            budget=budget,
            demographics=Demographics(
                religion=_blank_to_none(demographics.get("religion")),
                sexual_orientation=_blank_to_none(
                    demographics.get("sexualOrientation")
                ),
                political=_blank_to_none(demographics.get("political")),
            ),
            professional=Professional(
                occupation=_blank_to_none(professional.get("occupation")),
                annual_income=income if isinstance(income, (int, float)) else None,
            ),
        )


class CompatibilityResult(BaseModel):
    """Score of one candidate against the anchor profile."""

    model_config = ConfigDict(frozen=True)

    counterpart: UserProfile
    score: int
    common_locations: tuple[LocationPreference, ...] = ()
    budget_compatible: bool = False
    lifestyle_match_percent: int = 0
