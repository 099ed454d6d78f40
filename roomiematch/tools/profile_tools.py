"""Profile bookkeeping over ``users/{uid}`` documents.

Completeness, labels and onboarding step handling. Functions take a document
dict and never mutate it; updates return a new document.
"""

from __future__ import annotations

import copy
import math
from datetime import date, datetime, timezone

from roomiematch.schema import (
    CORE_LIFESTYLE_FIELDS,
    DEMOGRAPHIC_OPTIONS,
    ETHNICITIES,
    HOUSING_SITUATIONS,
    LANGUAGES,
    LIFESTYLE_FIELDS,
    LIFESTYLE_OPTIONS,
    MAX_AGE,
    MAX_RENT_DURATION_MONTHS,
    METRO_DISTANCE_OPTIONS,
    MIN_AGE,
    MIN_RENT_DURATION_MONTHS,
    OCCUPATIONS,
    build_location_id,
    invalid_choice,
)
from roomiematch.tools.scoring_tools import round_half_up

ONBOARDING_STEPS = 3
COMPLETENESS_REQUIRED_FOR_MATCHES = 75
PROFILE_COMPLETED_THRESHOLD = 80


def _section(document: dict, name: str) -> dict:
    return document.get(name) or {}


def _has_rent_range(housing: dict) -> bool:
    rent = housing.get("rentPreferences") or {}
    return bool(rent.get("minRent") and rent.get("maxRent"))


def calculate_completeness(document: dict) -> int:
    """Profile completeness percentage (35 base for signup fields, max 100)."""

    account = _section(document, "account")
    personal = _section(document, "personalInfo")
    housing = _section(document, "housingInfo")
    professional = _section(document, "professionalInfo")
    lifestyle = _section(document, "lifestyle")

    completeness = 35.0
    if account.get("phoneNumber"):
        completeness += 5
    if personal.get("age"):
        completeness += 10
    if housing.get("selectedLocations"):
        completeness += 15
    if housing.get("housingSituation"):
        completeness += 10
    if _has_rent_range(housing):
        completeness += 10
    if professional.get("occupation"):
        completeness += 5
    if professional.get("languages"):
        completeness += 5
    if professional.get("annualIncome"):
        completeness += 5

    completed = sum(1 for field in CORE_LIFESTYLE_FIELDS if lifestyle.get(field))
    completeness += completed / len(CORE_LIFESTYLE_FIELDS) * 15

    return min(round_half_up(completeness), 100)


def get_budget_range(document: dict) -> str | None:
    """Rent range label such as ``"$1,500-2,000"``."""

    housing = _section(document, "housingInfo")
    if not _has_rent_range(housing):
        return None
    rent = housing["rentPreferences"]
    return f"${rent['minRent']:,.0f}-{rent['maxRent']:,.0f}"


def get_recommended_rent(annual_income: float | None) -> int:
    """Monthly rent under the 30% rule; 0 when income is unknown."""

    if not annual_income or annual_income <= 0:
        return 0
    return math.floor(annual_income * 0.3 / 12)


def can_view_full_profiles(document: dict) -> bool:
    return bool(_section(document, "metadata").get("onboardingCompleted"))


def get_selected_neighborhoods(document: dict) -> list[dict]:
    return [
        {
            "value": loc.get("id"),
            "label": f"{loc.get('neighborhood')}, {loc.get('borough')}",
            "borough": loc.get("borough"),
            "neighborhood": loc.get("neighborhood"),
        }
        for loc in _section(document, "housingInfo").get("selectedLocations") or []
    ]


def public_view(document: dict) -> dict:
    """Document without fields that must not leave the service."""

    view = copy.deepcopy(document)
    (view.get("personalInfo") or {}).pop("ssn", None)
    (view.get("account") or {}).pop("password", None)
    return view


def preview_card(index: int, document: dict) -> dict:
    """Anonymized teaser for the public preview; never carries the real id."""

    personal = _section(document, "personalInfo")
    locations = _section(document, "housingInfo").get("selectedLocations") or []
    first = locations[0] if locations else {}
    registered = _section(document, "metadata").get("registrationDate")
    return {
        "id": f"preview_{index}",
        "firstName": personal.get("firstName") or "User",
        "age": personal.get("age"),
        "occupation": _section(document, "professionalInfo").get("occupation")
        or "Professional",
        "neighborhood": first.get("neighborhood"),
        "borough": first.get("borough"),
        "budget": get_budget_range(document),
        "isBlurred": True,
        "memberSince": registered.isoformat() if isinstance(registered, datetime) else None,
    }


def profile_summary(user_id: str, document: dict) -> dict:
    """Profile payload returned by the profile endpoints."""

    return {
        "user": {"id": user_id, **public_view(document)},
        "profileCompleteness": calculate_completeness(document),
        "budgetRange": get_budget_range(document),
        "selectedNeighborhoods": get_selected_neighborhoods(document),
        "canViewFullProfiles": can_view_full_profiles(document),
    }


# ============================================================
# FIELD VALIDATION
# ============================================================

def _parse_int(value) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    return None


def _parse_date(value) -> str | None:
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, str):
        try:
            return date.fromisoformat(value[:10]).isoformat()
        except ValueError:
            return None
    return None


def normalize_locations(raw_locations, max_locations: int = 5) -> tuple[list[dict], list[dict]]:
    """Validate submitted locations; returns (locations, errors)."""

    if not isinstance(raw_locations, list) or not raw_locations:
        return [], [{"field": "selectedLocations", "message": "At least one location is required"}]

    locations: list[dict] = []
    seen: set[str] = set()
    for raw in raw_locations:
        if not isinstance(raw, dict) or not raw.get("borough") or not raw.get("neighborhood"):
            return [], [{
                "field": "selectedLocations",
                "message": "Each location needs a borough and a neighborhood",
            }]
        location_id = raw.get("id") or build_location_id(raw["borough"], raw["neighborhood"])
        if location_id in seen:
            continue
        seen.add(location_id)
        locations.append(
            {"borough": raw["borough"], "neighborhood": raw["neighborhood"], "id": location_id}
        )

    if len(locations) > max_locations:
        return [], [{
            "field": "selectedLocations",
            "message": f"Select at most {max_locations} locations",
        }]
    return locations, []


def _set_locations(housing: dict, locations: list[dict]) -> None:
    housing["selectedLocations"] = locations
    housing["locationIds"] = [loc["id"] for loc in locations]


def apply_housing(
    document: dict,
    data: dict,
    max_locations: int = 5,
    require_locations: bool = True,
) -> tuple[dict, list[dict]]:
    """Apply step 1 fields. ``selectedLocations`` is required during onboarding."""

    updated = copy.deepcopy(document)
    housing = updated.setdefault("housingInfo", {})
    errors: list[dict] = []

    if require_locations or "selectedLocations" in data:
        locations, location_errors = normalize_locations(
            data.get("selectedLocations"), max_locations
        )
        errors.extend(location_errors)
        if not location_errors:
            _set_locations(housing, locations)

    if data.get("housingSituation"):
        error = invalid_choice("housingSituation", data["housingSituation"], HOUSING_SITUATIONS)
        if error:
            errors.append({"field": "housingSituation", "message": "Invalid housing situation"})
        else:
            housing["housingSituation"] = data["housingSituation"]

    if data.get("maxDistanceToMetro"):
        error = invalid_choice(
            "maxDistanceToMetro", str(data["maxDistanceToMetro"]), METRO_DISTANCE_OPTIONS
        )
        if error:
            errors.append(error)
        else:
            housing["maxDistanceToMetro"] = str(data["maxDistanceToMetro"])

    rent = dict(housing.get("rentPreferences") or {})
    for key, target in (("rentMin", "minRent"), ("rentMax", "maxRent")):
        if data.get(key) in (None, ""):
            continue
        value = _parse_int(data[key])
        if value is None or value < 0:
            errors.append({"field": key, "message": "Rent must be a non-negative whole number"})
        else:
            rent[target] = value
    if rent.get("minRent") is not None and rent.get("maxRent") is not None:
        if rent["minRent"] > rent["maxRent"]:
            errors.append({"field": "rentMax", "message": "Maximum rent must be at least the minimum"})
    if rent:
        housing["rentPreferences"] = rent

    if data.get("moveInDate"):
        move_in = _parse_date(data["moveInDate"])
        if move_in is None:
            errors.append({"field": "moveInDate", "message": "Invalid move-in date"})
        else:
            housing["moveInDate"] = move_in

    if data.get("rentDuration") not in (None, ""):
        months = _parse_int(data["rentDuration"])
        if months is None or not MIN_RENT_DURATION_MONTHS <= months <= MAX_RENT_DURATION_MONTHS:
            errors.append({
                "field": "rentDuration",
                "message": (
                    f"Rental duration must be a whole number of months between "
                    f"{MIN_RENT_DURATION_MONTHS} and {MAX_RENT_DURATION_MONTHS}"
                ),
            })
        else:
            housing["rentDuration"] = months

    return updated, errors


def apply_lifestyle(document: dict, data: dict) -> tuple[dict, list[dict]]:
    """Apply step 2 fields; only supplied fields are touched."""

    updated = copy.deepcopy(document)
    lifestyle = updated.setdefault("lifestyle", {})
    errors: list[dict] = []

    for field in LIFESTYLE_FIELDS:
        value = data.get(field)
        if not value:
            continue
        error = invalid_choice(field, value, LIFESTYLE_OPTIONS[field])
        if error:
            errors.append(error)
        else:
            lifestyle[field] = value

    return updated, errors


def apply_professional(document: dict, data: dict) -> tuple[dict, list[dict]]:
    """Apply step 3 fields."""

    updated = copy.deepcopy(document)
    professional = updated.setdefault("professionalInfo", {})
    errors: list[dict] = []

    if data.get("occupation"):
        if data["occupation"] in OCCUPATIONS:
            professional["occupation"] = data["occupation"]
        else:
            errors.append({"field": "occupation", "message": "Invalid occupation"})

    if data.get("annualIncome") not in (None, ""):
        income = _parse_int(data["annualIncome"])
        if income is None or income < 0:
            errors.append({"field": "annualIncome", "message": "Income must be a positive number"})
        else:
            professional["annualIncome"] = income

    languages = data.get("languages")
    if isinstance(languages, list):
        unknown = [lang for lang in languages if lang not in LANGUAGES]
        if unknown:
            errors.append({"field": "languages", "message": f"Invalid languages: {', '.join(map(str, unknown))}"})
        else:
            professional["languages"] = list(dict.fromkeys(languages))

    return updated, errors


def apply_demographics(document: dict, data: dict) -> tuple[dict, list[dict]]:
    updated = copy.deepcopy(document)
    demographics = updated.setdefault("demographics", {})
    errors: list[dict] = []

    for field, options in DEMOGRAPHIC_OPTIONS.items():
        value = data.get(field)
        if not value:
            continue
        error = invalid_choice(field, value, options)
        if error:
            errors.append(error)
        else:
            demographics[field] = value

    return updated, errors


def apply_personal(document: dict, data: dict) -> tuple[dict, list[dict]]:
    updated = copy.deepcopy(document)
    personal = updated.setdefault("personalInfo", {})
    errors: list[dict] = []

    for field in ("firstName", "lastName"):
        if field in data:
            value = str(data[field] or "").strip()
            if not value:
                errors.append({"field": field, "message": f"{field} cannot be empty"})
            else:
                personal[field] = value

    if data.get("age") not in (None, ""):
        age = _parse_int(data["age"])
        if age is None or not MIN_AGE <= age <= MAX_AGE:
            errors.append({"field": "age", "message": f"Age must be between {MIN_AGE} and {MAX_AGE}"})
        else:
            personal["age"] = age

    if data.get("ethnicity"):
        error = invalid_choice("ethnicity", data["ethnicity"], ETHNICITIES)
        if error:
            errors.append(error)
        else:
            personal["ethnicity"] = data["ethnicity"]

    return updated, errors


def apply_profile_update(document: dict, updates: dict, max_locations: int = 5) -> tuple[dict, list[dict]]:
    """Apply a partial profile update section by section.

    ``metadata`` and credentials are never writable through this path.
    """

    updated = copy.deepcopy(document)
    errors: list[dict] = []

    personal = updates.get("personalInfo")
    if isinstance(personal, dict):
        updated, section_errors = apply_personal(updated, personal)
        errors.extend(section_errors)

    account = updates.get("account")
    if isinstance(account, dict) and "phoneNumber" in account:
        updated.setdefault("account", {})["phoneNumber"] = str(account["phoneNumber"] or "").strip()

    housing = updates.get("housingInfo")
    if isinstance(housing, dict):
        rent = housing.get("rentPreferences") or {}
        data = {
            **housing,
            "rentMin": housing.get("rentMin", rent.get("minRent")),
            "rentMax": housing.get("rentMax", rent.get("maxRent")),
        }
        updated, section_errors = apply_housing(
            updated, data, max_locations, require_locations=False
        )
        errors.extend(section_errors)

    for section, apply in (
        ("lifestyle", apply_lifestyle),
        ("professionalInfo", apply_professional),
        ("demographics", apply_demographics),
    ):
        data = updates.get(section)
        if isinstance(data, dict):
            updated, section_errors = apply(updated, data)
            errors.extend(section_errors)

    return updated, errors


# ============================================================
# ONBOARDING STEPS
# ============================================================

STEP_TITLES = {
    1: ("Housing Preferences", "Tell us where you want to live and your housing situation"),
    2: ("Lifestyle Preferences", "Help us match you with compatible roommates"),
    3: ("Professional Information", "Tell us about your work and income"),
}


def get_step_data(step: int, document: dict) -> dict:
    """Fields, current values and validation rules for one onboarding step."""

    housing = _section(document, "housingInfo")
    lifestyle = _section(document, "lifestyle")
    professional = _section(document, "professionalInfo")
    rent = housing.get("rentPreferences") or {}

    if step == 1:
        fields = ["selectedLocations", "housingSituation", "rentPreferences", "moveInDate"]
        current = {
            "selectedLocations": housing.get("selectedLocations") or [],
            "housingSituation": housing.get("housingSituation") or "",
            "rentMin": rent.get("minRent") or "",
            "rentMax": rent.get("maxRent") or "",
            "moveInDate": housing.get("moveInDate") or "",
        }
        validation = {
            "required": ["selectedLocations"],
            "optional": ["housingSituation", "rentMin", "rentMax", "moveInDate"],
        }
    elif step == 2:
        fields = list(LIFESTYLE_FIELDS)
        current = {field: lifestyle.get(field) or "" for field in LIFESTYLE_FIELDS}
        validation = {
            "required": list(CORE_LIFESTYLE_FIELDS),
            "optional": [f for f in LIFESTYLE_FIELDS if f not in CORE_LIFESTYLE_FIELDS],
        }
    elif step == 3:
        fields = ["occupation", "annualIncome", "languages"]
        current = {
            "occupation": professional.get("occupation") or "",
            "annualIncome": professional.get("annualIncome") or "",
            "languages": professional.get("languages") or [],
        }
        validation = {"required": ["occupation"], "optional": ["annualIncome", "languages"]}
    else:
        return {
            "title": "Unknown Step",
            "description": "Invalid step number",
            "fields": [],
            "currentData": {},
            "validation": {"required": [], "optional": []},
        }

    title, description = STEP_TITLES[step]
    return {
        "title": title,
        "description": description,
        "fields": fields,
        "currentData": current,
        "validation": validation,
    }


def apply_step(step: int, document: dict, data: dict, max_locations: int = 5) -> tuple[dict, list[dict]]:
    """Validate and apply the data submitted for one onboarding step."""

    if step == 1:
        return apply_housing(document, data, max_locations)
    if step == 2:
        return apply_lifestyle(document, data)
    if step == 3:
        return apply_professional(document, data)
    return document, [{"field": "step", "message": "Invalid step number"}]


def should_complete_onboarding(document: dict) -> bool:
    """Locations plus the household lifestyle answers unlock matching."""

    metadata = _section(document, "metadata")
    lifestyle = _section(document, "lifestyle")
    return (
        int(metadata.get("onboardingStep") or 0) >= 2
        and bool(_section(document, "housingInfo").get("selectedLocations"))
        and bool(lifestyle.get("children"))
        and bool(lifestyle.get("pets"))
    )


def get_next_step(current_step: int, completeness: int) -> dict:
    if completeness >= COMPLETENESS_REQUIRED_FOR_MATCHES or current_step >= ONBOARDING_STEPS:
        return {
            "step": "complete",
            "title": "Profile Complete!",
            "description": "You can now browse and match with roommates.",
            "route": "/dashboard",
        }

    steps = [
        {"step": 1, "title": "Housing Preferences", "description": "Where do you want to live?", "route": "/onboarding/housing"},
        {"step": 2, "title": "Lifestyle", "description": "Tell us about your lifestyle", "route": "/onboarding/lifestyle"},
        {"step": 3, "title": "Professional Info", "description": "Work and income information", "route": "/onboarding/professional"},
    ]
    return steps[current_step] if 0 <= current_step < len(steps) else steps[0]


def calculate_section_completeness(document: dict, section: str) -> int:
    personal = _section(document, "personalInfo")
    housing = _section(document, "housingInfo")
    professional = _section(document, "professionalInfo")
    lifestyle = _section(document, "lifestyle")

    if section == "personal":
        fields = [
            personal.get("firstName"),
            personal.get("lastName"),
            personal.get("sex"),
            personal.get("age"),
        ]
        return round_half_up(sum(1 for f in fields if f) / len(fields) * 100)

    if section == "housing":
        score = 0
        if housing.get("selectedLocations"):
            score += 40
        if housing.get("housingSituation"):
            score += 20
        if _has_rent_range(housing):
            score += 30
        if housing.get("moveInDate"):
            score += 10
        return score

    if section == "professional":
        score = 0
        if professional.get("occupation"):
            score += 50
        if professional.get("annualIncome"):
            score += 30
        if professional.get("languages"):
            score += 20
        return score

    if section == "lifestyle":
        completed = sum(1 for f in CORE_LIFESTYLE_FIELDS if lifestyle.get(f))
        return round_half_up(completed / len(CORE_LIFESTYLE_FIELDS) * 100)

    return 0


def calculate_detailed_progress(document: dict) -> dict:
    account = _section(document, "account")
    personal = _section(document, "personalInfo")
    housing = _section(document, "housingInfo")
    professional = _section(document, "professionalInfo")
    lifestyle = _section(document, "lifestyle")

    return {
        "account": {
            "completed": 100,
            "fields": {
                "username": bool(account.get("username")),
                "email": bool(account.get("email")),
                "phoneNumber": bool(account.get("phoneNumber")),
            },
        },
        "personal": {
            "completed": calculate_section_completeness(document, "personal"),
            "fields": {
                "firstName": bool(personal.get("firstName")),
                "lastName": bool(personal.get("lastName")),
                "sex": bool(personal.get("sex")),
                "age": bool(personal.get("age")),
            },
        },
        "housing": {
            "completed": calculate_section_completeness(document, "housing"),
            "fields": {
                "selectedLocations": bool(housing.get("selectedLocations")),
                "housingSituation": bool(housing.get("housingSituation")),
                "rentPreferences": _has_rent_range(housing),
                "moveInDate": bool(housing.get("moveInDate")),
            },
        },
        "professional": {
            "completed": calculate_section_completeness(document, "professional"),
            "fields": {
                "occupation": bool(professional.get("occupation")),
                "annualIncome": bool(professional.get("annualIncome")),
                "languages": bool(professional.get("languages")),
            },
        },
        "lifestyle": {
            "completed": calculate_section_completeness(document, "lifestyle"),
            "fields": {field: bool(lifestyle.get(field)) for field in LIFESTYLE_FIELDS},
        },
    }


def get_completion_recommendations(document: dict) -> list[dict]:
    housing = _section(document, "housingInfo")
    lifestyle = _section(document, "lifestyle")
    professional = _section(document, "professionalInfo")
    personal = _section(document, "personalInfo")
    recommendations: list[dict] = []

    if not housing.get("selectedLocations"):
        recommendations.append({
            "section": "housing",
            "priority": "high",
            "message": "Add your preferred neighborhoods to find compatible roommates nearby",
            "action": "Add locations",
        })

    missing = [field for field in CORE_LIFESTYLE_FIELDS if not lifestyle.get(field)]
    if missing:
        recommendations.append({
            "section": "lifestyle",
            "priority": "high",
            "message": f"Complete your lifestyle preferences ({', '.join(missing)}) for better matches",
            "action": "Update lifestyle",
        })

    if not professional.get("occupation"):
        recommendations.append({
            "section": "professional",
            "priority": "medium",
            "message": "Add your occupation to help roommates understand your schedule",
            "action": "Add occupation",
        })

    if not professional.get("annualIncome"):
        recommendations.append({
            "section": "professional",
            "priority": "medium",
            "message": "Adding income helps with rent affordability matching",
            "action": "Add income",
        })

    if not personal.get("age"):
        recommendations.append({
            "section": "personal",
            "priority": "low",
            "message": "Add your age for age-compatible roommate matching",
            "action": "Add age",
        })

    return recommendations


# ============================================================
# ACCOUNT LIFECYCLE
# ============================================================

def new_user_document(
    username: str, email: str, first_name: str, last_name: str, sex: str
) -> dict:
    """Document written at quick signup; everything else is filled in onboarding."""

    now = datetime.now(timezone.utc)
    document = {
        "account": {"username": username, "email": email},
        "personalInfo": {"firstName": first_name, "lastName": last_name, "sex": sex},
        "housingInfo": {"selectedLocations": [], "locationIds": []},
        "lifestyle": {},
        "professionalInfo": {},
        "demographics": {},
        "metadata": {
            "registrationDate": now,
            "lastActive": now,
            "lastLogin": None,
            "isActive": True,
            "onboardingCompleted": False,
            "onboardingStep": 0,
            "profileCompleted": False,
        },
    }
    document["metadata"]["profileCompleteness"] = calculate_completeness(document)
    return document


def refresh_completeness(document: dict) -> dict:
    """Copy of ``document`` with completeness and profileCompleted recomputed."""

    updated = copy.deepcopy(document)
    metadata = updated.setdefault("metadata", {})
    completeness = calculate_completeness(updated)
    metadata["profileCompleteness"] = completeness
    metadata["profileCompleted"] = completeness >= PROFILE_COMPLETED_THRESHOLD
    metadata["lastActive"] = datetime.now(timezone.utc)
    return updated


def complete_onboarding(document: dict, force: bool = False) -> dict:
    """Mark onboarding finished; ``force`` also jumps to the last step."""

    updated = refresh_completeness(document)
    metadata = updated["metadata"]
    metadata["onboardingCompleted"] = True
    metadata["onboardingCompletedAt"] = datetime.now(timezone.utc)
    if force:
        metadata["onboardingStep"] = ONBOARDING_STEPS
    return updated
