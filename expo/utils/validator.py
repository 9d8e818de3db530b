"""Checks the exhibition requirements before a workflow is created."""

from numbers import Real

from expo.errors import ValidationError

REQUIRED_TEXT_FIELDS = ("title", "theme", "target_audience")
DEFAULT_CURRENCY = "CNY"


def _positive_number(value, field: str) -> float:
    if isinstance(value, bool) or not isinstance(value, Real) or value <= 0:
        raise ValidationError(f"'{field}' must be a positive number.")
    return float(value)


def _text(value, field: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"'{field}' must be a non-empty string.")
    return value.strip()


def validate_requirements(requirements: dict) -> dict:
    """Validate and normalize the project requirements.

    Returns a new normalized dict on success; the input is not modified.
    A bare number for `budget` is accepted as the total in the default currency.
    Raises ValidationError on any missing or malformed field.
    """
    if not isinstance(requirements, dict) or not requirements:
        raise ValidationError("Requirements must be a non-empty mapping.")

    normalized = {field: _text(requirements.get(field), field) for field in REQUIRED_TEXT_FIELDS}

    venue = requirements.get("venue_space")
    if not isinstance(venue, dict):
        raise ValidationError("'venue_space' must be a mapping with area, height and layout.")
    normalized["venue_space"] = {
        "area": _positive_number(venue.get("area"), "venue_space.area"),
        "height": _positive_number(venue.get("height"), "venue_space.height"),
        "layout": str(venue.get("layout") or "").strip(),
    }

    budget = requirements.get("budget")
    if isinstance(budget, dict):
        currency = budget.get("currency") or DEFAULT_CURRENCY
        normalized["budget"] = {
            "total": _positive_number(budget.get("total"), "budget.total"),
            "currency": _text(currency, "budget.currency"),
        }
    else:
        normalized["budget"] = {
            "total": _positive_number(budget, "budget"),
            "currency": DEFAULT_CURRENCY,
        }

    duration = requirements.get("duration") or {}
    if not isinstance(duration, dict):
        raise ValidationError("'duration' must be a mapping with start_date and end_date.")
    normalized["duration"] = {
        "start_date": str(duration.get("start_date") or ""),
        "end_date": str(duration.get("end_date") or ""),
    }

    special = requirements.get("special_requirements") or []
    if not isinstance(special, list) or not all(isinstance(s, str) for s in special):
        raise ValidationError("'special_requirements' must be a list of strings.")
    normalized["special_requirements"] = [s.strip() for s in special if s.strip()]

    return normalized
