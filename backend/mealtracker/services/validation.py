"""
MealTracker Backend - Input Validation Helpers
===============================================

Shared checks for the catalog services. Failures raise ValidationError (400).
"""

from typing import Any, Optional

from mealtracker.exceptions import ValidationError

MAX_NAME_LENGTH = 200


def clean_name(value: Optional[str], field: str = "name") -> str:
    """Strip surrounding whitespace; reject missing, blank or overlong names."""
    if value is None or not value.strip():
        raise ValidationError(message=f"{field} is required", field=field)
    cleaned = value.strip()
    if len(cleaned) > MAX_NAME_LENGTH:
        raise ValidationError(
            message=f"{field} must be at most {MAX_NAME_LENGTH} characters",
            field=field,
            context={"length": len(cleaned), "max_length": MAX_NAME_LENGTH},
        )
    return cleaned


def require_id(value: Optional[Any], field: str) -> int:
    """Reject a missing or non-positive id."""
    if value is None:
        raise ValidationError(message=f"{field} is required", field=field)
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(message=f"{field} must be an integer", field=field)
    if number < 1:
        raise ValidationError(message=f"{field} must be a positive integer", field=field)
    return number
