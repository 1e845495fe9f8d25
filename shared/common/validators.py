"""
Shared Validators Module.

Common validation utilities used across all microservices.
"""
from decimal import Decimal, InvalidOperation
from typing import Any

from django.core.exceptions import ValidationError


# =============================================================================
# NUMERIC VALIDATORS
# =============================================================================

def to_decimal(value: Any, field_name: str = "value") -> Decimal:
    """Convert a number or numeric string to Decimal."""
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be a number")
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError(f"{field_name} must be a number")


def validate_non_negative_decimal(value: Decimal, field_name: str = "value") -> Decimal:
    """Validate a decimal value that may be zero but not negative."""
    value = to_decimal(value, field_name)

    if value < 0:
        raise ValidationError(f"{field_name} cannot be negative")

    return value


def validate_percentage(value: Decimal, field_name: str = "percentage") -> Decimal:
    """Validate a percentage value (0-100)."""
    value = to_decimal(value, field_name)

    if value < 0 or value > 100:
        raise ValidationError(f"{field_name} must be between 0 and 100")

    return value
