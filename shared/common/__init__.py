# Shared Common Library for the Equipment Maintenance services
# This package contains shared model mixins, validators and base
# exceptions used across all microservices.

__version__ = "1.0.0"

# Export commonly used components
from .exceptions import (
    BaseServiceException,
    ValidationError,
    NotFoundError,
    ConflictError,
)

from .validators import (
    to_decimal,
    validate_non_negative_decimal,
    validate_percentage,
)

__all__ = [
    # Version
    '__version__',

    # Exceptions
    'BaseServiceException',
    'ValidationError',
    'NotFoundError',
    'ConflictError',

    # Validators
    'to_decimal',
    'validate_non_negative_decimal',
    'validate_percentage',
]
