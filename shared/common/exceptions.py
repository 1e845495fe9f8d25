# shared/common/exceptions.py
"""
Custom Exception Classes

Base exceptions shared by the service layers. Every error carries a stable
error code and a dict of context describing what the caller must correct.
"""

from typing import Any, Dict, Optional


# =============================================================================
# BASE EXCEPTIONS
# =============================================================================

class BaseServiceException(Exception):
    """Base exception class for all service-layer errors"""

    default_detail = 'An unexpected error occurred.'
    error_code = 'INTERNAL_ERROR'

    def __init__(
        self,
        detail: Optional[str] = None,
        error_code: Optional[str] = None,
        extra_data: Optional[Dict[str, Any]] = None
    ):
        self.detail = detail or self.default_detail
        self.error_code = error_code or self.error_code
        self.extra_data = extra_data or {}
        super().__init__(self.detail)

    def to_dict(self) -> Dict[str, Any]:
        """Structured representation for logs and API error payloads."""
        return {
            'code': self.error_code,
            'message': self.detail,
            'details': self.extra_data,
        }


# =============================================================================
# CLIENT ERRORS
# =============================================================================

class ValidationError(BaseServiceException):
    """Input failed validation"""
    default_detail = 'Validation error.'
    error_code = 'VALIDATION_ERROR'

    def __init__(self, errors: Dict[str, Any], detail: str = None, **kwargs):
        extra_data = kwargs.pop('extra_data', None) or {}
        extra_data['errors'] = errors
        super().__init__(detail=detail, extra_data=extra_data, **kwargs)
        self.errors = errors


class NotFoundError(BaseServiceException):
    """Requested resource does not exist"""
    default_detail = 'Resource not found.'
    error_code = 'NOT_FOUND'


class ConflictError(BaseServiceException):
    """Request conflicts with the current state of the resource"""
    default_detail = 'Resource conflict.'
    error_code = 'CONFLICT'
