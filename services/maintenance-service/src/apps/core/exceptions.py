# services/maintenance-service/src/apps/core/exceptions.py
"""
Maintenance Service Exceptions

Raised by the workflow and service layers before any write is committed.
"""

from typing import Any, Dict, Optional

from shared.common.exceptions import (
    BaseServiceException,
    ConflictError,
    NotFoundError,
    ValidationError,
)


class MaintenanceServiceError(BaseServiceException):
    """Base exception for maintenance service errors."""
    default_detail = 'Maintenance service error.'
    error_code = 'MAINTENANCE_ERROR'


# ==========================================================================
# Lookup
# ==========================================================================

class WorkOrderNotFoundError(MaintenanceServiceError, NotFoundError):
    """Work order not found."""
    error_code = 'WORK_ORDER_NOT_FOUND'


class ScheduleNotFoundError(MaintenanceServiceError, NotFoundError):
    """Maintenance schedule not found."""
    error_code = 'SCHEDULE_NOT_FOUND'


class EquipmentNotFoundError(MaintenanceServiceError, NotFoundError):
    """Equipment not found."""
    error_code = 'EQUIPMENT_NOT_FOUND'


# ==========================================================================
# State
# ==========================================================================

class InvalidTransitionError(MaintenanceServiceError):
    """Requested status change is not an edge of the lifecycle graph."""
    error_code = 'INVALID_TRANSITION'

    def __init__(self, entity: str, source: str, target: str, detail: str = None):
        self.entity = entity
        self.source = source
        self.target = target
        super().__init__(
            detail=detail or f"Cannot move {entity} from '{source}' to '{target}'",
            extra_data={'entity': entity, 'source': source, 'target': target},
        )


class ApprovalRequiredError(MaintenanceServiceError):
    """Work order needs an approval stamp before it can proceed."""
    error_code = 'APPROVAL_REQUIRED'

    def __init__(self, work_order_number: str, target: str):
        super().__init__(
            detail=(
                f"Work order {work_order_number} requires approval "
                f"before moving to '{target}'"
            ),
            extra_data={'work_order_number': work_order_number, 'target': target},
        )


class ConcurrentModificationError(MaintenanceServiceError, ConflictError):
    """Record changed since the caller last read it."""
    error_code = 'CONCURRENT_MODIFICATION'

    def __init__(self, expected_version: int, actual_version: int):
        super().__init__(
            detail=(
                f"Record was modified concurrently "
                f"(expected version {expected_version}, found {actual_version})"
            ),
            extra_data={
                'expected_version': expected_version,
                'actual_version': actual_version,
            },
        )


class AssignmentConflictError(MaintenanceServiceError, ConflictError):
    """Operator assignment conflicts with equipment state or ownership."""
    error_code = 'ASSIGNMENT_CONFLICT'


# ==========================================================================
# Validation
# ==========================================================================

class ValidationFailedError(MaintenanceServiceError, ValidationError):
    """One or more fields failed validation."""
    error_code = 'VALIDATION_FAILED'

    def __init__(self, errors: Dict[str, Any], detail: Optional[str] = None):
        if detail is None:
            detail = '; '.join(f"{field}: {message}" for field, message in errors.items())
        ValidationError.__init__(self, errors, detail=detail)


class CounterAnomalyError(ValidationFailedError):
    """Usage counter reading is lower than a previously recorded value."""
    error_code = 'COUNTER_ANOMALY'


class ScheduleConfigurationError(MaintenanceServiceError):
    """Schedule intervals or bindings are invalid."""
    error_code = 'SCHEDULE_CONFIGURATION'

    def __init__(self, errors: Dict[str, Any]):
        self.errors = errors
        super().__init__(
            detail='; '.join(f"{field}: {message}" for field, message in errors.items()),
            extra_data={'errors': errors},
        )


class WorkOrderStateError(MaintenanceServiceError):
    """Operation is not allowed in the work order's current status."""
    error_code = 'WORK_ORDER_STATE'

    def __init__(self, work_order_number: str, status: str, action: str):
        super().__init__(
            detail=f"Cannot {action} work order {work_order_number} in '{status}' status",
            extra_data={
                'work_order_number': work_order_number,
                'status': status,
                'action': action,
            },
        )
