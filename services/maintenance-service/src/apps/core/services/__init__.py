# services/maintenance-service/src/apps/core/services/__init__.py
"""
Maintenance Service Business Logic

Services for equipment, schedules, work orders and cost reconciliation.
"""

from apps.core.exceptions import (
    MaintenanceServiceError,
    WorkOrderNotFoundError,
    ScheduleNotFoundError,
    EquipmentNotFoundError,
    InvalidTransitionError,
    ApprovalRequiredError,
    ConcurrentModificationError,
    AssignmentConflictError,
    ValidationFailedError,
    CounterAnomalyError,
    ScheduleConfigurationError,
    WorkOrderStateError,
)

from .cost_service import CostService
from .equipment_service import EquipmentService
from .schedule_service import ScheduleService
from .work_order_service import WorkOrderService


__all__ = [
    # Services
    'CostService',
    'EquipmentService',
    'ScheduleService',
    'WorkOrderService',

    # Exceptions
    'MaintenanceServiceError',
    'WorkOrderNotFoundError',
    'ScheduleNotFoundError',
    'EquipmentNotFoundError',
    'InvalidTransitionError',
    'ApprovalRequiredError',
    'ConcurrentModificationError',
    'AssignmentConflictError',
    'ValidationFailedError',
    'CounterAnomalyError',
    'ScheduleConfigurationError',
    'WorkOrderStateError',
]
