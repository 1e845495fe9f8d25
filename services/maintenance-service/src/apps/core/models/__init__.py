# services/maintenance-service/src/apps/core/models/__init__.py
"""
Maintenance Service Models

All models for equipment, maintenance schedules and work order management.
"""

from .equipment import Equipment, EquipmentType, EquipmentStatusLog
from .maintenance_schedule import MaintenanceSchedule, ScheduleEvaluation
from .maintenance_record import (
    MaintenanceRecord,
    MaintenanceScheduleRecord,
    MaintenanceStatusLog,
)
from .maintenance_part import MaintenancePart

__all__ = [
    'EquipmentType',
    'Equipment',
    'EquipmentStatusLog',
    'MaintenanceSchedule',
    'ScheduleEvaluation',
    'MaintenanceRecord',
    'MaintenanceScheduleRecord',
    'MaintenanceStatusLog',
    'MaintenancePart',
]
