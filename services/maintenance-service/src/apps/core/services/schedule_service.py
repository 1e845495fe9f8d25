# services/maintenance-service/src/apps/core/services/schedule_service.py
"""
Schedule Service

Recurring maintenance schedules: configuration, due evaluation and
fulfilment.
"""

import uuid
import logging
from datetime import datetime
from decimal import Decimal
from typing import Optional, List

from django.conf import settings
from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from django.core.exceptions import ValidationError as DjangoValidationError

from shared.common.validators import validate_non_negative_decimal

from apps.core.models import Equipment, MaintenanceSchedule, ScheduleEvaluation
from apps.core.exceptions import (
    CounterAnomalyError,
    EquipmentNotFoundError,
    ScheduleConfigurationError,
    ScheduleNotFoundError,
    ValidationFailedError,
)

logger = logging.getLogger(__name__)


class ScheduleService:
    """
    Service for maintenance schedules.

    Handles:
    - Schedule creation and interval changes
    - Due / overdue / due-soon evaluation
    - Fulfilment when linked work completes
    """

    INTERVAL_FIELDS = [
        'interval_hours', 'interval_days', 'interval_kilometers', 'interval_cycles',
        'tolerance_hours', 'tolerance_days', 'tolerance_kilometers',
        'advance_notice_days',
    ]

    SCHEDULE_FIELDS = INTERVAL_FIELDS + [
        'description', 'maintenance_type', 'priority_level', 'is_active',
        'last_performed_at', 'last_performed_hours', 'last_performed_kilometers',
        'last_performed_equipment', 'estimated_duration_minutes', 'estimated_cost',
    ]

    # ==========================================================================
    # Schedule CRUD
    # ==========================================================================

    @transaction.atomic
    def create_schedule(
        self,
        title: str,
        schedule_type: str,
        equipment_id: uuid.UUID = None,
        equipment_type_id: uuid.UUID = None,
        created_by: uuid.UUID = None,
        **kwargs
    ) -> MaintenanceSchedule:
        """
        Create a schedule bound to one equipment or one equipment type.

        When a last-performed snapshot is supplied the next-due values are
        derived from it.
        """
        unknown = [f for f in kwargs if f not in self.SCHEDULE_FIELDS]
        if unknown:
            raise ScheduleConfigurationError(
                {f: 'Not a schedule field.' for f in unknown}
            )

        schedule = MaintenanceSchedule(
            title=title,
            schedule_type=schedule_type,
            equipment_id=equipment_id,
            equipment_type_id=equipment_type_id,
            created_by=created_by,
            updated_by=created_by,
            **kwargs
        )
        schedule.validate_configuration()
        schedule.recalculate_next_due()
        schedule.save()

        logger.info(f"Created maintenance schedule {schedule.id}: {schedule.title}")
        return schedule

    def get_schedule(self, schedule_id: uuid.UUID, for_update: bool = False) -> MaintenanceSchedule:
        """Get a schedule by ID."""
        queryset = MaintenanceSchedule.objects.select_related('equipment', 'equipment_type')
        if for_update:
            queryset = queryset.select_for_update(of=('self',))
        try:
            return queryset.get(id=schedule_id)
        except MaintenanceSchedule.DoesNotExist:
            raise ScheduleNotFoundError(detail=f"Maintenance schedule {schedule_id} not found")

    def list_schedules_for_equipment(
        self,
        equipment: Equipment,
        active_only: bool = True
    ) -> List[MaintenanceSchedule]:
        """Schedules bound to the asset directly or through its type."""
        condition = Q(equipment=equipment)
        if equipment.equipment_type_id:
            condition |= Q(equipment_type_id=equipment.equipment_type_id)

        queryset = MaintenanceSchedule.objects.filter(condition)
        if active_only:
            queryset = queryset.filter(is_active=True)
        return list(queryset.order_by('next_due_date', 'title'))

    @transaction.atomic
    def update_schedule_intervals(
        self,
        schedule_id: uuid.UUID,
        updated_by: uuid.UUID = None,
        **intervals
    ) -> MaintenanceSchedule:
        """
        Change intervals or tolerances and re-derive next-due values.

        Invalid configurations are rejected without saving.
        """
        schedule = self.get_schedule(schedule_id, for_update=True)

        unknown = [f for f in intervals if f not in self.INTERVAL_FIELDS]
        if unknown:
            raise ScheduleConfigurationError(
                {f: 'Not an interval or tolerance field.' for f in unknown}
            )

        for field, value in intervals.items():
            setattr(schedule, field, value)

        schedule.validate_configuration()
        schedule.recalculate_next_due()
        schedule.updated_by = updated_by
        schedule.save()

        logger.info(f"Updated intervals on schedule {schedule.id}: {sorted(intervals)}")
        return schedule

    @transaction.atomic
    def set_active(self, schedule_id: uuid.UUID, is_active: bool) -> MaintenanceSchedule:
        """Activate or deactivate a schedule."""
        schedule = self.get_schedule(schedule_id, for_update=True)
        schedule.is_active = is_active
        schedule.save(update_fields=['is_active', 'updated_at'])
        return schedule

    # ==========================================================================
    # Evaluation
    # ==========================================================================

    def evaluate_schedule(
        self,
        schedule_id: uuid.UUID,
        as_of: datetime = None,
        equipment_id: uuid.UUID = None,
        advance_notice_days: int = None
    ) -> ScheduleEvaluation:
        """
        Evaluate a schedule against its equipment's current counters.

        Type-level schedules use ``equipment_id`` when given; without any
        equipment only the calendar metric is evaluated.
        """
        schedule = self.get_schedule(schedule_id)
        equipment = self._equipment_for(schedule, equipment_id)
        return self._evaluate(schedule, equipment, as_of, advance_notice_days)

    def evaluate_equipment(
        self,
        equipment_id: uuid.UUID,
        as_of: datetime = None,
        advance_notice_days: int = None
    ) -> List[ScheduleEvaluation]:
        """Evaluate every active schedule that covers an asset."""
        try:
            equipment = Equipment.objects.get(id=equipment_id)
        except Equipment.DoesNotExist:
            raise EquipmentNotFoundError(detail=f"Equipment {equipment_id} not found")

        return [
            self._evaluate(schedule, equipment, as_of, advance_notice_days)
            for schedule in self.list_schedules_for_equipment(equipment)
        ]

    def get_due_schedules(
        self,
        equipment_id: uuid.UUID,
        as_of: datetime = None
    ) -> List[ScheduleEvaluation]:
        """Evaluations of the asset's schedules that are currently due."""
        return [e for e in self.evaluate_equipment(equipment_id, as_of) if e.is_due]

    def _evaluate(
        self,
        schedule: MaintenanceSchedule,
        equipment: Optional[Equipment],
        as_of: Optional[datetime],
        advance_notice_days: Optional[int]
    ) -> ScheduleEvaluation:
        if advance_notice_days is None:
            advance_notice_days = schedule.advance_notice_days
        if advance_notice_days is None:
            advance_notice_days = getattr(settings, 'MAINTENANCE_ADVANCE_NOTICE_DAYS', 7)

        try:
            return schedule.evaluate(
                as_of=as_of or timezone.now(),
                operating_hours=equipment.operating_hours if equipment else None,
                distance=equipment.distance if equipment else None,
                advance_notice_days=advance_notice_days,
                equipment_id=equipment.id if equipment else None,
            )
        except CounterAnomalyError as exc:
            logger.warning(
                f"Counter anomaly evaluating schedule {schedule.id} for equipment "
                f"{equipment.asset_number if equipment else '-'}: {exc.errors}"
            )
            raise

    def _equipment_for(
        self,
        schedule: MaintenanceSchedule,
        equipment_id: uuid.UUID = None
    ) -> Optional[Equipment]:
        if equipment_id is None:
            return schedule.equipment

        try:
            equipment = Equipment.objects.get(id=equipment_id)
        except Equipment.DoesNotExist:
            raise EquipmentNotFoundError(detail=f"Equipment {equipment_id} not found")

        if not schedule.applies_to(equipment):
            raise ValidationFailedError({
                'equipment_id': (
                    f"Schedule {schedule.id} does not cover equipment "
                    f"{equipment.asset_number}."
                )
            })
        return equipment

    # ==========================================================================
    # Fulfilment
    # ==========================================================================

    @transaction.atomic
    def fulfill_schedule(
        self,
        schedule_id: uuid.UUID,
        completed_at: datetime,
        operating_hours: Optional[Decimal] = None,
        kilometers: Optional[Decimal] = None,
        equipment_id: uuid.UUID = None
    ) -> MaintenanceSchedule:
        """
        Record that the scheduled maintenance was performed.

        Repeating the call with identical inputs leaves next-due unchanged.
        For type-level schedules ``equipment_id`` names the unit the readings
        come from.
        """
        schedule = self.get_schedule(schedule_id, for_update=True)
        return self.fulfill(schedule, completed_at, operating_hours, kilometers, equipment_id)

    def fulfill(
        self,
        schedule: MaintenanceSchedule,
        completed_at: datetime,
        operating_hours: Optional[Decimal] = None,
        kilometers: Optional[Decimal] = None,
        equipment_id: uuid.UUID = None
    ) -> MaintenanceSchedule:
        """Fulfil an already loaded schedule."""
        if completed_at is None:
            raise ValidationFailedError({'completed_at': 'A completion time is required.'})

        errors = {}
        try:
            if operating_hours is not None:
                operating_hours = validate_non_negative_decimal(operating_hours, 'operating_hours')
        except DjangoValidationError as exc:
            errors['operating_hours'] = exc.messages[0]
        try:
            if kilometers is not None:
                kilometers = validate_non_negative_decimal(kilometers, 'kilometers')
        except DjangoValidationError as exc:
            errors['kilometers'] = exc.messages[0]
        if errors:
            raise ValidationFailedError(errors)

        try:
            schedule.update_last_performed(
                completed_at, operating_hours, kilometers, equipment_id=equipment_id
            )
        except CounterAnomalyError as exc:
            logger.warning(f"Counter anomaly fulfilling schedule {schedule.id}: {exc.errors}")
            raise

        logger.info(
            f"Fulfilled schedule {schedule.id}; next due "
            f"date={schedule.next_due_date} hours={schedule.next_due_hours} "
            f"km={schedule.next_due_kilometers}"
        )
        return schedule

