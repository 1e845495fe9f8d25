# services/maintenance-service/src/apps/core/models/maintenance_schedule.py
"""
Maintenance Schedule Model

Recurring maintenance definitions and due-state evaluation across
calendar time, operating hours and distance.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Dict, Optional, Tuple

from django.db import models
from django.utils import timezone

from shared.common.mixins import ActiveMixin, BaseModel

from apps.core.exceptions import CounterAnomalyError, ScheduleConfigurationError

from .equipment import Equipment, EquipmentType


CALENDAR = 'calendar'
HOURS = 'hours'
DISTANCE = 'distance'


@dataclass(frozen=True)
class ScheduleEvaluation:
    """Due state of one schedule at one instant."""
    schedule_id: uuid.UUID
    as_of: datetime
    is_due: bool
    is_overdue: bool
    is_due_soon: bool
    due_metrics: Tuple[str, ...] = ()
    overdue_metrics: Tuple[str, ...] = ()
    days_until_due: Optional[int] = None
    hours_until_due: Optional[Decimal] = None
    kilometers_until_due: Optional[Decimal] = None
    evaluated_metrics: Tuple[str, ...] = field(default=())


class MaintenanceSchedule(BaseModel, ActiveMixin):
    """
    Recurring maintenance requirement.

    Bound either to a single equipment asset or to an equipment type.
    """

    class ScheduleType(models.TextChoices):
        TIME_BASED = 'time_based', 'Time Based'
        HOUR_BASED = 'hour_based', 'Hour Based'
        MILEAGE_BASED = 'mileage_based', 'Mileage Based'
        CYCLE_BASED = 'cycle_based', 'Cycle Based'
        CONDITION_BASED = 'condition_based', 'Condition Based'
        CALENDAR_BASED = 'calendar_based', 'Calendar Based'

    # Interval that must be configured for each schedule type
    DRIVING_INTERVAL = {
        ScheduleType.TIME_BASED: 'interval_days',
        ScheduleType.CALENDAR_BASED: 'interval_days',
        ScheduleType.HOUR_BASED: 'interval_hours',
        ScheduleType.MILEAGE_BASED: 'interval_kilometers',
        ScheduleType.CYCLE_BASED: 'interval_cycles',
    }

    # ==========================================================================
    # Binding
    # ==========================================================================

    equipment = models.ForeignKey(
        Equipment,
        on_delete=models.CASCADE,
        related_name='maintenance_schedules',
        blank=True,
        null=True
    )
    equipment_type = models.ForeignKey(
        EquipmentType,
        on_delete=models.CASCADE,
        related_name='maintenance_schedules',
        blank=True,
        null=True
    )

    # ==========================================================================
    # Identification
    # ==========================================================================

    title = models.CharField(max_length=255)
    description = models.TextField(blank=True, null=True)
    maintenance_type = models.CharField(max_length=30, default='preventive')
    priority_level = models.CharField(max_length=20, default='medium')
    schedule_type = models.CharField(max_length=30, choices=ScheduleType.choices)

    # ==========================================================================
    # Intervals
    # ==========================================================================

    interval_hours = models.DecimalField(
        max_digits=10, decimal_places=2, blank=True, null=True
    )
    interval_days = models.PositiveIntegerField(blank=True, null=True)
    interval_kilometers = models.DecimalField(
        max_digits=12, decimal_places=2, blank=True, null=True
    )
    interval_cycles = models.PositiveIntegerField(blank=True, null=True)

    # ==========================================================================
    # Tolerances
    # ==========================================================================

    tolerance_hours = models.DecimalField(
        max_digits=10, decimal_places=2, blank=True, null=True
    )
    tolerance_days = models.PositiveIntegerField(blank=True, null=True)
    tolerance_kilometers = models.DecimalField(
        max_digits=12, decimal_places=2, blank=True, null=True
    )
    advance_notice_days = models.PositiveIntegerField(blank=True, null=True)

    # ==========================================================================
    # Last Performed / Next Due
    # ==========================================================================

    last_performed_at = models.DateTimeField(blank=True, null=True)
    last_performed_hours = models.DecimalField(
        max_digits=12, decimal_places=2, blank=True, null=True
    )
    last_performed_kilometers = models.DecimalField(
        max_digits=12, decimal_places=2, blank=True, null=True
    )
    # Unit whose counters produced the snapshot
    last_performed_equipment = models.UUIDField(blank=True, null=True)

    next_due_date = models.DateTimeField(blank=True, null=True)
    next_due_hours = models.DecimalField(
        max_digits=12, decimal_places=2, blank=True, null=True
    )
    next_due_kilometers = models.DecimalField(
        max_digits=12, decimal_places=2, blank=True, null=True
    )

    # ==========================================================================
    # Estimates
    # ==========================================================================

    estimated_duration_minutes = models.PositiveIntegerField(blank=True, null=True)
    estimated_cost = models.DecimalField(
        max_digits=12, decimal_places=2, blank=True, null=True
    )

    class Meta:
        db_table = 'maintenance_schedules'
        ordering = ['next_due_date', 'title']
        verbose_name = 'Maintenance Schedule'
        verbose_name_plural = 'Maintenance Schedules'
        indexes = [
            models.Index(fields=['schedule_type']),
            models.Index(fields=['next_due_date']),
        ]

    def __str__(self):
        return f"{self.title} ({self.schedule_type})"

    # ==========================================================================
    # Configuration
    # ==========================================================================

    def configuration_errors(self) -> Dict[str, str]:
        """Return a field -> message map of configuration problems."""
        errors = {}

        if bool(self.equipment_id) == bool(self.equipment_type_id):
            errors['equipment'] = (
                'A schedule must be bound to exactly one of equipment or equipment_type.'
            )

        if self.schedule_type not in self.ScheduleType.values:
            errors['schedule_type'] = f"Unknown schedule type '{self.schedule_type}'."

        for name in ('interval_hours', 'interval_days', 'interval_kilometers', 'interval_cycles'):
            value = getattr(self, name)
            if value is not None and value <= 0:
                errors[name] = 'Interval must be greater than zero.'

        driving = self.DRIVING_INTERVAL.get(self.schedule_type)
        if driving and getattr(self, driving) is None and driving not in errors:
            errors[driving] = f"Required for {self.schedule_type} schedules."

        for name in ('tolerance_hours', 'tolerance_days', 'tolerance_kilometers'):
            value = getattr(self, name)
            if value is not None and value < 0:
                errors[name] = 'Tolerance cannot be negative.'

        return errors

    def validate_configuration(self) -> None:
        errors = self.configuration_errors()
        if errors:
            raise ScheduleConfigurationError(errors)

    # ==========================================================================
    # Fulfilment
    # ==========================================================================

    def update_last_performed(
        self,
        completed_at: datetime,
        operating_hours: Decimal = None,
        kilometers: Decimal = None,
        equipment_id: uuid.UUID = None
    ) -> None:
        """
        Record that the maintenance was performed and recompute next-due.

        Readings that are not supplied keep their previous snapshot. Supplying
        the same values twice yields the same next-due values. A lower reading
        is an anomaly only when the snapshot came from the same unit.
        """
        same_unit = self.snapshot_taken_from(equipment_id)
        errors = {}
        if (
            same_unit
            and operating_hours is not None
            and self.last_performed_hours is not None
            and operating_hours < self.last_performed_hours
        ):
            errors['operating_hours'] = (
                f"Reading {operating_hours} is below the last performed "
                f"reading {self.last_performed_hours}."
            )
        if (
            same_unit
            and kilometers is not None
            and self.last_performed_kilometers is not None
            and kilometers < self.last_performed_kilometers
        ):
            errors['kilometers'] = (
                f"Reading {kilometers} is below the last performed "
                f"reading {self.last_performed_kilometers}."
            )
        if errors:
            raise CounterAnomalyError(errors)

        self.last_performed_at = completed_at
        if operating_hours is not None:
            self.last_performed_hours = operating_hours
        if kilometers is not None:
            self.last_performed_kilometers = kilometers
        if operating_hours is not None or kilometers is not None:
            self.last_performed_equipment = equipment_id or self.equipment_id

        self.recalculate_next_due()
        self.save(update_fields=[
            'last_performed_at', 'last_performed_hours', 'last_performed_kilometers',
            'last_performed_equipment',
            'next_due_date', 'next_due_hours', 'next_due_kilometers', 'updated_at'
        ])

    def recalculate_next_due(self) -> None:
        """Recompute the next-due value of the metric the type drives."""
        if self.schedule_type in (
            self.ScheduleType.TIME_BASED, self.ScheduleType.CALENDAR_BASED
        ):
            if self.last_performed_at and self.interval_days:
                self.next_due_date = self.last_performed_at + timedelta(days=self.interval_days)

        elif self.schedule_type == self.ScheduleType.HOUR_BASED:
            if self.last_performed_hours is not None and self.interval_hours:
                self.next_due_hours = self.last_performed_hours + self.interval_hours

        elif self.schedule_type == self.ScheduleType.MILEAGE_BASED:
            if self.last_performed_kilometers is not None and self.interval_kilometers:
                self.next_due_kilometers = (
                    self.last_performed_kilometers + self.interval_kilometers
                )

    # ==========================================================================
    # Evaluation
    # ==========================================================================

    def evaluate(
        self,
        as_of: datetime = None,
        operating_hours: Decimal = None,
        distance: Decimal = None,
        advance_notice_days: int = 7,
        equipment_id: uuid.UUID = None
    ) -> ScheduleEvaluation:
        """
        Evaluate due, overdue and due-soon state.

        Metrics are OR-combined. Hours and distance are only evaluated when a
        reading is supplied; they never contribute to due-soon.
        """
        as_of = as_of or timezone.now()

        same_unit = self.snapshot_taken_from(equipment_id)
        errors = {}
        if (
            same_unit
            and operating_hours is not None
            and self.last_performed_hours is not None
            and operating_hours < self.last_performed_hours
        ):
            errors['operating_hours'] = (
                f"Equipment reading {operating_hours} is below the last performed "
                f"reading {self.last_performed_hours}."
            )
        if (
            same_unit
            and distance is not None
            and self.last_performed_kilometers is not None
            and distance < self.last_performed_kilometers
        ):
            errors['distance'] = (
                f"Equipment reading {distance} is below the last performed "
                f"reading {self.last_performed_kilometers}."
            )
        if errors:
            raise CounterAnomalyError(errors)

        due, overdue, evaluated = [], [], []
        days_until = hours_until = km_until = None

        calendar_known = self.last_performed_at is not None and self.next_due_date is not None
        if calendar_known:
            evaluated.append(CALENDAR)
            days_until = (self.next_due_date - as_of).days
            if self.next_due_date <= as_of:
                due.append(CALENDAR)
                tolerance = timedelta(days=self.tolerance_days or 0)
                if as_of > self.next_due_date + tolerance:
                    overdue.append(CALENDAR)

        if self.next_due_hours is not None and operating_hours is not None:
            evaluated.append(HOURS)
            hours_until = self.next_due_hours - operating_hours
            if operating_hours >= self.next_due_hours:
                due.append(HOURS)
                if operating_hours > self.next_due_hours + (self.tolerance_hours or 0):
                    overdue.append(HOURS)

        if self.next_due_kilometers is not None and distance is not None:
            evaluated.append(DISTANCE)
            km_until = self.next_due_kilometers - distance
            if distance >= self.next_due_kilometers:
                due.append(DISTANCE)
                if distance > self.next_due_kilometers + (self.tolerance_kilometers or 0):
                    overdue.append(DISTANCE)

        is_due = self.is_active and bool(due)
        is_overdue = is_due and bool(overdue)
        is_due_soon = (
            self.is_active
            and not is_due
            and calendar_known
            and self.next_due_date <= as_of + timedelta(days=advance_notice_days)
        )

        return ScheduleEvaluation(
            schedule_id=self.id,
            as_of=as_of,
            is_due=is_due,
            is_overdue=is_overdue,
            is_due_soon=is_due_soon,
            due_metrics=tuple(due) if self.is_active else (),
            overdue_metrics=tuple(overdue) if is_due else (),
            days_until_due=days_until,
            hours_until_due=hours_until,
            kilometers_until_due=km_until,
            evaluated_metrics=tuple(evaluated),
        )

    def snapshot_taken_from(self, equipment_id: uuid.UUID = None) -> bool:
        """Whether the counter snapshot belongs to the given unit."""
        if self.equipment_id is not None:
            return True
        return equipment_id is not None and equipment_id == self.last_performed_equipment

    def applies_to(self, equipment: Equipment) -> bool:
        """Whether this schedule covers the given asset."""
        if self.equipment_id:
            return self.equipment_id == equipment.id
        return (
            self.equipment_type_id is not None
            and self.equipment_type_id == equipment.equipment_type_id
        )
