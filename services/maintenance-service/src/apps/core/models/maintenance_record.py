# services/maintenance-service/src/apps/core/models/maintenance_record.py
"""
Maintenance Record Model

Work orders, their schedule links and the status audit trail.
"""

import uuid
from decimal import Decimal
from typing import Optional

from django.db import models
from django.utils import timezone

from shared.common.mixins import (
    BaseModel,
    SoftDeleteMixin,
    UUIDPrimaryKeyMixin,
    VersionedMixin,
)

from apps.core import workflow

from .equipment import Equipment
from .maintenance_schedule import MaintenanceSchedule


ZERO = Decimal('0.00')


class MaintenanceRecord(BaseModel, SoftDeleteMixin, VersionedMixin):
    """
    Maintenance work order.

    Moves through the approval and execution lifecycle defined in
    ``apps.core.workflow``; status changes go through WorkOrderService.
    """

    class Status(models.TextChoices):
        PENDING_APPROVAL = workflow.PENDING_APPROVAL, 'Pending Approval'
        APPROVED = workflow.APPROVED, 'Approved'
        REJECTED = workflow.REJECTED, 'Rejected'
        SCHEDULED = workflow.SCHEDULED, 'Scheduled'
        IN_PROGRESS = workflow.IN_PROGRESS, 'In Progress'
        ON_HOLD = workflow.ON_HOLD, 'On Hold'
        COMPLETED = workflow.COMPLETED, 'Completed'
        CANCELLED = workflow.CANCELLED, 'Cancelled'

    class MaintenanceType(models.TextChoices):
        PREVENTIVE = 'preventive', 'Preventive'
        CORRECTIVE = 'corrective', 'Corrective'
        EMERGENCY = 'emergency', 'Emergency'
        PREDICTIVE = 'predictive', 'Predictive'
        CONDITION_BASED = 'condition_based', 'Condition Based'
        BREAKDOWN = 'breakdown', 'Breakdown'
        OVERHAUL = 'overhaul', 'Overhaul'
        UPGRADE = 'upgrade', 'Upgrade'

    class Priority(models.TextChoices):
        LOW = 'low', 'Low'
        MEDIUM = 'medium', 'Medium'
        HIGH = 'high', 'High'
        CRITICAL = 'critical', 'Critical'
        EMERGENCY = 'emergency', 'Emergency'

    equipment = models.ForeignKey(
        Equipment,
        on_delete=models.PROTECT,
        related_name='maintenance_records'
    )
    schedules = models.ManyToManyField(
        MaintenanceSchedule,
        through='MaintenanceScheduleRecord',
        related_name='maintenance_records',
        blank=True
    )

    # ==========================================================================
    # Identification
    # ==========================================================================

    work_order_number = models.CharField(max_length=50, unique=True)
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True, null=True)

    maintenance_type = models.CharField(
        max_length=30,
        choices=MaintenanceType.choices,
        default=MaintenanceType.PREVENTIVE
    )
    priority_level = models.CharField(
        max_length=20,
        choices=Priority.choices,
        default=Priority.MEDIUM
    )

    # ==========================================================================
    # Status
    # ==========================================================================

    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.SCHEDULED,
        db_index=True
    )
    status_changed_at = models.DateTimeField(blank=True, null=True)
    status_changed_by = models.UUIDField(blank=True, null=True)

    # ==========================================================================
    # Approval
    # ==========================================================================

    approval_required = models.BooleanField(default=False)
    approved_by = models.UUIDField(blank=True, null=True)
    approved_at = models.DateTimeField(blank=True, null=True)
    approval_notes = models.TextField(blank=True, null=True)
    rejected_by = models.UUIDField(blank=True, null=True)
    rejected_at = models.DateTimeField(blank=True, null=True)
    rejection_reason = models.TextField(blank=True, null=True)

    # ==========================================================================
    # Planning
    # ==========================================================================

    scheduled_start = models.DateTimeField(blank=True, null=True)
    scheduled_end = models.DateTimeField(blank=True, null=True)
    actual_start = models.DateTimeField(blank=True, null=True)
    actual_end = models.DateTimeField(blank=True, null=True)
    estimated_duration = models.PositiveIntegerField(
        blank=True, null=True, help_text='Minutes'
    )
    actual_duration = models.PositiveIntegerField(
        blank=True, null=True, help_text='Minutes'
    )

    # ==========================================================================
    # Execution
    # ==========================================================================

    technician_id = models.UUIDField(blank=True, null=True)
    external_vendor = models.CharField(max_length=255, blank=True, null=True)
    work_performed = models.TextField(blank=True, null=True)
    completion_notes = models.TextField(blank=True, null=True)
    completion_percentage = models.PositiveSmallIntegerField(blank=True, null=True)

    operating_hours_before = models.DecimalField(
        max_digits=12, decimal_places=2, blank=True, null=True
    )
    operating_hours_after = models.DecimalField(
        max_digits=12, decimal_places=2, blank=True, null=True
    )
    distance_after = models.DecimalField(
        max_digits=12, decimal_places=2, blank=True, null=True
    )

    # ==========================================================================
    # Estimates
    # ==========================================================================

    estimated_labor_cost = models.DecimalField(
        max_digits=12, decimal_places=2, blank=True, null=True
    )
    estimated_parts_cost = models.DecimalField(
        max_digits=12, decimal_places=2, blank=True, null=True
    )
    estimated_external_cost = models.DecimalField(
        max_digits=12, decimal_places=2, blank=True, null=True
    )
    estimated_total_cost = models.DecimalField(
        max_digits=12, decimal_places=2, blank=True, null=True
    )

    # ==========================================================================
    # Actual Costs
    # ==========================================================================

    labor_cost = models.DecimalField(max_digits=12, decimal_places=2, default=ZERO)
    parts_cost = models.DecimalField(max_digits=12, decimal_places=2, default=ZERO)
    external_cost = models.DecimalField(max_digits=12, decimal_places=2, default=ZERO)
    total_cost = models.DecimalField(max_digits=12, decimal_places=2, default=ZERO)

    class Meta:
        db_table = 'maintenance_records'
        ordering = ['-created_at']
        verbose_name = 'Maintenance Record'
        verbose_name_plural = 'Maintenance Records'
        indexes = [
            models.Index(fields=['status']),
            models.Index(fields=['maintenance_type']),
            models.Index(fields=['scheduled_start']),
        ]

    def __str__(self):
        return f"{self.work_order_number}: {self.title}"

    def save(self, *args, **kwargs):
        if not self.work_order_number:
            self.work_order_number = self._generate_work_order_number()
        super().save(*args, **kwargs)

    def _generate_work_order_number(self) -> str:
        """Generate unique work order number."""
        prefix = f"WO-{timezone.now():%Y%m%d}-"
        count = MaintenanceRecord.objects.filter(
            work_order_number__startswith=prefix
        ).count() + 1
        number = f"{prefix}{count:04d}"
        while MaintenanceRecord.objects.filter(work_order_number=number).exists():
            count += 1
            number = f"{prefix}{count:04d}"
        return number

    # ==========================================================================
    # Properties
    # ==========================================================================

    @property
    def is_open(self) -> bool:
        return self.status not in [self.Status.COMPLETED, self.Status.CANCELLED]

    @property
    def is_approval_satisfied(self) -> bool:
        return not self.approval_required or self.approved_at is not None

    @property
    def is_overdue(self) -> bool:
        if not self.scheduled_end:
            return False
        return self.is_open and self.scheduled_end < timezone.now()

    @property
    def duration_variance(self) -> Optional[int]:
        """Actual minus estimated duration, in minutes."""
        if self.actual_duration is None or self.estimated_duration is None:
            return None
        return self.actual_duration - self.estimated_duration


class MaintenanceScheduleRecord(UUIDPrimaryKeyMixin):
    """
    Association between work orders and the schedules they fulfil.
    """

    maintenance_record = models.ForeignKey(
        MaintenanceRecord,
        on_delete=models.CASCADE,
        related_name='schedule_links'
    )
    maintenance_schedule = models.ForeignKey(
        MaintenanceSchedule,
        on_delete=models.CASCADE,
        related_name='record_links'
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'maintenance_schedule_records'
        constraints = [
            models.UniqueConstraint(
                fields=['maintenance_record', 'maintenance_schedule'],
                name='unique_schedule_per_record'
            ),
        ]


class MaintenanceStatusLog(UUIDPrimaryKeyMixin):
    """
    Append-only record of work order status changes.
    """

    maintenance_record = models.ForeignKey(
        MaintenanceRecord,
        on_delete=models.CASCADE,
        related_name='status_logs'
    )
    from_status = models.CharField(
        max_length=20,
        choices=MaintenanceRecord.Status.choices,
        blank=True,
        null=True
    )
    to_status = models.CharField(max_length=20, choices=MaintenanceRecord.Status.choices)
    changed_by = models.UUIDField(blank=True, null=True)
    changed_at = models.DateTimeField(default=timezone.now)
    notes = models.TextField(blank=True, null=True)

    class Meta:
        db_table = 'maintenance_status_logs'
        ordering = ['changed_at']
        verbose_name = 'Maintenance Status Log'
        verbose_name_plural = 'Maintenance Status Logs'

    def __str__(self):
        return f"{self.maintenance_record_id}: {self.from_status} -> {self.to_status}"
