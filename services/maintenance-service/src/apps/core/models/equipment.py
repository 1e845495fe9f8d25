# services/maintenance-service/src/apps/core/models/equipment.py
"""
Equipment Models

Heavy equipment assets, their types, and the status audit trail.
"""

import uuid
from decimal import Decimal
from typing import Optional

from django.db import models
from django.utils import timezone

from shared.common.mixins import BaseModel, UUIDPrimaryKeyMixin

from apps.core import workflow


class EquipmentType(BaseModel):
    """
    Equipment type (excavator, wheel loader, ...).

    Type-level maintenance schedules apply to every asset of the type.
    """

    name = models.CharField(max_length=255)
    code = models.CharField(max_length=50, unique=True)
    description = models.TextField(blank=True, null=True)

    class Meta:
        db_table = 'equipment_types'
        ordering = ['name']
        verbose_name = 'Equipment Type'
        verbose_name_plural = 'Equipment Types'

    def __str__(self):
        return f"{self.name} ({self.code})"


class Equipment(BaseModel):
    """
    Heavy equipment asset.

    Carries the lifecycle status, the assigned operator and the usage
    counters that drive hour and distance based maintenance.
    """

    class Status(models.TextChoices):
        ACTIVE = 'active', 'Active'
        MAINTENANCE = 'maintenance', 'In Maintenance'
        REPAIR = 'repair', 'Under Repair'
        STANDBY = 'standby', 'Standby'
        RETIRED = 'retired', 'Retired'
        DISPOSAL = 'disposal', 'Disposal'

    # ==========================================================================
    # Identification
    # ==========================================================================

    asset_number = models.CharField(max_length=50, unique=True)
    serial_number = models.CharField(max_length=100, blank=True, null=True)
    name = models.CharField(max_length=255)
    model_number = models.CharField(max_length=100, blank=True, null=True)
    equipment_type = models.ForeignKey(
        EquipmentType,
        on_delete=models.PROTECT,
        related_name='equipment',
        blank=True,
        null=True
    )

    # ==========================================================================
    # Status
    # ==========================================================================

    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.ACTIVE,
        db_index=True
    )
    status_changed_at = models.DateTimeField(blank=True, null=True)
    status_changed_by = models.UUIDField(blank=True, null=True)
    status_notes = models.TextField(blank=True, null=True)

    # ==========================================================================
    # Assignment
    # ==========================================================================

    assigned_operator = models.UUIDField(blank=True, null=True, db_index=True)
    assigned_at = models.DateTimeField(blank=True, null=True)

    # ==========================================================================
    # Usage Counters
    # ==========================================================================

    operating_hours = models.DecimalField(
        max_digits=12, decimal_places=2, default=Decimal('0.00')
    )
    distance = models.DecimalField(
        max_digits=12, decimal_places=2, default=Decimal('0.00'),
        help_text='Odometer reading in kilometers'
    )

    class Meta:
        db_table = 'equipment'
        ordering = ['asset_number']
        verbose_name = 'Equipment'
        verbose_name_plural = 'Equipment'
        indexes = [
            models.Index(fields=['status']),
            models.Index(fields=['assigned_operator']),
        ]

    def __str__(self):
        return f"{self.asset_number}: {self.name}"

    # ==========================================================================
    # Properties
    # ==========================================================================

    @property
    def is_operational(self) -> bool:
        return self.status == self.Status.ACTIVE

    @property
    def is_assigned(self) -> bool:
        return self.assigned_operator is not None

    # ==========================================================================
    # Workflow Methods
    # ==========================================================================

    def change_status(
        self,
        target: str,
        changed_by: uuid.UUID = None,
        notes: str = None
    ) -> 'EquipmentStatusLog':
        """
        Move the asset to ``target`` and record the change.

        Entering a non-operational status releases the operator in the same
        save.
        """
        workflow.validate_transition(
            'equipment', workflow.EQUIPMENT_TRANSITIONS, self.status, target
        )

        previous = self.status
        now = timezone.now()

        self.status = target
        self.status_changed_at = now
        self.status_changed_by = changed_by
        self.status_notes = notes
        self.updated_by = changed_by
        update_fields = [
            'status', 'status_changed_at', 'status_changed_by',
            'status_notes', 'updated_by', 'updated_at'
        ]

        if target in workflow.NON_OPERATIONAL_STATUSES and self.assigned_operator:
            self.assigned_operator = None
            self.assigned_at = None
            update_fields += ['assigned_operator', 'assigned_at']

        self.save(update_fields=update_fields)

        return EquipmentStatusLog.objects.create(
            equipment=self,
            previous_status=previous,
            new_status=target,
            changed_by=changed_by,
            changed_at=now,
            notes=notes,
        )

    def assign(self, operator_id: uuid.UUID, assigned_by: uuid.UUID = None) -> None:
        """Assign an operator to the asset."""
        self.assigned_operator = operator_id
        self.assigned_at = timezone.now()
        self.updated_by = assigned_by
        self.save(update_fields=['assigned_operator', 'assigned_at', 'updated_by', 'updated_at'])

    def unassign(self) -> None:
        """Release the assigned operator."""
        self.assigned_operator = None
        self.assigned_at = None
        self.save(update_fields=['assigned_operator', 'assigned_at', 'updated_at'])

    def update_counters(
        self,
        operating_hours: Optional[Decimal] = None,
        distance: Optional[Decimal] = None
    ) -> None:
        """Store new absolute counter readings."""
        update_fields = ['updated_at']
        if operating_hours is not None:
            self.operating_hours = operating_hours
            update_fields.append('operating_hours')
        if distance is not None:
            self.distance = distance
            update_fields.append('distance')
        self.save(update_fields=update_fields)


class EquipmentStatusLog(UUIDPrimaryKeyMixin):
    """
    Append-only record of equipment status changes.
    """

    equipment = models.ForeignKey(
        Equipment,
        on_delete=models.CASCADE,
        related_name='status_logs'
    )
    previous_status = models.CharField(
        max_length=20,
        choices=Equipment.Status.choices,
        blank=True,
        null=True
    )
    new_status = models.CharField(max_length=20, choices=Equipment.Status.choices)
    changed_by = models.UUIDField(blank=True, null=True)
    changed_at = models.DateTimeField(default=timezone.now)
    notes = models.TextField(blank=True, null=True)

    class Meta:
        db_table = 'equipment_status_logs'
        ordering = ['-changed_at']
        verbose_name = 'Equipment Status Log'
        verbose_name_plural = 'Equipment Status Logs'

    def __str__(self):
        return f"{self.equipment_id}: {self.previous_status} -> {self.new_status}"
