# services/maintenance-service/src/apps/core/services/equipment_service.py
"""
Equipment Service

Equipment status transitions, operator assignment and usage counters.
"""

import uuid
import logging
from decimal import Decimal
from typing import Any, Dict, Optional, List

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from django.core.exceptions import ValidationError as DjangoValidationError

from shared.common.validators import validate_non_negative_decimal

from apps.core import workflow
from apps.core.models import Equipment, EquipmentStatusLog
from apps.core.exceptions import (
    AssignmentConflictError,
    CounterAnomalyError,
    EquipmentNotFoundError,
    ValidationFailedError,
)

logger = logging.getLogger(__name__)


class EquipmentService:
    """
    Service for the equipment side of the maintenance lifecycle.

    Handles:
    - Equipment registration
    - Status transitions and the status log
    - Exclusive operator assignment
    - Usage counter readings
    """

    # ==========================================================================
    # Registry
    # ==========================================================================

    @transaction.atomic
    def create_equipment(
        self,
        asset_number: str,
        name: str,
        created_by: uuid.UUID = None,
        **kwargs
    ) -> Equipment:
        """Register a new equipment asset."""
        status = kwargs.pop('status', Equipment.Status.ACTIVE)
        if status not in Equipment.Status.values:
            raise ValidationFailedError({'status': f"Unknown equipment status '{status}'."})

        readings = {
            field: kwargs[field] for field in ('operating_hours', 'distance')
            if kwargs.get(field) is not None
        }
        kwargs.update(self._clean_readings(readings))

        now = timezone.now()
        equipment = Equipment.objects.create(
            asset_number=asset_number,
            name=name,
            status=status,
            status_changed_at=now,
            status_changed_by=created_by,
            created_by=created_by,
            updated_by=created_by,
            **kwargs
        )
        EquipmentStatusLog.objects.create(
            equipment=equipment,
            previous_status=None,
            new_status=status,
            changed_by=created_by,
            changed_at=now,
            notes='Equipment registered',
        )

        logger.info(f"Registered equipment {equipment.asset_number} ({status})")
        return equipment

    def get_equipment(self, equipment_id: uuid.UUID, for_update: bool = False) -> Equipment:
        """Get equipment by ID, optionally locking the row."""
        queryset = Equipment.objects.all()
        if for_update:
            queryset = queryset.select_for_update()
        try:
            return queryset.get(id=equipment_id)
        except Equipment.DoesNotExist:
            raise EquipmentNotFoundError(detail=f"Equipment {equipment_id} not found")

    def get_status_history(self, equipment_id: uuid.UUID) -> List[EquipmentStatusLog]:
        """Status log of an asset, newest first."""
        return list(
            EquipmentStatusLog.objects.filter(equipment_id=equipment_id)
            .order_by('-changed_at')
        )

    # ==========================================================================
    # Status
    # ==========================================================================

    @transaction.atomic
    def change_status(
        self,
        equipment_id: uuid.UUID,
        target_status: str,
        reason: str = None,
        changed_by: uuid.UUID = None
    ) -> Equipment:
        """
        Move equipment to ``target_status``.

        Entering maintenance, repair, retired or disposal clears the
        operator assignment in the same transaction.
        """
        equipment = self.get_equipment(equipment_id, for_update=True)
        previous = equipment.status
        released = equipment.assigned_operator

        equipment.change_status(target_status, changed_by=changed_by, notes=reason)

        logger.info(
            f"Equipment {equipment.asset_number} status {previous} -> {target_status}"
        )
        if released and equipment.assigned_operator is None:
            logger.info(
                f"Released operator {released} from equipment {equipment.asset_number}"
            )
        return equipment

    def allowed_statuses(self, equipment: Equipment) -> List[str]:
        """Statuses the asset can move to next."""
        return sorted(workflow.allowed_targets(workflow.EQUIPMENT_TRANSITIONS, equipment.status))

    # ==========================================================================
    # Assignment
    # ==========================================================================

    @transaction.atomic
    def assign_operator(
        self,
        equipment_id: uuid.UUID,
        operator_id: uuid.UUID,
        assigned_by: uuid.UUID = None
    ) -> Equipment:
        """
        Assign an operator to active, unassigned equipment.

        Never reassigns silently: an existing assignment must be released
        first.
        """
        equipment = self.get_equipment(equipment_id, for_update=True)

        if equipment.status != Equipment.Status.ACTIVE:
            raise AssignmentConflictError(
                detail=(
                    f"Equipment {equipment.asset_number} is '{equipment.status}'; "
                    f"only active equipment can be assigned"
                ),
                extra_data={'equipment_id': str(equipment.id), 'status': equipment.status},
            )

        if equipment.assigned_operator is not None:
            raise AssignmentConflictError(
                detail=(
                    f"Equipment {equipment.asset_number} is already assigned to "
                    f"operator {equipment.assigned_operator}"
                ),
                extra_data={
                    'equipment_id': str(equipment.id),
                    'assigned_operator': str(equipment.assigned_operator),
                },
            )

        limit = getattr(settings, 'EQUIPMENT_MAX_ASSIGNMENTS_PER_OPERATOR', 1)
        held = (
            Equipment.objects.filter(assigned_operator=operator_id)
            .exclude(id=equipment.id)
            .count()
        )
        if limit and held >= limit:
            raise AssignmentConflictError(
                detail=f"Operator {operator_id} already holds {held} equipment assignment(s)",
                extra_data={'operator_id': str(operator_id), 'held': held, 'limit': limit},
            )

        equipment.assign(operator_id, assigned_by=assigned_by)
        logger.info(f"Assigned operator {operator_id} to equipment {equipment.asset_number}")
        return equipment

    @transaction.atomic
    def unassign_operator(self, equipment_id: uuid.UUID) -> Equipment:
        """Release the operator assignment, if any."""
        equipment = self.get_equipment(equipment_id, for_update=True)
        if equipment.assigned_operator is not None:
            operator = equipment.assigned_operator
            equipment.unassign()
            logger.info(f"Released operator {operator} from equipment {equipment.asset_number}")
        return equipment

    # ==========================================================================
    # Usage
    # ==========================================================================

    @transaction.atomic
    def record_usage(
        self,
        equipment_id: uuid.UUID,
        operating_hours: Optional[Decimal] = None,
        distance: Optional[Decimal] = None
    ) -> Equipment:
        """
        Store new absolute counter readings.

        Counters never decrease; a lower reading is rejected as an anomaly.
        """
        equipment = self.get_equipment(equipment_id, for_update=True)

        readings = self._clean_readings({
            field: value
            for field, value in (('operating_hours', operating_hours), ('distance', distance))
            if value is not None
        })

        errors = {}
        for field, value in readings.items():
            current = getattr(equipment, field)
            if value < current:
                errors[field] = f"Reading {value} is below the current reading {current}."

        if errors:
            logger.warning(
                f"Counter anomaly on equipment {equipment.asset_number}: {errors}"
            )
            raise CounterAnomalyError(errors)

        equipment.update_counters(**readings)
        logger.info(f"Recorded usage for equipment {equipment.asset_number}: {readings}")
        return equipment

    # ==========================================================================
    # Helpers
    # ==========================================================================

    @staticmethod
    def _clean_readings(readings: Dict[str, Any]) -> Dict[str, Decimal]:
        """Convert counter readings to non-negative decimals."""
        cleaned = {}
        errors = {}
        for field, value in readings.items():
            try:
                cleaned[field] = validate_non_negative_decimal(value, field)
            except DjangoValidationError as exc:
                errors[field] = exc.messages[0]
        if errors:
            raise ValidationFailedError(errors)
        return cleaned
