# services/maintenance-service/src/apps/core/services/work_order_service.py
"""
Work Order Service

Manages the maintenance work order lifecycle: creation, approval gating,
status transitions and the side effects of completion.
"""

import uuid
import logging
from datetime import datetime
from decimal import Decimal
from typing import Optional, Dict, Any, List

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.utils import timezone

from shared.common.validators import validate_non_negative_decimal, validate_percentage

from apps.core import workflow
from apps.core.models import (
    Equipment,
    MaintenanceRecord,
    MaintenanceSchedule,
    MaintenanceScheduleRecord,
    MaintenanceStatusLog,
)
from apps.core.exceptions import (
    ConcurrentModificationError,
    EquipmentNotFoundError,
    ScheduleNotFoundError,
    ValidationFailedError,
    WorkOrderNotFoundError,
    WorkOrderStateError,
)
from .cost_service import CostService
from .equipment_service import EquipmentService
from .schedule_service import ScheduleService

logger = logging.getLogger(__name__)


class WorkOrderService:
    """
    Service for managing maintenance work orders.

    Handles:
    - Work order CRUD
    - Approval requirement at creation
    - Workflow transitions
    - Part list and cost reconciliation
    - Schedule fulfilment on completion
    """

    UPDATABLE_FIELDS = [
        'title', 'description', 'priority_level', 'scheduled_start',
        'scheduled_end', 'estimated_duration', 'technician_id',
        'external_vendor', 'work_performed', 'completion_percentage',
        'operating_hours_before', 'estimated_labor_cost',
        'estimated_parts_cost', 'estimated_external_cost',
        'estimated_total_cost', 'labor_cost', 'external_cost',
    ]

    NON_NEGATIVE_FIELDS = [
        'estimated_labor_cost', 'estimated_parts_cost', 'estimated_external_cost',
        'estimated_total_cost', 'labor_cost', 'external_cost',
        'operating_hours_before',
    ]

    APPROVAL_PRIORITIES = [
        MaintenanceRecord.Priority.CRITICAL,
        MaintenanceRecord.Priority.EMERGENCY,
    ]

    def __init__(
        self,
        cost_service: CostService = None,
        schedule_service: ScheduleService = None,
        equipment_service: EquipmentService = None
    ):
        self.cost_service = cost_service or CostService()
        self.schedule_service = schedule_service or ScheduleService()
        self.equipment_service = equipment_service or EquipmentService()

    # ==========================================================================
    # Work Order CRUD
    # ==========================================================================

    @transaction.atomic
    def create_work_order(
        self,
        equipment_id: uuid.UUID,
        title: str,
        created_by: uuid.UUID = None,
        maintenance_type: str = MaintenanceRecord.MaintenanceType.PREVENTIVE,
        priority_level: str = MaintenanceRecord.Priority.MEDIUM,
        approval_required: bool = False,
        schedule_ids: List[uuid.UUID] = None,
        parts: List[Dict[str, Any]] = None,
        **kwargs
    ) -> MaintenanceRecord:
        """
        Create a new work order.

        ``approval_required`` is derived once here and never re-derived.
        The initial status is ``pending_approval`` when approval is
        required, ``scheduled`` otherwise.
        """
        errors = {}
        if maintenance_type not in MaintenanceRecord.MaintenanceType.values:
            errors['maintenance_type'] = f"Unknown maintenance type '{maintenance_type}'."
        if priority_level not in MaintenanceRecord.Priority.values:
            errors['priority_level'] = f"Unknown priority level '{priority_level}'."
        if not title or not title.strip():
            errors['title'] = 'This field is required.'

        unknown = [f for f in kwargs if f not in self.UPDATABLE_FIELDS + ['work_order_number']]
        for field in unknown:
            errors[field] = 'Cannot be set on creation.'
        errors.update(self._clean_fields(kwargs))
        if errors:
            raise ValidationFailedError(errors)

        equipment = self._get_equipment(equipment_id)
        schedules = self._get_schedules(schedule_ids or [], equipment)

        if kwargs.get('estimated_total_cost') is None:
            kwargs['estimated_total_cost'] = self.cost_service.estimated_total(
                kwargs.get('estimated_labor_cost'),
                kwargs.get('estimated_parts_cost'),
                kwargs.get('estimated_external_cost'),
            )

        approval_required = bool(approval_required) or self.requires_approval(
            maintenance_type=maintenance_type,
            priority_level=priority_level,
            estimated_total_cost=kwargs.get('estimated_total_cost'),
            external_vendor=kwargs.get('external_vendor'),
        )
        status = (
            MaintenanceRecord.Status.PENDING_APPROVAL
            if approval_required
            else MaintenanceRecord.Status.SCHEDULED
        )

        for field in ('labor_cost', 'external_cost'):
            if field in kwargs and kwargs[field] is None:
                del kwargs[field]
        kwargs['total_cost'] = (
            (kwargs.get('labor_cost') or Decimal('0.00'))
            + (kwargs.get('external_cost') or Decimal('0.00'))
        )

        now = timezone.now()
        record = MaintenanceRecord.objects.create(
            equipment=equipment,
            title=title.strip(),
            maintenance_type=maintenance_type,
            priority_level=priority_level,
            approval_required=approval_required,
            status=status,
            status_changed_at=now,
            status_changed_by=created_by,
            created_by=created_by,
            updated_by=created_by,
            **kwargs
        )

        for schedule in schedules:
            MaintenanceScheduleRecord.objects.create(
                maintenance_record=record,
                maintenance_schedule=schedule,
            )

        self._log_status(record, None, status, created_by, now, 'Work order created')

        if parts:
            self.cost_service.update_parts(record, parts)

        logger.info(
            f"Created work order {record.work_order_number} for equipment "
            f"{equipment.asset_number} ({status}, approval_required={approval_required})"
        )
        return record

    def requires_approval(
        self,
        maintenance_type: str,
        priority_level: str = None,
        estimated_total_cost: Optional[Decimal] = None,
        external_vendor: str = None
    ) -> bool:
        """Whether a new work order with these attributes needs approval."""
        if maintenance_type == MaintenanceRecord.MaintenanceType.EMERGENCY:
            return True

        if priority_level in self.APPROVAL_PRIORITIES:
            return True

        threshold = Decimal(str(getattr(settings, 'MAINTENANCE_APPROVAL_COST_THRESHOLD', 5000)))
        if estimated_total_cost is not None and Decimal(str(estimated_total_cost)) > threshold:
            return True

        if external_vendor and external_vendor.strip():
            return True

        return False

    def get_work_order(self, record_id: uuid.UUID, for_update: bool = False) -> MaintenanceRecord:
        """Get a work order by ID."""
        queryset = MaintenanceRecord.objects.filter(is_deleted=False)
        if for_update:
            queryset = queryset.select_for_update()
        try:
            return queryset.get(id=record_id)
        except MaintenanceRecord.DoesNotExist:
            raise WorkOrderNotFoundError(detail=f"Work order {record_id} not found")

    def get_by_number(self, work_order_number: str) -> MaintenanceRecord:
        """Get a work order by number."""
        try:
            return MaintenanceRecord.objects.get(
                work_order_number=work_order_number, is_deleted=False
            )
        except MaintenanceRecord.DoesNotExist:
            raise WorkOrderNotFoundError(detail=f"Work order {work_order_number} not found")

    @transaction.atomic
    def update_work_order(
        self,
        record_id: uuid.UUID,
        updated_by: uuid.UUID = None,
        expected_version: int = None,
        **kwargs
    ) -> MaintenanceRecord:
        """
        Update descriptive, planning and cost fields.

        Status never changes here; use ``transition``. Labor or external
        cost changes trigger reconciliation.
        """
        record = self._lock(record_id, expected_version)

        if record.status in [MaintenanceRecord.Status.COMPLETED, MaintenanceRecord.Status.CANCELLED]:
            raise WorkOrderStateError(record.work_order_number, record.status, 'update')

        errors = {}
        for field in kwargs:
            if field not in self.UPDATABLE_FIELDS:
                errors[field] = 'This field cannot be updated.'
        errors.update(self._clean_fields(kwargs))
        if errors:
            raise ValidationFailedError(errors)

        for field, value in kwargs.items():
            setattr(record, field, value)

        estimate_fields = {'estimated_labor_cost', 'estimated_parts_cost', 'estimated_external_cost'}
        if estimate_fields & set(kwargs) and 'estimated_total_cost' not in kwargs:
            record.estimated_total_cost = self.cost_service.estimated_total(
                record.estimated_labor_cost,
                record.estimated_parts_cost,
                record.estimated_external_cost,
            )

        if {'labor_cost', 'external_cost'} & set(kwargs):
            self.cost_service.reconcile(record, save=False)

        record.updated_by = updated_by
        record.save()

        logger.info(f"Updated work order {record.work_order_number}: {sorted(kwargs)}")
        return record

    @transaction.atomic
    def delete_work_order(
        self,
        record_id: uuid.UUID,
        deleted_by: uuid.UUID = None
    ) -> None:
        """Soft delete a work order that is not running or done."""
        record = self._lock(record_id)

        if record.status in [MaintenanceRecord.Status.COMPLETED, MaintenanceRecord.Status.IN_PROGRESS]:
            raise WorkOrderStateError(record.work_order_number, record.status, 'delete')

        record.soft_delete(deleted_by)
        logger.info(f"Deleted work order {record.work_order_number}")

    @transaction.atomic
    def duplicate_work_order(
        self,
        record_id: uuid.UUID,
        created_by: uuid.UUID = None
    ) -> MaintenanceRecord:
        """
        Copy a work order with its parts and schedule links.

        The copy gets a fresh number and starts over: approval, execution
        and completion data are not carried.
        """
        source = self.get_work_order(record_id)

        copied = {
            field: getattr(source, field)
            for field in [
                'description', 'estimated_duration', 'technician_id', 'external_vendor',
                'scheduled_start', 'scheduled_end', 'estimated_labor_cost',
                'estimated_parts_cost', 'estimated_external_cost',
                'estimated_total_cost',
            ]
        }
        parts = [
            {
                'part_number': part.part_number,
                'part_name': part.part_name,
                'category': part.category,
                'supplier': part.supplier,
                'quantity_used': part.quantity_used,
                'unit_cost': part.unit_cost,
                'warranty_period_months': part.warranty_period_months,
                'is_critical_part': part.is_critical_part,
            }
            for part in source.parts.all()
        ]

        duplicate = self.create_work_order(
            equipment_id=source.equipment_id,
            title=f"{source.title} (Copy)",
            created_by=created_by,
            maintenance_type=source.maintenance_type,
            priority_level=source.priority_level,
            approval_required=source.approval_required,
            schedule_ids=list(source.schedules.values_list('id', flat=True)),
            parts=parts,
            **copied
        )

        logger.info(
            f"Duplicated work order {source.work_order_number} as "
            f"{duplicate.work_order_number}"
        )
        return duplicate

    @transaction.atomic
    def link_schedules(
        self,
        record_id: uuid.UUID,
        schedule_ids: List[uuid.UUID]
    ) -> MaintenanceRecord:
        """Link further schedules to an open work order."""
        record = self._lock(record_id)
        if not record.is_open:
            raise WorkOrderStateError(record.work_order_number, record.status, 'link schedules to')

        for schedule in self._get_schedules(schedule_ids, record.equipment):
            MaintenanceScheduleRecord.objects.get_or_create(
                maintenance_record=record,
                maintenance_schedule=schedule,
            )
        return record

    # ==========================================================================
    # Workflow
    # ==========================================================================

    @transaction.atomic
    def transition(
        self,
        record_id: uuid.UUID,
        target_status: str,
        changed_by: uuid.UUID = None,
        expected_version: int = None,
        **extra
    ) -> MaintenanceRecord:
        """
        Move a work order to ``target_status``.

        The row is locked for the duration of the transaction. Validation
        runs before any write; the status change, its side effects, cost
        reconciliation and schedule fulfilment commit together or not at
        all.
        """
        record = self._lock(record_id, expected_version)
        source = record.status

        workflow.validate_transition(
            'work order', workflow.WORK_ORDER_TRANSITIONS, source, target_status
        )
        workflow.check_approval_gate(record, target_status)

        now = timezone.now()
        changed = workflow.enter_status(
            record,
            target_status,
            now,
            extra,
            changed_by=changed_by,
            auto_stamp_completion=getattr(settings, 'MAINTENANCE_AUTO_STAMP_COMPLETION', True),
        )

        record.status = target_status
        record.status_changed_at = now
        record.status_changed_by = changed_by
        record.updated_by = changed_by
        changed.update({'status', 'status_changed_at', 'status_changed_by', 'updated_by', 'updated_at'})

        if target_status == workflow.COMPLETED:
            self.cost_service.reconcile(record, save=False)
            changed.update({'labor_cost', 'parts_cost', 'external_cost', 'total_cost'})

        record.save(update_fields=sorted(changed))
        self._log_status(record, source, target_status, changed_by, now, extra.get('reason'))

        if target_status == workflow.IN_PROGRESS:
            self._hold_equipment(record, changed_by)
        elif target_status == workflow.COMPLETED:
            self._fulfil_schedules(record)
            self._release_equipment(record, changed_by)

        logger.info(
            f"Work order {record.work_order_number} status {source} -> {target_status}"
        )
        return record

    def allowed_transitions(self, record: MaintenanceRecord) -> List[str]:
        """Statuses the work order can move to next."""
        return sorted(workflow.allowed_targets(workflow.WORK_ORDER_TRANSITIONS, record.status))

    def submit_for_approval(self, record_id: uuid.UUID, submitted_by: uuid.UUID = None) -> MaintenanceRecord:
        """Request (re-)approval of the work order."""
        return self.transition(record_id, workflow.PENDING_APPROVAL, changed_by=submitted_by)

    def approve(
        self,
        record_id: uuid.UUID,
        approved_by: uuid.UUID,
        notes: str = None
    ) -> MaintenanceRecord:
        """Approve the work order."""
        return self.transition(
            record_id, workflow.APPROVED,
            changed_by=approved_by, approved_by=approved_by, approval_notes=notes,
        )

    def reject(
        self,
        record_id: uuid.UUID,
        rejected_by: uuid.UUID,
        reason: str
    ) -> MaintenanceRecord:
        """Reject the work order."""
        return self.transition(
            record_id, workflow.REJECTED,
            changed_by=rejected_by, rejected_by=rejected_by, rejection_reason=reason,
        )

    def start(
        self,
        record_id: uuid.UUID,
        started_by: uuid.UUID = None,
        operating_hours: Decimal = None
    ) -> MaintenanceRecord:
        """Start work on the work order."""
        return self.transition(
            record_id, workflow.IN_PROGRESS,
            changed_by=started_by, operating_hours_before=operating_hours,
        )

    def hold(self, record_id: uuid.UUID, reason: str = None, held_by: uuid.UUID = None) -> MaintenanceRecord:
        """Put work order on hold."""
        return self.transition(record_id, workflow.ON_HOLD, changed_by=held_by, reason=reason)

    def resume(self, record_id: uuid.UUID, resumed_by: uuid.UUID = None) -> MaintenanceRecord:
        """Resume work order from hold."""
        return self.transition(record_id, workflow.IN_PROGRESS, changed_by=resumed_by)

    def complete(
        self,
        record_id: uuid.UUID,
        completed_by: uuid.UUID = None,
        completion_notes: str = None,
        actual_end: datetime = None,
        **extra
    ) -> MaintenanceRecord:
        """Complete the work order."""
        extra.setdefault('completion_percentage', 100)
        if completion_notes is not None:
            extra['completion_notes'] = completion_notes
        if actual_end is not None:
            extra['actual_end'] = actual_end
        return self.transition(record_id, workflow.COMPLETED, changed_by=completed_by, **extra)

    def cancel(self, record_id: uuid.UUID, reason: str = None, cancelled_by: uuid.UUID = None) -> MaintenanceRecord:
        """Cancel the work order."""
        return self.transition(record_id, workflow.CANCELLED, changed_by=cancelled_by, reason=reason)

    def reopen(self, record_id: uuid.UUID, reopened_by: uuid.UUID = None, reason: str = None) -> MaintenanceRecord:
        """
        Reopen a completed work order.

        Exceptional action; callers are responsible for restricting who may
        use it.
        """
        return self.transition(record_id, workflow.IN_PROGRESS, changed_by=reopened_by, reason=reason)

    def get_status_history(self, record_id: uuid.UUID) -> List[MaintenanceStatusLog]:
        """Status log of a work order, oldest first."""
        return list(
            MaintenanceStatusLog.objects.filter(maintenance_record_id=record_id)
            .order_by('changed_at')
        )

    # ==========================================================================
    # Parts / Costs
    # ==========================================================================

    @transaction.atomic
    def update_parts(
        self,
        record_id: uuid.UUID,
        parts: List[Dict[str, Any]],
        expected_version: int = None
    ) -> MaintenanceRecord:
        """Replace the part list and reconcile costs."""
        record = self._lock(record_id, expected_version)

        if record.status in [MaintenanceRecord.Status.COMPLETED, MaintenanceRecord.Status.CANCELLED]:
            raise WorkOrderStateError(record.work_order_number, record.status, 'change parts on')

        return self.cost_service.update_parts(record, parts)

    def cost_variance(self, record_id: uuid.UUID) -> Dict[str, Any]:
        """Actual versus estimated cost of a work order."""
        return self.cost_service.cost_variance(self.get_work_order(record_id))

    # ==========================================================================
    # Completion Side Effects
    # ==========================================================================

    def _fulfil_schedules(self, record: MaintenanceRecord) -> None:
        """Advance every linked active schedule from post-maintenance counters."""
        equipment = self.equipment_service.get_equipment(record.equipment_id, for_update=True)

        if record.operating_hours_after is not None or record.distance_after is not None:
            equipment = self.equipment_service.record_usage(
                equipment.id,
                operating_hours=record.operating_hours_after,
                distance=record.distance_after,
            )

        schedules = (
            MaintenanceSchedule.objects.select_for_update()
            .filter(record_links__maintenance_record=record, is_active=True)
        )
        for schedule in schedules:
            self.schedule_service.fulfill(
                schedule,
                completed_at=record.actual_end,
                operating_hours=equipment.operating_hours,
                kilometers=equipment.distance,
                equipment_id=equipment.id,
            )

    def _hold_equipment(self, record: MaintenanceRecord, changed_by: uuid.UUID = None) -> None:
        if not getattr(settings, 'MAINTENANCE_HOLD_EQUIPMENT_ON_START', False):
            return

        equipment = record.equipment
        if equipment.status in [Equipment.Status.ACTIVE, Equipment.Status.STANDBY]:
            self.equipment_service.change_status(
                equipment.id,
                Equipment.Status.MAINTENANCE,
                reason=f"Work order {record.work_order_number} started",
                changed_by=changed_by,
            )

    def _release_equipment(self, record: MaintenanceRecord, changed_by: uuid.UUID = None) -> None:
        if not getattr(settings, 'MAINTENANCE_RELEASE_EQUIPMENT_ON_COMPLETION', False):
            return

        equipment = self.equipment_service.get_equipment(record.equipment_id)
        if equipment.status != Equipment.Status.MAINTENANCE:
            return

        still_open = (
            MaintenanceRecord.objects.filter(
                equipment_id=equipment.id,
                is_deleted=False,
                status__in=workflow.OPEN_EXECUTION_STATUSES,
            )
            .exclude(id=record.id)
            .exists()
        )
        if not still_open:
            self.equipment_service.change_status(
                equipment.id,
                Equipment.Status.ACTIVE,
                reason=f"Work order {record.work_order_number} completed",
                changed_by=changed_by,
            )

    # ==========================================================================
    # Helpers
    # ==========================================================================

    def _lock(self, record_id: uuid.UUID, expected_version: int = None) -> MaintenanceRecord:
        record = self.get_work_order(record_id, for_update=True)
        if expected_version is not None and record.version != expected_version:
            raise ConcurrentModificationError(expected_version, record.version)
        return record

    def _get_equipment(self, equipment_id: uuid.UUID) -> Equipment:
        try:
            return Equipment.objects.get(id=equipment_id)
        except Equipment.DoesNotExist:
            raise EquipmentNotFoundError(detail=f"Equipment {equipment_id} not found")

    def _get_schedules(
        self,
        schedule_ids: List[uuid.UUID],
        equipment: Equipment
    ) -> List[MaintenanceSchedule]:
        schedules = list(MaintenanceSchedule.objects.filter(id__in=schedule_ids))

        found = {schedule.id for schedule in schedules}
        missing = [str(sid) for sid in schedule_ids if sid not in found]
        if missing:
            raise ScheduleNotFoundError(
                detail=f"Maintenance schedule(s) not found: {', '.join(missing)}",
                extra_data={'schedule_ids': missing},
            )

        foreign = [str(s.id) for s in schedules if not s.applies_to(equipment)]
        if foreign:
            raise ValidationFailedError({
                'schedule_ids': (
                    f"Schedules {', '.join(foreign)} do not cover equipment "
                    f"{equipment.asset_number}."
                )
            })
        return schedules

    def _clean_fields(self, data: Dict[str, Any]) -> Dict[str, str]:
        """Normalize numeric fields in place and return field errors."""
        errors = {}
        for field in self.NON_NEGATIVE_FIELDS:
            if data.get(field) is None:
                continue
            try:
                data[field] = validate_non_negative_decimal(data[field], field)
            except DjangoValidationError as exc:
                errors[field] = exc.messages[0]

        if data.get('completion_percentage') is not None:
            try:
                data['completion_percentage'] = int(
                    validate_percentage(data['completion_percentage'], 'completion_percentage')
                )
            except DjangoValidationError as exc:
                errors['completion_percentage'] = exc.messages[0]

        if data.get('priority_level') is not None and (
            data['priority_level'] not in MaintenanceRecord.Priority.values
        ):
            errors['priority_level'] = f"Unknown priority level '{data['priority_level']}'."

        start, end = data.get('scheduled_start'), data.get('scheduled_end')
        if start and end and end < start:
            errors['scheduled_end'] = 'Scheduled end cannot be before the scheduled start.'

        return errors

    def _log_status(
        self,
        record: MaintenanceRecord,
        from_status: Optional[str],
        to_status: str,
        changed_by: uuid.UUID = None,
        changed_at: datetime = None,
        notes: str = None
    ) -> MaintenanceStatusLog:
        return MaintenanceStatusLog.objects.create(
            maintenance_record=record,
            from_status=from_status,
            to_status=to_status,
            changed_by=changed_by,
            changed_at=changed_at or timezone.now(),
            notes=notes,
        )
