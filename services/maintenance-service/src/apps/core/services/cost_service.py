# services/maintenance-service/src/apps/core/services/cost_service.py
"""
Cost Service

Keeps work order cost totals consistent with the part list and the labor
and external cost components.
"""

import uuid
import logging
from decimal import Decimal
from typing import Optional, Dict, Any, List

from dateutil.relativedelta import relativedelta
from django.conf import settings
from django.db import transaction
from django.db.models import Sum
from django.utils import timezone

from apps.core.models import MaintenanceRecord, MaintenancePart
from apps.core.exceptions import ValidationFailedError

logger = logging.getLogger(__name__)


ZERO = Decimal('0.00')
CENT = Decimal('0.01')

OVER_BUDGET = 'over_budget'
UNDER_BUDGET = 'under_budget'
ON_BUDGET = 'on_budget'


class CostService:
    """
    Service for work order cost reconciliation.

    Handles:
    - Part line validation
    - Part list replacement
    - Cost totals
    - Variance reporting
    """

    PART_FIELDS = [
        'part_number', 'part_name', 'category', 'supplier',
        'quantity_used', 'unit_cost', 'total_cost',
        'installation_date', 'warranty_period_months',
        'warranty_expires_at', 'is_critical_part',
    ]

    def __init__(self, tolerance: Decimal = None):
        if tolerance is None:
            tolerance = getattr(settings, 'PART_COST_TOLERANCE', '0.01')
        self.tolerance = Decimal(str(tolerance))

    # ==========================================================================
    # Reconciliation
    # ==========================================================================

    def reconcile(self, record: MaintenanceRecord, save: bool = True) -> MaintenanceRecord:
        """
        Recompute ``parts_cost`` and ``total_cost`` from the stored parts.

        Unset cost components count as zero.
        """
        parts_cost = record.parts.aggregate(total=Sum('total_cost'))['total'] or ZERO

        record.parts_cost = parts_cost
        record.labor_cost = record.labor_cost or ZERO
        record.external_cost = record.external_cost or ZERO
        record.total_cost = record.labor_cost + record.parts_cost + record.external_cost

        if save:
            record.save(update_fields=[
                'labor_cost', 'parts_cost', 'external_cost', 'total_cost', 'updated_at'
            ])

        logger.info(
            f"Reconciled costs for work order {record.work_order_number}: "
            f"parts={record.parts_cost} total={record.total_cost}"
        )
        return record

    # ==========================================================================
    # Part Lines
    # ==========================================================================

    def clean_part(self, data: Dict[str, Any], prefix: str = 'part') -> Dict[str, Any]:
        """
        Validate one part line and return its normalized field values.

        A supplied ``total_cost`` must match ``quantity_used * unit_cost``
        within tolerance; a missing one is computed.
        """
        errors = {}
        cleaned = {f: data[f] for f in self.PART_FIELDS if f in data}

        for field in ('part_number', 'part_name'):
            value = data.get(field)
            if value is None or (isinstance(value, str) and not value.strip()):
                errors[f'{prefix}.{field}'] = 'This field is required.'

        quantity = self._decimal(data.get('quantity_used'), f'{prefix}.quantity_used', errors)
        unit_cost = self._decimal(data.get('unit_cost'), f'{prefix}.unit_cost', errors)

        if quantity is not None and quantity <= 0:
            errors[f'{prefix}.quantity_used'] = 'Must be greater than zero.'
        if unit_cost is not None and unit_cost < 0:
            errors[f'{prefix}.unit_cost'] = 'Cannot be negative.'

        if f'{prefix}.quantity_used' not in errors and f'{prefix}.unit_cost' not in errors:
            expected = (quantity * unit_cost).quantize(CENT)
            if data.get('total_cost') is None:
                cleaned['total_cost'] = expected
            else:
                supplied = self._decimal(data['total_cost'], f'{prefix}.total_cost', errors)
                if supplied is not None and abs(supplied - expected) > self.tolerance:
                    errors[f'{prefix}.total_cost'] = (
                        f"Total {supplied} does not match quantity x unit cost "
                        f"(expected {expected})."
                    )
                elif supplied is not None:
                    cleaned['total_cost'] = supplied
            cleaned['quantity_used'] = quantity
            cleaned['unit_cost'] = unit_cost

        if errors:
            raise ValidationFailedError(errors)

        if (
            cleaned.get('warranty_period_months')
            and not cleaned.get('warranty_expires_at')
        ):
            installed = cleaned.get('installation_date') or timezone.now()
            cleaned['warranty_expires_at'] = installed + relativedelta(
                months=int(cleaned['warranty_period_months'])
            )

        return cleaned

    @transaction.atomic
    def update_parts(
        self,
        record: MaintenanceRecord,
        parts: List[Dict[str, Any]]
    ) -> MaintenanceRecord:
        """
        Replace the part list of a work order.

        Items carrying an ``id`` update that part, items without one are
        created, and parts missing from the list are deleted. Every line is
        validated before anything is written.
        """
        existing = {part.id: part for part in record.parts.all()}

        cleaned_lines = []
        errors = {}
        for index, data in enumerate(parts):
            prefix = f'parts[{index}]'
            part_id = data.get('id')
            if part_id is not None and self._as_uuid(part_id) not in existing:
                errors[f'{prefix}.id'] = (
                    f"Part {part_id} does not belong to work order "
                    f"{record.work_order_number}."
                )
                continue
            try:
                cleaned = self.clean_part(data, prefix=prefix)
            except ValidationFailedError as exc:
                errors.update(exc.errors)
                continue
            cleaned_lines.append((self._as_uuid(part_id) if part_id else None, cleaned))

        if errors:
            raise ValidationFailedError(errors)

        kept = set()
        for part_id, cleaned in cleaned_lines:
            if part_id:
                part = existing[part_id]
                for field, value in cleaned.items():
                    setattr(part, field, value)
                part.save()
                kept.add(part_id)
            else:
                MaintenancePart.objects.create(maintenance_record=record, **cleaned)

        removed = [pid for pid in existing if pid not in kept]
        if removed:
            MaintenancePart.objects.filter(id__in=removed).delete()

        logger.info(
            f"Replaced parts on work order {record.work_order_number}: "
            f"{len(cleaned_lines)} lines, {len(removed)} removed"
        )
        return self.reconcile(record)

    @transaction.atomic
    def add_part(self, record: MaintenanceRecord, data: Dict[str, Any]) -> MaintenancePart:
        """Add a single part line and reconcile."""
        cleaned = self.clean_part(data)
        part = MaintenancePart.objects.create(maintenance_record=record, **cleaned)
        self.reconcile(record)
        return part

    @transaction.atomic
    def remove_part(self, record: MaintenanceRecord, part_id: uuid.UUID) -> MaintenanceRecord:
        """Remove a single part line and reconcile."""
        deleted, _ = record.parts.filter(id=part_id).delete()
        if not deleted:
            raise ValidationFailedError({
                'part_id': f"Part {part_id} does not belong to work order "
                           f"{record.work_order_number}."
            })
        return self.reconcile(record)

    # ==========================================================================
    # Estimates / Variance
    # ==========================================================================

    @staticmethod
    def estimated_total(
        labor: Optional[Decimal],
        parts: Optional[Decimal],
        external: Optional[Decimal]
    ) -> Optional[Decimal]:
        """Sum of the estimated components, or None when none is given."""
        components = [c for c in (labor, parts, external) if c is not None]
        if not components:
            return None
        return sum((Decimal(str(c)) for c in components), ZERO)

    def cost_variance(self, record: MaintenanceRecord) -> Dict[str, Any]:
        """Actual versus estimated cost and duration."""
        if record.estimated_total_cost is None:
            variance = None
            status = None
        else:
            variance = (record.total_cost or ZERO) - record.estimated_total_cost
            if variance > 0:
                status = OVER_BUDGET
            elif variance < 0:
                status = UNDER_BUDGET
            else:
                status = ON_BUDGET

        return {
            'estimated_total_cost': record.estimated_total_cost,
            'actual_total_cost': record.total_cost,
            'cost_variance': variance,
            'status': status,
            'duration_variance': record.duration_variance,
        }

    # ==========================================================================
    # Helpers
    # ==========================================================================

    @staticmethod
    def _decimal(value: Any, field: str, errors: Dict[str, str]) -> Optional[Decimal]:
        if value is None or isinstance(value, bool):
            errors[field] = 'A number is required.'
            return None
        try:
            return Decimal(str(value))
        except ArithmeticError:
            errors[field] = 'A number is required.'
            return None

    @staticmethod
    def _as_uuid(value: Any) -> Optional[uuid.UUID]:
        if isinstance(value, uuid.UUID):
            return value
        try:
            return uuid.UUID(str(value))
        except (ValueError, TypeError):
            return None
