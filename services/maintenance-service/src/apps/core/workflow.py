# services/maintenance-service/src/apps/core/workflow.py
"""
Lifecycle Workflow

Transition graphs for work orders and equipment, plus the entry handlers
that stamp and validate a work order when it enters a new status.

Handlers only touch the in-memory instance. The service layer persists the
result, so a handler that raises leaves the database untouched.
"""

from datetime import datetime
from types import MappingProxyType
from typing import Any, Callable, Dict, FrozenSet, Mapping, Optional, Set

from django.core.exceptions import ValidationError as DjangoValidationError

from shared.common.validators import validate_non_negative_decimal, validate_percentage

from .exceptions import (
    ApprovalRequiredError,
    InvalidTransitionError,
    ValidationFailedError,
)


# ==========================================================================
# Work Order Graph
# ==========================================================================

PENDING_APPROVAL = 'pending_approval'
APPROVED = 'approved'
REJECTED = 'rejected'
SCHEDULED = 'scheduled'
IN_PROGRESS = 'in_progress'
ON_HOLD = 'on_hold'
COMPLETED = 'completed'
CANCELLED = 'cancelled'

WORK_ORDER_TRANSITIONS: Mapping[str, FrozenSet[str]] = MappingProxyType({
    PENDING_APPROVAL: frozenset({APPROVED, REJECTED, CANCELLED}),
    APPROVED: frozenset({SCHEDULED, IN_PROGRESS, CANCELLED}),
    REJECTED: frozenset({PENDING_APPROVAL, CANCELLED}),
    SCHEDULED: frozenset({PENDING_APPROVAL, IN_PROGRESS, ON_HOLD, CANCELLED}),
    IN_PROGRESS: frozenset({ON_HOLD, COMPLETED, CANCELLED}),
    ON_HOLD: frozenset({IN_PROGRESS, CANCELLED}),
    COMPLETED: frozenset({IN_PROGRESS}),
    CANCELLED: frozenset({PENDING_APPROVAL, SCHEDULED}),
})

# Entering these requires a satisfied approval when one is required
APPROVAL_GATED_STATUSES = frozenset({IN_PROGRESS, COMPLETED})

# Work orders still holding the equipment
OPEN_EXECUTION_STATUSES = frozenset({IN_PROGRESS, ON_HOLD})


# ==========================================================================
# Equipment Graph
# ==========================================================================

EQUIPMENT_TRANSITIONS: Mapping[str, FrozenSet[str]] = MappingProxyType({
    'active': frozenset({'maintenance', 'repair', 'standby', 'retired'}),
    'maintenance': frozenset({'active', 'repair', 'retired'}),
    'repair': frozenset({'active', 'maintenance', 'retired', 'disposal'}),
    'standby': frozenset({'active', 'maintenance', 'repair', 'retired'}),
    'retired': frozenset({'disposal'}),
    'disposal': frozenset(),
})

# Entering any of these releases the assigned operator
NON_OPERATIONAL_STATUSES = frozenset({'maintenance', 'repair', 'retired', 'disposal'})


def allowed_targets(graph: Mapping[str, FrozenSet[str]], source: str) -> FrozenSet[str]:
    """Statuses reachable from ``source`` in one step."""
    return graph.get(source, frozenset())


def validate_transition(
    entity: str,
    graph: Mapping[str, FrozenSet[str]],
    source: str,
    target: str
) -> None:
    """Raise InvalidTransitionError unless ``source -> target`` is an edge."""
    if target not in graph:
        raise InvalidTransitionError(
            entity, source, target, detail=f"Unknown {entity} status '{target}'"
        )
    if target not in allowed_targets(graph, source):
        raise InvalidTransitionError(entity, source, target)


def check_approval_gate(record, target: str) -> None:
    """Refuse execution statuses while an approval is outstanding."""
    if (
        target in APPROVAL_GATED_STATUSES
        and record.approval_required
        and record.approved_at is None
    ):
        raise ApprovalRequiredError(record.work_order_number, target)


# ==========================================================================
# Entry Handlers
# ==========================================================================

def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _number(validator, value: Any, field: str, errors: Dict[str, str]):
    try:
        return validator(value, field)
    except DjangoValidationError as exc:
        errors[field] = exc.messages[0]
        return None


def append_reason(description: Optional[str], prefix: str, reason: Optional[str]) -> Optional[str]:
    """Append ``prefix: reason`` to an existing description."""
    if _blank(reason):
        return description
    note = f"{prefix}: {reason.strip()}"
    if _blank(description):
        return note
    return f"{description}\n\n{note}"


def _enter_pending_approval(record, now: datetime, extra: Dict[str, Any], **options) -> Set[str]:
    # A fresh approval request discards earlier decisions
    record.approved_by = None
    record.approved_at = None
    record.approval_notes = None
    record.rejected_by = None
    record.rejected_at = None
    record.rejection_reason = None
    return {
        'approved_by', 'approved_at', 'approval_notes',
        'rejected_by', 'rejected_at', 'rejection_reason',
    }


def _enter_approved(record, now: datetime, extra: Dict[str, Any], changed_by=None, **options) -> Set[str]:
    approved_by = extra.get('approved_by') or changed_by
    if approved_by is None:
        raise ValidationFailedError({'approved_by': 'An approver is required.'})

    record.approved_by = approved_by
    record.approved_at = extra.get('approved_at') or now
    if 'notes' in extra or 'approval_notes' in extra:
        record.approval_notes = extra.get('approval_notes', extra.get('notes'))
    record.rejected_by = None
    record.rejected_at = None
    record.rejection_reason = None
    return {
        'approved_by', 'approved_at', 'approval_notes',
        'rejected_by', 'rejected_at', 'rejection_reason',
    }


def _enter_rejected(record, now: datetime, extra: Dict[str, Any], changed_by=None, **options) -> Set[str]:
    rejected_by = extra.get('rejected_by') or changed_by
    reason = extra.get('rejection_reason', extra.get('reason'))

    errors = {}
    if rejected_by is None:
        errors['rejected_by'] = 'A rejecting user is required.'
    if _blank(reason):
        errors['rejection_reason'] = 'A rejection reason is required.'
    if errors:
        raise ValidationFailedError(errors)

    record.rejected_by = rejected_by
    record.rejected_at = extra.get('rejected_at') or now
    record.rejection_reason = reason.strip()
    record.approved_by = None
    record.approved_at = None
    return {'rejected_by', 'rejected_at', 'rejection_reason', 'approved_by', 'approved_at'}


def _enter_in_progress(record, now: datetime, extra: Dict[str, Any], **options) -> Set[str]:
    changed = set()
    if record.actual_start is None:
        record.actual_start = extra.get('actual_start') or now
        changed.add('actual_start')
    if record.status == COMPLETED:
        # Reopened work ends again on the next completion
        record.actual_end = None
        record.actual_duration = None
        record.operating_hours_after = None
        record.distance_after = None
        changed.update({
            'actual_end', 'actual_duration', 'operating_hours_after', 'distance_after'
        })
    if extra.get('operating_hours_before') is not None:
        errors = {}
        reading = _number(
            validate_non_negative_decimal, extra['operating_hours_before'],
            'operating_hours_before', errors
        )
        if errors:
            raise ValidationFailedError(errors)
        record.operating_hours_before = reading
        changed.add('operating_hours_before')
    return changed


def _enter_on_hold(record, now: datetime, extra: Dict[str, Any], **options) -> Set[str]:
    record.description = append_reason(record.description, 'Put on hold', extra.get('reason'))
    return {'description'}


def _enter_cancelled(record, now: datetime, extra: Dict[str, Any], **options) -> Set[str]:
    record.description = append_reason(record.description, 'Cancelled', extra.get('reason'))
    return {'description'}


def _enter_completed(
    record,
    now: datetime,
    extra: Dict[str, Any],
    auto_stamp_completion: bool = True,
    **options
) -> Set[str]:
    errors = {}

    actual_end = extra.get('actual_end', record.actual_end)
    if actual_end is None and auto_stamp_completion:
        actual_end = now
    if actual_end is None:
        errors['actual_end'] = 'An actual end date is required.'
    elif record.actual_start and actual_end < record.actual_start:
        errors['actual_end'] = 'Actual end cannot be before the actual start.'

    notes = extra.get('completion_notes', record.completion_notes)
    if _blank(notes):
        errors['completion_notes'] = 'Completion notes are required.'

    percentage = extra.get('completion_percentage', record.completion_percentage)
    if percentage is not None:
        percentage = _number(validate_percentage, percentage, 'completion_percentage', errors)
    if percentage != 100 and 'completion_percentage' not in errors:
        errors['completion_percentage'] = 'Completion percentage must be 100.'

    readings = {}
    for field in ('operating_hours_after', 'distance_after', 'labor_cost', 'external_cost'):
        if extra.get(field) is not None:
            value = _number(validate_non_negative_decimal, extra[field], field, errors)
            if value is not None:
                readings[field] = value

    if errors:
        raise ValidationFailedError(errors)

    record.actual_end = actual_end
    record.completion_notes = notes
    record.completion_percentage = int(percentage)
    changed = {'actual_end', 'completion_notes', 'completion_percentage'}

    if not _blank(extra.get('work_performed')):
        record.work_performed = extra['work_performed']
        changed.add('work_performed')

    for field, value in readings.items():
        setattr(record, field, value)
        changed.add(field)

    if record.actual_start and extra.get('actual_duration') is None:
        delta = actual_end - record.actual_start
        record.actual_duration = int(delta.total_seconds() // 60)
        changed.add('actual_duration')
    elif extra.get('actual_duration') is not None:
        record.actual_duration = int(extra['actual_duration'])
        changed.add('actual_duration')

    return changed


def _enter_scheduled(record, now: datetime, extra: Dict[str, Any], **options) -> Set[str]:
    changed = set()
    for field in ('scheduled_start', 'scheduled_end'):
        if extra.get(field) is not None:
            setattr(record, field, extra[field])
            changed.add(field)
    return changed


ENTRY_HANDLERS: Mapping[str, Callable[..., Set[str]]] = MappingProxyType({
    PENDING_APPROVAL: _enter_pending_approval,
    APPROVED: _enter_approved,
    REJECTED: _enter_rejected,
    SCHEDULED: _enter_scheduled,
    IN_PROGRESS: _enter_in_progress,
    ON_HOLD: _enter_on_hold,
    COMPLETED: _enter_completed,
    CANCELLED: _enter_cancelled,
})


def enter_status(record, target: str, now: datetime, extra: Dict[str, Any], **options) -> Set[str]:
    """
    Apply the entry handler for ``target`` to ``record`` in memory.

    Returns the set of field names the handler changed.
    """
    return ENTRY_HANDLERS[target](record, now, extra, **options)
