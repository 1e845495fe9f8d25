# services/maintenance-service/src/apps/core/tests/test_workflow.py
"""
Tests for the work order and equipment lifecycle graphs
"""

import uuid
from datetime import timedelta
from decimal import Decimal
from itertools import product
from types import SimpleNamespace

import pytest
from django.utils import timezone

from apps.core import workflow
from apps.core.models import Equipment, MaintenanceRecord
from apps.core.services import (
    ApprovalRequiredError,
    InvalidTransitionError,
    ValidationFailedError,
    WorkOrderService,
)


WORK_ORDER_STATUSES = list(workflow.WORK_ORDER_TRANSITIONS)
EQUIPMENT_STATUSES = list(workflow.EQUIPMENT_TRANSITIONS)

LEGAL_WORK_ORDER_EDGES = {
    ('scheduled', 'in_progress'), ('scheduled', 'on_hold'),
    ('scheduled', 'cancelled'), ('scheduled', 'pending_approval'),
    ('pending_approval', 'approved'), ('pending_approval', 'rejected'),
    ('pending_approval', 'cancelled'),
    ('approved', 'in_progress'), ('approved', 'scheduled'), ('approved', 'cancelled'),
    ('in_progress', 'completed'), ('in_progress', 'on_hold'), ('in_progress', 'cancelled'),
    ('on_hold', 'in_progress'), ('on_hold', 'cancelled'),
    ('completed', 'in_progress'),
    ('cancelled', 'scheduled'), ('cancelled', 'pending_approval'),
    ('rejected', 'pending_approval'), ('rejected', 'cancelled'),
}

LEGAL_EQUIPMENT_EDGES = {
    ('active', 'maintenance'), ('active', 'repair'), ('active', 'standby'), ('active', 'retired'),
    ('maintenance', 'active'), ('maintenance', 'repair'), ('maintenance', 'retired'),
    ('repair', 'active'), ('repair', 'maintenance'), ('repair', 'retired'), ('repair', 'disposal'),
    ('standby', 'active'), ('standby', 'maintenance'), ('standby', 'repair'), ('standby', 'retired'),
    ('retired', 'disposal'),
}


class TestTransitionGraphs:
    """The graphs match the documented lifecycle exactly."""

    def test_work_order_graph_edges(self):
        edges = {
            (source, target)
            for source, targets in workflow.WORK_ORDER_TRANSITIONS.items()
            for target in targets
        }
        assert edges == LEGAL_WORK_ORDER_EDGES

    def test_equipment_graph_edges(self):
        edges = {
            (source, target)
            for source, targets in workflow.EQUIPMENT_TRANSITIONS.items()
            for target in targets
        }
        assert edges == LEGAL_EQUIPMENT_EDGES

    def test_disposal_is_terminal(self):
        assert workflow.allowed_targets(workflow.EQUIPMENT_TRANSITIONS, 'disposal') == frozenset()

    def test_graphs_are_read_only(self):
        with pytest.raises(TypeError):
            workflow.WORK_ORDER_TRANSITIONS['completed'] = frozenset({'scheduled'})

    def test_invalid_transition_names_source_and_target(self):
        with pytest.raises(InvalidTransitionError) as exc_info:
            workflow.validate_transition(
                'work order', workflow.WORK_ORDER_TRANSITIONS, 'completed', 'cancelled'
            )

        error = exc_info.value
        assert error.source == 'completed'
        assert error.target == 'cancelled'
        assert error.extra_data == {
            'entity': 'work order', 'source': 'completed', 'target': 'cancelled'
        }
        assert "'completed'" in str(error) and "'cancelled'" in str(error)

    def test_unknown_target_is_invalid(self):
        with pytest.raises(InvalidTransitionError):
            workflow.validate_transition(
                'equipment', workflow.EQUIPMENT_TRANSITIONS, 'active', 'scrapped'
            )


class TestEntryHandlers:
    """Entry handlers validate and stamp in memory only."""

    def _record(self, **overrides):
        values = dict(
            work_order_number='WO-TEST',
            status='in_progress',
            approval_required=False,
            approved_by=None, approved_at=None, approval_notes=None,
            rejected_by=None, rejected_at=None, rejection_reason=None,
            actual_start=None, actual_end=None, actual_duration=None,
            completion_notes=None, completion_percentage=None,
            work_performed=None, description=None,
            operating_hours_before=None, operating_hours_after=None,
            distance_after=None, labor_cost=Decimal('0'), external_cost=Decimal('0'),
            scheduled_start=None, scheduled_end=None,
        )
        values.update(overrides)
        return SimpleNamespace(**values)

    def test_approval_gate_blocks_execution(self):
        record = self._record(approval_required=True)

        for target in ('in_progress', 'completed'):
            with pytest.raises(ApprovalRequiredError):
                workflow.check_approval_gate(record, target)

    def test_approval_gate_passes_once_approved(self):
        record = self._record(approval_required=True, approved_at=timezone.now())
        workflow.check_approval_gate(record, 'in_progress')

    def test_approval_gate_ignores_other_targets(self):
        record = self._record(approval_required=True)
        workflow.check_approval_gate(record, 'cancelled')

    def test_append_reason_keeps_description(self):
        result = workflow.append_reason('Replace hydraulic hose', 'Put on hold', 'Waiting for parts')
        assert result == 'Replace hydraulic hose\n\nPut on hold: Waiting for parts'

    def test_append_reason_without_reason(self):
        assert workflow.append_reason('Original', 'Cancelled', '  ') == 'Original'
        assert workflow.append_reason(None, 'Cancelled', 'No budget') == 'Cancelled: No budget'

    def test_completion_requires_notes_and_full_percentage(self):
        record = self._record(actual_start=timezone.now() - timedelta(hours=1))

        with pytest.raises(ValidationFailedError) as exc_info:
            workflow.enter_status(
                record, 'completed', timezone.now(), {'completion_percentage': 80}
            )

        assert set(exc_info.value.errors) == {'completion_notes', 'completion_percentage'}
        assert record.actual_end is None

    def test_completion_without_auto_stamp_requires_end(self):
        record = self._record()

        with pytest.raises(ValidationFailedError) as exc_info:
            workflow.enter_status(
                record, 'completed', timezone.now(),
                {'completion_notes': 'Done', 'completion_percentage': 100},
                auto_stamp_completion=False,
            )

        assert 'actual_end' in exc_info.value.errors

    def test_completion_computes_duration(self):
        now = timezone.now()
        record = self._record(actual_start=now - timedelta(minutes=90))

        changed = workflow.enter_status(
            record, 'completed', now,
            {'completion_notes': 'Done', 'completion_percentage': 100},
        )

        assert record.actual_end == now
        assert record.actual_duration == 90
        assert 'actual_duration' in changed

    def test_rejection_requires_reason(self):
        record = self._record(status='pending_approval')

        with pytest.raises(ValidationFailedError) as exc_info:
            workflow.enter_status(
                record, 'rejected', timezone.now(), {'rejected_by': uuid.uuid4()}
            )

        assert 'rejection_reason' in exc_info.value.errors

    def test_approval_requires_approver(self):
        record = self._record(status='pending_approval')

        with pytest.raises(ValidationFailedError) as exc_info:
            workflow.enter_status(record, 'approved', timezone.now(), {})

        assert 'approved_by' in exc_info.value.errors


@pytest.mark.django_db
class TestWorkOrderTransitionTable:
    """Every pair of statuses either transitions or fails untouched."""

    @pytest.fixture
    def equipment(self):
        return Equipment.objects.create(asset_number='EQ-GRAPH', name='Graph Loader')

    def _record_in(self, equipment, status):
        return MaintenanceRecord.objects.create(
            equipment=equipment,
            title=f'Record in {status}',
            status=status,
            status_changed_at=timezone.now() - timedelta(days=1),
            actual_start=timezone.now() - timedelta(hours=2),
        )

    @pytest.mark.parametrize('source,target', list(product(WORK_ORDER_STATUSES, repeat=2)))
    def test_transition_pair(self, equipment, source, target):
        record = self._record_in(equipment, source)
        before = record.status_changed_at
        user = uuid.uuid4()
        extra = {
            'approved_by': user,
            'rejected_by': user,
            'rejection_reason': 'Not justified',
            'completion_notes': 'Work done',
            'completion_percentage': 100,
        }

        if (source, target) in LEGAL_WORK_ORDER_EDGES:
            result = WorkOrderService().transition(record.id, target, changed_by=user, **extra)
            record.refresh_from_db()
            assert result.status == target
            assert record.status == target
            assert record.status_changed_at > before
            assert record.status_logs.filter(from_status=source, to_status=target).exists()
        else:
            with pytest.raises(InvalidTransitionError):
                WorkOrderService().transition(record.id, target, changed_by=user, **extra)
            record.refresh_from_db()
            assert record.status == source
            assert record.status_changed_at == before
            assert not record.status_logs.exists()
