# services/maintenance-service/src/apps/core/tests/test_models.py
"""
Tests for Maintenance Service Models
"""

import uuid
from datetime import timedelta
from decimal import Decimal

from django.test import TestCase
from django.utils import timezone

from apps.core.exceptions import (
    CounterAnomalyError,
    InvalidTransitionError,
    ScheduleConfigurationError,
)
from apps.core.models import (
    Equipment,
    EquipmentType,
    EquipmentStatusLog,
    MaintenancePart,
    MaintenanceRecord,
    MaintenanceSchedule,
)


class EquipmentModelTest(TestCase):
    """Tests for Equipment model."""

    def setUp(self):
        self.equipment = Equipment.objects.create(
            asset_number='EQ-1001',
            serial_number='SN-998877',
            name='CAT 320 Excavator',
            operating_hours=Decimal('1200.00'),
        )

    def test_create_equipment(self):
        """Test creating a basic equipment asset."""
        self.assertEqual(self.equipment.status, Equipment.Status.ACTIVE)
        self.assertTrue(self.equipment.is_operational)
        self.assertFalse(self.equipment.is_assigned)
        self.assertEqual(str(self.equipment), 'EQ-1001: CAT 320 Excavator')

    def test_change_status_writes_log(self):
        """Test that a status change is logged."""
        user = uuid.uuid4()
        log = self.equipment.change_status('standby', changed_by=user, notes='Season end')

        self.equipment.refresh_from_db()
        self.assertEqual(self.equipment.status, 'standby')
        self.assertEqual(self.equipment.status_changed_by, user)
        self.assertEqual(log.previous_status, 'active')
        self.assertEqual(log.new_status, 'standby')
        self.assertEqual(EquipmentStatusLog.objects.filter(equipment=self.equipment).count(), 1)

    def test_non_operational_status_releases_operator(self):
        """Test entering repair clears the operator assignment."""
        self.equipment.assign(uuid.uuid4())

        self.equipment.change_status('repair')

        self.equipment.refresh_from_db()
        self.assertIsNone(self.equipment.assigned_operator)
        self.assertIsNone(self.equipment.assigned_at)

    def test_standby_keeps_operator(self):
        """Test standby is not a non-operational status for assignment."""
        operator = uuid.uuid4()
        self.equipment.assign(operator)

        self.equipment.change_status('standby')

        self.equipment.refresh_from_db()
        self.assertEqual(self.equipment.assigned_operator, operator)

    def test_invalid_status_change(self):
        """Test retired equipment cannot come back into service."""
        self.equipment.change_status('retired')

        with self.assertRaises(InvalidTransitionError):
            self.equipment.change_status('active')

        self.equipment.refresh_from_db()
        self.assertEqual(self.equipment.status, 'retired')


class MaintenanceScheduleModelTest(TestCase):
    """Tests for MaintenanceSchedule model."""

    def setUp(self):
        self.equipment = Equipment.objects.create(
            asset_number='EQ-2001',
            name='Wheel Loader',
            operating_hours=Decimal('1000.00'),
            distance=Decimal('20000.00'),
        )
        self.now = timezone.now()

    def _schedule(self, **kwargs):
        values = dict(
            equipment=self.equipment,
            title='Service',
            schedule_type=MaintenanceSchedule.ScheduleType.HOUR_BASED,
            interval_hours=Decimal('250'),
            tolerance_hours=Decimal('25'),
        )
        values.update(kwargs)
        return MaintenanceSchedule(**values)

    def test_next_due_hours_from_last_performed(self):
        """Test 250 hour interval from 1000 hours is due at 1250."""
        schedule = self._schedule()
        schedule.save()

        schedule.update_last_performed(self.now, operating_hours=Decimal('1000'))

        self.assertEqual(schedule.next_due_hours, Decimal('1250'))
        self.assertIsNone(schedule.next_due_date)

    def test_hour_tolerance_window(self):
        """Test due and overdue around the 25 hour tolerance."""
        schedule = self._schedule(
            last_performed_hours=Decimal('1000'), next_due_hours=Decimal('1250')
        )

        at_1240 = schedule.evaluate(self.now, operating_hours=Decimal('1240'))
        at_1255 = schedule.evaluate(self.now, operating_hours=Decimal('1255'))
        at_1290 = schedule.evaluate(self.now, operating_hours=Decimal('1290'))

        self.assertFalse(at_1240.is_due)
        self.assertTrue(at_1255.is_due)
        self.assertFalse(at_1255.is_overdue)
        self.assertTrue(at_1290.is_due)
        self.assertTrue(at_1290.is_overdue)
        self.assertEqual(at_1240.hours_until_due, Decimal('10'))

    def test_calendar_due_and_overdue(self):
        """Test calendar schedules use tolerance days for overdue."""
        schedule = self._schedule(
            schedule_type=MaintenanceSchedule.ScheduleType.TIME_BASED,
            interval_hours=None,
            tolerance_hours=None,
            interval_days=30,
            tolerance_days=5,
        )
        schedule.last_performed_at = self.now - timedelta(days=32)
        schedule.recalculate_next_due()

        result = schedule.evaluate(self.now)
        self.assertTrue(result.is_due)
        self.assertFalse(result.is_overdue)
        self.assertEqual(result.due_metrics, ('calendar',))

        result = schedule.evaluate(self.now + timedelta(days=4))
        self.assertTrue(result.is_overdue)

    def test_due_soon_only_for_calendar(self):
        """Test due soon is raised inside the advance notice window."""
        schedule = self._schedule(
            schedule_type=MaintenanceSchedule.ScheduleType.TIME_BASED,
            interval_days=30,
            last_performed_at=self.now - timedelta(days=25),
            next_due_date=self.now + timedelta(days=5),
            last_performed_hours=Decimal('1000'),
            next_due_hours=Decimal('1250'),
        )

        result = schedule.evaluate(self.now, operating_hours=Decimal('1249'), advance_notice_days=7)
        self.assertFalse(result.is_due)
        self.assertTrue(result.is_due_soon)

        result = schedule.evaluate(self.now, operating_hours=Decimal('1249'), advance_notice_days=3)
        self.assertFalse(result.is_due_soon)

    def test_no_last_performed_is_not_due(self):
        """Test a calendar schedule without history cannot be due."""
        schedule = self._schedule(
            schedule_type=MaintenanceSchedule.ScheduleType.TIME_BASED,
            interval_days=30,
            next_due_date=self.now - timedelta(days=10),
        )

        result = schedule.evaluate(self.now)

        self.assertFalse(result.is_due)
        self.assertFalse(result.is_due_soon)
        self.assertEqual(result.evaluated_metrics, ())

    def test_metrics_are_or_combined(self):
        """Test distance alone makes the schedule due."""
        schedule = self._schedule(
            schedule_type=MaintenanceSchedule.ScheduleType.MILEAGE_BASED,
            interval_kilometers=Decimal('5000'),
            last_performed_hours=Decimal('1000'),
            next_due_hours=Decimal('1250'),
            last_performed_kilometers=Decimal('15000'),
            next_due_kilometers=Decimal('20000'),
        )

        result = schedule.evaluate(
            self.now, operating_hours=Decimal('1100'), distance=Decimal('20000')
        )

        self.assertTrue(result.is_due)
        self.assertEqual(result.due_metrics, ('distance',))

    def test_inactive_schedule_is_never_due(self):
        """Test is_due requires an active schedule."""
        schedule = self._schedule(
            is_active=False,
            last_performed_hours=Decimal('1000'),
            next_due_hours=Decimal('1250'),
        )

        result = schedule.evaluate(self.now, operating_hours=Decimal('1300'))

        self.assertFalse(result.is_due)
        self.assertFalse(result.is_overdue)

    def test_counter_decrease_is_anomaly(self):
        """Test a reading below the last performed snapshot is rejected."""
        schedule = self._schedule(
            last_performed_hours=Decimal('1000'), next_due_hours=Decimal('1250')
        )

        with self.assertRaises(CounterAnomalyError):
            schedule.evaluate(self.now, operating_hours=Decimal('900'))

    def test_update_last_performed_leaves_other_metrics(self):
        """Test only the metric of the schedule type is recomputed."""
        schedule = self._schedule(next_due_kilometers=Decimal('99999'))
        schedule.save()

        schedule.update_last_performed(
            self.now, operating_hours=Decimal('1000'), kilometers=Decimal('20000')
        )

        self.assertEqual(schedule.last_performed_kilometers, Decimal('20000'))
        self.assertEqual(schedule.next_due_kilometers, Decimal('99999'))
        self.assertEqual(schedule.last_performed_at, self.now)

    def test_configuration_errors(self):
        """Test invalid interval configurations are reported."""
        schedule = self._schedule(interval_hours=Decimal('-10'), tolerance_hours=Decimal('-1'))

        with self.assertRaises(ScheduleConfigurationError) as ctx:
            schedule.validate_configuration()

        self.assertIn('interval_hours', ctx.exception.errors)
        self.assertIn('tolerance_hours', ctx.exception.errors)

    def test_missing_driving_interval(self):
        """Test mileage schedules need a kilometer interval."""
        schedule = self._schedule(
            schedule_type=MaintenanceSchedule.ScheduleType.MILEAGE_BASED
        )

        errors = schedule.configuration_errors()

        self.assertEqual(list(errors), ['interval_kilometers'])

    def test_binding_is_exclusive(self):
        """Test a schedule cannot bind both equipment and type."""
        equipment_type = EquipmentType.objects.create(name='Loader', code='LDR')
        schedule = self._schedule(equipment_type=equipment_type)

        self.assertIn('equipment', schedule.configuration_errors())

    def test_applies_to_type(self):
        """Test type-level schedules cover equipment of the type."""
        equipment_type = EquipmentType.objects.create(name='Loader', code='LDR')
        self.equipment.equipment_type = equipment_type
        self.equipment.save()

        schedule = self._schedule(equipment=None, equipment_type=equipment_type)

        self.assertTrue(schedule.applies_to(self.equipment))


class MaintenanceRecordModelTest(TestCase):
    """Tests for MaintenanceRecord model."""

    def setUp(self):
        self.equipment = Equipment.objects.create(asset_number='EQ-3001', name='Dozer')

    def test_work_order_number_generated(self):
        """Test work order numbers are generated and unique."""
        first = MaintenanceRecord.objects.create(equipment=self.equipment, title='First')
        second = MaintenanceRecord.objects.create(equipment=self.equipment, title='Second')

        prefix = f"WO-{timezone.now():%Y%m%d}-"
        self.assertTrue(first.work_order_number.startswith(prefix))
        self.assertNotEqual(first.work_order_number, second.work_order_number)

    def test_version_moves_on_save(self):
        """Test every save bumps the version."""
        record = MaintenanceRecord.objects.create(equipment=self.equipment, title='Versioned')
        self.assertEqual(record.version, 1)

        record.title = 'Renamed'
        record.save(update_fields=['title'])

        record.refresh_from_db()
        self.assertEqual(record.version, 2)

    def test_duration_variance(self):
        """Test duration variance in minutes."""
        record = MaintenanceRecord(
            equipment=self.equipment, estimated_duration=120, actual_duration=150
        )
        self.assertEqual(record.duration_variance, 30)

        record.estimated_duration = None
        self.assertIsNone(record.duration_variance)

    def test_approval_satisfied(self):
        """Test approval is satisfied only with a stamp when required."""
        record = MaintenanceRecord(equipment=self.equipment, approval_required=True)
        self.assertFalse(record.is_approval_satisfied)

        record.approved_at = timezone.now()
        self.assertTrue(record.is_approval_satisfied)


class MaintenancePartModelTest(TestCase):
    """Tests for MaintenancePart model."""

    def setUp(self):
        equipment = Equipment.objects.create(asset_number='EQ-4001', name='Grader')
        self.record = MaintenanceRecord.objects.create(equipment=equipment, title='Parts')

    def test_expected_total(self):
        """Test expected total is quantity times unit cost."""
        part = MaintenancePart(
            maintenance_record=self.record,
            part_number='FLT-01',
            part_name='Oil Filter',
            quantity_used=Decimal('3'),
            unit_cost=Decimal('10.00'),
            total_cost=Decimal('30.00'),
        )
        self.assertEqual(part.expected_total, Decimal('30.00'))

    def test_warranty_window(self):
        """Test warranty status around the expiry date."""
        now = timezone.now()
        part = MaintenancePart(
            maintenance_record=self.record,
            part_number='HYD-07',
            part_name='Hydraulic Pump',
            quantity_used=Decimal('1'),
            unit_cost=Decimal('900.00'),
            total_cost=Decimal('900.00'),
            warranty_expires_at=now + timedelta(days=10),
        )

        self.assertTrue(part.is_under_warranty(now))
        self.assertTrue(part.is_warranty_expiring_soon(now))
        self.assertFalse(part.is_warranty_expiring_soon(now, days=5))
        self.assertFalse(part.is_under_warranty(now + timedelta(days=11)))
