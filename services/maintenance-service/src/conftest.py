# services/maintenance-service/src/conftest.py
"""
Pytest configuration for Maintenance Service
"""

import os
import django
from django.conf import settings

# Set up Django settings before importing any Django modules
os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings.testing')


def pytest_configure():
    """Configure Django settings for tests."""
    settings.DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.sqlite3',
            'NAME': ':memory:',
        }
    }
    settings.DEBUG = False
    django.setup()


import pytest
import uuid
from decimal import Decimal
from datetime import timedelta


@pytest.fixture
def user_id():
    """Generate a test user ID."""
    return uuid.uuid4()


@pytest.fixture
def operator_id():
    """Generate a test operator ID."""
    return uuid.uuid4()


@pytest.fixture
def equipment_type():
    """Create a test equipment type."""
    from apps.core.models import EquipmentType

    return EquipmentType.objects.create(name='Excavator', code='EXC')


@pytest.fixture
def equipment(equipment_type):
    """Create a test equipment asset."""
    from apps.core.models import Equipment

    return Equipment.objects.create(
        asset_number='EQ-TEST-001',
        name='Test Excavator',
        equipment_type=equipment_type,
        operating_hours=Decimal('1000.00'),
        distance=Decimal('5000.00'),
    )


@pytest.fixture
def hour_schedule(equipment):
    """Create a 250 hour service schedule last done at 1000 hours."""
    from apps.core.services import ScheduleService

    return ScheduleService().create_schedule(
        title='250 Hour Service',
        schedule_type='hour_based',
        equipment_id=equipment.id,
        interval_hours=Decimal('250'),
        tolerance_hours=Decimal('25'),
        last_performed_hours=Decimal('1000'),
    )


@pytest.fixture
def calendar_schedule(equipment):
    """Create a 30 day inspection schedule last done 20 days ago."""
    from django.utils import timezone
    from apps.core.services import ScheduleService

    return ScheduleService().create_schedule(
        title='Monthly Inspection',
        schedule_type='time_based',
        equipment_id=equipment.id,
        interval_days=30,
        tolerance_days=3,
        last_performed_at=timezone.now() - timedelta(days=20),
    )


@pytest.fixture
def work_order(equipment, user_id):
    """Create a test work order in scheduled status."""
    from apps.core.services import WorkOrderService

    return WorkOrderService().create_work_order(
        equipment_id=equipment.id,
        title='Test Work Order',
        created_by=user_id,
    )


@pytest.fixture
def work_order_service():
    """Create WorkOrderService instance."""
    from apps.core.services import WorkOrderService
    return WorkOrderService()


@pytest.fixture
def schedule_service():
    """Create ScheduleService instance."""
    from apps.core.services import ScheduleService
    return ScheduleService()


@pytest.fixture
def equipment_service():
    """Create EquipmentService instance."""
    from apps.core.services import EquipmentService
    return EquipmentService()


@pytest.fixture
def cost_service():
    """Create CostService instance."""
    from apps.core.services import CostService
    return CostService()
