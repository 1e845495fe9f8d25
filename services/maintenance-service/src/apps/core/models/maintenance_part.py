# services/maintenance-service/src/apps/core/models/maintenance_part.py
"""
Maintenance Part Model

Parts consumed by a work order.
"""

from datetime import datetime, timedelta
from decimal import Decimal

from django.db import models
from django.utils import timezone

from shared.common.mixins import TimestampMixin, UUIDPrimaryKeyMixin

from .maintenance_record import MaintenanceRecord


class MaintenancePart(UUIDPrimaryKeyMixin, TimestampMixin):
    """
    Part line item on a work order.

    ``total_cost`` must match ``quantity_used * unit_cost`` within the
    reconciliation tolerance.
    """

    maintenance_record = models.ForeignKey(
        MaintenanceRecord,
        on_delete=models.CASCADE,
        related_name='parts'
    )

    # ==========================================================================
    # Identification
    # ==========================================================================

    part_number = models.CharField(max_length=100)
    part_name = models.CharField(max_length=255)
    category = models.CharField(max_length=100, blank=True, null=True)
    supplier = models.CharField(max_length=255, blank=True, null=True)

    # ==========================================================================
    # Quantity / Cost
    # ==========================================================================

    quantity_used = models.DecimalField(max_digits=10, decimal_places=2)
    unit_cost = models.DecimalField(max_digits=12, decimal_places=2)
    total_cost = models.DecimalField(max_digits=12, decimal_places=2)

    # ==========================================================================
    # Warranty
    # ==========================================================================

    installation_date = models.DateTimeField(blank=True, null=True)
    warranty_period_months = models.PositiveIntegerField(blank=True, null=True)
    warranty_expires_at = models.DateTimeField(blank=True, null=True)
    is_critical_part = models.BooleanField(default=False)

    class Meta:
        db_table = 'maintenance_parts'
        ordering = ['created_at']
        verbose_name = 'Maintenance Part'
        verbose_name_plural = 'Maintenance Parts'

    def __str__(self):
        return f"{self.part_number} x{self.quantity_used}"

    @property
    def expected_total(self) -> Decimal:
        return (Decimal(self.quantity_used) * Decimal(self.unit_cost)).quantize(Decimal('0.01'))

    def is_under_warranty(self, as_of: datetime = None) -> bool:
        if not self.warranty_expires_at:
            return False
        return self.warranty_expires_at > (as_of or timezone.now())

    def is_warranty_expiring_soon(self, as_of: datetime = None, days: int = 30) -> bool:
        as_of = as_of or timezone.now()
        if not self.is_under_warranty(as_of):
            return False
        return self.warranty_expires_at <= as_of + timedelta(days=days)
