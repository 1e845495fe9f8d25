# shared/common/mixins.py
"""
Reusable Model Mixins
"""

import uuid
from django.db import models
from django.utils import timezone


# =============================================================================
# MODEL MIXINS
# =============================================================================

class UUIDPrimaryKeyMixin(models.Model):
    """
    Mixin that provides UUID as primary key instead of auto-increment integer.
    """

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        help_text="Unique identifier for this record"
    )

    class Meta:
        abstract = True


class TimestampMixin(models.Model):
    """
    Mixin that provides created_at and updated_at timestamp fields.
    """

    created_at = models.DateTimeField(
        auto_now_add=True,
        db_index=True,
        help_text="When this record was created"
    )
    updated_at = models.DateTimeField(
        auto_now=True,
        help_text="When this record was last updated"
    )

    class Meta:
        abstract = True


class SoftDeleteMixin(models.Model):
    """
    Mixin that provides soft delete functionality.
    Records are marked as deleted instead of being removed from database.
    """

    is_deleted = models.BooleanField(
        default=False,
        db_index=True,
        help_text="Whether this record has been soft-deleted"
    )
    deleted_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When this record was deleted"
    )
    deleted_by = models.UUIDField(
        null=True,
        blank=True,
        help_text="User who deleted this record"
    )

    class Meta:
        abstract = True

    def soft_delete(self, deleted_by: uuid.UUID = None):
        """Mark record as deleted"""
        self.is_deleted = True
        self.deleted_at = timezone.now()
        self.deleted_by = deleted_by
        self.save(update_fields=['is_deleted', 'deleted_at', 'deleted_by'])

    def restore(self):
        """Restore a soft-deleted record"""
        self.is_deleted = False
        self.deleted_at = None
        self.deleted_by = None
        self.save(update_fields=['is_deleted', 'deleted_at', 'deleted_by'])


class AuditMixin(models.Model):
    """
    Mixin that tracks who created and last modified a record.
    """

    created_by = models.UUIDField(
        null=True,
        blank=True,
        db_index=True,
        help_text="User who created this record"
    )
    updated_by = models.UUIDField(
        null=True,
        blank=True,
        help_text="User who last updated this record"
    )

    class Meta:
        abstract = True


class VersionedMixin(models.Model):
    """
    Mixin for optimistic locking using version number.

    The counter moves on every save, including partial saves, so callers
    comparing an expected version see any intervening write.
    """

    version = models.PositiveIntegerField(
        default=1,
        help_text="Version number for optimistic locking"
    )

    class Meta:
        abstract = True

    def save(self, *args, **kwargs):
        if self.pk and not self._state.adding:
            self.version += 1
            update_fields = kwargs.get('update_fields')
            if update_fields is not None and 'version' not in update_fields:
                kwargs['update_fields'] = list(update_fields) + ['version']
        super().save(*args, **kwargs)


class ActiveMixin(models.Model):
    """
    Mixin for models that can be activated/deactivated.
    """

    is_active = models.BooleanField(
        default=True,
        db_index=True,
        help_text="Whether this record is active"
    )

    class Meta:
        abstract = True


class BaseModel(
    UUIDPrimaryKeyMixin,
    TimestampMixin,
    AuditMixin
):
    """
    Combined base model with the common identity and audit fields.
    Use this as the base for most models in the service.
    """

    class Meta:
        abstract = True
