# shared/common/mixins.py
"""
Reusable Model Mixins
"""

import uuid
from django.db import models


class UUIDPrimaryKeyMixin(models.Model):
    """UUID primary key. Ids from other services are UUIDs too."""

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False
    )

    class Meta:
        abstract = True


class TimestampMixin(models.Model):
    """Row creation and last-write timestamps."""

    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class AuditMixin(models.Model):
    """
    Records which user created and last changed a row.

    Users live in the identity service, so only their ids are stored.
    """

    created_by = models.UUIDField(null=True, blank=True, db_index=True)
    updated_by = models.UUIDField(null=True, blank=True)

    class Meta:
        abstract = True
