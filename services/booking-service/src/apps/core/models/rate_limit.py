# services/booking-service/src/apps/core/models/rate_limit.py
"""
Rate Limit Action Log

Append-only log of booking mutations, counted over exact sliding windows.
"""

from django.db import models
from django.utils import timezone

from .facility import Facility


class RateLimitAction(models.Model):
    """One booking mutation performed by a user."""

    class ActionType(models.TextChoices):
        CREATE = 'create', 'Create'
        CANCEL = 'cancel', 'Cancel'
        MODIFY = 'modify', 'Modify'
        WAITLIST_JOIN = 'waitlist_join', 'Waitlist Join'

    facility = models.ForeignKey(
        Facility,
        on_delete=models.CASCADE,
        related_name='rate_limit_actions'
    )
    user_id = models.UUIDField()
    action_type = models.CharField(max_length=20, choices=ActionType.choices)
    performed_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = 'rate_limit_actions'
        ordering = ['-performed_at']
        indexes = [
            models.Index(fields=['user_id', 'facility', 'action_type', 'performed_at']),
        ]

    def __str__(self):
        return f"{self.action_type} by {self.user_id} at {self.performed_at}"
