# services/booking-service/src/apps/core/tasks.py
"""
Booking Policy Celery Tasks

Periodic maintenance of the action log and lockout notifications.
"""

import logging
from datetime import timedelta

from celery import shared_task
from django.conf import settings
from django.utils import timezone

from .models import Strike
from .events import publish_account_locked_out
from .rules.catalog import RuleCode
from .services.config_resolver import ConfigResolver
from .services.rate_limiter import RateLimiter
from .services.strike_service import StrikeTracker


logger = logging.getLogger(__name__)


@shared_task(name='booking.prune_rate_limit_log')
def prune_rate_limit_log(retention_days: int = None):
    """
    Delete action-log rows older than the retention period.

    The log only needs to cover the longest rate-limit window.

    Returns:
        Number of rows deleted
    """
    retention_days = retention_days or getattr(settings, 'RATE_LIMIT_LOG_RETENTION_DAYS', 7)
    cutoff = timezone.now() - timedelta(days=retention_days)
    return RateLimiter().prune(cutoff)


@shared_task(name='booking.publish_lockout_notifications')
def publish_lockout_notifications(since_minutes: int = 15):
    """
    Publish ``account.locked_out`` for users whose newest strike in the
    last ``since_minutes`` put them over the threshold.

    Returns:
        Dict with the number of users checked and notified
    """
    now = timezone.now()
    since = now - timedelta(minutes=since_minutes)
    resolver = ConfigResolver()
    tracker = StrikeTracker(resolver)

    recent = (
        Strike.objects.filter(issued_at__gte=since, issued_at__lte=now, revoked=False)
        .order_by()
        .values_list('facility_id', 'user_id')
        .distinct()
    )

    results = {'checked': 0, 'notified': 0}
    for facility_id, user_id in recent:
        results['checked'] += 1
        if not resolver.resolve(facility_id, RuleCode.ACC_009).is_enabled:
            continue

        status = tracker.status(user_id, facility_id, now)
        if status.is_locked_out:
            publish_account_locked_out(facility_id, user_id, status.lockout_ends_at)
            results['notified'] += 1

    if results['notified']:
        logger.info(f"Published {results['notified']} lockout notifications")
    return results
