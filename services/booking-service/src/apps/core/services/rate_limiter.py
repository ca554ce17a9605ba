# services/booking-service/src/apps/core/services/rate_limiter.py
"""
Rate Limiter

Exact sliding-window counts over the booking action log.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, Iterable, Optional, Tuple

from django.db.models import Count, Min
from django.utils import timezone

from apps.core.models import RateLimitAction
from apps.core.rules.account import rate_limit_retry_after

logger = logging.getLogger(__name__)


@dataclass
class RateLimitStatus:
    allowed: bool
    count: int
    limit: int
    remaining: int
    retry_after: int

    def to_dict(self):
        return {
            'allowed': self.allowed,
            'count': self.count,
            'limit': self.limit,
            'remaining': self.remaining,
            'retry_after': self.retry_after,
        }


class RateLimiter:
    """
    Sliding-window limiter keyed by (user, facility, action type).

    Counts entries with ``performed_at`` in ``[now - window, now]``.
    """

    def record(
        self,
        user_id: uuid.UUID,
        facility_id: uuid.UUID,
        action: str,
        now: datetime = None
    ) -> RateLimitAction:
        """Append one action to the log."""
        from . import RuleConfigurationError

        if action not in RateLimitAction.ActionType.values:
            raise RuleConfigurationError(f"Unknown action type: {action}", field='action_type')

        return RateLimitAction.objects.create(
            user_id=user_id,
            facility_id=facility_id,
            action_type=action,
            performed_at=now or timezone.now(),
        )

    def window_stats(
        self,
        user_id: uuid.UUID,
        facility_id: uuid.UUID,
        window_seconds: int,
        actions: Iterable[str] = None,
        now: datetime = None
    ) -> Tuple[Dict[str, int], Dict[str, datetime]]:
        """Per-action counts and oldest timestamps within the window."""
        now = now or timezone.now()
        queryset = RateLimitAction.objects.filter(
            user_id=user_id,
            facility_id=facility_id,
            performed_at__gte=now - timedelta(seconds=window_seconds),
            performed_at__lte=now,
        )
        if actions is not None:
            queryset = queryset.filter(action_type__in=list(actions))

        counts, oldest = {}, {}
        for row in queryset.order_by().values('action_type').annotate(
            total=Count('id'), first=Min('performed_at')
        ):
            counts[row['action_type']] = row['total']
            oldest[row['action_type']] = row['first']
        return counts, oldest

    def count(
        self,
        user_id: uuid.UUID,
        facility_id: uuid.UUID,
        actions: Iterable[str],
        window_seconds: int,
        now: datetime = None
    ) -> int:
        counts, _ = self.window_stats(user_id, facility_id, window_seconds, actions, now)
        return sum(counts.values())

    def check(
        self,
        user_id: uuid.UUID,
        facility_id: uuid.UUID,
        actions: Iterable[str],
        max_actions: int,
        window_seconds: int,
        now: datetime = None
    ) -> RateLimitStatus:
        """Whether one more action fits in the window."""
        now = now or timezone.now()
        counts, oldest = self.window_stats(user_id, facility_id, window_seconds, actions, now)
        total = sum(counts.values())
        allowed = total < max_actions

        first: Optional[datetime] = min(oldest.values()) if oldest else None
        return RateLimitStatus(
            allowed=allowed,
            count=total,
            limit=max_actions,
            remaining=max(0, max_actions - total),
            retry_after=0 if allowed else rate_limit_retry_after(first, window_seconds, now),
        )

    def prune(self, older_than: datetime) -> int:
        """Delete log rows performed before ``older_than``."""
        deleted, _ = RateLimitAction.objects.filter(performed_at__lt=older_than).delete()
        if deleted:
            logger.info(f"Pruned {deleted} rate limit actions older than {older_than.isoformat()}")
        return deleted
