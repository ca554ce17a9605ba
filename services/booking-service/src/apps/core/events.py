# services/booking-service/src/apps/core/events.py
"""
Booking Policy Events

Event definitions and publishing for reservations, strikes and rule
configuration changes.
"""

import json
import logging
from datetime import date, datetime, time
from typing import Any, Dict, List
from uuid import UUID

from django.conf import settings
from django.utils import timezone

logger = logging.getLogger(__name__)


class EventType:
    """Event type constants for the booking policy service."""

    # Reservation lifecycle
    RESERVATION_CREATED = 'reservation.created'
    RESERVATION_CANCELLED = 'reservation.cancelled'
    RESERVATION_NO_SHOW = 'reservation.no_show'

    # Strikes
    STRIKE_ISSUED = 'strike.issued'
    STRIKE_REVOKED = 'strike.revoked'
    ACCOUNT_LOCKED_OUT = 'account.locked_out'

    # Configuration
    RULE_CONFIG_UPDATED = 'rule_config.updated'


class JSONEncoder(json.JSONEncoder):
    """JSON encoder for event payloads."""

    def default(self, obj):
        if isinstance(obj, UUID):
            return str(obj)
        if isinstance(obj, (datetime, date, time)):
            return obj.isoformat()
        return super().default(obj)


# Events captured by the ``memory`` backend
published_events: List[Dict[str, Any]] = []


class EventPublisher:
    """
    Event publisher for the booking policy service.

    ``EVENT_BACKEND`` selects where events go: ``log`` (default),
    ``redis`` (pub/sub over the django-redis connection) or ``memory``.
    """

    def __init__(self):
        self.service_name = 'booking-policy-service'

    @property
    def enabled(self) -> bool:
        return getattr(settings, 'EVENT_PUBLISHING_ENABLED', True)

    def publish(
        self,
        event_type: str,
        payload: Dict[str, Any],
        facility_id: UUID = None,
        correlation_id: str = None
    ) -> bool:
        """
        Publish an event.

        Returns True if the event was handed to the backend.
        """
        if not self.enabled:
            logger.debug(f"Event publishing disabled, skipping: {event_type}")
            return False

        event = {
            'event_type': event_type,
            'service': self.service_name,
            'timestamp': timezone.now().isoformat(),
            'facility_id': str(facility_id) if facility_id else None,
            'correlation_id': correlation_id,
            'payload': payload,
        }

        try:
            event_json = json.dumps(event, cls=JSONEncoder)

            logger.info(f"Publishing event: {event_type}", extra={
                'event_type': event_type,
                'facility_id': event['facility_id'],
            })

            self._publish_to_backend(event_type, event_json)
            return True

        except Exception as e:
            logger.error(f"Failed to publish event {event_type}: {e}")
            return False

    def _publish_to_backend(self, event_type: str, event_json: str):
        backend = getattr(settings, 'EVENT_BACKEND', 'log')

        if backend == 'redis':
            self._publish_redis(event_type, event_json)
        elif backend == 'memory':
            published_events.append(json.loads(event_json))
        else:
            logger.debug(f"Event payload: {event_json[:500]}...")

    def _publish_redis(self, event_type: str, event_json: str):
        """Publish to Redis pub/sub."""
        from django_redis import get_redis_connection

        connection = get_redis_connection('default')
        connection.publish(f"events:{event_type}", event_json)


# Global event publisher instance
event_publisher = EventPublisher()


# =============================================================================
# Convenience publishers
# =============================================================================

def publish_reservation_created(reservation):
    event_publisher.publish(
        EventType.RESERVATION_CREATED,
        payload={
            'reservation_id': reservation.id,
            'court_id': reservation.court_id,
            'user_id': reservation.user_id,
            'date': reservation.date,
            'start_time': reservation.start_time,
            'end_time': reservation.end_time,
            'is_prime_time': reservation.is_prime_time,
            'rule_overrides': reservation.rule_overrides,
            'overridden_by': reservation.overridden_by,
        },
        facility_id=reservation.facility_id
    )


def publish_reservation_cancelled(reservation, cancellation=None):
    event_publisher.publish(
        EventType.RESERVATION_CANCELLED,
        payload={
            'reservation_id': reservation.id,
            'court_id': reservation.court_id,
            'user_id': reservation.user_id,
            'date': reservation.date,
            'start_time': reservation.start_time,
            'cancelled_by': reservation.cancelled_by,
            'reason': reservation.cancellation_reason,
            'is_late_cancel': cancellation.is_late_cancel if cancellation else False,
            'strike_issued': cancellation.strike_issued if cancellation else False,
        },
        facility_id=reservation.facility_id
    )


def publish_reservation_no_show(reservation):
    event_publisher.publish(
        EventType.RESERVATION_NO_SHOW,
        payload={
            'reservation_id': reservation.id,
            'court_id': reservation.court_id,
            'user_id': reservation.user_id,
            'date': reservation.date,
        },
        facility_id=reservation.facility_id
    )


def publish_strike_issued(strike):
    event_publisher.publish(
        EventType.STRIKE_ISSUED,
        payload={
            'strike_id': strike.id,
            'user_id': strike.user_id,
            'strike_type': strike.strike_type,
            'reason': strike.strike_reason,
            'related_reservation_id': strike.related_reservation_id,
            'issued_by': strike.issued_by,
        },
        facility_id=strike.facility_id
    )


def publish_strike_revoked(strike):
    event_publisher.publish(
        EventType.STRIKE_REVOKED,
        payload={
            'strike_id': strike.id,
            'user_id': strike.user_id,
            'revoked_by': strike.revoked_by,
            'reason': strike.revoke_reason,
        },
        facility_id=strike.facility_id
    )


def publish_account_locked_out(facility_id: UUID, user_id: UUID, lockout_ends_at: datetime):
    event_publisher.publish(
        EventType.ACCOUNT_LOCKED_OUT,
        payload={
            'user_id': user_id,
            'lockout_ends_at': lockout_ends_at,
        },
        facility_id=facility_id
    )


def publish_rule_config_updated(config, action: str):
    event_publisher.publish(
        EventType.RULE_CONFIG_UPDATED,
        payload={
            'rule_code': config.rule_code,
            'action': action,
            'is_enabled': config.is_enabled,
            'severity': config.severity,
            'config': config.config,
            'updated_by': config.updated_by,
        },
        facility_id=config.facility_id
    )
