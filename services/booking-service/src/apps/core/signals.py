# services/booking-service/src/apps/core/signals.py
"""
Django Signals for Booking Policy Service

Publishes reservation and rule-config events and keeps the rule-config
cache in step with the database.
"""

import logging

from django.db import transaction
from django.db.models.signals import post_save, post_delete
from django.dispatch import receiver

from .models import FacilityRuleConfig, Reservation
from .events import publish_reservation_created, publish_rule_config_updated

logger = logging.getLogger(__name__)


# ==========================================================================
# Reservation Signals
# ==========================================================================

@receiver(post_save, sender=Reservation)
def reservation_post_save(sender, instance, created, **kwargs):
    """Publish new reservations once the commit lands."""
    if created:
        transaction.on_commit(lambda: publish_reservation_created(instance))
        logger.info(f"Reservation created: {instance.id}")


# ==========================================================================
# Rule Config Signals
# ==========================================================================

@receiver(post_save, sender=FacilityRuleConfig)
def rule_config_post_save(sender, instance, created, **kwargs):
    """Drop cached configs now and again at commit; publish once the write lands."""
    from .services.config_resolver import ConfigResolver

    action = 'created' if created else 'updated'
    ConfigResolver.invalidate(instance.facility_id)
    transaction.on_commit(lambda: ConfigResolver.invalidate(instance.facility_id))
    transaction.on_commit(lambda: publish_rule_config_updated(instance, action))


@receiver(post_delete, sender=FacilityRuleConfig)
def rule_config_post_delete(sender, instance, **kwargs):
    from .services.config_resolver import ConfigResolver

    ConfigResolver.invalidate(instance.facility_id)
    transaction.on_commit(lambda: ConfigResolver.invalidate(instance.facility_id))
    transaction.on_commit(lambda: publish_rule_config_updated(instance, 'reset'))
