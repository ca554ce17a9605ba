# services/booking-service/src/tests/conftest.py
"""
Pytest Configuration and Fixtures

Provides common fixtures for booking policy tests.
"""

import uuid
from datetime import datetime, time, timedelta, timezone as dt_timezone

import pytest
from django.core.cache import cache
from rest_framework.test import APIClient

from shared.common.authentication import JWTTokenGenerator


@pytest.fixture(autouse=True)
def reset_shared_state():
    """Clear the rule config cache and captured events around each test."""
    from apps.core.events import published_events

    cache.clear()
    published_events.clear()
    yield
    published_events.clear()


@pytest.fixture
def api_client():
    """Provide API client for testing."""
    return APIClient()


@pytest.fixture
def auth_client():
    """Factory for API clients authenticated as a given user."""
    def _auth_client(user_id):
        client = APIClient()
        token = JWTTokenGenerator.generate_access_token(user_id)
        client.credentials(HTTP_AUTHORIZATION=f'Bearer {token}')
        return client

    return _auth_client


@pytest.fixture
def now():
    """Fixed evaluation time: Monday 2030-06-03 09:00 UTC."""
    return datetime(2030, 6, 3, 9, 0, tzinfo=dt_timezone.utc)


@pytest.fixture
def tomorrow(now):
    return now.date() + timedelta(days=1)


@pytest.fixture
def user_id():
    """Provide a test member ID."""
    return uuid.uuid4()


@pytest.fixture
def other_user_id():
    """Provide a second member ID."""
    return uuid.uuid4()


@pytest.fixture
def admin_id():
    """Provide a facility admin ID."""
    return uuid.uuid4()


# =============================================================================
# Factories
# =============================================================================

@pytest.fixture
def create_facility():
    """Factory fixture for creating facilities."""
    from apps.core.models import Facility

    def _create_facility(**kwargs):
        defaults = {
            'name': 'Riverside Tennis Club',
            'timezone': 'UTC',
        }
        defaults.update(kwargs)

        return Facility.objects.create(**defaults)

    return _create_facility


@pytest.fixture
def facility(create_facility):
    return create_facility()


@pytest.fixture
def create_court(facility):
    """Factory fixture for courts; ``operating_configs`` is a list of day dicts."""
    from apps.core.models import Court, CourtOperatingConfig

    def _create_court(**kwargs):
        operating_configs = kwargs.pop('operating_configs', [])
        defaults = {
            'facility': facility,
            'name': 'Court 1',
            'court_number': 1,
            'surface_type': 'hard',
        }
        defaults.update(kwargs)

        court = Court.objects.create(**defaults)
        for config in operating_configs:
            CourtOperatingConfig.objects.create(court=court, **config)
        return court

    return _create_court


@pytest.fixture
def court(create_court):
    return create_court()


@pytest.fixture
def create_reservation(facility, court, user_id, tomorrow):
    """Factory fixture for creating reservations."""
    from apps.core.models import Reservation

    def _create_reservation(**kwargs):
        defaults = {
            'facility': facility,
            'court': court,
            'user_id': user_id,
            'date': tomorrow,
            'start_time': time(10, 0),
            'end_time': time(11, 0),
            'status': Reservation.Status.CONFIRMED,
        }
        defaults.update(kwargs)
        if 'duration_minutes' not in defaults:
            start, end = defaults['start_time'], defaults['end_time']
            defaults['duration_minutes'] = (end.hour * 60 + end.minute) - (start.hour * 60 + start.minute)

        return Reservation.objects.create(**defaults)

    return _create_reservation


@pytest.fixture
def create_tier(facility):
    """Factory fixture for creating membership tiers."""
    from apps.core.models import MembershipTier

    def _create_tier(**kwargs):
        defaults = {
            'facility': facility,
            'tier_name': 'Standard',
            'tier_level': 1,
            'advance_booking_days': 7,
        }
        defaults.update(kwargs)

        return MembershipTier.objects.create(**defaults)

    return _create_tier


@pytest.fixture
def create_household(facility):
    """Factory fixture for households; ``verified_members`` adds verified users."""
    from apps.core.models import Household, HouseholdMember

    def _create_household(**kwargs):
        verified_members = kwargs.pop('verified_members', [])
        defaults = {
            'facility': facility,
            'street_address': '12 North Main Street',
            'city': 'Springfield',
        }
        defaults.update(kwargs)

        household = Household.objects.create(**defaults)
        for member_id in verified_members:
            HouseholdMember.objects.create(
                household=household,
                user_id=member_id,
                verification_status=HouseholdMember.VerificationStatus.VERIFIED,
            )
        return household

    return _create_household


@pytest.fixture
def create_strike(facility, user_id, now):
    """Factory fixture for creating strikes."""
    from apps.core.models import Strike

    def _create_strike(**kwargs):
        defaults = {
            'facility': facility,
            'user_id': user_id,
            'strike_type': Strike.StrikeType.NO_SHOW,
            'issued_at': now - timedelta(days=1),
        }
        defaults.update(kwargs)

        return Strike.objects.create(**defaults)

    return _create_strike


@pytest.fixture
def make_admin(facility):
    """Factory fixture granting facility admin rights."""
    from apps.core.models import FacilityAdmin

    def _make_admin(user_id, target=None):
        return FacilityAdmin.objects.create(facility=target or facility, user_id=user_id)

    return _make_admin


@pytest.fixture
def configure_rule(facility):
    """Factory fixture writing a facility rule override."""
    from apps.core.services import RuleConfigService

    def _configure_rule(rule_code, target=None, **kwargs):
        return RuleConfigService().configure_rule((target or facility).id, rule_code, **kwargs)

    return _configure_rule


@pytest.fixture
def make_booking_request(facility, court, user_id, tomorrow):
    """Factory fixture for booking requests; defaults to tomorrow 10:00-11:00."""
    from apps.core.rules import BookingRequest

    def _make_booking_request(**kwargs):
        defaults = {
            'facility_id': facility.id,
            'court_id': court.id,
            'user_id': user_id,
            'date': tomorrow,
            'start_time': '10:00',
            'end_time': '11:00',
        }
        defaults.update(kwargs)

        return BookingRequest(**defaults)

    return _make_booking_request


@pytest.fixture
def sample_booking_data(facility, court):
    """Booking payload for tomorrow (real clock) 10:00-11:00."""
    from django.utils import timezone

    return {
        'facility_id': str(facility.id),
        'court_id': str(court.id),
        'date': (timezone.now().date() + timedelta(days=1)).isoformat(),
        'start_time': '10:00',
        'end_time': '11:00',
    }
