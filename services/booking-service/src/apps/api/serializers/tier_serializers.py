# services/booking-service/src/apps/api/serializers/tier_serializers.py
"""
Membership Tier Serializers
"""

from rest_framework import serializers

from apps.core.models import MembershipTier, UserTier


class MembershipTierSerializer(serializers.ModelSerializer):

    class Meta:
        model = MembershipTier
        fields = [
            'id', 'facility_id', 'tier_name', 'tier_level', 'description',
            'advance_booking_days', 'prime_time_eligible', 'prime_time_max_per_week',
            'max_active_reservations', 'max_reservations_per_week', 'max_minutes_per_week',
            'is_default', 'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'created_at', 'updated_at']


class MembershipTierCreateSerializer(serializers.ModelSerializer):
    """Tier input. Uniqueness is checked by the tier service."""

    facility_id = serializers.UUIDField()

    class Meta:
        model = MembershipTier
        fields = [
            'facility_id', 'tier_name', 'tier_level', 'description',
            'advance_booking_days', 'prime_time_eligible', 'prime_time_max_per_week',
            'max_active_reservations', 'max_reservations_per_week', 'max_minutes_per_week',
            'is_default',
        ]
        validators = []


class MembershipTierUpdateSerializer(MembershipTierCreateSerializer):

    class Meta(MembershipTierCreateSerializer.Meta):
        fields = [f for f in MembershipTierCreateSerializer.Meta.fields if f != 'facility_id']


class UserTierSerializer(serializers.ModelSerializer):

    tier_name = serializers.CharField(source='tier.tier_name', read_only=True)

    class Meta:
        model = UserTier
        fields = [
            'id', 'user_id', 'facility_id', 'tier_id', 'tier_name',
            'assigned_at', 'assigned_by', 'expires_at',
        ]
        read_only_fields = fields


class TierAssignSerializer(serializers.Serializer):
    user_id = serializers.UUIDField()
    expires_at = serializers.DateTimeField(required=False, allow_null=True)


class TierUnassignSerializer(serializers.Serializer):
    user_id = serializers.UUIDField()
