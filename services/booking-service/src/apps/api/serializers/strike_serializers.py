# services/booking-service/src/apps/api/serializers/strike_serializers.py
"""
Strike Serializers
"""

from rest_framework import serializers

from apps.core.models import Strike


class StrikeSerializer(serializers.ModelSerializer):

    strike_type_display = serializers.CharField(
        source='get_strike_type_display',
        read_only=True
    )

    class Meta:
        model = Strike
        fields = [
            'id', 'facility_id', 'user_id',
            'strike_type', 'strike_type_display', 'strike_reason',
            'related_reservation_id',
            'issued_at', 'issued_by', 'expires_at',
            'revoked', 'revoked_at', 'revoked_by', 'revoke_reason',
            'created_at',
        ]
        read_only_fields = fields


class StrikeIssueSerializer(serializers.Serializer):
    facility_id = serializers.UUIDField()
    user_id = serializers.UUIDField()
    strike_type = serializers.ChoiceField(
        choices=Strike.StrikeType.choices,
        default=Strike.StrikeType.MANUAL
    )
    reason = serializers.CharField(required=False, allow_blank=True, default='')
    related_reservation_id = serializers.UUIDField(required=False, allow_null=True)
    expires_at = serializers.DateTimeField(required=False, allow_null=True)


class StrikeRevokeSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=1000)


class FacilityUserQuerySerializer(serializers.Serializer):
    facility_id = serializers.UUIDField()
    user_id = serializers.UUIDField(required=False)
