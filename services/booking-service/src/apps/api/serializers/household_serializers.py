# services/booking-service/src/apps/api/serializers/household_serializers.py
"""
Household Serializers
"""

from rest_framework import serializers

from apps.core.models import Household, HouseholdMember


class HouseholdMemberSerializer(serializers.ModelSerializer):

    verification_status_display = serializers.CharField(
        source='get_verification_status_display',
        read_only=True
    )

    class Meta:
        model = HouseholdMember
        fields = [
            'id', 'household_id', 'user_id', 'is_primary',
            'verification_status', 'verification_status_display',
            'added_at', 'verified_at', 'verified_by',
        ]
        read_only_fields = fields


class HouseholdSerializer(serializers.ModelSerializer):

    members = HouseholdMemberSerializer(many=True, read_only=True)
    verified_member_count = serializers.SerializerMethodField()

    class Meta:
        model = Household
        fields = [
            'id', 'facility_id', 'household_name',
            'street_address', 'city', 'state', 'zip_code', 'normalized_address',
            'max_members', 'max_active_reservations', 'prime_time_max_per_week',
            'verified_member_count', 'members',
            'created_at', 'updated_at',
        ]
        read_only_fields = fields

    def get_verified_member_count(self, obj) -> int:
        return sum(
            1 for member in obj.members.all()
            if member.verification_status == HouseholdMember.VerificationStatus.VERIFIED
        )


class HouseholdListSerializer(HouseholdSerializer):

    class Meta(HouseholdSerializer.Meta):
        fields = [
            'id', 'facility_id', 'household_name', 'street_address',
            'normalized_address', 'verified_member_count',
        ]


class HouseholdCreateSerializer(serializers.Serializer):
    facility_id = serializers.UUIDField()
    street_address = serializers.CharField(max_length=255)
    city = serializers.CharField(max_length=100, required=False, allow_blank=True, default='')
    state = serializers.CharField(max_length=50, required=False, allow_blank=True, default='')
    zip_code = serializers.CharField(max_length=20, required=False, allow_blank=True, default='')
    household_name = serializers.CharField(max_length=255, required=False, allow_blank=True, default='')
    max_members = serializers.IntegerField(min_value=1, required=False, allow_null=True)
    max_active_reservations = serializers.IntegerField(min_value=0, required=False, allow_null=True)
    prime_time_max_per_week = serializers.IntegerField(min_value=0, required=False, allow_null=True)


class HouseholdMemberAddSerializer(serializers.Serializer):
    user_id = serializers.UUIDField()
    is_primary = serializers.BooleanField(default=False)
    verified = serializers.BooleanField(default=False)
