from django.contrib import admin
from .models import (
    Facility, FacilityAdmin, Court, CourtBlackout, FacilityRuleConfig,
    MembershipTier, UserTier, Household, HouseholdMember, Reservation, Strike,
)


class CourtInline(admin.TabularInline):
    model = Court
    extra = 0
    fields = ['name', 'court_number', 'surface_type', 'status']


@admin.register(Facility)
class FacilityModelAdmin(admin.ModelAdmin):
    list_display = ['name', 'timezone', 'restriction_type']
    inlines = [CourtInline]


@admin.register(FacilityAdmin)
class FacilityAdminModelAdmin(admin.ModelAdmin):
    list_display = ['facility', 'user_id']


@admin.register(CourtBlackout)
class CourtBlackoutAdmin(admin.ModelAdmin):
    list_display = ['facility', 'court', 'start_datetime', 'end_datetime', 'is_active']
    list_filter = ['is_active']


@admin.register(FacilityRuleConfig)
class FacilityRuleConfigAdmin(admin.ModelAdmin):
    list_display = ['facility', 'rule_code', 'is_enabled', 'severity', 'updated_at']
    list_filter = ['rule_code', 'is_enabled']


@admin.register(MembershipTier)
class MembershipTierAdmin(admin.ModelAdmin):
    list_display = ['facility', 'tier_name', 'tier_level', 'advance_booking_days', 'is_default']


@admin.register(UserTier)
class UserTierAdmin(admin.ModelAdmin):
    list_display = ['user_id', 'facility', 'tier', 'expires_at']


class HouseholdMemberInline(admin.TabularInline):
    model = HouseholdMember
    extra = 0


@admin.register(Household)
class HouseholdAdmin(admin.ModelAdmin):
    list_display = ['facility', 'street_address', 'normalized_address', 'max_members']
    search_fields = ['street_address', 'normalized_address']
    inlines = [HouseholdMemberInline]


@admin.register(Reservation)
class ReservationAdmin(admin.ModelAdmin):
    list_display = ['id', 'court', 'user_id', 'date', 'start_time', 'end_time', 'status']
    list_filter = ['status', 'is_prime_time']


@admin.register(Strike)
class StrikeAdmin(admin.ModelAdmin):
    list_display = ['user_id', 'facility', 'strike_type', 'issued_at', 'revoked']
    list_filter = ['strike_type', 'revoked']
