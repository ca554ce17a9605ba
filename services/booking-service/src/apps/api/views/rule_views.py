# services/booking-service/src/apps/api/views/rule_views.py
"""
Rule API Views

Rule catalog browsing and per-facility rule configuration.
"""

import logging

from rest_framework import viewsets, status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.core.rules.catalog import RuleCategory, get_definition
from apps.core.services import PolicyEngine, RuleConfigService, UnknownRuleError
from apps.api.serializers import (
    RuleDefinitionSerializer,
    EffectiveRuleSerializer,
    RuleConfigUpdateSerializer,
    BulkRuleConfigSerializer,
    PrimeTimeWindowsSerializer,
)
from shared.common.exceptions import ValidationException
from .base import ExceptionHandlerMixin, FacilityAdminMixin

logger = logging.getLogger(__name__)


class RuleDefinitionViewSet(ExceptionHandlerMixin, viewsets.ViewSet):
    """
    Read-only rule catalog.

    ``?category=account|court|household`` narrows the list.
    """

    permission_classes = [IsAuthenticated]
    lookup_field = 'code'

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.engine = PolicyEngine()

    def list(self, request):
        category = request.query_params.get('category')
        if category and category not in RuleCategory._value2member_map_:
            raise ValidationException(
                {'category': [f"Unknown category: {category}"]},
                detail=f"Unknown category: {category}"
            )

        definitions = self.engine.list_rule_definitions(category)
        return Response(RuleDefinitionSerializer(definitions, many=True).data)

    def retrieve(self, request, code=None):
        try:
            definition = get_definition(code)
        except KeyError:
            raise UnknownRuleError(f"Unknown rule code: {code}")
        return Response(RuleDefinitionSerializer(definition).data)


class FacilityRulesView(ExceptionHandlerMixin, FacilityAdminMixin, APIView):
    """Effective rule configuration of a facility."""

    permission_classes = [IsAuthenticated]

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.engine = PolicyEngine()

    def get(self, request, facility_id):
        self.get_facility(facility_id)
        configs = self.engine.get_effective_rules(facility_id)
        return Response(EffectiveRuleSerializer(configs, many=True).data)


class FacilityRuleDetailView(ExceptionHandlerMixin, FacilityAdminMixin, APIView):
    """Configure (PUT) or reset (DELETE) one rule of a facility."""

    permission_classes = [IsAuthenticated]

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.engine = PolicyEngine()
        self.config_service = RuleConfigService()

    def get(self, request, facility_id, code):
        self.get_facility(facility_id)
        config = self.engine.resolver.resolve(facility_id, code)
        return Response(EffectiveRuleSerializer(config).data)

    def put(self, request, facility_id, code):
        self.get_facility(facility_id)
        self.require_facility_admin(facility_id)

        serializer = RuleConfigUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        self.config_service.configure_rule(
            facility_id,
            code,
            updated_by=request.user.id,
            **serializer.validated_data
        )
        config = self.engine.resolver.resolve(facility_id, code)
        return Response(EffectiveRuleSerializer(config).data)

    def delete(self, request, facility_id, code):
        self.get_facility(facility_id)
        self.require_facility_admin(facility_id)

        self.config_service.reset_rule(facility_id, code)
        config = self.engine.resolver.resolve(facility_id, code)
        return Response(EffectiveRuleSerializer(config).data)


class FacilityRulesEnableAllView(ExceptionHandlerMixin, FacilityAdminMixin, APIView):
    """Enable every catalog rule for a facility."""

    permission_classes = [IsAuthenticated]
    enabled = True

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.config_service = RuleConfigService()

    def post(self, request, facility_id):
        self.get_facility(facility_id)
        self.require_facility_admin(facility_id)

        if self.enabled:
            count = self.config_service.enable_all(facility_id, updated_by=request.user.id)
        else:
            count = self.config_service.disable_all(facility_id, updated_by=request.user.id)

        return Response({'updated': count, 'is_enabled': self.enabled})


class FacilityRulesDisableAllView(FacilityRulesEnableAllView):
    """Disable every catalog rule for a facility."""

    enabled = False


class FacilityRulesBulkView(ExceptionHandlerMixin, FacilityAdminMixin, APIView):
    """Apply several rule configs atomically."""

    permission_classes = [IsAuthenticated]

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.engine = PolicyEngine()
        self.config_service = RuleConfigService()

    def post(self, request, facility_id):
        self.get_facility(facility_id)
        self.require_facility_admin(facility_id)

        serializer = BulkRuleConfigSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        rows = self.config_service.bulk_set(
            facility_id,
            serializer.validated_data['rules'],
            updated_by=request.user.id
        )
        configs = [self.engine.resolver.resolve(facility_id, row.rule_code) for row in rows]
        return Response(EffectiveRuleSerializer(configs, many=True).data)


class FacilityPrimeTimeView(ExceptionHandlerMixin, FacilityAdminMixin, APIView):
    """Replace the facility-wide prime-time windows."""

    permission_classes = [IsAuthenticated]

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.config_service = RuleConfigService()

    def get(self, request, facility_id):
        facility = self.get_facility(facility_id)
        return Response({'windows': facility.prime_time_windows or {}})

    def put(self, request, facility_id):
        self.get_facility(facility_id)
        self.require_facility_admin(facility_id)

        serializer = PrimeTimeWindowsSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        facility = self.config_service.set_prime_time_windows(
            facility_id,
            serializer.validated_data['windows']
        )
        return Response({'windows': facility.prime_time_windows}, status=status.HTTP_200_OK)
