# services/booking-service/src/apps/core/services/policy_engine.py
"""
Policy Engine

Entry point for booking decisions: evaluation, guarded commits, admin
overrides, cancellations and rule introspection.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from django.db import transaction

from apps.core.models import BookingCancellation, FacilityAdmin, RateLimitAction, Reservation, Strike
from apps.core.rules.catalog import PENALTY_STRIKE, RuleDefinition, Severity, list_definitions
from apps.core.rules.context import BookingRequest
from apps.core.rules.outcomes import EvaluationResult, RuleResult
from apps.core.events import publish_reservation_cancelled

from .config_resolver import ConfigResolver, EffectiveRuleConfig
from .context_builder import ContextBuilder
from .evaluator import Evaluator
from .rate_limiter import RateLimiter
from .reservation_guard import ReservationGuard
from .strike_service import StrikeTracker

logger = logging.getLogger(__name__)


@dataclass
class CommitResult:
    COMMITTED = 'committed'
    DENIED = 'denied'
    CONFLICT = 'conflict'

    status: str
    evaluation: Optional[EvaluationResult] = None
    reservation: Optional[Reservation] = None
    message: str = ''

    @property
    def committed(self) -> bool:
        return self.status == self.COMMITTED


@dataclass
class CancellationDecision:
    """Outcome of checking a cancellation. Cancelling is always allowed."""

    allowed: bool
    is_late_cancel: bool
    strike_will_be_issued: bool
    strikes_to_issue: int
    minutes_before_start: int
    warnings: List[RuleResult] = field(default_factory=list)

    @property
    def messages(self) -> List[str]:
        return [w.message for w in self.warnings]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'allowed': self.allowed,
            'is_late_cancel': self.is_late_cancel,
            'strike_will_be_issued': self.strike_will_be_issued,
            'strikes_to_issue': self.strikes_to_issue,
            'minutes_before_start': self.minutes_before_start,
            'messages': self.messages,
            'warnings': [w.to_dict() for w in self.warnings],
        }


class PolicyEngine:
    """
    Booking policy facade.

    Evaluation never writes. Commits record the ``create`` action after
    evaluating, so a request is limited by the actions before it.
    """

    def __init__(
        self,
        resolver: ConfigResolver = None,
        builder: ContextBuilder = None,
        evaluator: Evaluator = None,
        guard: ReservationGuard = None,
        rate_limiter: RateLimiter = None,
        strikes: StrikeTracker = None
    ):
        self.resolver = resolver or ConfigResolver()
        self.rate_limiter = rate_limiter or RateLimiter()
        self.builder = builder or ContextBuilder(self.resolver, self.rate_limiter)
        self.evaluator = evaluator or Evaluator()
        self.guard = guard or ReservationGuard()
        self.strikes = strikes or StrikeTracker(self.resolver)

    # ==========================================================================
    # Booking
    # ==========================================================================

    def evaluate(self, request: BookingRequest, now: datetime = None) -> EvaluationResult:
        result, _, _ = self._evaluate(request, now)
        return result

    def _evaluate(self, request: BookingRequest, now: datetime = None):
        configs = self.resolver.resolve_map(request.facility_id)
        ctx = self.builder.build(request, now=now, configs=configs)
        return self.evaluator.evaluate(ctx, configs), ctx, configs

    def commit_if_allowed(
        self,
        request: BookingRequest,
        now: datetime = None
    ) -> CommitResult:
        """Evaluate and, when allowed, commit through the guard."""
        from . import ReservationConflictError

        result, ctx, configs = self._evaluate(request, now)
        self.rate_limiter.record(
            request.user_id, request.facility_id, RateLimitAction.ActionType.CREATE, now=ctx.now
        )

        if not result.allowed:
            logger.warning(
                f"Denied booking for {request.user_id} on court {request.court_id}: "
                f"{', '.join(result.violation_codes)}"
            )
            return CommitResult(status=CommitResult.DENIED, evaluation=result)

        enforce = {
            code: configs[code]
            for code in ReservationGuard.GUARDED_RULES
            if self.evaluator.is_applicable(configs[code], ctx) and configs[code].severity == Severity.BLOCK
        }
        try:
            reservation = self.guard.commit(
                request,
                is_prime_time=result.is_prime_time,
                enforce_configs=enforce,
                now=ctx.now,
            )
        except ReservationConflictError as e:
            return CommitResult(status=CommitResult.CONFLICT, evaluation=result, message=str(e))

        return CommitResult(status=CommitResult.COMMITTED, evaluation=result, reservation=reservation)

    def commit_with_override(
        self,
        request: BookingRequest,
        admin_id: uuid.UUID,
        reason: str,
        now: datetime = None
    ) -> CommitResult:
        """
        Commit regardless of rule violations.

        Blocking codes are recorded on the reservation. The court slot
        collision check still applies.
        """
        from . import AdminOverrideError, ReservationConflictError

        if not FacilityAdmin.is_admin(request.facility_id, admin_id):
            raise AdminOverrideError(f"User {admin_id} is not an admin of facility {request.facility_id}")
        if not reason or not reason.strip():
            raise AdminOverrideError("An override reason is required")

        result, ctx, _ = self._evaluate(request, now)
        try:
            reservation = self.guard.commit(
                request,
                is_prime_time=result.is_prime_time,
                rule_overrides=result.violation_codes,
                override_reason=reason,
                overridden_by=admin_id,
                created_by=admin_id,
                now=ctx.now,
            )
        except ReservationConflictError as e:
            return CommitResult(status=CommitResult.CONFLICT, evaluation=result, message=str(e))

        if result.violation_codes:
            logger.info(
                f"Admin {admin_id} overrode {', '.join(result.violation_codes)} "
                f"for reservation {reservation.id}"
            )
        return CommitResult(status=CommitResult.COMMITTED, evaluation=result, reservation=reservation)

    # ==========================================================================
    # Cancellation
    # ==========================================================================

    def evaluate_cancellation(self, reservation: Reservation, now: datetime = None) -> CancellationDecision:
        return self._decide_cancellation(reservation, self.builder.build_cancellation(reservation, now))

    def _decide_cancellation(self, reservation: Reservation, ctx) -> CancellationDecision:
        configs = self.resolver.resolve_map(reservation.facility_id)
        tier_id = self.builder.effective_tier_id(reservation.facility_id, reservation.user_id, ctx.now)

        warnings = self.evaluator.evaluate_cancellation(ctx, configs, tier_id)

        # One late cancellation earns the largest configured penalty, not the sum.
        strikes = max(
            (w.details.get('penalty_value', 0) for w in warnings
             if w.details.get('penalty_type') == PENALTY_STRIKE),
            default=0,
        )
        return CancellationDecision(
            allowed=True,
            is_late_cancel=bool(warnings),
            strike_will_be_issued=strikes > 0,
            strikes_to_issue=strikes,
            minutes_before_start=ctx.minutes_before_start,
            warnings=warnings,
        )

    @transaction.atomic
    def cancel_reservation(
        self,
        reservation_id: uuid.UUID,
        user_id: uuid.UUID,
        reason: str = None,
        now: datetime = None
    ):
        """
        Cancel a reservation, recording the cancellation and issuing any
        late-cancellation strikes.

        Returns ``(reservation, cancellation, decision)``.
        """
        from . import ReservationNotFoundError, ReservationConflictError

        try:
            reservation = (
                Reservation.objects.select_for_update()
                .select_related('court', 'facility')
                .get(id=reservation_id)
            )
        except Reservation.DoesNotExist:
            raise ReservationNotFoundError(f"Reservation {reservation_id} not found")

        ctx = self.builder.build_cancellation(reservation, now)
        decision = self._decide_cancellation(reservation, ctx)
        ctx_now = ctx.now

        self.rate_limiter.record(
            reservation.user_id, reservation.facility_id, RateLimitAction.ActionType.CANCEL, now=ctx_now
        )

        try:
            reservation.cancel(user_id, reason, at=ctx_now)
        except ValueError as e:
            raise ReservationConflictError(str(e))

        cancellation = BookingCancellation.objects.create(
            reservation=reservation,
            facility_id=reservation.facility_id,
            user_id=reservation.user_id,
            cancelled_at=ctx_now,
            booking_start_time=reservation.start_datetime(ctx_now.tzinfo),
            minutes_before_start=decision.minutes_before_start,
            is_late_cancel=decision.is_late_cancel,
            cancel_reason=reason or '',
        )

        issued = []
        for _ in range(decision.strikes_to_issue):
            issued.append(self.strikes.issue_strike(
                facility_id=reservation.facility_id,
                user_id=reservation.user_id,
                strike_type=Strike.StrikeType.LATE_CANCEL,
                reason=(
                    f"Late cancellation: cancelled {decision.minutes_before_start} "
                    f"minutes before start"
                ),
                related_reservation=reservation,
                now=ctx_now,
            ))
        if issued:
            cancellation.strike_issued = True
            cancellation.strike = issued[0]
            cancellation.save(update_fields=['strike_issued', 'strike'])

        logger.info(
            f"Cancelled reservation {reservation.id} "
            f"({decision.minutes_before_start} min before start, late={decision.is_late_cancel})"
        )
        publish_reservation_cancelled(reservation, cancellation)
        return reservation, cancellation, decision

    @transaction.atomic
    def mark_no_show(self, reservation_id: uuid.UUID, marked_by: uuid.UUID = None, now: datetime = None) -> Strike:
        from . import ReservationNotFoundError

        try:
            reservation = Reservation.objects.select_for_update().get(id=reservation_id)
        except Reservation.DoesNotExist:
            raise ReservationNotFoundError(f"Reservation {reservation_id} not found")
        return self.strikes.mark_no_show(reservation, marked_by=marked_by, now=now)

    # ==========================================================================
    # Introspection
    # ==========================================================================

    def list_rule_definitions(self, category: str = None) -> List[RuleDefinition]:
        return list_definitions(category)

    def get_effective_rules(self, facility_id: uuid.UUID) -> List[EffectiveRuleConfig]:
        return self.resolver.resolve_all(facility_id)
