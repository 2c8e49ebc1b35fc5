"""
replenishment_kernel.services.suggestion_service -- Suggestion triage and conversion.

Responsibility:
    Accepts suggestions from the forecasting oracle, classifies them
    against their schedule, keeps the pending set, and converts a
    suggestion into an Order exactly once (automatically when it
    qualifies for auto-approval, otherwise on a human approve).

Architecture position:
    Kernel > Services.  Composes ScheduleRegistry, OrderWorkflowService,
    the pure decision engine and vendor selection.

Invariants enforced:
    - Expired suggestions are never auto-approved and cannot be approved.
    - Approve and reject are at-most-once: under the suggestion's lock the
      order is created and the suggestion removed in one critical section;
      the order id is derived from the suggestion id, so a duplicate
      conversion also fails at the order store.
    - DM-routed suggestions produce line items flagged
      ``requires_dm_approval``, so the order starts in PENDING_DM_APPROVAL.

Failure modes:
    - SuggestionNotFoundError once a suggestion has been consumed.
    - SuggestionExpiredError past ``expires_at``.
    - ScheduleNotFoundError / ProductNotFoundError for unknown references.
    - NoVendorAvailableError when vendor selection finds no candidate.
    - UnauthorizedActorError for roles that cannot act on suggestions.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import datetime

from replenishment_kernel.domain.clock import Clock, SystemClock
from replenishment_kernel.domain.decision import (
    ApprovalClassification,
    ApprovalRoute,
    classify,
)
from replenishment_kernel.domain.order import LineItem, Order, OrderType, RejectionReasonCode
from replenishment_kernel.domain.reporting import SuggestionOutcome
from replenishment_kernel.domain.roles import Actor, ActorRole
from replenishment_kernel.domain.schedule import ScheduleConfig
from replenishment_kernel.domain.suggestion import ReplenishmentSuggestion
from replenishment_kernel.domain.vendor_selection import (
    VendorSelection,
    select_vendor_for_product,
)
from replenishment_kernel.exceptions import (
    InvalidReasonCodeError,
    ReplenishmentError,
    SuggestionExpiredError,
    SuggestionNotFoundError,
    UnauthorizedActorError,
    ValidationError,
)
from replenishment_kernel.logging_config import LogContext, get_logger
from replenishment_kernel.repositories.base import SuggestionRepository
from replenishment_kernel.services.catalog import ProductCatalog
from replenishment_kernel.services.locks import KeyedLocks
from replenishment_kernel.services.order_workflow import OrderWorkflowService
from replenishment_kernel.services.schedule_registry import ScheduleRegistry

logger = get_logger("services.suggestion_service")

SYSTEM_USER_ID = "system"

SUGGESTION_APPROVER_ROLES: frozenset[ActorRole] = frozenset({
    ActorRole.DM,
    ActorRole.FM,
    ActorRole.ADMIN,
})

_ORDER_TYPE_BY_ROLE = {
    ActorRole.FM: OrderType.FM_INITIATED,
    ActorRole.DM: OrderType.STORE_INITIATED,
    ActorRole.ADMIN: OrderType.STORE_INITIATED,
}


def order_id_for(suggestion_id: str) -> str:
    return f"SUG-{suggestion_id}"


@dataclass(frozen=True)
class TriageResult:
    """What ``submit`` did with a suggestion.

    ``order`` is set only when the suggestion was auto-approved and
    converted on the spot.
    """

    suggestion: ReplenishmentSuggestion
    classification: ApprovalClassification
    order: Order | None = None


class SuggestionService:
    """Pending replenishment suggestions and their conversion into orders."""

    def __init__(
        self,
        suggestions: SuggestionRepository,
        registry: ScheduleRegistry,
        workflow: OrderWorkflowService,
        catalog: ProductCatalog,
        clock: Clock | None = None,
        *,
        order_id_factory: Callable[[str], str] = order_id_for,
    ) -> None:
        self._suggestions = suggestions
        self._registry = registry
        self._workflow = workflow
        self._catalog = catalog
        self._clock = clock or SystemClock()
        self._order_id_for = order_id_factory
        self._locks = KeyedLocks()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, suggestion_id: str) -> ReplenishmentSuggestion:
        suggestion = self._suggestions.get(suggestion_id)
        if suggestion is None:
            raise SuggestionNotFoundError(suggestion_id)
        return suggestion

    def list_pending(self, schedule_id: str | None = None) -> list[ReplenishmentSuggestion]:
        return sorted(
            self._suggestions.list(schedule_id),
            key=lambda s: (s.created_at, s.suggestion_id),
        )

    def _schedule_for(self, suggestion: ReplenishmentSuggestion) -> ScheduleConfig:
        if suggestion.schedule_id is None:
            raise ValidationError(
                f"Suggestion {suggestion.suggestion_id} has no owning schedule"
            )
        return self._registry.get(suggestion.schedule_id)

    def classify(self, suggestion_id: str, now: datetime | None = None) -> ApprovalClassification:
        """Classify a pending suggestion against its schedule's current rules."""
        suggestion = self.get(suggestion_id)
        return classify(suggestion, self._schedule_for(suggestion), now or self._clock.now())

    # ------------------------------------------------------------------
    # Intake
    # ------------------------------------------------------------------

    def submit(self, suggestion: ReplenishmentSuggestion) -> TriageResult:
        """Classify and store a new suggestion; auto-approve when it qualifies.

        The suggestion is stored as not auto-approved and only flagged once
        its order exists.  A failed automatic conversion leaves it pending
        for FM review, recorded as a manual FM_REVIEW outcome; the
        conversion error is re-raised.

        Raises:
            SuggestionExpiredError: already expired on arrival (not stored).
        """
        with LogContext.bind(
            suggestion_id=suggestion.suggestion_id, schedule_id=suggestion.schedule_id
        ):
            schedule = self._schedule_for(suggestion)
            now = self._clock.now()
            classification = classify(suggestion, schedule, now)
            stored = replace(suggestion, auto_approved=False)
            self._suggestions.add(stored)
            logger.info(
                "suggestion_triaged",
                extra={
                    "route": classification.route.value,
                    "confidence": stored.confidence,
                    "cost_impact": str(stored.cost_impact),
                    "escalations": [e.value for e in classification.escalations],
                },
            )

            order = None
            if classification.route is ApprovalRoute.AUTO_APPROVE:
                try:
                    order = self._convert(
                        stored.suggestion_id,
                        Actor(SYSTEM_USER_ID, ActorRole.ADMIN),
                        OrderType.SYSTEM_INITIATED,
                    )
                except ReplenishmentError as exc:
                    logger.warning(
                        "auto_conversion_failed",
                        extra={"error_code": exc.code, "fallback_route": "FM_REVIEW"},
                    )
                    self._record_outcome(stored, schedule, ApprovalRoute.FM_REVIEW, now)
                    raise
                stored = replace(stored, auto_approved=True)

            self._record_outcome(stored, schedule, classification.route, now)
            return TriageResult(suggestion=stored, classification=classification, order=order)

    def is_pending(self, suggestion_id: str) -> bool:
        return self._suggestions.get(suggestion_id) is not None

    def _record_outcome(
        self,
        suggestion: ReplenishmentSuggestion,
        schedule: ScheduleConfig,
        route: ApprovalRoute,
        now: datetime,
    ) -> None:
        self._registry.record_outcome(
            SuggestionOutcome(
                suggestion_id=suggestion.suggestion_id,
                schedule_id=schedule.schedule_id,
                confidence=suggestion.confidence,
                route=route,
                auto_approved=suggestion.auto_approved,
                decided_at=now,
                predicted_quantity=suggestion.suggested_quantity,
            )
        )

    # ------------------------------------------------------------------
    # Consumption
    # ------------------------------------------------------------------

    def _check_role(self, suggestion_id: str, actor: Actor, action: str) -> None:
        if actor.role not in SUGGESTION_APPROVER_ROLES:
            raise UnauthorizedActorError(
                suggestion_id, actor.user_id, actor.role.value, action, "PENDING"
            )

    def approve_suggestion(
        self, suggestion_id: str, actor: Actor, quantity: int | None = None
    ) -> Order:
        """Convert a pending suggestion into an order (at most once).

        ``quantity`` overrides the suggested quantity.
        """
        self._check_role(suggestion_id, actor, "approve_suggestion")
        if quantity is not None and quantity <= 0:
            raise ValidationError(f"quantity must be > 0, got {quantity}")
        return self._convert(
            suggestion_id,
            actor,
            _ORDER_TYPE_BY_ROLE[actor.role],
            quantity=quantity,
        )

    def reject_suggestion(
        self,
        suggestion_id: str,
        actor: Actor,
        reason_code: RejectionReasonCode | str | None = None,
        comments: str | None = None,
    ) -> ReplenishmentSuggestion:
        """Discard a pending suggestion (at most once)."""
        self._check_role(suggestion_id, actor, "reject_suggestion")
        reason = None
        if reason_code is not None:
            try:
                reason = RejectionReasonCode(reason_code)
            except ValueError:
                raise InvalidReasonCodeError(
                    str(reason_code), tuple(c.value for c in RejectionReasonCode)
                ) from None
        with self._locks.hold(suggestion_id), LogContext.bind(
            suggestion_id=suggestion_id, actor_id=actor.user_id
        ):
            removed = self._suggestions.remove(suggestion_id)
        self._locks.discard(suggestion_id)
        logger.info(
            "suggestion_rejected",
            extra={
                "suggestion_id": suggestion_id,
                "reason_code": reason.value if reason else None,
                "comments": comments,
            },
        )
        return removed

    def expire_stale(self, now: datetime | None = None) -> list[str]:
        """Drop pending suggestions past ``expires_at``; returns their ids."""
        now = now or self._clock.now()
        expired: list[str] = []
        for suggestion in self._suggestions.list():
            if not suggestion.is_expired(now):
                continue
            with self._locks.hold(suggestion.suggestion_id):
                try:
                    self._suggestions.remove(suggestion.suggestion_id)
                except SuggestionNotFoundError:
                    # Consumed concurrently; nothing to expire.
                    continue
            expired.append(suggestion.suggestion_id)
        if expired:
            logger.info("suggestions_expired", extra={"expired_count": len(expired)})
        return expired

    def _select_vendor(
        self, suggestion: ReplenishmentSuggestion, schedule: ScheduleConfig
    ) -> tuple[VendorSelection, bool]:
        product = self._catalog.get_product(suggestion.product_id)
        if not product.is_active:
            raise ValidationError(f"Product {product.product_id} is inactive")
        selection = select_vendor_for_product(
            product, schedule.vendor_preferences, self._catalog.vendor_metrics()
        )
        return selection, product.requires_dm_approval

    def _convert(
        self,
        suggestion_id: str,
        actor: Actor,
        order_type: OrderType,
        quantity: int | None = None,
    ) -> Order:
        with self._locks.hold(suggestion_id), LogContext.bind(
            suggestion_id=suggestion_id, actor_id=actor.user_id
        ):
            suggestion = self.get(suggestion_id)
            now = self._clock.now()
            if suggestion.is_expired(now):
                raise SuggestionExpiredError(
                    suggestion_id, suggestion.expires_at.isoformat(), now.isoformat()
                )
            schedule = self._schedule_for(suggestion)
            classification = classify(suggestion, schedule, now)
            selection, product_needs_dm = self._select_vendor(suggestion, schedule)

            line = LineItem(
                product_id=suggestion.product_id,
                vendor_id=selection.vendor.vendor_id,
                quantity=quantity or suggestion.suggested_quantity,
                unit_cost=selection.vendor.cost_per_item,
                requires_dm_approval=(
                    product_needs_dm or classification.route is ApprovalRoute.DM_APPROVAL
                ),
            )
            order = self._workflow.create_order(
                store_id=suggestion.store_id,
                created_by_user_id=actor.user_id,
                line_items=(line,),
                order_type=order_type,
                order_id=self._order_id_for(suggestion_id),
                source_suggestion_id=suggestion_id,
                details=(
                    f"Created from {suggestion.reason.value} suggestion {suggestion_id} "
                    f"(confidence {suggestion.confidence:.2f}); {selection.reasoning}"
                ),
            )
            self._suggestions.remove(suggestion_id)
        self._locks.discard(suggestion_id)
        logger.info(
            "suggestion_converted",
            extra={
                "suggestion_id": suggestion_id,
                "order_id": order.order_id,
                "order_type": order_type.value,
                "vendor_id": selection.vendor.vendor_id,
                "route": classification.route.value,
            },
        )
        return order
