"""
replenishment_kernel.services.order_workflow -- Order approval state machine.

Responsibility:
    Creates orders and moves them through approval and fulfillment:
    approve, reject, dispatch, receive, and line-item amendment.  Every
    successful status change appends exactly one audit entry.

Architecture position:
    Kernel > Services.  May import from domain/ and repositories/.

Invariants enforced:
    - Status changes only along ``ORDER_WORKFLOW`` transitions.
    - Role authorization through the static capability table.
    - Audit history is append-only; one entry per successful action.
    - Transitions on one order are serialized (per-order lock) and saved
      with an optimistic version check.

Failure modes (checked in this order, order left unchanged on any):
    - OrderNotFoundError if order_id is unknown.
    - InvalidTransitionError if the action is not defined from the status.
    - UnauthorizedActorError if the role may not act in this status.
    - ValidationError subclasses for bad arguments (reason codes,
      receipts, line items).
    - OptimisticLockError if another writer saved the order first.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from decimal import Decimal
from enum import Enum
from uuid import uuid4

from replenishment_kernel.domain.clock import Clock, SystemClock
from replenishment_kernel.domain.order import (
    ACTION_APPROVE,
    ACTION_DISPATCH,
    ACTION_RECEIVE_FULL,
    ACTION_RECEIVE_PARTIAL,
    ACTION_REJECT,
    ORDER_WORKFLOW,
    Address,
    AuditAction,
    AuditEntry,
    FulfillmentMethod,
    LineItem,
    Order,
    OrderStatus,
    OrderType,
    OverrideReasonCode,
    RejectionReasonCode,
    ShippingDetails,
    freeze_quantities,
    initial_status_for,
)
from replenishment_kernel.domain.roles import (
    Actor,
    ActorRole,
    OrderAction,
    allowed_actions,
    can_perform,
)
from replenishment_kernel.domain.workflow import Transition
from replenishment_kernel.exceptions import (
    InvalidReasonCodeError,
    InvalidReceiptError,
    InvalidTransitionError,
    MissingReasonCodeError,
    OrderNotFoundError,
    UnauthorizedActorError,
    ValidationError,
)
from replenishment_kernel.logging_config import LogContext, get_logger
from replenishment_kernel.repositories.base import OrderRepository
from replenishment_kernel.services.locks import KeyedLocks

logger = get_logger("services.order_workflow")

_RECEIVE_ACTIONS = (ACTION_RECEIVE_PARTIAL, ACTION_RECEIVE_FULL)


def _coerce_reason(entity_id: str, action: str, reason_code, allowed: type[Enum]):
    if reason_code is None or reason_code == "":
        raise MissingReasonCodeError(entity_id, action)
    try:
        return allowed(reason_code)
    except ValueError:
        raise InvalidReasonCodeError(
            str(reason_code), tuple(code.value for code in allowed)
        ) from None


class OrderWorkflowService:
    """Drives orders through the approval and fulfillment lifecycle."""

    def __init__(
        self,
        orders: OrderRepository,
        clock: Clock | None = None,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        self._orders = orders
        self._clock = clock or SystemClock()
        self._new_id = id_factory or (lambda: str(uuid4()))
        self._locks = KeyedLocks()

    # ------------------------------------------------------------------
    # Creation and queries
    # ------------------------------------------------------------------

    def create_order(
        self,
        *,
        store_id: str,
        created_by_user_id: str,
        line_items: Sequence[LineItem],
        order_type: OrderType = OrderType.STORE_INITIATED,
        shipping_details: ShippingDetails | None = None,
        order_id: str | None = None,
        source_suggestion_id: str | None = None,
        details: str | None = None,
    ) -> Order:
        """Create an order; its initial status is decided here, once.

        Raises:
            InvalidLineItemError: no line items.
            OrderAlreadyExistsError: ``order_id`` is taken.
        """
        now = self._clock.now()
        items = tuple(line_items)
        order_id = order_id or self._new_id()
        status = initial_status_for(items)
        entry = AuditEntry(
            timestamp=now,
            user_id=created_by_user_id,
            action=AuditAction.ORDER_CREATED.value,
            details=details or f"Order created with {len(items)} line item(s)",
        )
        order = Order(
            order_id=order_id,
            store_id=store_id,
            created_by_user_id=created_by_user_id,
            status=status,
            order_type=order_type,
            line_items=items,
            created_at=now,
            updated_at=now,
            shipping_details=shipping_details,
            audit_history=(entry,),
            source_suggestion_id=source_suggestion_id,
        )
        self._orders.add(order)
        logger.info(
            "order_created",
            extra={
                "order_id": order_id,
                "store_id": store_id,
                "status": status.value,
                "order_type": order_type.value,
                "total_cost": str(order.total_cost),
                "line_item_count": len(items),
            },
        )
        return order

    def get_order(self, order_id: str) -> Order:
        order = self._orders.get(order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    def list_orders(
        self, store_id: str | None = None, status: OrderStatus | None = None
    ) -> list[Order]:
        return sorted(
            self._orders.list(store_id=store_id, status=status),
            key=lambda o: (o.created_at, o.order_id),
        )

    def allowed_actions(self, order_id: str, role: ActorRole) -> frozenset[OrderAction]:
        """Actions ``role`` may take on the order right now (for UI rendering)."""
        return allowed_actions(role, self.get_order(order_id).status)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def approve(self, order_id: str, actor: Actor, comments: str | None = None) -> Order:
        with self._locks.hold(order_id), LogContext.bind(
            order_id=order_id, actor_id=actor.user_id
        ):
            order = self.get_order(order_id)
            transition = self._authorize(order, actor, ACTION_APPROVE, OrderAction.APPROVE)
            audit_action = (
                AuditAction.DM_APPROVED
                if order.status is OrderStatus.PENDING_DM_APPROVAL
                else AuditAction.FM_APPROVED
            )
            details = f"Approved by {actor.role.value}."
            if comments:
                details = f"{details} {comments}"
            return self._apply(order, transition, actor, audit_action, details)

    def reject(
        self,
        order_id: str,
        actor: Actor,
        reason_code: RejectionReasonCode | str | None,
        comments: str | None = None,
    ) -> Order:
        """Reject a pending order.

        Raises:
            MissingReasonCodeError: ``reason_code`` is None or empty.
            InvalidReasonCodeError: ``reason_code`` is not a RejectionReasonCode.
        """
        with self._locks.hold(order_id), LogContext.bind(
            order_id=order_id, actor_id=actor.user_id
        ):
            order = self.get_order(order_id)
            transition = self._authorize(order, actor, ACTION_REJECT, OrderAction.REJECT)
            reason = _coerce_reason(order_id, ACTION_REJECT, reason_code, RejectionReasonCode)
            details = f"Order rejected. {comments}" if comments else "Order rejected."
            return self._apply(
                order,
                transition,
                actor,
                AuditAction.ORDER_REJECTED,
                details,
                reason_code=reason.value,
                rejection_reason=reason,
                rejection_comment=comments,
            )

    def dispatch(
        self,
        order_id: str,
        actor: Actor,
        method: FulfillmentMethod | str,
        tracking_numbers: Sequence[str] = (),
        address: Address | None = None,
    ) -> Order:
        with self._locks.hold(order_id), LogContext.bind(
            order_id=order_id, actor_id=actor.user_id
        ):
            order = self.get_order(order_id)
            transition = self._authorize(order, actor, ACTION_DISPATCH, OrderAction.DISPATCH)
            try:
                method = FulfillmentMethod(method)
            except ValueError:
                raise ValidationError(
                    f"Unknown fulfillment method {method!r}; expected one of "
                    f"{[m.value for m in FulfillmentMethod]}"
                ) from None
            if address is None and order.shipping_details is not None:
                address = order.shipping_details.address
            shipping = ShippingDetails(
                method=method,
                address=address,
                tracking_numbers=tuple(tracking_numbers),
            )
            details = f"Dispatched via {method.value}"
            if shipping.tracking_numbers:
                details = f"{details} (tracking: {', '.join(shipping.tracking_numbers)})"
            return self._apply(
                order,
                transition,
                actor,
                AuditAction.ORDER_DISPATCHED,
                details,
                shipping_details=shipping,
            )

    def receive(self, order_id: str, actor: Actor, receipts: Mapping[str, int]) -> Order:
        """Record received quantities; cumulative totals decide partial vs full.

        Raises:
            InvalidReceiptError: empty receipt, non-positive quantity, unknown
                product, or more than ordered.
            InvalidTransitionError: a partial receipt on an order that is
                already partially delivered.
        """
        with self._locks.hold(order_id), LogContext.bind(
            order_id=order_id, actor_id=actor.user_id
        ):
            order = self.get_order(order_id)
            if not any(
                a in ORDER_WORKFLOW.actions_from(order.status.value) for a in _RECEIVE_ACTIONS
            ):
                raise InvalidTransitionError(order_id, order.status.value, "receive")
            self._check_role(order, actor, OrderAction.RECEIVE)

            received = self._accumulate_receipts(order, receipts)
            ordered = order.ordered_quantities()
            full = all(received.get(pid, 0) >= qty for pid, qty in ordered.items())
            action = ACTION_RECEIVE_FULL if full else ACTION_RECEIVE_PARTIAL
            transition = ORDER_WORKFLOW.find(order.status.value, action)
            if transition is None:
                raise InvalidTransitionError(order_id, order.status.value, action)

            lines = ", ".join(f"{pid} x{qty}" for pid, qty in sorted(receipts.items()))
            return self._apply(
                order,
                transition,
                actor,
                AuditAction.ORDER_DELIVERED if full else AuditAction.PARTIAL_RECEIPT,
                f"Received {lines}",
                received_quantities=freeze_quantities(received),
            )

    def amend_line_items(
        self,
        order_id: str,
        actor: Actor,
        line_items: Sequence[LineItem],
        reason_code: OverrideReasonCode | str | None,
        comments: str | None = None,
    ) -> Order:
        """Replace line items while the order awaits the actor's approval.

        Status never changes; ``total_cost`` follows the new line items.
        """
        with self._locks.hold(order_id), LogContext.bind(
            order_id=order_id, actor_id=actor.user_id
        ):
            order = self.get_order(order_id)
            if order.status not in (
                OrderStatus.PENDING_DM_APPROVAL,
                OrderStatus.PENDING_FM_APPROVAL,
            ):
                raise InvalidTransitionError(
                    order_id, order.status.value, OrderAction.AMEND.value
                )
            self._check_role(order, actor, OrderAction.AMEND)
            reason = _coerce_reason(
                order_id, OrderAction.AMEND.value, reason_code, OverrideReasonCode
            )
            items = tuple(line_items)
            new_total = sum((i.line_total for i in items), Decimal("0"))
            details = (
                f"Line items amended ({reason.value}); "
                f"total {order.total_cost} -> {new_total}"
            )
            if comments:
                details = f"{details}. {comments}"
            entry = AuditEntry(
                timestamp=self._clock.now(),
                user_id=actor.user_id,
                action=AuditAction.LINE_ITEMS_AMENDED.value,
                details=details,
                reason_code=reason.value,
            )
            updated = order.with_entry(entry, line_items=items)
            self._orders.save(updated, expected_version=order.version)
            logger.info(
                "order_line_items_amended",
                extra={
                    "reason_code": reason.value,
                    "previous_total": str(order.total_cost),
                    "total_cost": str(updated.total_cost),
                },
            )
            return updated

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _check_role(self, order: Order, actor: Actor, capability: OrderAction) -> None:
        if not can_perform(actor.role, order.status, capability):
            logger.warning(
                "order_action_unauthorized",
                extra={
                    "role": actor.role.value,
                    "action": capability.value,
                    "status": order.status.value,
                },
            )
            raise UnauthorizedActorError(
                order.order_id,
                actor.user_id,
                actor.role.value,
                capability.value,
                order.status.value,
            )

    def _authorize(
        self, order: Order, actor: Actor, action: str, capability: OrderAction
    ) -> Transition:
        transition = ORDER_WORKFLOW.find(order.status.value, action)
        if transition is None:
            logger.warning(
                "order_transition_invalid",
                extra={"action": action, "status": order.status.value},
            )
            raise InvalidTransitionError(order.order_id, order.status.value, action)
        self._check_role(order, actor, capability)
        return transition

    def _accumulate_receipts(self, order: Order, receipts: Mapping[str, int]) -> dict[str, int]:
        if not receipts:
            raise InvalidReceiptError(order.order_id, "<none>", "receipt is empty")
        ordered = order.ordered_quantities()
        received = order.received()
        for product_id, quantity in receipts.items():
            if product_id not in ordered:
                raise InvalidReceiptError(order.order_id, product_id, "product not on order")
            if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
                raise InvalidReceiptError(
                    order.order_id, product_id, f"quantity must be a positive integer, got {quantity!r}"
                )
            total = received.get(product_id, 0) + quantity
            if total > ordered[product_id]:
                raise InvalidReceiptError(
                    order.order_id,
                    product_id,
                    f"received {total} exceeds ordered {ordered[product_id]}",
                )
            received[product_id] = total
        return received

    def _apply(
        self,
        order: Order,
        transition: Transition,
        actor: Actor,
        audit_action: AuditAction,
        details: str,
        reason_code: str | None = None,
        **changes,
    ) -> Order:
        entry = AuditEntry(
            timestamp=self._clock.now(),
            user_id=actor.user_id,
            action=audit_action.value,
            details=details,
            reason_code=reason_code,
        )
        updated = order.with_entry(
            entry, status=OrderStatus(transition.to_state), **changes
        )
        self._orders.save(updated, expected_version=order.version)
        if updated.is_terminal:
            # Terminal orders take no further actions.
            self._locks.discard(order.order_id)
        logger.info(
            "order_transitioned",
            extra={
                "action": transition.action,
                "from_status": transition.from_state,
                "to_status": transition.to_state,
                "role": actor.role.value,
                "reason_code": reason_code,
                "audit_length": len(updated.audit_history),
            },
        )
        return updated
