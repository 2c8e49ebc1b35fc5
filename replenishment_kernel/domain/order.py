"""
Order domain types (``replenishment_kernel.domain.order``).

Responsibility
--------------
Immutable value objects for purchase orders: status lifecycle, line
items, shipping details, the append-only audit trail, and the closed
reason-code sets used by rejections and line-item overrides.  Declares
``ORDER_WORKFLOW``, the single source of truth for legal status changes.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  Status changes
are applied by ``services.order_workflow``; nothing here mutates.

Invariants enforced
-------------------
* ``total_cost`` is derived from line items (sum of quantity x unit_cost);
  it cannot be set.
* Line items have ``quantity > 0`` and ``unit_cost >= 0``.
* ``audit_history`` is a tuple; "appending" produces a new Order.
* Initial status is decided once by ``initial_status_for``.

Failure modes
-------------
* ``InvalidLineItemError`` on construction of an invalid line item or an
  order without line items.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from enum import Enum

from replenishment_kernel.domain.workflow import Transition, Workflow
from replenishment_kernel.exceptions import InvalidLineItemError


class OrderStatus(str, Enum):
    """Order lifecycle states."""

    PENDING_DM_APPROVAL = "PENDING_DM_APPROVAL"
    PENDING_FM_APPROVAL = "PENDING_FM_APPROVAL"
    APPROVED_FOR_FULFILLMENT = "APPROVED_FOR_FULFILLMENT"
    IN_TRANSIT = "IN_TRANSIT"
    PARTIALLY_DELIVERED = "PARTIALLY_DELIVERED"
    DELIVERED = "DELIVERED"
    REJECTED = "REJECTED"


TERMINAL_ORDER_STATUSES: frozenset[OrderStatus] = frozenset({
    OrderStatus.DELIVERED,
    OrderStatus.REJECTED,
})


class OrderType(str, Enum):
    STORE_INITIATED = "STORE_INITIATED"
    SYSTEM_INITIATED = "SYSTEM_INITIATED"
    FM_INITIATED = "FM_INITIATED"


class FulfillmentMethod(str, Enum):
    WAREHOUSE_SHIPMENT = "WAREHOUSE_SHIPMENT"
    DIRECT_SHIP = "DIRECT_SHIP"


class RejectionReasonCode(str, Enum):
    """Closed set of reasons an approver may give when rejecting an order."""

    OFF_CYCLE_REQUEST = "OFF_CYCLE_REQUEST"
    BUDGETARY_CONSTRAINTS = "BUDGETARY_CONSTRAINTS"
    INVENTORY_SUFFICIENT = "INVENTORY_SUFFICIENT"
    INCORRECT_PRODUCT = "INCORRECT_PRODUCT"
    QUANTITY_EXCESSIVE = "QUANTITY_EXCESSIVE"
    VENDOR_UNAVAILABLE = "VENDOR_UNAVAILABLE"
    OTHER = "OTHER"


class OverrideReasonCode(str, Enum):
    """Closed set of reasons for changing vendors or quantities on an order."""

    VENDOR_STOCKOUT = "VENDOR_STOCKOUT"
    BETTER_PRICING = "BETTER_PRICING"
    EXPEDITED_DELIVERY = "EXPEDITED_DELIVERY"
    QUALITY_CONCERN = "QUALITY_CONCERN"
    STRATEGIC_SOURCING = "STRATEGIC_SOURCING"
    OTHER = "OTHER"


class AuditAction(str, Enum):
    ORDER_CREATED = "ORDER_CREATED"
    DM_APPROVED = "DM_APPROVED"
    FM_APPROVED = "FM_APPROVED"
    ORDER_REJECTED = "ORDER_REJECTED"
    ORDER_DISPATCHED = "ORDER_DISPATCHED"
    PARTIAL_RECEIPT = "PARTIAL_RECEIPT"
    ORDER_DELIVERED = "ORDER_DELIVERED"
    LINE_ITEMS_AMENDED = "LINE_ITEMS_AMENDED"


# =========================================================================
# Workflow
# =========================================================================

ACTION_APPROVE = "approve"
ACTION_REJECT = "reject"
ACTION_DISPATCH = "dispatch"
ACTION_RECEIVE_PARTIAL = "receive_partial"
ACTION_RECEIVE_FULL = "receive_full"

_S = OrderStatus

ORDER_WORKFLOW = Workflow(
    name="order",
    description="Multi-role approval and fulfillment lifecycle of a purchase order",
    initial_states=(_S.PENDING_DM_APPROVAL.value, _S.PENDING_FM_APPROVAL.value),
    states=tuple(s.value for s in OrderStatus),
    transitions=(
        Transition(_S.PENDING_DM_APPROVAL.value, _S.PENDING_FM_APPROVAL.value, ACTION_APPROVE),
        Transition(
            _S.PENDING_DM_APPROVAL.value, _S.REJECTED.value, ACTION_REJECT,
            requires_reason_code=True,
        ),
        Transition(_S.PENDING_FM_APPROVAL.value, _S.APPROVED_FOR_FULFILLMENT.value, ACTION_APPROVE),
        Transition(
            _S.PENDING_FM_APPROVAL.value, _S.REJECTED.value, ACTION_REJECT,
            requires_reason_code=True,
        ),
        Transition(_S.APPROVED_FOR_FULFILLMENT.value, _S.IN_TRANSIT.value, ACTION_DISPATCH),
        Transition(_S.IN_TRANSIT.value, _S.PARTIALLY_DELIVERED.value, ACTION_RECEIVE_PARTIAL),
        Transition(_S.IN_TRANSIT.value, _S.DELIVERED.value, ACTION_RECEIVE_FULL),
        Transition(_S.PARTIALLY_DELIVERED.value, _S.DELIVERED.value, ACTION_RECEIVE_FULL),
    ),
    terminal_states=(_S.DELIVERED.value, _S.REJECTED.value),
)


# =========================================================================
# Value objects
# =========================================================================


@dataclass(frozen=True)
class LineItem:
    """One product line on an order."""

    product_id: str
    vendor_id: str
    quantity: int
    unit_cost: Decimal
    requires_dm_approval: bool = False

    def __post_init__(self) -> None:
        if isinstance(self.quantity, bool) or not isinstance(self.quantity, int):
            raise InvalidLineItemError(self.product_id, "quantity must be an integer")
        if self.quantity <= 0:
            raise InvalidLineItemError(self.product_id, "quantity must be > 0")
        if not isinstance(self.unit_cost, Decimal):
            object.__setattr__(self, "unit_cost", Decimal(str(self.unit_cost)))
        if self.unit_cost < 0:
            raise InvalidLineItemError(self.product_id, "unit_cost must be >= 0")

    @property
    def line_total(self) -> Decimal:
        return self.unit_cost * self.quantity


@dataclass(frozen=True)
class Address:
    street: str
    city: str
    state: str
    zip: str


@dataclass(frozen=True)
class ShippingDetails:
    method: FulfillmentMethod
    address: Address | None = None
    tracking_numbers: tuple[str, ...] = ()


@dataclass(frozen=True)
class AuditEntry:
    """A single, immutable audit-trail record."""

    timestamp: datetime
    user_id: str
    action: str
    details: str
    reason_code: str | None = None


@dataclass(frozen=True)
class Order:
    """
    A purchase order.

    ``version`` is the optimistic-lock counter; repositories reject a save
    whose expected version does not match what is stored.
    """

    order_id: str
    store_id: str
    created_by_user_id: str
    status: OrderStatus
    order_type: OrderType
    line_items: tuple[LineItem, ...]
    created_at: datetime
    updated_at: datetime
    shipping_details: ShippingDetails | None = None
    audit_history: tuple[AuditEntry, ...] = ()
    version: int = 0
    rejection_reason: RejectionReasonCode | None = None
    rejection_comment: str | None = None
    received_quantities: tuple[tuple[str, int], ...] = ()
    source_suggestion_id: str | None = None

    def __post_init__(self) -> None:
        if not self.line_items:
            raise InvalidLineItemError(None, "order must have at least one line item")

    @property
    def total_cost(self) -> Decimal:
        return sum((item.line_total for item in self.line_items), Decimal("0"))

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_ORDER_STATUSES

    def ordered_quantities(self) -> dict[str, int]:
        """Total ordered quantity per product (lines for one product are summed)."""
        totals: dict[str, int] = {}
        for item in self.line_items:
            totals[item.product_id] = totals.get(item.product_id, 0) + item.quantity
        return totals

    def received(self) -> dict[str, int]:
        return dict(self.received_quantities)

    def with_entry(self, entry: AuditEntry, **changes) -> Order:
        """New Order with ``entry`` appended, ``changes`` applied, version bumped."""
        return replace(
            self,
            audit_history=self.audit_history + (entry,),
            updated_at=entry.timestamp,
            version=self.version + 1,
            **changes,
        )


def initial_status_for(line_items: Iterable[LineItem]) -> OrderStatus:
    """DM approval first when any line item requires it, else straight to FM."""
    if any(item.requires_dm_approval for item in line_items):
        return OrderStatus.PENDING_DM_APPROVAL
    return OrderStatus.PENDING_FM_APPROVAL


def freeze_quantities(quantities: Mapping[str, int]) -> tuple[tuple[str, int], ...]:
    """Canonical, sorted tuple form of a product->quantity mapping."""
    return tuple(sorted(quantities.items()))
