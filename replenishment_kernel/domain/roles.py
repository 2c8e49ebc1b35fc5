"""
Actor roles and the order capability table (``replenishment_kernel.domain.roles``).

Responsibility
--------------
Closed set of actor roles and a static table mapping (role, order status)
to the actions that role may perform.  Authorization is a table lookup,
never a string comparison scattered across services.

Invariants enforced
-------------------
* Every (role, status) pair has an entry; the table is checked for
  completeness when this module is imported.
* DM acts only on ``PENDING_DM_APPROVAL``; FM approves/rejects only on
  ``PENDING_FM_APPROVAL``.
* Terminal statuses grant nothing to anyone.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from replenishment_kernel.domain.order import TERMINAL_ORDER_STATUSES, OrderStatus


class ActorRole(str, Enum):
    SM = "SM"
    DM = "DM"
    FM = "FM"
    COST_ANALYST = "COST_ANALYST"
    ADMIN = "ADMIN"


class OrderAction(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"
    DISPATCH = "dispatch"
    RECEIVE = "receive"
    AMEND = "amend_line_items"


@dataclass(frozen=True)
class Actor:
    """The user performing an action, with their role."""

    user_id: str
    role: ActorRole


_NONE: frozenset[OrderAction] = frozenset()
_A = OrderAction
_S = OrderStatus

CAPABILITIES: dict[ActorRole, dict[OrderStatus, frozenset[OrderAction]]] = {
    ActorRole.SM: {
        _S.PENDING_DM_APPROVAL: _NONE,
        _S.PENDING_FM_APPROVAL: _NONE,
        _S.APPROVED_FOR_FULFILLMENT: _NONE,
        _S.IN_TRANSIT: frozenset({_A.RECEIVE}),
        _S.PARTIALLY_DELIVERED: frozenset({_A.RECEIVE}),
        _S.DELIVERED: _NONE,
        _S.REJECTED: _NONE,
    },
    ActorRole.DM: {
        _S.PENDING_DM_APPROVAL: frozenset({_A.APPROVE, _A.REJECT, _A.AMEND}),
        _S.PENDING_FM_APPROVAL: _NONE,
        _S.APPROVED_FOR_FULFILLMENT: _NONE,
        _S.IN_TRANSIT: _NONE,
        _S.PARTIALLY_DELIVERED: _NONE,
        _S.DELIVERED: _NONE,
        _S.REJECTED: _NONE,
    },
    ActorRole.FM: {
        _S.PENDING_DM_APPROVAL: _NONE,
        _S.PENDING_FM_APPROVAL: frozenset({_A.APPROVE, _A.REJECT, _A.AMEND}),
        _S.APPROVED_FOR_FULFILLMENT: frozenset({_A.DISPATCH}),
        _S.IN_TRANSIT: frozenset({_A.RECEIVE}),
        _S.PARTIALLY_DELIVERED: frozenset({_A.RECEIVE}),
        _S.DELIVERED: _NONE,
        _S.REJECTED: _NONE,
    },
    ActorRole.COST_ANALYST: {status: _NONE for status in OrderStatus},
    ActorRole.ADMIN: {status: _NONE for status in OrderStatus},
}


def _check_capability_table() -> None:
    for role in ActorRole:
        row = CAPABILITIES.get(role)
        if row is None:
            raise RuntimeError(f"Capability table has no row for role {role.value}")
        missing = set(OrderStatus) - set(row)
        if missing:
            raise RuntimeError(
                f"Capability table row {role.value} is missing "
                f"{sorted(s.value for s in missing)}"
            )
        for status in TERMINAL_ORDER_STATUSES:
            if row[status]:
                raise RuntimeError(
                    f"Capability table grants {role.value} actions on terminal {status.value}"
                )


_check_capability_table()


def can_perform(role: ActorRole, status: OrderStatus, action: OrderAction) -> bool:
    return action in CAPABILITIES[role][status]


def allowed_actions(role: ActorRole, status: OrderStatus) -> frozenset[OrderAction]:
    return CAPABILITIES[role][status]
