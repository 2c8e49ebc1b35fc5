"""
ORM models for orders and their audit trail.

Contract:
    OrderModel persists the order header with line items and shipping
    details as JSON; OrderAuditEntryModel persists the append-only audit
    trail, one row per entry, ordered by ``sequence``.  ``to_dto()`` /
    ``from_dto()`` round-trip to the frozen domain Order.

Invariants enforced:
    - (order_id, sequence) is UNIQUE: an audit position is written once.
    - ``version`` backs the repository's compare-and-swap save.
    - ``total_cost`` is stored for querying only; the domain recomputes it.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import JSON, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from replenishment_kernel.db.base import Base
from replenishment_kernel.domain.order import (
    Address,
    AuditEntry,
    FulfillmentMethod,
    LineItem,
    Order,
    OrderStatus,
    OrderType,
    RejectionReasonCode,
    ShippingDetails,
)


def _line_items_to_json(items: tuple[LineItem, ...]) -> list[dict[str, Any]]:
    return [
        {
            "product_id": i.product_id,
            "vendor_id": i.vendor_id,
            "quantity": i.quantity,
            "unit_cost": str(i.unit_cost),
            "requires_dm_approval": i.requires_dm_approval,
        }
        for i in items
    ]


def _line_items_from_json(data: list[dict[str, Any]]) -> tuple[LineItem, ...]:
    return tuple(
        LineItem(
            product_id=d["product_id"],
            vendor_id=d["vendor_id"],
            quantity=d["quantity"],
            unit_cost=Decimal(d["unit_cost"]),
            requires_dm_approval=d.get("requires_dm_approval", False),
        )
        for d in data
    )


def _shipping_to_json(shipping: ShippingDetails | None) -> dict[str, Any] | None:
    if shipping is None:
        return None
    address = shipping.address
    return {
        "method": shipping.method.value,
        "address": (
            {"street": address.street, "city": address.city, "state": address.state, "zip": address.zip}
            if address is not None else None
        ),
        "tracking_numbers": list(shipping.tracking_numbers),
    }


def _shipping_from_json(data: dict[str, Any] | None) -> ShippingDetails | None:
    if data is None:
        return None
    address = data.get("address")
    return ShippingDetails(
        method=FulfillmentMethod(data["method"]),
        address=Address(**address) if address else None,
        tracking_numbers=tuple(data.get("tracking_numbers", ())),
    )


class OrderModel(Base):
    __tablename__ = "orders"

    __table_args__ = (
        Index("ix_orders_store_id", "store_id"),
        Index("ix_orders_status", "status"),
    )

    order_id: Mapped[str] = mapped_column(String(100), primary_key=True)
    store_id: Mapped[str] = mapped_column(String(100), nullable=False)
    created_by_user_id: Mapped[str] = mapped_column(String(100), nullable=False)
    status: Mapped[str] = mapped_column(String(50), nullable=False)
    order_type: Mapped[str] = mapped_column(String(50), nullable=False)
    line_items: Mapped[list[Any]] = mapped_column(JSON, nullable=False)
    shipping_details: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    total_cost: Mapped[Decimal] = mapped_column(nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    rejection_reason: Mapped[str | None] = mapped_column(String(50), nullable=True)
    rejection_comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    received_quantities: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    source_suggestion_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    created_at: Mapped[datetime] = mapped_column(nullable=False)
    updated_at: Mapped[datetime] = mapped_column(nullable=False)

    audit_entries: Mapped[list["OrderAuditEntryModel"]] = relationship(
        "OrderAuditEntryModel",
        back_populates="order",
        order_by="OrderAuditEntryModel.sequence",
    )

    # UPDATE ... WHERE version = <loaded version>; the domain assigns versions.
    __mapper_args__ = {"version_id_col": version, "version_id_generator": False}

    def to_dto(self) -> Order:
        return Order(
            order_id=self.order_id,
            store_id=self.store_id,
            created_by_user_id=self.created_by_user_id,
            status=OrderStatus(self.status),
            order_type=OrderType(self.order_type),
            line_items=_line_items_from_json(self.line_items),
            created_at=self.created_at,
            updated_at=self.updated_at,
            shipping_details=_shipping_from_json(self.shipping_details),
            audit_history=tuple(e.to_dto() for e in self.audit_entries),
            version=self.version,
            rejection_reason=(
                RejectionReasonCode(self.rejection_reason) if self.rejection_reason else None
            ),
            rejection_comment=self.rejection_comment,
            received_quantities=tuple(sorted(
                (k, int(v)) for k, v in (self.received_quantities or {}).items()
            )),
            source_suggestion_id=self.source_suggestion_id,
        )

    def apply_dto(self, dto: Order) -> None:
        """Copy mutable header fields from ``dto`` (audit rows are appended separately)."""
        self.status = dto.status.value
        self.line_items = _line_items_to_json(dto.line_items)
        self.shipping_details = _shipping_to_json(dto.shipping_details)
        self.total_cost = dto.total_cost
        self.version = dto.version
        self.rejection_reason = dto.rejection_reason.value if dto.rejection_reason else None
        self.rejection_comment = dto.rejection_comment
        self.received_quantities = dict(dto.received_quantities)
        self.updated_at = dto.updated_at

    @classmethod
    def from_dto(cls, dto: Order) -> OrderModel:
        model = cls(
            order_id=dto.order_id,
            store_id=dto.store_id,
            created_by_user_id=dto.created_by_user_id,
            order_type=dto.order_type.value,
            source_suggestion_id=dto.source_suggestion_id,
            created_at=dto.created_at,
        )
        model.apply_dto(dto)
        return model


class OrderAuditEntryModel(Base):
    """One audit-trail row; rows are inserted, never updated."""

    __tablename__ = "order_audit_entries"

    __table_args__ = (
        UniqueConstraint("order_id", "sequence", name="uq_order_audit_sequence"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_id: Mapped[str] = mapped_column(
        String(100), ForeignKey("orders.order_id"), nullable=False,
    )
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(nullable=False)
    user_id: Mapped[str] = mapped_column(String(100), nullable=False)
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    details: Mapped[str] = mapped_column(Text, nullable=False)
    reason_code: Mapped[str | None] = mapped_column(String(50), nullable=True)

    order: Mapped[OrderModel] = relationship("OrderModel", back_populates="audit_entries")

    def to_dto(self) -> AuditEntry:
        return AuditEntry(
            timestamp=self.timestamp,
            user_id=self.user_id,
            action=self.action,
            details=self.details,
            reason_code=self.reason_code,
        )

    @classmethod
    def from_dto(cls, order_id: str, sequence: int, dto: AuditEntry) -> OrderAuditEntryModel:
        return cls(
            order_id=order_id,
            sequence=sequence,
            timestamp=dto.timestamp,
            user_id=dto.user_id,
            action=dto.action,
            details=dto.details,
            reason_code=dto.reason_code,
        )
