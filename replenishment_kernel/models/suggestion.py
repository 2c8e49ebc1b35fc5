"""ORM model for pending replenishment suggestions."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import Boolean, Float, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from replenishment_kernel.db.base import Base
from replenishment_kernel.domain.suggestion import (
    Priority,
    ReplenishmentSuggestion,
    SuggestionReason,
)


class SuggestionModel(Base):
    __tablename__ = "replenishment_suggestions"

    __table_args__ = (
        Index("ix_replenishment_suggestions_schedule_id", "schedule_id"),
    )

    suggestion_id: Mapped[str] = mapped_column(String(100), primary_key=True)
    product_id: Mapped[str] = mapped_column(String(100), nullable=False)
    store_id: Mapped[str] = mapped_column(String(100), nullable=False)
    suggested_quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[str] = mapped_column(String(50), nullable=False)
    priority: Mapped[str] = mapped_column(String(50), nullable=False)
    cost_impact: Mapped[Decimal] = mapped_column(nullable=False)
    confidence: Mapped[float] = mapped_column(Float, nullable=False)
    created_at: Mapped[datetime] = mapped_column(nullable=False)
    expires_at: Mapped[datetime] = mapped_column(nullable=False)
    auto_approved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    schedule_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    category: Mapped[str | None] = mapped_column(String(100), nullable=True)

    def to_dto(self) -> ReplenishmentSuggestion:
        return ReplenishmentSuggestion(
            suggestion_id=self.suggestion_id,
            product_id=self.product_id,
            store_id=self.store_id,
            suggested_quantity=self.suggested_quantity,
            reason=SuggestionReason(self.reason),
            priority=Priority(self.priority),
            cost_impact=Decimal(self.cost_impact),
            confidence=self.confidence,
            created_at=self.created_at,
            expires_at=self.expires_at,
            auto_approved=self.auto_approved,
            schedule_id=self.schedule_id,
            category=self.category,
        )

    @classmethod
    def from_dto(cls, dto: ReplenishmentSuggestion) -> SuggestionModel:
        return cls(
            suggestion_id=dto.suggestion_id,
            product_id=dto.product_id,
            store_id=dto.store_id,
            suggested_quantity=dto.suggested_quantity,
            reason=dto.reason.value,
            priority=dto.priority.value,
            cost_impact=dto.cost_impact,
            confidence=dto.confidence,
            created_at=dto.created_at,
            expires_at=dto.expires_at,
            auto_approved=dto.auto_approved,
            schedule_id=dto.schedule_id,
            category=dto.category,
        )
