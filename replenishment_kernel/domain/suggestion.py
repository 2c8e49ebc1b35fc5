"""
Replenishment suggestion types (``replenishment_kernel.domain.suggestion``).

A suggestion is emitted by the forecasting oracle and consumed exactly
once, by approval (which produces an Order) or by rejection.

Invariants enforced:
    * ``suggested_quantity > 0``, ``cost_impact >= 0``.
    * ``confidence`` in [0, 1].
    * ``expires_at > created_at``.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum

from replenishment_kernel.exceptions import ValidationError


class SuggestionReason(str, Enum):
    LOW_STOCK = "LOW_STOCK"
    SEASONAL = "SEASONAL"
    PROMOTIONAL = "PROMOTIONAL"
    PREDICTIVE = "PREDICTIVE"


class Priority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


@dataclass(frozen=True)
class ReplenishmentSuggestion:
    suggestion_id: str
    product_id: str
    store_id: str
    suggested_quantity: int
    reason: SuggestionReason
    priority: Priority
    cost_impact: Decimal
    confidence: float
    created_at: datetime
    expires_at: datetime
    auto_approved: bool = False
    schedule_id: str | None = None
    category: str | None = None

    def __post_init__(self) -> None:
        for name, enum_type in (("reason", SuggestionReason), ("priority", Priority)):
            value = getattr(self, name)
            try:
                object.__setattr__(self, name, enum_type(value))
            except ValueError:
                raise ValidationError(
                    f"Suggestion {self.suggestion_id}: unknown {name} {value!r}"
                ) from None
        if not isinstance(self.cost_impact, Decimal):
            object.__setattr__(self, "cost_impact", Decimal(str(self.cost_impact)))
        if self.suggested_quantity <= 0:
            raise ValidationError(
                f"Suggestion {self.suggestion_id}: suggested_quantity must be > 0"
            )
        if self.cost_impact < 0:
            raise ValidationError(f"Suggestion {self.suggestion_id}: cost_impact must be >= 0")
        if math.isnan(self.confidence) or not 0.0 <= self.confidence <= 1.0:
            raise ValidationError(
                f"Suggestion {self.suggestion_id}: confidence must be in [0, 1], "
                f"got {self.confidence}"
            )
        if self.expires_at <= self.created_at:
            raise ValidationError(
                f"Suggestion {self.suggestion_id}: expires_at must be after created_at"
            )

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at
