"""
Replenishment schedule types (``replenishment_kernel.domain.schedule``).

Responsibility
--------------
Immutable configuration for a recurring replenishment run: recurrence,
confidence thresholds, approval rules, scope, forecasting knobs, vendor
preferences, and the execution log records produced by each run.
Provides the pure partial-merge used by ``ScheduleRegistry.update``.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* ``ConfidenceThresholds``: ``0 <= fm_review <= high_confidence <=
  auto_approve <= 1``, enforced in the constructor, so no instance can
  violate it (including instances produced by ``apply_patch``).
* ``time_of_day`` is ``HH:MM`` in 24-hour form.
* WEEKLY schedules have at least one weekday; MONTHLY schedules have a
  ``day_of_month`` in 1..31.
* ``schedule_id`` cannot be changed by a patch.

Failure modes
-------------
* ``ThresholdOrderError`` on out-of-range or out-of-order thresholds.
* ``InvalidScheduleError`` on malformed recurrence or unknown patch keys.
* ``ValidationError`` on negative dollar amounts or out-of-range priorities.
"""

from __future__ import annotations

import math
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, fields, replace
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Self

from replenishment_kernel.exceptions import (
    InvalidScheduleError,
    ThresholdOrderError,
    ValidationError,
)


class Frequency(str, Enum):
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    ON_DEMAND = "ON_DEMAND"


class MonthEndPolicy(str, Enum):
    """What a MONTHLY schedule does when ``day_of_month`` exceeds the month.

    CLAMP runs on the month's last day; SKIP waits for the next month that
    has the configured day.
    """

    CLAMP = "CLAMP"
    SKIP = "SKIP"


class ExecutionStatus(str, Enum):
    SUCCESS = "SUCCESS"
    PARTIAL_SUCCESS = "PARTIAL_SUCCESS"
    FAILED = "FAILED"


_TIME_OF_DAY = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


def parse_time_of_day(value: str) -> tuple[int, int]:
    """Parse ``HH:MM`` into (hour, minute); ``ValueError`` if malformed."""
    match = _TIME_OF_DAY.match(value) if isinstance(value, str) else None
    if match is None:
        raise ValueError(f"time_of_day must be HH:MM (24h), got {value!r}")
    return int(match.group(1)), int(match.group(2))


def _as_decimal(value: Any) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


# =========================================================================
# Sub-configurations
# =========================================================================


@dataclass(frozen=True)
class ConfidenceThresholds:
    """Validated, monotonically ordered confidence thresholds."""

    auto_approve_threshold: float
    fm_review_threshold: float
    high_confidence_threshold: float

    def __post_init__(self) -> None:
        values = (
            self.fm_review_threshold,
            self.high_confidence_threshold,
            self.auto_approve_threshold,
        )
        for v in values:
            if (
                isinstance(v, bool)
                or not isinstance(v, (int, float))
                or math.isnan(v)
                or not 0.0 <= v <= 1.0
            ):
                raise ThresholdOrderError(*values)
        if not values[0] <= values[1] <= values[2]:
            raise ThresholdOrderError(*values)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        return cls(
            auto_approve_threshold=data["auto_approve_threshold"],
            fm_review_threshold=data["fm_review_threshold"],
            high_confidence_threshold=data["high_confidence_threshold"],
        )

    def to_dict(self) -> dict[str, float]:
        return {
            "auto_approve_threshold": self.auto_approve_threshold,
            "fm_review_threshold": self.fm_review_threshold,
            "high_confidence_threshold": self.high_confidence_threshold,
        }


@dataclass(frozen=True)
class EscalationRules:
    """Which suggestion kinds are forced into FM review regardless of confidence."""

    critical_items: bool = True
    seasonal_items: bool = False
    high_cost_items: bool = False

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        return cls(**{k: bool(v) for k, v in data.items()})

    def to_dict(self) -> dict[str, bool]:
        return {
            "critical_items": self.critical_items,
            "seasonal_items": self.seasonal_items,
            "high_cost_items": self.high_cost_items,
        }


@dataclass(frozen=True)
class ApprovalWorkflowConfig:
    """
    Dollar gates and escalation toggles for suggestion triage.

    ``high_cost_threshold`` is the ceiling above which the ``high_cost_items``
    escalation fires; when unset it falls back to ``max_auto_approve_amount``.
    """

    auto_approve_enabled: bool
    max_auto_approve_amount: Decimal
    require_dm_approval_above: Decimal
    escalation_rules: EscalationRules = field(default_factory=EscalationRules)
    high_cost_threshold: Decimal | None = None

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "max_auto_approve_amount", _as_decimal(self.max_auto_approve_amount)
        )
        object.__setattr__(
            self, "require_dm_approval_above", _as_decimal(self.require_dm_approval_above)
        )
        if self.high_cost_threshold is not None:
            object.__setattr__(
                self, "high_cost_threshold", _as_decimal(self.high_cost_threshold)
            )
        for name in ("max_auto_approve_amount", "require_dm_approval_above", "high_cost_threshold"):
            amount = getattr(self, name)
            if amount is not None and amount < 0:
                raise ValidationError(f"approval_workflow.{name} must be >= 0, got {amount}")

    @property
    def effective_high_cost_threshold(self) -> Decimal:
        if self.high_cost_threshold is not None:
            return self.high_cost_threshold
        return self.max_auto_approve_amount

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        rules = data.get("escalation_rules", {})
        return cls(
            auto_approve_enabled=bool(data["auto_approve_enabled"]),
            max_auto_approve_amount=data["max_auto_approve_amount"],
            require_dm_approval_above=data["require_dm_approval_above"],
            escalation_rules=(
                rules if isinstance(rules, EscalationRules) else EscalationRules.from_dict(rules)
            ),
            high_cost_threshold=data.get("high_cost_threshold"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "auto_approve_enabled": self.auto_approve_enabled,
            "max_auto_approve_amount": str(self.max_auto_approve_amount),
            "require_dm_approval_above": str(self.require_dm_approval_above),
            "escalation_rules": self.escalation_rules.to_dict(),
            "high_cost_threshold": (
                str(self.high_cost_threshold) if self.high_cost_threshold is not None else None
            ),
        }


@dataclass(frozen=True)
class ScheduleScope:
    """Allow-lists restricting which suggestions a schedule produces.

    Empty lists mean unrestricted.  ``priority_products`` are included even
    when their category is outside ``product_categories``; excluded
    products are never included.
    """

    store_ids: tuple[str, ...] = ()
    product_categories: tuple[str, ...] = ()
    priority_products: tuple[str, ...] = ()
    exclude_products: tuple[str, ...] = ()

    def includes(self, store_id: str, product_id: str, category: str | None = None) -> bool:
        if product_id in self.exclude_products:
            return False
        if self.store_ids and store_id not in self.store_ids:
            return False
        if product_id in self.priority_products:
            return True
        if self.product_categories and category not in self.product_categories:
            return False
        return True

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        return cls(**{k: tuple(v or ()) for k, v in data.items()})

    def to_dict(self) -> dict[str, list[str]]:
        return {f.name: list(getattr(self, f.name)) for f in fields(self)}


@dataclass(frozen=True)
class MLConfig:
    """Forecasting knobs passed through to the oracle untouched."""

    use_seasonal_patterns: bool = True
    use_weather_data: bool = False
    use_external_factors: bool = False
    min_forecast_confidence: float = 0.6
    lookback_days: int = 30
    forecast_horizon_days: int = 14

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        return cls(**data)

    def to_dict(self) -> dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass(frozen=True)
class VendorPreferences:
    """Vendor selection policy; priorities are weights from 1 (low) to 5 (high)."""

    prefer_primary_vendors: bool = False
    allow_vendor_substitution: bool = True
    cost_optimization_priority: int = 3
    lead_time_priority: int = 3

    def __post_init__(self) -> None:
        for name in ("cost_optimization_priority", "lead_time_priority"):
            value = getattr(self, name)
            if not 1 <= value <= 5:
                raise ValidationError(f"vendor_preferences.{name} must be 1-5, got {value}")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        return cls(**data)

    def to_dict(self) -> dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


# =========================================================================
# Schedule
# =========================================================================


@dataclass(frozen=True)
class ScheduleConfig:
    """
    A named, recurring replenishment configuration.

    ``last_run_at`` and ``next_run_at`` are derived by the registry; a
    patch cannot set them.
    """

    schedule_id: str
    name: str
    frequency: Frequency
    time_of_day: str
    confidence_thresholds: ConfidenceThresholds
    approval_workflow: ApprovalWorkflowConfig
    description: str = ""
    enabled: bool = True
    days_of_week: tuple[int, ...] = ()
    day_of_month: int | None = None
    month_end_policy: MonthEndPolicy = MonthEndPolicy.CLAMP
    scope: ScheduleScope = field(default_factory=ScheduleScope)
    ml_config: MLConfig = field(default_factory=MLConfig)
    vendor_preferences: VendorPreferences = field(default_factory=VendorPreferences)
    created_by: str = "system"
    created_at: datetime | None = None
    updated_by: str | None = None
    updated_at: datetime | None = None
    last_run_at: datetime | None = None
    next_run_at: datetime | None = None

    def __post_init__(self) -> None:
        if not self.schedule_id:
            raise InvalidScheduleError("<unset>", "schedule_id", "must be non-empty")
        try:
            object.__setattr__(self, "frequency", Frequency(self.frequency))
            object.__setattr__(self, "month_end_policy", MonthEndPolicy(self.month_end_policy))
        except ValueError as exc:
            raise InvalidScheduleError(self.schedule_id, "recurrence", str(exc)) from exc
        try:
            parse_time_of_day(self.time_of_day)
        except ValueError as exc:
            raise InvalidScheduleError(self.schedule_id, "time_of_day", str(exc)) from exc

        object.__setattr__(
            self, "days_of_week", _days_tuple(self.schedule_id, self.days_of_week)
        )
        for day in self.days_of_week:
            if isinstance(day, bool) or not isinstance(day, int) or not 0 <= day <= 6:
                raise InvalidScheduleError(
                    self.schedule_id, "days_of_week", f"{day!r} is not in 0..6 (0=Sunday)"
                )
        days = tuple(sorted(set(self.days_of_week)))
        object.__setattr__(self, "days_of_week", days)
        if self.frequency is Frequency.WEEKLY and not days:
            raise InvalidScheduleError(
                self.schedule_id, "days_of_week", "WEEKLY schedules need at least one day"
            )

        if self.day_of_month is not None and (
            isinstance(self.day_of_month, bool)
            or not isinstance(self.day_of_month, int)
            or not 1 <= self.day_of_month <= 31
        ):
            raise InvalidScheduleError(
                self.schedule_id, "day_of_month", f"{self.day_of_month} is not in 1..31"
            )
        if self.frequency is Frequency.MONTHLY and self.day_of_month is None:
            raise InvalidScheduleError(
                self.schedule_id, "day_of_month", "MONTHLY schedules need day_of_month"
            )

    @property
    def hour_minute(self) -> tuple[int, int]:
        return parse_time_of_day(self.time_of_day)

    @property
    def recurrence_key(self) -> tuple:
        """Fields that affect ``next_run_at``; a change means recompute."""
        return (
            self.enabled,
            self.frequency,
            self.time_of_day,
            self.days_of_week,
            self.day_of_month,
            self.month_end_policy,
        )


_SUB_CONFIGS: dict[str, type] = {
    "confidence_thresholds": ConfidenceThresholds,
    "approval_workflow": ApprovalWorkflowConfig,
    "scope": ScheduleScope,
    "ml_config": MLConfig,
    "vendor_preferences": VendorPreferences,
}

_PATCHABLE_SCALARS = frozenset({
    "name",
    "description",
    "enabled",
    "frequency",
    "time_of_day",
    "days_of_week",
    "day_of_month",
    "month_end_policy",
})

_READ_ONLY = frozenset({
    "created_by",
    "created_at",
    "updated_by",
    "updated_at",
    "last_run_at",
    "next_run_at",
})


def _days_tuple(schedule_id: str, value: Any) -> tuple[int, ...]:
    """``days_of_week`` as a tuple; None clears it."""
    if value is None:
        return ()
    if isinstance(value, (str, bytes, Mapping)) or not isinstance(value, Iterable):
        raise InvalidScheduleError(
            schedule_id, "days_of_week", f"must be a list of weekdays, got {value!r}"
        )
    return tuple(value)


def _merge_sub_config(current: Any, value: Any) -> Any:
    """Merge a partial mapping into a frozen sub-config (one level of nesting more
    for ``approval_workflow.escalation_rules``)."""
    if not isinstance(value, Mapping):
        return value
    merged = current.to_dict()
    for key, sub in value.items():
        if isinstance(sub, Mapping) and isinstance(merged.get(key), dict):
            merged[key] = {**merged[key], **sub}
        else:
            merged[key] = sub
    return type(current).from_dict(merged)


def apply_patch(schedule: ScheduleConfig, patch: Mapping[str, Any]) -> ScheduleConfig:
    """
    Return ``schedule`` with ``patch`` merged in; unpatched fields are kept.

    Nested mappings are merged into the corresponding sub-config, so
    ``{"confidence_thresholds": {"fm_review_threshold": 0.5}}`` changes one
    threshold and keeps the other two.  The merged schedule is fully
    re-validated by the dataclass constructors.
    """
    changes: dict[str, Any] = {}
    for key, value in patch.items():
        if key == "schedule_id":
            if value != schedule.schedule_id:
                raise InvalidScheduleError(schedule.schedule_id, "schedule_id", "is immutable")
            continue
        if key in _READ_ONLY:
            raise InvalidScheduleError(schedule.schedule_id, key, "is not patchable")
        if key in _SUB_CONFIGS:
            try:
                changes[key] = _merge_sub_config(getattr(schedule, key), value)
            except (TypeError, KeyError) as exc:
                raise InvalidScheduleError(schedule.schedule_id, key, str(exc)) from exc
        elif key in _PATCHABLE_SCALARS:
            changes[key] = value
        else:
            raise InvalidScheduleError(schedule.schedule_id, key, "unknown field")
    return replace(schedule, **changes)


def schedule_from_dict(data: Mapping[str, Any]) -> ScheduleConfig:
    """Build a ScheduleConfig from plain data (YAML, JSON columns, API bodies)."""
    kwargs: dict[str, Any] = dict(data)
    try:
        for key, cls in _SUB_CONFIGS.items():
            if key in kwargs and isinstance(kwargs[key], Mapping):
                kwargs[key] = cls.from_dict(kwargs[key])
        for key in ("created_at", "updated_at", "last_run_at", "next_run_at"):
            if isinstance(kwargs.get(key), str):
                kwargs[key] = datetime.fromisoformat(kwargs[key].replace("Z", "+00:00"))
        return ScheduleConfig(**kwargs)
    except (TypeError, KeyError) as exc:
        raise InvalidScheduleError(
            str(data.get("schedule_id", "<unset>")), "definition", str(exc)
        ) from exc


# =========================================================================
# Execution log
# =========================================================================


@dataclass(frozen=True)
class PerformanceMetrics:
    execution_time_ms: int = 0
    ml_processing_time_ms: int = 0
    vendor_selection_time_ms: int = 0


@dataclass(frozen=True)
class ScheduleExecutionLog:
    """Immutable record of one schedule run."""

    execution_id: str
    schedule_id: str
    executed_at: datetime
    status: ExecutionStatus
    suggestions_generated: int = 0
    auto_approved: int = 0
    pending_review: int = 0
    errors: tuple[str, ...] = ()
    performance_metrics: PerformanceMetrics = field(default_factory=PerformanceMetrics)

    def __post_init__(self) -> None:
        object.__setattr__(self, "status", ExecutionStatus(self.status))
        for name in ("suggestions_generated", "auto_approved", "pending_review"):
            if getattr(self, name) < 0:
                raise ValidationError(f"execution log {name} must be >= 0")
