"""
Pure domain layer.

Value objects, enums, the order state machine, recurrence and the
approval decision rules.  Nothing here touches the ORM, the database, or
the wall clock; time always arrives as an argument or through a Clock.

All domain objects are immutable and deterministic.
"""

from replenishment_kernel.domain.catalog import Product, VendorOption, VendorPerformanceMetrics
from replenishment_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from replenishment_kernel.domain.decision import (
    ApprovalClassification,
    ApprovalRoute,
    EscalationReason,
    classify,
    escalation_reasons,
    is_high_confidence,
    requires_dm_approval,
    requires_fm_review,
    should_auto_approve,
)
from replenishment_kernel.domain.order import (
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
)
from replenishment_kernel.domain.recurrence import compute_next_run, should_fire
from replenishment_kernel.domain.reporting import (
    AccuracyMetrics,
    ConfidenceDistribution,
    ConfidenceReport,
    SuggestionOutcome,
    build_confidence_report,
)
from replenishment_kernel.domain.roles import Actor, ActorRole, OrderAction, allowed_actions, can_perform
from replenishment_kernel.domain.schedule import (
    ApprovalWorkflowConfig,
    ConfidenceThresholds,
    EscalationRules,
    ExecutionStatus,
    Frequency,
    MLConfig,
    MonthEndPolicy,
    PerformanceMetrics,
    ScheduleConfig,
    ScheduleExecutionLog,
    ScheduleScope,
    VendorPreferences,
    apply_patch,
    schedule_from_dict,
)
from replenishment_kernel.domain.suggestion import Priority, ReplenishmentSuggestion, SuggestionReason
from replenishment_kernel.domain.vendor_selection import (
    VendorSelection,
    select_vendor,
    select_vendor_for_product,
    validate_vendor_selection,
    vendor_performance_summary,
)

__all__ = [
    # Clock
    "Clock",
    "DeterministicClock",
    "SystemClock",
    # Orders
    "ORDER_WORKFLOW",
    "Address",
    "AuditAction",
    "AuditEntry",
    "FulfillmentMethod",
    "LineItem",
    "Order",
    "OrderStatus",
    "OrderType",
    "OverrideReasonCode",
    "RejectionReasonCode",
    "ShippingDetails",
    # Roles
    "Actor",
    "ActorRole",
    "OrderAction",
    "allowed_actions",
    "can_perform",
    # Schedules
    "ApprovalWorkflowConfig",
    "ConfidenceThresholds",
    "EscalationRules",
    "ExecutionStatus",
    "Frequency",
    "MLConfig",
    "MonthEndPolicy",
    "PerformanceMetrics",
    "ScheduleConfig",
    "ScheduleExecutionLog",
    "ScheduleScope",
    "VendorPreferences",
    "apply_patch",
    "schedule_from_dict",
    "compute_next_run",
    "should_fire",
    # Suggestions and approval decisions
    "Priority",
    "ReplenishmentSuggestion",
    "SuggestionReason",
    "ApprovalClassification",
    "ApprovalRoute",
    "EscalationReason",
    "classify",
    "escalation_reasons",
    "is_high_confidence",
    "requires_dm_approval",
    "requires_fm_review",
    "should_auto_approve",
    # Catalog and vendors
    "Product",
    "VendorOption",
    "VendorPerformanceMetrics",
    "VendorSelection",
    "select_vendor",
    "select_vendor_for_product",
    "validate_vendor_selection",
    "vendor_performance_summary",
    # Reporting
    "AccuracyMetrics",
    "ConfidenceDistribution",
    "ConfidenceReport",
    "SuggestionOutcome",
    "build_confidence_report",
]
