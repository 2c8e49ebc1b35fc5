"""
Approval decision engine (``replenishment_kernel.domain.decision``).

Responsibility
--------------
Pure functions mapping a (suggestion, schedule, now) triple to a routing
decision: auto-approve, FM review, or DM approval.

Architecture position
---------------------
**Kernel domain layer** -- pure functions.  ZERO I/O.  ``now`` is always
passed in by the caller.

Invariants enforced
-------------------
* An expired suggestion is never auto-approved, and ``classify`` rejects
  it before any escalation rule is looked at.
* Escalation overrides are independent; several may fire at once.
* Routing picks the strictest applicable path:
  DM approval > FM review > auto-approve.  A suggestion that qualifies
  for none of them goes to FM review.

Failure modes
-------------
* ``SuggestionExpiredError`` from ``classify`` when ``now > expires_at``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from replenishment_kernel.domain.schedule import ScheduleConfig
from replenishment_kernel.domain.suggestion import (
    Priority,
    ReplenishmentSuggestion,
    SuggestionReason,
)
from replenishment_kernel.exceptions import SuggestionExpiredError


class ApprovalRoute(str, Enum):
    AUTO_APPROVE = "AUTO_APPROVE"
    FM_REVIEW = "FM_REVIEW"
    DM_APPROVAL = "DM_APPROVAL"


class EscalationReason(str, Enum):
    LOW_CONFIDENCE = "LOW_CONFIDENCE"
    CRITICAL_ITEM = "CRITICAL_ITEM"
    SEASONAL_ITEM = "SEASONAL_ITEM"
    HIGH_COST_ITEM = "HIGH_COST_ITEM"


@dataclass(frozen=True)
class ApprovalClassification:
    """Outcome of ``classify``: the chosen route plus every individual flag."""

    suggestion_id: str
    route: ApprovalRoute
    should_auto_approve: bool
    requires_fm_review: bool
    requires_dm_approval: bool
    is_high_confidence: bool
    escalations: tuple[EscalationReason, ...] = ()


def should_auto_approve(
    suggestion: ReplenishmentSuggestion, schedule: ScheduleConfig, now: datetime
) -> bool:
    workflow = schedule.approval_workflow
    return (
        workflow.auto_approve_enabled
        and suggestion.confidence >= schedule.confidence_thresholds.auto_approve_threshold
        and suggestion.cost_impact <= workflow.max_auto_approve_amount
        and not suggestion.is_expired(now)
    )


def escalation_reasons(
    suggestion: ReplenishmentSuggestion, schedule: ScheduleConfig
) -> tuple[EscalationReason, ...]:
    """Every reason this suggestion needs FM review, in a fixed order."""
    rules = schedule.approval_workflow.escalation_rules
    reasons: list[EscalationReason] = []
    if suggestion.confidence < schedule.confidence_thresholds.fm_review_threshold:
        reasons.append(EscalationReason.LOW_CONFIDENCE)
    if rules.critical_items and suggestion.priority is Priority.CRITICAL:
        reasons.append(EscalationReason.CRITICAL_ITEM)
    if rules.seasonal_items and suggestion.reason is SuggestionReason.SEASONAL:
        reasons.append(EscalationReason.SEASONAL_ITEM)
    if (
        rules.high_cost_items
        and suggestion.cost_impact > schedule.approval_workflow.effective_high_cost_threshold
    ):
        reasons.append(EscalationReason.HIGH_COST_ITEM)
    return tuple(reasons)


def requires_fm_review(
    suggestion: ReplenishmentSuggestion, schedule: ScheduleConfig
) -> bool:
    return bool(escalation_reasons(suggestion, schedule))


def requires_dm_approval(
    suggestion: ReplenishmentSuggestion, schedule: ScheduleConfig
) -> bool:
    return suggestion.cost_impact > schedule.approval_workflow.require_dm_approval_above


def is_high_confidence(
    suggestion: ReplenishmentSuggestion, schedule: ScheduleConfig
) -> bool:
    return suggestion.confidence >= schedule.confidence_thresholds.high_confidence_threshold


def classify(
    suggestion: ReplenishmentSuggestion, schedule: ScheduleConfig, now: datetime
) -> ApprovalClassification:
    """Route a suggestion to the strictest applicable approval path.

    Raises:
        SuggestionExpiredError: ``now`` is past ``expires_at``.
    """
    if suggestion.is_expired(now):
        raise SuggestionExpiredError(
            suggestion.suggestion_id,
            suggestion.expires_at.isoformat(),
            now.isoformat(),
        )

    escalations = escalation_reasons(suggestion, schedule)
    fm = bool(escalations)
    dm = requires_dm_approval(suggestion, schedule)
    auto = should_auto_approve(suggestion, schedule, now)

    if dm:
        route = ApprovalRoute.DM_APPROVAL
    elif fm or not auto:
        route = ApprovalRoute.FM_REVIEW
    else:
        route = ApprovalRoute.AUTO_APPROVE

    return ApprovalClassification(
        suggestion_id=suggestion.suggestion_id,
        route=route,
        should_auto_approve=auto,
        requires_fm_review=fm,
        requires_dm_approval=dm,
        is_high_confidence=is_high_confidence(suggestion, schedule),
        escalations=escalations,
    )
