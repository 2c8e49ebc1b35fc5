"""
Confidence reporting (``replenishment_kernel.domain.reporting``).

Pure aggregation of recorded suggestion outcomes into a per-schedule
confidence report: how suggestions fell against the schedule's three
thresholds, how many were auto-approved, and how close forecasts came to
actual quantities over the trailing window.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta

from replenishment_kernel.domain.decision import ApprovalRoute
from replenishment_kernel.domain.schedule import ConfidenceThresholds

DEFAULT_WINDOW_DAYS = 30


@dataclass(frozen=True)
class SuggestionOutcome:
    """What happened to one triaged suggestion.

    ``actual_quantity`` is filled in later, once real consumption is known.
    """

    suggestion_id: str
    schedule_id: str
    confidence: float
    route: ApprovalRoute
    auto_approved: bool
    decided_at: datetime
    predicted_quantity: int
    actual_quantity: int | None = None


@dataclass(frozen=True)
class ConfidenceDistribution:
    high_confidence: int = 0
    medium_confidence: int = 0
    low_confidence: int = 0
    auto_approve_eligible: int = 0


@dataclass(frozen=True)
class AccuracyMetrics:
    """``None`` values mean no outcome in the window has an actual quantity yet."""

    last_30_days_accuracy: float | None = None
    prediction_vs_actual_variance: float | None = None
    sample_size: int = 0


@dataclass(frozen=True)
class ConfidenceReport:
    schedule_id: str
    report_date: datetime
    total_suggestions: int
    confidence_distribution: ConfidenceDistribution
    auto_approved_count: int
    manual_review_count: int
    average_confidence: float
    accuracy_metrics: AccuracyMetrics


def _accuracy(predicted: int, actual: int) -> float:
    if actual == 0:
        return 1.0 if predicted == 0 else 0.0
    return max(0.0, 1.0 - abs(predicted - actual) / actual)


def build_confidence_report(
    schedule_id: str,
    thresholds: ConfidenceThresholds,
    outcomes: Iterable[SuggestionOutcome],
    report_date: datetime,
    window_days: int = DEFAULT_WINDOW_DAYS,
) -> ConfidenceReport:
    """Aggregate outcomes decided in ``(report_date - window_days, report_date]``."""
    window_start = report_date - timedelta(days=window_days)
    recent = [
        o for o in outcomes
        if o.schedule_id == schedule_id and window_start < o.decided_at <= report_date
    ]

    high = medium = low = eligible = 0
    for o in recent:
        if o.confidence >= thresholds.high_confidence_threshold:
            high += 1
        elif o.confidence >= thresholds.fm_review_threshold:
            medium += 1
        else:
            low += 1
        if o.confidence >= thresholds.auto_approve_threshold:
            eligible += 1

    auto_approved = sum(1 for o in recent if o.auto_approved)
    average = sum(o.confidence for o in recent) / len(recent) if recent else 0.0

    measured = [o for o in recent if o.actual_quantity is not None]
    if measured:
        accuracy = AccuracyMetrics(
            last_30_days_accuracy=sum(
                _accuracy(o.predicted_quantity, o.actual_quantity) for o in measured
            ) / len(measured),
            # Signed mean relative error: positive means over-forecasting.
            prediction_vs_actual_variance=sum(
                (o.predicted_quantity - o.actual_quantity) / max(o.actual_quantity, 1)
                for o in measured
            ) / len(measured),
            sample_size=len(measured),
        )
    else:
        accuracy = AccuracyMetrics()

    return ConfidenceReport(
        schedule_id=schedule_id,
        report_date=report_date,
        total_suggestions=len(recent),
        confidence_distribution=ConfidenceDistribution(
            high_confidence=high,
            medium_confidence=medium,
            low_confidence=low,
            auto_approve_eligible=eligible,
        ),
        auto_approved_count=auto_approved,
        manual_review_count=len(recent) - auto_approved,
        average_confidence=average,
        accuracy_metrics=accuracy,
    )
