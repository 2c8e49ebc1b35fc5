"""
ORM models for replenishment schedules and everything recorded against them.

Contract:
    ScheduleModel stores a ScheduleConfig with its sub-configurations as
    JSON documents.  ScheduleExecutionLogModel and SuggestionOutcomeModel
    are append-only per schedule; ``id`` is the insertion order used for
    oldest-first eviction.  ConfidenceReportModel keeps each generated
    report as one JSON payload.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, Float, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from replenishment_kernel.db.base import Base
from replenishment_kernel.domain.decision import ApprovalRoute
from replenishment_kernel.domain.reporting import (
    AccuracyMetrics,
    ConfidenceDistribution,
    ConfidenceReport,
    SuggestionOutcome,
)
from replenishment_kernel.domain.schedule import (
    ApprovalWorkflowConfig,
    ConfidenceThresholds,
    ExecutionStatus,
    Frequency,
    MLConfig,
    MonthEndPolicy,
    PerformanceMetrics,
    ScheduleConfig,
    ScheduleExecutionLog,
    ScheduleScope,
    VendorPreferences,
)


class ScheduleModel(Base):
    __tablename__ = "replenishment_schedules"

    schedule_id: Mapped[str] = mapped_column(String(100), primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False)
    frequency: Mapped[str] = mapped_column(String(20), nullable=False)
    time_of_day: Mapped[str] = mapped_column(String(5), nullable=False)
    days_of_week: Mapped[list[Any]] = mapped_column(JSON, nullable=False, default=list)
    day_of_month: Mapped[int | None] = mapped_column(Integer, nullable=True)
    month_end_policy: Mapped[str] = mapped_column(String(10), nullable=False)
    confidence_thresholds: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    approval_workflow: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    scope: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    ml_config: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    vendor_preferences: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    created_by: Mapped[str] = mapped_column(String(100), nullable=False)
    created_at: Mapped[datetime | None] = mapped_column(nullable=True)
    updated_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    updated_at: Mapped[datetime | None] = mapped_column(nullable=True)
    last_run_at: Mapped[datetime | None] = mapped_column(nullable=True)
    next_run_at: Mapped[datetime | None] = mapped_column(nullable=True)

    def to_dto(self) -> ScheduleConfig:
        return ScheduleConfig(
            schedule_id=self.schedule_id,
            name=self.name,
            description=self.description,
            enabled=self.enabled,
            frequency=Frequency(self.frequency),
            time_of_day=self.time_of_day,
            days_of_week=tuple(self.days_of_week or ()),
            day_of_month=self.day_of_month,
            month_end_policy=MonthEndPolicy(self.month_end_policy),
            confidence_thresholds=ConfidenceThresholds.from_dict(self.confidence_thresholds),
            approval_workflow=ApprovalWorkflowConfig.from_dict(self.approval_workflow),
            scope=ScheduleScope.from_dict(self.scope),
            ml_config=MLConfig.from_dict(self.ml_config),
            vendor_preferences=VendorPreferences.from_dict(self.vendor_preferences),
            created_by=self.created_by,
            created_at=self.created_at,
            updated_by=self.updated_by,
            updated_at=self.updated_at,
            last_run_at=self.last_run_at,
            next_run_at=self.next_run_at,
        )

    def apply_dto(self, dto: ScheduleConfig) -> None:
        self.name = dto.name
        self.description = dto.description
        self.enabled = dto.enabled
        self.frequency = dto.frequency.value
        self.time_of_day = dto.time_of_day
        self.days_of_week = list(dto.days_of_week)
        self.day_of_month = dto.day_of_month
        self.month_end_policy = dto.month_end_policy.value
        self.confidence_thresholds = dto.confidence_thresholds.to_dict()
        self.approval_workflow = dto.approval_workflow.to_dict()
        self.scope = dto.scope.to_dict()
        self.ml_config = dto.ml_config.to_dict()
        self.vendor_preferences = dto.vendor_preferences.to_dict()
        self.created_by = dto.created_by
        self.created_at = dto.created_at
        self.updated_by = dto.updated_by
        self.updated_at = dto.updated_at
        self.last_run_at = dto.last_run_at
        self.next_run_at = dto.next_run_at

    @classmethod
    def from_dto(cls, dto: ScheduleConfig) -> ScheduleModel:
        model = cls(schedule_id=dto.schedule_id)
        model.apply_dto(dto)
        return model


class ScheduleExecutionLogModel(Base):
    __tablename__ = "schedule_execution_logs"

    __table_args__ = (
        Index("ix_schedule_execution_logs_schedule_id", "schedule_id"),
        Index("ix_schedule_execution_logs_executed_at", "executed_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    execution_id: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    schedule_id: Mapped[str] = mapped_column(String(100), nullable=False)
    executed_at: Mapped[datetime] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    suggestions_generated: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    auto_approved: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    pending_review: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    errors: Mapped[list[Any]] = mapped_column(JSON, nullable=False, default=list)
    performance_metrics: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)

    def to_dto(self) -> ScheduleExecutionLog:
        return ScheduleExecutionLog(
            execution_id=self.execution_id,
            schedule_id=self.schedule_id,
            executed_at=self.executed_at,
            status=ExecutionStatus(self.status),
            suggestions_generated=self.suggestions_generated,
            auto_approved=self.auto_approved,
            pending_review=self.pending_review,
            errors=tuple(self.errors or ()),
            performance_metrics=PerformanceMetrics(**(self.performance_metrics or {})),
        )

    @classmethod
    def from_dto(cls, dto: ScheduleExecutionLog) -> ScheduleExecutionLogModel:
        metrics = dto.performance_metrics
        return cls(
            execution_id=dto.execution_id,
            schedule_id=dto.schedule_id,
            executed_at=dto.executed_at,
            status=dto.status.value,
            suggestions_generated=dto.suggestions_generated,
            auto_approved=dto.auto_approved,
            pending_review=dto.pending_review,
            errors=list(dto.errors),
            performance_metrics={
                "execution_time_ms": metrics.execution_time_ms,
                "ml_processing_time_ms": metrics.ml_processing_time_ms,
                "vendor_selection_time_ms": metrics.vendor_selection_time_ms,
            },
        )


class SuggestionOutcomeModel(Base):
    __tablename__ = "suggestion_outcomes"

    __table_args__ = (
        Index("ix_suggestion_outcomes_schedule_id", "schedule_id"),
        Index("ix_suggestion_outcomes_suggestion_id", "suggestion_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    suggestion_id: Mapped[str] = mapped_column(String(100), nullable=False)
    schedule_id: Mapped[str] = mapped_column(String(100), nullable=False)
    confidence: Mapped[float] = mapped_column(Float, nullable=False)
    route: Mapped[str] = mapped_column(String(20), nullable=False)
    auto_approved: Mapped[bool] = mapped_column(Boolean, nullable=False)
    decided_at: Mapped[datetime] = mapped_column(nullable=False)
    predicted_quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    actual_quantity: Mapped[int | None] = mapped_column(Integer, nullable=True)

    def to_dto(self) -> SuggestionOutcome:
        return SuggestionOutcome(
            suggestion_id=self.suggestion_id,
            schedule_id=self.schedule_id,
            confidence=self.confidence,
            route=ApprovalRoute(self.route),
            auto_approved=self.auto_approved,
            decided_at=self.decided_at,
            predicted_quantity=self.predicted_quantity,
            actual_quantity=self.actual_quantity,
        )

    @classmethod
    def from_dto(cls, dto: SuggestionOutcome) -> SuggestionOutcomeModel:
        return cls(
            suggestion_id=dto.suggestion_id,
            schedule_id=dto.schedule_id,
            confidence=dto.confidence,
            route=dto.route.value,
            auto_approved=dto.auto_approved,
            decided_at=dto.decided_at,
            predicted_quantity=dto.predicted_quantity,
            actual_quantity=dto.actual_quantity,
        )


class ConfidenceReportModel(Base):
    __tablename__ = "confidence_reports"

    __table_args__ = (
        Index("ix_confidence_reports_schedule_id", "schedule_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    schedule_id: Mapped[str] = mapped_column(String(100), nullable=False)
    report_date: Mapped[datetime] = mapped_column(nullable=False)
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)

    def to_dto(self) -> ConfidenceReport:
        p = self.payload
        return ConfidenceReport(
            schedule_id=self.schedule_id,
            report_date=self.report_date,
            total_suggestions=p["total_suggestions"],
            confidence_distribution=ConfidenceDistribution(**p["confidence_distribution"]),
            auto_approved_count=p["auto_approved_count"],
            manual_review_count=p["manual_review_count"],
            average_confidence=p["average_confidence"],
            accuracy_metrics=AccuracyMetrics(**p["accuracy_metrics"]),
        )

    @classmethod
    def from_dto(cls, dto: ConfidenceReport) -> ConfidenceReportModel:
        dist = dto.confidence_distribution
        acc = dto.accuracy_metrics
        return cls(
            schedule_id=dto.schedule_id,
            report_date=dto.report_date,
            payload={
                "total_suggestions": dto.total_suggestions,
                "confidence_distribution": {
                    "high_confidence": dist.high_confidence,
                    "medium_confidence": dist.medium_confidence,
                    "low_confidence": dist.low_confidence,
                    "auto_approve_eligible": dist.auto_approve_eligible,
                },
                "auto_approved_count": dto.auto_approved_count,
                "manual_review_count": dto.manual_review_count,
                "average_confidence": dto.average_confidence,
                "accuracy_metrics": {
                    "last_30_days_accuracy": acc.last_30_days_accuracy,
                    "prediction_vs_actual_variance": acc.prediction_vs_actual_variance,
                    "sample_size": acc.sample_size,
                },
            },
        )
