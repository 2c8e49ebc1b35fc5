"""
replenishment_kernel.services.schedule_registry -- Schedule lifecycle.

Responsibility:
    CRUD and enable/disable for replenishment schedules; owns each
    schedule's bounded execution history, recorded suggestion outcomes,
    and generated confidence reports.

Architecture position:
    Kernel > Services.  May import from domain/ and repositories/.
    The seed set is passed in by the caller (see replenishment_config);
    the registry holds no process-wide defaults.

Invariants enforced:
    - ``next_run_at`` is None for disabled and ON_DEMAND schedules,
      otherwise strictly after ``last_run_at``.
    - Thresholds stay monotonic after any update (value-object validation).
    - Appending an execution log and recomputing ``last_run_at`` /
      ``next_run_at`` happen in one per-schedule critical section.
    - Execution history holds at most ``execution_log_retention`` entries
      per schedule, oldest evicted first.

Failure modes:
    - ScheduleNotFoundError for an unknown schedule_id.
    - ScheduleAlreadyExistsError on create with a duplicate schedule_id.
    - ThresholdOrderError / InvalidScheduleError / ValidationError when a
      create or update would produce an invalid schedule.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator, Mapping, Sequence
from contextlib import contextmanager
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any
from uuid import uuid4

from replenishment_kernel.domain.clock import Clock, SystemClock
from replenishment_kernel.domain.recurrence import compute_next_run, should_fire
from replenishment_kernel.domain.reporting import (
    DEFAULT_WINDOW_DAYS,
    ConfidenceReport,
    SuggestionOutcome,
    build_confidence_report,
)
from replenishment_kernel.domain.schedule import (
    ExecutionStatus,
    PerformanceMetrics,
    ScheduleConfig,
    ScheduleExecutionLog,
    apply_patch,
)
from replenishment_kernel.exceptions import ScheduleNotFoundError, ValidationError
from replenishment_kernel.logging_config import LogContext, get_logger
from replenishment_kernel.repositories.base import (
    ExecutionLogRepository,
    OutcomeRepository,
    ReportRepository,
    ScheduleRepository,
)
from replenishment_kernel.repositories.memory import (
    InMemoryOutcomeRepository,
    InMemoryReportRepository,
)
from replenishment_kernel.services.locks import KeyedLocks

logger = get_logger("services.schedule_registry")

DEFAULT_HISTORY_LIMIT = 50


@dataclass(frozen=True)
class RegistrySettings:
    execution_log_retention: int = 100
    outcome_retention: int = 1000
    report_window_days: int = DEFAULT_WINDOW_DAYS

    def __post_init__(self) -> None:
        if self.execution_log_retention < 1 or self.outcome_retention < 1:
            raise ValidationError("retention limits must be >= 1")
        if self.report_window_days < 1:
            raise ValidationError("report_window_days must be >= 1")


class ScheduleRegistry:
    """Owns replenishment schedules and everything recorded against them."""

    def __init__(
        self,
        schedules: ScheduleRepository,
        execution_logs: ExecutionLogRepository,
        *,
        seeds: Iterable[ScheduleConfig] = (),
        clock: Clock | None = None,
        outcomes: OutcomeRepository | None = None,
        reports: ReportRepository | None = None,
        settings: RegistrySettings | None = None,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        self._schedules = schedules
        self._logs = execution_logs
        self._outcomes = outcomes if outcomes is not None else InMemoryOutcomeRepository()
        self._reports = reports if reports is not None else InMemoryReportRepository()
        self._clock = clock or SystemClock()
        self._settings = settings or RegistrySettings()
        self._new_id = id_factory or (lambda: str(uuid4()))
        self._locks = KeyedLocks()

        seeded = 0
        for seed in seeds:
            if self._schedules.get(seed.schedule_id) is None:
                self.create(seed)
                seeded += 1
        if seeded:
            logger.info("schedule_registry_seeded", extra={"seeded_count": seeded})

    @property
    def settings(self) -> RegistrySettings:
        return self._settings

    @contextmanager
    def locked(self, schedule_id: str) -> Iterator[None]:
        """Hold the schedule's critical section (re-entrant)."""
        with self._locks.hold(schedule_id):
            yield

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    def _next_run(self, schedule: ScheduleConfig, now: datetime) -> datetime | None:
        if not schedule.enabled:
            return None
        reference = now
        if schedule.last_run_at is not None and schedule.last_run_at > now:
            reference = schedule.last_run_at
        return compute_next_run(schedule, reference)

    def create(self, schedule: ScheduleConfig, created_by: str | None = None) -> ScheduleConfig:
        """Register a new schedule and compute its first ``next_run_at``."""
        now = self._clock.now()
        created_at = schedule.created_at or now
        stored = replace(
            schedule,
            created_by=created_by or schedule.created_by,
            created_at=created_at,
            updated_at=schedule.updated_at or created_at,
            next_run_at=self._next_run(schedule, now),
        )
        with self.locked(schedule.schedule_id):
            self._schedules.add(stored)
        logger.info(
            "schedule_created",
            extra={
                "schedule_id": stored.schedule_id,
                "frequency": stored.frequency.value,
                "enabled": stored.enabled,
                "next_run_at": stored.next_run_at,
            },
        )
        return stored

    def get(self, schedule_id: str) -> ScheduleConfig:
        schedule = self._schedules.get(schedule_id)
        if schedule is None:
            raise ScheduleNotFoundError(schedule_id)
        return schedule

    def list(self) -> list[ScheduleConfig]:
        return sorted(self._schedules.list(), key=lambda s: s.schedule_id)

    def update(
        self,
        schedule_id: str,
        patch: Mapping[str, Any],
        updated_by: str | None = None,
    ) -> ScheduleConfig:
        """Partially merge ``patch``; unpatched fields are unchanged.

        Always stamps ``updated_at``.  ``next_run_at`` is recomputed only
        when enablement or recurrence fields change.
        """
        with self.locked(schedule_id), LogContext.bind(schedule_id=schedule_id):
            current = self.get(schedule_id)
            merged = apply_patch(current, patch)
            now = self._clock.now()
            next_run_at = current.next_run_at
            if merged.recurrence_key != current.recurrence_key:
                next_run_at = self._next_run(merged, now)
            updated = replace(
                merged,
                updated_at=now,
                updated_by=updated_by,
                next_run_at=next_run_at,
            )
            self._schedules.save(updated)
        logger.info(
            "schedule_updated",
            extra={
                "schedule_id": schedule_id,
                "patched_fields": sorted(patch.keys()),
                "recurrence_changed": merged.recurrence_key != current.recurrence_key,
                "next_run_at": updated.next_run_at,
            },
        )
        return updated

    def delete(self, schedule_id: str) -> None:
        with self.locked(schedule_id):
            if not self._schedules.delete(schedule_id):
                raise ScheduleNotFoundError(schedule_id)
            self._logs.delete_for(schedule_id)
            self._outcomes.delete_for(schedule_id)
            self._reports.delete_for(schedule_id)
        self._locks.discard(schedule_id)
        logger.info("schedule_deleted", extra={"schedule_id": schedule_id})

    def enable(self, schedule_id: str, updated_by: str | None = None) -> ScheduleConfig:
        return self._set_enabled(schedule_id, True, updated_by)

    def disable(self, schedule_id: str, updated_by: str | None = None) -> ScheduleConfig:
        return self._set_enabled(schedule_id, False, updated_by)

    def _set_enabled(
        self, schedule_id: str, enabled: bool, updated_by: str | None
    ) -> ScheduleConfig:
        with self.locked(schedule_id):
            current = self.get(schedule_id)
            if current.enabled is enabled:
                return current
            now = self._clock.now()
            toggled = replace(current, enabled=enabled)
            updated = replace(
                toggled,
                updated_at=now,
                updated_by=updated_by,
                next_run_at=self._next_run(toggled, now),
            )
            self._schedules.save(updated)
        logger.info(
            "schedule_enabled" if enabled else "schedule_disabled",
            extra={"schedule_id": schedule_id, "next_run_at": updated.next_run_at},
        )
        return updated

    def due_schedules(self, now: datetime | None = None) -> list[ScheduleConfig]:
        """Enabled, non-ON_DEMAND schedules whose ``next_run_at`` has passed."""
        now = now or self._clock.now()
        return [s for s in self.list() if should_fire(s, now)]

    # ------------------------------------------------------------------
    # Execution history
    # ------------------------------------------------------------------

    def log_execution(
        self,
        schedule_id: str,
        *,
        status: ExecutionStatus,
        suggestions_generated: int = 0,
        auto_approved: int = 0,
        pending_review: int = 0,
        errors: Sequence[str] = (),
        performance_metrics: PerformanceMetrics | None = None,
        executed_at: datetime | None = None,
    ) -> ScheduleExecutionLog:
        """Append a run record, then advance ``last_run_at`` / ``next_run_at``.

        ``next_run_at`` is computed from the later of ``last_run_at`` and the
        clock, so a late-recorded run never schedules one in the past.
        """
        with self.locked(schedule_id), LogContext.bind(schedule_id=schedule_id):
            schedule = self.get(schedule_id)
            now = self._clock.now()
            executed_at = executed_at or now
            log = ScheduleExecutionLog(
                execution_id=self._new_id(),
                schedule_id=schedule_id,
                executed_at=executed_at,
                status=status,
                suggestions_generated=suggestions_generated,
                auto_approved=auto_approved,
                pending_review=pending_review,
                errors=tuple(errors),
                performance_metrics=performance_metrics or PerformanceMetrics(),
            )
            self._logs.append(log, retention=self._settings.execution_log_retention)

            last_run_at = executed_at
            if schedule.last_run_at is not None and schedule.last_run_at > executed_at:
                last_run_at = schedule.last_run_at
            ran = replace(schedule, last_run_at=last_run_at)
            updated = replace(ran, next_run_at=self._next_run(ran, now))
            self._schedules.save(updated)

        logger.info(
            "schedule_execution_logged",
            extra={
                "schedule_id": schedule_id,
                "execution_id": log.execution_id,
                "execution_status": log.status.value,
                "suggestions_generated": log.suggestions_generated,
                "auto_approved": log.auto_approved,
                "pending_review": log.pending_review,
                "error_count": len(log.errors),
                "next_run_at": updated.next_run_at,
            },
        )
        return log

    def get_execution_history(
        self, schedule_id: str, limit: int = DEFAULT_HISTORY_LIMIT
    ) -> list[ScheduleExecutionLog]:
        """Most recent runs first."""
        self.get(schedule_id)
        if limit < 0:
            raise ValidationError(f"limit must be >= 0, got {limit}")
        return list(self._logs.history(schedule_id, limit=limit))

    # ------------------------------------------------------------------
    # Outcomes and confidence reports
    # ------------------------------------------------------------------

    def record_outcome(self, outcome: SuggestionOutcome) -> None:
        self.get(outcome.schedule_id)
        self._outcomes.append(outcome, retention=self._settings.outcome_retention)
        logger.debug(
            "suggestion_outcome_recorded",
            extra={
                "schedule_id": outcome.schedule_id,
                "suggestion_id": outcome.suggestion_id,
                "route": outcome.route.value,
            },
        )

    def record_actual_quantity(
        self, suggestion_id: str, actual_quantity: int
    ) -> SuggestionOutcome | None:
        """Attach the observed quantity to a recorded outcome (None if unknown)."""
        if actual_quantity < 0:
            raise ValidationError(f"actual_quantity must be >= 0, got {actual_quantity}")
        return self._outcomes.record_actual(suggestion_id, actual_quantity)

    def generate_confidence_report(
        self, schedule_id: str, report_date: datetime | None = None
    ) -> ConfidenceReport:
        schedule = self.get(schedule_id)
        report = build_confidence_report(
            schedule_id,
            schedule.confidence_thresholds,
            self._outcomes.list_for(schedule_id),
            report_date or self._clock.now(),
            window_days=self._settings.report_window_days,
        )
        self._reports.append(report)
        logger.info(
            "confidence_report_generated",
            extra={
                "schedule_id": schedule_id,
                "total_suggestions": report.total_suggestions,
                "auto_approved_count": report.auto_approved_count,
                "average_confidence": report.average_confidence,
            },
        )
        return report

    def get_confidence_reports(self, schedule_id: str | None = None) -> list[ConfidenceReport]:
        """Stored reports, newest first."""
        if schedule_id is not None:
            self.get(schedule_id)
        return sorted(
            self._reports.list(schedule_id), key=lambda r: r.report_date, reverse=True
        )
