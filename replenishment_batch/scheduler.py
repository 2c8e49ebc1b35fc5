"""
ReplenishmentScheduler -- In-process polling scheduler.

Contract:
    Polls the ScheduleRegistry on a configurable interval, fires schedules
    whose ``next_run_at`` has passed, asks the ForecastOracle for
    suggestions, submits each in-scope suggestion to the SuggestionService,
    and records the run with ``ScheduleRegistry.log_execution`` (which
    advances ``last_run_at`` / ``next_run_at``).

Architecture: replenishment_batch.  Uses replenishment_kernel services only
    through their public methods.

Invariants enforced:
    - All timestamps from the injected Clock.
    - Due-ness is re-checked inside the schedule's lock, so two ticks
      racing on one schedule fire it once.
    - An oracle failure is logged and recorded as a FAILED execution;
      the scheduler keeps ticking.
    - Graceful shutdown: the stop signal is honoured between schedules.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field, replace
from datetime import datetime

from replenishment_kernel.domain.clock import Clock, SystemClock
from replenishment_kernel.domain.decision import ApprovalRoute
from replenishment_kernel.domain.recurrence import should_fire
from replenishment_kernel.domain.schedule import (
    ExecutionStatus,
    Frequency,
    PerformanceMetrics,
    ScheduleConfig,
    ScheduleExecutionLog,
)
from replenishment_kernel.domain.suggestion import ReplenishmentSuggestion
from replenishment_kernel.exceptions import ReplenishmentError, ValidationError
from replenishment_kernel.logging_config import LogContext, get_logger
from replenishment_kernel.services.schedule_registry import ScheduleRegistry
from replenishment_kernel.services.suggestion_service import SuggestionService

from replenishment_batch.oracle import ForecastOracle

logger = get_logger("batch.scheduler")


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


@dataclass
class RunSummary:
    """Counters accumulated while processing one run's suggestions."""

    generated: int = 0
    auto_approved: int = 0
    pending_review: int = 0
    out_of_scope: int = 0
    errors: list[str] = field(default_factory=list)

    def status(self, offered: int) -> ExecutionStatus:
        if not self.errors:
            return ExecutionStatus.SUCCESS
        if self.generated == 0 and offered > 0:
            return ExecutionStatus.FAILED
        return ExecutionStatus.PARTIAL_SUCCESS


class ReplenishmentScheduler:
    """In-process polling scheduler for replenishment schedules.

    Contract:
        - ``tick()`` fires every due schedule once; returns the count fired.
        - ``run_now(schedule_id)`` fires one enabled schedule immediately,
          regardless of ``next_run_at`` (the path for ON_DEMAND schedules).
        - ``start()`` / ``stop()`` for background thread operation.

    Non-goals:
        - NOT a distributed scheduler (no leader election).
    """

    def __init__(
        self,
        registry: ScheduleRegistry,
        suggestions: SuggestionService,
        oracle: ForecastOracle,
        clock: Clock | None = None,
        tick_interval_seconds: float = 60,
    ):
        self._registry = registry
        self._suggestions = suggestions
        self._oracle = oracle
        self._clock = clock or SystemClock()
        self._tick_interval = tick_interval_seconds
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def tick(self) -> int:
        """Evaluate and fire due schedules (public for testing)."""
        now = self._clock.now()
        fired = 0
        for schedule in self._registry.due_schedules(now):
            if self._stop_event.is_set():
                break
            try:
                if self._fire_if_due(schedule.schedule_id, now) is not None:
                    fired += 1
            except ReplenishmentError:
                logger.exception(
                    "schedule_fire_failed", extra={"schedule_id": schedule.schedule_id}
                )
        return fired

    def run_now(self, schedule_id: str) -> ScheduleExecutionLog:
        """Fire ``schedule_id`` immediately.

        Raises:
            ScheduleNotFoundError: unknown schedule.
            ValidationError: the schedule is disabled.
        """
        with self._registry.locked(schedule_id), LogContext.bind(schedule_id=schedule_id):
            schedule = self._registry.get(schedule_id)
            if not schedule.enabled:
                raise ValidationError(f"Schedule {schedule_id} is disabled")
            return self._execute(schedule, self._clock.now())

    def start(self) -> None:
        """Start the scheduler in a background thread."""
        if self._thread is not None and self._thread.is_alive():
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run_loop,
            name="replenishment-scheduler",
            daemon=True,
        )
        self._thread.start()
        logger.info("scheduler_started", extra={"tick_interval": self._tick_interval})

    def stop(self, timeout: float = 30.0) -> None:
        """Signal stop and wait for the current tick to finish."""
        self._stop_event.set()
        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=timeout)
        logger.info("scheduler_stopped")

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.tick()
            except Exception:
                logger.exception("scheduler_tick_exception")
            self._stop_event.wait(timeout=self._tick_interval)

    def _fire_if_due(self, schedule_id: str, now: datetime) -> ScheduleExecutionLog | None:
        with self._registry.locked(schedule_id), LogContext.bind(schedule_id=schedule_id):
            schedule = self._registry.get(schedule_id)
            if not should_fire(schedule, now):
                # Another tick got here first.
                return None
            return self._execute(schedule, now)

    def _execute(self, schedule: ScheduleConfig, now: datetime) -> ScheduleExecutionLog:
        """Run one schedule; the caller holds the schedule's lock."""
        schedule_id = schedule.schedule_id
        started = time.perf_counter()
        try:
            offered = tuple(self._oracle.suggest(schedule, now))
        except Exception as exc:
            logger.exception("forecast_oracle_failed")
            return self._registry.log_execution(
                schedule_id,
                status=ExecutionStatus.FAILED,
                errors=[f"forecast oracle failed: {exc}"],
                performance_metrics=PerformanceMetrics(
                    execution_time_ms=_elapsed_ms(started),
                    ml_processing_time_ms=_elapsed_ms(started),
                ),
                executed_at=now,
            )
        ml_ms = _elapsed_ms(started)

        triage_started = time.perf_counter()
        summary = self._triage(schedule, offered)
        triage_ms = _elapsed_ms(triage_started)

        status = summary.status(len(offered))
        log = self._registry.log_execution(
            schedule_id,
            status=status,
            suggestions_generated=summary.generated,
            auto_approved=summary.auto_approved,
            pending_review=summary.pending_review,
            errors=summary.errors,
            performance_metrics=PerformanceMetrics(
                execution_time_ms=_elapsed_ms(started),
                ml_processing_time_ms=ml_ms,
                vendor_selection_time_ms=triage_ms,
            ),
            executed_at=now,
        )
        logger.info(
            "schedule_fired",
            extra={
                "schedule_id": schedule_id,
                "on_demand": schedule.frequency is Frequency.ON_DEMAND,
                "execution_status": status.value,
                "offered": len(offered),
                "out_of_scope": summary.out_of_scope,
            },
        )
        return log

    def _triage(
        self, schedule: ScheduleConfig, offered: tuple[ReplenishmentSuggestion, ...]
    ) -> RunSummary:
        summary = RunSummary()
        for suggestion in offered:
            if suggestion.schedule_id is None:
                suggestion = replace(suggestion, schedule_id=schedule.schedule_id)
            elif suggestion.schedule_id != schedule.schedule_id:
                summary.errors.append(
                    f"{suggestion.suggestion_id}: belongs to schedule {suggestion.schedule_id}"
                )
                continue

            if not schedule.scope.includes(
                suggestion.store_id, suggestion.product_id, suggestion.category
            ):
                summary.out_of_scope += 1
                continue

            try:
                result = self._suggestions.submit(suggestion)
            except ReplenishmentError as exc:
                logger.warning(
                    "suggestion_submit_failed",
                    extra={"suggestion_id": suggestion.suggestion_id, "error_code": exc.code},
                )
                summary.errors.append(f"{suggestion.suggestion_id}: {exc}")
                # A failed auto-conversion leaves the suggestion waiting for review.
                if self._suggestions.is_pending(suggestion.suggestion_id):
                    summary.generated += 1
                    summary.pending_review += 1
                continue

            summary.generated += 1
            if result.classification.route is ApprovalRoute.AUTO_APPROVE:
                summary.auto_approved += 1
            else:
                summary.pending_review += 1
        return summary
