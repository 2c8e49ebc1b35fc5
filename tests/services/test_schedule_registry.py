"""
Tests for ScheduleRegistry: schedule lifecycle, execution history,
suggestion outcomes and confidence reports.
"""

from datetime import datetime, timedelta, timezone

import pytest

from replenishment_kernel.domain.decision import ApprovalRoute
from replenishment_kernel.domain.reporting import SuggestionOutcome
from replenishment_kernel.domain.schedule import (
    ExecutionStatus,
    Frequency,
    PerformanceMetrics,
)
from replenishment_kernel.exceptions import (
    InvalidScheduleError,
    ScheduleAlreadyExistsError,
    ScheduleNotFoundError,
    ThresholdOrderError,
    ValidationError,
)
from replenishment_kernel.repositories.memory import (
    InMemoryExecutionLogRepository,
    InMemoryScheduleRepository,
)
from replenishment_kernel.services.schedule_registry import RegistrySettings, ScheduleRegistry

from tests.conftest import NOW

TOMORROW_6AM = datetime(2024, 1, 16, 6, 0, tzinfo=timezone.utc)


def _outcome(suggestion_id, confidence, auto=False, quantity=10, decided_at=NOW):
    return SuggestionOutcome(
        suggestion_id=suggestion_id,
        schedule_id="sched-1",
        confidence=confidence,
        route=ApprovalRoute.AUTO_APPROVE if auto else ApprovalRoute.FM_REVIEW,
        auto_approved=auto,
        decided_at=decided_at,
        predicted_quantity=quantity,
    )


# =============================================================================
# Seeding and CRUD
# =============================================================================


class TestSeedingAndCrud:
    def test_seeds_are_injected(self, make_schedule, clock):
        registry = ScheduleRegistry(
            InMemoryScheduleRepository(),
            InMemoryExecutionLogRepository(),
            seeds=[make_schedule(), make_schedule(schedule_id="sched-2", enabled=False)],
            clock=clock,
        )
        assert [s.schedule_id for s in registry.list()] == ["sched-1", "sched-2"]
        assert registry.get("sched-1").next_run_at == TOMORROW_6AM
        assert registry.get("sched-2").next_run_at is None

    def test_existing_schedule_not_reseeded(self, make_schedule, clock):
        repo = InMemoryScheduleRepository([make_schedule(name="Edited")])
        registry = ScheduleRegistry(
            repo, InMemoryExecutionLogRepository(), seeds=[make_schedule()], clock=clock
        )
        assert registry.get("sched-1").name == "Edited"

    def test_no_seeds_means_empty(self, registry):
        assert registry.list() == []

    def test_create_computes_next_run(self, registry, make_schedule):
        created = registry.create(make_schedule(), created_by="fm-1")
        assert created.next_run_at == TOMORROW_6AM
        assert created.created_by == "fm-1"
        assert created.created_at == NOW

    def test_round_trip(self, registry, make_schedule):
        created = registry.create(make_schedule())
        assert registry.get("sched-1") == created

    def test_duplicate_create(self, registry, make_schedule):
        registry.create(make_schedule())
        with pytest.raises(ScheduleAlreadyExistsError):
            registry.create(make_schedule())

    def test_on_demand_has_no_next_run(self, registry, make_schedule):
        created = registry.create(make_schedule(frequency=Frequency.ON_DEMAND))
        assert created.next_run_at is None

    def test_get_unknown(self, registry):
        with pytest.raises(ScheduleNotFoundError):
            registry.get("nope")

    def test_delete_cascades(self, registry, make_schedule):
        registry.create(make_schedule())
        registry.log_execution("sched-1", status=ExecutionStatus.SUCCESS)
        registry.record_outcome(_outcome("sug-1", 0.9))
        registry.generate_confidence_report("sched-1")

        registry.delete("sched-1")

        with pytest.raises(ScheduleNotFoundError):
            registry.get("sched-1")
        assert registry.get_confidence_reports() == []
        registry.create(make_schedule())
        assert registry.get_execution_history("sched-1") == []

    def test_delete_unknown(self, registry):
        with pytest.raises(ScheduleNotFoundError):
            registry.delete("nope")


# =============================================================================
# Updates
# =============================================================================


class TestUpdate:
    def test_partial_update_keeps_other_fields(self, registry, make_schedule, clock):
        created = registry.create(make_schedule())
        clock.advance(60)

        updated = registry.update(
            "sched-1",
            {"confidence_thresholds": {"fm_review_threshold": 0.6}},
            updated_by="fm-1",
        )

        assert updated.confidence_thresholds.fm_review_threshold == 0.6
        assert updated.confidence_thresholds.auto_approve_threshold == 0.90
        assert updated.approval_workflow == created.approval_workflow
        assert updated.updated_by == "fm-1"
        assert updated.updated_at == NOW + timedelta(seconds=60)
        assert updated.next_run_at == created.next_run_at

    def test_invalid_thresholds_leave_schedule_unchanged(self, registry, make_schedule):
        created = registry.create(make_schedule())
        with pytest.raises(ThresholdOrderError):
            registry.update("sched-1", {"confidence_thresholds": {"auto_approve_threshold": 0.5}})
        assert registry.get("sched-1") == created

    def test_recurrence_change_recomputes_next_run(self, registry, make_schedule):
        registry.create(make_schedule())
        updated = registry.update("sched-1", {"time_of_day": "12:00"})
        assert updated.next_run_at == datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)

    def test_switch_to_weekly(self, registry, make_schedule):
        registry.create(make_schedule())
        updated = registry.update(
            "sched-1", {"frequency": "WEEKLY", "days_of_week": [3]}
        )
        # Wednesday after Monday 2024-01-15
        assert updated.next_run_at == datetime(2024, 1, 17, 6, 0, tzinfo=timezone.utc)

    def test_non_list_days_rejected(self, registry, make_schedule):
        created = registry.create(make_schedule())
        with pytest.raises(InvalidScheduleError) as exc_info:
            registry.update("sched-1", {"frequency": "WEEKLY", "days_of_week": 3})
        assert exc_info.value.field_name == "days_of_week"
        assert registry.get("sched-1") == created

    def test_read_only_field(self, registry, make_schedule):
        registry.create(make_schedule())
        with pytest.raises(InvalidScheduleError):
            registry.update("sched-1", {"next_run_at": None})

    def test_update_unknown(self, registry):
        with pytest.raises(ScheduleNotFoundError):
            registry.update("nope", {"name": "x"})

    def test_disable_and_enable(self, registry, make_schedule):
        registry.create(make_schedule())

        disabled = registry.disable("sched-1", updated_by="fm-1")
        assert disabled.enabled is False
        assert disabled.next_run_at is None
        assert registry.due_schedules(TOMORROW_6AM) == []

        enabled = registry.enable("sched-1")
        assert enabled.next_run_at == TOMORROW_6AM

    def test_disable_is_idempotent(self, registry, make_schedule):
        registry.create(make_schedule(enabled=False))
        assert registry.disable("sched-1") == registry.get("sched-1")

    def test_update_is_logged(self, registry, make_schedule, captured_logs):
        registry.create(make_schedule())
        registry.update("sched-1", {"name": "Renamed"})
        record = next(r for r in captured_logs() if r["message"] == "schedule_updated")
        assert record["schedule_id"] == "sched-1"
        assert record["patched_fields"] == ["name"]
        assert record["recurrence_changed"] is False


# =============================================================================
# Due schedules and execution history
# =============================================================================


class TestExecutionHistory:
    def test_due_schedules(self, registry, make_schedule):
        registry.create(make_schedule())
        registry.create(make_schedule(schedule_id="sched-od", frequency=Frequency.ON_DEMAND))

        assert registry.due_schedules(NOW) == []
        due = registry.due_schedules(TOMORROW_6AM)
        assert [s.schedule_id for s in due] == ["sched-1"]

    def test_log_advances_run_times(self, registry, make_schedule):
        registry.create(make_schedule())

        log = registry.log_execution(
            "sched-1",
            status=ExecutionStatus.SUCCESS,
            suggestions_generated=3,
            auto_approved=2,
            pending_review=1,
            performance_metrics=PerformanceMetrics(execution_time_ms=12),
            executed_at=TOMORROW_6AM,
        )

        schedule = registry.get("sched-1")
        assert log.execution_id == "EXEC-0001"
        assert schedule.last_run_at == TOMORROW_6AM
        assert schedule.next_run_at == TOMORROW_6AM + timedelta(days=1)
        assert schedule.next_run_at > schedule.last_run_at

    def test_history_newest_first_with_limit(self, registry, make_schedule):
        registry.create(make_schedule())
        for i in range(5):
            registry.log_execution(
                "sched-1",
                status=ExecutionStatus.SUCCESS,
                executed_at=NOW + timedelta(hours=i),
            )

        history = registry.get_execution_history("sched-1", limit=3)
        assert [h.execution_id for h in history] == ["EXEC-0005", "EXEC-0004", "EXEC-0003"]

    def test_history_bounded_to_retention(self, registry, make_schedule):
        registry.create(make_schedule())
        for i in range(105):
            registry.log_execution(
                "sched-1",
                status=ExecutionStatus.SUCCESS,
                executed_at=NOW + timedelta(minutes=i),
            )

        history = registry.get_execution_history("sched-1", limit=500)
        assert len(history) == 100
        assert history[0].execution_id == "EXEC-0105"
        assert history[-1].execution_id == "EXEC-0006"

    def test_custom_retention(self, schedule_repo, log_repo, clock, make_schedule):
        registry = ScheduleRegistry(
            schedule_repo,
            log_repo,
            clock=clock,
            settings=RegistrySettings(execution_log_retention=2),
        )
        registry.create(make_schedule())
        for _ in range(4):
            registry.log_execution("sched-1", status=ExecutionStatus.FAILED, errors=["boom"])
        assert len(registry.get_execution_history("sched-1")) == 2

    def test_history_of_unknown_schedule(self, registry):
        with pytest.raises(ScheduleNotFoundError):
            registry.get_execution_history("nope")

    def test_negative_limit(self, registry, make_schedule):
        registry.create(make_schedule())
        with pytest.raises(ValidationError):
            registry.get_execution_history("sched-1", limit=-1)

    def test_invalid_settings(self):
        with pytest.raises(ValidationError):
            RegistrySettings(execution_log_retention=0)


# =============================================================================
# Outcomes and confidence reports
# =============================================================================


class TestConfidenceReports:
    def test_report_buckets_against_thresholds(self, registry, make_schedule):
        registry.create(make_schedule())
        for sid, confidence, auto in [
            ("a", 0.95, True),
            ("b", 0.86, False),
            ("c", 0.75, False),
            ("d", 0.40, False),
        ]:
            registry.record_outcome(_outcome(sid, confidence, auto))

        report = registry.generate_confidence_report("sched-1")

        dist = report.confidence_distribution
        assert report.total_suggestions == 4
        assert (dist.high_confidence, dist.medium_confidence, dist.low_confidence) == (2, 1, 1)
        assert dist.auto_approve_eligible == 1
        assert report.auto_approved_count == 1
        assert report.manual_review_count == 3
        assert report.average_confidence == pytest.approx(0.74)
        assert report.accuracy_metrics.sample_size == 0
        assert report.accuracy_metrics.last_30_days_accuracy is None

    def test_accuracy_from_actual_quantities(self, registry, make_schedule):
        registry.create(make_schedule())
        registry.record_outcome(_outcome("a", 0.9, quantity=10))
        registry.record_outcome(_outcome("b", 0.9, quantity=12))
        registry.record_actual_quantity("a", 10)
        registry.record_actual_quantity("b", 10)

        accuracy = registry.generate_confidence_report("sched-1").accuracy_metrics

        assert accuracy.sample_size == 2
        assert accuracy.last_30_days_accuracy == pytest.approx(0.9)
        assert accuracy.prediction_vs_actual_variance == pytest.approx(0.1)

    def test_window_excludes_old_outcomes(self, registry, make_schedule):
        registry.create(make_schedule())
        registry.record_outcome(_outcome("old", 0.9, decided_at=NOW - timedelta(days=31)))
        registry.record_outcome(_outcome("new", 0.9))
        assert registry.generate_confidence_report("sched-1").total_suggestions == 1

    def test_empty_report(self, registry, make_schedule):
        registry.create(make_schedule())
        report = registry.generate_confidence_report("sched-1")
        assert report.total_suggestions == 0
        assert report.average_confidence == 0.0

    def test_reports_newest_first(self, registry, make_schedule):
        registry.create(make_schedule())
        registry.generate_confidence_report("sched-1", NOW - timedelta(days=1))
        registry.generate_confidence_report("sched-1", NOW)
        dates = [r.report_date for r in registry.get_confidence_reports("sched-1")]
        assert dates == [NOW, NOW - timedelta(days=1)]

    def test_actual_for_unknown_suggestion(self, registry):
        assert registry.record_actual_quantity("ghost", 3) is None

    def test_negative_actual(self, registry):
        with pytest.raises(ValidationError):
            registry.record_actual_quantity("a", -1)

    def test_outcome_for_unknown_schedule(self, registry):
        with pytest.raises(ScheduleNotFoundError):
            registry.record_outcome(_outcome("a", 0.9))
