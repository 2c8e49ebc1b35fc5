"""
Tests for schedule configuration value objects.

Covers threshold ordering, sub-config validation, scope matching,
partial patches and construction from plain data.
"""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from replenishment_kernel.domain.schedule import (
    ApprovalWorkflowConfig,
    ConfidenceThresholds,
    Frequency,
    MonthEndPolicy,
    ScheduleScope,
    VendorPreferences,
    apply_patch,
    schedule_from_dict,
)
from replenishment_kernel.exceptions import (
    InvalidScheduleError,
    ThresholdOrderError,
    ValidationError,
)


# =============================================================================
# ConfidenceThresholds
# =============================================================================


class TestConfidenceThresholds:
    def test_ordered_thresholds_accepted(self):
        t = ConfidenceThresholds(0.9, 0.7, 0.85)
        assert t.fm_review_threshold <= t.high_confidence_threshold <= t.auto_approve_threshold

    def test_equal_thresholds_accepted(self):
        ConfidenceThresholds(0.8, 0.8, 0.8)

    @pytest.mark.parametrize(
        "auto,fm,high",
        [
            (0.7, 0.9, 0.8),   # fm above auto
            (0.9, 0.7, 0.95),  # high above auto
            (0.9, 0.8, 0.75),  # fm above high
        ],
    )
    def test_misordered_thresholds_rejected(self, auto, fm, high):
        with pytest.raises(ThresholdOrderError) as exc_info:
            ConfidenceThresholds(auto, fm, high)
        assert exc_info.value.code == "THRESHOLD_ORDER_VIOLATION"

    @pytest.mark.parametrize("bad", [-0.1, 1.1, float("nan"), True, "0.9"])
    def test_out_of_range_rejected(self, bad):
        with pytest.raises(ThresholdOrderError):
            ConfidenceThresholds(bad, 0.0, 0.0)

    def test_dict_round_trip(self):
        t = ConfidenceThresholds(0.9, 0.7, 0.85)
        assert ConfidenceThresholds.from_dict(t.to_dict()) == t


# =============================================================================
# Sub-configs
# =============================================================================


class TestApprovalWorkflowConfig:
    def test_amounts_coerced_to_decimal(self):
        config = ApprovalWorkflowConfig(True, "500", 2000)
        assert config.max_auto_approve_amount == Decimal("500")
        assert config.require_dm_approval_above == Decimal("2000")

    def test_negative_amount_rejected(self):
        with pytest.raises(ValidationError):
            ApprovalWorkflowConfig(True, Decimal("-1"), Decimal("2000"))

    def test_high_cost_threshold_falls_back(self):
        config = ApprovalWorkflowConfig(True, Decimal("500"), Decimal("2000"))
        assert config.effective_high_cost_threshold == Decimal("500")

    def test_from_dict_with_nested_rules(self):
        config = ApprovalWorkflowConfig.from_dict({
            "auto_approve_enabled": True,
            "max_auto_approve_amount": "250.50",
            "require_dm_approval_above": "1000",
            "escalation_rules": {"seasonal_items": True},
        })
        assert config.max_auto_approve_amount == Decimal("250.50")
        assert config.escalation_rules.seasonal_items is True
        assert config.escalation_rules.critical_items is True


class TestVendorPreferences:
    @pytest.mark.parametrize("priority", [0, 6])
    def test_priority_range(self, priority):
        with pytest.raises(ValidationError):
            VendorPreferences(cost_optimization_priority=priority)


class TestScheduleScope:
    def test_empty_scope_includes_everything(self):
        assert ScheduleScope().includes("S-9", "P-1", "Anything") is True

    def test_store_filter(self):
        scope = ScheduleScope(store_ids=("S-1",))
        assert scope.includes("S-1", "P-1") is True
        assert scope.includes("S-2", "P-1") is False

    def test_category_filter(self):
        scope = ScheduleScope(product_categories=("POS Supplies",))
        assert scope.includes("S-1", "P-1", "POS Supplies") is True
        assert scope.includes("S-1", "P-1", "Equipment") is False
        assert scope.includes("S-1", "P-1", None) is False

    def test_priority_product_bypasses_category(self):
        scope = ScheduleScope(product_categories=("POS Supplies",), priority_products=("P-9",))
        assert scope.includes("S-1", "P-9", "Equipment") is True

    def test_exclusion_wins(self):
        scope = ScheduleScope(priority_products=("P-9",), exclude_products=("P-9",))
        assert scope.includes("S-1", "P-9") is False


# =============================================================================
# ScheduleConfig validation
# =============================================================================


class TestScheduleValidation:
    def test_defaults(self, make_schedule):
        schedule = make_schedule()
        assert schedule.enabled is True
        assert schedule.month_end_policy is MonthEndPolicy.CLAMP
        assert schedule.hour_minute == (6, 0)

    @pytest.mark.parametrize("bad", ["6:00", "24:00", "06:60", "0600", ""])
    def test_bad_time_of_day(self, make_schedule, bad):
        with pytest.raises(InvalidScheduleError) as exc_info:
            make_schedule(time_of_day=bad)
        assert exc_info.value.field_name == "time_of_day"

    def test_weekly_requires_days(self, make_schedule):
        with pytest.raises(InvalidScheduleError) as exc_info:
            make_schedule(frequency=Frequency.WEEKLY)
        assert exc_info.value.field_name == "days_of_week"

    def test_days_normalised(self, make_schedule):
        schedule = make_schedule(frequency=Frequency.WEEKLY, days_of_week=(5, 1, 5))
        assert schedule.days_of_week == (1, 5)

    @pytest.mark.parametrize("day", [-1, 7, True])
    def test_bad_weekday(self, make_schedule, day):
        with pytest.raises(InvalidScheduleError):
            make_schedule(frequency=Frequency.WEEKLY, days_of_week=(day,))

    def test_monthly_requires_day_of_month(self, make_schedule):
        with pytest.raises(InvalidScheduleError):
            make_schedule(frequency=Frequency.MONTHLY)

    @pytest.mark.parametrize("day", [0, 32])
    def test_bad_day_of_month(self, make_schedule, day):
        with pytest.raises(InvalidScheduleError):
            make_schedule(frequency=Frequency.MONTHLY, day_of_month=day)

    def test_string_enums_coerced(self, make_schedule):
        schedule = make_schedule(frequency="ON_DEMAND", month_end_policy="SKIP")
        assert schedule.frequency is Frequency.ON_DEMAND
        assert schedule.month_end_policy is MonthEndPolicy.SKIP

    def test_unknown_frequency(self, make_schedule):
        with pytest.raises(InvalidScheduleError):
            make_schedule(frequency="HOURLY")

    def test_empty_id(self, make_schedule):
        with pytest.raises(InvalidScheduleError):
            make_schedule(schedule_id="")


# =============================================================================
# apply_patch
# =============================================================================


class TestApplyPatch:
    def test_nested_threshold_patch_keeps_siblings(self, make_schedule):
        schedule = make_schedule()
        patched = apply_patch(schedule, {"confidence_thresholds": {"fm_review_threshold": 0.5}})

        assert patched.confidence_thresholds == ConfidenceThresholds(0.90, 0.5, 0.85)
        assert patched.approval_workflow == schedule.approval_workflow
        assert patched.name == schedule.name

    def test_escalation_rule_patch_is_merged(self, make_schedule):
        patched = apply_patch(
            make_schedule(),
            {"approval_workflow": {"escalation_rules": {"high_cost_items": True}}},
        )
        rules = patched.approval_workflow.escalation_rules
        assert rules.high_cost_items is True
        assert rules.critical_items is True
        assert patched.approval_workflow.max_auto_approve_amount == Decimal("500")

    def test_patch_is_revalidated(self, make_schedule):
        with pytest.raises(ThresholdOrderError):
            apply_patch(make_schedule(), {"confidence_thresholds": {"fm_review_threshold": 0.95}})

    def test_scalar_patch(self, make_schedule):
        patched = apply_patch(make_schedule(), {"name": "Renamed", "enabled": False})
        assert patched.name == "Renamed"
        assert patched.enabled is False

    def test_switch_to_weekly(self, make_schedule):
        patched = apply_patch(
            make_schedule(), {"frequency": "WEEKLY", "days_of_week": [1, 3]}
        )
        assert patched.frequency is Frequency.WEEKLY
        assert patched.days_of_week == (1, 3)

    @pytest.mark.parametrize("days", [3, "1,3", {"monday": 1}])
    def test_days_of_week_must_be_a_list(self, make_schedule, days):
        with pytest.raises(InvalidScheduleError) as exc_info:
            apply_patch(make_schedule(), {"frequency": "WEEKLY", "days_of_week": days})
        assert exc_info.value.field_name == "days_of_week"

    def test_days_of_week_none_clears(self, make_schedule):
        schedule = make_schedule(frequency=Frequency.WEEKLY, days_of_week=(1,))
        patched = apply_patch(schedule, {"frequency": "DAILY", "days_of_week": None})
        assert patched.days_of_week == ()
        with pytest.raises(InvalidScheduleError):
            apply_patch(schedule, {"days_of_week": None})

    def test_schedule_id_immutable(self, make_schedule):
        with pytest.raises(InvalidScheduleError):
            apply_patch(make_schedule(), {"schedule_id": "other"})

    def test_same_schedule_id_ignored(self, make_schedule):
        schedule = make_schedule()
        assert apply_patch(schedule, {"schedule_id": "sched-1"}) == schedule

    @pytest.mark.parametrize("key", ["next_run_at", "last_run_at", "created_by"])
    def test_derived_fields_not_patchable(self, make_schedule, key):
        with pytest.raises(InvalidScheduleError) as exc_info:
            apply_patch(make_schedule(), {key: None})
        assert exc_info.value.field_name == key

    def test_unknown_field(self, make_schedule):
        with pytest.raises(InvalidScheduleError):
            apply_patch(make_schedule(), {"colour": "blue"})


# =============================================================================
# schedule_from_dict
# =============================================================================


class TestScheduleFromDict:
    def _data(self, **overrides):
        data = {
            "schedule_id": "weekly",
            "name": "Weekly",
            "frequency": "WEEKLY",
            "time_of_day": "05:00",
            "days_of_week": [1],
            "confidence_thresholds": {
                "auto_approve_threshold": 0.8,
                "fm_review_threshold": 0.6,
                "high_confidence_threshold": 0.75,
            },
            "approval_workflow": {
                "auto_approve_enabled": True,
                "max_auto_approve_amount": "1000",
                "require_dm_approval_above": "5000",
            },
            "scope": {"store_ids": ["S-1"]},
            "created_at": "2024-01-01T00:00:00Z",
        }
        data.update(overrides)
        return data

    def test_builds_nested_configs(self):
        schedule = schedule_from_dict(self._data())

        assert schedule.frequency is Frequency.WEEKLY
        assert schedule.days_of_week == (1,)
        assert schedule.approval_workflow.require_dm_approval_above == Decimal("5000")
        assert schedule.scope.store_ids == ("S-1",)
        assert schedule.created_at == datetime(2024, 1, 1, tzinfo=timezone.utc)

    def test_unknown_key_is_invalid_schedule(self):
        with pytest.raises(InvalidScheduleError) as exc_info:
            schedule_from_dict(self._data(colour="blue"))
        assert exc_info.value.schedule_id == "weekly"

    def test_missing_sub_config_key(self):
        data = self._data()
        del data["confidence_thresholds"]["fm_review_threshold"]
        with pytest.raises(InvalidScheduleError) as exc_info:
            schedule_from_dict(data)
        assert exc_info.value.field_name == "definition"
