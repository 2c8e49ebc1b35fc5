"""
Pytest fixtures for the replenishment engine test suite.

Provides:
- Structured log capture
- A deterministic clock (2024-01-15 10:00 UTC, a Monday)
- In-memory repositories and the services wired on top of them
- Factories for schedules, suggestions and line items
"""

import itertools
import json
import logging
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from io import StringIO

import pytest

from replenishment_kernel.domain.catalog import Product, VendorOption, VendorPerformanceMetrics
from replenishment_kernel.domain.clock import DeterministicClock
from replenishment_kernel.domain.order import LineItem
from replenishment_kernel.domain.roles import Actor, ActorRole
from replenishment_kernel.domain.schedule import (
    ApprovalWorkflowConfig,
    ConfidenceThresholds,
    EscalationRules,
    Frequency,
    ScheduleConfig,
)
from replenishment_kernel.domain.suggestion import (
    Priority,
    ReplenishmentSuggestion,
    SuggestionReason,
)
from replenishment_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from replenishment_kernel.repositories.memory import (
    InMemoryExecutionLogRepository,
    InMemoryOrderRepository,
    InMemoryOutcomeRepository,
    InMemoryReportRepository,
    InMemoryScheduleRepository,
    InMemorySuggestionRepository,
)
from replenishment_kernel.services.catalog import InMemoryProductCatalog
from replenishment_kernel.services.order_workflow import OrderWorkflowService
from replenishment_kernel.services.schedule_registry import ScheduleRegistry
from replenishment_kernel.services.suggestion_service import SuggestionService

NOW = datetime(2024, 1, 15, 10, 0, 0, tzinfo=timezone.utc)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture replenishment_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, workflow):
            workflow.create_order(...)
            logs = captured_logs()
            assert any(r["message"] == "order_created" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("replenishment_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Clock and actors
# =============================================================================


@pytest.fixture
def clock():
    return DeterministicClock(fixed_time=NOW)


@pytest.fixture
def sm():
    return Actor("sm-1", ActorRole.SM)


@pytest.fixture
def dm():
    return Actor("dm-1", ActorRole.DM)


@pytest.fixture
def fm():
    return Actor("fm-1", ActorRole.FM)


@pytest.fixture
def analyst():
    return Actor("ca-1", ActorRole.COST_ANALYST)


# =============================================================================
# Factories
# =============================================================================


@pytest.fixture
def make_schedule():
    """ScheduleConfig factory; keyword overrides replace the defaults."""

    def _make(**overrides) -> ScheduleConfig:
        fields = dict(
            schedule_id="sched-1",
            name="Test schedule",
            frequency=Frequency.DAILY,
            time_of_day="06:00",
            confidence_thresholds=ConfidenceThresholds(
                auto_approve_threshold=0.90,
                fm_review_threshold=0.70,
                high_confidence_threshold=0.85,
            ),
            approval_workflow=ApprovalWorkflowConfig(
                auto_approve_enabled=True,
                max_auto_approve_amount=Decimal("500"),
                require_dm_approval_above=Decimal("2000"),
                escalation_rules=EscalationRules(
                    critical_items=True, seasonal_items=False, high_cost_items=False,
                ),
            ),
        )
        fields.update(overrides)
        return ScheduleConfig(**fields)

    return _make


@pytest.fixture
def make_suggestion():
    """ReplenishmentSuggestion factory; confidence 0.95 / $100 by default."""
    counter = itertools.count(1)

    def _make(**overrides) -> ReplenishmentSuggestion:
        created_at = overrides.pop("created_at", NOW)
        fields = dict(
            suggestion_id=f"sug-{next(counter)}",
            product_id="P-100",
            store_id="S-1",
            suggested_quantity=10,
            reason=SuggestionReason.LOW_STOCK,
            priority=Priority.MEDIUM,
            cost_impact=Decimal("100"),
            confidence=0.95,
            created_at=created_at,
            expires_at=created_at + timedelta(days=7),
            schedule_id="sched-1",
            category="POS Supplies",
        )
        fields.update(overrides)
        return ReplenishmentSuggestion(**fields)

    return _make


def _line(product_id="P-100", quantity=10, unit_cost="10.00", requires_dm_approval=False):
    return LineItem(
        product_id=product_id,
        vendor_id="V-A",
        quantity=quantity,
        unit_cost=Decimal(unit_cost),
        requires_dm_approval=requires_dm_approval,
    )


@pytest.fixture
def make_line_item():
    return _line


# =============================================================================
# Repositories and services
# =============================================================================


@pytest.fixture
def order_repo():
    return InMemoryOrderRepository()


@pytest.fixture
def suggestion_repo():
    return InMemorySuggestionRepository()


@pytest.fixture
def schedule_repo():
    return InMemoryScheduleRepository()


@pytest.fixture
def log_repo():
    return InMemoryExecutionLogRepository()


@pytest.fixture
def outcome_repo():
    return InMemoryOutcomeRepository()


@pytest.fixture
def report_repo():
    return InMemoryReportRepository()


def _sequential_ids(prefix: str):
    counter = itertools.count(1)
    return lambda: f"{prefix}-{next(counter):04d}"


@pytest.fixture
def workflow(order_repo, clock):
    return OrderWorkflowService(order_repo, clock=clock, id_factory=_sequential_ids("ORD"))


@pytest.fixture
def registry(schedule_repo, log_repo, outcome_repo, report_repo, clock):
    return ScheduleRegistry(
        schedule_repo,
        log_repo,
        clock=clock,
        outcomes=outcome_repo,
        reports=report_repo,
        id_factory=_sequential_ids("EXEC"),
    )


@pytest.fixture
def catalog():
    return InMemoryProductCatalog(
        products=[
            Product(
                product_id="P-100",
                name="Receipt paper",
                category="POS Supplies",
                vendors=(
                    VendorOption("V-A", "Acme Paper", Decimal("10.00"), 5, is_preferred=True),
                    VendorOption("V-B", "Budget Paper", Decimal("8.00"), 7),
                ),
            ),
            Product(
                product_id="P-200",
                name="Floor scrubber",
                category="Equipment",
                vendors=(VendorOption("V-C", "CleanCo", Decimal("250.00"), 10),),
                requires_dm_approval=True,
            ),
            Product(
                product_id="P-300",
                name="Discontinued toner",
                category="POS Supplies",
                vendors=(VendorOption("V-A", "Acme Paper", Decimal("30.00"), 5),),
                is_active=False,
            ),
            Product(product_id="P-400", name="Orphan item", category="Misc"),
        ],
        metrics=[
            VendorPerformanceMetrics("V-A", 0.96, 4.5, 0.97, 0.99),
            VendorPerformanceMetrics("V-B", 0.72, 7.5, 0.85, 0.93),
        ],
    )


@pytest.fixture
def suggestion_service(suggestion_repo, registry, workflow, catalog, clock):
    return SuggestionService(suggestion_repo, registry, workflow, catalog, clock)
