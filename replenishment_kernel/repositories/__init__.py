"""
Repository interfaces and their in-memory implementations.

The SQLAlchemy-backed implementations live in
``replenishment_kernel.repositories.sql`` and are imported explicitly.
"""

from replenishment_kernel.repositories.base import (
    ExecutionLogRepository,
    OrderRepository,
    OutcomeRepository,
    ReportRepository,
    ScheduleRepository,
    SuggestionRepository,
)
from replenishment_kernel.repositories.memory import (
    InMemoryExecutionLogRepository,
    InMemoryOrderRepository,
    InMemoryOutcomeRepository,
    InMemoryReportRepository,
    InMemoryScheduleRepository,
    InMemorySuggestionRepository,
)

__all__ = [
    "ExecutionLogRepository",
    "OrderRepository",
    "OutcomeRepository",
    "ReportRepository",
    "ScheduleRepository",
    "SuggestionRepository",
    "InMemoryExecutionLogRepository",
    "InMemoryOrderRepository",
    "InMemoryOutcomeRepository",
    "InMemoryReportRepository",
    "InMemoryScheduleRepository",
    "InMemorySuggestionRepository",
]
