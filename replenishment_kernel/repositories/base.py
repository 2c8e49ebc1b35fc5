"""
Repository interfaces, one per persisted collection.

Services depend only on these protocols; ``repositories.memory`` and
``repositories.sql`` provide interchangeable implementations.

Contract shared by all implementations:
    - ``get`` returns None for unknown ids; services raise NotFound.
    - ``add`` raises the matching ``AlreadyExistsError`` on duplicates.
    - ``OrderRepository.save`` is a compare-and-swap on ``version``.
    - Execution logs and outcomes are append-only; ``append`` evicts the
      oldest entries beyond ``retention``.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from replenishment_kernel.domain.order import Order, OrderStatus
from replenishment_kernel.domain.reporting import ConfidenceReport, SuggestionOutcome
from replenishment_kernel.domain.schedule import ScheduleConfig, ScheduleExecutionLog
from replenishment_kernel.domain.suggestion import ReplenishmentSuggestion


class OrderRepository(Protocol):
    def get(self, order_id: str) -> Order | None: ...

    def add(self, order: Order) -> None: ...

    def save(self, order: Order, expected_version: int) -> None:
        """Replace the stored order if its version is still ``expected_version``.

        Raises:
            OrderNotFoundError: no stored order with this id.
            OptimisticLockError: stored version differs.
        """
        ...

    def list(
        self, store_id: str | None = None, status: OrderStatus | None = None
    ) -> Sequence[Order]: ...


class SuggestionRepository(Protocol):
    def get(self, suggestion_id: str) -> ReplenishmentSuggestion | None: ...

    def add(self, suggestion: ReplenishmentSuggestion) -> None: ...

    def remove(self, suggestion_id: str) -> ReplenishmentSuggestion:
        """Remove and return a pending suggestion.

        Raises:
            SuggestionNotFoundError: not pending.
        """
        ...

    def list(self, schedule_id: str | None = None) -> Sequence[ReplenishmentSuggestion]: ...


class ScheduleRepository(Protocol):
    def get(self, schedule_id: str) -> ScheduleConfig | None: ...

    def add(self, schedule: ScheduleConfig) -> None: ...

    def save(self, schedule: ScheduleConfig) -> None: ...

    def delete(self, schedule_id: str) -> bool: ...

    def list(self) -> Sequence[ScheduleConfig]: ...


class ExecutionLogRepository(Protocol):
    def append(self, log: ScheduleExecutionLog, retention: int) -> None: ...

    def history(self, schedule_id: str, limit: int | None = None) -> Sequence[ScheduleExecutionLog]:
        """Logs for the schedule, newest ``executed_at`` first."""
        ...

    def delete_for(self, schedule_id: str) -> None: ...


class OutcomeRepository(Protocol):
    def append(self, outcome: SuggestionOutcome, retention: int) -> None: ...

    def list_for(self, schedule_id: str) -> Sequence[SuggestionOutcome]: ...

    def record_actual(self, suggestion_id: str, actual_quantity: int) -> SuggestionOutcome | None: ...

    def delete_for(self, schedule_id: str) -> None: ...


class ReportRepository(Protocol):
    def append(self, report: ConfidenceReport) -> None: ...

    def list(self, schedule_id: str | None = None) -> Sequence[ConfidenceReport]: ...

    def delete_for(self, schedule_id: str) -> None: ...
