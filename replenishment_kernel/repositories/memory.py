"""
In-memory repositories.

Dict-backed, guarded by one lock per store.  Entities are frozen
dataclasses, so handing them out by reference is safe.
"""

from __future__ import annotations

import threading
from collections import deque
from collections.abc import Iterable, Sequence
from dataclasses import replace

from replenishment_kernel.domain.order import Order, OrderStatus
from replenishment_kernel.domain.reporting import ConfidenceReport, SuggestionOutcome
from replenishment_kernel.domain.schedule import ScheduleConfig, ScheduleExecutionLog
from replenishment_kernel.domain.suggestion import ReplenishmentSuggestion
from replenishment_kernel.exceptions import (
    OptimisticLockError,
    OrderAlreadyExistsError,
    OrderNotFoundError,
    ScheduleAlreadyExistsError,
    ScheduleNotFoundError,
    SuggestionAlreadyExistsError,
    SuggestionNotFoundError,
)


class InMemoryOrderRepository:
    def __init__(self) -> None:
        self._orders: dict[str, Order] = {}
        self._lock = threading.Lock()

    def get(self, order_id: str) -> Order | None:
        with self._lock:
            return self._orders.get(order_id)

    def add(self, order: Order) -> None:
        with self._lock:
            if order.order_id in self._orders:
                raise OrderAlreadyExistsError(order.order_id)
            self._orders[order.order_id] = order

    def save(self, order: Order, expected_version: int) -> None:
        with self._lock:
            current = self._orders.get(order.order_id)
            if current is None:
                raise OrderNotFoundError(order.order_id)
            if current.version != expected_version:
                raise OptimisticLockError("Order", order.order_id, expected_version)
            self._orders[order.order_id] = order

    def list(
        self, store_id: str | None = None, status: OrderStatus | None = None
    ) -> Sequence[Order]:
        with self._lock:
            orders = list(self._orders.values())
        return [
            o for o in orders
            if (store_id is None or o.store_id == store_id)
            and (status is None or o.status == status)
        ]


class InMemorySuggestionRepository:
    def __init__(self) -> None:
        self._pending: dict[str, ReplenishmentSuggestion] = {}
        self._lock = threading.Lock()

    def get(self, suggestion_id: str) -> ReplenishmentSuggestion | None:
        with self._lock:
            return self._pending.get(suggestion_id)

    def add(self, suggestion: ReplenishmentSuggestion) -> None:
        with self._lock:
            if suggestion.suggestion_id in self._pending:
                raise SuggestionAlreadyExistsError(suggestion.suggestion_id)
            self._pending[suggestion.suggestion_id] = suggestion

    def remove(self, suggestion_id: str) -> ReplenishmentSuggestion:
        with self._lock:
            try:
                return self._pending.pop(suggestion_id)
            except KeyError:
                raise SuggestionNotFoundError(suggestion_id) from None

    def list(self, schedule_id: str | None = None) -> Sequence[ReplenishmentSuggestion]:
        with self._lock:
            pending = list(self._pending.values())
        if schedule_id is None:
            return pending
        return [s for s in pending if s.schedule_id == schedule_id]


class InMemoryScheduleRepository:
    def __init__(self, schedules: Iterable[ScheduleConfig] = ()) -> None:
        self._schedules: dict[str, ScheduleConfig] = {}
        self._lock = threading.Lock()
        for schedule in schedules:
            self.add(schedule)

    def get(self, schedule_id: str) -> ScheduleConfig | None:
        with self._lock:
            return self._schedules.get(schedule_id)

    def add(self, schedule: ScheduleConfig) -> None:
        with self._lock:
            if schedule.schedule_id in self._schedules:
                raise ScheduleAlreadyExistsError(schedule.schedule_id)
            self._schedules[schedule.schedule_id] = schedule

    def save(self, schedule: ScheduleConfig) -> None:
        with self._lock:
            if schedule.schedule_id not in self._schedules:
                raise ScheduleNotFoundError(schedule.schedule_id)
            self._schedules[schedule.schedule_id] = schedule

    def delete(self, schedule_id: str) -> bool:
        with self._lock:
            return self._schedules.pop(schedule_id, None) is not None

    def list(self) -> Sequence[ScheduleConfig]:
        with self._lock:
            return list(self._schedules.values())


class InMemoryExecutionLogRepository:
    def __init__(self) -> None:
        self._logs: dict[str, deque[ScheduleExecutionLog]] = {}
        self._lock = threading.Lock()

    def append(self, log: ScheduleExecutionLog, retention: int) -> None:
        with self._lock:
            logs = self._logs.setdefault(log.schedule_id, deque())
            logs.append(log)
            while len(logs) > retention:
                logs.popleft()

    def history(
        self, schedule_id: str, limit: int | None = None
    ) -> Sequence[ScheduleExecutionLog]:
        with self._lock:
            logs = list(self._logs.get(schedule_id, ()))
        # Stable sort keeps insertion order among equal timestamps, newest first.
        ordered = sorted(
            reversed(logs), key=lambda entry: entry.executed_at, reverse=True
        )
        return ordered if limit is None else ordered[:limit]

    def delete_for(self, schedule_id: str) -> None:
        with self._lock:
            self._logs.pop(schedule_id, None)


class InMemoryOutcomeRepository:
    def __init__(self) -> None:
        self._outcomes: dict[str, deque[SuggestionOutcome]] = {}
        self._lock = threading.Lock()

    def append(self, outcome: SuggestionOutcome, retention: int) -> None:
        with self._lock:
            outcomes = self._outcomes.setdefault(outcome.schedule_id, deque())
            outcomes.append(outcome)
            while len(outcomes) > retention:
                outcomes.popleft()

    def list_for(self, schedule_id: str) -> Sequence[SuggestionOutcome]:
        with self._lock:
            return list(self._outcomes.get(schedule_id, ()))

    def record_actual(
        self, suggestion_id: str, actual_quantity: int
    ) -> SuggestionOutcome | None:
        with self._lock:
            for outcomes in self._outcomes.values():
                for index, outcome in enumerate(outcomes):
                    if outcome.suggestion_id == suggestion_id:
                        updated = replace(outcome, actual_quantity=actual_quantity)
                        outcomes[index] = updated
                        return updated
        return None

    def delete_for(self, schedule_id: str) -> None:
        with self._lock:
            self._outcomes.pop(schedule_id, None)


class InMemoryReportRepository:
    def __init__(self) -> None:
        self._reports: list[ConfidenceReport] = []
        self._lock = threading.Lock()

    def append(self, report: ConfidenceReport) -> None:
        with self._lock:
            self._reports.append(report)

    def list(self, schedule_id: str | None = None) -> Sequence[ConfidenceReport]:
        with self._lock:
            reports = list(self._reports)
        if schedule_id is None:
            return reports
        return [r for r in reports if r.schedule_id == schedule_id]

    def delete_for(self, schedule_id: str) -> None:
        with self._lock:
            self._reports = [r for r in self._reports if r.schedule_id != schedule_id]
