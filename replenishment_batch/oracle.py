"""
Forecasting oracle boundary.

The demand model itself lives outside this system; the scheduler only
needs something that turns a schedule and a point in time into
suggestions.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import datetime
from typing import Protocol

from replenishment_kernel.domain.schedule import ScheduleConfig
from replenishment_kernel.domain.suggestion import ReplenishmentSuggestion


class ForecastOracle(Protocol):
    def suggest(
        self, schedule: ScheduleConfig, as_of: datetime
    ) -> Sequence[ReplenishmentSuggestion]:
        ...


class StaticForecastOracle:
    """Returns pre-computed suggestions per schedule, once each.

    Suggestions handed out are dropped, so a second run of the same
    schedule yields nothing unless more are queued with ``queue``.
    """

    def __init__(
        self,
        suggestions: Mapping[str, Sequence[ReplenishmentSuggestion]] | None = None,
    ) -> None:
        self._pending: dict[str, list[ReplenishmentSuggestion]] = {
            schedule_id: list(items) for schedule_id, items in (suggestions or {}).items()
        }
        self.calls: list[tuple[str, datetime]] = []

    def queue(self, schedule_id: str, *suggestions: ReplenishmentSuggestion) -> None:
        self._pending.setdefault(schedule_id, []).extend(suggestions)

    def suggest(
        self, schedule: ScheduleConfig, as_of: datetime
    ) -> Sequence[ReplenishmentSuggestion]:
        self.calls.append((schedule.schedule_id, as_of))
        return tuple(self._pending.pop(schedule.schedule_id, ()))
