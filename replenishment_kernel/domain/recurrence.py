"""
Pure recurrence evaluation for replenishment schedules.

Contract:
    ``compute_next_run(schedule, now)`` and ``should_fire(schedule, now)``
    are PURE -- no I/O, no clock reads, no side effects.  Repeated calls
    with the same arguments return the same value.

Architecture: replenishment_kernel/domain.  ZERO I/O.

Rules:
    - Every computed run is strictly after ``now``.
    - Computation happens in ``now``'s timezone; naive ``now`` is treated
      as wall-clock time and produces naive results.
    - Weekdays are numbered 0=Sunday .. 6=Saturday.
    - MONTHLY days past the end of a month follow ``month_end_policy``.
"""

from __future__ import annotations

import calendar
from datetime import datetime, timedelta

from replenishment_kernel.domain.schedule import Frequency, MonthEndPolicy, ScheduleConfig

# A SKIP schedule on day 31 finds a match within 2 months; 48 is generous.
_MAX_MONTHS_AHEAD = 48


def sunday_based_weekday(dt: datetime) -> int:
    """Weekday with 0=Sunday (Python's ``weekday()`` has 0=Monday)."""
    return (dt.weekday() + 1) % 7


def _slot_on(day: datetime, hour: int, minute: int) -> datetime:
    return day.replace(hour=hour, minute=minute, second=0, microsecond=0)


def resolve_day_of_month(
    day_of_month: int, year: int, month: int, policy: MonthEndPolicy
) -> int | None:
    """Actual day to run in (year, month), or None when SKIP skips the month."""
    last_day = calendar.monthrange(year, month)[1]
    if day_of_month <= last_day:
        return day_of_month
    if policy is MonthEndPolicy.CLAMP:
        return last_day
    return None


def _next_daily(now: datetime, hour: int, minute: int) -> datetime:
    candidate = _slot_on(now, hour, minute)
    if candidate <= now:
        candidate = _slot_on(now + timedelta(days=1), hour, minute)
    return candidate


def _next_weekly(now: datetime, hour: int, minute: int, days: tuple[int, ...]) -> datetime:
    today = sunday_based_weekday(now)
    # 0..7 inclusive: offset 7 is today's weekday next week.
    for offset in range(8):
        if (today + offset) % 7 in days:
            candidate = _slot_on(now + timedelta(days=offset), hour, minute)
            if candidate > now:
                return candidate
    raise AssertionError("unreachable: days_of_week is non-empty")


def _next_monthly(
    now: datetime, hour: int, minute: int, day_of_month: int, policy: MonthEndPolicy
) -> datetime:
    year, month = now.year, now.month
    for _ in range(_MAX_MONTHS_AHEAD):
        day = resolve_day_of_month(day_of_month, year, month, policy)
        if day is not None:
            candidate = now.replace(
                year=year, month=month, day=day,
                hour=hour, minute=minute, second=0, microsecond=0,
            )
            if candidate > now:
                return candidate
        month += 1
        if month > 12:
            year, month = year + 1, 1
    raise AssertionError("unreachable: every day_of_month 1..31 recurs within a year")


def compute_next_run(schedule: ScheduleConfig, now: datetime) -> datetime | None:
    """Next run strictly after ``now``, or None for ON_DEMAND schedules.

    Enablement is not consulted here; the registry is responsible for hiding
    the result of disabled schedules.
    """
    if schedule.frequency is Frequency.ON_DEMAND:
        return None

    hour, minute = schedule.hour_minute

    if schedule.frequency is Frequency.DAILY:
        return _next_daily(now, hour, minute)
    if schedule.frequency is Frequency.WEEKLY:
        return _next_weekly(now, hour, minute, schedule.days_of_week)
    if schedule.frequency is Frequency.MONTHLY:
        if schedule.day_of_month is None:
            raise ValueError(f"MONTHLY schedule {schedule.schedule_id} has no day_of_month")
        return _next_monthly(
            now, hour, minute, schedule.day_of_month, schedule.month_end_policy
        )
    raise ValueError(f"Unsupported frequency: {schedule.frequency}")


def should_fire(schedule: ScheduleConfig, now: datetime) -> bool:
    """Determine if a schedule is due at ``now``.

    Rules:
        - Disabled schedules never fire.
        - ON_DEMAND never fires automatically.
        - Otherwise fires once ``now >= next_run_at``; a schedule with no
          stored ``next_run_at`` is not due.
    """
    if not schedule.enabled:
        return False
    if schedule.frequency is Frequency.ON_DEMAND:
        return False
    if schedule.next_run_at is None:
        return False
    return now >= schedule.next_run_at
