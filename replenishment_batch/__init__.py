"""
replenishment_batch -- Scheduled replenishment runs.

Provides an in-process polling scheduler that fires due replenishment
schedules, asks the forecasting oracle for suggestions, triages each one
through the SuggestionService, and records the run in the schedule's
execution history.

Architecture:
    replenishment_batch/ is a top-level package.  Nothing in
    replenishment_kernel/ imports from replenishment_batch.
"""

from replenishment_batch.oracle import ForecastOracle, StaticForecastOracle
from replenishment_batch.scheduler import ReplenishmentScheduler, RunSummary

__all__ = [
    "ForecastOracle",
    "ReplenishmentScheduler",
    "RunSummary",
    "StaticForecastOracle",
]
