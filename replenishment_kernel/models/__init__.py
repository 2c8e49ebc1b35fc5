"""SQLAlchemy ORM models.  Importing this package registers every table on Base.metadata."""

from replenishment_kernel.models.order import OrderAuditEntryModel, OrderModel
from replenishment_kernel.models.schedule import (
    ConfidenceReportModel,
    ScheduleExecutionLogModel,
    ScheduleModel,
    SuggestionOutcomeModel,
)
from replenishment_kernel.models.suggestion import SuggestionModel

__all__ = [
    "ConfidenceReportModel",
    "OrderAuditEntryModel",
    "OrderModel",
    "ScheduleExecutionLogModel",
    "ScheduleModel",
    "SuggestionModel",
    "SuggestionOutcomeModel",
]
