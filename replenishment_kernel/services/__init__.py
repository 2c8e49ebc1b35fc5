"""Services for the replenishment kernel (write side)."""

from replenishment_kernel.services.catalog import InMemoryProductCatalog, ProductCatalog
from replenishment_kernel.services.order_workflow import OrderWorkflowService
from replenishment_kernel.services.schedule_registry import RegistrySettings, ScheduleRegistry
from replenishment_kernel.services.suggestion_service import SuggestionService, TriageResult

__all__ = [
    "InMemoryProductCatalog",
    "OrderWorkflowService",
    "ProductCatalog",
    "RegistrySettings",
    "ScheduleRegistry",
    "SuggestionService",
    "TriageResult",
]
