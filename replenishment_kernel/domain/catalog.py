"""
Catalog value objects: products, their approved vendors, and vendor
performance metrics.  The catalog itself is an external collaborator
(see ``services.catalog``); these are the shapes it returns.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True)
class VendorOption:
    """A vendor able to supply a product, at that product's price and lead time."""

    vendor_id: str
    vendor_name: str
    cost_per_item: Decimal
    lead_time_days: int
    is_preferred: bool = False
    sla_score: float | None = None
    vendor_sku: str = ""

    def __post_init__(self) -> None:
        if not isinstance(self.cost_per_item, Decimal):
            object.__setattr__(self, "cost_per_item", Decimal(str(self.cost_per_item)))


@dataclass(frozen=True)
class VendorPerformanceMetrics:
    vendor_id: str
    sla_compliance_rate: float
    average_delivery_days: float
    quality_score: float
    invoice_accuracy_rate: float


@dataclass(frozen=True)
class Product:
    product_id: str
    name: str
    category: str
    vendors: tuple[VendorOption, ...] = ()
    requires_dm_approval: bool = False
    is_active: bool = True
    primary_vendor_id: str | None = None

    @property
    def primary_vendor(self) -> VendorOption | None:
        """The designated primary vendor, else the first preferred one."""
        if self.primary_vendor_id is not None:
            for vendor in self.vendors:
                if vendor.vendor_id == self.primary_vendor_id:
                    return vendor
            return None
        for vendor in self.vendors:
            if vendor.is_preferred:
                return vendor
        return None
