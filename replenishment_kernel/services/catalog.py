"""Product catalog collaborator: the interface and an in-memory implementation."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Protocol

from replenishment_kernel.domain.catalog import Product, VendorPerformanceMetrics
from replenishment_kernel.exceptions import ProductNotFoundError


class ProductCatalog(Protocol):
    def get_product(self, product_id: str) -> Product:
        """Raises ProductNotFoundError for unknown products."""
        ...

    def vendor_metrics(self) -> Mapping[str, VendorPerformanceMetrics]: ...


class InMemoryProductCatalog:
    def __init__(
        self,
        products: Iterable[Product] = (),
        metrics: Iterable[VendorPerformanceMetrics] = (),
    ) -> None:
        self._products = {p.product_id: p for p in products}
        self._metrics = {m.vendor_id: m for m in metrics}

    def get_product(self, product_id: str) -> Product:
        try:
            return self._products[product_id]
        except KeyError:
            raise ProductNotFoundError(product_id) from None

    def vendor_metrics(self) -> Mapping[str, VendorPerformanceMetrics]:
        return dict(self._metrics)
