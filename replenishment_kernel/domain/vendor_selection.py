"""
Vendor selection (``replenishment_kernel.domain.vendor_selection``).

Responsibility
--------------
Pick exactly one vendor for a line item from a product's vendor list,
explain the pick, and grade vendors against business rules.

Architecture position
---------------------
**Kernel domain layer** -- pure functions.  ZERO I/O.

Invariants enforced
-------------------
* Deterministic total order.  Tie-breaks in sequence: lowest cost,
  shortest lead time, preferred vendor, highest SLA score, input order.
* ``prefer_primary_vendors`` (with substitution allowed) moves the
  preferred-vendor check to the front.
* ``allow_vendor_substitution=False`` restricts the candidates to the
  primary vendor.

Failure modes
-------------
* ``NoVendorAvailableError`` when the list is empty or the primary vendor
  is required but absent.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from replenishment_kernel.domain.catalog import (
    Product,
    VendorOption,
    VendorPerformanceMetrics,
)
from replenishment_kernel.domain.schedule import VendorPreferences
from replenishment_kernel.exceptions import NoVendorAvailableError

DEFAULT_SLA_SCORE = 0.5
LONG_LEAD_TIME_DAYS = 14
MIN_SLA_COMPLIANCE = 0.8
MIN_QUALITY_SCORE = 0.8
MIN_INVOICE_ACCURACY = 0.95


@dataclass(frozen=True)
class VendorSelection:
    vendor: VendorOption
    reasoning: str
    sla_score: float
    alternatives: tuple[VendorOption, ...] = ()


def sla_score_for(
    vendor: VendorOption,
    metrics: Mapping[str, VendorPerformanceMetrics] | None = None,
) -> float:
    """Vendor's own score, else its measured SLA compliance, else the default."""
    if vendor.sla_score is not None:
        return vendor.sla_score
    if metrics and vendor.vendor_id in metrics:
        return metrics[vendor.vendor_id].sla_compliance_rate
    return DEFAULT_SLA_SCORE


def _candidates(
    vendors: Sequence[VendorOption],
    preferences: VendorPreferences,
    primary_vendor_id: str | None,
    product_id: str | None,
) -> list[VendorOption]:
    if not vendors:
        raise NoVendorAvailableError(product_id, "vendor list is empty")
    if preferences.allow_vendor_substitution:
        return list(vendors)

    if primary_vendor_id is not None:
        primary = [v for v in vendors if v.vendor_id == primary_vendor_id]
    else:
        primary = [v for v in vendors if v.is_preferred][:1]
    if not primary:
        raise NoVendorAvailableError(
            product_id, "substitution disallowed and primary vendor is absent"
        )
    return primary[:1]


def rank_vendors(
    vendors: Sequence[VendorOption],
    preferences: VendorPreferences,
    *,
    primary_vendor_id: str | None = None,
    product_id: str | None = None,
    metrics: Mapping[str, VendorPerformanceMetrics] | None = None,
) -> list[VendorOption]:
    """Eligible vendors, best first."""
    candidates = _candidates(vendors, preferences, primary_vendor_id, product_id)
    preferred_first = preferences.prefer_primary_vendors and preferences.allow_vendor_substitution

    def key(indexed: tuple[int, VendorOption]) -> tuple:
        index, v = indexed
        base = (v.cost_per_item, v.lead_time_days, not v.is_preferred)
        if preferred_first:
            base = (not v.is_preferred, v.cost_per_item, v.lead_time_days)
        return base + (-sla_score_for(v, metrics), index)

    return [v for _, v in sorted(enumerate(candidates), key=key)]


def select_vendor(
    vendors: Sequence[VendorOption],
    preferences: VendorPreferences,
    *,
    primary_vendor_id: str | None = None,
    product_id: str | None = None,
    metrics: Mapping[str, VendorPerformanceMetrics] | None = None,
) -> VendorSelection:
    """Select the single best vendor.

    Raises:
        NoVendorAvailableError: No eligible vendor.
    """
    ranked = rank_vendors(
        vendors,
        preferences,
        primary_vendor_id=primary_vendor_id,
        product_id=product_id,
        metrics=metrics,
    )
    chosen = ranked[0]
    return VendorSelection(
        vendor=chosen,
        reasoning=selection_reasoning(chosen, ranked, metrics),
        sla_score=sla_score_for(chosen, metrics),
        alternatives=tuple(ranked[1:]),
    )


def select_vendor_for_product(
    product: Product,
    preferences: VendorPreferences,
    metrics: Mapping[str, VendorPerformanceMetrics] | None = None,
) -> VendorSelection:
    primary = product.primary_vendor
    return select_vendor(
        product.vendors,
        preferences,
        primary_vendor_id=primary.vendor_id if primary is not None else None,
        product_id=product.product_id,
        metrics=metrics,
    )


def selection_reasoning(
    chosen: VendorOption,
    candidates: Sequence[VendorOption],
    metrics: Mapping[str, VendorPerformanceMetrics] | None = None,
) -> str:
    """Human-readable explanation of why ``chosen`` won."""
    reasons: list[str] = []
    if len(candidates) == 1:
        reasons.append("only eligible vendor")
    if chosen.cost_per_item == min(v.cost_per_item for v in candidates):
        reasons.append(f"lowest cost (${chosen.cost_per_item.quantize(Decimal('0.01'))})")
    if chosen.lead_time_days == min(v.lead_time_days for v in candidates):
        reasons.append(f"fastest delivery ({chosen.lead_time_days} days)")
    if chosen.is_preferred:
        reasons.append("preferred vendor status")

    has_score = chosen.sla_score is not None or bool(metrics and chosen.vendor_id in metrics)
    if has_score:
        sla = sla_score_for(chosen, metrics)
        if sla >= 0.9:
            reasons.append(f"excellent SLA performance ({sla * 100:.1f}%)")
        elif sla >= 0.7:
            reasons.append(f"good SLA performance ({sla * 100:.1f}%)")

    if not reasons:
        return "Selected as best available option"
    return "Selected for: " + ", ".join(reasons)


# =========================================================================
# Validation and performance grading
# =========================================================================


@dataclass(frozen=True)
class VendorValidation:
    warnings: tuple[str, ...]
    errors: tuple[str, ...]

    @property
    def is_valid(self) -> bool:
        return not self.errors


def validate_vendor_selection(
    vendor: VendorOption,
    product: Product,
    metrics: Mapping[str, VendorPerformanceMetrics] | None = None,
) -> VendorValidation:
    """Check a (possibly manually overridden) vendor against business rules."""
    warnings: list[str] = []
    errors: list[str] = []

    if not any(v.vendor_id == vendor.vendor_id for v in product.vendors):
        errors.append("Vendor is not in product's approved vendor list")

    m = metrics.get(vendor.vendor_id) if metrics else None
    if m is None:
        warnings.append("No performance metrics available for this vendor")
    else:
        if m.sla_compliance_rate < MIN_SLA_COMPLIANCE:
            warnings.append(f"Vendor has low SLA compliance ({m.sla_compliance_rate * 100:.1f}%)")
        if m.quality_score < MIN_QUALITY_SCORE:
            warnings.append(f"Vendor has low quality score ({m.quality_score * 100:.1f}%)")
        if m.invoice_accuracy_rate < MIN_INVOICE_ACCURACY:
            warnings.append(
                f"Vendor has invoice accuracy issues ({m.invoice_accuracy_rate * 100:.1f}%)"
            )

    if vendor.lead_time_days > LONG_LEAD_TIME_DAYS:
        warnings.append(f"Long lead time ({vendor.lead_time_days} days)")

    return VendorValidation(warnings=tuple(warnings), errors=tuple(errors))


class VendorRating(str, Enum):
    EXCELLENT = "EXCELLENT"
    GOOD = "GOOD"
    FAIR = "FAIR"
    POOR = "POOR"


@dataclass(frozen=True)
class VendorPerformanceSummary:
    vendor_id: str
    rating: VendorRating
    metrics: VendorPerformanceMetrics | None
    recommendations: tuple[str, ...]


def vendor_performance_summary(
    vendor_id: str,
    metrics: Mapping[str, VendorPerformanceMetrics],
) -> VendorPerformanceSummary:
    m = metrics.get(vendor_id)
    if m is None:
        return VendorPerformanceSummary(
            vendor_id=vendor_id,
            rating=VendorRating.FAIR,
            metrics=None,
            recommendations=("Establish performance tracking for this vendor",),
        )

    average = (m.sla_compliance_rate + m.quality_score + m.invoice_accuracy_rate) / 3
    if average >= 0.9:
        rating = VendorRating.EXCELLENT
    elif average >= 0.8:
        rating = VendorRating.GOOD
    elif average >= 0.7:
        rating = VendorRating.FAIR
    else:
        rating = VendorRating.POOR

    recommendations: list[str] = []
    if m.sla_compliance_rate < MIN_SLA_COMPLIANCE:
        recommendations.append("Review delivery performance with vendor")
    if m.quality_score < MIN_QUALITY_SCORE:
        recommendations.append("Address quality issues with vendor")
    if m.invoice_accuracy_rate < MIN_INVOICE_ACCURACY:
        recommendations.append("Improve invoice accuracy processes")
    if not recommendations:
        recommendations.append("Maintain current performance standards")

    return VendorPerformanceSummary(
        vendor_id=vendor_id,
        rating=rating,
        metrics=m,
        recommendations=tuple(recommendations),
    )
