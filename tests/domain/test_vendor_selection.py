"""
Tests for vendor selection, reasoning and vendor grading.
"""

from decimal import Decimal

import pytest

from replenishment_kernel.domain.catalog import Product, VendorOption, VendorPerformanceMetrics
from replenishment_kernel.domain.schedule import VendorPreferences
from replenishment_kernel.domain.vendor_selection import (
    DEFAULT_SLA_SCORE,
    VendorRating,
    rank_vendors,
    select_vendor,
    select_vendor_for_product,
    selection_reasoning,
    sla_score_for,
    validate_vendor_selection,
    vendor_performance_summary,
)
from replenishment_kernel.exceptions import NoVendorAvailableError


def _vendor(vendor_id, cost, lead, preferred=False, sla=None):
    return VendorOption(vendor_id, f"Vendor {vendor_id}", Decimal(cost), lead, preferred, sla)


METRICS = {
    "V-A": VendorPerformanceMetrics("V-A", 0.96, 4.5, 0.97, 0.99),
    "V-B": VendorPerformanceMetrics("V-B", 0.72, 7.5, 0.75, 0.90),
}


# =============================================================================
# Ranking
# =============================================================================


class TestRanking:
    def test_lowest_cost_wins(self):
        vendors = [_vendor("V-A", "10", 5), _vendor("V-B", "8", 7)]
        assert select_vendor(vendors, VendorPreferences()).vendor.vendor_id == "V-B"

    def test_lead_time_breaks_cost_tie(self):
        vendors = [_vendor("V-A", "10", 7), _vendor("V-B", "10", 3)]
        assert select_vendor(vendors, VendorPreferences()).vendor.vendor_id == "V-B"

    def test_preferred_breaks_cost_and_lead_tie(self):
        vendors = [_vendor("V-A", "10", 5), _vendor("V-B", "10", 5, preferred=True)]
        assert select_vendor(vendors, VendorPreferences()).vendor.vendor_id == "V-B"

    def test_sla_breaks_remaining_tie(self):
        vendors = [_vendor("V-A", "10", 5, sla=0.8), _vendor("V-B", "10", 5, sla=0.9)]
        assert select_vendor(vendors, VendorPreferences()).vendor.vendor_id == "V-B"

    def test_input_order_is_final_tie_break(self):
        vendors = [_vendor("V-A", "10", 5), _vendor("V-B", "10", 5)]
        assert select_vendor(vendors, VendorPreferences()).vendor.vendor_id == "V-A"
        assert select_vendor(vendors[::-1], VendorPreferences()).vendor.vendor_id == "V-B"

    def test_prefer_primary_moves_preferred_first(self):
        vendors = [_vendor("V-A", "10", 5, preferred=True), _vendor("V-B", "8", 7)]
        prefs = VendorPreferences(prefer_primary_vendors=True)
        assert select_vendor(vendors, prefs).vendor.vendor_id == "V-A"

    def test_rank_is_repeatable(self):
        vendors = [_vendor("V-A", "10", 5), _vendor("V-B", "8", 7), _vendor("V-C", "8", 7)]
        first = rank_vendors(vendors, VendorPreferences())
        assert rank_vendors(vendors, VendorPreferences()) == first
        assert [v.vendor_id for v in first] == ["V-B", "V-C", "V-A"]

    def test_alternatives_exclude_chosen(self):
        vendors = [_vendor("V-A", "10", 5), _vendor("V-B", "8", 7)]
        selection = select_vendor(vendors, VendorPreferences())
        assert [v.vendor_id for v in selection.alternatives] == ["V-A"]


# =============================================================================
# Substitution and empty lists
# =============================================================================


class TestSubstitution:
    def test_empty_list(self):
        with pytest.raises(NoVendorAvailableError) as exc_info:
            select_vendor([], VendorPreferences(), product_id="P-1")
        assert exc_info.value.product_id == "P-1"

    def test_substitution_disallowed_uses_primary(self):
        vendors = [_vendor("V-A", "10", 5), _vendor("V-B", "8", 7)]
        prefs = VendorPreferences(allow_vendor_substitution=False)
        selection = select_vendor(vendors, prefs, primary_vendor_id="V-A")
        assert selection.vendor.vendor_id == "V-A"
        assert selection.alternatives == ()

    def test_substitution_disallowed_falls_back_to_preferred(self):
        vendors = [_vendor("V-A", "10", 5), _vendor("V-B", "12", 7, preferred=True)]
        prefs = VendorPreferences(allow_vendor_substitution=False)
        assert select_vendor(vendors, prefs).vendor.vendor_id == "V-B"

    def test_substitution_disallowed_without_primary(self):
        vendors = [_vendor("V-A", "10", 5), _vendor("V-B", "8", 7)]
        prefs = VendorPreferences(allow_vendor_substitution=False)
        with pytest.raises(NoVendorAvailableError):
            select_vendor(vendors, prefs, primary_vendor_id="V-Z")

    def test_product_primary_vendor_id(self):
        product = Product(
            "P-1", "Paper", "POS Supplies",
            vendors=(_vendor("V-A", "10", 5), _vendor("V-B", "8", 7)),
            primary_vendor_id="V-A",
        )
        prefs = VendorPreferences(allow_vendor_substitution=False)
        assert select_vendor_for_product(product, prefs).vendor.vendor_id == "V-A"


# =============================================================================
# Reasoning and SLA scores
# =============================================================================


class TestReasoning:
    def test_sla_score_sources(self):
        assert sla_score_for(_vendor("V-A", "1", 1, sla=0.4), METRICS) == 0.4
        assert sla_score_for(_vendor("V-A", "1", 1), METRICS) == 0.96
        assert sla_score_for(_vendor("V-X", "1", 1), METRICS) == DEFAULT_SLA_SCORE

    def test_reasoning_lists_winning_factors(self):
        chosen = _vendor("V-A", "8", 3, preferred=True)
        text = selection_reasoning(chosen, [chosen, _vendor("V-B", "10", 5)], METRICS)

        assert text.startswith("Selected for: ")
        assert "lowest cost ($8.00)" in text
        assert "fastest delivery (3 days)" in text
        assert "preferred vendor status" in text
        assert "excellent SLA performance (96.0%)" in text

    def test_single_candidate(self):
        chosen = _vendor("V-Z", "8", 3)
        assert "only eligible vendor" in selection_reasoning(chosen, [chosen])

    def test_no_reason(self):
        chosen = _vendor("V-Z", "12", 9)
        text = selection_reasoning(chosen, [chosen, _vendor("V-Y", "8", 3)])
        assert text == "Selected as best available option"


# =============================================================================
# Validation and grading
# =============================================================================


class TestValidationAndGrading:
    def _product(self):
        return Product(
            "P-1", "Paper", "POS Supplies",
            vendors=(_vendor("V-A", "10", 5), _vendor("V-B", "8", 21)),
        )

    def test_good_vendor_is_clean(self):
        result = validate_vendor_selection(_vendor("V-A", "10", 5), self._product(), METRICS)
        assert result.is_valid is True
        assert result.warnings == ()

    def test_unapproved_vendor_is_error(self):
        result = validate_vendor_selection(_vendor("V-Q", "1", 1), self._product(), METRICS)
        assert result.is_valid is False
        assert "approved vendor list" in result.errors[0]

    def test_weak_vendor_warnings(self):
        result = validate_vendor_selection(_vendor("V-B", "8", 21), self._product(), METRICS)
        assert result.is_valid is True
        assert len(result.warnings) == 4
        assert any("Long lead time (21 days)" in w for w in result.warnings)

    def test_missing_metrics_warning(self):
        result = validate_vendor_selection(_vendor("V-A", "10", 5), self._product(), {})
        assert result.warnings == ("No performance metrics available for this vendor",)

    def test_excellent_rating(self):
        summary = vendor_performance_summary("V-A", METRICS)
        assert summary.rating is VendorRating.EXCELLENT
        assert summary.recommendations == ("Maintain current performance standards",)

    def test_poor_vendor_recommendations(self):
        summary = vendor_performance_summary("V-B", METRICS)
        assert summary.rating is VendorRating.FAIR
        assert len(summary.recommendations) == 3

    def test_unknown_vendor(self):
        summary = vendor_performance_summary("V-X", METRICS)
        assert summary.rating is VendorRating.FAIR
        assert summary.metrics is None
