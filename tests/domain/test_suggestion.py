"""Tests for ReplenishmentSuggestion validation."""

from datetime import timedelta

import pytest

from replenishment_kernel.domain.suggestion import Priority, SuggestionReason
from replenishment_kernel.exceptions import ValidationError

from tests.conftest import NOW


class TestSuggestionValidation:
    def test_string_enums_coerced(self, make_suggestion):
        suggestion = make_suggestion(reason="SEASONAL", priority="CRITICAL")
        assert suggestion.reason is SuggestionReason.SEASONAL
        assert suggestion.priority is Priority.CRITICAL

    @pytest.mark.parametrize(
        "field,value",
        [("reason", "GUESSWORK"), ("priority", "URGENT"), ("reason", None)],
    )
    def test_unknown_enum_value(self, make_suggestion, field, value):
        with pytest.raises(ValidationError) as exc_info:
            make_suggestion(**{field: value})
        assert field in str(exc_info.value)

    @pytest.mark.parametrize(
        "overrides",
        [
            {"suggested_quantity": 0},
            {"cost_impact": -1},
            {"confidence": 1.5},
            {"confidence": float("nan")},
            {"expires_at": NOW - timedelta(seconds=1)},
        ],
    )
    def test_invalid_fields(self, make_suggestion, overrides):
        with pytest.raises(ValidationError):
            make_suggestion(**overrides)
