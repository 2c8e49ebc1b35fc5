"""Tests for the typed exception hierarchy (replenishment_kernel/exceptions.py)."""

import pytest

from replenishment_kernel.exceptions import (
    AlreadyExistsError,
    ConcurrencyError,
    InvalidReasonCodeError,
    InvalidReceiptError,
    InvalidScheduleError,
    InvalidTransitionError,
    MissingReasonCodeError,
    NotFoundError,
    NoVendorAvailableError,
    OptimisticLockError,
    OrderAlreadyExistsError,
    OrderNotFoundError,
    ProductNotFoundError,
    ReplenishmentError,
    ScheduleNotFoundError,
    SuggestionExpiredError,
    SuggestionNotFoundError,
    ThresholdOrderError,
    UnauthorizedActorError,
    ValidationError,
)


class TestHierarchy:
    @pytest.mark.parametrize(
        "exc_type, parent",
        [
            (OrderNotFoundError, NotFoundError),
            (SuggestionNotFoundError, NotFoundError),
            (ScheduleNotFoundError, NotFoundError),
            (ProductNotFoundError, NotFoundError),
            (OrderAlreadyExistsError, AlreadyExistsError),
            (MissingReasonCodeError, ValidationError),
            (InvalidReasonCodeError, ValidationError),
            (ThresholdOrderError, ValidationError),
            (InvalidScheduleError, ValidationError),
            (InvalidReceiptError, ValidationError),
            (NoVendorAvailableError, ValidationError),
            (OptimisticLockError, ConcurrencyError),
            (InvalidTransitionError, ReplenishmentError),
            (UnauthorizedActorError, ReplenishmentError),
            (SuggestionExpiredError, ReplenishmentError),
        ],
    )
    def test_parentage(self, exc_type, parent):
        assert issubclass(exc_type, parent)
        assert issubclass(exc_type, ReplenishmentError)

    def test_every_class_has_a_distinct_code(self):
        classes = [
            OrderNotFoundError, SuggestionNotFoundError, ScheduleNotFoundError,
            ProductNotFoundError, OrderAlreadyExistsError, InvalidTransitionError,
            UnauthorizedActorError, MissingReasonCodeError, InvalidReasonCodeError,
            ThresholdOrderError, InvalidScheduleError, InvalidReceiptError,
            NoVendorAvailableError, SuggestionExpiredError, OptimisticLockError,
        ]
        codes = [cls.code for cls in classes]
        assert len(set(codes)) == len(codes)


class TestStructuredAttributes:
    def test_invalid_transition(self):
        exc = InvalidTransitionError("ORD-1", "DELIVERED", "approve")
        assert exc.code == "INVALID_TRANSITION"
        assert (exc.order_id, exc.current_status, exc.action) == ("ORD-1", "DELIVERED", "approve")
        assert "ORD-1" in str(exc)

    def test_unauthorized_actor(self):
        exc = UnauthorizedActorError("ORD-1", "sm-1", "SM", "approve", "PENDING_FM_APPROVAL")
        assert exc.entity_id == "ORD-1"
        assert exc.role == "SM"
        assert exc.code == "UNAUTHORIZED_ACTOR"

    def test_threshold_order(self):
        exc = ThresholdOrderError(0.9, 0.8, 0.7)
        assert (exc.fm_review, exc.high_confidence, exc.auto_approve) == (0.9, 0.8, 0.7)
        assert exc.code == "THRESHOLD_ORDER_VIOLATION"

    def test_invalid_reason_code_lists_allowed(self):
        exc = InvalidReasonCodeError("NOPE", ("A", "B"))
        assert exc.reason_code == "NOPE"
        assert exc.allowed == ("A", "B")

    def test_optimistic_lock(self):
        exc = OptimisticLockError("Order", "ORD-1", 3)
        assert exc.entity_type == "Order"
        assert exc.expected_version == 3
