"""
Typed Exception Hierarchy for the Replenishment Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Approval workflows are driven by UIs and batch jobs that must react to each
failure precisely: an unauthorized click is not the same as a stale screen,
and neither is the same as a missing rejection reason. Callers catch by type
and read structured attributes; they never parse messages.

    try:
        workflow.reject(order_id, actor, reason_code=None)
    except MissingReasonCodeError as e:
        api_response(code=e.code, order_id=e.entity_id)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    ReplenishmentError (base)
    |
    +-- NotFoundError
    |   +-- OrderNotFoundError
    |   +-- SuggestionNotFoundError
    |   +-- ScheduleNotFoundError
    |   +-- ProductNotFoundError
    |
    +-- AlreadyExistsError
    |   +-- OrderAlreadyExistsError
    |   +-- SuggestionAlreadyExistsError
    |   +-- ScheduleAlreadyExistsError
    |
    +-- InvalidTransitionError
    +-- UnauthorizedActorError
    |
    +-- ValidationError
    |   +-- MissingReasonCodeError
    |   +-- InvalidReasonCodeError
    |   +-- ThresholdOrderError
    |   +-- InvalidScheduleError
    |   +-- InvalidLineItemError
    |   +-- InvalidReceiptError
    |   +-- NoVendorAvailableError
    |
    +-- SuggestionExpiredError
    |
    +-- ConcurrencyError
        +-- OptimisticLockError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Lookup          | ORDER_NOT_FOUND             | Order ID doesn't exist
                | SUGGESTION_NOT_FOUND        | Suggestion consumed or never existed
                | SCHEDULE_NOT_FOUND          | Schedule ID doesn't exist
                | PRODUCT_NOT_FOUND           | Catalog has no such product
----------------|-----------------------------|-----------------------------------------
Identity        | ORDER_ALREADY_EXISTS        | Duplicate order ID
                | SUGGESTION_ALREADY_EXISTS   | Duplicate suggestion ID
                | SCHEDULE_ALREADY_EXISTS     | Duplicate schedule ID on create
----------------|-----------------------------|-----------------------------------------
Workflow        | INVALID_TRANSITION          | Action not defined from current status
                | UNAUTHORIZED_ACTOR          | Role may not perform action in status
----------------|-----------------------------|-----------------------------------------
Validation      | MISSING_REASON_CODE         | Reject/amend without reason code
                | INVALID_REASON_CODE         | Reason code outside the closed set
                | THRESHOLD_ORDER_VIOLATION   | fm <= high <= auto broken
                | INVALID_SCHEDULE            | Bad recurrence / schedule fields
                | INVALID_LINE_ITEM           | quantity <= 0, unit_cost < 0, empty
                | INVALID_RECEIPT             | Over-receipt or unknown product
                | NO_VENDOR_AVAILABLE         | No eligible vendor for product
----------------|-----------------------------|-----------------------------------------
Lifecycle       | SUGGESTION_EXPIRED          | Suggestion past expires_at
----------------|-----------------------------|-----------------------------------------
Concurrency     | OPTIMISTIC_LOCK_CONFLICT    | Entity saved by someone else first

===============================================================================
DESIGN DECISIONS
===============================================================================

1. Codes are class attributes so middleware can map them without an
   instance.
2. Every piece of context is stored as an attribute. Log formatters copy
   public attributes into the JSON record (see logging_config).
3. Categories let callers decide coarse handling: NotFoundError maps to 404,
   ValidationError to 422, ConcurrencyError to retry-or-refresh.

===============================================================================
"""


class ReplenishmentError(Exception):
    """
    Base exception for all replenishment kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "REPLENISHMENT_ERROR"


# Lookup failures


class NotFoundError(ReplenishmentError):
    """Base exception for unknown identifiers."""

    code: str = "NOT_FOUND"


class OrderNotFoundError(NotFoundError):
    """Order with given ID was not found."""

    code: str = "ORDER_NOT_FOUND"

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Order not found: {order_id}")


class SuggestionNotFoundError(NotFoundError):
    """Suggestion is not pending (never existed or already consumed)."""

    code: str = "SUGGESTION_NOT_FOUND"

    def __init__(self, suggestion_id: str):
        self.suggestion_id = suggestion_id
        super().__init__(f"Suggestion not found: {suggestion_id}")


class ScheduleNotFoundError(NotFoundError):
    """Schedule with given ID was not found."""

    code: str = "SCHEDULE_NOT_FOUND"

    def __init__(self, schedule_id: str):
        self.schedule_id = schedule_id
        super().__init__(f"Schedule not found: {schedule_id}")


class ProductNotFoundError(NotFoundError):
    """Product with given ID is not in the catalog."""

    code: str = "PRODUCT_NOT_FOUND"

    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(f"Product not found: {product_id}")


# Identity conflicts


class AlreadyExistsError(ReplenishmentError):
    """Base exception for duplicate identifiers."""

    code: str = "ALREADY_EXISTS"


class OrderAlreadyExistsError(AlreadyExistsError):
    """Order with given ID already exists."""

    code: str = "ORDER_ALREADY_EXISTS"

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Order already exists: {order_id}")


class SuggestionAlreadyExistsError(AlreadyExistsError):
    """Suggestion with given ID is already pending."""

    code: str = "SUGGESTION_ALREADY_EXISTS"

    def __init__(self, suggestion_id: str):
        self.suggestion_id = suggestion_id
        super().__init__(f"Suggestion already exists: {suggestion_id}")


class ScheduleAlreadyExistsError(AlreadyExistsError):
    """Schedule with given ID already exists."""

    code: str = "SCHEDULE_ALREADY_EXISTS"

    def __init__(self, schedule_id: str):
        self.schedule_id = schedule_id
        super().__init__(f"Schedule already exists: {schedule_id}")


# Workflow failures


class InvalidTransitionError(ReplenishmentError):
    """The requested action is not defined from the order's current status."""

    code: str = "INVALID_TRANSITION"

    def __init__(self, order_id: str, current_status: str, action: str):
        self.order_id = order_id
        self.current_status = current_status
        self.action = action
        super().__init__(
            f"Cannot {action} order {order_id} in status {current_status}"
        )


class UnauthorizedActorError(ReplenishmentError):
    """The actor's role may not perform this action on this entity."""

    code: str = "UNAUTHORIZED_ACTOR"

    def __init__(
        self, entity_id: str, actor_id: str, role: str, action: str, current_status: str
    ):
        self.entity_id = entity_id
        self.actor_id = actor_id
        self.role = role
        self.action = action
        self.current_status = current_status
        super().__init__(
            f"Role {role} (user {actor_id}) may not {action} {entity_id} "
            f"in status {current_status}"
        )


# Validation failures


class ValidationError(ReplenishmentError):
    """Base exception for rejected arguments or configuration."""

    code: str = "VALIDATION_ERROR"


class MissingReasonCodeError(ValidationError):
    """An action that requires a reason code was called without one."""

    code: str = "MISSING_REASON_CODE"

    def __init__(self, entity_id: str, action: str):
        self.entity_id = entity_id
        self.action = action
        super().__init__(f"Reason code is required to {action} {entity_id}")


class InvalidReasonCodeError(ValidationError):
    """Reason code is not a member of the closed set for this action."""

    code: str = "INVALID_REASON_CODE"

    def __init__(self, reason_code: str, allowed: tuple[str, ...]):
        self.reason_code = reason_code
        self.allowed = allowed
        super().__init__(
            f"Invalid reason code {reason_code!r}; expected one of {', '.join(allowed)}"
        )


class ThresholdOrderError(ValidationError):
    """Confidence thresholds are out of range or out of order."""

    code: str = "THRESHOLD_ORDER_VIOLATION"

    def __init__(self, fm_review: float, high_confidence: float, auto_approve: float):
        self.fm_review = fm_review
        self.high_confidence = high_confidence
        self.auto_approve = auto_approve
        super().__init__(
            "Confidence thresholds must satisfy 0 <= fm_review <= "
            "high_confidence <= auto_approve <= 1, got "
            f"{fm_review} / {high_confidence} / {auto_approve}"
        )


class InvalidScheduleError(ValidationError):
    """A schedule field is malformed (time of day, weekday, day of month...)."""

    code: str = "INVALID_SCHEDULE"

    def __init__(self, schedule_id: str, field_name: str, reason: str):
        self.schedule_id = schedule_id
        self.field_name = field_name
        self.reason = reason
        super().__init__(f"Schedule {schedule_id}: invalid {field_name}: {reason}")


class InvalidLineItemError(ValidationError):
    """Line items are empty or contain a non-positive quantity or negative cost."""

    code: str = "INVALID_LINE_ITEM"

    def __init__(self, product_id: str | None, reason: str):
        self.product_id = product_id
        self.reason = reason
        target = product_id if product_id is not None else "<order>"
        super().__init__(f"Invalid line item {target}: {reason}")


class InvalidReceiptError(ValidationError):
    """A receipt names an unknown product or exceeds the ordered quantity."""

    code: str = "INVALID_RECEIPT"

    def __init__(self, order_id: str, product_id: str, reason: str):
        self.order_id = order_id
        self.product_id = product_id
        self.reason = reason
        super().__init__(f"Invalid receipt for {product_id} on order {order_id}: {reason}")


class NoVendorAvailableError(ValidationError):
    """No vendor is eligible to supply the product."""

    code: str = "NO_VENDOR_AVAILABLE"

    def __init__(self, product_id: str | None, reason: str = "no vendors"):
        self.product_id = product_id
        self.reason = reason
        super().__init__(f"No vendor available for {product_id}: {reason}")


# Lifecycle failures


class SuggestionExpiredError(ReplenishmentError):
    """Suggestion is past its expiration and can no longer be acted on."""

    code: str = "SUGGESTION_EXPIRED"

    def __init__(self, suggestion_id: str, expires_at: str, now: str):
        self.suggestion_id = suggestion_id
        self.expires_at = expires_at
        self.now = now
        super().__init__(
            f"Suggestion {suggestion_id} expired at {expires_at} (now {now})"
        )


# Concurrency failures


class ConcurrencyError(ReplenishmentError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class OptimisticLockError(ConcurrencyError):
    """Optimistic locking conflict detected."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(self, entity_type: str, entity_id: str, expected_version: int | None = None):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.expected_version = expected_version
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id}: "
            "entity was modified by another writer"
        )
