"""
Typed Exception Hierarchy for the billing engine.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Billing errors cross three boundaries: the pure calculators, the
transactional orchestrator, and the HTTP layer.  Each boundary needs to
react to the *kind* of failure, not to its wording:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Example - RIGHT way:
    try:
        result = orchestrator.send_milestone_invoice(project_id, milestone_id)
    except InvoiceAlreadySentError as e:
        return conflict(code=e.code, invoice_id=e.invoice_id)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    BillingError (base)
    |
    +-- ValidationError                     -> HTTP 400
    |   +-- PercentageOutOfRangeError
    |   +-- NegativeAmountError
    |   +-- AmountOutOfRangeError
    |   +-- PaymentScheduleInvalidError
    |   +-- MissingBillingFieldError
    |   +-- InvalidFieldCombinationError
    |   +-- BillingAllocationExceededError
    |
    +-- StateConflictError                  -> HTTP 409
    |   +-- InvalidStateTransitionError
    |   +-- InvoiceNotDraftedError
    |   +-- InvoiceAlreadySentError
    |   +-- NotBillableError                -> HTTP 403
    |
    +-- NotFoundError                       -> HTTP 404
    |   +-- ProjectNotFoundError
    |   +-- MilestoneNotFoundError
    |   +-- TaskNotFoundError
    |   +-- InvoiceNotFoundError
    |   +-- QuoteNotFoundError
    |   +-- LineItemNotFoundError
    |
    +-- PersistenceError                    -> HTTP 500
    |   +-- InvoiceAlreadyExistsError       (idempotent success, never surfaced)
    |
    +-- ImmutabilityViolationError          -> HTTP 409

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                        | When Raised
-------------|-----------------------------|-------------------------------------
Validation   | PERCENTAGE_OUT_OF_RANGE     | Percentage outside [0, 100]
             | NEGATIVE_AMOUNT             | Quantity/price/amount below zero
             | AMOUNT_OUT_OF_RANGE         | Above 99,999,999.99 or finer than cents
             | PAYMENT_SCHEDULE_INVALID    | Down + milestone + final != 100
             | MISSING_BILLING_FIELD       | Hourly without hours, fixed w/o amount
             | INVALID_FIELD_COMBINATION   | e.g. taxAmount while in rate mode
             | BILLING_ALLOCATION_EXCEEDED | Project billing percentages > 100
-------------|-----------------------------|-------------------------------------
State        | INVALID_STATE_TRANSITION    | e.g. billing a pending milestone
             | INVOICE_NOT_DRAFTED         | Send before bill
             | INVOICE_ALREADY_SENT        | Second send
             | NOT_BILLABLE                | Billing a non-billable unit
-------------|-----------------------------|-------------------------------------
Not found    | *_NOT_FOUND                 | Referenced row does not exist
-------------|-----------------------------|-------------------------------------
Persistence  | PERSISTENCE_ERROR           | Constraint/transaction failure
             | INVOICE_ALREADY_EXISTS      | Unique invoice-per-unit guard fired (OK)
-------------|-----------------------------|-------------------------------------
Immutability | IMMUTABILITY_VIOLATION      | Changing a created invoice's amount

===============================================================================
HANDLING PATTERNS
===============================================================================

IDEMPOTENCY HANDLING (InvoiceAlreadyExistsError is success):

    try:
        invoice = generator.create_for_milestone(project, milestone)
    except InvoiceAlreadyExistsError as e:
        invoice = session.get(InvoiceModel, e.invoice_id)
        created = False

===============================================================================
"""

from typing import Any


class BillingError(Exception):
    """
    Base exception for all billing engine errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "BILLING_ERROR"

    def details(self) -> dict[str, Any]:
        """Structured attributes of this error, suitable for an API body."""
        return {
            key: value
            for key, value in vars(self).items()
            if not key.startswith("_")
        }


# =============================================================================
# Validation
# =============================================================================


class ValidationError(BillingError):
    """Malformed input, caught before anything is persisted."""

    code: str = "VALIDATION_ERROR"


class PercentageOutOfRangeError(ValidationError):
    """A percentage field is outside [0, 100]."""

    code: str = "PERCENTAGE_OUT_OF_RANGE"

    def __init__(self, field: str, value: Any):
        self.field = field
        self.value = str(value)
        super().__init__(f"{field} must be between 0 and 100, got {value}")


class NegativeAmountError(ValidationError):
    """A quantity, price, or amount is negative."""

    code: str = "NEGATIVE_AMOUNT"

    def __init__(self, field: str, value: Any):
        self.field = field
        self.value = str(value)
        super().__init__(f"{field} must not be negative, got {value}")


class AmountOutOfRangeError(ValidationError):
    """A value is too large, or carries more decimal places than are stored."""

    code: str = "AMOUNT_OUT_OF_RANGE"

    def __init__(self, field: str, value: Any, maximum: Any, decimal_places: int):
        self.field = field
        self.value = str(value)
        self.maximum = str(maximum)
        self.decimal_places = decimal_places
        super().__init__(
            f"{field} must be at most {maximum} with at most "
            f"{decimal_places} decimal places, got {value}"
        )


class PaymentScheduleInvalidError(ValidationError):
    """The down/milestone/final split does not total exactly 100."""

    code: str = "PAYMENT_SCHEDULE_INVALID"

    def __init__(self, total: Any, down: Any, milestone: Any, final: Any):
        self.total = str(total)
        self.down_payment_percentage = str(down)
        self.milestone_payment_percentage = str(milestone)
        self.final_payment_percentage = str(final)
        super().__init__(
            f"Payment schedule must total 100%, got {total}% "
            f"({down} + {milestone} + {final})"
        )


class MissingBillingFieldError(ValidationError):
    """A field required by the unit's billing type is absent."""

    code: str = "MISSING_BILLING_FIELD"

    def __init__(self, field: str, billing_type: str):
        self.field = field
        self.billing_type = billing_type
        super().__init__(f"{field} is required for {billing_type} billing")


class InvalidFieldCombinationError(ValidationError):
    """Fields were supplied together that cannot coexist."""

    code: str = "INVALID_FIELD_COMBINATION"

    def __init__(self, fields: list[str], reason: str):
        self.fields = list(fields)
        self.reason = reason
        super().__init__(f"Invalid combination of {', '.join(fields)}: {reason}")


class BillingAllocationExceededError(ValidationError):
    """A project's billing percentages would total more than 100."""

    code: str = "BILLING_ALLOCATION_EXCEEDED"

    def __init__(
        self,
        project_id: Any,
        current_total: Any,
        proposed: Any,
        remaining: Any,
    ):
        self.project_id = str(project_id)
        self.current_total = str(current_total)
        self.proposed = str(proposed)
        self.remaining = str(remaining)
        super().__init__(
            f"Total billing percentage cannot exceed 100%. "
            f"Current total: {current_total}%, requested: {proposed}%, "
            f"available: {remaining}%"
        )


# =============================================================================
# State conflicts
# =============================================================================


class StateConflictError(BillingError):
    """Operation attempted from a state that does not allow it."""

    code: str = "STATE_CONFLICT"


class InvalidStateTransitionError(StateConflictError):
    """The entity's current state does not permit the operation."""

    code: str = "INVALID_STATE_TRANSITION"

    def __init__(
        self,
        entity_type: str,
        entity_id: Any,
        current_state: str,
        operation: str,
    ):
        self.entity_type = entity_type
        self.entity_id = str(entity_id)
        self.current_state = current_state
        self.operation = operation
        super().__init__(
            f"Cannot {operation} {entity_type} {entity_id} in state '{current_state}'"
        )


class InvoiceNotDraftedError(StateConflictError):
    """Send requested for a milestone that has no invoice yet."""

    code: str = "INVOICE_NOT_DRAFTED"

    def __init__(self, milestone_id: Any):
        self.milestone_id = str(milestone_id)
        super().__init__(f"Milestone {milestone_id} has no invoice to send")


class InvoiceAlreadySentError(StateConflictError):
    """The milestone's invoice has already been sent to the customer."""

    code: str = "INVOICE_ALREADY_SENT"

    def __init__(self, milestone_id: Any, invoice_id: Any):
        self.milestone_id = str(milestone_id)
        self.invoice_id = str(invoice_id)
        super().__init__(
            f"Invoice {invoice_id} for milestone {milestone_id} was already sent"
        )


class NotBillableError(StateConflictError):
    """Billing requested for a unit that is not billable."""

    code: str = "NOT_BILLABLE"

    def __init__(self, entity_type: str, entity_id: Any):
        self.entity_type = entity_type
        self.entity_id = str(entity_id)
        super().__init__(f"{entity_type} {entity_id} is not billable")


# =============================================================================
# Not found
# =============================================================================


class NotFoundError(BillingError):
    """Referenced entity does not exist (or belongs to another project)."""

    code: str = "NOT_FOUND"
    entity_type: str = "Entity"

    def __init__(self, entity_id: Any):
        self.entity_id = str(entity_id)
        super().__init__(f"{self.entity_type} not found: {entity_id}")


class ProjectNotFoundError(NotFoundError):
    code: str = "PROJECT_NOT_FOUND"
    entity_type: str = "Project"


class MilestoneNotFoundError(NotFoundError):
    code: str = "MILESTONE_NOT_FOUND"
    entity_type: str = "Milestone"


class TaskNotFoundError(NotFoundError):
    code: str = "TASK_NOT_FOUND"
    entity_type: str = "Task"


class InvoiceNotFoundError(NotFoundError):
    code: str = "INVOICE_NOT_FOUND"
    entity_type: str = "Invoice"


class QuoteNotFoundError(NotFoundError):
    code: str = "QUOTE_NOT_FOUND"
    entity_type: str = "Quote"


class LineItemNotFoundError(NotFoundError):
    code: str = "LINE_ITEM_NOT_FOUND"
    entity_type: str = "Quote line item"


# =============================================================================
# Persistence
# =============================================================================


class PersistenceError(BillingError):
    """A transaction or constraint failure not attributable to the caller."""

    code: str = "PERSISTENCE_ERROR"

    def __init__(self, operation: str, reason: str):
        self.operation = operation
        self.reason = reason
        super().__init__(f"Persistence failure during {operation}: {reason}")


class InvoiceAlreadyExistsError(PersistenceError):
    """
    The unique invoice-per-unit constraint fired.

    Another transaction invoiced the unit first.  Callers translate this
    into an idempotent ``created=False`` result.
    """

    code: str = "INVOICE_ALREADY_EXISTS"

    def __init__(self, unit_type: str, unit_id: Any, invoice_id: Any):
        self.unit_type = unit_type
        self.unit_id = str(unit_id)
        self.invoice_id = str(invoice_id)
        super().__init__(
            operation=f"invoice {unit_type}",
            reason=f"{unit_type} {unit_id} already invoiced as {invoice_id}",
        )


# =============================================================================
# Immutability
# =============================================================================


class ImmutabilityViolationError(BillingError):
    """Attempt to modify a field that is frozen once the row exists."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: Any, reason: str):
        self.entity_type = entity_type
        self.entity_id = str(entity_id)
        self.reason = reason
        super().__init__(
            f"Cannot modify immutable {entity_type} {entity_id}: {reason}"
        )
