"""
Typed Exception Hierarchy for the Invoicing Engine.

Every error carries a class-level machine-readable ``code`` and keeps its
context as attributes, so callers catch by type and report by field instead
of parsing messages:

    try:
        invoice, record = record_payment(invoice, amount, paid_on, "upi")
    except InvoiceCancelledError as e:
        api_response(code=e.code, invoice_id=e.invoice_id)

Hierarchy:

    InvoicingError (base)
    |
    +-- ValidationFailure
    |   +-- InvalidLineItemError
    |   +-- InvalidPaymentError
    |   +-- InvalidDateRangeError
    |   +-- InvalidRecurrenceError
    |   +-- InvalidLateFeeRuleError
    |
    +-- LifecycleError
    |   +-- InvoiceCancelledError
    |   +-- InvoicePaidError
    |   +-- InvalidTransitionError
    |
    +-- ScheduleError
    |   +-- UnsupportedFrequencyError
    |
    +-- LookupFailure
        +-- InvoiceNotFoundError
        +-- ClientNotFoundError

Error codes:

Category    | Code                   | When Raised
------------|------------------------|-------------------------------------------
Validation  | INVALID_LINE_ITEM      | Negative quantity/price, rate out of range
            | INVALID_PAYMENT        | Payment amount <= 0
            | INVALID_DATE_RANGE     | Due date before issue date
            | INVALID_RECURRENCE     | Recurring invoice missing frequency/date
            | INVALID_LATE_FEE_RULE  | Negative amount/grace, bad fee type
------------|------------------------|-------------------------------------------
Lifecycle   | INVOICE_CANCELLED      | Mutation attempted on cancelled invoice
            | INVOICE_PAID           | Line edit or recalculation of a paid invoice
            | INVALID_TRANSITION     | Status change not allowed by workflow
------------|------------------------|-------------------------------------------
Schedule    | UNSUPPORTED_FREQUENCY  | Recurrence frequency outside known set
------------|------------------------|-------------------------------------------
Lookup      | INVOICE_NOT_FOUND      | No invoice with the given id
            | CLIENT_NOT_FOUND       | No client with the given id

All of these are detected before any derived invoice is built. None are
retried internally.
"""

from datetime import date
from decimal import Decimal
from typing import Any


class InvoicingError(Exception):
    """
    Base exception for all invoicing errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "INVOICING_ERROR"


# Validation failures


class ValidationFailure(InvoicingError):
    """Base exception for rejected input."""

    code: str = "VALIDATION_FAILURE"


class InvalidLineItemError(ValidationFailure):
    """A line item field is outside its allowed range."""

    code: str = "INVALID_LINE_ITEM"

    def __init__(self, field: str, value: Any, reason: str | None = None):
        self.field = field
        self.value = value
        self.reason = reason or f"{field} must be non-negative"
        super().__init__(f"Invalid line item {field}={value}: {self.reason}")


class InvalidPaymentError(ValidationFailure):
    """Payment amount must be strictly positive."""

    code: str = "INVALID_PAYMENT"

    def __init__(self, amount: Decimal, reason: str | None = None):
        self.amount = amount
        self.reason = reason or "payment amount must be positive"
        super().__init__(f"Invalid payment amount {amount}: {self.reason}")


class InvalidDateRangeError(ValidationFailure):
    """Due date precedes issue date."""

    code: str = "INVALID_DATE_RANGE"

    def __init__(self, issue_date: date, due_date: date):
        self.issue_date = issue_date
        self.due_date = due_date
        super().__init__(
            f"Due date {due_date.isoformat()} is before issue date "
            f"{issue_date.isoformat()}"
        )


class InvalidRecurrenceError(ValidationFailure):
    """Recurring invoice is missing its frequency or next invoice date."""

    code: str = "INVALID_RECURRENCE"

    def __init__(self, invoice_id: str, missing_field: str):
        self.invoice_id = invoice_id
        self.missing_field = missing_field
        super().__init__(
            f"Recurring invoice {invoice_id} requires {missing_field}"
        )


class InvalidLateFeeRuleError(ValidationFailure):
    """Late fee rule definition is invalid."""

    code: str = "INVALID_LATE_FEE_RULE"

    def __init__(self, rule_name: str, reason: str):
        self.rule_name = rule_name
        self.reason = reason
        super().__init__(f"Invalid late fee rule '{rule_name}': {reason}")


# Lifecycle errors


class LifecycleError(InvoicingError):
    """Base exception for invoice status violations."""

    code: str = "LIFECYCLE_ERROR"


class InvoiceCancelledError(LifecycleError):
    """Cancelled invoices are terminal and reject every mutation."""

    code: str = "INVOICE_CANCELLED"

    def __init__(self, invoice_id: str, operation: str):
        self.invoice_id = invoice_id
        self.operation = operation
        super().__init__(
            f"Invoice {invoice_id} is cancelled; cannot {operation}"
        )


class InvoicePaidError(LifecycleError):
    """Paid invoices are settled; their lines and totals are frozen."""

    code: str = "INVOICE_PAID"

    def __init__(self, invoice_id: str, operation: str):
        self.invoice_id = invoice_id
        self.operation = operation
        super().__init__(
            f"Invoice {invoice_id} is paid; cannot {operation}"
        )


class InvalidTransitionError(LifecycleError):
    """Status transition not permitted by the invoice workflow."""

    code: str = "INVALID_TRANSITION"

    def __init__(self, invoice_id: str, from_status: str, to_status: str):
        self.invoice_id = invoice_id
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Invoice {invoice_id} cannot move from {from_status} to {to_status}"
        )


# Schedule errors


class ScheduleError(InvoicingError):
    """Base exception for recurrence scheduling errors."""

    code: str = "SCHEDULE_ERROR"


class UnsupportedFrequencyError(ScheduleError):
    """Recurrence frequency is not weekly, monthly, quarterly or yearly."""

    code: str = "UNSUPPORTED_FREQUENCY"

    def __init__(self, frequency: str):
        self.frequency = frequency
        super().__init__(f"Unsupported recurrence frequency: {frequency!r}")


# Lookup failures


class LookupFailure(InvoicingError):
    """Base exception for missing records."""

    code: str = "LOOKUP_FAILURE"


class InvoiceNotFoundError(LookupFailure):
    """Invoice with given ID was not found."""

    code: str = "INVOICE_NOT_FOUND"

    def __init__(self, invoice_id: str):
        self.invoice_id = invoice_id
        super().__init__(f"Invoice not found: {invoice_id}")


class ClientNotFoundError(LookupFailure):
    """Client with given ID was not found."""

    code: str = "CLIENT_NOT_FOUND"

    def __init__(self, client_id: str):
        self.client_id = client_id
        super().__init__(f"Client not found: {client_id}")
