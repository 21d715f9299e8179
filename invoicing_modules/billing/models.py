"""
Billing Domain Models (``invoicing_modules.billing.models``).

Responsibility
--------------
Frozen dataclass value objects for the nouns of GST billing: clients,
invoices and their line items, the GST breakdown, payment records, late-fee
applications and recurring-invoice templates.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.  Derived values
(subtotal, tax, totals, payment status) are written by ``lifecycle``; the
models only hold them.

Invariants enforced
-------------------
* All models are ``frozen=True`` (immutable after construction).
* All monetary fields use ``Decimal`` -- NEVER ``float``.
* ``Invoice``: due_date >= issue_date; a recurring invoice carries both a
  frequency and a next invoice date.  The occurrence count is
  non-negative and a maximum, when set, is at least one.

Failure modes
-------------
* ``InvalidDateRangeError`` / ``InvalidRecurrenceError`` on construction.
* Construction with invalid enum values raises ``ValueError``.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from invoicing_kernel.domain.dtos import ValidationError, ValidationResult
from invoicing_kernel.exceptions import InvalidDateRangeError, InvalidRecurrenceError
from invoicing_kernel.logging_config import get_logger

logger = get_logger("modules.billing.models")

INDIA = "India"
DEFAULT_CURRENCY = "INR"
DEFAULT_PAYMENT_TERMS = "Net 30"


class InvoiceStatus(Enum):
    """Invoice lifecycle states."""
    DRAFT = "draft"
    SENT = "sent"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


class PaymentStatus(Enum):
    """How much of the invoice total has been paid."""
    PENDING = "pending"
    PARTIAL = "partial"
    PAID = "paid"


class ItemType(Enum):
    SERVICE = "service"
    PRODUCT = "product"
    EXPENSE = "expense"


@dataclass(frozen=True)
class Client:
    """The tax-relevant subset of a client."""
    id: UUID
    name: str
    gstin: str | None = None  # first two characters are the state code
    country: str = INDIA
    payment_terms: str = DEFAULT_PAYMENT_TERMS
    email: str | None = None

    @property
    def is_domestic(self) -> bool:
        return (self.country or INDIA).strip().lower() == INDIA.lower()


@dataclass(frozen=True)
class LineItem:
    """A single priced line; amount and tax_amount are derived."""
    id: UUID
    description: str
    quantity: Decimal
    unit_price: Decimal
    tax_rate: Decimal  # percent, 18 means 18%
    amount: Decimal = Decimal("0")  # quantity * unit_price, rounded
    tax_amount: Decimal = Decimal("0")
    hsn_sac_code: str | None = None
    item_type: ItemType = ItemType.SERVICE


@dataclass(frozen=True)
class TaxBreakdown:
    """
    GST split for an invoice.

    Components that do not apply to the supply are None; total_tax always
    equals the sum of the applied component amounts.
    """
    total_tax: Decimal = Decimal("0")
    cgst_rate: Decimal | None = None
    sgst_rate: Decimal | None = None
    igst_rate: Decimal | None = None
    cgst_amount: Decimal | None = None
    sgst_amount: Decimal | None = None
    igst_amount: Decimal | None = None
    supply_type: str | None = None  # intra_state, inter_state, zero_rated


def check_invoice_invariants(
    invoice_id: UUID,
    issue_date: date,
    due_date: date,
    is_recurring: bool,
    recurring_frequency: str | None,
    next_invoice_date: date | None,
    recurring_count: int = 0,
    recurring_max_occurrences: int | None = None,
) -> ValidationResult:
    """Collect every constructor-level violation on an invoice."""
    errors: list[ValidationError] = []
    if due_date < issue_date:
        errors.append(ValidationError(
            code=InvalidDateRangeError.code,
            message="due_date precedes issue_date",
            field="due_date",
        ))
    if is_recurring and not recurring_frequency:
        errors.append(ValidationError(
            code=InvalidRecurrenceError.code,
            message="recurring invoice requires a frequency",
            field="recurring_frequency",
        ))
    if is_recurring and next_invoice_date is None:
        errors.append(ValidationError(
            code=InvalidRecurrenceError.code,
            message="recurring invoice requires a next invoice date",
            field="next_invoice_date",
        ))
    if recurring_count < 0:
        errors.append(ValidationError(
            code=InvalidRecurrenceError.code,
            message="occurrence count cannot be negative",
            field="recurring_count",
        ))
    if recurring_max_occurrences is not None and recurring_max_occurrences < 1:
        errors.append(ValidationError(
            code=InvalidRecurrenceError.code,
            message="a series needs at least one occurrence",
            field="recurring_max_occurrences",
        ))
    if errors:
        logger.warning("invoice_invariants_violated", extra={
            "invoice_id": str(invoice_id),
            "fields": [e.field for e in errors],
        })
    return ValidationResult.collect(errors)


@dataclass(frozen=True)
class Invoice:
    """A GST invoice."""
    id: UUID
    invoice_number: str
    client_id: UUID
    issue_date: date
    due_date: date
    currency: str = DEFAULT_CURRENCY
    project_id: UUID | None = None
    line_items: tuple[LineItem, ...] = field(default_factory=tuple)
    subtotal: Decimal = Decimal("0")
    tax: TaxBreakdown = field(default_factory=TaxBreakdown)
    total_amount: Decimal = Decimal("0")
    paid_amount: Decimal = Decimal("0")  # not capped at total
    late_fee_applied: Decimal = Decimal("0")
    discount_percentage: Decimal | None = None
    discount_amount: Decimal | None = None
    status: InvoiceStatus = InvoiceStatus.DRAFT
    payment_status: PaymentStatus = PaymentStatus.PENDING
    payment_terms: str = DEFAULT_PAYMENT_TERMS
    payment_date: date | None = None
    payment_method: str | None = None
    is_recurring: bool = False
    recurring_frequency: str | None = None
    next_invoice_date: date | None = None
    recurring_end_date: date | None = None
    recurring_count: int = 0  # invoices generated so far in the series
    recurring_max_occurrences: int | None = None
    notes: str | None = None
    terms_conditions: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def __post_init__(self):
        result = check_invoice_invariants(
            self.id,
            self.issue_date,
            self.due_date,
            self.is_recurring,
            self.recurring_frequency,
            self.next_invoice_date,
            self.recurring_count,
            self.recurring_max_occurrences,
        )
        if result:
            return
        first = result.first()
        if first.code == InvalidDateRangeError.code:
            raise InvalidDateRangeError(self.issue_date, self.due_date)
        raise InvalidRecurrenceError(str(self.id), first.field)

    @property
    def remaining_amount(self) -> Decimal:
        """total - paid, never negative."""
        remaining = self.total_amount - self.paid_amount
        return remaining if remaining > 0 else Decimal("0")

    @property
    def is_cancelled(self) -> bool:
        return self.status == InvoiceStatus.CANCELLED

    @property
    def is_paid(self) -> bool:
        return self.status == InvoiceStatus.PAID


@dataclass(frozen=True)
class PaymentRecord:
    """An immutable payment received against an invoice."""
    id: UUID
    invoice_id: UUID
    amount: Decimal
    payment_date: date
    method: str
    currency: str = DEFAULT_CURRENCY
    reference: str | None = None


@dataclass(frozen=True)
class LateFeeApplication:
    """One late fee applied to one invoice; at most one per (invoice, rule)."""
    id: UUID
    invoice_id: UUID
    rule_id: UUID
    rule_name: str
    amount: Decimal
    applied_on: date
    days_overdue: int


@dataclass(frozen=True)
class InvoiceTemplate:
    """Blueprint for the next invoice of a recurring series."""
    source_invoice_id: UUID
    client_id: UUID
    issue_date: date
    due_date: date
    recurring_frequency: str
    next_invoice_date: date
    line_items: tuple[LineItem, ...]
    currency: str = DEFAULT_CURRENCY
    project_id: UUID | None = None
    recurring_end_date: date | None = None
    recurring_count: int = 1
    recurring_max_occurrences: int | None = None
    payment_terms: str = DEFAULT_PAYMENT_TERMS
    discount_percentage: Decimal | None = None
    discount_amount: Decimal | None = None
    notes: str | None = None
    terms_conditions: str | None = None
