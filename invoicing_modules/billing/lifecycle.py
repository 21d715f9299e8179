"""
Billing Lifecycle Operations (``invoicing_modules.billing.lifecycle``).

Responsibility
--------------
Every state-changing operation on an invoice: recalculating totals, line
item edits, payments, sending, cancelling, overdue marking, late fees and
the next invoice of a recurring series.

Architecture position
---------------------
**Modules layer** -- functional core.  Each operation takes a frozen
``Invoice`` snapshot and returns a new one built with
``dataclasses.replace``; nothing is persisted here.  Arithmetic is
delegated to ``invoicing_engines``; timestamps come from an injected
``Clock``.

Invariants enforced
-------------------
* Validation runs before any derived value is built, so a failed
  operation never yields a partially updated invoice.
* Cancelled invoices reject every mutation.
* Paid invoices are settled: line edits and recalculation are rejected,
  and they are never overdue.
* A late-fee rule is applied to an invoice at most once.

Failure modes
-------------
* ``InvalidLineItemError``, ``InvalidPaymentError`` for rejected input.
* ``InvoiceCancelledError`` for any mutation of a cancelled invoice.
* ``InvoicePaidError`` for a line edit or recalculation of a paid invoice.
* ``InvalidTransitionError`` for a status change the workflow forbids.
* ``UnsupportedFrequencyError`` from recurrence scheduling.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, replace
from datetime import date, datetime, timedelta
from decimal import Decimal
from uuid import UUID, uuid4

from invoicing_engines.aggregation import InvoiceAggregator, InvoiceTotals
from invoicing_engines.gst import (
    DEFAULT_UNREGISTERED_POLICY,
    TaxRateResolver,
    UnregisteredClientPolicy,
    region_code_from_gstin,
)
from invoicing_engines.late_fees import LateFeeCalculator, LateFeeRule, is_past_due
from invoicing_engines.line_items import LineItemCalculator
from invoicing_engines.payments import PaymentLedger, derive_payment_state
from invoicing_engines.recurrence import RecurrenceScheduler, payment_terms_days
from invoicing_kernel.domain.clock import Clock, SystemClock
from invoicing_kernel.domain.values import Money
from invoicing_kernel.exceptions import (
    InvalidLineItemError,
    InvoiceCancelledError,
    InvoicePaidError,
)
from invoicing_kernel.logging_config import get_logger
from invoicing_modules.billing.models import (
    Client,
    Invoice,
    InvoiceStatus,
    InvoiceTemplate,
    ItemType,
    LateFeeApplication,
    LineItem,
    PaymentRecord,
    PaymentStatus,
    TaxBreakdown,
)
from invoicing_modules.billing.workflows import require_transition

logger = get_logger("modules.billing.lifecycle")

_line_calculator = LineItemCalculator()
_ledger = PaymentLedger()
_late_fees = LateFeeCalculator()
_scheduler = RecurrenceScheduler()


@dataclass(frozen=True)
class LateFeeRun:
    """Result of one late-fee pass over an invoice."""
    invoice: Invoice
    new_applications: tuple[LateFeeApplication, ...] = ()

    @property
    def fees_applied(self) -> Decimal:
        return sum((a.amount for a in self.new_applications), Decimal("0"))


def _now(clock: Clock | None) -> datetime:
    return (clock or SystemClock()).now()


def _ensure_not_cancelled(invoice: Invoice, operation: str) -> None:
    if invoice.is_cancelled:
        logger.warning("invoice_mutation_rejected", extra={
            "invoice_id": str(invoice.id),
            "operation": operation,
            "status": invoice.status.value,
        })
        raise InvoiceCancelledError(str(invoice.id), operation)


def _ensure_editable(invoice: Invoice, operation: str) -> None:
    _ensure_not_cancelled(invoice, operation)
    if invoice.is_paid:
        logger.warning("invoice_mutation_rejected", extra={
            "invoice_id": str(invoice.id),
            "operation": operation,
            "status": invoice.status.value,
        })
        raise InvoicePaidError(str(invoice.id), operation)


def _payment_status(paid: Decimal, total: Decimal) -> PaymentStatus:
    return PaymentStatus(derive_payment_state(paid, total).value)


# -----------------------------------------------------------------------------
# Tax context
# -----------------------------------------------------------------------------


def client_tax_context(
    client: Client,
    policy: UnregisteredClientPolicy = DEFAULT_UNREGISTERED_POLICY,
) -> tuple[str | None, TaxRateResolver]:
    """
    Region code and resolver for a client.

    Clients outside India are exports and zero-rated whatever the policy.
    Domestic clients without a valid GSTIN are unregistered and follow
    ``policy``.
    """
    if not client.is_domestic:
        return None, TaxRateResolver(UnregisteredClientPolicy.ZERO_RATED)
    return region_code_from_gstin(client.gstin), TaxRateResolver(policy)


def create_line_item(
    description: str,
    quantity: Decimal,
    unit_price: Decimal,
    tax_rate: Decimal,
    *,
    hsn_sac_code: str | None = None,
    item_type: ItemType = ItemType.SERVICE,
    currency: str = "INR",
    line_id: UUID | None = None,
) -> LineItem:
    """
    Build a validated line with its amounts at the nominal rate.

    Raises:
        InvalidLineItemError: For a negative quantity or price, or a rate
            outside [0, 100].
    """
    amounts = _line_calculator.compute(quantity, unit_price, tax_rate, currency)
    return LineItem(
        id=line_id or uuid4(),
        description=description,
        quantity=quantity,
        unit_price=unit_price,
        tax_rate=tax_rate,
        amount=amounts.extended_price.round().amount,
        tax_amount=amounts.tax_amount.round().amount,
        hsn_sac_code=hsn_sac_code,
        item_type=item_type,
    )


# -----------------------------------------------------------------------------
# Totals
# -----------------------------------------------------------------------------


def _apply_totals(invoice: Invoice, totals: InvoiceTotals, now: datetime) -> Invoice:
    lines = tuple(
        replace(
            line,
            amount=amounts.extended_price.round().amount,
            tax_amount=amounts.tax_amount.round().amount,
        )
        for line, amounts in zip(invoice.line_items, totals.line_amounts)
    )
    result = totals.tax
    tax = TaxBreakdown(
        total_tax=result.total_tax.amount,
        cgst_rate=result.cgst_rate,
        sgst_rate=result.sgst_rate,
        igst_rate=result.igst_rate,
        cgst_amount=result.cgst_amount.amount if result.cgst_amount is not None else None,
        sgst_amount=result.sgst_amount.amount if result.sgst_amount is not None else None,
        igst_amount=result.igst_amount.amount if result.igst_amount is not None else None,
        supply_type=result.supply_type.value,
    )
    total = totals.total.amount
    payment_status = _payment_status(invoice.paid_amount, total)

    status = invoice.status
    if payment_status == PaymentStatus.PAID and status != InvoiceStatus.PAID:
        require_transition(str(invoice.id), status, InvoiceStatus.PAID)
        status = InvoiceStatus.PAID

    return replace(
        invoice,
        line_items=lines,
        subtotal=totals.subtotal.amount,
        tax=tax,
        total_amount=total,
        payment_status=payment_status,
        status=status,
        updated_at=now,
    )


def recalculate(
    invoice: Invoice,
    client: Client,
    seller_region_code: str,
    *,
    policy: UnregisteredClientPolicy = DEFAULT_UNREGISTERED_POLICY,
    clock: Clock | None = None,
) -> Invoice:
    """
    Recompute subtotal, GST breakdown, discount and total from the lines.

    Payment status is re-derived against the new total; a payment recorded
    earlier may now cover the invoice in full.

    Raises:
        InvoiceCancelledError: If the invoice is cancelled.
        InvoicePaidError: If the invoice is paid.
        InvalidLineItemError: If any line is out of range.
    """
    _ensure_editable(invoice, "recalculate")

    client_region_code, resolver = client_tax_context(client, policy)
    aggregator = InvoiceAggregator(resolver=resolver, calculator=_line_calculator)
    totals = aggregator.aggregate(
        lines=invoice.line_items,
        client_region_code=client_region_code,
        seller_region_code=seller_region_code,
        currency=invoice.currency,
        discount_percentage=invoice.discount_percentage,
        discount_amount=invoice.discount_amount,
        late_fees=invoice.late_fee_applied,
    )
    updated = _apply_totals(invoice, totals, _now(clock))

    logger.info("invoice_recalculated", extra={
        "invoice_id": str(invoice.id),
        "client_id": str(client.id),
        "supply_type": updated.tax.supply_type,
        "subtotal": str(updated.subtotal),
        "total_tax": str(updated.tax.total_tax),
        "total_amount": str(updated.total_amount),
        "payment_status": updated.payment_status.value,
    })
    return updated


def add_line_item(
    invoice: Invoice,
    item: LineItem,
    client: Client,
    seller_region_code: str,
    *,
    policy: UnregisteredClientPolicy = DEFAULT_UNREGISTERED_POLICY,
    clock: Clock | None = None,
) -> Invoice:
    """Append ``item`` and recalculate."""
    _ensure_editable(invoice, "add_line_item")
    return recalculate(
        replace(invoice, line_items=invoice.line_items + (item,)),
        client, seller_region_code, policy=policy, clock=clock,
    )


def remove_line_item(
    invoice: Invoice,
    line_id: UUID,
    client: Client,
    seller_region_code: str,
    *,
    policy: UnregisteredClientPolicy = DEFAULT_UNREGISTERED_POLICY,
    clock: Clock | None = None,
) -> Invoice:
    """
    Drop the line with ``line_id`` and recalculate.

    Raises:
        InvalidLineItemError: If no line has that id.
    """
    _ensure_editable(invoice, "remove_line_item")
    remaining = tuple(line for line in invoice.line_items if line.id != line_id)
    if len(remaining) == len(invoice.line_items):
        logger.warning("line_item_not_found", extra={
            "invoice_id": str(invoice.id),
            "line_id": str(line_id),
        })
        raise InvalidLineItemError("id", line_id, "no line item with this id")
    return recalculate(
        replace(invoice, line_items=remaining),
        client, seller_region_code, policy=policy, clock=clock,
    )


def replace_line_items(
    invoice: Invoice,
    items: Sequence[LineItem],
    client: Client,
    seller_region_code: str,
    *,
    policy: UnregisteredClientPolicy = DEFAULT_UNREGISTERED_POLICY,
    clock: Clock | None = None,
) -> Invoice:
    _ensure_editable(invoice, "replace_line_items")
    return recalculate(
        replace(invoice, line_items=tuple(items)),
        client, seller_region_code, policy=policy, clock=clock,
    )


def draft_invoice(
    invoice_number: str,
    client: Client,
    issue_date: date,
    line_items: Sequence[LineItem],
    seller_region_code: str,
    *,
    due_date: date | None = None,
    currency: str = "INR",
    payment_terms: str | None = None,
    discount_percentage: Decimal | None = None,
    discount_amount: Decimal | None = None,
    project_id: UUID | None = None,
    recurring_frequency: str | None = None,
    next_invoice_date: date | None = None,
    recurring_end_date: date | None = None,
    recurring_max_occurrences: int | None = None,
    notes: str | None = None,
    terms_conditions: str | None = None,
    policy: UnregisteredClientPolicy = DEFAULT_UNREGISTERED_POLICY,
    clock: Clock | None = None,
    invoice_id: UUID | None = None,
) -> Invoice:
    """
    Build and total a new draft invoice.

    The due date defaults to the issue date plus the payment terms (the
    client's terms unless overridden).
    """
    terms = payment_terms or client.payment_terms
    now = _now(clock)
    invoice = Invoice(
        id=invoice_id or uuid4(),
        invoice_number=invoice_number,
        client_id=client.id,
        issue_date=issue_date,
        due_date=due_date or issue_date + timedelta(days=payment_terms_days(terms)),
        currency=currency,
        project_id=project_id,
        line_items=tuple(line_items),
        discount_percentage=discount_percentage,
        discount_amount=discount_amount,
        payment_terms=terms,
        is_recurring=recurring_frequency is not None,
        recurring_frequency=recurring_frequency,
        next_invoice_date=next_invoice_date,
        recurring_end_date=recurring_end_date,
        recurring_max_occurrences=recurring_max_occurrences,
        notes=notes,
        terms_conditions=terms_conditions,
        created_at=now,
        updated_at=now,
    )
    return recalculate(invoice, client, seller_region_code, policy=policy, clock=clock)


# -----------------------------------------------------------------------------
# Payments
# -----------------------------------------------------------------------------


def record_payment(
    invoice: Invoice,
    amount: Decimal,
    payment_date: date,
    method: str,
    reference: str | None = None,
    *,
    clock: Clock | None = None,
) -> tuple[Invoice, PaymentRecord]:
    """
    Apply a payment and return the updated invoice with its record.

    Overpayments are kept as recorded; the remaining balance clamps at
    zero.  A payment covering the total settles the invoice from any
    non-cancelled status.

    Raises:
        InvoiceCancelledError: If the invoice is cancelled.
        InvalidPaymentError: If amount <= 0.
    """
    _ensure_not_cancelled(invoice, "record_payment")

    application = _ledger.apply(
        total=Money.of(invoice.total_amount, invoice.currency),
        paid=Money.of(invoice.paid_amount, invoice.currency),
        amount=Money.of(amount, invoice.currency),
    )

    status = invoice.status
    if application.is_settled and status != InvoiceStatus.PAID:
        require_transition(str(invoice.id), status, InvoiceStatus.PAID)
        status = InvoiceStatus.PAID

    record = PaymentRecord(
        id=uuid4(),
        invoice_id=invoice.id,
        amount=amount,
        payment_date=payment_date,
        method=method,
        currency=invoice.currency,
        reference=reference,
    )
    updated = replace(
        invoice,
        paid_amount=application.paid_amount.amount,
        payment_status=PaymentStatus(application.state.value),
        status=status,
        payment_date=payment_date,
        payment_method=method,
        updated_at=_now(clock),
    )

    logger.info("payment_recorded", extra={
        "invoice_id": str(invoice.id),
        "payment_id": str(record.id),
        "amount": str(amount),
        "paid_amount": str(updated.paid_amount),
        "remaining_amount": str(updated.remaining_amount),
        "payment_status": updated.payment_status.value,
        "status": updated.status.value,
    })
    return updated, record


def ledger_balance(records: Iterable[PaymentRecord], currency: str = "INR") -> Decimal:
    """Paid amount recomputed from payment records."""
    return _ledger.balance_from_records(
        (Money.of(r.amount, r.currency) for r in records), currency,
    ).amount


# -----------------------------------------------------------------------------
# Status changes
# -----------------------------------------------------------------------------


def mark_sent(invoice: Invoice, *, clock: Clock | None = None) -> Invoice:
    """draft -> sent."""
    _ensure_not_cancelled(invoice, "mark_sent")
    require_transition(str(invoice.id), invoice.status, InvoiceStatus.SENT)
    logger.info("invoice_sent", extra={"invoice_id": str(invoice.id)})
    return replace(invoice, status=InvoiceStatus.SENT, updated_at=_now(clock))


def cancel(invoice: Invoice, *, clock: Clock | None = None) -> Invoice:
    """Cancel a draft, sent or overdue invoice."""
    _ensure_not_cancelled(invoice, "cancel")
    require_transition(str(invoice.id), invoice.status, InvoiceStatus.CANCELLED)
    logger.info("invoice_cancelled", extra={
        "invoice_id": str(invoice.id),
        "from_status": invoice.status.value,
    })
    return replace(invoice, status=InvoiceStatus.CANCELLED, updated_at=_now(clock))


def is_overdue(invoice: Invoice, as_of: date) -> bool:
    """
    Past due with money still owed.

    Drafts, cancelled and paid invoices never are, nor is an invoice with
    a zero total.
    """
    if invoice.status in (InvoiceStatus.DRAFT, InvoiceStatus.CANCELLED, InvoiceStatus.PAID):
        return False
    if invoice.total_amount <= 0:
        return False
    settled = invoice.payment_status == PaymentStatus.PAID
    return is_past_due(invoice.due_date, as_of, settled)


def mark_overdue(
    invoice: Invoice,
    as_of: date,
    *,
    clock: Clock | None = None,
) -> Invoice:
    """
    sent -> overdue when past due.

    Any other status, or an invoice not yet past due, comes back
    unchanged.
    """
    if invoice.status != InvoiceStatus.SENT or not is_overdue(invoice, as_of):
        return invoice
    require_transition(str(invoice.id), invoice.status, InvoiceStatus.OVERDUE)
    logger.info("invoice_marked_overdue", extra={
        "invoice_id": str(invoice.id),
        "due_date": invoice.due_date.isoformat(),
        "as_of": as_of.isoformat(),
    })
    return replace(invoice, status=InvoiceStatus.OVERDUE, updated_at=_now(clock))


# -----------------------------------------------------------------------------
# Late fees
# -----------------------------------------------------------------------------


def apply_late_fees(
    invoice: Invoice,
    rules: Sequence[LateFeeRule],
    existing_applications: Iterable[LateFeeApplication],
    as_of: date,
    *,
    clock: Clock | None = None,
) -> LateFeeRun:
    """
    Apply every eligible rule not yet applied to this invoice.

    Fees grow ``late_fee_applied`` and ``total_amount``; ``paid_amount`` is
    untouched.  Invoices that are not overdue come back unchanged with no
    applications, so re-running the pass is always safe.
    """
    if not is_overdue(invoice, as_of):
        return LateFeeRun(invoice=invoice)

    applied = {a.rule_id for a in existing_applications if a.invoice_id == invoice.id}
    assessment = _late_fees.assess(
        remaining=Money.of(invoice.remaining_amount, invoice.currency),
        due_date=invoice.due_date,
        rules=rules,
        applied_rule_ids=applied,
        as_of=as_of,
    )
    if not assessment.fees:
        return LateFeeRun(invoice=invoice)

    applications = tuple(
        LateFeeApplication(
            id=uuid4(),
            invoice_id=invoice.id,
            rule_id=fee.rule_id,
            rule_name=fee.rule_name,
            amount=fee.amount.amount,
            applied_on=as_of,
            days_overdue=fee.days_overdue,
        )
        for fee in assessment.fees
    )
    fees = assessment.total
    total = invoice.total_amount + fees
    updated = replace(
        invoice,
        late_fee_applied=invoice.late_fee_applied + fees,
        total_amount=total,
        payment_status=_payment_status(invoice.paid_amount, total),
        updated_at=_now(clock),
    )

    logger.info("late_fees_applied", extra={
        "invoice_id": str(invoice.id),
        "fee_count": len(applications),
        "fees": str(fees),
        "late_fee_applied": str(updated.late_fee_applied),
        "total_amount": str(updated.total_amount),
    })
    return LateFeeRun(invoice=updated, new_applications=applications)


# -----------------------------------------------------------------------------
# Recurring series
# -----------------------------------------------------------------------------


def series_exhausted(invoice: Invoice) -> bool:
    """True once the series has produced its maximum number of invoices."""
    maximum = invoice.recurring_max_occurrences
    return maximum is not None and invoice.recurring_count >= maximum


def generate_next(invoice: Invoice) -> InvoiceTemplate | None:
    """
    Template for the next invoice of a recurring series.

    None when the invoice is cancelled or not recurring, has no next
    invoice date, has reached its maximum occurrences, or the series has
    passed its end date.

    Raises:
        UnsupportedFrequencyError: For an unknown frequency.
    """
    if invoice.is_cancelled or not invoice.is_recurring or invoice.next_invoice_date is None:
        return None
    if series_exhausted(invoice):
        logger.info("recurrence_occurrences_exhausted", extra={
            "invoice_id": str(invoice.id),
            "recurring_count": invoice.recurring_count,
            "recurring_max_occurrences": invoice.recurring_max_occurrences,
        })
        return None

    schedule = _scheduler.next_schedule(
        next_invoice_date=invoice.next_invoice_date,
        frequency=invoice.recurring_frequency,
        payment_terms=invoice.payment_terms,
        end_date=invoice.recurring_end_date,
    )
    if schedule is None:
        return None

    template = InvoiceTemplate(
        source_invoice_id=invoice.id,
        client_id=invoice.client_id,
        issue_date=schedule.issue_date,
        due_date=schedule.due_date,
        recurring_frequency=schedule.frequency.value,
        next_invoice_date=schedule.next_invoice_date,
        line_items=tuple(replace(line, id=uuid4()) for line in invoice.line_items),
        currency=invoice.currency,
        project_id=invoice.project_id,
        recurring_end_date=invoice.recurring_end_date,
        recurring_count=invoice.recurring_count + 1,
        recurring_max_occurrences=invoice.recurring_max_occurrences,
        payment_terms=invoice.payment_terms,
        discount_percentage=invoice.discount_percentage,
        discount_amount=invoice.discount_amount,
        notes=invoice.notes,
        terms_conditions=invoice.terms_conditions,
    )
    logger.info("recurring_template_generated", extra={
        "invoice_id": str(invoice.id),
        "issue_date": template.issue_date.isoformat(),
        "due_date": template.due_date.isoformat(),
        "next_invoice_date": template.next_invoice_date.isoformat(),
        "recurring_count": template.recurring_count,
    })
    return template


def hand_off_series(invoice: Invoice, *, clock: Clock | None = None) -> Invoice:
    """
    Source invoice after its series moved on to the next invoice.

    Only the newest invoice of a series is recurring, so generating from
    the same source twice yields nothing the second time.
    """
    logger.info("recurring_series_handed_off", extra={"invoice_id": str(invoice.id)})
    return replace(invoice, is_recurring=False, updated_at=_now(clock))


def cancel_recurring(invoice: Invoice, *, clock: Clock | None = None) -> Invoice:
    """
    Stop the series this invoice heads.

    The invoice itself keeps its status; only future generation stops.  A
    non-recurring invoice comes back unchanged.

    Raises:
        InvoiceCancelledError: If the invoice is cancelled.
    """
    _ensure_not_cancelled(invoice, "cancel_recurring")
    if not invoice.is_recurring:
        return invoice
    logger.info("recurring_series_cancelled", extra={
        "invoice_id": str(invoice.id),
        "recurring_count": invoice.recurring_count,
    })
    return replace(invoice, is_recurring=False, updated_at=_now(clock))


def materialize(
    template: InvoiceTemplate,
    invoice_number: str,
    *,
    clock: Clock | None = None,
    invoice_id: UUID | None = None,
) -> Invoice:
    """
    Concrete draft invoice from a template.

    Line amounts are carried over from the source invoice; call
    ``recalculate`` to refresh totals against the current client.
    """
    now = _now(clock)
    return Invoice(
        id=invoice_id or uuid4(),
        invoice_number=invoice_number,
        client_id=template.client_id,
        issue_date=template.issue_date,
        due_date=template.due_date,
        currency=template.currency,
        project_id=template.project_id,
        line_items=template.line_items,
        discount_percentage=template.discount_percentage,
        discount_amount=template.discount_amount,
        payment_terms=template.payment_terms,
        is_recurring=True,
        recurring_frequency=template.recurring_frequency,
        next_invoice_date=template.next_invoice_date,
        recurring_end_date=template.recurring_end_date,
        recurring_count=template.recurring_count,
        recurring_max_occurrences=template.recurring_max_occurrences,
        notes=template.notes,
        terms_conditions=template.terms_conditions,
        created_at=now,
        updated_at=now,
    )
