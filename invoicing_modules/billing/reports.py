"""
Billing reports: outward-supply GST summary, HSN/SAC-wise summary and
receivables aging.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from invoicing_engines.aging import AgingCalculator, AgingReport, ReceivableInput
from invoicing_engines.gst import SupplyType
from invoicing_kernel.domain.values import Money, round_amount
from invoicing_kernel.logging_config import get_logger
from invoicing_modules.billing.models import Invoice, InvoiceStatus, PaymentStatus

logger = get_logger("modules.billing.reports")

_ZERO = Decimal("0")

# Drafts were never issued and cancelled invoices were withdrawn; neither is
# an outward supply.
_NON_SUPPLY_STATUSES = (InvoiceStatus.DRAFT, InvoiceStatus.CANCELLED)

# Reported for lines that carry no HSN/SAC code.
DEFAULT_SAC_CODE = "998314"


def _outward_supplies(
    invoices: Iterable[Invoice],
    currency: str,
    period_start: date | None,
    period_end: date | None,
) -> Iterator[Invoice]:
    for invoice in invoices:
        if invoice.status in _NON_SUPPLY_STATUSES or invoice.currency != currency:
            continue
        if period_start is not None and invoice.issue_date < period_start:
            continue
        if period_end is not None and invoice.issue_date > period_end:
            continue
        yield invoice


@dataclass(frozen=True)
class GstSummary:
    """Outward supplies summary (GSTR-3B table 3.1 style)."""
    currency: str
    invoice_count: int
    taxable_value: Decimal
    cgst: Decimal
    sgst: Decimal
    igst: Decimal

    @property
    def total_tax(self) -> Decimal:
        return self.cgst + self.sgst + self.igst


def summarize_gst(
    invoices: Iterable[Invoice],
    *,
    currency: str = "INR",
    period_start: date | None = None,
    period_end: date | None = None,
) -> GstSummary:
    """
    Sum taxable value and tax heads over issued invoices.

    Only invoices in ``currency`` with an issue date inside the optional
    period are counted.
    """
    count = 0
    taxable = cgst = sgst = igst = _ZERO
    for invoice in _outward_supplies(invoices, currency, period_start, period_end):
        count += 1
        taxable += invoice.subtotal
        cgst += invoice.tax.cgst_amount or _ZERO
        sgst += invoice.tax.sgst_amount or _ZERO
        igst += invoice.tax.igst_amount or _ZERO

    summary = GstSummary(
        currency=currency,
        invoice_count=count,
        taxable_value=taxable,
        cgst=cgst,
        sgst=sgst,
        igst=igst,
    )
    logger.info("gst_summary_computed", extra={
        "invoice_count": count,
        "taxable_value": str(taxable),
        "total_tax": str(summary.total_tax),
    })
    return summary


@dataclass(frozen=True)
class HsnSummaryLine:
    """One HSN/SAC row of a GSTR-1 table 12 style summary."""
    hsn_sac_code: str
    description: str
    quantity: Decimal
    taxable_value: Decimal
    igst: Decimal
    cgst: Decimal
    sgst: Decimal

    @property
    def total_tax(self) -> Decimal:
        return self.igst + self.cgst + self.sgst

    @property
    def total_value(self) -> Decimal:
        return self.taxable_value + self.total_tax


def summarize_hsn(
    invoices: Iterable[Invoice],
    *,
    currency: str = "INR",
    period_start: date | None = None,
    period_end: date | None = None,
) -> tuple[HsnSummaryLine, ...]:
    """
    Group the lines of issued invoices by HSN/SAC code.

    Quantities, taxable values and line tax are summed per code.  Tax on
    inter-state invoices is reported as IGST.  Intra-state tax is summed
    per code and split once, CGST rounded and SGST the remainder.  Lines
    without a code are reported under ``DEFAULT_SAC_CODE``, described by
    the first such line seen.  Rows are ordered by code.
    """
    descriptions: dict[str, str] = {}
    quantity: dict[str, Decimal] = {}
    taxable: dict[str, Decimal] = {}
    inter: dict[str, Decimal] = {}
    intra: dict[str, Decimal] = {}

    for invoice in _outward_supplies(invoices, currency, period_start, period_end):
        supply = invoice.tax.supply_type
        for line in invoice.line_items:
            code = line.hsn_sac_code or DEFAULT_SAC_CODE
            descriptions.setdefault(code, line.description)
            quantity[code] = quantity.get(code, _ZERO) + line.quantity
            taxable[code] = taxable.get(code, _ZERO) + line.amount
            if supply == SupplyType.INTER_STATE.value:
                inter[code] = inter.get(code, _ZERO) + line.tax_amount
            elif supply == SupplyType.INTRA_STATE.value:
                intra[code] = intra.get(code, _ZERO) + line.tax_amount

    rows = []
    for code in sorted(taxable):
        intra_tax = intra.get(code, _ZERO)
        cgst = round_amount(intra_tax / 2)
        rows.append(HsnSummaryLine(
            hsn_sac_code=code,
            description=descriptions[code],
            quantity=quantity[code],
            taxable_value=taxable[code],
            igst=inter.get(code, _ZERO),
            cgst=cgst,
            sgst=intra_tax - cgst,
        ))

    logger.info("hsn_summary_computed", extra={
        "row_count": len(rows),
        "codes": [row.hsn_sac_code for row in rows],
    })
    return tuple(rows)



def receivables_aging(
    invoices: Iterable[Invoice],
    as_of: date,
    *,
    currency: str = "INR",
    calculator: AgingCalculator | None = None,
) -> AgingReport:
    """Age the outstanding balance of every issued, unpaid invoice."""
    receivables = [
        ReceivableInput(
            invoice_id=invoice.id,
            invoice_number=invoice.invoice_number,
            client_id=invoice.client_id,
            due_date=invoice.due_date,
            outstanding=Money.of(invoice.remaining_amount, invoice.currency),
        )
        for invoice in invoices
        if invoice.status not in _NON_SUPPLY_STATUSES
        and invoice.payment_status != PaymentStatus.PAID
        and invoice.remaining_amount > 0
        and invoice.currency == currency
    ]
    calculator = calculator or AgingCalculator()
    return calculator.generate_report(
        receivables=receivables,
        as_of_date=as_of,
        currency=currency,
    )
