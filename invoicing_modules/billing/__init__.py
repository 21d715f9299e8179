"""
Billing Module.

GST invoices from draft to paid: totals and tax split, payments, overdue
marking and late fees, recurring series, and the reports built on them.

Usage:
    from invoicing_modules.billing import InvoiceService, BillingConfig
    from invoicing_kernel.domain.clock import DeterministicClock

    service = InvoiceService(session, BillingConfig(seller_region_code="27"),
                             clock=DeterministicClock())
"""

from invoicing_modules.billing.config import BillingConfig
from invoicing_modules.billing.lifecycle import (
    LateFeeRun,
    add_line_item,
    apply_late_fees,
    cancel,
    cancel_recurring,
    client_tax_context,
    create_line_item,
    draft_invoice,
    generate_next,
    hand_off_series,
    is_overdue,
    ledger_balance,
    mark_overdue,
    mark_sent,
    materialize,
    recalculate,
    record_payment,
    remove_line_item,
    replace_line_items,
    series_exhausted,
)
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
from invoicing_modules.billing.reports import (
    GstSummary,
    HsnSummaryLine,
    receivables_aging,
    summarize_gst,
    summarize_hsn,
)
from invoicing_modules.billing.service import InvoiceService, OverdueSweepResult
from invoicing_modules.billing.workflows import INVOICE_WORKFLOW

__all__ = [
    "BillingConfig",
    "LateFeeRun",
    "add_line_item",
    "apply_late_fees",
    "cancel",
    "cancel_recurring",
    "client_tax_context",
    "create_line_item",
    "draft_invoice",
    "generate_next",
    "hand_off_series",
    "is_overdue",
    "ledger_balance",
    "mark_overdue",
    "mark_sent",
    "materialize",
    "recalculate",
    "record_payment",
    "remove_line_item",
    "replace_line_items",
    "series_exhausted",
    "Client",
    "Invoice",
    "InvoiceStatus",
    "InvoiceTemplate",
    "ItemType",
    "LateFeeApplication",
    "LineItem",
    "PaymentRecord",
    "PaymentStatus",
    "TaxBreakdown",
    "GstSummary",
    "HsnSummaryLine",
    "receivables_aging",
    "summarize_gst",
    "summarize_hsn",
    "InvoiceService",
    "OverdueSweepResult",
    "INVOICE_WORKFLOW",
]
