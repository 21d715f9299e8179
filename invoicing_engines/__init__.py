"""
Invoicing Engines - Pure calculation engines for GST invoicing.

These engines are pure functions with no I/O.  They take Decimal amounts,
Money values and dates, and return frozen result objects.  Persistence and
clocks belong to the modules layer.

Engines:
    - gst: CGST/SGST/IGST rate resolution and GSTIN validation
    - line_items: Extended price and line tax
    - aggregation: Invoice subtotal, tax breakdown, discount and total
    - payments: Payment status and remaining balance
    - late_fees: Overdue detection and late-fee assessment
    - recurrence: Next issue/due dates for recurring invoices
    - aging: Receivables aging buckets
"""

from invoicing_engines.aggregation import (
    InvoiceAggregator,
    InvoiceTotals,
    LineInput,
    RateBucket,
    TaxBreakdownResult,
    resolve_discount,
)
from invoicing_engines.aging import (
    STANDARD_BUCKETS,
    AgeBucket,
    AgedReceivable,
    AgingCalculator,
    AgingReport,
    ReceivableInput,
)
from invoicing_engines.gst import (
    DEFAULT_UNREGISTERED_POLICY,
    SupplyType,
    TaxComponent,
    TaxRateResolver,
    TaxRateSplit,
    UnregisteredClientPolicy,
    gstin_check_character,
    is_valid_gstin,
    is_valid_region_code,
    region_code_from_gstin,
)
from invoicing_engines.late_fees import (
    AssessedFee,
    LateFeeAssessment,
    LateFeeCalculator,
    LateFeeRule,
    LateFeeType,
    days_overdue,
    is_past_due,
)
from invoicing_engines.line_items import LineAmounts, LineItemCalculator
from invoicing_engines.payments import (
    PaymentApplication,
    PaymentLedger,
    PaymentState,
    derive_payment_state,
    remaining_balance,
)
from invoicing_engines.recurrence import (
    DEFAULT_PAYMENT_TERMS_DAYS,
    RecurrenceFrequency,
    RecurrenceSchedule,
    RecurrenceScheduler,
    add_months,
    advance,
    parse_frequency,
    payment_terms_days,
)

__all__ = [
    # Aggregation
    "InvoiceAggregator",
    "InvoiceTotals",
    "LineInput",
    "RateBucket",
    "TaxBreakdownResult",
    "resolve_discount",
    # Aging
    "STANDARD_BUCKETS",
    "AgeBucket",
    "AgedReceivable",
    "AgingCalculator",
    "AgingReport",
    "ReceivableInput",
    # GST
    "DEFAULT_UNREGISTERED_POLICY",
    "SupplyType",
    "TaxComponent",
    "TaxRateResolver",
    "TaxRateSplit",
    "UnregisteredClientPolicy",
    "gstin_check_character",
    "is_valid_gstin",
    "is_valid_region_code",
    "region_code_from_gstin",
    # Late fees
    "AssessedFee",
    "LateFeeAssessment",
    "LateFeeCalculator",
    "LateFeeRule",
    "LateFeeType",
    "days_overdue",
    "is_past_due",
    # Line items
    "LineAmounts",
    "LineItemCalculator",
    # Payments
    "PaymentApplication",
    "PaymentLedger",
    "PaymentState",
    "derive_payment_state",
    "remaining_balance",
    # Recurrence
    "DEFAULT_PAYMENT_TERMS_DAYS",
    "RecurrenceFrequency",
    "RecurrenceSchedule",
    "RecurrenceScheduler",
    "add_months",
    "advance",
    "parse_frequency",
    "payment_terms_days",
]
