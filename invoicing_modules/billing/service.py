"""
Billing Module Service - Orchestrates invoice operations over storage.

Thin glue layer that:
1. Reads invoice, client and rule snapshots through the repository
2. Runs the pure lifecycle operations (which call the engines)
3. Writes the results back

All computation lives in engines and ``lifecycle``.  This service owns the
transaction boundary: it commits on success and rolls back on failure.

Usage:
    service = InvoiceService(session, config, clock)
    invoice = service.create_invoice(
        invoice_number="INV-2024-001", client_id=client.id,
        issue_date=date(2024, 1, 1), line_items=[item],
    )
    invoice, record = service.record_payment(
        invoice.id, Decimal("4000"), date(2024, 1, 15), "bank_transfer",
    )
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from invoicing_engines.aging import AgingReport
from invoicing_engines.late_fees import LateFeeRule
from invoicing_kernel.domain.clock import Clock, SystemClock
from invoicing_kernel.logging_config import LogContext, get_logger
from invoicing_modules.billing import lifecycle
from invoicing_modules.billing.config import BillingConfig
from invoicing_modules.billing.models import (
    Client,
    Invoice,
    InvoiceStatus,
    LineItem,
    PaymentRecord,
)
from invoicing_modules.billing.reports import (
    GstSummary,
    HsnSummaryLine,
    receivables_aging,
    summarize_gst,
    summarize_hsn,
)
from invoicing_modules.billing.repository import (
    InvoiceRepository,
    SqlAlchemyInvoiceRepository,
)

logger = get_logger("modules.billing.service")


@dataclass(frozen=True)
class OverdueSweepResult:
    """Counts from one overdue pass."""
    as_of: date
    checked: int
    marked_overdue: int
    fees_applied: int
    fee_total: Decimal


class InvoiceService:
    """
    Orchestrates billing operations through the lifecycle functions.

    Transaction boundary: this service commits on success, rolls back on
    failure and re-raises.
    """

    def __init__(
        self,
        session: Session,
        config: BillingConfig,
        clock: Clock | None = None,
        repository: InvoiceRepository | None = None,
    ):
        self._session = session
        self._config = config
        self._clock = clock or SystemClock()
        self._repo = repository or SqlAlchemyInvoiceRepository(session)

    @property
    def config(self) -> BillingConfig:
        return self._config

    def _commit(self, event: str, **fields) -> None:
        self._session.commit()
        logger.info(event, extra=fields)

    def _recalculate(self, invoice: Invoice, client: Client) -> Invoice:
        return lifecycle.recalculate(
            invoice,
            client,
            self._config.seller_region_code,
            policy=self._config.unregistered_client_policy,
            clock=self._clock,
        )

    # =========================================================================
    # Reference data
    # =========================================================================

    def register_client(self, client: Client) -> Client:
        try:
            self._repo.save_client(client)
            self._commit("billing_client_registered_committed", client_id=str(client.id))
            return client
        except Exception:
            self._session.rollback()
            raise

    def register_late_fee_rules(
        self, rules: Sequence[LateFeeRule] | None = None,
    ) -> tuple[LateFeeRule, ...]:
        """Persist ``rules`` (the configured rules by default)."""
        rules = tuple(rules) if rules is not None else self._config.late_fee_rules
        try:
            for rule in rules:
                self._repo.save_late_fee_rule(rule)
            self._commit("billing_late_fee_rules_committed", rule_count=len(rules))
            return rules
        except Exception:
            self._session.rollback()
            raise

    # =========================================================================
    # Invoices
    # =========================================================================

    def create_invoice(
        self,
        invoice_number: str,
        client_id: UUID,
        issue_date: date,
        line_items: Sequence[LineItem],
        **options,
    ) -> Invoice:
        """
        Create and total a draft invoice.

        ``options`` are passed to ``lifecycle.draft_invoice`` (due_date,
        discount, recurrence settings, notes, ...).
        """
        with LogContext.bind(client_id=client_id):
            try:
                client = self._repo.get_client(client_id)
                options.setdefault("currency", self._config.currency)
                options.setdefault("payment_terms", client.payment_terms or self._config.default_payment_terms)
                invoice = lifecycle.draft_invoice(
                    invoice_number,
                    client,
                    issue_date,
                    line_items,
                    self._config.seller_region_code,
                    policy=self._config.unregistered_client_policy,
                    clock=self._clock,
                    **options,
                )
                self._repo.save_invoice(invoice)
                self._commit(
                    "billing_create_invoice_committed",
                    invoice_id=str(invoice.id),
                    invoice_number=invoice_number,
                    total_amount=str(invoice.total_amount),
                )
                return invoice
            except Exception:
                self._session.rollback()
                raise

    def get_invoice(self, invoice_id: UUID) -> Invoice:
        return self._repo.get_invoice(invoice_id)

    def recalculate(self, invoice_id: UUID) -> Invoice:
        with LogContext.bind(invoice_id=invoice_id):
            try:
                invoice = self._repo.get_invoice(invoice_id)
                client = self._repo.get_client(invoice.client_id)
                updated = self._recalculate(invoice, client)
                self._repo.save_invoice(updated)
                self._commit(
                    "billing_recalculate_committed",
                    invoice_id=str(invoice_id),
                    total_amount=str(updated.total_amount),
                )
                return updated
            except Exception:
                self._session.rollback()
                raise

    def add_line_item(self, invoice_id: UUID, item: LineItem) -> Invoice:
        with LogContext.bind(invoice_id=invoice_id):
            try:
                invoice = self._repo.get_invoice(invoice_id)
                client = self._repo.get_client(invoice.client_id)
                updated = lifecycle.add_line_item(
                    invoice, item, client, self._config.seller_region_code,
                    policy=self._config.unregistered_client_policy,
                    clock=self._clock,
                )
                self._repo.save_invoice(updated)
                self._commit("billing_add_line_item_committed", invoice_id=str(invoice_id))
                return updated
            except Exception:
                self._session.rollback()
                raise

    def remove_line_item(self, invoice_id: UUID, line_id: UUID) -> Invoice:
        with LogContext.bind(invoice_id=invoice_id):
            try:
                invoice = self._repo.get_invoice(invoice_id)
                client = self._repo.get_client(invoice.client_id)
                updated = lifecycle.remove_line_item(
                    invoice, line_id, client, self._config.seller_region_code,
                    policy=self._config.unregistered_client_policy,
                    clock=self._clock,
                )
                self._repo.save_invoice(updated)
                self._commit("billing_remove_line_item_committed", invoice_id=str(invoice_id))
                return updated
            except Exception:
                self._session.rollback()
                raise

    def send_invoice(self, invoice_id: UUID) -> Invoice:
        with LogContext.bind(invoice_id=invoice_id):
            try:
                updated = lifecycle.mark_sent(
                    self._repo.get_invoice(invoice_id), clock=self._clock,
                )
                self._repo.save_invoice(updated)
                self._commit("billing_send_invoice_committed", invoice_id=str(invoice_id))
                return updated
            except Exception:
                self._session.rollback()
                raise

    def cancel_invoice(self, invoice_id: UUID) -> Invoice:
        with LogContext.bind(invoice_id=invoice_id):
            try:
                updated = lifecycle.cancel(
                    self._repo.get_invoice(invoice_id), clock=self._clock,
                )
                self._repo.save_invoice(updated)
                self._commit("billing_cancel_invoice_committed", invoice_id=str(invoice_id))
                return updated
            except Exception:
                self._session.rollback()
                raise

    # =========================================================================
    # Payments
    # =========================================================================

    def record_payment(
        self,
        invoice_id: UUID,
        amount: Decimal,
        payment_date: date,
        method: str,
        reference: str | None = None,
    ) -> tuple[Invoice, PaymentRecord]:
        with LogContext.bind(invoice_id=invoice_id):
            try:
                invoice = self._repo.get_invoice(invoice_id)
                updated, record = lifecycle.record_payment(
                    invoice, amount, payment_date, method, reference,
                    clock=self._clock,
                )
                self._repo.save_invoice(updated)
                self._repo.append_payment(record)
                self._commit(
                    "billing_record_payment_committed",
                    invoice_id=str(invoice_id),
                    payment_id=str(record.id),
                    payment_status=updated.payment_status.value,
                )
                return updated, record
            except Exception:
                self._session.rollback()
                raise

    def payment_history(self, invoice_id: UUID) -> list[PaymentRecord]:
        return self._repo.list_payments(invoice_id)

    def reconcile_paid_amount(self, invoice_id: UUID) -> Decimal:
        """Paid amount recomputed from the stored payment records."""
        invoice = self._repo.get_invoice(invoice_id)
        return lifecycle.ledger_balance(self._repo.list_payments(invoice_id), invoice.currency)

    # =========================================================================
    # Overdue and late fees
    # =========================================================================

    def _late_fee_pass(
        self,
        invoice: Invoice,
        rules: Sequence[LateFeeRule],
        as_of: date,
    ) -> lifecycle.LateFeeRun:
        existing = self._repo.list_late_fee_applications(invoice.id)
        run = lifecycle.apply_late_fees(invoice, rules, existing, as_of, clock=self._clock)
        for application in run.new_applications:
            self._repo.append_late_fee_application(application)
        return run

    def apply_late_fees(self, invoice_id: UUID, as_of: date | None = None) -> lifecycle.LateFeeRun:
        as_of = as_of or self._clock.today()
        with LogContext.bind(invoice_id=invoice_id):
            try:
                invoice = self._repo.get_invoice(invoice_id)
                rules = self._repo.list_active_late_fee_rules()
                run = self._late_fee_pass(invoice, rules, as_of)
                if run.new_applications:
                    self._repo.save_invoice(run.invoice)
                self._commit(
                    "billing_apply_late_fees_committed",
                    invoice_id=str(invoice_id),
                    fee_count=len(run.new_applications),
                )
                return run
            except Exception:
                self._session.rollback()
                raise

    def overdue_sweep(self, as_of: date | None = None) -> OverdueSweepResult:
        """
        Mark past-due sent invoices overdue and apply late fees to every
        overdue invoice, in one transaction.
        """
        as_of = as_of or self._clock.today()
        try:
            invoices = self._repo.list_invoices(
                statuses=(InvoiceStatus.SENT, InvoiceStatus.OVERDUE),
            )
            rules = self._repo.list_active_late_fee_rules()
            marked = 0
            fee_count = 0
            fee_total = Decimal("0")

            for invoice in invoices:
                with LogContext.bind(invoice_id=invoice.id):
                    updated = lifecycle.mark_overdue(invoice, as_of, clock=self._clock)
                    if updated.status != invoice.status:
                        marked += 1
                    run = self._late_fee_pass(updated, rules, as_of)
                    fee_count += len(run.new_applications)
                    fee_total += run.fees_applied
                    if run.invoice is not invoice:
                        self._repo.save_invoice(run.invoice)

            result = OverdueSweepResult(
                as_of=as_of,
                checked=len(invoices),
                marked_overdue=marked,
                fees_applied=fee_count,
                fee_total=fee_total,
            )
            self._commit(
                "billing_overdue_sweep_committed",
                as_of=as_of.isoformat(),
                checked=result.checked,
                marked_overdue=result.marked_overdue,
                fees_applied=result.fees_applied,
                fee_total=str(result.fee_total),
            )
            return result
        except Exception:
            self._session.rollback()
            raise

    # =========================================================================
    # Recurring invoices
    # =========================================================================

    def generate_next(self, invoice_id: UUID, invoice_number: str) -> Invoice | None:
        """
        Create the next draft invoice of a recurring series.

        Returns None when the invoice is not recurring or its series has
        ended.  The new invoice carries the series forward and the source
        stops recurring in the same transaction, so a second call on the
        same source returns None.
        """
        with LogContext.bind(invoice_id=invoice_id):
            try:
                source = self._repo.get_invoice(invoice_id)
                template = lifecycle.generate_next(source)
                if template is None:
                    return None
                client = self._repo.get_client(template.client_id)
                invoice = lifecycle.materialize(template, invoice_number, clock=self._clock)
                invoice = self._recalculate(invoice, client)
                self._repo.save_invoice(invoice)
                self._repo.save_invoice(lifecycle.hand_off_series(source, clock=self._clock))
                self._commit(
                    "billing_generate_next_committed",
                    source_invoice_id=str(invoice_id),
                    new_invoice_id=str(invoice.id),
                    issue_date=invoice.issue_date.isoformat(),
                )
                return invoice
            except Exception:
                self._session.rollback()
                raise

    def cancel_recurring(self, invoice_id: UUID) -> Invoice:
        """Stop future generation from this invoice's series."""
        with LogContext.bind(invoice_id=invoice_id):
            try:
                updated = lifecycle.cancel_recurring(
                    self._repo.get_invoice(invoice_id), clock=self._clock,
                )
                self._repo.save_invoice(updated)
                self._commit("billing_cancel_recurring_committed", invoice_id=str(invoice_id))
                return updated
            except Exception:
                self._session.rollback()
                raise

    # =========================================================================
    # Reports
    # =========================================================================

    def gst_summary(
        self,
        period_start: date | None = None,
        period_end: date | None = None,
    ) -> GstSummary:
        return summarize_gst(
            self._repo.list_invoices(),
            currency=self._config.currency,
            period_start=period_start,
            period_end=period_end,
        )

    def hsn_summary(
        self,
        period_start: date | None = None,
        period_end: date | None = None,
    ) -> tuple[HsnSummaryLine, ...]:
        return summarize_hsn(
            self._repo.list_invoices(),
            currency=self._config.currency,
            period_start=period_start,
            period_end=period_end,
        )

    def receivables_aging(self, as_of: date | None = None) -> AgingReport:
        return receivables_aging(
            self._repo.list_invoices(),
            as_of or self._clock.today(),
            currency=self._config.currency,
        )
