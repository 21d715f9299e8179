"""
Tests for InvoiceService: persistence, transaction boundaries and sweeps.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy.exc import IntegrityError

from invoicing_kernel.exceptions import (
    ClientNotFoundError,
    InvalidPaymentError,
    InvoiceCancelledError,
    InvoiceNotFoundError,
    InvoicePaidError,
)
from invoicing_modules.billing.models import InvoiceStatus, PaymentStatus
from tests.conftest import INTER_CLIENT_ID, INTRA_CLIENT_ID


@pytest.fixture
def invoice(service, consulting_line, jan_first):
    return service.create_invoice("INV-100", INTRA_CLIENT_ID, jan_first, [consulting_line])


class TestCreateInvoice:

    def test_persisted_with_totals(self, service, invoice):
        stored = service.get_invoice(invoice.id)
        assert stored.total_amount == Decimal("47200.00")
        assert stored.due_date == date(2024, 1, 31)
        assert stored.status == InvoiceStatus.DRAFT

    def test_unknown_client(self, service, consulting_line, jan_first):
        with pytest.raises(ClientNotFoundError):
            service.create_invoice("INV-X", uuid4(), jan_first, [consulting_line])

    def test_duplicate_number_rolls_back(self, service, invoice, consulting_line, jan_first):
        with pytest.raises(IntegrityError):
            service.create_invoice("INV-100", INTER_CLIENT_ID, jan_first, [consulting_line])
        assert [i.id for i in service._repo.list_invoices()] == [invoice.id]

    def test_commit_logged(self, service, consulting_line, jan_first, captured_logs):
        service.create_invoice("INV-101", INTER_CLIENT_ID, jan_first, [consulting_line])
        events = [r for r in captured_logs() if r["message"] == "billing_create_invoice_committed"]
        assert events[0]["invoice_number"] == "INV-101"
        assert events[0]["client_id"] == str(INTER_CLIENT_ID)

    def test_missing_invoice(self, service):
        with pytest.raises(InvoiceNotFoundError):
            service.get_invoice(uuid4())


class TestLineItemEdits:

    def test_add_and_remove(self, service, invoice):
        from invoicing_modules.billing.lifecycle import create_line_item

        extra = create_line_item("Workshop", Decimal("2"), Decimal("500"), Decimal("18"))
        added = service.add_line_item(invoice.id, extra)
        assert added.total_amount == Decimal("48380.00")

        removed = service.remove_line_item(invoice.id, extra.id)
        assert removed.total_amount == Decimal("47200.00")
        assert len(service.get_invoice(invoice.id).line_items) == 1

    def test_recalculate_is_stable(self, service, invoice):
        assert service.recalculate(invoice.id).total_amount == invoice.total_amount

    def test_paid_invoice_is_frozen(self, service, invoice):
        from invoicing_modules.billing.lifecycle import create_line_item

        service.send_invoice(invoice.id)
        service.record_payment(invoice.id, Decimal("47200"), date(2024, 1, 10), "neft")
        extra = create_line_item("Workshop", Decimal("1"), Decimal("1000"), Decimal("18"))
        with pytest.raises(InvoicePaidError):
            service.add_line_item(invoice.id, extra)

        stored = service.get_invoice(invoice.id)
        assert stored.total_amount == Decimal("47200.00")
        assert stored.payment_status == PaymentStatus.PAID
        assert len(stored.line_items) == 1

        run = service.apply_late_fees(invoice.id, as_of=date(2025, 6, 1))
        assert run.new_applications == ()


class TestPayments:

    def test_payment_history(self, service, invoice):
        service.send_invoice(invoice.id)
        service.record_payment(invoice.id, Decimal("7200"), date(2024, 1, 10), "neft", "N1")
        updated, _ = service.record_payment(invoice.id, Decimal("40000"), date(2024, 1, 20), "neft")

        assert updated.status == InvoiceStatus.PAID
        history = service.payment_history(invoice.id)
        assert [r.amount for r in history] == [Decimal("7200"), Decimal("40000")]
        assert service.reconcile_paid_amount(invoice.id) == Decimal("47200")

    def test_rejected_payment_leaves_invoice_untouched(self, service, invoice):
        with pytest.raises(InvalidPaymentError):
            service.record_payment(invoice.id, Decimal("-1"), date(2024, 1, 10), "cash")
        stored = service.get_invoice(invoice.id)
        assert stored.paid_amount == Decimal("0")
        assert service.payment_history(invoice.id) == []

    def test_cancelled_invoice_rejects_payment(self, service, invoice):
        service.cancel_invoice(invoice.id)
        with pytest.raises(InvoiceCancelledError):
            service.record_payment(invoice.id, Decimal("10"), date(2024, 1, 10), "cash")
        assert service.get_invoice(invoice.id).payment_status == PaymentStatus.PENDING


class TestOverdueAndLateFees:

    def test_sweep_marks_and_charges_once(self, service, invoice):
        service.send_invoice(invoice.id)

        first = service.overdue_sweep(as_of=date(2024, 3, 1))
        assert first.checked == 1
        assert first.marked_overdue == 1
        assert first.fees_applied == 1
        assert first.fee_total == Decimal("100.00")

        stored = service.get_invoice(invoice.id)
        assert stored.status == InvoiceStatus.OVERDUE
        assert stored.total_amount == Decimal("47300.00")

        second = service.overdue_sweep(as_of=date(2024, 4, 1))
        assert second.marked_overdue == 0
        assert second.fees_applied == 0
        assert service.get_invoice(invoice.id).total_amount == Decimal("47300.00")

    def test_sweep_ignores_drafts(self, service, invoice):
        result = service.overdue_sweep(as_of=date(2024, 6, 1))
        assert result.checked == 0
        assert service.get_invoice(invoice.id).status == InvoiceStatus.DRAFT

    def test_apply_late_fees_within_grace(self, service, invoice):
        service.send_invoice(invoice.id)
        run = service.apply_late_fees(invoice.id, as_of=date(2024, 2, 5))
        assert run.new_applications == ()

    def test_apply_late_fees_defaults_to_clock(self, service, invoice, clock):
        service.send_invoice(invoice.id)
        clock.advance_days(60)
        run = service.apply_late_fees(invoice.id)
        assert run.fees_applied == Decimal("100.00")

    def test_payment_after_late_fee(self, service, invoice):
        service.send_invoice(invoice.id)
        service.overdue_sweep(as_of=date(2024, 3, 1))
        updated, _ = service.record_payment(
            invoice.id, Decimal("47300"), date(2024, 3, 5), "neft",
        )
        assert updated.status == InvoiceStatus.PAID
        assert updated.remaining_amount == Decimal("0")


class TestRecurring:

    def test_generate_next(self, service, consulting_line, jan_first):
        source = service.create_invoice(
            "INV-R1", INTRA_CLIENT_ID, jan_first, [consulting_line],
            recurring_frequency="monthly", next_invoice_date=date(2024, 1, 31),
        )
        created = service.generate_next(source.id, "INV-R2")

        assert created.issue_date == date(2024, 2, 29)
        assert created.total_amount == Decimal("47200.00")
        assert service.get_invoice(created.id).invoice_number == "INV-R2"
        assert created.recurring_count == 1
        assert created.is_recurring
        stored_source = service.get_invoice(source.id)
        assert not stored_source.is_recurring
        assert stored_source.next_invoice_date == date(2024, 1, 31)

    def test_generate_next_twice_on_same_source(self, service, consulting_line, jan_first):
        source = service.create_invoice(
            "INV-R1", INTRA_CLIENT_ID, jan_first, [consulting_line],
            recurring_frequency="monthly", next_invoice_date=date(2024, 1, 31),
        )
        first = service.generate_next(source.id, "INV-R2")
        assert service.generate_next(source.id, "INV-R2b") is None

        second = service.generate_next(first.id, "INV-R3")
        assert second.issue_date == date(2024, 4, 29)
        assert second.recurring_count == 2

    def test_series_stops_at_max_occurrences(self, service, consulting_line, jan_first):
        source = service.create_invoice(
            "INV-R1", INTRA_CLIENT_ID, jan_first, [consulting_line],
            recurring_frequency="weekly", next_invoice_date=date(2024, 1, 8),
            recurring_max_occurrences=2,
        )
        first = service.generate_next(source.id, "INV-R2")
        second = service.generate_next(first.id, "INV-R3")
        assert second.recurring_count == 2
        assert service.generate_next(second.id, "INV-R4") is None

    def test_cancel_recurring(self, service, consulting_line, jan_first):
        source = service.create_invoice(
            "INV-R1", INTRA_CLIENT_ID, jan_first, [consulting_line],
            recurring_frequency="monthly", next_invoice_date=date(2024, 1, 31),
        )
        stopped = service.cancel_recurring(source.id)
        assert not stopped.is_recurring
        assert stopped.status == InvoiceStatus.DRAFT
        assert service.generate_next(source.id, "INV-R2") is None

    def test_non_recurring_returns_none(self, service, invoice):
        assert service.generate_next(invoice.id, "INV-NEXT") is None


class TestReports:

    def test_gst_summary_and_aging(self, service, invoice, consulting_line, jan_first):
        other = service.create_invoice("INV-200", INTER_CLIENT_ID, jan_first, [consulting_line])
        service.send_invoice(invoice.id)
        service.send_invoice(other.id)
        service.record_payment(other.id, Decimal("47200"), date(2024, 1, 5), "neft")

        summary = service.gst_summary()
        assert summary.invoice_count == 2
        assert summary.cgst == Decimal("3600.00")
        assert summary.igst == Decimal("7200.00")

        report = service.receivables_aging(as_of=date(2024, 3, 15))
        assert report.item_count == 1
        assert report.total_by_bucket()["31-60"].amount == Decimal("47200.00")

    def test_hsn_summary(self, service, invoice, consulting_line, jan_first):
        from invoicing_modules.billing.lifecycle import create_line_item

        hosting = create_line_item("Hosting", Decimal("1"), Decimal("5000"), Decimal("18"))
        other = service.create_invoice(
            "INV-200", INTER_CLIENT_ID, jan_first, [consulting_line, hosting],
        )
        service.send_invoice(invoice.id)
        service.send_invoice(other.id)

        rows = {row.hsn_sac_code: row for row in service.hsn_summary()}
        assert set(rows) == {"998311", "998314"}
        consulting = rows["998311"]
        assert consulting.quantity == Decimal("80")
        assert consulting.taxable_value == Decimal("80000.00")
        assert consulting.cgst == Decimal("3600.00")
        assert consulting.sgst == Decimal("3600.00")
        assert consulting.igst == Decimal("7200.00")
        assert rows["998314"].igst == Decimal("900.00")
        assert rows["998314"].description == "Hosting"
