"""
Tests for billing domain models and their constructor invariants.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from invoicing_kernel.exceptions import InvalidDateRangeError, InvalidRecurrenceError
from invoicing_modules.billing.models import (
    Client,
    Invoice,
    InvoiceStatus,
    PaymentStatus,
    check_invoice_invariants,
)


def _invoice(**overrides):
    fields = {
        "id": uuid4(),
        "invoice_number": "INV-001",
        "client_id": uuid4(),
        "issue_date": date(2024, 1, 1),
        "due_date": date(2024, 1, 31),
    }
    fields.update(overrides)
    return Invoice(**fields)


class TestInvoice:

    def test_defaults(self):
        invoice = _invoice()
        assert invoice.status == InvoiceStatus.DRAFT
        assert invoice.payment_status == PaymentStatus.PENDING
        assert invoice.currency == "INR"
        assert invoice.line_items == ()

    def test_due_date_on_issue_date_allowed(self):
        invoice = _invoice(due_date=date(2024, 1, 1))
        assert invoice.due_date == invoice.issue_date

    def test_due_before_issue_rejected(self):
        with pytest.raises(InvalidDateRangeError) as exc_info:
            _invoice(due_date=date(2023, 12, 31))
        assert exc_info.value.due_date == date(2023, 12, 31)

    def test_recurring_needs_frequency(self):
        with pytest.raises(InvalidRecurrenceError) as exc_info:
            _invoice(is_recurring=True, next_invoice_date=date(2024, 2, 1))
        assert exc_info.value.missing_field == "recurring_frequency"

    def test_recurring_needs_next_date(self):
        with pytest.raises(InvalidRecurrenceError) as exc_info:
            _invoice(is_recurring=True, recurring_frequency="monthly")
        assert exc_info.value.missing_field == "next_invoice_date"

    def test_remaining_never_negative(self):
        invoice = _invoice(total_amount=Decimal("100"), paid_amount=Decimal("120"))
        assert invoice.remaining_amount == Decimal("0")

    def test_is_frozen(self):
        invoice = _invoice()
        with pytest.raises(AttributeError):
            invoice.status = InvoiceStatus.SENT


class TestInvariantCheck:

    def test_collects_every_violation(self):
        result = check_invoice_invariants(
            uuid4(), date(2024, 2, 1), date(2024, 1, 1), True, None, None,
        )
        assert not result
        assert [e.field for e in result.errors] == [
            "due_date", "recurring_frequency", "next_invoice_date",
        ]

    def test_series_counters(self):
        result = check_invoice_invariants(
            uuid4(), date(2024, 1, 1), date(2024, 1, 31), False, None, None,
            recurring_count=-1, recurring_max_occurrences=0,
        )
        assert [e.field for e in result.errors] == [
            "recurring_count", "recurring_max_occurrences",
        ]

    def test_clean_invoice_passes(self):
        assert check_invoice_invariants(
            uuid4(), date(2024, 1, 1), date(2024, 1, 31), False, None, None,
        )


class TestClient:

    @pytest.mark.parametrize("country, domestic", [
        ("India", True), (" india ", True), ("Germany", False), ("", True),
    ])
    def test_is_domestic(self, country, domestic):
        assert Client(id=uuid4(), name="c", country=country).is_domestic is domestic
