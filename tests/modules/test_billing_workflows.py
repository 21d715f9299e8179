"""
Tests for the invoice state machine.
"""

import pytest

from invoicing_kernel.exceptions import InvalidTransitionError
from invoicing_modules.billing.models import InvoiceStatus
from invoicing_modules.billing.workflows import (
    BALANCE_ZERO,
    INVOICE_WORKFLOW,
    PAST_DUE,
    require_transition,
)


class TestInvoiceWorkflow:

    def test_initial_state_is_draft(self):
        assert INVOICE_WORKFLOW.initial_state == "draft"

    def test_every_status_is_a_state(self):
        assert set(INVOICE_WORKFLOW.states) == {s.value for s in InvoiceStatus}

    @pytest.mark.parametrize("from_state, to_state", [
        ("draft", "sent"),
        ("draft", "cancelled"),
        ("draft", "paid"),
        ("sent", "overdue"),
        ("sent", "paid"),
        ("overdue", "paid"),
        ("overdue", "cancelled"),
    ])
    def test_allowed(self, from_state, to_state):
        assert INVOICE_WORKFLOW.allows(from_state, to_state)

    @pytest.mark.parametrize("from_state, to_state", [
        ("draft", "overdue"),
        ("sent", "draft"),
        ("overdue", "sent"),
    ])
    def test_forbidden(self, from_state, to_state):
        assert not INVOICE_WORKFLOW.allows(from_state, to_state)

    @pytest.mark.parametrize("terminal", ["paid", "cancelled"])
    def test_terminal_states_have_no_exits(self, terminal):
        assert terminal in INVOICE_WORKFLOW.terminal_states
        assert not any(t.from_state == terminal for t in INVOICE_WORKFLOW.transitions)

    def test_guards(self):
        assert INVOICE_WORKFLOW.find("sent", "overdue").guard == PAST_DUE
        assert INVOICE_WORKFLOW.find("overdue", "paid").guard == BALANCE_ZERO
        assert INVOICE_WORKFLOW.find("draft", "sent").guard is None


class TestRequireTransition:

    def test_returns_transition(self):
        transition = require_transition("inv-1", InvoiceStatus.DRAFT, InvoiceStatus.SENT)
        assert transition.action == "send"

    def test_raises_with_context(self):
        with pytest.raises(InvalidTransitionError) as exc_info:
            require_transition("inv-1", InvoiceStatus.PAID, InvoiceStatus.SENT)
        assert exc_info.value.from_status == "paid"
        assert exc_info.value.to_status == "sent"
