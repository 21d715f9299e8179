"""
Billing Workflows.

State machine for the invoice lifecycle:

    draft -> sent (manual) -> overdue (explicit trigger) -> paid
    cancelled is terminal; nothing leaves paid or cancelled.

A full payment settles an invoice from any non-cancelled state, including
draft.
"""

from dataclasses import dataclass

from invoicing_kernel.exceptions import InvalidTransitionError
from invoicing_kernel.logging_config import get_logger
from invoicing_modules.billing.models import InvoiceStatus

logger = get_logger("modules.billing.workflows")


@dataclass(frozen=True)
class Guard:
    """A condition for a transition."""
    name: str
    description: str


@dataclass(frozen=True)
class Transition:
    """A valid state transition."""
    from_state: str
    to_state: str
    action: str
    guard: Guard | None = None


@dataclass(frozen=True)
class Workflow:
    """A state machine definition."""
    name: str
    description: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[str, ...] = ()

    def find(self, from_state: str, to_state: str) -> Transition | None:
        for t in self.transitions:
            if t.from_state == from_state and t.to_state == to_state:
                return t
        return None

    def allows(self, from_state: str, to_state: str) -> bool:
        return self.find(from_state, to_state) is not None


# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

PAST_DUE = Guard(
    name="past_due",
    description="As-of date is after the due date and the invoice is unpaid",
)

BALANCE_ZERO = Guard(
    name="balance_zero",
    description="Paid amount covers the invoice total",
)


# -----------------------------------------------------------------------------
# Invoice Workflow
# -----------------------------------------------------------------------------

INVOICE_WORKFLOW = Workflow(
    name="gst_invoice",
    description="GST invoice lifecycle",
    initial_state=InvoiceStatus.DRAFT.value,
    states=tuple(s.value for s in InvoiceStatus),
    transitions=(
        Transition("draft", "sent", action="send"),
        Transition("draft", "cancelled", action="cancel"),
        Transition("draft", "paid", action="apply_payment", guard=BALANCE_ZERO),
        Transition("sent", "overdue", action="mark_overdue", guard=PAST_DUE),
        Transition("sent", "paid", action="apply_payment", guard=BALANCE_ZERO),
        Transition("sent", "cancelled", action="cancel"),
        Transition("overdue", "paid", action="apply_payment", guard=BALANCE_ZERO),
        Transition("overdue", "cancelled", action="cancel"),
    ),
    terminal_states=(InvoiceStatus.PAID.value, InvoiceStatus.CANCELLED.value),
)

logger.info(
    "billing_invoice_workflow_registered",
    extra={
        "workflow_name": INVOICE_WORKFLOW.name,
        "state_count": len(INVOICE_WORKFLOW.states),
        "transition_count": len(INVOICE_WORKFLOW.transitions),
        "initial_state": INVOICE_WORKFLOW.initial_state,
    },
)


def require_transition(
    invoice_id: str,
    from_status: InvoiceStatus,
    to_status: InvoiceStatus,
    workflow: Workflow = INVOICE_WORKFLOW,
) -> Transition:
    """
    Look up the transition or raise.

    Raises:
        InvalidTransitionError: If the workflow has no such edge.
    """
    transition = workflow.find(from_status.value, to_status.value)
    if transition is None:
        logger.warning("billing_transition_rejected", extra={
            "invoice_id": invoice_id,
            "from_status": from_status.value,
            "to_status": to_status.value,
        })
        raise InvalidTransitionError(invoice_id, from_status.value, to_status.value)
    return transition
