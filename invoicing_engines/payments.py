"""
Module: invoicing_engines.payments
Responsibility:
    Payment status derivation and remaining balance for an invoice.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Payment amounts are strictly positive.
    - paid_amount grows by exactly the payment amount; it is never capped
      at the invoice total (overpayments are kept as recorded).
    - remaining = max(0, total - paid), so remaining never increases as
      payments are applied.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from invoicing_kernel.domain.values import Money
from invoicing_kernel.exceptions import InvalidPaymentError
from invoicing_kernel.logging_config import get_logger

logger = get_logger("engines.payments")


class PaymentState(str, Enum):
    PENDING = "pending"
    PARTIAL = "partial"
    PAID = "paid"


def derive_payment_state(paid: Decimal, total: Decimal) -> PaymentState:
    """
    Status from paid vs total.

    Nothing paid is pending, even on a zero-total invoice; settlement of a
    zero-total invoice happens through the invoice lifecycle, not payments.
    """
    if paid <= 0:
        return PaymentState.PENDING
    if paid >= total:
        return PaymentState.PAID
    return PaymentState.PARTIAL


def remaining_balance(paid: Decimal, total: Decimal) -> Decimal:
    """Outstanding amount, clamped at zero."""
    remaining = total - paid
    if remaining < 0:
        return Decimal("0")
    return remaining


@dataclass(frozen=True)
class PaymentApplication:
    """Outcome of applying one payment."""

    paid_amount: Money
    remaining: Money
    state: PaymentState
    overpayment: Money

    @property
    def is_settled(self) -> bool:
        return self.state == PaymentState.PAID


class PaymentLedger:
    """Apply payments against an invoice total."""

    def apply(self, total: Money, paid: Money, amount: Money) -> PaymentApplication:
        """
        Add ``amount`` to ``paid`` and re-derive the state.

        Raises:
            InvalidPaymentError: If amount <= 0.
        """
        if not amount.is_positive:
            logger.warning("payment_rejected", extra={
                "amount": str(amount.amount),
                "reason": "non_positive",
            })
            raise InvalidPaymentError(amount.amount)

        new_paid = paid + amount
        state = derive_payment_state(new_paid.amount, total.amount)
        overpayment = (new_paid - total).clamp_zero()

        if overpayment.is_positive:
            logger.warning("payment_overpaid", extra={
                "total": str(total.amount),
                "paid_amount": str(new_paid.amount),
                "overpayment": str(overpayment.amount),
            })

        return PaymentApplication(
            paid_amount=new_paid,
            remaining=Money.of(remaining_balance(new_paid.amount, total.amount), total.currency),
            state=state,
            overpayment=overpayment,
        )

    def balance_from_records(self, amounts: Iterable[Money], currency: str) -> Money:
        """Paid amount recomputed from the individual payment records."""
        return Money.sum(list(amounts), currency)
