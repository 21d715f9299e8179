"""
Module: invoicing_engines.line_items
Responsibility:
    Extended price and tax amount for a single invoice line.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - extended_price = quantity * unit_price, full precision.
    - tax_amount = extended_price * tax_rate / 100, full precision.
    - Rounding is deferred to the aggregator so that an invoice total is
      rounded once, not once per line.

Failure modes:
    - InvalidLineItemError for a negative quantity or unit price, or a tax
      rate outside [0, 100].  The offending field is named on the error.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from invoicing_kernel.domain.values import Money
from invoicing_kernel.exceptions import InvalidLineItemError
from invoicing_kernel.logging_config import get_logger

logger = get_logger("engines.line_items")

MAX_TAX_RATE = Decimal("100")


@dataclass(frozen=True)
class LineAmounts:
    """Unrounded amounts for one line."""

    extended_price: Money
    tax_amount: Money

    @property
    def gross(self) -> Money:
        return self.extended_price + self.tax_amount


def validate_line_inputs(
    quantity: Decimal,
    unit_price: Decimal,
    tax_rate: Decimal,
) -> None:
    """
    Reject out-of-range line inputs.

    Raises:
        InvalidLineItemError: naming the first offending field.
    """
    if quantity < 0:
        logger.warning("line_item_rejected", extra={
            "field": "quantity", "value": str(quantity),
        })
        raise InvalidLineItemError("quantity", quantity)
    if unit_price < 0:
        logger.warning("line_item_rejected", extra={
            "field": "unit_price", "value": str(unit_price),
        })
        raise InvalidLineItemError("unit_price", unit_price)
    if tax_rate < 0 or tax_rate > MAX_TAX_RATE:
        logger.warning("line_item_rejected", extra={
            "field": "tax_rate", "value": str(tax_rate),
        })
        raise InvalidLineItemError(
            "tax_rate", tax_rate, "tax rate must be within [0, 100]",
        )


class LineItemCalculator:
    """
    Compute line amounts.

    Contract:
        Pure; identical inputs give identical outputs.
    Non-goals:
        - Does not resolve the CGST/SGST/IGST split (see gst.TaxRateResolver).
    """

    def compute(
        self,
        quantity: Decimal,
        unit_price: Decimal,
        tax_rate: Decimal,
        currency: str = "INR",
    ) -> LineAmounts:
        validate_line_inputs(quantity, unit_price, tax_rate)

        extended = Money.of(quantity * unit_price, currency)
        return LineAmounts(
            extended_price=extended,
            tax_amount=extended.percent(tax_rate),
        )
