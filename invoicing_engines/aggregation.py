"""
Module: invoicing_engines.aggregation
Responsibility:
    Roll invoice lines up into subtotal, GST breakdown, discount, late fees
    and grand total.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Lines are summed at full precision; each reported amount is rounded
      exactly once, half-up to 2 dp.
    - Intra-state: cgst + sgst == total_tax after rounding.  CGST is
      rounded and SGST takes the remainder so the halves never drift from
      the rounded total by a paisa.
    - Inter-state: igst == total_tax.
    - A fixed discount amount takes precedence over a percentage; the
      discount never exceeds subtotal + tax.
    - total = subtotal + tax - discount + late fees, floored at zero.

Failure modes:
    - InvalidLineItemError from the line calculator.
    - ValueError for a negative discount or a percentage above 100.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol

from invoicing_engines.gst import SupplyType, TaxRateResolver, TaxRateSplit
from invoicing_engines.line_items import LineAmounts, LineItemCalculator
from invoicing_engines.tracer import traced_engine
from invoicing_kernel.domain.values import Money, round_amount
from invoicing_kernel.logging_config import get_logger

logger = get_logger("engines.aggregation")

_HUNDRED = Decimal("100")


class PricedLine(Protocol):
    """Anything carrying the three priced fields of an invoice line."""

    quantity: Decimal
    unit_price: Decimal
    tax_rate: Decimal


@dataclass(frozen=True)
class LineInput:
    quantity: Decimal
    unit_price: Decimal
    tax_rate: Decimal


@dataclass(frozen=True)
class RateBucket:
    """Taxable value and tax for one nominal GST rate (rounded for display)."""

    rate: Decimal
    split: TaxRateSplit
    taxable_value: Money
    tax_amount: Money


@dataclass(frozen=True)
class TaxBreakdownResult:
    """
    Invoice-level GST breakdown.

    Component rates and amounts are None when the component does not apply
    to the supply (e.g. no IGST on an intra-state invoice).
    """

    supply_type: SupplyType
    total_tax: Money
    cgst_rate: Decimal | None = None
    sgst_rate: Decimal | None = None
    igst_rate: Decimal | None = None
    cgst_amount: Money | None = None
    sgst_amount: Money | None = None
    igst_amount: Money | None = None


@dataclass(frozen=True)
class InvoiceTotals:
    subtotal: Money
    tax: TaxBreakdownResult
    discount: Money
    late_fees: Money
    total: Money
    rate_buckets: tuple[RateBucket, ...]
    line_amounts: tuple[LineAmounts, ...]


def resolve_discount(
    gross: Money,
    discount_percentage: Decimal | None,
    discount_amount: Decimal | None,
) -> Money:
    """
    Rounded discount against ``gross`` (subtotal + tax, unrounded).

    Raises:
        ValueError: For negative inputs or a percentage above 100.
    """
    if discount_amount is not None and discount_amount < 0:
        raise ValueError(f"Discount amount cannot be negative: {discount_amount}")
    if discount_percentage is not None and (
        discount_percentage < 0 or discount_percentage > _HUNDRED
    ):
        raise ValueError(f"Discount percentage must be within [0, 100]: {discount_percentage}")

    if discount_amount is not None and discount_amount > 0:
        discount = Money.of(discount_amount, gross.currency)
    elif discount_percentage is not None and discount_percentage > 0:
        discount = gross.percent(discount_percentage)
    else:
        return Money.zero(gross.currency)

    discount = discount.round()
    ceiling = gross.round()
    if discount > ceiling:
        return ceiling
    return discount


def _effective_rate(component: Decimal, base: Decimal) -> Decimal:
    if base == 0:
        return Decimal("0")
    return round_amount(component / base * _HUNDRED)


class InvoiceAggregator:
    """
    Compute invoice totals from priced lines.

    Contract:
        Pure; the resolver and line calculator are injected so the
        unregistered-client policy is decided by the caller.
    """

    def __init__(
        self,
        resolver: TaxRateResolver | None = None,
        calculator: LineItemCalculator | None = None,
    ):
        self.resolver = resolver or TaxRateResolver()
        self.calculator = calculator or LineItemCalculator()

    @traced_engine(
        "aggregation", "1.0",
        fingerprint_fields=(
            "lines", "client_region_code", "seller_region_code",
            "discount_percentage", "discount_amount", "late_fees",
        ),
    )
    def aggregate(
        self,
        *,
        lines: Sequence[PricedLine],
        client_region_code: str | None,
        seller_region_code: str,
        currency: str = "INR",
        discount_percentage: Decimal | None = None,
        discount_amount: Decimal | None = None,
        late_fees: Decimal = Decimal("0"),
    ) -> InvoiceTotals:
        supply = self.resolver.supply_type(client_region_code, seller_region_code)

        # Validate and price every line before anything is summed.
        priced: list[tuple[Decimal, LineAmounts]] = []
        for line in lines:
            amounts = self.calculator.compute(
                line.quantity, line.unit_price, line.tax_rate, currency,
            )
            priced.append((line.tax_rate, amounts))

        bases: dict[Decimal, Money] = {}
        for rate, amounts in priced:
            bases[rate] = bases.get(rate, Money.zero(currency)) + amounts.extended_price

        splits: dict[Decimal, TaxRateSplit] = {
            rate: self.resolver.resolve(client_region_code, seller_region_code, rate)
            for rate in bases
        }

        exact_subtotal = Money.sum(list(bases.values()), currency)
        exact_cgst = Money.zero(currency)
        exact_sgst = Money.zero(currency)
        exact_igst = Money.zero(currency)
        buckets: list[RateBucket] = []
        for rate in sorted(bases):
            base = bases[rate]
            split = splits[rate]
            if split.cgst is not None:
                exact_cgst = exact_cgst + base.percent(split.cgst)
            if split.sgst is not None:
                exact_sgst = exact_sgst + base.percent(split.sgst)
            if split.igst is not None:
                exact_igst = exact_igst + base.percent(split.igst)
            buckets.append(RateBucket(
                rate=rate,
                split=split,
                taxable_value=base.round(),
                tax_amount=base.percent(split.total_rate).round(),
            ))

        exact_tax = exact_cgst + exact_sgst + exact_igst
        subtotal = exact_subtotal.round()
        total_tax = exact_tax.round()
        tax = self._breakdown(
            supply, splits, exact_subtotal, exact_cgst, exact_sgst, exact_igst, total_tax,
        )

        discount = resolve_discount(
            exact_subtotal + exact_tax, discount_percentage, discount_amount,
        )
        fees = Money.of(late_fees, currency).round()
        total = (subtotal + total_tax - discount + fees).clamp_zero().round()

        line_amounts = tuple(
            LineAmounts(
                extended_price=amounts.extended_price,
                tax_amount=amounts.extended_price.percent(splits[rate].total_rate),
            )
            for rate, amounts in priced
        )

        logger.info("invoice_totals_computed", extra={
            "line_count": len(priced),
            "supply_type": supply.value,
            "subtotal": str(subtotal.amount),
            "total_tax": str(total_tax.amount),
            "discount": str(discount.amount),
            "late_fees": str(fees.amount),
            "total": str(total.amount),
        })

        return InvoiceTotals(
            subtotal=subtotal,
            tax=tax,
            discount=discount,
            late_fees=fees,
            total=total,
            rate_buckets=tuple(buckets),
            line_amounts=line_amounts,
        )

    @staticmethod
    def _breakdown(
        supply: SupplyType,
        splits: dict[Decimal, TaxRateSplit],
        exact_subtotal: Money,
        exact_cgst: Money,
        exact_sgst: Money,
        exact_igst: Money,
        total_tax: Money,
    ) -> TaxBreakdownResult:
        single = next(iter(splits.values())) if len(splits) == 1 else None

        def rate_of(component: str, exact: Money) -> Decimal:
            if single is not None:
                return getattr(single, component)
            return _effective_rate(exact.amount, exact_subtotal.amount)

        if supply == SupplyType.INTRA_STATE:
            cgst = exact_cgst.round()
            return TaxBreakdownResult(
                supply_type=supply,
                total_tax=total_tax,
                cgst_rate=rate_of("cgst", exact_cgst),
                sgst_rate=rate_of("sgst", exact_sgst),
                cgst_amount=cgst,
                sgst_amount=total_tax - cgst,
            )

        if supply == SupplyType.ZERO_RATED:
            zero = Money.zero(total_tax.currency)
            return TaxBreakdownResult(
                supply_type=supply,
                total_tax=total_tax,
                cgst_rate=Decimal("0"),
                sgst_rate=Decimal("0"),
                igst_rate=Decimal("0"),
                cgst_amount=zero,
                sgst_amount=zero,
                igst_amount=zero,
            )

        return TaxBreakdownResult(
            supply_type=supply,
            total_tax=total_tax,
            igst_rate=rate_of("igst", exact_igst),
            igst_amount=total_tax,
        )
