"""
Tests for invoice totals: subtotal, GST split, discount, late fees.
"""

from decimal import Decimal

import pytest

from invoicing_engines.aggregation import InvoiceAggregator, LineInput, resolve_discount
from invoicing_engines.gst import SupplyType, TaxRateResolver, UnregisteredClientPolicy
from invoicing_kernel.domain.values import Money
from invoicing_kernel.exceptions import InvalidLineItemError


def _line(quantity, price, rate):
    return LineInput(Decimal(quantity), Decimal(price), Decimal(rate))


class TestSingleRate:

    def setup_method(self):
        self.aggregator = InvoiceAggregator()

    def test_intra_state_split(self):
        totals = self.aggregator.aggregate(
            lines=[_line("40", "1000", "18")],
            client_region_code="27",
            seller_region_code="27",
        )
        assert totals.subtotal.amount == Decimal("40000.00")
        assert totals.tax.supply_type == SupplyType.INTRA_STATE
        assert totals.tax.cgst_amount.amount == Decimal("3600.00")
        assert totals.tax.sgst_amount.amount == Decimal("3600.00")
        assert totals.tax.igst_amount is None
        assert totals.tax.cgst_rate == Decimal("9")
        assert totals.total.amount == Decimal("47200.00")

    def test_inter_state_single_component(self):
        totals = self.aggregator.aggregate(
            lines=[_line("40", "1000", "18")],
            client_region_code="29",
            seller_region_code="27",
        )
        assert totals.tax.igst_amount.amount == Decimal("7200.00")
        assert totals.tax.igst_rate == Decimal("18")
        assert totals.tax.cgst_amount is None
        assert totals.total.amount == Decimal("47200.00")

    def test_halves_sum_to_rounded_total(self):
        totals = self.aggregator.aggregate(
            lines=[_line("1", "10.05", "18")],
            client_region_code="27",
            seller_region_code="27",
        )
        assert totals.tax.total_tax.amount == Decimal("1.81")
        assert totals.tax.cgst_amount.amount == Decimal("0.90")
        assert totals.tax.sgst_amount.amount == Decimal("0.91")

    def test_rounds_once_after_summing(self):
        # Three lines of 0.335 tax each: per-line rounding would give 1.02.
        lines = [_line("1", "3.35", "10")] * 3
        totals = self.aggregator.aggregate(
            lines=lines, client_region_code="29", seller_region_code="27",
        )
        assert totals.tax.total_tax.amount == Decimal("1.01")

    def test_empty_invoice(self):
        totals = self.aggregator.aggregate(
            lines=[], client_region_code="27", seller_region_code="27",
        )
        assert totals.subtotal.is_zero
        assert totals.total.is_zero
        assert totals.rate_buckets == ()


class TestMixedRates:

    def setup_method(self):
        self.aggregator = InvoiceAggregator()

    def test_effective_component_rates(self):
        totals = self.aggregator.aggregate(
            lines=[_line("1", "1000", "18"), _line("1", "1000", "5")],
            client_region_code="27",
            seller_region_code="27",
        )
        assert totals.tax.total_tax.amount == Decimal("230.00")
        assert totals.tax.cgst_amount.amount == Decimal("115.00")
        assert totals.tax.cgst_rate == Decimal("5.75")
        assert [b.rate for b in totals.rate_buckets] == [Decimal("5"), Decimal("18")]
        assert totals.rate_buckets[1].tax_amount.amount == Decimal("180.00")

    def test_line_amounts_follow_line_order(self):
        totals = self.aggregator.aggregate(
            lines=[_line("2", "50", "12"), _line("1", "10", "0")],
            client_region_code="29",
            seller_region_code="27",
        )
        assert totals.line_amounts[0].tax_amount.amount == Decimal("12.00")
        assert totals.line_amounts[1].tax_amount.is_zero


class TestUnregisteredClients:

    def test_default_policy_charges_igst(self):
        totals = InvoiceAggregator().aggregate(
            lines=[_line("1", "100", "18")],
            client_region_code=None,
            seller_region_code="27",
        )
        assert totals.tax.supply_type == SupplyType.INTER_STATE
        assert totals.tax.igst_amount.amount == Decimal("18.00")

    def test_zero_rated_policy(self):
        aggregator = InvoiceAggregator(TaxRateResolver(UnregisteredClientPolicy.ZERO_RATED))
        totals = aggregator.aggregate(
            lines=[_line("1", "100", "18")],
            client_region_code=None,
            seller_region_code="27",
        )
        assert totals.tax.supply_type == SupplyType.ZERO_RATED
        assert totals.tax.total_tax.is_zero
        assert totals.tax.igst_amount.is_zero
        assert totals.total.amount == Decimal("100.00")


class TestDiscountsAndFees:

    def setup_method(self):
        self.aggregator = InvoiceAggregator()
        self.lines = [_line("1", "1000", "18")]

    def _aggregate(self, **kwargs):
        return self.aggregator.aggregate(
            lines=self.lines, client_region_code="27", seller_region_code="27", **kwargs,
        )

    def test_percentage_on_subtotal_plus_tax(self):
        totals = self._aggregate(discount_percentage=Decimal("10"))
        assert totals.discount.amount == Decimal("118.00")
        assert totals.total.amount == Decimal("1062.00")

    def test_fixed_amount_wins(self):
        totals = self._aggregate(
            discount_percentage=Decimal("10"), discount_amount=Decimal("50"),
        )
        assert totals.discount.amount == Decimal("50.00")

    def test_discount_capped_at_gross(self):
        totals = self._aggregate(discount_amount=Decimal("5000"))
        assert totals.discount.amount == Decimal("1180.00")
        assert totals.total.is_zero

    def test_late_fees_added(self):
        totals = self._aggregate(late_fees=Decimal("100"))
        assert totals.late_fees.amount == Decimal("100.00")
        assert totals.total.amount == Decimal("1280.00")

    def test_negative_discount_rejected(self):
        with pytest.raises(ValueError):
            self._aggregate(discount_amount=Decimal("-1"))

    def test_percentage_over_hundred_rejected(self):
        with pytest.raises(ValueError):
            resolve_discount(Money.of("100", "INR"), Decimal("101"), None)

    def test_invalid_line_fails_whole_invoice(self):
        with pytest.raises(InvalidLineItemError):
            self.aggregator.aggregate(
                lines=[_line("1", "10", "18"), _line("-1", "10", "18")],
                client_region_code="27",
                seller_region_code="27",
            )


class TestTracing:

    def test_trace_emitted(self, captured_logs):
        InvoiceAggregator().aggregate(
            lines=[_line("1", "10", "18")],
            client_region_code="27",
            seller_region_code="27",
        )
        traces = [r for r in captured_logs() if r["message"] == "INVOICING_ENGINE_TRACE"]
        assert traces[-1]["engine_name"] == "aggregation"
        assert len(traces[-1]["input_fingerprint"]) == 16
