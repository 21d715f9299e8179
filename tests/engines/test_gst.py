"""
Tests for GSTIN validation and the CGST/SGST/IGST rate split.
"""

from decimal import Decimal

import pytest

from invoicing_engines.gst import (
    SupplyType,
    TaxComponent,
    TaxRateResolver,
    UnregisteredClientPolicy,
    gstin_check_character,
    is_valid_gstin,
    is_valid_region_code,
    region_code_from_gstin,
)
from tests.conftest import DELHI_GSTIN, KARNATAKA_GSTIN, MAHARASHTRA_GSTIN


class TestGstinValidation:

    @pytest.mark.parametrize("gstin", [MAHARASHTRA_GSTIN, KARNATAKA_GSTIN, DELHI_GSTIN])
    def test_valid_gstins(self, gstin):
        assert is_valid_gstin(gstin)

    def test_lowercase_accepted(self):
        assert is_valid_gstin(MAHARASHTRA_GSTIN.lower())

    def test_check_character(self):
        assert gstin_check_character(MAHARASHTRA_GSTIN[:-1]) == "V"

    def test_wrong_check_character_rejected(self):
        assert not is_valid_gstin(MAHARASHTRA_GSTIN[:-1] + "A")

    @pytest.mark.parametrize("gstin", [None, "", "27AAPFU0939F1Z", "27AAPFU0939F1ZVX", "XXAAPFU0939F1ZV"])
    def test_malformed_rejected(self, gstin):
        assert not is_valid_gstin(gstin)

    def test_check_character_requires_fourteen_characters(self):
        with pytest.raises(ValueError):
            gstin_check_character("27AAPFU")

    def test_region_code_from_gstin(self):
        assert region_code_from_gstin(KARNATAKA_GSTIN) == "29"
        assert region_code_from_gstin("not-a-gstin") is None
        assert region_code_from_gstin(None) is None

    @pytest.mark.parametrize("code, valid", [
        ("27", True), ("07", True), ("00", False), ("7", False), ("AB", False), (None, False),
    ])
    def test_region_codes(self, code, valid):
        assert is_valid_region_code(code) is valid


class TestTaxRateResolver:

    def setup_method(self):
        self.resolver = TaxRateResolver()

    def test_same_region_splits_in_half(self):
        split = self.resolver.resolve("27", "27", Decimal("18"))
        assert split.supply_type == SupplyType.INTRA_STATE
        assert split.cgst == Decimal("9")
        assert split.sgst == Decimal("9")
        assert split.igst is None
        assert split.is_intra_state

    def test_odd_rate_split_keeps_precision(self):
        split = self.resolver.resolve("27", "27", Decimal("0.25"))
        assert split.cgst == Decimal("0.125")
        assert split.total_rate == Decimal("0.25")

    def test_different_region_is_igst(self):
        split = self.resolver.resolve("29", "27", Decimal("18"))
        assert split.supply_type == SupplyType.INTER_STATE
        assert split.igst == Decimal("18")
        assert split.cgst is None and split.sgst is None
        assert split.component_rates() == {TaxComponent.IGST: Decimal("18")}

    def test_unregistered_client_defaults_to_inter_state(self):
        split = self.resolver.resolve(None, "27", Decimal("12"))
        assert split.supply_type == SupplyType.INTER_STATE
        assert split.igst == Decimal("12")

    def test_malformed_client_code_follows_policy(self):
        resolver = TaxRateResolver(UnregisteredClientPolicy.ZERO_RATED)
        split = resolver.resolve("ZZ", "27", Decimal("18"))
        assert split.supply_type == SupplyType.ZERO_RATED
        assert split.total_rate == Decimal("0")

    def test_invalid_seller_code_rejected(self):
        with pytest.raises(ValueError):
            self.resolver.resolve("27", "00", Decimal("18"))

    @pytest.mark.parametrize("rate", [Decimal("-1"), Decimal("100.01")])
    def test_rate_out_of_range_rejected(self, rate):
        with pytest.raises(ValueError):
            self.resolver.resolve("27", "27", rate)

    def test_zero_rate_allowed(self):
        split = self.resolver.resolve("27", "27", Decimal("0"))
        assert split.total_rate == Decimal("0")
