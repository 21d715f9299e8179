"""
Tests for billing configuration loading.
"""

from decimal import Decimal
from uuid import UUID

import pytest
import yaml

from invoicing_config import DEFAULT_CONFIG_PATH, get_billing_config
from invoicing_config.loader import (
    compute_checksum,
    load_billing_config,
    load_yaml_file,
    parse_billing_config,
    parse_late_fee_rule,
    rule_id_for,
)
from invoicing_engines.gst import UnregisteredClientPolicy
from invoicing_engines.late_fees import LateFeeType
from invoicing_kernel.exceptions import InvalidLateFeeRuleError
from invoicing_modules.billing.config import BillingConfig
from tests.conftest import KARNATAKA_GSTIN, MAHARASHTRA_GSTIN


def _write(tmp_path, data):
    path = tmp_path / "billing.yaml"
    path.write_text(yaml.safe_dump(data))
    return path


class TestDefaults:

    def test_packaged_defaults_load(self):
        config = get_billing_config()
        assert config.seller_region_code == "27"
        assert config.currency == "INR"
        assert config.default_tax_rate == Decimal("18")
        assert config.unregistered_client_policy == UnregisteredClientPolicy.INTER_STATE
        assert [r.name for r in config.active_late_fee_rules] == ["Standard late fee"]

    def test_rule_ids_stable_across_loads(self):
        first = get_billing_config()
        second = get_billing_config(DEFAULT_CONFIG_PATH)
        assert [r.id for r in first.late_fee_rules] == [r.id for r in second.late_fee_rules]
        assert first.late_fee_rules[0].id == rule_id_for("Standard late fee")

    def test_config_trace_logged(self, captured_logs):
        get_billing_config()
        traces = [r for r in captured_logs() if r["message"] == "INVOICING_CONFIG_TRACE"]
        assert traces[-1]["seller_region_code"] == "27"
        assert len(traces[-1]["checksum"]) == 64


class TestParsing:

    def test_region_code_from_gstin(self):
        config = parse_billing_config({"seller": {"gstin": KARNATAKA_GSTIN}})
        assert config.seller_region_code == "29"

    def test_numeric_region_code_padded(self):
        config = parse_billing_config({"seller": {"region_code": 7}})
        assert config.seller_region_code == "07"

    def test_overrides(self, tmp_path):
        path = _write(tmp_path, {
            "seller": {"gstin": MAHARASHTRA_GSTIN},
            "defaults": {
                "currency": "USD",
                "payment_terms": "Net 15",
                "tax_rate": 12,
                "unregistered_client_policy": "zero_rated",
            },
        })
        config = load_billing_config(path)
        assert config.currency == "USD"
        assert config.default_payment_terms == "Net 15"
        assert config.default_tax_rate == Decimal("12")
        assert config.unregistered_client_policy == UnregisteredClientPolicy.ZERO_RATED

    def test_rule_with_explicit_id(self):
        rule = parse_late_fee_rule({
            "id": "00000000-0000-4000-b000-0000000000aa",
            "name": "Flat",
            "type": "fixed",
            "amount": 250.5,
        })
        assert rule.id == UUID("00000000-0000-4000-b000-0000000000aa")
        assert rule.fee_type == LateFeeType.FIXED
        assert rule.amount == Decimal("250.5")
        assert rule.grace_period_days == 0
        assert rule.max_amount is None

    def test_bad_rule_rejected(self):
        with pytest.raises(InvalidLateFeeRuleError):
            parse_late_fee_rule({"name": "Bad", "type": "percentage", "amount": 120})

    def test_missing_rule_key(self):
        with pytest.raises(KeyError):
            parse_late_fee_rule({"name": "No type", "amount": 1})

    def test_invalid_seller_gstin(self):
        with pytest.raises(ValueError):
            parse_billing_config({"seller": {"gstin": "27AAPFU0939F1ZA"}})

    def test_region_must_match_gstin(self):
        with pytest.raises(ValueError):
            parse_billing_config({"seller": {"gstin": MAHARASHTRA_GSTIN, "region_code": "29"}})

    def test_seller_required(self):
        with pytest.raises(ValueError):
            parse_billing_config({})

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_billing_config(tmp_path / "absent.yaml")

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_yaml_file(path) == {}


class TestBillingConfig:

    def test_policy_from_string(self):
        config = BillingConfig(seller_region_code="27", unregistered_client_policy="zero_rated")
        assert config.unregistered_client_policy == UnregisteredClientPolicy.ZERO_RATED

    @pytest.mark.parametrize("kwargs", [
        {"currency": "XYZ"},
        {"default_tax_rate": Decimal("101")},
        {"seller_region_code": "00"},
    ])
    def test_invalid_values(self, kwargs):
        params = {"seller_region_code": "27"}
        params.update(kwargs)
        with pytest.raises(ValueError):
            BillingConfig(**params)


class TestChecksum:

    def test_key_order_irrelevant(self):
        assert compute_checksum({"a": 1, "b": 2}) == compute_checksum({"b": 2, "a": 1})

    def test_content_sensitive(self):
        assert compute_checksum({"a": 1}) != compute_checksum({"a": 2})
