"""
Configuration Loader (``invoicing_config.loader``).

Responsibility
--------------
Loads a billing YAML file and parses it into a ``BillingConfig`` with its
``LateFeeRule`` list.  Runtime callers go through
``invoicing_config.get_billing_config()``.

Invariants enforced
-------------------
* Numbers are read through ``str`` into ``Decimal``; YAML floats never reach
  an amount.
* A rule without an explicit ``id`` gets a UUID derived from its name, so
  reloading the same file yields the same rule ids.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Invalid values  -> ``ValueError`` / ``InvalidLateFeeRuleError``.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal
from pathlib import Path
from typing import Any
from uuid import NAMESPACE_URL, UUID, uuid5

import yaml

from invoicing_engines.gst import UnregisteredClientPolicy
from invoicing_engines.late_fees import LateFeeRule, LateFeeType
from invoicing_modules.billing.config import BillingConfig

_RULE_NAMESPACE = uuid5(NAMESPACE_URL, "invoicing/late-fee-rule")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        data = yaml.safe_load(f)
    return data or {}


def _decimal(value: Any) -> Decimal:
    return Decimal(str(value))


def _optional_decimal(value: Any) -> Decimal | None:
    return None if value is None else _decimal(value)


def rule_id_for(name: str) -> UUID:
    """Stable id for a rule configured by name only."""
    return uuid5(_RULE_NAMESPACE, name)


def parse_late_fee_rule(data: dict[str, Any]) -> LateFeeRule:
    name = data["name"]
    return LateFeeRule(
        id=UUID(str(data["id"])) if data.get("id") else rule_id_for(name),
        name=name,
        fee_type=LateFeeType(data["type"]),
        amount=_decimal(data["amount"]),
        grace_period_days=int(data.get("grace_period_days", 0)),
        max_amount=_optional_decimal(data.get("max_amount")),
        is_active=bool(data.get("is_active", True)),
    )


def parse_billing_config(data: dict[str, Any]) -> BillingConfig:
    """Build a ``BillingConfig`` from the parsed YAML mapping."""
    seller = data.get("seller", {})
    defaults = data.get("defaults", {})
    kwargs: dict[str, Any] = {
        "seller_gstin": seller.get("gstin"),
        "seller_region_code": (
            str(seller["region_code"]).zfill(2) if seller.get("region_code") is not None else None
        ),
        "seller_name": seller.get("name"),
        "late_fee_rules": tuple(
            parse_late_fee_rule(rule) for rule in data.get("late_fee_rules", [])
        ),
    }
    if "currency" in defaults:
        kwargs["currency"] = defaults["currency"]
    if "payment_terms" in defaults:
        kwargs["default_payment_terms"] = defaults["payment_terms"]
    if "tax_rate" in defaults:
        kwargs["default_tax_rate"] = _decimal(defaults["tax_rate"])
    if "unregistered_client_policy" in defaults:
        kwargs["unregistered_client_policy"] = UnregisteredClientPolicy(
            defaults["unregistered_client_policy"]
        )
    return BillingConfig(**kwargs)


def load_billing_config(path: Path | str) -> BillingConfig:
    return parse_billing_config(load_yaml_file(Path(path)))


def compute_checksum(data: dict[str, Any]) -> str:
    """Deterministic SHA-256 of a parsed configuration mapping."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()
