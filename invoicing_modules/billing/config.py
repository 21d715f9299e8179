"""
Billing Configuration Schema.

Defines the structure and defaults for seller and billing settings.
Actual values are loaded from YAML at runtime (see
``invoicing_config.loader``).
"""

from dataclasses import dataclass, field
from decimal import Decimal

from invoicing_engines.gst import (
    DEFAULT_UNREGISTERED_POLICY,
    UnregisteredClientPolicy,
    is_valid_gstin,
    is_valid_region_code,
    region_code_from_gstin,
)
from invoicing_engines.late_fees import LateFeeRule
from invoicing_kernel.domain.currency import CurrencyRegistry
from invoicing_kernel.logging_config import get_logger

logger = get_logger("modules.billing.config")


@dataclass
class BillingConfig:
    """
    Configuration schema for the billing module.

    The seller's state code decides intra- vs inter-state supply.  It is
    taken from ``seller_region_code`` when given, otherwise from the first
    two characters of ``seller_gstin``:

        config = BillingConfig(seller_gstin="27AAPFU0939F1ZV")
        config.seller_region_code   # "27"
    """

    seller_gstin: str | None = None
    seller_region_code: str | None = None
    seller_name: str | None = None
    currency: str = "INR"
    default_payment_terms: str = "Net 30"
    default_tax_rate: Decimal = Decimal("18")
    unregistered_client_policy: UnregisteredClientPolicy = DEFAULT_UNREGISTERED_POLICY
    late_fee_rules: tuple[LateFeeRule, ...] = field(default_factory=tuple)

    def __post_init__(self):
        if self.seller_gstin is not None and not is_valid_gstin(self.seller_gstin):
            raise ValueError(f"Invalid seller GSTIN: {self.seller_gstin!r}")
        if self.seller_region_code is None:
            self.seller_region_code = region_code_from_gstin(self.seller_gstin)
        if not is_valid_region_code(self.seller_region_code):
            raise ValueError(
                "seller_region_code (or a valid seller_gstin) is required, "
                f"got {self.seller_region_code!r}"
            )
        if (
            self.seller_gstin is not None
            and self.seller_gstin[:2] != self.seller_region_code
        ):
            raise ValueError(
                f"seller_region_code {self.seller_region_code} does not match "
                f"GSTIN {self.seller_gstin}"
            )
        if not CurrencyRegistry.is_valid(self.currency):
            raise ValueError(f"Invalid currency: {self.currency}")
        if self.default_tax_rate < 0 or self.default_tax_rate > 100:
            raise ValueError("default_tax_rate must be within [0, 100]")
        if not isinstance(self.unregistered_client_policy, UnregisteredClientPolicy):
            self.unregistered_client_policy = UnregisteredClientPolicy(
                self.unregistered_client_policy
            )
        self.late_fee_rules = tuple(self.late_fee_rules)
        logger.debug(
            "billing_config_initialized",
            extra={
                "seller_region_code": self.seller_region_code,
                "currency": self.currency,
                "late_fee_rule_count": len(self.late_fee_rules),
                "unregistered_client_policy": self.unregistered_client_policy.value,
            },
        )

    @property
    def active_late_fee_rules(self) -> tuple[LateFeeRule, ...]:
        return tuple(r for r in self.late_fee_rules if r.is_active)
