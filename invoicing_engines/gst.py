"""
GST Engine - Resolve the CGST/SGST/IGST split for a supply.

Indian GST taxes an intra-state supply as two equal halves (Central GST and
State GST) and an inter-state supply as a single Integrated GST.  Whether a
supply is intra- or inter-state is decided by comparing the two-digit state
code that prefixes the client's GSTIN with the seller's state code.

Pure functions with no I/O.  No rounding happens here; rates are returned at
full precision and amounts are rounded by the aggregator.

Usage:
    from invoicing_engines.gst import TaxRateResolver
    from decimal import Decimal

    resolver = TaxRateResolver()
    split = resolver.resolve("27", "27", Decimal("18"))
    split.cgst, split.sgst, split.igst   # Decimal("9"), Decimal("9"), None
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from invoicing_kernel.logging_config import get_logger

logger = get_logger("engines.gst")

GSTIN_LENGTH = 15
REGION_CODE_LENGTH = 2

_GSTIN_PATTERN = re.compile(r"^[0-9]{2}[A-Z]{5}[0-9]{4}[A-Z][1-9A-Z]Z[0-9A-Z]$")
_REGION_CODE_PATTERN = re.compile(r"^[0-9]{2}$")
_CHECKSUM_ALPHABET = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"

_HUNDRED = Decimal("100")
_TWO = Decimal("2")


class TaxComponent(str, Enum):
    """GST tax heads."""

    CGST = "cgst"  # Central GST, intra-state
    SGST = "sgst"  # State GST, intra-state
    IGST = "igst"  # Integrated GST, inter-state


class SupplyType(str, Enum):
    """How a supply is taxed."""

    INTRA_STATE = "intra_state"
    INTER_STATE = "inter_state"
    ZERO_RATED = "zero_rated"


class UnregisteredClientPolicy(str, Enum):
    """
    Tax treatment for a client with no usable region code.

    INTER_STATE charges the full rate as IGST: the seller cannot prove the
    place of supply is its own state, so it collects the integrated tax.
    ZERO_RATED charges nothing (reverse charge / export style treatment).
    """

    INTER_STATE = "inter_state"
    ZERO_RATED = "zero_rated"


# Without a verifiable GSTIN the place of supply cannot be shown to be the
# seller's own state, so the integrated tax is collected.
DEFAULT_UNREGISTERED_POLICY = UnregisteredClientPolicy.INTER_STATE


def gstin_check_character(gstin_body: str) -> str:
    """
    Compute the mod-36 check character for the first 14 GSTIN characters.

    Alternating weights 1, 2; each product contributes its base-36 quotient
    plus remainder.
    """
    if len(gstin_body) != GSTIN_LENGTH - 1:
        raise ValueError(f"GSTIN body must be {GSTIN_LENGTH - 1} characters")

    total = 0
    for index, char in enumerate(gstin_body):
        value = _CHECKSUM_ALPHABET.index(char)
        product = value * (1 if index % 2 == 0 else 2)
        total += product // 36 + product % 36
    return _CHECKSUM_ALPHABET[(36 - total % 36) % 36]


def is_valid_gstin(gstin: str | None) -> bool:
    """Format and check-digit validation of a GSTIN."""
    if not gstin or len(gstin) != GSTIN_LENGTH:
        return False
    normalized = gstin.upper()
    if not _GSTIN_PATTERN.match(normalized):
        return False
    return gstin_check_character(normalized[:-1]) == normalized[-1]


def is_valid_region_code(code: str | None) -> bool:
    """Two-digit, non-zero state code."""
    if not code or not _REGION_CODE_PATTERN.match(code):
        return False
    return code != "00"


def region_code_from_gstin(gstin: str | None) -> str | None:
    """State code prefix of a valid GSTIN, None for a missing/invalid one."""
    if not is_valid_gstin(gstin):
        return None
    return gstin[:REGION_CODE_LENGTH]


@dataclass(frozen=True)
class TaxRateSplit:
    """
    Component rates for one nominal GST rate.

    Rates are percentages (9 means 9%).  Components that do not apply are
    None rather than zero, so an intra-state split never reports an IGST
    rate and vice versa.
    """

    nominal_rate: Decimal
    supply_type: SupplyType
    cgst: Decimal | None = None
    sgst: Decimal | None = None
    igst: Decimal | None = None

    @property
    def is_intra_state(self) -> bool:
        return self.supply_type == SupplyType.INTRA_STATE

    @property
    def total_rate(self) -> Decimal:
        """Sum of applied component rates."""
        return sum(
            (r for r in (self.cgst, self.sgst, self.igst) if r is not None),
            Decimal("0"),
        )

    def component_rates(self) -> dict[TaxComponent, Decimal]:
        """Applied components only."""
        rates: dict[TaxComponent, Decimal] = {}
        if self.cgst is not None:
            rates[TaxComponent.CGST] = self.cgst
        if self.sgst is not None:
            rates[TaxComponent.SGST] = self.sgst
        if self.igst is not None:
            rates[TaxComponent.IGST] = self.igst
        return rates


class TaxRateResolver:
    """
    Decide intra- vs inter-state treatment and split the nominal rate.

    Contract:
        - Equal region codes: cgst = sgst = nominal / 2, no igst.
        - Different region codes: igst = nominal, no cgst/sgst.
        - Empty or malformed client code: the unregistered policy decides.
        - The seller code must be a valid region code.
    """

    def __init__(
        self,
        unregistered_policy: UnregisteredClientPolicy = DEFAULT_UNREGISTERED_POLICY,
    ):
        self.unregistered_policy = unregistered_policy

    def supply_type(
        self,
        client_region_code: str | None,
        seller_region_code: str,
    ) -> SupplyType:
        if not is_valid_region_code(seller_region_code):
            logger.error("gst_invalid_seller_region", extra={
                "seller_region_code": seller_region_code,
            })
            raise ValueError(f"Invalid seller region code: {seller_region_code!r}")

        if not is_valid_region_code(client_region_code):
            logger.info("gst_unregistered_client", extra={
                "client_region_code": client_region_code,
                "policy": self.unregistered_policy.value,
            })
            if self.unregistered_policy == UnregisteredClientPolicy.ZERO_RATED:
                return SupplyType.ZERO_RATED
            return SupplyType.INTER_STATE

        if client_region_code == seller_region_code:
            return SupplyType.INTRA_STATE
        return SupplyType.INTER_STATE

    def resolve(
        self,
        client_region_code: str | None,
        seller_region_code: str,
        nominal_rate: Decimal,
    ) -> TaxRateSplit:
        """
        Split ``nominal_rate`` for the given pair of region codes.

        Raises:
            ValueError: If the seller code is invalid or the rate is outside
                [0, 100].
        """
        if nominal_rate < 0 or nominal_rate > _HUNDRED:
            raise ValueError(f"Nominal GST rate must be within [0, 100]: {nominal_rate}")

        supply = self.supply_type(client_region_code, seller_region_code)

        if supply == SupplyType.INTRA_STATE:
            half = nominal_rate / _TWO
            split = TaxRateSplit(nominal_rate, supply, cgst=half, sgst=half)
        elif supply == SupplyType.INTER_STATE:
            split = TaxRateSplit(nominal_rate, supply, igst=nominal_rate)
        else:
            zero = Decimal("0")
            split = TaxRateSplit(nominal_rate, supply, cgst=zero, sgst=zero, igst=zero)

        logger.debug("gst_rate_resolved", extra={
            "client_region_code": client_region_code,
            "seller_region_code": seller_region_code,
            "nominal_rate": str(nominal_rate),
            "supply_type": supply.value,
        })
        return split
