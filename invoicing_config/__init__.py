"""
invoicing_config -- single public entrypoint for billing configuration.

Responsibility:
    ``get_billing_config()`` loads and validates the billing YAML (the
    packaged ``defaults.yaml`` unless a path is given) and returns a
    ``BillingConfig``.

Architecture position:
    Configuration -- sits above ``invoicing_kernel`` and the engines.  The
    kernel MUST NEVER import from ``invoicing_config``.

Failure modes:
    - ``FileNotFoundError`` -- the given path does not exist.
    - ``ValueError`` -- invalid seller, currency, rate or policy values.
    - ``InvalidLateFeeRuleError`` -- a malformed late-fee rule.
"""

from __future__ import annotations

from pathlib import Path

from invoicing_config.loader import compute_checksum, load_yaml_file, parse_billing_config
from invoicing_kernel.logging_config import get_logger
from invoicing_modules.billing.config import BillingConfig

_logger = get_logger("config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"


def get_billing_config(path: Path | str | None = None) -> BillingConfig:
    """
    Load the billing configuration.

    Emits an ``INVOICING_CONFIG_TRACE`` record with the source path and the
    checksum of the parsed file.
    """
    source = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    data = load_yaml_file(source)
    config = parse_billing_config(data)

    _logger.info(
        "INVOICING_CONFIG_TRACE",
        extra={
            "trace_type": "INVOICING_CONFIG_TRACE",
            "config_path": str(source),
            "checksum": compute_checksum(data),
            "seller_region_code": config.seller_region_code,
            "late_fee_rule_count": len(config.late_fee_rules),
        },
    )
    return config


__all__ = ["DEFAULT_CONFIG_PATH", "BillingConfig", "get_billing_config"]
