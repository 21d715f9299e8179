"""
Module: invoicing_engines.late_fees
Responsibility:
    Overdue detection and late-fee assessment against configured rules.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  The caller supplies the
    as-of date; this module never reads a clock.

Invariants enforced:
    - A rule contributes only when days overdue strictly exceeds its grace
      period.
    - Percentage fees are taken on the remaining balance; fixed fees are
      the rule amount.  Both are capped by max_amount and rounded to 2 dp.
    - A rule already applied to the invoice is never assessed again.
    - Every rule in one run sees the same remaining balance, so rule order
      does not change the outcome.

Failure modes:
    - InvalidLateFeeRuleError for a malformed rule definition.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID, uuid4

from invoicing_engines.tracer import traced_engine
from invoicing_kernel.domain.values import Money
from invoicing_kernel.exceptions import InvalidLateFeeRuleError
from invoicing_kernel.logging_config import get_logger

logger = get_logger("engines.late_fees")


class LateFeeType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


def _rejected(rule_name: str, reason: str) -> InvalidLateFeeRuleError:
    logger.warning("late_fee_rule_rejected", extra={
        "rule_name": rule_name, "reason": reason,
    })
    return InvalidLateFeeRuleError(rule_name, reason)


@dataclass(frozen=True)
class LateFeeRule:
    """
    A configured late fee.

    ``amount`` is a percentage (5 means 5%) for PERCENTAGE rules and a
    currency amount for FIXED rules.
    """

    name: str
    fee_type: LateFeeType
    amount: Decimal
    grace_period_days: int = 0
    max_amount: Decimal | None = None
    is_active: bool = True
    id: UUID = field(default_factory=uuid4)

    def __post_init__(self) -> None:
        if not isinstance(self.fee_type, LateFeeType):
            try:
                object.__setattr__(self, "fee_type", LateFeeType(self.fee_type))
            except ValueError as e:
                raise _rejected(self.name, f"unknown fee type {self.fee_type!r}") from e
        if not self.name:
            raise _rejected("<unnamed>", "name is required")
        if self.amount < 0:
            raise _rejected(self.name, "amount cannot be negative")
        if self.fee_type == LateFeeType.PERCENTAGE and self.amount > 100:
            raise _rejected(self.name, "percentage cannot exceed 100")
        if self.grace_period_days < 0:
            raise _rejected(self.name, "grace period cannot be negative")
        if self.max_amount is not None and self.max_amount < 0:
            raise _rejected(self.name, "max amount cannot be negative")


@dataclass(frozen=True)
class AssessedFee:
    rule_id: UUID
    rule_name: str
    amount: Money
    days_overdue: int


@dataclass(frozen=True)
class LateFeeAssessment:
    """Fees to apply in one run, plus the rules skipped and why."""

    as_of: date
    days_overdue: int
    fees: tuple[AssessedFee, ...]
    skipped: tuple[tuple[str, str], ...] = ()

    @property
    def total(self) -> Decimal:
        return sum((f.amount.amount for f in self.fees), Decimal("0"))


def days_overdue(due_date: date, as_of: date) -> int:
    """Whole days past due, floored at zero."""
    return max(0, (as_of - due_date).days)


def is_past_due(due_date: date, as_of: date, settled: bool) -> bool:
    return as_of > due_date and not settled


class LateFeeCalculator:
    """
    Assess late fees for one invoice.

    Contract:
        Pure; an identical (remaining, rules, applied ids, as_of) input
        always yields the same assessment.
    """

    def is_eligible(self, rule: LateFeeRule, overdue_days: int) -> bool:
        return rule.is_active and overdue_days > rule.grace_period_days

    def fee_for(self, rule: LateFeeRule, remaining: Money) -> Money:
        """Rounded, capped fee for ``rule`` on ``remaining``."""
        if rule.fee_type == LateFeeType.PERCENTAGE:
            fee = remaining.percent(rule.amount)
        else:
            fee = Money.of(rule.amount, remaining.currency)

        if rule.max_amount is not None:
            cap = Money.of(rule.max_amount, remaining.currency)
            if fee > cap:
                fee = cap
        return fee.round()

    @traced_engine(
        "late_fees", "1.0",
        fingerprint_fields=("remaining", "due_date", "rules", "applied_rule_ids", "as_of"),
    )
    def assess(
        self,
        *,
        remaining: Money,
        due_date: date,
        rules: Sequence[LateFeeRule],
        applied_rule_ids: Iterable[UUID],
        as_of: date,
    ) -> LateFeeAssessment:
        overdue_days = days_overdue(due_date, as_of)
        already = set(applied_rule_ids)
        fees: list[AssessedFee] = []
        skipped: list[tuple[str, str]] = []

        for rule in rules:
            if rule.id in already:
                skipped.append((rule.name, "already_applied"))
                continue
            if not rule.is_active:
                skipped.append((rule.name, "inactive"))
                continue
            if not self.is_eligible(rule, overdue_days):
                skipped.append((rule.name, "within_grace_period"))
                continue

            fee = self.fee_for(rule, remaining)
            if fee.is_zero:
                skipped.append((rule.name, "zero_fee"))
                continue

            fees.append(AssessedFee(
                rule_id=rule.id,
                rule_name=rule.name,
                amount=fee,
                days_overdue=overdue_days,
            ))
            # One application per rule even if the sequence repeats it.
            already.add(rule.id)

        logger.info("late_fees_assessed", extra={
            "days_overdue": overdue_days,
            "rules_considered": len(rules),
            "fees_assessed": len(fees),
            "remaining": str(remaining.amount),
        })

        return LateFeeAssessment(
            as_of=as_of,
            days_overdue=overdue_days,
            fees=tuple(fees),
            skipped=tuple(skipped),
        )
