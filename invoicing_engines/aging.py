"""
Module: invoicing_engines.aging
Responsibility:
    Age open receivables by days past due and group them into buckets
    (Current, 1-30, 31-60, 61-90, Over 90).

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - No clock access: the as-of date is always a parameter.
    - Items not yet due fall into the Current bucket.
    - Bucket totals sum to the report total.

Failure modes:
    - ValueError when an age does not fall into any configured bucket.
    - ValueError from Money when items mix currencies.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from uuid import UUID

from invoicing_engines.tracer import traced_engine
from invoicing_kernel.domain.values import Money
from invoicing_kernel.logging_config import get_logger

logger = get_logger("engines.aging")


@dataclass(frozen=True)
class AgeBucket:
    """
    A contiguous range of days past due.

    Guarantees:
        - min_days >= 0.
        - max_days >= min_days (when bounded).
    """

    name: str
    min_days: int
    max_days: int | None  # None = unbounded (e.g., 90+)

    def __post_init__(self) -> None:
        if self.min_days < 0:
            raise ValueError("min_days cannot be negative")
        if self.max_days is not None and self.max_days < self.min_days:
            raise ValueError("max_days cannot be less than min_days")

    def contains(self, age_days: int) -> bool:
        if age_days < self.min_days:
            return False
        if self.max_days is None:
            return True
        return age_days <= self.max_days


STANDARD_BUCKETS: tuple[AgeBucket, ...] = (
    AgeBucket("Current", 0, 0),
    AgeBucket("1-30", 1, 30),
    AgeBucket("31-60", 31, 60),
    AgeBucket("61-90", 61, 90),
    AgeBucket("Over 90", 91, None),
)


@dataclass(frozen=True)
class ReceivableInput:
    """An open receivable to be aged."""

    invoice_id: UUID | str
    invoice_number: str
    client_id: UUID | str
    due_date: date
    outstanding: Money


@dataclass(frozen=True)
class AgedReceivable:
    invoice_id: UUID | str
    invoice_number: str
    client_id: UUID | str
    due_date: date
    outstanding: Money
    age_days: int
    bucket: AgeBucket

    @property
    def days_past_due(self) -> int:
        return max(0, self.age_days)


@dataclass(frozen=True)
class AgingReport:
    """
    Receivables aging snapshot.

    Guarantees:
        - ``total_by_bucket()`` covers every bucket in ``self.buckets``.
    """

    as_of_date: date
    currency: str
    buckets: tuple[AgeBucket, ...]
    items: tuple[AgedReceivable, ...]

    @property
    def item_count(self) -> int:
        return len(self.items)

    def total_amount(self) -> Money:
        return Money.sum([i.outstanding for i in self.items], self.currency)

    def total_by_bucket(self) -> dict[str, Money]:
        result = {b.name: Money.zero(self.currency) for b in self.buckets}
        for item in self.items:
            result[item.bucket.name] = result[item.bucket.name] + item.outstanding
        return result

    def total_by_client(self) -> dict[UUID | str, Money]:
        result: dict[UUID | str, Money] = {}
        for item in self.items:
            current = result.get(item.client_id, Money.zero(self.currency))
            result[item.client_id] = current + item.outstanding
        return result

    def items_in_bucket(self, bucket_name: str) -> tuple[AgedReceivable, ...]:
        return tuple(i for i in self.items if i.bucket.name == bucket_name)


class AgingCalculator:
    """
    Age receivables against an as-of date.

    Contract:
        Pure functions -- no I/O, no database access.
    """

    DEFAULT_BUCKETS = STANDARD_BUCKETS

    def calculate_age(self, due_date: date, as_of_date: date) -> int:
        """Days past due; negative when not yet due."""
        return (as_of_date - due_date).days

    def classify(
        self,
        age_days: int,
        buckets: Sequence[AgeBucket] | None = None,
    ) -> AgeBucket:
        """
        Bucket for ``age_days``; negative ages map to the first bucket
        starting at zero.

        Raises:
            ValueError: If age doesn't fit any bucket.
        """
        if buckets is None:
            buckets = self.DEFAULT_BUCKETS

        if age_days < 0:
            for bucket in buckets:
                if bucket.min_days == 0:
                    return bucket
            return buckets[0]

        for bucket in buckets:
            if bucket.contains(age_days):
                return bucket

        logger.warning("age_classification_no_bucket", extra={
            "age_days": age_days,
            "bucket_count": len(buckets),
        })
        raise ValueError(f"Age {age_days} does not fit any bucket")

    @traced_engine("aging", "1.0", fingerprint_fields=("receivables", "as_of_date"))
    def generate_report(
        self,
        *,
        receivables: Sequence[ReceivableInput],
        as_of_date: date,
        currency: str = "INR",
        buckets: Sequence[AgeBucket] | None = None,
    ) -> AgingReport:
        bucket_set = tuple(buckets) if buckets is not None else self.DEFAULT_BUCKETS
        items = []
        for receivable in receivables:
            age = self.calculate_age(receivable.due_date, as_of_date)
            items.append(AgedReceivable(
                invoice_id=receivable.invoice_id,
                invoice_number=receivable.invoice_number,
                client_id=receivable.client_id,
                due_date=receivable.due_date,
                outstanding=receivable.outstanding,
                age_days=age,
                bucket=self.classify(age, bucket_set),
            ))

        logger.info("aging_report_generated", extra={
            "as_of_date": as_of_date.isoformat(),
            "item_count": len(items),
        })
        return AgingReport(
            as_of_date=as_of_date,
            currency=currency,
            buckets=bucket_set,
            items=tuple(items),
        )
