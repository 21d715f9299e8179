"""
Module: invoicing_engines.recurrence
Responsibility:
    Date arithmetic for recurring invoices: the next issue date, due date
    and follow-on date of the next invoice in a series.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Month arithmetic clamps to the last day of the target month
      (Jan 31 + 1 month is Feb 29 in a leap year, Feb 28 otherwise).
    - due_date >= issue_date for every generated schedule.
    - No schedule is produced past the series end date.

Failure modes:
    - UnsupportedFrequencyError for a frequency outside
      weekly/monthly/quarterly/yearly.
"""

from __future__ import annotations

import calendar
import re
from dataclasses import dataclass
from datetime import date, timedelta
from enum import Enum

from invoicing_engines.tracer import traced_engine
from invoicing_kernel.exceptions import UnsupportedFrequencyError
from invoicing_kernel.logging_config import get_logger

logger = get_logger("engines.recurrence")

# "Net 30" is the customary Indian B2B credit period and the default
# payment terms for a new client.
DEFAULT_PAYMENT_TERMS_DAYS = 30

_TERMS_DAYS_PATTERN = re.compile(r"\d+")


class RecurrenceFrequency(str, Enum):
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"


_MONTHS_PER_PERIOD = {
    RecurrenceFrequency.MONTHLY: 1,
    RecurrenceFrequency.QUARTERLY: 3,
    RecurrenceFrequency.YEARLY: 12,
}


def parse_frequency(value: str | RecurrenceFrequency) -> RecurrenceFrequency:
    """
    Normalize a frequency name.

    Raises:
        UnsupportedFrequencyError: If the name is not a known frequency.
    """
    if isinstance(value, RecurrenceFrequency):
        return value
    try:
        return RecurrenceFrequency(str(value).strip().lower())
    except ValueError as e:
        logger.warning("recurrence_frequency_unsupported", extra={
            "frequency": str(value),
        })
        raise UnsupportedFrequencyError(str(value)) from e


def add_months(start: date, months: int) -> date:
    """Add calendar months, clamping the day to the end of the month."""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(start.day, last_day))


def advance(start: date, frequency: str | RecurrenceFrequency) -> date:
    """One period after ``start``."""
    freq = parse_frequency(frequency)
    if freq == RecurrenceFrequency.WEEKLY:
        return start + timedelta(days=7)
    return add_months(start, _MONTHS_PER_PERIOD[freq])


def payment_terms_days(terms: str | None) -> int:
    """
    Days of credit from a terms string such as "Net 45".

    The first integer in the string wins; anything without one falls back
    to DEFAULT_PAYMENT_TERMS_DAYS.
    """
    if not terms:
        return DEFAULT_PAYMENT_TERMS_DAYS
    match = _TERMS_DAYS_PATTERN.search(terms)
    if match is None:
        logger.debug("payment_terms_defaulted", extra={"payment_terms": terms})
        return DEFAULT_PAYMENT_TERMS_DAYS
    return int(match.group())


@dataclass(frozen=True)
class RecurrenceSchedule:
    """Dates for the next invoice in a series."""

    frequency: RecurrenceFrequency
    issue_date: date
    due_date: date
    next_invoice_date: date


class RecurrenceScheduler:
    """
    Compute the next schedule in a recurring series.

    The next invoice is issued one period after the series' recorded
    next_invoice_date, and its own follow-on date is one further period
    after that.  Month-end anchors are not remembered: a series anchored on
    the 31st that passes through February continues from the 29th (or
    28th).
    """

    @traced_engine(
        "recurrence", "1.0",
        fingerprint_fields=("next_invoice_date", "frequency", "payment_terms", "end_date"),
    )
    def next_schedule(
        self,
        *,
        next_invoice_date: date,
        frequency: str | RecurrenceFrequency,
        payment_terms: str | None = None,
        end_date: date | None = None,
    ) -> RecurrenceSchedule | None:
        freq = parse_frequency(frequency)
        issue_date = advance(next_invoice_date, freq)

        if end_date is not None and issue_date > end_date:
            logger.info("recurrence_series_ended", extra={
                "issue_date": issue_date.isoformat(),
                "end_date": end_date.isoformat(),
            })
            return None

        schedule = RecurrenceSchedule(
            frequency=freq,
            issue_date=issue_date,
            due_date=issue_date + timedelta(days=payment_terms_days(payment_terms)),
            next_invoice_date=advance(issue_date, freq),
        )
        logger.info("recurrence_scheduled", extra={
            "frequency": freq.value,
            "issue_date": schedule.issue_date.isoformat(),
            "due_date": schedule.due_date.isoformat(),
        })
        return schedule
