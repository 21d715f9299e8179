"""
Pure domain layer.

Value objects, validation DTOs and the clock abstraction.  Nothing here
touches the ORM, the database or the system time (SystemClock aside).
"""

from invoicing_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from invoicing_kernel.domain.currency import CurrencyInfo, CurrencyRegistry
from invoicing_kernel.domain.dtos import ValidationError, ValidationResult
from invoicing_kernel.domain.values import Currency, Money, round_amount

__all__ = [
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "CurrencyInfo",
    "CurrencyRegistry",
    "ValidationError",
    "ValidationResult",
    "Currency",
    "Money",
    "round_amount",
]
