"""
Validation DTOs.

Constructor-time invariant checks report through ``ValidationResult``
instead of raising directly, so callers can inspect every violated field
before deciding which typed exception to surface.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class ValidationError:
    """
    A single validation error.

    Contract:
        Carries a machine-readable code, human-readable message, optional field
        path, and optional details dict.
    """

    code: str
    message: str
    field: str | None = None
    details: dict[str, Any] | None = None


@dataclass(frozen=True)
class ValidationResult:
    """
    Result of validation.

    Guarantees:
        - errors is always a tuple (never None)
        - bool(result) == result.is_valid for convenience
    """

    is_valid: bool
    errors: tuple[ValidationError, ...] = field(default_factory=tuple)

    @classmethod
    def success(cls) -> ValidationResult:
        """Create a successful validation result."""
        return cls(is_valid=True, errors=())

    @classmethod
    def failure(cls, *errors: ValidationError) -> ValidationResult:
        """Create a failed validation result."""
        return cls(is_valid=False, errors=tuple(errors))

    @classmethod
    def collect(cls, errors: list[ValidationError]) -> ValidationResult:
        """Success when ``errors`` is empty, failure otherwise."""
        if errors:
            return cls.failure(*errors)
        return cls.success()

    def first(self) -> ValidationError | None:
        return self.errors[0] if self.errors else None

    def __bool__(self) -> bool:
        return self.is_valid
