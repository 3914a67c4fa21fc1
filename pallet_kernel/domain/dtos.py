"""
Data transfer objects for validation and data-quality reporting.

These are pure, immutable records.  Validators and engines return them
instead of raising, so a single bad ledger row or a drifted stock figure
never blanks out a whole analysis.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


@dataclass(frozen=True)
class ValidationError:
    """
    A single validation error.

    Contract:
        Carries a machine-readable code, human-readable message, optional
        field name, the offending record id (when known) and optional details.

    Non-goals:
        - Does NOT raise exceptions -- it IS the error representation.
    """

    code: str
    message: str
    field: str | None = None
    record_id: Any = None
    details: dict[str, Any] | None = None


class DiagnosticSeverity(str, Enum):
    """How loudly the presentation layer should surface a diagnostic."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class Diagnostic:
    """
    A data-quality signal attached to an otherwise successful result.

    Examples are returns that exceed everything ever borrowed, or a stock
    snapshot that no longer agrees with the ledger.
    """

    code: str
    message: str
    severity: DiagnosticSeverity = DiagnosticSeverity.WARNING
    details: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_validation_error(cls, error: ValidationError) -> Diagnostic:
        details: dict[str, Any] = dict(error.details or {})
        if error.field is not None:
            details["field"] = error.field
        if error.record_id is not None:
            details["record_id"] = error.record_id
        return cls(
            code=error.code,
            message=error.message,
            severity=DiagnosticSeverity.ERROR,
            details=details,
        )
