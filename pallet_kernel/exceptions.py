"""
Typed exception hierarchy for the pallet ledger kernel.

Every error carries a machine-readable ``code`` class attribute and the
structured data needed to act on it, so callers catch by type and report
by code rather than parsing message strings.

    PalletKernelError (base)
    |
    +-- ValidationFailedError
    |   +-- TransactionValidationError
    |   +-- StockSnapshotValidationError
    |
    +-- ConfigurationError
        +-- InvalidRateScheduleError
        +-- UnknownPartnerError

Category        | Code                        | When Raised
----------------|-----------------------------|------------------------------------------
Validation      | VALIDATION_FAILED           | Boundary validation rejected input
                | INVALID_TRANSACTION         | A raw ledger record cannot be parsed
                | INVALID_STOCK_SNAPSHOT      | Snapshot has non-integer quantities
----------------|-----------------------------|------------------------------------------
Configuration   | CONFIGURATION_ERROR         | Config document is structurally invalid
                | INVALID_RATE_SCHEDULE       | Tiers not ascending / negative rates
                | UNKNOWN_PARTNER             | Strict lookup of a partner id failed

Ledger/snapshot divergence and excess returns are NOT exceptions; they are
reported as diagnostics on otherwise successful results.
"""

from __future__ import annotations

from typing import Any


class PalletKernelError(Exception):
    """
    Base exception for all pallet kernel errors.

    All subclasses must have a ``code`` class attribute for machine-readable
    error identification.
    """

    code: str = "PALLET_KERNEL_ERROR"


# Validation


class ValidationFailedError(PalletKernelError):
    """Boundary validation rejected the input."""

    code: str = "VALIDATION_FAILED"

    def __init__(self, message: str, errors: tuple[Any, ...] = ()):
        self.errors = errors
        super().__init__(message)


class TransactionValidationError(ValidationFailedError):
    """A raw ledger record could not be turned into a Transaction."""

    code: str = "INVALID_TRANSACTION"

    def __init__(self, record_id: Any, field: str | None, reason_code: str, message: str):
        self.record_id = record_id
        self.field = field
        self.reason_code = reason_code
        super().__init__(f"Transaction {record_id!r}: {message}")


class StockSnapshotValidationError(ValidationFailedError):
    """The stock snapshot contains entries that are not integer quantities."""

    code: str = "INVALID_STOCK_SNAPSHOT"

    def __init__(self, errors: tuple[Any, ...]):
        super().__init__(
            f"Stock snapshot has {len(errors)} invalid entr{'y' if len(errors) == 1 else 'ies'}",
            errors,
        )


# Configuration


class ConfigurationError(PalletKernelError):
    """Configuration document is structurally invalid."""

    code: str = "CONFIGURATION_ERROR"

    def __init__(self, message: str, problems: tuple[str, ...] = ()):
        self.problems = problems
        if problems:
            message = f"{message}: " + "; ".join(problems)
        super().__init__(message)


class InvalidRateScheduleError(ConfigurationError):
    """A partner's rate tiers are not a valid schedule."""

    code: str = "INVALID_RATE_SCHEDULE"

    def __init__(self, partner_id: str, reason: str):
        self.partner_id = partner_id
        self.reason = reason
        super().__init__(f"Invalid rate schedule for partner {partner_id}", (reason,))


class UnknownPartnerError(ConfigurationError):
    """Strict lookup of a partner id that is not configured."""

    code: str = "UNKNOWN_PARTNER"

    def __init__(self, partner_id: str):
        self.partner_id = partner_id
        super().__init__(f"Partner not configured: {partner_id}")
