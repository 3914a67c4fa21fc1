"""
Pure domain layer.

This module contains immutable value objects for the pallet ledger with
NO dependencies on:
- Persistence or sync collaborators
- Time/clock (except the injectable Clock itself)
- I/O

All domain objects are immutable and deterministic.
"""

from pallet_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from pallet_kernel.domain.dtos import Diagnostic, DiagnosticSeverity, ValidationError
from pallet_kernel.domain.values import (
    HoldingSide,
    Partner,
    PartnerType,
    RateTier,
    StockSnapshot,
    Transaction,
    TransactionStatus,
    TransactionType,
)

__all__ = [
    "Clock",
    "SystemClock",
    "DeterministicClock",
    "Diagnostic",
    "DiagnosticSeverity",
    "ValidationError",
    "HoldingSide",
    "Partner",
    "PartnerType",
    "RateTier",
    "StockSnapshot",
    "Transaction",
    "TransactionStatus",
    "TransactionType",
]
