"""Ingestion result types."""

from __future__ import annotations

from dataclasses import dataclass, field

from pallet_kernel.domain.dtos import ValidationError
from pallet_kernel.domain.values import Transaction


@dataclass(frozen=True)
class IngestResult:
    """
    Outcome of ingesting a batch of raw ledger records.

    ``transactions`` holds the accepted records in input order; every
    rejected record contributes one entry to ``errors``.
    """

    transactions: tuple[Transaction, ...] = ()
    errors: tuple[ValidationError, ...] = field(default_factory=tuple)

    @property
    def accepted_count(self) -> int:
        return len(self.transactions)

    @property
    def rejected_count(self) -> int:
        return len(self.errors)

    @property
    def is_clean(self) -> bool:
        return not self.errors
