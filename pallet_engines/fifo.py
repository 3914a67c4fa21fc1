"""
pallet_engines.fifo -- FIFO matching of returns against outstanding borrows.

Responsibility:
    Turn the ledger into a list of open loans for one partner and pallet
    type.  Returns are not tied to specific borrow documents; they are
    pooled and consumed against the oldest borrow first.  Each unconsumed
    remainder becomes a Loan carrying its age in whole days.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Uses the borrow/return leg definitions of ``pallet_engines.balance`` so
    that matcher and calculator can never disagree on direction.

Invariants enforced:
    - Oldest-first consumption; ties in ``date`` keep input order (stable sort).
    - sum(loan.qty) == max(0, calculate_balance(...)) for the same side.
    - No loan ever has qty <= 0; fully returned borrows are dropped.
    - CANCELLED and PENDING transactions are ignored.
    - Purity: ``as_of_date`` is a parameter, never read from a clock.

Failure modes:
    - None raised.  Returns in excess of everything borrowed are absorbed
      and reported as ``LoanMatch.unabsorbed_returns`` so callers can surface
      the inconsistency.

Usage:
    from pallet_engines.fifo import match_loans

    loans = match_loans(transactions, "neo_corp", "loscam_red", as_of_date=now)
"""

from __future__ import annotations

import time
from collections.abc import Sequence
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal

from pallet_engines.balance import is_borrow, is_return
from pallet_engines.tracer import traced_engine
from pallet_kernel.domain.values import HoldingSide, Transaction
from pallet_kernel.logging_config import get_logger

logger = get_logger("engines.fifo")

_ONE_DAY = timedelta(days=1)
_CENTS = Decimal("0.01")


def age_in_days(borrow_date: datetime, as_of_date: datetime) -> int:
    """Whole days elapsed, floored (negative if borrowed after ``as_of_date``)."""
    return (as_of_date - borrow_date) // _ONE_DAY


@dataclass(frozen=True, slots=True)
class Loan:
    """
    The unreturned remainder of one borrow transaction.

    Contract:
        Materialized fresh on every analysis call; never persisted.  The
        matcher fills the identity, quantity and age; the rent engine fills
        ``overdue_days``, ``rental_rate`` and ``accrued_rent``.

    Guarantees:
        - qty > 0
        - accrued_rent is unrounded; use ``reported_rent`` for display.
    """

    partner_id: str
    pallet_id: str
    doc_no: str
    transaction_id: int
    borrow_date: datetime
    qty: int
    age_days: int
    overdue_days: int = 0
    rental_rate: Decimal = Decimal("0")
    accrued_rent: Decimal = Decimal("0")

    def __post_init__(self) -> None:
        if self.qty <= 0:
            raise ValueError(f"Loan quantity must be positive, got {self.qty}")

    @property
    def reported_rent(self) -> Decimal:
        return self.accrued_rent.quantize(_CENTS, rounding=ROUND_HALF_UP)

    @property
    def is_overdue(self) -> bool:
        return self.overdue_days > 0

    def with_accrual(self, overdue_days: int, rental_rate: Decimal, accrued_rent: Decimal) -> Loan:
        return replace(
            self,
            overdue_days=overdue_days,
            rental_rate=rental_rate,
            accrued_rent=accrued_rent,
        )


@dataclass(frozen=True, slots=True)
class LoanMatch:
    """Full result of a FIFO match, including the reconciliation totals."""

    partner_id: str
    pallet_id: str
    side: HoldingSide
    loans: tuple[Loan, ...]
    total_borrowed: int
    total_returned: int
    unabsorbed_returns: int

    @property
    def open_qty(self) -> int:
        return sum(loan.qty for loan in self.loans)

    @property
    def has_excess_returns(self) -> bool:
        return self.unabsorbed_returns > 0


@traced_engine(
    "fifo", "1.0",
    fingerprint_fields=("transactions", "partner_id", "pallet_id", "as_of_date", "side"),
)
def reconcile_loans(
    transactions: Sequence[Transaction],
    partner_id: str,
    pallet_id: str,
    as_of_date: datetime,
    side: HoldingSide = HoldingSide.PARTNER_HOLDS,
) -> LoanMatch:
    """
    Match pooled returns against borrows, oldest first.

    Preconditions:
        - ``as_of_date`` is timezone-aware.
    Postconditions:
        - ``open_qty == max(0, total_borrowed - total_returned)``
        - ``unabsorbed_returns == max(0, total_returned - total_borrowed)``
    """
    t0 = time.monotonic()

    relevant = [t for t in transactions if t.is_completed and t.pallet_id == pallet_id]
    # sorted() is stable: equal dates keep ledger order
    borrows = sorted(
        (t for t in relevant if is_borrow(t, partner_id, side)),
        key=lambda t: t.date,
    )
    total_borrowed = sum(t.qty for t in borrows)
    total_returned = sum(t.qty for t in relevant if is_return(t, partner_id, side))

    available_returns = total_returned
    loans: list[Loan] = []
    for borrow in borrows:
        consumed = min(borrow.qty, available_returns)
        available_returns -= consumed
        remaining = borrow.qty - consumed
        if remaining == 0:
            continue
        loans.append(Loan(
            partner_id=partner_id,
            pallet_id=pallet_id,
            doc_no=borrow.doc_no,
            transaction_id=borrow.id,
            borrow_date=borrow.date,
            qty=remaining,
            age_days=age_in_days(borrow.date, as_of_date),
        ))

    if available_returns > 0:
        logger.warning("fifo_excess_returns", extra={
            "partner_id": partner_id,
            "pallet_id": pallet_id,
            "total_borrowed": total_borrowed,
            "total_returned": total_returned,
            "unabsorbed_returns": available_returns,
        })

    duration_ms = round((time.monotonic() - t0) * 1000, 2)
    logger.info("fifo_match_completed", extra={
        "partner_id": partner_id,
        "pallet_id": pallet_id,
        "borrow_count": len(borrows),
        "open_loan_count": len(loans),
        "open_qty": sum(loan.qty for loan in loans),
        "duration_ms": duration_ms,
    })

    return LoanMatch(
        partner_id=partner_id,
        pallet_id=pallet_id,
        side=side,
        loans=tuple(loans),
        total_borrowed=total_borrowed,
        total_returned=total_returned,
        unabsorbed_returns=available_returns,
    )


def match_loans(
    transactions: Sequence[Transaction],
    partner_id: str,
    pallet_id: str,
    as_of_date: datetime,
    side: HoldingSide = HoldingSide.PARTNER_HOLDS,
) -> tuple[Loan, ...]:
    """Open loans for a partner and pallet type, oldest borrow first."""
    return reconcile_loans(transactions, partner_id, pallet_id, as_of_date, side).loans
