"""
pallet_engines.reconciliation -- Ledger vs. stock snapshot divergence checks.

Responsibility:
    Replay the ledger for a branch and pallet type, compare the result with
    the confirmed stock snapshot, and describe any drift as coded issues.
    The snapshot is maintained by the persistence collaborator as a running
    total, so the two can disagree; this module makes the disagreement
    visible instead of reproducing it silently.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Inbound stock counts only once COMPLETED (receipt is confirmed).
    - Outbound stock counts when COMPLETED or PENDING, because the
      snapshot is debited at dispatch time.
    - CANCELLED transactions are ignored.
    - discrepancy = snapshot - (total_in - total_out).

Failure modes:
    - None raised.  Divergence is a reportable data-quality signal.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime

from pallet_engines.ledger import filter_by_entity_and_pallet
from pallet_engines.tracer import traced_engine
from pallet_kernel.domain.dtos import Diagnostic, DiagnosticSeverity
from pallet_kernel.domain.values import StockSnapshot, Transaction
from pallet_kernel.logging_config import get_logger

logger = get_logger("engines.reconciliation")


@dataclass(frozen=True, slots=True)
class StockMovementLine:
    """One replayed ledger line with its effect on the running total."""

    transaction_id: int
    date: datetime
    doc_no: str
    type: str
    status: str
    source: str
    dest: str
    qty: int
    effect: int
    running_total: int


@dataclass(frozen=True, slots=True)
class StockAnalysis:
    branch_id: str
    pallet_id: str
    current_stock: int
    calculated_stock: int
    total_in: int
    total_out: int
    pending_in: int
    pending_out: int
    history: tuple[StockMovementLine, ...]
    issues: tuple[Diagnostic, ...]

    @property
    def discrepancy(self) -> int:
        return self.current_stock - self.calculated_stock

    @property
    def is_consistent(self) -> bool:
        return self.discrepancy == 0


@traced_engine(
    "reconciliation", "1.0",
    fingerprint_fields=("transactions", "stock_snapshot", "branch_id", "pallet_id"),
)
def analyze_stock(
    transactions: Sequence[Transaction],
    stock_snapshot: StockSnapshot,
    branch_id: str,
    pallet_id: str,
) -> StockAnalysis:
    """Replay one branch/pallet ledger and compare it with the snapshot."""
    related = sorted(
        filter_by_entity_and_pallet(transactions, branch_id, pallet_id),
        key=lambda t: t.date,
    )

    total_in = total_out = pending_in = pending_out = 0
    running = 0
    history: list[StockMovementLine] = []
    for t in related:
        effect = 0
        if t.dest == branch_id:
            if t.is_completed:
                total_in += t.qty
                effect += t.qty
            else:
                pending_in += t.qty
        if t.source == branch_id:
            total_out += t.qty
            effect -= t.qty
            if t.is_pending:
                pending_out += t.qty
        running += effect
        history.append(StockMovementLine(
            transaction_id=t.id,
            date=t.date,
            doc_no=t.doc_no,
            type=t.type.value,
            status=t.status.value,
            source=t.source,
            dest=t.dest,
            qty=t.qty,
            effect=effect,
            running_total=running,
        ))

    current = stock_snapshot.quantity(branch_id, pallet_id)
    calculated = total_in - total_out
    discrepancy = current - calculated
    base = {"branch_id": branch_id, "pallet_id": pallet_id}

    issues: list[Diagnostic] = []
    if discrepancy != 0:
        issues.append(Diagnostic(
            code="STOCK_MISMATCH",
            message=(
                f"{branch_id}/{pallet_id}: snapshot {current} != ledger {calculated} "
                f"(difference {discrepancy})"
            ),
            severity=DiagnosticSeverity.ERROR,
            details={**base, "current_stock": current, "calculated_stock": calculated,
                     "discrepancy": discrepancy},
        ))
    if current < 0:
        issues.append(Diagnostic(
            code="NEGATIVE_STOCK",
            message=f"{branch_id}/{pallet_id}: snapshot stock is negative ({current})",
            severity=DiagnosticSeverity.ERROR,
            details={**base, "current_stock": current},
        ))
    if pending_in > 0:
        issues.append(Diagnostic(
            code="PENDING_INBOUND",
            message=f"{branch_id}/{pallet_id}: {pending_in} pallets awaiting receipt",
            severity=DiagnosticSeverity.INFO,
            details={**base, "pending_in": pending_in},
        ))

    if discrepancy != 0:
        logger.warning("stock_discrepancy_detected", extra={
            **base,
            "current_stock": current,
            "calculated_stock": calculated,
            "discrepancy": discrepancy,
        })

    return StockAnalysis(
        branch_id=branch_id,
        pallet_id=pallet_id,
        current_stock=current,
        calculated_stock=calculated,
        total_in=total_in,
        total_out=total_out,
        pending_in=pending_in,
        pending_out=pending_out,
        history=tuple(history),
        issues=tuple(issues),
    )


def find_discrepancies(
    transactions: Sequence[Transaction],
    stock_snapshot: StockSnapshot,
) -> tuple[StockAnalysis, ...]:
    """Every snapshot (branch, pallet) pair whose ledger replay disagrees."""
    results = []
    for branch_id, pallet_id, _ in stock_snapshot.pairs():
        analysis = analyze_stock(transactions, stock_snapshot, branch_id, pallet_id)
        if not analysis.is_consistent:
            results.append(analysis)
    logger.info("stock_reconciliation_completed", extra={
        "pair_count": sum(1 for _ in stock_snapshot.pairs()),
        "discrepancy_count": len(results),
    })
    return tuple(results)
