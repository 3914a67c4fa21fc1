"""
pallet_engines.ledger -- Read-only accessor over the transaction log.

Responsibility:
    Filter the append-only ledger by date range, status, entity and pallet
    type, and total the in-transit (PENDING) quantities for an entity.
    Every other engine builds its working set through these helpers.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import pallet_kernel/domain.

Invariants enforced:
    - Order preservation: filters return a sub-sequence in input order.
    - CANCELLED transactions never pass ``filter_by_entity_and_pallet``.
    - Only PENDING transactions count towards ``in_transit``.

Failure modes:
    - None.  Empty input yields empty output.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime

from pallet_kernel.domain.values import Transaction, TransactionStatus
from pallet_kernel.logging_config import get_logger

logger = get_logger("engines.ledger")


@dataclass(frozen=True, slots=True)
class InTransit:
    """PENDING quantities moving towards (inbound) or away from (outbound) an entity."""

    entity_id: str
    pallet_id: str
    inbound: int = 0
    outbound: int = 0

    @property
    def net(self) -> int:
        return self.inbound - self.outbound


def filter_by_date(
    transactions: Iterable[Transaction],
    start: datetime,
    end: datetime,
) -> tuple[Transaction, ...]:
    """Transactions with ``start <= date <= end``, order preserved."""
    return tuple(t for t in transactions if start <= t.date <= end)


def filter_by_status(
    transactions: Iterable[Transaction],
    *statuses: TransactionStatus,
) -> tuple[Transaction, ...]:
    wanted = frozenset(statuses)
    return tuple(t for t in transactions if t.status in wanted)


def completed(transactions: Iterable[Transaction]) -> tuple[Transaction, ...]:
    return filter_by_status(transactions, TransactionStatus.COMPLETED)


def excluding_cancelled(transactions: Iterable[Transaction]) -> tuple[Transaction, ...]:
    return tuple(t for t in transactions if not t.is_cancelled)


def filter_by_entity_and_pallet(
    transactions: Iterable[Transaction],
    entity_id: str,
    pallet_id: str,
) -> tuple[Transaction, ...]:
    """
    All non-cancelled transactions for one pallet type that touch an entity.

    An entity is touched when it is either the ``source`` or the ``dest``.
    PENDING transactions are included; callers that need settled movements
    only should apply ``completed`` afterwards.
    """
    return tuple(
        t for t in transactions
        if t.pallet_id == pallet_id
        and t.touches(entity_id)
        and not t.is_cancelled
    )


def in_transit(
    transactions: Sequence[Transaction],
    entity_id: str,
    pallet_id: str,
) -> InTransit:
    """Sum PENDING quantities heading to and leaving from an entity."""
    inbound = 0
    outbound = 0
    for t in filter_by_entity_and_pallet(transactions, entity_id, pallet_id):
        if not t.is_pending:
            continue
        if t.dest == entity_id:
            inbound += t.qty
        if t.source == entity_id:
            outbound += t.qty

    logger.debug("in_transit_computed", extra={
        "entity_id": entity_id,
        "pallet_id": pallet_id,
        "inbound": inbound,
        "outbound": outbound,
    })
    return InTransit(entity_id=entity_id, pallet_id=pallet_id, inbound=inbound, outbound=outbound)


def pallet_ids(transactions: Iterable[Transaction]) -> tuple[str, ...]:
    """Distinct pallet types appearing in the ledger, sorted."""
    return tuple(sorted({t.pallet_id for t in transactions}))
