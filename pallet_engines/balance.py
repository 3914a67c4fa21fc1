"""
pallet_engines.balance -- Signed pallet balance per (entity, pallet type).

Responsibility:
    Derive how many pallets of a type an entity currently holds from the
    COMPLETED transactions in the ledger.  This is the canonical "how many
    units does X hold" figure; the FIFO matcher must reproduce it as the
    sum of open loans, and the rent engine uses it to select a rate tier.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - balance = sum(qty where dest == entity) - sum(qty where source == entity)
      over COMPLETED transactions of the pallet type (HoldingSide.PARTNER_HOLDS).
    - HoldingSide.WE_HOLD is the exact mirror (source adds, dest subtracts).
    - PENDING and CANCELLED transactions contribute nothing.

Failure modes:
    - None.  An entity with no activity has balance 0.

Usage:
    from pallet_engines.balance import calculate_balance

    held = calculate_balance(transactions, "neo_corp", "loscam_red")
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable

from pallet_engines.tracer import traced_engine
from pallet_kernel.domain.values import HoldingSide, Transaction
from pallet_kernel.logging_config import get_logger

logger = get_logger("engines.balance")


def is_borrow(t: Transaction, entity_id: str, side: HoldingSide = HoldingSide.PARTNER_HOLDS) -> bool:
    """True if the transaction leg increases the entity's outstanding holding."""
    if side == HoldingSide.WE_HOLD:
        return t.source == entity_id
    return t.dest == entity_id


def is_return(t: Transaction, entity_id: str, side: HoldingSide = HoldingSide.PARTNER_HOLDS) -> bool:
    """True if the transaction leg decreases the entity's outstanding holding."""
    if side == HoldingSide.WE_HOLD:
        return t.dest == entity_id
    return t.source == entity_id


def balance_contribution(
    t: Transaction,
    entity_id: str,
    pallet_id: str,
    side: HoldingSide = HoldingSide.PARTNER_HOLDS,
) -> int:
    """Signed effect of one transaction on an (entity, pallet) balance."""
    if t.pallet_id != pallet_id or not t.is_completed:
        return 0
    delta = 0
    if is_borrow(t, entity_id, side):
        delta += t.qty
    if is_return(t, entity_id, side):
        delta -= t.qty
    return delta


@traced_engine("balance", "1.0", fingerprint_fields=("transactions", "entity_id", "pallet_id", "side"))
def calculate_balance(
    transactions: Iterable[Transaction],
    entity_id: str,
    pallet_id: str,
    side: HoldingSide = HoldingSide.PARTNER_HOLDS,
) -> int:
    """
    Signed net balance for an (entity, pallet) pair.

    Positive means the entity currently holds more than it has given back,
    i.e. an outstanding loan of pallets held by that entity.
    """
    balance = sum(balance_contribution(t, entity_id, pallet_id, side) for t in transactions)
    logger.debug("balance_calculated", extra={
        "entity_id": entity_id,
        "pallet_id": pallet_id,
        "side": side.value,
        "balance": balance,
    })
    return balance


def calculate_balances(
    transactions: Iterable[Transaction],
    entity_id: str,
    side: HoldingSide = HoldingSide.PARTNER_HOLDS,
) -> dict[str, int]:
    """Balances for every pallet type the entity has completed activity in."""
    totals: dict[str, int] = defaultdict(int)
    for t in transactions:
        if not t.is_completed or not t.touches(entity_id):
            continue
        totals[t.pallet_id] += balance_contribution(t, entity_id, t.pallet_id, side)
    return dict(sorted(totals.items()))
