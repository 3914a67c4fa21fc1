"""
Values -- Immutable, self-validating pallet ledger value objects.

Responsibility:
    Provides the foundational types every engine computes over:
    Transaction (one immutable ledger line), Partner (static rental
    configuration for an external party), RateTier and StockSnapshot
    (confirmed on-hand stock per branch and pallet type).

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Imported by every other layer. No outward dependencies.

Invariants enforced:
    - Transaction.qty is a positive integer (bool is rejected).
    - Transaction.date is timezone-aware, so ordering and age arithmetic
      never mix naive and aware instants.
    - Partner grace period and fees are non-negative; rate tiers are
      strictly ascending by ``min_balance`` and start at zero.
    - StockSnapshot is read-only after construction.

Failure modes:
    - ValueError on construction with invalid quantities, dates, rates or
      tier schedules.

Audit relevance:
    Every derived balance, loan and accrual traces back to Transaction ids
    and the Partner configuration captured here.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from types import MappingProxyType


class TransactionType(str, Enum):
    """Kind of pallet movement recorded in the ledger."""

    IN = "IN"
    OUT = "OUT"
    ADJUST = "ADJUST"
    MAINTENANCE = "MAINTENANCE"


class TransactionStatus(str, Enum):
    """Lifecycle status. Cancellation is a status change, never a deletion."""

    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class PartnerType(str, Enum):
    CUSTOMER = "customer"
    PROVIDER = "provider"


class HoldingSide(str, Enum):
    """
    Which leg of a transaction increases the outstanding position.

    PARTNER_HOLDS: pallets sent to the partner (``dest == partner``) are a
        loan the partner holds; pallets coming back (``source == partner``)
        are returns.
    WE_HOLD: the mirror image, for providers the company borrows from.
    """

    PARTNER_HOLDS = "partner_holds"
    WE_HOLD = "we_hold"


@dataclass(frozen=True, slots=True)
class Transaction:
    """
    Immutable ledger entry.

    Contract:
        Created by the movement, maintenance and adjustment workflows and
        handed to the engines by the persistence collaborator.  Only the
        correction fields (``original_pallet_id`` / ``original_qty``) are
        ever set after the fact.

    Guarantees:
        - qty > 0
        - date is timezone-aware
        - scrap_qty, when present, is a non-negative integer

    Non-goals:
        - Does NOT parse ``note``; structured data lives in typed fields.
    """

    id: int
    type: TransactionType
    source: str
    dest: str
    pallet_id: str
    qty: int
    date: datetime
    status: TransactionStatus
    doc_no: str = ""
    reference_doc_no: str | None = None
    original_pallet_id: str | None = None
    original_qty: int | None = None
    scrap_qty: int | None = None
    note: str | None = None

    def __post_init__(self) -> None:
        if isinstance(self.qty, bool) or not isinstance(self.qty, int):
            raise ValueError(f"Transaction {self.id}: qty must be an integer, got {self.qty!r}")
        if self.qty <= 0:
            raise ValueError(f"Transaction {self.id}: qty must be positive, got {self.qty}")
        if not isinstance(self.date, datetime):
            raise ValueError(f"Transaction {self.id}: date must be a datetime, got {self.date!r}")
        if self.date.tzinfo is None:
            raise ValueError(f"Transaction {self.id}: date must be timezone-aware")
        if self.scrap_qty is not None and (
            isinstance(self.scrap_qty, bool)
            or not isinstance(self.scrap_qty, int)
            or self.scrap_qty < 0
        ):
            raise ValueError(
                f"Transaction {self.id}: scrap_qty must be a non-negative integer, got {self.scrap_qty!r}"
            )

    @property
    def is_completed(self) -> bool:
        return self.status == TransactionStatus.COMPLETED

    @property
    def is_pending(self) -> bool:
        return self.status == TransactionStatus.PENDING

    @property
    def is_cancelled(self) -> bool:
        return self.status == TransactionStatus.CANCELLED

    @property
    def was_corrected(self) -> bool:
        """True if a received line was corrected post-hoc."""
        return self.original_pallet_id is not None or self.original_qty is not None

    def touches(self, entity_id: str) -> bool:
        return self.source == entity_id or self.dest == entity_id


@dataclass(frozen=True, slots=True)
class RateTier:
    """
    One step of a volume-tiered daily rental schedule.

    The tier applies when the partner's aggregate open balance is at least
    ``min_balance`` (inclusive lower bound).
    """

    min_balance: int
    rate: Decimal

    def __post_init__(self) -> None:
        if not isinstance(self.rate, Decimal):
            object.__setattr__(self, "rate", Decimal(str(self.rate)))
        if self.min_balance < 0:
            raise ValueError("Tier min_balance cannot be negative")
        if self.rate < 0:
            raise ValueError("Tier rate cannot be negative")


@dataclass(frozen=True, slots=True)
class Partner:
    """
    Static business configuration for an external partner.

    Contract:
        A partner accrues rent only if it has ``rate_tiers`` or a positive
        ``rental_fee``.  Everyone else is balance-only.

    Guarantees:
        - grace_period >= 0 and rental_fee >= 0
        - rate_tiers strictly ascending by min_balance, first tier at 0
    """

    id: str
    name: str
    type: PartnerType
    allowed_pallets: frozenset[str] = field(default_factory=frozenset)
    rental_fee: Decimal = Decimal("0")
    grace_period: int = 0
    rate_tiers: tuple[RateTier, ...] = ()
    holding_side: HoldingSide = HoldingSide.PARTNER_HOLDS

    def __post_init__(self) -> None:
        if not isinstance(self.rental_fee, Decimal):
            object.__setattr__(self, "rental_fee", Decimal(str(self.rental_fee)))
        if not isinstance(self.allowed_pallets, frozenset):
            object.__setattr__(self, "allowed_pallets", frozenset(self.allowed_pallets))
        if self.rental_fee < 0:
            raise ValueError(f"Partner {self.id}: rental_fee cannot be negative")
        if self.grace_period < 0:
            raise ValueError(f"Partner {self.id}: grace_period cannot be negative")
        if self.rate_tiers:
            if self.rate_tiers[0].min_balance != 0:
                raise ValueError(f"Partner {self.id}: first rate tier must start at 0")
            bounds = [t.min_balance for t in self.rate_tiers]
            if any(later <= earlier for earlier, later in zip(bounds, bounds[1:])):
                raise ValueError(
                    f"Partner {self.id}: rate tiers must be strictly ascending, got {bounds}"
                )

    @property
    def is_tiered(self) -> bool:
        return bool(self.rate_tiers)

    @property
    def accrues_rent(self) -> bool:
        return self.is_tiered or self.rental_fee > 0

    def allows(self, pallet_id: str) -> bool:
        """True if the partner may hold this pallet type (empty set = any)."""
        return not self.allowed_pallets or pallet_id in self.allowed_pallets


class StockSnapshot:
    """
    Confirmed on-hand stock: branch id -> pallet id -> quantity.

    Contract:
        Maintained by the persistence collaborator as the authoritative
        running total.  The engines only read it; missing entries read as 0.

    Guarantees:
        - Read-only after construction (inner mappings are proxies over
          private copies).
        - Iteration order is sorted, so derived outputs are deterministic.
    """

    __slots__ = ("_levels",)

    def __init__(self, levels: Mapping[str, Mapping[str, int]] | None = None):
        copied: dict[str, Mapping[str, int]] = {}
        for branch_id, pallets in (levels or {}).items():
            copied[branch_id] = MappingProxyType(dict(pallets))
        self._levels: Mapping[str, Mapping[str, int]] = MappingProxyType(copied)

    def quantity(self, branch_id: str, pallet_id: str) -> int:
        return self._levels.get(branch_id, {}).get(pallet_id, 0)

    def branches(self) -> tuple[str, ...]:
        return tuple(sorted(self._levels))

    def pallets_for(self, branch_id: str) -> tuple[str, ...]:
        return tuple(sorted(self._levels.get(branch_id, {})))

    def pairs(self) -> Iterator[tuple[str, str, int]]:
        """Yield (branch_id, pallet_id, quantity) in sorted order."""
        for branch_id in self.branches():
            for pallet_id in self.pallets_for(branch_id):
                yield branch_id, pallet_id, self._levels[branch_id][pallet_id]

    def total(self) -> int:
        return sum(qty for _, _, qty in self.pairs())

    def total_for_pallet(self, pallet_id: str) -> int:
        return sum(qty for _, p, qty in self.pairs() if p == pallet_id)

    def as_dict(self) -> dict[str, dict[str, int]]:
        return {b: dict(p) for b, p in self._levels.items()}

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, StockSnapshot):
            return NotImplemented
        return self.as_dict() == other.as_dict()

    def __repr__(self) -> str:
        return f"StockSnapshot({self.as_dict()!r})"
