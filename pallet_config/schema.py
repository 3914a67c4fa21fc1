"""
PalletConfig schema.

The human-authored, reviewable configuration for the pallet ledger:
pallet types, branches, external partners with their rental terms, and the
thresholds used by the aging and depletion engines.  YAML documents are
parsed into these frozen types by the loader and checked by the validator.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from pallet_engines.depletion import DepletionSettings
from pallet_engines.rental import AgingThresholds
from pallet_kernel.domain.values import Partner
from pallet_kernel.exceptions import UnknownPartnerError


class BranchKind(str, Enum):
    HUB = "HUB"
    BRANCH = "BRANCH"


@dataclass(frozen=True)
class PalletTypeDef:
    """A pallet type the ledger can carry."""

    id: str
    name: str
    is_rental: bool = False
    material: str = "wood"


@dataclass(frozen=True)
class BranchDef:
    id: str
    name: str
    kind: BranchKind = BranchKind.BRANCH


@dataclass(frozen=True)
class PalletConfig:
    """Parsed and validated configuration set."""

    version: int
    pallet_types: tuple[PalletTypeDef, ...]
    branches: tuple[BranchDef, ...]
    partners: tuple[Partner, ...]
    aging: AgingThresholds = field(default_factory=AgingThresholds)
    depletion: DepletionSettings = field(default_factory=DepletionSettings)
    checksum: str = ""

    def partner_map(self) -> dict[str, Partner]:
        return {p.id: p for p in self.partners}

    def get_partner(self, partner_id: str) -> Partner | None:
        return self.partner_map().get(partner_id)

    def partner(self, partner_id: str) -> Partner:
        """Strict lookup; raises UnknownPartnerError if not configured."""
        found = self.get_partner(partner_id)
        if found is None:
            raise UnknownPartnerError(partner_id)
        return found

    def rental_partners(self) -> tuple[Partner, ...]:
        return tuple(p for p in self.partners if p.accrues_rent)

    @property
    def pallet_ids(self) -> frozenset[str]:
        return frozenset(p.id for p in self.pallet_types)

    @property
    def branch_ids(self) -> frozenset[str]:
        return frozenset(b.id for b in self.branches)
