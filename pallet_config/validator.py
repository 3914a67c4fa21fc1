"""
Configuration Validator (``pallet_config.validator``).

Responsibility
--------------
Cross-reference checks on a parsed ``PalletConfig`` before it is handed to
the engines.  Per-record checks (non-negative fees, ascending tiers) live
in the ``Partner`` / ``RateTier`` constructors; this module checks what
only the whole document can answer.

Invariants enforced
-------------------
* Pallet type, branch and partner ids are unique.
* Every pallet a partner allows is a declared pallet type.
* A partner with a rate schedule or rental fee allows at least one rental
  pallet type.
* Partner ids do not collide with branch ids, since both appear as
  transaction endpoints.

Failure modes
-------------
* Errors  -> ``get_active_config`` raises ``ConfigurationError``.
* Warnings  -> logged, configuration still usable.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field

from pallet_config.schema import PalletConfig


@dataclass
class ConfigValidationResult:
    """``is_valid`` is True only when ``errors`` is empty."""

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)


def validate_configuration(config: PalletConfig) -> ConfigValidationResult:
    result = ConfigValidationResult()
    _validate_uniqueness(config, result)
    _validate_partner_pallets(config, result)
    return result


def _validate_uniqueness(config: PalletConfig, result: ConfigValidationResult) -> None:
    for label, ids in (
        ("pallet type", [p.id for p in config.pallet_types]),
        ("branch", [b.id for b in config.branches]),
        ("partner", [p.id for p in config.partners]),
    ):
        for dup, n in sorted(Counter(ids).items()):
            if n > 1:
                result.add_error(f"Duplicate {label} id {dup!r} ({n} occurrences)")


def _validate_partner_pallets(config: PalletConfig, result: ConfigValidationResult) -> None:
    known = config.pallet_ids
    rental = {p.id for p in config.pallet_types if p.is_rental}
    for partner in config.partners:
        unknown = sorted(partner.allowed_pallets - known)
        if unknown:
            result.add_error(
                f"Partner {partner.id!r} allows undeclared pallet types: {', '.join(unknown)}"
            )
        if partner.accrues_rent and partner.allowed_pallets and not (partner.allowed_pallets & rental):
            result.add_warning(
                f"Partner {partner.id!r} has rental terms but allows no rental pallet type"
            )
        if partner.id in config.branch_ids:
            result.add_error(f"Partner id {partner.id!r} collides with a branch id")
