"""
Configuration Loader (``pallet_config.loader``).

Responsibility
--------------
Loads a YAML configuration document and parses it into the typed
``pallet_config.schema`` dataclasses.  Runtime callers go through
``pallet_config.get_active_config()`` instead of calling this directly.

Invariants enforced
-------------------
* All parse errors raise ``ConfigurationError`` (or its
  ``InvalidRateScheduleError`` subclass) with descriptive messages; no
  silent defaults for required fields.
* Rates are parsed as ``Decimal`` from their string form, never via float.
* ``compute_checksum`` produces a deterministic SHA-256 hash for
  configuration identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing keys / bad values  -> ``ConfigurationError``.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from pallet_config.schema import BranchDef, BranchKind, PalletConfig, PalletTypeDef
from pallet_engines.depletion import DepletionSettings
from pallet_engines.rental import AgingThresholds
from pallet_kernel.domain.values import HoldingSide, Partner, PartnerType, RateTier
from pallet_kernel.exceptions import ConfigurationError, InvalidRateScheduleError

_DEFAULT_SIDE = {
    PartnerType.CUSTOMER: HoldingSide.PARTNER_HOLDS,
    PartnerType.PROVIDER: HoldingSide.WE_HOLD,
}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def parse_decimal(value: Any, what: str) -> Decimal:
    """Parse a rate or fee; YAML floats are routed through ``str`` first."""
    if isinstance(value, bool):
        raise ConfigurationError(f"{what} must be a number, got {value!r}")
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise ConfigurationError(f"{what} must be a number, got {value!r}") from e


def parse_rate_tiers(partner_id: str, raw: list[dict[str, Any]]) -> tuple[RateTier, ...]:
    tiers = []
    for item in raw:
        try:
            tiers.append(RateTier(
                min_balance=int(item["min_balance"]),
                rate=parse_decimal(item["rate"], f"{partner_id} tier rate"),
            ))
        except KeyError as e:
            raise InvalidRateScheduleError(partner_id, f"tier missing {e.args[0]!r}") from e
        except (TypeError, ValueError) as e:
            raise InvalidRateScheduleError(partner_id, str(e)) from e
    return tuple(tiers)


def parse_partner(data: dict[str, Any]) -> Partner:
    """
    Parse a ``Partner`` from a dict.

    ``holding_side`` defaults from the partner type: customers hold what we
    send them, we hold what providers send us.
    """
    try:
        partner_id = data["id"]
        partner_type = PartnerType(data["type"])
    except KeyError as e:
        raise ConfigurationError(f"Partner entry missing {e.args[0]!r}") from e
    except ValueError as e:
        raise ConfigurationError(f"Partner {data.get('id')!r}: {e}") from e

    side_raw = data.get("holding_side")
    try:
        side = HoldingSide(side_raw) if side_raw else _DEFAULT_SIDE[partner_type]
    except ValueError as e:
        raise ConfigurationError(f"Partner {partner_id}: {e}") from e

    try:
        grace_period = int(data.get("grace_period", 0))
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Partner {partner_id}: grace_period must be an integer") from e

    tiers = parse_rate_tiers(partner_id, data.get("rate_tiers") or [])
    try:
        return Partner(
            id=partner_id,
            name=data.get("name", partner_id),
            type=partner_type,
            allowed_pallets=frozenset(data.get("allowed_pallets") or ()),
            rental_fee=parse_decimal(data.get("rental_fee", 0), f"{partner_id} rental_fee"),
            grace_period=grace_period,
            rate_tiers=tiers,
            holding_side=side,
        )
    except ValueError as e:
        if tiers:
            raise InvalidRateScheduleError(partner_id, str(e)) from e
        raise ConfigurationError(str(e)) from e


def parse_pallet_type(data: dict[str, Any]) -> PalletTypeDef:
    try:
        return PalletTypeDef(
            id=data["id"],
            name=data.get("name", data["id"]),
            is_rental=bool(data.get("is_rental", False)),
            material=data.get("material", "wood"),
        )
    except KeyError as e:
        raise ConfigurationError(f"Pallet type entry missing {e.args[0]!r}") from e


def parse_branch(data: dict[str, Any]) -> BranchDef:
    try:
        return BranchDef(
            id=data["id"],
            name=data.get("name", data["id"]),
            kind=BranchKind(data.get("kind", "BRANCH")),
        )
    except KeyError as e:
        raise ConfigurationError(f"Branch entry missing {e.args[0]!r}") from e
    except ValueError as e:
        raise ConfigurationError(f"Branch {data.get('id')!r}: {e}") from e


def parse_aging(data: dict[str, Any]) -> AgingThresholds:
    try:
        return AgingThresholds(
            warning_after_days=int(data.get("warning_after_days", 7)),
            danger_after_days=int(data.get("danger_after_days", 10)),
        )
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"aging: {e}") from e


def parse_depletion(data: dict[str, Any]) -> DepletionSettings:
    horizon = data.get("horizon_days", 14)
    try:
        return DepletionSettings(
            window_days=int(data.get("window_days", 30)),
            critical_days=int(data.get("critical_days", 3)),
            warning_days=int(data.get("warning_days", 7)),
            horizon_days=int(horizon) if horizon is not None else None,
            buffer_days=int(data.get("buffer_days", 14)),
        )
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"depletion: {e}") from e


def compute_checksum(data: dict[str, Any]) -> str:
    """Deterministic SHA-256 of the parsed document (keys sorted)."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def parse_config(data: dict[str, Any]) -> PalletConfig:
    """Parse a whole configuration document."""
    if not isinstance(data, dict):
        raise ConfigurationError("Configuration document must be a mapping")
    try:
        version = int(data.get("version", 1))
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"version must be an integer, got {data.get('version')!r}") from e
    return PalletConfig(
        version=version,
        pallet_types=tuple(parse_pallet_type(p) for p in data.get("pallet_types") or []),
        branches=tuple(parse_branch(b) for b in data.get("branches") or []),
        partners=tuple(parse_partner(p) for p in data.get("partners") or []),
        aging=parse_aging(data.get("aging") or {}),
        depletion=parse_depletion(data.get("depletion") or {}),
        checksum=compute_checksum(data),
    )


def load_config_file(path: Path) -> PalletConfig:
    return parse_config(load_yaml_file(path))
