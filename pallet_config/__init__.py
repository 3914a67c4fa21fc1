"""
pallet_config -- single public entrypoint for pallet ledger configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  Partner rental terms, rate schedules, aging
    bands and depletion windows are data in a reviewable YAML document,
    never constants in engine code.

Architecture position:
    Configuration -- sits above ``pallet_kernel`` / ``pallet_engines`` and
    below ``pallet_services``.  Engines never import this package; they
    receive ``Partner`` and settings objects as arguments.

Invariants enforced:
    - Single entrypoint: all runtime config flows through ``get_active_config()``.
    - Load-time validation: a configuration with cross-reference errors is
      never returned.
    - Deterministic checksum: the same YAML always yields the same
      ``PalletConfig.checksum``.

Failure modes:
    - ``FileNotFoundError`` -- the requested YAML file does not exist.
    - ``yaml.YAMLError`` -- the file is not valid YAML.
    - ``ConfigurationError`` / ``InvalidRateScheduleError`` -- schema or
      cross-reference validation failed.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``PALLET_CONFIG_TRACE`` log entry with the version, checksum and
    partner count, tying every rent figure back to the exact rate schedule
    that produced it.
"""

from __future__ import annotations

from pathlib import Path

from pallet_config.loader import load_config_file
from pallet_config.schema import BranchDef, BranchKind, PalletConfig, PalletTypeDef
from pallet_config.validator import ConfigValidationResult, validate_configuration
from pallet_kernel.exceptions import ConfigurationError
from pallet_kernel.logging_config import get_logger

_logger = get_logger("config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults" / "pallet_config.yaml"


def get_active_config(config_path: Path | None = None) -> PalletConfig:
    """The ONLY public configuration entrypoint.

    Args:
        config_path: Override path to a YAML document.  Defaults to the
            packaged ``pallet_config/defaults/pallet_config.yaml``.

    Returns:
        A frozen, validated ``PalletConfig``.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigurationError: If parsing or validation fails.
    """
    path = Path(config_path) if config_path is not None else DEFAULT_CONFIG_PATH
    config = load_config_file(path)

    validation = validate_configuration(config)
    for warning in validation.warnings:
        _logger.warning("config_validation_warning", extra={"warning": warning})
    if not validation.is_valid:
        raise ConfigurationError("Configuration validation failed", problems=tuple(validation.errors))

    _logger.info(
        "PALLET_CONFIG_TRACE",
        extra={
            "trace_type": "PALLET_CONFIG_TRACE",
            "config_path": str(path),
            "config_version": config.version,
            "checksum": config.checksum,
            "partner_count": len(config.partners),
            "pallet_type_count": len(config.pallet_types),
            "branch_count": len(config.branches),
        },
    )
    return config


__all__ = [
    "DEFAULT_CONFIG_PATH",
    "BranchDef",
    "BranchKind",
    "ConfigValidationResult",
    "PalletConfig",
    "PalletTypeDef",
    "get_active_config",
    "validate_configuration",
]
