"""
Module: pallet_engines
Responsibility:
    Package entrypoint that re-exports all public symbols from the pure
    calculation engine sub-modules.  This is the canonical import surface
    for higher layers (pallet_services, scripts).

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import pallet_kernel (and sibling engine modules).
    MUST NOT import pallet_services.

Invariants enforced:
    - Purity: engines NEVER call ``datetime.now()``; the evaluation instant
      is always an explicit ``as_of_date`` parameter supplied by the caller.
    - Decimal-only arithmetic for rates, rent and averages.
    - Determinism: identical inputs always produce identical outputs, so
      redundant re-invocation after every ledger push is safe.

Audit relevance:
    The main engine entry points are traced via ``@traced_engine`` (see
    ``pallet_engines.tracer``), emitting PALLET_ENGINE_TRACE log records
    with engine name, version, input fingerprint and duration.

Usage:
    from pallet_engines import calculate_balance, match_loans, accrue_rent
    from pallet_engines import summarize_aging_rental, predict_depletion
"""

from pallet_kernel.logging_config import get_logger

logger = get_logger("engines")

from pallet_engines.balance import (
    balance_contribution,
    calculate_balance,
    calculate_balances,
    is_borrow,
    is_return,
)
from pallet_engines.depletion import (
    DEFAULT_DEPLETION_SETTINGS,
    DepletionSettings,
    PredictionStatus,
    StockPrediction,
    predict_all_depletions,
    predict_depletion,
)
from pallet_engines.fifo import (
    Loan,
    LoanMatch,
    age_in_days,
    match_loans,
    reconcile_loans,
)
from pallet_engines.kpi import (
    BranchActivity,
    DistributionEntry,
    GroupBy,
    KPIMetrics,
    PalletTypeActivity,
    ScrapSummary,
    TimeSeriesPoint,
    Trend,
    branch_activity,
    calculate_kpis,
    pallet_type_activity,
    scrap_summary,
    status_distribution,
    time_series,
    type_distribution,
)
from pallet_engines.ledger import (
    InTransit,
    completed,
    excluding_cancelled,
    filter_by_date,
    filter_by_entity_and_pallet,
    filter_by_status,
    in_transit,
    pallet_ids,
)
from pallet_engines.reconciliation import (
    StockAnalysis,
    StockMovementLine,
    analyze_stock,
    find_discrepancies,
)
from pallet_engines.rental import (
    AccrualResult,
    AgingRentalSummary,
    AgingThresholds,
    PartnerSummary,
    accrue_rent,
    select_rate,
    summarize_aging_rental,
    summarize_partner,
)

__all__ = [
    # Ledger accessor
    "InTransit",
    "filter_by_date",
    "filter_by_status",
    "filter_by_entity_and_pallet",
    "completed",
    "excluding_cancelled",
    "in_transit",
    "pallet_ids",
    # Balance
    "calculate_balance",
    "calculate_balances",
    "balance_contribution",
    "is_borrow",
    "is_return",
    # FIFO
    "Loan",
    "LoanMatch",
    "age_in_days",
    "match_loans",
    "reconcile_loans",
    # Rental
    "AccrualResult",
    "AgingRentalSummary",
    "AgingThresholds",
    "PartnerSummary",
    "accrue_rent",
    "select_rate",
    "summarize_aging_rental",
    "summarize_partner",
    # Depletion
    "DEFAULT_DEPLETION_SETTINGS",
    "DepletionSettings",
    "PredictionStatus",
    "StockPrediction",
    "predict_depletion",
    "predict_all_depletions",
    # KPI
    "KPIMetrics",
    "DistributionEntry",
    "TimeSeriesPoint",
    "PalletTypeActivity",
    "BranchActivity",
    "ScrapSummary",
    "Trend",
    "GroupBy",
    "calculate_kpis",
    "type_distribution",
    "status_distribution",
    "time_series",
    "pallet_type_activity",
    "branch_activity",
    "scrap_summary",
    # Reconciliation
    "StockAnalysis",
    "StockMovementLine",
    "analyze_stock",
    "find_discrepancies",
]

logger.debug("engines_package_loaded", extra={
    "module_count": 8,
    "modules": [
        "ledger", "balance", "fifo", "rental",
        "depletion", "kpi", "reconciliation", "tracer",
    ],
})
