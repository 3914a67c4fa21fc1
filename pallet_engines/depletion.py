"""
pallet_engines.depletion -- Burn-rate stock depletion forecasting.

Responsibility:
    Estimate how many days a branch can keep issuing a pallet type before
    its confirmed stock runs out, from the trailing window of completed
    movements, and recommend a replenishment quantity.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - burn_rate = avg_out - avg_in over the trailing window; a branch whose
      burn_rate <= 0 never produces a prediction (no division by zero).
    - days_until_empty is floored and computed with exact integer
      arithmetic: floor(stock * window / (out - in)).
    - Only near-term forecasts are surfaced (days < horizon, or Critical).

Failure modes:
    - None raised.  Zero-activity branches are simply omitted.

Usage:
    from pallet_engines.depletion import predict_depletion

    prediction = predict_depletion(transactions, snapshot, "kpp", "loscam_red", now)
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum

from pallet_engines.ledger import filter_by_date
from pallet_engines.tracer import traced_engine
from pallet_kernel.domain.values import StockSnapshot, Transaction
from pallet_kernel.logging_config import get_logger

logger = get_logger("engines.depletion")


class PredictionStatus(str, Enum):
    CRITICAL = "Critical"
    WARNING = "Warning"
    SAFE = "Safe"


@dataclass(frozen=True, slots=True)
class DepletionSettings:
    """Tunable windows for the depletion forecast (all in days)."""

    window_days: int = 30
    critical_days: int = 3
    warning_days: int = 7
    horizon_days: int | None = 14
    buffer_days: int = 14

    def __post_init__(self) -> None:
        if self.window_days <= 0:
            raise ValueError("window_days must be positive")
        if not 0 <= self.critical_days <= self.warning_days:
            raise ValueError("Depletion thresholds must satisfy 0 <= critical <= warning")
        if self.buffer_days < 0:
            raise ValueError("buffer_days cannot be negative")

    def classify(self, days_until_empty: int) -> PredictionStatus:
        if days_until_empty < self.critical_days:
            return PredictionStatus.CRITICAL
        if days_until_empty < self.warning_days:
            return PredictionStatus.WARNING
        return PredictionStatus.SAFE


DEFAULT_DEPLETION_SETTINGS = DepletionSettings()


@dataclass(frozen=True, slots=True)
class StockPrediction:
    """Forecast for one (branch, pallet type) pair."""

    branch_id: str
    pallet_id: str
    current_stock: int
    avg_daily_in: Decimal
    avg_daily_out: Decimal
    burn_rate: Decimal
    days_until_empty: int
    status: PredictionStatus
    recommended_replenishment: int


def _window_totals(
    transactions: Sequence[Transaction],
    branch_id: str,
    pallet_id: str,
    as_of_date: datetime,
    window_days: int,
) -> tuple[int, int]:
    window = filter_by_date(transactions, as_of_date - timedelta(days=window_days), as_of_date)
    total_in = 0
    total_out = 0
    for t in window:
        if not t.is_completed or t.pallet_id != pallet_id:
            continue
        if t.dest == branch_id:
            total_in += t.qty
        if t.source == branch_id:
            total_out += t.qty
    return total_in, total_out


@traced_engine(
    "depletion", "1.0",
    fingerprint_fields=("transactions", "stock_snapshot", "branch_id", "pallet_id", "as_of_date"),
)
def predict_depletion(
    transactions: Sequence[Transaction],
    stock_snapshot: StockSnapshot,
    branch_id: str,
    pallet_id: str,
    as_of_date: datetime,
    settings: DepletionSettings = DEFAULT_DEPLETION_SETTINGS,
) -> StockPrediction | None:
    """
    Forecast depletion for one branch and pallet type.

    Returns None when the branch is not burning stock (burn_rate <= 0) or
    when the forecast falls outside the reporting horizon and is not
    Critical.  Pass ``settings`` with ``horizon_days=None`` to always get
    the forecast for a burning branch.
    """
    window = settings.window_days
    total_in, total_out = _window_totals(transactions, branch_id, pallet_id, as_of_date, window)
    net_out = total_out - total_in
    if net_out <= 0:
        return None

    current_stock = stock_snapshot.quantity(branch_id, pallet_id)
    days_until_empty = (current_stock * window) // net_out
    status = settings.classify(days_until_empty)

    if (
        settings.horizon_days is not None
        and days_until_empty >= settings.horizon_days
        and status != PredictionStatus.CRITICAL
    ):
        return None

    replenishment = (Decimal(net_out * settings.buffer_days) / Decimal(window)).quantize(
        Decimal("1"), rounding=ROUND_HALF_UP,
    )
    prediction = StockPrediction(
        branch_id=branch_id,
        pallet_id=pallet_id,
        current_stock=current_stock,
        avg_daily_in=Decimal(total_in) / Decimal(window),
        avg_daily_out=Decimal(total_out) / Decimal(window),
        burn_rate=Decimal(net_out) / Decimal(window),
        days_until_empty=days_until_empty,
        status=status,
        recommended_replenishment=int(replenishment),
    )

    logger.info("depletion_predicted", extra={
        "branch_id": branch_id,
        "pallet_id": pallet_id,
        "current_stock": current_stock,
        "days_until_empty": days_until_empty,
        "status": status.value,
    })
    return prediction


def predict_all_depletions(
    transactions: Sequence[Transaction],
    stock_snapshot: StockSnapshot,
    as_of_date: datetime,
    settings: DepletionSettings = DEFAULT_DEPLETION_SETTINGS,
) -> tuple[StockPrediction, ...]:
    """Surfaced forecasts for every snapshot pair, most urgent first."""
    predictions = [
        p for p in (
            predict_depletion(transactions, stock_snapshot, branch_id, pallet_id, as_of_date, settings)
            for branch_id, pallet_id, _ in stock_snapshot.pairs()
        )
        if p is not None
    ]
    predictions.sort(key=lambda p: (p.days_until_empty, p.branch_id, p.pallet_id))
    return tuple(predictions)
