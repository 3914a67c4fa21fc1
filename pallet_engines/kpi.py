"""
pallet_engines.kpi -- Dashboard KPI aggregates over a date-filtered ledger.

Responsibility:
    Simple ratio and delta arithmetic for the analytics dashboard:
    utilization and maintenance rates, period-over-period trend, movement
    distributions, time series buckets, per-branch and per-pallet activity,
    and maintenance scrap totals.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - CANCELLED transactions are excluded from every aggregate except
      ``status_distribution``, which exists to count them.
    - The previous comparison period is [start - length, start), so a
      transaction on the boundary is never counted in both periods.
    - Percentages are Decimal, ROUND_HALF_UP.

Failure modes:
    - None raised.  Zero denominators yield 0.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum

from pallet_engines.ledger import excluding_cancelled, filter_by_date
from pallet_engines.tracer import traced_engine
from pallet_kernel.domain.values import StockSnapshot, Transaction, TransactionType
from pallet_kernel.logging_config import get_logger

logger = get_logger("engines.kpi")

_ONE_DP = Decimal("0.1")
_WHOLE = Decimal("1")
_TREND_BAND = Decimal("5")


class Trend(str, Enum):
    UP = "up"
    DOWN = "down"
    STABLE = "stable"


class GroupBy(str, Enum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"


@dataclass(frozen=True, slots=True)
class KPIMetrics:
    total_transactions: int
    total_pallets_in_stock: int
    total_movements: int
    utilization_rate: Decimal
    maintenance_rate: Decimal
    trend: Trend
    trend_percentage: Decimal


@dataclass(frozen=True, slots=True)
class DistributionEntry:
    key: str
    value: int
    percentage: Decimal


@dataclass(frozen=True, slots=True)
class TimeSeriesPoint:
    period: str
    in_qty: int = 0
    out_qty: int = 0
    maintenance_qty: int = 0
    total: int = 0


@dataclass(frozen=True, slots=True)
class PalletTypeActivity:
    pallet_id: str
    total_stock: int
    in_qty: int
    out_qty: int
    maintenance_qty: int
    turnover_rate: Decimal


@dataclass(frozen=True, slots=True)
class BranchActivity:
    branch_id: str
    total_stock: int
    in_count: int
    out_count: int
    utilization_rate: Decimal


@dataclass(frozen=True, slots=True)
class ScrapSummary:
    total_scrapped: int
    by_pallet: tuple[tuple[str, int], ...]
    transaction_count: int


def _percent(numerator: int | Decimal, denominator: int | Decimal, places: Decimal = _ONE_DP) -> Decimal:
    if not denominator:
        return Decimal("0").quantize(places)
    return (Decimal(numerator) / Decimal(denominator) * 100).quantize(places, rounding=ROUND_HALF_UP)


def _active_window(transactions: Sequence[Transaction], start: datetime, end: datetime) -> tuple[Transaction, ...]:
    return excluding_cancelled(filter_by_date(transactions, start, end))


@traced_engine("kpi", "1.0", fingerprint_fields=("transactions", "stock_snapshot", "start", "end"))
def calculate_kpis(
    transactions: Sequence[Transaction],
    stock_snapshot: StockSnapshot,
    start: datetime,
    end: datetime,
) -> KPIMetrics:
    """
    Headline dashboard metrics for the period ``[start, end]``.

    Utilization is movements relative to stock, capped at 100 %.  The trend
    compares transaction counts with the preceding period of equal length;
    more than +/-5 % is up/down, anything else stable.
    """
    current = _active_window(transactions, start, end)
    total_stock = stock_snapshot.total()
    total_movements = sum(t.qty for t in current)
    maintenance = sum(1 for t in current if t.type == TransactionType.MAINTENANCE)

    utilization = min(_percent(total_movements, total_stock), Decimal("100.0"))
    maintenance_rate = _percent(maintenance, len(current))

    previous_start = start - (end - start)
    previous = [t for t in excluding_cancelled(transactions) if previous_start <= t.date < start]

    trend = Trend.STABLE
    trend_pct = Decimal("0.0")
    if previous:
        # classify on the exact change; only the reported figure is rounded
        change = Decimal(len(current) - len(previous)) / Decimal(len(previous)) * 100
        if change > _TREND_BAND:
            trend = Trend.UP
        elif change < -_TREND_BAND:
            trend = Trend.DOWN
        trend_pct = abs(change).quantize(_ONE_DP, rounding=ROUND_HALF_UP)

    metrics = KPIMetrics(
        total_transactions=len(current),
        total_pallets_in_stock=total_stock,
        total_movements=total_movements,
        utilization_rate=utilization,
        maintenance_rate=maintenance_rate,
        trend=trend,
        trend_percentage=trend_pct,
    )
    logger.info("kpis_calculated", extra={
        "start": start.isoformat(),
        "end": end.isoformat(),
        "total_transactions": metrics.total_transactions,
        "trend": trend.value,
    })
    return metrics


def type_distribution(
    transactions: Sequence[Transaction],
    start: datetime,
    end: datetime,
) -> tuple[DistributionEntry, ...]:
    """Moved quantity per transaction type, largest first."""
    totals: dict[str, int] = defaultdict(int)
    for t in _active_window(transactions, start, end):
        totals[t.type.value] += t.qty
    grand_total = sum(totals.values())
    return tuple(
        DistributionEntry(key=k, value=v, percentage=_percent(v, grand_total, _WHOLE))
        for k, v in sorted(totals.items(), key=lambda kv: (-kv[1], kv[0]))
    )


def status_distribution(
    transactions: Sequence[Transaction],
    start: datetime,
    end: datetime,
) -> tuple[DistributionEntry, ...]:
    """Transaction count per status, cancelled included."""
    counts: dict[str, int] = defaultdict(int)
    window = filter_by_date(transactions, start, end)
    for t in window:
        counts[t.status.value] += 1
    return tuple(
        DistributionEntry(key=k, value=v, percentage=_percent(v, len(window), _WHOLE))
        for k, v in sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))
    )


def _period_key(moment: datetime, group_by: GroupBy) -> str:
    day = moment.date()
    if group_by == GroupBy.DAY:
        return day.isoformat()
    if group_by == GroupBy.WEEK:
        # weeks start on Sunday
        return (day - timedelta(days=(day.weekday() + 1) % 7)).isoformat()
    return f"{day.year}-{day.month:02d}"


def time_series(
    transactions: Sequence[Transaction],
    start: datetime,
    end: datetime,
    group_by: GroupBy = GroupBy.DAY,
) -> tuple[TimeSeriesPoint, ...]:
    """In/out/maintenance quantities bucketed by day, week or month."""
    buckets: dict[str, dict[str, int]] = {}
    for t in _active_window(transactions, start, end):
        bucket = buckets.setdefault(
            _period_key(t.date, group_by),
            {"in_qty": 0, "out_qty": 0, "maintenance_qty": 0, "total": 0},
        )
        if t.type == TransactionType.IN:
            bucket["in_qty"] += t.qty
        elif t.type == TransactionType.OUT:
            bucket["out_qty"] += t.qty
        elif t.type == TransactionType.MAINTENANCE:
            bucket["maintenance_qty"] += t.qty
        bucket["total"] += t.qty
    return tuple(TimeSeriesPoint(period=k, **v) for k, v in sorted(buckets.items()))


def pallet_type_activity(
    transactions: Sequence[Transaction],
    stock_snapshot: StockSnapshot,
    start: datetime,
    end: datetime,
) -> tuple[PalletTypeActivity, ...]:
    """Per pallet type: stock on hand, moved quantities and turnover rate."""
    window = _active_window(transactions, start, end)
    pallet_ids = sorted({p for _, p, _ in stock_snapshot.pairs()} | {t.pallet_id for t in window})

    rows = []
    for pallet_id in pallet_ids:
        moves = [t for t in window if t.pallet_id == pallet_id]
        in_qty = sum(t.qty for t in moves if t.type == TransactionType.IN)
        out_qty = sum(t.qty for t in moves if t.type == TransactionType.OUT)
        stock = stock_snapshot.total_for_pallet(pallet_id)
        rows.append(PalletTypeActivity(
            pallet_id=pallet_id,
            total_stock=stock,
            in_qty=in_qty,
            out_qty=out_qty,
            maintenance_qty=sum(t.qty for t in moves if t.type == TransactionType.MAINTENANCE),
            turnover_rate=_percent(in_qty + out_qty, stock),
        ))
    rows.sort(key=lambda r: (-r.total_stock, r.pallet_id))
    return tuple(rows)


def branch_activity(
    transactions: Sequence[Transaction],
    stock_snapshot: StockSnapshot,
    start: datetime,
    end: datetime,
) -> tuple[BranchActivity, ...]:
    """Per branch in the snapshot: stock, IN/OUT document counts, utilization."""
    window = _active_window(transactions, start, end)
    rows = []
    for branch_id in stock_snapshot.branches():
        total_stock = sum(qty for b, _, qty in stock_snapshot.pairs() if b == branch_id)
        in_count = sum(1 for t in window if t.dest == branch_id and t.type == TransactionType.IN)
        out_count = sum(1 for t in window if t.source == branch_id and t.type == TransactionType.OUT)
        rows.append(BranchActivity(
            branch_id=branch_id,
            total_stock=total_stock,
            in_count=in_count,
            out_count=out_count,
            utilization_rate=min(_percent(in_count + out_count, total_stock), Decimal("100.0")),
        ))
    rows.sort(key=lambda r: (-r.total_stock, r.branch_id))
    return tuple(rows)


def scrap_summary(
    transactions: Sequence[Transaction],
    start: datetime,
    end: datetime,
) -> ScrapSummary:
    """Pallets written off by completed maintenance, from the ``scrap_qty`` field."""
    by_pallet: dict[str, int] = defaultdict(int)
    count = 0
    for t in filter_by_date(transactions, start, end):
        if t.type != TransactionType.MAINTENANCE or not t.is_completed or not t.scrap_qty:
            continue
        by_pallet[t.pallet_id] += t.scrap_qty
        count += 1
    return ScrapSummary(
        total_scrapped=sum(by_pallet.values()),
        by_pallet=tuple(sorted(by_pallet.items())),
        transaction_count=count,
    )
