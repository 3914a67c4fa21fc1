"""
Tests for dashboard KPI aggregates.

Covers:
- Headline metrics and period-over-period trend
- Distributions, time series, per-pallet and per-branch activity
- Scrap totals from the structured scrap_qty field
"""

from decimal import Decimal

import pytest

from pallet_engines.kpi import (
    GroupBy,
    Trend,
    branch_activity,
    calculate_kpis,
    pallet_type_activity,
    scrap_summary,
    status_distribution,
    time_series,
    type_distribution,
)
from pallet_kernel.domain.values import StockSnapshot, TransactionStatus, TransactionType

IN = TransactionType.IN
OUT = TransactionType.OUT
MAINT = TransactionType.MAINTENANCE


@pytest.fixture
def window_ledger(make_tx, day):
    """Three live movements in [day 10, day 20], one cancelled, two before."""
    return [
        make_tx("neo_corp", "hub_nks", 100, day(11), type=IN),
        make_tx("hub_nks", "sai3", 50, day(12), type=OUT),
        make_tx("hub_nks", "maintenance_stock", 20, day(13), type=MAINT, scrap_qty=3),
        make_tx("hub_nks", "sai3", 999, day(14), type=OUT, status=TransactionStatus.CANCELLED),
        make_tx("neo_corp", "hub_nks", 10, day(2), type=IN),
        make_tx("hub_nks", "sai3", 10, day(9), type=OUT),
    ]


class TestCalculateKpis:

    def test_headline_metrics(self, window_ledger, snapshot, day):
        kpis = calculate_kpis(window_ledger, snapshot, day(10), day(20))
        assert kpis.total_transactions == 3
        assert kpis.total_pallets_in_stock == 690
        assert kpis.total_movements == 170
        assert kpis.utilization_rate == Decimal("24.6")
        assert kpis.maintenance_rate == Decimal("33.3")

    def test_trend_up(self, window_ledger, snapshot, day):
        kpis = calculate_kpis(window_ledger, snapshot, day(10), day(20))
        assert kpis.trend == Trend.UP
        assert kpis.trend_percentage == Decimal("50.0")

    def test_trend_down(self, make_tx, snapshot, day):
        txs = [make_tx("a", "b", 1, day(n)) for n in (1, 3, 5, 7)]
        txs += [make_tx("a", "b", 1, day(n)) for n in (11, 12, 13)]
        kpis = calculate_kpis(txs, snapshot, day(10), day(20))
        assert kpis.trend == Trend.DOWN
        assert kpis.trend_percentage == Decimal("25.0")

    def test_trend_band_uses_unrounded_change(self, make_tx, snapshot, day):
        """+5.025 % is above the band even though it reports as 5.0."""
        txs = [make_tx("a", "b", 1, day(5)) for _ in range(199)]
        txs += [make_tx("a", "b", 1, day(15)) for _ in range(209)]
        kpis = calculate_kpis(txs, snapshot, day(10), day(20))
        assert kpis.trend == Trend.UP
        assert kpis.trend_percentage == Decimal("5.0")

    def test_trend_exactly_at_band_is_stable(self, make_tx, snapshot, day):
        txs = [make_tx("a", "b", 1, day(5)) for _ in range(20)]
        txs += [make_tx("a", "b", 1, day(15)) for _ in range(21)]
        kpis = calculate_kpis(txs, snapshot, day(10), day(20))
        assert kpis.trend == Trend.STABLE
        assert kpis.trend_percentage == Decimal("5.0")

    def test_trend_stable_without_history(self, make_tx, snapshot, day):
        kpis = calculate_kpis([make_tx("a", "b", 1, day(12))], snapshot, day(10), day(20))
        assert kpis.trend == Trend.STABLE
        assert kpis.trend_percentage == Decimal("0.0")

    def test_period_boundary_not_double_counted(self, make_tx, snapshot, day):
        """A transaction exactly at ``start`` belongs to the current period only."""
        txs = [make_tx("a", "b", 1, day(10)), make_tx("a", "b", 1, day(5))]
        kpis = calculate_kpis(txs, snapshot, day(10), day(20))
        assert kpis.total_transactions == 1
        assert kpis.trend == Trend.STABLE
        assert kpis.trend_percentage == Decimal("0.0")

    def test_utilization_capped(self, make_tx, day):
        snap = StockSnapshot({"sai3": {"loscam_red": 10}})
        kpis = calculate_kpis([make_tx("a", "b", 50, day(12))], snap, day(10), day(20))
        assert kpis.utilization_rate == Decimal("100.0")

    def test_empty_inputs(self, day):
        kpis = calculate_kpis([], StockSnapshot(), day(10), day(20))
        assert kpis.total_transactions == 0
        assert kpis.utilization_rate == Decimal("0.0")
        assert kpis.maintenance_rate == Decimal("0.0")


class TestDistributions:

    def test_type_distribution(self, window_ledger, day):
        dist = type_distribution(window_ledger, day(10), day(20))
        assert [(d.key, d.value, d.percentage) for d in dist] == [
            ("IN", 100, Decimal("59")),
            ("OUT", 50, Decimal("29")),
            ("MAINTENANCE", 20, Decimal("12")),
        ]

    def test_status_distribution_includes_cancelled(self, window_ledger, day):
        dist = status_distribution(window_ledger, day(10), day(20))
        assert [(d.key, d.value, d.percentage) for d in dist] == [
            ("COMPLETED", 3, Decimal("75")),
            ("CANCELLED", 1, Decimal("25")),
        ]


class TestTimeSeries:

    def test_daily(self, window_ledger, day):
        series = time_series(window_ledger, day(10), day(20))
        assert [(p.period, p.in_qty, p.out_qty, p.maintenance_qty, p.total) for p in series] == [
            ("2024-01-12", 100, 0, 0, 100),
            ("2024-01-13", 0, 50, 0, 50),
            ("2024-01-14", 0, 0, 20, 20),
        ]

    def test_weekly_starts_on_sunday(self, window_ledger, day):
        series = time_series(window_ledger, day(10), day(20), GroupBy.WEEK)
        # Jan 12 and 13 fall in the week of Sunday Jan 7; Jan 14 is a Sunday.
        assert [(p.period, p.total) for p in series] == [("2024-01-07", 150), ("2024-01-14", 20)]

    def test_monthly(self, window_ledger, day):
        series = time_series(window_ledger, day(0), day(40), GroupBy.MONTH)
        assert [(p.period, p.total) for p in series] == [("2024-01", 190)]

    def test_adjustments_count_in_total_only(self, make_tx, day):
        txs = [make_tx("sai3", "sai3", 4, day(12), type=TransactionType.ADJUST)]
        (point,) = time_series(txs, day(10), day(20))
        assert (point.in_qty, point.out_qty, point.maintenance_qty, point.total) == (0, 0, 0, 4)


class TestActivity:

    def test_pallet_type_activity(self, window_ledger, snapshot, day):
        rows = pallet_type_activity(window_ledger, snapshot, day(10), day(20))
        assert [r.pallet_id for r in rows] == ["loscam_red", "hiq", "general"]
        red = rows[0]
        assert (red.total_stock, red.in_qty, red.out_qty, red.maintenance_qty) == (620, 100, 50, 20)
        assert red.turnover_rate == Decimal("24.2")
        assert rows[1].turnover_rate == Decimal("0.0")

    def test_branch_activity(self, window_ledger, snapshot, day):
        rows = branch_activity(window_ledger, snapshot, day(10), day(20))
        assert [(r.branch_id, r.total_stock, r.in_count, r.out_count) for r in rows] == [
            ("hub_nks", 540, 1, 1),
            ("sai3", 150, 0, 0),
        ]
        assert rows[0].utilization_rate == Decimal("0.4")


class TestScrapSummary:

    def test_completed_maintenance_only(self, make_tx, day):
        txs = [
            make_tx("hub_nks", "maintenance_stock", 20, day(12), type=MAINT, scrap_qty=3),
            make_tx("hub_nks", "maintenance_stock", 9, day(12), type=MAINT, scrap_qty=2, pallet_id="hiq"),
            make_tx("hub_nks", "maintenance_stock", 9, day(12), type=MAINT, scrap_qty=5,
                    status=TransactionStatus.PENDING),
            make_tx("hub_nks", "maintenance_stock", 9, day(12), type=MAINT),
            make_tx("hub_nks", "maintenance_stock", 9, day(30), type=MAINT, scrap_qty=7),
        ]
        summary = scrap_summary(txs, day(10), day(20))
        assert summary.total_scrapped == 5
        assert summary.by_pallet == (("hiq", 2), ("loscam_red", 3))
        assert summary.transaction_count == 2

    def test_note_text_not_parsed(self, make_tx, day):
        txs = [make_tx("hub_nks", "maintenance_stock", 9, day(12), type=MAINT, note="SCRAP: 4")]
        assert scrap_summary(txs, day(10), day(20)).total_scrapped == 0
