"""
Tests for ledger vs. snapshot reconciliation.

Covers:
- Completed inbound / completed-or-pending outbound counting rule
- Running-total movement history
- STOCK_MISMATCH, NEGATIVE_STOCK and PENDING_INBOUND issues
"""

import pytest

from pallet_engines.reconciliation import analyze_stock, find_discrepancies
from pallet_kernel.domain.dtos import DiagnosticSeverity
from pallet_kernel.domain.values import StockSnapshot, TransactionStatus

PENDING = TransactionStatus.PENDING


@pytest.fixture
def sai3_ledger(make_tx, day):
    return [
        make_tx("hub_nks", "sai3", 100, day(1)),
        make_tx("sai3", "neo_corp", 30, day(2)),
        make_tx("sai3", "cm", 20, day(3), status=PENDING),
        make_tx("hub_nks", "sai3", 50, day(4), status=PENDING),
        make_tx("sai3", "neo_corp", 999, day(5), status=TransactionStatus.CANCELLED),
    ]


class TestAnalyzeStock:

    def test_counting_rule(self, sai3_ledger):
        snap = StockSnapshot({"sai3": {"loscam_red": 50}})
        analysis = analyze_stock(sai3_ledger, snap, "sai3", "loscam_red")
        assert analysis.total_in == 100
        assert analysis.total_out == 50
        assert analysis.pending_in == 50
        assert analysis.pending_out == 20
        assert analysis.calculated_stock == 50
        assert analysis.discrepancy == 0
        assert analysis.is_consistent

    def test_history_running_total(self, sai3_ledger):
        snap = StockSnapshot({"sai3": {"loscam_red": 50}})
        analysis = analyze_stock(sai3_ledger, snap, "sai3", "loscam_red")
        assert [(line.effect, line.running_total) for line in analysis.history] == [
            (100, 100), (-30, 70), (-20, 50), (0, 50),
        ]
        assert analysis.history[2].status == "PENDING"

    def test_history_sorted_by_date(self, make_tx, day):
        txs = [make_tx("sai3", "cm", 5, day(3)), make_tx("hub_nks", "sai3", 10, day(1))]
        analysis = analyze_stock(txs, StockSnapshot(), "sai3", "loscam_red")
        assert [line.running_total for line in analysis.history] == [10, 5]

    def test_pending_inbound_is_info(self, sai3_ledger):
        snap = StockSnapshot({"sai3": {"loscam_red": 50}})
        issues = analyze_stock(sai3_ledger, snap, "sai3", "loscam_red").issues
        assert [(i.code, i.severity) for i in issues] == [("PENDING_INBOUND", DiagnosticSeverity.INFO)]
        assert issues[0].details["pending_in"] == 50

    def test_mismatch(self, sai3_ledger):
        snap = StockSnapshot({"sai3": {"loscam_red": 45}})
        analysis = analyze_stock(sai3_ledger, snap, "sai3", "loscam_red")
        assert analysis.discrepancy == -5
        mismatch = [i for i in analysis.issues if i.code == "STOCK_MISMATCH"]
        assert mismatch[0].severity == DiagnosticSeverity.ERROR
        assert mismatch[0].details["discrepancy"] == -5

    def test_negative_snapshot(self, make_tx, day):
        snap = StockSnapshot({"sai3": {"loscam_red": -3}})
        analysis = analyze_stock([], snap, "sai3", "loscam_red")
        assert {i.code for i in analysis.issues} == {"STOCK_MISMATCH", "NEGATIVE_STOCK"}

    def test_self_transfer_has_no_effect(self, make_tx, day):
        txs = [make_tx("sai3", "sai3", 10, day(1))]
        analysis = analyze_stock(txs, StockSnapshot(), "sai3", "loscam_red")
        assert analysis.history[0].effect == 0
        assert analysis.calculated_stock == 0

    def test_other_pallets_ignored(self, make_tx, day):
        txs = [make_tx("hub_nks", "sai3", 10, day(1), pallet_id="hiq")]
        analysis = analyze_stock(txs, StockSnapshot(), "sai3", "loscam_red")
        assert analysis.history == ()
        assert analysis.is_consistent


class TestFindDiscrepancies:

    def test_only_drifting_pairs(self, make_tx, day):
        txs = [
            make_tx("hub_nks", "sai3", 10, day(1)),
            make_tx("hub_nks", "cm", 10, day(1)),
        ]
        snap = StockSnapshot({
            "hub_nks": {"loscam_red": -20},
            "sai3": {"loscam_red": 10},
            "cm": {"loscam_red": 7},
        })
        drifting = find_discrepancies(txs, snap)
        assert [(a.branch_id, a.discrepancy) for a in drifting] == [("cm", -3)]

    def test_logs_summary(self, captured_logs):
        find_discrepancies([], StockSnapshot({"sai3": {"loscam_red": 4}}))
        records = [r for r in captured_logs() if r["message"] == "stock_reconciliation_completed"]
        assert records[0]["discrepancy_count"] == 1
        assert any(r["message"] == "stock_discrepancy_detected" for r in captured_logs())
