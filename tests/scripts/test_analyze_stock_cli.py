"""Tests for scripts/analyze_stock.py."""

import importlib.util
import json
from pathlib import Path

import pytest

SCRIPT = Path(__file__).resolve().parents[2] / "scripts" / "analyze_stock.py"


def _load_script():
    spec = importlib.util.spec_from_file_location("analyze_stock_cli", SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


@pytest.fixture(scope="module")
def cli():
    return _load_script()


def _export(tmp_path, stock, extra_records=()) -> Path:
    records = [
        {"id": 1, "type": "OUT", "source": "hub_nks", "dest": "sai3", "palletId": "loscam_red",
         "qty": 100, "date": "2024-01-02T00:00:00Z", "status": "COMPLETED", "docNo": "TR-1"},
        {"id": 2, "type": "OUT", "source": "sai3", "dest": "neo_corp", "palletId": "loscam_red",
         "qty": 30, "date": "2024-01-03T00:00:00Z", "status": "PENDING", "docNo": "OUT-2"},
        *extra_records,
    ]
    path = tmp_path / "export.json"
    path.write_text(json.dumps({"transactions": records, "stock": stock}), encoding="utf-8")
    return path


class TestAnalyzeStockCli:

    def test_consistent_branch(self, cli, tmp_path, capsys):
        path = _export(tmp_path, {"sai3": {"loscam_red": 70}})
        assert cli.main([str(path), "--branch", "sai3"]) == 0
        out = capsys.readouterr().out
        assert "STOCK ANALYSIS  sai3 / loscam_red" in out
        assert "OK: snapshot matches the ledger" in out
        assert "OUT-2" in out

    def test_mismatch_exit_code(self, cli, tmp_path, capsys):
        path = _export(tmp_path, {"sai3": {"loscam_red": 65}})
        assert cli.main([str(path), "--branch", "sai3"]) == 2
        assert "MISMATCH: difference -5" in capsys.readouterr().out

    def test_all_pairs_json(self, cli, tmp_path, capsys):
        path = _export(tmp_path, {"sai3": {"loscam_red": 70}, "hub_nks": {"loscam_red": 0}})
        assert cli.main([str(path), "--json"]) == 2
        payload = json.loads(capsys.readouterr().out)
        (analysis,) = payload["analyses"]
        assert analysis["branch_id"] == "hub_nks"
        assert analysis["discrepancy"] == 100
        assert analysis["issues"][0]["severity"] == "error"
        assert payload["rejected"] == []

    def test_no_discrepancies(self, cli, tmp_path, capsys):
        path = _export(tmp_path, {"sai3": {"loscam_red": 70}})
        assert cli.main([str(path)]) == 0
        assert "NO DISCREPANCIES" in capsys.readouterr().out

    def test_rejected_records_warned(self, cli, tmp_path, capsys):
        bad = {"id": 3, "type": "OUT", "source": "sai3", "dest": "cm", "palletId": "loscam_red",
               "qty": -1, "date": "2024-01-04", "status": "COMPLETED"}
        path = _export(tmp_path, {"sai3": {"loscam_red": 70}}, [bad])
        assert cli.main([str(path), "--branch", "sai3"]) == 0
        assert "skipped record 3" in capsys.readouterr().err

    def test_unreadable_export(self, cli, tmp_path, capsys):
        assert cli.main([str(tmp_path / "missing.json")]) == 1
        assert "Cannot read export" in capsys.readouterr().err

    def test_malformed_stock(self, cli, tmp_path, capsys):
        path = _export(tmp_path, {"sai3": {"loscam_red": "lots"}})
        assert cli.main([str(path)]) == 1
        assert "Cannot read export" in capsys.readouterr().err
