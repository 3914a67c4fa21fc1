#!/usr/bin/env python3
"""
Compare the confirmed stock snapshot with a replay of the pallet ledger.

Reads a JSON export of the form ``{"transactions": [...], "stock": {...}}``
and prints the movement history and any discrepancy for one branch and
pallet type, or every drifting pair when no branch is given.

Usage:
    python3 scripts/analyze_stock.py export.json --branch sai3 --pallet loscam_red
    python3 scripts/analyze_stock.py export.json
    python3 scripts/analyze_stock.py export.json --json

Exit status:
    0  ledger and snapshot agree
    2  at least one discrepancy was found
    1  the export could not be read
"""

import argparse
import json
import logging
import sys
from dataclasses import asdict
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

from pallet_engines import StockAnalysis, analyze_stock, find_discrepancies  # noqa: E402
from pallet_ingestion import ingest_transactions, parse_stock_snapshot  # noqa: E402
from pallet_kernel.exceptions import ValidationFailedError  # noqa: E402
from pallet_kernel.logging_config import configure_logging  # noqa: E402

W = 80


# =============================================================================
# Formatting helpers
# =============================================================================


def banner(title: str) -> None:
    print()
    print("=" * W)
    print(f"  {title}")
    print("=" * W)


def field(name: str, value, indent: int = 4) -> None:
    print(f"{' ' * indent}{name}: {value}")


def _jsonable(obj):
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, Decimal):
        return str(obj)
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def print_analysis(analysis: StockAnalysis) -> None:
    banner(f"STOCK ANALYSIS  {analysis.branch_id} / {analysis.pallet_id}")
    field("snapshot stock", analysis.current_stock)
    field("ledger stock", analysis.calculated_stock)
    field("total in (completed)", analysis.total_in)
    field("total out (completed + pending)", analysis.total_out)
    field("pending in", analysis.pending_in)
    field("pending out", analysis.pending_out)

    print()
    print(f"    {'date':<20} {'doc':<14} {'type':<12} {'status':<10} {'effect':>7} {'running':>8}")
    for line in analysis.history:
        print(
            f"    {line.date:%Y-%m-%d %H:%M}     {line.doc_no or '-':<14} {line.type:<12} "
            f"{line.status:<10} {line.effect:>+7} {line.running_total:>8}"
        )

    print()
    if analysis.is_consistent:
        print("    OK: snapshot matches the ledger")
    else:
        print(f"    MISMATCH: difference {analysis.discrepancy:+}")
    for issue in analysis.issues:
        print(f"    [{issue.severity.value}] {issue.code}: {issue.message}")


# =============================================================================
# Main
# =============================================================================


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Reconcile the pallet stock snapshot against the ledger.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "examples:\n"
            "  python3 scripts/analyze_stock.py export.json --branch sai3 --pallet loscam_red\n"
            "  python3 scripts/analyze_stock.py export.json --json\n"
        ),
    )
    parser.add_argument("export", type=Path, help="JSON ledger export")
    parser.add_argument("--branch", type=str, help="Branch id to analyze")
    parser.add_argument("--pallet", type=str, default="loscam_red", help="Pallet type (default: loscam_red)")
    parser.add_argument("--json", action="store_true", help="Output JSON instead of formatted text")
    parser.add_argument("--verbose", action="store_true", help="Emit structured logs on stderr")

    args = parser.parse_args(argv)

    configure_logging(level=logging.INFO if args.verbose else logging.ERROR, stream=sys.stderr)

    try:
        with open(args.export, encoding="utf-8") as f:
            payload = json.load(f)
        ingested = ingest_transactions(payload.get("transactions", []))
        snapshot = parse_stock_snapshot(payload.get("stock", {}))
    except (OSError, json.JSONDecodeError, AttributeError, ValidationFailedError) as exc:
        print(f"  ERROR: Cannot read export: {exc}", file=sys.stderr)
        return 1

    for error in ingested.errors:
        print(f"  WARNING: skipped record {error.record_id!r}: {error.message}", file=sys.stderr)

    if args.branch:
        analyses = (analyze_stock(ingested.transactions, snapshot, args.branch, args.pallet),)
    else:
        analyses = find_discrepancies(ingested.transactions, snapshot)

    if args.json:
        print(json.dumps(
            {
                "analyses": [asdict(a) | {"discrepancy": a.discrepancy} for a in analyses],
                "rejected": [asdict(e) for e in ingested.errors],
            },
            indent=2,
            default=_jsonable,
        ))
    else:
        if not analyses:
            banner("NO DISCREPANCIES")
        for analysis in analyses:
            print_analysis(analysis)

    return 0 if all(a.is_consistent for a in analyses) else 2


if __name__ == "__main__":
    sys.exit(main())
