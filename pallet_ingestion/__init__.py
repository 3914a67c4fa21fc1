"""
pallet_ingestion -- validation boundary between persisted records and engines.

Raw ledger exports are parsed into typed ``Transaction`` / ``StockSnapshot``
values here so that the engines never see malformed input.
"""

from pallet_ingestion.types import IngestResult
from pallet_ingestion.validators import (
    ingest_transactions,
    parse_stock_snapshot,
    parse_timestamp,
    parse_transaction,
    validate_stock_levels,
)

__all__ = [
    "IngestResult",
    "ingest_transactions",
    "parse_stock_snapshot",
    "parse_timestamp",
    "parse_transaction",
    "validate_stock_levels",
]
