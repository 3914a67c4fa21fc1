"""
Boundary validators for raw ledger records.

Turns persistence-layer records (JSON-shaped dicts with camelCase keys, as
exported by the movement workflows) into typed ``Transaction`` and
``StockSnapshot`` values.  snake_case keys are accepted as aliases.

Record-level parsing raises ``TransactionValidationError`` at the first
problem.  Batch ingestion recovers per record: a bad row is skipped and
reported as a ``ValidationError`` instead of aborting the batch.

Architecture: pallet_ingestion. ZERO I/O. Imports only from pallet_kernel.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import UTC, date, datetime
from enum import Enum
from typing import Any

from pallet_ingestion.types import IngestResult
from pallet_kernel.domain.dtos import ValidationError
from pallet_kernel.domain.values import (
    StockSnapshot,
    Transaction,
    TransactionStatus,
    TransactionType,
)
from pallet_kernel.exceptions import (
    StockSnapshotValidationError,
    TransactionValidationError,
)
from pallet_kernel.logging_config import get_logger

logger = get_logger("ingestion.validators")

_MISSING = object()

# field name -> accepted record keys, first match wins
_KEYS: dict[str, tuple[str, ...]] = {
    "id": ("id",),
    "type": ("type",),
    "source": ("source",),
    "dest": ("dest",),
    "pallet_id": ("palletId", "pallet_id"),
    "qty": ("qty",),
    "date": ("date",),
    "status": ("status",),
    "doc_no": ("docNo", "doc_no"),
    "reference_doc_no": ("referenceDocNo", "reference_doc_no"),
    "original_pallet_id": ("originalPalletId", "original_pallet_id"),
    "original_qty": ("originalQty", "original_qty"),
    "scrap_qty": ("scrapQty", "scrap_qty"),
    "note": ("note",),
}


# -----------------------------------------------------------------------------
# Field helpers
# -----------------------------------------------------------------------------


def _lookup(record: Mapping[str, Any], field_name: str) -> Any:
    for key in _KEYS[field_name]:
        if key in record:
            return record[key]
    return _MISSING


def _fail(record_id: Any, field_name: str | None, code: str, message: str) -> TransactionValidationError:
    return TransactionValidationError(record_id, field_name, code, message)


def _require(record: Mapping[str, Any], field_name: str, record_id: Any) -> Any:
    value = _lookup(record, field_name)
    if value is _MISSING or value is None:
        raise _fail(record_id, field_name, "MISSING_REQUIRED_FIELD", f"{field_name} is required")
    return value


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _parse_text(record: Mapping[str, Any], field_name: str, record_id: Any) -> str:
    value = _require(record, field_name, record_id)
    if not isinstance(value, str) or not value.strip():
        raise _fail(record_id, field_name, "INVALID_FIELD", f"{field_name} must be a non-empty string")
    return value


def _parse_optional_text(record: Mapping[str, Any], field_name: str, record_id: Any) -> str | None:
    value = _lookup(record, field_name)
    if value is _MISSING or value is None:
        return None
    if not isinstance(value, str):
        raise _fail(record_id, field_name, "INVALID_FIELD", f"{field_name} must be a string")
    return value


def _parse_optional_int(record: Mapping[str, Any], field_name: str, record_id: Any) -> int | None:
    value = _lookup(record, field_name)
    if value is _MISSING or value is None:
        return None
    if not _is_int(value) or value < 0:
        raise _fail(
            record_id, field_name, "INVALID_QUANTITY",
            f"{field_name} must be a non-negative integer, got {value!r}",
        )
    return value


def _parse_enum(record: Mapping[str, Any], field_name: str, enum_cls: type[Enum], record_id: Any) -> Any:
    value = _require(record, field_name, record_id)
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise _fail(
            record_id, field_name, f"INVALID_{field_name.upper()}",
            f"{field_name} must be one of {allowed}, got {value!r}",
        ) from None


def parse_timestamp(value: Any) -> datetime:
    """
    Parse a ledger timestamp into an aware UTC-comparable datetime.

    Accepts aware ``datetime`` objects, ``date`` objects (midnight UTC) and
    ISO-8601 strings.  Strings without an offset, including bare dates, are
    read as UTC, which is how the exporting workflows serialize them.

    Raises:
        ValueError: unparsable value or naive ``datetime`` object.
    """
    if isinstance(value, datetime):
        if value.tzinfo is None:
            raise ValueError("datetime must be timezone-aware")
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=UTC)
    if isinstance(value, str):
        parsed = datetime.fromisoformat(value.strip())
        return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=UTC)
    raise ValueError(f"unsupported timestamp {value!r}")


# -----------------------------------------------------------------------------
# Record-level
# -----------------------------------------------------------------------------


def parse_transaction(record: Mapping[str, Any]) -> Transaction:
    """
    Parse one raw ledger record.

    Cancelled records are validated like any other: a cancelled line with
    a zero quantity is still malformed.

    Raises:
        TransactionValidationError: carrying the record id, offending field
            and a machine-readable ``reason_code``.
    """
    if not isinstance(record, Mapping):
        raise _fail(None, None, "INVALID_RECORD", f"record must be a mapping, got {type(record).__name__}")

    record_id = _lookup(record, "id")
    if record_id is _MISSING or record_id is None:
        raise _fail(None, "id", "MISSING_REQUIRED_FIELD", "id is required")
    if not _is_int(record_id):
        raise _fail(record_id, "id", "INVALID_ID", f"id must be an integer, got {record_id!r}")

    qty = _require(record, "qty", record_id)
    if not _is_int(qty) or qty <= 0:
        raise _fail(record_id, "qty", "INVALID_QUANTITY", f"qty must be a positive integer, got {qty!r}")

    raw_date = _require(record, "date", record_id)
    try:
        moment = parse_timestamp(raw_date)
    except ValueError as e:
        raise _fail(record_id, "date", "INVALID_DATE", f"date {raw_date!r} is not a valid timestamp ({e})") from e

    doc_no = _parse_optional_text(record, "doc_no", record_id)

    try:
        return Transaction(
            id=record_id,
            type=_parse_enum(record, "type", TransactionType, record_id),
            source=_parse_text(record, "source", record_id),
            dest=_parse_text(record, "dest", record_id),
            pallet_id=_parse_text(record, "pallet_id", record_id),
            qty=qty,
            date=moment,
            status=_parse_enum(record, "status", TransactionStatus, record_id),
            doc_no=doc_no or "",
            reference_doc_no=_parse_optional_text(record, "reference_doc_no", record_id),
            original_pallet_id=_parse_optional_text(record, "original_pallet_id", record_id),
            original_qty=_parse_optional_int(record, "original_qty", record_id),
            scrap_qty=_parse_optional_int(record, "scrap_qty", record_id),
            note=_parse_optional_text(record, "note", record_id),
        )
    except ValueError as e:
        raise _fail(record_id, None, "INVALID_TRANSACTION", str(e)) from e


def validation_error_from(exc: TransactionValidationError, row_index: int | None = None) -> ValidationError:
    return ValidationError(
        code=exc.reason_code,
        message=str(exc),
        field=exc.field,
        record_id=exc.record_id,
        details={"row_index": row_index} if row_index is not None else None,
    )


# -----------------------------------------------------------------------------
# Batch
# -----------------------------------------------------------------------------


def ingest_transactions(records: Iterable[Mapping[str, Any]]) -> IngestResult:
    """
    Parse a batch of raw records, skipping and reporting bad rows.

    The first record with a given id wins; later duplicates are rejected
    with ``DUPLICATE_TRANSACTION_ID``.
    """
    accepted: list[Transaction] = []
    errors: list[ValidationError] = []
    seen: set[int] = set()

    for index, record in enumerate(records):
        try:
            transaction = parse_transaction(record)
        except TransactionValidationError as exc:
            errors.append(validation_error_from(exc, row_index=index))
            continue
        if transaction.id in seen:
            errors.append(ValidationError(
                code="DUPLICATE_TRANSACTION_ID",
                message=f"Transaction {transaction.id!r}: duplicate id, later record skipped",
                field="id",
                record_id=transaction.id,
                details={"row_index": index},
            ))
            continue
        seen.add(transaction.id)
        accepted.append(transaction)

    if errors:
        logger.warning("transactions_rejected", extra={
            "accepted_count": len(accepted),
            "rejected_count": len(errors),
            "codes": sorted({e.code for e in errors}),
        })
    logger.info("transactions_ingested", extra={
        "accepted_count": len(accepted),
        "rejected_count": len(errors),
    })
    return IngestResult(transactions=tuple(accepted), errors=tuple(errors))


def validate_stock_levels(raw: Any) -> list[ValidationError]:
    """Pure check of a raw ``branch -> pallet -> qty`` mapping."""
    if not isinstance(raw, Mapping):
        return [ValidationError(code="INVALID_STOCK_SNAPSHOT", message="stock must be a mapping")]
    errors: list[ValidationError] = []
    for branch_id, pallets in raw.items():
        if not isinstance(pallets, Mapping):
            errors.append(ValidationError(
                code="INVALID_STOCK_SNAPSHOT",
                message=f"stock for branch {branch_id!r} must be a mapping",
                field=str(branch_id),
            ))
            continue
        for pallet_id, qty in pallets.items():
            if not _is_int(qty):
                errors.append(ValidationError(
                    code="INVALID_STOCK_QUANTITY",
                    message=f"stock {branch_id}/{pallet_id} must be an integer, got {qty!r}",
                    field=f"{branch_id}.{pallet_id}",
                ))
    return errors


def parse_stock_snapshot(raw: Any) -> StockSnapshot:
    """
    Build a ``StockSnapshot`` from a raw mapping.

    Negative quantities are accepted: they are a reconciliation finding,
    not a parse error.

    Raises:
        StockSnapshotValidationError: if any entry is not an integer.
    """
    errors = validate_stock_levels(raw)
    if errors:
        raise StockSnapshotValidationError(tuple(errors))
    return StockSnapshot(raw)
