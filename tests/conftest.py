"""
Pytest fixtures for the pallet ledger test suite.

Provides:
- Structured logging configured once per session, with per-test context reset
- ``captured_logs`` for asserting on emitted JSON log records
- ``day`` / ``make_tx`` builders for ledger fixtures
- The standard partner set used across engine and service tests
"""

import itertools
import json
import logging
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from io import StringIO

import pytest

from pallet_kernel.domain.clock import DeterministicClock
from pallet_kernel.domain.values import (
    HoldingSide,
    Partner,
    PartnerType,
    RateTier,
    StockSnapshot,
    Transaction,
    TransactionStatus,
    TransactionType,
)
from pallet_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)

# Day 0 of every ledger fixture.
BASE_DATE = datetime(2024, 1, 1, tzinfo=UTC)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture pallet_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs):
            ...
            logs = captured_logs()
            assert any(r["message"] == "fifo_match_completed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("pallet_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Ledger builders
# =============================================================================


@pytest.fixture
def day():
    """``day(n, hour=0)`` -> aware UTC datetime ``n`` days after BASE_DATE."""

    def _day(n: int, hour: int = 0) -> datetime:
        return BASE_DATE + timedelta(days=n, hours=hour)

    return _day


@pytest.fixture
def make_tx():
    """
    Factory for ledger lines with auto-incrementing ids.

    ``make_tx(source, dest, qty, date, ...)``; defaults to a COMPLETED
    ``loscam_red`` OUT movement.
    """
    ids = itertools.count(1)

    def _make(
        source: str,
        dest: str,
        qty: int,
        date: datetime,
        *,
        type: TransactionType = TransactionType.OUT,
        status: TransactionStatus = TransactionStatus.COMPLETED,
        pallet_id: str = "loscam_red",
        doc_no: str | None = None,
        **extra,
    ) -> Transaction:
        tx_id = extra.pop("id", None) or next(ids)
        return Transaction(
            id=tx_id,
            type=type,
            source=source,
            dest=dest,
            pallet_id=pallet_id,
            qty=qty,
            date=date,
            status=status,
            doc_no=doc_no if doc_no is not None else f"DOC-{tx_id:04d}",
            **extra,
        )

    return _make


@pytest.fixture
def deterministic_clock():
    return DeterministicClock(BASE_DATE + timedelta(days=30))


# =============================================================================
# Partner configuration
# =============================================================================


@pytest.fixture
def tiered_partner():
    """loscam_wangnoi: provider, tiered 1.35 / 1.19 / 1.05 at 0 / 2000 / 3000."""
    return Partner(
        id="loscam_wangnoi",
        name="Loscam Wang Noi",
        type=PartnerType.PROVIDER,
        allowed_pallets=frozenset({"loscam_red"}),
        grace_period=0,
        rate_tiers=(
            RateTier(0, Decimal("1.35")),
            RateTier(2000, Decimal("1.19")),
            RateTier(3000, Decimal("1.05")),
        ),
        holding_side=HoldingSide.WE_HOLD,
    )


@pytest.fixture
def flat_partner():
    """sino: flat 1.50/day after a 10-day grace period."""
    return Partner(
        id="sino",
        name="Sino-Pacific",
        type=PartnerType.CUSTOMER,
        allowed_pallets=frozenset({"loscam_red"}),
        rental_fee=Decimal("1.50"),
        grace_period=10,
        holding_side=HoldingSide.WE_HOLD,
    )


@pytest.fixture
def customer_partner():
    """neo_corp: balance-only customer."""
    return Partner(
        id="neo_corp",
        name="Neo Corporate",
        type=PartnerType.CUSTOMER,
        allowed_pallets=frozenset({"loscam_red"}),
    )


@pytest.fixture
def partners(tiered_partner, flat_partner, customer_partner):
    return {p.id: p for p in (tiered_partner, flat_partner, customer_partner)}


@pytest.fixture
def snapshot():
    return StockSnapshot({
        "hub_nks": {"loscam_red": 500, "hiq": 40},
        "sai3": {"loscam_red": 120, "general": 30},
    })
