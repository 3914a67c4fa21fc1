"""
Tests for the pallet kernel value objects.

Covers:
- Transaction construction invariants (qty, date, scrap_qty)
- Partner rate schedule validation
- StockSnapshot read-only semantics
"""

from datetime import UTC, datetime
from decimal import Decimal

import pytest

from pallet_kernel.domain.dtos import (
    Diagnostic,
    DiagnosticSeverity,
    ValidationError,
)
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

NOW = datetime(2024, 3, 1, 9, 30, tzinfo=UTC)


def _tx(**overrides) -> Transaction:
    fields = dict(
        id=1,
        type=TransactionType.OUT,
        source="hub_nks",
        dest="neo_corp",
        pallet_id="loscam_red",
        qty=10,
        date=NOW,
        status=TransactionStatus.COMPLETED,
    )
    fields.update(overrides)
    return Transaction(**fields)


class TestTransaction:
    """Construction-time invariants."""

    def test_valid_transaction(self):
        t = _tx()
        assert t.qty == 10
        assert t.is_completed
        assert not t.is_pending
        assert not t.is_cancelled
        assert t.doc_no == ""

    @pytest.mark.parametrize("qty", [0, -5])
    def test_non_positive_qty_rejected(self, qty):
        with pytest.raises(ValueError, match="positive"):
            _tx(qty=qty)

    def test_non_positive_qty_rejected_even_when_cancelled(self):
        """Cancelled lines obey the same shape rules."""
        with pytest.raises(ValueError):
            _tx(qty=0, status=TransactionStatus.CANCELLED)

    @pytest.mark.parametrize("qty", [1.5, "10", True])
    def test_non_integer_qty_rejected(self, qty):
        with pytest.raises(ValueError, match="integer"):
            _tx(qty=qty)

    def test_naive_date_rejected(self):
        with pytest.raises(ValueError, match="timezone-aware"):
            _tx(date=datetime(2024, 3, 1))

    def test_non_datetime_rejected(self):
        with pytest.raises(ValueError, match="datetime"):
            _tx(date="2024-03-01")

    def test_negative_scrap_qty_rejected(self):
        with pytest.raises(ValueError, match="scrap_qty"):
            _tx(type=TransactionType.MAINTENANCE, scrap_qty=-1)

    def test_zero_scrap_qty_allowed(self):
        assert _tx(type=TransactionType.MAINTENANCE, scrap_qty=0).scrap_qty == 0

    def test_frozen(self):
        t = _tx()
        with pytest.raises(AttributeError):
            t.qty = 20

    def test_touches(self):
        t = _tx()
        assert t.touches("hub_nks")
        assert t.touches("neo_corp")
        assert not t.touches("sai3")

    def test_was_corrected(self):
        assert not _tx().was_corrected
        assert _tx(original_qty=12).was_corrected
        assert _tx(original_pallet_id="loscam_blue").was_corrected


class TestRateTier:

    def test_rate_coerced_to_decimal(self):
        tier = RateTier(0, "1.35")
        assert tier.rate == Decimal("1.35")
        assert isinstance(tier.rate, Decimal)

    def test_negative_rate_rejected(self):
        with pytest.raises(ValueError):
            RateTier(0, Decimal("-0.01"))

    def test_negative_min_balance_rejected(self):
        with pytest.raises(ValueError):
            RateTier(-1, Decimal("1"))


class TestPartner:

    def test_defaults(self):
        p = Partner(id="lamsoon", name="Lam Soon", type=PartnerType.CUSTOMER)
        assert p.holding_side == HoldingSide.PARTNER_HOLDS
        assert not p.accrues_rent
        assert p.allows("anything")

    def test_flat_fee_accrues(self):
        p = Partner(id="sino", name="Sino", type=PartnerType.CUSTOMER, rental_fee="1.50")
        assert p.rental_fee == Decimal("1.50")
        assert p.accrues_rent
        assert not p.is_tiered

    def test_allowed_pallets_coerced(self):
        p = Partner(id="x", name="X", type=PartnerType.PROVIDER, allowed_pallets=["hiq"])
        assert p.allowed_pallets == frozenset({"hiq"})
        assert p.allows("hiq")
        assert not p.allows("loscam_red")

    def test_negative_grace_rejected(self):
        with pytest.raises(ValueError, match="grace_period"):
            Partner(id="x", name="X", type=PartnerType.CUSTOMER, grace_period=-1)

    def test_negative_fee_rejected(self):
        with pytest.raises(ValueError, match="rental_fee"):
            Partner(id="x", name="X", type=PartnerType.CUSTOMER, rental_fee=Decimal("-1"))

    def test_tiers_must_start_at_zero(self):
        with pytest.raises(ValueError, match="start at 0"):
            Partner(
                id="x", name="X", type=PartnerType.PROVIDER,
                rate_tiers=(RateTier(100, Decimal("1")),),
            )

    def test_tiers_must_be_strictly_ascending(self):
        with pytest.raises(ValueError, match="strictly ascending"):
            Partner(
                id="x", name="X", type=PartnerType.PROVIDER,
                rate_tiers=(
                    RateTier(0, Decimal("1.35")),
                    RateTier(3000, Decimal("1.05")),
                    RateTier(2000, Decimal("1.19")),
                ),
            )

    def test_duplicate_tier_bound_rejected(self):
        with pytest.raises(ValueError):
            Partner(
                id="x", name="X", type=PartnerType.PROVIDER,
                rate_tiers=(RateTier(0, Decimal("1")), RateTier(0, Decimal("2"))),
            )


class TestStockSnapshot:

    def test_missing_entries_read_as_zero(self):
        snap = StockSnapshot({"sai3": {"loscam_red": 5}})
        assert snap.quantity("sai3", "loscam_red") == 5
        assert snap.quantity("sai3", "hiq") == 0
        assert snap.quantity("nowhere", "loscam_red") == 0

    def test_isolated_from_source_mapping(self):
        source = {"sai3": {"loscam_red": 5}}
        snap = StockSnapshot(source)
        source["sai3"]["loscam_red"] = 999
        assert snap.quantity("sai3", "loscam_red") == 5

    def test_pairs_sorted(self):
        snap = StockSnapshot({"sai3": {"hiq": 1, "general": 2}, "cm": {"loscam_red": 3}})
        assert list(snap.pairs()) == [
            ("cm", "loscam_red", 3),
            ("sai3", "general", 2),
            ("sai3", "hiq", 1),
        ]

    def test_totals(self):
        snap = StockSnapshot({"a": {"x": 1, "y": 2}, "b": {"x": 10}})
        assert snap.total() == 13
        assert snap.total_for_pallet("x") == 11

    def test_equality(self):
        assert StockSnapshot({"a": {"x": 1}}) == StockSnapshot({"a": {"x": 1}})
        assert StockSnapshot({"a": {"x": 1}}) != StockSnapshot({"a": {"x": 2}})

    def test_empty(self):
        snap = StockSnapshot()
        assert snap.total() == 0
        assert snap.branches() == ()


class TestDtos:

    def test_diagnostic_from_validation_error(self):
        error = ValidationError(
            code="INVALID_QUANTITY", message="qty must be positive",
            field="qty", record_id=7, details={"row_index": 2},
        )
        diag = Diagnostic.from_validation_error(error)
        assert diag.severity == DiagnosticSeverity.ERROR
        assert diag.code == "INVALID_QUANTITY"
        assert diag.details == {"row_index": 2, "field": "qty", "record_id": 7}
