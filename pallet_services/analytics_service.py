"""
PalletAnalyticsService -- imperative shell over the pallet engines.

Composes the ingestion boundary, the active configuration and the pure
engines.  The service is the only place the evaluation instant comes from
a clock; every engine call receives it as an explicit ``as_of_date``.

Architecture: pallet_services -- imperative shell.
    Callers hand in raw ledger records (or already-typed transactions) and
    a stock snapshot; the service validates, resolves partner terms from
    ``PalletConfig`` and delegates all arithmetic to ``pallet_engines``.

Invariants enforced:
    - Rejected ingestion rows, excess returns and ledger/snapshot drift are
      all surfaced as ``Diagnostic`` entries on the report, never raised.
    - The same inputs and clock reading always produce the same report.
"""

from __future__ import annotations

import time
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any
from uuid import uuid4

from pallet_config import PalletConfig, get_active_config
from pallet_engines import (
    AgingRentalSummary,
    BranchActivity,
    DistributionEntry,
    GroupBy,
    InTransit,
    KPIMetrics,
    Loan,
    PalletTypeActivity,
    ScrapSummary,
    StockAnalysis,
    StockPrediction,
    TimeSeriesPoint,
    analyze_stock,
    branch_activity,
    calculate_balance,
    calculate_kpis,
    find_discrepancies,
    in_transit,
    pallet_type_activity,
    predict_all_depletions,
    predict_depletion,
    reconcile_loans,
    scrap_summary,
    status_distribution,
    summarize_aging_rental,
    time_series,
    type_distribution,
)
from pallet_ingestion import ingest_transactions, parse_stock_snapshot
from pallet_kernel.domain.clock import Clock, SystemClock
from pallet_kernel.domain.dtos import Diagnostic, DiagnosticSeverity
from pallet_kernel.domain.values import HoldingSide, StockSnapshot, Transaction
from pallet_kernel.logging_config import LogContext, get_logger

logger = get_logger("services.analytics")


@dataclass(frozen=True)
class LedgerBatch:
    """Validated ledger input plus the diagnostics raised while building it."""

    transactions: tuple[Transaction, ...]
    stock_snapshot: StockSnapshot
    diagnostics: tuple[Diagnostic, ...] = ()


@dataclass(frozen=True)
class DashboardReport:
    start: datetime
    end: datetime
    kpis: KPIMetrics
    type_distribution: tuple[DistributionEntry, ...]
    status_distribution: tuple[DistributionEntry, ...]
    time_series: tuple[TimeSeriesPoint, ...]
    pallet_types: tuple[PalletTypeActivity, ...]
    branches: tuple[BranchActivity, ...]
    scrap: ScrapSummary


@dataclass(frozen=True)
class AnalyticsReport:
    """Everything the operations dashboard needs from one ledger push."""

    as_of_date: datetime
    config_checksum: str
    aging: AgingRentalSummary
    predictions: tuple[StockPrediction, ...]
    discrepancies: tuple[StockAnalysis, ...]
    diagnostics: tuple[Diagnostic, ...] = field(default_factory=tuple)

    @property
    def has_errors(self) -> bool:
        return any(d.severity == DiagnosticSeverity.ERROR for d in self.diagnostics)


class PalletAnalyticsService:
    """Read-only analytics over the pallet ledger.

    Contract:
        - ``ingest()`` validates raw records and the raw stock mapping.
        - ``balance()`` / ``open_loans()`` answer single-pair questions.
        - ``aging_rental_summary()``, ``depletion_forecast()``,
          ``dashboard()`` and ``reconcile()`` wrap one engine each.
        - ``build_report()`` runs the whole pipeline for one ledger push.

    Non-goals:
        - Does NOT persist anything or mutate the stock snapshot.
    """

    def __init__(
        self,
        config: PalletConfig | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._config = config or get_active_config()
        self._clock = clock or SystemClock()

    @property
    def config(self) -> PalletConfig:
        return self._config

    def _as_of(self, as_of_date: datetime | None) -> datetime:
        return as_of_date if as_of_date is not None else self._clock.now()

    def _side_for(self, entity_id: str) -> HoldingSide:
        partner = self._config.get_partner(entity_id)
        return partner.holding_side if partner is not None else HoldingSide.PARTNER_HOLDS

    # -----------------------------------------------------------------
    # Ingestion
    # -----------------------------------------------------------------

    def ingest(
        self,
        records: Iterable[Mapping[str, Any]],
        stock: Mapping[str, Mapping[str, int]] | None = None,
    ) -> LedgerBatch:
        """Validate raw records; bad rows become ERROR diagnostics.

        Raises:
            StockSnapshotValidationError: if the stock mapping is malformed.
        """
        result = ingest_transactions(records)
        snapshot = parse_stock_snapshot(stock or {})
        return LedgerBatch(
            transactions=result.transactions,
            stock_snapshot=snapshot,
            diagnostics=tuple(Diagnostic.from_validation_error(e) for e in result.errors),
        )

    # -----------------------------------------------------------------
    # Single-pair queries
    # -----------------------------------------------------------------

    def balance(self, transactions: Sequence[Transaction], entity_id: str, pallet_id: str) -> int:
        """Signed balance, using the partner's holding side when configured."""
        return calculate_balance(transactions, entity_id, pallet_id, self._side_for(entity_id))

    def in_transit(self, transactions: Sequence[Transaction], entity_id: str, pallet_id: str) -> InTransit:
        return in_transit(transactions, entity_id, pallet_id)

    def open_loans(
        self,
        transactions: Sequence[Transaction],
        partner_id: str,
        pallet_id: str,
        as_of_date: datetime | None = None,
    ) -> tuple[Loan, ...]:
        """Open FIFO loans for a configured partner.

        Raises:
            UnknownPartnerError: if ``partner_id`` is not configured.
        """
        partner = self._config.partner(partner_id)
        match = reconcile_loans(
            transactions, partner_id, pallet_id, self._as_of(as_of_date), partner.holding_side,
        )
        return match.loans

    # -----------------------------------------------------------------
    # Engine wrappers
    # -----------------------------------------------------------------

    def aging_rental_summary(
        self,
        transactions: Sequence[Transaction],
        as_of_date: datetime | None = None,
    ) -> AgingRentalSummary:
        return summarize_aging_rental(
            transactions,
            self._config.partner_map(),
            self._as_of(as_of_date),
            self._config.aging,
        )

    def depletion_forecast(
        self,
        transactions: Sequence[Transaction],
        stock_snapshot: StockSnapshot,
        as_of_date: datetime | None = None,
    ) -> tuple[StockPrediction, ...]:
        return predict_all_depletions(
            transactions, stock_snapshot, self._as_of(as_of_date), self._config.depletion,
        )

    def predict(
        self,
        transactions: Sequence[Transaction],
        stock_snapshot: StockSnapshot,
        branch_id: str,
        pallet_id: str,
        as_of_date: datetime | None = None,
    ) -> StockPrediction | None:
        return predict_depletion(
            transactions, stock_snapshot, branch_id, pallet_id,
            self._as_of(as_of_date), self._config.depletion,
        )

    def dashboard(
        self,
        transactions: Sequence[Transaction],
        stock_snapshot: StockSnapshot,
        start: datetime | None = None,
        end: datetime | None = None,
        group_by: GroupBy = GroupBy.DAY,
    ) -> DashboardReport:
        """KPI dashboard for ``[start, end]``; defaults to the trailing 30 days."""
        end = self._as_of(end)
        start = start if start is not None else end - timedelta(days=30)
        return DashboardReport(
            start=start,
            end=end,
            kpis=calculate_kpis(transactions, stock_snapshot, start, end),
            type_distribution=type_distribution(transactions, start, end),
            status_distribution=status_distribution(transactions, start, end),
            time_series=time_series(transactions, start, end, group_by),
            pallet_types=pallet_type_activity(transactions, stock_snapshot, start, end),
            branches=branch_activity(transactions, stock_snapshot, start, end),
            scrap=scrap_summary(transactions, start, end),
        )

    def analyze_stock(
        self,
        transactions: Sequence[Transaction],
        stock_snapshot: StockSnapshot,
        branch_id: str,
        pallet_id: str,
    ) -> StockAnalysis:
        return analyze_stock(transactions, stock_snapshot, branch_id, pallet_id)

    def reconcile(
        self,
        transactions: Sequence[Transaction],
        stock_snapshot: StockSnapshot,
    ) -> tuple[StockAnalysis, ...]:
        return find_discrepancies(transactions, stock_snapshot)

    # -----------------------------------------------------------------
    # Full pipeline
    # -----------------------------------------------------------------

    def build_report(
        self,
        records: Iterable[Mapping[str, Any]],
        stock: Mapping[str, Mapping[str, int]] | None = None,
        as_of_date: datetime | None = None,
    ) -> AnalyticsReport:
        """Ingest, then run aging, depletion and reconciliation in one pass."""
        as_of = self._as_of(as_of_date)
        t0 = time.monotonic()
        with LogContext.bind(correlation_id=str(uuid4())):
            batch = self.ingest(records, stock)
            aging = self.aging_rental_summary(batch.transactions, as_of)
            predictions = self.depletion_forecast(batch.transactions, batch.stock_snapshot, as_of)
            discrepancies = self.reconcile(batch.transactions, batch.stock_snapshot)

            diagnostics = [
                *batch.diagnostics,
                *aging.diagnostics,
                *(issue for analysis in discrepancies for issue in analysis.issues),
            ]
            report = AnalyticsReport(
                as_of_date=as_of,
                config_checksum=self._config.checksum,
                aging=aging,
                predictions=predictions,
                discrepancies=discrepancies,
                diagnostics=tuple(diagnostics),
            )
            logger.info("analytics_report_built", extra={
                "as_of_date": as_of.isoformat(),
                "transaction_count": len(batch.transactions),
                "rejected_count": len(batch.diagnostics),
                "open_loan_count": aging.open_loan_count,
                "prediction_count": len(predictions),
                "discrepancy_count": len(discrepancies),
                "duration_ms": round((time.monotonic() - t0) * 1000, 2),
            })
        return report
