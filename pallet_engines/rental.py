"""
pallet_engines.rental -- Rental accrual and aging summaries for open loans.

Responsibility:
    Price each open loan with its partner's daily rental terms (grace
    period plus a flat or volume-tiered rate) and roll the loans up into
    per-partner aging summaries for the loan liability dashboard.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Consumes Loans from ``pallet_engines.fifo``.

Invariants enforced:
    - overdue_days = max(0, age_days - grace_period).
    - accrued_rent = overdue_days * rate * qty, kept unrounded; rounding to
      2 places (ROUND_HALF_UP) happens only in ``reported_*`` figures.
    - Tier selection uses the partner's aggregate open balance, not the
      individual loan.  A tier applies when balance >= tier.min_balance;
      the highest qualifying tier wins.
    - Decimal-only arithmetic for rates and rent.

Failure modes:
    - None raised.  Partners without configuration, without a rate, or for
      a pallet type they are not allowed to hold accrue zero rent.

Usage:
    from pallet_engines.rental import accrue_rent, summarize_aging_rental

    result = accrue_rent(loan, partners.get(loan.partner_id), open_qty)
    summary = summarize_aging_rental(transactions, partners, as_of_date=now)
"""

from __future__ import annotations

import time
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal

from pallet_engines.fifo import Loan, LoanMatch, reconcile_loans
from pallet_engines.tracer import traced_engine
from pallet_kernel.domain.dtos import Diagnostic, DiagnosticSeverity
from pallet_kernel.domain.values import Partner, Transaction
from pallet_kernel.logging_config import get_logger

logger = get_logger("engines.rental")

_ZERO = Decimal("0")
_CENTS = Decimal("0.01")


@dataclass(frozen=True, slots=True)
class AgingThresholds:
    """
    Age bands used to flag loans on the dashboard.

    warning: warning_after_days < age <= danger_after_days
    danger:  age > danger_after_days
    """

    warning_after_days: int = 7
    danger_after_days: int = 10

    def __post_init__(self) -> None:
        if self.warning_after_days < 0 or self.danger_after_days < self.warning_after_days:
            raise ValueError("Aging thresholds must satisfy 0 <= warning <= danger")

    def is_danger(self, age_days: int) -> bool:
        return age_days > self.danger_after_days

    def is_warning(self, age_days: int) -> bool:
        return self.warning_after_days < age_days <= self.danger_after_days


@dataclass(frozen=True, slots=True)
class AccrualResult:
    """Rent owed on one loan as of the evaluation date."""

    rate: Decimal
    overdue_days: int
    accrued_rent: Decimal

    @property
    def reported_rent(self) -> Decimal:
        return self.accrued_rent.quantize(_CENTS, rounding=ROUND_HALF_UP)

    @classmethod
    def none(cls) -> AccrualResult:
        return cls(rate=_ZERO, overdue_days=0, accrued_rent=_ZERO)


@dataclass(frozen=True, slots=True)
class PartnerSummary:
    """Aging and accrual roll-up for one (partner, pallet type) pair."""

    partner_id: str
    partner_name: str
    pallet_id: str
    total_in: int
    total_out: int
    open_qty: int
    loan_count: int
    current_rate: Decimal
    avg_age: int
    total_rent: Decimal
    danger_count: int
    warning_count: int

    @property
    def reported_rent(self) -> Decimal:
        return self.total_rent.quantize(_CENTS, rounding=ROUND_HALF_UP)


@dataclass(frozen=True, slots=True)
class AgingRentalSummary:
    """Flat open-loan list plus per-partner aggregates."""

    as_of_date: datetime
    loans: tuple[Loan, ...]
    partner_summaries: tuple[PartnerSummary, ...]
    diagnostics: tuple[Diagnostic, ...] = field(default_factory=tuple)

    @property
    def total_accrued_rent(self) -> Decimal:
        return sum((loan.accrued_rent for loan in self.loans), _ZERO).quantize(
            _CENTS, rounding=ROUND_HALF_UP,
        )

    @property
    def total_overdue_qty(self) -> int:
        return sum(loan.qty for loan in self.loans if loan.is_overdue)

    @property
    def open_loan_count(self) -> int:
        return len(self.loans)

    def summary_for(self, partner_id: str, pallet_id: str) -> PartnerSummary | None:
        for s in self.partner_summaries:
            if s.partner_id == partner_id and s.pallet_id == pallet_id:
                return s
        return None


def select_rate(partner: Partner, aggregate_balance: int) -> Decimal:
    """
    Daily per-unit rate for a partner at a given aggregate open balance.

    Tiered partners: the last tier whose ``min_balance <= balance``.
    Flat partners: ``rental_fee`` regardless of volume.
    """
    if not partner.is_tiered:
        return partner.rental_fee
    balance = max(0, aggregate_balance)
    rate = partner.rate_tiers[0].rate
    for tier in partner.rate_tiers:
        if balance >= tier.min_balance:
            rate = tier.rate
        else:
            break
    return rate


def accrue_rent(
    loan: Loan,
    partner_config: Partner | None,
    current_aggregate_balance: int,
) -> AccrualResult:
    """
    Rent accrued on a single open loan.

    Args:
        loan: Open loan from the FIFO matcher.
        partner_config: The loan's partner, or None if not configured.
        current_aggregate_balance: The partner's total open quantity for the
            loan's pallet type; selects the tier for tiered partners.
    """
    if partner_config is None or not partner_config.accrues_rent:
        return AccrualResult.none()
    if not partner_config.allows(loan.pallet_id):
        return AccrualResult.none()

    rate = select_rate(partner_config, current_aggregate_balance)
    overdue_days = max(0, loan.age_days - partner_config.grace_period)
    accrued = Decimal(overdue_days) * rate * Decimal(loan.qty)

    return AccrualResult(rate=rate, overdue_days=overdue_days, accrued_rent=accrued)


def _weighted_age(loans: Sequence[Loan]) -> int:
    total_qty = sum(loan.qty for loan in loans)
    if total_qty == 0:
        return 0
    weighted = Decimal(sum(loan.age_days * loan.qty for loan in loans)) / Decimal(total_qty)
    return int(weighted.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def summarize_partner(
    match: LoanMatch,
    partner: Partner | None,
    thresholds: AgingThresholds | None = None,
) -> tuple[PartnerSummary, tuple[Loan, ...]]:
    """
    Price every loan of one FIFO match and aggregate them.

    Returns the summary and the loans with their accrual fields filled in.
    """
    thresholds = thresholds or AgingThresholds()
    open_qty = match.open_qty

    priced: list[Loan] = []
    for loan in match.loans:
        result = accrue_rent(loan, partner, open_qty)
        priced.append(loan.with_accrual(result.overdue_days, result.rate, result.accrued_rent))

    accrues = partner is not None and partner.accrues_rent and partner.allows(match.pallet_id)
    summary = PartnerSummary(
        partner_id=match.partner_id,
        partner_name=partner.name if partner is not None else match.partner_id,
        pallet_id=match.pallet_id,
        total_in=match.total_borrowed,
        total_out=match.total_returned,
        open_qty=open_qty,
        loan_count=len(priced),
        current_rate=select_rate(partner, open_qty) if accrues else _ZERO,
        avg_age=_weighted_age(priced),
        total_rent=sum((loan.accrued_rent for loan in priced), _ZERO),
        danger_count=sum(loan.qty for loan in priced if thresholds.is_danger(loan.age_days)),
        warning_count=sum(loan.qty for loan in priced if thresholds.is_warning(loan.age_days)),
    )
    return summary, tuple(priced)


def _pallets_for(partner: Partner, transactions: Sequence[Transaction]) -> tuple[str, ...]:
    if partner.allowed_pallets:
        return tuple(sorted(partner.allowed_pallets))
    return tuple(sorted({t.pallet_id for t in transactions if t.touches(partner.id)}))


@traced_engine("rental", "1.0", fingerprint_fields=("transactions", "partners", "as_of_date"))
def summarize_aging_rental(
    transactions: Sequence[Transaction],
    partners: Mapping[str, Partner],
    as_of_date: datetime,
    thresholds: AgingThresholds | None = None,
) -> AgingRentalSummary:
    """
    Aging/rental analysis across every configured partner.

    Pairs with no completed activity at all are omitted.  Excess returns
    are reported as ``EXCESS_RETURNS`` diagnostics rather than raised.
    """
    t0 = time.monotonic()
    thresholds = thresholds or AgingThresholds()

    loans: list[Loan] = []
    summaries: list[PartnerSummary] = []
    diagnostics: list[Diagnostic] = []

    for partner_id in sorted(partners):
        partner = partners[partner_id]
        for pallet_id in _pallets_for(partner, transactions):
            match = reconcile_loans(
                transactions, partner_id, pallet_id, as_of_date, partner.holding_side,
            )
            if match.total_borrowed == 0 and match.total_returned == 0:
                continue

            summary, priced = summarize_partner(match, partner, thresholds)
            summaries.append(summary)
            loans.extend(priced)

            if match.has_excess_returns:
                diagnostics.append(Diagnostic(
                    code="EXCESS_RETURNS",
                    message=(
                        f"{partner_id}/{pallet_id}: returns exceed borrows by "
                        f"{match.unabsorbed_returns}"
                    ),
                    severity=DiagnosticSeverity.WARNING,
                    details={
                        "partner_id": partner_id,
                        "pallet_id": pallet_id,
                        "total_borrowed": match.total_borrowed,
                        "total_returned": match.total_returned,
                        "unabsorbed_returns": match.unabsorbed_returns,
                    },
                ))

    result = AgingRentalSummary(
        as_of_date=as_of_date,
        loans=tuple(loans),
        partner_summaries=tuple(summaries),
        diagnostics=tuple(diagnostics),
    )

    duration_ms = round((time.monotonic() - t0) * 1000, 2)
    logger.info("aging_rental_summary_completed", extra={
        "as_of_date": as_of_date.isoformat(),
        "partner_pair_count": len(summaries),
        "open_loan_count": result.open_loan_count,
        "total_accrued_rent": str(result.total_accrued_rent),
        "diagnostic_count": len(diagnostics),
        "duration_ms": duration_ms,
    })
    return result
