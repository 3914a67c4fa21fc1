"""
pallet_services -- imperative shell composing ingestion, config and engines.
"""

from pallet_services.analytics_service import (
    AnalyticsReport,
    DashboardReport,
    LedgerBatch,
    PalletAnalyticsService,
)

__all__ = [
    "AnalyticsReport",
    "DashboardReport",
    "LedgerBatch",
    "PalletAnalyticsService",
]
