"""Affiliate commission rate management and dashboard caching."""
from commissions.aggregator import CommissionAggregator
from commissions.bulk import BulkRateOperator, raise_for_partial
from commissions.catalog import RateTemplateCatalog
from commissions.conflicts import ConflictAdvisor
from commissions.dashboard import CommissionDashboard
from commissions.dashboard_cache import CacheEntry, CacheState, DashboardCache
from commissions.errors import (
    CommissionError,
    ConcurrencyError,
    NotFoundError,
    PartialBatchFailure,
    RateOutOfRangeError,
    ValidationError,
)
from commissions.ledger import AffiliateRateLedger
from commissions.retry import RetryPolicy

__all__ = [
    "CommissionAggregator",
    "BulkRateOperator",
    "raise_for_partial",
    "RateTemplateCatalog",
    "ConflictAdvisor",
    "CommissionDashboard",
    "CacheEntry",
    "CacheState",
    "DashboardCache",
    "CommissionError",
    "ConcurrencyError",
    "NotFoundError",
    "PartialBatchFailure",
    "RateOutOfRangeError",
    "ValidationError",
    "AffiliateRateLedger",
    "RetryPolicy",
]
