from .affiliate import (
    Affiliate,
    AffiliateStatus,
    CommissionEntryDetails,
    Details,
    OnboardingStatus,
    RateHistoryEntry,
    RateTemplate,
    RateTemplateDetails,
    RateTemplateIn,
    TierLevel,
)
from .commission import (
    EXPORT_HEADER,
    AffiliatePerformance,
    AffiliateRef,
    CommissionEntry,
    CommissionStats,
    CommissionStatus,
    CommissionType,
    ExportFilters,
)
from .bulk import (
    BulkFailure,
    BulkRateResult,
    RatePatch,
    RatesPatch,
    TemplatePatch,
    TierPatch,
)

__all__ = [
    "Affiliate", "AffiliateStatus", "OnboardingStatus", "TierLevel",
    "RateTemplate", "RateTemplateIn", "RateHistoryEntry",
    "RateTemplateDetails", "CommissionEntryDetails", "Details",
    "EXPORT_HEADER", "AffiliateRef", "CommissionEntry", "CommissionStats",
    "CommissionStatus", "CommissionType", "AffiliatePerformance", "ExportFilters",
    "RatesPatch", "TierPatch", "TemplatePatch", "RatePatch",
    "BulkFailure", "BulkRateResult",
]
