"""Advisory comparison of proposed rates against the affiliate's tier template."""
import logging
from decimal import Decimal
from typing import Optional

import settings
from commissions.catalog import RateTemplateCatalog
from commissions.rates import RateLike, to_rate
from schemas import Affiliate, RateTemplate

logger = logging.getLogger(__name__)


class ConflictAdvisor:
    """Flags rates that drift far from the tier standard. Never blocks a write.

    Thresholds are percentage points and default to the UPFRONT_/RESIDUAL_
    CONFLICT_THRESHOLD settings.
    """

    def __init__(
        self,
        catalog: RateTemplateCatalog,
        *,
        upfront_threshold: Optional[Decimal] = None,
        residual_threshold: Optional[Decimal] = None,
    ) -> None:
        self._catalog = catalog
        self.upfront_threshold = (
            settings.UPFRONT_CONFLICT_THRESHOLD if upfront_threshold is None else to_rate(upfront_threshold)
        )
        self.residual_threshold = (
            settings.RESIDUAL_CONFLICT_THRESHOLD if residual_threshold is None else to_rate(residual_threshold)
        )

    async def check(
        self,
        affiliate: Affiliate,
        proposed_upfront: RateLike,
        proposed_residual: RateLike,
        *,
        template: Optional[RateTemplate] = None,
    ) -> list[str]:
        """Return one advisory message per threshold the proposal exceeds.

        template may be passed to skip the catalog lookup; otherwise the
        affiliate's tier template is used. No template means no advice.
        """
        if template is None:
            template = await self._catalog.get_by_tier(affiliate.tier_level)
        if template is None:
            return []

        upfront = to_rate(proposed_upfront)
        residual = to_rate(proposed_residual)
        warnings = []
        if abs(upfront - template.upfront_rate) > self.upfront_threshold:
            warnings.append(
                f"Upfront rate differs significantly from {affiliate.tier_level} "
                f"tier standard ({template.upfront_rate}%)"
            )
        if abs(residual - template.residual_rate) > self.residual_threshold:
            warnings.append(
                f"Residual rate differs significantly from {affiliate.tier_level} "
                f"tier standard ({template.residual_rate}%)"
            )
        if warnings:
            logger.info("Rate advisory for affiliate %s: %s", affiliate.id, "; ".join(warnings))
        return warnings
