"""Bulk rate operations: one patch fanned out across many affiliates."""
import asyncio
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional
from uuid import UUID

import settings
from commissions.conflicts import ConflictAdvisor
from commissions.errors import CommissionError, NotFoundError, PartialBatchFailure
from commissions.ledger import AffiliateRateLedger
from commissions.rates import ensure_valid_rates
from schemas import (
    BulkFailure,
    BulkRateResult,
    RatePatch,
    RatesPatch,
    TemplatePatch,
    TierPatch,
)

logger = logging.getLogger(__name__)


def raise_for_partial(result: BulkRateResult) -> None:
    """Raise PartialBatchFailure when any affiliate in the batch failed."""
    if result.partial:
        raise PartialBatchFailure(result)


@dataclass(frozen=True)
class _ResolvedPatch:
    upfront_rate: Decimal
    residual_rate: Decimal
    reason: str
    tier: Optional[str] = None
    # Set when advisory checks should run before each write.
    advise: bool = True


class BulkRateOperator:
    """Applies a rate patch to many affiliates, isolating per-affiliate failures.

    There is no batch atomicity: each affiliate goes through the ledger's own
    transaction, and a failure for one id never rolls back or blocks another.

    Usage:
        operator = BulkRateOperator(ledger, advisor)
        result = await operator.apply(ids, RatesPatch(upfront_rate=12, residual_rate=4, reason="Q3"))
    """

    def __init__(
        self,
        ledger: AffiliateRateLedger,
        advisor: Optional[ConflictAdvisor] = None,
        *,
        concurrency: Optional[int] = None,
    ) -> None:
        self._ledger = ledger
        self._advisor = advisor or ConflictAdvisor(ledger.catalog)
        self._concurrency = max(concurrency or settings.BULK_RATE_CONCURRENCY, 1)

    async def apply(
        self,
        affiliate_ids: Iterable[UUID],
        patch: RatePatch,
        *,
        changed_by: Optional[str] = None,
    ) -> BulkRateResult:
        ids = list(dict.fromkeys(affiliate_ids))
        result = BulkRateResult()
        if not ids:
            return result

        try:
            resolved = await self._resolve(patch)
        except CommissionError as exc:
            logger.warning("Bulk %s patch could not be resolved: %s", patch.kind, exc)
            result.failed = [
                BulkFailure(affiliate_id=i, error=str(exc), error_type=type(exc).__name__)
                for i in ids
            ]
            return result

        semaphore = asyncio.Semaphore(self._concurrency)

        async def run_one(affiliate_id: UUID):
            async with semaphore:
                return await self._apply_one(affiliate_id, resolved, changed_by)

        outcomes = await asyncio.gather(*(run_one(i) for i in ids))

        for affiliate_id, (error, warnings) in zip(ids, outcomes):
            if warnings:
                result.warnings[affiliate_id] = warnings
            if error is None:
                result.succeeded.append(affiliate_id)
            else:
                result.failed.append(
                    BulkFailure(
                        affiliate_id=affiliate_id,
                        error=str(error),
                        error_type=type(error).__name__,
                    )
                )

        logger.info(
            "Bulk %s patch: %d succeeded, %d failed (%s)",
            patch.kind, len(result.succeeded), len(result.failed), resolved.reason,
        )
        return result

    async def _resolve(self, patch: RatePatch) -> _ResolvedPatch:
        """Turn a patch into concrete rates. Catalog lookups happen once per batch."""
        catalog = self._ledger.catalog
        if isinstance(patch, RatesPatch):
            upfront, residual = ensure_valid_rates(patch.upfront_rate, patch.residual_rate)
            return _ResolvedPatch(upfront, residual, patch.reason)
        if isinstance(patch, TierPatch):
            template = await catalog.get_by_tier(patch.tier)
            if template is None:
                raise NotFoundError(f"No active rate template for tier: {patch.tier}")
            return _ResolvedPatch(
                template.upfront_rate,
                template.residual_rate,
                patch.reason,
                tier=template.tier_level,
                advise=False,
            )
        if isinstance(patch, TemplatePatch):
            template = await catalog.get(patch.template_id)
            if template is None or not template.is_active:
                raise NotFoundError(f"Rate template {patch.template_id} not found")
            return _ResolvedPatch(template.upfront_rate, template.residual_rate, patch.reason)
        raise TypeError(f"Unsupported rate patch: {type(patch).__name__}")

    async def _apply_one(
        self,
        affiliate_id: UUID,
        patch: _ResolvedPatch,
        changed_by: Optional[str],
    ) -> tuple[Optional[Exception], list[str]]:
        warnings: list[str] = []
        try:
            if patch.advise:
                affiliate = await self._ledger.get_affiliate(affiliate_id)
                warnings = await self._advisor.check(
                    affiliate, patch.upfront_rate, patch.residual_rate
                )
            await self._ledger.set_rates(
                affiliate_id,
                patch.upfront_rate,
                patch.residual_rate,
                patch.reason,
                changed_by=changed_by,
                tier=patch.tier,
            )
        except CommissionError as exc:
            logger.info("Bulk rate update failed for affiliate %s: %s", affiliate_id, exc)
            return exc, warnings
        except Exception as exc:
            logger.warning(
                "Unexpected error in bulk rate update for affiliate %s", affiliate_id, exc_info=True
            )
            return exc, warnings
        return None, warnings
