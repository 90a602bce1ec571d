"""Affiliate rate ledger: authoritative current rates plus append-only history.

Every rate change goes through set_rates(), which performs

    read affiliate -> version-guarded rate write -> append history entry

inside a single transaction. Either both the new rates and their history
entry are committed, or neither is. A concurrent writer that bumps the
affiliate's version first makes the guarded write match zero rows; that
attempt raises ConcurrencyError, is rolled back, and the retry policy runs
the whole unit of work again against the fresh row.
"""
import logging
from decimal import Decimal
from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

import db.repositories.affiliates as affiliate_repo
import db.repositories.rate_history as history_repo
from commissions.catalog import RateTemplateCatalog
from commissions.errors import ConcurrencyError, NotFoundError
from commissions.rates import RateLike, ensure_valid_rates
from commissions.retry import RetryPolicy, default_ledger_policy
from db.connection import get_db
from schemas import Affiliate, RateHistoryEntry

logger = logging.getLogger(__name__)

TIER_PROMOTION_REASON = "tier promotion"


class AffiliateRateLedger:
    """Owns every write to an affiliate's commission rates.

    Usage:
        ledger = AffiliateRateLedger(session_factory, catalog)
        affiliate = await ledger.set_rates(affiliate_id, 12, 5, "annual review")
        history = await ledger.get_history(affiliate_id)
    """

    def __init__(
        self,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
        catalog: Optional[RateTemplateCatalog] = None,
        retry_policy: Optional[RetryPolicy] = None,
    ) -> None:
        self._session_factory = session_factory
        self._catalog = catalog or RateTemplateCatalog(session_factory)
        self._retry_policy = retry_policy or default_ledger_policy()

    @property
    def catalog(self) -> RateTemplateCatalog:
        return self._catalog

    async def get_affiliate(self, affiliate_id: UUID) -> Affiliate:
        async with get_db(self._session_factory) as session:
            row = await affiliate_repo.get_by_id(session, affiliate_id)
            if row is None:
                raise NotFoundError(f"Affiliate {affiliate_id} not found")
            return Affiliate.model_validate(row)

    async def set_rates(
        self,
        affiliate_id: UUID,
        new_upfront: RateLike,
        new_residual: RateLike,
        reason: str,
        *,
        changed_by: Optional[str] = None,
        tier: Optional[str] = None,
    ) -> Affiliate:
        """Change an affiliate's rates and record the change.

        Raises RateOutOfRangeError before touching the store, NotFoundError if
        the affiliate is missing, and ConcurrencyError once the retry policy
        is exhausted. State is unchanged whenever an error is raised.
        """
        upfront, residual = ensure_valid_rates(new_upfront, new_residual)

        async def attempt() -> Affiliate:
            return await self._write_rates(
                affiliate_id, upfront, residual, reason, changed_by=changed_by, tier=tier
            )

        affiliate = await self._retry_policy.run(attempt, label=f"set_rates({affiliate_id})")
        logger.info(
            "Rates for affiliate %s set to upfront=%s residual=%s (%s)",
            affiliate_id, upfront, residual, reason,
        )
        return affiliate

    async def _write_rates(
        self,
        affiliate_id: UUID,
        upfront: Decimal,
        residual: Decimal,
        reason: str,
        *,
        changed_by: Optional[str],
        tier: Optional[str],
    ) -> Affiliate:
        async with get_db(self._session_factory) as session:
            current = await affiliate_repo.get_by_id(session, affiliate_id)
            if current is None:
                raise NotFoundError(f"Affiliate {affiliate_id} not found")

            previous_upfront = current.upfront_rate
            previous_residual = current.residual_rate
            previous_tier = current.tier_level

            updated = await affiliate_repo.update_rates(
                session,
                affiliate_id,
                expected_version=current.version,
                upfront_rate=upfront,
                residual_rate=residual,
                tier_level=tier,
            )
            if updated is None:
                raise ConcurrencyError(
                    f"Affiliate {affiliate_id} was modified concurrently "
                    f"(expected version {current.version})"
                )

            await history_repo.append(
                session,
                affiliate_id,
                previous_upfront_rate=previous_upfront,
                new_upfront_rate=upfront,
                previous_residual_rate=previous_residual,
                new_residual_rate=residual,
                reason=reason,
                previous_tier_level=previous_tier if tier is not None else None,
                new_tier_level=tier,
                changed_by=changed_by,
            )
            return Affiliate.model_validate(updated)

    async def get_history(self, affiliate_id: UUID) -> list[RateHistoryEntry]:
        """Return the affiliate's rate changes ordered by effective_date, newest first."""
        async with get_db(self._session_factory) as session:
            rows = await history_repo.get_by_affiliate(session, affiliate_id)
            return [RateHistoryEntry.model_validate(row) for row in rows]

    async def promote_to_tier(
        self, affiliate_id: UUID, tier: str, *, changed_by: Optional[str] = None
    ) -> Affiliate:
        """Move an affiliate to a tier and adopt that tier's template rates."""
        template = await self._catalog.get_by_tier(tier)
        if template is None:
            raise NotFoundError(f"No active rate template for tier: {tier}")
        return await self.set_rates(
            affiliate_id,
            template.upfront_rate,
            template.residual_rate,
            TIER_PROMOTION_REASON,
            changed_by=changed_by,
            tier=template.tier_level,
        )

    async def apply_template(
        self, affiliate_id: UUID, template_id: UUID, *, changed_by: Optional[str] = None
    ) -> Affiliate:
        """Give an affiliate the rates of a specific template."""
        template = await self._catalog.get(template_id)
        if template is None or not template.is_active:
            raise NotFoundError(f"Rate template {template_id} not found")
        return await self.set_rates(
            affiliate_id,
            template.upfront_rate,
            template.residual_rate,
            f"Applied template: {template.name}",
            changed_by=changed_by,
        )
