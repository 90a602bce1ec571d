"""Commission dashboard: cached rollups, rate history and the CSV export."""
import logging
from datetime import datetime, timezone
from typing import Callable, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

import db.repositories.affiliates as affiliate_repo
import db.repositories.commissions as commission_repo
import db.repositories.rate_history as history_repo
from commissions.aggregator import CommissionAggregator
from commissions.dashboard_cache import DashboardCache
from db.connection import get_db
from schemas import CommissionEntry, CommissionStats, ExportFilters, RateHistoryEntry
from schemas import Affiliate as AffiliateSchema

logger = logging.getLogger(__name__)

STATS_KEY = "commission_stats"


def rate_history_key(affiliate_id: UUID) -> str:
    return f"rate_history:{affiliate_id}"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CommissionDashboard:
    """Read side of the commission system, fronted by a DashboardCache.

    Call invalidate_affiliate() after any rate write so the next read
    reflects it.

    Usage:
        dashboard = CommissionDashboard(session_factory, DashboardCache())
        stats = await dashboard.stats()
        csv_text = await dashboard.export_csv(ExportFilters(status="paid"))
    """

    def __init__(
        self,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
        cache: Optional[DashboardCache] = None,
        aggregator: Optional[CommissionAggregator] = None,
        *,
        now: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._session_factory = session_factory
        self._cache = cache or DashboardCache()
        self._aggregator = aggregator or CommissionAggregator()
        self._now = now

    @property
    def cache(self) -> DashboardCache:
        return self._cache

    async def stats(self) -> CommissionStats:
        return await self._cache.get(STATS_KEY, self._load_stats)

    async def rate_history(self, affiliate_id: UUID) -> list[RateHistoryEntry]:
        async def load() -> list[RateHistoryEntry]:
            async with get_db(self._session_factory) as session:
                rows = await history_repo.get_by_affiliate(session, affiliate_id)
                return [RateHistoryEntry.model_validate(row) for row in rows]

        return await self._cache.get(rate_history_key(affiliate_id), load)

    async def export_csv(self, filters: Optional[ExportFilters] = None) -> str:
        """Export matching commission entries. Always reads from the store."""
        entries = await self._load_entries(filters or ExportFilters())
        return self._aggregator.export_csv(entries)

    def invalidate_affiliate(self, affiliate_id: UUID) -> None:
        self._cache.invalidate([STATS_KEY, rate_history_key(affiliate_id)])

    async def _load_entries(self, filters: ExportFilters) -> list[CommissionEntry]:
        async with get_db(self._session_factory) as session:
            rows = await commission_repo.list_entries(
                session,
                start_date=filters.start_date,
                end_date=filters.end_date,
                affiliate_id=filters.affiliate_id,
                status=filters.status,
            )
            return [CommissionEntry.model_validate(row) for row in rows]

    async def _load_stats(self) -> CommissionStats:
        async with get_db(self._session_factory) as session:
            entry_rows = await commission_repo.list_entries(session)
            affiliate_rows = await affiliate_repo.list_all(session)
            entries = [CommissionEntry.model_validate(row) for row in entry_rows]
            affiliates = [AffiliateSchema.model_validate(row) for row in affiliate_rows]
        stats = self._aggregator.stats(entries, affiliates, as_of=self._now())
        logger.debug(
            "Computed commission stats over %d entries and %d affiliates",
            len(entries), len(affiliates),
        )
        return stats
