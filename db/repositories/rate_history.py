"""Rate history repository: append-only audit entries."""
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from db.models import RateHistory

logger = logging.getLogger(__name__)


async def append(
    session: AsyncSession,
    affiliate_id: UUID,
    previous_upfront_rate: Optional[Decimal],
    new_upfront_rate: Decimal,
    previous_residual_rate: Optional[Decimal],
    new_residual_rate: Decimal,
    reason: str,
    *,
    previous_tier_level: Optional[str] = None,
    new_tier_level: Optional[str] = None,
    changed_by: Optional[str] = None,
    effective_date: Optional[datetime] = None,
) -> RateHistory:
    """Persist one rate change. Entries are never updated or deleted."""
    entry = RateHistory(
        affiliate_id=affiliate_id,
        previous_upfront_rate=previous_upfront_rate,
        new_upfront_rate=new_upfront_rate,
        previous_residual_rate=previous_residual_rate,
        new_residual_rate=new_residual_rate,
        previous_tier_level=previous_tier_level,
        new_tier_level=new_tier_level,
        reason=reason,
        changed_by=changed_by,
        effective_date=effective_date or datetime.now(timezone.utc),
    )
    session.add(entry)
    await session.flush()
    return entry


async def get_by_affiliate(session: AsyncSession, affiliate_id: UUID) -> list[RateHistory]:
    """Return an affiliate's rate changes, most recent first."""
    result = await session.execute(
        select(RateHistory)
        .where(RateHistory.affiliate_id == affiliate_id)
        .order_by(RateHistory.effective_date.desc(), RateHistory.created_at.desc())
    )
    return list(result.scalars().all())
