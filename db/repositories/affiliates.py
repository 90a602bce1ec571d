"""Affiliate repository: lookups and version-guarded rate writes."""
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from db.models import Affiliate

logger = logging.getLogger(__name__)


async def get_by_id(session: AsyncSession, affiliate_id: UUID) -> Optional[Affiliate]:
    """Return the Affiliate with this id, or None."""
    result = await session.execute(
        select(Affiliate).where(Affiliate.id == affiliate_id)
    )
    return result.scalar_one_or_none()


async def list_all(session: AsyncSession, status: Optional[str] = None) -> list[Affiliate]:
    """Return affiliates, newest first, optionally filtered by status."""
    stmt = select(Affiliate).order_by(Affiliate.created_at.desc(), Affiliate.name)
    if status is not None:
        stmt = stmt.where(Affiliate.status == status)
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def create(session: AsyncSession, data: dict) -> Affiliate:
    """Insert a new affiliate.

    data dict keys: name, email, external_id, phone, status, upfront_rate,
    residual_rate, tier_level, onboarding_status, notes
    """
    affiliate = Affiliate(**data)
    session.add(affiliate)
    await session.flush()
    await session.refresh(affiliate)
    return affiliate


async def update_rates(
    session: AsyncSession,
    affiliate_id: UUID,
    expected_version: int,
    upfront_rate: Decimal,
    residual_rate: Decimal,
    tier_level: Optional[str] = None,
) -> Optional[Affiliate]:
    """Write new rates if the row is still at expected_version.

    Returns the updated Affiliate, or None when another writer got there
    first (the version no longer matches) or the row is gone.
    """
    values = {
        "upfront_rate": upfront_rate,
        "residual_rate": residual_rate,
        "version": expected_version + 1,
        "updated_at": datetime.now(timezone.utc),
    }
    if tier_level is not None:
        values["tier_level"] = tier_level

    result = await session.execute(
        update(Affiliate)
        .where(Affiliate.id == affiliate_id)
        .where(Affiliate.version == expected_version)
        .values(**values)
        .returning(Affiliate),
        execution_options={"populate_existing": True},
    )
    await session.flush()
    return result.scalar_one_or_none()
