"""Commission rate template repository."""
import logging
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from db.models import RateTemplate

logger = logging.getLogger(__name__)


async def get_by_id(session: AsyncSession, template_id: UUID) -> Optional[RateTemplate]:
    """Return the template with this id (active or not), or None."""
    result = await session.execute(
        select(RateTemplate).where(RateTemplate.id == template_id)
    )
    return result.scalar_one_or_none()


async def list_active(session: AsyncSession) -> list[RateTemplate]:
    """Return all active templates (unordered by tier; the catalog ranks them)."""
    result = await session.execute(
        select(RateTemplate)
        .where(RateTemplate.is_active.is_(True))
        .order_by(RateTemplate.name)
    )
    return list(result.scalars().all())


async def get_active_defaults(session: AsyncSession) -> list[RateTemplate]:
    """Return active templates flagged as default.

    More than one row means the single-default invariant was broken outside
    the catalog; callers decide how to report it.
    """
    result = await session.execute(
        select(RateTemplate)
        .where(RateTemplate.is_default.is_(True))
        .where(RateTemplate.is_active.is_(True))
        .order_by(RateTemplate.updated_at.desc())
    )
    return list(result.scalars().all())


async def get_first_active_by_tier(session: AsyncSession, tier_level: str) -> Optional[RateTemplate]:
    """Return the oldest active template for a tier, or None."""
    result = await session.execute(
        select(RateTemplate)
        .where(RateTemplate.tier_level == tier_level)
        .where(RateTemplate.is_active.is_(True))
        .order_by(RateTemplate.created_at, RateTemplate.name)
        .limit(1)
    )
    return result.scalar_one_or_none()


async def clear_other_defaults(session: AsyncSession, keep_id: Optional[UUID] = None) -> int:
    """Unset is_default on every active default template except keep_id.

    Returns the number of templates that lost their default flag.
    """
    stmt = (
        update(RateTemplate)
        .where(RateTemplate.is_default.is_(True))
        .where(RateTemplate.is_active.is_(True))
        .values(is_default=False, updated_at=datetime.now(timezone.utc))
        .returning(RateTemplate.id)
    )
    if keep_id is not None:
        stmt = stmt.where(RateTemplate.id != keep_id)
    result = await session.execute(stmt)
    await session.flush()
    cleared = len(result.fetchall())
    if cleared:
        logger.info("Cleared default flag on %d rate template(s)", cleared)
    return cleared


async def save(session: AsyncSession, data: dict, template_id: Optional[UUID] = None) -> RateTemplate:
    """Insert a template, or update the existing row when template_id is known.

    data dict keys: name, details, upfront_rate, residual_rate, tier_level,
    is_default, is_active
    """
    template = await get_by_id(session, template_id) if template_id is not None else None
    if template is None:
        template = RateTemplate(**data)
        if template_id is not None:
            template.id = template_id
        session.add(template)
    else:
        for key, value in data.items():
            setattr(template, key, value)
    await session.flush()
    await session.refresh(template)
    return template
