"""Commission entry repository: read-only queries for rollups and export."""
import logging
from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from db.models import CommissionEntry

logger = logging.getLogger(__name__)


async def list_entries(
    session: AsyncSession,
    *,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    affiliate_id: Optional[UUID] = None,
    status: Optional[str] = None,
) -> list[CommissionEntry]:
    """Return commission entries with their affiliate loaded, newest first.

    All filters are optional and combine with AND. start_date and end_date
    are inclusive bounds on created_at.
    """
    stmt = (
        select(CommissionEntry)
        .options(selectinload(CommissionEntry.affiliate))
        .order_by(CommissionEntry.created_at.desc(), CommissionEntry.id)
    )
    if start_date is not None:
        stmt = stmt.where(CommissionEntry.created_at >= start_date)
    if end_date is not None:
        stmt = stmt.where(CommissionEntry.created_at <= end_date)
    if affiliate_id is not None:
        stmt = stmt.where(CommissionEntry.affiliate_id == affiliate_id)
    if status is not None:
        stmt = stmt.where(CommissionEntry.status == status)

    result = await session.execute(stmt)
    return list(result.scalars().all())


async def record(session: AsyncSession, data: dict) -> CommissionEntry:
    """Persist an already-normalized commission entry.

    data dict keys: affiliate_id, referral_id, commission_type, customer_name,
    customer_email, product_name, product_id, order_total, commission_amount,
    commission_rate, status, payment_date, notes, details, created_at
    """
    entry = CommissionEntry(**data)
    session.add(entry)
    await session.flush()
    await session.refresh(entry)
    return entry
