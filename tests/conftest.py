"""Shared fixtures: a throwaway SQLite database per test, built from the ORM metadata."""
from datetime import datetime
from decimal import Decimal
from typing import Optional

import pytest_asyncio

import db.repositories.affiliates as affiliate_repo
import db.repositories.commissions as commission_repo
from commissions.catalog import RateTemplateCatalog
from commissions.ledger import AffiliateRateLedger
from commissions.retry import RetryPolicy
from db.connection import build_engine, build_session_factory, get_db
from db.models import Base
from schemas import Affiliate, RateTemplate, RateTemplateIn

NO_DELAY_RETRIES = RetryPolicy(max_attempts=5, base_delay_seconds=0, max_delay_seconds=0)


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'commissions.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield build_session_factory(engine)
    await engine.dispose()


@pytest_asyncio.fixture
async def catalog(session_factory):
    return RateTemplateCatalog(session_factory)


@pytest_asyncio.fixture
async def ledger(session_factory, catalog):
    return AffiliateRateLedger(session_factory, catalog, retry_policy=NO_DELAY_RETRIES)


@pytest_asyncio.fixture
async def make_affiliate(session_factory):
    counter = {"n": 0}

    async def _make(
        upfront_rate="10",
        residual_rate="5",
        tier_level="standard",
        status="active",
        name: Optional[str] = None,
    ) -> Affiliate:
        counter["n"] += 1
        n = counter["n"]
        async with get_db(session_factory) as session:
            row = await affiliate_repo.create(session, {
                "external_id": 1000 + n,
                "name": name or f"Affiliate {n}",
                "email": f"affiliate{n}@example.com",
                "status": status,
                "upfront_rate": Decimal(upfront_rate),
                "residual_rate": Decimal(residual_rate),
                "tier_level": tier_level,
            })
            return Affiliate.model_validate(row)

    return _make


@pytest_asyncio.fixture
async def make_template(catalog):
    async def _make(
        name: str,
        tier_level: str,
        upfront_rate="10",
        residual_rate="5",
        is_default: bool = False,
        is_active: bool = True,
    ) -> RateTemplate:
        return await catalog.upsert(RateTemplateIn(
            name=name,
            tier_level=tier_level,
            upfront_rate=Decimal(upfront_rate),
            residual_rate=Decimal(residual_rate),
            is_default=is_default,
            is_active=is_active,
        ))

    return _make


@pytest_asyncio.fixture
async def record_entry(session_factory):
    async def _record(
        affiliate: Affiliate,
        created_at: datetime,
        commission_amount="10",
        order_total="100",
        status="pending",
        commission_type="upfront",
        payment_date: Optional[datetime] = None,
        customer_name="Grace Hopper",
    ):
        async with get_db(session_factory) as session:
            return await commission_repo.record(session, {
                "affiliate_id": affiliate.id,
                "commission_type": commission_type,
                "customer_name": customer_name,
                "customer_email": "customer@example.com",
                "product_name": "Fiber 1G",
                "order_total": Decimal(order_total),
                "commission_amount": Decimal(commission_amount),
                "commission_rate": affiliate.upfront_rate,
                "status": status,
                "payment_date": payment_date,
                "created_at": created_at,
            })

    return _record
