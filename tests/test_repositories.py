"""Integration tests for core repository methods."""
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from db import get_db
from db.repositories import affiliates as affiliate_repo
from db.repositories import commissions as commission_repo
from db.repositories import rate_history as history_repo
from db.repositories import templates as template_repo


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_update_rates_bumps_version(session_factory, make_affiliate):
    """A write at the current version succeeds and increments it."""
    affiliate = await make_affiliate()
    async with get_db(session_factory) as session:
        updated = await affiliate_repo.update_rates(
            session, affiliate.id, expected_version=1,
            upfront_rate=Decimal("12"), residual_rate=Decimal("6"),
        )
    assert updated is not None
    assert updated.version == 2
    assert updated.upfront_rate == Decimal("12")
    assert updated.tier_level == "standard", "Tier is untouched unless given"


@pytest.mark.asyncio
async def test_update_rates_with_stale_version_returns_none(session_factory, make_affiliate):
    """A write against an outdated version matches no row and changes nothing."""
    affiliate = await make_affiliate(upfront_rate="10", residual_rate="5")
    async with get_db(session_factory) as session:
        await affiliate_repo.update_rates(
            session, affiliate.id, expected_version=1,
            upfront_rate=Decimal("11"), residual_rate=Decimal("5"),
        )
    async with get_db(session_factory) as session:
        stale = await affiliate_repo.update_rates(
            session, affiliate.id, expected_version=1,
            upfront_rate=Decimal("30"), residual_rate=Decimal("5"),
        )
    assert stale is None
    async with get_db(session_factory) as session:
        current = await affiliate_repo.get_by_id(session, affiliate.id)
    assert current.upfront_rate == Decimal("11")
    assert current.version == 2


@pytest.mark.asyncio
async def test_history_is_newest_first(session_factory, make_affiliate):
    affiliate = await make_affiliate()
    async with get_db(session_factory) as session:
        await history_repo.append(
            session, affiliate.id, Decimal("10"), Decimal("11"), Decimal("5"), Decimal("5"),
            "first", effective_date=datetime(2026, 1, 1, tzinfo=timezone.utc),
        )
        await history_repo.append(
            session, affiliate.id, Decimal("11"), Decimal("12"), Decimal("5"), Decimal("5"),
            "second", effective_date=datetime(2026, 2, 1, tzinfo=timezone.utc),
        )
    async with get_db(session_factory) as session:
        rows = await history_repo.get_by_affiliate(session, affiliate.id)
    assert [r.reason for r in rows] == ["second", "first"]


@pytest.mark.asyncio
async def test_clear_other_defaults_keeps_one(session_factory):
    async with get_db(session_factory) as session:
        first = await template_repo.save(session, {
            "name": "Standard", "upfront_rate": Decimal("10"), "residual_rate": Decimal("5"),
            "tier_level": "standard", "is_default": True, "is_active": True,
        })
    async with get_db(session_factory) as session:
        cleared = await template_repo.clear_other_defaults(session, keep_id=first.id)
    assert cleared == 0, "The kept template must not be cleared"

    async with get_db(session_factory) as session:
        cleared = await template_repo.clear_other_defaults(session)
        defaults = await template_repo.get_active_defaults(session)
    assert cleared == 1
    assert defaults == []


@pytest.mark.asyncio
async def test_list_entries_filters(session_factory, make_affiliate, record_entry):
    """Filters combine with AND; dates are inclusive bounds on created_at."""
    ada = await make_affiliate(name="Ada")
    bob = await make_affiliate(name="Bob")
    await record_entry(ada, datetime(2026, 1, 15, tzinfo=timezone.utc), status="paid")
    await record_entry(ada, datetime(2026, 2, 15, tzinfo=timezone.utc), status="pending")
    await record_entry(bob, datetime(2026, 2, 20, tzinfo=timezone.utc), status="paid")

    async with get_db(session_factory) as session:
        paid = await commission_repo.list_entries(session, status="paid")
        feb = await commission_repo.list_entries(
            session,
            start_date=datetime(2026, 2, 1, tzinfo=timezone.utc),
            end_date=datetime(2026, 2, 28, tzinfo=timezone.utc),
        )
        ada_paid = await commission_repo.list_entries(session, affiliate_id=ada.id, status="paid")
        everything = await commission_repo.list_entries(session)

        assert {e.affiliate.name for e in paid} == {"Ada", "Bob"}
        assert len(feb) == 2
        assert len(ada_paid) == 1
        assert [e.affiliate.name for e in everything] == ["Bob", "Ada", "Ada"], "Newest first"
