"""Rate template catalog: named rate presets per tier, at most one default."""
import logging
from typing import Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

import db.repositories.templates as template_repo
from commissions.errors import ConcurrencyError, NotFoundError, RateOutOfRangeError, ValidationError
from commissions.rates import ensure_valid_rates
from db.connection import get_db
from db.models import TIER_LEVELS
from schemas import RateTemplate, RateTemplateIn

logger = logging.getLogger(__name__)


def tier_rank(tier_level: str) -> int:
    """Position of a tier in the declared order; unknown tiers sort last."""
    try:
        return TIER_LEVELS.index(tier_level)
    except ValueError:
        return len(TIER_LEVELS)


class RateTemplateCatalog:
    """Reads and maintains commission rate templates.

    Usage:
        catalog = RateTemplateCatalog(session_factory)
        gold = await catalog.get_by_tier("gold")
    """

    def __init__(self, session_factory: Optional[async_sessionmaker[AsyncSession]] = None) -> None:
        self._session_factory = session_factory

    async def list_active(self) -> list[RateTemplate]:
        async with get_db(self._session_factory) as session:
            rows = await template_repo.list_active(session)
            templates = [RateTemplate.model_validate(row) for row in rows]
        return sorted(templates, key=lambda t: (tier_rank(t.tier_level), t.name))

    async def get_default(self) -> Optional[RateTemplate]:
        async with get_db(self._session_factory) as session:
            defaults = await template_repo.get_active_defaults(session)
            if len(defaults) > 1:
                logger.warning(
                    "%d active default rate templates found; using most recently updated %s",
                    len(defaults), defaults[0].id,
                )
            return RateTemplate.model_validate(defaults[0]) if defaults else None

    async def get_by_tier(self, tier_level: str) -> Optional[RateTemplate]:
        async with get_db(self._session_factory) as session:
            row = await template_repo.get_first_active_by_tier(session, tier_level)
            return RateTemplate.model_validate(row) if row else None

    async def get(self, template_id: UUID) -> Optional[RateTemplate]:
        async with get_db(self._session_factory) as session:
            row = await template_repo.get_by_id(session, template_id)
            return RateTemplate.model_validate(row) if row else None

    async def upsert(self, template: RateTemplateIn) -> RateTemplate:
        """Create or update a template.

        Raises ValidationError when rates are out of bounds. Saving an active
        default unsets every other active default in the same transaction.
        """
        try:
            upfront, residual = ensure_valid_rates(template.upfront_rate, template.residual_rate)
        except RateOutOfRangeError as exc:
            raise ValidationError(f"Invalid rate template {template.name!r}: {exc}", exc.errors) from exc

        data = {
            "name": template.name,
            "upfront_rate": upfront,
            "residual_rate": residual,
            "tier_level": template.tier_level,
            "is_default": template.is_default,
            "is_active": template.is_active,
            "details": template.details.model_dump() if template.details else None,
        }
        try:
            async with get_db(self._session_factory) as session:
                if template.is_default and template.is_active:
                    await template_repo.clear_other_defaults(session, keep_id=template.id)
                row = await template_repo.save(session, data, template_id=template.id)
                saved = RateTemplate.model_validate(row)
        except IntegrityError as exc:
            # Another writer claimed the default slot between our clear and save.
            raise ConcurrencyError(
                f"Rate template {template.name!r} conflicted with a concurrent write"
            ) from exc

        logger.info(
            "Saved rate template %s (%s, tier=%s, default=%s)",
            saved.id, saved.name, saved.tier_level, saved.is_default,
        )
        return saved

    async def deactivate(self, template_id: UUID) -> RateTemplate:
        """Mark a template inactive and drop its default flag. Templates are never deleted."""
        async with get_db(self._session_factory) as session:
            row = await template_repo.get_by_id(session, template_id)
            if row is None:
                raise NotFoundError(f"Rate template {template_id} not found")
            row = await template_repo.save(
                session, {"is_active": False, "is_default": False}, template_id=template_id
            )
            saved = RateTemplate.model_validate(row)
        logger.info("Deactivated rate template %s (%s)", saved.id, saved.name)
        return saved
