"""SQLAlchemy 2.0 ORM models for the affiliate commission core.

Covers 4 tables in the crm schema:
  - affiliates, commission_rate_templates, affiliate_rate_history,
    commission_entries
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    JSON,
    Numeric,
    Text,
    Uuid,
    false,
    text,
    true,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.sql import func


# ---------------------------------------------------------------------------
# Shared base
# ---------------------------------------------------------------------------


class Base(DeclarativeBase):
    pass


# ---------------------------------------------------------------------------
# Enumerated values used in CHECK constraints
# ---------------------------------------------------------------------------

# Declared order doubles as tier rank (lowest first).
TIER_LEVELS = ("bronze", "silver", "gold", "platinum", "standard")
AFFILIATE_STATUSES = ("active", "inactive", "suspended")
ONBOARDING_STATUSES = ("pending", "in_progress", "completed", "on_hold")
COMMISSION_TYPES = ("upfront", "residual")
COMMISSION_STATUSES = ("pending", "approved", "paid", "cancelled")


def _in_check(column: str, values: tuple[str, ...]) -> str:
    return f"{column} IN (" + ", ".join(f"'{v}'" for v in values) + ")"


def _rate_checks(prefix: str) -> tuple[CheckConstraint, ...]:
    return (
        CheckConstraint(
            "upfront_rate >= 0 AND upfront_rate <= 100",
            name=f"ck_{prefix}_upfront_rate_range",
        ),
        CheckConstraint(
            "residual_rate >= 0 AND residual_rate <= 100",
            name=f"ck_{prefix}_residual_rate_range",
        ),
        CheckConstraint(
            "upfront_rate + residual_rate <= 100",
            name=f"ck_{prefix}_rate_sum",
        ),
    )


# ===========================================================================
# Schema: crm
# ===========================================================================


class Affiliate(Base):
    """crm.affiliates: referral partner with its current commission rates."""

    __tablename__ = "affiliates"
    __table_args__ = (
        *_rate_checks("affiliate"),
        CheckConstraint(_in_check("status", AFFILIATE_STATUSES), name="ck_affiliate_status"),
        CheckConstraint(_in_check("tier_level", TIER_LEVELS), name="ck_affiliate_tier_level"),
        CheckConstraint(
            _in_check("onboarding_status", ONBOARDING_STATUSES),
            name="ck_affiliate_onboarding_status",
        ),
        {"schema": "crm"},
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    # Affiliate id on the partner platform
    external_id: Mapped[Optional[int]] = mapped_column(Integer, unique=True, nullable=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    email: Mapped[str] = mapped_column(Text, nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(Text, nullable=False, default="active", server_default="active")
    upfront_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, default=Decimal("0"))
    residual_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, default=Decimal("0"))
    tier_level: Mapped[str] = mapped_column(
        Text, nullable=False, default="standard", server_default="standard"
    )
    total_sales: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    total_commissions: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0")
    )
    onboarding_status: Mapped[str] = mapped_column(
        Text, nullable=False, default="pending", server_default="pending"
    )
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # Bumped on every rate write; guards the ledger's read-modify-append.
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1, server_default="1")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    # Relationships
    rate_history: Mapped[list["RateHistory"]] = relationship(
        "RateHistory", back_populates="affiliate"
    )
    commission_entries: Mapped[list["CommissionEntry"]] = relationship(
        "CommissionEntry", back_populates="affiliate"
    )


class RateTemplate(Base):
    """crm.commission_rate_templates: named rate preset for a tier."""

    __tablename__ = "commission_rate_templates"
    __table_args__ = (
        *_rate_checks("rate_template"),
        CheckConstraint(_in_check("tier_level", TIER_LEVELS), name="ck_rate_template_tier_level"),
        Index(
            "uq_rate_template_single_default",
            "is_default",
            unique=True,
            postgresql_where=text("is_default AND is_active"),
            sqlite_where=text("is_default = 1 AND is_active = 1"),
        ),
        {"schema": "crm"},
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    details: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    upfront_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    residual_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    tier_level: Mapped[str] = mapped_column(Text, nullable=False)
    is_default: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=true()
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


class RateHistory(Base):
    """crm.affiliate_rate_history: append-only audit trail of rate changes."""

    __tablename__ = "affiliate_rate_history"
    __table_args__ = {"schema": "crm"}

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    affiliate_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("crm.affiliates.id"),
        nullable=False,
        index=True,
    )
    previous_upfront_rate: Mapped[Optional[Decimal]] = mapped_column(Numeric(5, 2), nullable=True)
    new_upfront_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    previous_residual_rate: Mapped[Optional[Decimal]] = mapped_column(Numeric(5, 2), nullable=True)
    new_residual_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    previous_tier_level: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    new_tier_level: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    changed_by: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    effective_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    # Relationship
    affiliate: Mapped["Affiliate"] = relationship("Affiliate", back_populates="rate_history")


class CommissionEntry(Base):
    """crm.commission_entries: normalized commission earned on one order."""

    __tablename__ = "commission_entries"
    __table_args__ = (
        CheckConstraint(
            _in_check("commission_type", COMMISSION_TYPES),
            name="ck_commission_entry_type",
        ),
        CheckConstraint(
            _in_check("status", COMMISSION_STATUSES),
            name="ck_commission_entry_status",
        ),
        {"schema": "crm"},
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    affiliate_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("crm.affiliates.id"),
        nullable=False,
        index=True,
    )
    # Loose reference to the partner platform's referral: no FK enforced
    referral_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    commission_type: Mapped[str] = mapped_column(Text, nullable=False)
    customer_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    customer_email: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    product_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    product_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    order_total: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    commission_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    commission_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    status: Mapped[str] = mapped_column(Text, nullable=False, default="pending", server_default="pending")
    payment_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    details: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    # Relationship
    affiliate: Mapped["Affiliate"] = relationship("Affiliate", back_populates="commission_entries")


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

__all__ = [
    "Base",
    "TIER_LEVELS",
    "AFFILIATE_STATUSES",
    "ONBOARDING_STATUSES",
    "COMMISSION_TYPES",
    "COMMISSION_STATUSES",
    "Affiliate",
    "RateTemplate",
    "RateHistory",
    "CommissionEntry",
]
