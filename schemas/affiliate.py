"""Affiliate, rate template and rate history schemas."""
from datetime import datetime
from decimal import Decimal
from typing import Annotated, Literal, Optional, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

TierLevel = Literal["bronze", "silver", "gold", "platinum", "standard"]
AffiliateStatus = Literal["active", "inactive", "suspended"]
OnboardingStatus = Literal["pending", "in_progress", "completed", "on_hold"]


class RateTemplateDetails(BaseModel):
    kind: Literal["rate_template"] = "rate_template"
    description: Optional[str] = None
    notes: Optional[str] = None


class CommissionEntryDetails(BaseModel):
    kind: Literal["commission_entry"] = "commission_entry"
    referral_id: Optional[int] = None
    product_id: Optional[int] = None
    source: Optional[str] = None
    notes: Optional[str] = None


# Metadata stored in the JSON ``details`` columns, tagged by content kind.
Details = Annotated[
    Union[RateTemplateDetails, CommissionEntryDetails],
    Field(discriminator="kind"),
]


class Affiliate(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    external_id: Optional[int] = None
    name: str
    email: str
    phone: Optional[str] = None
    status: AffiliateStatus
    upfront_rate: Decimal
    residual_rate: Decimal
    tier_level: TierLevel
    total_sales: Decimal = Decimal("0")
    total_commissions: Decimal = Decimal("0")
    onboarding_status: OnboardingStatus = "pending"
    notes: Optional[str] = None
    version: int = 1
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class RateTemplateIn(BaseModel):
    """Payload for RateTemplateCatalog.upsert. Rates are validated by the catalog."""

    id: Optional[UUID] = None
    name: str = Field(min_length=1)
    upfront_rate: Decimal
    residual_rate: Decimal
    tier_level: TierLevel
    is_default: bool = False
    is_active: bool = True
    details: Optional[RateTemplateDetails] = None


class RateTemplate(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    upfront_rate: Decimal
    residual_rate: Decimal
    tier_level: TierLevel
    is_default: bool
    is_active: bool
    details: Optional[Details] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class RateHistoryEntry(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: UUID
    affiliate_id: UUID
    previous_upfront_rate: Optional[Decimal] = None
    new_upfront_rate: Decimal
    previous_residual_rate: Optional[Decimal] = None
    new_residual_rate: Decimal
    previous_tier_level: Optional[TierLevel] = None
    new_tier_level: Optional[TierLevel] = None
    reason: str
    changed_by: Optional[str] = None
    effective_date: datetime
