"""Commission entry, dashboard statistics and export schemas."""
from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from .affiliate import CommissionEntryDetails, TierLevel

CommissionType = Literal["upfront", "residual"]
CommissionStatus = Literal["pending", "approved", "paid", "cancelled"]

EXPORT_HEADER = (
    "Date",
    "Affiliate Name",
    "Affiliate ID",
    "Customer Name",
    "Customer Email",
    "Product Name",
    "Commission Type",
    "Order Total",
    "Commission Amount",
    "Commission Rate",
    "Status",
    "Payment Date",
)


class AffiliateRef(BaseModel):
    """The slice of an affiliate embedded in a commission entry."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    external_id: Optional[int] = None
    name: str
    status: str = "active"
    upfront_rate: Decimal = Decimal("0")
    tier_level: TierLevel = "standard"


class CommissionEntry(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: Optional[UUID] = None
    affiliate_id: UUID
    referral_id: Optional[int] = None
    commission_type: CommissionType
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    product_name: Optional[str] = None
    product_id: Optional[int] = None
    order_total: Decimal
    commission_amount: Decimal
    commission_rate: Decimal
    status: CommissionStatus
    payment_date: Optional[datetime] = None
    notes: Optional[str] = None
    details: Optional[CommissionEntryDetails] = None
    created_at: Optional[datetime] = None
    affiliate: Optional[AffiliateRef] = None


class CommissionStats(BaseModel):
    total_commissions: Decimal
    paid_commissions: Decimal
    pending_commissions: Decimal
    approved_commissions: Decimal
    total_revenue: Decimal
    active_affiliates: int
    avg_commission_rate: Decimal
    monthly_growth: Decimal


class AffiliatePerformance(BaseModel):
    affiliate_id: UUID
    total_sales: Decimal
    total_commissions: Decimal
    entry_count: int


class ExportFilters(BaseModel):
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    affiliate_id: Optional[UUID] = None
    status: Optional[CommissionStatus] = None
