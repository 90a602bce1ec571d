"""Bulk rate patch variants and batch results."""
from decimal import Decimal
from typing import Annotated, Dict, List, Literal, Union
from uuid import UUID

from pydantic import BaseModel, Field


class RatesPatch(BaseModel):
    kind: Literal["rates"] = "rates"
    upfront_rate: Decimal
    residual_rate: Decimal
    reason: str = Field(min_length=1)


class TierPatch(BaseModel):
    kind: Literal["tier"] = "tier"
    tier: str = Field(min_length=1)
    reason: str = Field(min_length=1)


class TemplatePatch(BaseModel):
    kind: Literal["template"] = "template"
    template_id: UUID
    reason: str = Field(min_length=1)


RatePatch = Annotated[
    Union[RatesPatch, TierPatch, TemplatePatch],
    Field(discriminator="kind"),
]


class BulkFailure(BaseModel):
    affiliate_id: UUID
    error: str
    error_type: str


class BulkRateResult(BaseModel):
    succeeded: List[UUID] = Field(default_factory=list)
    failed: List[BulkFailure] = Field(default_factory=list)
    warnings: Dict[UUID, List[str]] = Field(default_factory=dict)

    @property
    def partial(self) -> bool:
        """True when some ids succeeded and some failed."""
        return bool(self.succeeded) and bool(self.failed)


__all__ = [
    "RatesPatch",
    "TierPatch",
    "TemplatePatch",
    "RatePatch",
    "BulkFailure",
    "BulkRateResult",
]
