"""Price modifiers, promotions and price breakdown models."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class PriceType(str, Enum):
    FIXED = "FIXED"
    PERCENTAGE_ADJUSTMENT = "PERCENTAGE_ADJUSTMENT"
    MULTIPLIER = "MULTIPLIER"


class PromotionType(str, Enum):
    PERCENTAGE = "PERCENTAGE"
    FIXED = "FIXED"


class PromotionFailure(str, Enum):
    """Why a promotion code was not honoured."""

    NOT_FOUND = "not_found"
    INACTIVE = "inactive"
    NOT_YET_VALID = "not_yet_valid"
    EXPIRED = "expired"
    USAGE_LIMIT_REACHED = "usage_limit_reached"
    BELOW_MINIMUM = "below_minimum"
    TIER_NOT_ELIGIBLE = "tier_not_eligible"
    SERVICE_NOT_ELIGIBLE = "service_not_eligible"


class ServiceVariation(BaseModel):
    """A priced add-on or modifier applied to a service's base price."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str = ""
    price_type: PriceType
    value: Decimal

    @model_validator(mode="after")
    def _check_multiplier(self) -> "ServiceVariation":
        if self.price_type == PriceType.MULTIPLIER and self.value < 0:
            raise ValueError(f"Multiplier must be >= 0, got {self.value}")
        return self


class TierDiscount(BaseModel):
    """Percentage reduction tied to a membership tier."""

    model_config = ConfigDict(frozen=True)

    tier_id: str
    discount_percent: Decimal = Field(ge=0, le=100)


class Promotion(BaseModel):
    """Promotion record as stored by the club."""

    code: str
    promotion_type: PromotionType
    value: Decimal = Field(ge=0)
    is_active: bool = True
    valid_from: Optional[datetime] = None
    valid_to: Optional[datetime] = None
    usage_limit: Optional[int] = Field(default=None, ge=0)
    usage_count: int = Field(default=0, ge=0)
    minimum_amount: Optional[Decimal] = Field(default=None, ge=0)
    maximum_discount: Optional[Decimal] = Field(default=None, ge=0)
    tier_ids: list[str] = Field(default_factory=list)
    service_ids: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_percentage(self) -> "Promotion":
        if self.promotion_type == PromotionType.PERCENTAGE and self.value > 100:
            raise ValueError(f"Percentage promotion must be <= 100, got {self.value}")
        return self


class PromotionContext(BaseModel):
    """Everything needed to decide whether a promotion applies."""

    promotion: Optional[Promotion] = None
    member_tier_id: Optional[str] = None
    service_id: Optional[str] = None
    amount: Decimal = Decimal("0")
    now: datetime


class PromotionValidation(BaseModel):
    """Outcome of validating a promotion code. Failure is advisory."""

    model_config = ConfigDict(frozen=True)

    valid: bool
    code: str
    reason: Optional[str] = None
    failure: Optional[PromotionFailure] = None
    promotion_type: Optional[PromotionType] = None
    value: Decimal = Decimal("0")
    maximum_discount: Optional[Decimal] = None


class PricingInput(BaseModel):
    """Inputs to a price calculation. Variations apply in list order."""

    base_price: Decimal = Field(ge=0)
    tier_discount: Optional[TierDiscount] = None
    variations: list[ServiceVariation] = Field(default_factory=list)
    promotion: Optional[PromotionValidation] = None


class PriceBreakdown(BaseModel):
    """Rounded price components; final_price is never negative."""

    model_config = ConfigDict(frozen=True)

    base_price: Decimal
    variation_adjustments: Decimal
    tier_discount_amount: Decimal
    promotion_discount_amount: Decimal
    final_price: Decimal


class RefundQuote(BaseModel):
    """Refund owed when a paid booking is cancelled."""

    refund_amount: Decimal
    refund_percent: int
    policy_applied: str
