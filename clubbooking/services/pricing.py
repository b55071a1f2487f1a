"""
Deterministic booking price calculation.

Order of application:
1. Variations, in the order given (FIXED adds, PERCENTAGE_ADJUSTMENT adds a
   share of the base price, MULTIPLIER scales the running total)
2. Member tier discount on the adjusted total
3. Promotion discount on what is left, if the promotion validated
4. One half-up rounding to the minor currency unit, then a floor at zero

Reordering variations changes the result, so they are always a list.
"""

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from clubbooking.config import PricingConfig, settings
from clubbooking.logging_context import get_request_logger
from clubbooking.schemas.pricing_schema import (
    PriceBreakdown,
    PriceType,
    PricingInput,
    PromotionContext,
    PromotionFailure,
    PromotionType,
    PromotionValidation,
    RefundQuote,
    TierDiscount,
)
from clubbooking.timeutils import as_utc

logger = get_request_logger(__name__)

HUNDRED = Decimal("100")
ZERO = Decimal("0")


def resolve_tier_discount(
    tier_id: Optional[str], discounts: list[TierDiscount]
) -> Optional[TierDiscount]:
    """Discount rule for ``tier_id``, or None when the tier has none."""
    if not tier_id:
        return None
    return next((d for d in discounts if d.tier_id == tier_id), None)


class PricingService:
    """Side-effect free price, promotion and refund calculations."""

    def __init__(self, config: Optional[PricingConfig] = None) -> None:
        self._config = config or settings.pricing
        self._quantum = Decimal(1).scaleb(-self._config.minor_unit_places)

    def round_money(self, amount: Decimal) -> Decimal:
        return amount.quantize(self._quantum, rounding=ROUND_HALF_UP)

    # ------------------------------------------------------------------ #
    # Price calculation
    # ------------------------------------------------------------------ #

    def calculate_price(self, pricing: PricingInput) -> PriceBreakdown:
        base = pricing.base_price
        running = base
        for variation in pricing.variations:
            if variation.price_type == PriceType.FIXED:
                running += variation.value
            elif variation.price_type == PriceType.PERCENTAGE_ADJUSTMENT:
                running += base * variation.value / HUNDRED
            else:
                running *= variation.value
        adjustments = running - base

        tier_amount = ZERO
        if pricing.tier_discount is not None:
            tier_amount = max(running, ZERO) * pricing.tier_discount.discount_percent / HUNDRED

        promotion_amount = self._promotion_amount(pricing.promotion, running - tier_amount)

        base_r = self.round_money(base)
        adjustments_r = self.round_money(adjustments)
        tier_r = self.round_money(tier_amount)
        promotion_r = self.round_money(promotion_amount)
        final = max(base_r + adjustments_r - tier_r - promotion_r, ZERO)

        breakdown = PriceBreakdown(
            base_price=base_r,
            variation_adjustments=adjustments_r,
            tier_discount_amount=tier_r,
            promotion_discount_amount=promotion_r,
            final_price=self.round_money(final),
        )
        logger.debug("Priced %s -> %s", base_r, breakdown.final_price)
        return breakdown

    def _promotion_amount(
        self, promotion: Optional[PromotionValidation], subtotal: Decimal
    ) -> Decimal:
        if promotion is None or not promotion.valid:
            return ZERO

        if promotion.promotion_type == PromotionType.PERCENTAGE:
            amount = max(subtotal, ZERO) * promotion.value / HUNDRED
        else:
            amount = promotion.value

        if promotion.maximum_discount is not None:
            amount = min(amount, promotion.maximum_discount)
        return amount

    # ------------------------------------------------------------------ #
    # Promotions
    # ------------------------------------------------------------------ #

    def validate_promotion(self, code: str, context: PromotionContext) -> PromotionValidation:
        """
        Check a promotion code against the record the caller looked up.

        Checks run in a fixed order and the first failure is reported.
        An invalid promotion is advisory: pricing proceeds without it.
        """
        normalized = code.strip().upper()
        promotion = context.promotion

        def fail(failure: PromotionFailure, reason: str) -> PromotionValidation:
            logger.info("Promotion %s rejected: %s", normalized, reason)
            return PromotionValidation(
                valid=False, code=normalized, reason=reason, failure=failure
            )

        if promotion is None or promotion.code.strip().upper() != normalized:
            return fail(PromotionFailure.NOT_FOUND, "Promotion not found")
        if not promotion.is_active:
            return fail(PromotionFailure.INACTIVE, "Promotion is not active")
        now = as_utc(context.now)
        if promotion.valid_from is not None and as_utc(promotion.valid_from) > now:
            return fail(PromotionFailure.NOT_YET_VALID, "Promotion is not yet valid")
        if promotion.valid_to is not None and as_utc(promotion.valid_to) < now:
            return fail(PromotionFailure.EXPIRED, "Promotion has expired")
        if promotion.usage_limit is not None and promotion.usage_count >= promotion.usage_limit:
            return fail(PromotionFailure.USAGE_LIMIT_REACHED, "Promotion usage limit reached")
        if promotion.minimum_amount is not None and context.amount < promotion.minimum_amount:
            return fail(
                PromotionFailure.BELOW_MINIMUM,
                f"Minimum order amount is {promotion.minimum_amount}",
            )
        if promotion.tier_ids and context.member_tier_id not in promotion.tier_ids:
            return fail(
                PromotionFailure.TIER_NOT_ELIGIBLE,
                "Promotion not valid for this membership tier",
            )
        if promotion.service_ids and context.service_id not in promotion.service_ids:
            return fail(
                PromotionFailure.SERVICE_NOT_ELIGIBLE,
                "Promotion not valid for this service",
            )

        return PromotionValidation(
            valid=True,
            code=normalized,
            promotion_type=promotion.promotion_type,
            value=promotion.value,
            maximum_discount=promotion.maximum_discount,
        )

    # ------------------------------------------------------------------ #
    # Refunds and display
    # ------------------------------------------------------------------ #

    def calculate_refund(
        self,
        amount: Decimal,
        starts_at: datetime,
        now: datetime,
        waive_fee: bool = False,
    ) -> RefundQuote:
        """Refund owed for cancelling a booking that starts at ``starts_at``."""
        if waive_fee:
            return RefundQuote(
                refund_amount=self.round_money(amount),
                refund_percent=100,
                policy_applied="Fee waived by staff",
            )

        cfg = self._config
        hours_until = (starts_at - now).total_seconds() / 3600
        if hours_until >= cfg.full_refund_hours:
            percent = 100
            policy = f"Full refund: cancelled at least {cfg.full_refund_hours:g}h before start"
        elif hours_until >= cfg.partial_refund_hours:
            percent = cfg.partial_refund_percent
            policy = (
                f"Partial refund: cancelled at least {cfg.partial_refund_hours:g}h before start"
            )
        else:
            percent = 0
            policy = f"No refund: cancelled less than {cfg.partial_refund_hours:g}h before start"

        return RefundQuote(
            refund_amount=self.round_money(amount * percent / HUNDRED),
            refund_percent=percent,
            policy_applied=policy,
        )

    def format_currency(self, amount: Decimal) -> str:
        """E.g. ``Decimal("1080")`` -> ``"$1,080.00"``."""
        places = self._config.minor_unit_places
        rounded = self.round_money(amount)
        sign = "-" if rounded < 0 else ""
        return f"{sign}{self._config.currency_symbol}{abs(rounded):,.{places}f}"


# Module-level instance
pricing_service = PricingService()
