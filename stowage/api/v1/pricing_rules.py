"""Pricing rule administration endpoints."""

from fastapi import APIRouter, status

from stowage.api.deps import CurrentUserId, Pricing
from stowage.schemas.pricing import PricingRuleCreate, PricingRuleResponse

router = APIRouter()


@router.post("", response_model=PricingRuleResponse, status_code=status.HTTP_201_CREATED)
async def create_pricing_rule(
    request: PricingRuleCreate,
    user_id: CurrentUserId,
    pricing: Pricing,
) -> PricingRuleResponse:
    """Create a pricing rule. Unknown condition keys are rejected."""
    rule = await pricing.create_rule(request)
    return PricingRuleResponse.model_validate(rule)
