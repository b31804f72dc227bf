"""Unit availability and pricing endpoints."""

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Query

from stowage.api.deps import Availability, Pricing
from stowage.models.unit import UnitSize
from stowage.schemas.pricing import EstimatedPrices, PriceCalculation
from stowage.schemas.unit import AvailabilityResult, UnitResponse

router = APIRouter()


@router.get("/units/{unit_id}/availability", response_model=AvailabilityResult)
async def check_unit_availability(
    unit_id: UUID,
    availability: Availability,
    start_time: datetime = Query(...),
    end_time: datetime = Query(...),
) -> AvailabilityResult:
    """Check whether a unit is free for the requested interval."""
    return await availability.check_availability(unit_id, start_time, end_time)


@router.get("/units/{unit_id}/price", response_model=PriceCalculation)
async def get_unit_price(
    unit_id: UUID,
    pricing: Pricing,
    start_time: datetime = Query(...),
    end_time: datetime = Query(...),
) -> PriceCalculation:
    """Quote the full price for renting a unit over an interval."""
    return await pricing.calculate_price(unit_id, start_time, end_time)


@router.get("/units/{unit_id}/estimates", response_model=EstimatedPrices)
async def get_unit_estimates(unit_id: UUID, pricing: Pricing) -> EstimatedPrices:
    """Headline hourly, daily, weekly and monthly prices."""
    return await pricing.get_estimated_prices(unit_id)


@router.get("/locations/{location_id}/available-units", response_model=list[UnitResponse])
async def list_available_units(
    location_id: UUID,
    availability: Availability,
    start_time: datetime = Query(...),
    end_time: datetime = Query(...),
    size: UnitSize | None = Query(None),
) -> list[UnitResponse]:
    """List units at a location that are free for the interval."""
    units = await availability.get_available_units(location_id, start_time, end_time, size)
    return [UnitResponse.model_validate(unit) for unit in units]
