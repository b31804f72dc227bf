"""Main API router that includes all endpoint routers."""

from fastapi import APIRouter

from stowage.api.v1 import bookings, payments, pricing_rules, units, webhooks

api_router = APIRouter()

# Units and locations
api_router.include_router(units.router, tags=["Units"])

# Bookings
api_router.include_router(bookings.router, prefix="/bookings", tags=["Bookings"])

# Payments
api_router.include_router(payments.router, prefix="/payments", tags=["Payments"])

# Webhooks
api_router.include_router(webhooks.router, prefix="/webhooks", tags=["Webhooks"])

# Pricing rules
api_router.include_router(pricing_rules.router, prefix="/pricing-rules", tags=["Pricing"])
