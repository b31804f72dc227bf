"""Webhook endpoints for payment gateways."""

from fastapi import APIRouter, Header, Request, status

from stowage.api.deps import Payments

router = APIRouter()


@router.post("/stripe", status_code=status.HTTP_200_OK)
async def stripe_webhook(
    request: Request,
    payments: Payments,
    stripe_signature: str | None = Header(None, alias="Stripe-Signature"),
) -> dict:
    """Handle Stripe webhook events."""
    # Raw body is required for signature verification
    payload = await request.body()
    event_type = await payments.handle_webhook(payload, stripe_signature)
    return {"received": True, "type": event_type}
