"""Stripe payment gateway adapter."""

import json
import logging

from stowage.config import Settings, settings
from stowage.gateways.base import (
    GatewayType,
    PaymentGateway,
    PaymentResult,
    RefundResult,
)

logger = logging.getLogger(__name__)


class StripeGateway(PaymentGateway):
    """Stripe payment gateway implementation."""

    def __init__(self, config: Settings | None = None):
        config = config or settings
        self.secret_key = config.stripe_secret_key
        self.webhook_secret = config.stripe_webhook_secret

    @property
    def gateway_type(self) -> GatewayType:
        return GatewayType.STRIPE

    @property
    def is_configured(self) -> bool:
        return bool(self.secret_key)

    async def create_payment(
        self,
        amount: int,
        currency: str,
        reference_id: str,
        description: str,
        metadata: dict | None = None,
    ) -> PaymentResult:
        """Create Stripe PaymentIntent."""
        if not self.secret_key:
            return PaymentResult(
                success=False,
                error_message="Stripe not configured",
            )

        import stripe

        try:
            stripe.api_key = self.secret_key

            intent = stripe.PaymentIntent.create(
                amount=amount,
                currency=currency.lower(),
                description=description,
                metadata={"reference_id": reference_id, **(metadata or {})},
                automatic_payment_methods={"enabled": True},
            )

            return PaymentResult(
                success=True,
                transaction_id=intent.id,
                client_secret=intent.client_secret,
                raw_response={"id": intent.id, "status": intent.status},
            )

        except stripe.StripeError as e:
            logger.error(f"Stripe PaymentIntent creation failed for {reference_id}: {e}")
            return PaymentResult(
                success=False,
                error_message=str(e),
            )

    async def verify_payment(
        self,
        transaction_id: str,
    ) -> PaymentResult:
        """Verify Stripe payment status."""
        if not self.secret_key:
            return PaymentResult(
                success=False,
                error_message="Stripe not configured",
            )

        import stripe

        try:
            stripe.api_key = self.secret_key

            intent = stripe.PaymentIntent.retrieve(transaction_id)

            return PaymentResult(
                success=intent.status == "succeeded",
                transaction_id=transaction_id,
                client_secret=intent.client_secret,
                raw_response={"status": intent.status},
            )

        except stripe.StripeError as e:
            logger.error(f"Stripe PaymentIntent lookup failed for {transaction_id}: {e}")
            return PaymentResult(
                success=False,
                error_message=str(e),
            )

    async def process_refund(
        self,
        transaction_id: str,
        amount: int,
        reason: str,
    ) -> RefundResult:
        """Process Stripe refund."""
        if not self.secret_key:
            return RefundResult(
                success=False,
                error_message="Stripe not configured",
            )

        import stripe

        try:
            stripe.api_key = self.secret_key

            refund = stripe.Refund.create(
                payment_intent=transaction_id,
                amount=amount,
                reason="requested_by_customer",
                metadata={"reason": reason[:500]},
            )

            return RefundResult(
                success=refund.status in ("succeeded", "pending"),
                refund_id=refund.id,
                error_message=None if refund.status in ("succeeded", "pending") else f"Refund {refund.status}",
                raw_response={"status": refund.status, "id": refund.id},
            )

        except stripe.StripeError as e:
            logger.error(f"Stripe refund failed for {transaction_id}: {e}")
            return RefundResult(
                success=False,
                error_message=str(e),
            )

    def verify_webhook(
        self,
        payload: bytes,
        signature: str,
    ) -> dict | None:
        """Verify Stripe webhook signature."""
        if not self.webhook_secret:
            return None

        import stripe

        try:
            stripe.Webhook.construct_event(
                payload,
                signature,
                self.webhook_secret,
            )
        except (ValueError, stripe.SignatureVerificationError) as e:
            logger.warning(f"Rejected Stripe webhook: {e}")
            return None

        return json.loads(payload)
