"""Payment gateway service.

Routes payment operations to the appropriate gateway adapter.
No business logic here - only gateway coordination.
"""

from stowage.config import Settings, settings
from stowage.gateways.base import (
    GatewayType,
    PaymentGateway,
    PaymentResult,
    RefundResult,
)
from stowage.gateways.manual import ManualGateway
from stowage.gateways.stripe_gateway import StripeGateway


def _assert_live_keys_in_production(gateway: PaymentGateway, config: Settings) -> None:
    """Block live Stripe keys outside production.

    Raises:
        RuntimeError: If a live key is used in a non-production environment
    """
    if gateway.gateway_type != GatewayType.STRIPE or config.environment == "production":
        return
    if (config.stripe_secret_key or "").startswith("sk_live_"):
        raise RuntimeError(
            f"Cannot execute live stripe gateway operations in {config.environment} "
            "environment. Set ENVIRONMENT=production or use a test key."
        )


class GatewayService:
    """Service for managing payment gateway operations."""

    def __init__(
        self,
        config: Settings | None = None,
        gateways: dict[GatewayType, PaymentGateway] | None = None,
    ):
        self._settings = config or settings
        self._gateways: dict[GatewayType, PaymentGateway] = dict(gateways or {})
        self.default_type = GatewayType(self._settings.payment_gateway)

    def get_gateway(self, gateway_type: str | GatewayType | None = None) -> PaymentGateway:
        """Get or create gateway instance."""
        if gateway_type is None:
            gateway_type = self.default_type
        elif isinstance(gateway_type, str):
            try:
                gateway_type = GatewayType(gateway_type)
            except ValueError:
                gateway_type = GatewayType.MANUAL

        if gateway_type not in self._gateways:
            if gateway_type == GatewayType.STRIPE:
                self._gateways[gateway_type] = StripeGateway(self._settings)
            else:
                self._gateways[gateway_type] = ManualGateway()

        return self._gateways[gateway_type]

    def is_configured(self, gateway_type: str | GatewayType | None = None) -> bool:
        return self.get_gateway(gateway_type).is_configured

    async def create_payment(
        self,
        gateway_type: str | GatewayType | None,
        amount: int,
        currency: str,
        reference_id: str,
        description: str,
        metadata: dict | None = None,
    ) -> PaymentResult:
        """Create payment via specified gateway."""
        gateway = self.get_gateway(gateway_type)
        _assert_live_keys_in_production(gateway, self._settings)
        return await gateway.create_payment(
            amount=amount,
            currency=currency,
            reference_id=reference_id,
            description=description,
            metadata=metadata,
        )

    async def verify_payment(
        self,
        gateway_type: str | GatewayType | None,
        transaction_id: str,
    ) -> PaymentResult:
        """Verify payment status via gateway."""
        gateway = self.get_gateway(gateway_type)
        return await gateway.verify_payment(transaction_id)

    async def process_refund(
        self,
        gateway_type: str | GatewayType | None,
        transaction_id: str,
        amount: int,
        reason: str,
    ) -> RefundResult:
        """Process refund via gateway."""
        gateway = self.get_gateway(gateway_type)
        _assert_live_keys_in_production(gateway, self._settings)
        return await gateway.process_refund(
            transaction_id=transaction_id,
            amount=amount,
            reason=reason,
        )

    def verify_webhook(
        self,
        gateway_type: str | GatewayType | None,
        payload: bytes,
        signature: str,
    ) -> dict | None:
        """Verify webhook from gateway."""
        gateway = self.get_gateway(gateway_type)
        return gateway.verify_webhook(payload, signature)
