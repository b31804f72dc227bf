"""Front-desk settlement adapter.

Nothing is charged through this adapter. Creating a payment issues a
settlement reference the customer quotes at the facility office; staff then
mark the reference as received through the settlement endpoint, which
confirms the booking. Refunds are recorded as payouts for staff to hand over.
"""

import logging
import secrets

from stowage.gateways.base import (
    GatewayType,
    PaymentGateway,
    PaymentResult,
    RefundResult,
)

logger = logging.getLogger(__name__)

REFERENCE_PREFIX = "manual_"


class ManualGateway(PaymentGateway):
    """Settlement references for payments taken in person."""

    @property
    def gateway_type(self) -> GatewayType:
        return GatewayType.MANUAL

    async def create_payment(
        self,
        amount: int,
        currency: str,
        reference_id: str,
        description: str,
        metadata: dict | None = None,
    ) -> PaymentResult:
        reference = f"{REFERENCE_PREFIX}{secrets.token_hex(8)}"
        logger.info(f"Issued settlement reference {reference} for {reference_id}")
        return PaymentResult(
            success=True,
            transaction_id=reference,
            raw_response={
                "reference": reference,
                "amount": amount,
                "currency": currency,
                "booking": reference_id,
                "status": "awaiting_settlement",
            },
        )

    async def verify_payment(self, transaction_id: str) -> PaymentResult:
        """Settlement is recorded by staff, never by polling the adapter."""
        return PaymentResult(
            success=False,
            transaction_id=transaction_id,
            error_message="Awaiting settlement at the front desk",
        )

    async def process_refund(
        self,
        transaction_id: str,
        amount: int,
        reason: str,
    ) -> RefundResult:
        payout = f"payout_{secrets.token_hex(8)}"
        logger.info(f"Recorded payout {payout} of {amount} against {transaction_id}")
        return RefundResult(
            success=True,
            refund_id=payout,
            raw_response={
                "payout": payout,
                "reference": transaction_id,
                "amount": amount,
                "reason": reason,
                "status": "payout_pending",
            },
        )

    def verify_webhook(self, payload: bytes, signature: str) -> dict | None:
        logger.warning("Webhook delivered to the manual gateway, which has none")
        return None
