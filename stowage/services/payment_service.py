"""Payment and refund service.

Owns the PAYMENT/REFUND transaction records and the gateway calls around a
booking. Webhook handlers are idempotent: a payment intent already COMPLETED
is a no-op and refund events are de-duplicated by gateway refund id.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from stowage.core.exceptions import (
    ExternalServiceError,
    NotFoundError,
    ServiceUnavailableError,
    ValidationError,
    WebhookVerificationError,
)
from stowage.database import async_session_maker, transactional_session
from stowage.domain.booking_state import REFUNDABLE_STATUSES, BookingStatus, assert_booking_status
from stowage.domain.payment_state import (
    TransactionStatus,
    TransactionType,
    assert_transaction_transition,
    can_transition,
)
from stowage.domain.refund_policy import RefundQuote, calculate_refund
from stowage.gateways.base import GatewayType, RefundResult, from_minor_units, to_minor_units
from stowage.models.booking import Booking
from stowage.models.payment import Transaction
from stowage.schemas.payment import PaymentIntentResponse
from stowage.services.booking_service import BookingService
from stowage.services.gateway_service import GatewayService
from stowage.utils.time import Clock, utc_now

logger = logging.getLogger(__name__)

REFUND_CANCELLATION_REASON = "Refund requested by customer"


@dataclass
class RefundOutcome:
    """Result of a refund request: the cancelled booking and the refund record."""

    booking: Booking
    quote: RefundQuote
    transaction: Transaction | None


class PaymentService:
    """Service for payment intents, gateway webhooks and refunds."""

    def __init__(
        self,
        bookings: BookingService,
        gateways: GatewayService,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self._bookings = bookings
        self._gateways = gateways
        self._session_factory = session_factory or async_session_maker
        self._clock = clock

    def _require_gateway(self) -> None:
        if not self._gateways.is_configured():
            raise ServiceUnavailableError("Payment service is not configured")

    @property
    def _gateway_name(self) -> str:
        return self._gateways.default_type.value

    async def _find_by_intent(self, db: AsyncSession, payment_intent_id: str) -> Transaction | None:
        result = await db.execute(
            select(Transaction).where(Transaction.gateway_payment_intent_id == payment_intent_id)
        )
        return result.scalar_one_or_none()

    # ------------------------------------------------------------------
    # Payments
    # ------------------------------------------------------------------

    async def create_payment_intent(self, booking_id: UUID, user_id: UUID) -> PaymentIntentResponse:
        """Start payment for a PENDING booking.

        A pending intent already created for the booking is reused.

        Args:
            booking_id: Booking to pay for
            user_id: Requesting user (must own the booking)

        Returns:
            PaymentIntentResponse: Client secret and intent id for the frontend
        """
        self._require_gateway()
        booking = await self._bookings.get_booking(booking_id, user_id)
        assert_booking_status(booking.status, frozenset({BookingStatus.PENDING}), "pay for")

        async with self._session_factory() as db:
            result = await db.execute(
                select(Transaction).where(
                    Transaction.booking_id == booking.id,
                    Transaction.type == TransactionType.PAYMENT.value,
                    Transaction.status == TransactionStatus.PENDING.value,
                )
            )
            existing = result.scalars().first()

        if existing and existing.gateway_payment_intent_id:
            verified = await self._gateways.verify_payment(
                existing.gateway, existing.gateway_payment_intent_id
            )
            logger.info(f"Reusing payment intent {existing.gateway_payment_intent_id} for booking {booking.id}")
            return PaymentIntentResponse(
                client_secret=verified.client_secret,
                payment_intent_id=existing.gateway_payment_intent_id,
                amount=existing.amount,
                currency=existing.currency,
            )

        payment = await self._gateways.create_payment(
            None,
            amount=to_minor_units(booking.total_price),
            currency=booking.currency,
            reference_id=str(booking.id),
            description=f"Storage booking {booking.booking_number}",
            metadata={
                "booking_id": str(booking.id),
                "booking_number": booking.booking_number,
                "user_id": str(user_id),
            },
        )
        if not payment.success or not payment.transaction_id:
            logger.error(f"Payment intent creation failed for booking {booking.id}: {payment.error_message}")
            raise ExternalServiceError("payment gateway", payment.error_message)

        async with transactional_session(self._session_factory) as db:
            db.add(
                Transaction(
                    booking_id=booking.id,
                    user_id=user_id,
                    amount=booking.total_price,
                    currency=booking.currency,
                    type=TransactionType.PAYMENT.value,
                    status=TransactionStatus.PENDING.value,
                    gateway=self._gateway_name,
                    gateway_payment_intent_id=payment.transaction_id,
                    gateway_response=payment.raw_response,
                )
            )

        logger.info(f"Created payment intent {payment.transaction_id} for booking {booking.id}")
        return PaymentIntentResponse(
            client_secret=payment.client_secret,
            payment_intent_id=payment.transaction_id,
            amount=booking.total_price,
            currency=booking.currency,
        )

    async def handle_webhook(self, payload: bytes, signature: str | None) -> str:
        """Verify and dispatch a gateway webhook.

        Returns:
            str: The event type that was processed
        """
        self._require_gateway()
        event = self._gateways.verify_webhook(None, payload, signature or "")
        if event is None:
            raise WebhookVerificationError()

        event_type = event.get("type", "")
        data = event.get("data", {}).get("object", {})

        if event_type == "payment_intent.succeeded":
            await self.handle_payment_succeeded(data["id"], charge_id=data.get("latest_charge"))
        elif event_type == "payment_intent.payment_failed":
            error = data.get("last_payment_error") or {}
            await self.handle_payment_failed(data["id"], error.get("message"))
        elif event_type == "charge.refunded":
            refunds = (data.get("refunds") or {}).get("data") or []
            await self.handle_charge_refunded(
                data["id"],
                refund_id=refunds[0]["id"] if refunds else None,
                amount_refunded=data.get("amount_refunded", 0),
                fully_refunded=bool(data.get("refunded")),
            )
        else:
            logger.info(f"Ignoring unhandled webhook event {event_type}")

        return event_type

    async def handle_payment_succeeded(
        self, payment_intent_id: str, charge_id: str | None = None
    ) -> Booking | None:
        """Complete the payment and confirm its booking in one transaction.

        Confirmation also moves an AVAILABLE unit to RESERVED. Replays of an
        already completed intent do nothing.
        """
        async with self._session_factory() as db:
            payment = await self._find_by_intent(db, payment_intent_id)

        if not payment:
            logger.warning(f"No transaction found for payment intent {payment_intent_id}")
            return None
        if payment.status == TransactionStatus.COMPLETED.value:
            logger.info(f"Payment intent {payment_intent_id} already completed")
            return None

        booking = await self._bookings.get_booking(payment.booking_id)
        async with self._bookings.unit_transaction(booking.unit_id) as db:
            payment = await self._find_by_intent(db, payment_intent_id)
            if not can_transition(payment.status, TransactionStatus.COMPLETED):
                logger.info(f"Payment intent {payment_intent_id} is {payment.status}, skipping")
                return None

            payment.status = TransactionStatus.COMPLETED.value
            payment.gateway_charge_id = charge_id
            payment.completed_at = self._clock()

            booking = await db.get(Booking, payment.booking_id)
            if booking.status == BookingStatus.PENDING.value:
                booking = await self._bookings.apply_confirmation(db, booking.id, reserve_unit=True)
            else:
                logger.warning(
                    f"Payment {payment.id} completed for booking {booking.id} in status {booking.status}"
                )

        logger.info(f"Payment intent {payment_intent_id} completed for booking {booking.id}")
        return booking

    async def settle_manual_payment(self, payment_intent_id: str) -> Booking:
        """Record a front-desk payment as received and confirm its booking.

        Settling an already settled reference returns the booking unchanged.

        Args:
            payment_intent_id: Settlement reference issued by the manual gateway

        Returns:
            Booking: The paid booking

        Raises:
            NotFoundError: Unknown settlement reference
            ValidationError: The payment was not taken through the manual gateway,
                or it can no longer be completed
        """
        async with self._session_factory() as db:
            payment = await self._find_by_intent(db, payment_intent_id)

        if not payment or payment.type != TransactionType.PAYMENT.value:
            raise NotFoundError("Payment transaction", payment_intent_id)
        if payment.gateway != GatewayType.MANUAL.value:
            raise ValidationError("Only manual payments can be settled by staff")
        if payment.status != TransactionStatus.COMPLETED.value:
            assert_transaction_transition(payment.status, TransactionStatus.COMPLETED)

        booking = await self.handle_payment_succeeded(payment_intent_id)
        if booking is None:
            booking = await self._bookings.get_booking(payment.booking_id)
        return booking

    async def handle_payment_failed(self, payment_intent_id: str, reason: str | None = None) -> None:
        async with transactional_session(self._session_factory) as db:
            payment = await self._find_by_intent(db, payment_intent_id)
            if not payment:
                logger.warning(f"No transaction found for payment intent {payment_intent_id}")
                return
            if not can_transition(payment.status, TransactionStatus.FAILED):
                return

            payment.status = TransactionStatus.FAILED.value
            payment.failure_reason = reason

        logger.info(f"Payment intent {payment_intent_id} failed: {reason}")

    async def handle_charge_refunded(
        self,
        charge_id: str,
        refund_id: str | None,
        amount_refunded: int,
        fully_refunded: bool,
    ) -> None:
        """Record a refund reported by the gateway, once per refund id."""
        async with transactional_session(self._session_factory) as db:
            result = await db.execute(
                select(Transaction).where(
                    Transaction.gateway_charge_id == charge_id,
                    Transaction.type == TransactionType.PAYMENT.value,
                )
            )
            payment = result.scalar_one_or_none()
            if not payment:
                logger.warning(f"No payment found for refunded charge {charge_id}")
                return

            existing = None
            if refund_id:
                result = await db.execute(
                    select(Transaction).where(Transaction.gateway_refund_id == refund_id)
                )
                existing = result.scalar_one_or_none()
            if existing is None:
                # A refund we requested whose gateway call has not returned yet
                result = await db.execute(
                    select(Transaction)
                    .where(
                        Transaction.original_transaction_id == payment.id,
                        Transaction.type == TransactionType.REFUND.value,
                        Transaction.status == TransactionStatus.PENDING.value,
                        Transaction.gateway_refund_id.is_(None),
                    )
                    .order_by(Transaction.created_at)
                )
                existing = result.scalars().first()

            if existing:
                if existing.status == TransactionStatus.PENDING.value:
                    existing.status = TransactionStatus.COMPLETED.value
                    existing.gateway_refund_id = existing.gateway_refund_id or refund_id
                    existing.completed_at = self._clock()
                    logger.info(f"Refund {existing.id} completed by gateway notification {refund_id}")
                else:
                    logger.info(f"Refund {refund_id} already recorded")
            else:
                db.add(
                    Transaction(
                        booking_id=payment.booking_id,
                        user_id=payment.user_id,
                        amount=from_minor_units(amount_refunded),
                        currency=payment.currency,
                        type=TransactionType.REFUND.value,
                        status=TransactionStatus.COMPLETED.value,
                        gateway=payment.gateway,
                        gateway_refund_id=refund_id,
                        original_transaction_id=payment.id,
                        completed_at=self._clock(),
                    )
                )

            if fully_refunded and can_transition(payment.status, TransactionStatus.REFUNDED):
                payment.status = TransactionStatus.REFUNDED.value

    # ------------------------------------------------------------------
    # Refunds
    # ------------------------------------------------------------------

    async def _complete_refund(
        self, db: AsyncSession, refund: Transaction, gateway_result: RefundResult
    ) -> Transaction:
        """Mark a requested refund COMPLETED unless a gateway notification got there first."""
        if refund.status == TransactionStatus.COMPLETED.value:
            logger.info(f"Refund {refund.id} already completed by gateway notification")
            return refund

        if gateway_result.refund_id:
            result = await db.execute(
                select(Transaction).where(
                    Transaction.gateway_refund_id == gateway_result.refund_id,
                    Transaction.id != refund.id,
                )
            )
            recorded = result.scalar_one_or_none()
            if recorded:
                logger.warning(
                    f"Refund {gateway_result.refund_id} already recorded as {recorded.id}, dropping {refund.id}"
                )
                await db.delete(refund)
                return recorded

        assert_transaction_transition(refund.status, TransactionStatus.COMPLETED)
        refund.status = TransactionStatus.COMPLETED.value
        refund.gateway_refund_id = gateway_result.refund_id
        refund.gateway_response = gateway_result.raw_response
        refund.completed_at = self._clock()
        return refund

    async def calculate_refund(
        self, booking_id: UUID, user_id: UUID, amount: Decimal | None = None
    ) -> RefundQuote:
        """Quote the refund the policy grants right now, without side effects."""
        booking = await self._bookings.get_booking(booking_id, user_id)
        assert_booking_status(booking.status, REFUNDABLE_STATUSES, "refund")
        return calculate_refund(booking.start_time, booking.total_price, self._clock(), amount)

    async def request_refund(
        self, booking_id: UUID, user_id: UUID, amount: Decimal | None = None
    ) -> RefundOutcome:
        """Cancel a paid booking and refund it according to the policy.

        The cancellation and a PENDING refund record commit together before
        the gateway is called. A gateway failure leaves the booking cancelled
        and the refund record FAILED for reprocessing.

        Args:
            booking_id: Booking to refund
            user_id: Requesting user (must own the booking)
            amount: Amount requested; defaults to the full price

        Returns:
            RefundOutcome: Cancelled booking, applied quote and refund record

        Raises:
            NotFoundError: Booking has no completed payment
            ExternalServiceError: Gateway rejected the refund
        """
        self._require_gateway()
        booking = await self._bookings.get_booking(booking_id, user_id)
        assert_booking_status(booking.status, REFUNDABLE_STATUSES, "refund")

        async with self._bookings.unit_transaction(booking.unit_id) as db:
            result = await db.execute(
                select(Transaction).where(
                    Transaction.booking_id == booking_id,
                    Transaction.type == TransactionType.PAYMENT.value,
                    Transaction.status == TransactionStatus.COMPLETED.value,
                )
            )
            payment = result.scalars().first()
            if not payment or not payment.gateway_payment_intent_id:
                raise NotFoundError("Payment transaction")

            booking = await self._bookings.apply_cancellation(db, booking_id, REFUND_CANCELLATION_REASON)
            quote = calculate_refund(booking.start_time, booking.total_price, self._clock(), amount)

            refund = None
            if quote.refund_amount > 0:
                refund = Transaction(
                    booking_id=booking.id,
                    user_id=booking.user_id,
                    amount=quote.refund_amount,
                    currency=payment.currency,
                    type=TransactionType.REFUND.value,
                    status=TransactionStatus.PENDING.value,
                    gateway=payment.gateway,
                    original_transaction_id=payment.id,
                )
                db.add(refund)
                await db.flush()

        if refund is None:
            logger.info(f"Booking {booking.booking_number} cancelled with no refund: {quote.reason}")
            return RefundOutcome(booking=booking, quote=quote, transaction=None)

        gateway_result = await self._gateways.process_refund(
            payment.gateway,
            transaction_id=payment.gateway_payment_intent_id,
            amount=to_minor_units(quote.refund_amount),
            reason=quote.reason,
        )

        async with transactional_session(self._session_factory) as db:
            refund = await db.get(Transaction, refund.id, with_for_update=True)
            if gateway_result.success:
                refund = await self._complete_refund(db, refund, gateway_result)
            elif refund.status == TransactionStatus.PENDING.value:
                refund.status = TransactionStatus.FAILED.value
                refund.failure_reason = gateway_result.error_message

        if not gateway_result.success:
            logger.error(
                f"Refund {refund.id} for booking {booking.id} failed at gateway: {gateway_result.error_message}"
            )
            raise ExternalServiceError("payment gateway", gateway_result.error_message)

        logger.info(
            f"Refunded {quote.refund_amount} ({quote.percentage}%) for booking {booking.booking_number}"
        )
        return RefundOutcome(booking=booking, quote=quote, transaction=refund)
