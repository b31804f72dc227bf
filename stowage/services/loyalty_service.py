"""Loyalty points service."""

import logging
import math
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from stowage.core.exceptions import NotFoundError
from stowage.models.booking import Booking
from stowage.models.user import LoyaltyTransaction, User

logger = logging.getLogger(__name__)


class LoyaltyService:
    """Awards points into the user balance and the loyalty ledger."""

    async def award_booking_points(self, db: AsyncSession, user_id: UUID, booking: Booking) -> int:
        """Credit floor(total_price) points for a completed booking.

        Runs inside the caller's transaction so the balance, the ledger row
        and the booking transition commit together.

        Args:
            db: Session of the enclosing transaction
            user_id: User to credit
            booking: Completed booking

        Returns:
            int: Points awarded (0 when the total is under one unit of currency)
        """
        points = math.floor(booking.total_price)
        if points <= 0:
            return 0

        result = await db.execute(
            update(User)
            .where(User.id == user_id)
            .values(loyalty_points=User.loyalty_points + points)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise NotFoundError("User", str(user_id))

        db.add(
            LoyaltyTransaction(
                user_id=user_id,
                points=points,
                type="EARNED",
                source="BOOKING",
                reference_id=booking.id,
                description=f"Points earned for booking {booking.booking_number}",
            )
        )

        logger.info(f"Awarded {points} loyalty points to user {user_id} for booking {booking.id}")
        return points
