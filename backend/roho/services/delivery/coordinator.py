"""
Booking coordinator

Resolves concurrent booking attempts so at most one rider wins each order,
then walks the booking and its payment hold through pickup and delivery.

Expected failures come back as BookingOutcome values, never as exceptions.
Storage errors propagate after the order lock has been released.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional

from roho.core.firebase import utcnow
from roho.schemas.delivery import Booking, PaymentHold, QueueEntry
from roho.services.delivery.errors import InvalidTransition, RecordNotFound
from roho.services.delivery.locks import OrderLocked, OrderLockTable
from roho.services.delivery.states import (
    ACTIVE_BOOKING_STATUSES,
    BOOKING_BOOKED,
    BOOKING_DELIVERED,
    BOOKING_IN_TRANSIT,
    QUEUE_PENDING,
)
from roho.services.delivery.store import DeliveryStore, new_booking_id

logger = logging.getLogger(__name__)

# Outcome reasons
ORDER_ALREADY_BEING_BOOKED = "order_already_being_booked"
ORDER_NOT_AVAILABLE = "order_not_available"
BOOKING_NOT_FOUND = "booking_not_found"
NOT_BOOKING_OWNER = "not_booking_owner"
INVALID_STATE = "invalid_state"

BOOKING_NOT_FOUND_MESSAGE = "Booking not found or not yours."

REASON_MESSAGES = {
    ORDER_ALREADY_BEING_BOOKED: "Order already being booked",
    ORDER_NOT_AVAILABLE: "Order not found or already assigned",
    # Ownership mismatches read exactly like a missing booking
    BOOKING_NOT_FOUND: BOOKING_NOT_FOUND_MESSAGE,
    NOT_BOOKING_OWNER: BOOKING_NOT_FOUND_MESSAGE,
    INVALID_STATE: "Booking is not in the right state for that",
}


@dataclass
class BookingOutcome:
    """Result of a coordinator operation"""
    ok: bool
    reason: Optional[str] = None
    message: Optional[str] = None
    booking: Optional[Booking] = None
    payment: Optional[PaymentHold] = None
    already_done: bool = False

    @classmethod
    def failed(cls, reason: str, message: Optional[str] = None) -> "BookingOutcome":
        return cls(ok=False, reason=reason, message=message or REASON_MESSAGES[reason])

    @classmethod
    def succeeded(
        cls,
        booking: Booking,
        payment: Optional[PaymentHold] = None,
        already_done: bool = False,
    ) -> "BookingOutcome":
        return cls(ok=True, booking=booking, payment=payment, already_done=already_done)


class BookingCoordinator:
    """
    Core booking workflow.

    attempt_booking holds the per-order lock around the availability check and
    the claim transaction. Pickup and delivery rely on the store's
    transactions, which refuse any transition that is not a single step forward.
    """

    def __init__(
        self,
        store: DeliveryStore,
        locks: OrderLockTable,
        rate_bp: int,
        clock: Callable[[], datetime] = utcnow,
        id_factory: Callable[[], str] = new_booking_id,
    ) -> None:
        self.store = store
        self.locks = locks
        self.rate_bp = rate_bp
        self._clock = clock
        self._new_booking_id = id_factory

    # ==================== Booking ====================

    async def attempt_booking(self, rider_id: str, order_id: str) -> BookingOutcome:
        """
        Claim a pending order for a rider.

        Exactly one of several concurrent attempts on the same order succeeds;
        the rest get order_already_being_booked or order_not_available.
        """
        try:
            with self.locks.hold(order_id, owner=rider_id):
                entry = await self.store.get_queue_entry(order_id)
                if entry is None or entry.status != QUEUE_PENDING:
                    logger.info(f"Order {order_id} not available for booking")
                    return BookingOutcome.failed(ORDER_NOT_AVAILABLE)

                try:
                    claim = await self.store.claim_order(
                        order_id,
                        rider_id,
                        self._new_booking_id(),
                        self.rate_bp,
                        self._clock(),
                    )
                except (RecordNotFound, InvalidTransition) as e:
                    logger.info(f"Order {order_id} claim refused: {e}")
                    return BookingOutcome.failed(ORDER_NOT_AVAILABLE)
        except OrderLocked:
            logger.info(f"Order {order_id} already being booked, attempt rejected")
            return BookingOutcome.failed(ORDER_ALREADY_BEING_BOOKED)

        logger.info(
            f"✅ Order {order_id} booked as {claim.booking.booking_id} "
            f"(held {claim.payment.amount_minor} minor units)"
        )
        return BookingOutcome.succeeded(claim.booking, claim.payment)

    # ==================== Pickup & delivery ====================

    async def _owned_booking(self, rider_id: str, booking_id: str):
        """Return (booking, None) or (None, failure outcome)"""
        booking = await self.store.get_booking(booking_id)
        if booking is None:
            return None, BookingOutcome.failed(BOOKING_NOT_FOUND)
        if booking.rider_id != rider_id:
            logger.warning(f"Booking {booking_id} requested by a rider who does not own it")
            return None, BookingOutcome.failed(NOT_BOOKING_OWNER)
        return booking, None

    async def confirm_pickup(self, rider_id: str, booking_id: str) -> BookingOutcome:
        booking, failure = await self._owned_booking(rider_id, booking_id)
        if failure:
            return failure

        if booking.status == BOOKING_IN_TRANSIT:
            return BookingOutcome.succeeded(booking, already_done=True)
        if booking.status != BOOKING_BOOKED:
            return BookingOutcome.failed(INVALID_STATE, "Booking already delivered")

        try:
            updated = await self.store.mark_picked_up(booking_id, self._clock())
        except InvalidTransition:
            # Lost a race with another pickup of the same booking
            current = await self.store.get_booking(booking_id)
            if current is not None and current.status == BOOKING_IN_TRANSIT:
                return BookingOutcome.succeeded(current, already_done=True)
            return BookingOutcome.failed(INVALID_STATE, "Booking already delivered")

        logger.info(f"🚚 Booking {booking_id} picked up")
        return BookingOutcome.succeeded(updated)

    async def confirm_delivery(self, rider_id: str, booking_id: str) -> BookingOutcome:
        """
        in_transit -> delivered, releasing the payment hold in the same write.
        A booking still in `booked` must be picked up first.
        """
        booking, failure = await self._owned_booking(rider_id, booking_id)
        if failure:
            return failure

        if booking.status == BOOKING_DELIVERED:
            payment = await self.store.get_payment(booking_id)
            return BookingOutcome.succeeded(booking, payment, already_done=True)
        if booking.status == BOOKING_BOOKED:
            return BookingOutcome.failed(INVALID_STATE, "Confirm pickup first")

        try:
            result = await self.store.mark_delivered(booking_id, self._clock())
        except InvalidTransition:
            current = await self.store.get_booking(booking_id)
            if current is not None and current.status == BOOKING_DELIVERED:
                payment = await self.store.get_payment(booking_id)
                return BookingOutcome.succeeded(current, payment, already_done=True)
            return BookingOutcome.failed(INVALID_STATE)

        logger.info(f"✅ Booking {booking_id} delivered, payment released")
        return BookingOutcome.succeeded(result.booking, result.payment)

    # ==================== Views ====================

    async def get_payment_status(self, rider_id: str, booking_id: str) -> BookingOutcome:
        booking, failure = await self._owned_booking(rider_id, booking_id)
        if failure:
            return failure

        payment = await self.store.get_payment(booking_id)
        if payment is None:
            logger.error(f"Booking {booking_id} has no payment hold")
            return BookingOutcome.failed(BOOKING_NOT_FOUND)
        return BookingOutcome.succeeded(booking, payment)

    async def list_pending_orders(self) -> List[QueueEntry]:
        return await self.store.list_queue_entries(QUEUE_PENDING)

    async def list_bookings_for_rider(self, rider_id: str) -> List[Booking]:
        """The rider's booked and in-transit bookings"""
        return await self.store.list_bookings_for_rider(rider_id, ACTIVE_BOOKING_STATUSES)
