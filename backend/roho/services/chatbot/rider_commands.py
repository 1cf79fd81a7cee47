"""
Rider command bot

Riders drive the booking coordinator with short WhatsApp commands:
    orders | book <orderId> | pickup <bookingId> | delivered <bookingId>
    myorders | payment <bookingId>
Anything else returns the help text.
"""
import logging
from typing import Awaitable, Callable, Dict

from roho.core.security import mask_phone
from roho.schemas.messages import OutboundMessage
from roho.services.chatbot import templates
from roho.services.delivery.coordinator import BookingCoordinator, BookingOutcome

logger = logging.getLogger(__name__)

USAGE = {
    "book": "Usage: book ORD-12345",
    "pickup": "Usage: pickup BOOK-12345",
    "delivered": "Usage: delivered BOOK-12345",
    "payment": "Usage: payment BOOK-12345",
}


def failure_reply(outcome: BookingOutcome) -> OutboundMessage:
    return templates.text(f"❌ {outcome.message}")


class RiderCommandHandler:
    """Parses rider commands and renders coordinator outcomes"""

    def __init__(self, coordinator: BookingCoordinator) -> None:
        self.coordinator = coordinator
        self._with_arg: Dict[str, Callable[[str, str], Awaitable[OutboundMessage]]] = {
            "book": self._book,
            "pickup": self._pickup,
            "delivered": self._delivered,
            "payment": self._payment,
        }

    async def handle(self, rider_id: str, command: str) -> OutboundMessage:
        try:
            parts = command.strip().lower().split()
            action = parts[0] if parts else ""
            logger.info(f"[RiderBot] {mask_phone(rider_id)} issued: {action or '<empty>'}")

            if action == "orders":
                entries = await self.coordinator.list_pending_orders()
                return templates.pending_orders(entries)

            if action == "myorders":
                bookings = await self.coordinator.list_bookings_for_rider(rider_id)
                return templates.active_bookings(bookings)

            handler = self._with_arg.get(action)
            if handler is None:
                return templates.rider_help()
            if len(parts) < 2:
                return templates.text(USAGE[action])

            # Ids are stored upper-case (ORD-..., BOOK-...)
            return await handler(rider_id, parts[1].upper())

        except Exception:
            logger.exception(f"[RiderBot] Error processing command from {mask_phone(rider_id)}")
            return templates.rider_error()

    async def _book(self, rider_id: str, order_id: str) -> OutboundMessage:
        outcome = await self.coordinator.attempt_booking(rider_id, order_id)
        if not outcome.ok:
            return failure_reply(outcome)
        return templates.order_booked(outcome.booking)

    async def _pickup(self, rider_id: str, booking_id: str) -> OutboundMessage:
        outcome = await self.coordinator.confirm_pickup(rider_id, booking_id)
        if not outcome.ok:
            return failure_reply(outcome)
        return templates.picked_up(outcome.booking)

    async def _delivered(self, rider_id: str, booking_id: str) -> OutboundMessage:
        outcome = await self.coordinator.confirm_delivery(rider_id, booking_id)
        if not outcome.ok:
            return failure_reply(outcome)
        if outcome.already_done:
            return templates.text(f"Delivery for {booking_id} was already confirmed.")
        return templates.delivery_confirmed(outcome.payment)

    async def _payment(self, rider_id: str, booking_id: str) -> OutboundMessage:
        outcome = await self.coordinator.get_payment_status(rider_id, booking_id)
        if not outcome.ok:
            return failure_reply(outcome)
        return templates.payment_status(outcome.payment)
