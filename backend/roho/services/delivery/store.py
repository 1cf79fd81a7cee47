"""
Persistence contract for orders, the rider queue, bookings and payment holds.

Every method is a suspension point. Methods that touch more than one record
must apply all of their writes atomically or none of them.
"""
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Sequence, Tuple

from roho.schemas.delivery import Booking, KitchenNotification, Order, PaymentHold, QueueEntry
from roho.services.delivery.earnings import rider_cut_minor
from roho.services.delivery.states import BOOKING_BOOKED, PAYMENT_HELD, QUEUE_PENDING


def new_order_id() -> str:
    return f"ORD-{uuid.uuid4().hex[:8].upper()}"


def new_booking_id() -> str:
    return f"BOOK-{uuid.uuid4().hex[:8].upper()}"


@dataclass
class ClaimResult:
    """Records created when a rider wins an order"""
    booking: Booking
    payment: PaymentHold


@dataclass
class DeliveryResult:
    """Records after delivery confirmation"""
    booking: Booking
    payment: PaymentHold


def build_claim(
    entry: QueueEntry,
    rider_id: str,
    booking_id: str,
    rate_bp: int,
    now: datetime,
) -> Tuple[Booking, PaymentHold]:
    """Create the booking and payment hold for a pending queue entry"""
    booking = Booking(
        booking_id=booking_id,
        order_id=entry.order_id,
        rider_id=rider_id,
        buyer_id=entry.buyer_id,
        meal_name=entry.meal_name,
        location=entry.location,
        price_minor=entry.price_minor,
        status=BOOKING_BOOKED,
        booked_at=now,
    )
    payment = PaymentHold(
        booking_id=booking_id,
        order_id=entry.order_id,
        rider_id=rider_id,
        amount_minor=rider_cut_minor(entry.price_minor, rate_bp),
        status=PAYMENT_HELD,
        created_at=now,
    )
    return booking, payment


class DeliveryStore(ABC):
    """Storage for the order, queue, booking and payment records"""

    # ---- Order registry ----

    @abstractmethod
    async def create_order(self, order: Order) -> None:
        """Persist a new order in pending_payment"""

    @abstractmethod
    async def get_order(self, order_id: str) -> Optional[Order]:
        ...

    @abstractmethod
    async def confirm_payment(self, order_id: str, paid_at: datetime) -> Order:
        """
        Atomically move the order to payment_confirmed and enqueue it for riders.

        Raises:
            RecordNotFound: order missing
            InvalidTransition: order is not pending_payment
        """

    @abstractmethod
    async def record_kitchen_notification(self, notification: KitchenNotification) -> None:
        ...

    # ---- Rider queue ----

    @abstractmethod
    async def get_queue_entry(self, order_id: str) -> Optional[QueueEntry]:
        ...

    @abstractmethod
    async def list_queue_entries(self, status: str = QUEUE_PENDING) -> List[QueueEntry]:
        """Queue entries with `status`, oldest first"""

    # ---- Bookings and payment holds ----

    @abstractmethod
    async def claim_order(
        self,
        order_id: str,
        rider_id: str,
        booking_id: str,
        rate_bp: int,
        now: datetime,
    ) -> ClaimResult:
        """
        In one atomic write: re-check the queue entry is pending, create the
        booking and payment hold, mark the queue entry booked and the order
        assigned_to_rider.

        Raises:
            RecordNotFound: queue entry or order missing
            InvalidTransition: queue entry or order already moved on
        """

    @abstractmethod
    async def get_booking(self, booking_id: str) -> Optional[Booking]:
        ...

    @abstractmethod
    async def list_bookings_for_rider(self, rider_id: str, statuses: Sequence[str]) -> List[Booking]:
        """The rider's bookings whose status is in `statuses`, oldest first"""

    @abstractmethod
    async def mark_picked_up(self, booking_id: str, now: datetime) -> Booking:
        """
        booked -> in_transit.

        Raises:
            RecordNotFound, InvalidTransition
        """

    @abstractmethod
    async def mark_delivered(self, booking_id: str, now: datetime) -> DeliveryResult:
        """
        In one atomic write: booking in_transit -> delivered, payment
        held -> released, order -> delivered, rider counters incremented.

        Raises:
            RecordNotFound, InvalidTransition
        """

    @abstractmethod
    async def get_payment(self, booking_id: str) -> Optional[PaymentHold]:
        ...
