"""
Firestore adapter for the delivery store.

- Async-safe: blocking SDK calls run via asyncio.to_thread
- Multi-record changes run inside Firestore transactions (all reads before writes)
- Transaction bodies are plain functions taking (transaction, db, ...)
"""
import asyncio
import logging
from datetime import datetime
from typing import List, Optional, Sequence

from google.cloud import firestore
from google.cloud.firestore_v1 import FieldFilter

from roho.core.firebase import Collections
from roho.schemas.delivery import Booking, KitchenNotification, Order, PaymentHold, QueueEntry
from roho.services.delivery.errors import RecordNotFound
from roho.services.delivery.states import (
    BOOKING_DELIVERED,
    BOOKING_IN_TRANSIT,
    ORDER_ASSIGNED,
    ORDER_DELIVERED,
    ORDER_PAYMENT_CONFIRMED,
    PAYMENT_RELEASED,
    QUEUE_BOOKED,
    QUEUE_PENDING,
    ensure_transition,
)
from roho.services.delivery.store import (
    ClaimResult,
    DeliveryResult,
    DeliveryStore,
    build_claim,
)

logger = logging.getLogger(__name__)


# -------------------------
# Transaction bodies
# -------------------------

def confirm_payment_in_transaction(transaction, db, order_id: str, paid_at: datetime) -> Order:
    """pending_payment -> payment_confirmed, plus the pending queue entry"""
    order_ref = db.collection(Collections.ORDERS).document(order_id)
    queue_ref = db.collection(Collections.RIDER_QUEUE).document(order_id)

    snap = order_ref.get(transaction=transaction)
    if not snap.exists:
        raise RecordNotFound("order", order_id)
    order = Order.from_document(snap.to_dict())
    ensure_transition("order", order_id, order.status, ORDER_PAYMENT_CONFIRMED)

    order = order.model_copy(update={"status": ORDER_PAYMENT_CONFIRMED, "paid_at": paid_at})
    entry = QueueEntry.for_order(order, created_at=paid_at)

    transaction.update(order_ref, {"status": ORDER_PAYMENT_CONFIRMED, "paid_at": paid_at})
    transaction.set(queue_ref, entry.to_document())
    return order


def claim_in_transaction(
    transaction,
    db,
    order_id: str,
    rider_id: str,
    booking_id: str,
    rate_bp: int,
    now: datetime,
) -> ClaimResult:
    """Check the queue entry is still pending and create booking + payment hold"""
    queue_ref = db.collection(Collections.RIDER_QUEUE).document(order_id)
    order_ref = db.collection(Collections.ORDERS).document(order_id)

    queue_snap = queue_ref.get(transaction=transaction)
    if not queue_snap.exists:
        raise RecordNotFound("queue_entry", order_id)
    entry = QueueEntry.from_document(queue_snap.to_dict())
    ensure_transition("queue_entry", order_id, entry.status, QUEUE_BOOKED)

    order_snap = order_ref.get(transaction=transaction)
    if not order_snap.exists:
        raise RecordNotFound("order", order_id)
    ensure_transition("order", order_id, (order_snap.to_dict() or {}).get("status"), ORDER_ASSIGNED)

    booking, payment = build_claim(entry, rider_id, booking_id, rate_bp, now)

    transaction.set(db.collection(Collections.RIDER_BOOKINGS).document(booking_id), booking.to_document())
    transaction.set(db.collection(Collections.RIDER_PAYMENTS).document(booking_id), payment.to_document())
    transaction.update(queue_ref, {
        "status": QUEUE_BOOKED,
        "rider_id": rider_id,
        "booking_id": booking_id,
    })
    transaction.update(order_ref, {
        "status": ORDER_ASSIGNED,
        "assigned_rider_id": rider_id,
        "booking_id": booking_id,
        "assigned_at": now,
    })
    return ClaimResult(booking=booking, payment=payment)


def pickup_in_transaction(transaction, db, booking_id: str, now: datetime) -> Booking:
    """booked -> in_transit"""
    booking_ref = db.collection(Collections.RIDER_BOOKINGS).document(booking_id)

    snap = booking_ref.get(transaction=transaction)
    if not snap.exists:
        raise RecordNotFound("booking", booking_id)
    booking = Booking.from_document(snap.to_dict())
    ensure_transition("booking", booking_id, booking.status, BOOKING_IN_TRANSIT)

    transaction.update(booking_ref, {"status": BOOKING_IN_TRANSIT, "picked_up_at": now})
    return booking.model_copy(update={"status": BOOKING_IN_TRANSIT, "picked_up_at": now})


def deliver_in_transaction(transaction, db, booking_id: str, now: datetime) -> DeliveryResult:
    """
    Booking -> delivered and payment -> released together, so a payment is
    released exactly when its booking is delivered.
    """
    booking_ref = db.collection(Collections.RIDER_BOOKINGS).document(booking_id)
    payment_ref = db.collection(Collections.RIDER_PAYMENTS).document(booking_id)

    booking_snap = booking_ref.get(transaction=transaction)
    if not booking_snap.exists:
        raise RecordNotFound("booking", booking_id)
    booking = Booking.from_document(booking_snap.to_dict())

    payment_snap = payment_ref.get(transaction=transaction)
    if not payment_snap.exists:
        raise RecordNotFound("payment", booking_id)
    payment = PaymentHold.from_document(payment_snap.to_dict())

    order_ref = db.collection(Collections.ORDERS).document(booking.order_id)
    order_snap = order_ref.get(transaction=transaction)
    rider_ref = db.collection(Collections.RIDERS).document(booking.rider_id)
    rider_snap = rider_ref.get(transaction=transaction)

    ensure_transition("booking", booking_id, booking.status, BOOKING_DELIVERED)
    ensure_transition("payment", booking_id, payment.status, PAYMENT_RELEASED)
    if order_snap.exists:
        ensure_transition("order", booking.order_id, (order_snap.to_dict() or {}).get("status"), ORDER_DELIVERED)

    transaction.update(booking_ref, {"status": BOOKING_DELIVERED, "delivered_at": now})
    transaction.update(payment_ref, {"status": PAYMENT_RELEASED, "released_at": now})
    if order_snap.exists:
        transaction.update(order_ref, {"status": ORDER_DELIVERED, "delivered_at": now})
    else:
        logger.warning(f"Order {booking.order_id} missing while delivering {booking_id}")
    if rider_snap.exists:
        transaction.update(rider_ref, {
            "total_deliveries": firestore.Increment(1),
            "earnings_minor": firestore.Increment(payment.amount_minor),
        })

    return DeliveryResult(
        booking=booking.model_copy(update={"status": BOOKING_DELIVERED, "delivered_at": now}),
        payment=payment.model_copy(update={"status": PAYMENT_RELEASED, "released_at": now}),
    )


# -------------------------
# Store
# -------------------------

class FirestoreDeliveryStore(DeliveryStore):
    """Delivery store backed by Firestore collections"""

    def __init__(self, db) -> None:
        self.db = db

    def _run_transaction(self, body, *args):
        return firestore.transactional(body)(self.db.transaction(), self.db, *args)

    async def create_order(self, order: Order) -> None:
        def _work():
            self.db.collection(Collections.ORDERS).document(order.order_id).set(order.to_document())
        await asyncio.to_thread(_work)

    async def get_order(self, order_id: str) -> Optional[Order]:
        def _work():
            doc = self.db.collection(Collections.ORDERS).document(order_id).get()
            return Order.from_document(doc.to_dict()) if doc.exists else None
        return await asyncio.to_thread(_work)

    async def confirm_payment(self, order_id: str, paid_at: datetime) -> Order:
        return await asyncio.to_thread(
            self._run_transaction, confirm_payment_in_transaction, order_id, paid_at
        )

    async def record_kitchen_notification(self, notification: KitchenNotification) -> None:
        def _work():
            (
                self.db.collection(Collections.KITCHEN_NOTIFICATIONS)
                .document(notification.order_id)
                .set(notification.to_document())
            )
        await asyncio.to_thread(_work)

    async def get_queue_entry(self, order_id: str) -> Optional[QueueEntry]:
        def _work():
            doc = self.db.collection(Collections.RIDER_QUEUE).document(order_id).get()
            return QueueEntry.from_document(doc.to_dict()) if doc.exists else None
        return await asyncio.to_thread(_work)

    async def list_queue_entries(self, status: str = QUEUE_PENDING) -> List[QueueEntry]:
        def _work():
            docs = (
                self.db.collection(Collections.RIDER_QUEUE)
                .where(filter=FieldFilter("status", "==", status))
                .stream()
            )
            entries = [QueueEntry.from_document(doc.to_dict()) for doc in docs]
            # Sorted here rather than with order_by to avoid a composite index
            entries.sort(key=lambda e: e.created_at)
            return entries
        return await asyncio.to_thread(_work)

    async def claim_order(
        self,
        order_id: str,
        rider_id: str,
        booking_id: str,
        rate_bp: int,
        now: datetime,
    ) -> ClaimResult:
        return await asyncio.to_thread(
            self._run_transaction, claim_in_transaction, order_id, rider_id, booking_id, rate_bp, now
        )

    async def get_booking(self, booking_id: str) -> Optional[Booking]:
        def _work():
            doc = self.db.collection(Collections.RIDER_BOOKINGS).document(booking_id).get()
            return Booking.from_document(doc.to_dict()) if doc.exists else None
        return await asyncio.to_thread(_work)

    async def list_bookings_for_rider(self, rider_id: str, statuses: Sequence[str]) -> List[Booking]:
        def _work():
            docs = (
                self.db.collection(Collections.RIDER_BOOKINGS)
                .where(filter=FieldFilter("rider_id", "==", rider_id))
                .where(filter=FieldFilter("status", "in", list(statuses)))
                .stream()
            )
            bookings = [Booking.from_document(doc.to_dict()) for doc in docs]
            bookings.sort(key=lambda b: b.booked_at)
            return bookings
        return await asyncio.to_thread(_work)

    async def mark_picked_up(self, booking_id: str, now: datetime) -> Booking:
        return await asyncio.to_thread(self._run_transaction, pickup_in_transaction, booking_id, now)

    async def mark_delivered(self, booking_id: str, now: datetime) -> DeliveryResult:
        return await asyncio.to_thread(self._run_transaction, deliver_in_transaction, booking_id, now)

    async def get_payment(self, booking_id: str) -> Optional[PaymentHold]:
        def _work():
            doc = self.db.collection(Collections.RIDER_PAYMENTS).document(booking_id).get()
            return PaymentHold.from_document(doc.to_dict()) if doc.exists else None
        return await asyncio.to_thread(_work)
