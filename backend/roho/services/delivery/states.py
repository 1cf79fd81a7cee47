"""
Linear status lifecycles for orders, queue entries, bookings and payment holds.
Every transition moves exactly one step forward.
"""
from typing import Dict, Sequence

from roho.services.delivery.errors import InvalidTransition

ORDER_PENDING_PAYMENT = "pending_payment"
ORDER_PAYMENT_CONFIRMED = "payment_confirmed"
ORDER_ASSIGNED = "assigned_to_rider"
ORDER_DELIVERED = "delivered"

QUEUE_PENDING = "pending_booking"
QUEUE_BOOKED = "booked"

BOOKING_BOOKED = "booked"
BOOKING_IN_TRANSIT = "in_transit"
BOOKING_DELIVERED = "delivered"

PAYMENT_HELD = "held"
PAYMENT_RELEASED = "released"

ORDER_LIFECYCLE = (ORDER_PENDING_PAYMENT, ORDER_PAYMENT_CONFIRMED, ORDER_ASSIGNED, ORDER_DELIVERED)
QUEUE_LIFECYCLE = (QUEUE_PENDING, QUEUE_BOOKED)
BOOKING_LIFECYCLE = (BOOKING_BOOKED, BOOKING_IN_TRANSIT, BOOKING_DELIVERED)
PAYMENT_LIFECYCLE = (PAYMENT_HELD, PAYMENT_RELEASED)

ACTIVE_BOOKING_STATUSES = (BOOKING_BOOKED, BOOKING_IN_TRANSIT)

LIFECYCLES: Dict[str, Sequence[str]] = {
    "order": ORDER_LIFECYCLE,
    "queue_entry": QUEUE_LIFECYCLE,
    "booking": BOOKING_LIFECYCLE,
    "payment": PAYMENT_LIFECYCLE,
}


def ensure_transition(kind: str, record_id: str, current: str, target: str) -> None:
    """
    Raise InvalidTransition unless `target` is the immediate successor of `current`.
    Store adapters call this inside their transactions before writing.
    """
    lifecycle = LIFECYCLES[kind]
    if current not in lifecycle or target not in lifecycle:
        raise InvalidTransition(kind, record_id, current, target)
    if lifecycle.index(target) != lifecycle.index(current) + 1:
        raise InvalidTransition(kind, record_id, current, target)
