"""
Order, rider queue, booking and payment hold records
Money fields are integer minor units (cents)
"""
from datetime import datetime
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, Field

OrderStatus = Literal["pending_payment", "payment_confirmed", "assigned_to_rider", "delivered"]
QueueStatus = Literal["pending_booking", "booked"]
BookingStatus = Literal["booked", "in_transit", "delivered"]
PaymentStatus = Literal["held", "released"]


class FirestoreRecord(BaseModel):
    """Base for records persisted as Firestore documents"""

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump()

    @classmethod
    def from_document(cls, data: Dict[str, Any]):
        return cls.model_validate(data)


class Order(FirestoreRecord):
    """A buyer's meal order"""
    order_id: str
    buyer_id: str
    meal_id: str
    meal_name: str
    price_minor: int = Field(..., ge=0)
    location: str = Field(..., min_length=1)
    status: OrderStatus = "pending_payment"
    promo_code: Optional[str] = None
    free_delivery: bool = False
    assigned_rider_id: Optional[str] = None
    booking_id: Optional[str] = None
    created_at: datetime
    paid_at: Optional[datetime] = None
    assigned_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None


class QueueEntry(FirestoreRecord):
    """Bookable projection of a paid order, keyed by order_id"""
    order_id: str
    buyer_id: str
    meal_name: str
    location: str
    price_minor: int = Field(..., ge=0)
    status: QueueStatus = "pending_booking"
    rider_id: Optional[str] = None
    booking_id: Optional[str] = None
    created_at: datetime

    @classmethod
    def for_order(cls, order: Order, created_at: datetime) -> "QueueEntry":
        return cls(
            order_id=order.order_id,
            buyer_id=order.buyer_id,
            meal_name=order.meal_name,
            location=order.location,
            price_minor=order.price_minor,
            created_at=created_at,
        )


class Booking(FirestoreRecord):
    """A rider's exclusive claim on one order"""
    booking_id: str
    order_id: str
    rider_id: str
    buyer_id: str
    meal_name: str
    location: str
    price_minor: int = Field(..., ge=0)
    status: BookingStatus = "booked"
    booked_at: datetime
    picked_up_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None


class PaymentHold(FirestoreRecord):
    """Rider earnings held until delivery is confirmed, keyed 1:1 by booking_id"""
    booking_id: str
    order_id: str
    rider_id: str
    amount_minor: int = Field(..., ge=0)
    status: PaymentStatus = "held"
    created_at: datetime
    released_at: Optional[datetime] = None


class KitchenNotification(FirestoreRecord):
    """Kitchen ticket written when an order is placed"""
    order_id: str
    buyer_id: str
    meal_id: str
    meal_name: str
    location: str
    status: Literal["new"] = "new"
    created_at: datetime
