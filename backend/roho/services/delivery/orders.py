"""
Order registry: buyer checkout into the rider queue
"""
import logging
from datetime import datetime
from typing import Any, Callable, Dict

from roho.core.firebase import utcnow
from roho.core.security import mask_phone
from roho.schemas.delivery import KitchenNotification, Order
from roho.services.delivery.store import DeliveryStore, new_order_id

logger = logging.getLogger(__name__)


class OrderRegistry:
    """Creates orders and confirms their (simulated) payment"""

    def __init__(
        self,
        store: DeliveryStore,
        clock: Callable[[], datetime] = utcnow,
        id_factory: Callable[[], str] = new_order_id,
    ) -> None:
        self.store = store
        self._clock = clock
        self._new_order_id = id_factory

    async def place_order(self, buyer_id: str, session_data: Dict[str, Any]) -> Order:
        """
        Create an order from the buyer's checkout session and confirm payment.

        Args:
            buyer_id: Buyer's WhatsApp address
            session_data: Must carry meal_id, meal_name, price_minor and location;
                promo_code and free_delivery are optional

        Returns:
            The order, already in payment_confirmed with a pending queue entry
        """
        now = self._clock()
        order = Order(
            order_id=self._new_order_id(),
            buyer_id=buyer_id,
            meal_id=session_data["meal_id"],
            meal_name=session_data["meal_name"],
            price_minor=int(session_data["price_minor"]),
            location=session_data["location"],
            promo_code=session_data.get("promo_code"),
            free_delivery=bool(session_data.get("free_delivery", False)),
            created_at=now,
        )
        await self.store.create_order(order)

        # Payment is trusted; confirmation enqueues the order for riders
        order = await self.store.confirm_payment(order.order_id, paid_at=self._clock())
        logger.info(f"🧾 Order {order.order_id} placed by {mask_phone(buyer_id)}, queued for riders")

        await self._notify_kitchen(order)
        return order

    async def _notify_kitchen(self, order: Order) -> None:
        """Kitchen ticket; a failure here never fails the order"""
        notification = KitchenNotification(
            order_id=order.order_id,
            buyer_id=order.buyer_id,
            meal_id=order.meal_id,
            meal_name=order.meal_name,
            location=order.location,
            created_at=self._clock(),
        )
        try:
            await self.store.record_kitchen_notification(notification)
        except Exception:
            logger.exception(f"Kitchen notification failed for order {order.order_id}")
