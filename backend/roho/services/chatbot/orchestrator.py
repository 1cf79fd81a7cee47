"""
Roho WhatsApp conversation orchestrator
- Buyer state machine: WELCOME -> SELECTING_FOOD -> CONFIRM_ORDER -> PAYMENT -> ORDER_COMPLETE
- Intent gate for global commands (restart, promo codes)
- Strict transition enforcement
- Dispatch between the buyer flow and the rider command bot
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, Literal, Optional, Set

from roho.core.config import settings
from roho.core.security import mask_phone
from roho.schemas.messages import InboundMessage, OutboundMessage, UserAccount
from roho.services.chatbot import templates
from roho.services.chatbot.menu import find_meal, is_promo_code
from roho.services.chatbot.rider_commands import RiderCommandHandler
from roho.services.chatbot.sessions import STEP_WELCOME, FirestoreSessionStore, SessionStore
from roho.services.delivery.coordinator import BookingCoordinator
from roho.services.delivery.earnings import rate_to_basis_points
from roho.services.delivery.firestore_store import FirestoreDeliveryStore
from roho.services.delivery.locks import OrderLockTable
from roho.services.delivery.orders import OrderRegistry
from roho.services.delivery.riders import FirestoreRiderStore, RiderRegistry

logger = logging.getLogger(__name__)

# -------------------------
# State Machine Definition
# -------------------------

STEP_SELECTING_FOOD = "SELECTING_FOOD"
STEP_CONFIRM_ORDER = "CONFIRM_ORDER"
STEP_PAYMENT = "PAYMENT"
STEP_ORDER_COMPLETE = "ORDER_COMPLETE"

ALL_STEPS = {
    STEP_WELCOME,
    STEP_SELECTING_FOOD,
    STEP_CONFIRM_ORDER,
    STEP_PAYMENT,
    STEP_ORDER_COMPLETE,
}

# Forward moves, plus the cancel/restart paths back to WELCOME
ALLOWED_TRANSITIONS: Dict[str, Set[str]] = {
    STEP_WELCOME: {STEP_SELECTING_FOOD},
    STEP_SELECTING_FOOD: {STEP_CONFIRM_ORDER, STEP_WELCOME},
    STEP_CONFIRM_ORDER: {STEP_PAYMENT, STEP_SELECTING_FOOD, STEP_WELCOME},
    STEP_PAYMENT: {STEP_ORDER_COMPLETE, STEP_WELCOME},
    STEP_ORDER_COMPLETE: {STEP_WELCOME},
}

MIN_LOCATION_LENGTH = 3


# -------------------------
# Intent Gate
# -------------------------

@dataclass
class IntentGateResult:
    kind: Literal["continue", "restart", "promo"]
    promo_code: Optional[str] = None


class IntentGate:
    """Global commands that apply at any step"""

    GLOBAL_RESTART = {"hi", "hello", "restart"}

    def check(self, user_message: str) -> IntentGateResult:
        msg = " ".join(user_message.lower().split())

        if msg in self.GLOBAL_RESTART:
            return IntentGateResult(kind="restart")

        if is_promo_code(msg):
            return IntentGateResult(kind="promo", promo_code=msg.upper())

        return IntentGateResult(kind="continue")


# -------------------------
# Buyer Conversation Router
# -------------------------

class ConversationRouter:
    """Maps buyer messages to step transitions and replies"""

    def __init__(
        self,
        *,
        sessions: SessionStore,
        orders: OrderRegistry,
        intent_gate: Optional[IntentGate] = None,
    ) -> None:
        self.sessions = sessions
        self.orders = orders
        self.intent_gate = intent_gate or IntentGate()

    async def handle_incoming(self, user_id: str, text: str) -> OutboundMessage:
        account = await self.sessions.get_or_create(user_id)
        current_step = account.step if account.step in ALL_STEPS else STEP_WELCOME
        data: Dict[str, Any] = dict(account.data or {})

        logger.info(f"[Buyer] {mask_phone(user_id)} at {current_step}, msg_len={len(text)}")

        gate = self.intent_gate.check(text)
        if gate.kind == "restart":
            await self.sessions.save(user_id, STEP_WELCOME, {})
            return templates.welcome()

        if gate.kind == "promo":
            data["promo_code"] = gate.promo_code
            data["free_delivery"] = True
            await self.sessions.save(user_id, current_step, data)
            logger.info(f"Applied promo {gate.promo_code} for {mask_phone(user_id)}")
            return templates.promo_applied(gate.promo_code)

        handler = {
            STEP_WELCOME: self._handle_welcome,
            STEP_SELECTING_FOOD: self._handle_food_selection,
            STEP_CONFIRM_ORDER: self._handle_location,
            STEP_PAYMENT: self._handle_payment,
            STEP_ORDER_COMPLETE: self._handle_complete,
        }[current_step]

        response = await handler(account, text, data)

        next_step = self._enforce_transition(current_step, response["next_step"])
        if next_step != response["next_step"]:
            await self.sessions.save(user_id, current_step, data)
            return templates.error()

        await self.sessions.save(user_id, next_step, response["data"])
        return response["reply"]

    # -------------------------
    # Step Handlers
    # -------------------------

    async def _handle_welcome(self, account: UserAccount, message: str, data: Dict[str, Any]) -> Dict[str, Any]:
        action = message.strip().lower()

        if action == "1" or "order" in action:
            if account.role is None:
                await self.sessions.set_role(account.user_id, "buyer")
            return {"reply": templates.menu(), "next_step": STEP_SELECTING_FOOD, "data": data}

        if action == "2" or "account" in action:
            return {"reply": templates.account_placeholder(), "next_step": STEP_WELCOME, "data": data}

        return {"reply": templates.welcome(), "next_step": STEP_WELCOME, "data": data}

    async def _handle_food_selection(self, account: UserAccount, message: str, data: Dict[str, Any]) -> Dict[str, Any]:
        meal = find_meal(message)
        if meal is None:
            return {"reply": templates.menu(), "next_step": STEP_SELECTING_FOOD, "data": data}

        data.update({
            "meal_id": meal.meal_id,
            "meal_name": meal.name,
            "price_minor": meal.price_minor,
        })
        return {
            "reply": templates.ask_location(meal.name, meal.price_minor),
            "next_step": STEP_CONFIRM_ORDER,
            "data": data,
        }

    async def _handle_location(self, account: UserAccount, message: str, data: Dict[str, Any]) -> Dict[str, Any]:
        if "meal_id" not in data:
            # Session lost its meal; pick again
            return {"reply": templates.menu(), "next_step": STEP_SELECTING_FOOD, "data": data}

        location = message.strip()
        if len(location) < MIN_LOCATION_LENGTH:
            return {"reply": templates.invalid_location(), "next_step": STEP_CONFIRM_ORDER, "data": data}

        data["location"] = location
        return {
            "reply": templates.payment_prompt(data["meal_name"], data["price_minor"]),
            "next_step": STEP_PAYMENT,
            "data": data,
        }

    async def _handle_payment(self, account: UserAccount, message: str, data: Dict[str, Any]) -> Dict[str, Any]:
        action = message.strip().lower()

        if "confirm" in action or "✅" in action:
            order = await self.orders.place_order(account.user_id, data)
            return {
                "reply": templates.order_placed(order),
                "next_step": STEP_ORDER_COMPLETE,
                "data": {"last_order_id": order.order_id},
            }

        if "cancel" in action or "❌" in action:
            return {"reply": templates.order_cancelled(), "next_step": STEP_WELCOME, "data": {}}

        return {
            "reply": templates.payment_prompt(data.get("meal_name", "Your meal"), data.get("price_minor", 0)),
            "next_step": STEP_PAYMENT,
            "data": data,
        }

    async def _handle_complete(self, account: UserAccount, message: str, data: Dict[str, Any]) -> Dict[str, Any]:
        return {"reply": templates.welcome(), "next_step": STEP_WELCOME, "data": {}}

    # -------------------------
    # Internal Utilities
    # -------------------------

    def _enforce_transition(self, current_step: str, proposed_next: str) -> str:
        """Allow staying put or an allowed move; anything else keeps the current step"""
        if proposed_next == current_step:
            return proposed_next
        if proposed_next in ALLOWED_TRANSITIONS.get(current_step, set()):
            return proposed_next

        logger.warning(f"Blocked invalid transition: {current_step} -> {proposed_next}")
        return current_step


# -------------------------
# Message Dispatcher
# -------------------------

class MessageDispatcher:
    """Routes each inbound message to the rider bot or the buyer router"""

    def __init__(
        self,
        *,
        router: ConversationRouter,
        rider_bot: RiderCommandHandler,
        riders: RiderRegistry,
    ) -> None:
        self.router = router
        self.rider_bot = rider_bot
        self.riders = riders

    async def dispatch(self, message: InboundMessage) -> OutboundMessage:
        text = (message.text or "").strip()
        if not text:
            return templates.error()

        try:
            if await self.riders.is_registered(message.sender):
                logger.info(f"[RiderBot] Routing {mask_phone(message.sender)} to rider commands")
                return await self.rider_bot.handle(message.sender, text)
            return await self.router.handle_incoming(message.sender, text)
        except Exception:
            logger.exception(f"Error handling message {message.message_id} from {mask_phone(message.sender)}")
            return templates.error()


# -------------------------
# Dependency Injection
# -------------------------

def build_coordinator(db, locks: OrderLockTable) -> BookingCoordinator:
    return BookingCoordinator(
        FirestoreDeliveryStore(db),
        locks,
        rate_bp=rate_to_basis_points(settings.RIDER_EARNINGS_RATE),
    )


def build_rider_registry(db) -> RiderRegistry:
    return RiderRegistry(FirestoreRiderStore(db), FirestoreSessionStore(db))


def build_dispatcher(db, locks: OrderLockTable) -> MessageDispatcher:
    """
    Build the dispatcher with Firestore-backed dependencies.
    Use this in FastAPI dependency injection.
    """
    sessions = FirestoreSessionStore(db)
    router = ConversationRouter(
        sessions=sessions,
        orders=OrderRegistry(FirestoreDeliveryStore(db)),
    )
    return MessageDispatcher(
        router=router,
        rider_bot=RiderCommandHandler(build_coordinator(db, locks)),
        riders=RiderRegistry(FirestoreRiderStore(db), sessions),
    )
