"""
FastAPI dependency providers

Each provider builds its service once per process. Tests swap them out with
app.dependency_overrides.
"""
from functools import lru_cache

from roho.core.config import settings
from roho.core.firebase import get_db
from roho.services.chatbot.orchestrator import (
    MessageDispatcher,
    build_dispatcher,
    build_rider_registry,
)
from roho.services.delivery.locks import OrderLockTable
from roho.services.delivery.riders import RiderRegistry
from roho.services.messaging.twilio_sender import TwilioSender, build_sender


@lru_cache(maxsize=1)
def get_order_locks() -> OrderLockTable:
    """The single per-order lock table shared by every booking attempt"""
    return OrderLockTable(ttl_seconds=settings.BOOKING_LOCK_TTL_SECONDS)


@lru_cache(maxsize=1)
def get_dispatcher() -> MessageDispatcher:
    return build_dispatcher(get_db(), get_order_locks())


@lru_cache(maxsize=1)
def get_rider_registry() -> RiderRegistry:
    return build_rider_registry(get_db())


@lru_cache(maxsize=1)
def get_sender() -> TwilioSender:
    return build_sender()
