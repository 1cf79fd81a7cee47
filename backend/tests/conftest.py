"""Pytest configuration and shared fixtures."""
import pytest

from fakes import (
    BUYER,
    RATE_BP,
    InMemoryDeliveryStore,
    InMemoryRiderStore,
    InMemorySessionStore,
    StepClock,
    sequential_ids,
)
from roho.services.chatbot.rider_commands import RiderCommandHandler
from roho.services.delivery.coordinator import BookingCoordinator
from roho.services.delivery.earnings import to_minor
from roho.services.delivery.locks import OrderLockTable
from roho.services.delivery.orders import OrderRegistry
from roho.services.delivery.riders import RiderRegistry


@pytest.fixture
def clock():
    return StepClock()


@pytest.fixture
def delivery_store():
    return InMemoryDeliveryStore()


@pytest.fixture
def locks():
    return OrderLockTable(ttl_seconds=30)


@pytest.fixture
def coordinator(delivery_store, locks, clock):
    return BookingCoordinator(
        delivery_store,
        locks,
        rate_bp=RATE_BP,
        clock=clock,
        id_factory=sequential_ids("BOOK"),
    )


@pytest.fixture
def order_registry(delivery_store, clock):
    return OrderRegistry(delivery_store, clock=clock, id_factory=sequential_ids("ORD"))


@pytest.fixture
def session_store(clock):
    return InMemorySessionStore(clock)


@pytest.fixture
def rider_registry(session_store, clock):
    return RiderRegistry(InMemoryRiderStore(), session_store, clock=clock)


@pytest.fixture
def rider_bot(coordinator):
    return RiderCommandHandler(coordinator)


@pytest.fixture
def place_order(order_registry):
    """Place a paid order and return it (already queued for riders)"""

    async def _place(meal_name="Vegan Bowl", price=320, location="Britam Tower", buyer=BUYER):
        return await order_registry.place_order(buyer, {
            "meal_id": "meal_vegan",
            "meal_name": meal_name,
            "price_minor": to_minor(price),
            "location": location,
        })

    return _place
