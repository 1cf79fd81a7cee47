"""Order placement and rider registration"""
import pytest

from fakes import BUYER, RIDER_A, RIDER_B
from roho.schemas.rider import RiderCreate
from roho.services.delivery.riders import RiderAlreadyRegistered


class TestPlaceOrder:

    @pytest.mark.asyncio
    async def test_order_is_paid_and_queued(self, place_order, delivery_store):
        order = await place_order(meal_name="Beef & Mukimo", price=320, location="Westlands")

        assert order.order_id == "ORD-1"
        assert order.status == "payment_confirmed"
        assert order.paid_at is not None
        assert order.paid_at > order.created_at

        entry = delivery_store.queue[order.order_id]
        assert entry.status == "pending_booking"
        assert entry.meal_name == "Beef & Mukimo"
        assert entry.location == "Westlands"
        assert entry.price_minor == 32000
        assert entry.buyer_id == BUYER
        assert entry.rider_id is None

    @pytest.mark.asyncio
    async def test_kitchen_ticket_recorded(self, place_order, delivery_store):
        order = await place_order()

        ticket = delivery_store.kitchen[order.order_id]
        assert ticket.meal_name == "Vegan Bowl"
        assert ticket.buyer_id == BUYER

    @pytest.mark.asyncio
    async def test_kitchen_failure_does_not_fail_order(self, place_order, delivery_store):
        delivery_store.fail_kitchen_with = ConnectionError("kitchen collection unavailable")

        order = await place_order()

        assert delivery_store.queue[order.order_id].status == "pending_booking"
        assert delivery_store.kitchen == {}

    @pytest.mark.asyncio
    async def test_promo_fields_carried(self, order_registry):
        order = await order_registry.place_order(BUYER, {
            "meal_id": "meal_chicken",
            "meal_name": "Kienyeji Chicken",
            "price_minor": 32000,
            "location": "Upper Hill",
            "promo_code": "NAIROBITECH",
            "free_delivery": True,
        })

        assert order.promo_code == "NAIROBITECH"
        assert order.free_delivery is True

    @pytest.mark.asyncio
    async def test_missing_checkout_field_raises(self, order_registry, delivery_store):
        with pytest.raises(KeyError):
            await order_registry.place_order(BUYER, {"meal_id": "meal_vegan"})
        assert delivery_store.orders == {}


class TestRiderRegistry:

    @pytest.mark.asyncio
    async def test_register_sets_role_and_zero_counters(self, rider_registry, session_store):
        rider = await rider_registry.register(RiderCreate(phone=RIDER_A, name="  Wanjiku "))

        assert rider.name == "Wanjiku"
        assert rider.status == "active"
        assert rider.total_deliveries == 0
        assert rider.earnings_minor == 0
        assert session_store.accounts[RIDER_A].role == "rider"
        assert await rider_registry.is_registered(RIDER_A)
        assert not await rider_registry.is_registered(RIDER_B)

    @pytest.mark.asyncio
    async def test_duplicate_registration_is_refused(self, rider_registry):
        await rider_registry.register(RiderCreate(phone=RIDER_A, name="Wanjiku"))

        with pytest.raises(RiderAlreadyRegistered):
            await rider_registry.register(RiderCreate(phone=RIDER_A, name="Someone Else"))

        (rider,) = await rider_registry.list_riders()
        assert rider.name == "Wanjiku"

    @pytest.mark.asyncio
    async def test_buyer_role_is_not_overwritten(self, rider_registry, session_store):
        await session_store.set_role(RIDER_A, "buyer")

        await rider_registry.register(RiderCreate(phone=RIDER_A, name="Wanjiku"))

        assert session_store.accounts[RIDER_A].role == "buyer"
        assert await rider_registry.is_registered(RIDER_A)

    @pytest.mark.asyncio
    async def test_inactive_rider_is_not_routed(self, rider_registry):
        rider = await rider_registry.register(RiderCreate(phone=RIDER_A, name="Wanjiku"))
        rider_registry.riders.riders[RIDER_A] = rider.model_copy(update={"status": "inactive"})

        assert not await rider_registry.is_registered(RIDER_A)

    @pytest.mark.asyncio
    async def test_list_riders_oldest_first(self, rider_registry):
        await rider_registry.register(RiderCreate(phone=RIDER_B, name="Second"))
        await rider_registry.register(RiderCreate(phone=RIDER_A, name="Later"))

        riders = await rider_registry.list_riders()

        assert [r.name for r in riders] == ["Second", "Later"]

    def test_phone_must_be_whatsapp_address(self):
        with pytest.raises(ValueError):
            RiderCreate(phone="+254700000001", name="Wanjiku")
