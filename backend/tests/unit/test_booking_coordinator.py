"""
Booking coordinator behaviour.

Verifies:
- One winner per order under concurrent attempts
- Payment hold released exactly when the booking is delivered
- Status never moves backwards
- Locks never outlive a failed attempt
"""
import asyncio

import pytest

from fakes import RIDER_A, RIDER_B
from roho.services.delivery.coordinator import (
    BookingCoordinator,
    BOOKING_NOT_FOUND,
    BOOKING_NOT_FOUND_MESSAGE,
    INVALID_STATE,
    NOT_BOOKING_OWNER,
    ORDER_ALREADY_BEING_BOOKED,
    ORDER_NOT_AVAILABLE,
)
from roho.services.delivery.locks import OrderLockTable


class TestAttemptBooking:

    @pytest.mark.asyncio
    async def test_first_rider_wins_second_gets_not_available(self, coordinator, place_order, delivery_store):
        """Rider A books; Rider B, immediately after, is told the order is taken."""
        order = await place_order(meal_name="Vegan Bowl", price=400)

        first = await coordinator.attempt_booking(RIDER_A, order.order_id)
        second = await coordinator.attempt_booking(RIDER_B, order.order_id)

        assert first.ok
        assert first.booking.booking_id.startswith("BOOK-")
        assert first.booking.rider_id == RIDER_A
        assert first.payment.status == "held"

        assert not second.ok
        assert second.reason == ORDER_NOT_AVAILABLE
        assert second.message == "Order not found or already assigned"

        assert delivery_store.queue[order.order_id].status == "booked"
        assert delivery_store.queue[order.order_id].booking_id == first.booking.booking_id
        assert delivery_store.orders[order.order_id].status == "assigned_to_rider"
        assert delivery_store.orders[order.order_id].assigned_rider_id == RIDER_A

    @pytest.mark.asyncio
    async def test_simultaneous_attempts_one_hold_of_48(self, coordinator, place_order, delivery_store):
        """Two riders in the same instant: one hold of KES 48.00, loser sees contention."""
        order = await place_order(price=320)

        results = await asyncio.gather(
            coordinator.attempt_booking(RIDER_A, order.order_id),
            coordinator.attempt_booking(RIDER_B, order.order_id),
        )

        winners = [r for r in results if r.ok]
        losers = [r for r in results if not r.ok]
        assert len(winners) == 1
        assert len(losers) == 1
        assert losers[0].reason == ORDER_ALREADY_BEING_BOOKED
        assert losers[0].message == "Order already being booked"

        assert len(delivery_store.payments) == 1
        (payment,) = delivery_store.payments.values()
        assert payment.amount_minor == 4800

    @pytest.mark.asyncio
    async def test_many_concurrent_attempts_exactly_one_booking(self, coordinator, place_order):
        order = await place_order()
        riders = [f"whatsapp:+2547000001{i:02d}" for i in range(12)]

        results = await asyncio.gather(
            *(coordinator.attempt_booking(rider, order.order_id) for rider in riders)
        )

        assert sum(r.ok for r in results) == 1
        assert all(
            r.reason in (ORDER_ALREADY_BEING_BOOKED, ORDER_NOT_AVAILABLE)
            for r in results if not r.ok
        )

        bookings = []
        for rider in riders:
            bookings.extend(await coordinator.list_bookings_for_rider(rider))
        assert [b.order_id for b in bookings] == [order.order_id]

    @pytest.mark.asyncio
    async def test_unknown_order_is_not_available(self, coordinator, locks):
        outcome = await coordinator.attempt_booking(RIDER_A, "ORD-MISSING")

        assert not outcome.ok
        assert outcome.reason == ORDER_NOT_AVAILABLE
        assert len(locks) == 0

    @pytest.mark.asyncio
    async def test_failed_attempt_does_not_block_other_orders(self, coordinator, place_order, locks):
        first = await place_order()
        second = await place_order(meal_name="Beef & Mukimo")
        await coordinator.attempt_booking(RIDER_A, first.order_id)

        failed = await coordinator.attempt_booking(RIDER_B, first.order_id)
        assert not failed.ok
        assert len(locks) == 0

        outcome = await coordinator.attempt_booking(RIDER_B, second.order_id)
        assert outcome.ok

    @pytest.mark.asyncio
    async def test_storage_error_releases_lock_and_propagates(self, coordinator, place_order, delivery_store, locks):
        order = await place_order()
        delivery_store.fail_claims_with = ConnectionError("firestore unavailable")

        with pytest.raises(ConnectionError):
            await coordinator.attempt_booking(RIDER_A, order.order_id)

        assert len(locks) == 0
        assert delivery_store.bookings == {}
        assert delivery_store.queue[order.order_id].status == "pending_booking"

        delivery_store.fail_claims_with = None
        outcome = await coordinator.attempt_booking(RIDER_B, order.order_id)
        assert outcome.ok

    @pytest.mark.asyncio
    async def test_stale_lock_is_taken_over(self, delivery_store, place_order):
        now = [0.0]
        locks = OrderLockTable(ttl_seconds=30, clock=lambda: now[0])
        coordinator = BookingCoordinator(delivery_store, locks, rate_bp=1500)
        order = await place_order()

        # A crashed holder left the lock behind
        assert locks.try_acquire(order.order_id, owner="crashed") is not None
        blocked = await coordinator.attempt_booking(RIDER_A, order.order_id)
        assert blocked.reason == ORDER_ALREADY_BEING_BOOKED

        now[0] = 31.0
        outcome = await coordinator.attempt_booking(RIDER_A, order.order_id)
        assert outcome.ok


class TestPickupAndDelivery:

    @pytest.fixture
    def booked(self, coordinator, place_order):
        async def _booked(price=400):
            order = await place_order(price=price)
            outcome = await coordinator.attempt_booking(RIDER_A, order.order_id)
            return outcome.booking
        return _booked

    @pytest.mark.asyncio
    async def test_pickup_then_wrong_rider_delivery_is_refused(self, coordinator, booked, delivery_store):
        booking = await booked()

        pickup = await coordinator.confirm_pickup(RIDER_A, booking.booking_id)
        assert pickup.ok
        assert pickup.booking.status == "in_transit"
        assert pickup.booking.picked_up_at is not None

        intruder = await coordinator.confirm_delivery(RIDER_B, booking.booking_id)
        assert not intruder.ok
        assert intruder.reason == NOT_BOOKING_OWNER
        assert intruder.message == BOOKING_NOT_FOUND_MESSAGE
        assert delivery_store.payments[booking.booking_id].status == "held"

    @pytest.mark.asyncio
    async def test_delivery_releases_payment(self, coordinator, booked, delivery_store):
        booking = await booked()
        await coordinator.confirm_pickup(RIDER_A, booking.booking_id)

        outcome = await coordinator.confirm_delivery(RIDER_A, booking.booking_id)

        assert outcome.ok
        assert outcome.booking.status == "delivered"
        assert outcome.payment.status == "released"
        assert outcome.payment.released_at >= booking.booked_at
        assert delivery_store.orders[booking.order_id].status == "delivered"
        assert delivery_store.rider_counters[RIDER_A] == {"total_deliveries": 1, "earnings_minor": 6000}

    @pytest.mark.asyncio
    async def test_not_found_and_not_owner_read_the_same(self, coordinator, booked):
        booking = await booked()

        missing = await coordinator.confirm_pickup(RIDER_A, "BOOK-NOPE")
        not_mine = await coordinator.confirm_pickup(RIDER_B, booking.booking_id)

        assert missing.reason == BOOKING_NOT_FOUND
        assert not_mine.reason == NOT_BOOKING_OWNER
        assert missing.message == not_mine.message == "Booking not found or not yours."

    @pytest.mark.asyncio
    async def test_delivery_requires_pickup_first(self, coordinator, booked, delivery_store):
        booking = await booked()

        outcome = await coordinator.confirm_delivery(RIDER_A, booking.booking_id)

        assert not outcome.ok
        assert outcome.reason == INVALID_STATE
        assert outcome.message == "Confirm pickup first"
        assert delivery_store.bookings[booking.booking_id].status == "booked"
        assert delivery_store.payments[booking.booking_id].status == "held"

    @pytest.mark.asyncio
    async def test_repeated_pickup_is_a_no_op(self, coordinator, booked, delivery_store):
        booking = await booked()
        first = await coordinator.confirm_pickup(RIDER_A, booking.booking_id)

        again = await coordinator.confirm_pickup(RIDER_A, booking.booking_id)

        assert again.ok and again.already_done
        assert delivery_store.bookings[booking.booking_id].picked_up_at == first.booking.picked_up_at

    @pytest.mark.asyncio
    async def test_repeated_delivery_is_a_no_op(self, coordinator, booked, delivery_store):
        booking = await booked()
        await coordinator.confirm_pickup(RIDER_A, booking.booking_id)
        first = await coordinator.confirm_delivery(RIDER_A, booking.booking_id)

        again = await coordinator.confirm_delivery(RIDER_A, booking.booking_id)

        assert again.ok and again.already_done
        assert again.payment.released_at == first.payment.released_at
        assert delivery_store.rider_counters[RIDER_A]["total_deliveries"] == 1

    @pytest.mark.asyncio
    async def test_delivered_booking_cannot_go_back_to_transit(self, coordinator, booked, delivery_store):
        booking = await booked()
        await coordinator.confirm_pickup(RIDER_A, booking.booking_id)
        await coordinator.confirm_delivery(RIDER_A, booking.booking_id)

        outcome = await coordinator.confirm_pickup(RIDER_A, booking.booking_id)

        assert not outcome.ok
        assert outcome.reason == INVALID_STATE
        assert delivery_store.bookings[booking.booking_id].status == "delivered"
        assert delivery_store.orders[booking.order_id].status == "delivered"

    @pytest.mark.asyncio
    async def test_concurrent_deliveries_release_once(self, coordinator, booked, delivery_store):
        booking = await booked()
        await coordinator.confirm_pickup(RIDER_A, booking.booking_id)

        results = await asyncio.gather(
            coordinator.confirm_delivery(RIDER_A, booking.booking_id),
            coordinator.confirm_delivery(RIDER_A, booking.booking_id),
        )

        assert all(r.ok for r in results)
        assert sorted(r.already_done for r in results) == [False, True]
        assert delivery_store.rider_counters[RIDER_A]["total_deliveries"] == 1

    @pytest.mark.asyncio
    async def test_payment_released_iff_delivered(self, coordinator, booked):
        booking = await booked()

        async def check():
            status = await coordinator.get_payment_status(RIDER_A, booking.booking_id)
            assert (status.payment.status == "released") == (status.booking.status == "delivered")

        await check()
        await coordinator.confirm_pickup(RIDER_A, booking.booking_id)
        await check()
        await coordinator.confirm_delivery(RIDER_A, booking.booking_id)
        await check()


class TestViews:

    @pytest.mark.asyncio
    async def test_pending_orders_oldest_first(self, coordinator, place_order):
        first = await place_order(meal_name="Beef & Mukimo")
        second = await place_order(meal_name="Kienyeji Chicken")
        third = await place_order()
        await coordinator.attempt_booking(RIDER_A, second.order_id)

        pending = await coordinator.list_pending_orders()

        assert [e.order_id for e in pending] == [first.order_id, third.order_id]

    @pytest.mark.asyncio
    async def test_rider_bookings_exclude_delivered(self, coordinator, place_order):
        done = await place_order()
        active = await place_order()
        done_booking = (await coordinator.attempt_booking(RIDER_A, done.order_id)).booking
        await coordinator.attempt_booking(RIDER_A, active.order_id)
        await coordinator.confirm_pickup(RIDER_A, done_booking.booking_id)
        await coordinator.confirm_delivery(RIDER_A, done_booking.booking_id)

        bookings = await coordinator.list_bookings_for_rider(RIDER_A)

        assert [b.order_id for b in bookings] == [active.order_id]
        assert await coordinator.list_bookings_for_rider(RIDER_B) == []

    @pytest.mark.asyncio
    async def test_payment_status_for_other_rider_is_not_found(self, coordinator, place_order):
        order = await place_order()
        booking = (await coordinator.attempt_booking(RIDER_A, order.order_id)).booking

        outcome = await coordinator.get_payment_status(RIDER_B, booking.booking_id)

        assert not outcome.ok
        assert outcome.message == BOOKING_NOT_FOUND_MESSAGE
