"""Order booking and delivery coordination"""
from roho.services.delivery.coordinator import (
    BookingCoordinator,
    BookingOutcome,
    # Outcome reasons
    ORDER_ALREADY_BEING_BOOKED,
    ORDER_NOT_AVAILABLE,
    BOOKING_NOT_FOUND,
    NOT_BOOKING_OWNER,
    INVALID_STATE,
)
from roho.services.delivery.locks import OrderLocked, OrderLockTable
from roho.services.delivery.orders import OrderRegistry
from roho.services.delivery.store import DeliveryStore

__all__ = [
    'BookingCoordinator',
    'BookingOutcome',
    'ORDER_ALREADY_BEING_BOOKED',
    'ORDER_NOT_AVAILABLE',
    'BOOKING_NOT_FOUND',
    'NOT_BOOKING_OWNER',
    'INVALID_STATE',
    'OrderLocked',
    'OrderLockTable',
    'OrderRegistry',
    'DeliveryStore',
]
