"""
WhatsApp reply builders

Roho voice: stoic, minimal. Text replies only for now; template replies go
through OutboundMessage(type="template").
"""
from typing import List

from roho.core.config import settings
from roho.schemas.delivery import Booking, Order, PaymentHold, QueueEntry
from roho.schemas.messages import OutboundMessage
from roho.services.chatbot.menu import MEALS
from roho.services.delivery.earnings import format_money


def text(body: str) -> OutboundMessage:
    return OutboundMessage(type="text", text=body)


def money(amount_minor: int) -> str:
    return format_money(amount_minor, settings.CURRENCY)


# ==================== Buyer ====================

def welcome() -> OutboundMessage:
    return text("Roho. Fuel for your day.\n\nReply:\n1️⃣ Order Lunch\n2️⃣ My Account")


def menu() -> OutboundMessage:
    numbers = ["1️⃣", "2️⃣", "3️⃣"]
    lines = [
        f"{numbers[idx]} *{meal.name}* - {meal.description} {money(meal.price_minor)}"
        for idx, meal in enumerate(MEALS)
    ]
    return text("Today's fuel options:\n\n" + "\n\n".join(lines) + "\n\nReply with 1, 2, or 3")


def account_placeholder() -> OutboundMessage:
    return text("Your account info coming soon. For now, let's order lunch.\n\nReply: 1 to Order Lunch")


def ask_location(meal_name: str, price_minor: int) -> OutboundMessage:
    return text(
        f"You chose: *{meal_name}*\nPrice: {money(price_minor)}\n\n"
        "Where should we deliver? (Enter office building or location)"
    )


def invalid_location() -> OutboundMessage:
    return text("Please enter a valid office building or location.")


def payment_prompt(meal_name: str, price_minor: int) -> OutboundMessage:
    return text(
        f"Final check:\n\n*{meal_name}*\n{money(price_minor)}\n\n"
        "We'll send an M-PESA prompt to your number.\n\nReply:\n✅ Confirm\n❌ Cancel"
    )


def order_placed(order: Order) -> OutboundMessage:
    return text(
        f"✓ Order placed.\n\nID: {order.order_id}\n{order.meal_name}\n"
        f"Deliver to: {order.location}\n{money(order.price_minor)}\n\n"
        "Lunch ready by 1 PM. Roho delivers."
    )


def order_cancelled() -> OutboundMessage:
    return text("Order cancelled. Ready for lunch? Reply: 1 to Order Lunch")


def promo_applied(code: str) -> OutboundMessage:
    return text(f"Promo *{code.upper()}* applied.\nFree delivery on your order.")


def error() -> OutboundMessage:
    return text('Something went wrong. Try again or type "Hi" to restart.')


# ==================== Rider ====================

RIDER_HELP = (
    "Rider commands:\n\n"
    "📋 orders - View pending orders\n"
    "📦 book ORD-123 - Book an order\n"
    "🚚 pickup BOOK-123 - Confirm pickup\n"
    "✅ delivered BOOK-123 - Confirm delivery & release funds\n"
    "💰 payment BOOK-123 - Check payment status\n"
    "📊 myorders - Your active orders"
)


def rider_help() -> OutboundMessage:
    return text(RIDER_HELP)


def rider_error() -> OutboundMessage:
    return text("Error processing command. Try again.")


def pending_orders(entries: List[QueueEntry]) -> OutboundMessage:
    if not entries:
        return text("No pending orders at the moment.")
    lines = [f"📋 *{len(entries)} Pending Orders*:\n"]
    for idx, entry in enumerate(entries, start=1):
        lines.append(
            f"{idx}. *{entry.meal_name}*\n   📍 {entry.location}\n"
            f"   💵 {money(entry.price_minor)}\n   ID: {entry.order_id}\n"
        )
    lines.append("Reply: book ORD-12345 to claim an order")
    return text("\n".join(lines))


def order_booked(booking: Booking) -> OutboundMessage:
    return text(
        f"✅ Order booked!\n\nBooking ID: {booking.booking_id}\n\n"
        f'Next:\nReply "pickup {booking.booking_id}" when ready for pickup'
    )


def picked_up(booking: Booking) -> OutboundMessage:
    return text(
        f"🚚 Picked up!\n\nDelivering to: {booking.location}\n\n"
        f'Reply "delivered {booking.booking_id}" when customer receives order'
    )


def delivery_confirmed(payment: PaymentHold) -> OutboundMessage:
    return text(
        f"✅ Delivery confirmed!\n\n💰 Funds Released: {money(payment.amount_minor)}\n\n"
        "Thank you for the delivery!"
    )


def active_bookings(bookings: List[Booking]) -> OutboundMessage:
    if not bookings:
        return text('No active bookings. Reply "orders" to see pending.')
    lines = ["📊 *Your Active Bookings*:\n"]
    for idx, booking in enumerate(bookings, start=1):
        lines.append(
            f"{idx}. *{booking.meal_name}*\n   📍 {booking.location}\n"
            f"   💵 {money(booking.price_minor)}\n   Status: {booking.status}\n"
            f"   ID: {booking.booking_id}\n"
        )
    return text("\n".join(lines))


def payment_status(payment: PaymentHold) -> OutboundMessage:
    return text(
        f"💰 *Payment Status*\n\nBooking: {payment.booking_id}\n"
        f"Amount: {money(payment.amount_minor)}\nStatus: {payment.status}\n\n"
        "held = waiting for delivery | released = available to withdraw"
    )
