"""
Order status and pricing helpers shared by the order routes.
"""
import time
from typing import List, Optional, Sequence

from schemas import Deliveryfee, Order, Voucher

FINAL_ORDER_STATES = ("cancelled", "completed", "delivered")

# Statuses the "active" filter token stands for
ACTIVE_ORDER_STATUSES = frozenset({"pre-order-pending", "pending", "accepted", "ready", "in-transit"})

AGGREGATE_STATUS_FILTERS = ("all", "active")

# Customers may only cancel orders the kitchen has not taken on
CUSTOMER_CANCELLABLE_STATUSES = frozenset({"pending", "denied"})
PRE_ORDER_CANCELLABLE_STATUSES = frozenset({"pre-order-pending", "pending", "denied"})
PRE_ORDER_CANCEL_NOTICE_MS = 24 * 60 * 60 * 1000

CANCEL_NOT_ALLOWED = "Customers can only cancel pending, denied or pre-order-pending orders"
CANCEL_TOO_LATE = "Pre-orders can only be cancelled at least 1 day before the scheduled order date"

ORDER_STATUS_LABELS = {
    "pending": "Pending",
    "pre-order-pending": "Awaiting Restaurant Confirmation",
    "accepted": "Preparing",
    "ready": "Ready",
    "denied": "Denied",
    "completed": "Completed",
    "cancelled": "Cancelled",
    "in-transit": "In Transit",
    "delivered": "Delivered",
}

STATUS_FILTER_OPTIONS: List[dict] = [
    {"id": "all", "label": "All"},
    {"id": "active", "label": "Active"},
    {"id": "pre-order-pending", "label": "Pre-order Pending"},
    {"id": "pending", "label": "Pending"},
    {"id": "accepted", "label": "Preparing"},
    {"id": "ready", "label": "Ready"},
    {"id": "in-transit", "label": "In Transit"},
    {"id": "delivered", "label": "Delivered"},
    {"id": "denied", "label": "Denied"},
    {"id": "completed", "label": "Completed"},
    {"id": "cancelled", "label": "Cancelled"},
]


def active_status_matcher(order: Order, status_filter: str) -> bool:
    """Status matcher that understands the "active" aggregate token."""
    if status_filter == "all":
        return True
    if status_filter == "active":
        return order.status in ACTIVE_ORDER_STATUSES
    return order.status == status_filter


def can_edit_order_status(status: Optional[str]) -> bool:
    if not status:
        return False
    return status not in FINAL_ORDER_STATES


def customer_cancel_error(order: Order, now_ms: Optional[float] = None) -> str:
    """Why the customer may not cancel this order, or "" when they may.

    Pre-orders need at least a day's notice before the scheduled slot.
    """
    if order.order_type != "pre-order":
        return "" if order.status in CUSTOMER_CANCELLABLE_STATUSES else CANCEL_NOT_ALLOWED
    if order.status not in PRE_ORDER_CANCELLABLE_STATUSES:
        return CANCEL_NOT_ALLOWED
    if order.pre_order_scheduled_at is None:
        return ""
    if now_ms is None:
        now_ms = time.time() * 1000
    if order.pre_order_scheduled_at - now_ms < PRE_ORDER_CANCEL_NOTICE_MS:
        return CANCEL_TOO_LATE
    return ""


def voucher_error(voucher: Optional[Voucher], subtotal: float, now_ms: Optional[float] = None) -> str:
    if voucher is None or not voucher.active:
        return "Invalid voucher code"
    if now_ms is None:
        now_ms = time.time() * 1000
    if voucher.expires_at < now_ms:
        return "Voucher has expired"
    if voucher.usage_count >= voucher.usage_limit:
        return "Voucher usage limit reached"
    if subtotal < voucher.min_order_amount:
        return f"Minimum order amount is ₱{voucher.min_order_amount:g}"
    return ""


def calculate_voucher_discount(voucher: Voucher, subtotal: float) -> float:
    if voucher.type == "fixed":
        return voucher.value
    discount = subtotal * voucher.value / 100
    if voucher.max_discount and discount > voucher.max_discount:
        discount = voucher.max_discount
    return discount


def is_delivery_order(order: Optional[Order]) -> bool:
    if order is None:
        return False
    return order.order_type == "delivery" or (
        order.order_type == "pre-order" and order.pre_order_fulfillment == "delivery"
    )


def get_order_type_prefix(order_type: str) -> str:
    return "Pre-order" if order_type == "pre-order" else "Order"


def get_delivery_fee_from_address(address: Optional[str], delivery_fees: Sequence[Deliveryfee]) -> float:
    """Fee of the first barangay whose name appears in the address.

    "Puro-Batia" and "Puro Batia" are treated as the same name.
    """
    if not address:
        return 0
    address_lower = address.lower()
    for df in delivery_fees:
        barangay = df.barangay.lower()
        candidates = (barangay, barangay.replace("-", " "), barangay.replace(" ", "-"))
        if any(c in address_lower for c in candidates):
            return df.fee
    return 0


def calculate_full_order_total(
    subtotal: float,
    platform_fee: Optional[float],
    delivery_fee: float,
    discount: Optional[float],
) -> float:
    return subtotal + (platform_fee or 0) + delivery_fee - (discount or 0)


def format_status_for_display(status: str) -> str:
    return " ".join(word.capitalize() for word in status.replace("-", " ").split(" "))


def get_status_label(status: str) -> str:
    return ORDER_STATUS_LABELS.get(status) or format_status_for_display(status)
