"""
Courier status -> order status mapping.

Order statuses are free-form: the canonical values in OrderStatus plus
display labels built from vendor statuses ("In Transit", "Picked Up").
Everything here is pure so duplicate webhook deliveries replay identically.
"""
from typing import Optional
from app.models.order import OrderStatus

TERMINAL_STATUSES = frozenset({OrderStatus.DELIVERED.value, OrderStatus.CANCELLED.value})

# Unambiguous vendor terms
STANDARD_STATUS_MAP = {
    "pending": OrderStatus.PROCESSING.value,
    "delivered": OrderStatus.DELIVERED.value,
    "returned": OrderStatus.CANCELLED.value,
    "cancelled": OrderStatus.CANCELLED.value,
}

# Vendor statuses kept as display labels instead of collapsing to "shipped"
DYNAMIC_EXACT = ("in_transit", "picked")
DYNAMIC_SUBSTRINGS = ("transit", "pickup", "sorting", "hub", "assign", "pick")

# Precedence used by the projection updater to refuse downgrades
RANK_PENDING = 0
RANK_PROCESSING = 1
RANK_IN_FLIGHT = 2
RANK_TERMINAL = 3


def format_status_for_display(status: Optional[str]) -> str:
    """in_transit -> In Transit"""
    if not status:
        return ""
    words = status.replace("_", " ").split(" ")
    return " ".join(word[:1].upper() + word[1:].lower() for word in words)


def is_terminal(status: Optional[str]) -> bool:
    return status in TERMINAL_STATUSES


def is_in_flight_label(status: Optional[str]) -> bool:
    """True for a dynamic vendor label such as "In Transit" or "Picked" """
    if not status:
        return False
    lowered = status.lower()
    return any(fragment in lowered for fragment in DYNAMIC_SUBSTRINGS)


def status_rank(status: Optional[str]) -> int:
    if not status or status == OrderStatus.PENDING.value:
        return RANK_PENDING
    if is_terminal(status):
        return RANK_TERMINAL
    if status == OrderStatus.PROCESSING.value:
        return RANK_PROCESSING
    # shipped and every vendor label
    return RANK_IN_FLIGHT


def normalize_courier_status(raw_status: Optional[str], current_order_status: Optional[str] = None) -> str:
    """
    Map a raw courier status to an order status.

    Empty input keeps the current status. Ambiguous input never moves an order
    that is already shipped, in flight or finished back to processing.
    """
    if not raw_status:
        return current_order_status or OrderStatus.PROCESSING.value

    normalized = raw_status.lower()

    if normalized in DYNAMIC_EXACT:
        return format_status_for_display(raw_status)

    if normalized in STANDARD_STATUS_MAP:
        return STANDARD_STATUS_MAP[normalized]

    if any(fragment in normalized for fragment in DYNAMIC_SUBSTRINGS):
        return format_status_for_display(raw_status)

    if "deliver" in normalized:
        return OrderStatus.DELIVERED.value
    if "cancel" in normalized or "return" in normalized or "fail" in normalized:
        return OrderStatus.CANCELLED.value
    if "ship" in normalized:
        return OrderStatus.SHIPPED.value

    if current_order_status:
        if is_terminal(current_order_status):
            return current_order_status
        if current_order_status == OrderStatus.SHIPPED.value or is_in_flight_label(current_order_status):
            return current_order_status

    return OrderStatus.PROCESSING.value
