"""
In-house delivery fleet. No network: an order is "created" by issuing an
INT-<orderId> tracking id; status comes from delivery persons and OTP checks.
"""
from app.couriers.base import CourierAdapter, CourierOrderResult, TrackingInfo
from app.exceptions import CourierError

INTERNAL_TRACKING_PREFIX = "INT-"


def internal_tracking_id(order_id: int) -> str:
    return f"{INTERNAL_TRACKING_PREFIX}{order_id}"


class InternalCourier(CourierAdapter):
    code = "internal"
    supports_tracking = False

    def create_order(self, order_details, store_info, delivery_info) -> CourierOrderResult:
        return CourierOrderResult(
            tracking_id=internal_tracking_id(order_details.order_id),
            vendor_order_id=order_details.merchant_order_id,
        )

    def track_order(self, tracking_id: str) -> TrackingInfo:
        raise CourierError("Internal deliveries have no remote tracking")

    def parse_webhook_event(self, payload):
        return None
