"""
Steadfast Courier integration
"""
from decimal import Decimal
from typing import Any, Dict, Mapping, Optional
import logging
import secrets

import requests

from app.config import Settings, settings as app_settings
from app.couriers.base import (
    CourierAdapter,
    CourierEvent,
    CourierOrderResult,
    TrackingInfo,
    extract_order_id,
    format_bangladesh_phone,
    parse_vendor_timestamp,
    raise_for_vendor_response,
    send_vendor_request,
)
from app.exceptions import CourierAuthError, TrackingNotFound, VendorRejected, WebhookUnauthorized

logger = logging.getLogger(__name__)

VENDOR = "Steadfast"
LOCATION = "Steadfast Courier"

NOTIFICATION_DELIVERY_STATUS = "delivery_status"
NOTIFICATION_TRACKING_UPDATE = "tracking_update"

STATUS_MAP = {
    "pending": "pending",
    "delivered_approval_pending": "in_transit",
    "partial_delivered_approval_pending": "in_transit",
    "cancelled_approval_pending": "in_transit",
    "unknown_approval_pending": "in_transit",
    "delivered": "delivered",
    "partial_delivered": "delivered",
    "cancelled": "cancelled",
    "hold": "in_transit",
    "in_review": "processing",
    "unknown": "processing",
}


def map_steadfast_status(status: Optional[str]) -> str:
    """Steadfast delivery_status -> courier status"""
    if not status:
        return "processing"
    normalized = status.strip().lower()
    if normalized in STATUS_MAP:
        return STATUS_MAP[normalized]
    if normalized.endswith("_approval_pending"):
        return "in_transit"
    return "processing"


class SteadfastCourier(CourierAdapter):
    code = "steadfast"

    def __init__(self, session: Optional[requests.Session] = None, config: Optional[Settings] = None):
        self.config = config or app_settings
        self.session = session or requests.Session()
        self.base_url = self.config.STEADFAST_BASE_URL.rstrip("/")
        self.timeout = self.config.COURIER_HTTP_TIMEOUT

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        if not self.config.STEADFAST_API_KEY or not self.config.STEADFAST_SECRET_KEY:
            raise CourierAuthError("Steadfast API credentials not configured")
        headers = {
            "Api-Key": self.config.STEADFAST_API_KEY,
            "Secret-Key": self.config.STEADFAST_SECRET_KEY,
            "Accept": "application/json",
        }
        logger.info(f"Making {method} request to Steadfast API: {path}")
        return send_vendor_request(
            VENDOR, self.session, method, f"{self.base_url}{path}", self.timeout, headers=headers, **kwargs
        )

    def build_order_payload(self, order_details, delivery_info) -> Dict[str, Any]:
        cod_amount = float(order_details.amount) if order_details.is_cod else 0
        return {
            "invoice": order_details.merchant_order_id,
            "recipient_name": delivery_info.recipient_name,
            "recipient_phone": format_bangladesh_phone(delivery_info.phone),
            "recipient_address": delivery_info.address,
            "cod_amount": cod_amount,
            "note": delivery_info.special_instructions or "",
            "item_description": order_details.item_description[:200],
        }

    def create_order(self, order_details, store_info, delivery_info) -> CourierOrderResult:
        payload = self.build_order_payload(order_details, delivery_info)
        logger.info(f"Creating Steadfast order for {order_details.merchant_order_id}")

        response = self._request("POST", "/create_order", json=payload)
        raise_for_vendor_response(VENDOR, response)

        body = response.json()
        # Validation failures come back as HTTP 200 with a non-200 body status
        if body.get("status") not in (200, "200", None):
            raise VendorRejected(f"Steadfast rejected order: {body.get('message') or body.get('errors')}", details=body)

        consignment = body.get("consignment") or {}
        consignment_id = consignment.get("consignment_id")
        if not consignment_id:
            raise VendorRejected("Steadfast response has no consignment_id", details=body)

        fee = consignment.get("delivery_fee")
        return CourierOrderResult(
            tracking_id=str(consignment_id),
            vendor_order_id=consignment.get("tracking_code"),
            delivery_fee=Decimal(str(fee)) if fee is not None else None,
            raw=body,
        )

    def track_order(self, tracking_id: str) -> TrackingInfo:
        response = self._request("GET", f"/status_by_cid/{tracking_id}")
        if response.status_code == 404:
            raise TrackingNotFound(f"Steadfast does not recognise consignment {tracking_id}")
        raise_for_vendor_response(VENDOR, response)

        body = response.json()
        delivery_status = body.get("delivery_status")
        if not delivery_status:
            raise TrackingNotFound(f"Steadfast does not recognise consignment {tracking_id}")
        return TrackingInfo(
            raw_status=map_steadfast_status(delivery_status),
            details=delivery_status.replace("_", " "),
            location=LOCATION,
        )

    def verify_webhook(self, headers: Mapping[str, str]) -> None:
        token = self.config.STEADFAST_WEBHOOK_TOKEN
        if not token:
            return
        auth_header = headers.get("Authorization") or ""
        if not secrets.compare_digest(auth_header.encode(), f"Bearer {token}".encode()):
            raise WebhookUnauthorized("Invalid Steadfast webhook token")

    def parse_webhook_event(self, payload: Any) -> Optional[CourierEvent]:
        """
        Returns None for payloads Steadfast should be told are invalid:
        missing notification_type/consignment_id, unknown notification type,
        or a delivery_status notification without a status.
        """
        if not isinstance(payload, dict):
            return None
        notification_type = payload.get("notification_type")
        consignment_id = payload.get("consignment_id")
        if not notification_type or not consignment_id:
            return None

        invoice = payload.get("invoice")
        event = CourierEvent(
            tracking_id=str(consignment_id),
            raw_status=None,
            order_id=extract_order_id(invoice),
            merchant_order_id=invoice,
            location=LOCATION,
            timestamp=parse_vendor_timestamp(payload.get("updated_at")),
        )

        if notification_type == NOTIFICATION_DELIVERY_STATUS:
            status = payload.get("status")
            if not status:
                return None
            event.raw_status = map_steadfast_status(status)
            event.details = payload.get("tracking_message") or status
            return event

        if notification_type == NOTIFICATION_TRACKING_UPDATE:
            event.details = payload.get("tracking_message")
            event.is_tracking_only = True
            return event

        logger.warning(f"Unknown Steadfast notification type: {notification_type}")
        return None
