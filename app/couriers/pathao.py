"""
Pathao Courier integration
Merchant API: password-grant token, store/zone/area lookup, order create,
order info and webhook events of the form "order.<event>".
"""
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional
import logging
import secrets
import threading

import requests

from app.config import Settings, settings as app_settings
from app.couriers.base import (
    CourierAdapter,
    CourierEvent,
    CourierOrderResult,
    DeliveryInfo,
    OrderDetails,
    TrackingInfo,
    extract_order_id,
    format_bangladesh_phone,
    parse_vendor_timestamp,
    raise_for_vendor_response,
    send_vendor_request,
)
from app.exceptions import CourierAuthError, TrackingNotFound, VendorRejected, WebhookUnauthorized

logger = logging.getLogger(__name__)

VENDOR = "Pathao"
SIGNATURE_HEADER = "X-PATHAO-Signature"
INTEGRATION_SECRET_HEADER = "X-Pathao-Merchant-Webhook-Integration-Secret"
HANDSHAKE_EVENT = "webhook_integration"
LOCATION = "Pathao Courier"

DELIVERY_TYPE_NORMAL = 48  # 48 hour delivery
ITEM_TYPE_PARCEL = 2
TOKEN_EXPIRY_MARGIN = timedelta(minutes=5)

# event (without the "order." prefix) -> (courier status, description)
WEBHOOK_EVENTS = {
    "created": ("pending", "Order created with courier"),
    "updated": ("pending", "Order updated"),
    "pickup-requested": ("pending", "Pickup requested"),
    "assigned-for-pickup": ("pending", "Assigned for pickup"),
    "picked": ("picked", "Order picked up"),
    "pickup": ("picked", "Order picked up"),
    "pickup-failed": ("pending", "Pickup failed"),
    "pickup-cancelled": ("cancelled", "Pickup cancelled"),
    "at-the-sorting-hub": ("in_transit", "At sorting hub"),
    "in-transit": ("in_transit", "In transit"),
    "received-at-last-mile-hub": ("in_transit", "Received at last mile hub"),
    "assigned-for-delivery": ("in_transit", "Assigned for delivery"),
    "delivered": ("delivered", "Order delivered"),
    "partial-delivery": ("delivered", "Order partially delivered"),
    "returned": ("returned", "Order returned"),
    "delivery-failed": ("in_transit", "Delivery failed"),
    "on-hold": ("in_transit", "Order on hold"),
    "paid": ("delivered", "Payment received"),
    "paid-return": ("returned", "Paid return"),
    "exchanged": ("returned", "Order exchanged"),
}


def is_handshake(payload: Any) -> bool:
    return isinstance(payload, dict) and payload.get("event") == HANDSHAKE_EVENT


def _data_list(body: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Pathao wraps lists as {"data": {"data": [...]}}"""
    data = body.get("data") if isinstance(body, dict) else None
    if isinstance(data, dict):
        data = data.get("data")
    return data if isinstance(data, list) else []


class PathaoCourier(CourierAdapter):
    code = "pathao"

    def __init__(self, session: Optional[requests.Session] = None, config: Optional[Settings] = None):
        self.config = config or app_settings
        self.session = session or requests.Session()
        self.base_url = self.config.PATHAO_BASE_URL.rstrip("/")
        self.timeout = self.config.COURIER_HTTP_TIMEOUT
        self._token: Optional[str] = None
        self._token_expires_at: Optional[datetime] = None
        self._token_lock = threading.Lock()

    # ===== Auth =====

    def _get_token(self) -> str:
        with self._token_lock:
            now = datetime.utcnow()
            if self._token and self._token_expires_at and now < self._token_expires_at:
                return self._token

            if not all([
                self.config.PATHAO_CLIENT_ID,
                self.config.PATHAO_CLIENT_SECRET,
                self.config.PATHAO_USERNAME,
                self.config.PATHAO_PASSWORD,
            ]):
                raise CourierAuthError("Pathao API credentials not configured")

            logger.info("Requesting new Pathao auth token")
            response = send_vendor_request(
                VENDOR,
                self.session,
                "POST",
                f"{self.base_url}/aladdin/api/v1/issue-token",
                self.timeout,
                json={
                    "client_id": self.config.PATHAO_CLIENT_ID,
                    "client_secret": self.config.PATHAO_CLIENT_SECRET,
                    "username": self.config.PATHAO_USERNAME,
                    "password": self.config.PATHAO_PASSWORD,
                    "grant_type": "password",
                },
                headers={"Accept": "application/json"},
            )
            # Any 4xx on the token endpoint means the credentials are wrong
            if 400 <= response.status_code < 500:
                raise CourierAuthError(f"Pathao token request refused ({response.status_code})")
            raise_for_vendor_response(VENDOR, response)

            data = response.json()
            token = data.get("access_token")
            if not token:
                raise CourierAuthError("Pathao token response has no access_token")

            expires_in = int(data.get("expires_in") or 3600)
            self._token = token
            self._token_expires_at = now + timedelta(seconds=expires_in) - TOKEN_EXPIRY_MARGIN
            return token

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        headers = {
            "Authorization": f"Bearer {self._get_token()}",
            "Accept": "application/json",
        }
        response = send_vendor_request(
            VENDOR, self.session, method, f"{self.base_url}{path}", self.timeout, headers=headers, **kwargs
        )
        if response.status_code == 401:
            # Token revoked before its expiry; next call fetches a new one
            self._token = None
        return response

    # ===== Location lookup =====

    def _resolve_store_id(self, store_info: Optional[Dict[str, Any]]) -> int:
        if store_info and store_info.get("store_id"):
            return int(store_info["store_id"])
        if self.config.PATHAO_STORE_ID:
            return self.config.PATHAO_STORE_ID

        response = self._request("GET", "/aladdin/api/v1/stores")
        raise_for_vendor_response(VENDOR, response)
        stores = _data_list(response.json())
        if not stores:
            raise VendorRejected("No Pathao store configured for this merchant")
        default = next((s for s in stores if s.get("is_default_store")), stores[0])
        return int(default["store_id"])

    def _first_id(self, path: str, key: str, label: str) -> int:
        response = self._request("GET", path)
        raise_for_vendor_response(VENDOR, response)
        rows = _data_list(response.json())
        if not rows:
            raise VendorRejected(f"Pathao returned no {label} for {path}")
        return int(rows[0][key])

    def _resolve_location(self, store_info: Optional[Dict[str, Any]]) -> Dict[str, int]:
        store_info = store_info or {}
        city_id = int(store_info.get("city_id") or self.config.PATHAO_DEFAULT_CITY_ID)
        zone_id = store_info.get("zone_id") or self._first_id(
            f"/aladdin/api/v1/cities/{city_id}/zone-list", "zone_id", "zones"
        )
        area_id = store_info.get("area_id") or self._first_id(
            f"/aladdin/api/v1/zones/{zone_id}/area-list", "area_id", "areas"
        )
        return {"city_id": city_id, "zone_id": int(zone_id), "area_id": int(area_id)}

    # ===== CourierAdapter =====

    def build_order_payload(
        self,
        order_details: OrderDetails,
        store_id: int,
        location: Dict[str, int],
        delivery_info: DeliveryInfo,
    ) -> Dict[str, Any]:
        amount_to_collect = int(round(order_details.amount)) if order_details.is_cod else 0
        return {
            "store_id": store_id,
            "merchant_order_id": order_details.merchant_order_id,
            "recipient_name": delivery_info.recipient_name,
            "recipient_phone": format_bangladesh_phone(delivery_info.phone),
            "recipient_address": delivery_info.address,
            "recipient_city": location["city_id"],
            "recipient_zone": location["zone_id"],
            "recipient_area": location["area_id"],
            "delivery_type": DELIVERY_TYPE_NORMAL,
            "item_type": ITEM_TYPE_PARCEL,
            "special_instruction": delivery_info.special_instructions or "",
            "item_quantity": order_details.item_quantity,
            "item_weight": order_details.item_weight,
            "amount_to_collect": amount_to_collect,
            "item_description": order_details.item_description[:255],
        }

    def create_order(self, order_details, store_info, delivery_info) -> CourierOrderResult:
        store_id = self._resolve_store_id(store_info)
        location = self._resolve_location(store_info)
        payload = self.build_order_payload(order_details, store_id, location, delivery_info)

        logger.info(f"Creating Pathao order for {order_details.merchant_order_id}")
        response = self._request("POST", "/aladdin/api/v1/orders", json=payload)
        raise_for_vendor_response(VENDOR, response)

        body = response.json()
        data = body.get("data") or {}
        consignment_id = data.get("consignment_id")
        if not consignment_id:
            raise VendorRejected("Pathao response has no consignment_id", details=body)

        fee = data.get("delivery_fee")
        return CourierOrderResult(
            tracking_id=str(consignment_id),
            vendor_order_id=data.get("merchant_order_id") or order_details.merchant_order_id,
            delivery_fee=Decimal(str(fee)) if fee is not None else None,
            raw=body,
        )

    def track_order(self, tracking_id: str) -> TrackingInfo:
        response = self._request("GET", f"/aladdin/api/v1/orders/{tracking_id}/info")
        if response.status_code == 404:
            raise TrackingNotFound(f"Pathao does not recognise consignment {tracking_id}")
        raise_for_vendor_response(VENDOR, response)

        data = response.json().get("data") or {}
        if not data:
            raise TrackingNotFound(f"Pathao does not recognise consignment {tracking_id}")
        raw_status = data.get("order_status_slug") or data.get("order_status")
        return TrackingInfo(
            raw_status=raw_status,
            details=data.get("order_status_text") or data.get("order_status"),
            location=data.get("current_location") or LOCATION,
            timestamp=parse_vendor_timestamp(data.get("updated_at")),
        )

    def verify_webhook(self, headers: Mapping[str, str]) -> None:
        secret = self.config.PATHAO_WEBHOOK_SECRET
        if not secret:
            return
        signature = headers.get(SIGNATURE_HEADER) or ""
        if not secrets.compare_digest(signature.encode(), secret.encode()):
            raise WebhookUnauthorized("Invalid Pathao webhook signature")

    def parse_webhook_event(self, payload: Any) -> Optional[CourierEvent]:
        if not isinstance(payload, dict) or not payload.get("event"):
            return None
        if is_handshake(payload):
            return None

        event_type = str(payload["event"]).lower()
        short_name = event_type[len("order."):] if event_type.startswith("order.") else event_type
        courier_status, details = WEBHOOK_EVENTS.get(short_name, ("pending", f"Unknown event: {event_type}"))
        if short_name not in WEBHOOK_EVENTS:
            logger.warning(f"Unknown Pathao webhook event: {event_type}")

        consignment_id = payload.get("consignment_id")
        merchant_order_id = payload.get("merchant_order_id")
        return CourierEvent(
            tracking_id=str(consignment_id) if consignment_id else None,
            raw_status=courier_status,
            order_id=extract_order_id(merchant_order_id),
            merchant_order_id=merchant_order_id,
            details=details,
            location=LOCATION,
            timestamp=parse_vendor_timestamp(payload.get("timestamp") or payload.get("updated_at")),
        )
