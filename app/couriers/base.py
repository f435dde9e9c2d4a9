"""
Courier adapter interface.

Every vendor integration implements CourierAdapter. Services program against
the interface and resolve the concrete adapter through the registry.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Mapping, Optional
import re

import requests

from app.exceptions import CourierAuthError, VendorRejected, VendorUnavailable

MERCHANT_ORDER_PATTERN = re.compile(r"^order-(\d+)$")
DEFAULT_BD_PHONE = "01712345678"


@dataclass
class OrderDetails:
    order_id: int
    merchant_order_id: str
    amount: Decimal
    is_cod: bool
    item_quantity: int
    item_weight: float
    item_description: str


@dataclass
class DeliveryInfo:
    recipient_name: str
    phone: Optional[str]
    address: str
    city: Optional[str] = None
    post_code: Optional[str] = None
    area: Optional[str] = None
    landmark: Optional[str] = None
    special_instructions: Optional[str] = None


@dataclass
class CourierOrderResult:
    tracking_id: str
    vendor_order_id: Optional[str] = None
    delivery_fee: Optional[Decimal] = None
    raw: Dict[str, Any] = field(default_factory=dict)


@dataclass
class TrackingInfo:
    raw_status: Optional[str]
    details: Optional[str] = None
    location: Optional[str] = None
    timestamp: Optional[datetime] = None


@dataclass
class CourierEvent:
    """Vendor event translated into the pipeline's vocabulary"""
    tracking_id: Optional[str]
    raw_status: Optional[str]
    order_id: Optional[int] = None
    merchant_order_id: Optional[str] = None
    details: Optional[str] = None
    location: Optional[str] = None
    timestamp: Optional[datetime] = None
    is_tracking_only: bool = False


class CourierAdapter(ABC):
    """Capability interface implemented once per courier vendor"""

    code: str = ""
    supports_tracking: bool = True

    @abstractmethod
    def create_order(
        self,
        order_details: OrderDetails,
        store_info: Optional[Dict[str, Any]],
        delivery_info: DeliveryInfo,
    ) -> CourierOrderResult:
        """
        Create the order with the vendor.

        Raises VendorRejected, VendorUnavailable or CourierAuthError.
        """

    @abstractmethod
    def track_order(self, tracking_id: str) -> TrackingInfo:
        """Fetch current tracking; raises TrackingNotFound for unknown ids"""

    @abstractmethod
    def parse_webhook_event(self, payload: Any) -> Optional[CourierEvent]:
        """
        Translate a webhook body. Unknown shapes never raise: they return a
        partial event or None to be ignored.
        """

    def verify_webhook(self, headers: Mapping[str, str]) -> None:
        """Raise WebhookUnauthorized when the request is not from the vendor"""


# ===== Helpers shared by HTTP adapters =====

def extract_order_id(merchant_order_id: Optional[str]) -> Optional[int]:
    """order-123 -> 123"""
    if not merchant_order_id:
        return None
    match = MERCHANT_ORDER_PATTERN.match(str(merchant_order_id).strip())
    return int(match.group(1)) if match else None


def parse_vendor_timestamp(value: Any) -> Optional[datetime]:
    """Best-effort ISO-8601 / 'YYYY-MM-DD HH:MM:SS' parsing; None when unparseable"""
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    text = str(value).strip().replace("Z", "+00:00")
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    # Ledger timestamps are naive UTC
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def format_bangladesh_phone(phone: Optional[str]) -> str:
    """Normalise to 01XXXXXXXXX; vendors reject anything else"""
    if not phone:
        return DEFAULT_BD_PHONE
    phone_str = str(phone)
    if phone_str.startswith("+") and not phone_str.startswith("+880"):
        return DEFAULT_BD_PHONE

    digits = re.sub(r"\D", "", phone_str)
    if digits.startswith("880"):
        digits = "0" + digits[3:]
    elif not digits.startswith("0"):
        digits = "0" + digits

    if not digits.startswith("01") or len(digits) != 11:
        return DEFAULT_BD_PHONE
    return digits


def raise_for_vendor_response(vendor: str, response: requests.Response) -> None:
    """Translate an HTTP error status into the courier error taxonomy"""
    if response.status_code < 400:
        return

    try:
        body = response.json()
    except ValueError:
        body = {"message": response.text[:500]}
    message = body.get("message") if isinstance(body, dict) else None
    detail = f"{vendor} API error ({response.status_code}): {message or response.reason}"

    if response.status_code in (401, 403):
        raise CourierAuthError(detail, details=body if isinstance(body, dict) else {})
    if response.status_code >= 500 or response.status_code == 429:
        raise VendorUnavailable(detail, details=body if isinstance(body, dict) else {})
    raise VendorRejected(detail, details=body if isinstance(body, dict) else {})


def send_vendor_request(
    vendor: str,
    session: requests.Session,
    method: str,
    url: str,
    timeout: float,
    **kwargs,
) -> requests.Response:
    """Issue the request, mapping transport failures to VendorUnavailable"""
    try:
        return session.request(method, url, timeout=timeout, **kwargs)
    except requests.exceptions.Timeout as e:
        raise VendorUnavailable(f"{vendor} request timed out after {timeout}s") from e
    except requests.exceptions.RequestException as e:
        raise VendorUnavailable(f"{vendor} request failed: {e}") from e
