"""
Payment confirmation (SSLCommerz IPN) feeding the fulfillment pipeline.
"""
from typing import Optional
import logging

import requests
from sqlalchemy.orm import Session

from app.config import Settings, settings as app_settings
from app.couriers.registry import CourierRegistry
from app.exceptions import ConcurrentUpdateConflict, FulfillmentError, PaymentGatewayError
from app.models.order import Order, OrderStatus, PaymentStatus
from app.services.auto_dispatch import DispatchSettings, dispatch_order
from app.services.order_projection import MAX_CAS_ATTEMPTS, apply_event, compare_and_set, get_order

logger = logging.getLogger(__name__)

VERDICT_VALID = "VALID"
VERDICT_INVALID = "INVALID"
GATEWAY_VALID_STATUSES = ("VALID", "VALIDATED")

_gateway_instance = None


class SSLCommerzClient:
    """Looks up the authoritative verdict for an IPN through the validation API"""

    def __init__(self, session: Optional[requests.Session] = None, config: Optional[Settings] = None):
        self.config = config or app_settings
        self.session = session or requests.Session()

    def validate(self, val_id: str) -> str:
        try:
            response = self.session.get(
                self.config.SSLCOMMERZ_VALIDATION_URL,
                params={
                    "val_id": val_id,
                    "store_id": self.config.SSLCOMMERZ_STORE_ID,
                    "store_passwd": self.config.SSLCOMMERZ_STORE_PASSWORD,
                    "format": "json",
                },
                timeout=self.config.COURIER_HTTP_TIMEOUT,
            )
        except requests.exceptions.RequestException as e:
            raise PaymentGatewayError(f"Payment validation request failed: {e}") from e

        if response.status_code != 200:
            raise PaymentGatewayError(f"Payment validation returned HTTP {response.status_code}")
        try:
            data = response.json()
        except ValueError as e:
            raise PaymentGatewayError("Payment validation returned invalid JSON") from e

        gateway_status = str(data.get("status") or "").upper()
        logger.info(f"Payment validation for {val_id}: {gateway_status}")
        return VERDICT_VALID if gateway_status in GATEWAY_VALID_STATUSES else VERDICT_INVALID

    def resolve_verdict(self, ipn_status: Optional[str], val_id: Optional[str]) -> str:
        """Never trust the IPN status alone; a VALID claim is re-checked with the gateway"""
        if (ipn_status or "").upper() in GATEWAY_VALID_STATUSES and val_id:
            return self.validate(val_id)
        return VERDICT_INVALID


def get_payment_gateway() -> SSLCommerzClient:
    global _gateway_instance
    if _gateway_instance is None:
        _gateway_instance = SSLCommerzClient()
    return _gateway_instance


def _set_payment_status(db: Session, order_id: int, payment_status: str) -> Optional[Order]:
    """CAS the payment status; None when it already had that value"""
    for _ in range(MAX_CAS_ATTEMPTS):
        order = get_order(db, order_id)
        if order.payment_status == payment_status:
            return None
        if compare_and_set(db, order, {"payment_status": payment_status}):
            return order
    raise ConcurrentUpdateConflict(f"Order {order_id} kept changing while recording payment")


def confirm_payment(
    db: Session,
    order_id: int,
    verdict: str,
    dispatch_settings: DispatchSettings,
    registry: CourierRegistry,
    notifier=None,
) -> Order:
    """
    Apply a payment verdict. Duplicate confirmations are absorbed.

    VALID: mark paid, move to processing, then auto-dispatch. Dispatch
    failures are recorded on the order and never fail the confirmation.
    INVALID: mark payment failed and cancel the order unless it was already paid.
    """
    order = get_order(db, order_id)

    if verdict == VERDICT_VALID:
        if not _set_payment_status(db, order_id, PaymentStatus.PAID.value):
            logger.info(f"Duplicate payment confirmation for order {order_id} ignored")
            return get_order(db, order_id)

        logger.info(f"Payment confirmed for order {order_id}")
        order = apply_event(db, order_id, OrderStatus.PROCESSING.value, notifier=notifier)
        try:
            result = dispatch_order(db, order_id, dispatch_settings, registry, notifier=notifier)
            order = result.order
        except FulfillmentError as e:
            logger.error(f"Auto-dispatch for order {order_id} could not run: {e.message}")
            order = get_order(db, order_id)
        return order

    if order.payment_status == PaymentStatus.PAID.value:
        logger.warning(f"Ignoring {verdict} payment verdict for already paid order {order_id}")
        return order

    _set_payment_status(db, order_id, PaymentStatus.FAILED.value)
    logger.info(f"Payment failed for order {order_id}")
    order = get_order(db, order_id)
    if order.status == OrderStatus.PENDING.value:
        order = apply_event(db, order_id, OrderStatus.CANCELLED.value, notifier=notifier)
    return order
