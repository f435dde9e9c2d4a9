"""
Delivery OTP for internally delivered orders.

States: no OTP -> sent -> verified. Only the most recently issued code
verifies. A code locks after OTP_MAX_ATTEMPTS mismatches until a resend.
The code itself is only ever handed to the notifier.
"""
from datetime import datetime
from typing import Any, Dict, Optional
import logging
import secrets
import string

from sqlalchemy.orm import Session

from app.config import settings
from app.couriers.internal import internal_tracking_id
from app.exceptions import (
    ConcurrentUpdateConflict,
    NotInternalDelivery,
    OrderClosed,
    OrderNotAssigned,
    OtpAlreadyVerified,
    OtpLocked,
    OtpMismatch,
    OtpNotFound,
)
from app.models.delivery_person import DeliveryPerson
from app.models.order import Order, OrderStatus
from app.services.order_projection import MAX_CAS_ATTEMPTS, apply_event, compare_and_set, get_order
from app.services.tracking_ledger import append_tracking_entry
from app.utils.status_mapping import TERMINAL_STATUSES, is_terminal

logger = logging.getLogger(__name__)


def generate_otp(length: Optional[int] = None) -> str:
    length = length or settings.OTP_LENGTH
    return "".join(secrets.choice(string.digits) for _ in range(length))


def _get_internal_order(db: Session, order_id: int, delivery_person_id: Optional[int] = None) -> Order:
    order = get_order(db, order_id)
    if not order.delivery_person_id:
        raise NotInternalDelivery(f"Order {order_id} is not assigned to a delivery person")
    if delivery_person_id is not None and order.delivery_person_id != delivery_person_id:
        raise OrderNotAssigned(f"Order {order_id} is not assigned to you")
    return order


def _send_otp(notifier, order: Order, code: str) -> None:
    if notifier is None:
        logger.warning(f"No notifier configured; OTP for order {order.id} was not sent")
        return
    try:
        notifier.send_delivery_otp(order, code)
    except Exception as e:
        logger.error(f"Failed to send delivery OTP for order {order.id}: {e}", exc_info=True)


def issue_delivery_otp(db: Session, order_id: int, notifier=None) -> Order:
    """Generate a fresh code, replacing any earlier one, and send it to the customer"""
    for _ in range(MAX_CAS_ATTEMPTS):
        order = _get_internal_order(db, order_id)
        if order.delivery_otp_verified:
            raise OtpAlreadyVerified(f"Delivery OTP for order {order_id} is already verified")
        if is_terminal(order.status):
            raise OrderClosed(f"Order {order_id} is {order.status}")

        code = generate_otp()
        written = compare_and_set(db, order, {
            "delivery_otp": code,
            "delivery_otp_sent_at": datetime.utcnow(),
            "delivery_otp_attempts": 0,
        })
        if written:
            logger.info(f"Delivery OTP issued for order {order_id}")
            _send_otp(notifier, order, code)
            return order
    raise ConcurrentUpdateConflict(f"Order {order_id} kept changing while issuing OTP")


def resend_delivery_otp(db: Session, order_id: int, notifier=None) -> Order:
    """Same as issuing; the previous code stops verifying"""
    logger.info(f"Resending delivery OTP for order {order_id}")
    return issue_delivery_otp(db, order_id, notifier=notifier)


def verify_delivery_otp(
    db: Session,
    order_id: int,
    code: str,
    delivery_person_id: Optional[int] = None,
    notifier=None,
) -> Order:
    """Check the submitted code; on match the order becomes delivered"""
    order = _get_internal_order(db, order_id, delivery_person_id)
    if order.delivery_otp_verified:
        raise OtpAlreadyVerified(f"Delivery OTP for order {order_id} is already verified")
    if is_terminal(order.status):
        raise OrderClosed(f"Order {order_id} is {order.status}")
    if not order.delivery_otp:
        raise OtpNotFound(f"No delivery OTP has been issued for order {order_id}")

    max_attempts = settings.OTP_MAX_ATTEMPTS
    if (order.delivery_otp_attempts or 0) >= max_attempts:
        raise OtpLocked("Too many incorrect OTP attempts. Ask for a new OTP.")

    issued_code = order.delivery_otp
    attempts_before = order.delivery_otp_attempts or 0
    submitted = (code or "").strip()
    if not secrets.compare_digest(submitted.encode(), issued_code.encode()):
        # Counted against the code that was checked; a resend resets it
        db.query(Order).filter(
            Order.id == order_id,
            Order.delivery_otp == issued_code,
        ).update(
            {"delivery_otp_attempts": Order.delivery_otp_attempts + 1},
            synchronize_session=False,
        )
        db.commit()
        remaining = max(max_attempts - attempts_before - 1, 0)
        logger.info(f"Delivery OTP mismatch for order {order_id} ({remaining} attempts left)")
        raise OtpMismatch("Invalid OTP", details={"attempts_remaining": remaining})

    rows = db.query(Order).filter(
        Order.id == order_id,
        Order.delivery_otp == issued_code,
        Order.delivery_otp_verified == False,
        Order.status.notin_(sorted(TERMINAL_STATUSES)),
    ).update(
        {
            "delivery_otp_verified": True,
            "version": Order.version + 1,
            "updated_at": datetime.utcnow(),
        },
        synchronize_session=False,
    )
    db.commit()
    if not rows:
        db.expire(order)
        order = get_order(db, order_id)
        if order.delivery_otp_verified:
            raise OtpAlreadyVerified(f"Delivery OTP for order {order_id} is already verified")
        if is_terminal(order.status):
            raise OrderClosed(f"Order {order_id} is {order.status}")
        raise OtpMismatch("Invalid OTP")

    db.refresh(order)
    logger.info(f"Delivery OTP verified for order {order_id}")

    db.query(DeliveryPerson).filter(
        DeliveryPerson.id == order.delivery_person_id,
        DeliveryPerson.current_orders > 0,
    ).update(
        {"current_orders": DeliveryPerson.current_orders - 1},
        synchronize_session=False,
    )
    db.commit()

    append_tracking_entry(
        db,
        order_id=order.id,
        tracking_id=order.courier_tracking_id or internal_tracking_id(order.id),
        status=OrderStatus.DELIVERED.value,
        details="Delivery confirmed with OTP",
        location="Customer",
        courier_id=order.courier_id,
    )
    return apply_event(
        db,
        order.id,
        OrderStatus.DELIVERED.value,
        raw_status=OrderStatus.DELIVERED.value,
        notifier=notifier,
    )


def check_otp_status(db: Session, order_id: int, delivery_person_id: Optional[int] = None) -> Dict[str, Any]:
    """OTP state for display; never includes the code"""
    order = _get_internal_order(db, order_id, delivery_person_id)
    attempts = order.delivery_otp_attempts or 0
    return {
        "orderId": order.id,
        "otpSent": order.delivery_otp is not None,
        "otpSentAt": order.delivery_otp_sent_at.isoformat() if order.delivery_otp_sent_at else None,
        "otpVerified": bool(order.delivery_otp_verified),
        "attemptsRemaining": max(settings.OTP_MAX_ATTEMPTS - attempts, 0),
        "locked": attempts >= settings.OTP_MAX_ATTEMPTS and not order.delivery_otp_verified,
    }
