"""
Internal delivery: assigning delivery persons and recording their progress.
"""
from typing import Optional
import logging

from fastapi import Request
from sqlalchemy.orm import Session

from app.couriers.base import CourierEvent
from app.couriers.internal import INTERNAL_TRACKING_PREFIX, internal_tracking_id
from app.exceptions import (
    ConcurrentUpdateConflict,
    CourierNotFound,
    DeliveryPersonNotFound,
    FulfillmentError,
    NotInternalDelivery,
    OtpRequired,
)
from app.models.courier import Courier, CourierType
from app.models.delivery_person import DeliveryPerson
from app.models.order import DispatchState, Order, OrderStatus
from app.services.courier_events import ingest_courier_event
from app.services.delivery_otp import issue_delivery_otp
from app.services.order_projection import MAX_CAS_ATTEMPTS, compare_and_set, get_order
from app.utils.admin_activity import log_admin_activity
from app.utils.status_mapping import format_status_for_display, is_terminal

logger = logging.getLogger(__name__)

ASSIGNED_STATUS = "assigned"
INTERNAL_DELIVERY_STATUSES = ("picked", "in_transit", "on_hold", "returned")


def get_internal_courier(db: Session) -> Courier:
    courier = (
        db.query(Courier)
        .filter(Courier.courier_type == CourierType.INTERNAL.value, Courier.is_active == True)
        .order_by(Courier.id.asc())
        .first()
    )
    if not courier:
        raise CourierNotFound("No active internal delivery courier configured")
    return courier


def _release_delivery_person(db: Session, delivery_person_id: Optional[int]) -> None:
    """Decrement current_orders, never below zero"""
    if not delivery_person_id:
        return
    db.query(DeliveryPerson).filter(
        DeliveryPerson.id == delivery_person_id,
        DeliveryPerson.current_orders > 0,
    ).update(
        {"current_orders": DeliveryPerson.current_orders - 1},
        synchronize_session=False,
    )
    db.commit()


def assign_delivery_person(
    db: Session,
    order_id: int,
    delivery_person_id: int,
    admin_id: Optional[int] = None,
    request: Optional[Request] = None,
    notifier=None,
) -> Order:
    """Hand an order to the internal fleet and send the customer a delivery OTP"""
    person = db.query(DeliveryPerson).filter(DeliveryPerson.id == delivery_person_id).first()
    if not person:
        raise DeliveryPersonNotFound(f"Delivery person {delivery_person_id} not found")
    if not person.is_active:
        raise FulfillmentError(f"Delivery person {person.name} is not active")
    courier = get_internal_courier(db)

    for _ in range(MAX_CAS_ATTEMPTS):
        order = get_order(db, order_id)
        if is_terminal(order.status):
            raise FulfillmentError(f"Cannot assign a delivery person to a {order.status} order")
        if order.courier_tracking_id and not order.courier_tracking_id.startswith(INTERNAL_TRACKING_PREFIX):
            raise FulfillmentError(
                f"Order {order_id} is already dispatched with an external courier ({order.courier_tracking_id})"
            )

        previous_person_id = order.delivery_person_id
        written = compare_and_set(db, order, {
            "delivery_person_id": person.id,
            "courier_id": courier.id,
            "courier_tracking_id": internal_tracking_id(order.id),
            "courier_order_id": order.merchant_order_id,
            "courier_status": ASSIGNED_STATUS,
            "dispatch_state": DispatchState.DISPATCHED.value,
            "dispatch_error": None,
            "dispatch_retryable": False,
        })
        if written:
            break
    else:
        raise ConcurrentUpdateConflict(f"Order {order_id} kept changing while assigning delivery person")

    if previous_person_id != person.id:
        db.query(DeliveryPerson).filter(DeliveryPerson.id == person.id).update(
            {
                "current_orders": DeliveryPerson.current_orders + 1,
                "total_orders": DeliveryPerson.total_orders + 1,
            },
            synchronize_session=False,
        )
        db.commit()
        _release_delivery_person(db, previous_person_id)

    logger.info(f"Order {order_id} assigned to delivery person {person.id} (previous: {previous_person_id})")

    event = CourierEvent(
        tracking_id=internal_tracking_id(order.id),
        raw_status=ASSIGNED_STATUS,
        order_id=order.id,
        details=f"Assigned to {person.name}",
        location="Warehouse",
    )
    order = ingest_courier_event(db, event, notifier=notifier, order=order)

    log_admin_activity(
        db=db,
        admin_id=admin_id,
        action="delivery_person_assigned",
        entity_type="order",
        entity_id=order_id,
        details={"delivery_person_id": person.id, "previous_delivery_person_id": previous_person_id},
        request=request,
    )

    return issue_delivery_otp(db, order_id, notifier=notifier)


def update_delivery_status(
    db: Session,
    order_id: int,
    status: str,
    details: Optional[str] = None,
    location: Optional[str] = None,
    admin_id: Optional[int] = None,
    request: Optional[Request] = None,
    notifier=None,
) -> Order:
    """
    Record progress of an internal delivery.
    "delivered" is refused: only OTP verification completes an internal delivery.
    """
    status = (status or "").strip().lower()
    if status == OrderStatus.DELIVERED.value:
        raise OtpRequired("Internal deliveries are completed by verifying the customer's OTP")
    if status not in INTERNAL_DELIVERY_STATUSES:
        raise FulfillmentError(
            f"Invalid delivery status '{status}'",
            details={"allowed": list(INTERNAL_DELIVERY_STATUSES)},
        )

    order = get_order(db, order_id)
    if not order.delivery_person_id:
        raise NotInternalDelivery(f"Order {order_id} is not assigned to a delivery person")

    previous_status = order.status
    event = CourierEvent(
        tracking_id=order.courier_tracking_id or internal_tracking_id(order.id),
        raw_status=status,
        order_id=order.id,
        details=details or format_status_for_display(status),
        location=location,
    )
    order = ingest_courier_event(db, event, notifier=notifier, order=order)

    if order.status == OrderStatus.CANCELLED.value and previous_status != order.status:
        _release_delivery_person(db, order.delivery_person_id)

    log_admin_activity(
        db=db,
        admin_id=admin_id,
        action="delivery_status_updated",
        entity_type="order",
        entity_id=order_id,
        details={"status": status, "order_status": order.status},
        request=request,
    )
    return order
