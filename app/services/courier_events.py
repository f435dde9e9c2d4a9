"""
Courier event ingestion shared by webhooks and polling refresh:
normalize -> append to ledger -> apply to the order projection.
"""
from typing import List, Optional, Tuple
import logging

from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.couriers.base import CourierEvent
from app.couriers.registry import CourierRegistry
from app.exceptions import CourierNotFound, OrderNotFound, TrackingNotAvailable
from app.models.courier_tracking import CourierTracking
from app.models.order import Order
from app.services.order_projection import apply_event, get_order
from app.services.tracking_ledger import append_tracking_entry, list_tracking
from app.utils.status_mapping import normalize_courier_status

logger = logging.getLogger(__name__)


def find_order_for_event(db: Session, event: CourierEvent) -> Optional[Order]:
    """Match by our order id, then the vendor consignment id, then the merchant reference"""
    if event.order_id:
        order = db.query(Order).filter(Order.id == event.order_id).first()
        if order:
            return order

    if event.tracking_id:
        order = db.query(Order).filter(
            or_(
                Order.courier_tracking_id == event.tracking_id,
                Order.courier_order_id == event.tracking_id,
            )
        ).first()
        if order:
            return order

    if event.merchant_order_id:
        return db.query(Order).filter(Order.courier_order_id == event.merchant_order_id).first()
    return None


def ingest_courier_event(db: Session, event: CourierEvent, notifier=None, order: Optional[Order] = None) -> Order:
    """
    Record a courier event and update the order.

    Raises OrderNotFound when no order matches; webhook callers log it and
    still acknowledge the vendor.
    """
    order = order or find_order_for_event(db, event)
    if not order:
        raise OrderNotFound(
            "No order matches courier event",
            details={
                "order_id": event.order_id,
                "tracking_id": event.tracking_id,
                "merchant_order_id": event.merchant_order_id,
            },
        )

    tracking_id = event.tracking_id or order.courier_tracking_id
    if not tracking_id:
        raise TrackingNotAvailable(f"Order {order.id} has no courier tracking id")

    if event.is_tracking_only:
        append_tracking_entry(
            db,
            order_id=order.id,
            tracking_id=tracking_id,
            status=order.courier_status or order.status,
            details=event.details,
            location=event.location,
            timestamp=event.timestamp,
            courier_id=order.courier_id,
        )
        logger.info(f"Order {order.id}: tracking update recorded ({event.details})")
        return order

    normalized = normalize_courier_status(event.raw_status, order.status)
    append_tracking_entry(
        db,
        order_id=order.id,
        tracking_id=tracking_id,
        status=event.raw_status or normalized,
        details=event.details,
        location=event.location,
        timestamp=event.timestamp,
        courier_id=order.courier_id,
    )
    return apply_event(
        db,
        order.id,
        normalized,
        raw_status=event.raw_status,
        event_time=event.timestamp,
        notifier=notifier,
    )


def refresh_tracking(
    db: Session,
    order_id: int,
    registry: CourierRegistry,
    notifier=None,
) -> Tuple[Order, List[CourierTracking]]:
    """Poll the courier and feed the answer through the webhook path"""
    order = get_order(db, order_id)
    if not order.courier_tracking_id:
        raise TrackingNotAvailable(f"Order {order_id} has no courier tracking id")
    if not order.courier:
        raise CourierNotFound(f"Order {order_id} has no courier")

    adapter = registry.for_courier(order.courier)
    tracking_id = order.courier_tracking_id

    if adapter.supports_tracking:
        info = adapter.track_order(tracking_id)
        logger.info(f"Order {order_id}: polled {order.courier.code} status {info.raw_status}")
        event = CourierEvent(
            tracking_id=tracking_id,
            raw_status=info.raw_status,
            order_id=order.id,
            details=info.details,
            location=info.location,
            timestamp=info.timestamp,
        )
        order = ingest_courier_event(db, event, notifier=notifier, order=order)

    return order, list_tracking(db, order.id, tracking_id)
