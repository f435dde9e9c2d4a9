"""
Order projection updater.

Applies a normalized courier status to Order.status. Every write is a
compare-and-set on Order.version, so duplicate or concurrent deliveries of
the same event cannot regress the order or fire a notification twice.
"""
from datetime import datetime
from typing import Any, Dict, Optional
import logging

from fastapi import Request
from sqlalchemy.orm import Session

from app.exceptions import ConcurrentUpdateConflict, FulfillmentError, OrderNotFound
from app.models.order import Order
from app.utils.admin_activity import log_admin_activity
from app.utils.status_mapping import RANK_IN_FLIGHT, is_terminal, status_rank

logger = logging.getLogger(__name__)

MAX_CAS_ATTEMPTS = 5


def get_order(db: Session, order_id: int) -> Order:
    order = db.query(Order).filter(Order.id == order_id).first()
    if not order:
        raise OrderNotFound(f"Order {order_id} not found")
    return order


def compare_and_set(db: Session, order: Order, values: Dict[str, Any]) -> bool:
    """
    Write `values` only if nobody changed the order since it was read.
    Commits and refreshes `order` on success; returns False when the version moved.
    """
    values = dict(values)
    values["version"] = Order.version + 1
    values.setdefault("updated_at", datetime.utcnow())

    rows = (
        db.query(Order)
        .filter(Order.id == order.id, Order.version == order.version)
        .update(values, synchronize_session=False)
    )
    db.commit()
    if rows:
        db.refresh(order)
        return True
    db.expire(order)
    return False


def notify_status_change(notifier, order: Order, previous_status: Optional[str]) -> None:
    """Fire-and-forget; a failing notifier never fails the transition"""
    if notifier is None:
        return
    try:
        notifier.order_status_changed(order, previous_status)
    except Exception as e:
        logger.error(f"Status notification failed for order {order.id}: {e}", exc_info=True)


def _absorb_reason(order: Order, new_status: str, event_time: Optional[datetime]) -> Optional[str]:
    """Why the event must not move the order, or None when it may"""
    current = order.status
    if is_terminal(current):
        return f"order is terminal ({current})"

    current_rank = status_rank(current)
    new_rank = status_rank(new_status)
    if new_rank < current_rank:
        return f"{new_status} would downgrade {current}"

    if (
        new_rank == current_rank == RANK_IN_FLIGHT
        and event_time is not None
        and order.courier_status_at is not None
        and event_time < order.courier_status_at
    ):
        return f"event at {event_time} is older than applied status at {order.courier_status_at}"
    return None


def apply_event(
    db: Session,
    order_id: int,
    normalized_status: str,
    raw_status: Optional[str] = None,
    event_time: Optional[datetime] = None,
    notifier=None,
) -> Order:
    """
    Apply a courier event to the order projection.

    - Same status again: refreshes courier_status/updated_at only, no notification.
    - Terminal orders and downgrades: absorbed, the order is left untouched.
    - Otherwise the status is written and the notifier is called once.
    """
    for attempt in range(MAX_CAS_ATTEMPTS):
        order = get_order(db, order_id)
        previous_status = order.status
        values: Dict[str, Any] = {}

        if normalized_status == previous_status:
            changed = False
        else:
            reason = _absorb_reason(order, normalized_status, event_time)
            if reason:
                logger.info(f"Order {order_id}: ignoring status {normalized_status}: {reason}")
                return order
            values["status"] = normalized_status
            changed = True

        if raw_status:
            values["courier_status"] = raw_status
        if event_time and (order.courier_status_at is None or event_time > order.courier_status_at):
            values["courier_status_at"] = event_time

        if compare_and_set(db, order, values):
            if changed:
                logger.info(f"Order {order_id}: status {previous_status} -> {normalized_status}")
                notify_status_change(notifier, order, previous_status)
            else:
                logger.debug(f"Order {order_id}: status {normalized_status} re-applied (no-op)")
            return order

        logger.debug(f"Order {order_id}: version conflict, retrying ({attempt + 1}/{MAX_CAS_ATTEMPTS})")

    raise ConcurrentUpdateConflict(f"Order {order_id} kept changing while applying {normalized_status}")


def override_status(
    db: Session,
    order_id: int,
    new_status: str,
    admin_id: Optional[int] = None,
    note: Optional[str] = None,
    request: Optional[Request] = None,
    notifier=None,
) -> Order:
    """Administrative override; the only way out of a terminal status"""
    new_status = (new_status or "").strip()
    if not new_status:
        raise FulfillmentError("Status is required")

    for attempt in range(MAX_CAS_ATTEMPTS):
        order = get_order(db, order_id)
        previous_status = order.status
        if compare_and_set(db, order, {"status": new_status}):
            break
    else:
        raise ConcurrentUpdateConflict(f"Order {order_id} kept changing while overriding status")

    logger.warning(f"Order {order_id}: status overridden {previous_status} -> {new_status} by admin {admin_id}")
    log_admin_activity(
        db=db,
        admin_id=admin_id,
        action="order_status_overridden",
        entity_type="order",
        entity_id=order_id,
        details={"from": previous_status, "to": new_status, "note": note},
        request=request,
    )
    if previous_status != new_status:
        notify_status_change(notifier, order, previous_status)
    return order
