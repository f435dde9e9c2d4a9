"""
Auto-dispatch coordinator.

Per-order state machine: none -> dispatching -> dispatched | failed.
A failed dispatch leaves the order status alone and is recovered by an
operator (manual dispatch), or retried when the failure was transient.
"""
from dataclasses import dataclass
from typing import Any, Dict, Optional
import logging

from sqlalchemy.orm import Session

from app.couriers.base import DeliveryInfo, OrderDetails
from app.couriers.registry import CourierRegistry
from app.exceptions import (
    ConcurrentUpdateConflict,
    CourierAuthError,
    CourierError,
    CourierNotFound,
    FulfillmentError,
    VendorUnavailable,
)
from app.models.courier import Courier, CourierType
from app.models.order import DispatchState, Order, OrderStatus
from app.services.order_projection import MAX_CAS_ATTEMPTS, apply_event, compare_and_set, get_order
from app.services.tracking_ledger import append_tracking_entry
from app.utils.status_mapping import is_terminal

logger = logging.getLogger(__name__)

DEFAULT_ITEM_WEIGHT = 0.5


@dataclass(frozen=True)
class DispatchSettings:
    """Settings snapshot taken when dispatch is invoked"""
    auto_create_courier_order: bool = True
    default_courier_id: Optional[int] = None


@dataclass
class DispatchResult:
    order: Order
    dispatched: bool
    state: str
    tracking_id: Optional[str] = None
    courier_id: Optional[int] = None
    reason: Optional[str] = None
    retryable: bool = False
    error: Optional[FulfillmentError] = None


def select_courier(db: Session, courier_id: Optional[int]) -> Courier:
    """The requested courier, else the first active external courier"""
    if courier_id:
        courier = db.query(Courier).filter(Courier.id == courier_id).first()
        if not courier or not courier.is_active:
            raise CourierNotFound(f"Courier {courier_id} not found or inactive")
        return courier

    courier = (
        db.query(Courier)
        .filter(Courier.is_active == True, Courier.courier_type == CourierType.EXTERNAL.value)
        .order_by(Courier.id.asc())
        .first()
    )
    if not courier:
        raise CourierNotFound("No active external courier configured")
    return courier


def build_order_details(order: Order) -> OrderDetails:
    items = order.order_items or []
    quantity = sum(item.quantity for item in items) or 1
    weight = sum((item.weight or DEFAULT_ITEM_WEIGHT) * item.quantity for item in items) or DEFAULT_ITEM_WEIGHT
    description = ", ".join(item.product_name for item in items) or f"Order {order.order_number}"
    return OrderDetails(
        order_id=order.id,
        merchant_order_id=order.merchant_order_id,
        amount=order.total,
        is_cod=order.payment_method == "cod",
        item_quantity=quantity,
        item_weight=round(weight, 2),
        item_description=description,
    )


def build_delivery_info(order: Order) -> DeliveryInfo:
    user = order.user
    return DeliveryInfo(
        recipient_name=order.shipping_name or (user.full_name if user else "") or "Customer",
        phone=order.shipping_phone or (user.phone if user else None),
        address=order.shipping_address or "",
        city=order.shipping_city,
        post_code=order.shipping_post_code,
        area=order.shipping_area,
        landmark=order.shipping_landmark,
        special_instructions=order.shipping_instructions,
    )


def _write_dispatch_fields(db: Session, order_id: int, values: Dict[str, Any]) -> Order:
    """CAS-write fields owned by the dispatcher; other writers only touch status"""
    for _ in range(MAX_CAS_ATTEMPTS):
        order = get_order(db, order_id)
        if compare_and_set(db, order, values):
            return order
    raise ConcurrentUpdateConflict(f"Order {order_id} kept changing while recording dispatch")


def _claim(db: Session, order_id: int, dispatch_settings: DispatchSettings, force: bool):
    """
    Move the order to `dispatching`.
    Returns (order, None) when claimed, or (order, reason) when dispatch must not run.
    An operator-forced dispatch may take over an order left in `dispatching`.
    The courier is only recorded once the vendor accepts the order.
    """
    for _ in range(MAX_CAS_ATTEMPTS):
        order = get_order(db, order_id)
        if not force and not dispatch_settings.auto_create_courier_order:
            return order, "automatic courier order creation is disabled"
        if order.courier_tracking_id:
            return order, f"order already has tracking id {order.courier_tracking_id}"
        if is_terminal(order.status):
            return order, f"order is {order.status}"
        if order.dispatch_state == DispatchState.DISPATCHING.value:
            if not force:
                return order, "dispatch already in progress"
            logger.warning(f"Order {order_id} was left in dispatching; operator dispatch takes it over")

        claimed = compare_and_set(db, order, {
            "dispatch_state": DispatchState.DISPATCHING.value,
            "dispatch_error": None,
            "dispatch_retryable": False,
        })
        if claimed:
            return order, None
    raise ConcurrentUpdateConflict(f"Order {order_id} kept changing while claiming dispatch")


def _fail(db: Session, order_id: int, error: FulfillmentError, courier: Optional[Courier] = None) -> DispatchResult:
    """Record `failed` so the order shows up for an operator"""
    retryable = isinstance(error, VendorUnavailable)
    via = f" via {courier.name}" if courier else ""
    if isinstance(error, CourierAuthError):
        logger.critical(f"Courier rejected our credentials while dispatching order {order_id}{via}: {error.message}")
    else:
        logger.error(f"Dispatch of order {order_id}{via} failed (retryable={retryable}): {error.message}")

    order = _write_dispatch_fields(db, order_id, {
        "dispatch_state": DispatchState.FAILED.value,
        "dispatch_error": error.message,
        "dispatch_retryable": retryable,
    })
    return DispatchResult(
        order=order,
        dispatched=False,
        state=DispatchState.FAILED.value,
        courier_id=courier.id if courier else None,
        reason=error.message,
        retryable=retryable,
        error=error,
    )


def dispatch_order(
    db: Session,
    order_id: int,
    dispatch_settings: DispatchSettings,
    registry: CourierRegistry,
    notifier=None,
    force: bool = False,
    courier_id: Optional[int] = None,
) -> DispatchResult:
    """
    Create the courier order for a paid order.

    Safe to call again for the same order (duplicate IPN, operator retry):
    an order that already has a tracking id is never sent to a courier twice.
    `force` bypasses the auto-create setting for operator-triggered dispatch.
    """
    order = get_order(db, order_id)
    if order.courier_tracking_id:
        logger.info(f"Order {order_id} already dispatched ({order.courier_tracking_id}); skipping")
        return DispatchResult(
            order=order,
            dispatched=False,
            state=order.dispatch_state,
            tracking_id=order.courier_tracking_id,
            courier_id=order.courier_id,
            reason="already dispatched",
        )
    if not force and not dispatch_settings.auto_create_courier_order:
        logger.info(f"Auto courier order creation disabled; order {order_id} left for manual dispatch")
        return DispatchResult(order=order, dispatched=False, state=order.dispatch_state, reason="auto dispatch disabled")

    try:
        courier = select_courier(db, courier_id or dispatch_settings.default_courier_id)
        adapter = registry.for_courier(courier)
    except CourierNotFound as e:
        if is_terminal(order.status) or order.dispatch_state == DispatchState.DISPATCHING.value:
            raise
        return _fail(db, order_id, e)

    order, skip_reason = _claim(db, order_id, dispatch_settings, force)
    if skip_reason:
        logger.info(f"Not dispatching order {order_id}: {skip_reason}")
        return DispatchResult(
            order=order,
            dispatched=False,
            state=order.dispatch_state,
            tracking_id=order.courier_tracking_id,
            courier_id=order.courier_id,
            reason=skip_reason,
        )

    logger.info(f"Dispatching order {order_id} via {courier.name}")
    try:
        result = adapter.create_order(build_order_details(order), None, build_delivery_info(order))
    except CourierError as e:
        return _fail(db, order_id, e, courier)
    except Exception as e:
        # Malformed vendor reply; the order must not stay in dispatching
        db.rollback()
        logger.error(f"Unexpected error creating {courier.name} order for {order_id}: {e}", exc_info=True)
        return _fail(db, order_id, VendorUnavailable(f"{courier.name} returned an unexpected response: {e}"), courier)

    order = _write_dispatch_fields(db, order_id, {
        "courier_id": courier.id,
        "courier_tracking_id": result.tracking_id,
        "courier_order_id": order.merchant_order_id,
        "courier_status": "pending",
        "dispatch_state": DispatchState.DISPATCHED.value,
        "dispatch_error": None,
        "dispatch_retryable": False,
    })
    logger.info(
        f"Order {order_id} dispatched via {courier.name}: tracking {result.tracking_id}"
        + (f", delivery fee {result.delivery_fee}" if result.delivery_fee is not None else "")
    )

    append_tracking_entry(
        db,
        order_id=order_id,
        tracking_id=result.tracking_id,
        status="pending",
        details="Order created with courier",
        location="Merchant",
        courier_id=courier.id,
    )
    order = apply_event(db, order_id, OrderStatus.PROCESSING.value, raw_status="pending", notifier=notifier)

    return DispatchResult(
        order=order,
        dispatched=True,
        state=DispatchState.DISPATCHED.value,
        tracking_id=result.tracking_id,
        courier_id=courier.id,
    )
