"""
Admin Courier Order Endpoints
Dispatch, tracking, status overrides and internal delivery for orders handed to couriers
"""
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session, joinedload
from sqlalchemy import or_
from typing import Optional
import logging
from app.database import get_db
from app.schemas.common import ResponseModel
from app.schemas.courier import (
    AssignDeliveryPersonRequest,
    CourierOrderResponse,
    DeliveryStatusUpdate,
    DispatchRequest,
    StatusOverrideRequest,
    TrackingEntryResponse,
)
from app.models.admin import Admin
from app.models.order import DispatchState, Order
from app.api.admin_deps import (
    get_current_active_admin,
    require_admin_or_super_admin,
    require_manager_or_above,
)
from app.api.deps import get_dispatch_settings
from app.couriers.registry import CourierRegistry, get_courier_registry
from app.services.auto_dispatch import DispatchSettings, dispatch_order
from app.services.courier_events import refresh_tracking
from app.services.delivery_assignment import assign_delivery_person, update_delivery_status
from app.services.delivery_otp import resend_delivery_otp
from app.services.order_projection import get_order, override_status
from app.services.tracking_ledger import list_tracking
from app.utils.admin_activity import log_admin_activity
from app.utils.notifications import get_notifier
from app.utils.pagination import paginate_query

logger = logging.getLogger(__name__)

router = APIRouter()


def _order_data(order: Order) -> dict:
    return CourierOrderResponse.from_order(order).model_dump(mode="json")


def _tracking_data(entries) -> list:
    return [TrackingEntryResponse.model_validate(e).model_dump(mode="json") for e in entries]


@router.get("", response_model=ResponseModel)
async def list_courier_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    courier_id: Optional[int] = None,
    status: Optional[str] = None,
    dispatch_state: Optional[str] = None,
    search: Optional[str] = None,
    admin: Admin = Depends(get_current_active_admin),
    db: Session = Depends(get_db)
):
    """Orders handed to a courier or waiting on a failed dispatch"""
    query = db.query(Order).options(joinedload(Order.courier)).filter(
        or_(Order.courier_id.isnot(None), Order.dispatch_state != DispatchState.NONE.value)
    )

    if courier_id:
        query = query.filter(Order.courier_id == courier_id)
    if status:
        query = query.filter(Order.status == status)
    if dispatch_state:
        query = query.filter(Order.dispatch_state == dispatch_state)
    if search:
        query = query.filter(
            or_(
                Order.order_number.ilike(f"%{search}%"),
                Order.courier_tracking_id.ilike(f"%{search}%"),
            )
        )

    query = query.order_by(Order.updated_at.desc(), Order.id.desc())
    return ResponseModel(success=True, data=paginate_query(query, page, limit, _order_data))


@router.post("/{order_id}/dispatch", response_model=ResponseModel)
def dispatch_courier_order(
    order_id: int,
    request: Request,
    payload: Optional[DispatchRequest] = None,
    admin: Admin = Depends(require_manager_or_above),
    db: Session = Depends(get_db),
    dispatch_settings: DispatchSettings = Depends(get_dispatch_settings),
    registry: CourierRegistry = Depends(get_courier_registry),
    notifier=Depends(get_notifier)
):
    """
    Create the courier order now, ignoring the auto-create toggle.
    Plain def: vendor calls block, so this runs in the threadpool.
    """
    courier_id = payload.courier_id if payload else None
    result = dispatch_order(
        db,
        order_id,
        dispatch_settings,
        registry,
        notifier=notifier,
        force=True,
        courier_id=courier_id,
    )

    log_admin_activity(
        db=db,
        admin_id=admin.id,
        action="courier_order_dispatched" if result.dispatched else "courier_order_dispatch_attempted",
        entity_type="order",
        entity_id=order_id,
        details={
            "courier_id": result.courier_id,
            "tracking_id": result.tracking_id,
            "state": result.state,
            "reason": result.reason,
        },
        request=request
    )

    if result.error is not None:
        raise result.error

    order = get_order(db, order_id)
    return ResponseModel(
        success=True,
        data=_order_data(order),
        message="Courier order created" if result.dispatched else f"Order not dispatched: {result.reason}"
    )


@router.post("/{order_id}/refresh-tracking", response_model=ResponseModel)
def refresh_courier_tracking(
    order_id: int,
    admin: Admin = Depends(require_manager_or_above),
    db: Session = Depends(get_db),
    registry: CourierRegistry = Depends(get_courier_registry),
    notifier=Depends(get_notifier)
):
    """Poll the courier for the latest status"""
    order, entries = refresh_tracking(db, order_id, registry, notifier=notifier)
    return ResponseModel(
        success=True,
        data={"order": _order_data(order), "tracking": _tracking_data(entries)},
        message="Tracking refreshed"
    )


@router.get("/{order_id}/tracking", response_model=ResponseModel)
async def get_courier_tracking(
    order_id: int,
    admin: Admin = Depends(get_current_active_admin),
    db: Session = Depends(get_db)
):
    """Tracking history, newest first"""
    order = get_order(db, order_id)
    entries = list_tracking(db, order.id)
    return ResponseModel(
        success=True,
        data={"order": _order_data(order), "tracking": _tracking_data(entries)}
    )


@router.put("/{order_id}/status", response_model=ResponseModel)
async def override_order_status(
    order_id: int,
    payload: StatusOverrideRequest,
    request: Request,
    admin: Admin = Depends(require_admin_or_super_admin),
    db: Session = Depends(get_db),
    notifier=Depends(get_notifier)
):
    """Set the order status directly, bypassing the ordering rules"""
    order = override_status(
        db,
        order_id,
        payload.status,
        admin_id=admin.id,
        note=payload.note,
        request=request,
        notifier=notifier,
    )
    return ResponseModel(success=True, data=_order_data(order), message="Order status updated")


@router.post("/{order_id}/assign-delivery-person", response_model=ResponseModel)
async def assign_order_delivery_person(
    order_id: int,
    payload: AssignDeliveryPersonRequest,
    request: Request,
    admin: Admin = Depends(require_manager_or_above),
    db: Session = Depends(get_db),
    notifier=Depends(get_notifier)
):
    """Deliver with our own fleet; the customer gets a delivery OTP"""
    order = assign_delivery_person(
        db,
        order_id,
        payload.delivery_person_id,
        admin_id=admin.id,
        request=request,
        notifier=notifier,
    )
    return ResponseModel(success=True, data=_order_data(order), message="Delivery person assigned")


@router.post("/{order_id}/delivery-status", response_model=ResponseModel)
async def update_order_delivery_status(
    order_id: int,
    payload: DeliveryStatusUpdate,
    request: Request,
    admin: Admin = Depends(require_manager_or_above),
    db: Session = Depends(get_db),
    notifier=Depends(get_notifier)
):
    order = update_delivery_status(
        db,
        order_id,
        payload.status,
        details=payload.details,
        location=payload.location,
        admin_id=admin.id,
        request=request,
        notifier=notifier,
    )
    return ResponseModel(success=True, data=_order_data(order), message="Delivery status updated")


@router.post("/{order_id}/resend-otp", response_model=ResponseModel)
async def resend_order_otp(
    order_id: int,
    request: Request,
    admin: Admin = Depends(require_manager_or_above),
    db: Session = Depends(get_db),
    notifier=Depends(get_notifier)
):
    """New OTP for the customer; resets the attempt counter"""
    order = resend_delivery_otp(db, order_id, notifier=notifier)
    log_admin_activity(
        db=db,
        admin_id=admin.id,
        action="delivery_otp_resent",
        entity_type="order",
        entity_id=order_id,
        details=None,
        request=request
    )
    return ResponseModel(
        success=True,
        data={"orderId": order.id, "otpSent": True},
        message="Delivery OTP sent"
    )
