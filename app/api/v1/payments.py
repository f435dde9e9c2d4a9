"""
Payment gateway callbacks
"""
from fastapi import APIRouter, Depends, Form
from sqlalchemy.orm import Session
from typing import Optional
import logging
from app.database import get_db
from app.api.deps import get_dispatch_settings
from app.couriers.registry import CourierRegistry, get_courier_registry
from app.exceptions import FulfillmentError
from app.schemas.common import ResponseModel
from app.services.auto_dispatch import DispatchSettings
from app.services.payment_gateway import SSLCommerzClient, confirm_payment, get_payment_gateway
from app.utils.notifications import get_notifier

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/ipn", response_model=ResponseModel)
def payment_ipn(
    status: Optional[str] = Form(None),
    val_id: Optional[str] = Form(None),
    tran_id: Optional[str] = Form(None),
    value_a: Optional[str] = Form(None),
    db: Session = Depends(get_db),
    gateway: SSLCommerzClient = Depends(get_payment_gateway),
    dispatch_settings: DispatchSettings = Depends(get_dispatch_settings),
    registry: CourierRegistry = Depends(get_courier_registry),
    notifier=Depends(get_notifier)
):
    """
    Instant payment notification. value_a carries our order id.
    The gateway may deliver the same notification more than once.
    """
    logger.info(f"Payment IPN received: status={status}, tran_id={tran_id}, order={value_a}")
    try:
        order_id = int(value_a)
    except (TypeError, ValueError):
        raise FulfillmentError("IPN is missing a valid order reference (value_a)")

    verdict = gateway.resolve_verdict(status, val_id)
    order = confirm_payment(db, order_id, verdict, dispatch_settings, registry, notifier=notifier)

    return ResponseModel(
        success=True,
        data={
            "orderId": order.id,
            "verdict": verdict,
            "paymentStatus": order.payment_status,
            "status": order.status,
            "courierTrackingId": order.courier_tracking_id,
            "dispatchState": order.dispatch_state,
        },
        message="IPN processed"
    )
