"""
Delivery app endpoints: delivery OTP verification
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from app.database import get_db
from app.api.deps import get_current_delivery_person
from app.models.delivery_person import DeliveryPerson
from app.schemas.common import ResponseModel
from app.schemas.delivery import OtpVerifyRequest
from app.services.delivery_otp import check_otp_status, verify_delivery_otp
from app.utils.notifications import get_notifier

router = APIRouter()


@router.post("/verify-otp", response_model=ResponseModel)
async def verify_otp(
    payload: OtpVerifyRequest,
    delivery_person: DeliveryPerson = Depends(get_current_delivery_person),
    db: Session = Depends(get_db),
    notifier=Depends(get_notifier)
):
    """Confirm the customer's OTP; marks the order delivered"""
    order = verify_delivery_otp(
        db,
        payload.order_id,
        payload.otp,
        delivery_person_id=delivery_person.id,
        notifier=notifier,
    )
    return ResponseModel(
        success=True,
        data={"orderId": order.id, "status": order.status, "otpVerified": order.delivery_otp_verified},
        message="OTP verified. Order marked as delivered."
    )


@router.get("/check-otp-status", response_model=ResponseModel)
async def otp_status(
    order_id: int = Query(..., ge=1),
    delivery_person: DeliveryPerson = Depends(get_current_delivery_person),
    db: Session = Depends(get_db)
):
    """Whether an OTP was sent or verified; never returns the code"""
    return ResponseModel(
        success=True,
        data=check_otp_status(db, order_id, delivery_person_id=delivery_person.id)
    )
