"""
Courier and courier-order schemas
"""
from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from decimal import Decimal
from app.models.courier import CourierType


# ===== Couriers =====

class CourierCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    code: str = Field(..., min_length=1, max_length=50, pattern=r"^[a-z0-9_-]+$")
    description: Optional[str] = None
    courier_type: CourierType = CourierType.EXTERNAL
    is_active: bool = True


class CourierUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    is_active: Optional[bool] = None


class CourierResponse(BaseModel):
    id: int
    name: str
    code: str
    description: Optional[str] = None
    courier_type: str
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True


# ===== Courier orders =====

class TrackingEntryResponse(BaseModel):
    id: int
    tracking_id: str
    status: str
    details: Optional[str] = None
    location: Optional[str] = None
    timestamp: datetime
    created_at: datetime

    class Config:
        from_attributes = True


class CourierOrderResponse(BaseModel):
    id: int
    order_number: str
    status: str
    payment_status: str
    total: Decimal
    courier_id: Optional[int] = None
    courier_name: Optional[str] = None
    courier_tracking_id: Optional[str] = None
    courier_status: Optional[str] = None
    dispatch_state: str
    dispatch_error: Optional[str] = None
    dispatch_retryable: bool
    delivery_person_id: Optional[int] = None
    delivery_otp_verified: bool
    updated_at: datetime

    @classmethod
    def from_order(cls, order) -> "CourierOrderResponse":
        return cls(
            id=order.id,
            order_number=order.order_number,
            status=order.status,
            payment_status=order.payment_status,
            total=order.total,
            courier_id=order.courier_id,
            courier_name=order.courier.name if order.courier else None,
            courier_tracking_id=order.courier_tracking_id,
            courier_status=order.courier_status,
            dispatch_state=order.dispatch_state,
            dispatch_error=order.dispatch_error,
            dispatch_retryable=order.dispatch_retryable,
            delivery_person_id=order.delivery_person_id,
            delivery_otp_verified=order.delivery_otp_verified,
            updated_at=order.updated_at,
        )


class TrackingResponse(BaseModel):
    order: CourierOrderResponse
    tracking: List[TrackingEntryResponse]


class DispatchRequest(BaseModel):
    courier_id: Optional[int] = None


class StatusOverrideRequest(BaseModel):
    status: str = Field(..., min_length=1, max_length=50)
    note: Optional[str] = None


class AssignDeliveryPersonRequest(BaseModel):
    delivery_person_id: int


class DeliveryStatusUpdate(BaseModel):
    status: str
    details: Optional[str] = None
    location: Optional[str] = None
