from pydantic import BaseModel, EmailStr, Field
from typing import Optional
from datetime import datetime
from decimal import Decimal


class DeliveryLogin(BaseModel):
    phone: str
    password: str


class DeliveryPersonCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    phone: str = Field(..., min_length=6, max_length=20)
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(None, min_length=6)
    notes: Optional[str] = None


class DeliveryPersonResponse(BaseModel):
    id: int
    name: str
    phone: str
    email: Optional[str] = None
    status: str
    current_orders: int
    total_orders: int
    rating: Optional[Decimal] = None
    last_login: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class OtpVerifyRequest(BaseModel):
    order_id: int
    otp: str = Field(..., min_length=4, max_length=10, pattern=r"^\d+$")
