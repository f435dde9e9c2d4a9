"""
Settings Schemas
"""
from pydantic import BaseModel, Field
from typing import Optional


class CourierSettings(BaseModel):
    auto_create_courier_order: bool
    default_courier_id: Optional[int] = None


class CourierSettingsUpdate(BaseModel):
    auto_create_courier_order: Optional[bool] = None
    # 0 clears the default courier
    default_courier_id: Optional[int] = Field(None, ge=0)
