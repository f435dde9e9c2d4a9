"""
Admin Courier Management Endpoints
"""
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session
from typing import Optional
from app.database import get_db
from app.schemas.common import ResponseModel
from app.schemas.courier import CourierCreate, CourierResponse, CourierUpdate
from app.models.admin import Admin
from app.models.courier import Courier
from app.api.admin_deps import get_current_active_admin, require_admin_or_super_admin
from app.exceptions import CourierNotFound, FulfillmentError
from app.utils.admin_activity import log_admin_activity

router = APIRouter()


def _courier_data(courier: Courier) -> dict:
    return CourierResponse.model_validate(courier).model_dump(mode="json")


@router.get("", response_model=ResponseModel)
async def list_couriers(
    is_active: Optional[bool] = Query(None),
    admin: Admin = Depends(get_current_active_admin),
    db: Session = Depends(get_db)
):
    """List courier integrations"""
    query = db.query(Courier)
    if is_active is not None:
        query = query.filter(Courier.is_active == is_active)
    couriers = query.order_by(Courier.id.asc()).all()
    return ResponseModel(success=True, data=[_courier_data(c) for c in couriers])


@router.post("", response_model=ResponseModel)
async def create_courier(
    courier_data: CourierCreate,
    request: Request,
    admin: Admin = Depends(require_admin_or_super_admin),
    db: Session = Depends(get_db)
):
    """Register a courier"""
    if db.query(Courier).filter(Courier.code == courier_data.code).first():
        raise FulfillmentError(f"Courier with code '{courier_data.code}' already exists")

    courier = Courier(
        name=courier_data.name,
        code=courier_data.code,
        description=courier_data.description,
        courier_type=courier_data.courier_type.value,
        is_active=courier_data.is_active,
    )
    db.add(courier)
    db.commit()
    db.refresh(courier)

    log_admin_activity(
        db=db,
        admin_id=admin.id,
        action="courier_created",
        entity_type="courier",
        entity_id=courier.id,
        details={"code": courier.code},
        request=request
    )
    db.refresh(courier)
    return ResponseModel(success=True, data=_courier_data(courier), message="Courier created successfully")


@router.put("/{courier_id}", response_model=ResponseModel)
async def update_courier(
    courier_id: int,
    courier_data: CourierUpdate,
    request: Request,
    admin: Admin = Depends(require_admin_or_super_admin),
    db: Session = Depends(get_db)
):
    """Update courier name, description or active flag"""
    courier = db.query(Courier).filter(Courier.id == courier_id).first()
    if not courier:
        raise CourierNotFound(f"Courier {courier_id} not found")

    changes = courier_data.model_dump(exclude_unset=True)
    for field, value in changes.items():
        setattr(courier, field, value)
    db.commit()

    log_admin_activity(
        db=db,
        admin_id=admin.id,
        action="courier_updated",
        entity_type="courier",
        entity_id=courier.id,
        details=changes,
        request=request
    )
    db.refresh(courier)
    return ResponseModel(success=True, data=_courier_data(courier), message="Courier updated successfully")
