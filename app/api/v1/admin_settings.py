"""
Admin Settings Management Endpoints
"""
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session
from app.database import get_db
from app.schemas.common import ResponseModel
from app.schemas.settings import CourierSettings, CourierSettingsUpdate
from app.models.admin import Admin
from app.models.courier import Courier
from app.api.admin_deps import get_current_active_admin, require_admin_or_super_admin
from app.exceptions import CourierNotFound
from app.services.settings_service import (
    AUTO_CREATE_COURIER_ORDER,
    DEFAULT_COURIER_ID,
    load_dispatch_settings,
    update_setting,
)
from app.utils.admin_activity import log_admin_activity

router = APIRouter()


def _courier_settings(db: Session) -> dict:
    snapshot = load_dispatch_settings(db)
    return CourierSettings(
        auto_create_courier_order=snapshot.auto_create_courier_order,
        default_courier_id=snapshot.default_courier_id,
    ).model_dump()


# ===== Courier Settings =====

@router.get("/courier", response_model=ResponseModel)
async def get_courier_settings(
    admin: Admin = Depends(get_current_active_admin),
    db: Session = Depends(get_db)
):
    """Get auto-dispatch settings"""
    return ResponseModel(
        success=True,
        data=_courier_settings(db),
        message="Courier settings retrieved successfully"
    )


@router.put("/courier", response_model=ResponseModel)
async def update_courier_settings(
    payload: CourierSettingsUpdate,
    request: Request,
    admin: Admin = Depends(require_admin_or_super_admin),
    db: Session = Depends(get_db)
):
    """Update auto-dispatch settings; applies to the next dispatch"""
    changes = payload.model_dump(exclude_unset=True)

    if changes.get("auto_create_courier_order") is not None:
        update_setting(db, AUTO_CREATE_COURIER_ORDER, changes["auto_create_courier_order"])

    if "default_courier_id" in changes:
        courier_id = changes["default_courier_id"] or None
        if courier_id is not None:
            courier = db.query(Courier).filter(Courier.id == courier_id).first()
            if not courier or not courier.is_active:
                raise CourierNotFound(f"Courier {courier_id} not found or inactive")
        update_setting(db, DEFAULT_COURIER_ID, courier_id)

    log_admin_activity(
        db=db,
        admin_id=admin.id,
        action="courier_settings_updated",
        entity_type="setting",
        details=changes,
        request=request
    )

    return ResponseModel(
        success=True,
        data=_courier_settings(db),
        message="Courier settings updated successfully"
    )
