"""
Admin Authentication Endpoints
"""
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session
from datetime import datetime
from app.database import get_db
from app.exceptions import AccountInactive, InvalidCredentials
from app.schemas.admin import AdminLogin, AdminResponse, AdminTokenResponse
from app.schemas.common import ResponseModel
from app.models.admin import Admin
from app.utils.security import verify_password, create_admin_token
from app.api.admin_deps import get_current_active_admin
from app.utils.admin_activity import log_admin_activity

router = APIRouter()


def authenticate_admin(db: Session, email: str, password: str) -> Admin:
    """Same error for an unknown email and a wrong password"""
    admin = db.query(Admin).filter(Admin.email == email.lower()).first()
    if admin is None or not verify_password(password, admin.password_hash):
        raise InvalidCredentials("Invalid email or password")
    if not admin.is_active:
        raise AccountInactive("Admin account is inactive")
    return admin


@router.post("/login", response_model=ResponseModel)
async def admin_login(
    credentials: AdminLogin,
    request: Request,
    db: Session = Depends(get_db)
):
    """Exchange email and password for a bearer token"""
    admin = authenticate_admin(db, credentials.email, credentials.password)
    admin.last_login = datetime.utcnow()
    log_admin_activity(db=db, admin_id=admin.id, action="admin_login", request=request)

    return ResponseModel(
        success=True,
        data=AdminTokenResponse(
            token=create_admin_token(admin.id, admin.role.value),
            admin=AdminResponse.model_validate(admin),
        ).model_dump(mode="json"),
        message="Login successful"
    )


@router.get("/me", response_model=ResponseModel)
async def get_current_admin_info(
    admin: Admin = Depends(get_current_active_admin)
):
    return ResponseModel(
        success=True,
        data=AdminResponse.model_validate(admin).model_dump(mode="json")
    )
