"""
Admin Dependencies for Authentication and Authorization
"""
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from typing import List, Optional
import logging
from app.database import get_db
from app.utils.security import ADMIN_TOKEN, decode_token
from app.models.admin import Admin, AdminRole

logger = logging.getLogger(__name__)

# HTTPBearer for Swagger UI's Authorize button
http_bearer = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_admin(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(http_bearer),
    db: Session = Depends(get_db)
) -> Admin:
    """Get current authenticated admin"""
    if not credentials or not credentials.credentials:
        raise _unauthorized("No token provided")

    payload = decode_token(credentials.credentials, ADMIN_TOKEN)
    if payload is None:
        logger.debug("Admin token decode failed - invalid or expired token")
        raise _unauthorized("Invalid or expired token")

    admin_id = payload.get("adminId")
    if admin_id is None:
        raise _unauthorized("Token missing admin ID")

    try:
        admin_id = int(admin_id)
    except (TypeError, ValueError):
        raise _unauthorized("Invalid admin ID format")

    admin = db.query(Admin).filter(Admin.id == admin_id).first()
    if admin is None:
        logger.warning(f"Token for unknown admin {admin_id}")
        raise _unauthorized("Admin not found")

    return admin


async def get_current_active_admin(
    current_admin: Admin = Depends(get_current_admin)
) -> Admin:
    """Get current active admin"""
    if not current_admin.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin account is inactive"
        )
    return current_admin


def require_role(allowed_roles: List[AdminRole]):
    """
    Dependency factory for role-based access control

    Usage:
        @router.put("/endpoint")
        async def endpoint(admin: Admin = Depends(require_role([AdminRole.SUPER_ADMIN, AdminRole.ADMIN]))):
            ...
    """
    async def role_checker(
        current_admin: Admin = Depends(get_current_active_admin)
    ) -> Admin:
        if current_admin.role not in allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Required roles: {[r.value for r in allowed_roles]}"
            )
        return current_admin

    return role_checker


# Courier settings and status overrides
require_admin_or_super_admin = require_role([AdminRole.SUPER_ADMIN, AdminRole.ADMIN])

# Dispatch, assignment, tracking refresh
require_manager_or_above = require_role([AdminRole.SUPER_ADMIN, AdminRole.ADMIN, AdminRole.MANAGER])
