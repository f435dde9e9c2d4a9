"""
Audit trail for admin actions on orders, couriers, settings and riders
"""
from decimal import Decimal
from typing import Any, Dict, Optional, Tuple
from fastapi import Request
from sqlalchemy.orm import Session
from app.models.admin_activity_log import AdminActivityLog


def client_info(request: Optional[Request]) -> Tuple[Optional[str], Optional[str]]:
    """(ip, user agent); the first X-Forwarded-For hop wins behind a proxy"""
    if request is None:
        return None, None

    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        ip_address = forwarded.split(",")[0].strip()
    else:
        ip_address = request.client.host if request.client else None
    return ip_address, request.headers.get("user-agent")


def _json_safe(details: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if details is None:
        return None
    return {
        key: str(value) if isinstance(value, Decimal) else value
        for key, value in details.items()
    }


def log_admin_activity(
    db: Session,
    admin_id: Optional[int],
    action: str,
    entity_type: Optional[str] = None,
    entity_id: Optional[int] = None,
    details: Optional[Dict[str, Any]] = None,
    request: Optional[Request] = None
) -> AdminActivityLog:
    """
    Record an admin action and commit it.

    Actions in use: admin_login, order_status_overridden,
    courier_order_dispatched, delivery_person_assigned, delivery_otp_resent,
    courier_created, courier_updated, courier_settings_updated,
    delivery_person_created, delivery_status_updated.
    """
    ip_address, user_agent = client_info(request)
    entry = AdminActivityLog(
        admin_id=admin_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        details=_json_safe(details),
        ip_address=ip_address,
        user_agent=user_agent
    )
    db.add(entry)
    db.commit()
    return entry
