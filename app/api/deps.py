"""
Shared dependencies: delivery-app authentication and the pipeline collaborators
(courier registry, notifier, settings snapshot) that tests override.
"""
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from typing import Optional
from app.database import get_db
from app.utils.security import DELIVERY_TOKEN, decode_token
from app.models.delivery_person import DeliveryPerson
from app.services.auto_dispatch import DispatchSettings
from app.services.settings_service import load_dispatch_settings

delivery_bearer = HTTPBearer(auto_error=False)


async def get_current_delivery_person(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(delivery_bearer),
    db: Session = Depends(get_db)
) -> DeliveryPerson:
    """Get current authenticated delivery person"""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if not credentials or not credentials.credentials:
        raise credentials_exception

    payload = decode_token(credentials.credentials, DELIVERY_TOKEN)
    if payload is None:
        raise credentials_exception

    delivery_person_id = payload.get("deliveryPersonId")
    if delivery_person_id is None:
        raise credentials_exception

    delivery_person = db.query(DeliveryPerson).filter(
        DeliveryPerson.id == int(delivery_person_id)
    ).first()

    if delivery_person is None or not delivery_person.is_active:
        raise credentials_exception

    return delivery_person


def get_dispatch_settings(db: Session = Depends(get_db)) -> DispatchSettings:
    """Fresh snapshot per request so toggles apply without a restart"""
    return load_dispatch_settings(db)
