"""
Delivery app login. Riders sign in with the phone number an admin registered.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from datetime import datetime
import logging
from app.database import get_db
from app.exceptions import AccountInactive, InvalidCredentials
from app.schemas.delivery import DeliveryLogin, DeliveryPersonResponse
from app.schemas.common import ResponseModel
from app.models.delivery_person import DeliveryPerson
from app.utils.security import verify_password, create_delivery_token

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/login", response_model=ResponseModel)
async def delivery_login(
    credentials: DeliveryLogin,
    db: Session = Depends(get_db)
):
    person = db.query(DeliveryPerson).filter(DeliveryPerson.phone == credentials.phone.strip()).first()

    if person is None or not verify_password(credentials.password, person.password_hash):
        logger.info(f"Failed delivery login for {credentials.phone}")
        raise InvalidCredentials("Invalid phone or password")
    if not person.is_active:
        raise AccountInactive("Account is inactive. Please contact admin.")

    person.last_login = datetime.utcnow()
    db.commit()
    logger.info(f"Delivery person {person.id} logged in")

    return ResponseModel(
        success=True,
        data={
            "token": create_delivery_token(person.id),
            "deliveryPerson": DeliveryPersonResponse.model_validate(person).model_dump(mode="json"),
        },
        message="Login successful"
    )
