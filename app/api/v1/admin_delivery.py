"""
Admin Delivery Management Endpoints
For managing delivery personnel
"""
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session
from sqlalchemy import or_
from typing import Optional
from app.database import get_db
from app.schemas.common import ResponseModel
from app.schemas.delivery import DeliveryPersonCreate, DeliveryPersonResponse
from app.models.delivery_person import DeliveryPerson
from app.models.admin import Admin
from app.api.admin_deps import require_manager_or_above
from app.exceptions import FulfillmentError
from app.utils.security import get_password_hash
from app.utils.admin_activity import log_admin_activity
from app.utils.pagination import paginate_query

router = APIRouter()


def _person_data(person: DeliveryPerson) -> dict:
    return DeliveryPersonResponse.model_validate(person).model_dump(mode="json")


@router.get("/persons", response_model=ResponseModel)
async def list_delivery_persons(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=500),
    search: Optional[str] = None,
    is_active: Optional[bool] = None,
    admin: Admin = Depends(require_manager_or_above),
    db: Session = Depends(get_db)
):
    """List all delivery persons with filters"""
    query = db.query(DeliveryPerson)

    if search:
        query = query.filter(
            or_(
                DeliveryPerson.name.ilike(f"%{search}%"),
                DeliveryPerson.phone.ilike(f"%{search}%"),
            )
        )

    if is_active is not None:
        query = query.filter(DeliveryPerson.status == ("active" if is_active else "inactive"))

    query = query.order_by(DeliveryPerson.id.asc())
    return ResponseModel(success=True, data=paginate_query(query, page, limit, _person_data))


@router.post("/persons", response_model=ResponseModel)
async def create_delivery_person(
    person_data: DeliveryPersonCreate,
    request: Request,
    admin: Admin = Depends(require_manager_or_above),
    db: Session = Depends(get_db)
):
    """Create a delivery person"""
    if db.query(DeliveryPerson).filter(DeliveryPerson.phone == person_data.phone).first():
        raise FulfillmentError("Phone number already registered")

    if person_data.email and db.query(DeliveryPerson).filter(DeliveryPerson.email == person_data.email).first():
        raise FulfillmentError("Email already registered")

    person = DeliveryPerson(
        name=person_data.name,
        phone=person_data.phone,
        email=person_data.email,
        password_hash=get_password_hash(person_data.password) if person_data.password else None,
        notes=person_data.notes,
    )
    db.add(person)
    db.commit()
    db.refresh(person)

    log_admin_activity(
        db=db,
        admin_id=admin.id,
        action="delivery_person_created",
        entity_type="delivery_person",
        entity_id=person.id,
        details={"name": person.name, "phone": person.phone},
        request=request
    )
    db.refresh(person)

    return ResponseModel(
        success=True,
        data=_person_data(person),
        message="Delivery person created successfully"
    )
