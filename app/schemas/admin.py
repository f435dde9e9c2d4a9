from pydantic import BaseModel, EmailStr
from app.models.admin import AdminRole


# Admin Authentication Schemas
class AdminLogin(BaseModel):
    email: EmailStr
    password: str


class AdminResponse(BaseModel):
    id: int
    email: str
    name: str
    role: AdminRole

    class Config:
        from_attributes = True


class AdminTokenResponse(BaseModel):
    token: str
    admin: AdminResponse
