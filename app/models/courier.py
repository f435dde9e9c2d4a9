"""
Courier Model
One row per vendor integration; `code` selects the adapter
"""
from sqlalchemy import Column, String, Integer, Boolean, DateTime, Text
from datetime import datetime
import enum
from app.database import Base


class CourierType(str, enum.Enum):
    EXTERNAL = "external"
    INTERNAL = "internal"


class Courier(Base):
    __tablename__ = "couriers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    code = Column(String(50), unique=True, nullable=False, index=True)  # pathao, steadfast, internal
    description = Column(Text, nullable=True)
    courier_type = Column(String(20), default=CourierType.EXTERNAL.value, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<Courier {self.name} ({self.courier_type})>"
