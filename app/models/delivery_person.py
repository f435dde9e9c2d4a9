"""
Delivery Person Model
Handles delivery personnel who can log in to the delivery app and complete internal deliveries
"""
from sqlalchemy import Column, String, Integer, Numeric, DateTime, Text
from sqlalchemy.orm import relationship
from datetime import datetime
from app.database import Base


class DeliveryPerson(Base):
    """
    Delivery person model for tracking delivery personnel
    """
    __tablename__ = "delivery_persons"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    phone = Column(String(20), unique=True, nullable=False, index=True)
    email = Column(String(255), unique=True, nullable=True, index=True)
    password_hash = Column(String(255), nullable=True)  # Only needed for delivery app login

    # Status
    status = Column(String(20), default="active", nullable=False)  # active, inactive
    current_orders = Column(Integer, default=0, nullable=False)
    total_orders = Column(Integer, default=0, nullable=False)
    rating = Column(Numeric(3, 2), default=5.00, nullable=True)
    notes = Column(Text, nullable=True)

    # Timestamps
    last_login = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    orders = relationship("Order", back_populates="delivery_person")

    @property
    def is_active(self) -> bool:
        return self.status == "active"

    def __repr__(self):
        return f"<DeliveryPerson {self.name} ({self.phone})>"
