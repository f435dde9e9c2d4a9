from sqlalchemy import Column, String, Integer, Numeric, Float, Boolean, DateTime, ForeignKey, Text
from sqlalchemy.orm import relationship
from datetime import datetime
import enum
from app.database import Base


class OrderStatus(str, enum.Enum):
    """
    Canonical order statuses the pipeline branches on.
    Order.status is a free-form column: couriers may also write display labels
    such as "In Transit" or "Picked", which are treated as in-flight statuses.
    """
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class DispatchState(str, enum.Enum):
    NONE = "none"
    DISPATCHING = "dispatching"
    DISPATCHED = "dispatched"
    FAILED = "failed"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_number = Column(String(50), unique=True, nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    status = Column(String(50), default=OrderStatus.PENDING.value, nullable=False, index=True)
    payment_method = Column(String(20), default="online", nullable=False)  # 'cod', 'online'
    payment_status = Column(String(20), default=PaymentStatus.PENDING.value, nullable=False)
    total = Column(Numeric(10, 2), nullable=False)

    # Shipping snapshot taken at checkout
    shipping_name = Column(String(255), nullable=True)
    shipping_phone = Column(String(20), nullable=True)
    shipping_address = Column(Text, nullable=True)
    shipping_city = Column(String(100), nullable=True)
    shipping_post_code = Column(String(20), nullable=True)
    shipping_area = Column(String(100), nullable=True)
    shipping_landmark = Column(String(255), nullable=True)
    shipping_instructions = Column(Text, nullable=True)

    # Courier integration
    courier_id = Column(Integer, ForeignKey("couriers.id", ondelete="SET NULL"), nullable=True, index=True)
    courier_order_id = Column(String(100), nullable=True, index=True)  # merchant/vendor order reference
    courier_tracking_id = Column(String(100), nullable=True, index=True)  # set only once a courier order exists
    courier_status = Column(String(50), nullable=True)
    courier_status_at = Column(DateTime, nullable=True)  # vendor timestamp of the last applied status event
    dispatch_state = Column(String(20), default=DispatchState.NONE.value, nullable=False)
    dispatch_error = Column(Text, nullable=True)
    dispatch_retryable = Column(Boolean, default=False, nullable=False)

    # Internal delivery
    delivery_person_id = Column(Integer, ForeignKey("delivery_persons.id", ondelete="SET NULL"), nullable=True, index=True)
    delivery_otp = Column(String(10), nullable=True)
    delivery_otp_sent_at = Column(DateTime, nullable=True)
    delivery_otp_verified = Column(Boolean, default=False, nullable=False)
    delivery_otp_attempts = Column(Integer, default=0, nullable=False)

    # Bumped by every status write; status updates are compare-and-set on this column
    version = Column(Integer, default=1, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    user = relationship("User", back_populates="orders")
    courier = relationship("Courier")
    delivery_person = relationship("DeliveryPerson", back_populates="orders")
    order_items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan")

    @property
    def merchant_order_id(self) -> str:
        """Reference sent to couriers; webhooks echo it back"""
        return f"order-{self.id}"

    def __repr__(self):
        return f"<Order {self.id} status={self.status}>"


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_name = Column(String(255), nullable=False)  # Snapshot at time of order
    quantity = Column(Integer, nullable=False)
    price = Column(Numeric(10, 2), nullable=False)  # Price per unit at time of order
    weight = Column(Float, default=0.5, nullable=False)  # kg per unit

    # Relationships
    order = relationship("Order", back_populates="order_items")
