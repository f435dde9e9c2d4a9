from sqlalchemy import Column, String, Integer, Text, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship
from datetime import datetime
from app.database import Base


class CourierTracking(Base):
    """
    Append-only tracking ledger.
    Rows are matched to the order by (order_id, tracking_id); a re-dispatched
    order keeps the rows of its previous tracking id.
    """
    __tablename__ = "courier_tracking"
    __table_args__ = (
        Index("idx_courier_tracking_order_tracking", "order_id", "tracking_id"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False)
    courier_id = Column(Integer, ForeignKey("couriers.id", ondelete="SET NULL"), nullable=True)
    tracking_id = Column(String(100), nullable=False)
    status = Column(String(50), nullable=False)
    details = Column(Text, nullable=True)
    location = Column(String(255), nullable=True)
    timestamp = Column(DateTime, nullable=False)  # event time reported by the vendor
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)  # ingestion time

    # Relationships
    courier = relationship("Courier")
