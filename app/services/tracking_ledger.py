"""
Tracking ledger: append-only history of courier events per order.
Rows are only ever inserted; nothing here updates or deletes.
"""
from datetime import datetime
from typing import List, Optional
from sqlalchemy.orm import Session
from app.models.courier_tracking import CourierTracking


def append_tracking_entry(
    db: Session,
    order_id: int,
    tracking_id: str,
    status: str,
    details: Optional[str] = None,
    location: Optional[str] = None,
    timestamp: Optional[datetime] = None,
    courier_id: Optional[int] = None,
    commit: bool = True,
) -> CourierTracking:
    """Insert one ledger row; `timestamp` defaults to ingestion time when the vendor sent none"""
    entry = CourierTracking(
        order_id=order_id,
        courier_id=courier_id,
        tracking_id=tracking_id,
        status=status,
        details=details,
        location=location,
        timestamp=timestamp or datetime.utcnow(),
    )
    db.add(entry)
    if commit:
        db.commit()
        db.refresh(entry)
    else:
        db.flush()
    return entry


def list_tracking(db: Session, order_id: int, tracking_id: Optional[str] = None) -> List[CourierTracking]:
    """Entries for an order, newest vendor timestamp first"""
    query = db.query(CourierTracking).filter(CourierTracking.order_id == order_id)
    if tracking_id:
        query = query.filter(CourierTracking.tracking_id == tracking_id)
    return query.order_by(CourierTracking.timestamp.desc(), CourierTracking.id.desc()).all()
