from app.models.user import User
from app.models.admin import Admin
from app.models.admin_activity_log import AdminActivityLog
from app.models.courier import Courier
from app.models.courier_tracking import CourierTracking
from app.models.delivery_person import DeliveryPerson
from app.models.order import Order, OrderItem
from app.models.settings import Setting

__all__ = [
    "User",
    "Admin",
    "AdminActivityLog",
    "Courier",
    "CourierTracking",
    "DeliveryPerson",
    "Order",
    "OrderItem",
    "Setting",
]
