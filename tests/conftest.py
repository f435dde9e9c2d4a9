"""
Shared fixtures: in-memory SQLite, dependency overrides for the courier
registry, notifier and payment gateway, and small model factories.
"""
from decimal import Decimal
from typing import List, Optional, Tuple

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.database import Base, create_db_engine, get_db
from app.main import app
from app.couriers.base import CourierAdapter, CourierOrderResult, TrackingInfo
from app.couriers.internal import InternalCourier
from app.couriers.pathao import PathaoCourier
from app.couriers.registry import CourierRegistry, get_courier_registry
from app.couriers.steadfast import SteadfastCourier
from app.models.admin import Admin, AdminRole
from app.models.courier import Courier, CourierType
from app.models.delivery_person import DeliveryPerson
from app.models.order import Order, OrderItem
from app.models.user import User
from app.services.auto_dispatch import DispatchSettings
from app.services.payment_gateway import VERDICT_INVALID, VERDICT_VALID, get_payment_gateway
from app.utils.notifications import get_notifier
from app.utils.security import create_admin_token, create_delivery_token, get_password_hash


class FakeCourierAdapter(CourierAdapter):
    """Records create_order calls; raise `error` or answer with `tracking`"""

    def __init__(self, code: str, tracking_prefix: str = "CN"):
        self.code = code
        self.tracking_prefix = tracking_prefix
        self.created: List[str] = []
        self.error = None
        self.tracking: Optional[TrackingInfo] = None

    def create_order(self, order_details, store_info, delivery_info) -> CourierOrderResult:
        self.created.append(order_details.merchant_order_id)
        if self.error is not None:
            raise self.error
        return CourierOrderResult(
            tracking_id=f"{self.tracking_prefix}{order_details.order_id}",
            vendor_order_id=order_details.merchant_order_id,
            delivery_fee=Decimal("60"),
        )

    def track_order(self, tracking_id: str) -> TrackingInfo:
        if self.error is not None:
            raise self.error
        return self.tracking or TrackingInfo(raw_status="pending")

    def parse_webhook_event(self, payload):
        return None


class RecordingNotifier:
    def __init__(self):
        self.status_changes: List[Tuple[int, Optional[str], str]] = []
        self.otps: List[Tuple[int, str]] = []

    def order_status_changed(self, order, previous_status):
        self.status_changes.append((order.id, previous_status, order.status))

    def send_delivery_otp(self, order, code):
        self.otps.append((order.id, code))

    def last_otp(self, order_id: int) -> str:
        return [code for oid, code in self.otps if oid == order_id][-1]


class StubGateway:
    """Trusts the IPN status; the real client re-validates with SSLCommerz"""

    def __init__(self):
        self.calls = []

    def resolve_verdict(self, ipn_status, val_id):
        self.calls.append((ipn_status, val_id))
        return VERDICT_VALID if (ipn_status or "").upper() in ("VALID", "VALIDATED") else VERDICT_INVALID


@pytest.fixture
def db_session():
    engine = create_db_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def fake_pathao():
    return FakeCourierAdapter("pathao")


@pytest.fixture
def fake_steadfast():
    return FakeCourierAdapter("steadfast", tracking_prefix="SF")


@pytest.fixture
def registry(fake_pathao, fake_steadfast):
    return CourierRegistry([fake_pathao, fake_steadfast, InternalCourier()])


@pytest.fixture
def webhook_registry():
    """Real adapters: webhook parsing and verification never touch the network"""
    return CourierRegistry([PathaoCourier(), SteadfastCourier(), InternalCourier()])


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def gateway():
    return StubGateway()


@pytest.fixture
def dispatch_settings():
    return DispatchSettings(auto_create_courier_order=True, default_courier_id=None)


@pytest.fixture
def client(db_session, registry, notifier, gateway):
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_courier_registry] = lambda: registry
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


# ===== Factories =====

@pytest.fixture
def couriers(db_session):
    """Pathao, Steadfast and the internal fleet, in that id order"""
    rows = {
        "pathao": Courier(name="Pathao", code="pathao", courier_type=CourierType.EXTERNAL.value),
        "steadfast": Courier(name="Steadfast", code="steadfast", courier_type=CourierType.EXTERNAL.value),
        "internal": Courier(name="Internal Delivery", code="internal", courier_type=CourierType.INTERNAL.value),
    }
    for courier in rows.values():
        db_session.add(courier)
        db_session.commit()
    return rows


@pytest.fixture
def customer(db_session):
    user = User(first_name="Rahim", last_name="Uddin", email="rahim@example.com", phone="01711111111")
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture
def make_order(db_session, customer):
    counter = {"n": 0}

    def _make(**overrides) -> Order:
        counter["n"] += 1
        values = dict(
            order_number=f"ORD-{counter['n']:04d}",
            user_id=customer.id,
            status="pending",
            payment_method="online",
            payment_status="pending",
            total=Decimal("1250.00"),
            shipping_name="Rahim Uddin",
            shipping_phone="+8801711111111",
            shipping_address="House 12, Road 5, Dhanmondi",
            shipping_city="Dhaka",
        )
        values.update(overrides)
        order = Order(**values)
        order.order_items = [OrderItem(product_name="Rice 5kg", quantity=2, price=Decimal("625.00"), weight=5.0)]
        db_session.add(order)
        db_session.commit()
        db_session.refresh(order)
        return order

    return _make


@pytest.fixture
def delivery_person(db_session):
    person = DeliveryPerson(
        name="Karim",
        phone="01822222222",
        password_hash=get_password_hash("rider-pass"),
    )
    db_session.add(person)
    db_session.commit()
    return person


@pytest.fixture
def admin(db_session):
    row = Admin(
        email="ops@shopfront.com.bd",
        password_hash=get_password_hash("admin-pass"),
        name="Ops",
        role=AdminRole.ADMIN,
    )
    db_session.add(row)
    db_session.commit()
    return row


@pytest.fixture
def admin_headers(admin):
    return {"Authorization": f"Bearer {create_admin_token(admin.id, admin.role.value)}"}


@pytest.fixture
def delivery_headers(delivery_person):
    return {"Authorization": f"Bearer {create_delivery_token(delivery_person.id)}"}
