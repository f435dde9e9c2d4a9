import inspect

from app.api.v1 import admin_courier_orders
from app.couriers.base import TrackingInfo
from app.exceptions import VendorRejected
from app.models.admin import AdminRole
from app.models.admin_activity_log import AdminActivityLog
from app.services.order_projection import get_order
from app.services.tracking_ledger import append_tracking_entry
from app.utils.security import create_admin_token

BASE = "/admin/courier-orders"


def test_requires_admin_token(client):
    assert client.get(BASE).status_code == 401
    assert client.get(BASE, headers={"Authorization": "Bearer garbage"}).status_code == 401


def test_manual_dispatch(client, admin_headers, db_session, make_order, couriers, fake_steadfast):
    order = make_order(status="processing", payment_status="paid")

    response = client.post(
        f"{BASE}/{order.id}/dispatch",
        json={"courier_id": couriers["steadfast"].id},
        headers=admin_headers,
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["courier_tracking_id"] == f"SF{order.id}"
    assert data["courier_name"] == "Steadfast"
    assert data["dispatch_state"] == "dispatched"
    assert db_session.query(AdminActivityLog).filter(AdminActivityLog.action == "courier_order_dispatched").count() == 1


def test_manual_dispatch_without_body_uses_default(client, admin_headers, make_order, couriers, fake_pathao):
    order = make_order(status="processing", payment_status="paid")

    response = client.post(f"{BASE}/{order.id}/dispatch", headers=admin_headers)

    assert response.status_code == 200
    assert fake_pathao.created == [order.merchant_order_id]


def test_manual_dispatch_reports_vendor_error(client, admin_headers, db_session, make_order, couriers, fake_pathao):
    order = make_order(status="processing", payment_status="paid")
    fake_pathao.error = VendorRejected("Pathao API error (422): invalid zone")

    response = client.post(f"{BASE}/{order.id}/dispatch", headers=admin_headers)

    assert response.status_code == 422
    assert response.json()["error"]["code"] == "COURIER_REJECTED"
    db_session.expire_all()
    assert get_order(db_session, order.id).dispatch_state == "failed"


def test_list_courier_orders(client, admin_headers, make_order, couriers):
    make_order(status="processing", courier_id=couriers["pathao"].id, courier_tracking_id="CN1")
    make_order(status="pending")

    response = client.get(BASE, headers=admin_headers, params={"courier_id": couriers["pathao"].id})

    data = response.json()["data"]
    assert [o["courier_tracking_id"] for o in data["items"]] == ["CN1"]
    assert data["pagination"]["totalItems"] == 1


def test_tracking_history(client, admin_headers, db_session, make_order, couriers):
    order = make_order(status="shipped", courier_id=couriers["pathao"].id, courier_tracking_id="CN1")
    append_tracking_entry(db_session, order.id, "CN1", "pending")
    append_tracking_entry(db_session, order.id, "CN1", "in_transit")

    response = client.get(f"{BASE}/{order.id}/tracking", headers=admin_headers)

    assert response.status_code == 200
    assert [e["status"] for e in response.json()["data"]["tracking"]] == ["in_transit", "pending"]


def test_refresh_tracking(client, admin_headers, make_order, couriers, fake_pathao):
    order = make_order(status="processing", courier_id=couriers["pathao"].id, courier_tracking_id="CN1")
    fake_pathao.tracking = TrackingInfo(raw_status="in_transit", details="On the way")

    response = client.post(f"{BASE}/{order.id}/refresh-tracking", headers=admin_headers)

    assert response.status_code == 200
    assert response.json()["data"]["order"]["status"] == "In Transit"


def test_refresh_tracking_without_courier_order(client, admin_headers, make_order):
    order = make_order()

    response = client.post(f"{BASE}/{order.id}/refresh-tracking", headers=admin_headers)

    assert response.status_code == 404
    assert response.json()["error"]["code"] == "TRACKING_NOT_AVAILABLE"


def test_status_override(client, admin_headers, make_order, notifier):
    order = make_order(status="delivered")

    response = client.put(f"{BASE}/{order.id}/status", json={"status": "processing", "note": "wrong scan"}, headers=admin_headers)

    assert response.status_code == 200
    assert response.json()["data"]["status"] == "processing"
    assert notifier.status_changes == [(order.id, "delivered", "processing")]


def test_status_override_needs_admin_role(client, db_session, make_order, admin):
    admin.role = AdminRole.MANAGER
    db_session.commit()
    headers = {"Authorization": f"Bearer {create_admin_token(admin.id, admin.role.value)}"}
    order = make_order()

    response = client.put(f"{BASE}/{order.id}/status", json={"status": "processing"}, headers=headers)

    assert response.status_code == 403


def test_internal_delivery_flow(client, admin_headers, db_session, make_order, couriers, delivery_person, notifier):
    order = make_order(status="processing", payment_status="paid")

    assigned = client.post(
        f"{BASE}/{order.id}/assign-delivery-person",
        json={"delivery_person_id": delivery_person.id},
        headers=admin_headers,
    )
    assert assigned.status_code == 200
    assert assigned.json()["data"]["courier_tracking_id"] == f"INT-{order.id}"
    assert "delivery_otp" not in assigned.json()["data"]

    refused = client.post(f"{BASE}/{order.id}/delivery-status", json={"status": "delivered"}, headers=admin_headers)
    assert refused.status_code == 400
    assert refused.json()["error"]["code"] == "OTP_REQUIRED"

    moving = client.post(f"{BASE}/{order.id}/delivery-status", json={"status": "picked"}, headers=admin_headers)
    assert moving.json()["data"]["status"] == "Picked"

    resent = client.post(f"{BASE}/{order.id}/resend-otp", headers=admin_headers)
    assert resent.status_code == 200
    assert len(notifier.otps) == 2


def test_assign_unknown_delivery_person(client, admin_headers, make_order, couriers):
    order = make_order(status="processing")

    response = client.post(f"{BASE}/{order.id}/assign-delivery-person", json={"delivery_person_id": 99}, headers=admin_headers)

    assert response.status_code == 404
    assert response.json()["error"]["code"] == "DELIVERY_PERSON_NOT_FOUND"


def test_vendor_calling_routes_run_in_threadpool():
    assert not inspect.iscoroutinefunction(admin_courier_orders.dispatch_courier_order)
    assert not inspect.iscoroutinefunction(admin_courier_orders.refresh_courier_tracking)


def test_failed_dispatch_stays_visible_without_courier(client, admin_headers, make_order, couriers, fake_pathao):
    order = make_order(status="processing", payment_status="paid")
    fake_pathao.error = ValueError("Expecting value")

    response = client.post(f"{BASE}/{order.id}/dispatch", headers=admin_headers)
    assert response.status_code == 503
    assert response.json()["error"]["code"] == "COURIER_UNAVAILABLE"

    listed = client.get(BASE, headers=admin_headers, params={"dispatch_state": "failed"})
    [item] = listed.json()["data"]["items"]
    assert item["id"] == order.id
    assert item["courier_id"] is None
