from app.services.delivery_assignment import assign_delivery_person
from app.services.order_projection import get_order


def test_delivery_login(client, delivery_person):
    response = client.post("/api/v1/delivery/auth/login", json={"phone": "01822222222", "password": "rider-pass"})

    assert response.status_code == 200
    assert response.json()["data"]["token"]


def test_delivery_login_rejects_bad_password(client, delivery_person):
    response = client.post("/api/v1/delivery/auth/login", json={"phone": "01822222222", "password": "wrong"})
    assert response.status_code == 401


def test_verify_otp_marks_delivered(client, delivery_headers, db_session, make_order, couriers, delivery_person, notifier):
    order = make_order(status="processing", payment_status="paid")
    assign_delivery_person(db_session, order.id, delivery_person.id, notifier=notifier)
    code = notifier.last_otp(order.id)

    status = client.get("/api/v1/delivery/check-otp-status", params={"order_id": order.id}, headers=delivery_headers)
    assert status.json()["data"]["otpSent"] is True
    assert "otp" not in status.json()["data"]

    wrong = "000000" if code != "000000" else "111111"
    mismatch = client.post("/api/v1/delivery/verify-otp", json={"order_id": order.id, "otp": wrong}, headers=delivery_headers)
    assert mismatch.status_code == 400
    assert mismatch.json()["error"]["details"]["attempts_remaining"] == 4

    verified = client.post("/api/v1/delivery/verify-otp", json={"order_id": order.id, "otp": code}, headers=delivery_headers)
    assert verified.status_code == 200
    assert verified.json()["data"]["status"] == "delivered"
    db_session.expire_all()
    assert get_order(db_session, order.id).delivery_otp_verified


def test_verify_otp_requires_delivery_token(client, admin_headers):
    response = client.post("/api/v1/delivery/verify-otp", json={"order_id": 1, "otp": "123456"}, headers=admin_headers)
    assert response.status_code == 401


def test_inactive_delivery_person_cannot_log_in(client, db_session, delivery_person):
    delivery_person.status = "inactive"
    db_session.commit()

    response = client.post("/api/v1/delivery/auth/login", json={"phone": "01822222222", "password": "rider-pass"})
    assert response.status_code == 403
    assert response.json()["error"]["code"] == "ACCOUNT_INACTIVE"


def test_admin_token_rejected_by_delivery_app(client, admin_headers, make_order):
    order = make_order()
    response = client.get("/api/v1/delivery/check-otp-status", params={"order_id": order.id}, headers=admin_headers)
    assert response.status_code == 401
