from app.models.admin_activity_log import AdminActivityLog
from app.models.courier import Courier


def test_admin_login_and_me(client, admin):
    response = client.post("/admin/auth/login", json={"email": "ops@shopfront.com.bd", "password": "admin-pass"})

    assert response.status_code == 200
    token = response.json()["data"]["token"]
    me = client.get("/admin/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.json()["data"]["email"] == "ops@shopfront.com.bd"


def test_admin_login_wrong_password(client, admin):
    response = client.post("/admin/auth/login", json={"email": "ops@shopfront.com.bd", "password": "nope"})
    assert response.status_code == 401


def test_courier_crud(client, admin_headers, db_session, couriers):
    listed = client.get("/admin/couriers", headers=admin_headers)
    assert [c["code"] for c in listed.json()["data"]] == ["pathao", "steadfast", "internal"]

    created = client.post(
        "/admin/couriers",
        json={"name": "RedX", "code": "redx", "courier_type": "external"},
        headers=admin_headers,
    )
    assert created.status_code == 200
    courier_id = created.json()["data"]["id"]

    duplicate = client.post("/admin/couriers", json={"name": "RedX", "code": "redx"}, headers=admin_headers)
    assert duplicate.status_code == 400

    updated = client.put(f"/admin/couriers/{courier_id}", json={"is_active": False}, headers=admin_headers)
    assert updated.json()["data"]["is_active"] is False

    active = client.get("/admin/couriers", params={"is_active": True}, headers=admin_headers)
    assert "redx" not in [c["code"] for c in active.json()["data"]]


def test_courier_settings(client, admin_headers, couriers):
    initial = client.get("/admin/settings/courier", headers=admin_headers).json()["data"]
    assert initial["auto_create_courier_order"] is True

    response = client.put(
        "/admin/settings/courier",
        json={"auto_create_courier_order": False, "default_courier_id": couriers["steadfast"].id},
        headers=admin_headers,
    )
    data = response.json()["data"]
    assert data == {"auto_create_courier_order": False, "default_courier_id": couriers["steadfast"].id}

    cleared = client.put("/admin/settings/courier", json={"default_courier_id": 0}, headers=admin_headers)
    assert cleared.json()["data"]["default_courier_id"] is None


def test_courier_settings_rejects_unknown_courier(client, admin_headers, couriers):
    response = client.put("/admin/settings/courier", json={"default_courier_id": 404}, headers=admin_headers)
    assert response.status_code == 404


def test_delivery_persons(client, admin_headers, db_session):
    created = client.post(
        "/admin/delivery/persons",
        json={"name": "Jamal", "phone": "01544444444", "password": "rider-pass"},
        headers=admin_headers,
    )
    assert created.status_code == 200
    assert "password_hash" not in created.json()["data"]

    again = client.post("/admin/delivery/persons", json={"name": "Jamal", "phone": "01544444444"}, headers=admin_headers)
    assert again.status_code == 400

    listed = client.get("/admin/delivery/persons", params={"search": "Jam"}, headers=admin_headers)
    assert [p["phone"] for p in listed.json()["data"]["items"]] == ["01544444444"]


def test_health(client):
    assert client.get("/health").json()["status"] == "healthy"


def test_admin_login_records_forwarded_ip(client, admin, db_session):
    response = client.post(
        "/admin/auth/login",
        json={"email": "ops@shopfront.com.bd", "password": "admin-pass"},
        headers={"X-Forwarded-For": "203.0.113.7, 10.0.0.2"},
    )
    assert response.status_code == 200

    entry = db_session.query(AdminActivityLog).filter(AdminActivityLog.action == "admin_login").one()
    assert entry.admin_id == admin.id
    assert entry.ip_address == "203.0.113.7"


def test_admin_login_error_envelope(client, admin):
    response = client.post("/admin/auth/login", json={"email": "nobody@shopfront.com.bd", "password": "x"})

    body = response.json()
    assert response.status_code == 401
    assert body["success"] is False
    assert body["error"]["code"] == "INVALID_CREDENTIALS"


def test_delivery_token_cannot_reach_admin_routes(client, delivery_headers):
    response = client.get("/admin/couriers", headers=delivery_headers)
    assert response.status_code == 401
