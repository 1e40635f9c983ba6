import pytest

import models


@pytest.fixture
def tibs(make_menu_item):
    return make_menu_item("Tibs", price=10.0)


def place_order(client, item_id, quantity=2, total=20.0, headers=None):
    return client.post(
        "/orders",
        json={
            "customer_name": "Abebe",
            "table_number": "7",
            "items": [{"menu_item_id": item_id, "quantity": quantity}],
            "total": total,
        },
        headers=headers or {},
    )


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


def test_register_login_me(client):
    resp = client.post("/register", json={"name": "Sara", "email": "sara@cafe.test", "password": "pass1234"})
    assert resp.status_code == 201
    assert resp.json()["role"] == "Customer"

    resp = client.post("/login", json={"email": "sara@cafe.test", "password": "pass1234"})
    assert resp.status_code == 200
    token = resp.json()["access_token"]

    me = client.get("/me", headers={"Authorization": f"Bearer {token}"})
    assert me.json()["email"] == "sara@cafe.test"


def test_login_wrong_password(client, make_user):
    make_user("Waiter", email="w@cafe.test", password="right-pass")
    resp = client.post("/login", json={"email": "w@cafe.test", "password": "wrong"})
    assert resp.status_code == 401


def test_invalid_token_is_rejected(client):
    resp = client.get("/menu", headers={"Authorization": "Bearer not-a-token"})
    assert resp.status_code == 401


def test_guest_places_order(client, tibs):
    resp = place_order(client, tibs.id)

    assert resp.status_code == 201
    body = resp.json()
    assert body["status"] == "Received"
    assert body["payment_status"] == "Pending"
    assert body["items"][0]["quantity"] == 2
    assert body["items"][0]["menu_item"]["name"] == "Tibs"


def test_chef_cannot_place_order(client, db, tibs, make_user, auth_headers):
    resp = place_order(client, tibs.id, headers=auth_headers(make_user("Chef")))

    assert resp.status_code == 403
    assert resp.json()["detail"] == "Chefs & Admins cannot place orders"
    assert db.query(models.Order).count() == 0


def test_order_total_mismatch_is_400(client, tibs):
    resp = place_order(client, tibs.id, total=1.0)
    assert resp.status_code == 400


def test_invalid_body_is_400(client, tibs):
    resp = client.post("/orders", json={"customer_name": "", "table_number": "1", "items": [], "total": 0})
    assert resp.status_code == 400
    assert "detail" in resp.json()


def test_order_status_flow(client, tibs, make_user, auth_headers):
    order_id = place_order(client, tibs.id).json()["id"]
    waiter = auth_headers(make_user("Waiter"))
    chef = auth_headers(make_user("Chef"))

    assert client.put(f"/orders/{order_id}/status", json={"status": "Sent to Chef"}, headers=waiter).status_code == 200
    assert client.put(f"/orders/{order_id}/status", json={"status": "Preparing"}, headers=chef).status_code == 200
    resp = client.put(f"/orders/{order_id}/status", json={"status": "Received"}, headers=chef)
    assert resp.status_code == 400

    assert client.get(f"/orders/{order_id}").json()["status"] == "Preparing"


def test_status_update_requires_login(client, tibs):
    order_id = place_order(client, tibs.id).json()["id"]
    resp = client.put(f"/orders/{order_id}/status", json={"status": "Sent to Chef"})
    assert resp.status_code == 401
    assert resp.json()["detail"] == "Login required"


def test_status_update_missing_order(client, make_user, auth_headers):
    resp = client.put("/orders/999/status", json={"status": "Ready"}, headers=auth_headers(make_user("Admin")))
    assert resp.status_code == 404


def test_payment_update(client, tibs, make_user, auth_headers):
    order_id = place_order(client, tibs.id).json()["id"]

    resp = client.put(f"/orders/{order_id}/payment", json={"payment_status": "Paid"},
                      headers=auth_headers(make_user("Chef")))
    assert resp.status_code == 403

    resp = client.put(f"/orders/{order_id}/payment", json={"payment_status": "Paid"},
                      headers=auth_headers(make_user("Waiter")))
    assert resp.status_code == 200
    assert resp.json()["payment_status"] == "Paid"
    assert resp.json()["status"] == "Received"


def test_clear_completed_and_delete(client, db, tibs, make_user, auth_headers):
    admin = auth_headers(make_user("Admin"))
    done = place_order(client, tibs.id).json()["id"]
    unpaid = place_order(client, tibs.id).json()["id"]
    db.get(models.Order, done).status = "Delivered"
    db.get(models.Order, done).payment_status = "Paid"
    db.get(models.Order, unpaid).status = "Delivered"
    db.commit()

    resp = client.post("/orders/clear-completed", headers=admin)
    assert resp.json() == {"deleted_count": 1}
    assert [o["id"] for o in client.get("/orders").json()] == [unpaid]

    assert client.delete(f"/orders/{unpaid}", headers=admin).status_code == 200
    assert client.delete(f"/orders/{unpaid}", headers=admin).status_code == 404
    assert db.query(models.OrderItem).count() == 0


def test_menu_visibility_over_http(client, make_menu_item, make_user, auth_headers):
    make_menu_item("Tibs")
    make_menu_item("Buna", is_available=False)

    assert [i["name"] for i in client.get("/menu").json()] == ["Tibs"]
    chef_view = client.get("/menu", headers=auth_headers(make_user("Chef"))).json()
    assert [i["name"] for i in chef_view] == ["Tibs", "Buna"]


def test_menu_crud_status_codes(client, image_host, make_user, auth_headers):
    chef = auth_headers(make_user("Chef"))
    item = {"name": "Shiro", "description": "Stew", "price": 9.5, "category": "Food", "image_id": "img-a"}

    assert client.post("/menu", json=item).status_code == 401
    assert client.post("/menu", json={**item, "category": "Snack"}, headers=chef).status_code == 400

    created = client.post("/menu", json=item, headers=chef)
    assert created.status_code == 201
    item_id = created.json()["id"]

    assert client.post("/menu", json=item, headers=chef).status_code == 409

    updated = client.put(f"/menu/{item_id}", json={"image_id": "img-b"}, headers=chef)
    assert updated.status_code == 200
    assert image_host.destroyed == ["img-a"]

    toggled = client.post(f"/menu/{item_id}/availability", json={"is_available": False}, headers=chef)
    assert toggled.json()["is_available"] is False
    assert client.get(f"/menu/{item_id}").status_code == 404

    assert client.delete(f"/menu/{item_id}", headers=chef).status_code == 200
    assert client.delete(f"/menu/{item_id}", headers=chef).status_code == 404
    assert image_host.destroyed == ["img-a", "img-b"]


def test_image_upload(client, image_host, make_user, auth_headers):
    resp = client.post(
        "/menu/images?filename=tibs.png",
        content=b"\x89PNG-bytes",
        headers={**auth_headers(make_user("Admin")), "Content-Type": "image/png"},
    )
    assert resp.status_code == 201
    assert resp.json()["url"] == "https://img.test/tibs.png"
    assert image_host.uploaded == [("tibs.png", b"\x89PNG-bytes", "image/png")]


def test_users_endpoints(client, make_user, auth_headers):
    admin_user = make_user("Admin")
    admin = auth_headers(admin_user)
    waiter = auth_headers(make_user("Waiter"))

    assert client.get("/users", headers=waiter).status_code == 403

    saved = client.post("/users", json={"email": "liya@cafe.test", "role": "chef"}, headers=admin)
    assert saved.status_code == 200
    assert saved.json()["role"] == "Chef"

    assert client.delete(f"/users/{admin_user.id}", headers=admin).status_code == 400
    assert client.delete(f"/users/{saved.json()['id']}", headers=admin).status_code == 200
    assert len(client.get("/users", headers=admin).json()) == 2


def test_reports(client, db, tibs, make_user, auth_headers):
    admin = auth_headers(make_user("Admin"))
    paid = place_order(client, tibs.id).json()["id"]
    unpaid = place_order(client, tibs.id, quantity=1, total=10.0).json()["id"]
    db.get(models.Order, paid).status = "Delivered"
    db.get(models.Order, paid).payment_status = "Paid"
    db.get(models.Order, unpaid).status = "Cancelled"
    db.commit()

    sales = client.get("/reports/sales", headers=admin).json()
    assert (sales["order_count"], sales["revenue"]) == (1, 20.0)

    outstanding = client.get("/reports/unpaid", headers=admin).json()
    assert (outstanding["order_count"], outstanding["outstanding"]) == (1, 10.0)

    pdf = client.get("/reports/sales.pdf", headers=admin)
    assert pdf.status_code == 200
    assert pdf.headers["content-type"] == "application/pdf"
    assert pdf.content.startswith(b"%PDF")

    assert client.get("/reports/sales", headers=auth_headers(make_user("Waiter"))).status_code == 403
