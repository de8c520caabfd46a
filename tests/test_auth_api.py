from app.api.routes.auth import ensure_bootstrap_admin
from app.models.user import User


def test_login_returns_token_and_user(client, admin_headers):
    resp = client.post("/auth/login", json={"email": "ADMIN@example.com", "password": "secret123"})

    assert resp.status_code == 200
    body = resp.json()
    assert body["token_type"] == "bearer"
    assert body["user"]["role"] == "ADMIN"

    me = client.get("/auth/me", headers={"Authorization": f"Bearer {body['access_token']}"})
    assert me.status_code == 200
    assert me.json()["email"] == "admin@example.com"


def test_token_endpoint_accepts_form_login(client, cashier_headers):
    resp = client.post("/auth/token", data={"username": "cashier@example.com", "password": "secret123"})

    assert resp.status_code == 200
    assert resp.json()["user"]["role"] == "CASHIER"


def test_wrong_password(client, admin_headers):
    resp = client.post("/auth/login", json={"email": "admin@example.com", "password": "nope"})

    assert resp.status_code == 401


def test_garbage_token(client):
    resp = client.get("/auth/me", headers={"Authorization": "Bearer not-a-token"})

    assert resp.status_code == 401


def test_bootstrap_admin_is_created_once(db_session):
    assert ensure_bootstrap_admin(db_session) is True
    assert ensure_bootstrap_admin(db_session) is False
    assert db_session.query(User).count() == 1


def test_admin_manages_users(client, admin_headers, cashier_headers):
    resp = client.post(
        "/users",
        json={
            "email": "new.cashier@example.com",
            "first_name": "New",
            "last_name": "Cashier",
            "password": "secret123",
            "role": "cashier",
        },
        headers=admin_headers,
    )
    assert resp.status_code == 201
    user_id = resp.json()["id"]
    assert resp.json()["role"] == "CASHIER"

    duplicate = client.post(
        "/users",
        json={
            "email": "new.cashier@example.com",
            "first_name": "Again",
            "last_name": "Cashier",
            "password": "secret123",
        },
        headers=admin_headers,
    )
    assert duplicate.status_code == 409

    assert client.get("/users", headers=cashier_headers).status_code == 403

    resp = client.patch(f"/users/{user_id}", json={"role": "ADMIN"}, headers=admin_headers)
    assert resp.json()["role"] == "ADMIN"

    assert client.delete(f"/users/{user_id}", headers=admin_headers).status_code == 200
    assert client.get(f"/users/{user_id}", headers=admin_headers).status_code == 404
