from fastapi.testclient import TestClient

from storefront.core.security import decode_token


def _register(client: TestClient, email: str, password: str = "StrongPass1"):
    return client.post(
        "/api/v1/auth/register",
        json={
            "email": email,
            "full_name": "Register User",
            "phone": "01012345678",
            "password": password,
        },
    )


def test_register_success(client: TestClient):
    response = _register(client, "register@example.com")

    assert response.status_code == 201
    payload = response.json()
    assert payload["success"] is True
    assert payload["data"]["email"] == "register@example.com"
    assert payload["data"]["role"] == "customer"


def test_register_duplicate_email(client: TestClient):
    assert _register(client, "twice@example.com").status_code == 201

    response = _register(client, "twice@example.com")

    assert response.status_code == 409
    assert response.json()["success"] is False


def test_register_rejects_weak_password(client: TestClient):
    response = _register(client, "weak@example.com", password="alllowercase")

    assert response.status_code == 422
    assert response.json()["message"] == "Validation failed"


def test_login_success(client: TestClient):
    assert _register(client, "login@example.com").status_code == 201

    response = client.post(
        "/api/v1/auth/login",
        json={"email": "login@example.com", "password": "StrongPass1"},
    )

    assert response.status_code == 200
    payload = response.json()
    assert payload["data"]["user"]["email"] == "login@example.com"
    assert response.cookies.get("access_token") is not None
    assert decode_token(payload["data"]["access_token"])["type"] == "access"

    me = client.get("/api/v1/auth/me")
    assert me.status_code == 200
    assert me.json()["data"]["email"] == "login@example.com"


def test_bearer_token_authenticates(client: TestClient):
    _register(client, "bearer@example.com")
    token = client.post(
        "/api/v1/auth/login",
        json={"email": "bearer@example.com", "password": "StrongPass1"},
    ).json()["data"]["access_token"]
    client.cookies.clear()

    response = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 200


def test_login_failure(client: TestClient):
    _register(client, "wrongpass@example.com")

    response = client.post(
        "/api/v1/auth/login",
        json={"email": "wrongpass@example.com", "password": "WrongPass1"},
    )

    assert response.status_code == 401
    assert response.json()["success"] is False


def test_me_requires_authentication(client: TestClient):
    response = client.get("/api/v1/auth/me")

    assert response.status_code == 401
