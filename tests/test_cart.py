from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from storefront.models.cart import CartItem


def test_adding_same_variant_merges_quantities(client: TestClient, db_session: Session, make_user, make_variant, login):
    user = make_user("merge@example.com")
    variant = make_variant(stock=10)
    login(user.email)

    first = client.post(
        "/api/v1/cart/",
        json={"product_id": variant.product_id, "variant_id": variant.id, "quantity": 1},
    )
    second = client.post(
        "/api/v1/cart/",
        json={"product_id": variant.product_id, "variant_id": variant.id, "quantity": 2},
    )

    assert first.status_code == 201
    assert second.status_code == 201
    assert second.json()["data"]["id"] == first.json()["data"]["id"]

    items = db_session.query(CartItem).filter(CartItem.user_id == user.id).all()
    assert [(item.variant_id, item.quantity) for item in items] == [(variant.id, 3)]


def test_cart_requires_a_variant(client: TestClient, make_user, make_variant, login):
    user = make_user("novariant@example.com")
    variant = make_variant(stock=10)
    login(user.email)

    response = client.post("/api/v1/cart/", json={"product_id": variant.product_id, "quantity": 1})

    assert response.status_code == 400
    assert response.json()["success"] is False


def test_cart_rejects_more_than_stock(client: TestClient, make_user, make_variant, login):
    user = make_user("overstock@example.com")
    variant = make_variant(stock=2)
    login(user.email)

    client.post("/api/v1/cart/", json={"product_id": variant.product_id, "variant_id": variant.id, "quantity": 2})
    response = client.post(
        "/api/v1/cart/",
        json={"product_id": variant.product_id, "variant_id": variant.id, "quantity": 1},
    )

    assert response.status_code == 409
    assert response.json()["errors"][0]["requested"] == 3


def test_get_update_and_remove_cart_items(client: TestClient, make_user, make_variant, login):
    user = make_user("cartflow@example.com")
    variant = make_variant(stock=10, base_price=12.5)
    login(user.email)

    added = client.post(
        "/api/v1/cart/",
        json={"product_id": variant.product_id, "variant_id": variant.id, "quantity": 2},
    )
    item_id = added.json()["data"]["id"]

    cart = client.get("/api/v1/cart/").json()["data"]
    assert cart["total_items"] == 1
    assert cart["subtotal"] == 25.0
    assert cart["items"][0]["color_name"] == "Black"

    updated = client.put(f"/api/v1/cart/{item_id}", json={"quantity": 4})
    assert updated.json()["data"]["quantity"] == 4

    removed = client.delete(f"/api/v1/cart/{item_id}")
    assert removed.status_code == 200
    assert client.get("/api/v1/cart/").json()["data"]["items"] == []

    missing = client.delete(f"/api/v1/cart/{item_id}")
    assert missing.status_code == 404


def test_cart_requires_authentication(client: TestClient):
    response = client.get("/api/v1/cart/")

    assert response.status_code == 401
