from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from storefront.models.product import Product
from storefront.models.user import UserRole


def _product_payload(**overrides) -> dict:
    payload = {
        "name": "Modern Black Watch",
        "description": "Minimalist watch",
        "category": "watches",
        "base_price": 29.99,
        "variants": [
            {"color_name": "Black", "color_code": "#000000", "stock_quantity": 50},
            {"color_name": "Silver", "color_code": "#C0C0C0", "price": 34.99, "stock_quantity": 10},
        ],
    }
    payload.update(overrides)
    return payload


def test_admin_creates_product_with_variants(client: TestClient, make_user, login):
    admin = make_user("catalog-admin@example.com", role=UserRole.ADMIN)
    login(admin.email)

    response = client.post("/api/v1/products/", json=_product_payload())

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["total_stock"] == 60
    assert [variant["color_name"] for variant in data["variants"]] == ["Black", "Silver"]


def test_customer_cannot_create_product(client: TestClient, make_user, login):
    customer = make_user("shopper@example.com")
    login(customer.email)

    response = client.post("/api/v1/products/", json=_product_payload())

    assert response.status_code == 403


def test_original_price_below_base_price_is_rejected(client: TestClient, make_user, login):
    admin = make_user("discount-admin@example.com", role=UserRole.ADMIN)
    login(admin.email)

    response = client.post("/api/v1/products/", json=_product_payload(original_price=10.0))

    assert response.status_code == 422


def test_list_products_filters_by_category(client: TestClient, make_variant):
    make_variant(stock=5, category="watches")
    make_variant(stock=5, category="watches")
    make_variant(stock=5, category="bags")

    response = client.get("/api/v1/products/", params={"category": "watches", "limit": 1})

    assert response.status_code == 200
    payload = response.json()
    assert len(payload["data"]) == 1
    assert payload["meta"]["total"] == 2
    assert payload["meta"]["total_pages"] == 2


def test_inactive_products_are_hidden(client: TestClient, db_session: Session, make_variant):
    variant = make_variant(stock=5)
    db_session.query(Product).filter(Product.id == variant.product_id).update({"is_active": False})
    db_session.commit()

    response = client.get(f"/api/v1/products/{variant.product_id}")

    assert response.status_code == 404


def test_admin_updates_product_and_variant(client: TestClient, make_user, make_variant, login):
    admin = make_user("edit-admin@example.com", role=UserRole.ADMIN)
    variant = make_variant(stock=5)
    login(admin.email)

    product = client.put(f"/api/v1/products/{variant.product_id}", json={"base_price": 39.99})
    assert product.json()["data"]["base_price"] == 39.99

    updated = client.put(
        f"/api/v1/products/{variant.product_id}/variants/{variant.id}",
        json={"stock_quantity": 12},
    )
    assert updated.json()["data"]["stock_quantity"] == 12

    added = client.post(
        f"/api/v1/products/{variant.product_id}/variants",
        json={"color_name": "Navy", "stock_quantity": 3},
    )
    assert added.status_code == 201

    detail = client.get(f"/api/v1/products/{variant.product_id}").json()["data"]
    assert detail["total_stock"] == 15


def test_admin_deletes_product(client: TestClient, make_user, make_variant, login):
    admin = make_user("delete-admin@example.com", role=UserRole.ADMIN)
    variant = make_variant(stock=5)
    login(admin.email)

    assert client.delete(f"/api/v1/products/{variant.product_id}").status_code == 200
    assert client.get(f"/api/v1/products/{variant.product_id}").status_code == 404
