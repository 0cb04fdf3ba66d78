from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from storefront.models.cart import CartItem
from storefront.models.order import Order
from storefront.models.payment import Payment, PaymentStatus
from storefront.models.product import ProductVariant
from storefront.models.user import UserRole

CUSTOMER = {"full_name": "Sara Hassan", "email": "sara@example.com", "phone": "01012345678"}
SHIPPING = {"address": "22 Abbas El Akkad", "city": "Cairo", "governorate": "Cairo", "notes": "Ring twice"}


def _stock(db: Session, variant_id: int) -> int:
    db.expire_all()
    return db.get(ProductVariant, variant_id).stock_quantity


def test_guest_places_order_with_explicit_items(client: TestClient, db_session: Session, make_variant, notifications):
    variant = make_variant(stock=50, name="Modern Black Watch", base_price=29.99)

    response = client.post(
        "/api/v1/orders/",
        json={
            "customer": CUSTOMER,
            "shipping": SHIPPING,
            "items": [{"product_id": variant.product_id, "variant_id": variant.id, "quantity": 2}],
            "payment_method": "cod",
        },
    )

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["total_amount"] == 59.98
    assert data["status"] == "pending"
    assert _stock(db_session, variant.id) == 48

    order = db_session.query(Order).filter(Order.order_number == data["order_number"]).one()
    assert order.user_id is None
    assert order.customer_phone == "01012345678"
    assert order.payment.payment_status == PaymentStatus.PENDING
    assert len(notifications["placed"].calls) == 1


def test_client_supplied_price_is_ignored(client: TestClient, make_variant):
    variant = make_variant(stock=5, base_price=80.0)

    response = client.post(
        "/api/v1/orders/",
        json={
            "customer": CUSTOMER,
            "shipping": SHIPPING,
            "items": [{"product_id": variant.product_id, "variant_id": variant.id, "quantity": 1, "price": 0.01}],
        },
    )

    assert response.status_code == 201
    assert response.json()["data"]["total_amount"] == 80.0


def test_order_from_cart_clears_cart(client: TestClient, db_session: Session, make_user, make_variant, login):
    user = make_user("cartorder@example.com")
    variant = make_variant(stock=10)
    login(user.email)
    client.post("/api/v1/cart/", json={"product_id": variant.product_id, "variant_id": variant.id, "quantity": 3})

    response = client.post("/api/v1/orders/", json={"customer": CUSTOMER, "shipping": SHIPPING})

    assert response.status_code == 201
    assert db_session.query(CartItem).filter(CartItem.user_id == user.id).count() == 0
    assert _stock(db_session, variant.id) == 7
    order = db_session.query(Order).filter(Order.order_number == response.json()["data"]["order_number"]).one()
    assert order.user_id == user.id


def test_guest_without_items_is_rejected(client: TestClient):
    response = client.post("/api/v1/orders/", json={"customer": CUSTOMER, "shipping": SHIPPING})

    assert response.status_code == 400
    assert response.json()["message"] == "Order has no items"


def test_insufficient_stock_keeps_cart(client: TestClient, db_session: Session, make_user, make_variant, login):
    user = make_user("keepcart@example.com")
    variant = make_variant(stock=3)
    login(user.email)
    client.post("/api/v1/cart/", json={"product_id": variant.product_id, "variant_id": variant.id, "quantity": 3})

    db_session.query(ProductVariant).filter(ProductVariant.id == variant.id).update({"stock_quantity": 1})
    db_session.commit()

    response = client.post("/api/v1/orders/", json={"customer": CUSTOMER, "shipping": SHIPPING})

    assert response.status_code == 409
    payload = response.json()
    assert payload["success"] is False
    assert payload["errors"][0]["shortfall"] == 2
    assert db_session.query(CartItem).filter(CartItem.user_id == user.id).count() == 1
    assert db_session.query(Order).count() == 0


def test_order_detail_and_phone_tracking(client: TestClient, make_variant):
    variant = make_variant(stock=10)
    placed = client.post(
        "/api/v1/orders/",
        json={
            "customer": CUSTOMER,
            "shipping": SHIPPING,
            "items": [{"product_id": variant.product_id, "variant_id": variant.id, "quantity": 1}],
        },
    ).json()["data"]

    detail = client.get(f"/api/v1/orders/{placed['order_number']}")
    assert detail.status_code == 200
    assert detail.json()["data"]["items"][0]["quantity"] == 1
    assert detail.json()["data"]["shipping_city"] == "Cairo"

    tracked = client.get("/api/v1/orders/track", params={"phone": CUSTOMER["phone"]})
    assert [order["order_number"] for order in tracked.json()["data"]] == [placed["order_number"]]

    assert client.get("/api/v1/orders/ORD-MISSING-1").status_code == 404


def test_admin_updates_status_and_deletes(client: TestClient, db_session: Session, make_user, make_variant, login):
    admin = make_user("admin@example.com", role=UserRole.ADMIN)
    variant = make_variant(stock=10)
    placed = client.post(
        "/api/v1/orders/",
        json={
            "customer": CUSTOMER,
            "shipping": SHIPPING,
            "items": [{"product_id": variant.product_id, "variant_id": variant.id, "quantity": 2}],
        },
    ).json()["data"]
    login(admin.email)

    shipped = client.put(
        f"/api/v1/orders/{placed['order_id']}/status",
        json={"status": "shipped", "tracking_number": "EG123"},
    )
    assert shipped.status_code == 200
    assert shipped.json()["data"]["status"] == "shipped"
    assert shipped.json()["data"]["shipped_at"] is not None

    listing = client.get("/api/v1/orders/", params={"status": "shipped"})
    assert listing.json()["meta"]["total"] == 1

    deleted = client.delete(f"/api/v1/orders/{placed['order_number']}")
    assert deleted.status_code == 200
    assert db_session.query(Order).count() == 0
    assert db_session.query(Payment).count() == 0
    assert _stock(db_session, variant.id) == 8

    assert client.delete(f"/api/v1/orders/{placed['order_id']}").status_code == 404


def test_status_update_requires_admin(client: TestClient, make_user, make_variant, login):
    customer = make_user("notadmin@example.com")
    variant = make_variant(stock=10)
    placed = client.post(
        "/api/v1/orders/",
        json={
            "customer": CUSTOMER,
            "shipping": SHIPPING,
            "items": [{"product_id": variant.product_id, "variant_id": variant.id, "quantity": 1}],
        },
    ).json()["data"]
    login(customer.email)

    response = client.put(f"/api/v1/orders/{placed['order_id']}/status", json={"status": "shipped"})

    assert response.status_code == 403


def test_numeric_order_number_is_rejected(client: TestClient, db_session: Session, make_variant):
    variant = make_variant(stock=5)

    response = client.post(
        "/api/v1/orders/",
        json={
            "customer": CUSTOMER,
            "shipping": SHIPPING,
            "items": [{"product_id": variant.product_id, "variant_id": variant.id, "quantity": 1}],
            "order_number": "100042",
        },
    )

    assert response.status_code == 422
    assert db_session.query(Order).count() == 0
    assert _stock(db_session, variant.id) == 5
