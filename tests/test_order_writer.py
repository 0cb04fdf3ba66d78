import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from storefront.core.exceptions import (
    DuplicateOrderNumber,
    EmptyOrder,
    InsufficientStock,
    MissingVariant,
    OrderNotFound,
    OrderWriteFailed,
    VariantNotFound,
)
from storefront.models.order import Order, OrderItem, OrderStatus
from storefront.models.product import ProductVariant
from storefront.schemas.order import CustomerInfo, OrderItemIn, OrderLine, OrderPlacement, ShippingInfo
from storefront.services import inventory_service, order_service


def _placement(lines, order_number=None, payment_method="cod") -> OrderPlacement:
    return OrderPlacement(
        customer=CustomerInfo(full_name="Mona Adel", email="mona@example.com", phone="01011112222"),
        shipping=ShippingInfo(address="12 Tahrir St", city="Cairo", governorate="Cairo"),
        lines=lines,
        payment_method=payment_method,
        order_number=order_number,
    )


def _line(variant: ProductVariant, quantity: int, unit_price: float = 29.99) -> OrderLine:
    return OrderLine(
        product_id=variant.product_id,
        variant_id=variant.id,
        quantity=quantity,
        unit_price=unit_price,
        product_name=variant.product.name,
        color_name=variant.color_name,
    )


def _stock(db: Session, variant_id: int) -> int:
    db.expire_all()
    return db.query(ProductVariant).filter(ProductVariant.id == variant_id).one().stock_quantity


def test_empty_order_is_rejected(db_session: Session):
    with pytest.raises(EmptyOrder):
        order_service.place_order(db_session, _placement([]))

    assert db_session.query(Order).count() == 0


def test_line_without_variant_is_rejected(db_session: Session, make_variant):
    variant = make_variant(stock=5)
    lines = [
        _line(variant, 1),
        OrderLine(product_id=variant.product_id, variant_id=None, quantity=1, unit_price=10.0, product_name="Loose"),
    ]

    with pytest.raises(MissingVariant) as exc_info:
        order_service.place_order(db_session, _placement(lines))

    assert exc_info.value.status_code == 400
    assert _stock(db_session, variant.id) == 5
    assert db_session.query(Order).count() == 0


def test_order_writes_header_items_and_deducts_stock(db_session: Session, make_variant):
    watch = make_variant(stock=50, name="Modern Black Watch")
    wallet = make_variant(stock=20, name="Leather Wallet", base_price=15.5)

    order = order_service.place_order(
        db_session,
        _placement([_line(watch, 2, 29.99), _line(wallet, 1, 15.5)]),
    )

    assert order.id is not None
    assert order.order_number.startswith("ORD-")
    assert order.status == OrderStatus.PENDING
    assert order.stock_deducted is True
    assert order.total_amount == pytest.approx(75.48)
    assert [(item.product_name, item.quantity) for item in order.items] == [
        ("Modern Black Watch", 2),
        ("Leather Wallet", 1),
    ]
    assert _stock(db_session, watch.id) == 48
    assert _stock(db_session, wallet.id) == 19


def test_quantities_for_the_same_variant_are_checked_together(db_session: Session, make_variant):
    variant = make_variant(stock=3)

    with pytest.raises(InsufficientStock) as exc_info:
        order_service.place_order(db_session, _placement([_line(variant, 2), _line(variant, 2)]))

    assert exc_info.value.lines[0]["requested"] == 4
    assert exc_info.value.lines[0]["available"] == 3
    assert _stock(db_session, variant.id) == 3


def test_insufficient_stock_leaves_everything_unchanged(db_session: Session, make_variant, notifications):
    plenty = make_variant(stock=10)
    scarce = make_variant(stock=1, name="Scarce Scarf")

    with pytest.raises(InsufficientStock) as exc_info:
        order_service.place_order(db_session, _placement([_line(plenty, 2), _line(scarce, 3)]))

    error = exc_info.value
    assert error.status_code == 409
    assert "Scarce Scarf" in error.message
    assert error.lines == [
        {
            "variant_id": scarce.id,
            "product_name": "Scarce Scarf",
            "requested": 3,
            "available": 1,
            "shortfall": 2,
            "race_lost": False,
        }
    ]
    assert _stock(db_session, plenty.id) == 10
    assert _stock(db_session, scarce.id) == 1
    assert db_session.query(Order).count() == 0
    assert db_session.query(OrderItem).count() == 0
    assert notifications["placed"].calls == []


def test_second_order_fails_once_stock_runs_low(db_session: Session, make_variant):
    variant = make_variant(stock=5)

    order_service.place_order(db_session, _placement([_line(variant, 3)]))
    assert _stock(db_session, variant.id) == 2

    with pytest.raises(InsufficientStock):
        order_service.place_order(db_session, _placement([_line(variant, 3)]))

    assert _stock(db_session, variant.id) == 2
    assert db_session.query(Order).count() == 1


def test_unknown_variant_is_reported(db_session: Session, make_variant):
    variant = make_variant(stock=5)
    line = _line(variant, 1)
    line.variant_id = 999999

    with pytest.raises(VariantNotFound) as exc_info:
        order_service.place_order(db_session, _placement([line]))

    assert exc_info.value.variant_id == 999999
    assert db_session.query(Order).count() == 0


def test_duplicate_order_number_rolls_back(db_session: Session, make_variant):
    variant = make_variant(stock=10)
    order_service.place_order(db_session, _placement([_line(variant, 1)], order_number="ORD-DUP-0001"))

    with pytest.raises(DuplicateOrderNumber) as exc_info:
        order_service.place_order(db_session, _placement([_line(variant, 4)], order_number="ORD-DUP-0001"))

    assert exc_info.value.status_code == 409
    assert _stock(db_session, variant.id) == 9
    assert db_session.query(Order).count() == 1
    assert db_session.query(OrderItem).count() == 1


def test_storage_failure_becomes_write_failed(db_session: Session, make_variant, monkeypatch):
    variant = make_variant(stock=10)

    def broken_decrement(db, variant_id, quantity):
        raise OperationalError("UPDATE product_variants", {}, Exception("disk I/O error"))

    monkeypatch.setattr(inventory_service, "conditional_decrement", broken_decrement)

    with pytest.raises(OrderWriteFailed) as exc_info:
        order_service.place_order(db_session, _placement([_line(variant, 1)]))

    assert exc_info.value.status_code == 500
    assert db_session.query(Order).count() == 0
    assert _stock(db_session, variant.id) == 10


def test_losing_the_race_for_the_last_units_aborts(db_session: Session, session_factory, make_variant, monkeypatch):
    variant = make_variant(stock=2)
    real_read_stock = inventory_service.read_stock
    competitor_ran = {"value": False}

    def read_then_let_competitor_buy(db, variant_id):
        available = real_read_stock(db, variant_id)
        if not competitor_ran["value"]:
            competitor_ran["value"] = True
            competitor = session_factory()
            try:
                order_service.place_order(competitor, _placement([_line(competitor.get(ProductVariant, variant_id), 2)]))
            finally:
                competitor.close()
        return available

    monkeypatch.setattr(inventory_service, "read_stock", read_then_let_competitor_buy)

    with pytest.raises(InsufficientStock) as exc_info:
        order_service.place_order(db_session, _placement([_line(variant, 2)]))

    assert exc_info.value.lines[0]["race_lost"] is True
    assert _stock(db_session, variant.id) == 0
    assert db_session.query(Order).count() == 1


def test_notification_failure_does_not_undo_the_order(db_session: Session, make_variant, notifications):
    variant = make_variant(stock=5)
    notifications["placed"].fail_with = ConnectionError("broker unreachable")

    order = order_service.place_order(db_session, _placement([_line(variant, 1)]))

    assert db_session.query(Order).filter(Order.id == order.id).count() == 1
    assert _stock(db_session, variant.id) == 4
    assert len(notifications["admin"].calls) == 1


def test_successful_order_queues_one_notification(db_session: Session, make_variant, notifications):
    variant = make_variant(stock=5, name="Modern Black Watch")

    order = order_service.place_order(db_session, _placement([_line(variant, 2)]))

    assert len(notifications["placed"].calls) == 1
    (summary,) = notifications["placed"].calls[0]
    assert notifications["admin"].calls == [(summary,)]
    assert summary["order_number"] == order.order_number
    assert summary["customer"]["email"] == "mona@example.com"
    assert summary["items"] == [
        {
            "product_id": variant.product_id,
            "variant_id": variant.id,
            "name": "Modern Black Watch",
            "color_name": "Black",
            "quantity": 2,
            "price": 29.99,
        }
    ]


def test_build_order_lines_prices_from_catalog(db_session: Session, make_variant):
    plain = make_variant(stock=5, base_price=40.0)
    premium = make_variant(stock=5, base_price=40.0, price=55.0, color_name="Gold")

    lines = order_service.build_order_lines(
        db_session,
        [
            OrderItemIn(product_id=plain.product_id, variant_id=plain.id, quantity=1),
            OrderItemIn(product_id=premium.product_id, variant_id=premium.id, quantity=2),
        ],
    )

    assert [(line.unit_price, line.color_name) for line in lines] == [(40.0, "Black"), (55.0, "Gold")]


def test_build_order_lines_rejects_variant_of_another_product(db_session: Session, make_variant):
    first = make_variant(stock=5)
    second = make_variant(stock=5)

    with pytest.raises(VariantNotFound):
        order_service.build_order_lines(
            db_session,
            [OrderItemIn(product_id=first.product_id, variant_id=second.id, quantity=1)],
        )


def test_delete_order_by_id_and_by_number(db_session: Session, make_variant):
    variant = make_variant(stock=10)
    first = order_service.place_order(db_session, _placement([_line(variant, 1)]))
    second = order_service.place_order(db_session, _placement([_line(variant, 1)]))
    first_id, first_number = first.id, first.order_number
    second_number = second.order_number

    assert order_service.delete_order(db_session, first_id) == first_number
    assert order_service.delete_order(db_session, second_number) == second_number

    assert db_session.query(Order).count() == 0
    assert db_session.query(OrderItem).count() == 0
    # Deleting does not return stock
    assert _stock(db_session, variant.id) == 8

    with pytest.raises(OrderNotFound):
        order_service.delete_order(db_session, first_id)


def test_find_order_prefers_order_number_over_internal_id(db_session: Session, make_variant):
    variant = make_variant(stock=10)
    first = order_service.place_order(db_session, _placement([_line(variant, 1)]))
    second = order_service.place_order(
        db_session, _placement([_line(variant, 1)], order_number=str(first.id))
    )
    first_id, second_id = first.id, second.id

    assert order_service.find_order(db_session, str(first_id)).id == second_id
    assert order_service.find_order(db_session, first_id).id == first_id

    order_service.delete_order(db_session, str(first_id))

    assert [order.id for order in db_session.query(Order).all()] == [first_id]
