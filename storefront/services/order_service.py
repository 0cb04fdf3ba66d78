import uuid
from collections import OrderedDict
from datetime import datetime
from typing import Dict, List, Optional, Union

import structlog
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from storefront.core.config import settings
from storefront.core.exceptions import (
    APIError,
    DuplicateOrderNumber,
    EmptyOrder,
    InsufficientStock,
    MissingVariant,
    OrderNotFound,
    OrderWriteFailed,
    VariantNotFound,
)
from storefront.db.session import transaction
from storefront.models.cart import CartItem
from storefront.models.order import Order, OrderItem, OrderStatus, PaymentMethod
from storefront.models.product import ProductVariant
from storefront.schemas.order import OrderItemIn, OrderLine, OrderPlacement
from storefront.services import inventory_service, notification_service

logger = structlog.get_logger()


def generate_order_number(prefix: Optional[str] = None) -> str:
    """Human-facing order number, e.g. ORD-20260119-3F9A1C0B."""
    prefix = prefix or settings.ORDER_NUMBER_PREFIX
    return f"{prefix}-{datetime.utcnow():%Y%m%d}-{uuid.uuid4().hex[:8].upper()}"


def _validate_lines(lines: List) -> None:
    if not lines:
        raise EmptyOrder()
    missing = [index for index, line in enumerate(lines) if line.variant_id is None]
    if missing:
        raise MissingVariant(missing)


def _requested_quantities(lines: List[OrderLine]) -> Dict[int, int]:
    requested: Dict[int, int] = OrderedDict()
    for line in lines:
        requested[line.variant_id] = requested.get(line.variant_id, 0) + line.quantity
    return requested


def build_order_lines(db: Session, items: List[OrderItemIn]) -> List[OrderLine]:
    """Resolve (product, variant, quantity) requests into lines priced from the catalog."""
    _validate_lines(items)

    variant_ids = {item.variant_id for item in items}
    variants = {
        variant.id: variant
        for variant in (
            db.query(ProductVariant)
            .options(joinedload(ProductVariant.product))
            .filter(ProductVariant.id.in_(variant_ids))
            .all()
        )
    }

    lines = []
    for item in items:
        variant = variants.get(item.variant_id)
        if (
            variant is None
            or variant.product_id != item.product_id
            or not variant.is_active
            or not variant.product.is_active
        ):
            raise VariantNotFound(item.variant_id)

        lines.append(
            OrderLine(
                product_id=variant.product_id,
                variant_id=variant.id,
                quantity=item.quantity,
                unit_price=variant.product.effective_price(variant),
                product_name=variant.product.name,
                color_name=variant.color_name,
            )
        )
    return lines


def cart_order_items(db: Session, user_id: int) -> List[OrderItemIn]:
    cart_items = (
        db.query(CartItem)
        .filter(CartItem.user_id == user_id)
        .order_by(CartItem.id)
        .all()
    )
    return [
        OrderItemIn(product_id=item.product_id, variant_id=item.variant_id, quantity=item.quantity)
        for item in cart_items
    ]


def _precheck_stock(db: Session, requested: Dict[int, int], names: Dict[int, str]) -> None:
    shortfalls = []
    for variant_id, quantity in requested.items():
        available = inventory_service.read_stock(db, variant_id)
        if available is None:
            raise VariantNotFound(variant_id)
        if available < quantity:
            shortfalls.append(
                {
                    "variant_id": variant_id,
                    "product_name": names.get(variant_id),
                    "requested": quantity,
                    "available": available,
                    "shortfall": quantity - available,
                    "race_lost": False,
                }
            )
    if shortfalls:
        raise InsufficientStock(shortfalls)


def place_order(
    db: Session,
    placement: OrderPlacement,
    *,
    user_id: Optional[int] = None,
    clear_cart: bool = False,
) -> Order:
    """
    Atomically create an order with its line items and deduct inventory.

    Validation errors are raised before anything touches the database.
    The stock pre-check, header insert, line inserts, conditional
    decrements and (optionally) clearing the user's cart all run in one
    transaction; any failure rolls the whole thing back. A decrement that
    affects no rows after the pre-check passed means another checkout won
    the race for the same units, and aborts the order.

    Once committed, the order notification is dispatched best-effort.

    Returns:
        Order: the committed order
    """
    lines = placement.lines
    _validate_lines(lines)

    requested = _requested_quantities(lines)
    names = {line.variant_id: line.product_name for line in lines}
    order_number = placement.order_number or generate_order_number()

    try:
        with transaction(db):
            _precheck_stock(db, requested, names)

            order = Order(
                order_number=order_number,
                user_id=user_id,
                total_amount=round(sum(line.unit_price * line.quantity for line in lines), 2),
                payment_method=PaymentMethod(placement.payment_method),
                status=OrderStatus.PENDING,
                stock_deducted=True,
                customer_name=placement.customer.full_name,
                customer_email=placement.customer.email,
                customer_phone=placement.customer.phone,
                shipping_address=placement.shipping.address,
                shipping_city=placement.shipping.city,
                shipping_governorate=placement.shipping.governorate,
                notes=placement.shipping.notes,
            )
            db.add(order)
            try:
                db.flush()
            except IntegrityError as exc:
                raise DuplicateOrderNumber(order_number) from exc

            for line in lines:
                db.add(
                    OrderItem(
                        order_id=order.id,
                        product_id=line.product_id,
                        variant_id=line.variant_id,
                        product_name=line.product_name,
                        color_name=line.color_name,
                        quantity=line.quantity,
                        unit_price=line.unit_price,
                    )
                )

            for variant_id, quantity in requested.items():
                if inventory_service.conditional_decrement(db, variant_id, quantity):
                    continue
                available = inventory_service.read_stock(db, variant_id) or 0
                logger.warning(
                    "inventory_race_lost",
                    order_number=order_number,
                    variant_id=variant_id,
                    requested=quantity,
                    available=available,
                )
                raise InsufficientStock(
                    [
                        {
                            "variant_id": variant_id,
                            "product_name": names.get(variant_id),
                            "requested": quantity,
                            "available": available,
                            "shortfall": max(quantity - available, 0),
                            "race_lost": True,
                        }
                    ]
                )

            if clear_cart and user_id is not None:
                db.query(CartItem).filter(CartItem.user_id == user_id).delete(synchronize_session=False)
    except APIError:
        raise
    except SQLAlchemyError as exc:
        logger.exception("order_write_failed", order_number=order_number)
        raise OrderWriteFailed() from exc

    db.refresh(order)
    logger.info(
        "order_placed",
        order_id=order.id,
        order_number=order.order_number,
        user_id=user_id,
        total_amount=order.total_amount,
        line_count=len(lines),
    )
    inventory_service.log_low_stock(db, list(requested))
    notification_service.dispatch_order_placed(order)
    return order


def find_order(db: Session, identifier: Union[int, str]) -> Optional[Order]:
    """Look an order up by internal id or by order number."""
    if isinstance(identifier, int):
        return db.get(Order, identifier)
    identifier = identifier.strip()
    # An exact order number wins over an internal id with the same digits
    order = db.query(Order).filter(Order.order_number == identifier).first()
    if order is None and identifier.isdigit():
        order = db.get(Order, int(identifier))
    return order


def find_order_by_number(db: Session, order_number: str) -> Order:
    order = db.query(Order).filter(Order.order_number == order_number.strip()).first()
    if not order:
        raise OrderNotFound()
    return order


def delete_order(db: Session, identifier: Union[int, str]) -> str:
    """Remove an order together with its line items, history and payment."""
    with transaction(db):
        order = find_order(db, identifier)
        if not order:
            raise OrderNotFound()
        order_number = order.order_number
        order_id = order.id
        db.delete(order)

    logger.info("order_deleted", order_id=order_id, order_number=order_number)
    return order_number
