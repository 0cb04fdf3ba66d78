import structlog
from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from storefront.core.exceptions import InsufficientStock, MissingVariant, ProductNotFound, VariantNotFound
from storefront.models.cart import CartItem
from storefront.models.product import Product, ProductVariant
from storefront.schemas.cart import CartItemCreate, CartItemResponse, CartResponse

logger = structlog.get_logger()


def _shortfall(variant: ProductVariant, requested: int) -> InsufficientStock:
    return InsufficientStock(
        [
            {
                "variant_id": variant.id,
                "product_name": variant.product.name,
                "requested": requested,
                "available": variant.stock_quantity,
                "shortfall": requested - variant.stock_quantity,
                "race_lost": False,
            }
        ]
    )


def _get_user_item(db: Session, user_id: int, item_id: int) -> CartItem:
    cart_item = db.query(CartItem).filter(
        CartItem.id == item_id,
        CartItem.user_id == user_id
    ).first()

    if not cart_item:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Cart item not found"
        )
    return cart_item


def get_cart(db: Session, user_id: int) -> CartResponse:
    cart_items = (
        db.query(CartItem)
        .filter(CartItem.user_id == user_id)
        .order_by(CartItem.id)
        .all()
    )

    items = []
    subtotal = 0.0
    for item in cart_items:
        product = item.product
        variant = item.variant
        unit_price = product.effective_price(variant)
        total_price = unit_price * item.quantity
        subtotal += total_price

        items.append(
            CartItemResponse(
                id=item.id,
                product_id=product.id,
                product_name=product.name,
                product_image=variant.image_url or product.image_url,
                variant_id=variant.id,
                color_name=variant.color_name,
                quantity=item.quantity,
                unit_price=unit_price,
                total_price=total_price,
                stock_available=variant.stock_quantity,
            )
        )

    return CartResponse(items=items, subtotal=round(subtotal, 2), total_items=len(items))


def add_item(db: Session, user_id: int, cart_item: CartItemCreate) -> CartItem:
    """Add to cart, merging into the existing line for the same product and variant."""
    if cart_item.variant_id is None:
        raise MissingVariant([0])

    product = db.query(Product).filter(
        Product.id == cart_item.product_id,
        Product.is_active == True
    ).first()
    if not product:
        raise ProductNotFound()

    variant = db.query(ProductVariant).filter(
        ProductVariant.id == cart_item.variant_id,
        ProductVariant.product_id == cart_item.product_id,
        ProductVariant.is_active == True
    ).first()
    if not variant:
        raise VariantNotFound(cart_item.variant_id)

    existing_item = db.query(CartItem).filter(
        CartItem.user_id == user_id,
        CartItem.product_id == cart_item.product_id,
        CartItem.variant_id == cart_item.variant_id
    ).first()

    new_quantity = cart_item.quantity + (existing_item.quantity if existing_item else 0)
    if variant.stock_quantity < new_quantity:
        raise _shortfall(variant, new_quantity)

    if existing_item:
        existing_item.quantity = new_quantity
        db.commit()
        db.refresh(existing_item)
        logger.info("cart_item_merged", user_id=user_id, cart_item_id=existing_item.id, quantity=new_quantity)
        return existing_item

    new_cart_item = CartItem(
        user_id=user_id,
        product_id=cart_item.product_id,
        variant_id=cart_item.variant_id,
        quantity=cart_item.quantity,
    )
    db.add(new_cart_item)
    db.commit()
    db.refresh(new_cart_item)
    return new_cart_item


def update_quantity(db: Session, user_id: int, item_id: int, quantity: int) -> CartItem:
    cart_item = _get_user_item(db, user_id, item_id)

    variant = cart_item.variant
    if variant.stock_quantity < quantity:
        raise _shortfall(variant, quantity)

    cart_item.quantity = quantity
    db.commit()
    db.refresh(cart_item)
    return cart_item


def remove_item(db: Session, user_id: int, item_id: int) -> None:
    cart_item = _get_user_item(db, user_id, item_id)
    db.delete(cart_item)
    db.commit()


def clear_cart(db: Session, user_id: int) -> int:
    removed = db.query(CartItem).filter(CartItem.user_id == user_id).delete(synchronize_session=False)
    db.commit()
    return removed
