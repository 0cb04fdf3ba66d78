from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from storefront.api.deps import get_current_user
from storefront.db.session import get_db
from storefront.models.user import User
from storefront.schemas.cart import CartItemCreate, CartItemUpdate
from storefront.services import cart_service
from storefront.utils.response import success

router = APIRouter()


@router.get("/", response_model=dict)
def get_cart(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    cart = cart_service.get_cart(db, current_user.id)
    return success(data=cart.model_dump())


@router.post("/", response_model=dict, status_code=status.HTTP_201_CREATED)
def add_to_cart(
    cart_item: CartItemCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    item = cart_service.add_item(db, current_user.id, cart_item)
    return success(
        data={"id": item.id, "quantity": item.quantity},
        message="Item added to cart",
    )


@router.put("/{item_id}", response_model=dict)
def update_cart_item(
    item_id: int,
    update: CartItemUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    item = cart_service.update_quantity(db, current_user.id, item_id, update.quantity)
    return success(
        data={"id": item.id, "quantity": item.quantity},
        message="Cart updated",
    )


@router.delete("/{item_id}", response_model=dict)
def remove_from_cart(
    item_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    cart_service.remove_item(db, current_user.id, item_id)
    return success(message="Item removed from cart")


@router.delete("/", response_model=dict)
def clear_cart(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    removed = cart_service.clear_cart(db, current_user.id)
    return success(data={"removed": removed}, message="Cart cleared")
