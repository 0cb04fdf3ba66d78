from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session, selectinload

from storefront.api.deps import get_optional_user, require_admin
from storefront.core.exceptions import EmptyOrder
from storefront.core.rate_limiter import limiter
from storefront.db.session import get_db
from storefront.models.order import Order, OrderStatus, PaymentMethod
from storefront.models.user import User
from storefront.schemas.order import OrderCreate, OrderPlacement, OrderResponse
from storefront.schemas.order_tracking import OrderStatusUpdate
from storefront.services import order_service, payment_service
from storefront.services.order_tracking_service import OrderTrackingService
from storefront.utils.response import paginated_response, success

router = APIRouter()


def _order_payload(order: Order) -> dict:
    return OrderResponse.model_validate(order).model_dump()


@router.post(
    "/",
    response_model=dict,
    status_code=status.HTTP_201_CREATED,
    summary="Place a new order",
    description="""
Places an order for a guest or an authenticated customer.

Process:
1. Resolves the requested lines (or the caller's cart when `items` is omitted)
2. Prices every line from the catalog
3. Checks stock, writes the order and its items, and deducts stock in one transaction
4. Clears the cart when it was the source of the order
5. Queues the order confirmation e-mails
""",
    responses={
        201: {"description": "Order placed"},
        400: {"description": "Empty order or a line without a variant"},
        404: {"description": "Variant not found"},
        409: {"description": "Insufficient stock or duplicate order number"},
    },
)
@limiter.limit("10/minute")
def create_order(
    request: Request,
    order_in: OrderCreate,
    current_user: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db),
):
    user_id = current_user.id if current_user else None

    from_cart = order_in.items is None
    if from_cart:
        if user_id is None:
            raise EmptyOrder()
        items = order_service.cart_order_items(db, user_id)
    else:
        items = order_in.items

    lines = order_service.build_order_lines(db, items)
    placement = OrderPlacement(
        customer=order_in.customer,
        shipping=order_in.shipping,
        lines=lines,
        payment_method=order_in.payment_method,
        order_number=order_in.order_number,
    )
    order = order_service.place_order(db, placement, user_id=user_id, clear_cart=from_cart)

    if order.payment_method == PaymentMethod.COD:
        payment_service.create_cod_payment(db, order)
        message = "Order placed successfully. Pay on delivery."
    else:
        message = "Order placed successfully"

    return success(
        data={
            "order_id": order.id,
            "order_number": order.order_number,
            "total_amount": order.total_amount,
            "status": order.status.value,
            "payment_method": order.payment_method.value,
        },
        message=message,
    )


@router.get("/", response_model=dict)
def list_orders(
    status_filter: Optional[OrderStatus] = Query(default=None, alias="status"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """All orders, newest first. Admin only."""
    query = db.query(Order)
    if status_filter:
        query = query.filter(Order.status == status_filter)

    total = query.count()
    orders = (
        query.options(selectinload(Order.items))
        .order_by(Order.created_at.desc(), Order.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return paginated_response(
        [_order_payload(order) for order in orders],
        total=total,
        page=page,
        limit=limit,
        message="Orders retrieved",
    )


@router.get("/track", response_model=dict)
@limiter.limit("20/minute")
def track_orders_by_phone(
    request: Request,
    phone: str = Query(..., min_length=7, max_length=20),
    db: Session = Depends(get_db),
):
    """Orders placed with the given phone number, newest first."""
    orders = OrderTrackingService.find_orders_by_phone(db, phone)
    return success(
        data=[_order_payload(order) for order in orders],
        message="Orders retrieved",
    )


@router.get("/{order_number}", response_model=dict)
@limiter.limit("30/minute")
def get_order_detail(
    request: Request,
    order_number: str,
    db: Session = Depends(get_db),
):
    order = order_service.find_order_by_number(db, order_number)
    return success(data=_order_payload(order), message="Order detail retrieved")


@router.get("/{identifier}/tracking", response_model=dict)
def get_order_tracking(identifier: str, db: Session = Depends(get_db)):
    tracking = OrderTrackingService.get_order_tracking(db, identifier)
    return success(data=tracking.model_dump())


@router.put("/{identifier}/status", response_model=dict)
def update_order_status(
    identifier: str,
    status_update: OrderStatusUpdate,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Move an order to a new status. Accepts the order id or its order number."""
    order = OrderTrackingService.update_order_status(
        db, identifier, status_update, changed_by=current_user.id
    )
    return success(data=_order_payload(order), message="Order status updated")


@router.delete("/{identifier}", response_model=dict)
def delete_order(
    identifier: str,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    order_number = order_service.delete_order(db, identifier)
    return success(data={"order_number": order_number}, message="Order deleted")
