from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from storefront.core.rate_limiter import limiter
from storefront.db.session import get_db
from storefront.models.order import OrderStatus, PaymentMethod
from storefront.schemas.payment import PaymentCreate
from storefront.services import order_service, payment_service
from storefront.utils.response import success

router = APIRouter()


@router.post(
    "/create",
    response_model=dict,
    summary="Create gateway payment order",
    description="""
Creates a Razorpay order for a pending card order.

Process:
1. Looks the order up by order number
2. Creates the gateway order in minor units
3. Persists the payment intent record
4. Returns the payload required by the frontend checkout
""",
    responses={
        200: {"description": "Payment order created"},
        400: {"description": "Order is not a pending card order"},
        404: {"description": "Order not found"},
        502: {"description": "Gateway request failed"},
    },
)
@limiter.limit("20/minute")
def create_payment_order(
    request: Request,
    payload: PaymentCreate,
    db: Session = Depends(get_db),
):
    order = order_service.find_order_by_number(db, payload.order_number)
    if order.payment_method != PaymentMethod.CARD or order.status != OrderStatus.PENDING:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Only pending card orders can be paid online",
        )

    gateway_payload = payment_service.create_gateway_order(db, order)
    return success(data=gateway_payload, message="Payment order created")


@router.post("/webhook")
@limiter.limit("120/minute")
async def razorpay_webhook(request: Request, db: Session = Depends(get_db)):
    """Handle Razorpay webhooks"""
    body = await request.body()
    signature = request.headers.get("X-Razorpay-Signature")
    result = payment_service.handle_webhook(db, body, signature)
    return success(data=result, message="Webhook processed")


@router.get("/status/{order_number}", response_model=dict)
def get_payment_status(order_number: str, db: Session = Depends(get_db)):
    order = order_service.find_order_by_number(db, order_number)
    payment = order.payment
    return success(
        data={
            "order_number": order.order_number,
            "order_status": order.status.value,
            "payment_method": order.payment_method.value,
            "payment_status": payment.payment_status.value if payment else None,
            "amount": payment.amount if payment else order.total_amount,
            "paid_at": payment.paid_at if payment else None,
        }
    )
