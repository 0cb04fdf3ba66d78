import json
from datetime import datetime
from typing import Optional

import razorpay
import structlog
from razorpay.errors import BadRequestError, ServerError, SignatureVerificationError
from sqlalchemy.orm import Session

from storefront.core.config import settings
from storefront.core.exceptions import InvalidWebhookSignature, OrderNotFound, PaymentError
from storefront.db.session import transaction
from storefront.models.order import Order, OrderStatus, PaymentMethod
from storefront.models.order_status_history import OrderStatusHistory
from storefront.models.payment import Payment, PaymentStatus
from storefront.services import inventory_service, notification_service
from storefront.services.order_tracking_service import OrderTrackingService

razorpay_client = razorpay.Client(auth=(settings.RAZORPAY_KEY_ID, settings.RAZORPAY_KEY_SECRET))
logger = structlog.get_logger()

# Gateway events mapped onto order status transitions
WEBHOOK_TRANSITIONS = {
    "payment.captured": (PaymentStatus.SUCCESS, OrderStatus.PROCESSING),
    "order.paid": (PaymentStatus.SUCCESS, OrderStatus.PROCESSING),
    "payment.failed": (PaymentStatus.FAILED, OrderStatus.CANCELLED),
}


def create_gateway_order(db: Session, order: Order) -> dict:
    """Create a Razorpay order for a pending card order and record the payment intent."""
    existing = db.query(Payment).filter(Payment.order_id == order.id).first()
    if existing and existing.is_settled:
        raise PaymentError("Payment already processed")

    amount_minor = int(round(order.total_amount * 100))
    try:
        gateway_order = razorpay_client.order.create(
            {
                "amount": amount_minor,
                "currency": settings.PAYMENT_CURRENCY,
                "receipt": order.order_number,
                "notes": {
                    "merchant_order_id": order.order_number,
                    "customer_email": order.customer_email,
                },
            }
        )
    except (BadRequestError, ServerError) as exc:
        logger.warning("gateway_order_create_failed", order_number=order.order_number, error=str(exc))
        raise PaymentError() from exc

    with transaction(db):
        payment = existing or Payment(order_id=order.id, payment_method=PaymentMethod.CARD)
        payment.payment_status = PaymentStatus.PENDING
        payment.amount = order.total_amount
        payment.currency = settings.PAYMENT_CURRENCY
        payment.gateway_order_id = gateway_order["id"]
        payment.merchant_order_id = order.order_number
        db.add(payment)

    logger.info(
        "gateway_order_created",
        order_number=order.order_number,
        gateway_order_id=gateway_order["id"],
        amount=amount_minor,
    )
    return {
        "gateway_order_id": gateway_order["id"],
        "key_id": settings.RAZORPAY_KEY_ID,
        "amount": amount_minor,
        "currency": settings.PAYMENT_CURRENCY,
        "order_number": order.order_number,
    }


def create_cod_payment(db: Session, order: Order) -> Payment:
    """
    Create Cash-on-Delivery payment.
    Stock is already deducted at order creation.
    """
    with transaction(db):
        payment = db.query(Payment).filter(Payment.order_id == order.id).first()
        if not payment:
            payment = Payment(
                order_id=order.id,
                payment_method=PaymentMethod.COD,
                payment_status=PaymentStatus.PENDING,
                amount=order.total_amount,
                currency=settings.PAYMENT_CURRENCY,
                merchant_order_id=order.order_number,
            )
            db.add(payment)
    db.refresh(payment)
    return payment


def _find_webhook_payment(db: Session, entity: dict) -> Optional[Payment]:
    gateway_order_id = entity.get("order_id")
    if gateway_order_id:
        payment = db.query(Payment).filter(Payment.gateway_order_id == gateway_order_id).first()
        if payment:
            return payment

    merchant_order_id = (entity.get("notes") or {}).get("merchant_order_id") or entity.get("receipt")
    if merchant_order_id:
        return (
            db.query(Payment)
            .join(Order, Order.id == Payment.order_id)
            .filter(Order.order_number == merchant_order_id)
            .first()
        )
    return None


def handle_webhook(db: Session, body: bytes, signature: Optional[str]) -> dict:
    """
    Verify a gateway webhook and map it onto the order's status.

    Captured payments move the order to processing; failed payments cancel
    it, which releases its stock. A capture after a failed attempt takes
    the stock back, or is flagged when that stock has been sold since.
    Repeated deliveries of the same outcome are acknowledged without changes.
    """
    try:
        razorpay_client.utility.verify_webhook_signature(
            body.decode(),
            signature or "",
            settings.RAZORPAY_WEBHOOK_SECRET,
        )
    except SignatureVerificationError as exc:
        logger.warning("webhook_signature_invalid")
        raise InvalidWebhookSignature() from exc

    event = json.loads(body)
    event_name = event.get("event")
    payload = event.get("payload", {})
    entity = payload.get("payment", {}).get("entity") or payload.get("order", {}).get("entity") or {}
    logger.info(
        "webhook_received",
        webhook_event=event_name,
        payment_id=entity.get("id"),
        gateway_order_id=entity.get("order_id"),
        amount=entity.get("amount"),
    )

    if event_name not in WEBHOOK_TRANSITIONS:
        return {"status": "ignored", "event": event_name}

    payment = _find_webhook_payment(db, entity)
    if not payment:
        logger.warning("webhook_payment_not_found", webhook_event=event_name, gateway_order_id=entity.get("order_id"))
        raise OrderNotFound()

    payment_status, order_status = WEBHOOK_TRANSITIONS[event_name]
    # Only a captured payment is final; a failed attempt may still be retried and captured
    if payment.is_settled or payment.payment_status == payment_status:
        return {"status": "duplicate", "order_number": payment.order.order_number}

    order = payment.order
    needs_stock = order_status != OrderStatus.CANCELLED and not order.stock_deducted
    if needs_stock and inventory_service.check_availability(db, OrderTrackingService.order_quantities(order)):
        return _record_capture_without_stock(db, payment, entity, event_name)

    with transaction(db):
        _record_gateway_result(payment, payment_status, entity)
        old_status = OrderTrackingService.apply_status(
            db, order, order_status, notes=f"gateway event {event_name}"
        )

    db.refresh(order)
    logger.info(
        "webhook_payment_processed",
        webhook_event=event_name,
        order_number=order.order_number,
        payment_status=payment_status.value,
        order_status=order.status.value,
    )
    if old_status != order.status.value:
        notification_service.dispatch_status_changed(order, old_status)
    return {"status": payment_status.value, "order_number": order.order_number}


def _record_gateway_result(payment: Payment, payment_status: PaymentStatus, entity: dict) -> None:
    payment.payment_status = payment_status
    if entity.get("id", "").startswith("pay_"):
        payment.gateway_payment_id = entity["id"]
    payment.gateway_response = json.dumps(entity)
    if payment_status == PaymentStatus.SUCCESS:
        payment.paid_at = datetime.utcnow()


def _record_capture_without_stock(db: Session, payment: Payment, entity: dict, event_name: str) -> dict:
    """
    Money arrived for an order whose released stock has since been sold.

    The payment is recorded as captured so the gateway stops retrying,
    the order stays cancelled, and a history note flags it for a refund.
    """
    order = payment.order
    with transaction(db):
        _record_gateway_result(payment, PaymentStatus.SUCCESS, entity)
        db.add(
            OrderStatusHistory(
                order_id=order.id,
                old_status=order.status.value,
                new_status=order.status.value,
                notes=f"gateway event {event_name}: payment captured but stock is no longer available",
            )
        )
    logger.error(
        "payment_captured_without_stock",
        order_number=order.order_number,
        gateway_payment_id=payment.gateway_payment_id,
        amount=payment.amount,
    )
    return {"status": "stock_unavailable", "order_number": order.order_number}
