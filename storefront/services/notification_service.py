from typing import Optional

import structlog

from storefront.models.order import Order
from storefront.tasks.email_tasks import (
    send_new_order_admin_email,
    send_order_placed_email,
    send_order_status_email,
)

logger = structlog.get_logger()


def _isoformat_or_none(value) -> Optional[str]:
    if value is None:
        return None
    return f"{value.isoformat()}Z"


def build_order_summary(order: Order) -> dict:
    """JSON-safe snapshot of an order, handed to the e-mail workers."""
    return {
        "order_id": order.id,
        "order_number": order.order_number,
        "created_at": _isoformat_or_none(order.created_at),
        "status": order.status.value,
        "payment_method": order.payment_method.value,
        "total": order.total_amount,
        "customer": {
            "full_name": order.customer_name,
            "email": order.customer_email,
            "phone": order.customer_phone,
        },
        "shipping": {
            "address": order.shipping_address,
            "city": order.shipping_city,
            "governorate": order.shipping_governorate,
            "notes": order.notes,
        },
        "tracking": {
            "tracking_number": order.tracking_number,
            "carrier_name": order.carrier_name,
            "estimated_delivery_date": _isoformat_or_none(order.estimated_delivery_date),
        },
        "items": [
            {
                "product_id": item.product_id,
                "variant_id": item.variant_id,
                "name": item.product_name,
                "color_name": item.color_name,
                "quantity": item.quantity,
                "price": item.unit_price,
            }
            for item in order.items
        ],
    }


def dispatch_order_placed(order: Order) -> None:
    """
    Queue the customer confirmation and the store owner copy as separate tasks.

    The order is already committed, so failures are only logged, and a
    failure to queue one message does not stop the other.
    """
    summary = build_order_summary(order)
    for audience, task in (("customer", send_order_placed_email), ("admin", send_new_order_admin_email)):
        try:
            result = task.delay(summary)
            logger.info(
                "order_notification_queued",
                order_number=order.order_number,
                audience=audience,
                task_id=result.id,
            )
        except Exception as exc:
            logger.exception(
                "order_notification_failed",
                order_number=order.order_number,
                audience=audience,
                error=str(exc),
            )


def dispatch_status_changed(order: Order, old_status: str) -> None:
    try:
        result = send_order_status_email.delay(build_order_summary(order), old_status)
        logger.info(
            "order_status_notification_queued",
            order_number=order.order_number,
            old_status=old_status,
            new_status=order.status.value,
            task_id=result.id,
        )
    except Exception as exc:
        logger.exception(
            "order_notification_failed",
            order_number=order.order_number,
            new_status=order.status.value,
            error=str(exc),
        )
