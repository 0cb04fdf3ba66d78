from celery import Task
from celery.utils.log import get_task_logger

from storefront.core.celery_app import celery_app
from storefront.core.config import settings
from storefront.core.exceptions import NotificationError
from storefront.utils.email import build_email, send_email_smtp
from storefront.utils.email_templates import (
    new_order_admin_template,
    order_confirmation_template,
    order_status_template,
)

logger = get_task_logger(__name__)


# -------------------------------
# Base Task (Retry-safe)
# -------------------------------
class EmailTask(Task):
    """
    Base email task with retries and backoff.
    Prevents email loss on temporary SMTP failures.
    """
    autoretry_for = (NotificationError,)
    retry_kwargs = {"max_retries": 3}
    retry_backoff = True
    retry_backoff_max = 600  # 10 minutes
    retry_jitter = True
    acks_late = True  # retry if worker crashes


# -------------------------------
# New Order (one message per task so a retry never resends the other)
# -------------------------------
@celery_app.task(base=EmailTask)
def send_order_placed_email(summary: dict):
    order_number = summary["order_number"]
    customer_email = summary["customer"]["email"]

    msg = build_email(
        to=customer_email,
        subject=f"Order Received - {order_number}",
        text=f"Your order {order_number} has been received.",
        html=order_confirmation_template(summary),
    )
    send_email_smtp(msg)
    logger.info("order_confirmation_sent order_number=%s email=%s", order_number, customer_email)


@celery_app.task(base=EmailTask)
def send_new_order_admin_email(summary: dict):
    order_number = summary["order_number"]
    recipients = settings.order_notification_recipients
    if not recipients:
        logger.warning("admin_order_email_skipped order_number=%s reason=no_recipients", order_number)
        return

    msg = build_email(
        to=recipients,
        subject=f"New Order - {order_number}",
        text=f"New order {order_number} from {summary['customer']['full_name']}.",
        html=new_order_admin_template(summary),
    )
    send_email_smtp(msg)
    logger.info("admin_order_email_sent order_number=%s", order_number)


# -------------------------------
# Status Change
# -------------------------------
@celery_app.task(base=EmailTask)
def send_order_status_email(summary: dict, old_status: str):
    order_number = summary["order_number"]
    status = summary["status"]

    msg = build_email(
        to=summary["customer"]["email"],
        subject=f"Order {status.capitalize()} - {order_number}",
        text=f"Your order {order_number} is now {status}.",
        html=order_status_template(summary),
    )
    send_email_smtp(msg)
    logger.info(
        "order_status_email_sent order_number=%s old_status=%s new_status=%s",
        order_number,
        old_status,
        status,
    )
