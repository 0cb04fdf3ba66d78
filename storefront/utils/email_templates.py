from datetime import datetime
from html import escape

from storefront.core.config import settings


def _money(value) -> str:
    return f"{settings.PAYMENT_CURRENCY} {float(value):,.2f}"


def _items_rows(summary: dict) -> str:
    rows = ""
    for item in summary["items"]:
        label = escape(item["name"])
        if item.get("color_name"):
            label += f" ({escape(item['color_name'])})"
        rows += f"""
        <tr>
            <td>{label}</td>
            <td>{item["quantity"]}</td>
            <td>{_money(item["price"])}</td>
            <td>{_money(item["price"] * item["quantity"])}</td>
        </tr>
        """
    return rows


def order_confirmation_template(summary: dict) -> str:
    """HTML email template for order confirmation"""
    customer = summary["customer"]
    shipping = summary["shipping"]
    governorate = f", {escape(shipping['governorate'])}" if shipping.get("governorate") else ""

    return f"""
    <!DOCTYPE html>
    <html>
    <head>
        <style>
            body {{ font-family: Arial, sans-serif; line-height: 1.6; }}
            .container {{ max-width: 600px; margin: 0 auto; padding: 20px; }}
            .header {{ background: #111827; color: white; padding: 20px; text-align: center; }}
            table {{ width: 100%; border-collapse: collapse; margin: 20px 0; }}
            th, td {{ padding: 10px; text-align: left; border-bottom: 1px solid #ddd; }}
            .total {{ font-size: 18px; font-weight: bold; }}
        </style>
    </head>
    <body>
        <div class="container">
            <div class="header">
                <h1>{escape(settings.EMAILS_FROM_NAME)}</h1>
                <p>Order Confirmation</p>
            </div>

            <p>Dear {escape(customer["full_name"])},</p>
            <p>Thank you for your order! Your order <strong>#{summary["order_number"]}</strong> has been received.</p>

            <h3>Order Details:</h3>
            <table>
                <thead>
                    <tr>
                        <th>Item</th>
                        <th>Qty</th>
                        <th>Price</th>
                        <th>Total</th>
                    </tr>
                </thead>
                <tbody>
                    {_items_rows(summary)}
                </tbody>
            </table>

            <p class="total">Total: {_money(summary["total"])}</p>
            <p>Payment: {"Cash on delivery" if summary["payment_method"] == "cod" else "Card"}</p>

            <h3>Shipping Address:</h3>
            <p>
                {escape(customer["full_name"])}<br>
                {escape(customer["phone"])}<br>
                {escape(shipping["address"])}<br>
                {escape(shipping["city"])}{governorate}
            </p>

            <p>Track your order: <a href="{settings.FRONTEND_URL}/track-order?order={summary["order_number"]}">Click here</a></p>
        </div>
    </body>
    </html>
    """


def new_order_admin_template(summary: dict) -> str:
    """HTML email for the store owner when an order comes in."""
    customer = summary["customer"]
    shipping = summary["shipping"]
    notes = f"<p>Notes: {escape(shipping['notes'])}</p>" if shipping.get("notes") else ""
    return f"""
    <!DOCTYPE html>
    <html>
    <body style="font-family: Arial, sans-serif; line-height: 1.6;">
        <h2>New order #{summary["order_number"]}</h2>
        <p>Placed {summary["created_at"]} by {escape(customer["full_name"])}
           ({escape(customer["email"])}, {escape(customer["phone"])})</p>
        <p>Ship to: {escape(shipping["address"])}, {escape(shipping["city"])}</p>
        {notes}
        <table>
            <tbody>
                {_items_rows(summary)}
            </tbody>
        </table>
        <p><strong>Total: {_money(summary["total"])}</strong></p>
    </body>
    </html>
    """


def order_status_template(summary: dict) -> str:
    """HTML email template for order status updates."""
    status = summary["status"]
    tracking = summary.get("tracking") or {}
    tracking_html = ""
    if tracking.get("tracking_number"):
        carrier = f" ({escape(tracking['carrier_name'])})" if tracking.get("carrier_name") else ""
        tracking_html = f"<p>Tracking Number: <strong>{escape(tracking['tracking_number'])}</strong>{carrier}</p>"

    headline = {
        "processing": "Your order is being prepared",
        "shipped": "Good news, your order has been shipped",
        "delivered": "Your order has been delivered",
        "cancelled": "Your order has been cancelled",
    }.get(status, f"Your order is now {status}")

    return f"""
    <!DOCTYPE html>
    <html>
    <body style="font-family: Arial, sans-serif; line-height: 1.6;">
        <h2>{headline}</h2>
        <p>Hello {escape(summary["customer"]["full_name"])},</p>
        <p>Order <strong>#{summary["order_number"]}</strong> is now <strong>{status}</strong>.</p>
        {tracking_html}
        <p>You can track your order here:
            <a href="{settings.FRONTEND_URL}/track-order?order={summary["order_number"]}">
                Track Order
            </a>
        </p>
        <p>&copy; {datetime.utcnow().year} {escape(settings.EMAILS_FROM_NAME)}</p>
    </body>
    </html>
    """
