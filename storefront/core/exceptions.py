from fastapi import HTTPException, status
from typing import Any, Dict, List, Optional


class EmailAlreadyExists(HTTPException):
    def __init__(self):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail="Email already registered"
        )


class InvalidCredentials(HTTPException):
    def __init__(self):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password"
        )


class ProductNotFound(HTTPException):
    def __init__(self):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Product not found"
        )


class APIError(Exception):
    def __init__(self, status_code: int, message: str, errors: Optional[List[Any]] = None):
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.errors = errors or []


# --------------------------------------------------
# Order validation (rejected before any write)
# --------------------------------------------------
class OrderValidationError(APIError):
    def __init__(self, message: str, errors: Optional[List[Any]] = None):
        super().__init__(status.HTTP_400_BAD_REQUEST, message, errors)


class EmptyOrder(OrderValidationError):
    def __init__(self):
        super().__init__("Order has no items")


class MissingVariant(OrderValidationError):
    def __init__(self, line_indexes: List[int]):
        self.line_indexes = line_indexes
        super().__init__(
            "Every item must have a variant selected",
            errors=[{"line": index, "reason": "missing_variant"} for index in line_indexes],
        )


# --------------------------------------------------
# Stock (rejected before the order is committed)
# --------------------------------------------------
class StockError(APIError):
    pass


class VariantNotFound(StockError):
    def __init__(self, variant_id: int):
        self.variant_id = variant_id
        super().__init__(
            status.HTTP_404_NOT_FOUND,
            f"Product variant {variant_id} not found",
            errors=[{"variant_id": variant_id, "reason": "variant_not_found"}],
        )


class InsufficientStock(StockError):
    """Carries one entry per short variant: requested, available and shortfall."""

    def __init__(self, lines: List[Dict[str, Any]]):
        self.lines = lines
        names = ", ".join(str(line.get("product_name") or line["variant_id"]) for line in lines)
        super().__init__(
            status.HTTP_409_CONFLICT,
            f"Insufficient stock for {names}",
            errors=lines,
        )


# --------------------------------------------------
# Constraint violations (raised from the write phase)
# --------------------------------------------------
class ConstraintError(APIError):
    def __init__(self, message: str, errors: Optional[List[Any]] = None):
        super().__init__(status.HTTP_409_CONFLICT, message, errors)


class DuplicateOrderNumber(ConstraintError):
    def __init__(self, order_number: str):
        self.order_number = order_number
        super().__init__(
            f"Order number {order_number} already exists",
            errors=[{"order_number": order_number, "reason": "duplicate"}],
        )


class OrderWriteFailed(APIError):
    def __init__(self):
        super().__init__(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Order could not be placed. Please try again.",
        )


class NotFound(APIError):
    def __init__(self, message: str = "Not found"):
        super().__init__(status.HTTP_404_NOT_FOUND, message)


class OrderNotFound(NotFound):
    def __init__(self):
        super().__init__("Order not found")


# --------------------------------------------------
# External collaborators
# --------------------------------------------------
class PaymentError(APIError):
    def __init__(self, message: str = "Payment gateway request failed"):
        super().__init__(status.HTTP_502_BAD_GATEWAY, message)


class InvalidWebhookSignature(APIError):
    def __init__(self):
        super().__init__(status.HTTP_400_BAD_REQUEST, "Invalid webhook signature")


class NotificationError(Exception):
    """E-mail delivery failed. Logged or retried, never returned to a caller."""
