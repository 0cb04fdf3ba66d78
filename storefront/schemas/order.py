from typing import List, Literal, Optional
from datetime import datetime

import bleach
from pydantic import BaseModel, EmailStr, Field, field_validator

from storefront.core.config import settings
from storefront.models.order import OrderStatus, PaymentMethod


def _clean_text(value: Optional[str], limit: int) -> Optional[str]:
    if value is None:
        return value
    sanitized = bleach.clean(value, tags=[], attributes={}, strip=True).strip()
    if len(sanitized) > limit:
        raise ValueError(f"Text too long (max {limit} chars)")
    return sanitized


class CustomerInfo(BaseModel):
    full_name: str = Field(..., min_length=2, max_length=100)
    email: EmailStr
    phone: str = Field(..., min_length=7, max_length=20)

    @field_validator("full_name", "phone")
    @classmethod
    def strip_markup(cls, value: str) -> str:
        return _clean_text(value, 100)


class ShippingInfo(BaseModel):
    address: str = Field(..., min_length=3, max_length=500)
    city: str = Field(..., min_length=2, max_length=100)
    governorate: Optional[str] = Field(default=None, max_length=100)
    notes: Optional[str] = None

    @field_validator("address", "city", "governorate")
    @classmethod
    def strip_markup(cls, value: Optional[str]) -> Optional[str]:
        return _clean_text(value, 500)

    @field_validator("notes")
    @classmethod
    def validate_notes(cls, value: Optional[str]) -> Optional[str]:
        return _clean_text(value, 500)


class OrderItemIn(BaseModel):
    product_id: int = Field(..., gt=0)
    variant_id: Optional[int] = None
    quantity: int = Field(..., ge=1)

    @field_validator("quantity")
    @classmethod
    def validate_quantity(cls, value: int) -> int:
        if value > settings.MAX_LINE_QUANTITY:
            raise ValueError(f"Quantity may not exceed {settings.MAX_LINE_QUANTITY}")
        return value


class OrderCreate(BaseModel):
    customer: CustomerInfo
    shipping: ShippingInfo
    items: Optional[List[OrderItemIn]] = None  # None: check out the caller's cart
    payment_method: Literal["cod", "card"] = "cod"
    order_number: Optional[str] = Field(default=None, min_length=4, max_length=50, pattern=r"^[A-Za-z0-9\-]+$")

    @field_validator("order_number")
    @classmethod
    def order_number_not_numeric(cls, value: Optional[str]) -> Optional[str]:
        # Numeric strings address orders by internal id
        if value is not None and value.isdigit():
            raise ValueError("Order number must contain at least one letter or dash")
        return value


class OrderLine(BaseModel):
    """A line handed to the order writer, with catalog name and price already resolved."""
    product_id: int
    variant_id: Optional[int] = None
    quantity: int = Field(..., ge=1)
    unit_price: float = Field(..., ge=0)
    product_name: str
    color_name: Optional[str] = None


class OrderPlacement(BaseModel):
    customer: CustomerInfo
    shipping: ShippingInfo
    lines: List[OrderLine] = Field(default_factory=list)
    payment_method: Literal["cod", "card"] = "cod"
    order_number: Optional[str] = None


class OrderItemResponse(BaseModel):
    id: int
    product_id: Optional[int]
    variant_id: Optional[int]
    product_name: str
    color_name: Optional[str]
    quantity: int
    unit_price: float
    total_price: float

    class Config:
        from_attributes = True


class OrderResponse(BaseModel):
    id: int
    order_number: str
    status: OrderStatus
    payment_method: PaymentMethod
    total_amount: float
    customer_name: str
    customer_email: str
    customer_phone: str
    shipping_address: str
    shipping_city: str
    shipping_governorate: Optional[str]
    notes: Optional[str]
    tracking_number: Optional[str]
    carrier_name: Optional[str]
    estimated_delivery_date: Optional[datetime]
    shipped_at: Optional[datetime]
    delivered_at: Optional[datetime]
    created_at: datetime
    items: List[OrderItemResponse]

    class Config:
        from_attributes = True
