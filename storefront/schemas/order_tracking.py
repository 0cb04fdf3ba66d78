from datetime import datetime
from typing import List, Optional

import bleach
from pydantic import BaseModel, Field, field_validator

from storefront.models.order import OrderStatus


class OrderStatusUpdate(BaseModel):
    """Admin status change. Tracking fields are only written when provided."""
    status: OrderStatus
    tracking_number: Optional[str] = Field(default=None, max_length=100)
    carrier_name: Optional[str] = Field(default=None, max_length=100)
    estimated_delivery_date: Optional[datetime] = None
    notes: Optional[str] = Field(default=None, max_length=500)

    @field_validator("tracking_number", "carrier_name", "notes")
    @classmethod
    def strip_markup(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        return bleach.clean(value, tags=[], attributes={}, strip=True).strip() or None


class OrderStatusHistoryResponse(BaseModel):
    id: int
    old_status: Optional[str]
    new_status: str
    changed_by: Optional[int]
    notes: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


class OrderTrackingResponse(BaseModel):
    order_id: int
    order_number: str
    current_status: OrderStatus
    tracking_number: Optional[str]
    carrier_name: Optional[str]
    estimated_delivery_date: Optional[datetime]
    shipped_at: Optional[datetime]
    delivered_at: Optional[datetime]
    status_history: List[OrderStatusHistoryResponse]
