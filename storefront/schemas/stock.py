from typing import List

from pydantic import BaseModel, Field


class StockCheckItem(BaseModel):
    variant_id: int = Field(..., gt=0)
    quantity: int = Field(..., gt=0)


class StockCheckRequest(BaseModel):
    items: List[StockCheckItem]


class InsufficientStockItem(BaseModel):
    variant_id: int
    product_name: str | None = None
    requested: int
    available: int
    shortfall: int


class StockCheckResponse(BaseModel):
    available: bool
    items: List[InsufficientStockItem]
