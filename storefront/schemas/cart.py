from typing import Annotated, List, Optional

from pydantic import AfterValidator, BaseModel, Field

from storefront.core.config import settings


def _within_line_limit(quantity: int) -> int:
    if quantity > settings.MAX_LINE_QUANTITY:
        raise ValueError(f"Quantity may not exceed {settings.MAX_LINE_QUANTITY}")
    return quantity


LineQuantity = Annotated[int, Field(ge=1), AfterValidator(_within_line_limit)]


class CartItemCreate(BaseModel):
    """Adding a variant already in the cart merges into the existing line."""
    product_id: int = Field(..., gt=0)
    # Optional here so a missing selection gets a 400 from the service, not a 422
    variant_id: Optional[int] = Field(default=None, gt=0)
    quantity: LineQuantity = 1


class CartItemUpdate(BaseModel):
    quantity: LineQuantity


class CartItemResponse(BaseModel):
    id: int
    product_id: int
    variant_id: int
    product_name: str
    color_name: str
    product_image: Optional[str]
    quantity: int
    unit_price: float
    total_price: float
    stock_available: int


class CartResponse(BaseModel):
    items: List[CartItemResponse]
    total_items: int
    subtotal: float
