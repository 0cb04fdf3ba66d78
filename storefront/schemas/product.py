from pydantic import BaseModel, Field, model_validator
from typing import List, Optional


class VariantCreate(BaseModel):
    color_name: str = Field(..., min_length=1, max_length=50)
    color_code: Optional[str] = Field(default=None, max_length=20)
    price: Optional[float] = Field(default=None, gt=0)
    image_url: Optional[str] = None
    stock_quantity: int = Field(default=0, ge=0)


class VariantUpdate(BaseModel):
    color_name: Optional[str] = Field(default=None, min_length=1, max_length=50)
    color_code: Optional[str] = Field(default=None, max_length=20)
    price: Optional[float] = Field(default=None, gt=0)
    image_url: Optional[str] = None
    stock_quantity: Optional[int] = Field(default=None, ge=0)
    is_active: Optional[bool] = None


class ProductCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=200)
    description: Optional[str] = None
    category: str = Field(..., min_length=1, max_length=100)
    image_url: Optional[str] = None
    base_price: float = Field(..., gt=0)
    discount_percentage: Optional[int] = Field(default=None, ge=0, le=100)
    original_price: Optional[float] = Field(default=None, gt=0)
    variants: List[VariantCreate] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_discount(self):
        if self.original_price is not None and self.original_price < self.base_price:
            raise ValueError("original_price must not be lower than base_price")
        return self


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=2, max_length=200)
    description: Optional[str] = None
    category: Optional[str] = Field(default=None, min_length=1, max_length=100)
    image_url: Optional[str] = None
    base_price: Optional[float] = Field(default=None, gt=0)
    discount_percentage: Optional[int] = Field(default=None, ge=0, le=100)
    original_price: Optional[float] = Field(default=None, gt=0)
    is_active: Optional[bool] = None


class VariantResponse(BaseModel):
    id: int
    color_name: str
    color_code: Optional[str]
    price: Optional[float]
    image_url: Optional[str]
    stock_quantity: int
    is_active: bool

    class Config:
        from_attributes = True


class ProductResponse(BaseModel):
    id: int
    name: str
    description: Optional[str]
    category: str
    image_url: Optional[str]
    base_price: float
    discount_percentage: Optional[int]
    original_price: Optional[float]
    is_active: bool
    total_stock: int
    variants: List[VariantResponse]

    class Config:
        from_attributes = True
