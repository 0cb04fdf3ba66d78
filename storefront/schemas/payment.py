from pydantic import BaseModel, Field


class PaymentCreate(BaseModel):
    order_number: str = Field(..., min_length=4, max_length=50)
