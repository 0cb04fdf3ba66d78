from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from storefront.core.rate_limiter import limiter
from storefront.db.session import get_db
from storefront.schemas.stock import InsufficientStockItem, StockCheckRequest, StockCheckResponse
from storefront.services import inventory_service
from storefront.utils.response import success

router = APIRouter()


@router.post("/check", response_model=dict)
@limiter.limit("120/minute")
def check_stock(
    request: Request,
    payload: StockCheckRequest,
    db: Session = Depends(get_db),
):
    """Check stock availability for variant quantities without deducting inventory."""
    requested: dict[int, int] = {}
    for item in payload.items:
        requested[item.variant_id] = requested.get(item.variant_id, 0) + item.quantity

    shortfalls = inventory_service.check_availability(db, requested)
    response = StockCheckResponse(
        available=not shortfalls,
        items=[InsufficientStockItem(**entry) for entry in shortfalls],
    )
    return success(data=response.model_dump())
