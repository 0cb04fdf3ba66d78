from typing import Dict, List, Optional

import structlog
from sqlalchemy.orm import Session

from storefront.models.product import Product, ProductVariant

logger = structlog.get_logger()
LOW_STOCK_WARNING_THRESHOLD = 5


def read_stock(db: Session, variant_id: int) -> Optional[int]:
    """Current stock counter for a variant, or None when the variant does not exist."""
    return (
        db.query(ProductVariant.stock_quantity)
        .filter(ProductVariant.id == variant_id)
        .scalar()
    )


def conditional_decrement(db: Session, variant_id: int, quantity: int) -> bool:
    """
    Decrement stock only if at least `quantity` is on hand.

    The guard lives in the WHERE clause, so concurrent callers racing for
    the same units cannot drive the counter negative: at most one of them
    sees an affected row.

    Returns:
        bool: True when the decrement was applied
    """
    affected = (
        db.query(ProductVariant)
        .filter(
            ProductVariant.id == variant_id,
            ProductVariant.stock_quantity >= quantity,
        )
        .update(
            {ProductVariant.stock_quantity: ProductVariant.stock_quantity - quantity},
            synchronize_session=False,
        )
    )
    return affected > 0


def restock(db: Session, variant_id: int, quantity: int) -> bool:
    affected = (
        db.query(ProductVariant)
        .filter(ProductVariant.id == variant_id)
        .update(
            {ProductVariant.stock_quantity: ProductVariant.stock_quantity + quantity},
            synchronize_session=False,
        )
    )
    if not affected:
        logger.warning("restock_variant_missing", variant_id=variant_id, quantity=quantity)
    return affected > 0


def check_availability(db: Session, requested: Dict[int, int]) -> List[dict]:
    """Shortfall entries for every variant that cannot cover its requested quantity."""
    if not requested:
        return []

    rows = (
        db.query(ProductVariant.id, ProductVariant.stock_quantity, Product.name)
        .join(Product, Product.id == ProductVariant.product_id)
        .filter(ProductVariant.id.in_(sorted(requested)))
        .all()
    )
    found = {row.id: row for row in rows}

    shortfalls = []
    for variant_id, quantity in requested.items():
        row = found.get(variant_id)
        available = row.stock_quantity if row else 0
        if available < quantity:
            shortfalls.append(
                {
                    "variant_id": variant_id,
                    "product_name": row.name if row else None,
                    "requested": quantity,
                    "available": available,
                    "shortfall": quantity - available,
                }
            )
    return shortfalls


def log_low_stock(db: Session, variant_ids: List[int]) -> None:
    low = (
        db.query(ProductVariant.id, ProductVariant.product_id, ProductVariant.stock_quantity)
        .filter(
            ProductVariant.id.in_(variant_ids),
            ProductVariant.stock_quantity <= LOW_STOCK_WARNING_THRESHOLD,
        )
        .all()
    )
    for row in low:
        event = "stock_depleted" if row.stock_quantity <= 0 else "stock_depletion_warning"
        logger.warning(
            event,
            variant_id=row.id,
            product_id=row.product_id,
            stock_quantity=row.stock_quantity,
        )
