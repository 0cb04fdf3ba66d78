from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session, selectinload

from storefront.api.deps import require_admin
from storefront.core.exceptions import ProductNotFound
from storefront.core.rate_limiter import limiter
from storefront.db.session import get_db
from storefront.models.product import Product, ProductVariant
from storefront.models.user import User
from storefront.schemas.product import (
    ProductCreate,
    ProductResponse,
    ProductUpdate,
    VariantCreate,
    VariantResponse,
    VariantUpdate,
)
from storefront.utils.response import paginated_response, success

router = APIRouter()


def _get_product(db: Session, product_id: int, include_inactive: bool = False) -> Product:
    query = db.query(Product).options(selectinload(Product.variants)).filter(Product.id == product_id)
    if not include_inactive:
        query = query.filter(Product.is_active == True)
    product = query.first()
    if not product:
        raise ProductNotFound()
    return product


def _product_payload(product: Product) -> dict:
    return ProductResponse.model_validate(product).model_dump()


@router.get("/", response_model=dict)
def list_products(
    category: Optional[str] = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    db: Session = Depends(get_db),
):
    """List enabled products, optionally filtered by category"""
    query = db.query(Product).filter(Product.is_active == True)
    if category:
        query = query.filter(Product.category == category)

    total = query.count()
    products = (
        query.options(selectinload(Product.variants))
        .order_by(Product.created_at.desc(), Product.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return paginated_response(
        [_product_payload(product) for product in products],
        total=total,
        page=page,
        limit=limit,
    )


@router.get("/{product_id}", response_model=dict)
def get_product(product_id: int, db: Session = Depends(get_db)):
    return success(data=_product_payload(_get_product(db, product_id)))


# --------------------------------------------------
# Admin catalog management
# --------------------------------------------------
@router.post("/", response_model=dict, status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
def create_product(
    request: Request,
    product_in: ProductCreate,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    product = Product(**product_in.model_dump(exclude={"variants"}))
    product.variants = [ProductVariant(**variant.model_dump()) for variant in product_in.variants]
    db.add(product)
    db.commit()
    db.refresh(product)
    return success(data=_product_payload(product), message="Product created")


@router.put("/{product_id}", response_model=dict)
@limiter.limit("60/minute")
def update_product(
    request: Request,
    product_id: int,
    product_in: ProductUpdate,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    product = _get_product(db, product_id, include_inactive=True)
    for field, value in product_in.model_dump(exclude_unset=True).items():
        setattr(product, field, value)

    if product.original_price is not None and product.original_price < product.base_price:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="original_price must not be lower than base_price",
        )

    db.commit()
    db.refresh(product)
    return success(data=_product_payload(product), message="Product updated")


@router.delete("/{product_id}", response_model=dict)
def delete_product(
    product_id: int,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    product = _get_product(db, product_id, include_inactive=True)
    db.delete(product)
    db.commit()
    return success(message="Product deleted")


@router.post("/{product_id}/variants", response_model=dict, status_code=status.HTTP_201_CREATED)
def add_variant(
    product_id: int,
    variant_in: VariantCreate,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    product = _get_product(db, product_id, include_inactive=True)
    variant = ProductVariant(product_id=product.id, **variant_in.model_dump())
    db.add(variant)
    db.commit()
    db.refresh(variant)
    return success(data=VariantResponse.model_validate(variant).model_dump(), message="Variant created")


@router.put("/{product_id}/variants/{variant_id}", response_model=dict)
def update_variant(
    product_id: int,
    variant_id: int,
    variant_in: VariantUpdate,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Edit a variant; stock_quantity here is an admin stock count, not a sale."""
    variant = db.query(ProductVariant).filter(
        ProductVariant.id == variant_id,
        ProductVariant.product_id == product_id,
    ).first()
    if not variant:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Product variant not found",
        )

    for field, value in variant_in.model_dump(exclude_unset=True).items():
        setattr(variant, field, value)
    db.commit()
    db.refresh(variant)
    return success(data=VariantResponse.model_validate(variant).model_dump(), message="Variant updated")
