from sqlalchemy import Column, Integer, String, Float, Boolean, ForeignKey, DateTime, Text, Index, CheckConstraint
from sqlalchemy.orm import relationship
from datetime import datetime
from storefront.db.base_class import Base


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False, index=True)
    description = Column(Text, nullable=True)
    category = Column(String(100), nullable=False, index=True)
    image_url = Column(String(500), nullable=True)

    # Pricing
    base_price = Column(Float, nullable=False)
    discount_percentage = Column(Integer, nullable=True)
    original_price = Column(Float, nullable=True)  # Pre-discount reference price

    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    variants = relationship(
        "ProductVariant",
        back_populates="product",
        cascade="all, delete-orphan",
        order_by="ProductVariant.id",
    )

    @property
    def total_stock(self) -> int:
        return sum(variant.stock_quantity for variant in self.variants)

    def effective_price(self, variant=None) -> float:
        if variant is not None and variant.price is not None:
            return variant.price
        return self.base_price


Index('idx_product_category_active', Product.category, Product.is_active)


class ProductVariant(Base):
    """A purchasable colour of a product, with its own price and stock counter"""
    __tablename__ = "product_variants"
    __table_args__ = (
        CheckConstraint("stock_quantity >= 0", name="ck_product_variants_stock_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)

    color_name = Column(String(50), nullable=False)  # Black, Navy, etc.
    color_code = Column(String(20), nullable=True)  # Swatch, e.g. #000000
    price = Column(Float, nullable=True)  # Overrides product base_price when set
    image_url = Column(String(500), nullable=True)

    stock_quantity = Column(Integer, default=0, nullable=False)

    is_active = Column(Boolean, default=True, nullable=False)

    # Relationships
    product = relationship("Product", back_populates="variants")
