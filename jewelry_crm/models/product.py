"""
SQLAlchemy catalog and inventory models
"""
from sqlalchemy import (
    Boolean, Column, Integer, String, Float, DateTime, Text, ForeignKey, CheckConstraint
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from jewelry_crm.database import Base


class Brand(Base):
    """Jewelry brand"""

    __tablename__ = "brands"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False, unique=True)

    def __repr__(self):
        return f"<Brand(id={self.id}, name='{self.name}')>"


class ProductType(Base):
    """Product type (ring, necklace, earrings...)"""

    __tablename__ = "product_types"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False, unique=True)

    def __repr__(self):
        return f"<ProductType(id={self.id}, name='{self.name}')>"


class ProductGroup(Base):
    """The logical product shared by one or more variants"""

    __tablename__ = "product_groups"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(255), nullable=False, index=True)
    description = Column(Text, nullable=True)
    brand_id = Column(Integer, ForeignKey("brands.id"), nullable=False)
    product_type_id = Column(Integer, ForeignKey("product_types.id"), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    brand = relationship("Brand")
    product_type = relationship("ProductType")
    variants = relationship("ProductVariant", back_populates="group")

    def __repr__(self):
        return f"<ProductGroup(id={self.id}, name='{self.name}')>"


class ProductVariant(Base):
    """A purchasable SKU (size/color/code combination)"""

    __tablename__ = "product_variants"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    product_group_id = Column(Integer, ForeignKey("product_groups.id"), nullable=False, index=True)
    code = Column(Integer, nullable=False, unique=True, index=True)
    size = Column(String(50), nullable=True)
    color = Column(String(50), nullable=True)
    price = Column(Float, nullable=False)
    original_price = Column(Float, nullable=True)
    sale_price = Column(Float, nullable=True)
    composition = Column(String(255), nullable=True)
    is_featured = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    group = relationship("ProductGroup", back_populates="variants")
    images = relationship("ProductImage", order_by="ProductImage.sort_order")
    inventory = relationship("InventoryCurrent", uselist=False)

    __table_args__ = (
        CheckConstraint('price > 0', name='check_variant_price_positive'),
    )

    @property
    def effective_price(self) -> float:
        """Price the customer pays"""
        return self.sale_price if self.sale_price is not None else self.price

    @property
    def reference_price(self) -> float:
        """Price before any discount"""
        return self.original_price if self.original_price is not None else self.price

    @property
    def title(self) -> str:
        return self.group.name if self.group else f"Product {self.code}"

    @property
    def stock(self) -> int:
        return self.inventory.quantity if self.inventory else 0

    def __repr__(self):
        return f"<ProductVariant(id={self.id}, code={self.code}, price={self.price})>"


class ProductImage(Base):
    """Image metadata for a variant (files live on the CDN)"""

    __tablename__ = "product_images"

    id = Column(Integer, primary_key=True, autoincrement=True)
    product_id = Column(Integer, ForeignKey("product_variants.id", ondelete="CASCADE"), nullable=False, index=True)
    url = Column(String(500), nullable=False)
    alt_text = Column(String(255), nullable=True)
    sort_order = Column(Integer, nullable=False, default=0)


class InventoryCurrent(Base):
    """Current on-hand quantity, one row per variant"""

    __tablename__ = "inventory_current"

    product_id = Column(Integer, ForeignKey("product_variants.id", ondelete="CASCADE"), primary_key=True)
    quantity = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    # Backstop only: the workflow never attempts a decrement below zero
    __table_args__ = (
        CheckConstraint('quantity >= 0', name='check_inventory_non_negative'),
    )

    def __repr__(self):
        return f"<InventoryCurrent(product_id={self.product_id}, quantity={self.quantity})>"


class InventoryMovement(Base):
    """Append-only audit record of a stock change"""

    __tablename__ = "inventory_movements"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    product_id = Column(Integer, ForeignKey("product_variants.id", ondelete="CASCADE"), nullable=False, index=True)
    movement_type = Column(String(3), nullable=False)
    quantity = Column(Integer, nullable=False)
    reason = Column(String(255), nullable=True)
    order_id = Column(Integer, nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        CheckConstraint("movement_type IN ('IN', 'OUT')", name='check_movement_type_valid'),
        CheckConstraint('quantity > 0', name='check_movement_quantity_positive'),
    )

    def __repr__(self):
        return f"<InventoryMovement(product_id={self.product_id}, type='{self.movement_type}', quantity={self.quantity})>"
