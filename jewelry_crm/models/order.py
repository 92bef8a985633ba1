"""
SQLAlchemy order models
"""
from sqlalchemy import (
    Boolean, Column, Integer, String, Float, DateTime, Text, JSON, ForeignKey, CheckConstraint
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from jewelry_crm.database import Base


# Reference rows the order workflow depends on
ORDER_STATUS_SEED = [
    {"code": "pending", "name": "Pending", "description": "Awaiting confirmation", "sort_order": 1, "is_terminal": False},
    {"code": "confirmed", "name": "Confirmed", "description": "Confirmed, inventory deducted", "sort_order": 2, "is_terminal": False},
    {"code": "delivered", "name": "Delivered", "description": "Handed to the customer", "sort_order": 3, "is_terminal": True},
    {"code": "cancelled", "name": "Cancelled", "description": "Cancelled", "sort_order": 4, "is_terminal": True},
]


class OrderStatus(Base):
    """Order status reference data"""

    __tablename__ = "order_statuses"

    id = Column(Integer, primary_key=True, autoincrement=True)
    code = Column(String(50), nullable=False, unique=True)
    name = Column(String(100), nullable=False)
    description = Column(String(255), nullable=True)
    sort_order = Column(Integer, nullable=False, default=0)
    is_terminal = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<OrderStatus(code='{self.code}', terminal={self.is_terminal})>"


class Order(Base):
    """Order database model"""

    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    order_number = Column(String(50), nullable=False, unique=True, index=True)
    customer_name = Column(String(255), nullable=False)
    customer_email = Column(String(255), nullable=False, index=True)
    customer_phone = Column(String(50), nullable=False)
    status_id = Column(Integer, ForeignKey("order_statuses.id"), nullable=False, index=True)
    currency = Column(String(3), nullable=False, default="USD")
    subtotal = Column(Float, nullable=False, default=0)
    discount_total = Column(Float, nullable=False, default=0)
    shipping_total = Column(Float, nullable=False, default=0)
    tax_total = Column(Float, nullable=False, default=0)
    total = Column(Float, nullable=False, default=0)
    orig_price = Column(Float, nullable=False, default=0)  # Reference-price total for statistics

    # Shipping (delivery orders only)
    ship_full_name = Column(String(255), nullable=True)
    ship_address_line1 = Column(String(255), nullable=True)
    ship_address_line2 = Column(String(255), nullable=True)
    ship_city = Column(String(100), nullable=True)
    ship_state = Column(String(100), nullable=True)
    ship_postal_code = Column(String(20), nullable=True)
    ship_country = Column(String(100), nullable=True)
    ship_notes = Column(Text, nullable=True)

    notes_internal = Column(Text, nullable=True)
    placed_at = Column(DateTime(timezone=True), nullable=True)
    confirmed_at = Column(DateTime(timezone=True), nullable=True)
    delivered_at = Column(DateTime(timezone=True), nullable=True)
    canceled_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    status = relationship("OrderStatus")
    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.id"
    )
    history = relationship(
        "OrderStatusHistory",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderStatusHistory.id.desc()"
    )

    def __repr__(self):
        return f"<Order(id={self.id}, order_number='{self.order_number}', total={self.total})>"


class OrderItem(Base):
    """Order line with price and title snapshot"""

    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_variant_id = Column(Integer, ForeignKey("product_variants.id"), nullable=False, index=True)
    qty = Column(Integer, nullable=False)
    unit_price = Column(Float, nullable=False)
    unit_original_price = Column(Float, nullable=True)
    unit_sale_price = Column(Float, nullable=True)
    title_snapshot = Column(String(255), nullable=True)  # Denormalized for history
    sku_snapshot = Column(String(50), nullable=True)
    line_subtotal = Column(Float, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    order = relationship("Order", back_populates="items")
    variant = relationship("ProductVariant")

    __table_args__ = (
        CheckConstraint('qty > 0', name='check_qty_positive'),
    )

    def __repr__(self):
        return f"<OrderItem(order_id={self.order_id}, variant={self.product_variant_id}, qty={self.qty})>"


class OrderStatusHistory(Base):
    """Append-only status transition log"""

    __tablename__ = "order_status_history"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    from_status_id = Column(Integer, ForeignKey("order_statuses.id"), nullable=True)
    to_status_id = Column(Integer, ForeignKey("order_statuses.id"), nullable=False)
    reason = Column(String(255), nullable=True)
    meta = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    order = relationship("Order", back_populates="history")
    from_status = relationship("OrderStatus", foreign_keys=[from_status_id])
    to_status = relationship("OrderStatus", foreign_keys=[to_status_id])

    def __repr__(self):
        return f"<OrderStatusHistory(order_id={self.order_id}, from={self.from_status_id}, to={self.to_status_id})>"
