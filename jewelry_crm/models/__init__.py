"""
Models package
"""
from jewelry_crm.models.product import (
    Brand,
    ProductType,
    ProductGroup,
    ProductVariant,
    ProductImage,
    InventoryCurrent,
    InventoryMovement
)
from jewelry_crm.models.order import (
    ORDER_STATUS_SEED,
    OrderStatus,
    Order,
    OrderItem,
    OrderStatusHistory
)

__all__ = [
    "Brand",
    "ProductType",
    "ProductGroup",
    "ProductVariant",
    "ProductImage",
    "InventoryCurrent",
    "InventoryMovement",
    "ORDER_STATUS_SEED",
    "OrderStatus",
    "Order",
    "OrderItem",
    "OrderStatusHistory"
]
