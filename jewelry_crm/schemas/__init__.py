"""
Schemas package
"""
from jewelry_crm.schemas.order import (
    Address,
    CustomerInfo,
    CustomerInfoUpdate,
    OrderItemCreate,
    OrderCreate,
    OrderUpdate,
    OrderFilter,
    OrderStatusResponse,
    OrderResponse,
    OrderDetailResponse,
    OrderListResponse,
    OrderEvent
)
from jewelry_crm.schemas.product import (
    ProductCreate,
    ProductResponse,
    ProductCreatedResponse,
    FeaturedProductsResponse
)

__all__ = [
    "Address",
    "CustomerInfo",
    "CustomerInfoUpdate",
    "OrderItemCreate",
    "OrderCreate",
    "OrderUpdate",
    "OrderFilter",
    "OrderStatusResponse",
    "OrderResponse",
    "OrderDetailResponse",
    "OrderListResponse",
    "OrderEvent",
    "ProductCreate",
    "ProductResponse",
    "ProductCreatedResponse",
    "FeaturedProductsResponse"
]
