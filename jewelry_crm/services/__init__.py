"""
Services package
"""
from jewelry_crm.services.order_service import OrderService
from jewelry_crm.services.product_service import ProductService
from jewelry_crm.services.inventory_service import InventoryService

__all__ = ["OrderService", "ProductService", "InventoryService"]
