"""
Repositories package
"""
from jewelry_crm.repositories.order_repository import OrderRepository
from jewelry_crm.repositories.product_repository import ProductRepository, InventoryRepository

__all__ = ["OrderRepository", "ProductRepository", "InventoryRepository"]
