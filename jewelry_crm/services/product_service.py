"""
Product Service - Business Logic Layer
"""
import logging
from typing import List

from sqlalchemy.orm import Session

from jewelry_crm.database import transaction
from jewelry_crm.exceptions import NotFoundError, StorageError, ValidationError
from jewelry_crm.repositories.product_repository import InventoryRepository, ProductRepository
from jewelry_crm.schemas.product import ProductCreate, ProductRef, ProductResponse
from jewelry_crm.services.inventory_service import MOVEMENT_IN

logger = logging.getLogger(__name__)


class ProductService:
    """Service layer for catalog business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repository = ProductRepository(db)
        self.inventory_repository = InventoryRepository(db)

    def get_product_by_id(self, product_id: int) -> ProductResponse:
        """
        Get variant with group, images and current stock

        Raises:
            NotFoundError: If the variant does not exist
        """
        variant = self.repository.get_by_id(product_id)
        if not variant:
            raise NotFoundError(f"Product with id={product_id} not found")
        return ProductResponse.model_validate(variant)

    def get_featured_products(self) -> List[ProductResponse]:
        """Featured variants that have a primary image and stock on hand"""
        return [
            ProductResponse.model_validate(v)
            for v in self.repository.get_featured()
            if v.images and v.images[0].url and v.stock > 0
        ]

    def create_product(self, product_data: ProductCreate) -> ProductRef:
        """
        Create product group, variant, stock row and opening movement

        All four writes share one transaction, so a failure leaves no
        orphaned group or variant behind.

        Raises:
            ValidationError: If the product code is already used
            NotFoundError: If the brand or product type does not exist
        """
        if self.repository.get_by_code(product_data.code):
            raise ValidationError(f"Product code {product_data.code} already exists")
        if not self.repository.get_brand(product_data.brand_id):
            raise NotFoundError(f"Brand with id={product_data.brand_id} not found")
        if not self.repository.get_product_type(product_data.product_type_id):
            raise NotFoundError(f"Product type with id={product_data.product_type_id} not found")

        try:
            with transaction(self.db):
                group = self.repository.create_group({
                    "name": product_data.group_name,
                    "description": product_data.group_description,
                    "brand_id": product_data.brand_id,
                    "product_type_id": product_data.product_type_id,
                })
                variant = self.repository.create_variant({
                    "product_group_id": group.id,
                    "code": product_data.code,
                    "size": product_data.size,
                    "color": product_data.color,
                    "price": product_data.price,
                    "original_price": product_data.original_price,
                    "sale_price": product_data.sale_price,
                    "composition": product_data.composition,
                    "is_featured": product_data.is_featured,
                })
                self.inventory_repository.create(variant.id, product_data.initial_quantity)
                if product_data.initial_quantity > 0:
                    self.inventory_repository.add_movement(
                        variant.id, MOVEMENT_IN, product_data.initial_quantity, reason="Initial stock"
                    )
        except StorageError as e:
            # Lost a race with another request creating the same code
            if self.repository.get_by_code(product_data.code):
                raise ValidationError(f"Product code {product_data.code} already exists") from e
            raise

        logger.info("Product %s created (code %s, stock %s)", variant.id, variant.code, product_data.initial_quantity)
        return ProductRef(id=variant.id, group_id=group.id, code=variant.code, name=group.name)
