"""
Catalog and Inventory Repositories - Data Access Layer

Repositories only add and flush; the service layer owns commit/rollback.
"""
from typing import Dict, Iterable, List, Optional
from sqlalchemy import select, update
from sqlalchemy.orm import Session, joinedload, selectinload

from jewelry_crm.models.product import (
    Brand,
    ProductType,
    ProductGroup,
    ProductVariant,
    InventoryCurrent,
    InventoryMovement
)


class ProductRepository:
    """Repository for product groups and variants"""

    def __init__(self, db: Session):
        self.db = db

    def _variant_query(self):
        return select(ProductVariant).options(
            joinedload(ProductVariant.group),
            joinedload(ProductVariant.inventory),
            selectinload(ProductVariant.images)
        )

    def get_by_id(self, variant_id: int) -> Optional[ProductVariant]:
        """Get variant by ID with group, stock and images"""
        return self.db.scalars(
            self._variant_query().where(ProductVariant.id == variant_id)
        ).unique().first()

    def get_by_code(self, code: int) -> Optional[ProductVariant]:
        """Get variant by its human-facing code"""
        return self.db.scalars(
            select(ProductVariant).where(ProductVariant.code == code)
        ).first()

    def get_many(self, variant_ids: Iterable[int]) -> Dict[int, ProductVariant]:
        """Get variants by ID, keyed by ID"""
        ids = set(variant_ids)
        if not ids:
            return {}
        variants = self.db.scalars(
            select(ProductVariant)
            .options(joinedload(ProductVariant.group))
            .where(ProductVariant.id.in_(ids))
        ).all()
        return {v.id: v for v in variants}

    def get_featured(self) -> List[ProductVariant]:
        """Get featured variants, newest first"""
        return self.db.scalars(
            self._variant_query()
            .where(ProductVariant.is_featured.is_(True))
            .order_by(ProductVariant.created_at.desc(), ProductVariant.id.desc())
        ).unique().all()

    def get_brand(self, brand_id: int) -> Optional[Brand]:
        return self.db.get(Brand, brand_id)

    def get_product_type(self, product_type_id: int) -> Optional[ProductType]:
        return self.db.get(ProductType, product_type_id)

    def create_group(self, group_data: dict) -> ProductGroup:
        """Create product group"""
        group = ProductGroup(**group_data)
        self.db.add(group)
        self.db.flush()
        return group

    def create_variant(self, variant_data: dict) -> ProductVariant:
        """Create product variant"""
        variant = ProductVariant(**variant_data)
        self.db.add(variant)
        self.db.flush()
        return variant


class InventoryRepository:
    """Repository for current stock and the movement log"""

    def __init__(self, db: Session):
        self.db = db

    def get_quantity(self, product_id: int) -> Optional[int]:
        """Get current quantity (read from the database, never the identity map)"""
        return self.db.scalar(
            select(InventoryCurrent.quantity).where(InventoryCurrent.product_id == product_id)
        )

    def create(self, product_id: int, quantity: int) -> InventoryCurrent:
        """Create the stock row for a new variant"""
        inventory = InventoryCurrent(product_id=product_id, quantity=quantity)
        self.db.add(inventory)
        self.db.flush()
        return inventory

    def decrement(self, product_id: int, quantity: int) -> bool:
        """
        Atomically subtract quantity if enough stock is on hand

        The availability check and the write are one UPDATE statement, so two
        concurrent callers can never both take the last unit.

        Returns:
            True if the row was updated, False if stock was insufficient or missing
        """
        result = self.db.execute(
            update(InventoryCurrent)
            .where(
                InventoryCurrent.product_id == product_id,
                InventoryCurrent.quantity >= quantity
            )
            .values(quantity=InventoryCurrent.quantity - quantity)
            .execution_options(synchronize_session=False)
        )
        self._expire_cached(product_id)
        return result.rowcount == 1

    def increment(self, product_id: int, quantity: int) -> bool:
        """Add quantity back to stock"""
        result = self.db.execute(
            update(InventoryCurrent)
            .where(InventoryCurrent.product_id == product_id)
            .values(quantity=InventoryCurrent.quantity + quantity)
            .execution_options(synchronize_session=False)
        )
        self._expire_cached(product_id)
        return result.rowcount == 1

    def _expire_cached(self, product_id: int) -> None:
        # Bulk UPDATE bypasses the identity map
        for obj in list(self.db.identity_map.values()):
            if isinstance(obj, InventoryCurrent) and obj.product_id == product_id:
                self.db.expire(obj)

    def add_movement(
        self,
        product_id: int,
        movement_type: str,
        quantity: int,
        reason: Optional[str] = None,
        order_id: Optional[int] = None
    ) -> InventoryMovement:
        """Append a movement record"""
        movement = InventoryMovement(
            product_id=product_id,
            movement_type=movement_type,
            quantity=quantity,
            reason=reason,
            order_id=order_id
        )
        self.db.add(movement)
        self.db.flush()
        return movement

    def get_movements(self, product_id: int) -> List[InventoryMovement]:
        """Get movements for a variant, oldest first"""
        return self.db.scalars(
            select(InventoryMovement)
            .where(InventoryMovement.product_id == product_id)
            .order_by(InventoryMovement.id)
        ).all()
