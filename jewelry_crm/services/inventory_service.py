"""
Inventory Service - stock checks, deduction and restocking

Callers run these methods inside one unit of work; raising aborts every
write made so far in that transaction.
"""
import logging
from collections import OrderedDict
from typing import Iterable, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from jewelry_crm.exceptions import InsufficientStockError
from jewelry_crm.models.order import Order
from jewelry_crm.repositories.product_repository import InventoryRepository, ProductRepository

logger = logging.getLogger(__name__)

MOVEMENT_IN = "IN"
MOVEMENT_OUT = "OUT"


class InventoryService:
    """Service layer for stock levels"""

    def __init__(self, db: Session):
        self.db = db
        self.repository = InventoryRepository(db)
        self.product_repository = ProductRepository(db)

    def get_available(self, product_id: int) -> int:
        """Current quantity, 0 when the variant has no stock row"""
        return self.repository.get_quantity(product_id) or 0

    def check_availability(self, lines: Iterable[Tuple[int, int]]) -> None:
        """
        Check that every (product_id, quantity) line can be served

        Quantities for the same product are summed. Read-only: nothing is
        reserved, so the result is advisory until confirmation.

        Raises:
            InsufficientStockError: For the first product that falls short
        """
        required = OrderedDict()
        for product_id, quantity in lines:
            required[product_id] = required.get(product_id, 0) + quantity

        for product_id, quantity in required.items():
            available = self.get_available(product_id)
            if available < quantity:
                raise InsufficientStockError(
                    product_id=product_id,
                    available=available,
                    required=quantity,
                    product_name=self._product_name(product_id)
                )

    def deduct_for_order(self, order: Order) -> List[dict]:
        """
        Take every item of the order out of stock

        Each decrement is a conditional UPDATE, so concurrent confirmations
        cannot oversell. A shortfall on any item raises before commit and the
        caller's transaction discards the decrements already applied.

        Raises:
            InsufficientStockError: If any item lacks stock
        """
        deducted = []
        for item in order.items:
            if not self.repository.decrement(item.product_variant_id, item.qty):
                raise InsufficientStockError(
                    product_id=item.product_variant_id,
                    available=self.get_available(item.product_variant_id),
                    required=item.qty,
                    product_name=item.title_snapshot or None
                )
            deducted.append({"product_id": item.product_variant_id, "qty": item.qty})

        for line in deducted:
            self.record_movement(
                line["product_id"], MOVEMENT_OUT, line["qty"],
                reason=f"Order {order.order_number} confirmed",
                order_id=order.id
            )
        return deducted

    def restock_for_order(self, order: Order) -> List[dict]:
        """Put every item of the order back into stock"""
        restocked = []
        for item in order.items:
            if not self.repository.increment(item.product_variant_id, item.qty):
                # Variant lost its stock row; recreate it rather than drop the units
                self.repository.create(item.product_variant_id, item.qty)
            restocked.append({"product_id": item.product_variant_id, "qty": item.qty})

        for line in restocked:
            self.record_movement(
                line["product_id"], MOVEMENT_IN, line["qty"],
                reason=f"Order {order.order_number} cancelled",
                order_id=order.id
            )
        return restocked

    def record_movement(
        self,
        product_id: int,
        movement_type: str,
        quantity: int,
        reason: Optional[str] = None,
        order_id: Optional[int] = None
    ) -> bool:
        """
        Append a movement inside a savepoint

        The movement log is an audit trail, so a failed insert is logged and
        rolled back to the savepoint without aborting the stock change.
        """
        try:
            with self.db.begin_nested():
                self.repository.add_movement(product_id, movement_type, quantity, reason, order_id)
            return True
        except SQLAlchemyError as e:
            logger.warning(
                "Failed to record %s movement of %s for product %s: %s",
                movement_type, quantity, product_id, e
            )
            return False

    def _product_name(self, product_id: int) -> Optional[str]:
        variant = self.product_repository.get_many([product_id]).get(product_id)
        return variant.title if variant else None
