"""
Order Repository - Data Access Layer
"""
from typing import List, Optional, Tuple
from sqlalchemy import desc, func, or_, select, update
from sqlalchemy.orm import Session, joinedload, selectinload

from jewelry_crm.models.order import Order, OrderItem, OrderStatus, OrderStatusHistory
from jewelry_crm.models.product import ProductVariant


def _like_pattern(term: str) -> str:
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


class OrderRepository:
    """Repository for Order CRUD operations"""

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, order_id: int, with_history: bool = False) -> Optional[Order]:
        """Get order by ID with status and items (and history when asked)"""
        options = [
            joinedload(Order.status),
            selectinload(Order.items).joinedload(OrderItem.variant).joinedload(ProductVariant.group)
        ]
        if with_history:
            options.append(
                selectinload(Order.history).options(
                    joinedload(OrderStatusHistory.from_status),
                    joinedload(OrderStatusHistory.to_status)
                )
            )
        return self.db.scalars(
            select(Order)
            .options(*options)
            .where(Order.id == order_id)
            .execution_options(populate_existing=True)
        ).unique().first()

    def order_number_exists(self, order_number: str) -> bool:
        return self.db.scalar(
            select(func.count(Order.id)).where(Order.order_number == order_number)
        ) > 0

    def create(self, order_data: dict) -> Order:
        """
        Create new order

        Args:
            order_data: Dictionary with order fields

        Returns:
            Created (flushed, uncommitted) order
        """
        order = Order(**order_data)
        self.db.add(order)
        self.db.flush()
        return order

    def add_items(self, items: List[dict]) -> List[OrderItem]:
        rows = [OrderItem(**item) for item in items]
        self.db.add_all(rows)
        self.db.flush()
        return rows

    def add_history(
        self,
        order_id: int,
        from_status_id: Optional[int],
        to_status_id: int,
        reason: Optional[str],
        meta: Optional[dict] = None
    ) -> OrderStatusHistory:
        """Append a status history row"""
        entry = OrderStatusHistory(
            order_id=order_id,
            from_status_id=from_status_id,
            to_status_id=to_status_id,
            reason=reason,
            meta=meta
        )
        self.db.add(entry)
        self.db.flush()
        return entry

    def claim_status(self, order_id: int, expected_status_id: int, new_status_id: int) -> bool:
        """
        Move the order to new_status_id only if it is still in expected_status_id

        The row lock taken by the UPDATE serializes concurrent status changes;
        the loser sees the committed status and updates nothing.

        Returns:
            True if this caller made the change
        """
        result = self.db.execute(
            update(Order)
            .where(Order.id == order_id, Order.status_id == expected_status_id)
            .values(status_id=new_status_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def _apply_filters(self, query, status_id: Optional[int], search: Optional[str]):
        if status_id is not None:
            query = query.where(Order.status_id == status_id)
        if search:
            pattern = _like_pattern(search)
            query = query.where(or_(
                Order.customer_name.ilike(pattern, escape="\\"),
                Order.customer_email.ilike(pattern, escape="\\"),
                Order.customer_phone.ilike(pattern, escape="\\"),
                Order.order_number.ilike(pattern, escape="\\")
            ))
        return query

    def get_all(
        self,
        status_id: Optional[int] = None,
        search: Optional[str] = None,
        skip: int = 0,
        limit: int = 20
    ) -> List[Order]:
        """Get filtered orders, newest first"""
        query = select(Order).options(
            joinedload(Order.status),
            selectinload(Order.items).joinedload(OrderItem.variant).joinedload(ProductVariant.group)
        )
        query = self._apply_filters(query, status_id, search)
        query = query.order_by(desc(Order.created_at), desc(Order.id)).offset(skip).limit(limit)
        return self.db.scalars(query).unique().all()

    def count(self, status_id: Optional[int] = None, search: Optional[str] = None) -> int:
        """Get count of filtered orders"""
        query = self._apply_filters(select(func.count(Order.id)), status_id, search)
        return self.db.scalar(query)

    def totals(self, status_id: Optional[int] = None, search: Optional[str] = None) -> Tuple[float, float]:
        """Sum of reference prices and of actual totals over the filtered orders"""
        query = select(
            func.coalesce(func.sum(Order.orig_price), 0),
            func.coalesce(func.sum(Order.total), 0)
        )
        orig, actual = self.db.execute(self._apply_filters(query, status_id, search)).one()
        return float(orig), float(actual)

    def get_status_by_code(self, code: str) -> Optional[OrderStatus]:
        return self.db.scalars(select(OrderStatus).where(OrderStatus.code == code)).first()

    def get_statuses(self) -> List[OrderStatus]:
        return self.db.scalars(select(OrderStatus).order_by(OrderStatus.sort_order)).all()
