"""
Order Service - Business Logic Layer
"""
import logging
import math
import secrets
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy.orm import Session

from jewelry_crm.config import settings
from jewelry_crm.database import transaction, retry_on_lock
from jewelry_crm.exceptions import (
    ConcurrentUpdateError,
    ConfigurationError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError
)
from jewelry_crm.models.order import Order, OrderStatus
from jewelry_crm.publishers.event_publisher import EventPublisher
from jewelry_crm.repositories.order_repository import OrderRepository
from jewelry_crm.repositories.product_repository import ProductRepository
from jewelry_crm.schemas.order import (
    OrderCreate,
    OrderFilter,
    OrderUpdate,
    OrderResponse,
    OrderDetailResponse,
    OrderListResponse,
    OrderStatistics,
    OrderStatusResponse,
    Pagination
)
from jewelry_crm.services.inventory_service import InventoryService
from jewelry_crm.services.status_machine import (
    InvalidTransition,
    InventoryEffect,
    OrderState,
    parse_state,
    transition
)

logger = logging.getLogger(__name__)

SOURCE_WEB = "web"
SOURCE_ADMIN = "admin"

CONFIRMED_REASON = "Order confirmed - inventory deducted"
RESTOCKED_REASON = "Order cancelled - inventory restocked"

# Timestamp column stamped when an order enters a status
STATUS_TIMESTAMPS = {
    OrderState.CONFIRMED: "confirmed_at",
    OrderState.DELIVERED: "delivered_at",
    OrderState.CANCELLED: "canceled_at",
}


def generate_order_number(now: Optional[datetime] = None) -> str:
    """ORD-<UTC timestamp>-<random hex>, e.g. ORD-20260115093000-4F1A2C"""
    now = now or datetime.now(timezone.utc)
    return f"ORD-{now.strftime('%Y%m%d%H%M%S')}-{secrets.token_hex(3).upper()}"


class OrderService:
    """Service layer for the order lifecycle"""

    def __init__(
        self,
        db: Session,
        event_publisher: Optional[EventPublisher] = None,
        restock_on_cancel: Optional[bool] = None
    ):
        self.db = db
        self.repository = OrderRepository(db)
        self.product_repository = ProductRepository(db)
        self.inventory = InventoryService(db)
        self.event_publisher = event_publisher or EventPublisher()
        self.restock_on_cancel = settings.RESTOCK_ON_CANCEL if restock_on_cancel is None else restock_on_cancel

    # ------------------------------------------------------------------ reads

    def get_order(self, order_id: int) -> OrderDetailResponse:
        """
        Get order with status, items and history (newest first)

        Raises:
            NotFoundError: If the order does not exist
        """
        order = self.repository.get_by_id(order_id, with_history=True)
        if not order:
            raise NotFoundError(f"Order with id={order_id} not found")
        return OrderDetailResponse.model_validate(order)

    def list_orders(self, filters: OrderFilter) -> OrderListResponse:
        """
        List orders newest first with pagination and statistics

        Statistics cover every order matching the filters, not just the page.
        """
        status_id = self._status_filter(filters.status)
        search = filters.search.strip() if filters.search else None

        orders = self.repository.get_all(
            status_id=status_id,
            search=search,
            skip=(filters.page - 1) * filters.limit,
            limit=filters.limit
        )
        total = self.repository.count(status_id=status_id, search=search)
        orig, actual = self.repository.totals(status_id=status_id, search=search)

        discount = orig - actual
        return OrderListResponse(
            orders=[OrderResponse.model_validate(o) for o in orders],
            pagination=Pagination(
                page=filters.page,
                limit=filters.limit,
                total=total,
                total_pages=math.ceil(total / filters.limit)
            ),
            statistics=OrderStatistics(
                total_orig_price=round(orig, 2),
                total_actual_price=round(actual, 2),
                total_discount=round(discount, 2),
                discount_percentage=round(discount / orig * 100, 2) if orig > 0 else 0.0
            )
        )

    def list_statuses(self) -> List[OrderStatusResponse]:
        return [OrderStatusResponse.model_validate(s) for s in self.repository.get_statuses()]

    # --------------------------------------------------------------- creation

    @retry_on_lock
    def create_order(self, order_data: OrderCreate, source: str = SOURCE_WEB) -> Order:
        """
        Create a new pending order

        Steps:
        1. Validate customer, items and address
        2. Check stock for every item (advisory, nothing is reserved)
        3. Price the lines (catalog price for web orders, caller price for admin orders)
        4. Save order, items and the initial history row in one transaction
        5. Publish OrderCreated event

        Raises:
            ValidationError: If required input is missing
            NotFoundError: If an item references an unknown variant
            InsufficientStockError: If any item exceeds current stock
            StorageError: If the database write fails (nothing is persisted)
        """
        self._validate_new_order(order_data, source)

        variants = self.product_repository.get_many(i.product_variant_id for i in order_data.items)
        unknown = sorted({i.product_variant_id for i in order_data.items} - set(variants))
        if unknown:
            raise NotFoundError(f"Product variants not found: {unknown}")

        self.inventory.check_availability(
            (item.product_variant_id, item.quantity) for item in order_data.items
        )

        pending = self._require_status(OrderState.PENDING)

        lines = []
        for item in order_data.items:
            variant = variants[item.product_variant_id]
            unit_price = item.price if source == SOURCE_ADMIN else variant.effective_price
            lines.append({
                "product_variant_id": variant.id,
                "qty": item.quantity,
                "unit_price": unit_price,
                "unit_original_price": variant.reference_price,
                "unit_sale_price": variant.sale_price,
                "title_snapshot": variant.title,
                "sku_snapshot": str(variant.code),
                "line_subtotal": round(unit_price * item.quantity, 2),
            })

        subtotal = round(sum(line["line_subtotal"] for line in lines), 2)
        orig_price = round(sum(line["unit_original_price"] * line["qty"] for line in lines), 2)

        with transaction(self.db):
            order = self.repository.create(
                self._order_fields(order_data, source, pending, subtotal, orig_price)
            )
            self.repository.add_items([dict(line, order_id=order.id) for line in lines])

            if source == SOURCE_ADMIN:
                reason = "Order created manually by admin"
            else:
                reason = "Order placed via website"
            self.repository.add_history(
                order_id=order.id,
                from_status_id=None,
                to_status_id=pending.id,
                reason=reason,
                meta={
                    "delivery_option": order_data.delivery_option,
                    "customer_notes": order_data.notes or None,
                    "source": source,
                }
            )

        logger.info("Order %s created (%s, total %.2f)", order.order_number, source, order.total)

        self._publish_safely(self.event_publisher.publish_order_created, {
            "order_id": order.id,
            "order_number": order.order_number,
            "customer_email": order.customer_email,
            "total": order.total,
            "currency": order.currency,
            "items": [{"product_id": l["product_variant_id"], "quantity": l["qty"]} for l in lines],
            "status": OrderState.PENDING.value
        })
        return order

    def _validate_new_order(self, order_data: OrderCreate, source: str) -> None:
        customer = order_data.customer
        if not customer.name or not customer.email or not customer.phone:
            raise ValidationError("Customer name, email, and phone are required")

        if not order_data.items:
            raise ValidationError("At least one order item is required")

        if order_data.delivery_option == "delivery":
            address = customer.address
            if not address or not address.line1 or not address.city or not address.state:
                raise ValidationError("Address line 1, city, and state are required for delivery")

        if source == SOURCE_ADMIN:
            missing = [i.product_variant_id for i in order_data.items if i.price is None]
            if missing:
                raise ValidationError(f"Unit price is required for manual orders (variants: {missing})")
        elif source != SOURCE_WEB:
            raise ValidationError(f"Unknown order source '{source}'")

    def _order_fields(
        self,
        order_data: OrderCreate,
        source: str,
        pending: OrderStatus,
        subtotal: float,
        orig_price: float
    ) -> dict:
        customer = order_data.customer
        delivery = order_data.delivery_option == "delivery"
        address = customer.address if delivery else None
        notes = order_data.notes or ""

        if source == SOURCE_ADMIN:
            notes_internal = f"Created manually by admin. {notes}".strip()
        else:
            notes_internal = f"Delivery option: {order_data.delivery_option}. {notes}".strip()

        order_number = generate_order_number()
        while self.repository.order_number_exists(order_number):
            order_number = generate_order_number()

        return {
            "order_number": order_number,
            "customer_name": customer.name,
            "customer_email": customer.email,
            "customer_phone": customer.phone,
            "status_id": pending.id,
            "currency": settings.DEFAULT_CURRENCY,
            "subtotal": subtotal,
            "discount_total": 0,
            "shipping_total": 0,
            "tax_total": 0,
            "total": subtotal,
            "orig_price": orig_price,
            "ship_full_name": customer.name if delivery else None,
            "ship_address_line1": address.line1 if address else None,
            "ship_address_line2": address.line2 if address else None,
            "ship_city": address.city if address else None,
            "ship_state": address.state if address else None,
            "ship_postal_code": address.postal_code if address else None,
            "ship_country": address.country if address else None,
            "ship_notes": "Store Pickup" if not delivery else (order_data.notes or None),
            "notes_internal": notes_internal,
            "placed_at": datetime.now(timezone.utc),
        }

    # ---------------------------------------------------------------- updates

    @retry_on_lock
    def update_order(self, order_id: int, update_data: OrderUpdate) -> Order:
        """
        Update order status, customer info and notes in one transaction

        Moving to confirmed deducts inventory for every item (all or nothing).
        Moving from confirmed to cancelled restocks when enabled.
        Re-submitting the current status changes nothing.

        Raises:
            NotFoundError: If the order does not exist
            ValidationError: If the target status code is unknown
            InvalidTransitionError: If the status graph forbids the change
            InsufficientStockError: If confirming and any item lacks stock
            ConcurrentUpdateError: If the status keeps changing under concurrent updates
            StorageError: If the database write fails (nothing is persisted)
        """
        order = self.repository.get_by_id(order_id)
        if not order:
            raise NotFoundError(f"Order with id={order_id} not found")

        current = parse_state(order.status.code)
        if current is None:
            raise ConfigurationError(f"Order {order_id} has unknown status '{order.status.code}'")

        target_status = None
        result = None
        if update_data.status:
            target = parse_state(update_data.status)
            if target is None:
                raise ValidationError(f"Status '{update_data.status}' not found")

            result = transition(current, target)
            if isinstance(result, InvalidTransition):
                raise InvalidTransitionError(result.current.value, result.target.value, result.reason)
            if result.changed:
                target_status = self._require_status(target)

        status_changed = target_status is not None
        old_status_code = order.status.code

        with transaction(self.db):
            if status_changed:
                self._apply_transition(order, current, target_status, result.effect, update_data.reason)

            if update_data.customer_info:
                order.customer_name = update_data.customer_info.name
                order.customer_email = update_data.customer_info.email
                order.customer_phone = update_data.customer_info.phone

            if "notes" in update_data.model_fields_set:
                order.notes_internal = update_data.notes

            self.db.flush()

        if status_changed:
            logger.info("Order %s: %s -> %s", order.order_number, old_status_code, target_status.code)
            self._publish_safely(self.event_publisher.publish_order_status_changed, {
                "order_id": order.id,
                "order_number": order.order_number,
                "old_status": old_status_code,
                "new_status": target_status.code,
                "updated_at": datetime.now(timezone.utc).isoformat()
            })
        return order

    def _apply_transition(
        self,
        order: Order,
        current: OrderState,
        target_status: OrderStatus,
        effect: Optional[InventoryEffect],
        reason: Optional[str]
    ) -> None:
        from_status_id = order.status_id
        if not self.repository.claim_status(order.id, from_status_id, target_status.id):
            # Another request changed the status since it was read; the retry re-reads it
            raise ConcurrentUpdateError(
                f"Order {order.order_number} changed status concurrently, expected '{current.value}'"
            )

        meta = None
        if effect == InventoryEffect.DEDUCT:
            meta = {"inventory": self.inventory.deduct_for_order(order)}
            history_reason = CONFIRMED_REASON
            if reason:
                meta["note"] = reason
        elif effect == InventoryEffect.RESTOCK and self.restock_on_cancel:
            meta = {"inventory": self.inventory.restock_for_order(order)}
            history_reason = reason or RESTOCKED_REASON
        else:
            history_reason = reason or f"Status changed to {target_status.code}"

        order.status_id = target_status.id
        order.status = target_status

        stamp = STATUS_TIMESTAMPS.get(OrderState(target_status.code))
        if stamp:
            setattr(order, stamp, datetime.now(timezone.utc))

        self.repository.add_history(
            order_id=order.id,
            from_status_id=from_status_id,
            to_status_id=target_status.id,
            reason=history_reason,
            meta=meta
        )

    # ---------------------------------------------------------------- helpers

    def _require_status(self, state: OrderState) -> OrderStatus:
        status = self.repository.get_status_by_code(state.value)
        if status is None:
            raise ConfigurationError(f"Order status '{state.value}' not found in database")
        return status

    def _status_filter(self, code: Optional[str]) -> Optional[int]:
        if not code or code == "all":
            return None
        status = self.repository.get_status_by_code(code)
        if status is None:
            raise ValidationError(f"Status '{code}' not found")
        return status.id

    @staticmethod
    def _publish_safely(publish, data: dict) -> None:
        # Events go out after commit; a broker failure must not fail the request
        try:
            publish(data)
        except Exception as e:
            logger.warning("Failed to publish order event: %s", e)
