import re

import pytest
from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError

from jewelry_crm.exceptions import InsufficientStockError, NotFoundError, StorageError, ValidationError
from jewelry_crm.models import InventoryCurrent, Order, OrderItem, OrderStatusHistory
from jewelry_crm.repositories.order_repository import OrderRepository
from jewelry_crm.schemas.order import Address
from jewelry_crm.services.order_service import SOURCE_ADMIN, generate_order_number

from conftest import count_rows, make_variant, order_request, stock_of


def test_create_order_totals_and_initial_history(db, order_service):
    ring = make_variant(db, code=1001, price=120.0, quantity=5)
    chain = make_variant(db, code=1002, price=45.5, quantity=3, name="Venetian Chain")

    order = order_service.create_order(order_request((ring.id, 2), (chain.id, 1)))

    assert order.total == pytest.approx(2 * 120.0 + 45.5)
    assert order.subtotal == order.total
    assert order.total == pytest.approx(
        order.subtotal - order.discount_total + order.shipping_total + order.tax_total
    )
    items = db.scalars(select(OrderItem).where(OrderItem.order_id == order.id)).all()
    assert sum(i.unit_price * i.qty for i in items) == pytest.approx(order.total)
    for item in items:
        assert item.line_subtotal == pytest.approx(item.unit_price * item.qty)

    history = db.scalars(select(OrderStatusHistory).where(OrderStatusHistory.order_id == order.id)).all()
    assert len(history) == 1
    assert history[0].from_status_id is None
    assert history[0].to_status.code == "pending"
    assert history[0].reason == "Order placed via website"


def test_creation_does_not_touch_stock(db, order_service):
    ring = make_variant(db, code=1001, quantity=5)

    order_service.create_order(order_request((ring.id, 2)))

    assert stock_of(db, ring.id) == 5


def test_items_snapshot_catalog_title_and_sku(db, order_service):
    ring = make_variant(db, code=2040, price=80.0, name="Emerald Ring")

    order = order_service.create_order(order_request((ring.id, 1)))

    item = db.scalars(select(OrderItem).where(OrderItem.order_id == order.id)).one()
    assert item.title_snapshot == "Emerald Ring"
    assert item.sku_snapshot == "2040"

    ring.group.name = "Renamed"
    db.commit()
    db.refresh(item)
    assert item.title_snapshot == "Emerald Ring"


def test_web_order_is_priced_from_catalog(db, order_service):
    ring = make_variant(db, code=1001, price=100.0, sale_price=85.0, original_price=130.0)

    # Caller-supplied prices are ignored on the public checkout path
    order = order_service.create_order(order_request((ring.id, 2, 1.0)))

    assert order.total == pytest.approx(170.0)
    assert order.orig_price == pytest.approx(260.0)


def test_admin_order_accepts_custom_price(db, order_service):
    ring = make_variant(db, code=1001, price=100.0)

    order = order_service.create_order(order_request((ring.id, 2, 90.0)), source=SOURCE_ADMIN)

    assert order.total == pytest.approx(180.0)
    assert order.orig_price == pytest.approx(200.0)
    assert order.notes_internal.startswith("Created manually by admin.")
    history = db.scalars(select(OrderStatusHistory).where(OrderStatusHistory.order_id == order.id)).one()
    assert history.reason == "Order created manually by admin"


def test_admin_order_requires_unit_price(db, order_service):
    ring = make_variant(db, code=1001)

    with pytest.raises(ValidationError):
        order_service.create_order(order_request((ring.id, 1)), source=SOURCE_ADMIN)


def test_empty_items_rejected(db, order_service):
    with pytest.raises(ValidationError):
        order_service.create_order(order_request())
    assert count_rows(db, Order) == 0


@pytest.mark.parametrize("field", ["name", "email", "phone"])
def test_customer_fields_required(db, order_service, field):
    ring = make_variant(db, code=1001)
    kwargs = {field: ""}

    with pytest.raises(ValidationError):
        order_service.create_order(order_request((ring.id, 1), **kwargs))
    assert count_rows(db, Order) == 0


def test_delivery_requires_address(db, order_service):
    ring = make_variant(db, code=1001)

    with pytest.raises(ValidationError):
        order_service.create_order(order_request((ring.id, 1), delivery_option="delivery"))

    with pytest.raises(ValidationError):
        order_service.create_order(order_request(
            (ring.id, 1),
            delivery_option="delivery",
            address=Address(line1="Av. Libertador 12", city="Caracas")
        ))


def test_delivery_order_stores_shipping_fields(db, order_service):
    ring = make_variant(db, code=1001)
    address = Address(line1="Av. Libertador 12", city="Caracas", state="Distrito Capital", country="VE")

    order = order_service.create_order(order_request(
        (ring.id, 1), delivery_option="delivery", address=address, notes="Ring the bell"
    ))

    assert order.ship_full_name == "Jane Doe"
    assert order.ship_city == "Caracas"
    assert order.ship_notes == "Ring the bell"
    assert order.notes_internal == "Delivery option: delivery. Ring the bell"


def test_pickup_order_ignores_address(db, order_service):
    ring = make_variant(db, code=1001)

    order = order_service.create_order(order_request(
        (ring.id, 1), address=Address(line1="Somewhere", city="Valencia", state="Carabobo")
    ))

    assert order.ship_notes == "Store Pickup"
    assert order.ship_full_name is None
    assert order.ship_city is None


def test_insufficient_stock_rejected_without_writes(db, order_service, publisher):
    ring = make_variant(db, code=1001, quantity=1, name="Pearl Earrings")

    with pytest.raises(InsufficientStockError) as exc_info:
        order_service.create_order(order_request((ring.id, 2)))

    err = exc_info.value
    assert (err.product_id, err.available, err.required) == (ring.id, 1, 2)
    assert "Pearl Earrings" in err.message
    assert count_rows(db, Order) == 0
    assert count_rows(db, OrderItem) == 0
    assert count_rows(db, OrderStatusHistory) == 0
    assert publisher.events == []


def test_repeated_lines_are_checked_against_combined_quantity(db, order_service):
    ring = make_variant(db, code=1001, quantity=3)

    with pytest.raises(InsufficientStockError) as exc_info:
        order_service.create_order(order_request((ring.id, 2), (ring.id, 2)))
    assert exc_info.value.required == 4


def test_unknown_variant_is_not_found(db, order_service):
    ring = make_variant(db, code=1001)

    with pytest.raises(NotFoundError) as exc_info:
        order_service.create_order(order_request((ring.id, 1), (999, 1)))

    assert "999" in exc_info.value.message
    assert count_rows(db, Order) == 0


def test_storage_failure_leaves_no_partial_order(db, order_service, monkeypatch):
    ring = make_variant(db, code=1001)

    def fail(self, items):
        raise SQLAlchemyError("order_items insert failed")

    monkeypatch.setattr(OrderRepository, "add_items", fail)

    with pytest.raises(StorageError):
        order_service.create_order(order_request((ring.id, 1)))

    assert count_rows(db, Order) == 0
    assert count_rows(db, OrderStatusHistory) == 0


def test_order_created_event_published(db, order_service, publisher):
    ring = make_variant(db, code=1001)

    order = order_service.create_order(order_request((ring.id, 1)))

    assert publisher.events[0][0] == "OrderCreated"
    assert publisher.events[0][1]["order_number"] == order.order_number


def test_order_numbers_are_unique(db, order_service):
    ring = make_variant(db, code=1001, quantity=50)

    numbers = {order_service.create_order(order_request((ring.id, 1))).order_number for _ in range(10)}

    assert len(numbers) == 10
    assert all(re.fullmatch(r"ORD-\d{14}-[0-9A-F]{6}", n) for n in numbers)


def test_generate_order_number_format():
    assert re.fullmatch(r"ORD-\d{14}-[0-9A-F]{6}", generate_order_number())


def test_variant_without_stock_row_is_out_of_stock(db, order_service):
    ring = make_variant(db, code=1001)
    db.execute(delete(InventoryCurrent).where(InventoryCurrent.product_id == ring.id))
    db.commit()

    with pytest.raises(InsufficientStockError) as exc_info:
        order_service.create_order(order_request((ring.id, 1)))
    assert exc_info.value.available == 0
