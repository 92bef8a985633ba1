import os

# Must be set before jewelry_crm.config is imported
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("EVENTS_ENABLED", "false")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import func, select
from sqlalchemy.orm import sessionmaker

from jewelry_crm.api.orders import get_event_publisher
from jewelry_crm.database import build_engine, get_db, init_db
from jewelry_crm.main import app
from jewelry_crm.models import (
    Brand,
    InventoryCurrent,
    ProductGroup,
    ProductImage,
    ProductType,
    ProductVariant
)
from jewelry_crm.repositories.product_repository import InventoryRepository
from jewelry_crm.schemas.order import CustomerInfo, OrderCreate, OrderItemCreate
from jewelry_crm.services.order_service import OrderService


class RecordingPublisher:
    """Stands in for RabbitMQ; keeps published events in memory"""

    def __init__(self):
        self.events = []

    def publish_order_created(self, data):
        self.events.append(("OrderCreated", data))
        return True

    def publish_order_status_changed(self, data):
        self.events.append(("OrderStatusChanged", data))
        return True


def make_session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def engine():
    engine = build_engine("sqlite://")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def publisher():
    return RecordingPublisher()


@pytest.fixture
def order_service(db, publisher):
    return OrderService(db, event_publisher=publisher)


@pytest.fixture
def client(session_factory, publisher):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_event_publisher] = lambda: publisher
    yield TestClient(app)
    app.dependency_overrides.clear()


def get_or_create_catalog_refs(db):
    brand = db.scalars(select(Brand).where(Brand.name == "Casa Aurora")).first()
    if brand is None:
        brand = Brand(name="Casa Aurora")
        db.add(brand)
    product_type = db.scalars(select(ProductType).where(ProductType.name == "Rings")).first()
    if product_type is None:
        product_type = ProductType(name="Rings")
        db.add(product_type)
    db.flush()
    return brand, product_type


def make_variant(
    db,
    code,
    price=100.0,
    quantity=5,
    name="Solitaire Ring",
    original_price=None,
    sale_price=None,
    featured=False,
    image_url=None
):
    """Create group + variant + stock row and commit"""
    brand, product_type = get_or_create_catalog_refs(db)
    group = ProductGroup(name=name, brand_id=brand.id, product_type_id=product_type.id)
    db.add(group)
    db.flush()
    variant = ProductVariant(
        product_group_id=group.id,
        code=code,
        price=price,
        original_price=original_price,
        sale_price=sale_price,
        size="7",
        color="gold",
        is_featured=featured
    )
    db.add(variant)
    db.flush()
    db.add(InventoryCurrent(product_id=variant.id, quantity=quantity))
    if image_url:
        db.add(ProductImage(product_id=variant.id, url=image_url, sort_order=0))
    db.commit()
    return variant


def stock_of(db, variant_id):
    return db.scalar(
        select(InventoryCurrent.quantity).where(InventoryCurrent.product_id == variant_id)
    )


def movements_of(db, variant_id):
    return InventoryRepository(db).get_movements(variant_id)


def count_rows(db, model):
    return db.scalar(select(func.count()).select_from(model))


def order_request(*lines, name="Jane Doe", email="jane@example.com", phone="+58 412 5550101",
                  delivery_option="pickup", address=None, notes=None):
    """Build an OrderCreate from (variant_id, quantity[, price]) tuples"""
    items = []
    for line in lines:
        variant_id, quantity = line[0], line[1]
        price = line[2] if len(line) > 2 else None
        items.append(OrderItemCreate(product_variant_id=variant_id, quantity=quantity, price=price))
    return OrderCreate(
        customer=CustomerInfo(name=name, email=email, phone=phone, address=address),
        items=items,
        delivery_option=delivery_option,
        notes=notes
    )
