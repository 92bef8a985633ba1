"""
Order API endpoints
"""
from fastapi import APIRouter, Depends, status, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from jewelry_crm.config import settings
from jewelry_crm.database import get_db
from jewelry_crm.publishers.event_publisher import EventPublisher
from jewelry_crm.services.order_service import OrderService, SOURCE_ADMIN, SOURCE_WEB
from jewelry_crm.schemas.order import (
    OrderCreate,
    OrderFilter,
    OrderUpdate,
    OrderEnvelope,
    OrderListResponse,
    OrderCreatedResponse,
    ManualOrderCreatedResponse,
    OrderRef,
    OrderStatusResponse,
    OrderUpdateResponse
)

router = APIRouter(tags=["orders"])


def get_event_publisher() -> EventPublisher:
    """Dependency to get EventPublisher instance"""
    return EventPublisher()


def get_order_service(
    db: Session = Depends(get_db),
    publisher: EventPublisher = Depends(get_event_publisher)
) -> OrderService:
    """Dependency to get OrderService instance"""
    return OrderService(db, event_publisher=publisher)


@router.post(
    "/orders",
    response_model=OrderCreatedResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create order (checkout)"
)
def create_order(
    order_data: OrderCreate,
    service: OrderService = Depends(get_order_service)
):
    """
    Create a new order from the storefront checkout

    Process:
    1. Validate customer data, items and delivery address
    2. Check stock availability (nothing is reserved)
    3. Price every line from the catalog
    4. Save order, items and initial status history

    - **customer**: name, email, phone (required), address (required for delivery)
    - **items**: product_variant_id and quantity for each line
    - **delivery_option**: delivery or pickup
    """
    order = service.create_order(order_data, source=SOURCE_WEB)
    return OrderCreatedResponse(order_id=order.id, order_number=order.order_number)


@router.post(
    "/orders/manual",
    response_model=ManualOrderCreatedResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create manual order (admin)"
)
def create_manual_order(
    order_data: OrderCreate,
    service: OrderService = Depends(get_order_service)
):
    """
    Create an order from the admin CRM

    Same as checkout, except each item carries its own unit price.
    """
    order = service.create_order(order_data, source=SOURCE_ADMIN)
    return ManualOrderCreatedResponse(order=OrderRef(id=order.id, order_number=order.order_number))


@router.get("/orders", response_model=OrderListResponse, summary="List orders")
def get_orders(
    status_code: Optional[str] = Query(None, alias="status", description="Status code, or 'all'"),
    search: Optional[str] = Query(None, description="Matches customer name, email, phone or order number"),
    page: int = Query(1, ge=1, description="Page number"),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE, description="Orders per page"),
    service: OrderService = Depends(get_order_service)
):
    """
    Retrieve orders newest first, with pagination and statistics

    Statistics (original vs actual price, discount) cover every order
    matching the filters, not only the current page.
    """
    filters = OrderFilter(status=status_code, search=search, page=page, limit=limit)
    return service.list_orders(filters)


@router.get("/orders/{order_id}", response_model=OrderEnvelope, summary="Get order by ID")
def get_order(
    order_id: int,
    service: OrderService = Depends(get_order_service)
):
    """
    Retrieve an order with its items and status history

    - **order_id**: Order ID
    """
    return OrderEnvelope(order=service.get_order(order_id))


@router.patch("/orders/{order_id}", response_model=OrderUpdateResponse, summary="Update order")
def update_order(
    order_id: int,
    update_data: OrderUpdate,
    service: OrderService = Depends(get_order_service)
):
    """
    Update order status, customer info and internal notes

    Changing the status to **confirmed** deducts inventory for every item;
    the request fails without changing anything if any item lacks stock.

    - **status**: pending, confirmed, delivered, cancelled
    - **customer_info**: name, email, phone
    - **notes**: internal notes (overwrites)
    """
    service.update_order(order_id, update_data)
    return OrderUpdateResponse()


@router.get("/order-statuses", response_model=List[OrderStatusResponse], summary="List order statuses")
def get_order_statuses(service: OrderService = Depends(get_order_service)):
    """Order status reference data ordered by workflow position"""
    return service.list_statuses()
