"""
Pydantic schemas for order request/response validation
"""
from pydantic import AliasChoices, BaseModel, Field, ConfigDict, field_validator
from pydantic.networks import validate_email
from typing import Optional, Literal, List
from datetime import datetime


class Address(BaseModel):
    """Shipping address (delivery orders only)"""
    line1: Optional[str] = Field(None, max_length=255)
    line2: Optional[str] = Field(None, max_length=255)
    city: Optional[str] = Field(None, max_length=100)
    state: Optional[str] = Field(None, max_length=100)
    postal_code: Optional[str] = Field(None, max_length=20)
    country: Optional[str] = Field(None, max_length=100)


class CustomerInfo(BaseModel):
    """Customer contact data; presence is checked by the order service"""
    name: str = Field("", max_length=255)
    email: str = Field("", max_length=255)
    phone: str = Field("", max_length=50)
    address: Optional[Address] = None

    @field_validator("name", "email", "phone")
    @classmethod
    def strip_whitespace(cls, value: str) -> str:
        return value.strip()

    @field_validator("email")
    @classmethod
    def check_email_format(cls, value: str) -> str:
        if value:
            validate_email(value)
        return value


class CustomerInfoUpdate(BaseModel):
    """Schema for overwriting customer contact data"""
    name: str = Field(..., min_length=1, max_length=255)
    email: str = Field(..., min_length=3, max_length=255)
    phone: str = Field(..., min_length=1, max_length=50)

    @field_validator("email")
    @classmethod
    def check_email_format(cls, value: str) -> str:
        validate_email(value)
        return value


class OrderItemCreate(BaseModel):
    """One requested order line"""
    product_variant_id: int = Field(..., gt=0, description="Product variant ID")
    quantity: int = Field(..., gt=0, description="Quantity to order")
    price: Optional[float] = Field(
        None,
        ge=0,
        description="Unit price (admin orders only; web orders are priced from the catalog)"
    )


class OrderCreate(BaseModel):
    """Schema for creating a new order"""
    customer: CustomerInfo
    items: List[OrderItemCreate] = Field(default_factory=list)
    delivery_option: Literal['delivery', 'pickup'] = 'pickup'
    notes: Optional[str] = Field(None, max_length=2000)


class OrderUpdate(BaseModel):
    """Schema for updating an order (status, customer info, notes)"""
    status: Optional[str] = Field(None, description="Target status code")
    reason: Optional[str] = Field(None, max_length=255, description="Reason recorded in the status history")
    customer_info: Optional[CustomerInfoUpdate] = None
    notes: Optional[str] = Field(None, max_length=2000)


class OrderFilter(BaseModel):
    """Filters for listing orders"""
    status: Optional[str] = None
    search: Optional[str] = None
    page: int = Field(1, ge=1)
    limit: int = Field(20, ge=1)


class OrderStatusResponse(BaseModel):
    """Schema for order status reference data"""
    id: int
    code: str
    name: str
    description: Optional[str] = None
    sort_order: int
    is_terminal: bool

    model_config = ConfigDict(from_attributes=True)


class StatusRef(BaseModel):
    code: str
    name: str

    model_config = ConfigDict(from_attributes=True)


class VariantSummary(BaseModel):
    id: int
    code: int
    size: Optional[str] = None
    color: Optional[str] = None
    name: str = Field(validation_alias=AliasChoices("title", "name"))

    model_config = ConfigDict(from_attributes=True)


class OrderItemResponse(BaseModel):
    """Schema for order line response"""
    id: int
    product_variant_id: int
    qty: int
    unit_price: float
    unit_original_price: Optional[float] = None
    unit_sale_price: Optional[float] = None
    title_snapshot: Optional[str] = None
    sku_snapshot: Optional[str] = None
    line_subtotal: float
    variant: Optional[VariantSummary] = None

    model_config = ConfigDict(from_attributes=True)


class OrderHistoryResponse(BaseModel):
    """Schema for a status history entry"""
    id: int
    from_status: Optional[StatusRef] = None
    to_status: StatusRef
    reason: Optional[str] = None
    meta: Optional[dict] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class OrderResponse(BaseModel):
    """Schema for order response"""
    id: int
    order_number: str
    customer_name: str
    customer_email: str
    customer_phone: str
    status: OrderStatusResponse
    currency: str
    subtotal: float
    discount_total: float
    shipping_total: float
    tax_total: float
    total: float
    orig_price: float
    ship_full_name: Optional[str] = None
    ship_address_line1: Optional[str] = None
    ship_address_line2: Optional[str] = None
    ship_city: Optional[str] = None
    ship_state: Optional[str] = None
    ship_postal_code: Optional[str] = None
    ship_country: Optional[str] = None
    ship_notes: Optional[str] = None
    notes_internal: Optional[str] = None
    placed_at: Optional[datetime] = None
    confirmed_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    canceled_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    items: List[OrderItemResponse] = []

    model_config = ConfigDict(from_attributes=True)


class OrderDetailResponse(OrderResponse):
    """Order with its status history (newest first)"""
    history: List[OrderHistoryResponse] = []


class OrderEnvelope(BaseModel):
    order: OrderDetailResponse


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int


class OrderStatistics(BaseModel):
    """Aggregates over the filtered (not paginated) orders"""
    total_orig_price: float
    total_actual_price: float
    total_discount: float
    discount_percentage: float


class OrderListResponse(BaseModel):
    """Schema for list of orders response"""
    orders: List[OrderResponse]
    pagination: Pagination
    statistics: OrderStatistics


class OrderCreatedResponse(BaseModel):
    """Response for a public checkout order"""
    success: bool = True
    order_id: int
    order_number: str
    message: str = "Order created successfully"


class OrderRef(BaseModel):
    id: int
    order_number: str


class ManualOrderCreatedResponse(BaseModel):
    """Response for an admin manual order"""
    success: bool = True
    order: OrderRef


class OrderUpdateResponse(BaseModel):
    success: bool = True


class OrderEvent(BaseModel):
    """Schema for order event payloads"""
    event_type: str
    event_id: str
    event_version: str = "1.0"
    timestamp: str
    source: str
    data: dict
