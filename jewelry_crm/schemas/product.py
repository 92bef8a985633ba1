"""
Pydantic schemas for catalog request/response validation
"""
from pydantic import AliasChoices, BaseModel, Field, ConfigDict
from typing import Optional, List
from datetime import datetime


class ProductCreate(BaseModel):
    """Schema for creating a product group with its first variant and stock"""
    # Product group
    group_name: str = Field(..., min_length=1, max_length=255, description="Product name")
    group_description: Optional[str] = Field(None, description="Product description")
    brand_id: int = Field(..., gt=0)
    product_type_id: int = Field(..., gt=0)

    # Variant
    code: int = Field(..., gt=0, description="Unique human-facing product code")
    size: Optional[str] = Field(None, max_length=50)
    color: Optional[str] = Field(None, max_length=50)
    price: float = Field(..., gt=0, description="Product price (must be positive)")
    original_price: Optional[float] = Field(None, gt=0)
    sale_price: Optional[float] = Field(None, gt=0)
    composition: Optional[str] = Field(None, max_length=255)
    is_featured: bool = False

    # Inventory
    initial_quantity: int = Field(0, ge=0, description="Initial stock (must be non-negative)")


class ProductRef(BaseModel):
    id: int
    group_id: int
    code: int
    name: str


class ProductCreatedResponse(BaseModel):
    success: bool = True
    product: ProductRef


class ProductImageResponse(BaseModel):
    url: str
    alt_text: Optional[str] = None
    sort_order: int

    model_config = ConfigDict(from_attributes=True)


class ProductResponse(BaseModel):
    """Schema for variant response with group data and current stock"""
    id: int
    product_group_id: int
    name: str = Field(validation_alias=AliasChoices("title", "name"))
    code: int
    size: Optional[str] = None
    color: Optional[str] = None
    price: float
    original_price: Optional[float] = None
    sale_price: Optional[float] = None
    effective_price: float
    composition: Optional[str] = None
    is_featured: bool
    stock: int
    images: List[ProductImageResponse] = []
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class FeaturedProductsResponse(BaseModel):
    data: List[ProductResponse]
