"""
Product API endpoints
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from jewelry_crm.database import get_db
from jewelry_crm.services.product_service import ProductService
from jewelry_crm.schemas.product import (
    ProductCreate,
    ProductResponse,
    ProductCreatedResponse,
    FeaturedProductsResponse
)

router = APIRouter(prefix="/products", tags=["products"])


def get_product_service(db: Session = Depends(get_db)) -> ProductService:
    """Dependency to get ProductService instance"""
    return ProductService(db)


@router.get("/featured", response_model=FeaturedProductsResponse, summary="Featured products")
def get_featured_products(service: ProductService = Depends(get_product_service)):
    """Featured variants with an image and stock on hand, newest first"""
    return FeaturedProductsResponse(data=service.get_featured_products())


@router.get("/{product_id}", response_model=ProductResponse, summary="Get product by ID")
def get_product(
    product_id: int,
    service: ProductService = Depends(get_product_service)
):
    """
    Retrieve a variant with its group, images and current stock

    - **product_id**: Product variant ID
    """
    return service.get_product_by_id(product_id)


@router.post("", response_model=ProductCreatedResponse, status_code=status.HTTP_201_CREATED, summary="Create product")
def create_product(
    product_data: ProductCreate,
    service: ProductService = Depends(get_product_service)
):
    """
    Create a product group with its variant and initial stock

    - **group_name**, **brand_id**, **product_type_id**: product group (required)
    - **code**: unique product code (required)
    - **price**: must be positive (required)
    - **initial_quantity**: opening stock, non-negative (default 0)
    """
    return ProductCreatedResponse(product=service.create_product(product_data))
