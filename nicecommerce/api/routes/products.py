"""
  Product API Routes

  Listing filters are exclusive and applied in this order:
  search, then isDrop, then category, then the full catalog.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from nicecommerce.api.dependencies import get_container, get_product_service
from nicecommerce.api.container import Container
from nicecommerce.api.schemas.product import (
    ProductDTO,
    ProductListResponse,
    WaitlistRequest,
    WaitlistResponse,
)
from nicecommerce.api.security import get_current_principal
from nicecommerce.domain.accounts import Principal
from nicecommerce.services.products import DEFAULT_SORT, ProductService

router = APIRouter(prefix="/api/products", tags=["products"])


@router.get("", response_model=ProductListResponse, summary="List products")
async def list_products(
    page: int = Query(0, ge=0),
    size: int = Query(20, ge=1, le=100),
    category: Optional[str] = Query(None, description="Category slug"),
    search: Optional[str] = Query(None),
    is_drop: Optional[bool] = Query(None, alias="isDrop"),
    sort: str = Query(DEFAULT_SORT, description="Field name, '-' prefix for descending"),
    products: ProductService = Depends(get_product_service),
) -> ProductListResponse:
    if search and search.strip():
        return await products.search_products(search, page, size, sort)
    if is_drop:
        return await products.find_drops(page, size, sort)
    if category:
        return await products.find_by_category(category, page, size, sort)
    return await products.find_all(page, size, sort)


@router.get("/{slug}", response_model=ProductDTO, summary="Get a product by slug")
async def get_product(slug: str, products: ProductService = Depends(get_product_service)) -> ProductDTO:
    return await products.find_by_slug(slug)


@router.post(
    "/{slug}/waitlist",
    response_model=WaitlistResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Join the waitlist for an out-of-stock product",
)
async def join_waitlist(
    slug: str,
    request: WaitlistRequest,
    principal: Principal = Depends(get_current_principal),
    container: Container = Depends(get_container),
) -> WaitlistResponse:
    user = await container.user_service.find_user_by_email(principal.email) if principal.email else None
    entry = await container.product_service.join_waitlist(slug, request, user.id if user else None)
    return WaitlistResponse.model_validate(entry)
