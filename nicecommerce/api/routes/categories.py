from fastapi import APIRouter, Depends

from nicecommerce.api.dependencies import get_category_service
from nicecommerce.api.schemas.product import CategoryDTO
from nicecommerce.services.products import CategoryService

router = APIRouter(prefix="/api/categories", tags=["categories"])


@router.get("", response_model=list[CategoryDTO], summary="List categories")
async def list_categories(categories: CategoryService = Depends(get_category_service)) -> list[CategoryDTO]:
    return await categories.list_categories()


@router.get("/{slug}", response_model=CategoryDTO, summary="Get a category by slug")
async def get_category(slug: str, categories: CategoryService = Depends(get_category_service)) -> CategoryDTO:
    return await categories.get_by_slug(slug)
