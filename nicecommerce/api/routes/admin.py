"""
  Admin API Routes (ADMIN role only)

    - GET    /api/admin/users/{user_id}
    - DELETE /api/admin/users/{uid}
    - POST   /api/admin/products
    - PUT    /api/admin/products/{product_id}
    - DELETE /api/admin/products/{product_id}
    - POST   /api/admin/categories
"""
from fastapi import APIRouter, Depends, Response, status

from nicecommerce.api.dependencies import get_category_service, get_product_service, get_user_service
from nicecommerce.api.schemas.account import UserDTO
from nicecommerce.api.schemas.product import (
    CategoryDTO,
    CreateCategoryRequest,
    CreateProductRequest,
    ProductDTO,
    UpdateProductRequest,
)
from nicecommerce.api.security import require_admin
from nicecommerce.services.accounts import UserService
from nicecommerce.services.products import CategoryService, ProductService

router = APIRouter(
    prefix="/api/admin",
    tags=["admin"],
    dependencies=[Depends(require_admin)],
)


@router.get("/users/{user_id}", response_model=UserDTO, summary="Get a user by id")
async def get_user(user_id: int, users: UserService = Depends(get_user_service)) -> UserDTO:
    return await users.get_user_by_id(user_id)


@router.delete("/users/{uid}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete a user")
async def delete_user(uid: str, users: UserService = Depends(get_user_service)) -> Response:
    await users.delete_user(uid)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/products",
    response_model=ProductDTO,
    status_code=status.HTTP_201_CREATED,
    summary="Create a product",
)
async def create_product(
    request: CreateProductRequest,
    products: ProductService = Depends(get_product_service),
) -> ProductDTO:
    return await products.create(request)


@router.put("/products/{product_id}", response_model=ProductDTO, summary="Update a product")
async def update_product(
    product_id: int,
    request: UpdateProductRequest,
    products: ProductService = Depends(get_product_service),
) -> ProductDTO:
    return await products.update(product_id, request)


@router.delete(
    "/products/{product_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Soft-delete a product",
)
async def delete_product(
    product_id: int,
    products: ProductService = Depends(get_product_service),
) -> Response:
    await products.delete(product_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/categories",
    response_model=CategoryDTO,
    status_code=status.HTTP_201_CREATED,
    summary="Create a category",
)
async def create_category(
    request: CreateCategoryRequest,
    categories: CategoryService = Depends(get_category_service),
) -> CategoryDTO:
    return await categories.create(request)
