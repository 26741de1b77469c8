"""
  Catalog Schemas (DTOs)

  Stock lives in `sizes`, a map of size label to units, e.g. {"S": 10, "M": 0}.
"""
from dataclasses import asdict
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from nicecommerce.api.schemas.account import EMAIL_PATTERN
from nicecommerce.domain.pagination import Page
from nicecommerce.domain.products import Category, Product


class CreateProductRequest(BaseModel):
    """
    Request body for adding a product to the catalog.

    Example:
    {
        "name": "Linen Shirt",
        "price": "45000.00",
        "category_id": 1,
        "sizes": {"S": 10, "M": 5},
        "is_drop": false
    }
    """
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    price: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)
    category_id: int
    images: list[str] = Field(default_factory=list)
    sizes: dict[str, int] = Field(default_factory=dict)
    material: Optional[str] = Field(default=None, max_length=255)
    size_guide: dict[str, dict[str, str]] = Field(default_factory=dict)
    occasions_of_use: list[str] = Field(default_factory=list)
    is_drop: bool = False
    release_date: Optional[datetime] = None

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Product name is required")
        return value

    class Config:
        json_schema_extra = {
            "example": {
                "name": "Linen Shirt",
                "price": "45000.00",
                "category_id": 1,
                "sizes": {"S": 10, "M": 5},
                "is_drop": False,
            }
        }


class UpdateProductRequest(BaseModel):
    """Only non-null fields are applied."""
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    price: Optional[Decimal] = Field(default=None, ge=0, max_digits=10, decimal_places=2)
    category_id: Optional[int] = None
    images: Optional[list[str]] = None
    sizes: Optional[dict[str, int]] = None
    material: Optional[str] = Field(default=None, max_length=255)
    size_guide: Optional[dict[str, dict[str, str]]] = None
    occasions_of_use: Optional[list[str]] = None
    is_drop: Optional[bool] = None
    release_date: Optional[datetime] = None
    is_active: Optional[bool] = None


class ProductDTO(BaseModel):
    id: int
    name: str
    slug: str
    description: str = ""
    price: Decimal
    category_id: int
    category_name: Optional[str] = None
    images: list[str] = Field(default_factory=list)
    sizes: dict[str, int] = Field(default_factory=dict)
    material: Optional[str] = None
    size_guide: dict[str, dict[str, str]] = Field(default_factory=dict)
    occasions_of_use: list[str] = Field(default_factory=list)
    is_drop: bool = False
    release_date: Optional[datetime] = None
    is_active: bool = True
    is_available: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

    @classmethod
    def from_product(cls, product: Product) -> "ProductDTO":
        return cls(**asdict(product), is_available=product.is_available())


class ProductListResponse(BaseModel):
    """Paginated list of products. Pages are zero-indexed."""
    products: list[ProductDTO]
    current_page: int
    total_pages: int
    total_items: int
    page_size: int

    @classmethod
    def from_page(cls, page: Page[Product]) -> "ProductListResponse":
        return cls(
            products=[ProductDTO.from_product(p) for p in page.items],
            current_page=page.page,
            total_pages=page.total_pages,
            total_items=page.total,
            page_size=page.size,
        )


class CategoryDTO(BaseModel):
    id: int
    name: str
    slug: str
    description: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

    @classmethod
    def from_category(cls, category: Category) -> "CategoryDTO":
        return cls.model_validate(category)


class CreateCategoryRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Category name is required")
        return value


class WaitlistRequest(BaseModel):
    email: str = Field(..., pattern=EMAIL_PATTERN, max_length=255)
    size: Optional[str] = Field(default=None, max_length=20)


class WaitlistResponse(BaseModel):
    id: int
    product_id: int
    email: str
    size: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
