"""
  Catalog services

  ProductService reads go through the `products` cache (ProductDTOs keyed by
  id, listing pages keyed by "list:<page>:<size>:<sort>"). Every write evicts
  what it touched and publishes a ProductEvent.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from nicecommerce.api.schemas.product import (
    CategoryDTO,
    CreateCategoryRequest,
    CreateProductRequest,
    ProductDTO,
    ProductListResponse,
    UpdateProductRequest,
    WaitlistRequest,
)
from nicecommerce.domain.events import ProductEvent, ProductEventType
from nicecommerce.domain.exceptions import BusinessException, ResourceNotFoundException
from nicecommerce.domain.products import Category, Product, Waitlist, generate_slug
from nicecommerce.infrastructure.cache import CATEGORIES, PRODUCTS, CacheManager

logger = logging.getLogger(__name__)

DEFAULT_SORT = "-created_at"

SORT_ALIASES = {
    "created_at": "created_at",
    "createdAt": "created_at",
    "price": "price",
    "name": "name",
    "release_date": "release_date",
    "releaseDate": "release_date",
}

LIST_KEY_PREFIX = "list:"


@dataclass(frozen=True)
class SortOrder:
    column: str
    descending: bool


def parse_sort(sort: Optional[str]) -> SortOrder:
    """
    "-createdAt" → SortOrder("created_at", descending=True)
    "price"      → SortOrder("price", descending=False)

    Raises:
        BusinessException: unknown field
    """
    raw = (sort or DEFAULT_SORT).strip() or DEFAULT_SORT
    descending = raw.startswith("-")
    field_name = raw[1:] if descending else raw
    column = SORT_ALIASES.get(field_name)
    if column is None:
        raise BusinessException(f"Invalid sort field: {field_name}")
    return SortOrder(column=column, descending=descending)


def evict_products(cache: CacheManager, product_ids) -> None:
    """Drop the given products and every cached listing page."""
    for product_id in product_ids:
        cache.evict(PRODUCTS, product_id)
    cache.evict_matching(PRODUCTS, lambda key: isinstance(key, str) and key.startswith(LIST_KEY_PREFIX))


def restocked_sizes(before: dict[str, int], after: dict[str, int]) -> list[str]:
    """Sizes that had no stock before and have some now."""
    return [
        size for size, stock in after.items()
        if (stock or 0) > 0 and (before.get(size) or 0) <= 0
    ]


class ProductService:
    def __init__(self, db, products, categories, waitlist, publisher, cache: CacheManager):
        self._db = db
        self._products = products
        self._categories = categories
        self._waitlist = waitlist
        self._publisher = publisher
        self._cache = cache

    async def find_by_id(self, product_id: int) -> ProductDTO:
        async def load():
            product = await self._products.find_by_id(product_id)
            if product is None:
                raise ResourceNotFoundException(f"Product not found with id: {product_id}")
            return ProductDTO.from_product(product)

        return await self._cache.get_or_load(PRODUCTS, product_id, load)

    async def find_by_slug(self, slug: str) -> ProductDTO:
        product = await self._products.find_by_slug(slug)
        if product is None or not product.is_active:
            raise ResourceNotFoundException(f"Product not found with slug: {slug}")
        return ProductDTO.from_product(product)

    async def find_all(self, page: int, size: int, sort: Optional[str] = None) -> ProductListResponse:
        order = parse_sort(sort)
        key = f"{LIST_KEY_PREFIX}{page}:{size}:{sort or DEFAULT_SORT}"

        async def load():
            result = await self._products.find_active(page, size, order.column, order.descending)
            return ProductListResponse.from_page(result)

        return await self._cache.get_or_load(PRODUCTS, key, load)

    async def search_products(self, term: str, page: int, size: int,
                              sort: Optional[str] = None) -> ProductListResponse:
        order = parse_sort(sort)
        result = await self._products.search_active(term.strip(), page, size, order.column, order.descending)
        return ProductListResponse.from_page(result)

    async def find_drops(self, page: int, size: int, sort: Optional[str] = None) -> ProductListResponse:
        order = parse_sort(sort)
        result = await self._products.find_active_drops(page, size, order.column, order.descending)
        return ProductListResponse.from_page(result)

    async def find_by_category(self, category_slug: str, page: int, size: int,
                               sort: Optional[str] = None) -> ProductListResponse:
        order = parse_sort(sort)
        category = await self._categories.find_by_slug(category_slug)
        if category is None:
            raise ResourceNotFoundException(f"Category not found with slug: {category_slug}")
        result = await self._products.find_active_by_category(
            category.id, page, size, order.column, order.descending
        )
        return ProductListResponse.from_page(result)

    async def _unique_slug(self, name: str, current_id: Optional[int] = None) -> str:
        base = generate_slug(name)
        slug = base
        suffix = 2
        while await self._products.exists_by_slug(slug):
            existing = await self._products.find_by_slug(slug)
            if current_id is not None and existing is not None and existing.id == current_id:
                break
            slug = f"{base}-{suffix}"
            suffix += 1
        return slug

    async def create(self, request: CreateProductRequest) -> ProductDTO:
        category = await self._categories.find_by_id(request.category_id)
        if category is None:
            raise ResourceNotFoundException(f"Category not found with id: {request.category_id}")

        product = Product(
            name=request.name,
            slug=await self._unique_slug(request.name),
            description=request.description or "",
            price=request.price,
            category_id=category.id,
            category_name=category.name,
            images=list(request.images),
            sizes=dict(request.sizes),
            material=request.material,
            size_guide=dict(request.size_guide),
            occasions_of_use=list(request.occasions_of_use),
            is_drop=request.is_drop,
            release_date=request.release_date,
        )
        product = await self._products.save(product)
        self._cache.clear(PRODUCTS)
        logger.info("Product created - id: %s, slug: %s", product.id, product.slug)

        await self._publisher.publish_product_event(ProductEvent(
            event_type=ProductEventType.PRODUCT_CREATED,
            product_id=product.id,
            slug=product.slug,
            sizes=dict(product.sizes),
        ))
        return ProductDTO.from_product(product)

    async def update(self, product_id: int, request: UpdateProductRequest) -> ProductDTO:
        """
        Apply the non-null fields of `request`.

        The row is locked while it is rewritten, so stock sold by a checkout
        that commits in between is never written back.
        """
        category = None
        if request.category_id is not None:
            category = await self._categories.find_by_id(request.category_id)
            if category is None:
                raise ResourceNotFoundException(f"Category not found with id: {request.category_id}")

        async with self._db.transaction() as conn:
            product = await self._products.find_by_id_for_update(product_id, conn)
            if product is None:
                raise ResourceNotFoundException(f"Product not found with id: {product_id}")

            if category is not None:
                product.category_id = category.id
                product.category_name = category.name

            sizes_before = dict(product.sizes or {})

            if request.name is not None and request.name != product.name:
                product.name = request.name
                product.slug = await self._unique_slug(request.name, current_id=product.id)
            if request.description is not None:
                product.description = request.description
            if request.price is not None:
                product.price = request.price
            if request.images is not None:
                product.images = list(request.images)
            if request.sizes is not None:
                product.sizes = dict(request.sizes)
            if request.material is not None:
                product.material = request.material
            if request.size_guide is not None:
                product.size_guide = dict(request.size_guide)
            if request.occasions_of_use is not None:
                product.occasions_of_use = list(request.occasions_of_use)
            if request.is_drop is not None:
                product.is_drop = request.is_drop
            if request.release_date is not None:
                product.release_date = request.release_date
            if request.is_active is not None:
                product.is_active = request.is_active

            product = await self._products.save(product, conn=conn)

        self._evict_product(product.id)
        logger.info("Product updated - id: %s", product.id)

        await self._publisher.publish_product_event(ProductEvent(
            event_type=ProductEventType.PRODUCT_UPDATED,
            product_id=product.id,
            slug=product.slug,
            sizes=dict(product.sizes),
        ))

        restocked = restocked_sizes(sizes_before, product.sizes or {})
        if restocked:
            await self._notify_waitlist(product, restocked)

        return ProductDTO.from_product(product)

    async def _notify_waitlist(self, product: Product, sizes: list[str]) -> None:
        entries = [
            entry for entry in await self._waitlist.find_pending(product.id)
            if entry.size is None or entry.size in sizes
        ]
        if not entries:
            return
        await self._waitlist.mark_notified([entry.id for entry in entries])
        emails = sorted({entry.email for entry in entries})
        logger.info("Waitlist notified - productId: %s, sizes: %s, entries: %s",
                    product.id, ",".join(sizes), len(entries))

        await self._publisher.publish_product_event(ProductEvent(
            event_type=ProductEventType.PRODUCT_RESTOCKED,
            product_id=product.id,
            slug=product.slug,
            sizes=dict(product.sizes),
            metadata={"restocked_sizes": sizes, "notified_emails": emails},
        ))

    async def delete(self, product_id: int) -> None:
        """Soft delete: the product stays in the table but is no longer listed."""
        async with self._db.transaction() as conn:
            product = await self._products.find_by_id_for_update(product_id, conn)
            if product is None:
                raise ResourceNotFoundException(f"Product not found with id: {product_id}")

            product.is_active = False
            await self._products.save(product, conn=conn)
        self._evict_product(product_id)
        logger.info("Product deleted (soft) - id: %s", product_id)

        await self._publisher.publish_product_event(ProductEvent(
            event_type=ProductEventType.PRODUCT_DELETED,
            product_id=product_id,
            slug=product.slug,
        ))

    async def join_waitlist(self, slug: str, request: WaitlistRequest,
                            user_id: Optional[int] = None) -> Waitlist:
        product = await self._products.find_by_slug(slug)
        if product is None or not product.is_active:
            raise ResourceNotFoundException(f"Product not found with slug: {slug}")

        if await self._waitlist.exists(product.id, request.email, request.size):
            raise BusinessException("Already on the waitlist for this product")

        in_stock = product.stock_for_size(request.size) > 0 if request.size else product.is_available()
        if in_stock:
            raise BusinessException("Product is in stock")

        entry = await self._waitlist.save(Waitlist(
            product_id=product.id,
            email=request.email,
            size=request.size,
            user_id=user_id,
        ))
        logger.info("Waitlist joined - productId: %s, size: %s", product.id, request.size)
        return entry

    def _evict_product(self, product_id: int) -> None:
        evict_products(self._cache, [product_id])


class CategoryService:
    def __init__(self, categories, cache: CacheManager):
        self._categories = categories
        self._cache = cache

    async def list_categories(self) -> list[CategoryDTO]:
        async def load():
            return [CategoryDTO.from_category(c) for c in await self._categories.find_all()]

        return await self._cache.get_or_load(CATEGORIES, "all", load)

    async def get_by_slug(self, slug: str) -> CategoryDTO:
        category = await self._categories.find_by_slug(slug)
        if category is None:
            raise ResourceNotFoundException(f"Category not found with slug: {slug}")
        return CategoryDTO.from_category(category)

    async def create(self, request: CreateCategoryRequest) -> CategoryDTO:
        slug = generate_slug(request.name)
        if await self._categories.exists_by_name_or_slug(request.name, slug):
            raise BusinessException(f"Category already exists: {request.name}")

        category = await self._categories.save(Category(
            name=request.name,
            slug=slug,
            description=request.description,
        ))
        self._cache.clear(CATEGORIES)
        logger.info("Category created - id: %s, slug: %s", category.id, category.slug)
        return CategoryDTO.from_category(category)
